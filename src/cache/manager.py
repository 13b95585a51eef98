# src/cache/manager.py - v1
"""Cache manager: priority-adaptive TTLs, access-driven extension, eviction.

Eviction is a periodic least-access-count pass over a snapshot of live
entries, not a live LRU/LFU structure. Ties are broken by oldest
last_accessed_at, then content_id, so results are reproducible.

Storage errors propagate; a backend outage is never reported as a miss.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any

from contentgate.cache.base_cache_store import BaseCacheStore
from contentgate.cache.models import (
    CacheEntry,
    CacheInvalidationRequest,
    CacheMetrics,
    CachePriority,
    CachePriorityRank,
    CacheRefreshRequest,
    CacheStatistics,
    CacheStrategy,
    CleanupResult,
    ContentType,
)
from contentgate.cache.ttl_policy import extension_for, priority_tier, ttl_for_priority
from contentgate.core.errors import ConfigurationError
from contentgate.logging.context import set_content_context

logger = logging.getLogger(__name__)

TOP_CONTENT_LIMIT = 10


class CacheManager:
    """Consulted before expensive generation; written back after it."""

    def __init__(
        self, store: BaseCacheStore, strategy: CacheStrategy | None = None
    ) -> None:
        self._store = store
        self._strategy = strategy or CacheStrategy()
        logger.info("Cache manager initialized (%s)", type(store).__name__)

    @property
    def store(self) -> BaseCacheStore:
        return self._store

    # --- Writes ---

    async def put(
        self, entry: CacheEntry, priority: CachePriority | str | None = None
    ) -> None:
        """Write entry with a TTL derived from priority.

        Evicts one least-accessed entry first when the cache is full.
        """
        set_content_context(entry.content_id)
        priority = CachePriority(priority) if priority else CachePriority.MEDIUM
        ttl = ttl_for_priority(self._strategy, priority)
        logger.info(
            "Caching content %s (priority=%s, ttl=%ds)",
            entry.content_id, priority.value, ttl,
        )

        await self._evict_if_full()
        await self._store.put(entry.model_copy(update={"priority": priority}), ttl)

    async def preload(self, artifact_id: str, entries: list[CacheEntry]) -> None:
        """Warm the cache for an owner at the extended (high) TTL."""
        ttl = ttl_for_priority(self._strategy, CachePriority.HIGH)
        logger.info(
            "Preloading %d entries for artifact %s (ttl=%ds)",
            len(entries), artifact_id, ttl,
        )
        await asyncio.gather(*(
            self._store.put(e.model_copy(update={"priority": CachePriority.HIGH}), ttl)
            for e in entries
        ))

    async def refresh(self, request: CacheRefreshRequest) -> None:
        """Rewrite forcibly, insert if absent, or extend a live entry's TTL."""
        content_id = request.content_id
        logger.info("Refreshing cache for %s (force=%s)", content_id, request.force)

        if request.force:
            await self._store.delete(content_id)
            await self.put(request.content, request.priority)
            return

        existing = await self._store.get(content_id)
        if existing is None:
            await self.put(request.content, request.priority)
            return

        await self._store.extend_ttl(
            content_id, ttl_for_priority(self._strategy, existing.priority)
        )

    # --- Reads ---

    async def get(self, content_id: str) -> CacheEntry | None:
        """Read an entry, record the access and extend TTL if it is popular.

        The returned copy carries the new access count and the expiry as it
        was before any extension.
        """
        set_content_context(content_id)
        if await self._store.get(content_id) is None:
            logger.debug("Cache miss: %s", content_id)
            return None

        touched = await self._store.touch(content_id)
        if touched is None:
            return None

        extra = extension_for(touched.access_count)
        if extra:
            await self._store.extend_ttl(content_id, extra)
            logger.debug(
                "Extended TTL of %s by %ds (access_count=%d)",
                content_id, extra, touched.access_count,
            )
        return touched

    async def get_by_owner(
        self, artifact_id: str, content_type: ContentType | str, language: str
    ) -> CacheEntry | None:
        """Read-through lookup by owner and content dimensions.

        Does not record an access or extend TTL.
        """
        return await self._store.find_by_owner(
            artifact_id, ContentType(content_type), language
        )

    # --- Invalidation and maintenance ---

    async def invalidate(self, request: CacheInvalidationRequest) -> int:
        """Remove one entry (scope=content) or all entries of an owner."""
        if request.scope == "content":
            deleted = 1 if await self._store.delete(request.id) is not None else 0
        elif request.scope == "artifact":
            deleted = await self._store.delete_by_owner(request.id, "artifact_id")
        else:
            deleted = await self._store.delete_by_owner(request.id, "site_id")

        logger.info(
            "Cache invalidated: scope=%s id=%s deleted=%d",
            request.scope, request.id, deleted,
        )
        return deleted

    async def calculate_priorities(self) -> list[CachePriorityRank]:
        """Advisory priority tiers for all live entries, most accessed first."""
        entries = sorted(
            await self._store.list_entries(),
            key=lambda e: (-e.access_count, e.content_id),
        )
        ranks = []
        for entry in entries:
            tier, reason = priority_tier(entry.access_count)
            ranks.append(CachePriorityRank(
                content_id=entry.content_id, priority=tier, reason=reason
            ))
        return ranks

    async def cleanup(self) -> CleanupResult:
        """Sweep expired entries, then evict down to max_cache_entries."""
        expired = await self._store.sweep_expired()

        evicted = 0
        max_entries = self._strategy.max_cache_entries
        if max_entries:
            total = len(await self._store.list_entries())
            if total > max_entries:
                evicted = await self._evict_least_accessed(total - max_entries)

        logger.info(
            "Cache cleanup completed: expired=%d evicted=%d", expired, evicted
        )
        return CleanupResult(expired_deleted=expired, low_priority_deleted=evicted)

    # --- Reporting ---

    async def metrics(self) -> CacheMetrics:
        stats = await self._store.stats(top_n=TOP_CONTENT_LIMIT)
        hit_rate = self._store.hit_rate() or 0.0
        return CacheMetrics(
            total_items=stats.total_items,
            hit_rate=hit_rate,
            miss_rate=1 - hit_rate,
            average_access_count=stats.average_access_count,
            top_content=stats.top_accessed,
        )

    async def statistics(self) -> CacheStatistics:
        return await self._store.stats(top_n=TOP_CONTENT_LIMIT)

    def get_strategy(self) -> CacheStrategy:
        return self._strategy.model_copy()

    def set_strategy(self, **changes: Any) -> CacheStrategy:
        """Update strategy at runtime.

        Raises:
            ConfigurationError: On unknown fields or invalid values.
        """
        unknown = set(changes) - set(CacheStrategy.model_fields)
        if unknown:
            raise ConfigurationError(f"Unknown cache strategy fields: {sorted(unknown)}")
        self._strategy = CacheStrategy(**{**self._strategy.model_dump(), **changes})
        logger.info("Cache strategy updated", extra={"data": self._strategy.model_dump()})
        return self._strategy.model_copy()

    # --- Eviction ---

    async def _evict_if_full(self) -> None:
        max_entries = self._strategy.max_cache_entries
        if not max_entries:
            return
        if len(await self._store.list_entries()) >= max_entries:
            logger.info("Cache size limit reached, evicting least-accessed entry")
            await self._evict_least_accessed(1)

    async def _evict_least_accessed(self, count: int) -> int:
        candidates = sorted(
            await self._store.list_entries(),
            key=lambda e: (e.access_count, e.last_accessed_at, e.content_id),
        )[:count]

        evicted = 0
        for entry in candidates:
            if await self._store.delete(entry.content_id) is not None:
                evicted += 1
        logger.info("Evicted %d least-accessed entries", evicted)
        return evicted
