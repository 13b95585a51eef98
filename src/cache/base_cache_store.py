# src/cache/base_cache_store.py - v2
"""Abstract cache store interface.

Backends persist CacheEntry records and own expiry: an entry whose
expires_at has passed is never returned by get(), list_entries() or
find_by_owner(). Backend I/O errors propagate to the caller.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections import Counter
from collections.abc import Callable
from datetime import datetime, timedelta

from contentgate.cache.models import (
    AccessSummary,
    CacheEntry,
    CacheStatistics,
    ContentType,
    OwnerField,
    utcnow,
)

EXPIRING_SOON_WINDOW = timedelta(hours=24)


class BaseCacheStore(ABC):
    """Unified interface for cache storage backends."""

    def __init__(self, clock: Callable[[], datetime] = utcnow) -> None:
        self._clock = clock
        self._hits = 0
        self._misses = 0

    @abstractmethod
    async def get(self, key: str) -> CacheEntry | None:
        """Retrieve a live entry. Counts a hit or miss."""

    @abstractmethod
    async def put(self, entry: CacheEntry, ttl_seconds: float) -> None:
        """Store entry with expiry ttl_seconds from now (upsert)."""

    @abstractmethod
    async def delete(self, key: str) -> CacheEntry | None:
        """Remove an entry, returning it if it existed."""

    @abstractmethod
    async def delete_by_owner(
        self, owner_id: str, field: OwnerField = "artifact_id"
    ) -> int:
        """Remove every entry owned by owner_id. Returns count removed."""

    @abstractmethod
    async def extend_ttl(self, key: str, extra_seconds: float) -> None:
        """Push expires_at forward. No-op if the key is absent."""

    @abstractmethod
    async def touch(self, key: str) -> CacheEntry | None:
        """Record one access and return the updated entry, or None if gone."""

    @abstractmethod
    async def find_by_owner(
        self, artifact_id: str, content_type: ContentType, language: str
    ) -> CacheEntry | None:
        """Most recently accessed live entry for an owner and content dims."""

    @abstractmethod
    async def list_entries(self) -> list[CacheEntry]:
        """List all live entries."""

    @abstractmethod
    async def sweep_expired(self) -> int:
        """Physically remove expired entries. Returns count removed."""

    async def stats(self, top_n: int = 10) -> CacheStatistics:
        """Aggregate statistics over live entries."""
        entries = await self.list_entries()
        if not entries:
            return CacheStatistics()

        horizon = self._clock() + EXPIRING_SOON_WINDOW
        total_access = sum(e.access_count for e in entries)
        ranked = sorted(entries, key=lambda e: e.access_count, reverse=True)

        return CacheStatistics(
            total_items=len(entries),
            total_access_count=total_access,
            average_access_count=total_access / len(entries),
            top_accessed=[_summarize(e) for e in ranked[:top_n]],
            expiring_soon_count=sum(1 for e in entries if e.expires_at <= horizon),
            content_type_distribution=dict(Counter(e.content_type.value for e in entries)),
            language_distribution=dict(Counter(e.language for e in entries)),
        )

    def hit_rate(self) -> float | None:
        """Fraction of get() calls that hit, or None before any lookup."""
        lookups = self._hits + self._misses
        if lookups == 0:
            return None
        return self._hits / lookups

    def _record_lookup(self, hit: bool) -> None:
        if hit:
            self._hits += 1
        else:
            self._misses += 1

    def _now(self) -> datetime:
        return self._clock()


def _summarize(entry: CacheEntry) -> AccessSummary:
    return AccessSummary(
        content_id=entry.content_id,
        artifact_id=entry.artifact_id,
        content_type=entry.content_type,
        language=entry.language,
        access_count=entry.access_count,
    )
