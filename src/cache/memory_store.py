# src/cache/memory_store.py - v2
"""In-process cache store (default CACHE_BACKEND=memory).

A dict guarded by a lock so the store can be shared across threads.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from datetime import datetime, timedelta

from contentgate.cache.base_cache_store import BaseCacheStore
from contentgate.cache.models import CacheEntry, ContentType, OwnerField, utcnow

logger = logging.getLogger(__name__)


class MemoryCacheStore(BaseCacheStore):
    """Dict-backed cache store."""

    def __init__(self, clock: Callable[[], datetime] = utcnow) -> None:
        super().__init__(clock)
        self._entries: dict[str, CacheEntry] = {}
        self._lock = threading.Lock()

    async def get(self, key: str) -> CacheEntry | None:
        with self._lock:
            entry = self._live(key)
        self._record_lookup(entry is not None)
        return entry

    async def put(self, entry: CacheEntry, ttl_seconds: float) -> None:
        with self._lock:
            self._entries[entry.content_id] = entry.stamped(self._now(), ttl_seconds)

    async def delete(self, key: str) -> CacheEntry | None:
        with self._lock:
            return self._entries.pop(key, None)

    async def delete_by_owner(
        self, owner_id: str, field: OwnerField = "artifact_id"
    ) -> int:
        with self._lock:
            keys = [k for k, e in self._entries.items() if e.owner(field) == owner_id]
            for key in keys:
                del self._entries[key]
        return len(keys)

    async def extend_ttl(self, key: str, extra_seconds: float) -> None:
        with self._lock:
            entry = self._live(key)
            if entry is None:
                return
            self._entries[key] = entry.model_copy(
                update={"expires_at": entry.expires_at + timedelta(seconds=extra_seconds)}
            )

    async def touch(self, key: str) -> CacheEntry | None:
        with self._lock:
            entry = self._live(key)
            if entry is None:
                return None
            updated = entry.model_copy(update={
                "access_count": entry.access_count + 1,
                "last_accessed_at": self._now(),
            })
            self._entries[key] = updated
            return updated

    async def find_by_owner(
        self, artifact_id: str, content_type: ContentType, language: str
    ) -> CacheEntry | None:
        now = self._now()
        with self._lock:
            matches = [
                e for e in self._entries.values()
                if e.artifact_id == artifact_id
                and e.content_type == content_type
                and e.language == language
                and not e.is_expired(now)
            ]
        self._record_lookup(bool(matches))
        if not matches:
            return None
        return max(matches, key=lambda e: e.last_accessed_at)

    async def list_entries(self) -> list[CacheEntry]:
        now = self._now()
        with self._lock:
            return [e for e in self._entries.values() if not e.is_expired(now)]

    async def sweep_expired(self) -> int:
        now = self._now()
        with self._lock:
            expired = [k for k, e in self._entries.items() if e.is_expired(now)]
            for key in expired:
                del self._entries[key]
        if expired:
            logger.debug("Swept %d expired entries", len(expired))
        return len(expired)

    def _live(self, key: str) -> CacheEntry | None:
        entry = self._entries.get(key)
        if entry is not None and entry.is_expired(self._now()):
            del self._entries[key]
            return None
        return entry
