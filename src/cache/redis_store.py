# src/cache/redis_store.py - v3
"""Redis-based cache store (CACHE_BACKEND=redis).

Requires 'redis' package: pip install redis.
Entries are written with SET EXAT matching expires_at, so Redis drops them
on its own. Rewrites of an existing entry use SET XX and never recreate a
key deleted by another client. Set indexes (all keys, per artifact, per site) are pruned by
sweep_expired() and delete paths.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import datetime, timedelta

from contentgate.cache.base_cache_store import BaseCacheStore
from contentgate.cache.models import CacheEntry, ContentType, OwnerField, utcnow

logger = logging.getLogger(__name__)

_KEY_PREFIX = "contentgate:cache:"
_INDEX_KEY = "contentgate:cache:__index__"
_OWNER_PREFIX = "contentgate:owner:"


def _owner_key(field: str, owner_id: str) -> str:
    return f"{_OWNER_PREFIX}{field}:{owner_id}"


class RedisCacheStore(BaseCacheStore):
    """Redis-backed cache store for multi-instance deployments."""

    def __init__(
        self, redis_url: str, clock: Callable[[], datetime] = utcnow
    ) -> None:
        super().__init__(clock)
        try:
            import redis
        except ImportError as e:
            raise ImportError(
                "redis package required: pip install redis"
            ) from e

        self._client = redis.Redis.from_url(redis_url, decode_responses=True)

    async def get(self, key: str) -> CacheEntry | None:
        entry = self._live(key)
        self._record_lookup(entry is not None)
        return entry

    async def put(self, entry: CacheEntry, ttl_seconds: float) -> None:
        stamped = entry.stamped(self._now(), ttl_seconds)
        self._write(stamped, must_exist=False)
        self._client.sadd(_INDEX_KEY, stamped.content_id)
        self._client.sadd(_owner_key("artifact_id", stamped.artifact_id), stamped.content_id)
        if stamped.site_id:
            self._client.sadd(_owner_key("site_id", stamped.site_id), stamped.content_id)

    async def delete(self, key: str) -> CacheEntry | None:
        entry = self._fetch(key)
        self._client.delete(f"{_KEY_PREFIX}{key}")
        self._client.srem(_INDEX_KEY, key)
        if entry is not None:
            self._unindex_owners(entry)
        return entry

    async def delete_by_owner(
        self, owner_id: str, field: OwnerField = "artifact_id"
    ) -> int:
        removed = 0
        for key in self._client.smembers(_owner_key(field, owner_id)):
            entry = await self.delete(key)
            if entry is not None and entry.owner(field) == owner_id:
                removed += 1
        self._client.delete(_owner_key(field, owner_id))
        return removed

    async def extend_ttl(self, key: str, extra_seconds: float) -> None:
        entry = self._live(key)
        if entry is None:
            return
        self._write(entry.model_copy(
            update={"expires_at": entry.expires_at + timedelta(seconds=extra_seconds)}
        ))

    async def touch(self, key: str) -> CacheEntry | None:
        entry = self._live(key)
        if entry is None:
            return None
        updated = entry.model_copy(update={
            "access_count": entry.access_count + 1,
            "last_accessed_at": self._now(),
        })
        if not self._write(updated):
            return None
        return updated

    async def find_by_owner(
        self, artifact_id: str, content_type: ContentType, language: str
    ) -> CacheEntry | None:
        now = self._now()
        matches = []
        for key in self._client.smembers(_owner_key("artifact_id", artifact_id)):
            entry = self._fetch(key)
            if (
                entry is not None
                and entry.content_type == content_type
                and entry.language == language
                and not entry.is_expired(now)
            ):
                matches.append(entry)
        self._record_lookup(bool(matches))
        if not matches:
            return None
        return max(matches, key=lambda e: e.last_accessed_at)

    async def list_entries(self) -> list[CacheEntry]:
        now = self._now()
        entries: list[CacheEntry] = []
        for key in sorted(self._client.smembers(_INDEX_KEY)):
            entry = self._fetch(key)
            if entry is not None and not entry.is_expired(now):
                entries.append(entry)
        return entries

    async def sweep_expired(self) -> int:
        """Drop expired entries and index members whose key Redis already expired."""
        now = self._now()
        removed = 0
        for key in self._client.smembers(_INDEX_KEY):
            entry = self._fetch(key)
            if entry is None:
                self._client.srem(_INDEX_KEY, key)
                removed += 1
            elif entry.is_expired(now):
                await self.delete(key)
                removed += 1
        return removed

    def close(self) -> None:
        """Close the Redis connection."""
        self._client.close()

    def _fetch(self, key: str) -> CacheEntry | None:
        data = self._client.get(f"{_KEY_PREFIX}{key}")
        if data is None:
            return None
        return CacheEntry.model_validate_json(data)

    def _live(self, key: str) -> CacheEntry | None:
        entry = self._fetch(key)
        if entry is not None and entry.is_expired(self._now()):
            self._client.delete(f"{_KEY_PREFIX}{key}")
            self._client.srem(_INDEX_KEY, key)
            self._unindex_owners(entry)
            return None
        return entry

    def _write(self, entry: CacheEntry, must_exist: bool = True) -> bool:
        """SET with its absolute expiry in one command.

        With must_exist the write is SET XX: it fails instead of recreating
        a key another client deleted after our read. Returns whether it landed.
        """
        written = self._client.set(
            f"{_KEY_PREFIX}{entry.content_id}",
            entry.model_dump_json(),
            xx=must_exist,
            exat=entry.expires_at,
        )
        return bool(written)

    def _unindex_owners(self, entry: CacheEntry) -> None:
        self._client.srem(_owner_key("artifact_id", entry.artifact_id), entry.content_id)
        if entry.site_id:
            self._client.srem(_owner_key("site_id", entry.site_id), entry.content_id)
