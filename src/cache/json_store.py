# src/cache/json_store.py - v3
"""JSON file-based cache store (CACHE_BACKEND=json).

Stores cache entries as individual JSON files under CACHE_ROOT.
Owner lookups and sweeps scan the directory.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import datetime, timedelta
from pathlib import Path
from urllib.parse import quote

from pydantic import ValidationError

from contentgate.cache.base_cache_store import BaseCacheStore
from contentgate.cache.models import CacheEntry, ContentType, OwnerField, utcnow

logger = logging.getLogger(__name__)


class JsonCacheStore(BaseCacheStore):
    """File-based cache store using JSON files."""

    def __init__(
        self, cache_root: Path | str, clock: Callable[[], datetime] = utcnow
    ) -> None:
        super().__init__(clock)
        self._root = Path(cache_root).expanduser()
        self._root.mkdir(parents=True, exist_ok=True)

    async def get(self, key: str) -> CacheEntry | None:
        entry = self._read_live(self._entry_path(key), key)
        self._record_lookup(entry is not None)
        return entry

    async def put(self, entry: CacheEntry, ttl_seconds: float) -> None:
        self._write(entry.stamped(self._now(), ttl_seconds))

    async def delete(self, key: str) -> CacheEntry | None:
        path = self._entry_path(key)
        entry = self._read(path, key)
        if entry is not None:
            path.unlink(missing_ok=True)
        return entry

    async def delete_by_owner(
        self, owner_id: str, field: OwnerField = "artifact_id"
    ) -> int:
        removed = 0
        for path, entry in self._scan():
            if entry.owner(field) == owner_id:
                path.unlink(missing_ok=True)
                removed += 1
        return removed

    async def extend_ttl(self, key: str, extra_seconds: float) -> None:
        entry = self._read_live(self._entry_path(key), key)
        if entry is None:
            return
        self._write(entry.model_copy(
            update={"expires_at": entry.expires_at + timedelta(seconds=extra_seconds)}
        ))

    async def touch(self, key: str) -> CacheEntry | None:
        entry = self._read_live(self._entry_path(key), key)
        if entry is None:
            return None
        updated = entry.model_copy(update={
            "access_count": entry.access_count + 1,
            "last_accessed_at": self._now(),
        })
        self._write(updated)
        return updated

    async def find_by_owner(
        self, artifact_id: str, content_type: ContentType, language: str
    ) -> CacheEntry | None:
        matches = [
            e for e in await self.list_entries()
            if e.artifact_id == artifact_id
            and e.content_type == content_type
            and e.language == language
        ]
        self._record_lookup(bool(matches))
        if not matches:
            return None
        return max(matches, key=lambda e: e.last_accessed_at)

    async def list_entries(self) -> list[CacheEntry]:
        now = self._now()
        return [e for _, e in self._scan() if not e.is_expired(now)]

    async def sweep_expired(self) -> int:
        now = self._now()
        removed = 0
        for path, entry in self._scan():
            if entry.is_expired(now):
                path.unlink(missing_ok=True)
                removed += 1
        return removed

    def _scan(self) -> list[tuple[Path, CacheEntry]]:
        found: list[tuple[Path, CacheEntry]] = []
        for path in sorted(self._root.glob("*.json")):
            entry = self._read(path)
            if entry is not None:
                found.append((path, entry))
        return found

    def _read(self, path: Path, key: str | None = None) -> CacheEntry | None:
        if not path.exists():
            return None
        try:
            entry = CacheEntry.model_validate_json(path.read_text(encoding="utf-8"))
        except ValidationError as e:
            logger.warning("Skipping unreadable cache file %s: %s", path.name, e)
            return None
        if key is not None and entry.content_id != key:
            logger.warning(
                "Cache file %s holds %s, expected %s", path.name, entry.content_id, key
            )
            return None
        return entry

    def _read_live(self, path: Path, key: str | None = None) -> CacheEntry | None:
        entry = self._read(path, key)
        if entry is not None and entry.is_expired(self._now()):
            path.unlink(missing_ok=True)
            return None
        return entry

    def _write(self, entry: CacheEntry) -> None:
        path = self._entry_path(entry.content_id)
        path.write_text(entry.model_dump_json(indent=2), encoding="utf-8")

    def _entry_path(self, key: str) -> Path:
        """File path for a cache key; percent-encoding keeps distinct keys distinct."""
        safe_key = quote(key, safe="")
        return self._root / f"{safe_key}.json"
