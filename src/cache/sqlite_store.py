# src/cache/sqlite_store.py - v3
"""SQLite-based cache store (CACHE_BACKEND=sqlite).

Uses stdlib sqlite3. Owner, content dimension and expiry columns are
indexed so scoped invalidation and sweeps avoid a full deserialize.
"""

from __future__ import annotations

import logging
import sqlite3
from collections.abc import Callable
from datetime import datetime, timedelta, timezone
from pathlib import Path

from contentgate.cache.base_cache_store import BaseCacheStore
from contentgate.cache.models import CacheEntry, ContentType, OwnerField, utcnow

logger = logging.getLogger(__name__)

_SCHEMA = """
CREATE TABLE IF NOT EXISTS cache_entries (
    content_id TEXT PRIMARY KEY,
    data TEXT NOT NULL,
    artifact_id TEXT NOT NULL,
    site_id TEXT,
    content_type TEXT NOT NULL,
    language TEXT NOT NULL,
    last_accessed_at TEXT NOT NULL,
    expires_at TEXT NOT NULL
);
CREATE INDEX IF NOT EXISTS idx_artifact ON cache_entries(artifact_id);
CREATE INDEX IF NOT EXISTS idx_site ON cache_entries(site_id);
CREATE INDEX IF NOT EXISTS idx_expires ON cache_entries(expires_at);
"""

_OWNER_COLUMNS: dict[str, str] = {"artifact_id": "artifact_id", "site_id": "site_id"}


def _ts(value: datetime) -> str:
    """UTC ISO timestamp; lexical order equals time order."""
    return value.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%S.%fZ")


class SqliteCacheStore(BaseCacheStore):
    """SQLite-backed cache store."""

    def __init__(
        self, db_path: Path | str, clock: Callable[[], datetime] = utcnow
    ) -> None:
        super().__init__(clock)
        self._db_path = Path(db_path).expanduser()
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._conn = sqlite3.connect(str(self._db_path), check_same_thread=False)
        self._conn.execute("PRAGMA journal_mode=WAL")
        self._conn.executescript(_SCHEMA)

    async def get(self, key: str) -> CacheEntry | None:
        entry = self._live(key)
        self._record_lookup(entry is not None)
        return entry

    async def put(self, entry: CacheEntry, ttl_seconds: float) -> None:
        self._upsert(entry.stamped(self._now(), ttl_seconds))

    async def delete(self, key: str) -> CacheEntry | None:
        entry = self._fetch(key)
        self._conn.execute("DELETE FROM cache_entries WHERE content_id = ?", (key,))
        self._conn.commit()
        return entry

    async def delete_by_owner(
        self, owner_id: str, field: OwnerField = "artifact_id"
    ) -> int:
        column = _OWNER_COLUMNS[field]
        cursor = self._conn.execute(
            f"DELETE FROM cache_entries WHERE {column} = ?", (owner_id,)
        )
        self._conn.commit()
        return cursor.rowcount

    async def extend_ttl(self, key: str, extra_seconds: float) -> None:
        entry = self._live(key)
        if entry is None:
            return
        self._update(entry.model_copy(
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
        if not self._update(updated):
            return None
        return updated

    async def find_by_owner(
        self, artifact_id: str, content_type: ContentType, language: str
    ) -> CacheEntry | None:
        row = self._conn.execute(
            """SELECT data FROM cache_entries
               WHERE artifact_id = ? AND content_type = ? AND language = ?
                 AND expires_at >= ?
               ORDER BY last_accessed_at DESC LIMIT 1""",
            (artifact_id, ContentType(content_type).value, language, _ts(self._now())),
        ).fetchone()
        self._record_lookup(row is not None)
        if row is None:
            return None
        return CacheEntry.model_validate_json(row[0])

    async def list_entries(self) -> list[CacheEntry]:
        cursor = self._conn.execute(
            "SELECT data FROM cache_entries WHERE expires_at >= ? ORDER BY content_id",
            (_ts(self._now()),),
        )
        return [CacheEntry.model_validate_json(row[0]) for row in cursor.fetchall()]

    async def sweep_expired(self) -> int:
        cursor = self._conn.execute(
            "DELETE FROM cache_entries WHERE expires_at < ?", (_ts(self._now()),)
        )
        self._conn.commit()
        return cursor.rowcount

    def close(self) -> None:
        """Close the database connection."""
        self._conn.close()

    def _fetch(self, key: str) -> CacheEntry | None:
        row = self._conn.execute(
            "SELECT data FROM cache_entries WHERE content_id = ?", (key,)
        ).fetchone()
        if row is None:
            return None
        return CacheEntry.model_validate_json(row[0])

    def _live(self, key: str) -> CacheEntry | None:
        entry = self._fetch(key)
        if entry is not None and entry.is_expired(self._now()):
            self._conn.execute("DELETE FROM cache_entries WHERE content_id = ?", (key,))
            self._conn.commit()
            return None
        return entry

    def _update(self, entry: CacheEntry) -> bool:
        """Rewrite an existing row only; False if it was deleted meanwhile."""
        cursor = self._conn.execute(
            """UPDATE cache_entries
               SET data = ?, last_accessed_at = ?, expires_at = ?
               WHERE content_id = ?""",
            (
                entry.model_dump_json(),
                _ts(entry.last_accessed_at),
                _ts(entry.expires_at),
                entry.content_id,
            ),
        )
        self._conn.commit()
        return cursor.rowcount == 1

    def _upsert(self, entry: CacheEntry) -> None:
        self._conn.execute(
            """INSERT OR REPLACE INTO cache_entries
               (content_id, data, artifact_id, site_id, content_type, language,
                last_accessed_at, expires_at)
               VALUES (?, ?, ?, ?, ?, ?, ?, ?)""",
            (
                entry.content_id,
                entry.model_dump_json(),
                entry.artifact_id,
                entry.site_id,
                entry.content_type.value,
                entry.language,
                _ts(entry.last_accessed_at),
                _ts(entry.expires_at),
            ),
        )
        self._conn.commit()
