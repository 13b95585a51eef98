# tests/integration/cache/test_int_cache_stores.py - v4
"""Integration tests for persistent cache backends: JSON + SQLite.

Runs the same contract checks and a CacheManager round trip on each
backend. No external services required.
"""

from __future__ import annotations

from datetime import timedelta
from pathlib import Path

import pytest

from contentgate.cache.json_store import JsonCacheStore
from contentgate.cache.manager import CacheManager
from contentgate.cache.models import CacheInvalidationRequest, CacheStrategy, ContentType
from contentgate.cache.sqlite_store import SqliteCacheStore
from tests.conftest import make_entry


@pytest.fixture(params=["json", "sqlite"])
def store(request, tmp_path: Path, wall_clock):
    if request.param == "json":
        yield JsonCacheStore(cache_root=tmp_path / "json", clock=wall_clock)
    else:
        s = SqliteCacheStore(db_path=tmp_path / "cache.db", clock=wall_clock)
        yield s
        s.close()


class TestStoreContract:
    @pytest.mark.asyncio
    async def test_put_get_delete(self, store, sample_entry):
        await store.put(sample_entry, 60)
        got = await store.get("content_001")
        assert got is not None
        assert got.payload == sample_entry.payload
        assert (await store.delete("content_001")).content_id == "content_001"
        assert await store.get("content_001") is None
        assert await store.delete("content_001") is None

    @pytest.mark.asyncio
    async def test_expiry_and_sweep(self, store, wall_clock):
        await store.put(make_entry("short"), 10)
        await store.put(make_entry("long"), 1000)
        wall_clock.advance(seconds=11)
        assert [e.content_id for e in await store.list_entries()] == ["long"]
        assert await store.sweep_expired() == 1
        assert await store.sweep_expired() == 0

    @pytest.mark.asyncio
    async def test_touch_and_extend(self, store, sample_entry, wall_clock):
        await store.put(sample_entry, 60)
        assert (await store.touch("content_001")).access_count == 1
        assert (await store.touch("content_001")).access_count == 2
        await store.extend_ttl("content_001", 3600)
        wall_clock.advance(seconds=600)
        assert (await store.get("content_001")).access_count == 2

    @pytest.mark.asyncio
    async def test_extend_missing_is_noop(self, store):
        await store.extend_ttl("ghost", 100)
        assert await store.get("ghost") is None

    @pytest.mark.asyncio
    async def test_extend_does_not_revive_expired(self, store, wall_clock):
        await store.put(make_entry("stale"), 10)
        wall_clock.advance(seconds=11)
        await store.extend_ttl("stale", 3600)
        assert await store.get("stale") is None
        assert await store.list_entries() == []

    @pytest.mark.asyncio
    async def test_owner_paths(self, store, artifact_entries, wall_clock):
        for e in artifact_entries:
            await store.put(e, 600)
        wall_clock.advance(seconds=1)
        await store.touch("c1")
        found = await store.find_by_owner("artifact_001", ContentType.AUDIO_GUIDE, "en")
        assert found.content_id == "c1"
        assert await store.delete_by_owner("artifact_001") == 3
        assert await store.delete_by_owner("site_002", "site_id") == 1
        assert await store.list_entries() == []


class TestManagerOnPersistentStores:
    @pytest.mark.asyncio
    async def test_round_trip(self, store, artifact_entries, wall_clock):
        manager = CacheManager(store, CacheStrategy(max_cache_entries=3))
        for e in artifact_entries[:3]:
            await manager.put(e)
        await manager.get("c1")
        await manager.put(artifact_entries[3], "high")

        ids = sorted(e.content_id for e in await store.list_entries())
        assert len(ids) == 3
        assert "c1" in ids and "c4" in ids

        stored = next(e for e in await store.list_entries() if e.content_id == "c4")
        assert stored.expires_at == wall_clock.now + timedelta(hours=4)

        removed = await manager.invalidate(
            CacheInvalidationRequest(scope="artifact", id="artifact_001")
        )
        assert removed == 2
        metrics = await manager.metrics()
        assert metrics.total_items == 1
