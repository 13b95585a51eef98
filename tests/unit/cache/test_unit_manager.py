# tests/unit/cache/test_unit_manager.py - v2
"""Tests for cache/manager.py against the in-memory store."""

from __future__ import annotations

from datetime import timedelta
from unittest.mock import AsyncMock

import pytest

from contentgate.cache.manager import CacheManager
from contentgate.cache.memory_store import MemoryCacheStore
from contentgate.cache.models import (
    CacheInvalidationRequest,
    CachePriority,
    CacheRefreshRequest,
    CacheStrategy,
    ContentType,
)
from contentgate.core.errors import ConfigurationError
from tests.conftest import make_entry


@pytest.fixture
def store(wall_clock):
    return MemoryCacheStore(clock=wall_clock)


@pytest.fixture
def manager(store):
    return CacheManager(store, CacheStrategy(max_cache_entries=100))


async def _stored(store, content_id):
    """Peek at the stored entry without touching hit counters or access."""
    return next(e for e in await store.list_entries() if e.content_id == content_id)


class TestPut:
    @pytest.mark.asyncio
    async def test_put_then_get(self, manager, sample_entry):
        await manager.put(sample_entry)
        result = await manager.get("content_001")
        assert result.payload == sample_entry.payload
        assert result.access_count == 1

    @pytest.mark.asyncio
    async def test_ttl_by_priority(self, manager, store, wall_clock):
        await manager.put(make_entry("h"), "high")
        await manager.put(make_entry("m"))
        await manager.put(make_entry("l"), CachePriority.LOW)
        now = wall_clock.now
        assert (await _stored(store, "h")).expires_at == now + timedelta(hours=4)
        assert (await _stored(store, "m")).expires_at == now + timedelta(hours=1)
        assert (await _stored(store, "l")).expires_at == now + timedelta(minutes=30)

    @pytest.mark.asyncio
    async def test_low_expires_before_high(self, manager, wall_clock):
        await manager.put(make_entry("h"), "high")
        await manager.put(make_entry("l"), "low")
        wall_clock.advance(minutes=31)
        assert await manager.get("l") is None
        assert await manager.get("h") is not None

    @pytest.mark.asyncio
    async def test_evicts_one_when_full(self, store, wall_clock):
        manager = CacheManager(store, CacheStrategy(max_cache_entries=2))
        await manager.put(make_entry("a"))
        await manager.put(make_entry("b"))
        await manager.get("a")
        await manager.put(make_entry("c"))
        ids = sorted(e.content_id for e in await store.list_entries())
        assert ids == ["a", "c"]

    @pytest.mark.asyncio
    async def test_unbounded_never_evicts(self, store):
        manager = CacheManager(store, CacheStrategy(max_cache_entries=None))
        for i in range(5):
            await manager.put(make_entry(f"e{i}"))
        assert len(await store.list_entries()) == 5


class TestGet:
    @pytest.mark.asyncio
    async def test_miss(self, manager):
        assert await manager.get("nope") is None

    @pytest.mark.asyncio
    async def test_low_access_never_extends(self, manager, store):
        await manager.put(make_entry("x"))
        original = (await _stored(store, "x")).expires_at
        for _ in range(9):
            await manager.get("x")
        assert (await _stored(store, "x")).expires_at == original

    @pytest.mark.asyncio
    async def test_medium_access_extends_two_hours(self, manager, store):
        await manager.put(make_entry("x"))
        base = (await _stored(store, "x")).expires_at
        for _ in range(50):
            await manager.get("x")
        assert (await _stored(store, "x")).expires_at == base + timedelta(hours=2)

    @pytest.mark.asyncio
    async def test_high_access_extends_monotonically(self, manager, store):
        await manager.put(make_entry("x"))
        for _ in range(99):
            await manager.get("x")
        previous = (await _stored(store, "x")).expires_at
        for _ in range(3):
            returned = await manager.get("x")
            current = (await _stored(store, "x")).expires_at
            assert current == previous + timedelta(hours=4)
            assert returned.expires_at == previous
            previous = current

    @pytest.mark.asyncio
    async def test_deleted_between_read_and_touch_is_miss(self, sample_entry):
        store = AsyncMock()
        store.get.return_value = sample_entry
        store.touch.return_value = None
        manager = CacheManager(store)
        assert await manager.get("content_001") is None
        store.extend_ttl.assert_not_called()

    @pytest.mark.asyncio
    async def test_storage_errors_propagate(self):
        store = AsyncMock()
        store.get.side_effect = ConnectionError("backend down")
        manager = CacheManager(store)
        with pytest.raises(ConnectionError):
            await manager.get("x")


class TestGetByOwner:
    @pytest.mark.asyncio
    async def test_lookup_has_no_side_effects(self, manager, store):
        await manager.put(make_entry("x"))
        before = await _stored(store, "x")
        found = await manager.get_by_owner("artifact_001", "audio_guide", "en")
        assert found.content_id == "x"
        after = await _stored(store, "x")
        assert after.access_count == before.access_count
        assert after.expires_at == before.expires_at

    @pytest.mark.asyncio
    async def test_expired_is_miss(self, manager, wall_clock):
        await manager.put(make_entry("x"), "low")
        wall_clock.advance(hours=1)
        assert await manager.get_by_owner("artifact_001", ContentType.AUDIO_GUIDE, "en") is None


class TestRefresh:
    @pytest.mark.asyncio
    async def test_force_rewrites(self, manager, store):
        await manager.put(make_entry("x"))
        await manager.get("x")
        await manager.refresh(CacheRefreshRequest(
            content=make_entry("x", payload={"text": "v2"}), force=True,
        ))
        stored = await _stored(store, "x")
        assert stored.payload == {"text": "v2"}
        assert stored.access_count == 0

    @pytest.mark.asyncio
    async def test_absent_is_written(self, manager, store):
        await manager.refresh(CacheRefreshRequest(content=make_entry("x")))
        assert (await _stored(store, "x")) is not None

    @pytest.mark.asyncio
    async def test_present_extends_by_priority_ttl(self, manager, store):
        await manager.put(make_entry("x", payload={"text": "v1"}), "high")
        base = (await _stored(store, "x")).expires_at
        await manager.refresh(CacheRefreshRequest(
            content=make_entry("x", payload={"text": "v2"}),
        ))
        stored = await _stored(store, "x")
        assert stored.payload == {"text": "v1"}
        assert stored.expires_at == base + timedelta(hours=4)


class TestInvalidate:
    @pytest.mark.asyncio
    async def test_content_scope(self, manager):
        await manager.put(make_entry("x"))
        assert await manager.invalidate(CacheInvalidationRequest(scope="content", id="x")) == 1
        assert await manager.get("x") is None
        assert await manager.invalidate(CacheInvalidationRequest(scope="content", id="x")) == 0

    @pytest.mark.asyncio
    async def test_artifact_scope(self, manager, artifact_entries):
        for e in artifact_entries:
            await manager.put(e)
        removed = await manager.invalidate(
            CacheInvalidationRequest(scope="artifact", id="artifact_001")
        )
        assert removed == 3
        for cid in ("c1", "c2", "c3"):
            assert await manager.get(cid) is None
        assert await manager.get("c4") is not None

    @pytest.mark.asyncio
    async def test_site_scope(self, manager, artifact_entries):
        for e in artifact_entries:
            await manager.put(e)
        removed = await manager.invalidate(CacheInvalidationRequest(scope="site", id="site_001"))
        assert removed == 3


class TestPrioritiesAndPreload:
    @pytest.mark.asyncio
    async def test_calculate_priorities(self, manager):
        for cid, reads in (("hot", 100), ("warm", 50), ("cool", 10), ("cold", 1)):
            await manager.put(make_entry(cid))
            for _ in range(reads):
                await manager.get(cid)
        ranks = await manager.calculate_priorities()
        assert [(r.content_id, r.priority) for r in ranks] == [
            ("hot", 3), ("warm", 2), ("cool", 1), ("cold", 0),
        ]

    @pytest.mark.asyncio
    async def test_preload_uses_extended_ttl(self, manager, store, wall_clock):
        entries = [make_entry(f"p{i}") for i in range(3)]
        await manager.preload("artifact_001", entries)
        for i in range(3):
            stored = await _stored(store, f"p{i}")
            assert stored.expires_at == wall_clock.now + timedelta(hours=4)
            assert stored.priority is CachePriority.HIGH

    @pytest.mark.asyncio
    async def test_ttl_factors_ignore_multiplier(self, store, wall_clock):
        manager = CacheManager(store, CacheStrategy(priority_multiplier=3))
        await manager.preload("artifact_001", [make_entry("p")])
        await manager.put(make_entry("h"), "high")
        await manager.put(make_entry("l"), "low")
        now = wall_clock.now
        assert (await _stored(store, "p")).expires_at == now + timedelta(hours=4)
        assert (await _stored(store, "h")).expires_at == now + timedelta(hours=4)
        assert (await _stored(store, "l")).expires_at == now + timedelta(minutes=30)


class TestCleanup:
    @pytest.mark.asyncio
    async def test_expired_then_evicts_least_accessed(self, store, wall_clock):
        manager = CacheManager(store, CacheStrategy(max_cache_entries=None))
        await manager.put(make_entry("gone"), "low")
        for i in range(10):
            await manager.put(make_entry(f"e{i}"))
        wall_clock.advance(minutes=31)
        manager.set_strategy(max_cache_entries=7)
        for i in range(3, 10):
            await manager.get(f"e{i}")

        result = await manager.cleanup()
        assert result.expired_deleted == 1
        assert result.low_priority_deleted == 3
        remaining = sorted(e.content_id for e in await store.list_entries())
        assert remaining == [f"e{i}" for i in range(3, 10)]

    @pytest.mark.asyncio
    async def test_ties_broken_by_last_access_then_id(self, store, wall_clock):
        manager = CacheManager(store, CacheStrategy(max_cache_entries=None))
        for cid in ("b", "a", "c"):
            await manager.put(make_entry(cid))
        manager.set_strategy(max_cache_entries=1)
        result = await manager.cleanup()
        assert result.low_priority_deleted == 2
        assert [e.content_id for e in await store.list_entries()] == ["c"]

    @pytest.mark.asyncio
    async def test_within_budget_evicts_nothing(self, manager):
        await manager.put(make_entry("x"))
        result = await manager.cleanup()
        assert result.model_dump() == {"expired_deleted": 0, "low_priority_deleted": 0}


class TestMetricsAndStrategy:
    @pytest.mark.asyncio
    async def test_metrics_before_any_lookup(self, manager):
        metrics = await manager.metrics()
        assert metrics.total_items == 0
        assert metrics.hit_rate == 0.0
        assert metrics.miss_rate == 1.0

    @pytest.mark.asyncio
    async def test_metrics(self, manager):
        await manager.put(make_entry("x"))
        await manager.get("x")
        await manager.get("y")
        metrics = await manager.metrics()
        assert metrics.total_items == 1
        assert metrics.hit_rate == 0.5
        assert metrics.miss_rate == 0.5
        assert metrics.average_access_count == 1
        assert metrics.top_content[0].content_id == "x"

    @pytest.mark.asyncio
    async def test_statistics(self, manager, artifact_entries):
        for e in artifact_entries:
            await manager.put(e)
        stats = await manager.statistics()
        assert stats.total_items == 4
        assert stats.content_type_distribution == {"audio_guide": 3, "video": 1}

    def test_set_strategy(self, manager):
        updated = manager.set_strategy(default_ttl_seconds=60)
        assert updated.default_ttl_seconds == 60
        assert manager.get_strategy().priority_multiplier == 2

    def test_set_strategy_rejects_invalid(self, manager):
        with pytest.raises(ConfigurationError):
            manager.set_strategy(priority_multiplier=0)
        with pytest.raises(ConfigurationError, match="Unknown"):
            manager.set_strategy(ttl=5)
