# src/cache/cache_factory.py - v4
"""Factory for cache store instantiation.

Backends are imported lazily so that, for example, the redis package is
only needed when CACHE_BACKEND=redis.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import datetime

from contentgate.cache.base_cache_store import BaseCacheStore
from contentgate.cache.models import utcnow
from contentgate.config.settings import Settings

logger = logging.getLogger(__name__)

SQLITE_FILENAME = "contentgate_cache.db"

_Clock = Callable[[], datetime]


def _memory(settings: Settings, clock: _Clock) -> BaseCacheStore:
    from contentgate.cache.memory_store import MemoryCacheStore
    return MemoryCacheStore(clock=clock)


def _json(settings: Settings, clock: _Clock) -> BaseCacheStore:
    from contentgate.cache.json_store import JsonCacheStore
    return JsonCacheStore(cache_root=settings.cache_root, clock=clock)


def _sqlite(settings: Settings, clock: _Clock) -> BaseCacheStore:
    from contentgate.cache.sqlite_store import SqliteCacheStore
    db_path = settings.cache_root.expanduser() / SQLITE_FILENAME
    return SqliteCacheStore(db_path=db_path, clock=clock)


def _redis(settings: Settings, clock: _Clock) -> BaseCacheStore:
    from contentgate.cache.redis_store import RedisCacheStore
    return RedisCacheStore(redis_url=settings.cache_redis_url, clock=clock)


_BACKENDS: dict[str, Callable[[Settings, _Clock], BaseCacheStore]] = {
    "memory": _memory,
    "json": _json,
    "sqlite": _sqlite,
    "redis": _redis,
}


def create_cache_store(
    settings: Settings | None = None, clock: _Clock = utcnow
) -> BaseCacheStore:
    """Instantiate the configured cache backend.

    Args:
        settings: Application settings. None selects the in-memory backend.
        clock: UTC clock passed to the store; tests inject a fake one.

    Raises:
        ValueError: If the backend name is not registered.
    """
    if settings is None:
        from contentgate.cache.memory_store import MemoryCacheStore
        return MemoryCacheStore(clock=clock)

    builder = _BACKENDS.get(settings.cache_backend)
    if builder is None:
        raise ValueError(f"Unsupported cache backend: {settings.cache_backend!r}")

    store = builder(settings, clock)
    logger.info("Cache backend ready: %s", settings.cache_backend)
    return store
