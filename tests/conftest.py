# tests/conftest.py - v3
"""Shared test fixtures for all unit and integration tests.

Provides controllable clocks, sample cache entries and temp directories.
No external services: Redis is mocked where used.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

from contentgate.cache.models import CacheEntry, ContentType


class FakeClock:
    """Monotonic seconds clock advanced manually."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeWallClock:
    """UTC datetime clock advanced manually."""

    def __init__(self, start: datetime | None = None) -> None:
        self.now = start or datetime(2026, 3, 1, 12, 0, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> None:
        self.now += timedelta(**kwargs)


def make_entry(
    content_id: str = "content_001",
    artifact_id: str = "artifact_001",
    site_id: str | None = "site_001",
    content_type: ContentType = ContentType.AUDIO_GUIDE,
    language: str = "en",
    **overrides: object,
) -> CacheEntry:
    overrides.setdefault("payload", {"audio_url": f"https://cdn.example.org/{content_id}.mp3"})
    return CacheEntry(
        content_id=content_id,
        artifact_id=artifact_id,
        site_id=site_id,
        content_type=content_type,
        language=language,
        **overrides,  # type: ignore[arg-type]
    )


# === FIXTURES: Clocks ===


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def wall_clock() -> FakeWallClock:
    return FakeWallClock()


# === FIXTURES: Sample data ===


@pytest.fixture
def sample_entry() -> CacheEntry:
    """Minimal valid CacheEntry."""
    return make_entry()


@pytest.fixture
def artifact_entries() -> list[CacheEntry]:
    """Three entries for artifact_001 plus one for another artifact and site."""
    return [
        make_entry("c1", language="en"),
        make_entry("c2", language="hi"),
        make_entry("c3", content_type=ContentType.VIDEO),
        make_entry("c4", artifact_id="artifact_002", site_id="site_002"),
    ]


# === FIXTURES: Temp dirs ===


@pytest.fixture
def tmp_cache_dir(tmp_path: Path) -> Path:
    """Temporary cache directory."""
    cache = tmp_path / "cache"
    cache.mkdir()
    return cache
