# src/cache/models.py - v2
"""Cache domain models: CacheEntry, CacheStrategy, request/result types."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any, Literal

from pydantic import BaseModel, Field, model_validator

from contentgate.core.errors import ConfigurationError


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class CachePriority(str, Enum):
    """Write-time priority; drives the TTL multiplier."""

    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class ContentType(str, Enum):
    AUDIO_GUIDE = "audio_guide"
    VIDEO = "video"
    INFOGRAPHIC = "infographic"
    TEXT = "text"
    IMAGE = "image"


OwnerField = Literal["artifact_id", "site_id"]


class CacheEntry(BaseModel):
    """One cached artifact. Payload is opaque to the cache."""

    content_id: str
    artifact_id: str
    site_id: str | None = None
    content_type: ContentType
    language: str
    payload: dict[str, Any] = Field(default_factory=dict)
    priority: CachePriority = CachePriority.MEDIUM
    access_count: int = 0
    created_at: datetime = Field(default_factory=utcnow)
    last_accessed_at: datetime = Field(default_factory=utcnow)
    expires_at: datetime = Field(default_factory=utcnow)

    def is_expired(self, now: datetime) -> bool:
        return now > self.expires_at

    def owner(self, field: OwnerField) -> str | None:
        return self.artifact_id if field == "artifact_id" else self.site_id

    def stamped(self, now: datetime, ttl_seconds: float) -> CacheEntry:
        """Copy with fresh access metadata and an expiry ttl_seconds from now."""
        return self.model_copy(update={
            "access_count": 0,
            "created_at": now,
            "last_accessed_at": now,
            "expires_at": now + timedelta(seconds=ttl_seconds),
        })


class CacheStrategy(BaseModel):
    """Runtime-tunable cache policy."""

    default_ttl_seconds: int = 3600
    priority_multiplier: float = 2.0
    max_cache_entries: int | None = 10000

    @model_validator(mode="after")
    def validate_strategy(self) -> CacheStrategy:
        errors: list[str] = []
        if self.default_ttl_seconds <= 0:
            errors.append("default_ttl_seconds must be > 0")
        if self.priority_multiplier <= 0:
            errors.append("priority_multiplier must be > 0")
        if self.max_cache_entries is not None and self.max_cache_entries <= 0:
            errors.append("max_cache_entries must be > 0 when set")
        if errors:
            raise ConfigurationError("; ".join(errors))
        return self


class CacheRefreshRequest(BaseModel):
    content: CacheEntry
    priority: CachePriority | None = None
    force: bool = False

    @property
    def content_id(self) -> str:
        return self.content.content_id


class CacheInvalidationRequest(BaseModel):
    scope: Literal["content", "artifact", "site"]
    id: str


class CachePriorityRank(BaseModel):
    """Advisory ranking used for preloading and eviction decisions."""

    content_id: str
    priority: int
    reason: str


class AccessSummary(BaseModel):
    content_id: str
    artifact_id: str
    content_type: ContentType
    language: str
    access_count: int


class CacheStatistics(BaseModel):
    total_items: int = 0
    total_access_count: int = 0
    average_access_count: float = 0.0
    top_accessed: list[AccessSummary] = Field(default_factory=list)
    expiring_soon_count: int = 0
    content_type_distribution: dict[str, int] = Field(default_factory=dict)
    language_distribution: dict[str, int] = Field(default_factory=dict)


class CacheMetrics(BaseModel):
    total_items: int
    hit_rate: float
    miss_rate: float
    average_access_count: float
    top_content: list[AccessSummary] = Field(default_factory=list)


class CleanupResult(BaseModel):
    expired_deleted: int = 0
    low_priority_deleted: int = 0
