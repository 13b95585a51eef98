# src/admission/models.py - v2
"""Admission domain models: RequestPriority, RequestContext, AdmissionConfig,
AdmissionMetrics, ServiceMode, DegradationRecommendations, AdmissionStatus.
"""

from __future__ import annotations

import math
from enum import Enum

from pydantic import BaseModel, ConfigDict, model_validator

from contentgate.core.errors import ConfigurationError

OVERLOAD_THRESHOLD_PERCENT = 95


class RequestPriority(str, Enum):
    """Queue priority of a request. Lower rank is served first."""

    HIGH = "high"
    NORMAL = "normal"
    LOW = "low"

    @property
    def rank(self) -> int:
        return _PRIORITY_RANK[self]


_PRIORITY_RANK = {
    RequestPriority.HIGH: 0,
    RequestPriority.NORMAL: 1,
    RequestPriority.LOW: 2,
}


class ServiceMode(str, Enum):
    """Advisory health state derived from current load."""

    NORMAL = "normal"
    DEGRADED = "degraded"
    OVERLOADED = "overloaded"


class RequestContext(BaseModel):
    """One admitted or queued unit of work. Replaced, never edited."""

    model_config = ConfigDict(frozen=True)

    request_id: str
    enqueued_at: float
    priority: RequestPriority = RequestPriority.NORMAL
    timeout_ms: int

    def age_ms(self, now: float) -> float:
        return (now - self.enqueued_at) * 1000

    def is_expired(self, now: float) -> bool:
        return self.age_ms(now) > self.timeout_ms


class AdmissionConfig(BaseModel):
    """Capacity and degradation settings for the admission controller."""

    max_concurrent_requests: int = 1000
    request_timeout_ms: int = 30000
    max_queue_size: int = 500
    enable_graceful_degradation: bool = True
    degradation_threshold_percent: int = 80

    @model_validator(mode="after")
    def validate_limits(self) -> AdmissionConfig:
        errors: list[str] = []
        if self.max_concurrent_requests <= 0:
            errors.append("max_concurrent_requests must be > 0")
        if self.max_queue_size < 0:
            errors.append("max_queue_size must be >= 0")
        if self.request_timeout_ms <= 0:
            errors.append("request_timeout_ms must be > 0")
        if not 0 <= self.degradation_threshold_percent <= 100:
            errors.append("degradation_threshold_percent must be within 0..100")
        if errors:
            raise ConfigurationError("; ".join(errors))
        return self

    @property
    def total_capacity(self) -> int:
        return self.max_concurrent_requests + self.max_queue_size


class AdmissionMetrics(BaseModel):
    """Snapshot of process-wide admission counters."""

    active_requests: int = 0
    queued_requests: int = 0
    completed_requests: int = 0
    failed_requests: int = 0
    average_response_time_ms: int = 0
    current_load: int = 0


class DegradationRecommendations(BaseModel):
    """Advisory switches a caller uses to shed optional work."""

    skip_non_essential: bool = False
    reduce_quality: bool = False
    cache_only: bool = False

    @classmethod
    def for_load(cls, load: int) -> DegradationRecommendations:
        return cls(
            skip_non_essential=load >= 70,
            reduce_quality=load >= 80,
            cache_only=load >= 90,
        )


class AdmissionStatus(BaseModel):
    """Health summary returned by AdmissionController.get_status()."""

    healthy: bool
    mode: ServiceMode
    metrics: AdmissionMetrics
    config: AdmissionConfig


def round_half_up(value: float) -> int:
    """Nearest integer with .5 rounded up (94.5 -> 95), unlike round()."""
    return math.floor(value + 0.5)


def mode_for_load(load: int, degradation_threshold: int) -> ServiceMode:
    """Map a load percentage to a ServiceMode."""
    if load >= OVERLOAD_THRESHOLD_PERCENT:
        return ServiceMode.OVERLOADED
    if load >= degradation_threshold:
        return ServiceMode.DEGRADED
    return ServiceMode.NORMAL
