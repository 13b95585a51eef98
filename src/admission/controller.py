# src/admission/controller.py - v2
"""Admission controller: bounded concurrency with a priority overflow queue.

acquire() never waits. It admits immediately, queues, or rejects, and the
caller learns which through the return value and is_active()/is_queued().
Timed-out work is only reclaimed by cleanup_expired_requests(), which a
caller (or AdmissionSweeper) must invoke periodically.

All state lives in one controller instance guarded by a single lock. Each
process governs only its own share of capacity.
"""

from __future__ import annotations

import heapq
import itertools
import logging
import threading
import time
from collections import deque
from collections.abc import Callable
from typing import Any

from contentgate.admission.models import (
    AdmissionConfig,
    AdmissionMetrics,
    AdmissionStatus,
    DegradationRecommendations,
    RequestContext,
    RequestPriority,
    ServiceMode,
    mode_for_load,
    round_half_up,
)
from contentgate.core.errors import ConfigurationError, DuplicateRequestError
from contentgate.logging.context import set_request_context

logger = logging.getLogger(__name__)

RESPONSE_TIME_WINDOW = 100

_QueueItem = tuple[int, float, int, RequestContext]


class AdmissionController:
    """Gatekeeps expensive operations and reports service health."""

    def __init__(
        self,
        config: AdmissionConfig | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._config = config or AdmissionConfig()
        self._clock = clock
        self._lock = threading.Lock()
        self._active: dict[str, RequestContext] = {}
        self._queue: list[_QueueItem] = []
        self._queued_ids: set[str] = set()
        self._seq = itertools.count()
        self._response_times: deque[float] = deque(maxlen=RESPONSE_TIME_WINDOW)
        self._completed = 0
        self._failed = 0
        self._average_response_time = 0
        self._load = 0
        self._mode = ServiceMode.NORMAL

        logger.info(
            "Admission controller initialized: max_concurrent=%d, max_queue=%d",
            self._config.max_concurrent_requests,
            self._config.max_queue_size,
        )

    # --- Slot lifecycle ---

    def acquire(
        self,
        request_id: str,
        priority: RequestPriority | str = RequestPriority.NORMAL,
        timeout_ms: int | None = None,
    ) -> bool:
        """Admit, queue, or reject a request.

        Args:
            request_id: Caller-supplied id, unique among live requests.
            priority: Queue priority used only when capacity is saturated.
            timeout_ms: Queueing lifetime override. Defaults to config.

        Returns:
            True if admitted or queued, False if both active slots and the
            queue are full. A rejection is final; it is not retried.

        Raises:
            DuplicateRequestError: If request_id is already live.
        """
        priority = RequestPriority(priority)
        set_request_context(request_id, component="admission")
        with self._lock:
            if request_id in self._active or request_id in self._queued_ids:
                raise DuplicateRequestError(request_id)

            context = RequestContext(
                request_id=request_id,
                enqueued_at=self._clock(),
                priority=priority,
                timeout_ms=timeout_ms or self._config.request_timeout_ms,
            )

            if len(self._active) < self._config.max_concurrent_requests:
                self._active[request_id] = context
                self._refresh_state()
                logger.debug(
                    "Request slot acquired: %s (active=%d)",
                    request_id, len(self._active),
                )
                return True

            if len(self._queue) < self._config.max_queue_size:
                self._push(context)
                self._refresh_state()
                logger.debug(
                    "Request queued: %s (priority=%s, queued=%d)",
                    request_id, priority.value, len(self._queue),
                )
                return True

            self._failed += 1
            self._refresh_state()
            logger.warning(
                "Request rejected, capacity exhausted: %s",
                request_id,
                extra={"data": {
                    "active": len(self._active),
                    "queued": len(self._queue),
                }},
            )
            return False

    def release(self, request_id: str, response_time_ms: float | None = None) -> None:
        """Complete an active request and promote queued work."""
        with self._lock:
            if self._active.pop(request_id, None) is None:
                logger.warning("Release of unknown request ignored: %s", request_id)
                return

            self._completed += 1
            if response_time_ms is not None:
                self._response_times.append(response_time_ms)
                self._average_response_time = round_half_up(
                    sum(self._response_times) / len(self._response_times)
                )

            self._promote()
            self._refresh_state()
            logger.debug(
                "Request slot released: %s (active=%d)", request_id, len(self._active)
            )

    def mark_failed(self, request_id: str) -> None:
        """Fail a request without counting it as completed.

        Also removes a still-queued request, which is how callers cancel.
        """
        with self._lock:
            if self._active.pop(request_id, None) is None and request_id in self._queued_ids:
                self._remove_queued({request_id})

            self._failed += 1
            self._promote()
            self._refresh_state()
            logger.debug("Request marked as failed: %s", request_id)

    def cleanup_expired_requests(self) -> int:
        """Remove active and queued requests older than their timeout.

        Returns:
            Number of requests removed. Each counts as failed.
        """
        with self._lock:
            now = self._clock()

            expired_active = [
                rid for rid, ctx in self._active.items() if ctx.is_expired(now)
            ]
            for rid in expired_active:
                ctx = self._active.pop(rid)
                logger.warning(
                    "Request timed out: %s (age_ms=%d)", rid, ctx.age_ms(now)
                )

            expired_queued = {
                ctx.request_id for _, _, _, ctx in self._queue if ctx.is_expired(now)
            }
            if expired_queued:
                self._remove_queued(expired_queued)
                for rid in expired_queued:
                    logger.warning("Queued request expired: %s", rid)

            removed = len(expired_active) + len(expired_queued)
            self._failed += removed
            self._promote()
            self._refresh_state()

            if removed:
                logger.info("Cleaned up %d expired requests", removed)
            return removed

    # --- Introspection ---

    def is_active(self, request_id: str) -> bool:
        with self._lock:
            return request_id in self._active

    def is_queued(self, request_id: str) -> bool:
        with self._lock:
            return request_id in self._queued_ids

    def get_metrics(self) -> AdmissionMetrics:
        with self._lock:
            return self._snapshot()

    def get_service_mode(self) -> ServiceMode:
        with self._lock:
            return self._mode

    def can_accept_request(self) -> bool:
        """True while at least one active or queue slot is free."""
        with self._lock:
            used = len(self._active) + len(self._queue)
            return used < self._config.total_capacity

    def should_degrade(self) -> bool:
        with self._lock:
            if not self._config.enable_graceful_degradation:
                return False
            return self._load >= self._config.degradation_threshold_percent

    def degradation_recommendations(self) -> DegradationRecommendations:
        with self._lock:
            return DegradationRecommendations.for_load(self._load)

    def get_status(self) -> AdmissionStatus:
        with self._lock:
            return AdmissionStatus(
                healthy=self._mode is not ServiceMode.OVERLOADED,
                mode=self._mode,
                metrics=self._snapshot(),
                config=self._config.model_copy(),
            )

    # --- Operator actions ---

    def get_config(self) -> AdmissionConfig:
        with self._lock:
            return self._config.model_copy()

    def update_config(self, **changes: Any) -> AdmissionConfig:
        """Apply validated config changes at runtime.

        Raises:
            ConfigurationError: On unknown fields or invalid values.
        """
        unknown = set(changes) - set(AdmissionConfig.model_fields)
        if unknown:
            raise ConfigurationError(f"Unknown admission settings: {sorted(unknown)}")

        with self._lock:
            self._config = AdmissionConfig(**{**self._config.model_dump(), **changes})
            self._promote()
            self._refresh_state()
            logger.info("Admission configuration updated", extra={"data": changes})
            return self._config.model_copy()

    def reset_metrics(self) -> None:
        """Clear completed/failed counters and response-time history."""
        with self._lock:
            self._completed = 0
            self._failed = 0
            self._response_times.clear()
            self._average_response_time = 0
            logger.info("Admission metrics reset")

    # --- Internals (caller holds the lock) ---

    def _push(self, context: RequestContext) -> None:
        item = (context.priority.rank, context.enqueued_at, next(self._seq), context)
        heapq.heappush(self._queue, item)
        self._queued_ids.add(context.request_id)

    def _remove_queued(self, request_ids: set[str]) -> None:
        self._queue = [item for item in self._queue if item[3].request_id not in request_ids]
        heapq.heapify(self._queue)
        self._queued_ids -= request_ids

    def _promote(self) -> None:
        while self._queue and len(self._active) < self._config.max_concurrent_requests:
            _, _, _, context = heapq.heappop(self._queue)
            self._queued_ids.discard(context.request_id)
            self._active[context.request_id] = context
            logger.debug(
                "Queued request promoted to active: %s (queued=%d)",
                context.request_id, len(self._queue),
            )

    def _refresh_state(self) -> None:
        used = len(self._active) + len(self._queue)
        self._load = round_half_up(100 * used / self._config.total_capacity)

        previous = self._mode
        self._mode = mode_for_load(self._load, self._config.degradation_threshold_percent)
        if previous is not self._mode:
            logger.info(
                "Service mode changed: %s -> %s (load=%d%%)",
                previous.value, self._mode.value, self._load,
            )

    def _snapshot(self) -> AdmissionMetrics:
        return AdmissionMetrics(
            active_requests=len(self._active),
            queued_requests=len(self._queue),
            completed_requests=self._completed,
            failed_requests=self._failed,
            average_response_time_ms=self._average_response_time,
            current_load=self._load,
        )
