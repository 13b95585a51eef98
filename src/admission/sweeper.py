# src/admission/sweeper.py - v1
"""Periodic expiry sweep for an AdmissionController.

Runs cleanup_expired_requests() on a fixed interval in a background asyncio
task. A sweep here is identical to a manual call, so metrics for a given
cadence match the manual tick contract.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging

from contentgate.admission.controller import AdmissionController

logger = logging.getLogger(__name__)


class AdmissionSweeper:
    """Background task that reclaims timed-out requests."""

    def __init__(self, controller: AdmissionController, interval_seconds: float = 5.0) -> None:
        if interval_seconds <= 0:
            raise ValueError("interval_seconds must be > 0")
        self._controller = controller
        self._interval = interval_seconds
        self._task: asyncio.Task[None] | None = None
        self._running = False
        self.total_removed = 0

    @property
    def running(self) -> bool:
        return self._running

    async def start(self) -> None:
        if self._running:
            return
        self._running = True
        self._task = asyncio.create_task(self._loop())
        logger.info("Admission sweeper started (interval=%.1fs)", self._interval)

    async def stop(self) -> None:
        self._running = False
        if self._task is not None:
            self._task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._task
            self._task = None
        logger.info("Admission sweeper stopped")

    def sweep_once(self) -> int:
        removed = self._controller.cleanup_expired_requests()
        self.total_removed += removed
        return removed

    async def _loop(self) -> None:
        while self._running:
            await asyncio.sleep(self._interval)
            self.sweep_once()
