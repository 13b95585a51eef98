# src/admission/admission_factory.py - v1
"""Factory wiring an AdmissionController and its sweeper from Settings."""

from __future__ import annotations

from contentgate.admission.controller import AdmissionController
from contentgate.admission.sweeper import AdmissionSweeper
from contentgate.config.settings import Settings


def create_admission(
    settings: Settings | None = None,
) -> tuple[AdmissionController, AdmissionSweeper]:
    """Build a controller and an unstarted sweeper.

    Args:
        settings: Application settings. Defaults to built-in limits.

    Returns:
        (controller, sweeper). The caller starts and stops the sweeper.
    """
    if settings is None:
        controller = AdmissionController()
        return controller, AdmissionSweeper(controller)

    controller = AdmissionController(settings.admission_config())
    return controller, AdmissionSweeper(controller, settings.sweep_interval_seconds)
