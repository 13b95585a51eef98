# src/core/errors.py - v1
"""Exceptions shared by the admission and cache components.

Capacity exhaustion and cache misses are normal outcomes reported through
return values. Only misconfiguration and caller misuse raise.
"""

from __future__ import annotations


class ConfigurationError(Exception):
    """Raised when configuration is invalid or internally inconsistent."""


class DuplicateRequestError(ValueError):
    """Raised when a request id is reused while the original is still live."""

    def __init__(self, request_id: str) -> None:
        self.request_id = request_id
        super().__init__(f"Request {request_id!r} is already active or queued")
