# src/logging/context.py - v2
"""Contextual logging support: attach request_id, content_id, component to log records."""

from __future__ import annotations

import contextvars
from dataclasses import dataclass
from typing import Any

_request_id: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "request_id", default=None
)
_content_id: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "content_id", default=None
)
_component: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "component", default=None
)


@dataclass
class LogContext:
    """Immutable snapshot of current logging context."""

    request_id: str | None = None
    content_id: str | None = None
    component: str | None = None

    def as_dict(self) -> dict[str, Any]:
        """Return non-None fields as dict for JSON log injection."""
        return {k: v for k, v in self.__dict__.items() if v is not None}


def get_context() -> LogContext:
    """Snapshot current context variables."""
    return LogContext(
        request_id=_request_id.get(),
        content_id=_content_id.get(),
        component=_component.get(),
    )


def set_request_context(request_id: str, component: str | None = None) -> None:
    """Set request-level context (called once per handled request)."""
    _request_id.set(request_id)
    _component.set(component)


def set_content_context(content_id: str) -> None:
    """Set the content id being cached or generated."""
    _content_id.set(content_id)


def clear_context() -> None:
    """Reset all context variables."""
    _request_id.set(None)
    _content_id.set(None)
    _component.set(None)
