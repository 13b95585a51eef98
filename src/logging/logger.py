# src/logging/logger.py - v3
"""Logger factory with JSON and text formatters.

Records go to stderr by default: the CLI writes its JSON results to stdout
and the two streams must not interleave. The component shown in a record is
taken from the log context when set, otherwise from the logger name
("contentgate.admission.controller" -> "admission").
"""

from __future__ import annotations

import json
import logging
import sys
from datetime import datetime, timezone
from typing import IO, TYPE_CHECKING, Any

from contentgate.logging.context import get_context

if TYPE_CHECKING:
    from contentgate.config.settings import Settings

ROOT_LOGGER = "contentgate"
_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


def _component(record: logging.LogRecord, explicit: str | None) -> str | None:
    if explicit:
        return explicit
    parts = record.name.split(".")
    if len(parts) >= 3 and parts[0] == ROOT_LOGGER:
        return parts[1]
    return None


class JsonFormatter(logging.Formatter):
    """One JSON object per line, with context and extra={"data": ...}."""

    def format(self, record: logging.LogRecord) -> str:
        ctx = get_context().as_dict()
        component = _component(record, ctx.pop("component", None))

        log_entry: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        if component:
            log_entry["component"] = component
        if ctx:
            log_entry["context"] = ctx

        data = getattr(record, "data", None)
        if data:
            log_entry["data"] = data

        if record.exc_info and record.exc_info[1] is not None:
            log_entry["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_entry, default=str)


class TextFormatter(logging.Formatter):
    """Human-readable single-line formatter for development."""

    def format(self, record: logging.LogRecord) -> str:
        ctx = get_context()
        stamp = datetime.fromtimestamp(record.created, timezone.utc)
        parts = [stamp.strftime("%Y-%m-%d %H:%M:%S"), f"[{record.levelname:8s}]", record.name]

        component = _component(record, ctx.component)
        if component:
            parts.append(f"[{component}]")
        if ctx.request_id:
            parts.append(f"(req={ctx.request_id})")
        if ctx.content_id:
            parts.append(f"(content={ctx.content_id})")
        parts.append(f"- {record.getMessage()}")

        line = " ".join(parts)
        if record.exc_info and record.exc_info[1] is not None:
            line += "\n" + self.formatException(record.exc_info)
        return line


def get_logger(name: str) -> logging.Logger:
    """Get a logger under the contentgate namespace."""
    return logging.getLogger(f"{ROOT_LOGGER}.{name}")


def setup_logging(
    level: str = "INFO",
    log_format: str = "json",
    log_file: str | None = None,
    rotation: str = "10MB",
    retention: int = 30,
    stream: IO[str] | None = None,
) -> logging.Logger:
    """(Re)configure the contentgate logger tree.

    Args:
        level: DEBUG, INFO, WARNING, ERROR or CRITICAL.
        log_format: "json" or "text".
        log_file: Optional log file; see handlers.create_rotating_handler.
        rotation: Size ("10MB") or interval ("midnight", "6h") for the file.
        retention: Number of rotated files to keep.
        stream: Console stream. Defaults to stderr.

    Raises:
        ValueError: On an unknown level or format.
    """
    level_name = level.upper()
    if level_name not in _LEVELS:
        raise ValueError(f"Unknown log level: {level!r}")
    if log_format not in ("json", "text"):
        raise ValueError(f"Unknown log format: {log_format!r}")

    root_logger = logging.getLogger(ROOT_LOGGER)
    root_logger.setLevel(getattr(logging, level_name))
    for handler in root_logger.handlers:
        handler.close()
    root_logger.handlers.clear()
    root_logger.propagate = False

    formatter = JsonFormatter() if log_format == "json" else TextFormatter()

    console_handler = logging.StreamHandler(stream or sys.stderr)
    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)

    if log_file:
        from contentgate.logging.handlers import create_rotating_handler

        file_handler = create_rotating_handler(
            log_file, rotation=rotation, retention=retention
        )
        file_handler.setFormatter(formatter)
        root_logger.addHandler(file_handler)

    return root_logger


def setup_logging_from_settings(settings: Settings, verbose: bool = False) -> logging.Logger:
    """Apply the LOG_* settings; ``verbose`` forces DEBUG."""
    return setup_logging(
        level="DEBUG" if verbose else settings.log_level,
        log_format=settings.log_format,
        log_file=str(settings.log_file) if settings.log_file else None,
        rotation=settings.log_rotation,
        retention=settings.log_retention,
    )
