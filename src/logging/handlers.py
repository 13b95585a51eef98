# src/logging/handlers.py - v2
"""File handlers for the contentgate logger.

LOG_ROTATION accepts either a size ("10MB", "512KB") or a time interval
("midnight", "6h", "7d"). Sizes build a RotatingFileHandler, intervals a
TimedRotatingFileHandler; LOG_RETENTION is the backup count in both cases.
"""

from __future__ import annotations

import logging
import re
from logging.handlers import RotatingFileHandler, TimedRotatingFileHandler
from pathlib import Path

_SIZE_RE = re.compile(r"^(\d+)\s*(B|KB|MB|GB)$", re.IGNORECASE)
_INTERVAL_RE = re.compile(r"^(\d+)\s*([smhd])$", re.IGNORECASE)
_SIZE_UNITS = {"B": 1, "KB": 1024, "MB": 1024**2, "GB": 1024**3}


def _parse_size(size_str: str) -> int:
    """Parse '10MB' style strings into bytes. Raises ValueError otherwise."""
    match = _SIZE_RE.match(size_str.strip())
    if not match:
        raise ValueError(f"Invalid size format: {size_str!r}. Use e.g. '10MB'.")
    value = int(match.group(1))
    if value <= 0:
        raise ValueError(f"Rotation size must be positive: {size_str!r}")
    return value * _SIZE_UNITS[match.group(2).upper()]


def _parse_interval(spec: str) -> tuple[str, int] | None:
    """Return (when, interval) for TimedRotatingFileHandler, or None if not a time spec."""
    spec = spec.strip()
    if spec.lower() == "midnight":
        return "midnight", 1
    match = _INTERVAL_RE.match(spec)
    if not match:
        return None
    interval = int(match.group(1))
    if interval <= 0:
        raise ValueError(f"Rotation interval must be positive: {spec!r}")
    return match.group(2).upper(), interval


def create_rotating_handler(
    log_file: str,
    rotation: str = "10MB",
    retention: int = 30,
) -> logging.Handler:
    """Create a size- or time-rotating file handler for ``log_file``.

    Parent directories are created as needed.

    Raises:
        ValueError: If ``rotation`` is neither a size nor an interval.
    """
    path = Path(log_file).expanduser()
    path.parent.mkdir(parents=True, exist_ok=True)

    timed = _parse_interval(rotation)
    if timed is not None:
        when, interval = timed
        return TimedRotatingFileHandler(
            filename=str(path),
            when=when,
            interval=interval,
            backupCount=retention,
            encoding="utf-8",
            utc=True,
        )

    return RotatingFileHandler(
        filename=str(path),
        maxBytes=_parse_size(rotation),
        backupCount=retention,
        encoding="utf-8",
    )
