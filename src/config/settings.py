# src/config/settings.py - v3
"""Typed configuration loaded from .env via pydantic-settings.

Single source of truth for admission, cache and logging settings.
"""

from __future__ import annotations

from pathlib import Path
from typing import Literal

from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from contentgate.admission.models import AdmissionConfig
from contentgate.cache.models import CacheStrategy
from contentgate.core.errors import ConfigurationError

__all__ = ["ConfigurationError", "Settings", "load_settings"]


class Settings(BaseSettings):
    """Application settings loaded from .env file."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # === Admission ===
    max_concurrent_requests: int = 1000
    request_timeout_ms: int = 30000
    max_queue_size: int = 500
    enable_graceful_degradation: bool = True
    degradation_threshold_percent: int = 80
    sweep_interval_seconds: float = 5.0

    # === Cache strategy ===
    default_ttl_seconds: int = 3600
    priority_multiplier: float = 2.0
    max_cache_entries: int | None = 10000

    # === Cache backend ===
    cache_backend: Literal["memory", "json", "sqlite", "redis"] = "memory"
    cache_root: Path = Path("~/.contentgate/cache")
    cache_redis_url: str = ""

    # === Logging ===
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "INFO"
    log_format: Literal["json", "text"] = "json"
    log_file: Path | None = None
    log_rotation: str = "10MB"
    log_retention: int = 30

    # --- Validators ---

    @model_validator(mode="after")
    def validate_config_consistency(self) -> Settings:
        """Fail fast on values the components would reject later."""
        errors: list[str] = []

        if self.sweep_interval_seconds <= 0:
            errors.append("SWEEP_INTERVAL_SECONDS must be > 0")
        if self.cache_backend == "redis" and not self.cache_redis_url:
            errors.append("CACHE_REDIS_URL must be set when CACHE_BACKEND=redis")

        if errors:
            raise ConfigurationError("; ".join(errors))

        # Component models carry their own range checks
        self.admission_config()
        self.cache_strategy()
        return self

    # --- Helpers ---

    def admission_config(self) -> AdmissionConfig:
        return AdmissionConfig(
            max_concurrent_requests=self.max_concurrent_requests,
            request_timeout_ms=self.request_timeout_ms,
            max_queue_size=self.max_queue_size,
            enable_graceful_degradation=self.enable_graceful_degradation,
            degradation_threshold_percent=self.degradation_threshold_percent,
        )

    def cache_strategy(self) -> CacheStrategy:
        return CacheStrategy(
            default_ttl_seconds=self.default_ttl_seconds,
            priority_multiplier=self.priority_multiplier,
            max_cache_entries=self.max_cache_entries,
        )


def load_settings(**overrides: object) -> Settings:
    """Load settings from .env with optional overrides.

    Raises:
        ConfigurationError: If configuration is invalid.
    """
    return Settings(**overrides)  # type: ignore[arg-type]
