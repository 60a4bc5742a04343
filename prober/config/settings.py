"""Pydantic Settings for the prober service.

All environment variables use the PROBER_ prefix.
Example: PROBER_MAX_CONCURRENT_PROBES=200, PROBER_REDIS_URL=redis://cache:6379/0
"""

from __future__ import annotations

from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings


class ProberSettings(BaseSettings):
    """Prober service configuration validated from environment variables."""

    # Service
    port: int = 8002
    log_level: str = "INFO"

    # Scheduling
    max_concurrent_probes: int = Field(default=150, ge=1)
    tick_interval_seconds: float = Field(default=10.0, gt=0)

    # Per-endpoint probe defaults (applied when the catalog omits them)
    default_retries: int = Field(default=3, ge=1)
    default_timeout_ms: int = Field(default=10000, ge=1)
    privileged_ping: bool = False

    # Status store
    store_backend: Literal["redis", "memory"] = "redis"
    redis_url: str = "redis://localhost:6379/0"
    status_ttl_seconds: int = Field(default=600, ge=1)  # 10 minutes

    # History retention
    history_retention_days: int = Field(default=90, ge=1)
    history_prune_interval_seconds: int = Field(default=3600, ge=1)

    # Notifications
    notification_cooldown_seconds: int = Field(default=300, ge=0)

    # Endpoint catalog
    catalog_backend: Literal["http", "file"] = "file"
    catalog_api_url: str | None = None  # e.g. "https://noc.example.com/api/internal"
    catalog_service_key: str | None = None
    catalog_path: str = "catalog.yaml"
    catalog_max_retries: int = Field(default=3, ge=1)

    # Shutdown
    graceful_shutdown_seconds: int = Field(default=30, ge=0)

    model_config = {"env_prefix": "PROBER_"}
