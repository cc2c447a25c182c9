"""Unified configuration schema for catalog_mirror.

Defines Pydantic models for the YAML config structure with dedicated
sections for the catalog API, the sync job, and logging.

Usage:
    from catalog_mirror.config_schema import build_config, to_fallbacks

    raw = load_hierarchical_config()
    unified = build_config(raw)
    config = load_config(yaml_fallbacks=to_fallbacks(unified))
"""

from __future__ import annotations

import logging
from typing import Literal

from pydantic import BaseModel, Field

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Section models
# ---------------------------------------------------------------------------


class ApiConfig(BaseModel):
    """Catalog API connection settings.

    All fields are optional to support zero-config: env vars and CLI args
    can supply them at runtime instead.
    """

    url: str | None = Field(default=None, description="Catalog API URL")
    environment: Literal["development", "production", "test"] | None = (
        Field(default=None, description="Deployment environment")
    )
    insecure: bool = Field(
        default=False,
        description="Disable SSL verification (development only)",
    )
    debug: bool = Field(default=False, description="Enable debug mode")
    max_parallel_requests: int = Field(
        default=5,
        ge=1,
        le=100,
        description="Maximum concurrent requests to the API (1-100)",
    )
    connect_timeout: float = Field(default=10.0, gt=0)
    read_timeout: float = Field(default=60.0, gt=0)
    token_file: str | None = Field(
        default=None, description="Path of the auth token store"
    )

    model_config = {"frozen": True}


class SyncConfig(BaseModel):
    """Sync job polling policy."""

    poll_interval: float = Field(
        default=5.0, gt=0, description="Seconds between status checks"
    )
    max_polls: int = Field(
        default=60, ge=1, description="Status checks before timing out"
    )
    max_retries: int = Field(
        default=3, ge=0, description="Retries of a failed status check"
    )
    backoff_base: float = Field(
        default=1.0, ge=0, description="First retry delay in seconds"
    )

    model_config = {"frozen": True}


class LoggingConfig(BaseModel):
    """Logging configuration.

    Attributes:
        level: Log level name (DEBUG, INFO, WARNING, ERROR, CRITICAL).
        file: Optional log file path.
    """

    level: str = Field(default="INFO", description="Log level")
    file: str | None = Field(default=None, description="Log file path")

    model_config = {"frozen": True}


class UnifiedConfig(BaseModel):
    """Top-level configuration; ``UnifiedConfig()`` is always valid."""

    api: ApiConfig = Field(default_factory=ApiConfig)
    sync: SyncConfig = Field(default_factory=SyncConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    model_config = {"frozen": True}


def build_config(raw_data: dict) -> UnifiedConfig:
    """Construct a ``UnifiedConfig`` from the merged raw dict.

    Missing sections get defaults.
    """
    if not raw_data:
        return UnifiedConfig()

    return UnifiedConfig(**raw_data)


def to_fallbacks(unified: UnifiedConfig) -> dict:
    """Flatten the ``api`` and ``sync`` sections for ``load_config()``.

    ``None`` values are dropped so they never shadow built-in defaults.
    """
    merged = {
        **unified.api.model_dump(),
        **unified.sync.model_dump(),
    }
    return {k: v for k, v in merged.items() if v is not None}
