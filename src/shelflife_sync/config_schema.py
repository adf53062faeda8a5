"""Unified configuration schema for shelflife_sync.

Defines Pydantic models for the YAML config structure with dedicated
sections for the store connection, synchronization behaviour and logging.
``yaml_fallbacks`` flattens the store and sync sections into the fallback
dict accepted by ``load_config()``.

Usage:
    from shelflife_sync.config_schema import build_config, yaml_fallbacks

    raw = load_hierarchical_config()
    config = load_config(yaml_fallbacks=yaml_fallbacks(build_config(raw)))
"""

from __future__ import annotations

import logging
from typing import Any

from pydantic import BaseModel, Field

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Section models
# ---------------------------------------------------------------------------


class StoreConfig(BaseModel):
    """Document store connection settings.

    All fields are optional to support zero-config: env vars and CLI args
    can supply them at runtime instead.
    """

    url: str | None = Field(default=None, description="Document store base URL")
    api_token: str | None = Field(
        default=None, description="Bearer token for the store API"
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
        description="Maximum concurrent requests to the store (1-100)",
    )
    max_batch_size: int = Field(
        default=30,
        ge=1,
        le=500,
        description="Maximum ids per batch read (1-500)",
    )
    request_timeout: float = Field(
        default=30.0,
        gt=0,
        description="Read timeout for store requests, in seconds",
    )

    model_config = {"frozen": True}


class SyncConfig(BaseModel):
    """Repository behaviour.

    Attributes:
        poll_interval: Seconds between polls for polling-based watches.
        serialize_per_uid: Send mutations on the same uid in issue order and
            roll back to the last committed state.
    """

    poll_interval: float = Field(default=2.0, gt=0)
    serialize_per_uid: bool = Field(default=True)

    model_config = {"frozen": True}


class LoggingConfig(BaseModel):
    """Logging configuration.

    Attributes:
        level: Log level name (DEBUG, INFO, WARNING, ERROR, CRITICAL).
        file: Optional log file path.
        format: ``text`` or ``json``.
    """

    level: str = Field(default="INFO", description="Log level")
    file: str | None = Field(default=None, description="Log file path")
    format: str = Field(default="text", pattern="^(text|json)$")

    model_config = {"frozen": True}


# ---------------------------------------------------------------------------
# Top-level unified config
# ---------------------------------------------------------------------------


class UnifiedConfig(BaseModel):
    """Top-level unified configuration.

    Every section has sensible defaults, so ``UnifiedConfig()`` (zero-config)
    is always valid.
    """

    store: StoreConfig = Field(default_factory=StoreConfig)
    sync: SyncConfig = Field(default_factory=SyncConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    model_config = {"frozen": True}


# ---------------------------------------------------------------------------
# Factory functions
# ---------------------------------------------------------------------------


def build_config(raw_data: dict) -> UnifiedConfig:
    """Construct a ``UnifiedConfig`` from the raw dict returned by
    ``load_hierarchical_config()``.

    Missing sections get defaults.
    """
    if not raw_data:
        return UnifiedConfig()

    return UnifiedConfig(**raw_data)


def yaml_fallbacks(unified: UnifiedConfig) -> dict[str, Any]:
    """Flatten the ``store`` and ``sync`` sections into the fallback dict
    accepted by ``load_config()``, dropping unset values."""
    merged = {**unified.store.model_dump(), **unified.sync.model_dump()}
    return {k: v for k, v in merged.items() if v is not None}
