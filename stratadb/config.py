"""
Configuration management for StrataDB.

All configuration is done via environment variables prefixed with
``STRATADB_``, loaded with pydantic-settings. Explicit keyword arguments
override the environment, which is how tests pin settings.

Invariants:
    - All settings have sensible defaults for local development
    - max_swap_retries=None means optimistic retry is unbounded

How to change safely:
    - Add new settings with defaults that maintain backward compatibility
    - Keep log_config() in sync when adding settings worth reporting
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import Literal, Optional

import json_log_formatter
from pydantic import Field
from pydantic_settings import BaseSettings

logger = logging.getLogger(__name__)


class StorageBackend(Enum):
    """Supported storage backends."""

    MEMORY = "memory"


class Settings(BaseSettings):
    """StrataDB configuration loaded from environment."""

    storage_backend: StorageBackend = Field(
        default=StorageBackend.MEMORY, description="Entity storage backend"
    )

    # Concurrency
    max_swap_retries: Optional[int] = Field(
        default=None,
        ge=0,
        description="Cap on optimistic swap retries per write (unset = unbounded)",
    )

    # Observability
    log_level: str = Field(default="INFO", description="Logging level")
    log_format: Literal["json", "text"] = Field(default="text", description="Log format")

    model_config = {"env_prefix": "STRATADB_"}

    def log_config(self) -> None:
        """Log configuration."""
        logger.info(
            "StrataDB configuration loaded",
            extra={
                "storage_backend": self.storage_backend.value,
                "max_swap_retries": self.max_swap_retries,
                "log_level": self.log_level,
                "log_format": self.log_format,
            },
        )


def setup_logging(settings: Settings) -> None:
    """Configure root logging based on settings.

    Args:
        settings: Loaded settings
    """
    level = getattr(logging, settings.log_level.upper(), logging.INFO)

    if settings.log_format == "json":
        formatter: logging.Formatter = json_log_formatter.JSONFormatter()
    else:
        formatter = logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")

    handler = logging.StreamHandler()
    handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    root_logger.handlers = [handler]
