"""Centralised configuration using pydantic-settings.

All environment variables are read through the Settings class.
Consumers call ``get_settings()`` to obtain a cached, validated instance.
Tests construct ``Settings(_env_file=None, ...)`` directly for isolation.
"""

from __future__ import annotations

import logging
from functools import lru_cache
from pathlib import Path

from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)

# src/reconciler/config.py  ->  parent x3  ->  project root
_PROJECT_ROOT = Path(__file__).resolve().parent.parent.parent

DEFAULT_WINDOW_MS = 30_000
DEFAULT_THRESHOLD_RATIO = 0.5
DEFAULT_KEEP_BOTH_SEPARATOR = "\n\n---\n\n"


# ---------------------------------------------------------------------------
# Sub-models (one per configuration domain)
# ---------------------------------------------------------------------------
class ReconciliationConfig(BaseModel):
    """Collision detection window and resolution surface defaults."""

    window_ms: int = Field(default=DEFAULT_WINDOW_MS, gt=0)
    threshold_ratio: float = Field(default=DEFAULT_THRESHOLD_RATIO, ge=0)
    keep_both_separator: str = DEFAULT_KEEP_BOTH_SEPARATOR

    @field_validator("keep_both_separator")
    @classmethod
    def _empty_separator_uses_default(cls, value: str) -> str:
        return value or DEFAULT_KEEP_BOTH_SEPARATOR


class AppConfig(BaseModel):
    """Application runtime configuration."""

    log_dir: Path = Path("logs")
    resolution_log: Path | None = None


# ---------------------------------------------------------------------------
# Root settings
# ---------------------------------------------------------------------------
class Settings(BaseSettings):
    """Settings with automatic .env loading and type validation.

    Environment variables use double-underscore delimiter for nesting:
    ``RECONCILIATION__WINDOW_MS``, ``APP__LOG_DIR``, etc.
    """

    model_config = SettingsConfigDict(
        env_file=_PROJECT_ROOT / ".env",
        env_nested_delimiter="__",
        extra="ignore",
    )

    reconciliation: ReconciliationConfig = ReconciliationConfig()
    app: AppConfig = AppConfig()


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return a cached Settings instance.

    Call ``get_settings.cache_clear()`` in tests to reset.
    """
    settings = Settings()

    env_file = settings.model_config.get("env_file")
    if env_file is not None and Path(str(env_file)).is_file():
        logger.info("Settings loaded .env from: %s", env_file)
    else:
        logger.info("Settings: no .env file found, using env vars and defaults")

    return settings
