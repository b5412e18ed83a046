"""Centralized configuration management for the wishlist favorites core."""

from __future__ import annotations

import logging
import os
from functools import lru_cache

from dotenv import load_dotenv
from pydantic import Field, PrivateAttr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from wishlist.schemas.favorites import OverflowPolicy

# Load a local .env before the settings singleton below is instantiated so that
# every consumer importing :mod:`wishlist.settings` sees the same environment.
load_dotenv()

# -- Application-wide constants -------------------------------------------------

DEFAULT_STORAGE_KEY = "wishlist_favs_v1"
DEFAULT_CHANGE_CHANNEL = "favorites:changes"
DEFAULT_REDIS_URL = "redis://localhost:6379/0"
DEFAULT_SAVE_DEBOUNCE_MS = 200.0
DEFAULT_LOG_LEVEL = "INFO"
LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

logger = logging.getLogger(__name__)


class FavoritesSettings(BaseSettings):
    """Typed configuration surface built on top of ``pydantic-settings``.

    Every option maps to an environment variable (see the field aliases) and
    can also be supplied explicitly, which is what the test-suite does.
    """

    _explicit_redis_url: bool = PrivateAttr(default=False)

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        populate_by_name=True,
    )

    def __init__(self, **values: object) -> None:
        """Capture explicit overrides prior to delegating to ``BaseSettings``."""

        normalized_keys = {str(key).lower() for key in values}
        super().__init__(**values)
        self._explicit_redis_url = "redis_url" in normalized_keys
        redis_env = os.getenv("REDIS_URL")
        if redis_env is not None and redis_env.strip():
            self._explicit_redis_url = True

    max_items: int = Field(
        default=0,
        ge=0,
        alias="FAVORITES_MAX",
        description="Capacity of the favorites set; 0 disables the limit.",
    )
    overflow: OverflowPolicy = Field(
        default=OverflowPolicy.REJECT,
        alias="FAVORITES_OVERFLOW",
        description="Policy applied when adding to a full set (reject or drop_oldest).",
    )
    save_debounce_ms: float = Field(
        default=DEFAULT_SAVE_DEBOUNCE_MS,
        ge=0,
        alias="FAVORITES_SAVE_DEBOUNCE_MS",
        description="Debounce window for persisted writes; 0 writes immediately.",
    )
    sync: bool = Field(
        default=True,
        alias="FAVORITES_SYNC",
        description="Reconcile with writes made by other execution contexts.",
    )
    storage_key: str = Field(
        default=DEFAULT_STORAGE_KEY,
        alias="FAVORITES_STORAGE_KEY",
        description="Key under which the favorites list is persisted.",
    )
    change_channel: str = Field(
        default=DEFAULT_CHANGE_CHANNEL,
        alias="FAVORITES_CHANNEL",
        description="Redis pub/sub channel carrying cross-context change events.",
    )
    redis_url: str = Field(
        default=DEFAULT_REDIS_URL,
        alias="REDIS_URL",
        description="Redis connection string used by the Redis storage backend.",
    )
    log_level: str = Field(
        default=DEFAULT_LOG_LEVEL,
        alias="LOG_LEVEL",
        description="Root logging level (e.g. INFO, DEBUG, WARNING).",
    )

    @field_validator("overflow", mode="before")
    @classmethod
    def _coerce_overflow(cls, value: object) -> OverflowPolicy:
        """Unknown policies fall back to ``reject`` instead of failing startup."""

        return OverflowPolicy.coerce(value)

    @property
    def log_level_numeric(self) -> int:
        """Translate ``log_level`` into the numeric constant expected by logging."""

        candidate = logging.getLevelName(self.log_level.upper())
        if isinstance(candidate, int):
            return candidate
        return logging.INFO

    def optional_config_warnings(self) -> list[str]:
        """Return human-readable warnings for unset optional configuration."""

        warnings: list[str] = []
        if not self._explicit_redis_url and self.redis_url == DEFAULT_REDIS_URL:
            warnings.append(
                "REDIS_URL is not set - the Redis storage backend will target localhost"
            )
        return warnings


def configure_logging(settings: FavoritesSettings | None = None) -> None:
    """Apply the project-wide logging format at the configured level."""

    resolved = settings or get_settings()
    logging.basicConfig(level=resolved.log_level_numeric, format=LOG_FORMAT)


def validate_environment(settings: FavoritesSettings | None = None) -> None:
    """Log warnings for optional configuration left at its defaults."""

    resolved = settings or get_settings()
    warnings = resolved.optional_config_warnings()
    if warnings:
        logger.warning("=" * 60)
        logger.warning("Environment Configuration Warnings:")
        for warning in warnings:
            logger.warning(f"  • {warning}")
        logger.warning("=" * 60)


@lru_cache(maxsize=1)
def get_settings() -> FavoritesSettings:
    """Return a cached instance of :class:`FavoritesSettings`."""

    return FavoritesSettings()


__all__ = [
    "DEFAULT_CHANGE_CHANNEL",
    "DEFAULT_LOG_LEVEL",
    "DEFAULT_REDIS_URL",
    "DEFAULT_SAVE_DEBOUNCE_MS",
    "DEFAULT_STORAGE_KEY",
    "FavoritesSettings",
    "LOG_FORMAT",
    "configure_logging",
    "get_settings",
    "validate_environment",
]
