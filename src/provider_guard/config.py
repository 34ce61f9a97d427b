"""Provider Guard — Process Configuration.

These are per-process knobs (database wiring, retry bounds, cache TTLs).
The three blacklist tunables an operator changes at runtime live in the
``app_settings`` table instead; see ``provider_guard.blacklist.settings``.
"""

from __future__ import annotations

from typing import Any

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Centralised, validated configuration loaded from environment / .env file."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # ── Application ──────────────────────────────────────────
    app_name: str = "provider-guard"
    log_level: str = "INFO"
    json_logs: bool = False

    # ── Database ─────────────────────────────────────────────
    database_url: str = "sqlite+aiosqlite:///./provider_guard.db"
    database_pool_size: int = 5
    database_max_overflow: int = 10
    database_busy_timeout_seconds: float = 10.0
    database_echo: bool = False

    # ── Escalation ───────────────────────────────────────────
    blacklist_max_level: int = Field(default=5, ge=1)
    blacklist_max_backoff_multiplier: int = Field(default=16, ge=1)
    blacklist_max_update_retries: int = Field(default=5, ge=1)

    # ── Caching ──────────────────────────────────────────────
    status_cache_ttl_seconds: float = Field(default=0.5, ge=0.0)
    settings_cache_ttl_seconds: float = Field(default=30.0, ge=0.0)  # 0 = until invalidated
    settings_read_timeout_seconds: float = Field(default=2.0, gt=0.0)

    # ── Derived helpers ──────────────────────────────────────
    @property
    def is_sqlite(self) -> bool:
        return self.database_url.startswith("sqlite")

    @field_validator("log_level")
    @classmethod
    def _upper_log_level(cls, v: str) -> str:
        return v.upper()

    @field_validator("database_url")
    @classmethod
    def _validate_database_url(cls, v: str) -> str:
        if not v.startswith(("postgresql", "sqlite")):
            raise ValueError("database_url must start with 'postgresql' or 'sqlite'")
        return v


def get_settings(**overrides: Any) -> Settings:
    """Factory that allows test-time overrides."""
    return Settings(**overrides)
