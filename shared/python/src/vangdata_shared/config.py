"""
config.py — pydantic-settings Settings class.

All environment variables for the vangdata platform are declared here.
Both the pipeline and API import `settings` from this module.

Usage:
    from vangdata_shared.config import settings
    print(settings.supabase_url)
"""

from __future__ import annotations

from pathlib import Path
from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


def _find_dotenv() -> Path | None:
    """Walk up from CWD to find the nearest .env file."""
    current = Path.cwd()
    for parent in [current, *current.parents]:
        candidate = parent / ".env"
        if candidate.is_file():
            return candidate
    return None


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=_find_dotenv() or ".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # -------------------------------------------------------------------------
    # Supabase
    # -------------------------------------------------------------------------
    supabase_url: str = Field(default="http://localhost:54321")
    supabase_anon_key: str = Field(default="")
    supabase_service_key: str = Field(default="")

    # -------------------------------------------------------------------------
    # API server
    # -------------------------------------------------------------------------
    cors_origins: str = Field(default="http://localhost:3000,http://localhost:3001")
    jwt_secret: str = Field(default="change-me-in-production")
    cron_secret: str = Field(default="")

    # -------------------------------------------------------------------------
    # Backfill
    # -------------------------------------------------------------------------
    backfill_max_fetch_retries: int = Field(default=3, ge=1)
    backfill_retry_base_delay: float = Field(default=1.0, ge=0)
    backfill_retry_max_delay: float = Field(default=30.0, ge=0)
    backfill_max_range_days: int = Field(default=30, ge=1)
    backfill_default_rate_limit: int = Field(default=60, ge=1)
    backfill_default_timeout_seconds: float = Field(default=30.0, gt=0)
    backfill_insert_batch_size: int = Field(default=500, ge=1)

    # Province used when neither a zone nor a type mapping names one
    default_province_code: str = Field(default="TQ")

    # -------------------------------------------------------------------------
    # Automation scheduler
    # -------------------------------------------------------------------------
    scheduler_suppression_minutes: int = Field(default=50, ge=0)

    # -------------------------------------------------------------------------
    # Logging
    # -------------------------------------------------------------------------
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO"
    )
    log_format: Literal["json", "console"] = Field(default="console")

    # -------------------------------------------------------------------------
    # Derived / computed
    # -------------------------------------------------------------------------
    @property
    def cors_origins_list(self) -> list[str]:
        return [o.strip() for o in self.cors_origins.split(",") if o.strip()]

    @field_validator("supabase_url", mode="before")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        return v.rstrip("/") if isinstance(v, str) else v


# ---------------------------------------------------------------------------
# Module-level singleton: import this everywhere
# ---------------------------------------------------------------------------
settings = Settings()
