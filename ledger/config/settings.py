"""
Configuration Management for the Spendo Ledger

Uses pydantic-settings for type-safe configuration from environment variables.

DESIGN DECISION: All configuration is centralized here.
The ledger core has no network or storage credentials of its own; what it
needs is calendar context (timezone, first weekday, first month of the year)
and the retry budget of the background sync worker.
"""

from functools import lru_cache
from typing import Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class LedgerSettings(BaseSettings):
    """
    Ledger defaults.

    Loads configuration from environment variables and .env file.
    """

    model_config = SettingsConfigDict(
        env_prefix="LEDGER_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    # Calendar
    timezone: str = Field(
        default="UTC",
        description="IANA timezone used to decide calendar days"
    )
    first_weekday: int = Field(
        default=0,
        ge=0,
        le=6,
        description="First day of the week (0=Monday .. 6=Sunday)"
    )
    first_month_of_year: int = Field(
        default=1,
        ge=1,
        le=12,
        description="First month of the (fiscal) year"
    )

    # Defaults for new records
    default_currency: str = Field(
        default="CNY",
        min_length=3,
        max_length=3,
        description="Currency code for new accounts and transactions"
    )
    default_budget_alert_threshold: float = Field(
        default=0.8,
        ge=0.0,
        le=1.0,
        description="Budget usage fraction that raises an alert"
    )

    @field_validator('timezone')
    @classmethod
    def validate_timezone(cls, v: str) -> str:
        """Reject unknown timezone names at startup rather than on first use."""
        try:
            ZoneInfo(v)
        except (ZoneInfoNotFoundError, ValueError):
            raise ValueError(f"Unknown timezone: {v}")
        return v

    @field_validator('default_currency')
    @classmethod
    def normalize_currency(cls, v: str) -> str:
        return v.upper()


class SyncSettings(BaseSettings):
    """Background sync worker configuration."""

    model_config = SettingsConfigDict(
        env_prefix="SYNC_",
        extra="ignore"
    )

    max_attempts: int = Field(
        default=3,
        ge=1,
        le=10,
        description="Upload attempts before a transport error is surfaced"
    )
    wait_min_secs: float = Field(
        default=1.0,
        ge=0.0,
        description="Minimum backoff between upload attempts"
    )
    wait_max_secs: float = Field(
        default=10.0,
        ge=0.0,
        description="Maximum backoff between upload attempts"
    )
    upload_timeout_secs: float = Field(
        default=30.0,
        gt=0.0,
        description="Timeout for a single upload attempt"
    )


class Settings(BaseSettings):
    """
    Root settings container.

    Aggregates all sub-settings for easy access.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    # Note: These are loaded lazily to allow partial configuration

    @property
    def ledger(self) -> LedgerSettings:
        return LedgerSettings()

    @property
    def sync(self) -> SyncSettings:
        return SyncSettings()


@lru_cache()
def get_settings() -> Settings:
    """
    Get application settings (cached).

    Call get_settings.cache_clear() to reload if needed.
    """
    return Settings()


def validate_all_settings() -> dict[str, object]:
    """
    Validate all settings are properly configured.

    Returns a dict of {setting_name: is_valid} plus an `<name>_error`
    entry for each group that failed. Useful for startup checks.
    """
    results: dict[str, object] = {}
    settings = get_settings()

    for name in ("ledger", "sync"):
        error: Optional[str] = None
        try:
            getattr(settings, name)
        except ValueError as e:
            error = str(e)
        results[name] = error is None
        if error is not None:
            results[f"{name}_error"] = error

    return results
