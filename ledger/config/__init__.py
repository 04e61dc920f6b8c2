"""Configuration package."""

from ledger.config.settings import (
    LedgerSettings,
    Settings,
    SyncSettings,
    get_settings,
    validate_all_settings,
)

__all__ = [
    "LedgerSettings",
    "Settings",
    "SyncSettings",
    "get_settings",
    "validate_all_settings",
]
