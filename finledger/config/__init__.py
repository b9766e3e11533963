"""Configuration package."""

from finledger.config.settings import (
    AppSettings,
    GoogleSheetsSettings,
    PlaidSettings,
    Settings,
    get_settings,
    validate_all_settings,
)

__all__ = [
    "AppSettings",
    "GoogleSheetsSettings",
    "PlaidSettings",
    "Settings",
    "get_settings",
    "validate_all_settings",
]
