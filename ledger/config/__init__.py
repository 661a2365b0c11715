"""Configuration package."""

from ledger.config.settings import (
    AppSettings,
    CloudinarySettings,
    DatabaseSettings,
    GoogleSheetsSettings,
    Settings,
    get_settings,
    validate_all_settings,
)

__all__ = [
    "AppSettings",
    "CloudinarySettings",
    "DatabaseSettings",
    "GoogleSheetsSettings",
    "Settings",
    "get_settings",
    "validate_all_settings",
]
