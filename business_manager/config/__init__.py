"""Configuration package."""

from business_manager.config.settings import (
    AppSettings,
    DrawSettings,
    GoogleSheetsSettings,
    NotificationSettings,
    Settings,
    StorageSettings,
    get_settings,
    validate_all_settings,
)

__all__ = [
    "AppSettings",
    "DrawSettings",
    "GoogleSheetsSettings",
    "NotificationSettings",
    "Settings",
    "StorageSettings",
    "get_settings",
    "validate_all_settings",
]
