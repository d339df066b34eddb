"""Configuration package."""

from budget_tracker.config.settings import (
    AppSettings,
    CloudinarySettings,
    ConfigurationError,
    ExchangeRateSettings,
    GoogleSheetsSettings,
    Settings,
    get_settings,
    validate_all_settings,
)

__all__ = [
    "AppSettings",
    "CloudinarySettings",
    "ConfigurationError",
    "ExchangeRateSettings",
    "GoogleSheetsSettings",
    "Settings",
    "get_settings",
    "validate_all_settings",
]
