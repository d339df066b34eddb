"""
Configuration Management for Budget Tracker

Uses pydantic-settings for type-safe configuration from environment variables.

DESIGN DECISION: All configuration is centralized here.
This makes it easy to see what external dependencies exist and
ensures required configuration is checked before a request touches them.
"""

from functools import lru_cache
from pathlib import Path
from typing import Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from budget_tracker.models.transaction import BudgetType


class ConfigurationError(Exception):
    """A required setting is missing or unusable."""
    pass


class GoogleSheetsSettings(BaseSettings):
    """
    Google Sheets storage configuration.

    Each budget mode lives in its own spreadsheet. Credentials come either
    from a service account JSON file or from the email/private key pair.
    """

    model_config = SettingsConfigDict(
        env_prefix="GOOGLE_SHEETS_",
        extra="ignore"
    )

    credentials_path: Optional[str] = Field(
        default=None,
        description="Path to Google service account credentials JSON"
    )
    service_account_email: Optional[str] = Field(
        default=None,
        description="Service account email (alternative to credentials_path)"
    )
    private_key: Optional[str] = Field(
        default=None,
        description="Service account private key, PEM, '\\n' escapes allowed"
    )
    personal_spreadsheet_id: Optional[str] = Field(
        default=None,
        description="Spreadsheet holding the personal ledger"
    )
    business_spreadsheet_id: Optional[str] = Field(
        default=None,
        description="Spreadsheet holding the business ledger"
    )

    # Worksheet names within each spreadsheet
    transactions_sheet_name: str = Field(
        default="Transactions",
        description="Name of the worksheet holding transactions"
    )
    schema_sheet_name: str = Field(
        default="Schema",
        description="Name of the worksheet holding the category schema"
    )

    @field_validator('private_key')
    @classmethod
    def unescape_private_key(cls, v: Optional[str]) -> Optional[str]:
        """Environment variables usually carry the key with literal '\\n'."""
        if v is None:
            return v
        return v.replace("\\n", "\n").strip()

    @field_validator('credentials_path')
    @classmethod
    def validate_credentials_path(cls, v: Optional[str]) -> Optional[str]:
        """Warn if credentials file doesn't exist (but don't fail - might be mounted later)."""
        if v and not Path(v).exists():
            import warnings
            warnings.warn(
                f"Google credentials file not found at {v}. "
                "Make sure it exists before running the application."
            )
        return v

    @property
    def has_credentials(self) -> bool:
        return bool(
            self.credentials_path
            or (self.service_account_email and self.private_key)
        )

    @property
    def is_configured(self) -> bool:
        """Credentials plus at least one ledger."""
        return self.has_credentials and bool(
            self.personal_spreadsheet_id or self.business_spreadsheet_id
        )

    def spreadsheet_id_for(self, budget: BudgetType) -> str:
        """Resolve the spreadsheet for a budget mode or fail loudly."""
        if budget == BudgetType.PERSONAL:
            spreadsheet_id = self.personal_spreadsheet_id
        else:
            spreadsheet_id = self.business_spreadsheet_id

        if not spreadsheet_id:
            raise ConfigurationError(
                f"GOOGLE_SHEETS_{budget.value.upper()}_SPREADSHEET_ID "
                "environment variable is not configured"
            )
        return spreadsheet_id


class ExchangeRateSettings(BaseSettings):
    """exchangerate-api.com configuration."""

    model_config = SettingsConfigDict(
        env_prefix="EXCHANGE_RATE_",
        extra="ignore"
    )

    api_key: Optional[str] = Field(
        default=None,
        description="exchangerate-api.com API key"
    )
    base_url: str = Field(
        default="https://v6.exchangerate-api.com/v6",
        description="API base URL"
    )
    timeout_seconds: float = Field(
        default=10.0,
        gt=0,
        description="HTTP timeout for rate requests"
    )


class CloudinarySettings(BaseSettings):
    """Cloudinary receipt storage configuration."""

    model_config = SettingsConfigDict(
        env_prefix="CLOUDINARY_",
        extra="ignore"
    )

    cloud_name: str = Field(
        ...,
        description="Cloudinary cloud name"
    )
    api_key: str = Field(
        ...,
        description="Cloudinary API key"
    )
    api_secret: str = Field(
        ...,
        description="Cloudinary API secret"
    )
    folder: str = Field(
        default="budget_tracker",
        description="Folder receipts are uploaded into"
    )


class AppSettings(BaseSettings):
    """
    Main application settings.

    Loads configuration from environment variables and .env file.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    # Environment
    app_environment: str = Field(
        default="development",
        description="Application environment"
    )

    # Shared password gate
    app_password: Optional[str] = Field(
        default=None,
        description="Shared password required for every write"
    )

    # File upload limits
    max_upload_size_mb: int = Field(
        default=10,
        ge=1,
        le=50,
        description="Maximum receipt upload size in MB"
    )

    # Listing
    default_list_limit: int = Field(
        default=20,
        ge=1,
        le=1000,
        description="Rows returned by the list view when no limit is given"
    )

    @property
    def is_production(self) -> bool:
        return self.app_environment.lower() == "production"

    @property
    def max_upload_size_bytes(self) -> int:
        """Get max upload size in bytes."""
        return self.max_upload_size_mb * 1024 * 1024


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

    # Sub-settings are loaded lazily to allow partial configuration

    @property
    def google_sheets(self) -> GoogleSheetsSettings:
        return GoogleSheetsSettings()

    @property
    def exchange_rate(self) -> ExchangeRateSettings:
        return ExchangeRateSettings()

    @property
    def cloudinary(self) -> CloudinarySettings:
        return CloudinarySettings()

    @property
    def app(self) -> AppSettings:
        return AppSettings()


@lru_cache()
def get_settings() -> Settings:
    """
    Get application settings (cached).

    Uses LRU cache to ensure settings are only loaded once.
    Call get_settings.cache_clear() to reload if needed.
    """
    return Settings()


def validate_all_settings() -> dict[str, object]:
    """
    Validate all settings are properly configured.

    Returns a dict of {setting_name: is_valid} plus
    {setting_name_error: message} for the failing ones.
    Useful for startup checks and the settings page.
    """
    results: dict[str, object] = {}

    settings = get_settings()

    try:
        sheets = settings.google_sheets
        results["google_sheets"] = sheets.is_configured
        if not sheets.is_configured:
            results["google_sheets_error"] = (
                "Credentials or spreadsheet IDs are missing"
            )
    except Exception as e:
        results["google_sheets"] = False
        results["google_sheets_error"] = str(e)

    try:
        rates = settings.exchange_rate
        results["exchange_rate"] = bool(rates.api_key)
        if not rates.api_key:
            results["exchange_rate_error"] = "EXCHANGE_RATE_API_KEY is not configured"
    except Exception as e:
        results["exchange_rate"] = False
        results["exchange_rate_error"] = str(e)

    try:
        _ = settings.cloudinary
        results["cloudinary"] = True
    except Exception as e:
        results["cloudinary"] = False
        results["cloudinary_error"] = str(e)

    try:
        app = settings.app
        results["app"] = True
        if app.is_production and not app.app_password:
            results["app"] = False
            results["app_error"] = "APP_PASSWORD must be set in production"
    except Exception as e:
        results["app"] = False
        results["app_error"] = str(e)

    return results
