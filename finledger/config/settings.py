"""
Configuration Management for finledger

Uses pydantic-settings for type-safe configuration from environment variables.

DESIGN DECISION: All configuration is centralized here.
Clients are built from these settings and handed to the sync engine
explicitly, so nothing talks to Plaid or Google Sheets through a
module-level singleton.
"""

from decimal import Decimal
from functools import lru_cache
from pathlib import Path
from typing import Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


PLAID_ENVIRONMENTS = ("sandbox", "development", "production")


class PlaidSettings(BaseSettings):
    """Plaid account aggregation configuration."""

    model_config = SettingsConfigDict(
        env_prefix="PLAID_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    client_id: str = Field(
        ...,
        description="Plaid client ID"
    )
    secret: str = Field(
        ...,
        description="Plaid secret for the selected environment"
    )
    environment: str = Field(
        default="sandbox",
        description="Plaid environment: sandbox, development or production"
    )
    client_name: str = Field(
        default="Personal Finance App",
        description="Name shown to the user inside Plaid Link"
    )
    country_codes: str = Field(
        default="US",
        description="Comma-separated country codes for Plaid Link"
    )
    language: str = Field(
        default="en",
        description="Plaid Link UI language"
    )
    sync_page_size: int = Field(
        default=100,
        ge=1,
        le=500,
        description="Transactions requested per /transactions/sync page"
    )
    request_timeout_seconds: float = Field(
        default=30.0,
        gt=0,
        description="Timeout for a single Plaid API call"
    )

    @field_validator('environment')
    @classmethod
    def validate_environment(cls, v: str) -> str:
        v = v.strip().lower()
        if v not in PLAID_ENVIRONMENTS:
            raise ValueError(
                f"Unknown Plaid environment '{v}', expected one of {PLAID_ENVIRONMENTS}"
            )
        return v

    @property
    def country_codes_list(self) -> list[str]:
        """Get country codes as a list."""
        return [code.strip().upper() for code in self.country_codes.split(",") if code.strip()]


class GoogleSheetsSettings(BaseSettings):
    """Google Sheets storage configuration."""

    model_config = SettingsConfigDict(
        env_prefix="GOOGLE_SHEETS_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    credentials_path: str = Field(
        ...,
        description="Path to Google service account credentials JSON"
    )
    spreadsheet_id: str = Field(
        ...,
        description="ID of the Google Sheets spreadsheet to use"
    )

    # Sheet names within the spreadsheet
    credentials_sheet_name: str = Field(default="LinkedCredentials")
    accounts_sheet_name: str = Field(default="Accounts")
    transactions_sheet_name: str = Field(default="Transactions")
    cursors_sheet_name: str = Field(default="SyncCursors")
    holdings_sheet_name: str = Field(default="BitcoinHoldings")
    audit_sheet_name: str = Field(
        default="AuditLog",
        description="Name of the sheet for audit logs"
    )

    @field_validator('credentials_path')
    @classmethod
    def validate_credentials_path(cls, v: str) -> str:
        """Warn if credentials file doesn't exist (but don't fail - might be mounted later)."""
        if not Path(v).exists():
            import warnings
            warnings.warn(
                f"Google credentials file not found at {v}. "
                "Make sure it exists before running the application."
            )
        return v


class AppSettings(BaseSettings):
    """
    Main application settings.

    Loads configuration from environment variables and .env file.
    """

    model_config = SettingsConfigDict(
        env_prefix="FINLEDGER_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    # Environment
    app_environment: str = Field(
        default="development",
        description="Application environment"
    )
    debug_mode: bool = Field(
        default=False,
        description="Enable debug mode"
    )

    # Scheduled sync trigger
    sync_key: Optional[str] = Field(
        default=None,
        description="Shared secret a scheduler must present to trigger a sync"
    )
    single_user_id: Optional[str] = Field(
        default=None,
        description="User synced by the scheduled trigger"
    )
    sync_max_concurrency: int = Field(
        default=1,
        ge=1,
        le=16,
        description="How many linked credentials may sync at the same time"
    )

    # Manual entry sanity checks
    future_date_tolerance_days: int = Field(
        default=7,
        ge=0,
        description="How many days in the future a manual transaction can be dated"
    )
    max_transaction_amount: Decimal = Field(
        default=Decimal("1000000"),
        gt=0,
        description="Maximum absolute amount accepted for a manual transaction"
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
    def plaid(self) -> PlaidSettings:
        return PlaidSettings()

    @property
    def google_sheets(self) -> GoogleSheetsSettings:
        return GoogleSheetsSettings()

    @property
    def app(self) -> AppSettings:
        return AppSettings()


@lru_cache()
def get_settings() -> Settings:
    """
    Get application settings (cached).

    Call get_settings.cache_clear() to reload if needed.
    """
    return Settings()


def validate_all_settings() -> dict[str, bool]:
    """
    Validate all settings are properly configured.

    Returns a dict of {setting_name: is_valid}, with an
    additional {setting_name}_error entry for each failure.
    Useful for startup checks.
    """
    results = {}
    settings = get_settings()

    for name in ("plaid", "google_sheets", "app"):
        try:
            getattr(settings, name)
            results[name] = True
        except Exception as e:
            results[name] = False
            results[f"{name}_error"] = str(e)

    return results
