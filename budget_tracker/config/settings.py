"""
Configuration Management for Budget Tracker

Uses pydantic-settings for type-safe configuration from environment variables.

DESIGN DECISION: All configuration is centralized here.
User preferences (currency, language, theme) are NOT configuration - they
live in the preference store and are handed to the presentation layer as
an explicit UserPreferences object. The ledger never reads them.
"""

from functools import lru_cache
from pathlib import Path
from typing import Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class LedgerSettings(BaseSettings):
    """Defaults for the ledger aggregation views."""

    model_config = SettingsConfigDict(
        env_prefix="LEDGER_",
        extra="ignore"
    )

    recent_limit: int = Field(
        default=5,
        ge=1,
        le=100,
        description="How many transactions the 'recent' view shows"
    )
    upcoming_limit: int = Field(
        default=5,
        ge=1,
        le=100,
        description="How many upcoming recurring payments are projected"
    )
    warning_threshold: float = Field(
        default=80.0,
        ge=0.0,
        description="Budget percentage at which severity becomes 'warning'"
    )
    exceeded_threshold: float = Field(
        default=100.0,
        ge=0.0,
        description="Budget percentage at which severity becomes 'exceeded'"
    )

    @field_validator('exceeded_threshold')
    @classmethod
    def validate_threshold_order(cls, v: float, info) -> float:
        """The exceeded threshold cannot sit below the warning threshold."""
        warning = info.data.get("warning_threshold")
        if warning is not None and v < warning:
            raise ValueError(
                f"exceeded_threshold ({v}) must be >= warning_threshold ({warning})"
            )
        return v


class StorageSettings(BaseSettings):
    """Persistence backend selection."""

    model_config = SettingsConfigDict(
        env_prefix="STORAGE_",
        extra="ignore"
    )

    backend: str = Field(
        default="json",
        pattern="^(memory|json|google_sheets)$",
        description="Which storage backend to use"
    )
    data_dir: str = Field(
        default="data",
        description="Directory holding per-user JSON documents (json backend)"
    )

    @property
    def data_path(self) -> Path:
        return Path(self.data_dir)


class GoogleSheetsSettings(BaseSettings):
    """Google Sheets storage configuration."""

    model_config = SettingsConfigDict(
        env_prefix="GOOGLE_SHEETS_",
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
    transactions_sheet_name: str = Field(
        default="Transactions",
        description="Name of the sheet for transactions"
    )
    budgets_sheet_name: str = Field(
        default="Budgets",
        description="Name of the sheet for budget limits"
    )
    pending_sheet_name: str = Field(
        default="PendingInstallments",
        description="Name of the sheet for deferred installments"
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
    log_level: str = Field(
        default="INFO",
        pattern="^(DEBUG|INFO|WARNING|ERROR|CRITICAL)$",
        description="Minimum level for local log output"
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

    # Sub-settings are loaded lazily to allow partial configuration

    @property
    def ledger(self) -> LedgerSettings:
        return LedgerSettings()

    @property
    def storage(self) -> StorageSettings:
        return StorageSettings()

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

    Uses LRU cache to ensure settings are only loaded once.
    Call get_settings.cache_clear() to reload if needed.
    """
    return Settings()


def validate_all_settings(
    sections: Optional[list[str]] = None,
) -> dict[str, bool]:
    """
    Validate settings sections are properly configured.

    Returns a dict of {section_name: is_valid} plus a
    "{section_name}_error" entry for every failing section.
    Useful for startup checks.
    """
    settings = get_settings()
    sections = sections or ["app", "ledger", "storage", "google_sheets"]
    results = {}

    for name in sections:
        try:
            getattr(settings, name)
            results[name] = True
        except Exception as e:
            results[name] = False
            results[f"{name}_error"] = str(e)

    return results
