"""
Configuration Management for Business Manager

Uses pydantic-settings for type-safe configuration from environment variables.

DESIGN DECISION: All configuration is centralized here, but nothing below
the composition root reads it implicitly. `get_settings()` is called by the
app entry point and `create_app_components()`; every service receives the
settings object it needs as a constructor argument.
"""

from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class StorageSettings(BaseSettings):
    """Which storage backend to use."""

    model_config = SettingsConfigDict(
        env_prefix="STORAGE_",
        extra="ignore"
    )

    backend: Literal["memory", "google_sheets"] = Field(
        default="memory",
        description="Storage backend: in-process memory or Google Sheets"
    )


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
    groups_sheet_name: str = Field(default="ChitGroups")
    members_sheet_name: str = Field(default="ChitMembers")
    transactions_sheet_name: str = Field(default="MemberTransactions")
    customers_sheet_name: str = Field(default="Customers")
    customer_transactions_sheet_name: str = Field(default="CustomerTransactions")
    household_sheet_name: str = Field(default="Household")
    loans_sheet_name: str = Field(default="Loans")
    audit_sheet_name: str = Field(default="AuditLog")

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


class DrawSettings(BaseSettings):
    """
    Lottery draw timing.

    The wall-clock values are tunable; the ordering is not. The fast
    cycle must tick at least as often as the slow cycle, and the
    slowdown must happen before the draw settles.
    """

    model_config = SettingsConfigDict(
        env_prefix="LOTTERY_",
        extra="ignore"
    )

    fast_interval_seconds: float = Field(
        default=0.075,
        gt=0.0,
        description="Interval between candidates while spinning fast"
    )
    slow_interval_seconds: float = Field(
        default=0.3,
        gt=0.0,
        description="Interval between candidates while slowing down"
    )
    slow_down_after_seconds: float = Field(
        default=3.0,
        gt=0.0,
        description="Time from draw start until the slow cycle begins"
    )
    settle_after_seconds: float = Field(
        default=5.0,
        gt=0.0,
        le=30.0,
        description="Time from draw start until the winner is fixed"
    )
    min_participants: int = Field(
        default=2,
        ge=2,
        description="Fewest selected members a draw may run over"
    )

    @model_validator(mode='after')
    def validate_phase_ordering(self) -> 'DrawSettings':
        """The draw must visibly slow down before it settles."""
        if self.fast_interval_seconds > self.slow_interval_seconds:
            raise ValueError("Fast interval cannot be longer than slow interval")
        if self.slow_down_after_seconds >= self.settle_after_seconds:
            raise ValueError("Slow-down must start before the draw settles")
        return self


class NotificationSettings(BaseSettings):
    """Operator notification behaviour."""

    model_config = SettingsConfigDict(
        env_prefix="NOTIFY_",
        extra="ignore"
    )

    dismiss_after_seconds: float = Field(
        default=3.0,
        gt=0.0,
        description="How long a notification stays visible"
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

    app_environment: str = Field(
        default="development",
        description="Application environment"
    )
    debug_mode: bool = Field(
        default=False,
        description="Enable debug mode"
    )
    currency_symbol: str = Field(
        default="₹",
        max_length=3,
        description="Symbol shown in front of amounts"
    )

    def format_amount(self, amount) -> str:
        """Format an amount for display, e.g. 100000 -> ₹100,000.00."""
        return f"{self.currency_symbol}{amount:,.2f}"


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

    # Sub-settings are built on access so that a missing Google Sheets
    # configuration only fails when that backend is selected.

    @property
    def storage(self) -> StorageSettings:
        return StorageSettings()

    @property
    def google_sheets(self) -> GoogleSheetsSettings:
        return GoogleSheetsSettings()

    @property
    def draw(self) -> DrawSettings:
        return DrawSettings()

    @property
    def notifications(self) -> NotificationSettings:
        return NotificationSettings()

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


def validate_all_settings() -> dict[str, bool]:
    """
    Validate all settings are properly configured.

    Returns a dict of {setting_name: is_valid}, plus "<name>_error"
    entries for the ones that failed. Useful for the settings page.
    """
    results = {}
    settings = get_settings()

    checks = {
        "storage": lambda: settings.storage,
        "draw": lambda: settings.draw,
        "notifications": lambda: settings.notifications,
        "app": lambda: settings.app,
    }
    try:
        backend = settings.storage.backend
    except Exception:
        backend = None
    if backend == "google_sheets":
        checks["google_sheets"] = lambda: settings.google_sheets

    for name, load in checks.items():
        try:
            load()
            results[name] = True
        except Exception as e:
            results[name] = False
            results[f"{name}_error"] = str(e)

    return results
