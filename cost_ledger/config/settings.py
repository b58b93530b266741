"""
Configuration Management for the Campaign Cost Ledger

Uses pydantic-settings for type-safe configuration from environment variables.

DESIGN DECISION: All configuration is centralized here.
Every tunable of the billing policy (epsilon, rounding, thresholds, the
invoice lookup failure policy) is a setting, so that none of them is a
magic number hidden in the engine.
"""

from decimal import Decimal
from enum import Enum
from functools import lru_cache
from pathlib import Path

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class InvoiceLookupFailurePolicy(str, Enum):
    """
    What to do when the status of a booking's invoice cannot be read.

    There is deliberately no "treat as unbilled" option: that would let
    the engine overwrite an amount that may already be on an invoice.
    """
    ABORT = "abort"
    TREAT_AS_BILLED = "treat_as_billed"


class LedgerSettings(BaseSettings):
    """Billing policy of the cost engine."""

    model_config = SettingsConfigDict(
        env_prefix="LEDGER_",
        extra="ignore"
    )

    amount_epsilon: Decimal = Field(
        default=Decimal("0.001"),
        gt=0,
        description="Amounts closer than this are considered equal"
    )
    currency_decimal_places: int = Field(
        default=2,
        ge=0,
        le=4,
        description="Minor-unit precision computed amounts are rounded to"
    )
    units_decimal_places: int = Field(
        default=4,
        ge=0,
        le=8,
        description="Precision of the units column written to the ledger"
    )
    min_active_days: int = Field(
        default=3,
        ge=1,
        le=6,
        description="Active days needed for a week/block charge"
    )
    block_weeks: int = Field(
        default=3,
        ge=1,
        description="Length of a block accounting period in weeks"
    )
    invoice_lookup_failure_policy: InvoiceLookupFailurePolicy = Field(
        default=InvoiceLookupFailurePolicy.ABORT,
        description="Behaviour when an invoice status lookup fails"
    )
    special_category_prefix: str = Field(
        default="special_",
        min_length=1,
        description="Prefix of special line item category keys"
    )

    @property
    def amount_quantum(self) -> Decimal:
        return Decimal(1).scaleb(-self.currency_decimal_places)

    @property
    def units_quantum(self) -> Decimal:
        return Decimal(1).scaleb(-self.units_decimal_places)


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
    ledger_sheet_name: str = "CostLedger"
    tracking_sheet_name: str = "PersonTracking"
    invoices_sheet_name: str = "Invoices"
    audit_sheet_name: str = "AuditLog"
    area_costs_sheet_name: str = "AreaCosts"
    customer_costs_sheet_name: str = "CustomerCosts"
    attendance_sheet_name: str = "Attendance"
    assignments_sheet_name: str = "Assignments"
    overrides_sheet_name: str = "DayOverrides"

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

    app_environment: str = Field(
        default="development",
        description="Application environment"
    )
    log_level: str = Field(
        default="INFO",
        pattern="^(DEBUG|INFO|WARNING|ERROR|CRITICAL)$",
        description="Minimum level of local structured logs"
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

    Returns a dict of {setting_name: is_valid}.
    Useful for startup checks.
    """
    results = {}

    settings = get_settings()

    for name in ("ledger", "google_sheets", "app"):
        try:
            getattr(settings, name)
            results[name] = True
        except Exception as e:
            results[name] = False
            results[f"{name}_error"] = str(e)

    return results
