"""Configuration package."""

from cost_ledger.config.settings import (
    AppSettings,
    GoogleSheetsSettings,
    InvoiceLookupFailurePolicy,
    LedgerSettings,
    Settings,
    get_settings,
    validate_all_settings,
)

__all__ = [
    "AppSettings",
    "GoogleSheetsSettings",
    "InvoiceLookupFailurePolicy",
    "LedgerSettings",
    "Settings",
    "get_settings",
    "validate_all_settings",
]
