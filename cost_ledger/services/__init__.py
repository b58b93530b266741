"""Services package."""

from cost_ledger.services.storage import (
    AuditStorageInterface,
    ConnectionError,
    DuplicateError,
    GoogleSheetsAuditStorage,
    GoogleSheetsCampaignReader,
    GoogleSheetsClient,
    GoogleSheetsLedgerStore,
    GoogleSheetsTrackingStore,
    InMemoryStore,
    LedgerStoreInterface,
    NotFoundError,
    PersonTrackingStoreInterface,
    StorageError,
)

__all__ = [
    "AuditStorageInterface",
    "ConnectionError",
    "DuplicateError",
    "GoogleSheetsAuditStorage",
    "GoogleSheetsCampaignReader",
    "GoogleSheetsClient",
    "GoogleSheetsLedgerStore",
    "GoogleSheetsTrackingStore",
    "InMemoryStore",
    "LedgerStoreInterface",
    "NotFoundError",
    "PersonTrackingStoreInterface",
    "StorageError",
]
