"""
Storage Services Package

Provides abstract interfaces and concrete implementations for data storage.
Google Sheets is the production backend; the in-memory store backs tests
and embedded use.
"""

from cost_ledger.services.storage.interface import (
    AssignmentReaderInterface,
    AttendanceReaderInterface,
    AuditStorageInterface,
    ConnectionError,
    CostConfigReaderInterface,
    DuplicateError,
    LedgerStoreInterface,
    NotFoundError,
    PersonTrackingStoreInterface,
    StorageError,
)
from cost_ledger.services.storage.google_sheets import (
    GoogleSheetsAuditStorage,
    GoogleSheetsCampaignReader,
    GoogleSheetsClient,
    GoogleSheetsLedgerStore,
    GoogleSheetsTrackingStore,
)
from cost_ledger.services.storage.memory import InMemoryStore

__all__ = [
    # Interfaces
    "AssignmentReaderInterface",
    "AttendanceReaderInterface",
    "AuditStorageInterface",
    "CostConfigReaderInterface",
    "LedgerStoreInterface",
    "PersonTrackingStoreInterface",
    # Exceptions
    "ConnectionError",
    "DuplicateError",
    "NotFoundError",
    "StorageError",
    # Google Sheets implementation
    "GoogleSheetsAuditStorage",
    "GoogleSheetsCampaignReader",
    "GoogleSheetsClient",
    "GoogleSheetsLedgerStore",
    "GoogleSheetsTrackingStore",
    # In-memory implementation
    "InMemoryStore",
]
