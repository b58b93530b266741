"""
Abstract Storage Interface

DESIGN DECISION: The engine never talks to a database client directly.
Every store is one of the interfaces below and is handed to the engine
at construction. This allows us to:
1. Swap Google Sheets for a real database later
2. Use in-memory storage for testing
3. Keep the cost computation decoupled from storage implementation

The interface is intentionally small: only the reads and writes the
reconciliation needs.
"""

from abc import ABC, abstractmethod
from decimal import Decimal
from typing import Optional
from uuid import UUID

from cost_ledger.models.audit import AuditEvent
from cost_ledger.models.costs import (
    AreaCostSettings,
    AttendanceRecord,
    CostProfile,
    DayOverride,
    LedgerEntry,
    LedgerKey,
    PersonCostTrackingRecord,
    WeeklyAssignment,
)


class CostConfigReaderInterface(ABC):
    """Reads area-level and customer-level cost configuration."""

    @abstractmethod
    async def get_area_costs(self, area_id: str) -> Optional[AreaCostSettings]:
        """
        Get the cost settings stored on an area.

        Returns:
            The settings, or None if the area does not exist
        """
        pass

    @abstractmethod
    async def get_customer_costs(self, customer_id: str) -> Optional[CostProfile]:
        """
        Get the customer-level cost profile (fallback for areas
        without individual costs).
        """
        pass

    @abstractmethod
    async def list_area_ids(self, campaign_id: str) -> list[str]:
        """List the ids of all areas of a campaign."""
        pass


class AttendanceReaderInterface(ABC):
    """Reads canvasser attendance."""

    @abstractmethod
    async def list_attendance(
        self,
        campaign_id: str,
        week: int,
    ) -> list[AttendanceRecord]:
        """Get all attendance records of a campaign for a week."""
        pass


class AssignmentReaderInterface(ABC):
    """Reads weekly area assignments and day overrides."""

    @abstractmethod
    async def list_assignments(
        self,
        campaign_id: str,
        week: int,
    ) -> list[WeeklyAssignment]:
        pass

    @abstractmethod
    async def list_overrides(
        self,
        campaign_id: str,
        week: int,
    ) -> list[DayOverride]:
        pass


class LedgerStoreInterface(ABC):
    """
    Abstract interface for the cost ledger.

    Implementations must enforce that at most one BOOKING entry exists
    per ledger key (raise DuplicateError otherwise). Corrections are
    append-only.
    """

    @abstractmethod
    async def find_booking(self, key: LedgerKey) -> Optional[LedgerEntry]:
        """
        Get the booking entry for a ledger key.

        Returns:
            The booking if found, None otherwise
        """
        pass

    @abstractmethod
    async def list_corrections(self, key: LedgerKey) -> list[LedgerEntry]:
        """Get all correction entries for a ledger key, oldest first."""
        pass

    @abstractmethod
    async def booking_exists_elsewhere(self, key: LedgerKey) -> bool:
        """
        Check whether the once-period rule of `key` (customer, campaign,
        area, category) has a booking in any week/year other than the
        key's own. Bookings of other periods do not count.
        """
        pass

    @abstractmethod
    async def insert_entry(self, entry: LedgerEntry) -> LedgerEntry:
        """
        Insert a booking or correction.

        Raises:
            DuplicateError: If a second booking would exist for the key
            StorageError: If the write fails
        """
        pass

    @abstractmethod
    async def update_booking(
        self,
        entry_id: UUID,
        amount: Decimal,
        units: Decimal,
        unit_price: Optional[Decimal] = None,
    ) -> LedgerEntry:
        """
        Overwrite amount, units and (if given) unit price of an unbilled
        booking.

        Raises:
            NotFoundError: If the booking doesn't exist
        """
        pass

    @abstractmethod
    async def delete_booking(self, entry_id: UUID) -> bool:
        """
        Delete an unbilled booking.

        Returns:
            True if an entry was deleted
        """
        pass

    @abstractmethod
    async def get_invoice_status(self, invoice_id: str) -> Optional[str]:
        """
        Get the status of an invoice.

        Returns:
            The status string, or None if the invoice doesn't exist

        Raises:
            StorageError: If the status cannot be read
        """
        pass

    @abstractmethod
    async def list_entries(
        self,
        customer_id: Optional[str] = None,
        campaign_id: Optional[str] = None,
        area_id: Optional[str] = None,
        week: Optional[int] = None,
        year: Optional[int] = None,
    ) -> list[LedgerEntry]:
        """List ledger entries with optional filters."""
        pass


class PersonTrackingStoreInterface(ABC):
    """
    Abstract interface for one-time per-person charge tracking.

    Tracking records are write-once: an upsert of an existing key
    leaves the stored record untouched.
    """

    @abstractmethod
    async def list_tracked(
        self,
        customer_id: str,
        campaign_id: str,
        area_id: str,
        category: str,
    ) -> list[PersonCostTrackingRecord]:
        pass

    @abstractmethod
    async def upsert_tracked(
        self,
        records: list[PersonCostTrackingRecord],
    ) -> int:
        """
        Insert records whose key is not stored yet.

        Returns:
            Number of records actually inserted
        """
        pass


class AuditStorageInterface(ABC):
    """
    Abstract interface for audit log storage.

    Audit logs are append-only - we never delete or modify them.
    """

    @abstractmethod
    async def append_event(self, event: AuditEvent) -> bool:
        pass

    @abstractmethod
    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        """Get all events of one recompute trigger, in chronological order."""
        pass


class StorageError(Exception):
    """Base exception for storage operations."""
    pass


class NotFoundError(StorageError):
    """Entity not found in storage."""
    pass


class DuplicateError(StorageError):
    """Attempted to insert a duplicate entity."""
    pass


class ConnectionError(StorageError):
    """Could not connect to storage backend."""
    pass
