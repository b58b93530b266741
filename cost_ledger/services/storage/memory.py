"""
In-Memory Storage Implementation

Implements every storage interface on plain dicts and lists. Used by the
tests and by callers that embed the engine with their own persistence.

It enforces the same rules a real backend must:
- one booking per ledger key (DuplicateError)
- write-once person tracking records
- append-only audit events

`fail_on` maps a method name to an exception the method raises instead
of running, to exercise error paths.
"""

from decimal import Decimal
from typing import Optional
from uuid import UUID

from cost_ledger.models.audit import AuditEvent
from cost_ledger.models.costs import (
    AreaCostSettings,
    AttendanceRecord,
    CostProfile,
    DayOverride,
    EntryKind,
    LedgerEntry,
    LedgerKey,
    Period,
    PersonCostTrackingRecord,
    WeeklyAssignment,
)
from cost_ledger.services.storage.interface import (
    AssignmentReaderInterface,
    AttendanceReaderInterface,
    AuditStorageInterface,
    CostConfigReaderInterface,
    DuplicateError,
    LedgerStoreInterface,
    NotFoundError,
    PersonTrackingStoreInterface,
)


class InMemoryStore(
    CostConfigReaderInterface,
    AttendanceReaderInterface,
    AssignmentReaderInterface,
    LedgerStoreInterface,
    PersonTrackingStoreInterface,
    AuditStorageInterface,
):
    """All stores of the engine in one process-local object."""

    def __init__(self):
        self.area_costs: dict[str, AreaCostSettings] = {}
        self.customer_costs: dict[str, CostProfile] = {}
        self.attendance: list[AttendanceRecord] = []
        self.assignments: list[WeeklyAssignment] = []
        self.overrides: list[DayOverride] = []
        self.entries: dict[UUID, LedgerEntry] = {}
        self.invoices: dict[str, str] = {}
        self.tracking: dict[tuple, PersonCostTrackingRecord] = {}
        self.events: list[AuditEvent] = []
        self.fail_on: dict[str, Exception] = {}

    def _check_failure(self, method: str) -> None:
        if method in self.fail_on:
            raise self.fail_on[method]

    # -------------------------------------------------------------------------
    # Seeding helpers
    # -------------------------------------------------------------------------

    def set_area_costs(self, settings: AreaCostSettings) -> None:
        self.area_costs[settings.area_id] = settings

    def set_customer_costs(self, customer_id: str, profile: CostProfile) -> None:
        self.customer_costs[customer_id] = profile

    def add_attendance(self, *records: AttendanceRecord) -> None:
        self.attendance.extend(records)

    def clear_attendance(self) -> None:
        self.attendance = []

    def add_assignment(self, assignment: WeeklyAssignment) -> None:
        self.assignments.append(assignment)

    def add_override(self, *overrides: DayOverride) -> None:
        self.overrides.extend(overrides)

    def set_invoice_status(self, invoice_id: str, status: str) -> None:
        self.invoices[invoice_id] = status

    def attach_invoice(self, entry_id: UUID, invoice_id: str, status: str = "sent") -> None:
        """Mark a booking as included in an invoice."""
        entry = self.entries[entry_id]
        self.entries[entry_id] = entry.model_copy(update={"invoice_id": invoice_id})
        self.invoices[invoice_id] = status

    # -------------------------------------------------------------------------
    # Readers
    # -------------------------------------------------------------------------

    async def get_area_costs(self, area_id: str) -> Optional[AreaCostSettings]:
        self._check_failure("get_area_costs")
        return self.area_costs.get(area_id)

    async def get_customer_costs(self, customer_id: str) -> Optional[CostProfile]:
        self._check_failure("get_customer_costs")
        return self.customer_costs.get(customer_id)

    async def list_area_ids(self, campaign_id: str) -> list[str]:
        self._check_failure("list_area_ids")
        return sorted(
            area_id
            for area_id, settings in self.area_costs.items()
            if settings.campaign_id == campaign_id
        )

    async def list_attendance(self, campaign_id: str, week: int) -> list[AttendanceRecord]:
        self._check_failure("list_attendance")
        return [
            record for record in self.attendance
            if record.week == week
            and record.campaign_id in (None, campaign_id)
        ]

    async def list_assignments(self, campaign_id: str, week: int) -> list[WeeklyAssignment]:
        self._check_failure("list_assignments")
        return [
            a for a in self.assignments
            if a.week == week and a.campaign_id in (None, campaign_id)
        ]

    async def list_overrides(self, campaign_id: str, week: int) -> list[DayOverride]:
        self._check_failure("list_overrides")
        return [
            o for o in self.overrides
            if o.week == week and o.campaign_id in (None, campaign_id)
        ]

    # -------------------------------------------------------------------------
    # Ledger
    # -------------------------------------------------------------------------

    def _entries_for(self, key: LedgerKey, kind: EntryKind) -> list[LedgerEntry]:
        return [
            entry for entry in self.entries.values()
            if entry.kind == kind and entry.key == key
        ]

    async def find_booking(self, key: LedgerKey) -> Optional[LedgerEntry]:
        self._check_failure("find_booking")
        bookings = self._entries_for(key, EntryKind.BOOKING)
        return bookings[0] if bookings else None

    async def list_corrections(self, key: LedgerKey) -> list[LedgerEntry]:
        self._check_failure("list_corrections")
        corrections = self._entries_for(key, EntryKind.CORRECTION)
        return sorted(corrections, key=lambda e: e.created_at)

    async def booking_exists_elsewhere(self, key: LedgerKey) -> bool:
        self._check_failure("booking_exists_elsewhere")
        return any(
            entry.kind == EntryKind.BOOKING
            and entry.period == Period.ONCE
            and entry.customer_id == key.customer_id
            and entry.campaign_id == key.campaign_id
            and entry.area_id == key.area_id
            and entry.category == key.category
            and (entry.week, entry.year) != (key.week, key.year)
            for entry in self.entries.values()
        )

    async def insert_entry(self, entry: LedgerEntry) -> LedgerEntry:
        self._check_failure("insert_entry")
        if entry.kind == EntryKind.BOOKING and self._entries_for(entry.key, EntryKind.BOOKING):
            raise DuplicateError(f"Booking already exists: {entry.key}")
        self.entries[entry.id] = entry
        return entry

    async def update_booking(
        self,
        entry_id: UUID,
        amount: Decimal,
        units: Decimal,
        unit_price: Optional[Decimal] = None,
    ) -> LedgerEntry:
        self._check_failure("update_booking")
        entry = self.entries.get(entry_id)
        if entry is None or entry.kind != EntryKind.BOOKING:
            raise NotFoundError(f"Booking not found: {entry_id}")
        update = {"amount": amount, "units": units}
        if unit_price is not None:
            update["unit_price"] = unit_price
        updated = entry.model_copy(update=update)
        self.entries[entry_id] = updated
        return updated

    async def delete_booking(self, entry_id: UUID) -> bool:
        self._check_failure("delete_booking")
        entry = self.entries.get(entry_id)
        if entry is None or entry.kind != EntryKind.BOOKING:
            return False
        del self.entries[entry_id]
        return True

    async def get_invoice_status(self, invoice_id: str) -> Optional[str]:
        self._check_failure("get_invoice_status")
        return self.invoices.get(invoice_id)

    async def list_entries(
        self,
        customer_id: Optional[str] = None,
        campaign_id: Optional[str] = None,
        area_id: Optional[str] = None,
        week: Optional[int] = None,
        year: Optional[int] = None,
    ) -> list[LedgerEntry]:
        self._check_failure("list_entries")
        filters = {
            "customer_id": customer_id,
            "campaign_id": campaign_id,
            "area_id": area_id,
            "week": week,
            "year": year,
        }
        entries = [
            entry for entry in self.entries.values()
            if all(
                value is None or getattr(entry, field) == value
                for field, value in filters.items()
            )
        ]
        return sorted(entries, key=lambda e: e.created_at)

    # -------------------------------------------------------------------------
    # Person tracking
    # -------------------------------------------------------------------------

    async def list_tracked(
        self,
        customer_id: str,
        campaign_id: str,
        area_id: str,
        category: str,
    ) -> list[PersonCostTrackingRecord]:
        self._check_failure("list_tracked")
        return [
            record for record in self.tracking.values()
            if (record.customer_id, record.campaign_id, record.area_id, record.category)
            == (customer_id, campaign_id, area_id, category)
        ]

    async def upsert_tracked(self, records: list[PersonCostTrackingRecord]) -> int:
        self._check_failure("upsert_tracked")
        inserted = 0
        for record in records:
            if record.unique_key not in self.tracking:
                self.tracking[record.unique_key] = record
                inserted += 1
        return inserted

    # -------------------------------------------------------------------------
    # Audit
    # -------------------------------------------------------------------------

    async def append_event(self, event: AuditEvent) -> bool:
        self._check_failure("append_event")
        self.events.append(event)
        return True

    async def get_events_by_correlation_id(self, correlation_id: UUID) -> list[AuditEvent]:
        return sorted(
            (e for e in self.events if e.correlation_id == correlation_id),
            key=lambda e: e.timestamp,
        )

    # -------------------------------------------------------------------------
    # Inspection
    # -------------------------------------------------------------------------

    def bookings(self) -> list[LedgerEntry]:
        return [e for e in self.entries.values() if e.kind == EntryKind.BOOKING]

    def corrections(self) -> list[LedgerEntry]:
        return [e for e in self.entries.values() if e.kind == EntryKind.CORRECTION]

    def snapshot(self) -> dict[UUID, tuple]:
        """Comparable view of the ledger (id -> kind, amount, units)."""
        return {
            entry_id: (entry.kind, entry.amount, entry.units, entry.invoice_id)
            for entry_id, entry in self.entries.items()
        }
