"""
Google Sheets Storage Implementation

DESIGN DECISION: Google Sheets is the default backend because:
1. Campaign staff can read the ledger and attendance directly in Sheets
2. No database setup required
3. Invoicing already exports from the same spreadsheet

TRADEOFFS:
- No transactions: a recompute writes rule by rule, and each rule's
  write is a single row append, update or delete
- No unique constraints: the one-booking-per-key rule is checked in
  Python before every insert
- Limited query capabilities (we filter in Python)

The implementation follows the abstract interfaces, so the engine does
not change when the ledger moves to a real database.
"""

import json
from datetime import datetime
from decimal import Decimal, InvalidOperation
from typing import Optional
from uuid import UUID

import gspread
from google.oauth2.service_account import Credentials
from tenacity import retry, stop_after_attempt, wait_exponential

from cost_ledger.config import get_settings
from cost_ledger.models.audit import AuditEvent, AuditEventType, AuditSeverity
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
    UnitBasis,
    WeeklyAssignment,
    WerberAssignment,
)
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


LEDGER_COLUMNS = [
    "id",
    "created_at",
    "customer_id",
    "campaign_id",
    "area_id",
    "category",
    "kind",
    "unit_basis",
    "period",
    "amount",
    "units",
    "unit_price",
    "label",
    "week",
    "year",
    "description",
    "invoice_id",
]

TRACKING_COLUMNS = [
    "customer_id",
    "campaign_id",
    "area_id",
    "user_id",
    "category",
    "week",
    "year",
    "created_at",
]

INVOICE_COLUMNS = ["invoice_id", "status"]

AUDIT_COLUMNS = [
    "event_id",
    "timestamp",
    "event_type",
    "severity",
    "entity_type",
    "entity_id",
    "correlation_id",
    "description",
    "details_json",
    "error_message",
]

AREA_COSTS_COLUMNS = [
    "area_id",
    "campaign_id",
    "individual_costs",
    "costs_json",
    "special_items_json",
]

CUSTOMER_COSTS_COLUMNS = ["customer_id", "costs_json", "special_items_json"]

ATTENDANCE_COLUMNS = [
    "campaign_id",
    "week",
    "user_id",
    "day_0",
    "day_1",
    "day_2",
    "day_3",
    "day_4",
    "day_5",
]

ASSIGNMENT_COLUMNS = ["campaign_id", "week", "werber_id", "area_id"]

OVERRIDE_COLUMNS = ["campaign_id", "week", "werber_id", "day", "area_id"]

_AMOUNT_COLUMN = LEDGER_COLUMNS.index("amount") + 1
_UNITS_COLUMN = LEDGER_COLUMNS.index("units") + 1
_UNIT_PRICE_COLUMN = LEDGER_COLUMNS.index("unit_price") + 1


def _cell(row: list, index: int, default: str = "") -> str:
    """Read a cell, tolerating short rows."""
    try:
        return row[index] if row[index] else default
    except IndexError:
        return default


def _truthy(value: str) -> bool:
    return value.strip().lower() in ("true", "1", "x", "yes", "ja")


def _data_rows(sheet: gspread.Worksheet) -> list[list]:
    """All non-empty rows below the header."""
    return [row for row in sheet.get_all_values()[1:] if row and row[0]]


class GoogleSheetsClient:
    """
    Low-level Google Sheets client wrapper.

    Handles authentication and provides retry logic for API calls.
    Every worksheet is created with its header row on first access.
    """

    def __init__(self):
        self._client: Optional[gspread.Client] = None
        self._spreadsheet: Optional[gspread.Spreadsheet] = None
        self._settings = get_settings().google_sheets

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    def connect(self) -> gspread.Client:
        """
        Establish connection to Google Sheets.

        Uses service account credentials for authentication.
        """
        if self._client is None:
            try:
                scopes = [
                    "https://www.googleapis.com/auth/spreadsheets",
                    "https://www.googleapis.com/auth/drive",
                ]
                credentials = Credentials.from_service_account_file(
                    self._settings.credentials_path,
                    scopes=scopes,
                )
                self._client = gspread.authorize(credentials)
            except FileNotFoundError:
                raise ConnectionError(
                    f"Google credentials file not found: {self._settings.credentials_path}"
                )
            except Exception as e:
                raise ConnectionError(f"Failed to connect to Google Sheets: {e}")

        return self._client

    def get_spreadsheet(self) -> gspread.Spreadsheet:
        """Get the configured spreadsheet."""
        if self._spreadsheet is None:
            client = self.connect()
            try:
                self._spreadsheet = client.open_by_key(
                    self._settings.spreadsheet_id
                )
            except gspread.SpreadsheetNotFound:
                raise ConnectionError(
                    f"Spreadsheet not found: {self._settings.spreadsheet_id}"
                )
        return self._spreadsheet

    def get_sheet(
        self,
        title: str,
        columns: list[str],
        rows: int = 1000,
    ) -> gspread.Worksheet:
        """Get or create a worksheet with the given header columns."""
        spreadsheet = self.get_spreadsheet()
        try:
            sheet = spreadsheet.worksheet(title)
        except gspread.WorksheetNotFound:
            sheet = spreadsheet.add_worksheet(
                title=title,
                rows=rows,
                cols=len(columns),
            )
            sheet.append_row(columns)
        return sheet

    def get_ledger_sheet(self) -> gspread.Worksheet:
        return self.get_sheet(self._settings.ledger_sheet_name, LEDGER_COLUMNS, rows=5000)

    def get_tracking_sheet(self) -> gspread.Worksheet:
        return self.get_sheet(self._settings.tracking_sheet_name, TRACKING_COLUMNS)

    def get_invoices_sheet(self) -> gspread.Worksheet:
        return self.get_sheet(self._settings.invoices_sheet_name, INVOICE_COLUMNS)

    def get_audit_sheet(self) -> gspread.Worksheet:
        # More rows for audit log
        return self.get_sheet(self._settings.audit_sheet_name, AUDIT_COLUMNS, rows=5000)

    def get_area_costs_sheet(self) -> gspread.Worksheet:
        return self.get_sheet(self._settings.area_costs_sheet_name, AREA_COSTS_COLUMNS)

    def get_customer_costs_sheet(self) -> gspread.Worksheet:
        return self.get_sheet(
            self._settings.customer_costs_sheet_name, CUSTOMER_COSTS_COLUMNS
        )

    def get_attendance_sheet(self) -> gspread.Worksheet:
        return self.get_sheet(self._settings.attendance_sheet_name, ATTENDANCE_COLUMNS)

    def get_assignments_sheet(self) -> gspread.Worksheet:
        return self.get_sheet(self._settings.assignments_sheet_name, ASSIGNMENT_COLUMNS)

    def get_overrides_sheet(self) -> gspread.Worksheet:
        return self.get_sheet(self._settings.overrides_sheet_name, OVERRIDE_COLUMNS)


class GoogleSheetsCampaignReader(
    CostConfigReaderInterface,
    AttendanceReaderInterface,
    AssignmentReaderInterface,
):
    """
    Reads cost configuration, attendance and assignments from Sheets.

    Cost profiles are stored as JSON cells in the shape the configuration
    editor saves them (legacy field names and category keys included);
    model validation normalizes them on read.
    """

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()

    @staticmethod
    def _profile_from_cells(costs_json: str, specials_json: str) -> CostProfile:
        return CostProfile.model_validate({
            "costs": json.loads(costs_json) if costs_json else {},
            "special_items": json.loads(specials_json) if specials_json else [],
        })

    async def get_area_costs(self, area_id: str) -> Optional[AreaCostSettings]:
        try:
            sheet = self._client.get_area_costs_sheet()
            for row in _data_rows(sheet):
                if row[0] == area_id:
                    return AreaCostSettings(
                        area_id=area_id,
                        campaign_id=_cell(row, 1) or None,
                        individual_costs=_truthy(_cell(row, 2)),
                        profile=self._profile_from_cells(_cell(row, 3), _cell(row, 4)),
                    )
            return None
        except Exception as e:
            raise StorageError(f"Failed to read area costs for {area_id}: {e}")

    async def get_customer_costs(self, customer_id: str) -> Optional[CostProfile]:
        try:
            sheet = self._client.get_customer_costs_sheet()
            for row in _data_rows(sheet):
                if row[0] == customer_id:
                    return self._profile_from_cells(_cell(row, 1), _cell(row, 2))
            return None
        except Exception as e:
            raise StorageError(f"Failed to read customer costs for {customer_id}: {e}")

    async def list_area_ids(self, campaign_id: str) -> list[str]:
        try:
            sheet = self._client.get_area_costs_sheet()
            return sorted({
                row[0] for row in _data_rows(sheet)
                if _cell(row, 1) == campaign_id
            })
        except Exception as e:
            raise StorageError(f"Failed to list areas of {campaign_id}: {e}")

    async def list_attendance(
        self,
        campaign_id: str,
        week: int,
    ) -> list[AttendanceRecord]:
        try:
            sheet = self._client.get_attendance_sheet()
            records = []
            for row in _data_rows(sheet):
                if row[0] != campaign_id or _cell(row, 1) != str(week):
                    continue
                records.append(AttendanceRecord(
                    campaign_id=campaign_id,
                    week=week,
                    user_id=_cell(row, 2),
                    **{f"day_{day}": _truthy(_cell(row, 3 + day)) for day in range(6)},
                ))
            return records
        except Exception as e:
            raise StorageError(f"Failed to read attendance for KW{week}: {e}")

    async def list_assignments(
        self,
        campaign_id: str,
        week: int,
    ) -> list[WeeklyAssignment]:
        try:
            sheet = self._client.get_assignments_sheet()
            werbers = [
                WerberAssignment(werber_id=_cell(row, 2), area_id=_cell(row, 3))
                for row in _data_rows(sheet)
                if row[0] == campaign_id and _cell(row, 1) == str(week)
            ]
        except Exception as e:
            raise StorageError(f"Failed to read assignments for KW{week}: {e}")

        if not werbers:
            return []
        return [WeeklyAssignment(week=week, campaign_id=campaign_id, werbers=werbers)]

    async def list_overrides(
        self,
        campaign_id: str,
        week: int,
    ) -> list[DayOverride]:
        try:
            sheet = self._client.get_overrides_sheet()
            return [
                DayOverride(
                    campaign_id=campaign_id,
                    week=week,
                    werber_id=_cell(row, 2),
                    day=int(_cell(row, 3)),
                    area_id=_cell(row, 4),
                )
                for row in _data_rows(sheet)
                if row[0] == campaign_id and _cell(row, 1) == str(week)
            ]
        except Exception as e:
            raise StorageError(f"Failed to read day overrides for KW{week}: {e}")


class GoogleSheetsLedgerStore(LedgerStoreInterface):
    """
    Google Sheets implementation of the cost ledger.

    One row per booking or correction. Invoice statuses are read from
    the invoices sheet maintained by the billing export.
    """

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()

    def _entry_to_row(self, entry: LedgerEntry) -> list:
        """Convert a LedgerEntry to a spreadsheet row."""
        return [
            str(entry.id),
            entry.created_at.isoformat(),
            entry.customer_id,
            entry.campaign_id,
            entry.area_id,
            entry.category,
            entry.kind.value,
            entry.unit_basis.value,
            entry.period.value,
            str(entry.amount),
            str(entry.units),
            str(entry.unit_price),
            entry.label,
            str(entry.week),
            str(entry.year),
            entry.description or "",
            entry.invoice_id or "",
        ]

    def _row_to_entry(self, row: list) -> LedgerEntry:
        """Convert a spreadsheet row to a LedgerEntry."""
        return LedgerEntry(
            id=UUID(_cell(row, 0)),
            created_at=datetime.fromisoformat(_cell(row, 1)),
            customer_id=_cell(row, 2),
            campaign_id=_cell(row, 3),
            area_id=_cell(row, 4),
            category=_cell(row, 5),
            kind=EntryKind(_cell(row, 6)),
            unit_basis=UnitBasis(_cell(row, 7)),
            period=Period(_cell(row, 8)),
            amount=Decimal(_cell(row, 9, "0")),
            units=Decimal(_cell(row, 10, "0")),
            unit_price=Decimal(_cell(row, 11, "0")),
            label=_cell(row, 12),
            week=int(_cell(row, 13)),
            year=int(_cell(row, 14)),
            description=_cell(row, 15) or None,
            invoice_id=_cell(row, 16) or None,
        )

    def _load_entries(self) -> list[tuple[int, LedgerEntry]]:
        """All ledger entries with their sheet row number."""
        sheet = self._client.get_ledger_sheet()
        entries = []
        for idx, row in enumerate(sheet.get_all_values()[1:], start=2):
            if not row or not row[0]:
                continue
            try:
                entries.append((idx, self._row_to_entry(row)))
            except (ValueError, InvalidOperation) as e:
                # A ledger row we cannot read could hide a booking
                raise StorageError(f"Malformed ledger row {idx}: {e}")
        return entries

    async def find_booking(self, key: LedgerKey) -> Optional[LedgerEntry]:
        try:
            for _, entry in self._load_entries():
                if entry.kind == EntryKind.BOOKING and entry.key == key:
                    return entry
            return None
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to find booking {key}: {e}")

    async def list_corrections(self, key: LedgerKey) -> list[LedgerEntry]:
        try:
            corrections = [
                entry for _, entry in self._load_entries()
                if entry.kind == EntryKind.CORRECTION and entry.key == key
            ]
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to list corrections {key}: {e}")
        return sorted(corrections, key=lambda e: e.created_at)

    async def booking_exists_elsewhere(self, key: LedgerKey) -> bool:
        try:
            entries = self._load_entries()
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to read ledger: {e}")
        return any(
            entry.kind == EntryKind.BOOKING
            and entry.period == Period.ONCE
            and (entry.customer_id, entry.campaign_id, entry.area_id, entry.category)
            == (key.customer_id, key.campaign_id, key.area_id, key.category)
            and (entry.week, entry.year) != (key.week, key.year)
            for _, entry in entries
        )

    async def insert_entry(self, entry: LedgerEntry) -> LedgerEntry:
        if entry.kind == EntryKind.BOOKING and await self.find_booking(entry.key):
            raise DuplicateError(f"Booking already exists: {entry.key}")
        try:
            self._append(entry)
            return entry
        except Exception as e:
            raise StorageError(f"Failed to insert ledger entry: {e}")

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    def _append(self, entry: LedgerEntry) -> None:
        sheet = self._client.get_ledger_sheet()
        # A retried write may already have landed
        entry_id = str(entry.id)
        if any(row and row[0] == entry_id for row in sheet.get_all_values()[1:]):
            return
        sheet.append_row(self._entry_to_row(entry), value_input_option="RAW")

    async def update_booking(
        self,
        entry_id: UUID,
        amount: Decimal,
        units: Decimal,
        unit_price: Optional[Decimal] = None,
    ) -> LedgerEntry:
        try:
            sheet = self._client.get_ledger_sheet()
            for idx, entry in self._load_entries():
                if entry.id == entry_id and entry.kind == EntryKind.BOOKING:
                    update = {"amount": amount, "units": units}
                    sheet.update_cell(idx, _AMOUNT_COLUMN, str(amount))
                    sheet.update_cell(idx, _UNITS_COLUMN, str(units))
                    if unit_price is not None:
                        sheet.update_cell(idx, _UNIT_PRICE_COLUMN, str(unit_price))
                        update["unit_price"] = unit_price
                    return entry.model_copy(update=update)

            raise NotFoundError(f"Booking not found: {entry_id}")
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to update booking: {e}")

    async def delete_booking(self, entry_id: UUID) -> bool:
        try:
            sheet = self._client.get_ledger_sheet()
            for idx, entry in self._load_entries():
                if entry.id == entry_id and entry.kind == EntryKind.BOOKING:
                    sheet.delete_rows(idx)
                    return True
            return False
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to delete booking: {e}")

    async def get_invoice_status(self, invoice_id: str) -> Optional[str]:
        try:
            sheet = self._client.get_invoices_sheet()
            for row in _data_rows(sheet):
                if row[0] == invoice_id:
                    return _cell(row, 1) or None
            return None
        except Exception as e:
            raise StorageError(f"Failed to read invoice {invoice_id}: {e}")

    async def list_entries(
        self,
        customer_id: Optional[str] = None,
        campaign_id: Optional[str] = None,
        area_id: Optional[str] = None,
        week: Optional[int] = None,
        year: Optional[int] = None,
    ) -> list[LedgerEntry]:
        filters = {
            "customer_id": customer_id,
            "campaign_id": campaign_id,
            "area_id": area_id,
            "week": week,
            "year": year,
        }
        try:
            entries = [
                entry for _, entry in self._load_entries()
                if all(
                    value is None or getattr(entry, field) == value
                    for field, value in filters.items()
                )
            ]
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to list ledger entries: {e}")
        return sorted(entries, key=lambda e: e.created_at)


class GoogleSheetsTrackingStore(PersonTrackingStoreInterface):
    """
    Google Sheets implementation of one-time person tracking.

    Rows are appended once and never rewritten.
    """

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()

    def _record_to_row(self, record: PersonCostTrackingRecord) -> list:
        return [
            record.customer_id,
            record.campaign_id,
            record.area_id,
            record.user_id,
            record.category,
            str(record.week) if record.week else "",
            str(record.year) if record.year else "",
            record.created_at.isoformat(),
        ]

    def _row_to_record(self, row: list) -> PersonCostTrackingRecord:
        return PersonCostTrackingRecord(
            customer_id=_cell(row, 0),
            campaign_id=_cell(row, 1),
            area_id=_cell(row, 2),
            user_id=_cell(row, 3),
            category=_cell(row, 4),
            week=int(_cell(row, 5)) if _cell(row, 5) else None,
            year=int(_cell(row, 6)) if _cell(row, 6) else None,
            created_at=datetime.fromisoformat(_cell(row, 7)),
        )

    def _load_records(self) -> list[PersonCostTrackingRecord]:
        sheet = self._client.get_tracking_sheet()
        return [self._row_to_record(row) for row in _data_rows(sheet)]

    async def list_tracked(
        self,
        customer_id: str,
        campaign_id: str,
        area_id: str,
        category: str,
    ) -> list[PersonCostTrackingRecord]:
        try:
            return [
                record for record in self._load_records()
                if (record.customer_id, record.campaign_id, record.area_id, record.category)
                == (customer_id, campaign_id, area_id, category)
            ]
        except Exception as e:
            raise StorageError(f"Failed to read person tracking: {e}")

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    async def upsert_tracked(self, records: list[PersonCostTrackingRecord]) -> int:
        try:
            existing = {record.unique_key for record in self._load_records()}
            new_rows = []
            for record in records:
                if record.unique_key not in existing:
                    existing.add(record.unique_key)
                    new_rows.append(self._record_to_row(record))
            if new_rows:
                sheet = self._client.get_tracking_sheet()
                sheet.append_rows(new_rows, value_input_option="RAW")
            return len(new_rows)
        except Exception as e:
            raise StorageError(f"Failed to write person tracking: {e}")


class GoogleSheetsAuditStorage(AuditStorageInterface):
    """
    Google Sheets implementation of audit log storage.

    Audit events are append-only.
    """

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()

    def _row_to_event(self, row: list) -> AuditEvent:
        """Convert a spreadsheet row to an AuditEvent."""
        return AuditEvent(
            event_id=UUID(_cell(row, 0)),
            timestamp=datetime.fromisoformat(_cell(row, 1)),
            event_type=AuditEventType(_cell(row, 2)),
            severity=AuditSeverity(_cell(row, 3)),
            entity_type=_cell(row, 4) or None,
            entity_id=_cell(row, 5) or None,
            correlation_id=UUID(_cell(row, 6)) if _cell(row, 6) else None,
            description=_cell(row, 7),
            details=json.loads(_cell(row, 8)) if _cell(row, 8) else {},
            error_message=_cell(row, 9) or None,
        )

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    async def append_event(self, event: AuditEvent) -> bool:
        """Append an audit event. Failures are reported by the AuditLogger."""
        try:
            sheet = self._client.get_audit_sheet()
            sheet.append_row(event.to_sheets_row(), value_input_option="RAW")
            return True
        except Exception as e:
            raise StorageError(f"Failed to write audit event: {e}")

    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        try:
            sheet = self._client.get_audit_sheet()
            events = []
            for row in _data_rows(sheet):
                if _cell(row, 6) == str(correlation_id):
                    try:
                        events.append(self._row_to_event(row))
                    except ValueError:
                        # Skip rows written by older schema versions
                        continue

            # Sort chronologically
            events.sort(key=lambda e: e.timestamp)
            return events
        except Exception as e:
            raise StorageError(f"Failed to get audit events: {e}")
