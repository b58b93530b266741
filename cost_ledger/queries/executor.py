"""
Ledger Query Engine

DESIGN DECISION: Queries are read-only and DETERMINISTIC.
Every number returned is summed from stored ledger rows; nothing is
recomputed from configuration or attendance. Net amounts always include
corrections, so a billed booking plus its corrections reads as the
amount the area actually owes.
"""

from collections import defaultdict
from decimal import Decimal
from typing import Callable

from cost_ledger.models.costs import EntryKind, LedgerEntry, LedgerKey, LedgerSummary
from cost_ledger.services.storage import LedgerStoreInterface, StorageError


class QueryExecutionError(Exception):
    """Error during query execution."""
    pass


class LedgerQueryExecutor:
    """
    Executes read-only queries against the cost ledger.

    GUARANTEES:
    - Only returns real data from storage
    - Amounts are Decimal sums, never floats
    - An empty slice yields a zero summary, not an error
    """

    def __init__(self, store: LedgerStoreInterface):
        self._store = store

    async def net_amount(self, key: LedgerKey) -> Decimal:
        """Booking amount plus all corrections for one ledger key."""
        try:
            booking = await self._store.find_booking(key)
            corrections = await self._store.list_corrections(key)
        except StorageError as e:
            raise QueryExecutionError(f"Failed to read ledger for {key}: {e}") from e

        total = booking.amount if booking else Decimal("0")
        return total + sum((c.amount for c in corrections), Decimal("0"))

    async def totals_by_category(
        self,
        customer_id: str,
        campaign_id: str,
        area_id: str,
        week: int,
        year: int,
    ) -> LedgerSummary:
        """Net amount per cost category of one area and week."""
        entries = await self._list(
            customer_id=customer_id,
            campaign_id=campaign_id,
            area_id=area_id,
            week=week,
            year=year,
        )
        return self._summarize(
            entries,
            group=lambda entry: entry.category,
            description=f"Costs of area {area_id} in KW{week}/{year} by category",
        )

    async def totals_by_area(
        self,
        customer_id: str,
        campaign_id: str,
        week: int,
        year: int,
    ) -> LedgerSummary:
        """Net amount per area of one campaign and week."""
        entries = await self._list(
            customer_id=customer_id,
            campaign_id=campaign_id,
            week=week,
            year=year,
        )
        return self._summarize(
            entries,
            group=lambda entry: entry.area_id,
            description=f"Costs of campaign {campaign_id} in KW{week}/{year} by area",
        )

    async def _list(self, **filters) -> list[LedgerEntry]:
        try:
            return await self._store.list_entries(**filters)
        except StorageError as e:
            raise QueryExecutionError(f"Failed to list ledger entries: {e}") from e

    @staticmethod
    def _summarize(
        entries: list[LedgerEntry],
        group: Callable[[LedgerEntry], str],
        description: str,
    ) -> LedgerSummary:
        totals: dict[str, Decimal] = defaultdict(lambda: Decimal("0"))
        booked = Decimal("0")
        corrected = Decimal("0")

        for entry in entries:
            totals[group(entry)] += entry.amount
            if entry.kind == EntryKind.BOOKING:
                booked += entry.amount
            else:
                corrected += entry.amount

        return LedgerSummary(
            description=description,
            entry_count=len(entries),
            booked_total=booked,
            correction_total=corrected,
            totals=dict(sorted(totals.items())),
        )
