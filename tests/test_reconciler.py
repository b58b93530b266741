"""
Tests for ledger reconciliation.

CRITICAL: A booking on a billed invoice must never change. These tests
check every path that could touch one.
"""

import pytest
from decimal import Decimal

from cost_ledger.config import InvoiceLookupFailurePolicy, LedgerSettings
from cost_ledger.engine import InvoiceStatusUnavailableError, LedgerReconciler
from cost_ledger.models import (
    CostRule,
    EntryKind,
    LedgerKey,
    Period,
    ReconcileAction,
    UnitBasis,
)
from cost_ledger.services.storage import StorageError

from conftest import AREA_A, CAMPAIGN, CUSTOMER, WEEK, YEAR


RULE = CostRule(
    category="vehicle",
    label="Vehicle",
    unit_price=Decimal("50"),
    unit_basis=UnitBasis.TEAM,
    period=Period.DAY,
)

ONCE_PER_PERSON = CostRule(
    category="clothing",
    label="Clothing",
    unit_price=Decimal("25"),
    unit_basis=UnitBasis.PERSON,
    period=Period.ONCE,
)


def _key(category: str = "vehicle") -> LedgerKey:
    return LedgerKey(
        customer_id=CUSTOMER,
        campaign_id=CAMPAIGN,
        area_id=AREA_A,
        category=category,
        week=WEEK,
        year=YEAR,
    )


@pytest.fixture
def reconciler(store, settings) -> LedgerReconciler:
    return LedgerReconciler(store, store, settings)


async def _book(reconciler, amount: str, units: str = "3"):
    return await reconciler.reconcile(_key(), RULE, Decimal(amount), Decimal(units))


class TestUnbilledBookings:
    """Bookings not on an invoice (or on a draft) are edited in place."""

    @pytest.mark.asyncio
    async def test_creates_booking(self, reconciler, store):
        outcome = await _book(reconciler, "150")

        assert outcome.action == ReconcileAction.CREATED
        bookings = store.bookings()
        assert len(bookings) == 1
        assert bookings[0].id == outcome.entry_id
        assert bookings[0].amount == Decimal("150")
        assert bookings[0].units == Decimal("3.0000")
        assert bookings[0].label == "Vehicle"

    @pytest.mark.asyncio
    async def test_zero_target_without_booking_is_skipped(self, reconciler, store):
        outcome = await _book(reconciler, "0", "0")

        assert outcome.action == ReconcileAction.SKIPPED
        assert store.entries == {}

    @pytest.mark.asyncio
    async def test_same_target_is_unchanged(self, reconciler, store):
        await _book(reconciler, "150")
        before = store.snapshot()

        outcome = await _book(reconciler, "150")

        assert outcome.action == ReconcileAction.UNCHANGED
        assert store.snapshot() == before

    @pytest.mark.asyncio
    async def test_difference_within_epsilon_is_unchanged(self, reconciler, store):
        await _book(reconciler, "150")

        outcome = await _book(reconciler, "150.0005")

        assert outcome.action == ReconcileAction.UNCHANGED
        assert store.bookings()[0].amount == Decimal("150")

    @pytest.mark.asyncio
    async def test_updates_in_place(self, reconciler, store):
        created = await _book(reconciler, "150")

        outcome = await _book(reconciler, "100", "2")

        assert outcome.action == ReconcileAction.UPDATED
        assert outcome.entry_id == created.entry_id
        booking = store.bookings()[0]
        assert booking.amount == Decimal("100")
        assert booking.units == Decimal("2.0000")
        assert store.corrections() == []

    @pytest.mark.asyncio
    async def test_update_carries_new_unit_price(self, reconciler, store):
        await _book(reconciler, "150")
        repriced = RULE.model_copy(update={"unit_price": Decimal("60")})

        outcome = await reconciler.reconcile(
            _key(), repriced, Decimal("180"), Decimal("3")
        )

        assert outcome.action == ReconcileAction.UPDATED
        booking = store.bookings()[0]
        assert booking.amount == Decimal("180")
        assert booking.unit_price == Decimal("60")
        assert booking.amount == booking.units * booking.unit_price

    @pytest.mark.asyncio
    async def test_deletes_when_target_drops_to_zero(self, reconciler, store):
        await _book(reconciler, "150")

        outcome = await _book(reconciler, "0", "0")

        assert outcome.action == ReconcileAction.DELETED
        assert store.entries == {}

    @pytest.mark.asyncio
    async def test_draft_invoice_counts_as_unbilled(self, reconciler, store):
        created = await _book(reconciler, "150")
        store.attach_invoice(created.entry_id, "inv-1", status="Draft")

        outcome = await _book(reconciler, "100")

        assert outcome.action == ReconcileAction.UPDATED
        assert store.corrections() == []

    @pytest.mark.asyncio
    async def test_missing_invoice_counts_as_unbilled(self, reconciler, store):
        created = await _book(reconciler, "150")
        store.attach_invoice(created.entry_id, "inv-1")
        del store.invoices["inv-1"]

        outcome = await _book(reconciler, "100")

        assert outcome.action == ReconcileAction.UPDATED


class TestBilledBookings:
    """Billed bookings are never overwritten; changes become corrections."""

    @pytest.mark.asyncio
    async def test_change_creates_signed_delta(self, reconciler, store):
        created = await _book(reconciler, "150")
        store.attach_invoice(created.entry_id, "inv-1")

        outcome = await _book(reconciler, "100", "2")

        assert outcome.action == ReconcileAction.CORRECTED
        assert outcome.correction_amount == Decimal("-50")
        assert store.bookings()[0].amount == Decimal("150")
        corrections = store.corrections()
        assert len(corrections) == 1
        assert corrections[0].amount == Decimal("-50")
        assert corrections[0].kind == EntryKind.CORRECTION
        assert corrections[0].description == "Correction: 150 -> 100"

    @pytest.mark.asyncio
    async def test_zero_target_is_full_reversal(self, reconciler, store):
        created = await _book(reconciler, "150")
        store.attach_invoice(created.entry_id, "inv-1")

        outcome = await _book(reconciler, "0", "0")

        assert outcome.action == ReconcileAction.CORRECTED
        assert outcome.correction_amount == Decimal("-150")
        assert len(store.bookings()) == 1
        assert store.corrections()[0].description == "Correction: 0 units"

    @pytest.mark.asyncio
    async def test_rerun_after_correction_is_unchanged(self, reconciler, store):
        created = await _book(reconciler, "150")
        store.attach_invoice(created.entry_id, "inv-1")
        await _book(reconciler, "100", "2")
        before = store.snapshot()

        outcome = await _book(reconciler, "100", "2")

        assert outcome.action == ReconcileAction.UNCHANGED
        assert store.snapshot() == before

    @pytest.mark.asyncio
    async def test_corrections_accumulate_against_net(self, reconciler, store):
        created = await _book(reconciler, "150")
        store.attach_invoice(created.entry_id, "inv-1")
        await _book(reconciler, "100", "2")

        outcome = await _book(reconciler, "200", "4")

        assert outcome.correction_amount == Decimal("100")
        net = store.bookings()[0].amount + sum(c.amount for c in store.corrections())
        assert net == Decimal("200")

    @pytest.mark.asyncio
    async def test_invoice_back_in_draft_keeps_corrections_in_net(self, reconciler, store):
        created = await _book(reconciler, "150")
        store.attach_invoice(created.entry_id, "inv-1")
        await _book(reconciler, "100", "2")
        store.set_invoice_status("inv-1", "draft")

        outcome = await _book(reconciler, "80")

        assert outcome.action == ReconcileAction.UPDATED
        booking = store.bookings()[0]
        assert booking.amount == Decimal("130")
        assert booking.amount + store.corrections()[0].amount == Decimal("80")


class TestInvoiceLookupFailure:
    """An unreadable invoice status is never treated as unbilled."""

    @pytest.mark.asyncio
    async def test_abort_policy_raises(self, reconciler, store):
        created = await _book(reconciler, "150")
        store.attach_invoice(created.entry_id, "inv-1")
        store.fail_on["get_invoice_status"] = StorageError("timeout")

        with pytest.raises(InvoiceStatusUnavailableError, match="inv-1"):
            await _book(reconciler, "100")

        assert store.bookings()[0].amount == Decimal("150")
        assert store.corrections() == []

    @pytest.mark.asyncio
    async def test_treat_as_billed_policy_corrects(self, store):
        settings = LedgerSettings(
            invoice_lookup_failure_policy=InvoiceLookupFailurePolicy.TREAT_AS_BILLED,
        )
        reconciler = LedgerReconciler(store, store, settings)
        created = await _book(reconciler, "150")
        store.attach_invoice(created.entry_id, "inv-1")
        store.fail_on["get_invoice_status"] = StorageError("timeout")

        outcome = await _book(reconciler, "100")

        assert outcome.action == ReconcileAction.CORRECTED
        assert store.bookings()[0].amount == Decimal("150")

    @pytest.mark.asyncio
    async def test_unchanged_target_needs_no_lookup(self, reconciler, store):
        created = await _book(reconciler, "150")
        store.attach_invoice(created.entry_id, "inv-1")
        store.fail_on["get_invoice_status"] = StorageError("timeout")

        outcome = await _book(reconciler, "150")

        assert outcome.action == ReconcileAction.UNCHANGED


class TestPersonTracking:
    """Once/person grants are persisted alongside the booking."""

    @pytest.mark.asyncio
    async def test_tracks_newly_qualifying_persons(self, reconciler, store):
        outcome = await reconciler.reconcile(
            _key("clothing"), ONCE_PER_PERSON, Decimal("50"), Decimal("2"), ["u1", "u2"]
        )

        assert outcome.action == ReconcileAction.CREATED
        assert outcome.newly_tracked == ["u1", "u2"]
        tracked = await store.list_tracked(CUSTOMER, CAMPAIGN, AREA_A, "clothing")
        assert sorted(r.user_id for r in tracked) == ["u1", "u2"]
        assert all((r.week, r.year) == (WEEK, YEAR) for r in tracked)

    @pytest.mark.asyncio
    async def test_tracks_on_update(self, reconciler, store):
        await reconciler.reconcile(
            _key("clothing"), ONCE_PER_PERSON, Decimal("25"), Decimal("1"), ["u1"]
        )

        outcome = await reconciler.reconcile(
            _key("clothing"), ONCE_PER_PERSON, Decimal("50"), Decimal("2"), ["u2"]
        )

        assert outcome.action == ReconcileAction.UPDATED
        assert len(store.tracking) == 2

    @pytest.mark.asyncio
    async def test_other_rules_never_track(self, reconciler, store):
        outcome = await reconciler.reconcile(
            _key(), RULE, Decimal("50"), Decimal("1"), ["u1"]
        )

        assert outcome.newly_tracked == []
        assert store.tracking == {}

    @pytest.mark.asyncio
    async def test_tracking_records_are_write_once(self, reconciler, store):
        await reconciler.reconcile(
            _key("clothing"), ONCE_PER_PERSON, Decimal("25"), Decimal("1"), ["u1"]
        )
        first = dict(store.tracking)

        await reconciler.reconcile(
            _key("clothing"), ONCE_PER_PERSON, Decimal("25"), Decimal("1"), ["u1"]
        )

        assert store.tracking == first
