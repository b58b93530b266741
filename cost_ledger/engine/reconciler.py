"""
Ledger Reconciliation

Brings the ledger for one key (customer, campaign, area, category, week,
year) in line with a freshly computed target amount.

CRITICAL RULES:
1. A booking whose invoice is billed (exists and is not a draft) is never
   changed. The difference goes into a new CORRECTION entry.
2. An unbilled booking is updated in place, or deleted when the target
   drops to zero.
3. The comparison is always against the key's net amount (booking plus
   every correction), so running the same computation twice writes
   nothing the second time.

The reconciler does not retry. A failed write propagates to the caller,
which records it as a failed rule and moves on.
"""

from decimal import Decimal
from typing import Optional

from cost_ledger.config import (
    InvoiceLookupFailurePolicy,
    LedgerSettings,
    get_settings,
)
from cost_ledger.engine.errors import InvoiceStatusUnavailableError
from cost_ledger.models.costs import (
    DRAFT_INVOICE_STATUS,
    CostRule,
    EntryKind,
    LedgerEntry,
    LedgerKey,
    PersonCostTrackingRecord,
    ReconcileAction,
    RuleOutcome,
)
from cost_ledger.services.storage import (
    LedgerStoreInterface,
    PersonTrackingStoreInterface,
    StorageError,
)


class LedgerReconciler:
    """
    Reconciles computed target amounts into the ledger store.
    """

    def __init__(
        self,
        ledger_store: LedgerStoreInterface,
        tracking_store: PersonTrackingStoreInterface,
        settings: Optional[LedgerSettings] = None,
    ):
        self._ledger_store = ledger_store
        self._tracking_store = tracking_store
        self._settings = settings or get_settings().ledger

    def _is_zero(self, amount: Decimal) -> bool:
        return abs(amount) <= self._settings.amount_epsilon

    async def is_billed(self, booking: LedgerEntry) -> bool:
        """
        Whether a booking sits on a non-draft invoice.

        Raises:
            InvoiceStatusUnavailableError: If the lookup fails and the
                policy is ABORT
        """
        if not booking.invoice_id:
            return False

        try:
            status = await self._ledger_store.get_invoice_status(booking.invoice_id)
        except StorageError as e:
            policy = self._settings.invoice_lookup_failure_policy
            if policy == InvoiceLookupFailurePolicy.TREAT_AS_BILLED:
                return True
            raise InvoiceStatusUnavailableError(booking.invoice_id, str(e)) from e

        if status is None:
            return False
        return status.strip().lower() != DRAFT_INVOICE_STATUS

    def _new_entry(
        self,
        key: LedgerKey,
        rule: CostRule,
        kind: EntryKind,
        amount: Decimal,
        units: Decimal,
        description: Optional[str] = None,
    ) -> LedgerEntry:
        return LedgerEntry(
            customer_id=key.customer_id,
            campaign_id=key.campaign_id,
            area_id=key.area_id,
            category=key.category,
            unit_basis=rule.unit_basis,
            period=rule.period,
            kind=kind,
            amount=amount,
            units=units,
            unit_price=rule.unit_price,
            label=rule.label,
            week=key.week,
            year=key.year,
            description=description,
        )

    async def _track_persons(
        self,
        key: LedgerKey,
        rule: CostRule,
        user_ids: list[str],
    ) -> list[str]:
        if not rule.is_one_time_person or not user_ids:
            return []
        records = [
            PersonCostTrackingRecord(
                customer_id=key.customer_id,
                campaign_id=key.campaign_id,
                area_id=key.area_id,
                user_id=user_id,
                category=key.category,
                week=key.week,
                year=key.year,
            )
            for user_id in user_ids
        ]
        await self._tracking_store.upsert_tracked(records)
        return list(user_ids)

    async def reconcile(
        self,
        key: LedgerKey,
        rule: CostRule,
        target_amount: Decimal,
        units: Decimal,
        newly_qualifying: Optional[list[str]] = None,
    ) -> RuleOutcome:
        """
        Reconcile one ledger key against its target amount.

        Args:
            key: Ledger key
            rule: The rule the amount was computed from
            target_amount: Amount the key should net to (already rounded)
            units: Units behind the amount
            newly_qualifying: Persons granted a once/person charge by
                this computation

        Returns:
            RuleOutcome describing the action taken
        """
        newly_qualifying = newly_qualifying or []
        units = units.quantize(self._settings.units_quantum)
        outcome = RuleOutcome(
            category=key.category,
            label=rule.label,
            units=units,
            target_amount=target_amount,
            action=ReconcileAction.UNCHANGED,
        )

        booking = await self._ledger_store.find_booking(key)

        if booking is None:
            if self._is_zero(target_amount):
                outcome.action = ReconcileAction.SKIPPED
                return outcome
            created = await self._ledger_store.insert_entry(
                self._new_entry(key, rule, EntryKind.BOOKING, target_amount, units)
            )
            outcome.action = ReconcileAction.CREATED
            outcome.entry_id = created.id
            outcome.newly_tracked = await self._track_persons(key, rule, newly_qualifying)
            return outcome

        outcome.entry_id = booking.id
        corrections = await self._ledger_store.list_corrections(key)
        correction_total = sum((c.amount for c in corrections), Decimal("0"))
        previous_amount = booking.amount + correction_total

        if self._is_zero(target_amount - previous_amount):
            outcome.newly_tracked = await self._track_persons(key, rule, newly_qualifying)
            return outcome

        if await self.is_billed(booking):
            delta = target_amount - previous_amount
            if self._is_zero(target_amount):
                description = "Correction: 0 units"
            else:
                description = f"Correction: {previous_amount} -> {target_amount}"
            correction = await self._ledger_store.insert_entry(
                self._new_entry(
                    key, rule, EntryKind.CORRECTION, delta, units, description
                )
            )
            outcome.action = ReconcileAction.CORRECTED
            outcome.entry_id = correction.id
            outcome.correction_amount = delta
        elif self._is_zero(target_amount) and self._is_zero(correction_total):
            await self._ledger_store.delete_booking(booking.id)
            outcome.action = ReconcileAction.DELETED
        else:
            # Leftover corrections (invoice back in draft) stay in the net
            await self._ledger_store.update_booking(
                booking.id,
                amount=target_amount - correction_total,
                units=units,
                unit_price=rule.unit_price,
            )
            outcome.action = ReconcileAction.UPDATED

        outcome.newly_tracked = await self._track_persons(key, rule, newly_qualifying)
        return outcome
