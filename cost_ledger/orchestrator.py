"""
Main Orchestrator for the Campaign Cost Ledger

This module ties the components together and defines the recompute flow
run whenever attendance is edited or a cost configuration is saved:

    load costs + attendance + assignments + overrides
        -> resolve attendance per area and day
        -> evaluate every rule (shares, units, target amount)
        -> reconcile each rule into the ledger

DESIGN DECISION: The orchestrator enforces the boundaries:
- Nothing is written unless every input could be read
- One failing rule never stops the others
- Every run is audited under one correlation id
- Runs for the same key never interleave
"""

from datetime import datetime
from typing import Optional
from uuid import UUID

import structlog

from cost_ledger.audit import AuditLogger, create_correlation_id
from cost_ledger.config import LedgerSettings, get_settings, validate_all_settings
from cost_ledger.engine import (
    AreaWeekContext,
    AttendanceResolver,
    CostRuleEvaluator,
    LedgerReconciler,
    RecomputeAbortedError,
    ShareAllocator,
    UnitCalculator,
)
from cost_ledger.locks import KeyedLockRegistry
from cost_ledger.models.costs import RecomputeResult
from cost_ledger.services.storage import (
    AssignmentReaderInterface,
    AttendanceReaderInterface,
    CostConfigReaderInterface,
    GoogleSheetsAuditStorage,
    GoogleSheetsCampaignReader,
    GoogleSheetsClient,
    GoogleSheetsLedgerStore,
    GoogleSheetsTrackingStore,
    InMemoryStore,
    LedgerStoreInterface,
    PersonTrackingStoreInterface,
)
from cost_ledger.validation import CostConfigValidator


class LedgerRecomputeFlow:
    """
    Orchestrates the cost recompute for one area and week.

    Flow:
    1. Lock the (customer, campaign, area, week, year) key
    2. Load → effective costs, attendance, assignments, overrides
       (any failure aborts before a single write)
    3. Validate → configuration issues are logged, not fatal
    4. Evaluate + reconcile → per rule, isolated
    5. Audit → one event per ledger mutation and per failed rule
    """

    def __init__(
        self,
        config_reader: CostConfigReaderInterface,
        attendance_reader: AttendanceReaderInterface,
        assignment_reader: AssignmentReaderInterface,
        ledger_store: LedgerStoreInterface,
        tracking_store: PersonTrackingStoreInterface,
        audit_logger: Optional[AuditLogger] = None,
        settings: Optional[LedgerSettings] = None,
        locks: Optional[KeyedLockRegistry] = None,
    ):
        self._settings = settings or get_settings().ledger
        self._config_reader = config_reader
        self._attendance_reader = attendance_reader
        self._assignment_reader = assignment_reader
        self._audit_logger = audit_logger
        self._locks = locks or KeyedLockRegistry()
        self._validator = CostConfigValidator(self._settings)
        self._evaluator = CostRuleEvaluator(
            config_reader=config_reader,
            unit_calculator=UnitCalculator(ledger_store, tracking_store, self._settings),
            reconciler=LedgerReconciler(ledger_store, tracking_store, self._settings),
            share_allocator=ShareAllocator(),
            settings=self._settings,
        )

    async def recompute(
        self,
        customer_id: str,
        campaign_id: str,
        area_id: str,
        week: int,
        year: int,
        correlation_id: Optional[UUID] = None,
    ) -> RecomputeResult:
        """
        Recompute all cost bookings of one area for one week.

        Returns:
            RecomputeResult with one outcome per evaluated rule

        Raises:
            RecomputeAbortedError: If any input could not be loaded.
                No ledger write has happened in that case.
        """
        correlation_id = correlation_id or create_correlation_id()

        async with self._locks.hold((customer_id, campaign_id, area_id, week, year)):
            if self._audit_logger:
                await self._audit_logger.log_recompute_started(
                    area_id=area_id,
                    campaign_id=campaign_id,
                    week=week,
                    year=year,
                    correlation_id=correlation_id,
                )

            try:
                costs = await self._evaluator.load_costs(customer_id, area_id)
                attendance = await self._attendance_reader.list_attendance(campaign_id, week)
                assignments = await self._assignment_reader.list_assignments(campaign_id, week)
                overrides = await self._assignment_reader.list_overrides(campaign_id, week)
            except Exception as e:
                if self._audit_logger:
                    await self._audit_logger.log_recompute_aborted(
                        area_id=area_id,
                        error_message=f"{type(e).__name__}: {e}",
                        correlation_id=correlation_id,
                    )
                if isinstance(e, RecomputeAbortedError):
                    raise
                raise RecomputeAbortedError(
                    f"Failed to load inputs for area {area_id}: {e}",
                    area_id=area_id,
                ) from e

            result = RecomputeResult(
                customer_id=customer_id,
                campaign_id=campaign_id,
                area_id=area_id,
                week=week,
                year=year,
                correlation_id=correlation_id,
                cost_source=costs.source,
            )

            validation = self._validator.validate(
                costs.profile,
                subject=f"{costs.source.value}:{customer_id if costs.is_customer_fallback else area_id}",
            )
            if self._audit_logger:
                await self._audit_logger.log_config_issues(validation, correlation_id)

            context = AreaWeekContext(
                customer_id=customer_id,
                campaign_id=campaign_id,
                area_id=area_id,
                week=week,
                year=year,
                attendance=attendance,
                resolver=AttendanceResolver(assignments, overrides),
            )
            result.outcomes = await self._evaluator.run(context, costs)
            result.completed_at = datetime.utcnow()

            if self._audit_logger:
                for outcome in result.outcomes:
                    await self._audit_logger.log_rule_outcome(
                        context.key_for(outcome.category),
                        outcome,
                        correlation_id,
                    )
                await self._audit_logger.log_recompute_completed(result)

            return result

    async def recompute_campaign_week(
        self,
        customer_id: str,
        campaign_id: str,
        week: int,
        year: int,
        correlation_id: Optional[UUID] = None,
    ) -> list[RecomputeResult]:
        """
        Recompute every area of a campaign for one week.

        Needed whenever attendance moves between areas: shared costs are
        split by share, so one area's change changes the others' amounts.
        An area that aborts is skipped; the others still run.
        """
        correlation_id = correlation_id or create_correlation_id()
        area_ids = await self._config_reader.list_area_ids(campaign_id)

        results = []
        for area_id in area_ids:
            try:
                results.append(await self.recompute(
                    customer_id, campaign_id, area_id, week, year, correlation_id
                ))
            except RecomputeAbortedError:
                # Already audited by recompute()
                continue
        return results


def create_app_components(
    use_storage: bool = True,
    settings: Optional[LedgerSettings] = None,
) -> tuple[LedgerRecomputeFlow, Optional[GoogleSheetsClient]]:
    """
    Factory function to create the recompute flow with its stores.

    Args:
        use_storage: Whether to use Google Sheets storage.
                    Set to False (or leave Sheets unconfigured) to run
                    against an in-memory store.

    Returns:
        (recompute_flow, sheets_client)
    """
    logger = structlog.get_logger("cost_ledger")

    if use_storage:
        checks = validate_all_settings()
        if not checks["google_sheets"]:
            logger.warning(
                "storage_not_configured", error=checks["google_sheets_error"]
            )
            use_storage = False

    if use_storage:
        try:
            sheets_client = GoogleSheetsClient()
            reader = GoogleSheetsCampaignReader(sheets_client)
            ledger_store = GoogleSheetsLedgerStore(sheets_client)
            tracking_store = GoogleSheetsTrackingStore(sheets_client)
            audit_logger = AuditLogger(GoogleSheetsAuditStorage(sheets_client))
            flow = LedgerRecomputeFlow(
                config_reader=reader,
                attendance_reader=reader,
                assignment_reader=reader,
                ledger_store=ledger_store,
                tracking_store=tracking_store,
                audit_logger=audit_logger,
                settings=settings,
            )
            return flow, sheets_client
        except Exception as e:
            # Sheets unreachable - continue without it
            logger.warning("storage_unavailable", error=str(e))

    store = InMemoryStore()
    flow = LedgerRecomputeFlow(
        config_reader=store,
        attendance_reader=store,
        assignment_reader=store,
        ledger_store=store,
        tracking_store=store,
        audit_logger=AuditLogger(store),
        settings=settings,
    )
    return flow, None
