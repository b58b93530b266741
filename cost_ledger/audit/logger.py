"""
Audit Logger

DESIGN DECISION: Every ledger mutation and every recompute run is logged.
This provides:
1. Traceability from a ledger row back to the trigger that wrote it
2. A record of rules that failed while the rest of the batch went on
3. Visibility into tolerated configuration problems

The audit logger:
- Is async, like the stores it writes to
- Gracefully handles failures (a failed audit write never fails a recompute)
- Supports correlation IDs to trace all events of one trigger
"""

import logging
from typing import Optional
from uuid import UUID, uuid4

import structlog

from cost_ledger.config import get_settings
from cost_ledger.models.audit import AuditEvent, AuditEventBuilder, AuditEventType
from cost_ledger.models.costs import (
    LedgerKey,
    ReconcileAction,
    RecomputeResult,
    RuleOutcome,
    ValidationResult,
)
from cost_ledger.services.storage import AuditStorageInterface


_app_settings = get_settings().app
logging.basicConfig(format="%(message)s", level=_app_settings.log_level)

# Configure structlog for local logging
structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        structlog.processors.JSONRenderer()
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)


_ACTION_EVENTS = {
    ReconcileAction.CREATED: AuditEventType.BOOKING_CREATED,
    ReconcileAction.UPDATED: AuditEventType.BOOKING_UPDATED,
    ReconcileAction.DELETED: AuditEventType.BOOKING_DELETED,
    ReconcileAction.CORRECTED: AuditEventType.CORRECTION_CREATED,
}


class AuditLogger:
    """
    Central audit logging service.

    Logs events both to:
    1. Structured local log (for debugging)
    2. Audit storage (for persistence), if configured
    """

    def __init__(
        self,
        storage: Optional[AuditStorageInterface] = None,
    ):
        """
        Initialize audit logger.

        Args:
            storage: Storage backend for persistence.
                    If None, only logs locally.
        """
        self._storage = storage
        self._logger = structlog.get_logger("cost_ledger.audit").bind(
            environment=_app_settings.app_environment,
        )

    async def log(self, event: AuditEvent) -> bool:
        """
        Log an audit event.

        Always logs locally. Persists to storage if available.

        Returns True if storage write succeeded (or no storage configured).
        """
        log_dict = event.to_log_dict()

        if event.severity.value in ("error", "critical"):
            self._logger.error("audit_event", **log_dict)
        elif event.severity.value == "warning":
            self._logger.warning("audit_event", **log_dict)
        else:
            self._logger.info("audit_event", **log_dict)

        if self._storage:
            try:
                return await self._storage.append_event(event)
            except Exception as e:
                # Log failure but don't raise
                self._logger.error(
                    "audit_storage_failed",
                    error=str(e),
                    event_id=str(event.event_id),
                )
                return False

        return True

    async def log_recompute_started(
        self,
        area_id: str,
        campaign_id: str,
        week: int,
        year: int,
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.recompute_started(
            area_id=area_id,
            campaign_id=campaign_id,
            week=week,
            year=year,
            correlation_id=correlation_id,
        ))

    async def log_recompute_completed(self, result: RecomputeResult) -> None:
        await self.log(AuditEventBuilder.recompute_completed(
            area_id=result.area_id,
            rule_count=len(result.outcomes),
            failed_count=len(result.failed_outcomes),
            correlation_id=result.correlation_id,
        ))

    async def log_recompute_aborted(
        self,
        area_id: str,
        error_message: str,
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.recompute_aborted(
            area_id=area_id,
            error_message=error_message,
            correlation_id=correlation_id,
        ))

    async def log_rule_outcome(
        self,
        key: LedgerKey,
        outcome: RuleOutcome,
        correlation_id: UUID,
    ) -> None:
        """Log the ledger mutation (or failure) behind one rule outcome."""
        if outcome.failed:
            error_type, _, message = (outcome.error or "").partition(": ")
            await self.log(AuditEventBuilder.rule_failed(
                ledger_key=str(key),
                error_type=error_type or "Error",
                error_message=message or (outcome.error or ""),
                correlation_id=correlation_id,
            ))
            return

        event_type = _ACTION_EVENTS.get(outcome.action)
        if event_type is not None:
            amount = (
                outcome.correction_amount
                if outcome.correction_amount is not None
                else outcome.target_amount
            )
            await self.log(AuditEventBuilder.ledger_mutation(
                event_type=event_type,
                entry_id=outcome.entry_id,
                ledger_key=str(key),
                amount=str(amount),
                units=str(outcome.units),
                correlation_id=correlation_id,
            ))

        if outcome.newly_tracked:
            await self.log(AuditEventBuilder.persons_tracked(
                ledger_key=str(key),
                user_ids=outcome.newly_tracked,
                correlation_id=correlation_id,
            ))

    async def log_config_issues(
        self,
        validation: ValidationResult,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log validation issues of a cost profile, if there are any."""
        if not validation.issues:
            return
        issues = [
            {
                "field": issue.field,
                "type": issue.issue_type,
                "severity": issue.severity,
                "message": issue.message,
            }
            for issue in validation.issues
        ]
        await self.log(AuditEventBuilder.config_warning(
            subject=validation.subject,
            issues=issues,
            correlation_id=correlation_id,
        ))


def create_correlation_id() -> UUID:
    """
    Create a new correlation ID for tracking related events.

    Use this at the start of a recompute trigger and pass it through
    all subsequent operations.
    """
    return uuid4()
