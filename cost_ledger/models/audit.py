"""
Audit Models for the Campaign Cost Ledger

Every ledger mutation and every recompute run is logged for audit
purposes. This provides:
1. Traceability of every booking and correction back to its trigger
2. Debugging information when a rule fails to persist
3. A record of configuration problems that were tolerated

DESIGN DECISION: Audit logs are append-only. We never delete or modify them.
"""

import json
from datetime import datetime
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field


class AuditEventType(str, Enum):
    """
    Types of events we audit.
    """
    # Recompute lifecycle
    RECOMPUTE_STARTED = "recompute_started"
    RECOMPUTE_COMPLETED = "recompute_completed"
    RECOMPUTE_ABORTED = "recompute_aborted"

    # Ledger mutations
    BOOKING_CREATED = "booking_created"
    BOOKING_UPDATED = "booking_updated"
    BOOKING_DELETED = "booking_deleted"
    CORRECTION_CREATED = "correction_created"
    PERSONS_TRACKED = "persons_tracked"

    # Failures and findings
    RULE_FAILED = "rule_failed"
    CONFIG_WARNING = "config_warning"


class AuditSeverity(str, Enum):
    """Severity level for audit events."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class AuditEvent(BaseModel):
    """
    A single audit event.
    """

    # Identity
    event_id: UUID = Field(
        default_factory=uuid4,
        description="Unique event identifier"
    )
    timestamp: datetime = Field(
        default_factory=datetime.utcnow,
        description="When the event occurred (UTC)"
    )

    # Event classification
    event_type: AuditEventType = Field(
        ...,
        description="Type of event"
    )
    severity: AuditSeverity = Field(
        default=AuditSeverity.INFO,
        description="Event severity"
    )

    # Context - what entity is this about?
    entity_type: Optional[str] = Field(
        default=None,
        description="Type of entity (e.g., 'ledger_entry', 'area')"
    )
    entity_id: Optional[str] = Field(
        default=None,
        description="ID of the entity this event relates to"
    )

    # Correlation - all events of one recompute trigger share it
    correlation_id: Optional[UUID] = None

    description: str = Field(
        ...,
        max_length=500,
        description="Human-readable description of what happened"
    )
    details: dict[str, Any] = Field(default_factory=dict)

    error_code: Optional[str] = None
    error_message: Optional[str] = None

    def to_log_dict(self) -> dict:
        """
        Convert to a dictionary suitable for structured logging.
        """
        return {
            "event_id": str(self.event_id),
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "severity": self.severity.value,
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "correlation_id": str(self.correlation_id) if self.correlation_id else None,
            "description": self.description,
            "details": self.details,
            "error_code": self.error_code,
            "error_message": self.error_message,
        }

    def to_sheets_row(self) -> list:
        """
        Convert to a row suitable for Google Sheets storage.

        Returns columns in order:
        [event_id, timestamp, event_type, severity, entity_type, entity_id,
         correlation_id, description, details_json, error_message]
        """
        return [
            str(self.event_id),
            self.timestamp.isoformat(),
            self.event_type.value,
            self.severity.value,
            self.entity_type or "",
            self.entity_id or "",
            str(self.correlation_id) if self.correlation_id else "",
            self.description,
            json.dumps(self.details, default=str) if self.details else "",
            self.error_message or "",
        ]


class AuditEventBuilder:
    """
    Helper class to build audit events with common patterns.

    Usage:
        event = AuditEventBuilder.recompute_started(area_id, campaign_id, week, year, correlation_id)
        event = AuditEventBuilder.rule_failed(str(key), "StorageError", message, correlation_id)
    """

    @staticmethod
    def recompute_started(
        area_id: str,
        campaign_id: str,
        week: int,
        year: int,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.RECOMPUTE_STARTED,
            entity_type="area",
            entity_id=area_id,
            correlation_id=correlation_id,
            description=f"Cost recompute started for KW{week}/{year}",
            details={
                "campaign_id": campaign_id,
                "week": week,
                "year": year,
            },
        )

    @staticmethod
    def recompute_completed(
        area_id: str,
        rule_count: int,
        failed_count: int,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.RECOMPUTE_COMPLETED,
            severity=AuditSeverity.WARNING if failed_count else AuditSeverity.INFO,
            entity_type="area",
            entity_id=area_id,
            correlation_id=correlation_id,
            description=(
                f"Cost recompute completed: {rule_count} rules, "
                f"{failed_count} failed"
            ),
            details={
                "rule_count": rule_count,
                "failed_count": failed_count,
            },
        )

    @staticmethod
    def recompute_aborted(
        area_id: str,
        error_message: str,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.RECOMPUTE_ABORTED,
            severity=AuditSeverity.ERROR,
            entity_type="area",
            entity_id=area_id,
            correlation_id=correlation_id,
            description="Cost recompute aborted before any write",
            error_message=error_message,
        )

    @staticmethod
    def ledger_mutation(
        event_type: AuditEventType,
        entry_id: Optional[UUID],
        ledger_key: str,
        amount: str,
        units: str,
        correlation_id: UUID,
    ) -> AuditEvent:
        verb = event_type.value.replace("_", " ")
        return AuditEvent(
            event_type=event_type,
            entity_type="ledger_entry",
            entity_id=str(entry_id) if entry_id else None,
            correlation_id=correlation_id,
            description=f"{verb.capitalize()}: {ledger_key} = {amount}",
            details={
                "ledger_key": ledger_key,
                "amount": amount,
                "units": units,
            },
        )

    @staticmethod
    def persons_tracked(
        ledger_key: str,
        user_ids: list[str],
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.PERSONS_TRACKED,
            entity_type="person_tracking",
            correlation_id=correlation_id,
            description=f"{len(user_ids)} persons granted one-time charge: {ledger_key}",
            details={
                "ledger_key": ledger_key,
                "user_ids": user_ids,
            },
        )

    @staticmethod
    def rule_failed(
        ledger_key: str,
        error_type: str,
        error_message: str,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.RULE_FAILED,
            severity=AuditSeverity.ERROR,
            entity_type="ledger_key",
            entity_id=ledger_key,
            correlation_id=correlation_id,
            description=f"Rule failed: {ledger_key}",
            error_code=error_type,
            error_message=error_message,
        )

    @staticmethod
    def config_warning(
        subject: str,
        issues: list[dict],
        correlation_id: Optional[UUID],
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.CONFIG_WARNING,
            severity=AuditSeverity.WARNING,
            entity_type="cost_profile",
            entity_id=subject,
            correlation_id=correlation_id,
            description=f"Cost configuration has {len(issues)} issues: {subject}",
            details={"issues": issues},
        )

