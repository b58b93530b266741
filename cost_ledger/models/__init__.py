"""
Data Models Package

This package contains all Pydantic models used by the cost ledger.
All data flowing through the engine must conform to these schemas.
"""

from cost_ledger.models.costs import (
    BILLABLE_DAYS,
    DRAFT_INVOICE_STATUS,
    AreaCostSettings,
    AttendanceRecord,
    CostCategory,
    CostConfig,
    CostProfile,
    CostRule,
    CostSource,
    DayOverride,
    Distribution,
    EffectiveCosts,
    EntryKind,
    LedgerEntry,
    LedgerKey,
    LedgerSummary,
    Period,
    PersonCostTrackingRecord,
    ReconcileAction,
    RecomputeResult,
    RuleOutcome,
    SpecialLineItem,
    UnitBasis,
    UnitResult,
    ValidationIssue,
    ValidationResult,
    WeeklyAssignment,
    WerberAssignment,
)
from cost_ledger.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)

__all__ = [
    # Cost models
    "BILLABLE_DAYS",
    "DRAFT_INVOICE_STATUS",
    "AreaCostSettings",
    "AttendanceRecord",
    "CostCategory",
    "CostConfig",
    "CostProfile",
    "CostRule",
    "CostSource",
    "DayOverride",
    "Distribution",
    "EffectiveCosts",
    "EntryKind",
    "LedgerEntry",
    "LedgerKey",
    "LedgerSummary",
    "Period",
    "PersonCostTrackingRecord",
    "ReconcileAction",
    "RecomputeResult",
    "RuleOutcome",
    "SpecialLineItem",
    "UnitBasis",
    "UnitResult",
    "ValidationIssue",
    "ValidationResult",
    "WeeklyAssignment",
    "WerberAssignment",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
]
