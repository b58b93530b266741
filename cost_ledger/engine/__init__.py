"""Cost allocation and ledger reconciliation engine."""

from cost_ledger.engine.attendance import AttendanceResolver
from cost_ledger.engine.errors import (
    CostEngineError,
    InvoiceStatusUnavailableError,
    RecomputeAbortedError,
)
from cost_ledger.engine.evaluator import (
    AreaWeekContext,
    CostRuleEvaluator,
    RuleEvaluation,
)
from cost_ledger.engine.reconciler import LedgerReconciler
from cost_ledger.engine.shares import ShareAllocator
from cost_ledger.engine.units import UnitCalculator, person_days, team_days

__all__ = [
    "AreaWeekContext",
    "AttendanceResolver",
    "CostEngineError",
    "CostRuleEvaluator",
    "InvoiceStatusUnavailableError",
    "LedgerReconciler",
    "RecomputeAbortedError",
    "RuleEvaluation",
    "ShareAllocator",
    "UnitCalculator",
    "person_days",
    "team_days",
]
