"""
Cost Rule Evaluation

For one area and week, walks every active cost rule and special line
item, works out its target amount and hands it to the reconciler.

Per rule:
1. Pick the attendance subset
   - explicit distribution, this area named   -> the whole campaign
   - explicit distribution, other area named  -> nothing
   - otherwise                                -> this area's attendance
   - shared team-day rule                     -> every attributed day
2. Units from the UnitCalculator
3. Shared team-day rule: units times the area's share
4. target = units * unit price, rounded to the currency's minor unit
5. Reconcile

DESIGN DECISION: Rules are isolated from each other. A rule that fails
(read or write) is logged and reported as FAILED. The remaining rules
still run.
"""

from decimal import ROUND_HALF_UP, Decimal
from typing import Optional

import structlog
from pydantic import BaseModel, ConfigDict, Field

from cost_ledger.config import LedgerSettings, get_settings
from cost_ledger.engine.attendance import AttendanceResolver
from cost_ledger.engine.errors import RecomputeAbortedError
from cost_ledger.engine.reconciler import LedgerReconciler
from cost_ledger.engine.shares import ShareAllocator
from cost_ledger.engine.units import UnitCalculator
from cost_ledger.models.costs import (
    AttendanceRecord,
    CostRule,
    CostSource,
    Distribution,
    EffectiveCosts,
    LedgerKey,
    ReconcileAction,
    RuleOutcome,
)
from cost_ledger.services.storage import CostConfigReaderInterface

logger = structlog.get_logger("cost_ledger.engine")


class AreaWeekContext:
    """
    Everything the evaluator needs about one (customer, campaign, area,
    week, year): the campaign's raw attendance and its resolved views.
    """

    def __init__(
        self,
        customer_id: str,
        campaign_id: str,
        area_id: str,
        week: int,
        year: int,
        attendance: list[AttendanceRecord],
        resolver: AttendanceResolver,
    ):
        self.customer_id = customer_id
        self.campaign_id = campaign_id
        self.area_id = area_id
        self.week = week
        self.year = year
        self.attendance = attendance
        self.area_attendance = resolver.filter_for_area(attendance, area_id)
        self.attributed_attendance = resolver.filter_attributed(attendance)
        self.day_index = resolver.day_index(attendance)

    def key_for(self, category: str) -> LedgerKey:
        return LedgerKey(
            customer_id=self.customer_id,
            campaign_id=self.campaign_id,
            area_id=self.area_id,
            category=category,
            week=self.week,
            year=self.year,
        )


class RuleEvaluation(BaseModel):
    """Computed (not yet persisted) result of one rule."""
    model_config = ConfigDict(frozen=True)

    rule: CostRule
    key: LedgerKey
    units: Decimal
    share: Optional[Decimal] = None
    target_amount: Decimal
    newly_qualifying: list[str] = Field(default_factory=list)


class CostRuleEvaluator:
    """
    Evaluates and reconciles all rules of an area's effective cost profile.
    """

    def __init__(
        self,
        config_reader: CostConfigReaderInterface,
        unit_calculator: UnitCalculator,
        reconciler: LedgerReconciler,
        share_allocator: Optional[ShareAllocator] = None,
        settings: Optional[LedgerSettings] = None,
    ):
        self._config_reader = config_reader
        self._unit_calculator = unit_calculator
        self._reconciler = reconciler
        self._share_allocator = share_allocator or ShareAllocator()
        self._settings = settings or get_settings().ledger

    async def load_costs(self, customer_id: str, area_id: str) -> EffectiveCosts:
        """
        Resolve the profile that applies to an area.

        The area's own profile applies if it has individual costs;
        otherwise the customer's. An area without individual costs whose
        customer has no profile keeps its own (not shared).

        Raises:
            RecomputeAbortedError: If the area doesn't exist
        """
        area = await self._config_reader.get_area_costs(area_id)
        if area is None:
            raise RecomputeAbortedError(f"Area not found: {area_id}", area_id=area_id)

        if not area.individual_costs:
            customer_profile = await self._config_reader.get_customer_costs(customer_id)
            if customer_profile is not None:
                return EffectiveCosts(profile=customer_profile, source=CostSource.CUSTOMER)

        if area.profile.is_empty:
            return EffectiveCosts(profile=area.profile, source=CostSource.NONE)
        return EffectiveCosts(profile=area.profile, source=CostSource.AREA)

    def select_attendance(
        self,
        rule: CostRule,
        context: AreaWeekContext,
        shared: bool,
    ) -> list[AttendanceRecord]:
        """The attendance subset a rule is computed from."""
        if rule.distribution == Distribution.EXPLICIT and rule.explicit_area_id:
            if rule.explicit_area_id == context.area_id:
                return context.attendance
            return []
        if shared:
            return context.attributed_attendance
        return context.area_attendance

    async def evaluate_rule(
        self,
        rule: CostRule,
        context: AreaWeekContext,
        costs: EffectiveCosts,
    ) -> RuleEvaluation:
        """Compute units and target amount of one rule. Writes nothing."""
        shared = costs.is_customer_fallback and rule.is_shared_team_daily
        key = context.key_for(rule.category)

        subset = self.select_attendance(rule, context, shared)
        result = await self._unit_calculator.calculate(rule, subset, key)

        units = result.units
        share = None
        if shared:
            share = self._share_allocator.share_for(context.area_id, context.day_index)
            units = units * share

        target = (units * rule.unit_price).quantize(
            self._settings.amount_quantum,
            rounding=ROUND_HALF_UP,
        )
        return RuleEvaluation(
            rule=rule,
            key=key,
            units=units,
            share=share,
            target_amount=target,
            newly_qualifying=result.newly_qualifying,
        )

    async def run(
        self,
        context: AreaWeekContext,
        costs: EffectiveCosts,
    ) -> list[RuleOutcome]:
        """
        Evaluate and reconcile every rule; one outcome per rule.
        """
        outcomes = []
        for rule in costs.profile.rules(self._settings.special_category_prefix):
            try:
                evaluation = await self.evaluate_rule(rule, context, costs)
                outcome = await self._reconciler.reconcile(
                    evaluation.key,
                    rule,
                    evaluation.target_amount,
                    evaluation.units,
                    evaluation.newly_qualifying,
                )
                outcome.share = evaluation.share
            except Exception as e:
                logger.warning(
                    "rule_failed",
                    ledger_key=str(context.key_for(rule.category)),
                    label=rule.label,
                    error_type=type(e).__name__,
                    error=str(e),
                )
                outcome = RuleOutcome(
                    category=rule.category,
                    label=rule.label,
                    action=ReconcileAction.FAILED,
                    error=f"{type(e).__name__}: {e}",
                )
            outcomes.append(outcome)
        return outcomes
