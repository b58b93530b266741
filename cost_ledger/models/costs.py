"""
Core Data Models for the Campaign Cost Ledger

These models define the strict schemas for all data flowing through the
cost engine:
1. Cost rules (per category and special line items)
2. Attendance, weekly assignments and day overrides
3. Ledger entries and one-time person tracking records
4. Results of a recompute run

DESIGN DECISION: Stored cost configurations are loosely typed and carry
several generations of spellings. They are normalized exactly once, at
read time, through the versioned tables in `legacy.py`. Everything past
this module works with validated enums.

DESIGN DECISION: Money is Decimal. Amounts are rounded to the currency's
minor unit when they are computed, never when they are compared.
"""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any, ClassVar, Optional
from uuid import UUID, uuid4

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    model_validator,
)

from cost_ledger.models.legacy import (
    DEFAULT_SPECIAL_PERIOD,
    normalize_category,
    normalize_period,
    normalize_unit_basis,
    rename_legacy_fields,
)


# Monday..Saturday. Sunday (day 6) is never billed.
BILLABLE_DAYS = range(6)

DRAFT_INVOICE_STATUS = "draft"


# =============================================================================
# ENUMS - Finite set of valid values
# =============================================================================

class CostCategory(str, Enum):
    """Fixed cost categories of a campaign."""
    VEHICLE = "vehicle"
    LODGING = "lodging"
    MEALS = "meals"
    CLOTHING = "clothing"
    CREDENTIALS = "credentials"


class UnitBasis(str, Enum):
    """Whether a cost is charged once for the team or for every person."""
    TEAM = "team"
    PERSON = "person"


class Period(str, Enum):
    """
    Period policy of a cost rule.

    BLOCK is a three-week accounting period; each qualifying week is
    charged a third of the rate.
    """
    DAY = "day"
    WEEK = "week"
    BLOCK = "block"
    ONCE = "once"


class Distribution(str, Enum):
    """How a rule's cost is attributed to campaign areas."""
    PROPORTIONAL = "proportional"
    EXPLICIT = "explicit"


class EntryKind(str, Enum):
    """
    Ledger entry kind.

    CRITICAL: Only one BOOKING exists per ledger key. CORRECTION entries
    are append-only and are the only way to change a billed booking.
    """
    BOOKING = "booking"
    CORRECTION = "correction"


class ReconcileAction(str, Enum):
    """What the reconciler did for one ledger key."""
    CREATED = "created"
    UPDATED = "updated"
    DELETED = "deleted"
    CORRECTED = "corrected"
    UNCHANGED = "unchanged"
    SKIPPED = "skipped"
    FAILED = "failed"


class CostSource(str, Enum):
    """Where the effective cost configuration of an area came from."""
    AREA = "area"
    CUSTOMER = "customer"
    NONE = "none"


def _enum_value(value: Any) -> Any:
    return value.value if isinstance(value, Enum) else value


# =============================================================================
# COST CONFIGURATION
# =============================================================================

class _RuleFields(BaseModel):
    """Fields shared by category costs and special line items."""

    model_config = ConfigDict(str_strip_whitespace=True, extra="ignore")

    unit_basis: UnitBasis = Field(
        default=UnitBasis.TEAM,
        description="Charge per team or per person"
    )
    period: Period = Field(
        default=Period.DAY,
        description="Period policy"
    )
    distribution: Distribution = Field(
        default=Distribution.PROPORTIONAL,
        description="How the cost is attributed to areas"
    )
    explicit_area_id: Optional[str] = Field(
        default=None,
        description="Area that carries the full cost under explicit distribution"
    )
    label: Optional[str] = Field(
        default=None,
        max_length=200,
        description="Display label for ledger rows"
    )

    # Filled in by normalization; not part of the stored record
    normalization_notes: list[str] = Field(
        default_factory=list,
        exclude=True,
    )

    default_period: ClassVar[str] = "day"

    @model_validator(mode="before")
    @classmethod
    def normalize_legacy_values(cls, data: Any) -> Any:
        """Rename retired field names and map retired enum spellings."""
        if not isinstance(data, dict):
            return data

        data = rename_legacy_fields(data)
        notes = list(data.get("normalization_notes") or [])

        raw_basis = _enum_value(data.get("unit_basis"))
        basis, known = normalize_unit_basis(raw_basis)
        if not known:
            notes.append(
                f"unit_basis {raw_basis!r} not recognized, defaulted to {basis!r}"
            )
        data["unit_basis"] = basis

        raw_period = _enum_value(data.get("period"))
        period, known = normalize_period(raw_period, default=cls.default_period)
        if not known:
            notes.append(
                f"period {raw_period!r} not recognized, defaulted to {period!r}"
            )
        data["period"] = period

        data["normalization_notes"] = notes
        return data


class CostConfig(_RuleFields):
    """
    Cost rule for one fixed category.

    `active` and `amount` are required: a stored rule missing either one
    is rejected instead of being treated as inactive.
    """

    active: bool = Field(
        ...,
        description="Whether the rule is charged at all"
    )
    amount: Decimal = Field(
        ...,
        ge=0,
        description="Price per unit"
    )


class SpecialLineItem(_RuleFields):
    """A named, ad hoc cost rule outside the fixed categories."""

    name: str = Field(
        ...,
        min_length=1,
        max_length=100,
        description="Free-text name, unique within a profile"
    )
    sum: Decimal = Field(
        ...,
        ge=0,
        description="Price per unit"
    )
    active: bool = True

    default_period: ClassVar[str] = DEFAULT_SPECIAL_PERIOD


class CostRule(BaseModel):
    """
    A normalized, evaluable rule.

    Both CostConfig and SpecialLineItem are turned into one of these
    before evaluation, so the engine never branches on where a rule
    came from.
    """
    model_config = ConfigDict(frozen=True)

    category: str
    label: str
    unit_price: Decimal
    unit_basis: UnitBasis
    period: Period
    distribution: Distribution = Distribution.PROPORTIONAL
    explicit_area_id: Optional[str] = None
    is_special: bool = False

    @property
    def is_one_time_person(self) -> bool:
        return self.period == Period.ONCE and self.unit_basis == UnitBasis.PERSON

    @property
    def is_shared_team_daily(self) -> bool:
        """Candidate for proration across areas (if the config is shared)."""
        return (
            self.unit_basis == UnitBasis.TEAM
            and self.period == Period.DAY
            and self.distribution == Distribution.PROPORTIONAL
        )


class CostProfile(BaseModel):
    """
    All cost rules of one owner (an area or a customer).
    """

    costs: dict[CostCategory, CostConfig] = Field(default_factory=dict)
    special_items: list[SpecialLineItem] = Field(default_factory=list)

    @model_validator(mode="before")
    @classmethod
    def normalize_category_keys(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        data = dict(data)
        raw_costs = data.get("costs") or {}
        costs = {}
        for key, config in raw_costs.items():
            category = normalize_category(_enum_value(key))
            if category is None:
                raise ValueError(f"Unknown cost category: {key!r}")
            costs[category] = config
        data["costs"] = costs
        data["special_items"] = data.get("special_items") or []
        return data

    @model_validator(mode="after")
    def vehicle_is_team_cost(self) -> "CostProfile":
        """A vehicle is shared by the team, whatever the stored basis says."""
        vehicle = self.costs.get(CostCategory.VEHICLE)
        if vehicle is not None and vehicle.unit_basis != UnitBasis.TEAM:
            self.costs[CostCategory.VEHICLE] = vehicle.model_copy(update={
                "unit_basis": UnitBasis.TEAM,
                "normalization_notes": vehicle.normalization_notes + [
                    f"vehicle unit_basis {vehicle.unit_basis.value!r} forced to 'team'"
                ],
            })
        return self

    @model_validator(mode="after")
    def special_item_names_unique(self) -> "CostProfile":
        """Two items with one name would share a ledger key."""
        names = [item.name for item in self.special_items]
        duplicates = sorted({name for name in names if names.count(name) > 1})
        if duplicates:
            raise ValueError(f"Duplicate special line items: {', '.join(duplicates)}")
        return self

    def rules(self, special_prefix: str = "special_") -> list[CostRule]:
        """
        Evaluable rules, in category order followed by special items.

        Inactive rules and rules priced at zero are left out.
        """
        rules = []
        for category in CostCategory:
            config = self.costs.get(category)
            if config is None or not config.active or not config.amount:
                continue
            rules.append(CostRule(
                category=category.value,
                label=config.label or category.value,
                unit_price=config.amount,
                unit_basis=config.unit_basis,
                period=config.period,
                distribution=config.distribution,
                explicit_area_id=config.explicit_area_id,
            ))

        for item in self.special_items:
            if not item.active or not item.sum:
                continue
            rules.append(CostRule(
                category=f"{special_prefix}{item.name}",
                label=item.label or item.name,
                unit_price=item.sum,
                unit_basis=item.unit_basis,
                period=item.period,
                distribution=item.distribution,
                explicit_area_id=item.explicit_area_id,
                is_special=True,
            ))
        return rules

    @property
    def is_empty(self) -> bool:
        return not self.costs and not self.special_items


class AreaCostSettings(BaseModel):
    """Cost settings stored on a campaign area."""

    area_id: str = Field(..., min_length=1)
    campaign_id: Optional[str] = None
    individual_costs: bool = Field(
        default=False,
        description="If False, the customer-level profile applies"
    )
    profile: CostProfile = Field(default_factory=CostProfile)


class EffectiveCosts(BaseModel):
    """The profile that actually applies to an area, and its origin."""

    profile: CostProfile = Field(default_factory=CostProfile)
    source: CostSource = CostSource.NONE

    @property
    def is_customer_fallback(self) -> bool:
        return self.source == CostSource.CUSTOMER


# =============================================================================
# ATTENDANCE & ASSIGNMENT
# =============================================================================

class AttendanceRecord(BaseModel):
    """
    One canvasser's attendance for one week.

    day_0 is Monday, day_5 is Saturday. Sunday flags in stored rows are
    ignored.
    """
    model_config = ConfigDict(extra="ignore")

    user_id: str = Field(..., min_length=1)
    week: int = Field(..., ge=1, le=53)
    campaign_id: Optional[str] = None
    day_0: bool = False
    day_1: bool = False
    day_2: bool = False
    day_3: bool = False
    day_4: bool = False
    day_5: bool = False

    def is_active(self, day: int) -> bool:
        if day not in BILLABLE_DAYS:
            return False
        return bool(getattr(self, f"day_{day}"))

    def active_days(self) -> set[int]:
        return {day for day in BILLABLE_DAYS if self.is_active(day)}

    def restricted_to(self, days: set[int]) -> "AttendanceRecord":
        """Copy with every day outside `days` cleared."""
        return self.model_copy(update={
            f"day_{day}": self.is_active(day) and day in days
            for day in BILLABLE_DAYS
        })


class WerberAssignment(BaseModel):
    """Default area of one canvasser for a week."""

    werber_id: str = Field(..., min_length=1)
    area_id: str = Field(..., min_length=1)


class WeeklyAssignment(BaseModel):
    """The week's default canvasser-to-area bindings."""

    week: int = Field(..., ge=1, le=53)
    campaign_id: Optional[str] = None
    werbers: list[WerberAssignment] = Field(default_factory=list)


class DayOverride(BaseModel):
    """Sends one canvasser to a different area for exactly one day."""

    werber_id: str = Field(..., min_length=1)
    week: int = Field(..., ge=1, le=53)
    day: int = Field(..., ge=0, le=6)
    area_id: str = Field(..., min_length=1)
    campaign_id: Optional[str] = None


# =============================================================================
# LEDGER
# =============================================================================

class LedgerKey(BaseModel):
    """The reconciliation tuple. At most one booking exists per key."""
    model_config = ConfigDict(frozen=True)

    customer_id: str
    campaign_id: str
    area_id: str
    category: str
    week: int = Field(..., ge=1, le=53)
    year: int = Field(..., ge=2000, le=2100)

    def __str__(self) -> str:
        return (
            f"{self.customer_id}/{self.campaign_id}/{self.area_id}/"
            f"{self.category}/KW{self.week}-{self.year}"
        )


class LedgerEntry(BaseModel):
    """
    A row of the cost ledger.

    CRITICAL: Once `invoice_id` points to a non-draft invoice, the
    booking's amount is frozen. Changes go into CORRECTION entries.
    """

    id: UUID = Field(default_factory=uuid4)
    created_at: datetime = Field(default_factory=datetime.utcnow)

    customer_id: str
    campaign_id: str
    area_id: str
    category: str
    unit_basis: UnitBasis
    period: Period
    kind: EntryKind = EntryKind.BOOKING

    amount: Decimal
    units: Decimal
    unit_price: Decimal
    label: str
    week: int = Field(..., ge=1, le=53)
    year: int = Field(..., ge=2000, le=2100)
    description: Optional[str] = Field(default=None, max_length=500)
    invoice_id: Optional[str] = None

    @property
    def key(self) -> LedgerKey:
        return LedgerKey(
            customer_id=self.customer_id,
            campaign_id=self.campaign_id,
            area_id=self.area_id,
            category=self.category,
            week=self.week,
            year=self.year,
        )


class PersonCostTrackingRecord(BaseModel):
    """
    Marks that a person already received a one-time per-person charge.

    Unique per (customer, campaign, area, user, category). The week and
    year of the grant are kept so a recompute of that same week still
    counts the person.
    """

    customer_id: str
    campaign_id: str
    area_id: str
    user_id: str
    category: str
    week: Optional[int] = Field(default=None, ge=1, le=53)
    year: Optional[int] = None
    created_at: datetime = Field(default_factory=datetime.utcnow)

    @property
    def unique_key(self) -> tuple[str, str, str, str, str]:
        return (
            self.customer_id,
            self.campaign_id,
            self.area_id,
            self.user_id,
            self.category,
        )


# =============================================================================
# ENGINE RESULTS
# =============================================================================

class UnitResult(BaseModel):
    """Units computed for one rule, plus persons granted a one-time charge."""

    units: Decimal = Decimal("0")
    newly_qualifying: list[str] = Field(default_factory=list)


class RuleOutcome(BaseModel):
    """What happened to one rule during a recompute."""

    category: str
    label: str
    units: Decimal = Decimal("0")
    share: Optional[Decimal] = None
    target_amount: Decimal = Decimal("0")
    action: ReconcileAction
    entry_id: Optional[UUID] = None
    correction_amount: Optional[Decimal] = None
    newly_tracked: list[str] = Field(default_factory=list)
    error: Optional[str] = None

    @property
    def failed(self) -> bool:
        return self.action == ReconcileAction.FAILED


class RecomputeResult(BaseModel):
    """Result of recomputing one (customer, campaign, area, week)."""

    customer_id: str
    campaign_id: str
    area_id: str
    week: int
    year: int
    correlation_id: UUID
    started_at: datetime = Field(default_factory=datetime.utcnow)
    completed_at: Optional[datetime] = None
    cost_source: CostSource = CostSource.NONE
    outcomes: list[RuleOutcome] = Field(default_factory=list)

    @property
    def failed_outcomes(self) -> list[RuleOutcome]:
        return [o for o in self.outcomes if o.failed]

    @property
    def has_failures(self) -> bool:
        return any(o.failed for o in self.outcomes)

    def outcome_for(self, category: str) -> Optional[RuleOutcome]:
        for outcome in self.outcomes:
            if outcome.category == category:
                return outcome
        return None


# =============================================================================
# VALIDATION MODELS
# =============================================================================

class ValidationIssue(BaseModel):
    """A single issue found in a cost configuration."""

    field: str = Field(
        ...,
        description="Rule or field with the issue"
    )
    issue_type: str = Field(
        ...,
        description="Type of issue (e.g., 'missing_area', 'legacy_fallback')"
    )
    message: str = Field(
        ...,
        description="Human-readable description of the issue"
    )
    severity: str = Field(
        ...,
        pattern="^(error|warning|info)$",
        description="Issue severity"
    )
    suggested_fix: Optional[str] = None


class ValidationResult(BaseModel):
    """
    Result of validating a cost profile.

    Stage 1: Schema validation (values present and in range)
    Stage 2: Semantic validation (rules that cannot be billed as intended)
    """

    subject: str = Field(
        ...,
        description="What was validated (e.g., 'area:<id>')"
    )
    validated_at: datetime = Field(default_factory=datetime.utcnow)
    schema_valid: bool
    semantic_valid: bool
    is_valid: bool
    issues: list[ValidationIssue] = Field(default_factory=list)

    @property
    def has_errors(self) -> bool:
        return any(issue.severity == "error" for issue in self.issues)

    @property
    def error_count(self) -> int:
        return sum(1 for issue in self.issues if issue.severity == "error")

    @property
    def warnings(self) -> list[ValidationIssue]:
        return [issue for issue in self.issues if issue.severity == "warning"]


# =============================================================================
# QUERY MODELS
# =============================================================================

class LedgerSummary(BaseModel):
    """Read-only totals over a slice of the ledger."""

    description: str
    entry_count: int = Field(default=0, ge=0)
    booked_total: Decimal = Decimal("0")
    correction_total: Decimal = Decimal("0")
    totals: dict[str, Decimal] = Field(
        default_factory=dict,
        description="Net amount per grouping key (category or area)"
    )

    @property
    def net_total(self) -> Decimal:
        return self.booked_total + self.correction_total
