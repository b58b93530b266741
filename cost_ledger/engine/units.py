"""
Unit Calculation

Turns a rule's attendance subset into billable units:

| period | team                              | person                                  |
|--------|-----------------------------------|-----------------------------------------|
| day    | distinct active days              | sum of each person's active days        |
| week   | 1 if >= N distinct days           | persons with >= N active days           |
| block  | 1/B if >= N distinct days         | (persons with >= N active days) / B     |
| once   | 1 unless booked in another week   | persons not granted before              |

N is `min_active_days`, B is `block_weeks` (both from LedgerSettings).
Sunday never counts.

DESIGN DECISION: "once" rules are the only ones that read storage. State
written for the week being recomputed does not block that same week,
so recomputing a week again yields the same units instead of dropping
to zero.
"""

from decimal import Decimal
from typing import Optional

from cost_ledger.config import LedgerSettings, get_settings
from cost_ledger.models.costs import (
    AttendanceRecord,
    CostRule,
    LedgerKey,
    Period,
    UnitBasis,
    UnitResult,
)
from cost_ledger.services.storage import (
    LedgerStoreInterface,
    PersonTrackingStoreInterface,
)


def team_days(attendance: list[AttendanceRecord]) -> set[int]:
    """Days on which at least one person was active."""
    days: set[int] = set()
    for record in attendance:
        days |= record.active_days()
    return days


def person_days(attendance: list[AttendanceRecord]) -> dict[str, set[int]]:
    """Active days per person (records of the same person are merged)."""
    days: dict[str, set[int]] = {}
    for record in attendance:
        active = record.active_days()
        if active:
            days.setdefault(record.user_id, set()).update(active)
    return days


class UnitCalculator:
    """
    Computes units for one rule under its period policy.
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

    async def calculate(
        self,
        rule: CostRule,
        attendance: list[AttendanceRecord],
        key: LedgerKey,
    ) -> UnitResult:
        """
        Units of `rule` for the given attendance subset.

        Args:
            rule: The normalized cost rule
            attendance: Attendance relevant to the rule (already filtered)
            key: Ledger key being computed; scopes the "once" checks

        Returns:
            UnitResult; `newly_qualifying` is only filled for once/person
        """
        per_person = person_days(attendance)
        if not per_person:
            return UnitResult()

        if rule.period == Period.ONCE:
            if rule.unit_basis == UnitBasis.TEAM:
                return await self._once_for_team(key)
            return await self._once_per_person(per_person, key)

        return UnitResult(units=self.periodic_units(rule, attendance))

    def periodic_units(
        self,
        rule: CostRule,
        attendance: list[AttendanceRecord],
    ) -> Decimal:
        """Units for day/week/block rules. Pure."""
        minimum = self._settings.min_active_days
        block = Decimal(self._settings.block_weeks)
        is_team = rule.unit_basis == UnitBasis.TEAM

        if is_team:
            distinct = len(team_days(attendance))
            if rule.period == Period.DAY:
                return Decimal(distinct)
            qualifies = Decimal(1 if distinct >= minimum else 0)
        else:
            per_person = person_days(attendance)
            if rule.period == Period.DAY:
                return Decimal(sum(len(days) for days in per_person.values()))
            qualifies = Decimal(sum(
                1 for days in per_person.values() if len(days) >= minimum
            ))

        if rule.period == Period.WEEK:
            return qualifies
        if rule.period == Period.BLOCK:
            return qualifies / block
        raise ValueError(f"Not a periodic rule: {rule.period.value}")

    async def _once_for_team(self, key: LedgerKey) -> UnitResult:
        if await self._ledger_store.booking_exists_elsewhere(key):
            return UnitResult()
        return UnitResult(units=Decimal(1))

    async def _once_per_person(
        self,
        per_person: dict[str, set[int]],
        key: LedgerKey,
    ) -> UnitResult:
        tracked = {
            record.user_id: record
            for record in await self._tracking_store.list_tracked(
                key.customer_id,
                key.campaign_id,
                key.area_id,
                key.category,
            )
        }

        units = 0
        newly_qualifying = []
        for user_id in sorted(per_person):
            record = tracked.get(user_id)
            if record is None:
                newly_qualifying.append(user_id)
                units += 1
            elif (record.week, record.year) == (key.week, key.year):
                # Granted by an earlier run of this same week
                units += 1

        return UnitResult(units=Decimal(units), newly_qualifying=newly_qualifying)
