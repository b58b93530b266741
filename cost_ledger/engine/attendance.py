"""
Attendance Resolution

Decides, for every canvasser and every working day, which campaign area
the attendance belongs to:

    day override  >  weekly assignment  >  none

Days that resolve to no area are not billed to anyone.

All methods are pure: they never touch storage and never mutate the
records they are given.
"""

from typing import Callable, Optional

from cost_ledger.models.costs import (
    AttendanceRecord,
    DayOverride,
    WeeklyAssignment,
)


class AttendanceResolver:
    """
    Resolves effective areas for one campaign week.

    Built from the week's assignments and overrides; applied to that
    week's attendance.
    """

    def __init__(
        self,
        assignments: list[WeeklyAssignment],
        overrides: list[DayOverride],
    ):
        self._defaults: dict[str, str] = {}
        for assignment in assignments:
            for binding in assignment.werbers:
                self._defaults[binding.werber_id] = binding.area_id

        self._overrides: dict[tuple[str, int], str] = {
            (override.werber_id, override.day): override.area_id
            for override in overrides
        }

    def effective_area(self, werber_id: str, day: int) -> Optional[str]:
        """The area a canvasser works in on `day`, or None."""
        override = self._overrides.get((werber_id, day))
        if override is not None:
            return override
        return self._defaults.get(werber_id)

    def _filter(
        self,
        attendance: list[AttendanceRecord],
        keep_area: Callable[[Optional[str]], bool],
    ) -> list[AttendanceRecord]:
        filtered = []
        for record in attendance:
            days = {
                day for day in record.active_days()
                if keep_area(self.effective_area(record.user_id, day))
            }
            if days:
                filtered.append(record.restricted_to(days))
        return filtered

    def filter_for_area(
        self,
        attendance: list[AttendanceRecord],
        area_id: str,
    ) -> list[AttendanceRecord]:
        """
        Attendance restricted to one area.

        Days that belong to another area (or to none) are cleared;
        records left without an active day are dropped.
        """
        return self._filter(attendance, lambda area: area == area_id)

    def filter_attributed(
        self,
        attendance: list[AttendanceRecord],
    ) -> list[AttendanceRecord]:
        """Attendance restricted to days that belong to some area."""
        return self._filter(attendance, lambda area: area is not None)

    def day_index(
        self,
        attendance: list[AttendanceRecord],
    ) -> dict[str, set[int]]:
        """Map of area id to the set of days anyone was active there."""
        index: dict[str, set[int]] = {}
        for record in attendance:
            for day in record.active_days():
                area = self.effective_area(record.user_id, day)
                if area is not None:
                    index.setdefault(area, set()).add(day)
        return index
