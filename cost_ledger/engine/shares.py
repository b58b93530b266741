"""
Share Allocation for Shared Team Costs

A customer-level team cost charged per day (typically the vehicle) is
one rate for the whole campaign. When several areas are staffed in the
same week, each area carries the part of it that matches its share of
the staffed days:

    share(area) = days(area) / sum(days(a) for every area a)

The raw units of a shared rule are the campaign's distinct staffed days;
an area is charged those times its share. Shares add up to 1, so the
charged units of all areas add up to the campaign's staffed days.
"""

from decimal import Decimal


class ShareAllocator:
    """Computes an area's share of shared team-day costs."""

    def share_for(self, area_id: str, day_index: dict[str, set[int]]) -> Decimal:
        """Share of `area_id`; 0 if no area was active that week."""
        total = sum(len(days) for days in day_index.values())
        if total == 0:
            return Decimal("0")
        return Decimal(len(day_index.get(area_id, ()))) / Decimal(total)

