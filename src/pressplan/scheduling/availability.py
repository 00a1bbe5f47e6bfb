"""Staff availability index.

Free time is computed per staff member per calendar day on demand. Nothing
is pre-materialized, so roster edits take effect on the next query without
an invalidation protocol.
"""

import logging
from dataclasses import replace
from datetime import date
from typing import Iterable, Optional

from pressplan.domain.models import StaffMember
from pressplan.domain.timemodel import (
    DEFAULT_GRANULARITY,
    TimeInterval,
    merge_intervals,
    snap_inward,
    subtract,
)

logger = logging.getLogger(__name__)


class UnknownStaffError(KeyError):
    """Raised when a staff ID is not in the roster."""


class StaffAvailabilityIndex:
    """Answers "when is this staff member free on this day?".

    Free intervals are the day's working window minus blocked intervals,
    each piece trimmed inward to granularity boundaries.

    Example:
        >>> index = StaffAvailabilityIndex(staff, granularity=30)
        >>> index.free_intervals("S1", date(2024, 1, 15))
        [TimeInterval(2024-01-15 09:00-17:00)]
    """

    def __init__(
        self,
        staff: Iterable[StaffMember],
        granularity: int = DEFAULT_GRANULARITY,
    ):
        self.granularity = granularity
        self._staff: dict[str, StaffMember] = {}
        for member in staff:
            self.add_staff(member)

    def add_staff(self, member: StaffMember) -> None:
        """Add or replace a staff member, merging overlapping blocked time."""
        merged = merge_intervals(member.blocked_intervals)
        if len(merged) != len(member.blocked_intervals):
            logger.warning(
                "Merged overlapping or adjacent blocked intervals for staff %s (%d -> %d)",
                member.id,
                len(member.blocked_intervals),
                len(merged),
            )
        self._staff[member.id] = replace(member, blocked_intervals=merged)

    def remove_staff(self, staff_id: str) -> None:
        self._staff.pop(staff_id, None)

    def get_staff(self, staff_id: str) -> StaffMember:
        """Look up a staff member.

        Raises:
            UnknownStaffError: If the ID is not in the roster.
        """
        try:
            return self._staff[staff_id]
        except KeyError:
            raise UnknownStaffError(staff_id) from None

    def has_staff(self, staff_id: str) -> bool:
        return staff_id in self._staff

    @property
    def staff(self) -> list[StaffMember]:
        """All staff in roster order."""
        return list(self._staff.values())

    def working_interval(self, staff_id: str, day: date) -> Optional[TimeInterval]:
        """The raw working window for a day, or None on a day off."""
        window = self.get_staff(staff_id).get_window(day)
        if window is None:
            return None
        return window.on(day)

    def free_intervals(self, staff_id: str, day: date) -> list[TimeInterval]:
        """Ordered free intervals for a staff member on a date.

        Args:
            staff_id: Staff member to query.
            day: Calendar date.

        Returns:
            Granularity-aligned intervals, empty on a day off.
        """
        window = self.working_interval(staff_id, day)
        if window is None:
            return []

        member = self._staff[staff_id]
        blocked = [b for b in member.blocked_intervals if b.overlaps(window)]
        result = []
        for piece in subtract(window, blocked):
            snapped = snap_inward(piece, self.granularity)
            if snapped is not None:
                result.append(snapped)
        return result

    def free_minutes(self, staff_id: str, day: date) -> int:
        """Total free minutes on a date."""
        return sum(i.duration_minutes for i in self.free_intervals(staff_id, day))

    def capacity_minutes(self, staff_id: str, day: date) -> int:
        """Schedulable minutes on a date: free time capped by daily capacity."""
        member = self.get_staff(staff_id)
        return min(member.daily_capacity_minutes, self.free_minutes(staff_id, day))
