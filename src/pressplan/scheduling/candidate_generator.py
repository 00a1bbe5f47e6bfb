"""Candidate generator for feasible job placements.

This module turns the availability index and the committed assignment set
into open intervals per staff member per day, and from those into concrete
placement options for a job. The greedy scheduler takes the earliest fit;
the CP-SAT planner chooses among all candidates.
"""

from collections import defaultdict
from dataclasses import dataclass
from datetime import date, timedelta
from typing import Iterable, Iterator, Optional

from pressplan.domain.models import Assignment
from pressplan.domain.timemodel import (
    TimeInterval,
    TimePoint,
    format_time,
    snap_inward,
    subtract,
    to_date,
)
from pressplan.scheduling.availability import StaffAvailabilityIndex


@dataclass(frozen=True)
class PlacementCandidate:
    """A candidate placement of a job.

    Attributes:
        job_id: ID of the job.
        staff_id: Staff member who would do the work.
        start: First minute of the placement.
        end: End of the placement (exclusive).
    """

    job_id: str
    staff_id: str
    start: TimePoint
    end: TimePoint

    @property
    def interval(self) -> TimeInterval:
        return TimeInterval(self.start, self.end)

    @property
    def day(self) -> date:
        return to_date(self.start)

    def __repr__(self) -> str:
        return (
            f"PlacementCandidate({self.job_id} -> {self.staff_id}: "
            f"{self.day} {format_time(self.start)}-{format_time(self.end)})"
        )


class CandidateGenerator:
    """Generates open intervals and placement candidates.

    An open interval is free working time that no committed assignment
    occupies, starting no earlier than the search start.
    """

    def __init__(self, availability: StaffAvailabilityIndex):
        self.availability = availability

    @property
    def granularity(self) -> int:
        return self.availability.granularity

    @staticmethod
    def group_by_staff(assignments: Iterable[Assignment]) -> dict[str, list[Assignment]]:
        """Group assignments by staff ID."""
        grouped: dict[str, list[Assignment]] = defaultdict(list)
        for assignment in assignments:
            grouped[assignment.staff_id].append(assignment)
        return grouped

    @staticmethod
    def days_from(start_at: TimePoint, horizon_days: int) -> Iterator[date]:
        """Calendar days of the search horizon, starting with start_at's day."""
        first = to_date(start_at)
        for offset in range(horizon_days):
            yield first + timedelta(days=offset)

    @staticmethod
    def committed_minutes(staff_assignments: Iterable[Assignment], day: date) -> int:
        """Minutes already committed on a day (by start date)."""
        return sum(
            a.duration_minutes for a in staff_assignments if a.schedule_date == day
        )

    def open_intervals(
        self,
        staff_id: str,
        day: date,
        staff_assignments: Iterable[Assignment],
        not_before: Optional[TimePoint] = None,
    ) -> list[TimeInterval]:
        """Free intervals of a day minus committed work.

        Args:
            staff_id: Staff member to query.
            day: Calendar date.
            staff_assignments: Committed assignments of this staff member.
            not_before: Earliest usable minute; time before it is dropped.

        Returns:
            Ordered, granularity-aligned open intervals.
        """
        busy = [a.interval for a in staff_assignments]
        result = []
        for free in self.availability.free_intervals(staff_id, day):
            if not_before is not None:
                if free.end <= not_before:
                    continue
                if free.start < not_before:
                    free = TimeInterval(not_before, free.end)
            for piece in subtract(free, busy):
                snapped = snap_inward(piece, self.granularity)
                if snapped is not None:
                    result.append(snapped)
        return result

    def has_daily_room(
        self,
        staff_id: str,
        day: date,
        staff_assignments: Iterable[Assignment],
        required_minutes: int,
    ) -> bool:
        """Check the daily capacity still fits the required minutes."""
        capacity = self.availability.get_staff(staff_id).daily_capacity_minutes
        used = self.committed_minutes(staff_assignments, day)
        return used + required_minutes <= capacity

    def first_fit(
        self,
        job_id: str,
        staff_id: str,
        required_minutes: int,
        staff_assignments: list[Assignment],
        start_at: TimePoint,
        horizon_days: int,
        allow_overbooking: bool = False,
    ) -> Optional[PlacementCandidate]:
        """Earliest placement for one staff member within the horizon.

        Days are scanned in order; within a day the first open interval long
        enough wins and the placement takes its earliest sub-range.
        """
        for day in self.days_from(start_at, horizon_days):
            if not allow_overbooking and not self.has_daily_room(
                staff_id, day, staff_assignments, required_minutes
            ):
                continue
            for interval in self.open_intervals(
                staff_id, day, staff_assignments, not_before=start_at
            ):
                if interval.duration_minutes >= required_minutes:
                    return PlacementCandidate(
                        job_id=job_id,
                        staff_id=staff_id,
                        start=interval.start,
                        end=interval.start + required_minutes,
                    )
        return None

    def generate_candidates(
        self,
        job_id: str,
        staff_id: str,
        required_minutes: int,
        staff_assignments: list[Assignment],
        start_at: TimePoint,
        horizon_days: int,
        step_minutes: Optional[int] = None,
    ) -> list[PlacementCandidate]:
        """All granularity-aligned placements of a job for one staff member.

        Args:
            job_id: The job to place.
            staff_id: Staff member to place it on.
            required_minutes: Duration of the job.
            staff_assignments: Committed assignments of this staff member.
            start_at: Earliest allowed start.
            horizon_days: Number of days to search.
            step_minutes: Spacing of start times (default: the granularity).

        Returns:
            Candidates in chronological order.
        """
        step = step_minutes or self.granularity
        candidates = []
        for day in self.days_from(start_at, horizon_days):
            for interval in self.open_intervals(
                staff_id, day, staff_assignments, not_before=start_at
            ):
                start = interval.start
                while start + required_minutes <= interval.end:
                    candidates.append(
                        PlacementCandidate(
                            job_id=job_id,
                            staff_id=staff_id,
                            start=start,
                            end=start + required_minutes,
                        )
                    )
                    start += step
        return candidates
