"""Read-only calendar views over the assignment set.

Projections take a snapshot of the store once and never write back, so a
calendar can be rendered while the scheduler keeps committing.
"""

from collections import OrderedDict
from dataclasses import dataclass
from datetime import date, timedelta
from typing import Iterable, Optional, Union

from pressplan.domain.models import Assignment, Job, StaffMember
from pressplan.domain.timemodel import format_time, from_date
from pressplan.scheduling.availability import StaffAvailabilityIndex
from pressplan.scheduling.store import AssignmentStore


@dataclass(frozen=True)
class CalendarEntry:
    """One assignment with its job and staff records.

    Attributes:
        assignment: The committed assignment.
        job: The job record, if known.
        staff: The staff record, if still in the roster.
    """

    assignment: Assignment
    job: Optional[Job] = None
    staff: Optional[StaffMember] = None

    @property
    def title(self) -> str:
        if self.job is not None and self.job.title:
            return self.job.title
        return self.assignment.job_id

    @property
    def staff_name(self) -> str:
        if self.staff is not None and self.staff.name:
            return self.staff.name
        return self.assignment.staff_id

    @property
    def time_range(self) -> str:
        return f"{format_time(self.assignment.start)}-{format_time(self.assignment.end)}"


@dataclass
class StaffUtilization:
    """Assigned versus available minutes for one staff member over a period.

    Attributes:
        staff_id: The staff member.
        assigned_minutes: Minutes of work starting in the period.
        capacity_minutes: Sum of min(daily capacity, free minutes) per day.
    """

    staff_id: str
    assigned_minutes: int
    capacity_minutes: int

    @property
    def percent(self) -> float:
        if self.capacity_minutes == 0:
            return 0.0
        return 100.0 * self.assigned_minutes / self.capacity_minutes


class CalendarProjection:
    """Day, week and month views of committed assignments.

    Example:
        >>> projection = CalendarProjection(scheduler.store, scheduler.jobs,
        ...                                 scheduler.availability)
        >>> for entry in projection.for_day(date(2024, 1, 15)):
        ...     print(entry.time_range, entry.title)
    """

    def __init__(
        self,
        assignments: Union[AssignmentStore, Iterable[Assignment]],
        jobs: Optional[dict[str, Job]] = None,
        availability: Optional[StaffAvailabilityIndex] = None,
    ):
        if isinstance(assignments, AssignmentStore):
            assignments = assignments.snapshot()
        self._assignments = sorted(assignments, key=lambda a: (a.start, a.staff_id))
        self.jobs = dict(jobs or {})
        self.availability = availability

    def _entry(self, assignment: Assignment) -> CalendarEntry:
        staff = None
        if self.availability is not None and self.availability.has_staff(assignment.staff_id):
            staff = self.availability.get_staff(assignment.staff_id)
        return CalendarEntry(
            assignment=assignment,
            job=self.jobs.get(assignment.job_id),
            staff=staff,
        )

    def for_day(self, day: date) -> list[CalendarEntry]:
        """Assignments starting on a day, sorted by start time."""
        day_start = from_date(day)
        day_end = from_date(day + timedelta(days=1))
        return [
            self._entry(a) for a in self._assignments if day_start <= a.start < day_end
        ]

    def for_week(self, week_start: date) -> list[list[CalendarEntry]]:
        """Seven day lists starting at week_start."""
        return [self.for_day(week_start + timedelta(days=i)) for i in range(7)]

    def for_month(self, month_start: date) -> "OrderedDict[date, list[CalendarEntry]]":
        """Every day of month_start's month mapped to its entries, in order."""
        first = month_start.replace(day=1)
        if first.month == 12:
            next_month = first.replace(year=first.year + 1, month=1)
        else:
            next_month = first.replace(month=first.month + 1)

        month: OrderedDict[date, list[CalendarEntry]] = OrderedDict()
        day = first
        while day < next_month:
            month[day] = self.for_day(day)
            day += timedelta(days=1)
        return month

    def staff_utilization(
        self,
        start_date: date,
        end_date: date,
    ) -> list[StaffUtilization]:
        """Workload per staff member over [start_date, end_date] inclusive.

        Raises:
            ValueError: If no availability index was given or the range is
                reversed.
        """
        if self.availability is None:
            raise ValueError("staff_utilization needs an availability index")
        if end_date < start_date:
            raise ValueError(f"end_date {end_date} is before start_date {start_date}")

        assigned: dict[str, int] = {}
        for assignment in self._assignments:
            if start_date <= assignment.schedule_date <= end_date:
                assigned[assignment.staff_id] = (
                    assigned.get(assignment.staff_id, 0) + assignment.duration_minutes
                )

        result = []
        for member in self.availability.staff:
            capacity = 0
            day = start_date
            while day <= end_date:
                capacity += self.availability.capacity_minutes(member.id, day)
                day += timedelta(days=1)
            result.append(
                StaffUtilization(
                    staff_id=member.id,
                    assigned_minutes=assigned.get(member.id, 0),
                    capacity_minutes=capacity,
                )
            )
        return result
