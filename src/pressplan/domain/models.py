"""Domain models for the production scheduling system.

This module contains the core data structures shared by every component:
jobs and their phase breakdowns, catalog products, staff members with their
working windows, and committed assignments.
"""

from dataclasses import dataclass, field
from datetime import date, time
from enum import Enum
from typing import Optional

from pressplan.domain.timemodel import (
    MINUTES_PER_DAY,
    TimeInterval,
    TimePoint,
    from_date,
    to_datetime,
)


class JobPriority(Enum):
    """Priority tier of a job.

    Priority only decides the order in which a batch of unscheduled jobs is
    offered to the scheduler. It never bumps a committed assignment.
    """

    LOW = "Low"
    MEDIUM = "Medium"
    HIGH = "High"

    @property
    def rank(self) -> int:
        """Sort rank, lower is processed first."""
        return {JobPriority.HIGH: 0, JobPriority.MEDIUM: 1, JobPriority.LOW: 2}[self]


class JobStatus(Enum):
    """Lifecycle status of a job."""

    NOT_STARTED = "Not Started"
    PENDING = "Pending"
    IN_PRODUCTION = "In Production"
    COMPLETED = "Completed"
    DELIVERED = "Delivered"


class JobType(Enum):
    """Kind of print work a product belongs to."""

    DIGITAL_PRINTING = "Digital Printing"
    WIDE_FORMAT = "Wide Format"
    SCREEN_PRINTING = "Screen Printing"
    DTF = "DTF"
    EMBROIDERY = "Embroidery"


@dataclass(frozen=True)
class JobPhaseBreakdown:
    """Time required by one product line of a job, split by phase.

    Attributes:
        setup_minutes: Machine/material preparation time.
        production_minutes: Run time, quantity multipliers already applied.
        finishing_minutes: Cutting, packing and other post-processing.
    """

    setup_minutes: int = 0
    production_minutes: int = 0
    finishing_minutes: int = 0

    def __post_init__(self):
        for name in ("setup_minutes", "production_minutes", "finishing_minutes"):
            if getattr(self, name) < 0:
                raise ValueError(f"{name} must not be negative")

    @property
    def raw_minutes(self) -> int:
        """Unrounded sum of all three phases."""
        return self.setup_minutes + self.production_minutes + self.finishing_minutes

    @classmethod
    def from_product(cls, product: "Product") -> "JobPhaseBreakdown":
        """Build a breakdown from a catalog product's unit times."""
        return cls(
            setup_minutes=product.setup_time,
            production_minutes=product.production_time,
            finishing_minutes=product.finishing_time,
        )


@dataclass(frozen=True)
class Product:
    """A product catalog entry.

    Attributes:
        id: Catalog identifier.
        name: Display name.
        job_type: Kind of print work.
        production_time: Production minutes.
        setup_time: Additional setup minutes.
        finishing_time: Additional finishing minutes.
    """

    id: str
    name: str
    job_type: JobType
    production_time: int
    setup_time: int = 0
    finishing_time: int = 0


@dataclass(frozen=True)
class Job:
    """A print job handed to the scheduler.

    Jobs are never mutated in place: whenever the required time, due date
    or priority changes, a new Job is submitted and re-evaluated.

    Attributes:
        id: Unique job identifier.
        phases: Phase breakdown per product line of the job.
        priority: Priority tier.
        due_date: Optional deadline as epoch minutes.
        preferred_staff_id: Staff member the job should go to, if any.
        status: Lifecycle status.
        title: Short job title.
        customer: Customer name.
    """

    id: str
    phases: tuple[JobPhaseBreakdown, ...] = ()
    priority: JobPriority = JobPriority.MEDIUM
    due_date: Optional[TimePoint] = None
    preferred_staff_id: Optional[str] = None
    status: JobStatus = JobStatus.NOT_STARTED
    title: str = ""
    customer: str = ""

    def __post_init__(self):
        # Accept lists from callers but keep the record hashable.
        if not isinstance(self.phases, tuple):
            object.__setattr__(self, "phases", tuple(self.phases))


@dataclass(frozen=True)
class WorkingWindow:
    """Working hours for one weekday, as minutes from midnight.

    Attributes:
        start_minute: Minute of day when work starts.
        end_minute: Minute of day when work ends (exclusive).
    """

    start_minute: int
    end_minute: int

    def __post_init__(self):
        if not 0 <= self.start_minute < self.end_minute <= MINUTES_PER_DAY:
            raise ValueError(
                f"Invalid working window {self.start_minute}-{self.end_minute}"
            )

    @classmethod
    def from_times(cls, start: time, end: time) -> "WorkingWindow":
        """Create a window from time objects."""
        return cls(
            start_minute=start.hour * 60 + start.minute,
            end_minute=end.hour * 60 + end.minute,
        )

    @classmethod
    def standard_week(
        cls,
        start: time = time(8, 0),
        end: time = time(17, 0),
        working_days: tuple[int, ...] = (0, 1, 2, 3, 4),
    ) -> dict[int, "WorkingWindow"]:
        """Shop default: the same hours on each working weekday."""
        window = cls.from_times(start, end)
        return {weekday: window for weekday in working_days}

    def on(self, d: date) -> TimeInterval:
        """The absolute interval this window covers on a given date."""
        midnight = from_date(d)
        return TimeInterval(midnight + self.start_minute, midnight + self.end_minute)

    @property
    def duration_minutes(self) -> int:
        return self.end_minute - self.start_minute


@dataclass
class StaffMember:
    """A member of the production staff.

    Attributes:
        id: Unique staff identifier.
        name: Display name.
        daily_capacity_minutes: Maximum scheduled minutes per day.
        working_windows: Weekday (Monday=0) to working hours; absent = day off.
        blocked_intervals: Absolute periods (meetings, time off) removed from
            the working windows.
        active: Inactive staff are never offered work.
        department: Free-form department label.
    """

    id: str
    name: str = ""
    daily_capacity_minutes: int = 480  # 8 hours default
    working_windows: dict[int, WorkingWindow] = field(default_factory=dict)
    blocked_intervals: list[TimeInterval] = field(default_factory=list)
    active: bool = True
    department: str = ""

    def get_window(self, d: date) -> Optional[WorkingWindow]:
        """Working window for a date, or None on a day off."""
        return self.working_windows.get(d.weekday())

    def works_on(self, d: date) -> bool:
        """Check if the staff member has working hours on a date."""
        return self.get_window(d) is not None


@dataclass(frozen=True)
class Assignment:
    """A committed placement of a job on a staff member's time.

    Assignments are immutable. Moving a job means replacing its assignment
    through the scheduler, never editing one.

    Attributes:
        job_id: The placed job.
        staff_id: Staff member doing the work.
        start: First minute of the work (inclusive).
        end: End of the work (exclusive).
    """

    job_id: str
    staff_id: str
    start: TimePoint
    end: TimePoint

    def __post_init__(self):
        if self.end <= self.start:
            raise ValueError(
                f"Assignment for job {self.job_id} must end after it starts"
            )

    @property
    def interval(self) -> TimeInterval:
        """The assignment's time as an interval."""
        return TimeInterval(self.start, self.end)

    @property
    def duration_minutes(self) -> int:
        return self.end - self.start

    @property
    def schedule_date(self) -> date:
        """Calendar date the assignment starts on."""
        return to_datetime(self.start).date()

    def __repr__(self) -> str:
        start = to_datetime(self.start)
        end = to_datetime(self.end)
        return (
            f"Assignment({self.job_id} -> {self.staff_id}: "
            f"{start.strftime('%Y-%m-%d %H:%M')}-{end.strftime('%H:%M')})"
        )
