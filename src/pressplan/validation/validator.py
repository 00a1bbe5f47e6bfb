"""Conflict detection for assignment sets.

This module is the single source of truth for what makes an assignment set
inconsistent. The scheduler calls `validate` before every commit; `audit_all`
checks a whole set after loading persisted state or after bulk edits.
Conflicts are reported, never auto-resolved.
"""

import logging
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from typing import TYPE_CHECKING, Iterable, Optional

from pressplan.domain.duration import DurationCalculator, InvalidDurationError
from pressplan.domain.models import Assignment, Job
from pressplan.domain.timemodel import TimeInterval, to_datetime

if TYPE_CHECKING:
    from pressplan.scheduling.availability import StaffAvailabilityIndex

logger = logging.getLogger(__name__)


class ConflictType(Enum):
    """Types of assignment conflicts."""

    OVERLAP = "overlap"
    OVER_CAPACITY = "over_capacity"
    OUTSIDE_AVAILABILITY = "outside_availability"
    DUE_DATE_VIOLATION = "due_date_violation"
    DURATION_MISMATCH = "duration_mismatch"
    UNKNOWN_STAFF = "unknown_staff"
    UNKNOWN_JOB = "unknown_job"


@dataclass
class Conflict:
    """A single conflict found in an assignment set.

    Attributes:
        conflict_type: What kind of problem this is.
        message: Human-readable description.
        staff_id: Staff member concerned, if any.
        job_id: Job whose assignment has the problem, if any.
        overlapping_job_id: For overlaps, the job already holding the time.
        day: Calendar day concerned, for per-day checks.
        details: Extra machine-readable values.
    """

    conflict_type: ConflictType
    message: str
    staff_id: Optional[str] = None
    job_id: Optional[str] = None
    overlapping_job_id: Optional[str] = None
    day: Optional[date] = None
    details: dict = field(default_factory=dict)

    def __str__(self) -> str:
        parts = [f"[{self.conflict_type.value}]"]
        if self.staff_id:
            parts.append(f"Staff {self.staff_id}:")
        parts.append(self.message)
        if self.day is not None:
            parts.append(f"({self.day.isoformat()})")
        return " ".join(parts)


class ConflictDetector:
    """Detects overlaps, over-capacity and due-date violations.

    Example:
        >>> detector = ConflictDetector()
        >>> conflict = detector.validate("S1", proposed, store.snapshot())
        >>> for c in detector.audit_all(store.snapshot(), jobs, index):
        ...     print(c)
    """

    def __init__(self, duration_calculator: Optional[DurationCalculator] = None):
        self.duration_calculator = duration_calculator or DurationCalculator()

    def validate(
        self,
        staff_id: str,
        proposed: TimeInterval,
        existing: Iterable[Assignment],
        ignore_job_id: Optional[str] = None,
    ) -> Optional[Conflict]:
        """Check a proposed interval against one staff member's assignments.

        Only same-staff overlap counts; other staff may work at the same time.

        Args:
            staff_id: Staff member who would do the work.
            proposed: Interval to check.
            existing: Current assignment set.
            ignore_job_id: Job whose own assignment should be disregarded.

        Returns:
            None when the interval is free, otherwise the first conflict.
        """
        for assignment in existing:
            if assignment.staff_id != staff_id or assignment.job_id == ignore_job_id:
                continue
            if assignment.interval.overlaps(proposed):
                return Conflict(
                    conflict_type=ConflictType.OVERLAP,
                    message=(
                        f"{proposed!r} overlaps job {assignment.job_id} "
                        f"({assignment.interval!r})"
                    ),
                    staff_id=staff_id,
                    overlapping_job_id=assignment.job_id,
                )
        return None

    def audit_all(
        self,
        existing: Iterable[Assignment],
        jobs: Optional[dict[str, Job]] = None,
        availability: Optional["StaffAvailabilityIndex"] = None,
    ) -> list[Conflict]:
        """Scan a full assignment set for conflicts.

        Overlaps are always checked. Capacity, working-hours and unknown
        staff checks need the availability index; due-date and duration
        checks need the job lookup.

        Args:
            existing: Assignment set to audit.
            jobs: Optional dict mapping job IDs to Job objects.
            availability: Optional availability index for the roster.

        Returns:
            All conflicts found, grouped by staff member.
        """
        by_staff: dict[str, list[Assignment]] = defaultdict(list)
        for assignment in existing:
            by_staff[assignment.staff_id].append(assignment)

        conflicts: list[Conflict] = []
        for staff_id in sorted(by_staff):
            staff_assignments = sorted(by_staff[staff_id], key=lambda a: (a.start, a.end))
            self._audit_overlaps(staff_id, staff_assignments, conflicts)

            if availability is not None:
                if not availability.has_staff(staff_id):
                    conflicts.append(
                        Conflict(
                            conflict_type=ConflictType.UNKNOWN_STAFF,
                            message=f"{len(staff_assignments)} assignment(s) for unknown staff",
                            staff_id=staff_id,
                        )
                    )
                else:
                    self._audit_capacity(staff_id, staff_assignments, availability, conflicts)
                    self._audit_availability(
                        staff_id, staff_assignments, availability, conflicts
                    )

            if jobs is not None:
                for assignment in staff_assignments:
                    self._audit_job(assignment, jobs, conflicts)

        if conflicts:
            logger.warning("Audit found %d conflict(s)", len(conflicts))
        return conflicts

    def _audit_overlaps(
        self,
        staff_id: str,
        assignments: list[Assignment],
        conflicts: list[Conflict],
    ) -> None:
        """Linear scan over start-sorted assignments of one staff member."""
        reach: Optional[Assignment] = None
        for assignment in assignments:
            if reach is not None and assignment.start < reach.end:
                conflicts.append(
                    Conflict(
                        conflict_type=ConflictType.OVERLAP,
                        message=(
                            f"Job {assignment.job_id} ({assignment.interval!r}) overlaps "
                            f"job {reach.job_id} ({reach.interval!r})"
                        ),
                        staff_id=staff_id,
                        job_id=assignment.job_id,
                        overlapping_job_id=reach.job_id,
                        day=assignment.schedule_date,
                    )
                )
            if reach is None or assignment.end > reach.end:
                reach = assignment

    def _audit_capacity(
        self,
        staff_id: str,
        assignments: list[Assignment],
        availability: "StaffAvailabilityIndex",
        conflicts: list[Conflict],
    ) -> None:
        """Check committed minutes per day against daily capacity."""
        capacity = availability.get_staff(staff_id).daily_capacity_minutes
        per_day: dict[date, int] = defaultdict(int)
        for assignment in assignments:
            per_day[assignment.schedule_date] += assignment.duration_minutes

        for day in sorted(per_day):
            if per_day[day] > capacity:
                conflicts.append(
                    Conflict(
                        conflict_type=ConflictType.OVER_CAPACITY,
                        message=(
                            f"{per_day[day]} min assigned exceeds daily "
                            f"capacity {capacity} min"
                        ),
                        staff_id=staff_id,
                        day=day,
                        details={"assigned_minutes": per_day[day], "capacity": capacity},
                    )
                )

    def _audit_availability(
        self,
        staff_id: str,
        assignments: list[Assignment],
        availability: "StaffAvailabilityIndex",
        conflicts: list[Conflict],
    ) -> None:
        """Check every assignment lies inside the staff member's free time."""
        for assignment in assignments:
            free = availability.free_intervals(staff_id, assignment.schedule_date)
            if not any(interval.contains(assignment.interval) for interval in free):
                conflicts.append(
                    Conflict(
                        conflict_type=ConflictType.OUTSIDE_AVAILABILITY,
                        message=(
                            f"Job {assignment.job_id} ({assignment.interval!r}) is "
                            f"outside working hours or in blocked time"
                        ),
                        staff_id=staff_id,
                        job_id=assignment.job_id,
                        day=assignment.schedule_date,
                    )
                )

    def _audit_job(
        self,
        assignment: Assignment,
        jobs: dict[str, Job],
        conflicts: list[Conflict],
    ) -> None:
        """Check an assignment against its job's duration and due date."""
        job = jobs.get(assignment.job_id)
        if job is None:
            conflicts.append(
                Conflict(
                    conflict_type=ConflictType.UNKNOWN_JOB,
                    message=f"Assignment for unknown job {assignment.job_id}",
                    staff_id=assignment.staff_id,
                    job_id=assignment.job_id,
                )
            )
            return

        try:
            required = self.duration_calculator.required_minutes(job)
        except InvalidDurationError as exc:
            conflicts.append(
                Conflict(
                    conflict_type=ConflictType.DURATION_MISMATCH,
                    message=str(exc),
                    staff_id=assignment.staff_id,
                    job_id=job.id,
                )
            )
        else:
            if assignment.duration_minutes != required:
                conflicts.append(
                    Conflict(
                        conflict_type=ConflictType.DURATION_MISMATCH,
                        message=(
                            f"Job {job.id} assigned {assignment.duration_minutes} min "
                            f"but requires {required} min"
                        ),
                        staff_id=assignment.staff_id,
                        job_id=job.id,
                        details={
                            "assigned_minutes": assignment.duration_minutes,
                            "required_minutes": required,
                        },
                    )
                )

        if job.due_date is not None and assignment.end > job.due_date:
            due = to_datetime(job.due_date)
            conflicts.append(
                Conflict(
                    conflict_type=ConflictType.DUE_DATE_VIOLATION,
                    message=(
                        f"Job {job.id} finishes after its due date "
                        f"{due.strftime('%Y-%m-%d %H:%M')}"
                    ),
                    staff_id=assignment.staff_id,
                    job_id=job.id,
                    day=assignment.schedule_date,
                    details={"late_minutes": assignment.end - job.due_date},
                )
            )
