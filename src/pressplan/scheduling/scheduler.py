"""Main scheduler interface.

This module provides the Scheduler, which places jobs on staff time:
duration calculation, candidate search over the availability index,
conflict re-check and commit into the assignment store.
"""

import logging
from dataclasses import dataclass, replace
from datetime import datetime
from enum import Enum
from typing import Callable, Iterable, Optional, Sequence

from pressplan.domain.duration import DurationCalculator, InvalidDurationError
from pressplan.domain.models import Assignment, Job, JobStatus, StaffMember
from pressplan.domain.policies import (
    BatchOrderingPolicy,
    CeilingRoundingPolicy,
    LeastLoadedStaffPolicy,
    PriorityDueDateOrderingPolicy,
    RoundingPolicy,
    StaffOrderingPolicy,
)
from pressplan.domain.timemodel import (
    DEFAULT_GRANULARITY,
    TimeInterval,
    TimePoint,
    format_time,
    from_datetime,
    snap_up,
    to_datetime,
)
from pressplan.scheduling.availability import StaffAvailabilityIndex
from pressplan.scheduling.candidate_generator import (
    CandidateGenerator,
    PlacementCandidate,
)
from pressplan.scheduling.store import AssignmentStore
from pressplan.validation.validator import Conflict, ConflictDetector

logger = logging.getLogger(__name__)


class SchedulingErrorType(Enum):
    """Reasons a placement can fail. All are recoverable by the caller."""

    INVALID_DURATION = "invalid_duration"  # Fix the job data
    NO_CAPACITY = "no_capacity"  # Widen horizon or staff pool
    CONFLICT = "conflict"  # Slot taken since the read; retry


class UnknownJobError(KeyError):
    """Raised when rescheduling a job the scheduler has never placed."""


@dataclass
class SchedulingError:
    """Why a job could not be placed.

    Attributes:
        error_type: Failure category.
        message: Description for logs; UIs render their own text.
        job_id: The job that failed.
        conflict: The blocking conflict, for CONFLICT errors.
    """

    error_type: SchedulingErrorType
    message: str
    job_id: Optional[str] = None
    conflict: Optional[Conflict] = None

    def __str__(self) -> str:
        return f"[{self.error_type.value}] Job {self.job_id}: {self.message}"


@dataclass
class ScheduleResult:
    """Outcome of a schedule, reschedule or place call.

    Attributes:
        job_id: The job concerned.
        assignment: The committed assignment on success.
        error: The failure on error.
        due_date_at_risk: True when the placement ends after the due date.
    """

    job_id: str
    assignment: Optional[Assignment] = None
    error: Optional[SchedulingError] = None
    due_date_at_risk: bool = False

    @property
    def is_success(self) -> bool:
        return self.assignment is not None

    @classmethod
    def failure(
        cls,
        job_id: str,
        error_type: SchedulingErrorType,
        message: str,
        conflict: Optional[Conflict] = None,
    ) -> "ScheduleResult":
        return cls(
            job_id=job_id,
            error=SchedulingError(
                error_type=error_type,
                message=message,
                job_id=job_id,
                conflict=conflict,
            ),
        )


@dataclass
class SchedulerConfig:
    """Configuration for a scheduling run.

    Attributes:
        granularity_minutes: Slot size; fixed for a given run.
        horizon_days: Days searched forward before giving up.
        allow_overbooking: If True, daily capacity is not enforced.
        default_daily_capacity_minutes: Capacity given by the document loader
            to staff entries without one. Staff built in code keep their own
            `daily_capacity_minutes`.
    """

    granularity_minutes: int = DEFAULT_GRANULARITY
    horizon_days: int = 90
    allow_overbooking: bool = False
    default_daily_capacity_minutes: int = 480

    def __post_init__(self):
        if self.granularity_minutes <= 0:
            raise ValueError("granularity_minutes must be positive")
        if self.horizon_days <= 0:
            raise ValueError("horizon_days must be positive")

    @classmethod
    def from_dict(cls, data: dict) -> "SchedulerConfig":
        """Build a config from a settings document, ignoring unknown keys."""
        known = {name for name in cls.__dataclass_fields__}
        unknown = set(data) - known
        if unknown:
            logger.warning("Ignoring unknown config keys: %s", ", ".join(sorted(unknown)))
        return cls(**{k: v for k, v in data.items() if k in known})


def system_clock() -> TimePoint:
    """Current local wall-clock time as epoch minutes."""
    return from_datetime(datetime.now())


class Scheduler:
    """Assigns jobs to staff time slots.

    Placement is earliest-fit per staff member, least-loaded staff first on
    ties. Priority never preempts committed work; it only orders batches.
    Writes are serialized through the store's writer lock and every commit
    re-checks the live assignment set, so a search made against a stale
    snapshot fails with CONFLICT instead of double-booking.

    Example:
        >>> scheduler = Scheduler(staff=[press_operator])
        >>> result = scheduler.schedule(job)
        >>> if result.is_success:
        ...     print(result.assignment)
    """

    def __init__(
        self,
        staff: Iterable[StaffMember],
        config: Optional[SchedulerConfig] = None,
        store: Optional[AssignmentStore] = None,
        clock: Optional[Callable[[], TimePoint]] = None,
        rounding_policy: Optional[RoundingPolicy] = None,
        staff_policy: Optional[StaffOrderingPolicy] = None,
        batch_policy: Optional[BatchOrderingPolicy] = None,
    ):
        """Initialize scheduler with roster, config and policies.

        Args:
            staff: The staff roster.
            config: Scheduling configuration.
            store: Assignment store; a new empty one if omitted.
            clock: Returns "now" as epoch minutes.
            rounding_policy: Policy for rounding job durations.
            staff_policy: Policy for ordering candidate staff.
            batch_policy: Policy for ordering batches of jobs.

        Raises:
            ValueError: If the rounding policy's granularity differs from the
                config's.
        """
        self.config = config or SchedulerConfig()
        self.clock = clock or system_clock
        self.rounding_policy = rounding_policy or CeilingRoundingPolicy(
            self.config.granularity_minutes
        )
        if self.rounding_policy.granularity() != self.config.granularity_minutes:
            raise ValueError(
                f"Rounding policy granularity {self.rounding_policy.granularity()} "
                f"does not match config granularity {self.config.granularity_minutes}"
            )
        self.staff_policy = staff_policy or LeastLoadedStaffPolicy()
        self.batch_policy = batch_policy or PriorityDueDateOrderingPolicy()

        self.availability = StaffAvailabilityIndex(
            staff, granularity=self.config.granularity_minutes
        )
        self.duration_calculator = DurationCalculator(self.rounding_policy)
        self.detector = ConflictDetector(self.duration_calculator)
        self.candidate_generator = CandidateGenerator(self.availability)
        self.store = store if store is not None else AssignmentStore()

        # Latest submission of every job that currently holds an assignment.
        self.jobs: dict[str, Job] = {}

    def schedule(
        self,
        job: Job,
        candidate_staff_ids: Optional[Sequence[str]] = None,
        existing_assignments: Optional[Iterable[Assignment]] = None,
        as_of: Optional[TimePoint] = None,
    ) -> ScheduleResult:
        """Find a slot for a job and commit it.

        Args:
            job: The job to place.
            candidate_staff_ids: Restricts the staff pool; None = all active.
                A preferred staff member present in the roster always wins.
            existing_assignments: Snapshot to search against; a fresh one
                if omitted. The commit is always checked against live state.
            as_of: Earliest start; the search never starts before "now".

        Returns:
            ScheduleResult with the assignment or the error.
        """
        try:
            required = self.duration_calculator.required_minutes(job)
        except InvalidDurationError as exc:
            logger.warning("Rejected job %s: %s", job.id, exc)
            return ScheduleResult.failure(
                job.id, SchedulingErrorType.INVALID_DURATION, str(exc)
            )

        if existing_assignments is None:
            snapshot = self.store.snapshot()
        else:
            snapshot = list(existing_assignments)
        snapshot = [a for a in snapshot if a.job_id != job.id]

        start_at = self.search_start(as_of)
        best = self._find_placement(job, required, candidate_staff_ids, snapshot, start_at)
        if best is None:
            logger.info(
                "No capacity for job %s (%d min) within %d days from %s",
                job.id,
                required,
                self.config.horizon_days,
                to_datetime(start_at),
            )
            return ScheduleResult.failure(
                job.id,
                SchedulingErrorType.NO_CAPACITY,
                f"No staff has {required} free minutes within "
                f"{self.config.horizon_days} days",
            )

        return self._commit(job, best)

    def reschedule(
        self,
        job_id: str,
        job: Optional[Job] = None,
        candidate_staff_ids: Optional[Sequence[str]] = None,
        as_of: Optional[TimePoint] = None,
    ) -> ScheduleResult:
        """Remove a job's assignment and schedule it again.

        This is the only way to move a job. Removal and placement happen
        under one writer lock; if the new placement fails the previous
        assignment is put back and the error is returned.

        Args:
            job_id: The job to move.
            job: Re-submitted job record; defaults to the last one placed.
            candidate_staff_ids: Restricts the staff pool.
            as_of: Earliest start.

        Raises:
            UnknownJobError: If no job record is given or known.
            ValueError: If the given job has a different ID.
        """
        if job is None:
            job = self.jobs.get(job_id)
            if job is None:
                raise UnknownJobError(job_id)
        elif job.id != job_id:
            raise ValueError(f"Job record {job.id} does not match {job_id}")

        with self.store.writer():
            previous = self.store.remove(job_id)
            previous_job = self.jobs.pop(job_id, None)
            if previous is not None:
                logger.info("Released %r for rescheduling", previous)
            result = self.schedule(job, candidate_staff_ids, as_of=as_of)
            if not result.is_success and previous is not None:
                self.store.put(previous)
                if previous_job is not None:
                    self.jobs[job_id] = previous_job
                logger.info("Reschedule of job %s failed, kept %r", job_id, previous)
            return result

    def cancel(self, job_id: str) -> Optional[Assignment]:
        """Remove a job's assignment. Cancelling an unassigned job is a no-op.

        Returns:
            The removed assignment, if there was one.
        """
        with self.store.writer():
            removed = self.store.remove(job_id)
            self.jobs.pop(job_id, None)
        if removed is not None:
            logger.info("Cancelled %r", removed)
        return removed

    def register_jobs(self, jobs: Iterable[Job]) -> None:
        """Record job records for assignments loaded from persisted state."""
        for job in jobs:
            if job.id in self.store:
                self.jobs[job.id] = job

    def place(
        self,
        job: Job,
        staff_id: str,
        start: TimePoint,
    ) -> ScheduleResult:
        """Commit a job at an explicit staff member and start time.

        Used for manual placements and by the batch planner. The slot must
        start on a granularity boundary, lie in the staff member's free time
        and pass the conflict re-check.
        A job that already holds an assignment must be moved with
        `reschedule` instead.

        Raises:
            UnknownStaffError: If the staff ID is not in the roster.
        """
        try:
            required = self.duration_calculator.required_minutes(job)
        except InvalidDurationError as exc:
            return ScheduleResult.failure(
                job.id, SchedulingErrorType.INVALID_DURATION, str(exc)
            )

        self.availability.get_staff(staff_id)
        granularity = self.config.granularity_minutes
        if start % granularity != 0:
            return ScheduleResult.failure(
                job.id,
                SchedulingErrorType.CONFLICT,
                f"Start {format_time(start)} is not on a {granularity}-minute boundary",
            )
        placement = PlacementCandidate(
            job_id=job.id, staff_id=staff_id, start=start, end=start + required
        )
        free = self.availability.free_intervals(staff_id, placement.day)
        if not any(interval.contains(placement.interval) for interval in free):
            return ScheduleResult.failure(
                job.id,
                SchedulingErrorType.CONFLICT,
                f"{placement.interval!r} is outside the free time of staff {staff_id}",
            )
        return self._commit(job, placement)

    def schedule_batch(
        self,
        jobs: Sequence[Job],
        candidate_staff_ids: Optional[Sequence[str]] = None,
        as_of: Optional[TimePoint] = None,
    ) -> list[ScheduleResult]:
        """Schedule several jobs in priority order.

        High goes before Medium before Low, earlier due dates first within a
        tier. Results are returned in processing order.
        """
        results = []
        for job in self.batch_policy.order(jobs):
            results.append(self.schedule(job, candidate_staff_ids, as_of=as_of))
        return results

    def audit(self) -> list[Conflict]:
        """Audit the live assignment set against the roster and known jobs."""
        return self.detector.audit_all(
            self.store.snapshot(), jobs=self.jobs, availability=self.availability
        )

    def stats(self) -> dict:
        """Summary statistics of the committed assignment set."""
        snapshot = self.store.snapshot()
        minutes = {member.id: 0 for member in self.availability.staff}
        for assignment in snapshot:
            minutes[assignment.staff_id] = (
                minutes.get(assignment.staff_id, 0) + assignment.duration_minutes
            )
        at_risk = [
            a.job_id
            for a in snapshot
            if a.job_id in self.jobs
            and self.jobs[a.job_id].due_date is not None
            and a.end > self.jobs[a.job_id].due_date
        ]
        return {
            "total_assignments": len(snapshot),
            "total_assigned_minutes": sum(minutes.values()),
            "assigned_minutes_by_staff": minutes,
            "due_date_at_risk": at_risk,
        }

    def search_start(self, as_of: Optional[TimePoint] = None) -> TimePoint:
        """max(as_of, now), rounded up to the granularity."""
        now = self.clock()
        start = now if as_of is None else max(as_of, now)
        return snap_up(start, self.config.granularity_minutes)

    def candidate_staff(
        self,
        job: Job,
        candidate_staff_ids: Optional[Sequence[str]],
        snapshot: Sequence[Assignment],
    ) -> list[StaffMember]:
        """Staff to try for a job, in tie-break order."""
        preferred = job.preferred_staff_id
        if (
            preferred is not None
            and self.availability.has_staff(preferred)
            and self.availability.get_staff(preferred).active
        ):
            return [self.availability.get_staff(preferred)]

        pool = [member for member in self.availability.staff if member.active]
        if candidate_staff_ids is not None:
            allowed = set(candidate_staff_ids)
            pool = [member for member in pool if member.id in allowed]

        loads: dict[str, int] = {}
        for assignment in snapshot:
            loads[assignment.staff_id] = (
                loads.get(assignment.staff_id, 0) + assignment.duration_minutes
            )
        return self.staff_policy.order(pool, loads)

    def _find_placement(
        self,
        job: Job,
        required: int,
        candidate_staff_ids: Optional[Sequence[str]],
        snapshot: list[Assignment],
        start_at: TimePoint,
    ) -> Optional[PlacementCandidate]:
        """Earliest placement over all candidates; ties keep candidate order."""
        by_staff = self.candidate_generator.group_by_staff(snapshot)
        best: Optional[PlacementCandidate] = None
        for member in self.candidate_staff(job, candidate_staff_ids, snapshot):
            placement = self.candidate_generator.first_fit(
                job_id=job.id,
                staff_id=member.id,
                required_minutes=required,
                staff_assignments=by_staff.get(member.id, []),
                start_at=start_at,
                horizon_days=self.config.horizon_days,
                allow_overbooking=self.config.allow_overbooking,
            )
            logger.debug("Job %s: staff %s earliest fit %r", job.id, member.id, placement)
            if placement is not None and (best is None or placement.start < best.start):
                best = placement
        return best

    def _commit(self, job: Job, placement: PlacementCandidate) -> ScheduleResult:
        """Re-check a placement against live state and store it."""
        interval = TimeInterval(placement.start, placement.end)
        with self.store.writer():
            if job.id in self.store:
                return ScheduleResult.failure(
                    job.id,
                    SchedulingErrorType.CONFLICT,
                    "Job is already scheduled; use reschedule to move it",
                )

            live = self.store.snapshot()
            conflict = self.detector.validate(placement.staff_id, interval, live)
            if conflict is not None:
                logger.warning("Commit of job %s rejected: %s", job.id, conflict)
                return ScheduleResult.failure(
                    job.id, SchedulingErrorType.CONFLICT, conflict.message, conflict
                )

            if not self.config.allow_overbooking:
                staff_live = [a for a in live if a.staff_id == placement.staff_id]
                if not self.candidate_generator.has_daily_room(
                    placement.staff_id,
                    placement.day,
                    staff_live,
                    interval.duration_minutes,
                ):
                    return ScheduleResult.failure(
                        job.id,
                        SchedulingErrorType.CONFLICT,
                        f"Daily capacity of staff {placement.staff_id} "
                        f"on {placement.day} is used up",
                    )

            assignment = Assignment(
                job_id=job.id,
                staff_id=placement.staff_id,
                start=placement.start,
                end=placement.end,
            )
            self.store.put(assignment)
            if job.status == JobStatus.NOT_STARTED:
                job = replace(job, status=JobStatus.PENDING)
            self.jobs[job.id] = job

        at_risk = job.due_date is not None and assignment.end > job.due_date
        logger.info(
            "Scheduled %r%s", assignment, " (due date at risk)" if at_risk else ""
        )
        return ScheduleResult(
            job_id=job.id, assignment=assignment, due_date_at_risk=at_risk
        )
