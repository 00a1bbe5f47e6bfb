"""OR-Tools CP-SAT planner for batches of unscheduled jobs.

The greedy scheduler places jobs one at a time in priority order. For a
batch, a constraint model can do better: it looks at every granularity
aligned start of every candidate staff member over a short horizon and
picks a combination that places as many jobs as possible (weighted by
priority) while starting them early and keeping them ahead of due dates.

Chosen placements are committed through `Scheduler.place`, so they pass the
same conflict re-check as any other write. Committed assignments are never
moved.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Sequence

from ortools.sat.python import cp_model

from pressplan.domain.duration import InvalidDurationError
from pressplan.domain.models import Job, JobPriority
from pressplan.domain.timemodel import TimePoint
from pressplan.scheduling.candidate_generator import PlacementCandidate
from pressplan.scheduling.scheduler import (
    ScheduleResult,
    Scheduler,
    SchedulingErrorType,
)

logger = logging.getLogger(__name__)


class PlannerMode(Enum):
    """Which engine places a batch."""

    GREEDY = "greedy"  # Scheduler.schedule_batch only
    CPSAT = "cpsat"  # CP-SAT only; unplaced jobs fail with NO_CAPACITY
    HYBRID = "hybrid"  # CP-SAT, then greedy for whatever it left over


@dataclass
class PlannerConfig:
    """Configuration for the CP-SAT batch planner.

    Attributes:
        mode: Which engine to use.
        time_limit_seconds: Maximum solver runtime.
        num_workers: Number of parallel workers (0 = auto).
        horizon_days: Days of candidates given to the model.
        max_candidates_per_job: Earliest candidates kept per job and staff.
        lateness_weight: Penalty per granularity unit a job starts after
            the search start.
        tardiness_weight: Penalty per granularity unit a job ends after its
            due date.
        priority_weights: Multipliers applied per priority tier.
    """

    mode: PlannerMode = PlannerMode.HYBRID
    time_limit_seconds: float = 10.0
    num_workers: int = 0
    horizon_days: int = 14
    max_candidates_per_job: int = 500
    lateness_weight: int = 1
    tardiness_weight: int = 10
    priority_weights: dict[JobPriority, int] = field(
        default_factory=lambda: {
            JobPriority.LOW: 1,
            JobPriority.MEDIUM: 2,
            JobPriority.HIGH: 4,
        }
    )


@dataclass
class PlanResult:
    """Result of planning a batch.

    Attributes:
        results: One ScheduleResult per job, in batch order.
        status: Solver status (OPTIMAL, FEASIBLE, ...) or GREEDY.
        objective_value: Final objective value.
        solve_time_seconds: Time taken to solve.
        fallback_job_ids: Jobs placed by the greedy fallback.
    """

    results: list[ScheduleResult]
    status: str
    objective_value: int = 0
    solve_time_seconds: float = 0.0
    fallback_job_ids: list[str] = field(default_factory=list)

    @property
    def placed(self) -> list[ScheduleResult]:
        return [r for r in self.results if r.is_success]

    @property
    def failed(self) -> list[ScheduleResult]:
        return [r for r in self.results if not r.is_success]

    @property
    def is_feasible(self) -> bool:
        return self.status in ("OPTIMAL", "FEASIBLE")


class CPSATBatchPlanner:
    """Plans a batch of jobs with the CP-SAT solver.

    Example:
        >>> planner = CPSATBatchPlanner(scheduler)
        >>> plan = planner.plan(unscheduled_jobs)
        >>> print(plan.status, len(plan.placed))
    """

    def __init__(self, scheduler: Scheduler, config: Optional[PlannerConfig] = None):
        self.scheduler = scheduler
        self.config = config or PlannerConfig()

    def plan(
        self,
        jobs: Sequence[Job],
        candidate_staff_ids: Optional[Sequence[str]] = None,
        as_of: Optional[TimePoint] = None,
    ) -> PlanResult:
        """Place a batch of jobs.

        Args:
            jobs: Unscheduled jobs.
            candidate_staff_ids: Restricts the staff pool; None = all active.
            as_of: Earliest start.

        Returns:
            PlanResult with per-job results in batch order.
        """
        if self.config.mode == PlannerMode.GREEDY:
            results = self.scheduler.schedule_batch(jobs, candidate_staff_ids, as_of)
            return PlanResult(results=results, status="GREEDY")

        ordered = self.scheduler.batch_policy.order(jobs)
        snapshot = self.scheduler.store.snapshot()
        start_at = self.scheduler.search_start(as_of)

        results: dict[str, ScheduleResult] = {}
        required: dict[str, int] = {}
        for job in ordered:
            try:
                required[job.id] = self.scheduler.duration_calculator.required_minutes(job)
            except InvalidDurationError as exc:
                results[job.id] = ScheduleResult.failure(
                    job.id, SchedulingErrorType.INVALID_DURATION, str(exc)
                )

        plannable = [job for job in ordered if job.id in required]
        candidates = self._generate_candidates(
            plannable, required, candidate_staff_ids, snapshot, start_at
        )

        chosen, status, objective, wall_time = self._solve(
            plannable, candidates, snapshot, start_at
        )
        logger.info(
            "CP-SAT planned %d/%d jobs (%s, %.2fs)",
            len(chosen),
            len(plannable),
            status,
            wall_time,
        )

        fallback: list[str] = []
        for job in plannable:
            placement = chosen.get(job.id)
            if placement is not None:
                result = self.scheduler.place(job, placement.staff_id, placement.start)
                if result.is_success:
                    results[job.id] = result
                    continue
                logger.warning("Planned placement for %s rejected: %s", job.id, result.error)

            if self.config.mode == PlannerMode.HYBRID:
                fallback.append(job.id)
                results[job.id] = self.scheduler.schedule(
                    job, candidate_staff_ids, as_of=as_of
                )
            else:
                results[job.id] = ScheduleResult.failure(
                    job.id,
                    SchedulingErrorType.NO_CAPACITY,
                    f"No placement found within {self.config.horizon_days} days",
                )

        return PlanResult(
            results=[results[job.id] for job in ordered],
            status=status,
            objective_value=objective,
            solve_time_seconds=wall_time,
            fallback_job_ids=fallback,
        )

    def _generate_candidates(
        self,
        jobs: Sequence[Job],
        required: dict[str, int],
        candidate_staff_ids: Optional[Sequence[str]],
        snapshot: list,
        start_at: TimePoint,
    ) -> dict[str, list[PlacementCandidate]]:
        """Candidate placements per job over the planning horizon."""
        generator = self.scheduler.candidate_generator
        by_staff = generator.group_by_staff(snapshot)
        candidates: dict[str, list[PlacementCandidate]] = {}
        for job in jobs:
            job_candidates = []
            for member in self.scheduler.candidate_staff(job, candidate_staff_ids, snapshot):
                staff_candidates = generator.generate_candidates(
                    job_id=job.id,
                    staff_id=member.id,
                    required_minutes=required[job.id],
                    staff_assignments=by_staff.get(member.id, []),
                    start_at=start_at,
                    horizon_days=self.config.horizon_days,
                )
                job_candidates.extend(staff_candidates[: self.config.max_candidates_per_job])
            candidates[job.id] = job_candidates
        return candidates

    def _penalty(self, job: Job, candidate: PlacementCandidate, start_at: TimePoint) -> int:
        """Cost of a candidate: start delay plus weighted due-date overrun."""
        unit = self.scheduler.config.granularity_minutes
        penalty = self.config.lateness_weight * ((candidate.start - start_at) // unit)
        if job.due_date is not None and candidate.end > job.due_date:
            overrun = -(-(candidate.end - job.due_date) // unit)
            penalty += self.config.tardiness_weight * overrun
        return penalty

    def _solve(
        self,
        jobs: Sequence[Job],
        candidates: dict[str, list[PlacementCandidate]],
        snapshot: list,
        start_at: TimePoint,
    ) -> tuple[dict[str, PlacementCandidate], str, int, float]:
        """Build and solve the model.

        Returns:
            Tuple of (chosen placement per job ID, status, objective, seconds).
        """
        if not any(candidates.values()):
            return {}, "NO_CANDIDATES", 0, 0.0

        model = cp_model.CpModel()
        generator = self.scheduler.candidate_generator
        by_staff_committed = generator.group_by_staff(snapshot)

        # Decision variables: x[j][c] = 1 if job j takes candidate c
        x: dict[str, list[cp_model.IntVar]] = {}
        intervals_by_staff: dict[str, list] = {}
        load_by_staff_day: dict[tuple, list] = {}
        penalties: dict[str, list[int]] = {}

        for job in jobs:
            x[job.id] = []
            penalties[job.id] = []
            for c_idx, candidate in enumerate(candidates[job.id]):
                var = model.NewBoolVar(f"x_{job.id}_{c_idx}")
                x[job.id].append(var)
                penalties[job.id].append(self._penalty(job, candidate, start_at))

                interval = model.NewOptionalIntervalVar(
                    candidate.start,
                    candidate.end - candidate.start,
                    candidate.end,
                    var,
                    f"iv_{job.id}_{c_idx}",
                )
                intervals_by_staff.setdefault(candidate.staff_id, []).append(interval)
                load_by_staff_day.setdefault((candidate.staff_id, candidate.day), []).append(
                    (candidate.end - candidate.start, var)
                )

            # Constraint 1: Each job gets at most one placement
            if x[job.id]:
                model.AddAtMostOne(x[job.id])

        # Constraint 2: A staff member works on one job at a time
        for staff_intervals in intervals_by_staff.values():
            model.AddNoOverlap(staff_intervals)

        # Constraint 3: Daily capacity, counting already committed work
        if not self.scheduler.config.allow_overbooking:
            for (staff_id, day), terms in load_by_staff_day.items():
                capacity = self.scheduler.availability.get_staff(staff_id).daily_capacity_minutes
                used = generator.committed_minutes(by_staff_committed.get(staff_id, []), day)
                model.Add(sum(minutes * var for minutes, var in terms) <= capacity - used)

        # Objective: placing a job always beats any penalty, weighted by priority
        max_penalty = max((max(p) for p in penalties.values() if p), default=0)
        objective_terms = []
        for job in jobs:
            weight = self.config.priority_weights.get(job.priority, 1)
            bonus = (max_penalty + 1) * weight
            for var, penalty in zip(x[job.id], penalties[job.id]):
                objective_terms.append((bonus - penalty) * var)
        model.Maximize(sum(objective_terms))

        solver = cp_model.CpSolver()
        solver.parameters.max_time_in_seconds = self.config.time_limit_seconds
        if self.config.num_workers > 0:
            solver.parameters.num_workers = self.config.num_workers

        status = solver.Solve(model)

        status_map = {
            cp_model.OPTIMAL: "OPTIMAL",
            cp_model.FEASIBLE: "FEASIBLE",
            cp_model.INFEASIBLE: "INFEASIBLE",
            cp_model.MODEL_INVALID: "MODEL_INVALID",
            cp_model.UNKNOWN: "UNKNOWN",
        }
        status_str = status_map.get(status, "UNKNOWN")

        if status not in (cp_model.OPTIMAL, cp_model.FEASIBLE):
            logger.warning("CP-SAT returned %s", status_str)
            return {}, status_str, 0, solver.WallTime()

        chosen: dict[str, PlacementCandidate] = {}
        for job in jobs:
            for var, candidate in zip(x[job.id], candidates[job.id]):
                if solver.Value(var) == 1:
                    chosen[job.id] = candidate
                    break

        return chosen, status_str, int(solver.ObjectiveValue()), solver.WallTime()
