"""Scheduling engine for placing print jobs on staff time."""

from pressplan.scheduling.availability import StaffAvailabilityIndex, UnknownStaffError
from pressplan.scheduling.candidate_generator import CandidateGenerator, PlacementCandidate
from pressplan.scheduling.scheduler import (
    ScheduleResult,
    Scheduler,
    SchedulerConfig,
    SchedulingError,
    SchedulingErrorType,
    UnknownJobError,
)
from pressplan.scheduling.store import AssignmentStore
from pressplan.scheduling.cpsat_planner import (
    CPSATBatchPlanner,
    PlannerConfig,
    PlannerMode,
    PlanResult,
)

__all__ = [
    # Core scheduler
    "Scheduler",
    "SchedulerConfig",
    "ScheduleResult",
    "SchedulingError",
    "SchedulingErrorType",
    "UnknownJobError",
    # State
    "AssignmentStore",
    "StaffAvailabilityIndex",
    "UnknownStaffError",
    # Candidates
    "CandidateGenerator",
    "PlacementCandidate",
    # Batch planning
    "CPSATBatchPlanner",
    "PlannerConfig",
    "PlannerMode",
    "PlanResult",
]
