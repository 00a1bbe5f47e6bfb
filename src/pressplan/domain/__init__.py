"""Domain models and business rules for production scheduling."""

from pressplan.domain.models import (
    Assignment,
    Job,
    JobPhaseBreakdown,
    JobPriority,
    JobStatus,
    JobType,
    Product,
    StaffMember,
    WorkingWindow,
)
from pressplan.domain.policies import (
    BatchOrderingPolicy,
    CeilingRoundingPolicy,
    LeastLoadedStaffPolicy,
    PriorityDueDateOrderingPolicy,
    RoundingPolicy,
    StaffOrderingPolicy,
)
from pressplan.domain.timemodel import TimeInterval, TimePoint

__all__ = [
    # Models
    "Assignment",
    "Job",
    "JobPhaseBreakdown",
    "JobPriority",
    "JobStatus",
    "JobType",
    "Product",
    "StaffMember",
    "WorkingWindow",
    # Time
    "TimeInterval",
    "TimePoint",
    # Policies
    "BatchOrderingPolicy",
    "CeilingRoundingPolicy",
    "LeastLoadedStaffPolicy",
    "PriorityDueDateOrderingPolicy",
    "RoundingPolicy",
    "StaffOrderingPolicy",
]
