"""Policy definitions for scheduling rules.

This module contains configurable policies for duration rounding, candidate
staff ordering and batch ordering. Policies are kept separate from the
scheduling engine to allow independent testing and easy modification.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Sequence

from pressplan.domain.models import Job, StaffMember
from pressplan.domain.timemodel import DEFAULT_GRANULARITY, round_up_minutes


class RoundingPolicy(ABC):
    """Abstract base class for rounding raw job minutes to schedulable time."""

    @abstractmethod
    def round_minutes(self, minutes: int) -> int:
        """Round raw minutes to a schedulable duration.

        Args:
            minutes: Unrounded minutes.

        Returns:
            Duration that is a multiple of the granularity.
        """
        pass

    @abstractmethod
    def granularity(self) -> int:
        """Scheduling granularity in minutes."""
        pass


class StaffOrderingPolicy(ABC):
    """Abstract base class for ordering candidate staff members."""

    @abstractmethod
    def order(
        self,
        staff: Sequence[StaffMember],
        assigned_minutes: dict[str, int],
    ) -> list[StaffMember]:
        """Return candidates in the order ties should be broken.

        Args:
            staff: Candidate staff, in roster order.
            assigned_minutes: Total committed minutes per staff ID.

        Returns:
            Ordered list of candidates.
        """
        pass


class BatchOrderingPolicy(ABC):
    """Abstract base class for ordering a batch of unscheduled jobs."""

    @abstractmethod
    def order(self, jobs: Sequence[Job]) -> list[Job]:
        """Return jobs in the order they should be offered to the scheduler."""
        pass


@dataclass
class CeilingRoundingPolicy(RoundingPolicy):
    """Always round up, so a job is never under-scheduled.

    Rounding is a ceiling to the next granularity boundary: 61 minutes
    becomes 90, 90 stays 90.
    """

    granularity_minutes: int = DEFAULT_GRANULARITY

    def __post_init__(self):
        if self.granularity_minutes <= 0:
            raise ValueError("Granularity must be a positive number of minutes")

    def round_minutes(self, minutes: int) -> int:
        return round_up_minutes(minutes, self.granularity_minutes)

    def granularity(self) -> int:
        return self.granularity_minutes


class LeastLoadedStaffPolicy(StaffOrderingPolicy):
    """Least total assigned minutes first, roster order on ties.

    Keeps utilization even across staff instead of first-fit by ID.
    """

    def order(
        self,
        staff: Sequence[StaffMember],
        assigned_minutes: dict[str, int],
    ) -> list[StaffMember]:
        indexed = list(enumerate(staff))
        indexed.sort(key=lambda item: (assigned_minutes.get(item[1].id, 0), item[0]))
        return [member for _, member in indexed]


class PriorityDueDateOrderingPolicy(BatchOrderingPolicy):
    """High before Medium before Low; earlier due date first within a tier.

    Jobs without a due date go last in their tier. The sort is stable, so
    equal jobs keep submission order.
    """

    def order(self, jobs: Sequence[Job]) -> list[Job]:
        return sorted(
            jobs,
            key=lambda job: (
                job.priority.rank,
                job.due_date is None,
                job.due_date if job.due_date is not None else 0,
            ),
        )
