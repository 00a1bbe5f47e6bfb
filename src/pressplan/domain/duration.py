"""Duration calculator for print jobs.

Derives a job's required time from its phase breakdowns, rounded up to the
scheduling granularity.
"""

from dataclasses import dataclass
from typing import Iterable, Optional

from pressplan.domain.models import Job, JobPhaseBreakdown
from pressplan.domain.policies import CeilingRoundingPolicy, RoundingPolicy


class InvalidDurationError(ValueError):
    """Raised when a job has no computable positive required time."""

    def __init__(self, job_id: str, message: str):
        self.job_id = job_id
        super().__init__(f"Job {job_id}: {message}")


@dataclass(frozen=True)
class DurationEstimate:
    """Result of a duration calculation.

    Attributes:
        required_minutes: Schedulable duration, a multiple of the granularity.
        raw_minutes: Unrounded sum of all phases.
        is_placeholder: True when the job had no phases and the required time
            is a single granularity unit standing in for missing data.
    """

    required_minutes: int
    raw_minutes: int
    is_placeholder: bool = False


class DurationCalculator:
    """Computes required minutes for jobs.

    Example:
        >>> calc = DurationCalculator()
        >>> calc.required_minutes(job)
        120
    """

    def __init__(self, rounding_policy: Optional[RoundingPolicy] = None):
        self.rounding_policy = rounding_policy or CeilingRoundingPolicy()

    @property
    def granularity(self) -> int:
        return self.rounding_policy.granularity()

    def estimate(self, phases: Iterable[JobPhaseBreakdown]) -> DurationEstimate:
        """Estimate the duration of a set of phase breakdowns.

        A job with no phases yields one granularity unit, flagged as a
        placeholder so callers can report it instead of scheduling it.
        """
        phases = list(phases)
        if not phases:
            return DurationEstimate(
                required_minutes=self.granularity,
                raw_minutes=0,
                is_placeholder=True,
            )

        raw = sum(p.raw_minutes for p in phases)
        return DurationEstimate(
            required_minutes=self.rounding_policy.round_minutes(raw),
            raw_minutes=raw,
        )

    def required_minutes(self, job: Job) -> int:
        """Schedulable minutes for a job.

        Raises:
            InvalidDurationError: If the job has no phases or its phases sum
                to zero minutes.
        """
        estimate = self.estimate(job.phases)
        if estimate.is_placeholder:
            raise InvalidDurationError(job.id, "job has no product phases")
        if estimate.required_minutes <= 0:
            raise InvalidDurationError(job.id, "job phases add up to zero minutes")
        return estimate.required_minutes
