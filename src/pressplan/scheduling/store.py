"""Assignment store: the scheduler's only mutable state.

Writes are serialized through a single re-entrant lock. Reads return
copies, so projections and validators always see a consistent snapshot
while a writer is busy.
"""

import logging
import threading
from contextlib import contextmanager
from typing import TYPE_CHECKING, Iterable, Iterator, Optional

from pressplan.domain.models import Assignment

if TYPE_CHECKING:
    from pressplan.storage.assignment_log import AssignmentLog

logger = logging.getLogger(__name__)


class AssignmentStore:
    """Committed assignments keyed by job ID.

    At most one assignment exists per job. Overlap checks are the caller's
    job (see Scheduler), because the store also has to accept persisted
    state that may be corrupt so it can be audited.

    Args:
        assignments: Initial assignments, loaded without checks.
        log: Optional append log receiving every write.
    """

    def __init__(
        self,
        assignments: Iterable[Assignment] = (),
        log: Optional["AssignmentLog"] = None,
    ):
        self._lock = threading.RLock()
        self._by_job: dict[str, Assignment] = {}
        self._version = 0
        self.log = log
        self.load(assignments)

    @contextmanager
    def writer(self) -> Iterator["AssignmentStore"]:
        """Hold the writer lock for a read-check-write sequence."""
        with self._lock:
            yield self

    @property
    def version(self) -> int:
        """Incremented on every write."""
        return self._version

    def load(self, assignments: Iterable[Assignment]) -> None:
        """Insert assignments without validation or logging."""
        with self._lock:
            for assignment in assignments:
                self._by_job[assignment.job_id] = assignment
            self._version += 1

    def put(self, assignment: Assignment) -> Optional[Assignment]:
        """Insert or replace the assignment for a job.

        The log record is written first; if that fails the store is left
        unchanged and the error propagates.

        Returns:
            The assignment that was replaced, if any.
        """
        with self._lock:
            if self.log is not None:
                self.log.append_put(assignment)
            previous = self._by_job.get(assignment.job_id)
            self._by_job[assignment.job_id] = assignment
            self._version += 1
        logger.debug("Stored %r", assignment)
        return previous

    def remove(self, job_id: str) -> Optional[Assignment]:
        """Remove the assignment for a job; a no-op if there is none."""
        with self._lock:
            previous = self._by_job.get(job_id)
            if previous is not None:
                if self.log is not None:
                    self.log.append_delete(job_id)
                del self._by_job[job_id]
                self._version += 1
        return previous

    def get(self, job_id: str) -> Optional[Assignment]:
        with self._lock:
            return self._by_job.get(job_id)

    def __contains__(self, job_id: str) -> bool:
        with self._lock:
            return job_id in self._by_job

    def __len__(self) -> int:
        with self._lock:
            return len(self._by_job)

    def snapshot(self) -> list[Assignment]:
        """Copy of all assignments, ordered by start time."""
        with self._lock:
            return sorted(self._by_job.values(), key=lambda a: (a.start, a.staff_id))

    def for_staff(self, staff_id: str) -> list[Assignment]:
        """Assignments of one staff member, ordered by start time."""
        return [a for a in self.snapshot() if a.staff_id == staff_id]

    def assigned_minutes(self) -> dict[str, int]:
        """Total committed minutes per staff ID."""
        totals: dict[str, int] = {}
        for assignment in self.snapshot():
            totals[assignment.staff_id] = (
                totals.get(assignment.staff_id, 0) + assignment.duration_minutes
            )
        return totals
