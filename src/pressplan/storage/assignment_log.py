"""Append-only JSON-lines log of assignment writes.

Each line is one record::

    {"op": "put", "job_id": "J1", "staff_id": "S1",
     "start_epoch_minutes": 28414620, "end_epoch_minutes": 28414740}
    {"op": "delete", "job_id": "J1"}

Replaying the log in order yields the live assignment set keyed by job ID.
`compact` rewrites the file with one put record per live job.
"""

import json
import logging
import os
import threading
from pathlib import Path
from typing import Iterable, Optional, Union

from pressplan.domain.models import Assignment, Job
from pressplan.scheduling.availability import StaffAvailabilityIndex
from pressplan.scheduling.store import AssignmentStore
from pressplan.validation.validator import Conflict, ConflictDetector

logger = logging.getLogger(__name__)


class AssignmentLogError(ValueError):
    """Raised when a log line cannot be parsed."""

    def __init__(self, path: Path, line_number: int, message: str):
        self.path = path
        self.line_number = line_number
        super().__init__(f"{path}:{line_number}: {message}")


def assignment_to_record(assignment: Assignment) -> dict:
    """Persisted form of an assignment."""
    return {
        "op": "put",
        "job_id": assignment.job_id,
        "staff_id": assignment.staff_id,
        "start_epoch_minutes": assignment.start,
        "end_epoch_minutes": assignment.end,
    }


def record_to_assignment(record: dict) -> Assignment:
    """Rebuild an assignment from a put record.

    Raises:
        KeyError: If a field is missing.
        ValueError: If the interval is empty or reversed.
    """
    return Assignment(
        job_id=str(record["job_id"]),
        staff_id=str(record["staff_id"]),
        start=int(record["start_epoch_minutes"]),
        end=int(record["end_epoch_minutes"]),
    )


class AssignmentLog:
    """Durable record of every put and delete made through an AssignmentStore.

    Example:
        >>> log = AssignmentLog("assignments.jsonl")
        >>> store = AssignmentStore(log.read(), log=log)
    """

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)
        self._lock = threading.Lock()

    def append_put(self, assignment: Assignment) -> None:
        self._append(assignment_to_record(assignment))

    def append_delete(self, job_id: str) -> None:
        self._append({"op": "delete", "job_id": job_id})

    def _append(self, record: dict) -> None:
        line = json.dumps(record, sort_keys=True)
        with self._lock:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with open(self.path, "a", encoding="utf-8") as f:
                f.write(line + "\n")

    def read(self) -> list[Assignment]:
        """Replay the log into the live assignment set.

        A missing file is an empty log.

        Raises:
            AssignmentLogError: On malformed JSON, unknown ops or bad records.
        """
        if not self.path.exists():
            return []

        live: dict[str, Assignment] = {}
        with open(self.path, "r", encoding="utf-8") as f:
            for line_number, line in enumerate(f, 1):
                line = line.strip()
                if not line:
                    continue
                try:
                    record = json.loads(line)
                    op = record.get("op")
                    if op == "put":
                        assignment = record_to_assignment(record)
                        live[assignment.job_id] = assignment
                    elif op == "delete":
                        live.pop(str(record["job_id"]), None)
                    else:
                        raise ValueError(f"unknown op {op!r}")
                except (ValueError, KeyError, TypeError, AttributeError) as exc:
                    raise AssignmentLogError(self.path, line_number, str(exc)) from exc

        logger.debug("Replayed %d live assignment(s) from %s", len(live), self.path)
        return sorted(live.values(), key=lambda a: (a.start, a.staff_id))

    def compact(self, assignments: Optional[Iterable[Assignment]] = None) -> int:
        """Rewrite the log with one put record per live job.

        Args:
            assignments: The live set to write; replayed from the log if
                omitted.

        Returns:
            Number of records written.
        """
        with self._lock:
            live = list(assignments) if assignments is not None else self.read()
            tmp_path = self.path.with_suffix(self.path.suffix + ".tmp")
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with open(tmp_path, "w", encoding="utf-8") as f:
                for assignment in live:
                    f.write(json.dumps(assignment_to_record(assignment), sort_keys=True) + "\n")
            os.replace(tmp_path, self.path)
        logger.info("Compacted %s to %d record(s)", self.path, len(live))
        return len(live)


def restore_store(
    log: AssignmentLog,
    jobs: Optional[dict[str, Job]] = None,
    availability: Optional[StaffAvailabilityIndex] = None,
    detector: Optional[ConflictDetector] = None,
) -> tuple[AssignmentStore, list[Conflict]]:
    """Rebuild a store from its log and audit the result.

    Conflicting assignments are kept in the store and reported.

    Returns:
        Tuple of (store attached to the log, audit conflicts).
    """
    assignments = log.read()
    store = AssignmentStore(assignments, log=log)
    detector = detector or ConflictDetector()
    conflicts = detector.audit_all(assignments, jobs=jobs, availability=availability)
    logger.info(
        "Restored %d assignment(s) from %s with %d conflict(s)",
        len(assignments),
        log.path,
        len(conflicts),
    )
    return store, conflicts
