"""Tests for the assignment log, store persistence and document loading."""

import json
from datetime import date, time, timedelta

import pytest

from pressplan.domain.models import (
    Assignment,
    Job,
    JobPhaseBreakdown,
    JobPriority,
    JobType,
    StaffMember,
    WorkingWindow,
)
from pressplan.domain.timemodel import TimeInterval, from_date
from pressplan.scheduling.availability import StaffAvailabilityIndex
from pressplan.scheduling.scheduler import Scheduler
from pressplan.scheduling.store import AssignmentStore
from pressplan.storage.assignment_log import AssignmentLog, AssignmentLogError, restore_store
from pressplan.storage.loader import load_document, parse_document, parse_staff
from pressplan.validation.validator import ConflictType

MONDAY = date(2024, 1, 15)


def at(day_offset, hour, minute=0):
    return from_date(MONDAY + timedelta(days=day_offset), time(hour, minute))


class TestAssignmentLog:
    """Tests for AssignmentLog."""

    @pytest.fixture
    def log(self, tmp_path):
        return AssignmentLog(tmp_path / "assignments.jsonl")

    def test_missing_file_is_empty(self, log):
        assert log.read() == []

    def test_replay_put_and_delete(self, log):
        log.append_put(Assignment("J1", "S1", at(0, 9), at(0, 10)))
        log.append_put(Assignment("J2", "S1", at(0, 10), at(0, 11)))
        log.append_put(Assignment("J1", "S2", at(1, 9), at(1, 10)))
        log.append_delete("J2")

        assert log.read() == [Assignment("J1", "S2", at(1, 9), at(1, 10))]

    def test_record_format(self, log):
        log.append_put(Assignment("J1", "S1", at(0, 9), at(0, 10)))
        record = json.loads(log.path.read_text().splitlines()[0])
        assert record == {
            "op": "put",
            "job_id": "J1",
            "staff_id": "S1",
            "start_epoch_minutes": at(0, 9),
            "end_epoch_minutes": at(0, 10),
        }

    def test_compact(self, log):
        for hour in range(9, 13):
            log.append_put(Assignment("J1", "S1", at(0, hour), at(0, hour + 1)))
        log.append_put(Assignment("J2", "S1", at(1, 9), at(1, 10)))
        log.append_delete("J2")

        written = log.compact()

        assert written == 1
        assert len(log.path.read_text().splitlines()) == 1
        assert log.read() == [Assignment("J1", "S1", at(0, 12), at(0, 13))]

    def test_corrupt_line(self, log):
        log.append_put(Assignment("J1", "S1", at(0, 9), at(0, 10)))
        with open(log.path, "a", encoding="utf-8") as f:
            f.write("{not json\n")
        with pytest.raises(AssignmentLogError) as exc_info:
            log.read()
        assert exc_info.value.line_number == 2

    def test_unknown_op(self, log):
        log.path.write_text(json.dumps({"op": "move", "job_id": "J1"}) + "\n")
        with pytest.raises(AssignmentLogError):
            log.read()

    def test_reversed_interval_rejected(self, log):
        log.path.write_text(
            json.dumps(
                {
                    "op": "put",
                    "job_id": "J1",
                    "staff_id": "S1",
                    "start_epoch_minutes": 100,
                    "end_epoch_minutes": 50,
                }
            )
            + "\n"
        )
        with pytest.raises(AssignmentLogError):
            log.read()


class TestPersistentStore:
    """Tests for stores attached to a log."""

    @pytest.fixture
    def staff(self):
        return [
            StaffMember(id="S1", working_windows=WorkingWindow.standard_week(start=time(9, 0)))
        ]

    def test_scheduler_writes_through(self, tmp_path, staff):
        log = AssignmentLog(tmp_path / "plan.jsonl")
        scheduler = Scheduler(staff, store=AssignmentStore(log=log), clock=lambda: at(0, 0))
        job = Job(id="J1", phases=(JobPhaseBreakdown(production_minutes=60),))

        scheduler.schedule(job)
        scheduler.reschedule("J1", as_of=at(1, 9))
        scheduler.schedule(Job(id="J2", phases=(JobPhaseBreakdown(production_minutes=30),)))
        scheduler.cancel("J2")

        assert log.read() == scheduler.store.snapshot()
        assert [json.loads(line)["op"] for line in log.path.read_text().splitlines()] == [
            "put", "delete", "put", "put", "delete",
        ]

    def test_restore_audits(self, tmp_path, staff):
        log = AssignmentLog(tmp_path / "plan.jsonl")
        log.append_put(Assignment("J1", "S1", at(0, 9), at(0, 11)))
        log.append_put(Assignment("J2", "S1", at(0, 10), at(0, 12)))

        store, conflicts = restore_store(log, availability=StaffAvailabilityIndex(staff))

        assert len(store) == 2
        assert [c.conflict_type for c in conflicts] == [ConflictType.OVERLAP]
        assert store.log is log

    def test_log_failure_leaves_store_unchanged(self, tmp_path, staff):
        class FullDiskLog(AssignmentLog):
            def append_put(self, assignment):
                raise OSError("No space left on device")

            def append_delete(self, job_id):
                raise OSError("No space left on device")

        kept = Assignment("J0", "S1", at(0, 9), at(0, 10))
        store = AssignmentStore([kept], log=FullDiskLog(tmp_path / "plan.jsonl"))
        scheduler = Scheduler(staff, store=store, clock=lambda: at(0, 0))

        with pytest.raises(OSError):
            scheduler.schedule(Job(id="J1", phases=(JobPhaseBreakdown(production_minutes=60),)))
        with pytest.raises(OSError):
            scheduler.cancel("J0")

        assert store.snapshot() == [kept]
        assert "J1" not in scheduler.jobs

    def test_store_load_does_not_log(self, tmp_path):
        log = AssignmentLog(tmp_path / "plan.jsonl")
        AssignmentStore([Assignment("J1", "S1", at(0, 9), at(0, 10))], log=log)
        assert not log.path.exists()


class TestLoader:
    """Tests for shop document loading."""

    @pytest.fixture
    def document_data(self):
        return {
            "config": {"horizon_days": 30},
            "staff": [
                {
                    "id": "S1",
                    "name": "Dana",
                    "daily_capacity_minutes": 420,
                    "working_hours": {"monday": ["09:00", "17:00"], "tuesday": ["07:30", "15:30"]},
                    "blocked": [{"start": "2024-01-15T12:00", "end": "2024-01-15T13:00"}],
                },
                {"id": "S2"},
            ],
            "products": [
                {
                    "id": "P1",
                    "name": "Banner",
                    "job_type": "Wide Format",
                    "production_time": 90,
                    "setup_time": 15,
                    "finishing_time": 15,
                }
            ],
            "jobs": [
                {
                    "id": "J1",
                    "title": "Trade show banners",
                    "customer": "Acme",
                    "priority": "High",
                    "due_date": "2024-01-19T17:00",
                    "products": [{"product_id": "P1"}, {"production_time": 45}],
                },
                {"id": "J2"},
            ],
        }

    def test_parse_document(self, document_data):
        document = parse_document(document_data)

        assert document.config.horizon_days == 30
        assert document.products["P1"].job_type == JobType.WIDE_FORMAT

        dana = document.staff[0]
        assert dana.daily_capacity_minutes == 420
        assert set(dana.working_windows) == {0, 1}
        assert dana.working_windows[1] == WorkingWindow.from_times(time(7, 30), time(15, 30))
        assert dana.blocked_intervals == [TimeInterval(at(0, 12), at(0, 13))]

        job = document.jobs[0]
        assert job.priority == JobPriority.HIGH
        assert job.due_date == at(4, 17)
        assert sum(p.raw_minutes for p in job.phases) == 165

    def test_defaults(self, document_data):
        document = parse_document(document_data)
        s2 = document.staff[1]
        assert s2.daily_capacity_minutes == 480
        assert s2.working_windows == WorkingWindow.standard_week()
        j2 = document.jobs[1]
        assert j2.priority == JobPriority.MEDIUM
        assert j2.due_date is None
        assert j2.phases == ()

    def test_config_default_capacity_for_staff_without_one(self, document_data):
        document_data["config"]["default_daily_capacity_minutes"] = 360
        document = parse_document(document_data)
        assert document.staff[0].daily_capacity_minutes == 420
        assert document.staff[1].daily_capacity_minutes == 360

    def test_unknown_product_names_entry(self, document_data):
        document_data["jobs"][0]["products"] = [{"product_id": "P9"}]
        with pytest.raises(ValueError, match="jobs entry #0"):
            parse_document(document_data)

    def test_bad_time_of_day(self):
        with pytest.raises(ValueError):
            parse_staff({"id": "S1", "working_hours": {"monday": ["9am", "5pm"]}})

    def test_unknown_weekday(self):
        with pytest.raises(ValueError):
            parse_staff({"id": "S1", "working_hours": {"funday": ["09:00", "17:00"]}})

    def test_missing_id(self, document_data):
        document_data["staff"].append({"name": "Nobody"})
        with pytest.raises(ValueError, match="staff entry #2"):
            parse_document(document_data)

    def test_load_document_from_file(self, document_data, tmp_path):
        path = tmp_path / "shop.json"
        path.write_text(json.dumps(document_data))
        document = load_document(path)
        assert [s.id for s in document.staff] == ["S1", "S2"]
