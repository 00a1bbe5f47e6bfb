"""Smoke tests for the command-line flow."""

import json
from datetime import date

import pytest

from pressplan.cli import create_sample_jobs, create_sample_staff, main
from pressplan.domain.models import Assignment
from pressplan.storage.assignment_log import AssignmentLog


class TestSampleData:
    """Tests for the demo data generators."""

    def test_sample_staff(self):
        staff = create_sample_staff(6, date(2024, 1, 15))
        assert len(staff) == 6
        assert len({s.id for s in staff}) == 6
        assert staff[0].blocked_intervals

    def test_sample_jobs_have_phases(self):
        jobs = create_sample_jobs(8, date(2024, 1, 15))
        assert len(jobs) == 8
        assert all(job.phases for job in jobs)


class TestCLI:
    """End-to-end tests through main()."""

    @pytest.fixture
    def shop_file(self, tmp_path):
        data = {
            "staff": [{"id": "S1", "name": "Dana"}, {"id": "S2", "name": "Eli"}],
            "products": [
                {"id": "P1", "name": "Flyers", "job_type": "Digital Printing",
                 "production_time": 45, "setup_time": 15}
            ],
            "jobs": [
                {"id": "J1", "priority": "High", "products": [{"product_id": "P1"}]},
                {"id": "J2", "products": [{"production_time": 90}]},
                {"id": "J3", "products": [{"product_id": "P1"}]},
            ],
        }
        path = tmp_path / "shop.json"
        path.write_text(json.dumps(data))
        return path

    def _args(self, command, shop_file, log_path, *extra):
        return [
            command,
            "--input", str(shop_file),
            "--log", str(log_path),
            "--now", "2024-01-15T08:00",
            *extra,
        ]

    def test_no_command_prints_help(self, capsys):
        assert main([]) == 1
        assert "usage" in capsys.readouterr().out

    def test_demo(self, capsys):
        assert main(["demo", "--start", "2024-01-17", "--jobs", "6"]) == 0
        out = capsys.readouterr().out
        assert "Planner: greedy" in out
        assert "WEEK 2024-01-15 - 2024-01-21" in out

    def test_schedule_then_audit(self, shop_file, tmp_path, capsys):
        log_path = tmp_path / "plan.jsonl"

        code = main(self._args("schedule", shop_file, log_path, "--planner", "greedy"))

        assert code == 0
        assert len(AssignmentLog(log_path).read()) == 3
        assert "Placed: 3/3 jobs" in capsys.readouterr().out

        assert main(self._args("audit", shop_file, log_path)) == 0
        assert "Audit: PASSED" in capsys.readouterr().out

    def test_schedule_is_incremental(self, shop_file, tmp_path, capsys):
        log_path = tmp_path / "plan.jsonl"
        main(self._args("schedule", shop_file, log_path, "--planner", "greedy"))
        capsys.readouterr()

        main(self._args("schedule", shop_file, log_path, "--planner", "greedy", "--compact"))

        assert "(0 unscheduled)" in capsys.readouterr().out
        assert len(log_path.read_text().splitlines()) == 3

    def test_cancel_and_calendar(self, shop_file, tmp_path, capsys):
        log_path = tmp_path / "plan.jsonl"
        main(self._args("schedule", shop_file, log_path, "--planner", "greedy"))

        assert main(self._args("cancel", shop_file, log_path, "--job", "J1")) == 0
        assert "Cancelled" in capsys.readouterr().out
        assert "J1" not in {a.job_id for a in AssignmentLog(log_path).read()}

        code = main(
            self._args("calendar", shop_file, log_path, "--view", "day", "--date", "2024-01-15")
        )
        assert code == 0
        out = capsys.readouterr().out
        assert "PRODUCTION SCHEDULE - Monday 2024-01-15" in out
        assert "CONFLICTS (0)" in out

    def test_audit_reports_conflicts(self, shop_file, tmp_path, capsys):
        log_path = tmp_path / "plan.jsonl"
        log = AssignmentLog(log_path)
        main(self._args("schedule", shop_file, log_path, "--planner", "greedy"))
        first = log.read()[0]
        log.append_put(Assignment("J9", first.staff_id, first.start, first.end))
        capsys.readouterr()

        assert main(self._args("audit", shop_file, log_path)) == 2
        assert "Audit: FAILED" in capsys.readouterr().out
