"""Tests for candidate generation."""

from datetime import date, time, timedelta

import pytest

from pressplan.domain.models import Assignment, StaffMember, WorkingWindow
from pressplan.domain.timemodel import TimeInterval, from_date
from pressplan.scheduling.availability import StaffAvailabilityIndex
from pressplan.scheduling.candidate_generator import CandidateGenerator

MONDAY = date(2024, 1, 15)


def at(day_offset, hour, minute=0):
    return from_date(MONDAY + timedelta(days=day_offset), time(hour, minute))


class TestCandidateGenerator:
    """Tests for CandidateGenerator."""

    @pytest.fixture
    def staff(self):
        """Staff member working 09:00-17:00 Monday to Friday."""
        return StaffMember(
            id="S1",
            daily_capacity_minutes=480,
            working_windows=WorkingWindow.standard_week(start=time(9, 0)),
        )

    @pytest.fixture
    def generator(self, staff):
        return CandidateGenerator(StaffAvailabilityIndex([staff]))

    def test_open_intervals_subtract_assignments(self, generator):
        busy = [Assignment("J1", "S1", at(0, 10), at(0, 11))]
        assert generator.open_intervals("S1", MONDAY, busy) == [
            TimeInterval(at(0, 9), at(0, 10)),
            TimeInterval(at(0, 11), at(0, 17)),
        ]

    def test_open_intervals_clipped_to_not_before(self, generator):
        assert generator.open_intervals("S1", MONDAY, [], not_before=at(0, 13)) == [
            TimeInterval(at(0, 13), at(0, 17))
        ]

    def test_open_intervals_empty_after_window(self, generator):
        assert generator.open_intervals("S1", MONDAY, [], not_before=at(0, 18)) == []

    def test_first_fit_takes_earliest_gap(self, generator):
        busy = [Assignment("J1", "S1", at(0, 9), at(0, 10))]
        placement = generator.first_fit("J2", "S1", 60, busy, at(0, 0), horizon_days=7)
        assert placement.start == at(0, 10)
        assert placement.end == at(0, 11)

    def test_first_fit_skips_gaps_too_small(self, generator):
        """A 30-minute gap should not take a 60-minute job."""
        busy = [
            Assignment("J1", "S1", at(0, 9), at(0, 10)),
            Assignment("J2", "S1", at(0, 10, 30), at(0, 12)),
        ]
        placement = generator.first_fit("J3", "S1", 60, busy, at(0, 0), horizon_days=7)
        assert placement.start == at(0, 12)

    def test_open_intervals_unsorted_assignments(self, generator):
        busy = [
            Assignment("J3", "S1", at(0, 14), at(0, 15)),
            Assignment("J1", "S1", at(0, 9), at(0, 10)),
            Assignment("J2", "S1", at(0, 11), at(0, 12)),
        ]
        assert generator.open_intervals("S1", MONDAY, busy) == [
            TimeInterval(at(0, 10), at(0, 11)),
            TimeInterval(at(0, 12), at(0, 14)),
            TimeInterval(at(0, 15), at(0, 17)),
        ]

    def test_first_fit_skips_full_day(self, staff):
        """A day whose capacity is used up should be skipped."""
        staff.daily_capacity_minutes = 120
        generator = CandidateGenerator(StaffAvailabilityIndex([staff]))
        busy = [Assignment("J1", "S1", at(0, 9), at(0, 11))]
        placement = generator.first_fit("J2", "S1", 60, busy, at(0, 0), horizon_days=7)
        assert placement.start == at(1, 9)

    def test_first_fit_overbooking_ignores_capacity(self, staff):
        staff.daily_capacity_minutes = 120
        generator = CandidateGenerator(StaffAvailabilityIndex([staff]))
        busy = [Assignment("J1", "S1", at(0, 9), at(0, 11))]
        placement = generator.first_fit(
            "J2", "S1", 60, busy, at(0, 0), horizon_days=7, allow_overbooking=True
        )
        assert placement.start == at(0, 11)

    def test_first_fit_none_beyond_horizon(self, generator):
        """Saturday and Sunday only: no working time."""
        placement = generator.first_fit("J1", "S1", 60, [], at(5, 0), horizon_days=2)
        assert placement is None

    def test_generate_candidates_every_slot(self, staff):
        staff.working_windows = {0: WorkingWindow.from_times(time(9, 0), time(12, 0))}
        generator = CandidateGenerator(StaffAvailabilityIndex([staff]))
        candidates = generator.generate_candidates("J1", "S1", 60, [], at(0, 0), horizon_days=1)
        assert [c.start for c in candidates] == [
            at(0, 9), at(0, 9, 30), at(0, 10), at(0, 10, 30), at(0, 11)
        ]
        assert all(c.end - c.start == 60 for c in candidates)

    def test_days_from(self):
        days = list(CandidateGenerator.days_from(at(0, 13), 3))
        assert days == [MONDAY, MONDAY + timedelta(days=1), MONDAY + timedelta(days=2)]

    def test_committed_minutes_by_start_day(self):
        busy = [
            Assignment("J1", "S1", at(0, 9), at(0, 11)),
            Assignment("J2", "S1", at(1, 9), at(1, 10)),
        ]
        assert CandidateGenerator.committed_minutes(busy, MONDAY) == 120
