"""Tests for calendar projections and text rendering."""

from datetime import date, time, timedelta

import pytest

from pressplan.domain.models import (
    Assignment,
    Job,
    JobPhaseBreakdown,
    StaffMember,
    WorkingWindow,
)
from pressplan.domain.timemodel import from_date
from pressplan.output.calendar import CalendarProjection
from pressplan.output.text_renderer import TextRenderer
from pressplan.scheduling.availability import StaffAvailabilityIndex
from pressplan.scheduling.store import AssignmentStore

MONDAY = date(2024, 1, 15)


def at(day_offset, hour, minute=0):
    return from_date(MONDAY + timedelta(days=day_offset), time(hour, minute))


@pytest.fixture
def availability():
    return StaffAvailabilityIndex(
        [
            StaffMember(
                id="S1",
                name="Dana",
                working_windows=WorkingWindow.standard_week(start=time(9, 0)),
            ),
            StaffMember(
                id="S2",
                name="Eli",
                working_windows=WorkingWindow.standard_week(start=time(9, 0)),
            ),
        ]
    )


@pytest.fixture
def store():
    return AssignmentStore(
        [
            Assignment("J3", "S2", at(0, 13), at(0, 14)),
            Assignment("J1", "S1", at(0, 9), at(0, 11)),
            Assignment("J2", "S2", at(0, 9), at(0, 10)),
            Assignment("J4", "S1", at(2, 10), at(2, 12)),
            Assignment("J5", "S1", at(10, 10), at(10, 11)),
        ]
    )


@pytest.fixture
def jobs():
    return {
        "J1": Job(
            id="J1",
            phases=(JobPhaseBreakdown(production_minutes=120),),
            title="Trade show banners",
        ),
    }


class TestCalendarProjection:
    """Tests for CalendarProjection."""

    def test_for_day_sorted_by_start(self, store, jobs, availability):
        projection = CalendarProjection(store, jobs, availability)
        entries = projection.for_day(MONDAY)
        assert [e.assignment.job_id for e in entries] == ["J1", "J2", "J3"]

    def test_entries_carry_lookups(self, store, jobs, availability):
        projection = CalendarProjection(store, jobs, availability)
        first, second, _ = projection.for_day(MONDAY)
        assert first.title == "Trade show banners"
        assert first.staff_name == "Dana"
        assert first.time_range == "09:00-11:00"
        # Unknown job falls back to the ID
        assert second.job is None
        assert second.title == "J2"

    def test_for_week_has_seven_days(self, store):
        week = CalendarProjection(store).for_week(MONDAY)
        assert len(week) == 7
        assert [len(day) for day in week] == [3, 0, 1, 0, 0, 0, 0]

    def test_for_month(self, store):
        month = CalendarProjection(store).for_month(date(2024, 1, 20))
        days = list(month)
        assert len(days) == 31
        assert days[0] == date(2024, 1, 1)
        assert days[-1] == date(2024, 1, 31)
        assert [e.assignment.job_id for e in month[MONDAY + timedelta(days=10)]] == ["J5"]

    def test_for_month_december(self):
        month = CalendarProjection([]).for_month(date(2024, 12, 1))
        assert list(month)[-1] == date(2024, 12, 31)

    def test_projection_is_a_snapshot(self, store):
        projection = CalendarProjection(store)
        store.remove("J1")
        assert len(projection.for_day(MONDAY)) == 3

    def test_staff_utilization(self, store, availability):
        projection = CalendarProjection(store, availability=availability)
        rows = projection.staff_utilization(MONDAY, MONDAY + timedelta(days=6))
        by_staff = {row.staff_id: row for row in rows}
        assert by_staff["S1"].assigned_minutes == 240
        assert by_staff["S1"].capacity_minutes == 5 * 480
        assert by_staff["S1"].percent == pytest.approx(10.0)
        assert by_staff["S2"].assigned_minutes == 120

    def test_utilization_needs_availability(self, store):
        with pytest.raises(ValueError):
            CalendarProjection(store).staff_utilization(MONDAY, MONDAY)

    def test_utilization_rejects_reversed_range(self, store, availability):
        projection = CalendarProjection(store, availability=availability)
        with pytest.raises(ValueError):
            projection.staff_utilization(MONDAY, MONDAY - timedelta(days=1))


class TestTextRenderer:
    """Tests for TextRenderer."""

    def test_day_view(self, store, jobs, availability):
        projection = CalendarProjection(store, jobs, availability)
        text = TextRenderer().generate_to_string(projection, MONDAY, "day")
        assert "PRODUCTION SCHEDULE - Monday 2024-01-15" in text
        assert "Trade show banners" in text
        assert "Dana (2 hours)" in text
        assert "STAFF UTILIZATION" in text

    def test_empty_day(self, availability):
        projection = CalendarProjection([], availability=availability)
        text = TextRenderer().generate_to_string(projection, MONDAY, "day")
        assert "No work scheduled." in text

    def test_week_view(self, store):
        text = TextRenderer().generate_to_string(CalendarProjection(store), MONDAY, "week")
        assert "WEEK 2024-01-15 - 2024-01-21" in text
        assert "(3 jobs, 240 min)" in text

    def test_month_view(self, store):
        text = TextRenderer().generate_to_string(CalendarProjection(store), MONDAY, "month")
        assert "MONTH January 2024" in text

    def test_conflicts_section(self, store):
        text = TextRenderer().generate_to_string(
            CalendarProjection(store), MONDAY, "week", conflicts=[]
        )
        assert "CONFLICTS (0)" in text

    def test_unknown_view(self, store):
        with pytest.raises(ValueError):
            TextRenderer().generate_to_string(CalendarProjection(store), MONDAY, "year")

    def test_generate_writes_file(self, store, tmp_path):
        path = tmp_path / "week.txt"
        content = TextRenderer().generate(CalendarProjection(store), MONDAY, "week", path)
        assert path.read_text() == content
