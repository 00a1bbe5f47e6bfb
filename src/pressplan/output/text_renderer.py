"""Plain-text calendar output.

This module renders calendar projections as text for the CLI and logs:
- Per-day assignment tables grouped by staff member
- Week overviews with per-day load bars
- Staff utilization and audit conflict listings
"""

from datetime import date, timedelta
from pathlib import Path
from typing import Optional, Sequence, Union

from pressplan.domain.timemodel import format_duration
from pressplan.output.calendar import CalendarEntry, CalendarProjection, StaffUtilization
from pressplan.validation.validator import Conflict


class TextRenderer:
    """Renders calendar views as human-readable text."""

    width = 80

    def generate(
        self,
        projection: CalendarProjection,
        start: date,
        view: str,
        output_path: Union[str, Path],
        conflicts: Optional[Sequence[Conflict]] = None,
    ) -> str:
        """Render a view and save it to a file.

        Args:
            projection: The calendar projection to render.
            start: First day of the view.
            view: "day", "week" or "month".
            output_path: Path to save the text file.
            conflicts: Optional audit conflicts to append.

        Returns:
            The generated text content.
        """
        content = self.generate_to_string(projection, start, view, conflicts)
        Path(output_path).write_text(content)
        return content

    def generate_to_string(
        self,
        projection: CalendarProjection,
        start: date,
        view: str,
        conflicts: Optional[Sequence[Conflict]] = None,
    ) -> str:
        """Render a view and return it as a string."""
        if view == "day":
            lines = self._render_day(projection, start)
            days = [start]
        elif view == "week":
            days = [start + timedelta(days=i) for i in range(7)]
            lines = self._render_week(projection, start)
        elif view == "month":
            month = projection.for_month(start)
            days = list(month)
            lines = self._render_month(month)
        else:
            raise ValueError(f"Unknown view {view!r}; expected day, week or month")

        if projection.availability is not None:
            lines.extend(
                self._render_utilization(projection.staff_utilization(days[0], days[-1]))
            )
        if conflicts is not None:
            lines.extend(self._render_conflicts(conflicts))
        return "\n".join(lines)

    def _header(self, title: str) -> list[str]:
        return ["=" * self.width, title, "=" * self.width]

    def _section(self, title: str) -> list[str]:
        return ["", "-" * self.width, title, "-" * self.width]

    def _entry_line(self, entry: CalendarEntry) -> str:
        title = entry.title[:30]
        minutes = entry.assignment.duration_minutes
        return f"  {entry.time_range:<13} {entry.staff_name[:16]:<16} {title:<30} {minutes:>4} min"

    def _render_day(self, projection: CalendarProjection, day: date) -> list[str]:
        lines = self._header(f"PRODUCTION SCHEDULE - {day:%A %Y-%m-%d}")
        entries = projection.for_day(day)
        if not entries:
            lines.append("  No work scheduled.")
            return lines

        by_staff: dict[str, list[CalendarEntry]] = {}
        for entry in entries:
            by_staff.setdefault(entry.staff_name, []).append(entry)

        for staff_name in sorted(by_staff):
            staff_entries = by_staff[staff_name]
            total = sum(e.assignment.duration_minutes for e in staff_entries)
            lines.extend(self._section(f"{staff_name} ({format_duration(total)})"))
            for entry in staff_entries:
                lines.append(self._entry_line(entry))
        return lines

    def _render_week(self, projection: CalendarProjection, week_start: date) -> list[str]:
        week_end = week_start + timedelta(days=6)
        lines = self._header(f"WEEK {week_start.isoformat()} - {week_end.isoformat()}")
        for offset, entries in enumerate(projection.for_week(week_start)):
            day = week_start + timedelta(days=offset)
            minutes = sum(e.assignment.duration_minutes for e in entries)
            # One mark per hour of work
            bar = "#" * (minutes // 60)
            lines.append(f"{day:%a %m-%d}: {bar or '.'} ({len(entries)} jobs, {minutes} min)")
            for entry in entries:
                lines.append(self._entry_line(entry))
        return lines

    def _render_month(self, month: dict) -> list[str]:
        first = next(iter(month))
        lines = self._header(f"MONTH {first:%B %Y}")
        for day, entries in month.items():
            if not entries:
                continue
            minutes = sum(e.assignment.duration_minutes for e in entries)
            lines.append(f"{day:%a %d}: {len(entries):>3} jobs  {format_duration(minutes)}")
        return lines

    def _render_utilization(self, rows: Sequence[StaffUtilization]) -> list[str]:
        lines = self._section("STAFF UTILIZATION")
        lines.append(f"  {'Staff':<16} {'Assigned':>9} {'Capacity':>9} {'Load':>7}")
        for row in rows:
            lines.append(
                f"  {row.staff_id:<16} {row.assigned_minutes:>9} "
                f"{row.capacity_minutes:>9} {row.percent:>6.1f}%"
            )
        return lines

    def _render_conflicts(self, conflicts: Sequence[Conflict]) -> list[str]:
        lines = self._section(f"CONFLICTS ({len(conflicts)})")
        if not conflicts:
            lines.append("  None")
        for conflict in conflicts:
            lines.append(f"  - {conflict}")
        return lines
