"""Output generation for schedules (calendar views, text)."""

from pressplan.output.calendar import CalendarEntry, CalendarProjection, StaffUtilization
from pressplan.output.text_renderer import TextRenderer

__all__ = [
    "CalendarEntry",
    "CalendarProjection",
    "StaffUtilization",
    "TextRenderer",
]
