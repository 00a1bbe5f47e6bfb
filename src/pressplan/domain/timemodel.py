"""Time model for the scheduling core.

All instants are timezone-naive integer minute offsets from a fixed epoch
(1970-01-01 00:00). Presentation layers apply a display timezone on their
own. Keeping time as plain integers makes slot arithmetic exact and tests
deterministic.
"""

from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
from typing import Iterable, Optional

EPOCH = datetime(1970, 1, 1)
MINUTES_PER_DAY = 24 * 60
DEFAULT_GRANULARITY = 30

# An absolute instant in minutes since EPOCH.
TimePoint = int


@dataclass(frozen=True, order=True)
class TimeInterval:
    """A half-open interval [start, end) of epoch minutes.

    Attributes:
        start: First minute of the interval (inclusive).
        end: End minute of the interval (exclusive).
    """

    start: TimePoint
    end: TimePoint

    def __post_init__(self):
        if self.end < self.start:
            raise ValueError(
                f"Interval end {self.end} is before start {self.start}"
            )

    @property
    def duration_minutes(self) -> int:
        """Length of the interval in minutes."""
        return self.end - self.start

    def overlaps(self, other: "TimeInterval") -> bool:
        """Check if this interval overlaps with another."""
        return overlaps(self, other)

    def contains(self, other: "TimeInterval") -> bool:
        """Check if another interval lies entirely within this one."""
        return self.start <= other.start and other.end <= self.end

    @classmethod
    def from_datetimes(cls, start: datetime, end: datetime) -> "TimeInterval":
        """Create an interval from two datetime objects."""
        return cls(from_datetime(start), from_datetime(end))

    def __repr__(self) -> str:
        start = to_datetime(self.start)
        end = to_datetime(self.end)
        return (
            f"TimeInterval({start.strftime('%Y-%m-%d %H:%M')}-"
            f"{end.strftime('%H:%M')})"
        )


def add_minutes(t: TimePoint, minutes: int) -> TimePoint:
    """Shift a time point by a number of minutes."""
    return t + minutes


def overlaps(a: TimeInterval, b: TimeInterval) -> bool:
    """Two half-open intervals overlap iff each starts before the other ends."""
    return a.start < b.end and b.start < a.end


def from_datetime(value: datetime) -> TimePoint:
    """Convert a naive datetime to epoch minutes (seconds are truncated)."""
    delta = value.replace(second=0, microsecond=0) - EPOCH
    return delta.days * MINUTES_PER_DAY + delta.seconds // 60


def to_datetime(t: TimePoint) -> datetime:
    """Convert epoch minutes back to a naive datetime."""
    return EPOCH + timedelta(minutes=t)


def from_date(d: date, at: time = time(0, 0)) -> TimePoint:
    """Epoch minutes for a calendar date at a given time of day."""
    return from_datetime(datetime.combine(d, at))


def to_date(t: TimePoint) -> date:
    """Calendar date containing a time point."""
    return to_datetime(t).date()


def weekday_of(t: TimePoint) -> int:
    """Weekday of a time point (Monday=0 ... Sunday=6)."""
    return to_date(t).weekday()


def start_of_day(t: TimePoint) -> TimePoint:
    """Midnight of the day containing t."""
    return t - (t % MINUTES_PER_DAY)


def minute_of_day(t: TimePoint) -> int:
    """Minutes since midnight for a time point."""
    return t % MINUTES_PER_DAY


def day_interval(d: date) -> TimeInterval:
    """The full [00:00, 24:00) interval of a calendar date."""
    start = from_date(d)
    return TimeInterval(start, start + MINUTES_PER_DAY)


def snap_up(t: TimePoint, granularity: int = DEFAULT_GRANULARITY) -> TimePoint:
    """Round a time point up to the next granularity boundary."""
    return -(-t // granularity) * granularity


def snap_down(t: TimePoint, granularity: int = DEFAULT_GRANULARITY) -> TimePoint:
    """Round a time point down to the previous granularity boundary."""
    return (t // granularity) * granularity


def round_up_minutes(minutes: int, granularity: int = DEFAULT_GRANULARITY) -> int:
    """Ceiling of a duration to a multiple of the granularity."""
    return -(-minutes // granularity) * granularity


def is_valid_increment(minutes: int, granularity: int = DEFAULT_GRANULARITY) -> bool:
    """Check if a duration is a whole number of granularity units."""
    return minutes % granularity == 0


def snap_inward(
    interval: TimeInterval,
    granularity: int = DEFAULT_GRANULARITY,
) -> Optional[TimeInterval]:
    """Trim an interval to granularity boundaries, never expanding it.

    Returns None when nothing schedulable remains.
    """
    start = snap_up(interval.start, granularity)
    end = snap_down(interval.end, granularity)
    if end <= start:
        return None
    return TimeInterval(start, end)


def subtract(
    window: TimeInterval,
    busy: Iterable[TimeInterval],
) -> list[TimeInterval]:
    """Remove busy intervals from a window.

    Args:
        window: The interval to carve up.
        busy: Intervals to remove; may be unsorted or overlapping.

    Returns:
        Ordered, non-empty pieces of the window not covered by busy time.
    """
    pieces = []
    cursor = window.start
    for block in sorted(busy, key=lambda b: (b.start, b.end)):
        if block.end <= cursor or block.start >= window.end:
            continue
        if block.start > cursor:
            pieces.append(TimeInterval(cursor, block.start))
        cursor = max(cursor, block.end)
        if cursor >= window.end:
            break
    if cursor < window.end:
        pieces.append(TimeInterval(cursor, window.end))
    return pieces


def merge_intervals(intervals: Iterable[TimeInterval]) -> list[TimeInterval]:
    """Merge overlapping or touching intervals into an ordered list."""
    merged: list[TimeInterval] = []
    for interval in sorted(intervals):
        if merged and interval.start <= merged[-1].end:
            last = merged[-1]
            merged[-1] = TimeInterval(last.start, max(last.end, interval.end))
        else:
            merged.append(interval)
    return merged


def format_duration(minutes: int) -> str:
    """Format a duration as e.g. "2 hours 30 minutes" or "30 minutes"."""
    hours, remaining = divmod(minutes, 60)
    if hours == 0:
        return f"{remaining} minutes"
    hour_label = f"{hours} hour{'s' if hours != 1 else ''}"
    if remaining == 0:
        return hour_label
    return f"{hour_label} {remaining} minutes"


def format_time(t: TimePoint) -> str:
    """Format a time point as HH:MM."""
    return to_datetime(t).strftime("%H:%M")
