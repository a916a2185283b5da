"""Time-of-day and calendar helpers shared across the booking core.

All functions are pure. Intervals are half-open ``[start, end)`` so a
booking ending at 11:00 does not collide with one starting at 11:00.
"""

from datetime import date, datetime, time, timedelta
from typing import Optional, Union

TIME_FORMATS = ("%H:%M", "%H:%M:%S")
DATE_FORMAT = "%Y-%m-%d"


def parse_time(value: Union[str, time]) -> time:
    """Parse ``HH:MM`` or ``HH:MM:SS`` into a ``time``.

    Examples:
        >>> parse_time("09:30")
        datetime.time(9, 30)
        >>> parse_time("17:00:00")
        datetime.time(17, 0)
    """
    if isinstance(value, time):
        return value
    raw = str(value).strip()
    for fmt in TIME_FORMATS:
        try:
            return datetime.strptime(raw, fmt).time()
        except ValueError:
            continue
    raise ValueError(f"Invalid time of day: {value!r}")


def parse_date(value: Union[str, date]) -> date:
    """Parse a ``YYYY-MM-DD`` string into a ``date``."""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        return datetime.strptime(str(value).strip(), DATE_FORMAT).date()
    except ValueError:
        raise ValueError(f"Invalid calendar date: {value!r}") from None


def format_time(value: time, style: str = "24h") -> str:
    """Render a time of day as ``09:00`` or, with ``style="12h"``, ``9:00 AM``."""
    if style == "12h":
        suffix = "PM" if value.hour >= 12 else "AM"
        hour12 = value.hour % 12 or 12
        return f"{hour12}:{value.minute:02d} {suffix}"
    return value.strftime("%H:%M")


def format_time_range(start: time, end: time, style: str = "24h") -> str:
    return f"{format_time(start, style)} - {format_time(end, style)}"


def day_of_week(value: date) -> int:
    """Day index with Sunday = 0 through Saturday = 6."""
    return (value.weekday() + 1) % 7


def minutes_of_day(value: time) -> int:
    return value.hour * 60 + value.minute


def add_minutes(value: time, minutes: int) -> Optional[time]:
    """Shift a time of day, returning None when the result leaves the day."""
    shifted = datetime.combine(date.min, value) + timedelta(minutes=minutes)
    if shifted.date() != date.min:
        return None
    return shifted.time()


def duration_minutes(start: time, end: time) -> int:
    return minutes_of_day(end) - minutes_of_day(start)


def is_valid_range(start: time, end: time) -> bool:
    return start < end


def intervals_overlap(
    a_start: time,
    a_end: time,
    b_start: time,
    b_end: time,
    allow_adjacent: bool = True,
) -> bool:
    """Check whether two same-day intervals collide.

    With ``allow_adjacent`` the intervals are half-open, so touching
    endpoints do not count as an overlap.
    """
    if allow_adjacent:
        return a_start < b_end and b_start < a_end
    return a_start <= b_end and b_start <= a_end


def interval_contains(outer_start: time, outer_end: time, start: time, end: time) -> bool:
    return outer_start <= start and end <= outer_end
