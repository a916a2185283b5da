"""
Validation applied before a new booking is stored.

A request must describe a real time range no longer than the configured
maximum. It must sit entirely inside one open window for the date and must
not collide with another live booking of the same provider.
"""

from datetime import time
from typing import Iterable

from booking_core.errors import InvalidTimeRangeError, OutsideAvailabilityError, OverlapsError
from booking_core.schemas.booking_schema import Booking
from booking_core.scheduling.aggregator import OpenWindow
from booking_core.utils import duration_minutes, interval_contains, intervals_overlap


def check_time_range(start: time, end: time) -> None:
    if start >= end:
        raise InvalidTimeRangeError(
            f"Start time {start:%H:%M} must be before end time {end:%H:%M}."
        )


def check_max_duration(start: time, end: time, max_minutes: int) -> None:
    if duration_minutes(start, end) > max_minutes:
        raise InvalidTimeRangeError(
            f"{start:%H:%M}-{end:%H:%M} is longer than the {max_minutes}-minute maximum."
        )


def check_within_windows(windows: Iterable[OpenWindow], start: time, end: time) -> None:
    if not any(interval_contains(w.start_time, w.end_time, start, end) for w in windows):
        raise OutsideAvailabilityError(
            f"{start:%H:%M}-{end:%H:%M} is outside the provider's open hours."
        )


def find_conflicts(
    existing: Iterable[Booking],
    start: time,
    end: time,
    allow_adjacent: bool = True,
) -> list[Booking]:
    """Non-terminal bookings whose time range collides with ``[start, end)``."""
    return [
        b
        for b in existing
        if not b.is_terminal
        and intervals_overlap(start, end, b.start_time, b.end_time, allow_adjacent)
    ]


def check_no_overlap(
    existing: Iterable[Booking],
    start: time,
    end: time,
    allow_adjacent: bool = True,
) -> None:
    conflicts = find_conflicts(existing, start, end, allow_adjacent)
    if conflicts:
        refs = ", ".join(b.id for b in conflicts)
        raise OverlapsError(f"{start:%H:%M}-{end:%H:%M} overlaps booking(s) {refs}.")
