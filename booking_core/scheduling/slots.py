"""Bookable slot search inside a provider's open windows."""

from typing import Iterable

from booking_core.schemas.booking_schema import Booking
from booking_core.schemas.schedule_schema import AvailableSlot
from booking_core.scheduling.aggregator import OpenWindow
from booking_core.utils import add_minutes, intervals_overlap


def find_available_slots(
    windows: Iterable[OpenWindow],
    busy: Iterable[Booking],
    duration_minutes: int,
    step_minutes: int = 30,
    allow_adjacent: bool = True,
) -> list[AvailableSlot]:
    """
    Walk each open window in ``step_minutes`` increments and keep every
    candidate of ``duration_minutes`` that no busy booking overlaps.

    Windows that are shorter than the duration contribute nothing.
    Candidates offered by two overlapping windows are returned once.
    """
    busy = list(busy)
    slots: list[AvailableSlot] = []
    seen: set = set()

    for window in sorted(windows, key=lambda w: (w.start_time, w.end_time)):
        start = window.start_time
        while start is not None:
            end = add_minutes(start, duration_minutes)
            if end is None or end > window.end_time:
                break
            key = (start, end)
            free = not any(
                intervals_overlap(start, end, b.start_time, b.end_time, allow_adjacent)
                for b in busy
            )
            if free and key not in seen:
                seen.add(key)
                slots.append(AvailableSlot(start_time=start, end_time=end))
            start = add_minutes(start, step_minutes)

    slots.sort(key=lambda s: s.start_time)
    return slots
