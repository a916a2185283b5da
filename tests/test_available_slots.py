"""Tests for bookable slot search."""

from datetime import time

import pytest

from booking_core.errors import InvalidTimeRangeError, NotFoundError
from booking_core.schemas.booking_schema import BookingStatus
from booking_core.schemas.schedule_schema import ScheduleItemKind
from booking_core.scheduling.aggregator import OpenWindow
from booking_core.scheduling.slots import find_available_slots
from tests.conftest import CUSTOMER, PROVIDER, TUESDAY, book, make_booking

MORNING = OpenWindow(time(9), time(12), ScheduleItemKind.AVAILABILITY)


def _starts(slots):
    return [s.start_time for s in slots]


class TestFindAvailableSlots:
    def test_steps_through_window(self):
        slots = find_available_slots([MORNING], [], 60)
        assert _starts(slots) == [time(9), time(9, 30), time(10), time(10, 30), time(11)]
        assert slots[-1].end_time == time(12)

    def test_custom_step(self):
        slots = find_available_slots([MORNING], [], 60, step_minutes=60)
        assert _starts(slots) == [time(9), time(10), time(11)]

    def test_window_shorter_than_duration(self):
        assert find_available_slots([MORNING], [], 240) == []

    def test_busy_booking_removes_overlapping_candidates(self):
        busy = [make_booking(start="10:00", end="11:00")]
        slots = find_available_slots([MORNING], busy, 60)
        assert _starts(slots) == [time(9), time(11)]

    def test_strict_adjacency(self):
        busy = [make_booking(start="10:00", end="11:00")]
        slots = find_available_slots([MORNING], busy, 60, allow_adjacent=False)
        assert slots == []

    def test_overlapping_windows_do_not_duplicate(self):
        second = OpenWindow(time(10), time(12), ScheduleItemKind.AVAILABILITY)
        slots = find_available_slots([MORNING, second], [], 60, step_minutes=60)
        assert _starts(slots) == [time(9), time(10), time(11)]

    def test_window_ending_at_midnight_edge(self):
        late = OpenWindow(time(22), time(23, 59), ScheduleItemKind.OVERRIDE)
        slots = find_available_slots([late], [], 60)
        assert _starts(slots) == [time(22), time(22, 30)]


class TestServiceSlots:
    def test_slots_skip_live_bookings(self, seeded_service):
        book(seeded_service, "10:00", "11:00")
        slots = seeded_service.get_available_slots(PROVIDER, TUESDAY, 60)
        starts = _starts(slots)
        assert time(10) not in starts
        assert time(9, 30) not in starts
        assert time(9) in starts
        assert time(11) in starts
        assert len(slots) == 12

    def test_cancelled_bookings_do_not_block(self, seeded_service):
        booking = book(seeded_service, "10:00", "11:00")
        seeded_service.cancel(booking.id, CUSTOMER, "customer")
        assert len(seeded_service.get_available_slots(PROVIDER, TUESDAY, 60)) == 15

    def test_completed_bookings_still_block(self, seeded_service):
        booking = book(seeded_service, "10:00", "11:00")
        seeded_service.accept(booking.id, PROVIDER, "provider")
        seeded_service.start(booking.id, PROVIDER, "provider")
        seeded_service.complete(booking.id, PROVIDER, "provider")
        starts = _starts(seeded_service.get_available_slots(PROVIDER, TUESDAY, 60))
        assert time(10) not in starts
        assert len(starts) == 12

    def test_blocked_day_has_no_slots(self, seeded_service):
        seeded_service.add_override(PROVIDER, TUESDAY, "blackout")
        assert seeded_service.get_available_slots(PROVIDER, TUESDAY, 60) == []

    def test_duration_below_minimum(self, seeded_service):
        with pytest.raises(InvalidTimeRangeError, match="at least"):
            seeded_service.get_available_slots(PROVIDER, TUESDAY, 15)

    def test_duration_above_maximum(self, seeded_service):
        with pytest.raises(InvalidTimeRangeError, match="at most"):
            seeded_service.get_available_slots(PROVIDER, TUESDAY, 24 * 60)

    def test_unknown_provider(self, service):
        with pytest.raises(NotFoundError):
            service.get_available_slots("prov-unknown", TUESDAY, 60)

    def test_every_offered_slot_can_be_booked(self, seeded_service):
        book(seeded_service, "12:00", "13:30")
        slot = seeded_service.get_available_slots(PROVIDER, TUESDAY, 90)[0]
        booking = book(
            seeded_service,
            slot.start_time.strftime("%H:%M"),
            slot.end_time.strftime("%H:%M"),
        )
        assert booking.status == BookingStatus.PENDING
