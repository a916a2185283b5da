"""Tests for the booking service facade: creation, transitions, and listings."""

import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from datetime import date, time
from decimal import Decimal

import pytest

from booking_core.config import AppConfig, SchedulingConfig
from booking_core.errors import ErrorKind, InvalidInputError, InvalidTimeRangeError, NotFoundError
from booking_core.logging_context import NO_REQUEST_ID, get_request_id, request_scope
from booking_core.schemas.booking_schema import BookingStatus, PartyRole
from booking_core.schemas.schedule_schema import ScheduleItemKind
from booking_core.service import BookingService
from booking_core.stores.booking_store import BookingStore
from tests.conftest import CUSTOMER, OTHER_CUSTOMER, PROVIDER, TUESDAY, book


def _create(service, start, end, **kwargs):
    params = dict(
        customer_id=CUSTOMER,
        provider_id=PROVIDER,
        service_id="svc-mowing",
        scheduled_date=TUESDAY,
        start_time=start,
        end_time=end,
        address="123 Pine St",
    )
    params.update(kwargs)
    return service.create_booking(**params)


class TestCreateBooking:
    def test_creates_pending_booking(self, seeded_service):
        result = _create(seeded_service, "10:00", "11:00", total_price="45.00")
        assert result.success
        assert result.error is None
        assert result.booking.status == BookingStatus.PENDING
        assert result.booking.total_price == Decimal("45.00")
        assert result.booking_id.startswith("BK-")

    def test_round_trip_into_schedule(self, seeded_service):
        booking = book(seeded_service, "10:00", "11:00")
        items = [
            i for i in seeded_service.get_schedule(PROVIDER, TUESDAY)
            if i.kind == ScheduleItemKind.BOOKING
        ]
        assert len(items) == 1
        assert (items[0].start_time, items[0].end_time) == (time(10), time(11))
        assert items[0].status == BookingStatus.PENDING
        assert items[0].booking_id == booking.id

    def test_keeps_opaque_fields(self, seeded_service):
        result = _create(
            seeded_service, "10:00", "11:00",
            special_instructions="Gate code 1234", payment_reference="pi_123",
        )
        assert result.booking.special_instructions == "Gate code 1234"
        assert result.booking.payment_reference == "pi_123"

    def test_start_after_end_rejected(self, seeded_service):
        result = _create(seeded_service, "11:00", "10:00")
        assert not result.success
        assert result.error == ErrorKind.INVALID_TIME_RANGE

    def test_zero_length_rejected(self, seeded_service):
        result = _create(seeded_service, "10:00", "10:00")
        assert result.error == ErrorKind.INVALID_TIME_RANGE

    def test_malformed_time_rejected(self, seeded_service):
        result = _create(seeded_service, "ten", "11:00")
        assert result.error == ErrorKind.INVALID_TIME_RANGE

    def test_outside_availability_rejected_without_mutation(self, seeded_service, booking_store):
        signals = []
        seeded_service.subscribe_to_changes(PROVIDER, lambda: signals.append(1))
        result = _create(seeded_service, "07:00", "08:00")
        assert result.error == ErrorKind.OUTSIDE_AVAILABILITY
        assert booking_store.list_for_party(CUSTOMER, PartyRole.CUSTOMER) == []
        assert signals == []

    def test_straddling_window_edge_rejected(self, seeded_service):
        assert _create(seeded_service, "16:30", "17:30").error == ErrorKind.OUTSIDE_AVAILABILITY

    def test_wrong_weekday_rejected(self, seeded_service):
        result = _create(seeded_service, "10:00", "11:00", scheduled_date="2025-03-05")
        assert result.error == ErrorKind.OUTSIDE_AVAILABILITY

    def test_blocked_day_rejected(self, seeded_service):
        seeded_service.add_override(PROVIDER, TUESDAY, "blackout")
        assert _create(seeded_service, "10:00", "11:00").error == ErrorKind.OUTSIDE_AVAILABILITY

    def test_custom_override_window_accepted(self, seeded_service):
        seeded_service.add_override(PROVIDER, TUESDAY, "custom", "18:00", "20:00")
        assert _create(seeded_service, "18:00", "19:00").success
        assert _create(seeded_service, "10:00", "11:00").error == ErrorKind.OUTSIDE_AVAILABILITY

    def test_overlap_rejected(self, seeded_service):
        existing = book(seeded_service, "10:00", "11:00")
        result = _create(seeded_service, "10:30", "11:30", customer_id=OTHER_CUSTOMER)
        assert result.error == ErrorKind.OVERLAPS
        assert existing.id in result.message

    def test_adjacent_bookings_permitted(self, seeded_service):
        book(seeded_service, "10:00", "11:00")
        assert _create(seeded_service, "11:00", "12:00").success
        assert _create(seeded_service, "09:00", "10:00").success

    def test_cancelled_booking_frees_time(self, seeded_service):
        first = book(seeded_service, "10:00", "11:00")
        seeded_service.cancel(first.id, CUSTOMER, PartyRole.CUSTOMER)
        assert _create(seeded_service, "10:00", "11:00").success

    def test_unknown_provider(self, service):
        result = _create(service, "10:00", "11:00", provider_id="prov-unknown")
        assert result.error == ErrorKind.NOT_FOUND

    def test_creation_notifies_both_parties(self, seeded_service):
        signals = []
        seeded_service.subscribe_to_changes(PROVIDER, lambda: signals.append("provider"))
        seeded_service.subscribe_to_changes(CUSTOMER, lambda: signals.append("customer"))
        book(seeded_service, "10:00", "11:00")
        assert sorted(signals) == ["customer", "provider"]

    def test_negative_price_rejected(self, seeded_service, booking_store):
        result = _create(seeded_service, "10:00", "11:00", total_price="-5")
        assert not result.success
        assert result.error == ErrorKind.INVALID_INPUT
        assert "-5" in result.message
        assert booking_store.list_for_provider_date(PROVIDER, TUESDAY) == []

    def test_malformed_price_rejected(self, seeded_service, booking_store):
        result = _create(seeded_service, "10:00", "11:00", total_price="abc")
        assert result.error == ErrorKind.INVALID_INPUT
        assert booking_store.list_for_provider_date(PROVIDER, TUESDAY) == []

    def test_non_finite_price_rejected(self, seeded_service):
        assert _create(seeded_service, "10:00", "11:00", total_price="NaN").error == ErrorKind.INVALID_INPUT

    def test_integer_price_accepted(self, seeded_service):
        result = _create(seeded_service, "10:00", "11:00", total_price=60)
        assert result.booking.total_price == Decimal("60")

    def test_longer_than_maximum_rejected(self, booking_store, availability_store):
        config = AppConfig(scheduling=SchedulingConfig(max_duration_minutes=120))
        service = BookingService(booking_store, availability_store, config=config)
        service.register_provider(PROVIDER, "Green Thumb Lawn Care")
        service.add_template(PROVIDER, 2, "09:00", "17:00")

        result = _create(service, "10:00", "12:30")
        assert result.error == ErrorKind.INVALID_TIME_RANGE
        assert "120-minute maximum" in result.message
        assert _create(service, "10:00", "12:00").success


class _RacingInsertStore(BookingStore):
    """Holds both creators at a barrier after validation, right before the insert."""

    def __init__(self) -> None:
        super().__init__()
        self.barrier = threading.Barrier(2, timeout=5)

    def insert(self, booking, created_by, guard=None):
        self.barrier.wait()
        return super().insert(booking, created_by, guard)


class TestConcurrentCreation:
    def test_same_slot_one_wins_one_overlaps(self, availability_store):
        store = _RacingInsertStore()
        service = BookingService(store, availability_store)
        service.register_provider(PROVIDER, "Green Thumb Lawn Care")
        service.add_template(PROVIDER, 2, "09:00", "17:00")

        def attempt(customer_id):
            return _create(service, "10:00", "11:00", customer_id=customer_id)

        with ThreadPoolExecutor(max_workers=2) as pool:
            results = list(pool.map(attempt, [CUSTOMER, OTHER_CUSTOMER]))

        assert sum(r.success for r in results) == 1
        assert [r.error for r in results if not r.success] == [ErrorKind.OVERLAPS]
        assert len(store.list_for_provider_date(PROVIDER, TUESDAY)) == 1

    def test_disjoint_slots_both_succeed(self, availability_store):
        store = _RacingInsertStore()
        service = BookingService(store, availability_store)
        service.register_provider(PROVIDER, "Green Thumb Lawn Care")
        service.add_template(PROVIDER, 2, "09:00", "17:00")

        def attempt(start_end):
            return _create(service, *start_end)

        with ThreadPoolExecutor(max_workers=2) as pool:
            results = list(pool.map(attempt, [("10:00", "11:00"), ("11:00", "12:00")]))

        assert all(r.success for r in results)
        assert len(store.list_for_provider_date(PROVIDER, TUESDAY)) == 2


class TestRequestScope:
    def test_rejection_logged_with_generated_request_id(self, seeded_service, caplog):
        with caplog.at_level(logging.WARNING, logger="booking_core.service"):
            _create(seeded_service, "11:00", "10:00")
        record = next(r for r in caplog.records if "create_booking rejected" in r.getMessage())
        assert record.request_id != NO_REQUEST_ID

    def test_caller_bound_request_id_is_reused(self, seeded_service, caplog):
        with request_scope("REQ-dashboard"):
            with caplog.at_level(logging.WARNING, logger="booking_core.service"):
                _create(seeded_service, "11:00", "10:00")
            assert get_request_id() == "REQ-dashboard"
        record = next(r for r in caplog.records if "create_booking rejected" in r.getMessage())
        assert record.request_id == "REQ-dashboard"


class TestTransitionResults:
    def test_accept_returns_ok(self, seeded_service):
        booking = book(seeded_service, "10:00", "11:00")
        result = seeded_service.accept(booking.id, PROVIDER, "provider")
        assert result.success
        assert result.booking.status == BookingStatus.CONFIRMED

    def test_unknown_booking(self, seeded_service):
        result = seeded_service.accept("BK-NOPE", PROVIDER, PartyRole.PROVIDER)
        assert result.error == ErrorKind.NOT_FOUND

    def test_unauthorized(self, seeded_service):
        booking = book(seeded_service, "10:00", "11:00")
        result = seeded_service.accept(booking.id, CUSTOMER, PartyRole.CUSTOMER)
        assert result.error == ErrorKind.UNAUTHORIZED

    def test_unknown_role_is_unauthorized(self, seeded_service):
        booking = book(seeded_service, "10:00", "11:00")
        assert seeded_service.accept(booking.id, PROVIDER, "admin").error == ErrorKind.UNAUTHORIZED

    def test_cancel_completed_returns_invalid_transition(self, seeded_service):
        booking = book(seeded_service, "10:00", "11:00")
        seeded_service.accept(booking.id, PROVIDER, PartyRole.PROVIDER)
        seeded_service.start(booking.id, PROVIDER, PartyRole.PROVIDER)
        seeded_service.complete(booking.id, PROVIDER, PartyRole.PROVIDER, notes="Done")
        result = seeded_service.cancel(booking.id, CUSTOMER, PartyRole.CUSTOMER)
        assert result.error == ErrorKind.INVALID_TRANSITION
        assert seeded_service.get_booking(booking.id).status == BookingStatus.COMPLETED

    def test_only_unavailable_is_retryable(self):
        assert ErrorKind.UNAVAILABLE.retryable
        assert not ErrorKind.STALE_STATE.retryable
        assert not ErrorKind.INVALID_TRANSITION.retryable

    def test_status_history(self, seeded_service):
        booking = book(seeded_service, "10:00", "11:00")
        seeded_service.decline(booking.id, PROVIDER, PartyRole.PROVIDER, reason="Sick")
        history = seeded_service.get_status_history(booking.id)
        assert [h.status for h in history] == [BookingStatus.PENDING, BookingStatus.DECLINED]
        assert history[-1].notes == "Sick"


class _UnreachableStore(BookingStore):
    def compare_and_set_status(self, *args, **kwargs):
        raise ConnectionError("connection refused")


class TestUnavailable:
    def test_store_outage_reported_as_unavailable(self, availability_store):
        store = _UnreachableStore()
        service = BookingService(store, availability_store)
        service.register_provider(PROVIDER, "Green Thumb Lawn Care")
        service.add_template(PROVIDER, 2, "09:00", "17:00")
        booking = book(service, "10:00", "11:00")

        result = service.accept(booking.id, PROVIDER, PartyRole.PROVIDER)
        assert not result.success
        assert result.error == ErrorKind.UNAVAILABLE
        assert result.error.retryable


class TestListBookings:
    @pytest.fixture
    def populated(self, seeded_service):
        seeded_service.add_template(PROVIDER, 4, "09:00", "17:00")
        a = book(seeded_service, "14:00", "15:00")
        b = book(seeded_service, "09:00", "10:00")
        c = book(seeded_service, "10:00", "11:00", scheduled_date="2025-03-06")
        d = book(seeded_service, "11:00", "12:00", customer_id=OTHER_CUSTOMER)
        seeded_service.cancel(a.id, CUSTOMER, PartyRole.CUSTOMER)
        return seeded_service, {"a": a, "b": b, "c": c, "d": d}

    def test_customer_sees_own_bookings_active_first(self, populated):
        service, bk = populated
        ids = [b.id for b in service.list_bookings(CUSTOMER, PartyRole.CUSTOMER)]
        assert ids == [bk["b"].id, bk["c"].id, bk["a"].id]

    def test_provider_sees_all_their_bookings(self, populated):
        service, _ = populated
        assert len(service.list_bookings(PROVIDER, "provider")) == 4

    def test_status_filter(self, populated):
        service, bk = populated
        rows = service.list_bookings(CUSTOMER, PartyRole.CUSTOMER, statuses=["cancelled"])
        assert [b.id for b in rows] == [bk["a"].id]

    def test_date_range_filter(self, populated):
        service, bk = populated
        rows = service.list_bookings(
            PROVIDER, PartyRole.PROVIDER, date_from="2025-03-05", date_to=date(2025, 3, 31)
        )
        assert [b.id for b in rows] == [bk["c"].id]

    def test_customer_role_does_not_leak_other_customers(self, populated):
        service, bk = populated
        rows = service.list_bookings(OTHER_CUSTOMER, PartyRole.CUSTOMER)
        assert [b.id for b in rows] == [bk["d"].id]


class TestReadErrors:
    def test_get_missing_booking(self, service):
        with pytest.raises(NotFoundError):
            service.get_booking("BK-NOPE")

    def test_bad_schedule_date(self, seeded_service):
        with pytest.raises(InvalidTimeRangeError):
            seeded_service.get_schedule(PROVIDER, "March 4th")

    def test_unknown_status_filter(self, seeded_service):
        with pytest.raises(InvalidInputError, match="bogus"):
            seeded_service.list_bookings(CUSTOMER, PartyRole.CUSTOMER, statuses=["bogus"])

    def test_unknown_override_type(self, seeded_service):
        with pytest.raises(InvalidInputError, match="holiday"):
            seeded_service.add_override(PROVIDER, TUESDAY, "holiday")

    def test_custom_override_without_hours(self, seeded_service):
        with pytest.raises(InvalidTimeRangeError):
            seeded_service.add_override(PROVIDER, TUESDAY, "custom")

    def test_template_day_out_of_range(self, seeded_service):
        with pytest.raises(InvalidTimeRangeError):
            seeded_service.add_template(PROVIDER, 7, "09:00", "17:00")
