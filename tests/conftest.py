"""Shared test fixtures and helpers."""

from datetime import date
from typing import Optional

import pytest

from booking_core.lifecycle.state_machine import BookingStateMachine
from booking_core.notifications.bridge import ChangeBridge
from booking_core.schemas.booking_schema import Booking, BookingStatus
from booking_core.service import BookingService
from booking_core.stores.availability_store import AvailabilityStore
from booking_core.stores.booking_store import BookingStore

PROVIDER = "prov-1"
OTHER_PROVIDER = "prov-2"
CUSTOMER = "cust-1"
OTHER_CUSTOMER = "cust-2"

# 2025-03-04 is a Tuesday (day_of_week == 2 with Sunday == 0).
TUESDAY = date(2025, 3, 4)
WEDNESDAY = date(2025, 3, 5)


@pytest.fixture
def booking_store():
    return BookingStore()


@pytest.fixture
def availability_store():
    return AvailabilityStore()


@pytest.fixture
def bridge():
    return ChangeBridge()


@pytest.fixture
def state_machine(booking_store, bridge):
    return BookingStateMachine(booking_store, bridge)


@pytest.fixture
def service(booking_store, availability_store, bridge):
    return BookingService(booking_store, availability_store, bridge)


@pytest.fixture
def seeded_service(service):
    """Provider with a Tuesday 09:00-17:00 template and no overrides."""
    service.register_provider(PROVIDER, "Green Thumb Lawn Care")
    service.add_template(PROVIDER, 2, "09:00", "17:00")
    return service


def make_booking(
    booking_id: str = "BK-TEST0001",
    status: BookingStatus = BookingStatus.PENDING,
    start: str = "10:00",
    end: str = "11:00",
    scheduled_date: date = TUESDAY,
    provider_id: str = PROVIDER,
    customer_id: str = CUSTOMER,
    address: Optional[str] = None,
) -> Booking:
    """Helper to create a Booking with sensible defaults."""
    return Booking(
        id=booking_id,
        customer_id=customer_id,
        provider_id=provider_id,
        service_id="svc-mowing",
        status=status,
        scheduled_date=scheduled_date,
        start_time=start,
        end_time=end,
        service_address=address or "123 Pine St",
        total_price="45.00",
    )


def book(service: BookingService, start: str, end: str, **kwargs) -> Booking:
    """Create a booking through the service and assert it was accepted."""
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
    result = service.create_booking(**params)
    assert result.success, result.message
    return result.booking
