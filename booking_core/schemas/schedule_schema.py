"""Derived timeline entries. Built fresh on every call, never persisted."""

from datetime import time
from enum import Enum
from typing import Optional

from pydantic import BaseModel

from booking_core.schemas.booking_schema import BookingStatus


class ScheduleItemKind(str, Enum):
    AVAILABILITY = "availability"
    OVERRIDE = "override"
    BOOKING = "booking"


class ScheduleItem(BaseModel):
    """A single entry in a provider's day timeline."""

    start_time: time
    end_time: time
    kind: ScheduleItemKind
    title: str
    subtitle: str = ""
    status: Optional[BookingStatus] = None
    booking_id: Optional[str] = None
    color: Optional[str] = None


class AvailableSlot(BaseModel):
    """A bookable interval of the requested duration."""

    start_time: time
    end_time: time
