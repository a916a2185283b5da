"""Booking records, status history, and operation results."""

from datetime import date, datetime, time, timezone
from decimal import Decimal
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

from booking_core.errors import ErrorKind


class BookingStatus(str, Enum):
    """Lifecycle status of a booking. Values are the external representation."""
    PENDING = "pending"
    CONFIRMED = "confirmed"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    DECLINED = "declined"


class PartyRole(str, Enum):
    """Role a caller acts in when touching a booking."""
    CUSTOMER = "customer"
    PROVIDER = "provider"


TERMINAL_STATUSES = frozenset(
    {BookingStatus.COMPLETED, BookingStatus.CANCELLED, BookingStatus.DECLINED}
)

# Statuses that still occupy the provider's time.
OCCUPYING_STATUSES = frozenset(
    {
        BookingStatus.PENDING,
        BookingStatus.CONFIRMED,
        BookingStatus.IN_PROGRESS,
        BookingStatus.COMPLETED,
    }
)

ACTIVE_STATUSES = frozenset(
    {BookingStatus.PENDING, BookingStatus.CONFIRMED, BookingStatus.IN_PROGRESS}
)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Booking(BaseModel):
    """A scheduled engagement between a customer and a provider.

    Records are frozen. The booking store produces updated copies, and only
    its compare-and-swap primitive ever changes ``status``.
    """

    model_config = ConfigDict(frozen=True)

    id: str
    customer_id: str
    provider_id: str
    service_id: str
    status: BookingStatus = BookingStatus.PENDING
    scheduled_date: date
    start_time: time
    end_time: time
    service_address: str
    total_price: Decimal = Field(default=Decimal("0"), ge=0)
    special_instructions: Optional[str] = None
    payment_reference: Optional[str] = None
    cancellation_reason: Optional[str] = None
    completion_notes: Optional[str] = None
    completed_at: Optional[datetime] = None
    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)
    version: int = 1

    @model_validator(mode="after")
    def _check_time_range(self) -> "Booking":
        if self.start_time >= self.end_time:
            raise ValueError("start_time must be before end_time")
        return self

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    def party_for(self, role: PartyRole) -> str:
        """Return the party id assigned to ``role`` on this booking."""
        if role == PartyRole.PROVIDER:
            return self.provider_id
        return self.customer_id


class StatusHistoryEntry(BaseModel):
    """Audit trail row written for creation and every status change."""

    booking_id: str
    status: BookingStatus
    changed_by: str
    role: PartyRole
    notes: Optional[str] = None
    changed_at: datetime = Field(default_factory=_utcnow)


class OperationResult(BaseModel):
    """Outcome of a mutating operation handed back to collaborators."""

    success: bool
    message: str
    error: Optional[ErrorKind] = None
    booking: Optional[Booking] = None

    @property
    def booking_id(self) -> Optional[str]:
        return self.booking.id if self.booking else None
