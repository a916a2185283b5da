"""
In-memory booking persistence with a compare-and-swap status primitive.

A production deployment would back this with a database row updated by
``UPDATE ... WHERE id = :id AND status = :expected``. The in-memory version
gives the same guarantee with a lock: the status check and the write happen
in one critical section, so a concurrent caller can never be overwritten.
"""

import logging
import uuid
from datetime import date, datetime, timezone
from threading import Lock
from typing import Any, Callable, Iterable, Optional

from booking_core.errors import NotFoundError, StaleStateError
from booking_core.schemas.booking_schema import (
    Booking,
    BookingStatus,
    PartyRole,
    StatusHistoryEntry,
)

logger = logging.getLogger(__name__)

# Called under the write lock with the provider's bookings for the same date.
InsertGuard = Callable[[list[Booking]], None]


def new_booking_id() -> str:
    return f"BK-{uuid.uuid4().hex[:8].upper()}"


class BookingStore:
    """Thread-safe store of bookings and their status history."""

    def __init__(self) -> None:
        self._lock = Lock()
        self._bookings: dict[str, Booking] = {}
        self._history: dict[str, list[StatusHistoryEntry]] = {}

    def insert(
        self,
        booking: Booking,
        created_by: str,
        guard: Optional[InsertGuard] = None,
    ) -> Booking:
        """Persist a new booking.

        ``guard`` runs inside the write lock and may raise to reject the
        insert, which keeps validation and insertion atomic.
        """
        with self._lock:
            if booking.id in self._bookings:
                raise ValueError(f"Booking {booking.id} already exists")
            if guard is not None:
                guard(self._same_day(booking.provider_id, booking.scheduled_date))
            self._bookings[booking.id] = booking
            self._history[booking.id] = [
                StatusHistoryEntry(
                    booking_id=booking.id,
                    status=booking.status,
                    changed_by=created_by,
                    role=PartyRole.CUSTOMER,
                    notes="created",
                )
            ]
        logger.debug("Booking stored: %s (%s)", booking.id, booking.status.value)
        return booking

    def get(self, booking_id: str) -> Optional[Booking]:
        with self._lock:
            return self._bookings.get(booking_id)

    def compare_and_set_status(
        self,
        booking_id: str,
        expected: BookingStatus,
        new: BookingStatus,
        changed_by: str,
        role: PartyRole,
        notes: Optional[str] = None,
        updates: Optional[dict[str, Any]] = None,
    ) -> Booking:
        """Move a booking from ``expected`` to ``new`` in one atomic step.

        Raises:
            NotFoundError: If the booking does not exist.
            StaleStateError: If the stored status is no longer ``expected``.
        """
        now = datetime.now(timezone.utc)
        with self._lock:
            current = self._bookings.get(booking_id)
            if current is None:
                raise NotFoundError(f"Booking {booking_id} not found.")
            if current.status != expected:
                raise StaleStateError(
                    f"Booking {booking_id} is '{current.status.value}', "
                    f"expected '{expected.value}'. Re-fetch and decide again."
                )
            changes: dict[str, Any] = dict(updates or {})
            changes.update(status=new, updated_at=now, version=current.version + 1)
            updated = current.model_copy(update=changes)
            self._bookings[booking_id] = updated
            self._history[booking_id].append(
                StatusHistoryEntry(
                    booking_id=booking_id,
                    status=new,
                    changed_by=changed_by,
                    role=role,
                    notes=notes,
                    changed_at=now,
                )
            )
        return updated

    def list_for_provider_date(
        self,
        provider_id: str,
        scheduled_date: date,
        statuses: Optional[Iterable[BookingStatus]] = None,
    ) -> list[Booking]:
        allowed = set(statuses) if statuses is not None else None
        with self._lock:
            rows = self._same_day(provider_id, scheduled_date)
        if allowed is not None:
            rows = [b for b in rows if b.status in allowed]
        return rows

    def list_for_party(self, party_id: str, role: PartyRole) -> list[Booking]:
        with self._lock:
            return [b for b in self._bookings.values() if b.party_for(role) == party_id]

    def history(self, booking_id: str) -> list[StatusHistoryEntry]:
        with self._lock:
            if booking_id not in self._history:
                raise NotFoundError(f"Booking {booking_id} not found.")
            return list(self._history[booking_id])

    def reset(self) -> None:
        """Clear all bookings. Used by test fixtures for isolation."""
        with self._lock:
            self._bookings.clear()
            self._history.clear()

    def _same_day(self, provider_id: str, scheduled_date: date) -> list[Booking]:
        return [
            b
            for b in self._bookings.values()
            if b.provider_id == provider_id and b.scheduled_date == scheduled_date
        ]
