"""
Booking status state machine with compare-and-swap transitions.

Defines the six booking statuses' legal moves as an explicit transition
table. Every status change goes through ``BookingStateMachine.apply``, which
reads the booking, looks up the transition, and asks the store to swap the
status only if it is still the one that was read. A caller that loses the
race gets ``StaleStateError`` and must re-fetch.

    pending -> confirmed -> in_progress -> completed
    pending -> declined
    pending -> cancelled
    confirmed -> cancelled

Usage:
    machine = BookingStateMachine(store, bridge)
    booking = machine.accept("BK-1A2B3C4D", "prov-1", PartyRole.PROVIDER)
    assert booking.status == BookingStatus.CONFIRMED
"""

from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional

from booking_core.errors import InvalidTransitionError, NotFoundError, UnauthorizedError
from booking_core.logging_context import get_request_logger
from booking_core.notifications.bridge import ChangeBridge
from booking_core.schemas.booking_schema import (
    TERMINAL_STATUSES,
    Booking,
    BookingStatus,
    PartyRole,
)
from booking_core.stores.booking_store import BookingStore

logger = get_request_logger(__name__)


class BookingAction(str, Enum):
    """Operations that move a booking between statuses."""
    ACCEPT = "accept"
    DECLINE = "decline"
    START = "start"
    COMPLETE = "complete"
    CANCEL = "cancel"


@dataclass(frozen=True)
class Transition:
    """A single valid status transition."""
    from_status: BookingStatus
    to_status: BookingStatus
    action: BookingAction
    roles: frozenset


_PROVIDER_ONLY = frozenset({PartyRole.PROVIDER})
_EITHER_PARTY = frozenset({PartyRole.PROVIDER, PartyRole.CUSTOMER})

TRANSITIONS: tuple[Transition, ...] = (
    # --- Provider response ---
    Transition(BookingStatus.PENDING, BookingStatus.CONFIRMED,
               BookingAction.ACCEPT, _PROVIDER_ONLY),
    Transition(BookingStatus.PENDING, BookingStatus.DECLINED,
               BookingAction.DECLINE, _PROVIDER_ONLY),

    # --- Service delivery ---
    Transition(BookingStatus.CONFIRMED, BookingStatus.IN_PROGRESS,
               BookingAction.START, _PROVIDER_ONLY),
    Transition(BookingStatus.IN_PROGRESS, BookingStatus.COMPLETED,
               BookingAction.COMPLETE, _PROVIDER_ONLY),

    # --- Cancellation ---
    Transition(BookingStatus.PENDING, BookingStatus.CANCELLED,
               BookingAction.CANCEL, _EITHER_PARTY),
    Transition(BookingStatus.CONFIRMED, BookingStatus.CANCELLED,
               BookingAction.CANCEL, _EITHER_PARTY),
)


def find_transition(status: BookingStatus, action: BookingAction) -> Optional[Transition]:
    for t in TRANSITIONS:
        if t.from_status == status and t.action == action:
            return t
    return None


def roles_for(action: BookingAction) -> frozenset:
    """Every role allowed to perform ``action`` from any status."""
    roles: set = set()
    for t in TRANSITIONS:
        if t.action == action:
            roles |= t.roles
    return frozenset(roles)


def valid_actions(status: BookingStatus, role: PartyRole) -> list[BookingAction]:
    """Actions ``role`` may take on a booking currently in ``status``."""
    return [t.action for t in TRANSITIONS if t.from_status == status and role in t.roles]


def is_terminal(status: BookingStatus) -> bool:
    return status in TERMINAL_STATUSES


class BookingStateMachine:
    """
    Applies lifecycle transitions to stored bookings.

    Status changes never happen as read-then-write. The store's
    ``compare_and_set_status`` is the only write path, and a successful
    write is followed by exactly one change notification.
    """

    def __init__(self, store: BookingStore, bridge: ChangeBridge) -> None:
        self._store = store
        self._bridge = bridge

    def apply(
        self,
        booking_id: str,
        action: BookingAction,
        caller_id: str,
        role: PartyRole,
        notes: Optional[str] = None,
    ) -> Booking:
        """
        Execute a transition on a booking.

        Args:
            booking_id: The booking to transition.
            action: The requested operation.
            caller_id: Party id of the caller.
            role: Role the caller acts in.
            notes: Optional reason or completion notes kept on the booking
                and in its status history.

        Returns:
            The updated booking.

        Raises:
            NotFoundError: If the booking does not exist.
            UnauthorizedError: If the caller may not perform the action.
            InvalidTransitionError: If the current status forbids the action.
            StaleStateError: If another caller changed the status first.
        """
        booking = self._store.get(booking_id)
        if booking is None:
            raise NotFoundError(f"Booking {booking_id} not found.")

        if role not in roles_for(action) or booking.party_for(role) != caller_id:
            raise UnauthorizedError(
                f"{role.value} '{caller_id}' may not {action.value} booking {booking_id}."
            )

        transition = find_transition(booking.status, action)
        if transition is None:
            valid = [a.value for a in valid_actions(booking.status, role)]
            raise InvalidTransitionError(
                f"Cannot {action.value} booking {booking_id} in status "
                f"'{booking.status.value}'. Valid actions: {valid}"
            )

        updated = self._store.compare_and_set_status(
            booking_id,
            expected=transition.from_status,
            new=transition.to_status,
            changed_by=caller_id,
            role=role,
            notes=notes,
            updates=self._side_fields(transition, notes),
        )

        logger.info(
            "Booking %s: %s -> %s (action: %s, by %s %s)",
            booking_id, transition.from_status.value, transition.to_status.value,
            action.value, role.value, caller_id,
        )
        self._bridge.publish(updated.provider_id, updated.customer_id)
        return updated

    def accept(self, booking_id: str, caller_id: str, role: PartyRole) -> Booking:
        return self.apply(booking_id, BookingAction.ACCEPT, caller_id, role)

    def decline(
        self, booking_id: str, caller_id: str, role: PartyRole, reason: Optional[str] = None
    ) -> Booking:
        return self.apply(booking_id, BookingAction.DECLINE, caller_id, role, reason)

    def start(self, booking_id: str, caller_id: str, role: PartyRole) -> Booking:
        return self.apply(booking_id, BookingAction.START, caller_id, role)

    def complete(
        self, booking_id: str, caller_id: str, role: PartyRole, notes: Optional[str] = None
    ) -> Booking:
        return self.apply(booking_id, BookingAction.COMPLETE, caller_id, role, notes)

    def cancel(
        self, booking_id: str, caller_id: str, role: PartyRole, reason: Optional[str] = None
    ) -> Booking:
        return self.apply(booking_id, BookingAction.CANCEL, caller_id, role, reason)

    @staticmethod
    def _side_fields(transition: Transition, notes: Optional[str]) -> dict[str, Any]:
        if transition.to_status == BookingStatus.COMPLETED:
            return {"completed_at": datetime.now(timezone.utc), "completion_notes": notes}
        if transition.to_status in (BookingStatus.CANCELLED, BookingStatus.DECLINED):
            return {"cancellation_reason": notes}
        return {}
