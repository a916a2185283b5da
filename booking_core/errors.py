"""Typed error taxonomy for the booking core.

Stores and the state machine raise these exceptions; the service facade
turns them into ``OperationResult`` values so callers always receive a
typed outcome.
"""

from enum import Enum


class ErrorKind(str, Enum):
    """Failure categories reported to callers."""
    NOT_FOUND = "not_found"
    UNAUTHORIZED = "unauthorized"
    INVALID_TRANSITION = "invalid_transition"
    STALE_STATE = "stale_state"
    OUTSIDE_AVAILABILITY = "outside_availability"
    OVERLAPS = "overlaps"
    INVALID_TIME_RANGE = "invalid_time_range"
    INVALID_INPUT = "invalid_input"
    UNAVAILABLE = "unavailable"

    @property
    def retryable(self) -> bool:
        """Only an unreachable store may be retried without changing anything."""
        return self is ErrorKind.UNAVAILABLE


class BookingCoreError(Exception):
    """Base class for every error the booking core reports."""

    kind: ErrorKind = ErrorKind.UNAVAILABLE

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class NotFoundError(BookingCoreError):
    kind = ErrorKind.NOT_FOUND


class UnauthorizedError(BookingCoreError):
    kind = ErrorKind.UNAUTHORIZED


class InvalidTransitionError(BookingCoreError):
    kind = ErrorKind.INVALID_TRANSITION


class StaleStateError(BookingCoreError):
    """The compare-and-swap lost a race with another caller."""

    kind = ErrorKind.STALE_STATE


class OutsideAvailabilityError(BookingCoreError):
    kind = ErrorKind.OUTSIDE_AVAILABILITY


class OverlapsError(BookingCoreError):
    kind = ErrorKind.OVERLAPS


class InvalidTimeRangeError(BookingCoreError):
    kind = ErrorKind.INVALID_TIME_RANGE


class UnavailableError(BookingCoreError):
    kind = ErrorKind.UNAVAILABLE


class InvalidInputError(BookingCoreError):
    """A non-temporal argument such as a price or a status filter is malformed."""

    kind = ErrorKind.INVALID_INPUT
