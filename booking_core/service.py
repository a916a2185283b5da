"""
Booking service facade: the operations exposed to collaborators.

UI screens, CLIs, and API gateways call into this class. Mutations return
an ``OperationResult`` carrying either the updated booking or a typed
``ErrorKind``; read paths return data directly and raise the typed
``BookingCoreError`` subclasses for missing entities or bad input.
"""

from datetime import date, time
from decimal import Decimal, InvalidOperation
from typing import Callable, Iterable, Optional, Union

from pydantic import ValidationError

from booking_core.config import AppConfig, settings
from booking_core.errors import (
    BookingCoreError,
    InvalidInputError,
    InvalidTimeRangeError,
    NotFoundError,
    UnauthorizedError,
    UnavailableError,
)
from booking_core.lifecycle.state_machine import BookingAction, BookingStateMachine
from booking_core.logging_context import get_request_logger, request_scope
from booking_core.notifications.bridge import ChangeBridge, ChangeCallback, ChangeStream, Subscription
from booking_core.schemas.availability_schema import (
    AvailabilityOverride,
    AvailabilityTemplate,
    OverrideType,
    Provider,
)
from booking_core.schemas.booking_schema import (
    ACTIVE_STATUSES,
    OCCUPYING_STATUSES,
    Booking,
    BookingStatus,
    OperationResult,
    PartyRole,
    StatusHistoryEntry,
)
from booking_core.schemas.schedule_schema import AvailableSlot, ScheduleItem
from booking_core.scheduling.aggregator import ScheduleAggregator
from booking_core.scheduling.conflicts import (
    check_max_duration,
    check_no_overlap,
    check_time_range,
    check_within_windows,
)
from booking_core.scheduling.slots import find_available_slots
from booking_core.stores.availability_store import AvailabilityStore
from booking_core.stores.booking_store import BookingStore, new_booking_id
from booking_core.utils import parse_date, parse_time

logger = get_request_logger(__name__)

DateLike = Union[date, str]
TimeLike = Union[time, str]
RoleLike = Union[PartyRole, str]


def _parse_date(value: DateLike) -> date:
    try:
        return parse_date(value)
    except ValueError as exc:
        raise InvalidTimeRangeError(str(exc)) from None


def _parse_time(value: TimeLike) -> time:
    try:
        return parse_time(value)
    except ValueError as exc:
        raise InvalidTimeRangeError(str(exc)) from None


def _parse_role(value: RoleLike) -> PartyRole:
    try:
        return PartyRole(value)
    except ValueError:
        raise UnauthorizedError(f"Unknown role: {value!r}") from None


def _parse_status(value: Union[BookingStatus, str]) -> BookingStatus:
    try:
        return BookingStatus(value)
    except ValueError:
        raise InvalidInputError(f"Unknown booking status: {value!r}") from None


def _parse_override_type(value: Union[OverrideType, str]) -> OverrideType:
    try:
        return OverrideType(value)
    except ValueError:
        raise InvalidInputError(f"Unknown override type: {value!r}") from None


def _parse_price(value: Union[Decimal, int, str]) -> Decimal:
    try:
        price = Decimal(str(value))
    except InvalidOperation:
        raise InvalidInputError(f"Invalid price: {value!r}") from None
    if not price.is_finite() or price < 0:
        raise InvalidInputError(f"Price must be a non-negative amount, got {value!r}.")
    return price


class BookingService:
    """Entry point for booking lifecycle, schedule reads, and change feeds."""

    def __init__(
        self,
        bookings: Optional[BookingStore] = None,
        availability: Optional[AvailabilityStore] = None,
        bridge: Optional[ChangeBridge] = None,
        config: Optional[AppConfig] = None,
    ) -> None:
        self.config = config or settings
        self.bookings = bookings or BookingStore()
        self.availability = availability or AvailabilityStore()
        self.bridge = bridge or ChangeBridge()
        self.aggregator = ScheduleAggregator(
            self.availability, self.bookings, self.config.display.time_format
        )
        self.state_machine = BookingStateMachine(self.bookings, self.bridge)

    # --- Provider availability management ---

    def register_provider(
        self, provider_id: str, business_name: str, timezone: str = "UTC"
    ) -> Provider:
        return self.availability.register_provider(
            Provider(id=provider_id, business_name=business_name, timezone=timezone)
        )

    def add_template(
        self, provider_id: str, day_of_week: int, start_time: TimeLike, end_time: TimeLike
    ) -> AvailabilityTemplate:
        start, end = _parse_time(start_time), _parse_time(end_time)
        try:
            template = AvailabilityTemplate(
                provider_id=provider_id, day_of_week=day_of_week, start_time=start, end_time=end
            )
        except ValidationError as exc:
            raise InvalidTimeRangeError(f"Invalid availability template: {exc}") from None
        return self.availability.add_template(template)

    def add_override(
        self,
        provider_id: str,
        override_date: DateLike,
        override_type: Union[OverrideType, str] = OverrideType.CUSTOM,
        start_time: Optional[TimeLike] = None,
        end_time: Optional[TimeLike] = None,
        reason: Optional[str] = None,
    ) -> AvailabilityOverride:
        fields = dict(
            provider_id=provider_id,
            override_date=_parse_date(override_date),
            override_type=_parse_override_type(override_type),
            start_time=_parse_time(start_time) if start_time is not None else None,
            end_time=_parse_time(end_time) if end_time is not None else None,
            reason=reason,
        )
        try:
            override = AvailabilityOverride(**fields)
        except ValidationError as exc:
            raise InvalidTimeRangeError(f"Invalid availability override: {exc}") from None
        return self.availability.add_override(override)

    def remove_overrides(self, provider_id: str, override_date: DateLike) -> int:
        return self.availability.remove_overrides(provider_id, _parse_date(override_date))

    # --- Booking creation ---

    def create_booking(
        self,
        customer_id: str,
        provider_id: str,
        service_id: str,
        scheduled_date: DateLike,
        start_time: TimeLike,
        end_time: TimeLike,
        address: str,
        total_price: Union[Decimal, int, str] = Decimal("0"),
        special_instructions: Optional[str] = None,
        payment_reference: Optional[str] = None,
    ) -> OperationResult:
        """Create a ``pending`` booking after validating it against the schedule.

        Rejections (``invalid_time_range``, ``invalid_input``,
        ``outside_availability``, ``overlaps``, ``not_found``) leave every
        store untouched.
        """
        scheduling = self.config.scheduling
        allow_adjacent = scheduling.allow_adjacent_bookings

        def _create() -> Booking:
            day = _parse_date(scheduled_date)
            start = _parse_time(start_time)
            end = _parse_time(end_time)
            check_time_range(start, end)
            check_max_duration(start, end, scheduling.max_duration_minutes)
            price = _parse_price(total_price)
            self.availability.require_provider(provider_id)
            check_within_windows(self.aggregator.open_windows(provider_id, day), start, end)

            booking = Booking(
                id=new_booking_id(),
                customer_id=customer_id,
                provider_id=provider_id,
                service_id=service_id,
                scheduled_date=day,
                start_time=start,
                end_time=end,
                service_address=address,
                total_price=price,
                special_instructions=special_instructions,
                payment_reference=payment_reference,
            )
            self.bookings.insert(
                booking,
                created_by=customer_id,
                guard=lambda existing: check_no_overlap(existing, start, end, allow_adjacent),
            )
            logger.info(
                "Booking created: %s for %s with %s on %s %s-%s",
                booking.id, customer_id, provider_id, day,
                start.strftime("%H:%M"), end.strftime("%H:%M"),
            )
            self.bridge.publish(provider_id, customer_id)
            return booking

        return self._run("create_booking", _create, "Booking requested.")

    # --- Lifecycle transitions ---

    def accept(self, booking_id: str, caller_id: str, caller_role: RoleLike) -> OperationResult:
        return self._transition(booking_id, BookingAction.ACCEPT, caller_id, caller_role)

    def decline(
        self,
        booking_id: str,
        caller_id: str,
        caller_role: RoleLike,
        reason: Optional[str] = None,
    ) -> OperationResult:
        return self._transition(booking_id, BookingAction.DECLINE, caller_id, caller_role, reason)

    def start(self, booking_id: str, caller_id: str, caller_role: RoleLike) -> OperationResult:
        return self._transition(booking_id, BookingAction.START, caller_id, caller_role)

    def complete(
        self,
        booking_id: str,
        caller_id: str,
        caller_role: RoleLike,
        notes: Optional[str] = None,
    ) -> OperationResult:
        """Finish the job. Completed bookings become eligible for earnings."""
        return self._transition(booking_id, BookingAction.COMPLETE, caller_id, caller_role, notes)

    def cancel(
        self,
        booking_id: str,
        caller_id: str,
        caller_role: RoleLike,
        reason: Optional[str] = None,
    ) -> OperationResult:
        return self._transition(booking_id, BookingAction.CANCEL, caller_id, caller_role, reason)

    # --- Read paths ---

    def get_booking(self, booking_id: str) -> Booking:
        booking = self.bookings.get(booking_id)
        if booking is None:
            raise NotFoundError(f"Booking {booking_id} not found.")
        return booking

    def get_status_history(self, booking_id: str) -> list[StatusHistoryEntry]:
        return self.bookings.history(booking_id)

    def get_schedule(self, provider_id: str, target_date: DateLike) -> list[ScheduleItem]:
        """Ordered timeline of open windows and bookings for one provider day."""
        return self.aggregator.build(provider_id, _parse_date(target_date))

    def get_available_slots(
        self, provider_id: str, target_date: DateLike, duration_minutes: int
    ) -> list[AvailableSlot]:
        """Bookable intervals of ``duration_minutes`` on ``target_date``.

        Completed bookings still occupy their time here, matching what the
        schedule shows.
        """
        scheduling = self.config.scheduling
        if duration_minutes < scheduling.min_duration_minutes:
            raise InvalidTimeRangeError(
                f"Duration must be at least {scheduling.min_duration_minutes} minutes."
            )
        if duration_minutes > scheduling.max_duration_minutes:
            raise InvalidTimeRangeError(
                f"Duration must be at most {scheduling.max_duration_minutes} minutes."
            )
        day = _parse_date(target_date)
        self.availability.require_provider(provider_id)
        busy = self.bookings.list_for_provider_date(provider_id, day, statuses=OCCUPYING_STATUSES)
        return find_available_slots(
            self.aggregator.open_windows(provider_id, day),
            busy,
            duration_minutes,
            step_minutes=scheduling.slot_step_minutes,
            allow_adjacent=scheduling.allow_adjacent_bookings,
        )

    def list_bookings(
        self,
        party_id: str,
        role: RoleLike,
        statuses: Optional[Iterable[Union[BookingStatus, str]]] = None,
        date_from: Optional[DateLike] = None,
        date_to: Optional[DateLike] = None,
    ) -> list[Booking]:
        """Bookings where ``party_id`` plays ``role``, active ones first.

        ``date_from`` and ``date_to`` are inclusive.
        """
        rows = self.bookings.list_for_party(party_id, _parse_role(role))
        if statuses is not None:
            wanted = {_parse_status(s) for s in statuses}
            rows = [b for b in rows if b.status in wanted]
        if date_from is not None:
            lower = _parse_date(date_from)
            rows = [b for b in rows if b.scheduled_date >= lower]
        if date_to is not None:
            upper = _parse_date(date_to)
            rows = [b for b in rows if b.scheduled_date <= upper]
        rows.sort(
            key=lambda b: (b.status not in ACTIVE_STATUSES, b.scheduled_date, b.start_time, b.id)
        )
        return rows

    # --- Change notifications ---

    def subscribe_to_changes(self, party_id: str, callback: ChangeCallback) -> Subscription:
        return self.bridge.subscribe(party_id, callback)

    def open_change_stream(self, party_id: str) -> ChangeStream:
        return self.bridge.open_stream(party_id)

    def unsubscribe(self, subscription: Union[Subscription, ChangeStream]) -> None:
        if isinstance(subscription, ChangeStream):
            subscription.close()
        else:
            subscription.unsubscribe()

    # --- Internals ---

    def _transition(
        self,
        booking_id: str,
        action: BookingAction,
        caller_id: str,
        caller_role: RoleLike,
        notes: Optional[str] = None,
    ) -> OperationResult:
        def _apply() -> Booking:
            role = _parse_role(caller_role)
            return self.state_machine.apply(booking_id, action, caller_id, role, notes)

        return self._run(action.value, _apply, f"Booking {booking_id}: {action.value} succeeded.")

    def _run(
        self, operation: str, func: Callable[[], Booking], success_message: str
    ) -> OperationResult:
        with request_scope():
            try:
                booking = func()
            except BookingCoreError as exc:
                logger.warning("%s rejected (%s): %s", operation, exc.kind.value, exc.message)
                return OperationResult(success=False, error=exc.kind, message=exc.message)
            except ValidationError as exc:
                invalid = InvalidInputError(f"Invalid booking fields: {exc}")
                logger.warning("%s rejected (%s): %s", operation, invalid.kind.value, invalid.message)
                return OperationResult(success=False, error=invalid.kind, message=invalid.message)
            except (ConnectionError, TimeoutError) as exc:
                logger.error("%s failed, booking store unreachable: %s", operation, exc)
                unavailable = UnavailableError(f"Booking store unavailable: {exc}")
                return OperationResult(
                    success=False, error=unavailable.kind, message=unavailable.message
                )
            return OperationResult(success=True, message=success_message, booking=booking)
