"""
Schedule aggregation: one ordered timeline per provider and date.

Merges the provider's open windows (weekly template, or the date's
overrides when any exist) with the bookings that still occupy time. The
merge is presentation-only: overlapping items are all emitted and no
conflict is resolved here.
"""

from dataclasses import dataclass
from datetime import date, time
from typing import Optional

from booking_core.config import settings
from booking_core.logging_context import get_request_logger
from booking_core.schemas.booking_schema import OCCUPYING_STATUSES, Booking, BookingStatus
from booking_core.schemas.schedule_schema import ScheduleItem, ScheduleItemKind
from booking_core.stores.availability_store import AvailabilityStore
from booking_core.stores.booking_store import BookingStore
from booking_core.utils import day_of_week, format_time_range

logger = get_request_logger(__name__)

# Lower sorts first when two items start at the same instant.
KIND_PRECEDENCE: dict[ScheduleItemKind, int] = {
    ScheduleItemKind.OVERRIDE: 0,
    ScheduleItemKind.BOOKING: 1,
    ScheduleItemKind.AVAILABILITY: 2,
}

STATUS_COLORS: dict[BookingStatus, str] = {
    BookingStatus.PENDING: "#FF9800",
    BookingStatus.CONFIRMED: "#4CAF50",
    BookingStatus.IN_PROGRESS: "#2196F3",
    BookingStatus.COMPLETED: "#9E9E9E",
}
DEFAULT_STATUS_COLOR = "#666666"


def status_color(status: BookingStatus) -> str:
    return STATUS_COLORS.get(status, DEFAULT_STATUS_COLOR)


def status_label(status: BookingStatus) -> str:
    """Human label for a status, e.g. ``in_progress`` -> ``In progress``."""
    text = status.value.replace("_", " ")
    return text[:1].upper() + text[1:]


@dataclass(frozen=True)
class OpenWindow:
    """An interval during which the provider accepts work on a given date."""
    start_time: time
    end_time: time
    kind: ScheduleItemKind
    reason: Optional[str] = None


def schedule_sort_key(item: ScheduleItem) -> tuple:
    return (item.start_time, KIND_PRECEDENCE[item.kind], item.end_time, item.booking_id or "")


class ScheduleAggregator:
    """Builds provider day timelines from availability and bookings."""

    def __init__(
        self,
        availability: AvailabilityStore,
        bookings: BookingStore,
        time_format: Optional[str] = None,
    ) -> None:
        self._availability = availability
        self._bookings = bookings
        self._time_format = time_format or settings.display.time_format

    def open_windows(self, provider_id: str, target_date: date) -> list[OpenWindow]:
        """Resolve the provider's open windows for one date.

        Overrides for the exact date replace the weekly template entirely;
        a blocked override (blackout or vacation) leaves the day closed.
        """
        overrides = self._availability.overrides_for(provider_id, target_date)
        if overrides:
            if any(o.blocked for o in overrides):
                return []
            return sorted(
                (
                    OpenWindow(o.start_time, o.end_time, ScheduleItemKind.OVERRIDE, o.reason)
                    for o in overrides
                ),
                key=lambda w: (w.start_time, w.end_time),
            )

        templates = self._availability.templates_for(provider_id, day_of_week(target_date))
        return sorted(
            (
                OpenWindow(t.start_time, t.end_time, ScheduleItemKind.AVAILABILITY)
                for t in templates
            ),
            key=lambda w: (w.start_time, w.end_time),
        )

    def occupying_bookings(self, provider_id: str, target_date: date) -> list[Booking]:
        """Bookings on the date whose status still holds the provider's time."""
        return self._bookings.list_for_provider_date(
            provider_id, target_date, statuses=OCCUPYING_STATUSES
        )

    def build(self, provider_id: str, target_date: date) -> list[ScheduleItem]:
        """Return the ordered timeline for ``provider_id`` on ``target_date``.

        Raises:
            NotFoundError: If the provider is unknown.
        """
        self._availability.require_provider(provider_id)

        items = [self._window_item(w) for w in self.open_windows(provider_id, target_date)]
        items.extend(
            self._booking_item(b) for b in self.occupying_bookings(provider_id, target_date)
        )
        items.sort(key=schedule_sort_key)

        logger.debug(
            "Schedule for %s on %s: %d item(s)", provider_id, target_date, len(items)
        )
        return items

    def _window_item(self, window: OpenWindow) -> ScheduleItem:
        hours = format_time_range(window.start_time, window.end_time, self._time_format)
        if window.kind == ScheduleItemKind.OVERRIDE:
            return ScheduleItem(
                start_time=window.start_time,
                end_time=window.end_time,
                kind=window.kind,
                title="Available (custom hours)",
                subtitle=window.reason or hours,
            )
        return ScheduleItem(
            start_time=window.start_time,
            end_time=window.end_time,
            kind=window.kind,
            title="Available",
            subtitle=hours,
        )

    @staticmethod
    def _booking_item(booking: Booking) -> ScheduleItem:
        return ScheduleItem(
            start_time=booking.start_time,
            end_time=booking.end_time,
            kind=ScheduleItemKind.BOOKING,
            title=f"Booking ({status_label(booking.status)})",
            subtitle=booking.service_address,
            status=booking.status,
            booking_id=booking.id,
            color=status_color(booking.status),
        )
