"""
Console demo for the booking core.

Seeds one provider with a weekday template, walks a booking through its
lifecycle, and prints the resulting day timeline and the slots still open.
Useful for eyeballing schedule ordering without any UI attached.

Usage:
    python main.py
    python main.py --date 2025-03-04 --duration 60 --verbose
"""

import argparse
import logging
import sys
from datetime import date

from booking_core.logging_context import RequestIdFilter, set_request_id
from booking_core.schemas.booking_schema import PartyRole
from booking_core.service import BookingService
from booking_core.utils import day_of_week, format_time_range, parse_date

logger = logging.getLogger(__name__)

DEMO_PROVIDER = "prov-greenthumb"
DEMO_CUSTOMER = "cust-0001"
DEMO_DATE = "2025-03-04"


def seed_demo(service: BookingService, target_date: date) -> None:
    """Register the demo provider and open 09:00-17:00 on the target weekday."""
    service.register_provider(DEMO_PROVIDER, "Green Thumb Lawn Care")
    service.add_template(DEMO_PROVIDER, day_of_week(target_date), "09:00", "17:00")


def run_demo(target_date: date, duration_minutes: int = 60) -> list[str]:
    """Run the demo scenario and return the printable report lines."""
    service = BookingService()
    seed_demo(service, target_date)

    changes: list[str] = []
    subscription = service.subscribe_to_changes(
        DEMO_PROVIDER, lambda: changes.append("change")
    )

    set_request_id("DEMO-create")
    created = service.create_booking(
        DEMO_CUSTOMER, DEMO_PROVIDER, "svc-mowing", target_date,
        "10:00", "11:00", "123 Pine St", total_price="45.00",
    )
    if not created.success:
        return [f"Booking rejected: {created.message}"]

    set_request_id("DEMO-accept")
    service.accept(created.booking_id, DEMO_PROVIDER, PartyRole.PROVIDER)
    subscription.unsubscribe()

    lines = [f"Schedule for {DEMO_PROVIDER} on {target_date.isoformat()}:"]
    for item in service.get_schedule(DEMO_PROVIDER, target_date):
        status = f" [{item.status.value}]" if item.status else ""
        lines.append(
            f"  {format_time_range(item.start_time, item.end_time)}  "
            f"{item.kind.value:<12} {item.title}{status}"
        )

    slots = service.get_available_slots(DEMO_PROVIDER, target_date, duration_minutes)
    lines.append(f"Open {duration_minutes}-minute slots: {len(slots)}")
    lines.extend(f"  {format_time_range(s.start_time, s.end_time)}" for s in slots)
    lines.append(f"Change notifications received: {len(changes)}")
    return lines


def main() -> None:
    parser = argparse.ArgumentParser(
        description="Walk a demo booking through its lifecycle and print the schedule."
    )
    parser.add_argument(
        "--date",
        type=str,
        default=DEMO_DATE,
        help="Calendar date to schedule on, YYYY-MM-DD (default: %(default)s).",
    )
    parser.add_argument(
        "--duration",
        type=int,
        default=60,
        help="Slot length in minutes for the open-slot search (default: %(default)s).",
    )
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Log every transition with its request id.",
    )
    args = parser.parse_args()

    if args.verbose:
        handler = logging.StreamHandler()
        handler.addFilter(RequestIdFilter())
        handler.setFormatter(
            logging.Formatter("%(asctime)s [%(request_id)s] %(name)s %(levelname)s: %(message)s")
        )
        root = logging.getLogger()
        root.handlers = [handler]
        root.setLevel(logging.DEBUG)

    try:
        target_date = parse_date(args.date)
    except ValueError as exc:
        logger.error("%s", exc)
        sys.exit(1)

    sys.stdout.write("\n".join(run_demo(target_date, args.duration)) + "\n")


if __name__ == "__main__":
    main()
