from booking_core.scheduling.aggregator import (
    OpenWindow,
    ScheduleAggregator,
    status_color,
    status_label,
)
from booking_core.scheduling.slots import find_available_slots

__all__ = [
    "ScheduleAggregator",
    "OpenWindow",
    "status_color",
    "status_label",
    "find_available_slots",
]
