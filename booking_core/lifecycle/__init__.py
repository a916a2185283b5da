from booking_core.lifecycle.state_machine import (
    TRANSITIONS,
    BookingAction,
    BookingStateMachine,
    Transition,
    find_transition,
    is_terminal,
    valid_actions,
)

__all__ = [
    "BookingStateMachine",
    "BookingAction",
    "Transition",
    "TRANSITIONS",
    "find_transition",
    "valid_actions",
    "is_terminal",
]
