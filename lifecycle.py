"""
Booking status state machine.

Pending -> Confirmed, Pending -> Cancelled, Confirmed -> Cancelled.
Cancelled is terminal. Deleting a booking is allowed from any state and is
not modelled as a transition.
"""
from enum import Enum
from typing import Union

from errors import InvalidTransitionError


class BookingStatus(str, Enum):
    PENDING = "Pending"
    CONFIRMED = "Confirmed"
    CANCELLED = "Cancelled"


# Statuses counted in a class's booked_slots
OCCUPYING = frozenset({BookingStatus.PENDING, BookingStatus.CONFIRMED})

TRANSITIONS = {
    BookingStatus.PENDING: frozenset({BookingStatus.CONFIRMED, BookingStatus.CANCELLED}),
    BookingStatus.CONFIRMED: frozenset({BookingStatus.CANCELLED}),
    BookingStatus.CANCELLED: frozenset(),
}

StatusLike = Union[BookingStatus, str]


def as_status(value: StatusLike) -> BookingStatus:
    return value if isinstance(value, BookingStatus) else BookingStatus(value)


def is_occupying(status: StatusLike) -> bool:
    return as_status(status) in OCCUPYING


def can_transition(old: StatusLike, new: StatusLike) -> bool:
    """Same-state rewrites are always allowed so repeated calls stay harmless."""
    old, new = as_status(old), as_status(new)
    return old == new or new in TRANSITIONS[old]


def check_transition(old: StatusLike, new: StatusLike) -> None:
    if not can_transition(old, new):
        raise InvalidTransitionError(
            f"Cannot change booking status from {as_status(old).value} to {as_status(new).value}"
        )


def releases_slot(old: StatusLike, new: StatusLike) -> bool:
    """True when the move gives the class slot back (occupying -> Cancelled)."""
    return is_occupying(old) and as_status(new) == BookingStatus.CANCELLED
