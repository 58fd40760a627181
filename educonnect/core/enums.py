# educonnect/core/enums.py
"""
Core enums for the EduConnect booking core.

These enums are shared by the ORM models, the stores and the coordinators
so that persisted values and in-memory comparisons always agree.
"""

from enum import Enum


class ParticipantRole(str, Enum):
    """Role of the participant acting on a slot or booking."""

    PROVIDER = "provider"
    REQUESTER = "requester"


class SlotState(str, Enum):
    """Availability slot states. HELD means a booking occupies the slot."""

    FREE = "free"
    HELD = "held"


class BookingStatus(str, Enum):
    """
    Booking lifecycle statuses.

    CONFIRMED is the only non-terminal status; every transition leaves it
    exactly once.
    """

    CONFIRMED = "confirmed"
    CANCELLED_BY_REQUESTER = "cancelled_by_requester"
    CANCELLED_BY_PROVIDER = "cancelled_by_provider"
    COMPLETED = "completed"

    @property
    def is_terminal(self) -> bool:
        return self is not BookingStatus.CONFIRMED


class NotificationKind(str, Enum):
    """Post-commit event kinds handed to the notification dispatcher."""

    BOOKED = "booked"
    CANCELLED_BY_PROVIDER = "cancelled_by_provider"
    CANCELLED_BY_REQUESTER = "cancelled_by_requester"


# Legal status transitions; anything else is rejected before touching the store.
ALLOWED_BOOKING_TRANSITIONS: dict[BookingStatus, frozenset[BookingStatus]] = {
    BookingStatus.CONFIRMED: frozenset(
        {
            BookingStatus.CANCELLED_BY_REQUESTER,
            BookingStatus.CANCELLED_BY_PROVIDER,
            BookingStatus.COMPLETED,
        }
    ),
    BookingStatus.CANCELLED_BY_REQUESTER: frozenset(),
    BookingStatus.CANCELLED_BY_PROVIDER: frozenset(),
    BookingStatus.COMPLETED: frozenset(),
}
