"""
Database models for the EduConnect booking core.

- AvailabilitySlot: provider-published bookable windows (Slot Store rows)
- Booking: confirmed reservations and their audit trail (Booking Store rows)
"""

from .availability import AvailabilitySlot
from .booking import Booking

__all__ = [
    "AvailabilitySlot",
    "Booking",
]
