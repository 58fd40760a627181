# educonnect/repositories/__init__.py
"""
Repository Pattern Implementation for the EduConnect booking core.

Key Components:
- BaseRepository: Foundation shared by the stores
- RepositoryFactory: Factory for creating repository instances
- SlotRepository: Slot Store with compare-and-set transitions
- BookingRepository: Booking Store with conditional status changes

Usage:
    from educonnect.repositories import RepositoryFactory

    # In a service:
    slots = RepositoryFactory.create_slot_repository(db)
    transition = slots.try_transition_to_held(slot_id, expected_range, holder, now)
"""

from .base_repository import BaseRepository
from .booking_repository import BookingRepository
from .factory import RepositoryFactory
from .slot_repository import SlotRepository, SlotTransition, TransitionOutcome

__all__ = [
    "BaseRepository",
    "BookingRepository",
    "RepositoryFactory",
    "SlotRepository",
    "SlotTransition",
    "TransitionOutcome",
]
