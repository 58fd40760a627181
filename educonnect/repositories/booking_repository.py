# educonnect/repositories/booking_repository.py
"""
Booking Repository for the EduConnect booking core.

Bookings are append-only records whose only mutation is a single status
change out of CONFIRMED. That change is a conditional UPDATE keyed on the
expected status, so two racing cancellations cannot both apply.
"""

from datetime import datetime
import logging
from typing import Any, Dict, List, Optional

from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..core.enums import ALLOWED_BOOKING_TRANSITIONS, BookingStatus, ParticipantRole
from ..core.exceptions import (
    BookingNotFoundException,
    BookingStatusConflictException,
    RepositoryException,
    ValidationException,
)
from ..models.booking import Booking
from .base_repository import BaseRepository

logger = logging.getLogger(__name__)

# Columns a status transition may set alongside the status itself
_TRANSITION_FIELDS = frozenset(
    {"cancellation_reason", "cancelled_by", "cancelled_at", "completed_at"}
)


class BookingRepository(BaseRepository[Booking]):
    """Repository for booking records."""

    def __init__(self, db: Session):
        """Initialize with Booking model."""
        super().__init__(db, Booking)
        self.logger = logging.getLogger(__name__)

    def insert(self, booking: Booking) -> Booking:
        """Add a fully built booking (id pre-assigned by the coordinator)."""
        try:
            self.db.add(booking)
            self.db.flush()
            return booking
        except SQLAlchemyError as e:
            self.logger.error(f"Error inserting booking {booking.id}: {str(e)}")
            raise RepositoryException(f"Failed to insert booking: {str(e)}") from e

    def list_by_participant(self, participant_id: str, role: ParticipantRole) -> List[Booking]:
        """All bookings where the participant acts in ``role``, by start ascending."""
        column = Booking.provider_id if role == ParticipantRole.PROVIDER else Booking.requester_id
        stmt = (
            select(Booking)
            .where(column == participant_id)
            .order_by(Booking.start_time, Booking.id)
        )
        return self._execute_query(stmt)

    def try_transition_status(
        self,
        booking_id: str,
        expected_status: BookingStatus,
        new_status: BookingStatus,
        metadata: Optional[Dict[str, Any]],
        now: datetime,
    ) -> Booking:
        """
        Change a booking's status iff it currently equals ``expected_status``.

        Args:
            booking_id: Booking to update
            expected_status: Status the caller observed
            new_status: Target status; must be a legal transition
            metadata: Extra columns to set (cancellation reason, actor, timestamps)
            now: Transaction time, stored as ``updated_at``

        Returns:
            The refreshed booking

        Raises:
            ValidationException: illegal transition or unknown metadata field
            BookingNotFoundException: no such booking
            BookingStatusConflictException: status was not ``expected_status``
        """
        expected_status = BookingStatus(expected_status)
        new_status = BookingStatus(new_status)
        if new_status not in ALLOWED_BOOKING_TRANSITIONS[expected_status]:
            raise ValidationException(
                f"Cannot change booking status from {expected_status.value} to {new_status.value}",
                code="ILLEGAL_TRANSITION",
                details={"from": expected_status.value, "to": new_status.value},
            )

        values: Dict[str, Any] = dict(metadata or {})
        unknown = set(values) - _TRANSITION_FIELDS
        if unknown:
            raise ValidationException(
                "Unsupported booking transition fields",
                code="VALIDATION_ERROR",
                details={"fields": sorted(unknown)},
            )
        values.update(status=new_status.value, updated_at=now)

        stmt = (
            update(Booking)
            .where(Booking.id == booking_id, Booking.status == expected_status.value)
            .values(**values)
        )
        rowcount = self._execute_conditional(stmt, "booking_status")
        current = self.get_by_id(booking_id, refresh=True)

        if current is None:
            raise BookingNotFoundException(booking_id)
        if rowcount == 0:
            raise BookingStatusConflictException(booking_id, expected_status.value, current.status)
        return current
