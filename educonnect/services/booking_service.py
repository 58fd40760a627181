# educonnect/services/booking_service.py
"""
Booking Service for the EduConnect booking core.

Read side of the Booking Store ("my schedule" views) plus marking a
finished session as completed. Creating and cancelling bookings belong to
ReservationService and CancellationService.
"""

from __future__ import annotations

from dataclasses import dataclass, field
import logging
from typing import List, Optional

from sqlalchemy.orm import Session

from ..core.clock import Clock
from ..core.enums import BookingStatus, ParticipantRole
from ..core.exceptions import (
    BookingNotFoundException,
    BookingStatusConflictException,
    BusinessRuleException,
    NotAuthorizedException,
    ValidationException,
)
from ..models.booking import Booking
from ..repositories.factory import RepositoryFactory
from ..schemas.participant import Caller
from .base import BaseService

logger = logging.getLogger(__name__)


@dataclass
class SessionPartition:
    """Bookings split around "now": upcoming soonest first, past most recent first."""

    upcoming: List[Booking] = field(default_factory=list)
    past: List[Booking] = field(default_factory=list)


class BookingService(BaseService):
    """Booking lookups and completion."""

    def __init__(self, db: Session, clock: Optional[Clock] = None):
        super().__init__(db, clock)
        self.booking_repository = RepositoryFactory.create_booking_repository(db)

    @BaseService.measure_operation("get_booking")
    def get_booking(self, booking_id: str) -> Booking:
        if not isinstance(booking_id, str) or not booking_id.strip():
            raise ValidationException(
                "booking_id is required", code="VALIDATION_ERROR", details={"field": "booking_id"}
            )
        booking = self.read(
            "get_booking", lambda: self.booking_repository.get_by_id(booking_id, refresh=True)
        )
        if booking is None:
            raise BookingNotFoundException(booking_id)
        return booking

    @BaseService.measure_operation("list_for_participant")
    def list_for_participant(self, participant_id: str, role: ParticipantRole) -> List[Booking]:
        """Every booking (any status) of the participant in ``role``, by start ascending."""
        if not isinstance(participant_id, str) or not participant_id.strip():
            raise ValidationException(
                "participant_id is required",
                code="VALIDATION_ERROR",
                details={"field": "participant_id"},
            )
        role = ParticipantRole(role)
        return self.read(
            "list_for_participant",
            lambda: self.booking_repository.list_by_participant(participant_id, role),
        )

    @BaseService.measure_operation("get_sessions")
    def get_sessions(self, participant_id: str, role: ParticipantRole) -> SessionPartition:
        """
        Split a participant's bookings into upcoming and past.

        A booking whose start is at or before now counts as past.
        """
        now = self.now()
        partition = SessionPartition()
        for booking in self.list_for_participant(participant_id, role):
            if booking.is_upcoming(now):
                partition.upcoming.append(booking)
            else:
                partition.past.append(booking)
        partition.past.reverse()
        return partition

    @BaseService.measure_operation("mark_completed")
    def mark_completed(self, booking_id: str, caller: Caller) -> Booking:
        """
        Mark a confirmed booking as completed once its session has ended.

        Raises:
            BookingNotFoundException: no such booking
            NotAuthorizedException: caller is not the booking's provider
            BookingStatusConflictException: the booking already left CONFIRMED
            BusinessRuleException: the session has not ended yet
        """
        acting_provider_id = self.require_caller(caller, ParticipantRole.PROVIDER)

        with self.transaction():
            booking = self.get_booking(booking_id)
            if booking.provider_id != acting_provider_id:
                raise NotAuthorizedException(
                    "Only the provider can complete this booking",
                    details={"booking_id": booking_id},
                )
            if not booking.is_confirmed:
                raise BookingStatusConflictException(
                    booking_id, BookingStatus.CONFIRMED.value, booking.status
                )

            now = self.now()
            if booking.end_time > now:
                raise BusinessRuleException(
                    "This session has not finished yet",
                    code="SESSION_NOT_ENDED",
                    details={"booking_id": booking_id, "end_time": booking.end_time.isoformat()},
                )
            booking = self.booking_repository.try_transition_status(
                booking_id,
                BookingStatus.CONFIRMED,
                BookingStatus.COMPLETED,
                {"completed_at": now},
                now,
            )

        self.log_operation("mark_completed", booking_id=booking_id, provider_id=acting_provider_id)
        return booking
