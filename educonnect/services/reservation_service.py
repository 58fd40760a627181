# educonnect/services/reservation_service.py
"""
Reservation Service for the EduConnect booking core.

Turns a FREE slot into a confirmed booking. The slot transition and the
booking insert happen in one database transaction, and the transition is a
compare-and-set on (state, range), so among any number of concurrent
requests for the same slot exactly one commits; the others fail with
SlotAlreadyBookedException and are never queued for a retry.

Notifications go out only after the commit succeeds.
"""

from __future__ import annotations

import logging
from typing import Any, Optional, Tuple, Union

from sqlalchemy.orm import Session

from ..core.clock import Clock
from ..core.config import settings
from ..core.enums import BookingStatus
from ..core.exceptions import (
    DomainException,
    SlotAlreadyBookedException,
    SlotChangedException,
    SlotNotFoundException,
    ValidationException,
)
from ..core.time_range import TimeRange
from ..core.ulid_helper import generate_ulid
from ..events.booking_events import booked_events
from ..models.availability import AvailabilitySlot
from ..models.booking import Booking
from ..monitoring.prometheus_metrics import prometheus_metrics
from ..notifications.dispatcher import NotificationDispatcher, get_notification_dispatcher
from ..repositories.factory import RepositoryFactory
from ..repositories.slot_repository import SlotTransition, TransitionOutcome
from ..schemas.participant import ParticipantSnapshot
from .base import BaseService

logger = logging.getLogger(__name__)

_OUTCOME_LABELS = {
    "SlotAlreadyBookedException": "already_booked",
    "SlotChangedException": "slot_changed",
    "SlotNotFoundException": "not_found",
    "ValidationException": "invalid",
    "InvalidTimeRangeException": "invalid",
}


class ReservationService(BaseService):
    """Atomic reservation of availability slots."""

    def __init__(
        self,
        db: Session,
        dispatcher: Optional[NotificationDispatcher] = None,
        clock: Optional[Clock] = None,
    ):
        super().__init__(db, clock)
        self.slot_repository = RepositoryFactory.create_slot_repository(db)
        self.booking_repository = RepositoryFactory.create_booking_repository(db)
        self.dispatcher: NotificationDispatcher = dispatcher or get_notification_dispatcher()

    @BaseService.measure_operation("reserve")
    def reserve(
        self,
        slot_id: str,
        expected_range: Union[TimeRange, Tuple[Any, Any]],
        requester: ParticipantSnapshot,
        provider: ParticipantSnapshot,
    ) -> Booking:
        """
        Reserve ``slot_id`` for ``requester``.

        Args:
            slot_id: Slot the requester picked
            expected_range: The slot's range as the requester saw it
            requester: Snapshot of the requesting participant
            provider: Snapshot of the slot's provider, as displayed

        Returns:
            The committed booking

        Raises:
            ValidationException: malformed input or provider does not own the slot
            SlotNotFoundException: the slot no longer exists
            SlotAlreadyBookedException: the slot is held (possibly by a concurrent winner)
            SlotChangedException: the slot's range differs from ``expected_range``
            StoreUnavailableException: the store could not be reached
        """
        try:
            booking = self._reserve(slot_id, expected_range, requester, provider)
        except DomainException as exc:
            prometheus_metrics.record_reservation(
                _OUTCOME_LABELS.get(type(exc).__name__, "error")
            )
            raise
        prometheus_metrics.record_reservation("booked")

        self.log_operation(
            "reserve",
            booking_id=booking.id,
            slot_id=booking.slot_id,
            requester_id=booking.requester_id,
            provider_id=booking.provider_id,
        )
        self._notify_booked(booking)
        return booking

    def _reserve(
        self,
        slot_id: str,
        expected_range: Union[TimeRange, Tuple[Any, Any]],
        requester: ParticipantSnapshot,
        provider: ParticipantSnapshot,
    ) -> Booking:
        slot_id, expected, requester, provider = self._validate(
            slot_id, expected_range, requester, provider
        )

        with self.transaction():
            # Read phase: the only step where transient failures are retried
            slot = self.read(
                "reserve_read_slot",
                lambda: self.slot_repository.get_by_id(slot_id, refresh=True),
            )
            self._check_preconditions(slot_id, slot, expected, provider)

            now = self.now()
            transition = self.slot_repository.try_transition_to_held(
                slot_id, expected, requester, now
            )
            if not transition.applied:
                self._raise_for_transition(slot_id, expected, transition)

            booking_id = generate_ulid()
            booking = Booking(
                id=booking_id,
                requester_id=requester.participant_id,
                requester_name=requester.name,
                requester_contact=requester.contact,
                provider_id=provider.participant_id,
                provider_name=provider.name,
                provider_contact=provider.contact,
                slot_id=slot_id,
                start_time=transition.slot.start_time,
                end_time=transition.slot.end_time,
                status=BookingStatus.CONFIRMED.value,
                meeting_reference=f"{settings.meeting_link_base_url}/{booking_id}",
                created_at=now,
                updated_at=now,
            )
            self.booking_repository.insert(booking)

        return booking

    @staticmethod
    def _validate(
        slot_id: str,
        expected_range: Union[TimeRange, Tuple[Any, Any]],
        requester: ParticipantSnapshot,
        provider: ParticipantSnapshot,
    ) -> Tuple[str, TimeRange, ParticipantSnapshot, ParticipantSnapshot]:
        if not isinstance(slot_id, str) or not slot_id.strip():
            raise ValidationException(
                "slot_id is required", code="VALIDATION_ERROR", details={"field": "slot_id"}
            )
        for field, snapshot in (("requester", requester), ("provider", provider)):
            if not isinstance(snapshot, ParticipantSnapshot):
                raise ValidationException(
                    f"{field} details are missing or incomplete",
                    code="VALIDATION_ERROR",
                    details={"field": field},
                )
        if isinstance(expected_range, TimeRange):
            expected = expected_range
        elif isinstance(expected_range, (tuple, list)) and len(expected_range) == 2:
            expected = TimeRange(expected_range[0], expected_range[1])
        else:
            raise ValidationException(
                "expected_range must be a time range",
                code="VALIDATION_ERROR",
                details={"field": "expected_range"},
            )
        return slot_id.strip(), expected, requester, provider

    @staticmethod
    def _check_preconditions(
        slot_id: str,
        slot: Optional[AvailabilitySlot],
        expected: TimeRange,
        provider: ParticipantSnapshot,
    ) -> None:
        if slot is None:
            raise SlotNotFoundException(slot_id)
        if slot.is_held:
            raise SlotAlreadyBookedException(slot_id)
        if not slot.matches_range(expected):
            raise SlotChangedException(
                slot_id, expected=expected.to_dict(), actual=slot.range.to_dict()
            )
        if slot.provider_id != provider.participant_id:
            raise ValidationException(
                "This slot does not belong to the selected provider",
                code="PROVIDER_MISMATCH",
                details={"slot_id": slot_id, "provider_id": provider.participant_id},
            )

    @staticmethod
    def _raise_for_transition(
        slot_id: str, expected: TimeRange, transition: SlotTransition
    ) -> None:
        if transition.outcome is TransitionOutcome.NOT_FOUND:
            raise SlotNotFoundException(slot_id)
        if transition.outcome is TransitionOutcome.ALREADY_HELD:
            raise SlotAlreadyBookedException(slot_id)
        actual = transition.slot.range.to_dict() if transition.slot is not None else None
        raise SlotChangedException(slot_id, expected=expected.to_dict(), actual=actual)

    def _notify_booked(self, booking: Booking) -> None:
        try:
            self.dispatcher.dispatch(booked_events(booking))
        except Exception as exc:
            self.logger.error(
                f"Failed to dispatch booking notifications for {booking.id}: {str(exc)}",
                extra={"booking_id": booking.id},
            )
