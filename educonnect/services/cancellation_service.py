# educonnect/services/cancellation_service.py
"""
Cancellation Service for the EduConnect booking core.

Reverses a confirmed booking: the booking moves to a terminal cancelled
status and, if the originating slot still exists, the slot goes back to
FREE. Both changes commit together. A booking can be cancelled once; a
second attempt (sequential or concurrent) fails with
NotCancellableException.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
import logging
from typing import Callable, List, Optional

from sqlalchemy.orm import Session

from ..core.clock import Clock
from ..core.config import settings
from ..core.enums import BookingStatus, ParticipantRole
from ..core.exceptions import (
    BookingNotFoundException,
    BookingStatusConflictException,
    NotAuthorizedException,
    NotCancellableException,
    TooLateToCancelException,
    ValidationException,
)
from ..events.booking_events import (
    NotificationEvent,
    provider_cancellation_events,
    requester_cancellation_events,
)
from ..models.booking import Booking
from ..notifications.dispatcher import NotificationDispatcher, get_notification_dispatcher
from ..repositories.factory import RepositoryFactory
from ..schemas.participant import Caller
from .base import BaseService

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CancellationPolicy:
    """How long before the start a booking may still be cancelled."""

    min_notice: timedelta = timedelta(0)

    def __post_init__(self) -> None:
        if self.min_notice < timedelta(0):
            raise ValueError("min_notice must not be negative")

    def allows(self, start: datetime, now: datetime) -> bool:
        """Cancellable iff the start minus the notice period is still in the future."""
        return start - self.min_notice > now


class CancellationService(BaseService):
    """Provider- and requester-initiated cancellation of confirmed bookings."""

    def __init__(
        self,
        db: Session,
        dispatcher: Optional[NotificationDispatcher] = None,
        clock: Optional[Clock] = None,
        provider_policy: Optional[CancellationPolicy] = None,
        requester_policy: Optional[CancellationPolicy] = None,
    ):
        super().__init__(db, clock)
        self.slot_repository = RepositoryFactory.create_slot_repository(db)
        self.booking_repository = RepositoryFactory.create_booking_repository(db)
        self.dispatcher: NotificationDispatcher = dispatcher or get_notification_dispatcher()
        self.provider_policy = provider_policy or CancellationPolicy(
            settings.provider_cancellation_min_notice
        )
        self.requester_policy = requester_policy or CancellationPolicy(
            settings.requester_cancellation_min_notice
        )

    @BaseService.measure_operation("cancel_by_provider")
    def cancel_by_provider(self, booking_id: str, reason: str, caller: Caller) -> Booking:
        """
        Cancel a booking on behalf of its provider.

        The requester is notified and the provider receives a record copy.

        Raises:
            ValidationException: missing reason or ids
            NotAuthorizedException: caller is not the booking's provider
            BookingNotFoundException: no such booking
            NotCancellableException: the booking is no longer confirmed
            TooLateToCancelException: the session has started (or is inside the notice period)
        """
        acting_id = self.require_caller(caller, ParticipantRole.PROVIDER)
        if not isinstance(reason, str) or not reason.strip():
            raise ValidationException(
                "A cancellation reason is required",
                code="REASON_REQUIRED",
                details={"field": "reason"},
            )
        return self._cancel(
            booking_id,
            reason.strip(),
            acting_id,
            role=ParticipantRole.PROVIDER,
            new_status=BookingStatus.CANCELLED_BY_PROVIDER,
            policy=self.provider_policy,
            build_events=provider_cancellation_events,
        )

    @BaseService.measure_operation("cancel_by_requester")
    def cancel_by_requester(
        self, booking_id: str, reason: Optional[str], caller: Caller
    ) -> Booking:
        """Cancel a booking on behalf of its requester and notify the provider."""
        acting_id = self.require_caller(caller, ParticipantRole.REQUESTER)
        cleaned = reason.strip() if isinstance(reason, str) and reason.strip() else None
        return self._cancel(
            booking_id,
            cleaned,
            acting_id,
            role=ParticipantRole.REQUESTER,
            new_status=BookingStatus.CANCELLED_BY_REQUESTER,
            policy=self.requester_policy,
            build_events=requester_cancellation_events,
        )

    def _cancel(
        self,
        booking_id: str,
        reason: Optional[str],
        acting_id: str,
        *,
        role: ParticipantRole,
        new_status: BookingStatus,
        policy: CancellationPolicy,
        build_events: Callable[[Booking], List[NotificationEvent]],
    ) -> Booking:
        if not isinstance(booking_id, str) or not booking_id.strip():
            raise ValidationException(
                "booking_id is required", code="VALIDATION_ERROR", details={"field": "booking_id"}
            )

        with self.transaction():
            booking = self.read(
                "cancel_read_booking",
                lambda: self.booking_repository.get_by_id(booking_id, refresh=True),
            )
            if booking is None:
                raise BookingNotFoundException(booking_id)

            owner_id = (
                booking.provider_id if role == ParticipantRole.PROVIDER else booking.requester_id
            )
            if owner_id != acting_id:
                raise NotAuthorizedException(
                    "You can only cancel your own bookings",
                    details={"booking_id": booking_id, "role": role.value},
                )
            if not booking.is_confirmed:
                raise NotCancellableException(booking_id, booking.status)

            now = self.now()
            if not policy.allows(booking.start_time, now):
                raise TooLateToCancelException(booking_id, booking.start_time.isoformat())

            try:
                booking = self.booking_repository.try_transition_status(
                    booking_id,
                    BookingStatus.CONFIRMED,
                    new_status,
                    {
                        "cancellation_reason": reason,
                        "cancelled_by": role.value,
                        "cancelled_at": now,
                    },
                    now,
                )
            except BookingStatusConflictException as exc:
                raise NotCancellableException(booking_id, exc.details.get("actual")) from exc

            slot = self.slot_repository.try_transition_to_free(
                booking.slot_id, now, expected_holder_id=booking.requester_id
            )
            if slot is None:
                self.logger.warning(
                    f"Slot {booking.slot_id} for booking {booking_id} no longer exists; "
                    "nothing to release",
                    extra={"booking_id": booking_id, "slot_id": booking.slot_id},
                )

        self.log_operation(
            f"cancel_by_{role.value}",
            booking_id=booking_id,
            slot_id=booking.slot_id,
            acting_participant_id=acting_id,
        )
        try:
            self.dispatcher.dispatch(build_events(booking))
        except Exception as exc:
            self.logger.error(
                f"Failed to dispatch cancellation notification for {booking_id}: {str(exc)}",
                extra={"booking_id": booking_id},
            )
        return booking
