"""Booking notification events handed to the dispatcher after commit."""
from dataclasses import dataclass, field
from typing import Any, Dict, List

from ..core.enums import NotificationKind
from ..models.booking import Booking
from ..schemas.participant import ParticipantSnapshot


@dataclass(frozen=True)
class NotificationEvent:
    """One notification for one recipient about one booking."""

    kind: NotificationKind
    booking: Dict[str, Any]
    recipient: ParticipantSnapshot
    metadata: Dict[str, Any] = field(default_factory=dict)

    @property
    def booking_id(self) -> str:
        return str(self.booking["id"])

    def to_dict(self) -> Dict[str, Any]:
        return {
            "kind": self.kind.value,
            "booking": dict(self.booking),
            "recipient": self.recipient.model_dump(),
            "metadata": dict(self.metadata),
        }


def requester_snapshot(booking: Booking) -> ParticipantSnapshot:
    return ParticipantSnapshot(
        participant_id=booking.requester_id,
        name=booking.requester_name,
        contact=booking.requester_contact,
    )


def provider_snapshot(booking: Booking) -> ParticipantSnapshot:
    return ParticipantSnapshot(
        participant_id=booking.provider_id,
        name=booking.provider_name,
        contact=booking.provider_contact,
    )


def booked_events(booking: Booking) -> List[NotificationEvent]:
    """A Booked event for each party."""
    payload = booking.to_dict()
    return [
        NotificationEvent(NotificationKind.BOOKED, payload, requester_snapshot(booking)),
        NotificationEvent(NotificationKind.BOOKED, payload, provider_snapshot(booking)),
    ]


def cancelled_by_provider_event(booking: Booking) -> NotificationEvent:
    """Tell the requester the provider cancelled."""
    return NotificationEvent(
        NotificationKind.CANCELLED_BY_PROVIDER,
        booking.to_dict(),
        requester_snapshot(booking),
        metadata={"reason": booking.cancellation_reason},
    )


def cancelled_by_requester_event(booking: Booking) -> NotificationEvent:
    """Tell the provider the requester cancelled."""
    return NotificationEvent(
        NotificationKind.CANCELLED_BY_REQUESTER,
        booking.to_dict(),
        provider_snapshot(booking),
        metadata={"reason": booking.cancellation_reason},
    )


def cancelled_by_provider_record_event(booking: Booking) -> NotificationEvent:
    """The cancelling provider's own copy of the cancellation."""
    return NotificationEvent(
        NotificationKind.CANCELLED_BY_PROVIDER,
        booking.to_dict(),
        provider_snapshot(booking),
        metadata={"reason": booking.cancellation_reason, "copy": True},
    )


def provider_cancellation_events(booking: Booking) -> List[NotificationEvent]:
    """Notice to the requester plus a record copy for the provider."""
    return [cancelled_by_provider_event(booking), cancelled_by_provider_record_event(booking)]


def requester_cancellation_events(booking: Booking) -> List[NotificationEvent]:
    return [cancelled_by_requester_event(booking)]
