"""Notification event payloads emitted by the booking coordinators."""

from .booking_events import (
    NotificationEvent,
    booked_events,
    cancelled_by_provider_event,
    cancelled_by_provider_record_event,
    cancelled_by_requester_event,
    provider_cancellation_events,
    provider_snapshot,
    requester_cancellation_events,
    requester_snapshot,
)

__all__ = [
    "NotificationEvent",
    "booked_events",
    "cancelled_by_provider_event",
    "cancelled_by_provider_record_event",
    "cancelled_by_requester_event",
    "provider_cancellation_events",
    "provider_snapshot",
    "requester_cancellation_events",
    "requester_snapshot",
]
