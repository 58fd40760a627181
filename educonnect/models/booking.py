# educonnect/models/booking.py
"""
Booking model for the EduConnect booking core.

Bookings are self-contained records: participant display data and the
session time range are copied at booking time, so the record stays
accurate even if a profile changes or the originating slot is deleted.
``slot_id`` is a weak reference used only for lookup and reversal; it
carries no foreign key.

Bookings are never deleted; they only move out of CONFIRMED once.
"""

from datetime import datetime
import logging
from typing import Any, Dict, Optional

from sqlalchemy import CheckConstraint, Column, Index, String, Text
import ulid

from ..core.enums import BookingStatus
from ..core.time_range import TimeRange
from ..database import Base
from .types import UTCDateTime

logger = logging.getLogger(__name__)


class Booking(Base):
    """Confirmed reservation of one slot by one requester."""

    __tablename__ = "bookings"

    id = Column(String(26), primary_key=True, default=lambda: str(ulid.ULID()))

    # Participant snapshots (value copies, never joined)
    requester_id = Column(String(64), nullable=False, index=True)
    requester_name = Column(String(255), nullable=False)
    requester_contact = Column(String(255), nullable=False)
    provider_id = Column(String(64), nullable=False, index=True)
    provider_name = Column(String(255), nullable=False)
    provider_contact = Column(String(255), nullable=False)

    # Weak reference to the originating slot
    slot_id = Column(String(26), nullable=False, index=True)

    # Authoritative session time, copied from the slot
    start_time = Column(UTCDateTime(), nullable=False)
    end_time = Column(UTCDateTime(), nullable=False)

    status = Column(String(30), nullable=False, default=BookingStatus.CONFIRMED.value, index=True)
    meeting_reference = Column(Text, nullable=False)

    # Cancellation tracking
    cancellation_reason = Column(Text, nullable=True)
    cancelled_by = Column(String(20), nullable=True)
    cancelled_at = Column(UTCDateTime(), nullable=True)
    completed_at = Column(UTCDateTime(), nullable=True)

    created_at = Column(UTCDateTime(), nullable=False)
    updated_at = Column(UTCDateTime(), nullable=False)

    __table_args__ = (
        CheckConstraint(
            "status IN ('confirmed', 'cancelled_by_requester', "
            "'cancelled_by_provider', 'completed')",
            name="ck_bookings_status",
        ),
        CheckConstraint(
            "cancelled_by IS NULL OR cancelled_by IN ('provider', 'requester')",
            name="ck_bookings_cancelled_by",
        ),
        CheckConstraint("start_time < end_time", name="check_time_order"),
        Index("ix_bookings_provider_start", "provider_id", "start_time"),
        Index("ix_bookings_requester_start", "requester_id", "start_time"),
    )

    def __repr__(self) -> str:
        """String representation for debugging."""
        return (
            f"<Booking {self.id}: requester={self.requester_id}, "
            f"provider={self.provider_id}, slot={self.slot_id}, "
            f"time={self.start_time}-{self.end_time}, status={self.status}>"
        )

    @property
    def range(self) -> TimeRange:
        return TimeRange(self.start_time, self.end_time)

    @property
    def is_confirmed(self) -> bool:
        return self.status == BookingStatus.CONFIRMED.value

    def is_upcoming(self, now: datetime) -> bool:
        """Sessions starting strictly after ``now`` are upcoming."""
        return self.start_time > now

    def to_dict(self) -> Dict[str, Any]:
        """JSON-safe snapshot used for notification payloads."""
        return {
            "id": self.id,
            "slot_id": self.slot_id,
            "requester": {
                "participant_id": self.requester_id,
                "name": self.requester_name,
                "contact": self.requester_contact,
            },
            "provider": {
                "participant_id": self.provider_id,
                "name": self.provider_name,
                "contact": self.provider_contact,
            },
            "start_time": _iso(self.start_time),
            "end_time": _iso(self.end_time),
            "status": self.status,
            "meeting_reference": self.meeting_reference,
            "cancellation_reason": self.cancellation_reason,
            "cancelled_by": self.cancelled_by,
            "cancelled_at": _iso(self.cancelled_at),
            "completed_at": _iso(self.completed_at),
            "created_at": _iso(self.created_at),
            "updated_at": _iso(self.updated_at),
        }


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None
