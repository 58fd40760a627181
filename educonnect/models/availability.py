# educonnect/models/availability.py
"""
Availability models for the EduConnect booking core.

Classes:
    AvailabilitySlot: A provider-published, bookable time window.

A slot is FREE until the reservation coordinator moves it to HELD and
records the holder snapshot; the cancellation coordinator moves it back.
The ``version`` column is bumped on every state change and acts as the
optimistic-concurrency token for conditional writes.
"""

from datetime import datetime
import logging
from typing import Any, Dict, Optional

from sqlalchemy import CheckConstraint, Column, Index, Integer, String, UniqueConstraint
import ulid

from ..core.enums import SlotState
from ..core.time_range import TimeRange
from ..database import Base
from .types import UTCDateTime

logger = logging.getLogger(__name__)


class AvailabilitySlot(Base):
    """Provider availability window; at most one per (provider, range)."""

    __tablename__ = "availability_slots"

    id = Column(String(26), primary_key=True, default=lambda: str(ulid.ULID()))
    provider_id = Column(String(64), nullable=False)
    start_time = Column(UTCDateTime(), nullable=False)
    end_time = Column(UTCDateTime(), nullable=False)

    state = Column(String(10), nullable=False, default=SlotState.FREE.value)

    # Holder snapshot, present iff state = held
    holder_id = Column(String(64), nullable=True)
    holder_name = Column(String(255), nullable=True)
    holder_contact = Column(String(255), nullable=True)

    version = Column(Integer, nullable=False, default=1)

    created_at = Column(UTCDateTime(), nullable=False)
    updated_at = Column(UTCDateTime(), nullable=False)

    __table_args__ = (
        UniqueConstraint("provider_id", "start_time", "end_time", name="uq_slot_provider_range"),
        CheckConstraint("start_time < end_time", name="ck_slot_time_order"),
        CheckConstraint("state IN ('free', 'held')", name="ck_slot_state"),
        CheckConstraint(
            "(state = 'held' AND holder_id IS NOT NULL) OR "
            "(state = 'free' AND holder_id IS NULL)",
            name="ck_slot_holder_matches_state",
        ),
        Index("idx_slots_provider_start", "provider_id", "start_time"),
    )

    @property
    def range(self) -> TimeRange:
        return TimeRange(self.start_time, self.end_time)

    @property
    def is_free(self) -> bool:
        return self.state == SlotState.FREE.value

    @property
    def is_held(self) -> bool:
        return self.state == SlotState.HELD.value

    def matches_range(self, expected: TimeRange) -> bool:
        """True when the stored range equals ``expected`` exactly."""
        return self.range == expected

    def __repr__(self) -> str:
        return (
            f"<AvailabilitySlot {self.id}: provider={self.provider_id}, "
            f"{self.start_time}-{self.end_time}, state={self.state}>"
        )

    def to_dict(self) -> Dict[str, Any]:
        holder: Optional[Dict[str, Any]] = None
        if self.holder_id is not None:
            holder = {
                "participant_id": self.holder_id,
                "name": self.holder_name,
                "contact": self.holder_contact,
            }
        return {
            "id": self.id,
            "provider_id": self.provider_id,
            "start_time": _iso(self.start_time),
            "end_time": _iso(self.end_time),
            "state": self.state,
            "holder": holder,
            "version": self.version,
            "created_at": _iso(self.created_at),
            "updated_at": _iso(self.updated_at),
        }


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None
