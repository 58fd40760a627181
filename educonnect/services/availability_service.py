# educonnect/services/availability_service.py
"""
Availability Service for the EduConnect booking core.

Providers publish availability as batches of slots and may remove slots
nobody holds. Requesters browse the free slots of a provider for a day.
Slot state itself only changes through the reservation and cancellation
coordinators.
"""

from __future__ import annotations

from datetime import datetime, timedelta
import logging
from typing import List, Optional, Sequence, Tuple, Union

from sqlalchemy.orm import Session

from ..core.clock import Clock
from ..core.enums import ParticipantRole
from ..core.exceptions import (
    NotAuthorizedException,
    SlotNotFoundException,
    ValidationException,
)
from ..core.time_range import TimeRange, ensure_utc
from ..models.availability import AvailabilitySlot
from ..repositories.factory import RepositoryFactory
from ..schemas.participant import Caller
from .base import BaseService

logger = logging.getLogger(__name__)

RangeInput = Union[TimeRange, Tuple[datetime, datetime]]


def _require_id(value: Optional[str], field: str) -> str:
    if not isinstance(value, str) or not value.strip():
        raise ValidationException(
            f"{field} is required", code="VALIDATION_ERROR", details={"field": field}
        )
    return value.strip()


class AvailabilityService(BaseService):
    """Publishing, browsing and removing provider availability."""

    def __init__(self, db: Session, clock: Optional[Clock] = None):
        super().__init__(db, clock)
        self.slot_repository = RepositoryFactory.create_slot_repository(db)

    # Publishing

    @BaseService.measure_operation("insert_batch")
    def insert_batch(self, provider_id: str, ranges: Sequence[RangeInput]) -> List[str]:
        """
        Publish several slots for a provider in one all-or-nothing write.

        Args:
            provider_id: Owner of the new slots
            ranges: Time ranges (or ``(start, end)`` pairs) to publish

        Returns:
            New slot ids in input order

        Raises:
            ValidationException: empty batch, malformed range, or a range repeated in the batch
            DuplicateSlotException: a range already exists for this provider
        """
        provider_id = _require_id(provider_id, "provider_id")
        normalized = self._validate_batch(ranges)

        with self.transaction():
            slot_ids = self.slot_repository.insert_batch(provider_id, normalized, self.now())

        self.log_operation("insert_batch", provider_id=provider_id, count=len(slot_ids))
        return slot_ids

    def _validate_batch(self, ranges: Sequence[RangeInput]) -> List[TimeRange]:
        if not ranges:
            raise ValidationException(
                "Please add at least one time slot", code="EMPTY_BATCH", details={}
            )

        normalized: List[TimeRange] = []
        seen = set()
        for item in ranges:
            if isinstance(item, TimeRange):
                time_range = item
            elif isinstance(item, (tuple, list)) and len(item) == 2:
                time_range = TimeRange(item[0], item[1])
            else:
                raise ValidationException(
                    "Each time slot needs a start and an end",
                    code="VALIDATION_ERROR",
                    details={"value": repr(item)},
                )
            if time_range in seen:
                raise ValidationException(
                    "The same time slot was added more than once",
                    code="DUPLICATE_IN_BATCH",
                    details={"range": time_range.to_dict()},
                )
            seen.add(time_range)
            normalized.append(time_range)
        return normalized

    # Browsing

    @BaseService.measure_operation("get_available_slots")
    def get_available_slots(self, provider_id: str, day_start: datetime) -> List[AvailabilitySlot]:
        """Free slots of ``provider_id`` starting within one day of ``day_start``."""
        day_start = ensure_utc(day_start, field="day_start")
        slots = self.list_slots_in_window(provider_id, day_start, day_start + timedelta(days=1))
        return [slot for slot in slots if slot.is_free]

    @BaseService.measure_operation("list_slots_in_window")
    def list_slots_in_window(
        self, provider_id: str, window_start: datetime, window_end: datetime
    ) -> List[AvailabilitySlot]:
        """Every slot (free or held) starting in ``[window_start, window_end)``."""
        provider_id = _require_id(provider_id, "provider_id")
        window = TimeRange(window_start, window_end)
        return self.read(
            "list_slots_in_window",
            lambda: self.slot_repository.list_by_provider_and_window(
                provider_id, window.start, window.end
            ),
        )

    @BaseService.measure_operation("list_provider_slots")
    def list_provider_slots(self, provider_id: str) -> List[AvailabilitySlot]:
        provider_id = _require_id(provider_id, "provider_id")
        return self.read(
            "list_provider_slots", lambda: self.slot_repository.list_by_provider(provider_id)
        )

    @BaseService.measure_operation("get_slot")
    def get_slot(self, slot_id: str) -> AvailabilitySlot:
        slot_id = _require_id(slot_id, "slot_id")
        slot = self.read(
            "get_slot", lambda: self.slot_repository.get_by_id(slot_id, refresh=True)
        )
        if slot is None:
            raise SlotNotFoundException(slot_id)
        return slot

    # Removal

    @BaseService.measure_operation("delete_slot")
    def delete_slot(self, slot_id: str, caller: Caller) -> None:
        """
        Remove a FREE slot owned by the calling provider.

        Raises:
            SlotNotFoundException: no such slot
            NotAuthorizedException: caller is not the slot's provider
            SlotHeldException: a booking holds the slot; cancel it first
        """
        acting_provider_id = self.require_caller(caller, ParticipantRole.PROVIDER)

        with self.transaction():
            slot = self.get_slot(slot_id)
            if slot.provider_id != acting_provider_id:
                raise NotAuthorizedException(
                    "You can only delete your own availability",
                    details={"slot_id": slot_id},
                )
            deleted = self.slot_repository.delete(slot.id)
        if not deleted:
            raise SlotNotFoundException(slot_id)

        self.log_operation("delete_slot", slot_id=slot_id, provider_id=acting_provider_id)
