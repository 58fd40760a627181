# educonnect/repositories/slot_repository.py
"""
Slot Repository for the EduConnect booking core.

Persists provider availability and is the only place slot state changes.
Every state change is a single compare-and-set statement: the WHERE clause
carries the precondition (state and exact range), and the affected row
count tells the caller whether it won. Concurrent callers therefore never
both succeed, with no in-process locking.

This repository handles:
- All-or-nothing batch creation guarded by the (provider, range) unique key
- Window and provider listings
- FREE -> HELD and HELD -> FREE conditional transitions
- Conditional deletion of FREE slots
"""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
import logging
from typing import List, Optional, Sequence

from sqlalchemy import and_, delete, or_, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from ..core.enums import SlotState
from ..core.exceptions import DuplicateSlotException, RepositoryException, SlotHeldException
from ..core.time_range import TimeRange
from ..core.ulid_helper import generate_ulid
from ..models.availability import AvailabilitySlot
from ..schemas.participant import ParticipantSnapshot
from .base_repository import BaseRepository

logger = logging.getLogger(__name__)


class TransitionOutcome(str, Enum):
    """Result of a conditional slot transition."""

    APPLIED = "applied"
    NOT_FOUND = "not_found"
    ALREADY_HELD = "already_held"
    RANGE_MISMATCH = "range_mismatch"


@dataclass(frozen=True)
class SlotTransition:
    """Outcome of ``try_transition_to_held`` plus the slot as last read."""

    outcome: TransitionOutcome
    slot: Optional[AvailabilitySlot] = None

    @property
    def applied(self) -> bool:
        return self.outcome is TransitionOutcome.APPLIED


class SlotRepository(BaseRepository[AvailabilitySlot]):
    """Repository for availability slots with conditional state changes."""

    def __init__(self, db: Session):
        super().__init__(db, AvailabilitySlot)
        self.logger = logging.getLogger(__name__)

    # Creation

    def insert_batch(
        self, provider_id: str, ranges: Sequence[TimeRange], now: datetime
    ) -> List[str]:
        """
        Insert one FREE slot per range, all or nothing.

        Callers validate the batch (non-empty, no repeats) beforehand. Any
        range already published by the provider fails the whole batch with
        DuplicateSlotException; the unique constraint catches ranges
        inserted concurrently after the pre-check.

        Returns:
            Ids of the new slots, in input order
        """
        existing = self._find_existing_ranges(provider_id, ranges)
        if existing:
            raise DuplicateSlotException(provider_id, [r.to_dict() for r in existing])

        slots = [
            AvailabilitySlot(
                id=generate_ulid(),
                provider_id=provider_id,
                start_time=time_range.start,
                end_time=time_range.end,
                state=SlotState.FREE.value,
                version=1,
                created_at=now,
                updated_at=now,
            )
            for time_range in ranges
        ]
        try:
            self.db.add_all(slots)
            self.db.flush()
        except IntegrityError as exc:
            self.logger.warning(
                "Concurrent duplicate slot insert rejected",
                extra={"provider_id": provider_id, "count": len(slots)},
            )
            raise DuplicateSlotException(provider_id, [r.to_dict() for r in ranges]) from exc
        except SQLAlchemyError as e:
            self.logger.error(f"Error inserting slot batch: {str(e)}")
            raise RepositoryException(f"Failed to insert slots: {str(e)}") from e

        return [slot.id for slot in slots]

    def _find_existing_ranges(
        self, provider_id: str, ranges: Sequence[TimeRange]
    ) -> List[TimeRange]:
        if not ranges:
            return []
        stmt = select(AvailabilitySlot).where(
            AvailabilitySlot.provider_id == provider_id,
            or_(
                *[
                    and_(
                        AvailabilitySlot.start_time == r.start,
                        AvailabilitySlot.end_time == r.end,
                    )
                    for r in ranges
                ]
            ),
        )
        return [slot.range for slot in self._execute_query(stmt)]

    # Queries

    def list_by_provider_and_window(
        self, provider_id: str, window_start: datetime, window_end: datetime
    ) -> List[AvailabilitySlot]:
        """Slots of a provider starting in [window_start, window_end), by start."""
        stmt = (
            select(AvailabilitySlot)
            .where(
                AvailabilitySlot.provider_id == provider_id,
                AvailabilitySlot.start_time >= window_start,
                AvailabilitySlot.start_time < window_end,
            )
            .order_by(AvailabilitySlot.start_time, AvailabilitySlot.end_time)
        )
        return self._execute_query(stmt)

    def list_by_provider(self, provider_id: str) -> List[AvailabilitySlot]:
        stmt = (
            select(AvailabilitySlot)
            .where(AvailabilitySlot.provider_id == provider_id)
            .order_by(AvailabilitySlot.start_time, AvailabilitySlot.end_time)
        )
        return self._execute_query(stmt)

    # Conditional transitions

    def try_transition_to_held(
        self,
        slot_id: str,
        expected_range: TimeRange,
        holder: ParticipantSnapshot,
        now: datetime,
    ) -> SlotTransition:
        """
        Move a slot FREE -> HELD iff it is free and its range equals ``expected_range``.

        On a miss the row is re-read to explain why: missing, already held,
        or the range moved underneath the caller.
        """
        stmt = (
            update(AvailabilitySlot)
            .where(
                AvailabilitySlot.id == slot_id,
                AvailabilitySlot.state == SlotState.FREE.value,
                AvailabilitySlot.start_time == expected_range.start,
                AvailabilitySlot.end_time == expected_range.end,
            )
            .values(
                state=SlotState.HELD.value,
                holder_id=holder.participant_id,
                holder_name=holder.name,
                holder_contact=holder.contact,
                version=AvailabilitySlot.version + 1,
                updated_at=now,
            )
        )
        rowcount = self._execute_conditional(stmt, "slot_to_held")
        current = self.get_by_id(slot_id, refresh=True)

        if rowcount == 1:
            return SlotTransition(TransitionOutcome.APPLIED, current)
        if current is None:
            return SlotTransition(TransitionOutcome.NOT_FOUND)
        if current.is_held:
            return SlotTransition(TransitionOutcome.ALREADY_HELD, current)
        return SlotTransition(TransitionOutcome.RANGE_MISMATCH, current)

    def try_transition_to_free(
        self, slot_id: str, now: datetime, expected_holder_id: Optional[str] = None
    ) -> Optional[AvailabilitySlot]:
        """
        Move a slot HELD -> FREE and clear its holder.

        With ``expected_holder_id`` the slot is only released if that
        participant holds it.

        A slot that is already free is returned unchanged; a missing slot
        returns None. Neither is an error.
        """
        stmt = (
            update(AvailabilitySlot)
            .where(
                AvailabilitySlot.id == slot_id,
                AvailabilitySlot.state == SlotState.HELD.value,
                *(
                    [AvailabilitySlot.holder_id == expected_holder_id]
                    if expected_holder_id is not None
                    else []
                ),
            )
            .values(
                state=SlotState.FREE.value,
                holder_id=None,
                holder_name=None,
                holder_contact=None,
                version=AvailabilitySlot.version + 1,
                updated_at=now,
            )
        )
        rowcount = self._execute_conditional(stmt, "slot_to_free")
        current = self.get_by_id(slot_id, refresh=True)
        if rowcount == 0 and current is not None:
            self.logger.info("Slot %s already free; nothing to release", slot_id)
        return current

    def delete(self, slot_id: str) -> bool:
        """
        Delete a slot iff it is FREE.

        Returns:
            True if deleted, False if no such slot

        Raises:
            SlotHeldException: the slot exists but a booking holds it
        """
        stmt = delete(AvailabilitySlot).where(
            AvailabilitySlot.id == slot_id,
            AvailabilitySlot.state == SlotState.FREE.value,
        )
        if self._execute_conditional(stmt, "slot_delete") == 1:
            existing = self.db.identity_map.get(self.db.identity_key(AvailabilitySlot, slot_id))
            if existing is not None:
                self.db.expunge(existing)
            return True

        current = self.get_by_id(slot_id, refresh=True)
        if current is None:
            return False
        raise SlotHeldException(slot_id)
