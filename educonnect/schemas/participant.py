# educonnect/schemas/participant.py
"""
Participant identity and snapshot schemas.

A snapshot is a value copy of a participant's display data taken when a
booking is made. It is frozen so that later profile changes can never leak
into an existing booking.
"""

from pydantic import ConfigDict, Field, field_validator

from ..core.enums import ParticipantRole
from .base import StrictModel


class ParticipantSnapshot(StrictModel):
    """Identity plus display name and contact, copied into bookings."""

    model_config = ConfigDict(extra="forbid", frozen=True, str_strip_whitespace=True)

    participant_id: str = Field(..., min_length=1, max_length=64)
    name: str = Field(..., min_length=1, max_length=255)
    contact: str = Field(..., min_length=1, max_length=255)

    @field_validator("contact")
    @classmethod
    def _contact_is_address(cls, value: str) -> str:
        # contact is an address (email, phone, handle); whitespace inside is never valid
        if any(ch.isspace() for ch in value):
            raise ValueError("contact must not contain whitespace")
        return value


class Caller(StrictModel):
    """The acting participant: a stable id and the role it acts in."""

    model_config = ConfigDict(extra="forbid", frozen=True, str_strip_whitespace=True)

    participant_id: str = Field(..., min_length=1, max_length=64)
    role: ParticipantRole
