# educonnect/core/time_range.py
"""
Half-open time interval ``[start, end)`` over absolute instants.

Instants must be timezone-aware; they are normalized to UTC on construction
so that two ranges describing the same instants compare equal regardless of
the offset the caller used.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Dict

from .exceptions import InvalidTimeRangeException


def ensure_utc(value: datetime, *, field: str = "instant") -> datetime:
    """Return ``value`` converted to UTC, rejecting naive datetimes."""
    if not isinstance(value, datetime):
        raise InvalidTimeRangeException(
            f"{field} must be a datetime", details={"field": field, "value": repr(value)}
        )
    if value.tzinfo is None or value.tzinfo.utcoffset(value) is None:
        raise InvalidTimeRangeException(
            f"{field} must be an absolute (timezone-aware) timestamp",
            details={"field": field, "value": value.isoformat()},
        )
    return value.astimezone(timezone.utc)


@dataclass(frozen=True)
class TimeRange:
    start: datetime
    end: datetime

    def __post_init__(self) -> None:
        start = ensure_utc(self.start, field="start")
        end = ensure_utc(self.end, field="end")
        if start >= end:
            raise InvalidTimeRangeException(
                f"Start time {start.isoformat()} must be before end time {end.isoformat()}",
                details={"start": start.isoformat(), "end": end.isoformat()},
            )
        # frozen dataclass: bypass __setattr__ to store the normalized values
        object.__setattr__(self, "start", start)
        object.__setattr__(self, "end", end)

    @classmethod
    def from_iso(cls, start: str, end: str) -> "TimeRange":
        """Build a range from ISO-8601 strings carrying an explicit offset."""
        try:
            start_dt = datetime.fromisoformat(start)
            end_dt = datetime.fromisoformat(end)
        except (TypeError, ValueError) as exc:
            raise InvalidTimeRangeException(
                f"Invalid date string provided for slot: {start} or {end}",
                details={"start": start, "end": end},
            ) from exc
        return cls(start_dt, end_dt)

    @property
    def duration(self) -> timedelta:
        return self.end - self.start

    def overlaps(self, other: "TimeRange") -> bool:
        return self.start < other.end and other.start < self.end

    def contains(self, instant: datetime) -> bool:
        moment = ensure_utc(instant)
        return self.start <= moment < self.end

    def to_dict(self) -> Dict[str, Any]:
        return {"start": self.start.isoformat(), "end": self.end.isoformat()}

    def __str__(self) -> str:
        return f"[{self.start.isoformat()}, {self.end.isoformat()})"
