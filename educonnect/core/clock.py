"""Clock helpers so coordinators can be driven by a fixed "now" in tests."""

from datetime import datetime, timezone
from typing import Callable

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    """Return timezone-aware utcnow."""
    return datetime.now(timezone.utc)


def fixed_clock(instant: datetime) -> Clock:
    """Return a clock that always reports ``instant``."""

    def _now() -> datetime:
        return instant

    return _now
