"""
Shared fixtures for the booking core test suite.

Unit tests get a fresh in-memory SQLite database per test so services can
commit and roll back freely. Concurrency tests use a file-backed database
so that every thread has its own connection and SQLite's write lock is real.
"""

from datetime import datetime, timedelta, timezone
import os
from typing import Callable, Iterator, List

# Keep the module-level engine off disk; must run before educonnect imports.
os.environ.setdefault("DATABASE_URL", "sqlite+pysqlite:///:memory:")
os.environ.setdefault("CI", "1")

import pytest
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from educonnect.core.enums import ParticipantRole
from educonnect.core.time_range import TimeRange
from educonnect.database import Base, create_db_engine, init_db
from educonnect.events.booking_events import NotificationEvent
import educonnect.models  # noqa: F401
from educonnect.notifications.dispatcher import InlineNotificationDispatcher
from educonnect.schemas.participant import Caller, ParticipantSnapshot

UTC = timezone.utc

# Monday 2030-01-07 08:00 UTC; slots in the fixtures start later that day.
NOW = datetime(2030, 1, 7, 8, 0, tzinfo=UTC)


class MutableClock:
    """Clock whose "now" tests can move forward."""

    def __init__(self, instant: datetime):
        self.instant = instant

    def __call__(self) -> datetime:
        return self.instant

    def advance(self, delta: timedelta) -> None:
        self.instant = self.instant + delta

    def set(self, instant: datetime) -> None:
        self.instant = instant


class RecordingSink:
    """Notification sink that keeps every event it receives."""

    def __init__(self) -> None:
        self.events: List[NotificationEvent] = []

    def send(self, event: NotificationEvent) -> None:
        self.events.append(event)

    def kinds(self) -> List[str]:
        return [event.kind.value for event in self.events]

    def recipients(self) -> List[str]:
        return [event.recipient.participant_id for event in self.events]


@pytest.fixture(scope="function")
def engine() -> Iterator[Engine]:
    engine = create_engine(
        "sqlite+pysqlite:///:memory:",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    Base.metadata.create_all(engine)
    yield engine
    Base.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture(scope="function")
def db(engine: Engine) -> Iterator[Session]:
    """Session on the per-test in-memory database."""
    session = sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)()
    try:
        yield session
    finally:
        session.rollback()
        session.close()


@pytest.fixture
def file_engine(tmp_path) -> Iterator[Engine]:
    """File-backed SQLite engine for tests that run real threads."""
    engine = create_db_engine(f"sqlite+pysqlite:///{tmp_path / 'booking.db'}")
    init_db(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(file_engine: Engine) -> Callable[[], Session]:
    return sessionmaker(bind=file_engine, autoflush=False, expire_on_commit=False)


@pytest.fixture
def clock() -> MutableClock:
    return MutableClock(NOW)


@pytest.fixture
def sink() -> RecordingSink:
    return RecordingSink()


@pytest.fixture
def dispatcher(sink: RecordingSink) -> InlineNotificationDispatcher:
    return InlineNotificationDispatcher(sink)


@pytest.fixture
def provider() -> ParticipantSnapshot:
    return ParticipantSnapshot(
        participant_id="teacher-1", name="Ada Lovelace", contact="ada@example.com"
    )


@pytest.fixture
def other_provider() -> ParticipantSnapshot:
    return ParticipantSnapshot(
        participant_id="teacher-2", name="Alan Turing", contact="alan@example.com"
    )


@pytest.fixture
def requester() -> ParticipantSnapshot:
    return ParticipantSnapshot(
        participant_id="student-1", name="Grace Hopper", contact="grace@example.com"
    )


@pytest.fixture
def other_requester() -> ParticipantSnapshot:
    return ParticipantSnapshot(
        participant_id="student-2", name="Edsger Dijkstra", contact="edsger@example.com"
    )


def at(hour: int, minute: int = 0, day: int = 7) -> datetime:
    """An instant on January ``day`` 2030, UTC."""
    return datetime(2030, 1, day, hour, minute, tzinfo=UTC)


def hour_range(hour: int, day: int = 7) -> TimeRange:
    """A one-hour range starting at ``hour`` UTC."""
    return TimeRange(at(hour, day=day), at(hour + 1, day=day))


def as_provider(participant_id: str) -> Caller:
    return Caller(participant_id=participant_id, role=ParticipantRole.PROVIDER)


def as_requester(participant_id: str) -> Caller:
    return Caller(participant_id=participant_id, role=ParticipantRole.REQUESTER)
