"""
Database engine, session factory, and metadata shared across the application.
"""

from __future__ import annotations

from contextlib import contextmanager
from datetime import datetime
import logging
import random
import time
from typing import Any, Callable, Generator, Optional, TypeVar

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.exc import DBAPIError
from sqlalchemy.exc import TimeoutError as PoolTimeoutError
from sqlalchemy.orm import DeclarativeMeta, Session, declarative_base, sessionmaker
from sqlalchemy.pool import QueuePool

from educonnect.core.config import settings
from educonnect.core.exceptions import (
    RepositoryException,
    StoreUnavailableException,
    is_transient_store_error,
)

logger = logging.getLogger(__name__)


Base: DeclarativeMeta = declarative_base()


def _build_engine_kwargs(db_url: str) -> dict[str, Any]:
    """Pool/connect arguments per dialect."""
    if db_url.lower().startswith("sqlite"):
        # SQLite serializes writers; a generous busy timeout makes a losing
        # writer wait for the lock instead of failing with "database is locked".
        return {
            "connect_args": {
                "check_same_thread": False,
                "timeout": settings.sqlite_busy_timeout_seconds,
            },
            "echo": settings.sql_echo,
        }
    return {
        "poolclass": QueuePool,
        "pool_size": settings.db_pool_size,
        "max_overflow": settings.db_max_overflow,
        "pool_timeout": settings.db_pool_timeout,
        "pool_pre_ping": True,
        "pool_use_lifo": True,
        "echo": settings.sql_echo,
    }


def create_db_engine(db_url: Optional[str] = None, **overrides: Any) -> Engine:
    """Create an engine for ``db_url`` (defaults to ``settings.database_url``)."""
    url = db_url or settings.database_url
    kwargs = _build_engine_kwargs(url)
    kwargs.update(overrides)
    new_engine = create_engine(url, **kwargs)

    @event.listens_for(new_engine, "connect")
    def receive_connect(dbapi_connection: Any, connection_record: Any) -> None:
        connection_record.info["connect_time"] = datetime.now()
        logger.debug("Database connection established")

    return new_engine


engine: Engine = create_db_engine()

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine, expire_on_commit=False)


def init_db(bind: Optional[Engine] = None) -> None:
    """Create all tables on ``bind`` (defaults to the module engine)."""
    import educonnect.models  # noqa: F401  # populate Base.metadata

    Base.metadata.create_all(bind or engine)


def get_db() -> Generator[Session, None, None]:
    """Get database session with proper cleanup."""
    db = SessionLocal()
    try:
        yield db
        db.commit()
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


@contextmanager
def get_db_session() -> Generator[Session, None, None]:
    """Context manager for short-lived DB operations."""
    db = SessionLocal()
    try:
        yield db
        db.commit()
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


T = TypeVar("T")


def _is_retryable_db_error(exc: BaseException) -> bool:
    if isinstance(exc, RepositoryException):
        # repositories wrap driver errors; judge the original failure
        return exc.__cause__ is not None and _is_retryable_db_error(exc.__cause__)
    if isinstance(exc, PoolTimeoutError):
        return True
    if isinstance(exc, DBAPIError) and exc.connection_invalidated:
        return True
    return isinstance(exc, Exception) and is_transient_store_error(exc)


def _retry_delay(attempt: int) -> float:
    base = 0.1 * (2 ** (attempt - 1))
    return base + random.uniform(0, 0.05 * attempt)


def with_db_retry(
    op_name: str,
    func: Callable[[], T],
    *,
    session: Optional[Session] = None,
    max_attempts: Optional[int] = None,
) -> T:
    """
    Execute a read-only DB operation with retries for transient disconnects.

    Must only wrap work that has not written anything: once a write has been
    submitted its outcome is authoritative. When ``session`` is given it is
    rolled back before each retry so an invalidated connection is replaced.
    Exhausted retries surface as StoreUnavailableException.
    """
    attempts = max_attempts or settings.db_retry_max_attempts
    attempt = 1
    while True:
        try:
            return func()
        except (DBAPIError, PoolTimeoutError, RepositoryException) as exc:
            if not _is_retryable_db_error(exc):
                raise
            if attempt >= attempts:
                logger.error(
                    "Store unavailable after retries",
                    extra={"event": "db_retry_exhausted", "op": op_name, "attempts": attempt},
                )
                raise StoreUnavailableException(details={"operation": op_name}) from exc

            delay = _retry_delay(attempt)
            logger.warning(
                "Transient DB failure detected, retrying",
                extra={
                    "event": "db_retry",
                    "op": op_name,
                    "attempt": attempt,
                    "delay": delay,
                    "error": str(exc),
                },
            )
            if session is not None:
                session.rollback()
            time.sleep(delay)
            attempt += 1


__all__ = [
    "Base",
    "SessionLocal",
    "create_db_engine",
    "engine",
    "get_db",
    "get_db_session",
    "init_db",
    "with_db_retry",
]
