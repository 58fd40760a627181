# educonnect/notifications/dispatcher.py
"""
Post-commit notification dispatch.

Coordinators hand events to a dispatcher only after their transaction has
committed. Delivery is fire-and-forget: a failing sink is logged and
counted, never raised back into the booking operation, and a booking is
never rolled back because a notification could not be sent.
"""

from __future__ import annotations

from concurrent.futures import Future, ThreadPoolExecutor
import logging
from threading import Lock
from typing import Iterable, List, Optional, Protocol

from ..core.config import settings
from ..events.booking_events import NotificationEvent
from ..monitoring.prometheus_metrics import prometheus_metrics

logger = logging.getLogger(__name__)


class NotificationSink(Protocol):
    """Delivers a single event to its recipient (email, push, queue, ...)."""

    def send(self, event: NotificationEvent) -> None:
        ...


class NotificationDispatcher(Protocol):
    """What the coordinators depend on."""

    def dispatch(self, events: Iterable[NotificationEvent]) -> None:
        ...


class LoggingNotificationSink:
    """Sink that only records the event in the log."""

    def send(self, event: NotificationEvent) -> None:
        logger.info(
            "Notification %s for booking %s to %s",
            event.kind.value,
            event.booking_id,
            event.recipient.participant_id,
            extra={"event": "notification", "payload": event.to_dict()},
        )


def _deliver(sink: NotificationSink, event: NotificationEvent) -> bool:
    try:
        sink.send(event)
    except Exception as exc:
        logger.error(
            "Notification delivery failed for booking %s (%s): %s",
            event.booking_id,
            event.kind.value,
            exc,
            exc_info=True,
            extra={
                "event": "notification_failed",
                "booking_id": event.booking_id,
                "recipient_id": event.recipient.participant_id,
            },
        )
        prometheus_metrics.record_notification(event.kind.value, "error")
        return False
    prometheus_metrics.record_notification(event.kind.value, "success")
    return True


class InlineNotificationDispatcher:
    """Delivers on the calling thread; failures are still isolated."""

    def __init__(self, sink: Optional[NotificationSink] = None):
        self.sink: NotificationSink = sink or LoggingNotificationSink()

    def dispatch(self, events: Iterable[NotificationEvent]) -> None:
        for event in events:
            _deliver(self.sink, event)


class BackgroundNotificationDispatcher:
    """
    Delivers events on a worker pool so callers return as soon as they commit.

    Call ``shutdown()`` on process exit (or in tests) to drain pending sends.
    """

    def __init__(self, sink: Optional[NotificationSink] = None, max_workers: Optional[int] = None):
        self.sink: NotificationSink = sink or LoggingNotificationSink()
        self._executor = ThreadPoolExecutor(
            max_workers=max_workers or settings.notification_max_workers,
            thread_name_prefix="notify",
        )
        self._pending: List[Future[bool]] = []
        self._lock = Lock()

    def dispatch(self, events: Iterable[NotificationEvent]) -> None:
        for event in events:
            try:
                future = self._executor.submit(_deliver, self.sink, event)
            except RuntimeError as exc:
                # executor already shut down
                logger.error(
                    "Dropping notification %s for booking %s: %s",
                    event.kind.value,
                    event.booking_id,
                    exc,
                )
                prometheus_metrics.record_notification(event.kind.value, "error")
                continue
            with self._lock:
                self._pending = [f for f in self._pending if not f.done()]
                self._pending.append(future)

    def wait(self, timeout: Optional[float] = None) -> None:
        """Block until every event dispatched so far has been attempted."""
        with self._lock:
            pending = list(self._pending)
        for future in pending:
            future.result(timeout=timeout)

    def shutdown(self, wait: bool = True) -> None:
        self._executor.shutdown(wait=wait)


_default_dispatcher: Optional[BackgroundNotificationDispatcher] = None
_default_lock = Lock()


def get_notification_dispatcher() -> BackgroundNotificationDispatcher:
    """Process-wide dispatcher used when a service is not given one."""
    global _default_dispatcher
    with _default_lock:
        if _default_dispatcher is None:
            _default_dispatcher = BackgroundNotificationDispatcher(LoggingNotificationSink())
        return _default_dispatcher
