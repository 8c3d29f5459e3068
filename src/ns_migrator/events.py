"""
Outbound domain-event channel.

Orchestrators publish events (``migration_complete``, ``clone_complete``,
``job_failed``) without waiting for delivery.  A single daemon thread
drains the queue and hands each event to the registered subscribers;
subscriber failures are logged and isolated from each other and from the
publisher.

Subscribers are plain callables taking a ``DomainEvent``.  Subscribe to a
specific event name or to ``"*"`` for every event.
"""

from __future__ import annotations

import logging
import queue
import threading
from collections import defaultdict
from dataclasses import dataclass, field
from typing import Any, Callable

from .models import now_iso

__all__ = [
    "MIGRATION_COMPLETE",
    "CLONE_COMPLETE",
    "JOB_FAILED",
    "WILDCARD",
    "DomainEvent",
    "EventHandler",
    "EventPublisher",
    "log_event",
]

logger = logging.getLogger(__name__)

MIGRATION_COMPLETE = "migration_complete"
CLONE_COMPLETE = "clone_complete"
JOB_FAILED = "job_failed"

WILDCARD = "*"


@dataclass(frozen=True)
class DomainEvent:
    event: str
    data: dict[str, Any]
    timestamp: str = field(default_factory=now_iso)

    def to_dict(self) -> dict[str, Any]:
        return {"event": self.event, "timestamp": self.timestamp, "data": dict(self.data)}


EventHandler = Callable[[DomainEvent], None]

_STOP = object()


class EventPublisher:
    """Fire-and-forget event bus backed by a queue and one dispatch thread.

    Example:
        >>> publisher = EventPublisher()
        >>> publisher.subscribe(JOB_FAILED, notify_ops)
        >>> publisher.publish(JOB_FAILED, {"job_id": "..."})
        >>> publisher.close()
    """

    def __init__(self) -> None:
        self._handlers: dict[str, list[EventHandler]] = defaultdict(list)
        self._lock = threading.Lock()
        self._queue: queue.Queue = queue.Queue()
        self._thread: threading.Thread | None = None
        self._closed = False

    def subscribe(self, event: str, handler: EventHandler) -> None:
        with self._lock:
            self._handlers[event].append(handler)

    def unsubscribe(self, event: str, handler: EventHandler) -> None:
        with self._lock:
            if handler in self._handlers.get(event, []):
                self._handlers[event].remove(handler)

    def publish(self, event: str, data: dict[str, Any]) -> None:
        """Queue *event* for delivery and return immediately."""
        if self._closed:
            logger.debug("Publisher closed — dropping event %s", event)
            return
        self._ensure_started()
        self._queue.put(DomainEvent(event=event, data=dict(data)))

    def flush(self) -> None:
        """Block until every queued event has been dispatched."""
        if self._thread is not None:
            self._queue.join()

    def close(self, timeout: float = 5.0) -> None:
        """Deliver what is queued, then stop the dispatch thread."""
        if self._closed:
            return
        self._closed = True
        if self._thread is not None:
            self._queue.put(_STOP)
            self._thread.join(timeout)
            if self._thread.is_alive():
                logger.warning("Event dispatch thread did not stop within %.1fs", timeout)

    # ------------------------------------------------------------------
    # Dispatch
    # ------------------------------------------------------------------

    def _ensure_started(self) -> None:
        with self._lock:
            if self._thread is None:
                self._thread = threading.Thread(
                    target=self._run, name="event-dispatch", daemon=True
                )
                self._thread.start()

    def _run(self) -> None:
        while True:
            item = self._queue.get()
            try:
                if item is _STOP:
                    return
                self._dispatch(item)
            finally:
                self._queue.task_done()

    def _dispatch(self, event: DomainEvent) -> None:
        with self._lock:
            handlers = list(self._handlers.get(event.event, [])) + list(
                self._handlers.get(WILDCARD, [])
            )
        for handler in handlers:
            try:
                handler(event)
            except Exception:  # noqa: BLE001 - subscriber errors never reach the publisher
                logger.exception(
                    "Event handler %r failed for event %s",
                    getattr(handler, "__name__", handler), event.event,
                )


def log_event(event: DomainEvent) -> None:
    """Default subscriber: record every event in the application log."""
    logger.info("Event %s: %s", event.event, event.data)
