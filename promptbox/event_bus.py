# event_bus.py - Library change notifications for the store, adapter and SSE route
"""
Every event gets a sequence number and goes into a bounded backlog. Readers
keep a cursor into the backlog instead of owning a queue, so an SSE client
that reconnects with Last-Event-ID picks up where it left off, as long as
the events it missed are still in the backlog.
"""
import threading
import time
import logging
from collections import deque
from typing import Dict, Any, Generator, Iterable, Optional

logger = logging.getLogger(__name__)


class EventBus:
    """Numbered, bounded event backlog with blocking readers."""

    def __init__(self, backlog: int = 200):
        self._cond = threading.Condition()
        self._backlog: deque = deque(maxlen=backlog)
        self._last_id = 0
        self._listeners = 0
        logger.info(f"EventBus initialized (backlog={backlog})")

    @property
    def last_id(self) -> int:
        with self._cond:
            return self._last_id

    def publish(self, event_type: str, data: Optional[Dict[str, Any]] = None) -> dict:
        """Append an event and wake every reader. Returns the stored event."""
        with self._cond:
            self._last_id += 1
            event = {
                "id": self._last_id,
                "type": event_type,
                "data": data or {},
                "timestamp": time.time(),
            }
            self._backlog.append(event)
            self._cond.notify_all()

        logger.debug(f"Published #{event['id']}: {event_type}")
        return event

    def recent(self, event_type: Optional[str] = None, since: int = 0) -> list:
        """Backlog events newer than since, optionally of one type."""
        with self._cond:
            events = [e for e in self._backlog if e["id"] > since]
        if event_type is None:
            return events
        return [e for e in events if e["type"] == event_type]

    def subscribe(self, since: Optional[int] = None, event_types: Optional[Iterable[str]] = None,
                  keepalive: float = 15.0) -> Generator[Dict[str, Any], None, None]:
        """
        Yield events as they are published.

        Args:
            since: Resume after this event id. None starts with the next
                published event; 0 replays the whole backlog.
            event_types: Only yield these types
            keepalive: Seconds of silence before a keepalive event is yielded
        """
        wanted = set(event_types) if event_types else None
        with self._cond:
            cursor = self._last_id if since is None else since
            self._listeners += 1

        try:
            while True:
                with self._cond:
                    if self._last_id <= cursor:
                        self._cond.wait(timeout=keepalive)
                    pending = [e for e in self._backlog if e["id"] > cursor]
                    oldest = self._backlog[0]["id"] if self._backlog else self._last_id + 1

                if not pending:
                    yield {"type": "keepalive", "timestamp": time.time()}
                    continue

                if oldest > cursor + 1:
                    logger.warning(f"Reader fell behind: events {cursor + 1}-{oldest - 1} left the backlog")

                for event in pending:
                    cursor = event["id"]
                    if wanted is None or event["type"] in wanted:
                        yield event
        finally:
            with self._cond:
                self._listeners -= 1

    def listener_count(self) -> int:
        with self._cond:
            return self._listeners


# Process-wide default bus; stores and adapters accept their own bus for tests
_bus: Optional[EventBus] = None


def get_event_bus() -> EventBus:
    global _bus
    if _bus is None:
        _bus = EventBus()
    return _bus


def publish(event_type: str, data: Optional[Dict[str, Any]] = None) -> dict:
    return get_event_bus().publish(event_type, data)


# Event type constants
class Events:
    # Prompt events
    PROMPT_SAVED = "prompt_saved"
    PROMPT_DELETED = "prompt_deleted"
    PROMPT_PINNED = "prompt_pinned"
    PROMPT_RATED = "prompt_rated"

    # Vocabulary events
    CATEGORY_DELETED = "category_deleted"
    TAG_DELETED = "tag_deleted"

    # Editor hand-off events
    HANDOFF_SUBMITTED = "handoff_submitted"
    HANDOFF_CONSUMED = "handoff_consumed"
    HANDOFF_DISCARDED = "handoff_discarded"

    # Storage events
    STORAGE_WRITE_FAILED = "storage_write_failed"
    STORAGE_EXTERNAL_CHANGE = "storage_external_change"
    DATA_CLEARED = "data_cleared"
    RELOAD_REQUIRED = "reload_required"
    DOCUMENT_RELOADED = "document_reloaded"
