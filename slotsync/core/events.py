"""
Typed change notifications for one session.

An EventSource is created per request (or per background task), handed to the
services that produce changes, and closed when the session ends. Listeners
only ever see events emitted while they are subscribed.
"""
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, List, Optional, Type

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ChangeEvent:
    pass


@dataclass(frozen=True)
class BookingChanged(ChangeEvent):
    booking_id: str
    channel: str
    status: str
    created: bool


@dataclass(frozen=True)
class SourceSynced(ChangeEvent):
    source_id: str
    succeeded: bool
    imported_count: int = 0
    error: Optional[str] = None


@dataclass(frozen=True)
class ConflictDetected(ChangeEvent):
    kind: str
    origin_a: str
    ref_a: str
    origin_b: str
    ref_b: str


@dataclass(frozen=True)
class SyncCompleted(ChangeEvent):
    started_at: datetime
    finished_at: datetime
    failed_sources: List[str] = field(default_factory=list)
    conflict_count: int = 0


Listener = Callable[[ChangeEvent], None]


class EventSource:
    """Fan-out of change events to registered listeners"""

    def __init__(self):
        self._listeners: List[tuple] = []
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def subscribe(self, listener: Listener, event_type: Type[ChangeEvent] = ChangeEvent) -> Callable[[], None]:
        """Register a listener; returns a callable that unsubscribes it"""
        if self._closed:
            raise RuntimeError("EventSource is closed")
        entry = (event_type, listener)
        self._listeners.append(entry)

        def unsubscribe():
            if entry in self._listeners:
                self._listeners.remove(entry)

        return unsubscribe

    def emit(self, event: ChangeEvent) -> None:
        if self._closed:
            return
        for event_type, listener in list(self._listeners):
            if not isinstance(event, event_type):
                continue
            try:
                listener(event)
            except Exception:
                # listener failures never reach the producer
                logger.exception(
                    "Event listener failed",
                    extra={"event_type": type(event).__name__},
                )

    def close(self) -> None:
        self._listeners.clear()
        self._closed = True

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()
