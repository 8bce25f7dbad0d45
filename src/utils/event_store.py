"""In-memory event channel for pipeline events.

Every event published by the poller and the chart cache is appended to a
bounded, thread-safe store and then handed to the subscribers in publish
order. Presentation and notification collaborators subscribe here instead of
polling the services.
"""

import threading
import uuid
from collections import deque
from collections.abc import Callable, Iterable
from dataclasses import asdict, dataclass
from datetime import UTC, datetime, timedelta
from typing import Any

from src.utils.logger import StructuredLogger

PRICES_UPDATED = "prices_updated"
ALERTS_TRIGGERED = "alerts_triggered"
CHART_UPDATED = "chart_updated"
POLL_FAILED = "poll_failed"
CHART_FETCH_FAILED = "chart_fetch_failed"
POLL_START = "poll_start"
POLL_RETRY = "poll_retry"
POLL_DISCARDED = "poll_discarded"

Subscriber = Callable[["Event"], None]


@dataclass
class Event:
    """Represents a pipeline event."""

    id: str
    timestamp: str
    cycle_id: str | None
    event_type: str
    component: str
    message: str
    context: dict[str, Any]
    payload: Any = None
    duration_ms: float | None = None

    def to_dict(self) -> dict[str, Any]:
        """Convert event to dictionary, excluding None values."""
        result = asdict(self)
        return {k: v for k, v in result.items() if v is not None}


class EventStore:
    """Bounded event store with subscriber fan-out and age-based purging."""

    def __init__(self, max_size: int = 10000, max_age_seconds: int = 3600):
        """
        Initialize the event store.

        Args:
            max_size: Maximum number of events to keep (default 10000)
            max_age_seconds: Maximum age of events in seconds (default 1 hour)
        """
        self.max_size = max_size
        self.max_age_seconds = max_age_seconds
        self._events: deque = deque(maxlen=max_size)
        self._subscribers: list[tuple[Subscriber, frozenset[str] | None]] = []
        self._lock = threading.RLock()
        self.logger = StructuredLogger("EventStore")

    def subscribe(
        self, callback: Subscriber, event_types: Iterable[str] | None = None
    ) -> Callable[[], None]:
        """
        Register a subscriber.

        Args:
            callback: Called with each matching event, in publish order
            event_types: Optional event types to receive (all when None)

        Returns:
            A function that removes the subscription
        """
        entry = (callback, frozenset(event_types) if event_types is not None else None)
        with self._lock:
            self._subscribers.append(entry)

        def unsubscribe() -> None:
            with self._lock:
                if entry in self._subscribers:
                    self._subscribers.remove(entry)

        return unsubscribe

    def publish(
        self,
        event_type: str,
        component: str,
        message: str,
        context: dict[str, Any] | None = None,
        payload: Any = None,
        cycle_id: str | None = None,
        duration_ms: float | None = None,
    ) -> Event:
        """
        Record an event and deliver it to the subscribers.

        Delivery happens while the store lock is held, so subscribers see
        events one at a time and in the order they were published. A
        subscriber that raises is logged and skipped.

        Returns:
            The created Event object
        """
        with self._lock:
            event = Event(
                id=str(uuid.uuid4()),
                timestamp=datetime.now(UTC).isoformat().replace("+00:00", "Z"),
                cycle_id=cycle_id,
                event_type=event_type,
                component=component,
                message=message,
                context=context or {},
                payload=payload,
                duration_ms=duration_ms,
            )
            self._events.append(event)

            for callback, event_types in list(self._subscribers):
                if event_types is not None and event_type not in event_types:
                    continue
                try:
                    callback(event)
                except Exception as e:
                    self.logger.error(
                        "Event subscriber failed",
                        context={"event_type": event_type, "event_id": event.id},
                        exception=e,
                    )
            return event

    def get_recent_events(self, limit: int = 100) -> list[Event]:
        """
        Get the most recent events in chronological order (oldest first).

        Args:
            limit: Maximum number of events to return
        """
        with self._lock:
            events_list = list(self._events)
            return events_list[-limit:] if limit > 0 else []

    def get_events_by_cycle(self, cycle_id: str) -> list[Event]:
        """Get all events of one poll or chart cycle in chronological order."""
        with self._lock:
            return [event for event in self._events if event.cycle_id == cycle_id]

    def get_events_by_type(self, event_type: str, limit: int = 100) -> list[Event]:
        """Get the most recent events of a specific type in chronological order."""
        with self._lock:
            matching_events = [event for event in self._events if event.event_type == event_type]
            return matching_events[-limit:] if limit > 0 else []

    def clear_old_events(self, max_age_seconds: int | None = None) -> int:
        """
        Remove events older than the specified age.

        Args:
            max_age_seconds: Maximum age in seconds (uses instance default if None)

        Returns:
            Number of events removed
        """
        max_age = max_age_seconds or self.max_age_seconds
        cutoff_time = datetime.now(UTC) - timedelta(seconds=max_age)

        with self._lock:
            initial_count = len(self._events)

            new_events = deque(maxlen=self.max_size)
            for event in self._events:
                event_time = datetime.fromisoformat(event.timestamp.replace("Z", "+00:00"))
                if event_time > cutoff_time:
                    new_events.append(event)

            self._events = new_events
            return initial_count - len(self._events)

    def clear(self) -> None:
        """Clear all events from the store."""
        with self._lock:
            self._events.clear()

    def size(self) -> int:
        """Get the current number of events in the store."""
        with self._lock:
            return len(self._events)

    def get_all_events(self) -> list[Event]:
        """Get all events in chronological order."""
        with self._lock:
            return list(self._events)
