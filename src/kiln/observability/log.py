"""Event log — what the dev server has done recently.

A fixed-size buffer of :data:`StackEvent` records.  The watchers append
from the event loop while tests and the collector read back; a
``threading.Lock`` keeps both sides consistent.

"""

import threading
from collections import deque

from kiln.observability.events import StackEvent


class EventLog:
    """Keeps the last *max_events* events, oldest dropped first.

    Args:
        max_events: Capacity of the buffer.

    """

    __slots__ = ("_events", "_lock")

    def __init__(self, max_events: int = 1_000) -> None:
        self._events: deque[StackEvent] = deque(maxlen=max_events)
        self._lock = threading.Lock()

    def append(self, event: StackEvent) -> None:
        with self._lock:
            self._events.append(event)

    def of_type[E](self, event_type: type[E], *, since_ns: int = 0) -> list[E]:
        """Events of *event_type* recorded at or after *since_ns*, oldest first."""
        with self._lock:
            snapshot = tuple(self._events)
        return [
            e for e in snapshot
            if isinstance(e, event_type) and e.timestamp_ns >= since_ns
        ]

    def recent(self, n: int = 20) -> list[StackEvent]:
        """The *n* newest events, oldest first."""
        with self._lock:
            snapshot = tuple(self._events)
        return list(snapshot[-n:]) if n > 0 else []

    def clear(self) -> int:
        """Drop every event; returns how many were dropped."""
        with self._lock:
            dropped = len(self._events)
            self._events.clear()
        return dropped

    def __len__(self) -> int:
        with self._lock:
            return len(self._events)
