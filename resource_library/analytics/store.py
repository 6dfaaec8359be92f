from __future__ import annotations

import threading
import time
from collections import deque
from typing import Any

_DEFAULT_MAX_EVENTS = 10_000


class EventStore:
    """Thread-safe in-memory event log.

    Keeps the newest ``max_events`` events; older ones are dropped as new
    ones arrive.
    """

    def __init__(self, max_events: int = _DEFAULT_MAX_EVENTS) -> None:
        self._events: deque[dict[str, Any]] = deque(maxlen=max_events)
        self._lock = threading.Lock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._events)

    def record(self, event_type: str, data: dict[str, Any]) -> None:
        event = {"type": event_type, "timestamp": time.time(), **data}
        with self._lock:
            self._events.append(event)

    def events(self, event_type: str | None = None) -> list[dict[str, Any]]:
        """Return a snapshot of recorded events, optionally of one type only."""
        with self._lock:
            if event_type is None:
                return list(self._events)
            return [e for e in self._events if e["type"] == event_type]

    def clear(self) -> None:
        with self._lock:
            self._events.clear()
