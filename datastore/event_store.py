from __future__ import annotations

import logging
from threading import RLock
from typing import Callable, List, Optional, Tuple
from uuid import uuid4

from models.events import ClassificationEvent, SensorEvent

logger = logging.getLogger(__name__)

Event = SensorEvent | ClassificationEvent
Listener = Callable[[Event], None]

DEFAULT_CLASSIFICATION_LIMIT = 20


def _is_classification(event: Event) -> bool:
    if event.kind == "classification":
        return True
    return getattr(event, "label", None) is not None or getattr(event, "recyclable", None) is not None


class EventStore:
    """Last result plus a bounded, insertion-ordered history of events.

    Recording, eviction and listener notification happen as one unit under
    the store lock.
    """

    def __init__(self, capacity: int = 200, broadcast: Optional[Listener] = None) -> None:
        if capacity <= 0:
            raise ValueError("Event store capacity must be positive.")
        self.capacity = capacity
        self._broadcast = broadcast
        self._history: List[Event] = []
        self._last: Optional[Event] = None
        self._lock = RLock()

    @property
    def last_result(self) -> Optional[Event]:
        with self._lock:
            return self._last

    def record(self, event: Event) -> Event:
        """Store ``event`` as the latest result and notify the broadcast listener."""

        if not event.id:
            event.id = uuid4().hex
        with self._lock:
            self._last = event
            if len(self._history) >= self.capacity:
                evicted = self._history.pop(0)
                logger.debug("Evicted oldest event", extra={"event_id": evicted.id})
            self._history.append(event)
            if self._broadcast is not None:
                self._broadcast(event)
        return event

    def remove_by_id(self, event_id: str) -> Optional[Event]:
        """Drop the first event carrying ``event_id``; unknown ids are a no-op."""

        with self._lock:
            for index, event in enumerate(self._history):
                if event.id == event_id:
                    break
            else:
                return None
            removed = self._history.pop(index)
            if removed is self._last:
                self._last = self._history[-1] if self._history else None
            return removed

    def history(self) -> List[Event]:
        with self._lock:
            return list(self._history)

    def snapshot(self) -> Tuple[Optional[Event], List[Event]]:
        with self._lock:
            return self._last, list(self._history)

    def filter_classifications(self, limit: Optional[int] = DEFAULT_CLASSIFICATION_LIMIT) -> List[Event]:
        """Most recent classification-bearing events, newest first."""

        bounded = max(1, min(self.capacity, limit or DEFAULT_CLASSIFICATION_LIMIT))
        with self._lock:
            matches = [event for event in self._history if _is_classification(event)]
        return list(reversed(matches[-bounded:]))

    def __len__(self) -> int:
        with self._lock:
            return len(self._history)
