"""In-process fan-out of events to dashboards and commands to devices."""

from __future__ import annotations

import logging
from collections import defaultdict
from threading import Lock
from typing import Any, Callable, Dict, List

from models.events import ClassificationEvent, SensorEvent, dump_event

logger = logging.getLogger(__name__)

UPDATE_CHANNEL = "pi:update"
COMMAND_CHANNEL = "pi:cmd"

Subscriber = Callable[[Dict[str, Any]], None]


class Broadcaster:
    """Channel-based publish/subscribe.

    Subscribers are called synchronously from the publishing thread; a
    subscriber that needs to hop onto an event loop does so itself.
    """

    def __init__(self) -> None:
        self._subscribers: Dict[str, List[Subscriber]] = defaultdict(list)
        self._lock = Lock()

    def subscribe(self, channel: str, subscriber: Subscriber) -> Callable[[], None]:
        with self._lock:
            self._subscribers[channel].append(subscriber)

        def unsubscribe() -> None:
            with self._lock:
                listeners = self._subscribers.get(channel, [])
                if subscriber in listeners:
                    listeners.remove(subscriber)

        return unsubscribe

    def publish(self, channel: str, message: Dict[str, Any]) -> int:
        with self._lock:
            listeners = list(self._subscribers.get(channel, []))
        for listener in listeners:
            try:
                listener(message)
            except Exception:  # noqa: BLE001 - one broken subscriber must not block the rest
                logger.exception("Subscriber failed", extra={"reason": channel})
        return len(listeners)

    def publish_event(self, event: SensorEvent | ClassificationEvent) -> None:
        self.publish(UPDATE_CHANNEL, dump_event(event))

    def subscriber_count(self, channel: str) -> int:
        with self._lock:
            return len(self._subscribers.get(channel, []))
