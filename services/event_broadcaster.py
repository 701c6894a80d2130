"""In-process publish/subscribe for profile events.

Delivery is synchronous and only reaches callbacks registered at the time of
`publish`; subscribers added later do not see past events.
"""

from __future__ import annotations

import logging
import threading
from typing import Callable, Dict, List

from models.profile_events import ProfileEvent, UpdateEvent

LOGGER = logging.getLogger(__name__)

Observer = Callable[[UpdateEvent], None]


class EventBroadcaster:
    """Registry of observers per ProfileEvent."""

    def __init__(self) -> None:
        self._observers: Dict[ProfileEvent, List[Observer]] = {}
        self._lock = threading.Lock()

    def subscribe(self, event: ProfileEvent, callback: Observer) -> Callable[[], None]:
        """Register `callback` for `event` and return a function that unregisters it."""
        with self._lock:
            self._observers.setdefault(event, []).append(callback)

        def unsubscribe() -> None:
            with self._lock:
                observers = self._observers.get(event, [])
                if callback in observers:
                    observers.remove(callback)

        return unsubscribe

    def publish(self, event: ProfileEvent, payload: UpdateEvent) -> None:
        """Deliver `payload` to the current observers of `event`.

        A failing observer is logged and does not prevent delivery to the rest.
        """
        with self._lock:
            observers = list(self._observers.get(event, []))
        for callback in observers:
            try:
                callback(payload)
            except Exception:
                LOGGER.exception("Observer %r failed handling %s", callback, event.value)

    def subscriber_count(self, event: ProfileEvent) -> int:
        with self._lock:
            return len(self._observers.get(event, []))
