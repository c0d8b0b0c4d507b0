# tutorsync/notifier.py

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any, Callable, Optional

logger = logging.getLogger(__name__)

DATA_UPDATED = "data_updated"

ADD = "add"
UPDATE = "update"
DELETE = "delete"
ACTIONS = (ADD, UPDATE, DELETE)


def _jsonable(value: Any) -> Any:
    if isinstance(value, dict):
        return {k: _jsonable(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_jsonable(v) for v in value]
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    return value


@dataclass(frozen=True)
class ChangeEvent:
    module: str
    action: str
    data: dict[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        if self.action not in ACTIONS:
            raise ValueError(f"Unknown action type: {self.action}")

    def to_payload(self) -> dict[str, Any]:
        return {"module": self.module, "action": self.action, "data": _jsonable(self.data)}


Subscriber = Callable[[ChangeEvent], Any]


class ChangeNotifier:
    """Best-effort fan-out of change events to whoever is listening right now.

    No backlog: a subscriber added after publish() never sees that event.
    publish() never raises; a failing subscriber is logged and skipped.
    """

    def __init__(self):
        self._subscribers: list[Subscriber] = []
        self._lock = threading.Lock()

    def subscribe(self, callback: Subscriber) -> Subscriber:
        with self._lock:
            self._subscribers.append(callback)
        return callback

    def unsubscribe(self, callback: Subscriber) -> None:
        with self._lock:
            try:
                self._subscribers.remove(callback)
            except ValueError:
                pass

    def attach(self, transport, event: str = DATA_UPDATED) -> Subscriber:
        """Forwards every event to `transport.emit(event, payload)`.

        Anything with that method works, e.g. a python-socketio Server.
        """

        def _forward(change: ChangeEvent) -> None:
            transport.emit(event, change.to_payload())

        return self.subscribe(_forward)

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    def publish(self, event: ChangeEvent) -> int:
        """Returns the number of subscribers that took the event without error."""
        with self._lock:
            targets = list(self._subscribers)

        delivered = 0
        for callback in targets:
            try:
                callback(event)
                delivered += 1
            except Exception as e:
                logger.warning("Change notification to %r failed: %s", callback, e)
        return delivered

    def emit(self, module: str, action: str, data: Optional[dict[str, Any]] = None) -> int:
        try:
            event = ChangeEvent(module=module, action=action, data=dict(data or {}))
        except ValueError as e:
            logger.warning("Dropping change notification: %s", e)
            return 0
        return self.publish(event)
