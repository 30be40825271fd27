"""Collaborator contracts: clock, notifications, shared state and change events."""

from __future__ import annotations

import logging
import time
from collections import deque
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any, Callable, Deque, Dict, List, Protocol, Tuple

if TYPE_CHECKING:
    from .models import GameState

log = logging.getLogger(__name__)


class Clock(Protocol):
    def now(self) -> float: ...


class SystemClock:
    def now(self) -> float:
        return time.time()


@dataclass(slots=True)
class ManualClock:
    """A clock that only moves when told to."""

    current: float = 0.0

    def now(self) -> float:
        return self.current

    def advance(self, seconds: float) -> float:
        self.current += seconds
        return self.current


class Severity(str, Enum):
    INFO = "info"
    SUCCESS = "success"
    WARNING = "warning"
    ERROR = "error"


class Notifier(Protocol):
    def notify(self, message: str, severity: Severity = Severity.INFO) -> None: ...


@dataclass(slots=True)
class Notification:
    message: str
    severity: Severity = Severity.INFO


class NotificationQueue:
    """Buffer notifications until a command reply collects them."""

    def __init__(self, limit: int = 50) -> None:
        self._items: Deque[Notification] = deque(maxlen=limit)

    def notify(self, message: str, severity: Severity = Severity.INFO) -> None:
        self._items.append(Notification(message, Severity(severity)))

    def drain(self) -> List[Notification]:
        items = list(self._items)
        self._items.clear()
        return items

    def __len__(self) -> int:
        return len(self._items)


@dataclass(frozen=True)
class StateChange:
    """What a store subscriber receives after a successful mutation."""

    previous: "GameState"
    current: "GameState"
    sections: Tuple[str, ...]
    action: str = ""

    def touches(self, *names: str) -> bool:
        return any(name in self.sections for name in names)


Subscriber = Callable[[StateChange], None]
ChannelListener = Callable[[Any], None]


@dataclass(slots=True)
class SharedStateHub:
    """Keyed publish/subscribe channel other parts of the bot can read."""

    _values: Dict[str, Any] = field(default_factory=dict)
    _listeners: Dict[str, List[ChannelListener]] = field(default_factory=dict)

    def publish(self, key: str, value: Any) -> None:
        self._values[key] = value
        for listener in list(self._listeners.get(key, ())):
            try:
                listener(value)
            except Exception:
                log.exception("Shared state listener for %s failed", key)

    def get(self, key: str, default: Any = None) -> Any:
        return self._values.get(key, default)

    def subscribe(self, key: str, listener: ChannelListener) -> Callable[[], None]:
        self._listeners.setdefault(key, []).append(listener)

        def unsubscribe() -> None:
            listeners = self._listeners.get(key, [])
            if listener in listeners:
                listeners.remove(listener)

        return unsubscribe


__all__ = [
    "Clock",
    "ManualClock",
    "Notification",
    "NotificationQueue",
    "Notifier",
    "Severity",
    "SharedStateHub",
    "StateChange",
    "Subscriber",
    "SystemClock",
]
