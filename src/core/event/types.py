"""
Listener records for the EventBus.

A listener's priority picks how the bus runs it:

- CRITICAL, HIGH: one at a time in priority order, awaited, with a timeout
- NORMAL: all together via ``asyncio.gather``, awaited
- LOW: scheduled as background tasks; the publisher does not wait
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Awaitable, Callable, Optional, Union

# Kept JSON-serializable so payloads can be logged as-is
EventPayload = dict[str, Any]

CallbackType = Union[
    Callable[[EventPayload], Any],
    Callable[[EventPayload], Awaitable[Any]],
]


class ListenerPriority(Enum):
    CRITICAL = 0
    HIGH = 10
    NORMAL = 50
    LOW = 100

    @property
    def is_sequential(self) -> bool:
        return self in (ListenerPriority.CRITICAL, ListenerPriority.HIGH)


def default_identifier(pattern: str, callback: CallbackType) -> str:
    """``module.qualname@pattern``, so one function subscribes once per pattern."""
    module = getattr(callback, "__module__", "unknown")
    name = getattr(callback, "__qualname__", None) or getattr(callback, "__name__", "callback")
    return f"{module}.{name}@{pattern}"


@dataclass(slots=True, frozen=True)
class EventListener:
    """One subscription. ``once`` listeners are dropped before they first run."""

    callback: CallbackType
    priority: ListenerPriority
    identifier: str
    once: bool = False

    @classmethod
    def for_pattern(
        cls,
        pattern: str,
        callback: CallbackType,
        priority: ListenerPriority = ListenerPriority.NORMAL,
        identifier: Optional[str] = None,
        once: bool = False,
    ) -> EventListener:
        return cls(
            callback=callback,
            priority=priority,
            identifier=identifier or default_identifier(pattern, callback),
            once=once,
        )
