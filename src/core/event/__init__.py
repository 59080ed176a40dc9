"""
Event system.

Provides the EventBus and a process-wide default instance.
"""

from .bus import EventBus, matches
from .types import (
    CallbackType,
    EventListener,
    EventPayload,
    ListenerPriority,
)

# Global runtime singleton EventBus
event_bus = EventBus()

__all__ = [
    "event_bus",
    "EventBus",
    "EventPayload",
    "ListenerPriority",
    "EventListener",
    "CallbackType",
    "matches",
]
