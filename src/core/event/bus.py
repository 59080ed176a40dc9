"""
EventBus: async pub/sub for the cultivation engine.

Purpose
-------
Lets presentation and analytics observe progression without the engine
knowing about them. Services publish ``cultivation.*`` events after a state
change has been persisted; listeners subscribe by exact name or by a shell
style pattern (``cultivation.*``, ``*.method_*``).

Responsibilities
----------------
- Keep listeners per pattern, deduplicated by identifier
- Run matching listeners by priority tier (see `ListenerPriority`)
- Isolate listener failures: they are logged and counted, never raised
- Drain background (LOW) listeners on `shutdown()`

Non-Responsibilities
--------------------
- Delivery guarantees across restarts
- Ordering between separate `publish` calls beyond the caller's own awaits
"""

from __future__ import annotations

import asyncio
import inspect
from collections import Counter
from fnmatch import fnmatchcase
from typing import Any, Optional

from src.core.config.manager import ConfigManager
from src.core.event.types import (
    CallbackType,
    EventListener,
    EventPayload,
    ListenerPriority,
)
from src.core.logging.logger import get_logger

logger = get_logger(__name__)

DEFAULT_LISTENER_TIMEOUT = 5.0


def matches(event_name: str, pattern: str) -> bool:
    """
    >>> matches("cultivation.stones_found", "cultivation.*")
    True
    >>> matches("cultivation.stones_found", "*.method_upgraded")
    False
    """
    return fnmatchcase(event_name, pattern)


def _accepts_one_argument(callback: CallbackType) -> bool:
    try:
        params = list(inspect.signature(callback).parameters.values())
    except (TypeError, ValueError):
        return True
    if any(p.kind in (p.VAR_POSITIONAL, p.VAR_KEYWORD) for p in params):
        return True
    return len(params) == 1


class EventBus:
    """
    Instance-based bus; the process default lives at ``src.core.event.event_bus``.

    Examples
    --------
    >>> bus = EventBus()
    >>> bus.subscribe("cultivation.breakthrough_resolved", on_breakthrough)
    >>> await bus.publish("cultivation.breakthrough_resolved", {"user_id": "u-7"})
    """

    def __init__(
        self,
        config_manager: Optional[type[ConfigManager]] = None,
        *,
        critical_timeout_seconds: Optional[float] = None,
        high_timeout_seconds: Optional[float] = None,
    ) -> None:
        self._listeners: dict[str, list[EventListener]] = {}
        self._background_tasks: set[asyncio.Task[Any]] = set()
        self._published: Counter[str] = Counter()
        self._errors: Counter[str] = Counter()

        def timeout(tier: str, override: Optional[float]) -> float:
            if override is not None:
                return float(override)
            if config_manager is None:
                return DEFAULT_LISTENER_TIMEOUT
            return config_manager.get_number(
                f"core.event.listener_timeout.{tier}_seconds",
                DEFAULT_LISTENER_TIMEOUT,
                minimum=0.0,
            )

        self._timeouts = {
            ListenerPriority.CRITICAL: timeout("critical", critical_timeout_seconds),
            ListenerPriority.HIGH: timeout("high", high_timeout_seconds),
        }

    # ------------------------------------------------------------------ #
    # Subscription
    # ------------------------------------------------------------------ #

    def subscribe(
        self,
        pattern: str,
        callback: CallbackType,
        *,
        priority: ListenerPriority = ListenerPriority.NORMAL,
        identifier: Optional[str] = None,
        once: bool = False,
    ) -> str:
        """
        Subscribe ``callback`` (sync or async, one payload argument).

        Returns the listener identifier. Re-subscribing an identifier to the
        same pattern is a no-op.

        Raises:
            ValueError: The callback cannot take exactly one argument
        """
        if not _accepts_one_argument(callback):
            name = getattr(callback, "__qualname__", None) or repr(callback)
            raise ValueError(f"Event listener '{name}' must accept exactly one payload argument")

        listener = EventListener.for_pattern(pattern, callback, priority, identifier, once)
        bucket = self._listeners.setdefault(pattern, [])
        if any(existing.identifier == listener.identifier for existing in bucket):
            logger.warning(
                "Duplicate listener ignored",
                extra={"pattern": pattern, "listener_id": listener.identifier},
            )
            return listener.identifier

        bucket.append(listener)
        logger.debug(
            "Listener subscribed",
            extra={"pattern": pattern, "listener_id": listener.identifier, "priority": priority.name},
        )
        return listener.identifier

    def unsubscribe(self, pattern: str, identifier: str) -> bool:
        bucket = self._listeners.get(pattern, [])
        remaining = [lst for lst in bucket if lst.identifier != identifier]
        self._listeners[pattern] = remaining
        return len(remaining) != len(bucket)

    def clear(self) -> None:
        self._listeners.clear()

    def _take_listeners(self, event_name: str) -> list[EventListener]:
        """Matching listeners in priority order; one-shot ones are removed here."""
        selected: list[EventListener] = []
        for pattern, bucket in self._listeners.items():
            if matches(event_name, pattern):
                selected.extend(bucket)
                self._listeners[pattern] = [lst for lst in bucket if not lst.once]
        selected.sort(key=lambda lst: lst.priority.value)
        return selected

    # ------------------------------------------------------------------ #
    # Publish
    # ------------------------------------------------------------------ #

    async def publish(self, event_name: str, data: EventPayload) -> list[Any]:
        """
        Deliver ``data`` to every matching listener.

        Returns the results of CRITICAL, HIGH and NORMAL listeners (``None``
        for any that failed or timed out). LOW listeners are not awaited.
        """
        self._published[event_name] += 1
        listeners = self._take_listeners(event_name)

        results: list[Any] = []
        concurrent: list[EventListener] = []
        for listener in listeners:
            if listener.priority.is_sequential:
                results.append(await self._run_sequential(listener, event_name, data))
            elif listener.priority is ListenerPriority.NORMAL:
                concurrent.append(listener)
            else:
                self._spawn(listener, event_name, data)

        if concurrent:
            results.extend(
                await asyncio.gather(*(self._invoke(lst, event_name, data) for lst in concurrent))
            )
        return results

    def _spawn(self, listener: EventListener, event_name: str, data: EventPayload) -> None:
        task = asyncio.get_running_loop().create_task(
            self._invoke(listener, event_name, data),
            name=f"eventbus-low-{event_name}-{listener.identifier}",
        )
        self._background_tasks.add(task)
        task.add_done_callback(self._background_tasks.discard)

    async def _run_sequential(
        self, listener: EventListener, event_name: str, data: EventPayload
    ) -> Any:
        limit = self._timeouts[listener.priority]
        if limit <= 0:
            return await self._invoke(listener, event_name, data)
        try:
            return await asyncio.wait_for(self._invoke(listener, event_name, data), timeout=limit)
        except asyncio.TimeoutError:
            self._errors[event_name] += 1
            logger.error(
                "Event listener timed out",
                extra={
                    "event_name": event_name,
                    "listener_id": listener.identifier,
                    "timeout_seconds": limit,
                },
            )
            return None

    async def _invoke(self, listener: EventListener, event_name: str, data: EventPayload) -> Any:
        try:
            result = listener.callback(data)
            if inspect.isawaitable(result):
                result = await result
            return result
        except Exception as exc:
            self._errors[event_name] += 1
            logger.error(
                "Event listener failed",
                extra={
                    "event_name": event_name,
                    "listener_id": listener.identifier,
                    "priority": listener.priority.name,
                    "error_type": type(exc).__name__,
                },
                exc_info=True,
            )
            return None

    # ------------------------------------------------------------------ #
    # Introspection & lifecycle
    # ------------------------------------------------------------------ #

    def get_listener_count(self, event_name: Optional[str] = None) -> int:
        return sum(
            len(bucket)
            for pattern, bucket in self._listeners.items()
            if event_name is None or matches(event_name, pattern)
        )

    def get_metrics_summary(self) -> dict[str, Any]:
        return {
            "total_events_published": sum(self._published.values()),
            "events_by_type": dict(self._published),
            "total_errors": sum(self._errors.values()),
            "errors_by_event": dict(self._errors),
            "total_listeners": self.get_listener_count(),
        }

    async def shutdown(self) -> None:
        """Wait for LOW listeners still running in the background."""
        if self._background_tasks:
            await asyncio.gather(*list(self._background_tasks), return_exceptions=True)
        logger.info("EventBus shut down", extra=self.get_metrics_summary())
