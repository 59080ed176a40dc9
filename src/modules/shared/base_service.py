"""
Base Service Foundation

Purpose
-------
Foundational class for the cultivation domain services. Services orchestrate
domain models, enforce business rules, call the store and publish domain
events.

Design Notes
------------
This base class provides:
- Structured logging with operation context
- Severity-aware error logging
- Event emission, including draining an aggregate's pending events

What this class does NOT do:
- Manage database transactions (that's the store's job via DatabaseService)
- Hold per-player state

Usage
-----
    class MethodProgressionService(BaseService):
        def __init__(self, config_manager, event_bus, logger, *, store):
            super().__init__(config_manager, event_bus, logger)
            self._store = store
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, Dict, Optional

from src.modules.shared.exceptions import get_error_severity, is_transient_error, should_alert

if TYPE_CHECKING:
    from logging import Logger

    from src.core.config.manager import ConfigManager
    from src.core.event.bus import EventBus
    from src.domain.models.base import AggregateRoot


class BaseService:
    """
    Base class for all domain services.

    Args:
        config_manager: Balance configuration (ConfigManager class or instance)
        event_bus: Event bus for cross-module communication
        logger: Structured logger instance
    """

    def __init__(
        self,
        config_manager: ConfigManager,
        event_bus: EventBus,
        logger: Logger,
    ) -> None:
        self._config = config_manager
        self._events = event_bus
        self.log = logger

    async def emit_event(
        self,
        event_type: str,
        data: Dict[str, Any],
        context: Optional[Dict[str, Any]] = None,
    ) -> None:
        """Publish a domain event; listener failures never reach the caller."""
        await self._events.publish(event_type, {**data, **(context or {})})

    async def publish_domain_events(self, aggregate: AggregateRoot) -> int:
        """Drain and publish an aggregate's pending events. Returns the count."""
        events = aggregate.clear_domain_events()
        for event in events:
            await self.emit_event(
                event.event_name,
                event.payload,
                {"occurred_at": event.occurred_at.isoformat()},
            )
        return len(events)

    def log_operation(self, operation: str, **context: Any) -> None:
        self.log.info(
            f"Service operation: {operation}",
            extra={"operation": operation, **context},
        )

    def log_error(
        self,
        operation: str,
        error: BaseException,
        **context: Any,
    ) -> None:
        """Log at ERROR when the failure should alert, WARNING otherwise."""
        level = logging.ERROR if should_alert(error) else logging.WARNING
        self.log.log(
            level,
            f"Service error during {operation}: {error}",
            extra={
                "operation": operation,
                "error_type": type(error).__name__,
                "error_message": str(error),
                "severity": get_error_severity(error).value,
                "retryable": is_transient_error(error),
                **context,
            },
        )
