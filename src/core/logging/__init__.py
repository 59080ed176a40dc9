"""
Logging Infrastructure

Structured logging for the cultivation engine:
- JSON or colored console output behind a non-blocking queue
- ContextVar-based operation context (`LogContext`)
- Explicit setup and teardown for the entry point
"""

from src.core.logging.logger import (
    LogContext,
    LoggerConfig,
    current_log_context,
    get_logger,
    get_logging_metrics,
    setup_logging,
    shutdown_logging,
)

__all__ = [
    "setup_logging",
    "shutdown_logging",
    "get_logger",
    "get_logging_metrics",
    "LogContext",
    "current_log_context",
    "LoggerConfig",
]
