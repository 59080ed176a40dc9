"""
Cultivation engine logging subsystem

Purpose
-------
Structured, non-blocking logging for the engine's background loops and
caller operations:

- JSON records for aggregation, colored text for local development.
- Per-operation context (player, operation, correlation id) carried through
  ContextVars, so tick and flush tasks spawned inside an operation inherit it.
- QueueHandler + QueueListener so handlers never block the event loop.
- Optional daily-rotated JSON file backup.

Responsibilities
----------------
- Configure the root logger once (`setup_logging`) and tear it down
  (`shutdown_logging`).
- Enrich every record with ``user_id``, ``operation``, ``correlation_id`` and
  ``component``.
- Merge ``extra={...}`` fields into the JSON payload.
- Count enqueued and dropped records; a full queue drops, never blocks.

Non-Responsibilities
--------------------
- Metrics export (records carry the numbers; aggregation is external)
- Choosing log levels for callers

Setup is explicit: the entry point calls `setup_logging()`. Until then
records propagate to whatever handlers the host (or pytest) installed.

Dependencies
------------
- src.core.config.config.Config
"""

from __future__ import annotations

import json
import logging
import queue
import sys
import uuid
from contextvars import ContextVar, Token
from dataclasses import dataclass
from datetime import datetime, timezone
from logging import Logger
from logging.handlers import QueueHandler, QueueListener, TimedRotatingFileHandler
from typing import Any, Dict, List, Optional

from src.core.config.config import Config


# ============================================================================
# Operation Context
# ============================================================================

_operation_context: ContextVar[Dict[str, Any]] = ContextVar("operation_context", default={})

CONTEXT_FIELDS = ("user_id", "operation", "correlation_id", "component")
_UNSET = "-"


# ============================================================================
# Settings
# ============================================================================


@dataclass(frozen=True, slots=True)
class LoggerConfig:
    """Formats and limits for the logging subsystem; levels come from Config."""

    CONSOLE_FORMAT: str = (
        "%(asctime)s | %(levelname)-8s | %(name)-36s | [%(user_id)s:%(operation)s] %(message)s"
    )
    DATE_FORMAT: str = "%Y-%m-%d %H:%M:%S"

    FILE_BASENAME: str = "cultivation.json.log"
    FILE_BACKUP_COUNT: int = 2

    QUEUE_MAX_SIZE: int = 10_000

    # Chatty third-party loggers kept at WARNING
    QUIET_LOGGERS: tuple = ("sqlalchemy.engine", "aiosqlite", "asyncpg", "asyncio")

    @property
    def level(self) -> int:
        return getattr(logging, str(Config.LOG_LEVEL).upper(), logging.INFO)

    @property
    def use_json(self) -> bool:
        return bool(Config.LOG_JSON) or Config.is_production()

    @property
    def use_colors(self) -> bool:
        return not self.use_json and sys.stdout.isatty()


LOGGER_CONFIG = LoggerConfig()


@dataclass(slots=True)
class LoggingMetrics:
    records_enqueued: int = 0
    records_dropped: int = 0


_metrics = LoggingMetrics()
_listener: Optional[QueueListener] = None


# ============================================================================
# Filters & Formatters
# ============================================================================


class ContextFilter(logging.Filter):
    """Copy the current operation context onto the record."""

    def filter(self, record: logging.LogRecord) -> bool:  # type: ignore[override]
        context = _operation_context.get()
        for name in CONTEXT_FIELDS:
            if not hasattr(record, name):
                setattr(record, name, context.get(name) or _UNSET)
        if record.component == _UNSET:
            # src.modules.cultivation.tick_engine -> cultivation
            parts = record.name.split(".")
            record.component = parts[2] if len(parts) > 2 and parts[0] == "src" else parts[0]
        return True


class ColoredFormatter(logging.Formatter):
    COLORS: Dict[str, str] = {
        "DEBUG": "\033[90m",
        "INFO": "\033[94m",
        "WARNING": "\033[93m",
        "ERROR": "\033[91m",
        "CRITICAL": "\033[91m\033[1m",
    }
    RESET = "\033[0m"

    def format(self, record: logging.LogRecord) -> str:  # type: ignore[override]
        original = record.levelname
        color = self.COLORS.get(original)
        if color:
            record.levelname = f"{color}{original}{self.RESET}"
        try:
            return super().format(record)
        finally:
            record.levelname = original


# Attributes every LogRecord has; anything else came from ``extra=``
_RECORD_ATTRS = frozenset(
    vars(logging.LogRecord("", logging.INFO, "", 0, "", None, None)).keys()
) | {"message", "asctime", "taskName"}


class JSONFormatter(logging.Formatter):
    """One JSON object per record: core fields, context, then ``extra``."""

    def format(self, record: logging.LogRecord) -> str:  # type: ignore[override]
        payload: Dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        for name in CONTEXT_FIELDS:
            value = getattr(record, name, _UNSET)
            if value != _UNSET:
                payload[name] = value

        extra = {
            key: value
            for key, value in record.__dict__.items()
            if key not in _RECORD_ATTRS and key not in CONTEXT_FIELDS and not key.startswith("_")
        }
        if extra:
            payload["extra"] = extra

        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)

        return json.dumps(payload, ensure_ascii=False, default=str)


# ============================================================================
# Queue
# ============================================================================


class DroppingQueueHandler(QueueHandler):
    """Never blocks the event loop: a full queue drops the record."""

    def enqueue(self, record: logging.LogRecord) -> None:  # type: ignore[override]
        try:
            self.queue.put_nowait(record)
            _metrics.records_enqueued += 1
        except queue.Full:
            _metrics.records_dropped += 1


def _console_handler() -> logging.Handler:
    handler = logging.StreamHandler(sys.stdout)
    if LOGGER_CONFIG.use_json:
        handler.setFormatter(JSONFormatter())
    elif LOGGER_CONFIG.use_colors:
        handler.setFormatter(
            ColoredFormatter(LOGGER_CONFIG.CONSOLE_FORMAT, LOGGER_CONFIG.DATE_FORMAT)
        )
    else:
        handler.setFormatter(
            logging.Formatter(LOGGER_CONFIG.CONSOLE_FORMAT, LOGGER_CONFIG.DATE_FORMAT)
        )
    return handler


def _file_handler() -> logging.Handler:
    Config.LOGS_DIR.mkdir(parents=True, exist_ok=True)
    handler = TimedRotatingFileHandler(
        filename=str(Config.LOGS_DIR / LOGGER_CONFIG.FILE_BASENAME),
        when="midnight",
        backupCount=LOGGER_CONFIG.FILE_BACKUP_COUNT,
        encoding="utf-8",
        utc=True,
    )
    handler.setFormatter(JSONFormatter())
    return handler


# ============================================================================
# Setup / Teardown
# ============================================================================


def setup_logging() -> None:
    """Install the queue-backed root handler. Idempotent."""
    global _listener

    if _listener is not None:
        return

    level = LOGGER_CONFIG.level
    handlers: List[logging.Handler] = [_console_handler()]
    if Config.LOG_FILE_ENABLED:
        handlers.append(_file_handler())
    for handler in handlers:
        handler.setLevel(level)

    log_queue: "queue.Queue[logging.LogRecord]" = queue.Queue(LOGGER_CONFIG.QUEUE_MAX_SIZE)
    _listener = QueueListener(log_queue, *handlers, respect_handler_level=True)
    _listener.start()

    root = logging.getLogger()
    root.setLevel(level)
    root.handlers.clear()
    queue_handler = DroppingQueueHandler(log_queue)
    # Context must be read on the producing task, not the listener thread
    queue_handler.addFilter(ContextFilter())
    root.addHandler(queue_handler)

    for name in LOGGER_CONFIG.QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    logging.getLogger(__name__).info(
        "Logging initialized",
        extra={
            "environment": Config.ENVIRONMENT,
            "log_level": logging.getLevelName(level),
            "json": LOGGER_CONFIG.use_json,
            "file": bool(Config.LOG_FILE_ENABLED),
        },
    )


def shutdown_logging() -> None:
    """Flush the queue, stop the listener and close every handler."""
    global _listener

    if _listener is None:
        return

    logging.getLogger(__name__).info(
        "Shutting down logging",
        extra={"records_enqueued": _metrics.records_enqueued, "records_dropped": _metrics.records_dropped},
    )

    listener, _listener = _listener, None
    listener.stop()
    for handler in listener.handlers:
        handler.flush()
        handler.close()

    root = logging.getLogger()
    for handler in list(root.handlers):
        if isinstance(handler, DroppingQueueHandler):
            root.removeHandler(handler)


def get_logging_metrics() -> Dict[str, int]:
    return {
        "records_enqueued": _metrics.records_enqueued,
        "records_dropped": _metrics.records_dropped,
    }


# ============================================================================
# Public API
# ============================================================================


def get_logger(name: str) -> Logger:
    return logging.getLogger(name)


class LogContext:
    """
    Bind operation context to every record emitted inside the block.

    Nested contexts inherit outer fields they do not override. Works as a
    sync or async context manager.

    Example
    -------
    >>> async with LogContext(user_id="u-42", operation="attempt_breakthrough"):
    ...     logger.info("Ritual started")
    """

    def __init__(
        self,
        user_id: Optional[str] = None,
        operation: Optional[str] = None,
        correlation_id: Optional[str] = None,
        component: Optional[str] = None,
    ) -> None:
        self._fields: Dict[str, Any] = {
            "user_id": user_id,
            "operation": operation,
            "correlation_id": correlation_id,
            "component": component,
        }
        self._token: Optional[Token[Dict[str, Any]]] = None

    def __enter__(self) -> "LogContext":
        context = dict(_operation_context.get())
        context.update({k: str(v) for k, v in self._fields.items() if v is not None})
        context.setdefault("correlation_id", uuid.uuid4().hex[:8])
        self._token = _operation_context.set(context)
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        if self._token is not None:
            _operation_context.reset(self._token)
            self._token = None

    async def __aenter__(self) -> "LogContext":
        return self.__enter__()

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        self.__exit__(exc_type, exc_val, exc_tb)


def current_log_context() -> Dict[str, Any]:
    return dict(_operation_context.get())
