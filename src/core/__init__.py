"""
Core infrastructure layer.

Purpose
-------
Single import surface for the infrastructure subsystems the cultivation
engine runs on:

- Configuration (Config, ConfigManager)
- Database (DatabaseService)
- Event bus (EventBus)
- Logging (get_logger, LogContext)
- Input validation (InputValidator)
- Infrastructure exceptions

Non-Responsibilities
--------------------
- Business logic (see src.modules)
- Any side effects beyond re-exports
"""

from __future__ import annotations

from src.core.config import Config, ConfigManager
from src.core.database import DatabaseService
from src.core.event import EventBus
from src.core.exceptions import (
    ConfigurationError,
    CultivationInfrastructureException,
    DatabaseError,
)
from src.core.logging import LogContext, get_logger
from src.core.validation import InputValidator

__all__ = [
    "Config",
    "ConfigManager",
    "DatabaseService",
    "EventBus",
    "CultivationInfrastructureException",
    "ConfigurationError",
    "DatabaseError",
    "LogContext",
    "get_logger",
    "InputValidator",
]
