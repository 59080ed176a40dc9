"""
Static configuration for the cultivation engine.

Purpose
-------
Values fixed at process startup: storage connection, environment, logging
and the engine's timing cadence. Read from environment variables (a `.env`
file is honored) into class attributes, so callers write
``Config.TICK_INTERVAL_SECONDS``.

Responsibilities
----------------
- Parse every setting in `_SETTINGS` with type and bounds checks
- Fall back to the default, with a warning, on malformed or out-of-range input
- Remember which values came from the environment (`Config.sources`)
- Create the logs and data directories

Non-Responsibilities
--------------------
- Balance tunables such as rates and costs (ConfigManager)
- Secrets management

Environment Variables
---------------------
- DATABASE_URL: SQLAlchemy async URL (default: local SQLite file)
- DATABASE_POOL_SIZE / DATABASE_MAX_OVERFLOW / DATABASE_POOL_RECYCLE
- DATABASE_ECHO / DATABASE_STATEMENT_TIMEOUT_MS
- ENVIRONMENT, DEBUG, LOG_LEVEL, LOG_JSON, LOG_FILE_ENABLED
- TICK_INTERVAL_SECONDS (default: 1.0)
- FLUSH_INTERVAL_SECONDS (default: 5.0)
- BREAKTHROUGH_RITUAL_SECONDS (default: 2.0)
- BOUNDARY_ADMISSION_TIMEOUT_SECONDS (default: 10.0)
- MEDITATION_LOG_SIZE (default: 5)

Dependencies
------------
- python-dotenv: `.env` loading
"""

import logging
import os
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Tuple

from dotenv import load_dotenv

load_dotenv()

logger = logging.getLogger(__name__)


class Environment(Enum):
    """Deployment environment types."""

    DEVELOPMENT = "development"
    TESTING = "testing"
    STAGING = "staging"
    PRODUCTION = "production"

    @classmethod
    def from_string(cls, value: str) -> "Environment":
        """
        Example
        -------
        >>> Environment.from_string("Production") is Environment.PRODUCTION
        True
        """
        try:
            return cls(value.strip().lower())
        except ValueError:
            logger.warning(f"Unknown environment '{value}', defaulting to development")
            return cls.DEVELOPMENT


# ============================================================================
# Parsers
# ============================================================================

_TRUE = {"true", "yes", "1", "on"}
_FALSE = {"false", "no", "0", "off"}


def _parse_bool(raw: str) -> bool:
    normalized = raw.strip().lower()
    if normalized in _TRUE:
        return True
    if normalized in _FALSE:
        return False
    raise ValueError("not a valid boolean")


@dataclass(frozen=True)
class _Setting:
    """One environment-backed attribute on `Config`."""

    name: str
    parse: Callable[[str], Any]
    default: Any
    minimum: Optional[float] = None
    maximum: Optional[float] = None

    def read(self) -> Tuple[Any, bool, Optional[str]]:
        """Return (value, from_env, rejection)."""
        raw = os.getenv(self.name)
        if raw is None:
            return self.default, False, None

        try:
            value = self.parse(raw)
        except ValueError:
            return self.default, False, f"{self.name}='{raw}' is invalid, using default {self.default}"

        if self.minimum is not None and value < self.minimum:
            return self.default, False, (
                f"{self.name}={value} is below minimum {self.minimum}, using default {self.default}"
            )
        if self.maximum is not None and value > self.maximum:
            return self.default, False, (
                f"{self.name}={value} exceeds maximum {self.maximum}, using default {self.default}"
            )
        return value, True, None


_SETTINGS: List[_Setting] = [
    # Database
    _Setting("DATABASE_URL", str, "sqlite+aiosqlite:///./data/cultivation.db"),
    _Setting("DATABASE_POOL_SIZE", int, 20, 1, 200),
    _Setting("DATABASE_MAX_OVERFLOW", int, 10, 0, 200),
    _Setting("DATABASE_ECHO", _parse_bool, False),
    _Setting("DATABASE_POOL_RECYCLE", int, 3600, 60),
    _Setting("DATABASE_STATEMENT_TIMEOUT_MS", int, 30000, 1000),
    # Environment and logging
    _Setting("ENVIRONMENT", str, "development"),
    _Setting("DEBUG", _parse_bool, False),
    _Setting("LOG_LEVEL", str, "INFO"),
    _Setting("LOG_JSON", _parse_bool, True),
    _Setting("LOG_FILE_ENABLED", _parse_bool, True),
    # Engine timing
    _Setting("TICK_INTERVAL_SECONDS", float, 1.0, 0.01, 60.0),
    _Setting("FLUSH_INTERVAL_SECONDS", float, 5.0, 0.05, 600.0),
    _Setting("BREAKTHROUGH_RITUAL_SECONDS", float, 2.0, 0.0, 60.0),
    _Setting("BOUNDARY_ADMISSION_TIMEOUT_SECONDS", float, 10.0, 0.1, 300.0),
    # Session
    _Setting("MEDITATION_LOG_SIZE", int, 5, 1, 100),
]

_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


# ============================================================================
# Config
# ============================================================================


class Config:
    """
    Centralized static configuration (class attributes, never instantiated).

    Usage
    -----
    >>> Config.FLUSH_INTERVAL_SECONDS
    5.0
    >>> Config.is_testing()
    False
    """

    DATABASE_URL: str = "sqlite+aiosqlite:///./data/cultivation.db"
    DATABASE_POOL_SIZE: int = 20
    DATABASE_MAX_OVERFLOW: int = 10
    DATABASE_ECHO: bool = False
    DATABASE_POOL_RECYCLE: int = 3600
    DATABASE_STATEMENT_TIMEOUT_MS: int = 30000

    ENVIRONMENT: str = "development"
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"
    LOG_JSON: bool = True
    LOG_FILE_ENABLED: bool = True

    TICK_INTERVAL_SECONDS: float = 1.0
    FLUSH_INTERVAL_SECONDS: float = 5.0
    BREAKTHROUGH_RITUAL_SECONDS: float = 2.0
    BOUNDARY_ADMISSION_TIMEOUT_SECONDS: float = 10.0

    MEDITATION_LOG_SIZE: int = 5

    PROJECT_ROOT = Path(__file__).resolve().parents[3]
    LOGS_DIR = PROJECT_ROOT / "logs"
    DATA_DIR = PROJECT_ROOT / "data"
    CONFIG_DIR = PROJECT_ROOT / "config"

    # name -> True when read from the environment
    sources: Dict[str, bool] = {}
    rejected: Dict[str, str] = {}
    loaded_at: Optional[str] = None
    _validated: bool = False

    @classmethod
    def load(cls) -> None:
        """Re-read every setting from the environment."""
        cls.sources = {}
        cls.rejected = {}
        for setting in _SETTINGS:
            value, from_env, rejection = setting.read()
            if rejection is not None:
                logger.warning(rejection)
                cls.rejected[setting.name] = rejection
            cls.sources[setting.name] = from_env
            setattr(cls, setting.name, value)

        if cls.LOG_LEVEL.upper() not in _LOG_LEVELS:
            logger.warning(f"Invalid LOG_LEVEL '{cls.LOG_LEVEL}', using INFO")
            cls.LOG_LEVEL = "INFO"

        cls.loaded_at = datetime.now(timezone.utc).isoformat()

    @classmethod
    def validate(cls) -> None:
        """
        Load and sanity-check configuration once per process.

        Raises
        ------
        ValueError:
            DATABASE_URL is empty in production.
        """
        if cls._validated:
            return

        cls.load()

        try:
            if not cls.DATABASE_URL:
                raise ValueError("DATABASE_URL environment variable is required")

            if cls.is_production() and cls.DATABASE_URL.startswith("sqlite"):
                logger.warning("Production environment using SQLite - this may be incorrect")
            if cls.is_production() and cls.DEBUG:
                logger.warning("DEBUG mode enabled in production!")
            if cls.FLUSH_INTERVAL_SECONDS < cls.TICK_INTERVAL_SECONDS:
                logger.warning(
                    "FLUSH_INTERVAL_SECONDS is shorter than TICK_INTERVAL_SECONDS; "
                    "every tick will be flushed"
                )

            cls.LOGS_DIR.mkdir(exist_ok=True)
            cls.DATA_DIR.mkdir(exist_ok=True)

        except (ValueError, OSError) as e:
            logger.warning(f"Config validation warning (safe for tests): {e}")
            if cls.is_production():
                logger.error("Configuration validation failed in production!")
                raise

        cls._validated = True

    # =========================================================================
    # Environment Checks
    # =========================================================================

    @classmethod
    def environment(cls) -> Environment:
        return Environment.from_string(cls.ENVIRONMENT)

    @classmethod
    def is_production(cls) -> bool:
        return cls.environment() is Environment.PRODUCTION

    @classmethod
    def is_development(cls) -> bool:
        return cls.environment() is Environment.DEVELOPMENT

    @classmethod
    def is_testing(cls) -> bool:
        return cls.environment() is Environment.TESTING

    @classmethod
    def get_config_summary(cls) -> Dict[str, Any]:
        """Non-sensitive summary for the startup log."""
        return {
            "environment": cls.environment().value,
            "debug": cls.DEBUG,
            "log_level": cls.LOG_LEVEL,
            "database_backend": cls.DATABASE_URL.split(":", 1)[0],
            "tick_interval_seconds": cls.TICK_INTERVAL_SECONDS,
            "flush_interval_seconds": cls.FLUSH_INTERVAL_SECONDS,
            "breakthrough_ritual_seconds": cls.BREAKTHROUGH_RITUAL_SECONDS,
            "admission_timeout_seconds": cls.BOUNDARY_ADMISSION_TIMEOUT_SECONDS,
            "from_environment": sorted(name for name, hit in cls.sources.items() if hit),
            "rejected": sorted(cls.rejected),
        }


# Auto-validate on import
Config.validate()
