"""
Database Service - Core Infrastructure Layer

Purpose
-------
Owns the single async engine the cultivation engine talks to and hands out
sessions. Every progression write goes through `get_transaction()`, so a
debit and the method row it pays for land in the same commit.

Responsibilities
----------------
- Build the AsyncEngine once, picking a pool that fits the URL
- Read sessions (`get_session`) and atomic write sessions (`get_transaction`)
- Roll back and re-raise on any failure inside a transaction
- Create the schema for local SQLite and test databases
- Cap statement time on PostgreSQL connections

Non-Responsibilities
--------------------
- Retries (the flush cadence retries on its own schedule)
- Migrations for production deployments
- Anything that knows what a tier or a method is

Pool Selection
--------------
- ``sqlite...:memory:`` -> StaticPool, one shared connection so every
  session sees the same database
- other SQLite URLs, and any URL under ENVIRONMENT=testing -> NullPool
- PostgreSQL -> AsyncAdaptedQueuePool sized from Config

Usage Example
-------------
>>> async with DatabaseService.get_transaction() as session:
>>>     session.add(UserMethod(user_id=uid, method_id=mid))
>>>     # commit on exit, rollback if the block raises
"""

from __future__ import annotations

import asyncio
import time
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import Any, AsyncGenerator, Dict, Optional, Type

from sqlalchemy import text
from sqlalchemy.exc import DBAPIError, OperationalError
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import AsyncAdaptedQueuePool, NullPool, Pool, StaticPool

from src.core.config.config import Config
from src.core.database.base import Base
from src.core.logging.logger import get_logger

logger = get_logger(__name__)


class DatabaseInitializationError(RuntimeError):
    """Engine could not be built from the configured URL."""


class DatabaseNotInitializedError(RuntimeError):
    """A session was requested before `initialize()` ran."""


# ============================================================================
# Engine Settings
# ============================================================================


@dataclass(frozen=True)
class EngineSettings:
    """Engine options resolved once from Config at initialization."""

    url: str
    echo: bool
    pool_class: Type[Pool]
    pool_size: int
    max_overflow: int
    pool_recycle: int
    statement_timeout_ms: int

    @classmethod
    def resolve(cls, url: Optional[str] = None) -> "EngineSettings":
        database_url = url or Config.DATABASE_URL
        if not database_url or not isinstance(database_url, str):
            raise DatabaseInitializationError(
                "DATABASE_URL must be configured as a non-empty string"
            )

        if database_url.startswith("sqlite"):
            pool_class: Type[Pool] = StaticPool if ":memory:" in database_url else NullPool
        elif Config.is_testing():
            pool_class = NullPool
        else:
            pool_class = AsyncAdaptedQueuePool

        return cls(
            url=database_url,
            echo=Config.DATABASE_ECHO,
            pool_class=pool_class,
            pool_size=Config.DATABASE_POOL_SIZE,
            max_overflow=Config.DATABASE_MAX_OVERFLOW,
            pool_recycle=Config.DATABASE_POOL_RECYCLE,
            statement_timeout_ms=Config.DATABASE_STATEMENT_TIMEOUT_MS,
        )

    @property
    def backend(self) -> str:
        return self.url.split(":", 1)[0]

    @property
    def is_sqlite(self) -> bool:
        return self.url.startswith("sqlite")

    @property
    def is_postgres(self) -> bool:
        return self.url.startswith("postgresql")

    def engine_options(self) -> Dict[str, Any]:
        options: Dict[str, Any] = {"echo": self.echo, "poolclass": self.pool_class}
        if self.pool_class is AsyncAdaptedQueuePool:
            options.update(
                pool_size=self.pool_size,
                max_overflow=self.max_overflow,
                pool_recycle=self.pool_recycle,
                pool_pre_ping=True,
            )
        if self.is_sqlite:
            options["connect_args"] = {"check_same_thread": False}
        return options


# ============================================================================
# DatabaseService
# ============================================================================


class DatabaseService:
    """
    Class-level engine and session management.

    Lifecycle: `initialize()`, `create_all()`, `shutdown()`.
    Sessions: `get_session()` for reads, `get_transaction()` for writes.
    Probe: `health_check()`.
    """

    _engine: Optional[AsyncEngine] = None
    _session_factory: Optional[async_sessionmaker[AsyncSession]] = None
    _settings: Optional[EngineSettings] = None
    _init_lock: asyncio.Lock = asyncio.Lock()

    # ========================================================================
    # Lifecycle
    # ========================================================================

    @classmethod
    async def initialize(cls, url: Optional[str] = None) -> None:
        """
        Build the engine. Idempotent.

        `url` overrides Config.DATABASE_URL; tests pass an in-memory SQLite URL.

        Raises:
            DatabaseInitializationError: The URL is missing or the engine
                could not be created
        """
        async with cls._init_lock:
            if cls._engine is not None:
                logger.debug("DatabaseService already initialized; skipping")
                return

            settings = EngineSettings.resolve(url)
            try:
                engine = create_async_engine(settings.url, **settings.engine_options())
            except Exception as exc:
                logger.error(
                    "Engine creation failed",
                    extra={"backend": settings.backend, "error_type": type(exc).__name__},
                    exc_info=True,
                )
                raise DatabaseInitializationError(
                    f"Database initialization failed: {exc}"
                ) from exc

            cls._engine = engine
            cls._settings = settings
            cls._session_factory = async_sessionmaker(
                bind=engine, class_=AsyncSession, expire_on_commit=False
            )
            logger.info(
                "DatabaseService initialized",
                extra={"backend": settings.backend, "pool_class": settings.pool_class.__name__},
            )

    @classmethod
    async def create_all(cls) -> None:
        """Create the realm, method and progression tables if missing."""
        engine = cls._require_engine()

        import src.database.models  # noqa: F401  registers models on Base.metadata

        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

        logger.info(
            "Database schema ensured",
            extra={"tables": sorted(Base.metadata.tables.keys())},
        )

    @classmethod
    async def shutdown(cls) -> None:
        """Dispose the engine. Safe to call when not initialized."""
        async with cls._init_lock:
            engine = cls._engine
            if engine is None:
                return
            cls._engine = None
            cls._session_factory = None
            cls._settings = None
            await engine.dispose()
            logger.info("DatabaseService shut down")

    @classmethod
    def is_initialized(cls) -> bool:
        return cls._engine is not None

    @classmethod
    async def health_check(cls) -> bool:
        """`SELECT 1`; False when uninitialized or unreachable."""
        if cls._engine is None:
            return False

        start = time.perf_counter()
        try:
            async with cls._engine.connect() as conn:
                await conn.execute(text("SELECT 1"))
        except (OperationalError, DBAPIError) as exc:
            logger.warning(
                "Database health check failed",
                extra={"error": str(exc), "error_type": type(exc).__name__},
            )
            return False

        logger.debug(
            "Database health check passed",
            extra={"duration_ms": (time.perf_counter() - start) * 1000.0},
        )
        return True

    # ========================================================================
    # Sessions
    # ========================================================================

    @classmethod
    def _require_engine(cls) -> AsyncEngine:
        if cls._engine is None or cls._session_factory is None:
            raise DatabaseNotInitializedError(
                "DatabaseService must be initialized before use. "
                "Call DatabaseService.initialize() during startup."
            )
        return cls._engine

    @classmethod
    @asynccontextmanager
    async def _scope(cls, commit: bool) -> AsyncGenerator[AsyncSession, None]:
        cls._require_engine()
        assert cls._session_factory is not None and cls._settings is not None

        start = time.perf_counter()
        async with cls._session_factory() as session:
            if cls._settings.is_postgres:
                await session.execute(
                    text(f"SET LOCAL statement_timeout = {cls._settings.statement_timeout_ms}")
                )
            try:
                yield session
                if commit:
                    await session.commit()
            except BaseException as exc:
                if commit:
                    await session.rollback()
                    logger.warning(
                        "Database transaction rolled back",
                        extra={
                            "error_type": type(exc).__name__,
                            "duration_ms": (time.perf_counter() - start) * 1000.0,
                        },
                    )
                raise

    @classmethod
    def get_session(cls):
        """Session without commit; use for reads."""
        return cls._scope(commit=False)

    @classmethod
    def get_transaction(cls):
        """
        Session wrapped in one atomic transaction.

        Commits when the block exits cleanly. Any exception rolls back and
        propagates unchanged.
        """
        return cls._scope(commit=True)
