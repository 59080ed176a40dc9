"""
Cultivation Engine - Application Entry Point
==============================================

Bootstrap
---------
- Config validation
- Logging setup
- Database initialization (schema ensured)
- ConfigManager initialization
- Catalog load
- CultivationService construction
- Graceful shutdown (emergency flush of every live session)

The engine is embedded by a host that calls the service's operations; run
as a script it stays up until SIGTERM/SIGINT.
"""

import asyncio
import signal
import sys
from typing import Optional

from src.core.config.config import Config
from src.core.config.manager import ConfigManager
from src.core.database.service import DatabaseService
from src.core.event import event_bus
from src.core.logging.logger import get_logger, setup_logging, shutdown_logging
from src.modules.cultivation.catalog import CatalogService
from src.modules.cultivation.repository import CultivationStore
from src.modules.cultivation.service import CultivationService

logger = get_logger(__name__)


# ============================================================================
# Application Bootstrap
# ============================================================================

async def _startup() -> CultivationService:
    """Initialize all infrastructure components and build the engine."""
    logger.info("========== CULTIVATION ENGINE INITIALIZATION START ==========")

    # Step 1: Validate configuration early
    try:
        Config.validate()
        logger.info("✓ Configuration validated", extra=Config.get_config_summary())
    except ValueError as exc:
        logger.critical(f"Configuration validation failed: {exc}")
        raise

    # Step 2: Initialize database service
    try:
        await DatabaseService.initialize()
        await DatabaseService.create_all()
        if not await DatabaseService.health_check():
            raise RuntimeError("Database is not reachable")
        logger.info("✓ Database service initialized")
    except Exception as exc:
        logger.critical(f"Database initialization failed: {exc}", exc_info=True)
        raise

    # Step 3: Initialize config manager
    ConfigManager.initialize()
    logger.info("✓ Config manager initialized")

    # Step 4: Load the tier and method catalog
    try:
        catalog = await CatalogService(get_logger("src.modules.cultivation.catalog")).load()
        logger.info(f"✓ Catalog loaded ({len(catalog.tiers)} tiers, {len(catalog.methods)} methods)")
    except Exception as exc:
        logger.critical(f"Catalog load failed: {exc}", exc_info=True)
        raise

    # Step 5: Build the engine
    service_logger = get_logger("src.modules.cultivation.service")
    service = CultivationService(
        ConfigManager,
        event_bus,
        service_logger,
        catalog=catalog,
        store=CultivationStore(service_logger),
    )
    logger.info("✓ Cultivation service constructed")

    logger.info("========== INFRASTRUCTURE INITIALIZED SUCCESSFULLY ==========")
    return service


# ============================================================================
# Application Shutdown
# ============================================================================

async def _shutdown(service: Optional[CultivationService]) -> None:
    """Flush live sessions, then release infrastructure."""
    logger.info("========== CULTIVATION ENGINE SHUTDOWN START ==========")

    # Step 1: Emergency-flush every live session
    if service is not None:
        try:
            await service.shutdown()
            logger.info("✓ Live sessions flushed")
        except Exception as exc:
            logger.error(f"Session flush error: {exc}", exc_info=True)

    # Step 2: Stop event bus background listeners
    try:
        await event_bus.shutdown()
        logger.info("✓ Event bus drained")
    except Exception as exc:
        logger.error(f"Event bus shutdown error: {exc}", exc_info=True)

    # Step 3: Shutdown database
    try:
        await DatabaseService.shutdown()
        logger.info("✓ Database service shut down")
    except Exception as exc:
        logger.error(f"Database service shutdown error: {exc}", exc_info=True)

    logger.info("========== SHUTDOWN COMPLETE ==========")


# ============================================================================
# Application Entrypoint
# ============================================================================

async def main(stop: Optional[asyncio.Event] = None) -> None:
    """
    Lifecycle:
        1. Validate configuration
        2. Initialize infrastructure (DB, ConfigManager, catalog)
        3. Serve until `stop` is set
        4. Handle shutdown gracefully
    """
    stop = stop or asyncio.Event()
    service: Optional[CultivationService] = None

    try:
        service = await _startup()
        _install_signal_handlers(asyncio.get_running_loop(), stop)
        logger.info("Cultivation engine running")
        await stop.wait()

    except asyncio.CancelledError:
        logger.warning("Asyncio task cancellation received; shutting down gracefully.")
        raise

    finally:
        await _shutdown(service)


# ============================================================================
# Process Startup
# ============================================================================

def _install_signal_handlers(loop: asyncio.AbstractEventLoop, stop: asyncio.Event) -> None:
    """Install signal handlers for graceful shutdown in production."""
    for sig in (signal.SIGTERM, signal.SIGINT):
        try:
            loop.add_signal_handler(sig, stop.set)
            logger.debug(f"{sig.name} handler installed")
        except NotImplementedError:
            logger.debug(f"{sig.name} not supported on this platform (likely Windows)")


if __name__ == "__main__":
    setup_logging()
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        logger.info("Engine manually stopped via keyboard interrupt.")
    except Exception as exc:
        logger.critical(f"Startup failure: {exc}", exc_info=True)
        sys.exit(1)
    finally:
        shutdown_logging()
