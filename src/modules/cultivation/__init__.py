"""
Cultivation progression engine.

Meditation accrual, breakthroughs between tiers and sub-levels, and
cultivation method purchase/upgrade/activation, with in-memory
authoritative state snapshotted to storage.
"""

from src.modules.cultivation.boundary import PlayerBoundary
from src.modules.cultivation.breakthrough import (
    FAILURE,
    SUCCESS,
    BreakthroughPlan,
    BreakthroughResolver,
    BreakthroughResult,
)
from src.modules.cultivation.catalog import Catalog, CatalogService
from src.modules.cultivation.methods import (
    MethodOperationResult,
    MethodProgression,
    MethodProgressionService,
)
from src.modules.cultivation.persistence import PendingWrite, PersistenceSynchronizer
from src.modules.cultivation.repository import FLUSH_FIELDS, FULL_FIELDS, CultivationStore
from src.modules.cultivation.service import CultivationService
from src.modules.cultivation.session import BreakthroughPhase, CultivationSession
from src.modules.cultivation.tick_engine import TickEngine, TickResult

__all__ = [
    "CultivationService",
    "CultivationSession",
    "BreakthroughPhase",
    "PlayerBoundary",
    "Catalog",
    "CatalogService",
    "CultivationStore",
    "FLUSH_FIELDS",
    "FULL_FIELDS",
    "TickEngine",
    "TickResult",
    "BreakthroughResolver",
    "BreakthroughPlan",
    "BreakthroughResult",
    "SUCCESS",
    "FAILURE",
    "MethodProgression",
    "MethodProgressionService",
    "MethodOperationResult",
    "PersistenceSynchronizer",
    "PendingWrite",
]
