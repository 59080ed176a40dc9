"""
Pytest Configuration and Fixtures for the Cultivation Engine Tests
===================================================================

Purpose
-------
Centralized test fixtures for the cultivation engine test suite. Provides
reusable fixtures for the database, catalog, engine components and mocks.

Responsibilities
----------------
- In-memory SQLite (aiosqlite) database for integration tests
- Catalog factory shared by unit and integration tests
- Scripted randomness so breakthrough and stone rolls are deterministic
- Mock store / event bus fixtures for unit tests

Non-Responsibilities
--------------------
- Test implementation (delegated to test files)
- Business logic (delegated to domain models and services)

Architecture Notes
------------------
- Unit tests use mocks (fast, isolated)
- Integration tests use a fresh in-memory database per test
- ConfigManager is reset before every test so overrides never leak
"""

from __future__ import annotations

import os
import random
from typing import AsyncGenerator, Iterable, List, Optional, Sequence

import pytest
import pytest_asyncio

os.environ.setdefault("ENVIRONMENT", "testing")
os.environ.setdefault("LOG_JSON", "false")

from src.core.config.manager import ConfigManager  # noqa: E402
from src.core.database.service import DatabaseService  # noqa: E402
from src.core.event.bus import EventBus  # noqa: E402
from src.core.logging.logger import get_logger  # noqa: E402
from src.database.models import CultivationMethod, MethodRarity, Realm  # noqa: E402
from src.domain.models.cultivation import (  # noqa: E402
    MethodDefinition,
    OwnedMethod,
    ProgressionState,
    Tier,
)
from src.modules.cultivation.catalog import Catalog  # noqa: E402
from src.modules.cultivation.session import CultivationSession  # noqa: E402

logger = get_logger(__name__)

IN_MEMORY_URL = "sqlite+aiosqlite:///:memory:"


# ============================================================================
# PYTEST CONFIGURATION
# ============================================================================


def pytest_configure(config):
    """Register markers used across the suite."""
    config.addinivalue_line("markers", "unit: fast isolated tests")
    config.addinivalue_line("markers", "integration: tests against an in-memory database")
    config.addinivalue_line("markers", "domain: pure domain model tests")
    config.addinivalue_line("markers", "database: tests that touch the database engine directly")


@pytest.fixture(autouse=True)
def reset_config_manager():
    """Fresh balance config for every test; overrides never leak."""
    ConfigManager.reset()
    ConfigManager.initialize()
    yield
    ConfigManager.reset()


# ============================================================================
# DETERMINISTIC RANDOMNESS
# ============================================================================


class ScriptedRandom(random.Random):
    """
    `random.Random` that replays scripted values.

    `random()` returns the next scripted float, then ``default``.
    `randint()` returns the next scripted int, then the lower bound.
    The default of 0.99 means "no stone find" for ticks.
    """

    def __init__(
        self,
        values: Iterable[float] = (),
        ints: Iterable[int] = (),
        default: float = 0.99,
    ) -> None:
        super().__init__(0)
        self._values: List[float] = list(values)
        self._ints: List[int] = list(ints)
        self._default = default

    def push(self, *values: float) -> None:
        self._values.extend(values)

    def random(self) -> float:  # type: ignore[override]
        if self._values:
            return self._values.pop(0)
        return self._default

    def randint(self, a: int, b: int) -> int:  # type: ignore[override]
        if self._ints:
            return self._ints.pop(0)
        return a


@pytest.fixture
def scripted_random() -> ScriptedRandom:
    return ScriptedRandom()


# ============================================================================
# CATALOG FACTORIES
# ============================================================================

TIER_ROWS: Sequence[dict] = (
    {"id": 1, "name": "Mortal", "order_index": 1, "spirit_power_required": 0, "is_major_tier": False},
    {"id": 2, "name": "Qi Condensation", "order_index": 2, "spirit_power_required": 1000, "is_major_tier": True},
    {"id": 3, "name": "Foundation Establishment", "order_index": 3, "spirit_power_required": 10000, "is_major_tier": True},
    {"id": 4, "name": "Core Formation", "order_index": 4, "spirit_power_required": 50000, "is_major_tier": True},
)

METHOD_ROWS: Sequence[dict] = (
    {
        "id": 1,
        "name": "Basic Breathing",
        "description": "Steady breath, steady qi.",
        "base_speed_multiplier": 1.5,
        "upgrade_cost_base": 100,
        "upgrade_cost_multiplier": 1.5,
        "max_level": 3,
        "rarity": MethodRarity.COMMON,
    },
    {
        "id": 2,
        "name": "Azure Cloud Sutra",
        "description": "Draws qi from drifting clouds.",
        "base_speed_multiplier": 2.0,
        "upgrade_cost_base": 100,
        "upgrade_cost_multiplier": 2.0,
        "max_level": 5,
        "rarity": MethodRarity.RARE,
    },
    {
        "id": 3,
        "name": "Nine Suns Canon",
        "description": "Burns like nine suns.",
        "base_speed_multiplier": 5.0,
        "upgrade_cost_base": 200,
        "upgrade_cost_multiplier": 3.0,
        "max_level": 3,
        "rarity": MethodRarity.LEGENDARY,
    },
)


def make_tiers() -> List[Tier]:
    return [Tier(**row) for row in TIER_ROWS]


def make_methods() -> List[MethodDefinition]:
    return [MethodDefinition(**row) for row in METHOD_ROWS]


@pytest.fixture
def catalog() -> Catalog:
    """Four tiers (0 / 1000 / 10000 / 50000) and three methods."""
    return Catalog(make_tiers(), make_methods())


# ============================================================================
# DOMAIN FACTORIES
# ============================================================================


def make_state(
    user_id: str = "u-1",
    tier_id: int = 1,
    current_level: int = 1,
    spirit_power: int = 0,
    spirit_stones: int = 0,
    breakthrough_bonus: int = 0,
    is_meditating: bool = False,
) -> ProgressionState:
    return ProgressionState(
        user_id=user_id,
        tier_id=tier_id,
        current_level=current_level,
        spirit_power=spirit_power,
        spirit_stones=spirit_stones,
        breakthrough_bonus=breakthrough_bonus,
        is_meditating=is_meditating,
    )


def make_session(
    state: Optional[ProgressionState] = None,
    owned: Iterable[OwnedMethod] = (),
) -> CultivationSession:
    return CultivationSession.open(state or make_state(), list(owned))


# ============================================================================
# MOCK FIXTURES (Unit Tests)
# ============================================================================


@pytest.fixture
def mock_store(mocker):
    """
    Mock CultivationStore for unit tests.

    Every coroutine is an AsyncMock returning None unless a test says so.
    """
    store = mocker.MagicMock()
    store.save_snapshot = mocker.AsyncMock(return_value=None)
    store.load_progression = mocker.AsyncMock()
    store.list_owned_methods = mocker.AsyncMock(return_value=[])
    store.get_owned_method = mocker.AsyncMock(return_value=None)
    store.purchase_method = mocker.AsyncMock()
    store.upgrade_method = mocker.AsyncMock()
    store.activate_method = mocker.AsyncMock(return_value=[])
    return store


@pytest.fixture
def mock_event_bus(mocker):
    """Mock EventBus; `publish` is awaited by services."""
    mock_bus = mocker.MagicMock()
    mock_bus.publish = mocker.AsyncMock(return_value=[])
    mock_bus.subscribe = mocker.MagicMock()
    return mock_bus


@pytest.fixture
def event_bus() -> EventBus:
    return EventBus()


@pytest.fixture
def test_logger():
    return get_logger("tests.cultivation")


# ============================================================================
# DATABASE FIXTURES (Integration Tests)
# ============================================================================


async def seed_catalog(database: type[DatabaseService] = DatabaseService) -> None:
    async with database.get_transaction() as session:
        session.add_all([Realm(**row) for row in TIER_ROWS])
        session.add_all([CultivationMethod(**row) for row in METHOD_ROWS])


@pytest_asyncio.fixture
async def database() -> AsyncGenerator[type[DatabaseService], None]:
    """
    Fresh in-memory database with the schema and seeded catalog.

    Scope: function (StaticPool keeps one connection alive per test)
    """
    await DatabaseService.initialize(IN_MEMORY_URL)
    await DatabaseService.create_all()
    await seed_catalog()

    yield DatabaseService

    await DatabaseService.shutdown()


# ============================================================================
# UTILITY FUNCTIONS
# ============================================================================


def assert_domain_event_emitted(domain_model, event_name: str) -> bool:
    """
    Assert that a domain model emitted a specific event.

    Usage:
        state.accrue(10, stones=2)
        assert assert_domain_event_emitted(state, "cultivation.stones_found")
    """
    events = domain_model.get_pending_events()
    return any(event.event_name == event_name for event in events)


def get_domain_event_payload(domain_model, event_name: str) -> dict | None:
    """Get the payload of the first pending event with ``event_name``."""
    for event in domain_model.get_pending_events():
        if event.event_name == event_name:
            return event.payload
    return None
