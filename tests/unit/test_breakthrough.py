"""
Unit tests for BreakthroughResolver.

Eligibility, odds, success and failure outcomes, the peak, and persistence
after resolution.
"""

import pytest

from src.core.config.manager import ConfigManager
from src.modules.cultivation.boundary import PlayerBoundary
from src.modules.cultivation.breakthrough import FAILURE, SUCCESS, BreakthroughResolver
from src.modules.cultivation.persistence import PersistenceSynchronizer
from src.modules.cultivation.repository import FULL_FIELDS
from src.modules.cultivation.session import BreakthroughPhase
from src.modules.shared.exceptions import (
    InsufficientResourcesError,
    InvalidTransitionError,
    PersistenceFailureError,
)
from tests.conftest import ScriptedRandom, make_session, make_state


def build_resolver(catalog, *rolls: float) -> BreakthroughResolver:
    return BreakthroughResolver(
        catalog, ConfigManager, rng=ScriptedRandom(values=rolls), ritual_seconds=0
    )


@pytest.fixture
def synchronizer(mock_store):
    return PersistenceSynchronizer(mock_store, PlayerBoundary())


@pytest.mark.unit
class TestPlan:
    def test_minor_plan(self, catalog):
        resolver = build_resolver(catalog)

        plan = resolver.plan(make_state(tier_id=2, current_level=8, spirit_power=1600))

        assert plan.is_major is False
        assert plan.required_power == 5000
        assert plan.total_success_rate == 100
        assert plan.can_attempt is False
        assert plan.target_label == "Qi Condensation - Level 9"

    def test_major_plan(self, catalog):
        resolver = build_resolver(catalog)

        plan = resolver.plan(
            make_state(tier_id=3, current_level=9, spirit_power=60000, breakthrough_bonus=20)
        )

        assert plan.is_major is True
        assert plan.required_power == 50000
        assert plan.total_success_rate == 50
        assert plan.can_attempt is True
        assert plan.target_label == "Core Formation - Level 1"

    def test_peak_plan(self, catalog):
        resolver = build_resolver(catalog)

        plan = resolver.plan(make_state(tier_id=4, current_level=9, spirit_power=10**9))

        assert plan.is_max_tier is True
        assert plan.can_attempt is False
        assert plan.to_dict()["target"] == "Peak reached"

    def test_last_tier_below_top_level_is_still_minor(self, catalog):
        resolver = build_resolver(catalog)

        plan = resolver.plan(make_state(tier_id=4, current_level=8))

        assert plan.is_max_tier is False
        assert plan.is_major is False


@pytest.mark.unit
@pytest.mark.asyncio
class TestAttempt:
    async def test_insufficient_power_rejected(self, catalog, synchronizer, mock_store):
        # Arrange
        resolver = build_resolver(catalog, 0.0)
        session = make_session(make_state(tier_id=2, current_level=8, spirit_power=1600))

        # Act & Assert
        with pytest.raises(InsufficientResourcesError) as exc_info:
            await resolver.attempt(session, synchronizer)

        assert exc_info.value.required == 5000
        assert session.state.current_level == 8
        assert session.state.spirit_power == 1600
        assert session.phase is BreakthroughPhase.IDLE
        mock_store.save_snapshot.assert_not_awaited()

    async def test_major_success(self, catalog, synchronizer, mock_store):
        # Arrange
        resolver = build_resolver(catalog, 0.40)
        session = make_session(
            make_state(tier_id=3, current_level=9, spirit_power=60000, breakthrough_bonus=20)
        )

        # Act
        result = await resolver.attempt(session, synchronizer)

        # Assert
        assert result.outcome == SUCCESS
        assert result.is_major is True
        assert result.success_rate == 50
        state = session.state
        assert (state.tier_id, state.current_level, state.spirit_power, state.breakthrough_bonus) == (
            4,
            1,
            0,
            0,
        )
        snapshot, fields = mock_store.save_snapshot.await_args.args
        assert fields == FULL_FIELDS
        assert snapshot.tier_id == 4
        assert session.phase is BreakthroughPhase.IDLE

    async def test_major_failure(self, catalog, synchronizer):
        # Arrange
        resolver = build_resolver(catalog, 0.70)
        session = make_session(
            make_state(tier_id=3, current_level=9, spirit_power=60000, breakthrough_bonus=20)
        )

        # Act
        result = await resolver.attempt(session, synchronizer)

        # Assert
        assert result.outcome == FAILURE
        assert result.succeeded is False
        state = session.state
        assert (state.tier_id, state.current_level, state.spirit_power, state.breakthrough_bonus) == (
            3,
            8,
            30000,
            25,
        )

    async def test_minor_always_succeeds(self, catalog, synchronizer):
        # Arrange
        resolver = build_resolver(catalog, 0.999)
        session = make_session(make_state(tier_id=2, current_level=3, spirit_power=5000))

        # Act
        result = await resolver.attempt(session, synchronizer)

        # Assert
        assert result.outcome == SUCCESS
        assert session.state.current_level == 4
        assert session.state.spirit_power == 2500

    async def test_peak_is_terminal(self, catalog, synchronizer):
        resolver = build_resolver(catalog)
        session = make_session(make_state(tier_id=4, current_level=9, spirit_power=10**9))

        with pytest.raises(InvalidTransitionError):
            await resolver.attempt(session, synchronizer)

        assert session.phase is BreakthroughPhase.MAX_TIER

    async def test_reaching_peak_sets_terminal_phase(self, catalog, synchronizer):
        resolver = build_resolver(catalog)
        session = make_session(make_state(tier_id=4, current_level=8, spirit_power=10**6))

        await resolver.attempt(session, synchronizer)

        assert session.state.current_level == 9
        assert session.phase is BreakthroughPhase.MAX_TIER

    async def test_resolution_event_recorded(self, catalog, synchronizer):
        resolver = build_resolver(catalog, 0.40)
        session = make_session(
            make_state(tier_id=3, current_level=9, spirit_power=60000, breakthrough_bonus=20)
        )

        await resolver.attempt(session, synchronizer)

        (event,) = session.state.get_pending_events()
        assert event.event_name == "cultivation.breakthrough_resolved"
        assert event.payload["outcome"] == SUCCESS
        assert event.payload["roll"] == pytest.approx(40.0)

    async def test_write_failure_keeps_outcome_in_memory(self, catalog, synchronizer, mock_store):
        # Arrange
        mock_store.save_snapshot.side_effect = PersistenceFailureError("save_snapshot", "u-1")
        resolver = build_resolver(catalog, 0.40)
        session = make_session(
            make_state(tier_id=3, current_level=9, spirit_power=60000, breakthrough_bonus=20)
        )

        # Act
        result = await resolver.attempt(session, synchronizer)

        # Assert
        assert result.persisted is False
        assert session.state.tier_id == 4
        assert session.dirty is True
