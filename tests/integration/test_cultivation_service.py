"""
Integration Tests for CultivationService
=========================================

Drives the caller-facing operations end to end against an in-memory
SQLite store. The flush cadence is pushed far out so only the explicit
writes under test touch the database.
"""

import asyncio
import logging

import pytest

from src.core.config.manager import ConfigManager
from src.modules.cultivation.breakthrough import SUCCESS
from src.modules.cultivation.catalog import CatalogService
from src.modules.cultivation.repository import FULL_FIELDS, CultivationStore
from src.modules.cultivation.service import CultivationService
from src.modules.shared.exceptions import (
    InsufficientResourcesError,
    InvalidTransitionError,
    NotFoundError,
    ValidationError,
)
from tests.conftest import ScriptedRandom


@pytest.fixture
def store(database, test_logger):
    return CultivationStore(test_logger, database)


@pytest.fixture
def make_service(database, store, event_bus, test_logger):
    async def _make(rng=None, tick_interval=3600.0, ritual_seconds=0, log_size=None):
        catalog = await CatalogService(test_logger, database).load()
        return CultivationService(
            ConfigManager,
            event_bus,
            test_logger,
            catalog=catalog,
            store=store,
            rng=rng or ScriptedRandom(),
            tick_interval=tick_interval,
            flush_interval=3600.0,
            ritual_seconds=ritual_seconds,
            log_size=log_size,
        )

    return _make


async def seed_player(store, **fields):
    """Onboard ``u-1`` and overwrite the given progression fields."""
    state = await store.create_progression("u-1", 1)
    if fields:
        await store.save_snapshot(state.snapshot(**fields), FULL_FIELDS)
    return state


@pytest.mark.integration
class TestOnboarding:
    async def test_onboard_at_first_tier(self, make_service, store):
        service = await make_service()

        snapshot = await service.onboard("u-9")

        assert (snapshot.tier_id, snapshot.current_level, snapshot.spirit_power) == (1, 1, 0)
        assert (await store.load_progression("u-9")).tier_id == 1

    async def test_onboard_twice_rejected(self, make_service):
        service = await make_service()
        await service.onboard("u-9")

        with pytest.raises(InvalidTransitionError):
            await service.onboard("u-9")


@pytest.mark.integration
class TestMeditation:
    async def test_start_persists_flag(self, make_service, store):
        # Arrange
        await seed_player(store)
        service = await make_service()

        # Act
        snapshot = await service.start_meditation("u-1")

        # Assert
        assert snapshot.is_meditating is True
        assert (await store.load_progression("u-1")).is_meditating is True
        await service.shutdown()

    async def test_ticks_accrue_and_stop_flushes(self, make_service, store):
        # Arrange
        await seed_player(store)
        service = await make_service(tick_interval=0.01)

        # Act
        await service.start_meditation("u-1")
        await asyncio.sleep(0.1)
        snapshot = await service.stop_meditation("u-1")

        # Assert
        assert snapshot.spirit_power > 0
        assert snapshot.spirit_power % 10 == 0
        row = await store.load_progression("u-1")
        assert row.spirit_power == snapshot.spirit_power
        assert row.is_meditating is False
        status = await service.get_status("u-1")
        assert status["meditation_log"][:2] == ["Meditation ended.", "Meditation started."]
        assert status["unflushed_ticks"] == 0

    async def test_start_is_idempotent(self, make_service, store):
        await seed_player(store)
        service = await make_service()

        await service.start_meditation("u-1")
        await service.start_meditation("u-1")

        status = await service.get_status("u-1")
        assert status["meditation_log"] == ["Meditation started."]
        await service.shutdown()

    async def test_stored_meditation_resumes(self, make_service, store):
        await seed_player(store, is_meditating=True)
        service = await make_service()

        status = await service.get_status("u-1")

        assert status["is_meditating"] is True
        assert service._sessions["u-1"].is_looping
        await service.shutdown()


@pytest.mark.integration
class TestBreakthrough:
    async def test_major_success_persists_new_tier(self, make_service, store):
        # Arrange
        await seed_player(store, current_level=9, spirit_power=1200, breakthrough_bonus=10)
        service = await make_service(rng=ScriptedRandom(values=[0.39]))

        # Act
        result = await service.attempt_breakthrough("u-1")

        # Assert
        assert result.outcome == SUCCESS
        assert result.success_rate == 40
        row = await store.load_progression("u-1")
        assert (row.tier_id, row.current_level, row.spirit_power) == (2, 1, 0)

    async def test_preview_reports_odds(self, make_service, store):
        await seed_player(store, current_level=9, spirit_power=800, breakthrough_bonus=10)
        service = await make_service()

        preview = await service.preview_breakthrough("u-1")

        assert preview["target"] == "Qi Condensation - Level 1"
        assert preview["success_rate"] == 40
        assert preview["can_attempt"] is False
        assert preview["in_progress"] is False

    async def test_insufficient_power(self, make_service, store):
        await seed_player(store, current_level=9, spirit_power=800)
        service = await make_service()

        with pytest.raises(InsufficientResourcesError):
            await service.attempt_breakthrough("u-1")

    async def test_ticks_wait_behind_the_ritual(self, make_service, store):
        # Arrange
        await seed_player(store)
        service = await make_service(tick_interval=0.01, ritual_seconds=0.2)
        await service.start_meditation("u-1")
        await asyncio.sleep(0.05)
        session = service._sessions["u-1"]

        # Act
        ritual = asyncio.create_task(service.attempt_breakthrough("u-1"))
        await asyncio.sleep(0.03)
        power_early = session.state.spirit_power
        await asyncio.sleep(0.1)
        power_late = session.state.spirit_power
        busy_during_ritual = service._boundary.is_busy("u-1")
        await ritual
        power_after = session.state.spirit_power
        await asyncio.sleep(0.05)

        # Assert
        assert busy_during_ritual is True
        assert power_late == power_early
        assert session.state.spirit_power > power_after
        await service.shutdown()

    async def test_abandoned_ritual_error_is_logged(self, make_service, store, caplog):
        # Arrange
        await seed_player(store, current_level=9, spirit_power=800)
        service = await make_service()

        # Act
        with caplog.at_level(logging.INFO, logger="tests.cultivation"):
            async with service._boundary.hold("u-1", "test"):
                caller = asyncio.create_task(service.attempt_breakthrough("u-1"))
                await asyncio.sleep(0.01)
                caller.cancel()
                with pytest.raises(asyncio.CancelledError):
                    await caller
            await asyncio.sleep(0.05)

        # Assert
        records = [r for r in caplog.records if r.getMessage() == "Breakthrough attempt ended with error"]
        assert len(records) == 1
        assert records[0].error_type == "InsufficientResourcesError"


@pytest.mark.integration
class TestMethods:
    async def test_purchase_and_activate(self, make_service, store):
        # Arrange
        await seed_player(store, spirit_stones=3000)
        service = await make_service()

        # Act
        purchased = await service.purchase_method("u-1", 2)
        await service.activate_method("u-1", purchased.owned_method.id)

        # Assert
        assert (await store.load_progression("u-1")).spirit_stones == 500
        owned = await store.list_owned_methods("u-1")
        assert [(m.method_id, m.is_active) for m in owned] == [(2, True)]
        status = await service.get_status("u-1")
        assert status["active_method"]["name"] == "Azure Cloud Sutra"
        assert status["accrual_rate"] > 10

    async def test_list_methods(self, make_service, store):
        await seed_player(store, spirit_stones=3000)
        service = await make_service()
        await service.purchase_method("u-1", 2)

        shop = await service.list_methods("u-1")

        assert [m["method_id"] for m in shop["owned"]] == [2]
        assert shop["owned"][0]["upgrade_cost"] == 100
        assert shop["owned"][0]["can_upgrade"] is True
        assert [m["method_id"] for m in shop["available"]] == [1, 3]

    async def test_failed_purchase_leaves_stones(self, make_service, store):
        await seed_player(store, spirit_stones=2000)
        service = await make_service()

        with pytest.raises(InsufficientResourcesError):
            await service.purchase_method("u-1", 2)

        assert (await store.load_progression("u-1")).spirit_stones == 2000

    async def test_emergency_flush_during_purchase_keeps_debit(self, make_service, store, monkeypatch):
        # Arrange
        await seed_player(store, spirit_stones=3000)
        service = await make_service()
        await service.start_meditation("u-1")
        purchase_method = store.purchase_method

        async def slow_purchase(snapshot, method_id):
            await asyncio.sleep(0.05)
            return await purchase_method(snapshot, method_id)

        monkeypatch.setattr(store, "purchase_method", slow_purchase)

        # Act
        purchase = asyncio.create_task(service.purchase_method("u-1", 2))
        await asyncio.sleep(0.01)
        flush = service.emergency_flush("u-1")
        await purchase
        assert await flush is True

        # Assert
        row = await store.load_progression("u-1")
        assert row.spirit_stones == 500
        assert row.is_meditating is False
        assert [m.method_id for m in await store.list_owned_methods("u-1")] == [2]
        assert service._sessions["u-1"].state.spirit_stones == 500


@pytest.mark.integration
class TestStatusAndLifecycle:
    async def test_status_progress(self, make_service, store):
        await seed_player(store, spirit_power=250)
        service = await make_service()

        status = await service.get_status("u-1")

        assert status["tier"]["name"] == "Mortal"
        assert status["next_tier_required"] == 1000
        assert status["progress_percent"] == 25.0
        assert status["accrual_rate"] == 10
        assert status["active_method"] is None

    async def test_emergency_flush_clears_flag(self, make_service, store):
        # Arrange
        await seed_player(store)
        service = await make_service()
        await service.start_meditation("u-1")

        # Act
        task = service.emergency_flush("u-1")
        await task

        # Assert
        assert (await store.load_progression("u-1")).is_meditating is False
        assert service.emergency_flush("nobody") is None

    async def test_visibility_flush(self, make_service, store):
        await seed_player(store)
        service = await make_service()
        await service.start_meditation("u-1")

        assert await service.on_visibility_hidden("u-1") is True
        await service.shutdown()

    async def test_shutdown_flushes_every_session(self, make_service, store):
        await seed_player(store)
        service = await make_service()
        await service.start_meditation("u-1")

        await service.shutdown()

        assert (await store.load_progression("u-1")).is_meditating is False
        assert service.has_session("u-1") is False

    async def test_unknown_player(self, make_service):
        service = await make_service()

        with pytest.raises(NotFoundError):
            await service.get_status("nobody")

    async def test_malformed_user_id(self, make_service):
        service = await make_service()

        with pytest.raises(ValidationError):
            await service.start_meditation("not a valid id!")

    async def test_unknown_players_leave_no_opening_locks(self, make_service):
        service = await make_service()

        for i in range(50):
            with pytest.raises(NotFoundError):
                await service.get_status(f"ghost-{i}")

        assert service._opening == {}
        assert service.has_session("ghost-0") is False

    async def test_close_session_persists_and_forgets(self, make_service, store):
        # Arrange
        await seed_player(store)
        service = await make_service(tick_interval=0.01)
        await service.start_meditation("u-1")
        await asyncio.sleep(0.05)

        # Act
        persisted = await service.close_session("u-1")

        # Assert
        assert persisted is True
        row = await store.load_progression("u-1")
        assert row.is_meditating is False
        assert row.spirit_power > 0
        assert service.has_session("u-1") is False
        assert service._boundary._locks == {}
        assert await service.close_session("u-1") is False

    async def test_zero_log_size_keeps_no_history(self, make_service, store):
        await seed_player(store)
        service = await make_service(log_size=0)

        await service.start_meditation("u-1")
        status = await service.get_status("u-1")

        assert status["meditation_log"] == []
        await service.shutdown()
