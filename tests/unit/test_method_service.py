"""
Unit tests for MethodProgression and MethodProgressionService.

Costs, purchase, upgrade and activation with a mocked store. Every
operation writes first; a failed write must leave memory untouched.
"""

import pytest

from src.core.config.manager import ConfigManager
from src.domain.models.cultivation import OwnedMethod
from src.modules.cultivation.boundary import PlayerBoundary
from src.modules.cultivation.methods import MethodProgression, MethodProgressionService
from src.modules.cultivation.persistence import PersistenceSynchronizer
from src.modules.shared.exceptions import (
    InsufficientResourcesError,
    InvalidTransitionError,
    NotFoundError,
    PersistenceFailureError,
)
from tests.conftest import make_session, make_state


@pytest.fixture
def method_service(catalog, mock_store, mock_event_bus, test_logger):
    return MethodProgressionService(
        ConfigManager,
        mock_event_bus,
        test_logger,
        catalog=catalog,
        store=mock_store,
        synchronizer=PersistenceSynchronizer(mock_store, PlayerBoundary()),
        progression=MethodProgression.from_config(ConfigManager),
    )


@pytest.mark.unit
class TestMethodProgressionCurves:
    def test_rare_purchase_cost(self, catalog):
        progression = MethodProgression.from_config(ConfigManager)

        assert progression.purchase_cost(catalog.method(2)) == 2500

    def test_upgrade_cost(self, catalog):
        progression = MethodProgression()

        assert progression.upgrade_cost(catalog.method(2), 1) == 100
        assert progression.upgrade_cost(catalog.method(2), 3) == 400

    def test_rarity_multipliers_from_config(self, catalog):
        ConfigManager.set_override("cultivation.methods.rarity_multipliers.rare", 10)

        progression = MethodProgression.from_config(ConfigManager)

        assert progression.purchase_cost(catalog.method(2)) == 1000

    def test_accrual_rate_without_method(self):
        assert MethodProgression().accrual_rate() == 10


@pytest.mark.unit
@pytest.mark.asyncio
class TestPurchase:
    async def test_purchase_without_enough_stones(self, method_service, mock_store):
        # Arrange
        session = make_session(make_state(spirit_stones=2000))

        # Act & Assert
        with pytest.raises(InsufficientResourcesError) as exc_info:
            await method_service.purchase(session, 2)

        assert exc_info.value.required == 2500
        assert session.state.spirit_stones == 2000
        assert session.owned_methods == []
        mock_store.purchase_method.assert_not_awaited()

    async def test_purchase_debits_after_write(self, method_service, mock_store):
        # Arrange
        session = make_session(make_state(spirit_stones=3000))
        mock_store.purchase_method.return_value = OwnedMethod(id=11, user_id="u-1", method_id=2)

        # Act
        result = await method_service.purchase(session, 2)

        # Assert
        snapshot, method_id = mock_store.purchase_method.await_args.args
        assert snapshot.spirit_stones == 500
        assert method_id == 2
        assert session.state.spirit_stones == 500
        assert [m.id for m in session.owned_methods] == [11]
        assert result.cost == 2500
        assert result.owned_method.current_level == 1
        assert result.owned_method.is_active is False
        assert "cultivation.method_purchased" in [
            e.event_name for e in session.state.get_pending_events()
        ]

    async def test_failed_write_leaves_state_unchanged(self, method_service, mock_store):
        # Arrange
        session = make_session(make_state(spirit_stones=3000))
        mock_store.purchase_method.side_effect = PersistenceFailureError("purchase_method", "u-1")

        # Act & Assert
        with pytest.raises(PersistenceFailureError):
            await method_service.purchase(session, 2)

        assert session.state.spirit_stones == 3000
        assert session.owned_methods == []

    async def test_purchase_acknowledges_snapshot(self, method_service, mock_store):
        session = make_session(make_state(spirit_stones=100))
        mock_store.purchase_method.return_value = OwnedMethod(id=11, user_id="u-1", method_id=1)

        await method_service.purchase(session, 1)

        assert session.written_seq == 1
        assert session.dirty is False

    async def test_purchase_owned_method_rejected(self, method_service):
        owned = OwnedMethod(id=11, user_id="u-1", method_id=2)
        session = make_session(make_state(spirit_stones=10**6), owned=[owned])

        with pytest.raises(InvalidTransitionError):
            await method_service.purchase(session, 2)

    async def test_purchase_unknown_method(self, method_service):
        with pytest.raises(NotFoundError):
            await method_service.purchase(make_session(), 99)


@pytest.mark.unit
@pytest.mark.asyncio
class TestUpgrade:
    async def test_upgrade_raises_level(self, method_service, mock_store):
        # Arrange
        owned = OwnedMethod(id=11, user_id="u-1", method_id=2, current_level=2)
        session = make_session(make_state(spirit_stones=1000), owned=[owned])
        mock_store.upgrade_method.return_value = owned.with_level(3)

        # Act
        result = await method_service.upgrade(session, 11)

        # Assert
        snapshot, owned_id, new_level = mock_store.upgrade_method.await_args.args
        assert (snapshot.spirit_stones, owned_id, new_level) == (800, 11, 3)
        assert session.state.spirit_stones == 800
        assert session.find_owned(11).current_level == 3
        assert result.cost == 200

    async def test_upgrade_at_max_level_rejected(self, method_service, mock_store):
        owned = OwnedMethod(id=11, user_id="u-1", method_id=1, current_level=3)
        session = make_session(make_state(spirit_stones=10**6), owned=[owned])

        with pytest.raises(InvalidTransitionError):
            await method_service.upgrade(session, 11)

        mock_store.upgrade_method.assert_not_awaited()

    async def test_upgrade_without_enough_stones(self, method_service):
        owned = OwnedMethod(id=11, user_id="u-1", method_id=2, current_level=2)
        session = make_session(make_state(spirit_stones=199), owned=[owned])

        with pytest.raises(InsufficientResourcesError):
            await method_service.upgrade(session, 11)

        assert session.state.spirit_stones == 199

    async def test_upgrade_other_users_method_rejected(self, method_service, mock_store):
        mock_store.get_owned_method.return_value = OwnedMethod(id=12, user_id="u-2", method_id=2)
        session = make_session(make_state(spirit_stones=10**6))

        with pytest.raises(InvalidTransitionError) as exc_info:
            await method_service.upgrade(session, 12)

        assert exc_info.value.action == "method_access"

    async def test_upgrade_unknown_owned_method(self, method_service):
        with pytest.raises(NotFoundError):
            await method_service.upgrade(make_session(), 404)


@pytest.mark.unit
@pytest.mark.asyncio
class TestActivate:
    async def test_activate_replaces_owned_list(self, method_service, mock_store):
        # Arrange
        first = OwnedMethod(id=11, user_id="u-1", method_id=1, is_active=True)
        second = OwnedMethod(id=12, user_id="u-1", method_id=2)
        session = make_session(owned=[first, second])
        mock_store.activate_method.return_value = [first.with_active(False), second.with_active(True)]

        # Act
        result = await method_service.activate(session, 12)

        # Assert
        mock_store.activate_method.assert_awaited_once_with("u-1", 12)
        assert session.active_method().id == 12
        assert [m.is_active for m in result.owned_methods] == [False, True]

    async def test_activate_other_users_method_rejected(self, method_service, mock_store):
        mock_store.get_owned_method.return_value = OwnedMethod(id=12, user_id="u-2", method_id=2)

        with pytest.raises(InvalidTransitionError):
            await method_service.activate(make_session(), 12)

        mock_store.activate_method.assert_not_awaited()

