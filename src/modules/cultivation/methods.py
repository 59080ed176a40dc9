"""
MethodProgression - cost and speed curves plus method operations
==================================================================

Handles:
- The canonical accrual-rate function used by ticks and every report
- Purchase cost (rarity multiplier) and upgrade cost (geometric curve)
- Purchase, upgrade and activation of owned methods

Method operations run under the player's boundary. Each one writes first
and applies to memory only after the store confirms, so a failed write
leaves the in-memory state untouched.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Dict, Mapping, Optional, Tuple

from src.domain.models.cultivation import MethodDefinition, OwnedMethod, ProgressionSnapshot
from src.modules.cultivation.repository import FULL_FIELDS
from src.modules.shared.base_service import BaseService
from src.modules.shared.exceptions import NotFoundError
from src.modules.shared.formulas import (
    calculate_accrual_rate,
    calculate_purchase_cost,
    calculate_upgrade_cost,
)
from src.modules.shared.validators import (
    validate_below_max_level,
    validate_method_ownership,
    validate_not_owned,
    validate_resource_cost,
)

if TYPE_CHECKING:
    from logging import Logger

    from src.core.config.manager import ConfigManager
    from src.core.event.bus import EventBus
    from src.modules.cultivation.catalog import Catalog
    from src.modules.cultivation.persistence import PersistenceSynchronizer
    from src.modules.cultivation.repository import CultivationStore
    from src.modules.cultivation.session import CultivationSession


DEFAULT_RARITY_MULTIPLIERS: Dict[str, int] = {
    "common": 1,
    "uncommon": 5,
    "rare": 25,
    "epic": 100,
    "legendary": 500,
}


# ============================================================================
# PURE CURVES
# ============================================================================


@dataclass(frozen=True)
class MethodProgression:
    """Config-bound cost and speed functions."""

    base_rate: int = 10
    level_bonus_step: float = 0.1
    rarity_multipliers: Mapping[str, int] = field(
        default_factory=lambda: dict(DEFAULT_RARITY_MULTIPLIERS)
    )

    @classmethod
    def from_config(cls, config_manager: ConfigManager) -> MethodProgression:
        number = config_manager.get_number
        return cls(
            base_rate=number("cultivation.accrual.base_rate", 10, cast=int, minimum=0),
            level_bonus_step=number("cultivation.accrual.level_bonus_step", 0.1, minimum=0.0),
            rarity_multipliers={
                rarity: number(
                    f"cultivation.methods.rarity_multipliers.{rarity}", default, cast=int, minimum=1
                )
                for rarity, default in DEFAULT_RARITY_MULTIPLIERS.items()
            },
        )

    def accrual_rate(
        self,
        method: Optional[MethodDefinition] = None,
        level: Optional[int] = None,
    ) -> int:
        """Spirit power per tick for an active method (or none)."""
        if method is None:
            return calculate_accrual_rate(self.base_rate)
        return calculate_accrual_rate(
            self.base_rate,
            method.base_speed_multiplier,
            level,
            self.level_bonus_step,
        )

    def purchase_cost(self, method: MethodDefinition) -> int:
        return calculate_purchase_cost(
            method.upgrade_cost_base, method.rarity.value, self.rarity_multipliers
        )

    def upgrade_cost(self, method: MethodDefinition, current_level: int) -> int:
        return calculate_upgrade_cost(
            method.upgrade_cost_base, method.upgrade_cost_multiplier, current_level
        )


# ============================================================================
# RESULTS
# ============================================================================


@dataclass(frozen=True)
class MethodOperationResult:
    operation: str
    owned_method: OwnedMethod
    owned_methods: Tuple[OwnedMethod, ...]
    snapshot: ProgressionSnapshot
    cost: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "operation": self.operation,
            "owned_method_id": self.owned_method.id,
            "method_id": self.owned_method.method_id,
            "current_level": self.owned_method.current_level,
            "is_active": self.owned_method.is_active,
            "cost": self.cost,
            "progression": self.snapshot.to_dict(),
        }


# ============================================================================
# SERVICE
# ============================================================================


class MethodProgressionService(BaseService):
    """
    Purchase, upgrade and activation. Callers hold the player's boundary.

    Raises (all operations):
        NotFoundError: Unknown method or owned method id
        InvalidTransitionError: Already owned, at max level, or not the
            caller's method
        InsufficientResourcesError: Not enough spirit stones
        PersistenceFailureError: The store rejected the write
    """

    def __init__(
        self,
        config_manager: ConfigManager,
        event_bus: EventBus,
        logger: Logger,
        *,
        catalog: Catalog,
        store: CultivationStore,
        synchronizer: PersistenceSynchronizer,
        progression: MethodProgression,
    ) -> None:
        super().__init__(config_manager, event_bus, logger)
        self._catalog = catalog
        self._store = store
        self._synchronizer = synchronizer
        self._progression = progression

    async def purchase(self, session: CultivationSession, method_id: int) -> MethodOperationResult:
        state = session.state
        method = self._catalog.method(method_id)
        validate_not_owned(session.owns_method(method_id))

        cost = self._progression.purchase_cost(method)
        validate_resource_cost("spirit_stones", cost, state.spirit_stones)

        pending = self._synchronizer.capture(
            session, FULL_FIELDS, spirit_stones=state.spirit_stones - cost
        )
        owned = await self._synchronizer.commit(
            session,
            pending,
            lambda: self._store.purchase_method(pending.snapshot, method_id),
        )

        state.spend_stones(cost)
        session.owned_methods.append(owned)
        state.add_domain_event(
            "cultivation.method_purchased",
            {
                "user_id": state.user_id,
                "method_id": method.id,
                "method_name": method.name,
                "owned_method_id": owned.id,
                "cost": cost,
            },
        )

        self.log_operation(
            "purchase_method",
            user_id=state.user_id,
            method_id=method.id,
            cost=cost,
            spirit_stones=state.spirit_stones,
        )
        return self._result("purchase", owned, session, cost)

    async def upgrade(self, session: CultivationSession, owned_method_id: int) -> MethodOperationResult:
        state = session.state
        owned = await self._resolve_owned(session, owned_method_id)
        method = self._catalog.method(owned.method_id)
        validate_below_max_level(owned.current_level, method.max_level)

        cost = self._progression.upgrade_cost(method, owned.current_level)
        validate_resource_cost("spirit_stones", cost, state.spirit_stones)

        new_level = owned.current_level + 1
        pending = self._synchronizer.capture(
            session, FULL_FIELDS, spirit_stones=state.spirit_stones - cost
        )
        upgraded = await self._synchronizer.commit(
            session,
            pending,
            lambda: self._store.upgrade_method(pending.snapshot, owned.id, new_level),
        )

        state.spend_stones(cost)
        session.replace_owned(upgraded)
        state.add_domain_event(
            "cultivation.method_upgraded",
            {
                "user_id": state.user_id,
                "owned_method_id": upgraded.id,
                "method_id": method.id,
                "new_level": upgraded.current_level,
                "cost": cost,
            },
        )

        self.log_operation(
            "upgrade_method",
            user_id=state.user_id,
            owned_method_id=upgraded.id,
            new_level=upgraded.current_level,
            cost=cost,
        )
        return self._result("upgrade", upgraded, session, cost)

    async def activate(self, session: CultivationSession, owned_method_id: int) -> MethodOperationResult:
        state = session.state
        owned = await self._resolve_owned(session, owned_method_id)

        methods = await self._store.activate_method(state.user_id, owned.id)
        session.owned_methods = methods
        activated = session.find_owned(owned.id) or owned.with_active(True)

        state.add_domain_event(
            "cultivation.method_activated",
            {
                "user_id": state.user_id,
                "owned_method_id": activated.id,
                "method_id": activated.method_id,
            },
        )

        self.log_operation(
            "activate_method",
            user_id=state.user_id,
            owned_method_id=activated.id,
        )
        return self._result("activate", activated, session)

    async def _resolve_owned(self, session: CultivationSession, owned_method_id: int) -> OwnedMethod:
        owned = session.find_owned(owned_method_id)
        if owned is not None:
            return owned

        stored = await self._store.get_owned_method(owned_method_id)
        if stored is None:
            raise NotFoundError("OwnedMethod", owned_method_id)
        validate_method_ownership(stored.user_id, session.user_id)

        # Learned through another session; refresh the list
        session.owned_methods = await self._store.list_owned_methods(session.user_id)
        return session.find_owned(owned_method_id) or stored

    @staticmethod
    def _result(
        operation: str,
        owned: OwnedMethod,
        session: CultivationSession,
        cost: int = 0,
    ) -> MethodOperationResult:
        return MethodOperationResult(
            operation=operation,
            owned_method=owned,
            owned_methods=tuple(session.owned_methods),
            snapshot=session.state.snapshot(),
            cost=cost,
        )
