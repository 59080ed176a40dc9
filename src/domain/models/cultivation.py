"""
Cultivation domain model.

Purpose
-------
Rich in-memory representation of a player's cultivation progress plus the
immutable catalog value objects it is measured against. The engine mutates a
single `ProgressionState` per player under that player's serialization
boundary; storage sees only the `ProgressionSnapshot` it hands out.

Responsibilities
----------------
- Keep progression invariants (level 1..9, non-negative resources, bonus
  0..100) on every state transition
- Apply accrual, spending and breakthrough outcomes
- Emit domain events for meditation toggles and stone finds
- Convert from ORM rows (`from_db`) and to immutable snapshots

Non-Responsibilities
--------------------
- Rates, costs and probabilities (see `src.modules.shared.formulas`)
- Randomness (drawn by the tick engine and breakthrough resolver)
- Persistence (see `CultivationStore`)

Usage Example
-------------
>>> state = ProgressionState.from_db(row)
>>> state.begin_meditation()
>>> state.accrue(power=10, stones=0)
>>> snapshot = state.snapshot()
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, replace
from datetime import datetime
from typing import TYPE_CHECKING, Any, Dict, Optional

from src.core.database.base import utc_now
from src.database.models.enums import MethodRarity
from src.domain.models.base import (
    AggregateRoot,
    DomainValidationError,
    validate_non_negative,
    validate_not_empty,
    validate_positive,
    validate_range,
)
from src.modules.shared.exceptions import InsufficientResourcesError
from src.modules.shared.formulas import calculate_failure_power

if TYPE_CHECKING:
    from src.database.models.catalog.method import CultivationMethod as CultivationMethodDB
    from src.database.models.catalog.realm import Realm as RealmDB
    from src.database.models.progression.user_cultivation import UserCultivation as UserCultivationDB
    from src.database.models.progression.user_method import UserMethod as UserMethodDB


MIN_SUB_LEVEL = 1
MAX_SUB_LEVEL = 9
MAX_BREAKTHROUGH_BONUS = 100


# ============================================================================
# CATALOG VALUE OBJECTS
# ============================================================================


@dataclass(frozen=True)
class Tier:
    """
    One rung of the tier ladder.

    Attributes
    ----------
    order_index : int
        Ordering key; the next tier is the one at ``order_index + 1``.
    spirit_power_required : int
        Power needed to break into this tier (and the base of the minor
        requirement curve while inside it).
    """

    id: int
    name: str
    order_index: int
    spirit_power_required: int
    is_major_tier: bool = False

    def __post_init__(self) -> None:
        validate_not_empty(self.name, "name")
        validate_non_negative(self.spirit_power_required, "spirit_power_required")

    @classmethod
    def from_db(cls, row: RealmDB) -> Tier:
        return cls(
            id=row.id,
            name=row.name,
            order_index=row.order_index,
            spirit_power_required=row.spirit_power_required,
            is_major_tier=row.is_major_tier,
        )


@dataclass(frozen=True)
class MethodDefinition:
    """Learnable method as published in the catalog."""

    id: int
    name: str
    description: str
    base_speed_multiplier: float
    upgrade_cost_base: int
    upgrade_cost_multiplier: float
    max_level: int
    rarity: MethodRarity

    def __post_init__(self) -> None:
        validate_positive(self.base_speed_multiplier, "base_speed_multiplier")
        validate_positive(self.upgrade_cost_base, "upgrade_cost_base")
        validate_positive(self.max_level, "max_level")
        if self.upgrade_cost_multiplier < 1:
            raise DomainValidationError(
                f"upgrade_cost_multiplier must be >= 1, got {self.upgrade_cost_multiplier}",
                field="upgrade_cost_multiplier",
            )

    @classmethod
    def from_db(cls, row: CultivationMethodDB) -> MethodDefinition:
        return cls(
            id=row.id,
            name=row.name,
            description=row.description or "",
            base_speed_multiplier=row.base_speed_multiplier,
            upgrade_cost_base=row.upgrade_cost_base,
            upgrade_cost_multiplier=row.upgrade_cost_multiplier,
            max_level=row.max_level,
            rarity=MethodRarity(row.rarity),
        )


# ============================================================================
# OWNED METHOD
# ============================================================================


@dataclass(frozen=True)
class OwnedMethod:
    """A method a player has learned. Replaced, never mutated in place."""

    id: int
    user_id: str
    method_id: int
    current_level: int = 1
    is_active: bool = False

    def __post_init__(self) -> None:
        validate_positive(self.current_level, "current_level")

    def with_level(self, level: int) -> OwnedMethod:
        return replace(self, current_level=level)

    def with_active(self, is_active: bool) -> OwnedMethod:
        return replace(self, is_active=is_active)

    @classmethod
    def from_db(cls, row: UserMethodDB) -> OwnedMethod:
        return cls(
            id=row.id,
            user_id=row.user_id,
            method_id=row.method_id,
            current_level=row.current_level,
            is_active=row.is_active,
        )


# ============================================================================
# SNAPSHOT
# ============================================================================


@dataclass(frozen=True)
class ProgressionSnapshot:
    """Point-in-time copy of a player's progression, safe to hand to storage."""

    user_id: str
    tier_id: int
    current_level: int
    spirit_power: int
    spirit_stones: int
    breakthrough_bonus: int
    is_meditating: bool
    last_update_time: datetime

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["last_update_time"] = self.last_update_time.isoformat()
        return data


# ============================================================================
# PROGRESSION STATE (AGGREGATE ROOT)
# ============================================================================


class ProgressionState(AggregateRoot):
    """
    Authoritative in-memory progression for one player.

    All mutators assume the caller holds the player's boundary. Each keeps
    the invariants below or raises before touching any field.

    Invariants
    ----------
    - 1 <= current_level <= 9
    - spirit_power >= 0, spirit_stones >= 0
    - 0 <= breakthrough_bonus <= 100
    """

    def __init__(
        self,
        user_id: str,
        tier_id: int,
        current_level: int = MIN_SUB_LEVEL,
        spirit_power: int = 0,
        spirit_stones: int = 0,
        breakthrough_bonus: int = 0,
        is_meditating: bool = False,
        last_update_time: Optional[datetime] = None,
    ) -> None:
        validate_not_empty(user_id, "user_id")
        super().__init__(user_id)
        self.tier_id = tier_id
        self.current_level = current_level
        self.spirit_power = spirit_power
        self.spirit_stones = spirit_stones
        self.breakthrough_bonus = breakthrough_bonus
        self.is_meditating = is_meditating
        self.last_update_time = last_update_time or utc_now()
        self._validate()

    @property
    def user_id(self) -> str:
        return self._id  # type: ignore[return-value]

    def _validate(self) -> None:
        validate_range(self.current_level, MIN_SUB_LEVEL, MAX_SUB_LEVEL, "current_level")
        validate_non_negative(self.spirit_power, "spirit_power")
        validate_non_negative(self.spirit_stones, "spirit_stones")
        validate_range(self.breakthrough_bonus, 0, MAX_BREAKTHROUGH_BONUS, "breakthrough_bonus")

    # ========================================================================
    # MEDITATION
    # ========================================================================

    def begin_meditation(self) -> None:
        self.is_meditating = True
        self.add_domain_event("cultivation.meditation_started", {"user_id": self.user_id})

    def end_meditation(self) -> None:
        self.is_meditating = False
        self.add_domain_event(
            "cultivation.meditation_stopped",
            {"user_id": self.user_id, "spirit_power": self.spirit_power},
        )

    # ========================================================================
    # RESOURCES
    # ========================================================================

    def accrue(self, power: int, stones: int = 0) -> None:
        """Add one tick's gains. Stone finds raise `cultivation.stones_found`."""
        validate_non_negative(power, "power")
        validate_non_negative(stones, "stones")

        self.spirit_power += power
        if stones > 0:
            self.spirit_stones += stones
            self.add_domain_event(
                "cultivation.stones_found",
                {
                    "user_id": self.user_id,
                    "amount": stones,
                    "spirit_stones": self.spirit_stones,
                },
            )

    def spend_stones(self, amount: int) -> None:
        """
        Debit spirit stones.

        Raises
        ------
        InsufficientResourcesError
            If the balance is below ``amount``; state is left untouched.
        """
        validate_non_negative(amount, "amount")
        if self.spirit_stones < amount:
            raise InsufficientResourcesError("spirit_stones", amount, self.spirit_stones)
        self.spirit_stones -= amount

    def mark_persisted(self, at: datetime) -> None:
        self.last_update_time = at

    # ========================================================================
    # BREAKTHROUGH OUTCOMES
    # ========================================================================

    def advance_sub_level(self, cost: int) -> None:
        """Minor success: next sub-level, requirement deducted."""
        if self.current_level >= MAX_SUB_LEVEL:
            raise DomainValidationError("already at the last sub-level", field="current_level")
        if self.spirit_power < cost:
            raise InsufficientResourcesError("spirit_power", cost, self.spirit_power)
        self.current_level += 1
        self.spirit_power -= cost

    def advance_tier(self, tier_id: int) -> None:
        """Major success: enter the next tier at level 1 with power and bonus reset."""
        self.tier_id = tier_id
        self.current_level = MIN_SUB_LEVEL
        self.spirit_power = 0
        self.breakthrough_bonus = 0

    def fail_major(self, power_retention: float, bonus_step: int) -> None:
        """Major failure: drop a level, keep a fraction of power, grow the bonus."""
        self.current_level = max(MIN_SUB_LEVEL, self.current_level - 1)
        self.spirit_power = calculate_failure_power(self.spirit_power, power_retention)
        self.breakthrough_bonus = min(MAX_BREAKTHROUGH_BONUS, self.breakthrough_bonus + bonus_step)

    # ========================================================================
    # CONVERSION
    # ========================================================================

    def snapshot(self, **overrides: Any) -> ProgressionSnapshot:
        """Freeze the current fields; keyword overrides replace single fields."""
        fields: Dict[str, Any] = {
            "user_id": self.user_id,
            "tier_id": self.tier_id,
            "current_level": self.current_level,
            "spirit_power": self.spirit_power,
            "spirit_stones": self.spirit_stones,
            "breakthrough_bonus": self.breakthrough_bonus,
            "is_meditating": self.is_meditating,
            "last_update_time": self.last_update_time,
        }
        fields.update(overrides)
        return ProgressionSnapshot(**fields)

    @classmethod
    def from_db(cls, row: UserCultivationDB) -> ProgressionState:
        return cls(
            user_id=row.user_id,
            tier_id=row.realm_id,
            current_level=row.current_level,
            spirit_power=row.spirit_power,
            spirit_stones=row.spirit_stones,
            breakthrough_bonus=row.breakthrough_bonus,
            is_meditating=row.is_meditating,
            last_update_time=row.last_update_time,
        )

    def __repr__(self) -> str:
        return (
            f"<ProgressionState user={self.user_id} tier={self.tier_id} "
            f"level={self.current_level} power={self.spirit_power} "
            f"stones={self.spirit_stones} bonus={self.breakthrough_bonus}>"
        )
