"""
BreakthroughResolver - tier advancement state machine
=======================================================

States: IDLE -> ATTEMPTING -> {SUCCESS, FAILURE} -> IDLE, plus the terminal
MAX_TIER once a player sits at level 9 of the last tier.

Rules
-----
- Major breakthrough: level 9 with a next tier. Needs the next tier's power
  requirement; succeeds with ``min(100, 30 + bonus)`` percent.
- Minor breakthrough: any other level. Needs
  ``floor(tier_required * (1 + level * 0.5))`` power; always succeeds.
- Failure (major only): lose one level, keep half the power, bonus +5.

The roll is drawn here, inside the player's boundary, after the ritual
delay. Callers never supply an outcome.
"""

from __future__ import annotations

import asyncio
import random
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Dict, Optional

from src.domain.models.cultivation import MAX_SUB_LEVEL, ProgressionSnapshot, ProgressionState, Tier
from src.modules.cultivation.repository import FULL_FIELDS
from src.modules.cultivation.session import BreakthroughPhase
from src.modules.shared.exceptions import InsufficientResourcesError, InvalidTransitionError
from src.modules.shared.formulas import (
    calculate_minor_requirement,
    calculate_total_success_rate,
)

if TYPE_CHECKING:
    from src.core.config.manager import ConfigManager
    from src.modules.cultivation.catalog import Catalog
    from src.modules.cultivation.persistence import PersistenceSynchronizer
    from src.modules.cultivation.session import CultivationSession

SUCCESS = "success"
FAILURE = "failure"


@dataclass(frozen=True)
class BreakthroughPlan:
    """Eligibility and odds for the next attempt, derived from state + catalog."""

    current_tier: Tier
    next_tier: Optional[Tier]
    current_level: int
    is_major: bool
    is_max_tier: bool
    required_power: int
    current_power: int
    base_success_rate: int
    total_success_rate: int
    breakthrough_bonus: int

    @property
    def has_enough_power(self) -> bool:
        return self.current_power >= self.required_power

    @property
    def can_attempt(self) -> bool:
        return not self.is_max_tier and self.has_enough_power

    @property
    def target_label(self) -> str:
        if self.is_max_tier:
            return "Peak reached"
        if self.is_major and self.next_tier is not None:
            return f"{self.next_tier.name} - Level 1"
        return f"{self.current_tier.name} - Level {self.current_level + 1}"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "target": self.target_label,
            "is_major": self.is_major,
            "is_max_tier": self.is_max_tier,
            "required_power": self.required_power,
            "current_power": self.current_power,
            "success_rate": self.total_success_rate,
            "breakthrough_bonus": self.breakthrough_bonus,
            "can_attempt": self.can_attempt,
        }


@dataclass(frozen=True)
class BreakthroughResult:
    outcome: str
    is_major: bool
    roll: float
    success_rate: int
    required_power: int
    snapshot: ProgressionSnapshot
    # False when the post-resolution write failed; memory is still authoritative
    persisted: bool = True

    @property
    def succeeded(self) -> bool:
        return self.outcome == SUCCESS

    def to_dict(self) -> Dict[str, Any]:
        return {
            "outcome": self.outcome,
            "is_major": self.is_major,
            "roll": self.roll,
            "success_rate": self.success_rate,
            "required_power": self.required_power,
            "persisted": self.persisted,
            "progression": self.snapshot.to_dict(),
        }


class BreakthroughResolver:
    def __init__(
        self,
        catalog: Catalog,
        config_manager: ConfigManager,
        *,
        rng: Optional[random.Random] = None,
        ritual_seconds: float = 2.0,
    ) -> None:
        self._catalog = catalog
        self._rng = rng or random.Random()
        self._ritual_seconds = ritual_seconds

        number = config_manager.get_number
        key = "cultivation.breakthrough.{}".format
        self._major_base_rate = number(key("major_base_rate"), 30, cast=int, minimum=0, maximum=100)
        self._minor_base_rate = number(key("minor_base_rate"), 100, cast=int, minimum=0, maximum=100)
        self._failure_bonus_step = number(key("failure_bonus_step"), 5, cast=int, minimum=0)
        self._bonus_cap = number(key("bonus_cap"), 100, cast=int, minimum=0, maximum=100)
        self._failure_retention = number(
            key("failure_power_retention"), 0.5, minimum=0.0, maximum=1.0
        )
        self._minor_cost_step = number(key("minor_cost_step"), 0.5, minimum=0.0)
        self._max_sub_level = number(key("max_sub_level"), MAX_SUB_LEVEL, cast=int, minimum=1)

    # =========================================================================
    # PURE RULES
    # =========================================================================

    def plan(self, state: ProgressionState) -> BreakthroughPlan:
        current = self._catalog.tier(state.tier_id)
        nxt = self._catalog.next_tier(current)
        at_top_level = state.current_level >= self._max_sub_level
        is_major = at_top_level and nxt is not None

        if is_major:
            required = nxt.spirit_power_required  # type: ignore[union-attr]
            base_rate = self._major_base_rate
        else:
            required = calculate_minor_requirement(
                current.spirit_power_required, state.current_level, self._minor_cost_step
            )
            base_rate = self._minor_base_rate

        return BreakthroughPlan(
            current_tier=current,
            next_tier=nxt,
            current_level=state.current_level,
            is_major=is_major,
            is_max_tier=at_top_level and nxt is None,
            required_power=required,
            current_power=state.spirit_power,
            base_success_rate=base_rate,
            total_success_rate=calculate_total_success_rate(
                base_rate, state.breakthrough_bonus, self._bonus_cap
            ),
            breakthrough_bonus=state.breakthrough_bonus,
        )

    def resolve(self, state: ProgressionState, plan: BreakthroughPlan, roll: float) -> str:
        """Apply the outcome of ``roll`` (in [0, 100)) to ``state``."""
        if roll < plan.total_success_rate:
            if plan.is_major:
                state.advance_tier(plan.next_tier.id)  # type: ignore[union-attr]
            else:
                state.advance_sub_level(plan.required_power)
            return SUCCESS

        state.fail_major(self._failure_retention, self._failure_bonus_step)
        return FAILURE

    def phase_for(self, state: ProgressionState) -> BreakthroughPhase:
        plan = self.plan(state)
        return BreakthroughPhase.MAX_TIER if plan.is_max_tier else BreakthroughPhase.IDLE

    # =========================================================================
    # ATTEMPT
    # =========================================================================

    async def attempt(
        self,
        session: CultivationSession,
        synchronizer: PersistenceSynchronizer,
    ) -> BreakthroughResult:
        """
        Run one attempt. The caller holds the player's boundary for the
        whole call, ritual included.

        Raises:
            InvalidTransitionError: Already at the peak
            InsufficientResourcesError: Not enough spirit power
        """
        state = session.state
        plan = self.plan(state)

        if plan.is_max_tier:
            session.phase = BreakthroughPhase.MAX_TIER
            raise InvalidTransitionError("breakthrough", "You have reached the peak; no further realm exists")
        if not plan.has_enough_power:
            raise InsufficientResourcesError("spirit_power", plan.required_power, state.spirit_power)

        session.phase = BreakthroughPhase.ATTEMPTING
        try:
            await asyncio.sleep(self._ritual_seconds)

            roll = self._rng.random() * 100
            outcome = self.resolve(state, plan, roll)
            session.phase = (
                BreakthroughPhase.SUCCESS if outcome == SUCCESS else BreakthroughPhase.FAILURE
            )

            state.add_domain_event(
                "cultivation.breakthrough_resolved",
                {
                    "user_id": state.user_id,
                    "outcome": outcome,
                    "is_major": plan.is_major,
                    "roll": roll,
                    "success_rate": plan.total_success_rate,
                    "tier_id": state.tier_id,
                    "current_level": state.current_level,
                    "breakthrough_bonus": state.breakthrough_bonus,
                },
            )

            pending = synchronizer.capture(session, FULL_FIELDS)
            persisted = await synchronizer.write(session, pending, "breakthrough")
        finally:
            session.phase = self.phase_for(state)

        return BreakthroughResult(
            outcome=outcome,
            is_major=plan.is_major,
            roll=roll,
            success_rate=plan.total_success_rate,
            required_power=plan.required_power,
            snapshot=pending.snapshot,
            persisted=persisted,
        )
