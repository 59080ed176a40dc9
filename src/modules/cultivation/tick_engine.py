"""
TickEngine - the meditation accrual loop.

While a player meditates the engine fires once per tick interval, takes the
player's boundary and applies one tick: spirit power at the canonical
accrual rate plus an independent roll for a spirit stone find. Timers that
fire late are not compensated; there is no catch-up for missed wall-clock
time.
"""

from __future__ import annotations

import asyncio
import random
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Awaitable, Callable, Optional

from src.core.logging.logger import LogContext, get_logger
from src.modules.shared.exceptions import ConcurrencyViolationError

if TYPE_CHECKING:
    from logging import Logger

    from src.core.config.manager import ConfigManager
    from src.domain.models.base import AggregateRoot
    from src.modules.cultivation.boundary import PlayerBoundary
    from src.modules.cultivation.catalog import Catalog
    from src.modules.cultivation.methods import MethodProgression
    from src.modules.cultivation.session import CultivationSession


@dataclass(frozen=True)
class TickResult:
    power_gained: int
    stones_found: int = 0


class TickEngine:
    def __init__(
        self,
        boundary: PlayerBoundary,
        catalog: Catalog,
        progression: MethodProgression,
        config_manager: ConfigManager,
        *,
        interval: float = 1.0,
        rng: Optional[random.Random] = None,
        on_events: Optional[Callable[[AggregateRoot], Awaitable[Any]]] = None,
        logger: Optional[Logger] = None,
    ) -> None:
        self._boundary = boundary
        self._catalog = catalog
        self._progression = progression
        self._interval = interval
        self._rng = rng or random.Random()
        self._on_events = on_events
        self.log = logger or get_logger(__name__)

        number = config_manager.get_number
        self._stone_chance = number("cultivation.stones.drop_chance", 0.05, minimum=0.0, maximum=1.0)
        self._stone_min = number("cultivation.stones.min_amount", 1, cast=int, minimum=0)
        self._stone_max = number(
            "cultivation.stones.max_amount", 5, cast=int, minimum=self._stone_min
        )

    def accrual_rate(self, session: CultivationSession) -> int:
        """Current spirit power per tick for this session's active method."""
        active = session.active_method()
        if active is None:
            return self._progression.accrual_rate()
        return self._progression.accrual_rate(
            self._catalog.method(active.method_id), active.current_level
        )

    def apply_tick(self, session: CultivationSession) -> TickResult:
        """One tick of accrual. The caller holds the player's boundary."""
        power = self.accrual_rate(session)

        stones = 0
        if self._rng.random() < self._stone_chance:
            stones = self._rng.randint(self._stone_min, self._stone_max)

        session.state.accrue(power, stones)
        session.ticks_since_flush += 1
        if stones:
            session.record(f"+{stones} spirit stones")

        return TickResult(power_gained=power, stones_found=stones)

    # =========================================================================
    # LOOP
    # =========================================================================

    def start(self, session: CultivationSession) -> asyncio.Task:
        if session.tick_task is None or session.tick_task.done():
            session.tick_task = asyncio.get_running_loop().create_task(
                self._run(session), name=f"cultivation-tick-{session.user_id}"
            )
        return session.tick_task

    async def _run(self, session: CultivationSession) -> None:
        with LogContext(user_id=session.user_id, operation="tick"):
            await self._loop(session)

    async def _loop(self, session: CultivationSession) -> None:
        while True:
            await asyncio.sleep(self._interval)
            try:
                async with self._boundary.hold(session.user_id, "tick"):
                    if not session.state.is_meditating:
                        return
                    result = self.apply_tick(session)
            except ConcurrencyViolationError:
                # Dropped, not replayed
                self.log.warning("Tick skipped: boundary busy", extra={"user_id": session.user_id})
                continue

            if result.stones_found and self._on_events is not None:
                await self._on_events(session.state)
