"""
CultivationService - caller-facing facade of the cultivation engine
=====================================================================

Handles:
- Onboarding a new player at the first tier
- Meditation start/stop (tick and flush loops per player)
- Breakthrough attempts (ritual held under the player's boundary)
- Method purchase, upgrade and activation
- Emergency and visibility flushes, and closing a player's session
- Read models: status, breakthrough preview, method shop

Every mutation for one player is serialized by `PlayerBoundary`; waiting
longer than the admission timeout raises `ConcurrencyViolationError`.
Domain events collected on the aggregate are published after the boundary
is released.
"""

from __future__ import annotations

import asyncio
import random
from typing import TYPE_CHECKING, Any, Dict, List, Optional

from src.core.config.config import Config
from src.core.logging.logger import LogContext
from src.core.validation.input_validator import InputValidator
from src.domain.models.cultivation import ProgressionSnapshot
from src.modules.cultivation.boundary import PlayerBoundary
from src.modules.cultivation.breakthrough import BreakthroughResolver, BreakthroughResult
from src.modules.cultivation.methods import (
    MethodOperationResult,
    MethodProgression,
    MethodProgressionService,
)
from src.modules.cultivation.persistence import PersistenceSynchronizer
from src.modules.cultivation.session import CultivationSession
from src.modules.cultivation.tick_engine import TickEngine
from src.modules.shared.base_service import BaseService
from src.modules.shared.exceptions import InvalidTransitionError, PersistenceFailureError
from src.modules.shared.formulas import calculate_progress_percent

if TYPE_CHECKING:
    from logging import Logger

    from src.core.config.manager import ConfigManager
    from src.core.event.bus import EventBus
    from src.modules.cultivation.catalog import Catalog
    from src.modules.cultivation.repository import CultivationStore


class CultivationService(BaseService):
    """
    Owns one `CultivationSession` per player and routes every caller
    operation through the player's boundary.

    Timing and randomness are injectable so tests run deterministically.
    """

    def __init__(
        self,
        config_manager: ConfigManager,
        event_bus: EventBus,
        logger: Logger,
        *,
        catalog: Catalog,
        store: CultivationStore,
        rng: Optional[random.Random] = None,
        tick_interval: Optional[float] = None,
        flush_interval: Optional[float] = None,
        ritual_seconds: Optional[float] = None,
        admission_timeout: Optional[float] = None,
        log_size: Optional[int] = None,
    ) -> None:
        super().__init__(config_manager, event_bus, logger)
        self._catalog = catalog
        self._store = store
        self._rng = rng or random.Random()
        self._log_size = log_size if log_size is not None else Config.MEDITATION_LOG_SIZE

        self._boundary = PlayerBoundary(
            admission_timeout or Config.BOUNDARY_ADMISSION_TIMEOUT_SECONDS
        )
        self._progression = MethodProgression.from_config(config_manager)
        self._synchronizer = PersistenceSynchronizer(
            store,
            self._boundary,
            flush_interval=flush_interval or Config.FLUSH_INTERVAL_SECONDS,
            logger=logger,
        )
        self._ticks = TickEngine(
            self._boundary,
            catalog,
            self._progression,
            config_manager,
            interval=tick_interval or Config.TICK_INTERVAL_SECONDS,
            rng=self._rng,
            on_events=self.publish_domain_events,
            logger=logger,
        )
        self._resolver = BreakthroughResolver(
            catalog,
            config_manager,
            rng=self._rng,
            ritual_seconds=(
                ritual_seconds if ritual_seconds is not None else Config.BREAKTHROUGH_RITUAL_SECONDS
            ),
        )
        self._methods = MethodProgressionService(
            config_manager,
            event_bus,
            logger,
            catalog=catalog,
            store=store,
            synchronizer=self._synchronizer,
            progression=self._progression,
        )

        self._sessions: Dict[str, CultivationSession] = {}
        self._opening: Dict[str, asyncio.Lock] = {}

    # -------------------------------------------------------------------------
    # Sessions
    # -------------------------------------------------------------------------

    async def _open(self, user_id: str) -> CultivationSession:
        """Return the live session, loading it from storage on first use."""
        session = self._sessions.get(user_id)
        if session is not None:
            return session

        lock = self._opening.setdefault(user_id, asyncio.Lock())
        try:
            async with lock:
                session = self._sessions.get(user_id)
                if session is not None:
                    return session

                state = await self._store.load_progression(user_id)
                owned = await self._store.list_owned_methods(user_id)
                session = CultivationSession.open(state, owned, self._log_size)
                session.phase = self._resolver.phase_for(state)
                self._sessions[user_id] = session

                # A row stored as meditating resumes its loops
                if state.is_meditating:
                    self._start_loops(session)
        finally:
            if self._opening.get(user_id) is lock:
                del self._opening[user_id]

        self.log.info(
            "Cultivation session opened",
            extra={"user_id": user_id, "is_meditating": state.is_meditating},
        )
        return session

    def _start_loops(self, session: CultivationSession) -> None:
        self._ticks.start(session)
        self._synchronizer.start(session)

    def has_session(self, user_id: str) -> bool:
        return user_id in self._sessions

    async def onboard(self, user_id: str) -> ProgressionSnapshot:
        """
        Create a new player's progression at the first tier, level 1.

        Raises:
            InvalidTransitionError: The player already has a progression
        """
        user_id = InputValidator.validate_user_id(user_id)

        async with LogContext(user_id=user_id, operation="onboard"):
            if await self._store.has_progression(user_id):
                raise InvalidTransitionError("onboard", "Your cultivation has already begun")
            state = await self._store.create_progression(user_id, self._catalog.first_tier.id)
            self.log_operation("onboard", user_id=user_id, tier_id=state.tier_id)
            return state.snapshot()

    # -------------------------------------------------------------------------
    # Meditation
    # -------------------------------------------------------------------------

    async def start_meditation(self, user_id: str) -> ProgressionSnapshot:
        """Start accruing; the meditating flag is written before returning."""
        user_id = InputValidator.validate_user_id(user_id)
        session = await self._open(user_id)

        async with LogContext(user_id=user_id, operation="start_meditation"):
            async with self._boundary.hold(user_id, "start_meditation"):
                if not session.state.is_meditating:
                    session.state.begin_meditation()
                    session.record("Meditation started.")
                    pending = self._synchronizer.capture(session)
                    await self._synchronizer.write(session, pending, "start_meditation")
                if not session.is_looping:
                    self._start_loops(session)
                snapshot = session.state.snapshot()

            await self.publish_domain_events(session.state)
            self.log_operation("start_meditation", user_id=user_id)
            return snapshot

    async def stop_meditation(self, user_id: str) -> ProgressionSnapshot:
        """Stop accruing and flush synchronously before returning."""
        user_id = InputValidator.validate_user_id(user_id)
        session = await self._open(user_id)

        async with LogContext(user_id=user_id, operation="stop_meditation"):
            async with self._boundary.hold(user_id, "stop_meditation"):
                session.cancel_loops()
                if session.state.is_meditating:
                    session.state.end_meditation()
                    session.record("Meditation ended.")
                pending = self._synchronizer.capture(session)
                await self._synchronizer.write(session, pending, "stop_meditation")
                snapshot = session.state.snapshot()

            await self.publish_domain_events(session.state)
            self.log_operation(
                "stop_meditation",
                user_id=user_id,
                spirit_power=snapshot.spirit_power,
                unflushed_ticks=session.ticks_since_flush,
            )
            return snapshot

    async def close_session(self, user_id: str) -> bool:
        """
        Write the session with meditation off and drop everything held for
        the player. Waits for operations already admitted.

        Returns whether the final write landed; False when no session was open.
        """
        session = self._sessions.get(user_id)
        if session is None:
            return False

        async with self._boundary.hold(user_id, "close_session"):
            session.cancel_loops()
            if session.state.is_meditating:
                session.state.end_meditation()
            pending = self._synchronizer.capture(session)
            persisted = await self._synchronizer.write(session, pending, "close_session")
            if self._sessions.get(user_id) is session:
                del self._sessions[user_id]

        self._boundary.forget(user_id)
        self.log.info(
            "Cultivation session closed",
            extra={"user_id": user_id, "persisted": persisted},
        )
        return persisted

    # -------------------------------------------------------------------------
    # Breakthrough
    # -------------------------------------------------------------------------

    async def attempt_breakthrough(self, user_id: str) -> BreakthroughResult:
        """
        Attempt the next breakthrough.

        The ritual runs in its own task under the player's boundary; a caller
        that gives up waiting does not cancel it.

        Raises:
            InsufficientResourcesError: Not enough spirit power
            InvalidTransitionError: Already at the peak
            ConcurrencyViolationError: Boundary admission timed out
        """
        user_id = InputValidator.validate_user_id(user_id)
        session = await self._open(user_id)
        ritual = asyncio.ensure_future(self._run_breakthrough(session))
        ritual.add_done_callback(self._ritual_finished)
        return await asyncio.shield(ritual)

    def _ritual_finished(self, ritual: asyncio.Future) -> None:
        # The caller may have stopped waiting
        if ritual.cancelled():
            return
        exc = ritual.exception()
        if exc is not None:
            self.log.info(
                "Breakthrough attempt ended with error",
                extra={"error_type": type(exc).__name__, "error": str(exc)},
            )

    async def _run_breakthrough(self, session: CultivationSession) -> BreakthroughResult:
        user_id = session.user_id
        async with LogContext(user_id=user_id, operation="attempt_breakthrough"):
            async with self._boundary.hold(user_id, "attempt_breakthrough"):
                result = await self._resolver.attempt(session, self._synchronizer)

            await self.publish_domain_events(session.state)
            self.log_operation(
                "attempt_breakthrough",
                user_id=user_id,
                outcome=result.outcome,
                is_major=result.is_major,
                roll=round(result.roll, 2),
                success_rate=result.success_rate,
                persisted=result.persisted,
            )
            return result

    # -------------------------------------------------------------------------
    # Methods
    # -------------------------------------------------------------------------

    async def purchase_method(self, user_id: str, method_id: int) -> MethodOperationResult:
        user_id = InputValidator.validate_user_id(user_id)
        method_id = InputValidator.validate_method_id(method_id)
        session = await self._open(user_id)

        async with LogContext(user_id=user_id, operation="purchase_method"):
            async with self._boundary.hold(user_id, "purchase_method"):
                try:
                    result = await self._methods.purchase(session, method_id)
                except PersistenceFailureError as exc:
                    self.log_error("purchase_method", exc, user_id=user_id, method_id=method_id)
                    raise
            await self.publish_domain_events(session.state)
            return result

    async def upgrade_method(self, user_id: str, owned_method_id: int) -> MethodOperationResult:
        user_id = InputValidator.validate_user_id(user_id)
        owned_method_id = InputValidator.validate_owned_method_id(owned_method_id)
        session = await self._open(user_id)

        async with LogContext(user_id=user_id, operation="upgrade_method"):
            async with self._boundary.hold(user_id, "upgrade_method"):
                try:
                    result = await self._methods.upgrade(session, owned_method_id)
                except PersistenceFailureError as exc:
                    self.log_error("upgrade_method", exc, user_id=user_id, owned_method_id=owned_method_id)
                    raise
            await self.publish_domain_events(session.state)
            return result

    async def activate_method(self, user_id: str, owned_method_id: int) -> MethodOperationResult:
        user_id = InputValidator.validate_user_id(user_id)
        owned_method_id = InputValidator.validate_owned_method_id(owned_method_id)
        session = await self._open(user_id)

        async with LogContext(user_id=user_id, operation="activate_method"):
            async with self._boundary.hold(user_id, "activate_method"):
                try:
                    result = await self._methods.activate(session, owned_method_id)
                except PersistenceFailureError as exc:
                    self.log_error("activate_method", exc, user_id=user_id, owned_method_id=owned_method_id)
                    raise
            await self.publish_domain_events(session.state)
            return result

    # -------------------------------------------------------------------------
    # Out-of-band flushes
    # -------------------------------------------------------------------------

    def emergency_flush(self, user_id: str) -> Optional[asyncio.Task]:
        """
        Abrupt-termination path: schedule one write of the engine's own
        last in-memory values with meditation forced off, without waiting.

        Returns the write task, or None when no session is open.
        """
        session = self._sessions.get(user_id)
        if session is None:
            self.log.debug("Emergency flush without session", extra={"user_id": user_id})
            return None
        if session.state.is_meditating:
            session.record("Meditation ended.")
        return self._synchronizer.emergency_flush(session)

    def on_visibility_hidden(self, user_id: str) -> Optional[asyncio.Task]:
        """Best-effort background flush when the host is hidden or suspended."""
        session = self._sessions.get(user_id)
        if session is None:
            return None
        return self._synchronizer.flush_in_background(session)

    # -------------------------------------------------------------------------
    # Read models
    # -------------------------------------------------------------------------

    async def get_status(self, user_id: str) -> Dict[str, Any]:
        user_id = InputValidator.validate_user_id(user_id)
        session = await self._open(user_id)
        state = session.state

        tier = self._catalog.tier(state.tier_id)
        nxt = self._catalog.next_tier(tier)
        next_required = nxt.spirit_power_required if nxt is not None else None

        active = session.active_method()
        active_info = None
        if active is not None:
            method = self._catalog.method(active.method_id)
            active_info = {
                "owned_method_id": active.id,
                "method_id": method.id,
                "name": method.name,
                "level": active.current_level,
            }

        return {
            "user_id": user_id,
            "tier": {"id": tier.id, "name": tier.name, "order_index": tier.order_index},
            "current_level": state.current_level,
            "spirit_power": state.spirit_power,
            "spirit_stones": state.spirit_stones,
            "breakthrough_bonus": state.breakthrough_bonus,
            "is_meditating": state.is_meditating,
            "accrual_rate": self._ticks.accrual_rate(session),
            "active_method": active_info,
            "next_tier_required": next_required,
            "progress_percent": calculate_progress_percent(state.spirit_power, next_required),
            "meditation_log": list(session.log),
            "breakthrough_phase": session.phase.value,
            "unflushed_ticks": session.ticks_since_flush,
            "last_update_time": state.last_update_time.isoformat(),
        }

    async def preview_breakthrough(self, user_id: str) -> Dict[str, Any]:
        user_id = InputValidator.validate_user_id(user_id)
        session = await self._open(user_id)
        preview = self._resolver.plan(session.state).to_dict()
        preview["in_progress"] = self._boundary.is_busy(user_id)
        return preview

    async def list_methods(self, user_id: str) -> Dict[str, List[Dict[str, Any]]]:
        """Owned methods with upgrade info plus the purchasable remainder."""
        user_id = InputValidator.validate_user_id(user_id)
        session = await self._open(user_id)
        stones = session.state.spirit_stones

        owned: List[Dict[str, Any]] = []
        for entry in session.owned_methods:
            method = self._catalog.method(entry.method_id)
            at_max = entry.current_level >= method.max_level
            upgrade_cost = None if at_max else self._progression.upgrade_cost(method, entry.current_level)
            owned.append(
                {
                    "owned_method_id": entry.id,
                    "method_id": method.id,
                    "name": method.name,
                    "rarity": method.rarity.value,
                    "current_level": entry.current_level,
                    "max_level": method.max_level,
                    "is_active": entry.is_active,
                    "speed": self._progression.accrual_rate(method, entry.current_level),
                    "upgrade_cost": upgrade_cost,
                    "can_upgrade": upgrade_cost is not None and stones >= upgrade_cost,
                }
            )

        available: List[Dict[str, Any]] = []
        for method in self._catalog.unowned_methods(m.method_id for m in session.owned_methods):
            cost = self._progression.purchase_cost(method)
            available.append(
                {
                    "method_id": method.id,
                    "name": method.name,
                    "description": method.description,
                    "rarity": method.rarity.value,
                    "base_speed_multiplier": method.base_speed_multiplier,
                    "max_level": method.max_level,
                    "purchase_cost": cost,
                    "can_afford": stones >= cost,
                }
            )

        return {"owned": owned, "available": available}

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    async def shutdown(self) -> None:
        """Emergency-flush every live session and wait for the writes."""
        for user_id in list(self._sessions):
            self.emergency_flush(user_id)
        await self._synchronizer.drain()
        for user_id in list(self._sessions):
            self._boundary.forget(user_id)
        self._sessions.clear()
        self.log.info("Cultivation service shut down")
