"""
Per-player cultivation session.

A `CultivationSession` is the engine-owned object holding everything live
about one player: the authoritative `ProgressionState`, the owned methods,
the meditation log, the running loop tasks and the bookkeeping that keeps
snapshot writes ordered. It is only mutated under the player's boundary,
except for the write bookkeeping, which is guarded by `write_lock`.
"""

from __future__ import annotations

import asyncio
import enum
from collections import deque
from dataclasses import dataclass, field
from typing import Deque, List, Optional

from src.domain.models.cultivation import OwnedMethod, ProgressionState


class BreakthroughPhase(str, enum.Enum):
    """Breakthrough state machine position for one player."""

    IDLE = "idle"
    ATTEMPTING = "attempting"
    SUCCESS = "success"
    FAILURE = "failure"
    MAX_TIER = "max_tier"


@dataclass(eq=False)
class CultivationSession:
    state: ProgressionState
    owned_methods: List[OwnedMethod]
    log: Deque[str]
    phase: BreakthroughPhase = BreakthroughPhase.IDLE

    # Ticks applied in memory but not yet covered by a successful write
    ticks_since_flush: int = 0

    tick_task: Optional[asyncio.Task] = None
    flush_task: Optional[asyncio.Task] = None

    # Write ordering: captures take increasing sequence numbers and a write
    # older than the last landed one is dropped.
    write_lock: asyncio.Lock = field(default_factory=asyncio.Lock)
    captured_seq: int = 0
    written_seq: int = 0
    # A store call that pays for something is in flight; memory is not yet debited
    committing: bool = False
    # A full-field write (breakthrough) failed; the next flush writes all fields
    dirty: bool = False

    @classmethod
    def open(
        cls,
        state: ProgressionState,
        owned_methods: List[OwnedMethod],
        log_size: int = 5,
    ) -> CultivationSession:
        return cls(state=state, owned_methods=list(owned_methods), log=deque(maxlen=log_size))

    @property
    def user_id(self) -> str:
        return self.state.user_id

    @property
    def is_looping(self) -> bool:
        return self.tick_task is not None and not self.tick_task.done()

    def next_seq(self) -> int:
        self.captured_seq += 1
        return self.captured_seq

    def record(self, message: str) -> None:
        """Prepend to the meditation log (newest first, bounded)."""
        self.log.appendleft(message)

    # -------------------------------------------------------------------------
    # Owned methods
    # -------------------------------------------------------------------------

    def active_method(self) -> Optional[OwnedMethod]:
        return next((m for m in self.owned_methods if m.is_active), None)

    def find_owned(self, owned_method_id: int) -> Optional[OwnedMethod]:
        return next((m for m in self.owned_methods if m.id == owned_method_id), None)

    def owns_method(self, method_id: int) -> bool:
        return any(m.method_id == method_id for m in self.owned_methods)

    def replace_owned(self, updated: OwnedMethod) -> None:
        self.owned_methods = [updated if m.id == updated.id else m for m in self.owned_methods]

    # -------------------------------------------------------------------------
    # Loops
    # -------------------------------------------------------------------------

    def cancel_loops(self) -> List[asyncio.Task]:
        """Cancel the tick and flush loops; returns the tasks that were running."""
        cancelled = []
        current = asyncio.current_task()
        for task in (self.tick_task, self.flush_task):
            if task is not None and not task.done() and task is not current:
                task.cancel()
                cancelled.append(task)
        self.tick_task = None
        self.flush_task = None
        return cancelled
