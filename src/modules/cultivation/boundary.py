"""
Per-player serialization boundary.

Every mutation of one player's progression (ticks, flush snapshots,
breakthroughs, method operations, meditation toggles) runs inside
`PlayerBoundary.hold`. `asyncio.Lock` wakes waiters in arrival order, which
gives FIFO admission per player. Different players never contend.
"""

from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from typing import AsyncIterator, Dict

from src.core.logging.logger import get_logger
from src.modules.shared.exceptions import ConcurrencyViolationError

logger = get_logger(__name__)


class PlayerBoundary:
    """
    FIFO lock per ``user_id`` with an admission timeout.

    A caller that cannot be admitted within ``admission_timeout`` seconds is
    rejected with `ConcurrencyViolationError` and never runs.
    """

    def __init__(self, admission_timeout: float = 10.0) -> None:
        self._admission_timeout = admission_timeout
        self._locks: Dict[str, asyncio.Lock] = {}

    def _lock_for(self, user_id: str) -> asyncio.Lock:
        lock = self._locks.get(user_id)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[user_id] = lock
        return lock

    @asynccontextmanager
    async def hold(self, user_id: str, operation: str) -> AsyncIterator[None]:
        lock = self._lock_for(user_id)
        try:
            await asyncio.wait_for(lock.acquire(), timeout=self._admission_timeout)
        except asyncio.TimeoutError:
            logger.warning(
                "Boundary admission timed out",
                extra={
                    "user_id": user_id,
                    "operation": operation,
                    "timeout_seconds": self._admission_timeout,
                },
            )
            raise ConcurrencyViolationError(user_id, operation, self._admission_timeout) from None

        try:
            yield
        finally:
            lock.release()

    def is_busy(self, user_id: str) -> bool:
        lock = self._locks.get(user_id)
        return lock is not None and lock.locked()

    def forget(self, user_id: str) -> None:
        """Drop an idle lock once the player's session is closed."""
        lock = self._locks.get(user_id)
        if lock is not None and not lock.locked():
            del self._locks[user_id]
