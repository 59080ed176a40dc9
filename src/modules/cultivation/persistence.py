"""
PersistenceSynchronizer - durable snapshots of in-memory progression
======================================================================

Handles:
- The flush cadence while meditating (independent of the tick cadence)
- Synchronous writes at stop, breakthrough and method operations
- Best-effort background flush when the host is hidden
- Fire-and-forget emergency flush with meditation forced off

Ordering
--------
Snapshots are captured under the player's boundary and numbered. Writes
run under the session's `write_lock`; a snapshot older than one already
written is dropped, so a slow cadence write can never overwrite a newer
breakthrough or purchase. An emergency or visibility snapshot taken while
a purchase is committing is re-read from memory once that commit lands.

Failures
--------
Flush failures are logged and never retried here; memory stays
authoritative and the next cadence tries again. `ticks_since_flush` in the
log bounds what a crash would lose.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import (
    TYPE_CHECKING,
    Any,
    Awaitable,
    Callable,
    Mapping,
    Optional,
    Set,
    Tuple,
    TypeVar,
)

from src.core.database.base import utc_now
from src.core.logging.logger import LogContext, get_logger
from src.domain.models.cultivation import ProgressionSnapshot
from src.modules.cultivation.repository import FLUSH_FIELDS, FULL_FIELDS
from src.modules.shared.exceptions import (
    ConcurrencyViolationError,
    CultivationDomainException,
)

if TYPE_CHECKING:
    from logging import Logger

    from src.modules.cultivation.boundary import PlayerBoundary
    from src.modules.cultivation.repository import CultivationStore
    from src.modules.cultivation.session import CultivationSession

T = TypeVar("T")


@dataclass(frozen=True)
class PendingWrite:
    """A captured snapshot waiting to be written."""

    seq: int
    snapshot: ProgressionSnapshot
    fields: Tuple[str, ...]
    # ticks_since_flush at capture time
    ticks: int
    overrides: Mapping[str, Any] = field(default_factory=dict)
    # Captured while a commit was in flight: re-snapshot memory once it lands
    rebase: bool = False

    @property
    def is_full(self) -> bool:
        return set(FULL_FIELDS).issubset(self.fields)


class PersistenceSynchronizer:
    def __init__(
        self,
        store: CultivationStore,
        boundary: PlayerBoundary,
        *,
        flush_interval: float = 5.0,
        logger: Optional[Logger] = None,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._store = store
        self._boundary = boundary
        self._flush_interval = flush_interval
        self._clock = clock
        self.log = logger or get_logger(__name__)
        self._background: Set[asyncio.Task] = set()

    # =========================================================================
    # CAPTURE & WRITE
    # =========================================================================

    def capture(
        self,
        session: CultivationSession,
        fields: Tuple[str, ...] = FLUSH_FIELDS,
        **overrides: Any,
    ) -> PendingWrite:
        """
        Snapshot the session. The caller holds the player's boundary.

        A session left dirty by a failed full write is always captured with
        every field. A capture taken while `commit` is running is rebuilt
        from memory when it is written, so it carries that commit's debit.
        """
        if session.dirty:
            fields = FULL_FIELDS
        overrides.setdefault("last_update_time", self._clock())
        return PendingWrite(
            seq=session.next_seq(),
            snapshot=session.state.snapshot(**overrides),
            fields=tuple(fields),
            ticks=session.ticks_since_flush,
            overrides=dict(overrides),
            rebase=session.committing,
        )

    async def write(
        self,
        session: CultivationSession,
        pending: PendingWrite,
        reason: str = "flush",
    ) -> bool:
        """
        Write a captured snapshot. Never raises on storage failure.

        Returns True when the snapshot (or a newer one) is durable.
        """
        async with session.write_lock:
            if pending.seq <= session.written_seq:
                self.log.debug(
                    "Skipping superseded snapshot",
                    extra={
                        "user_id": session.user_id,
                        "seq": pending.seq,
                        "written_seq": session.written_seq,
                    },
                )
                return True

            if pending.rebase:
                pending = replace(
                    pending,
                    snapshot=session.state.snapshot(**pending.overrides),
                    rebase=False,
                )

            try:
                await self._store.save_snapshot(pending.snapshot, pending.fields)
            except CultivationDomainException as exc:
                if pending.is_full:
                    session.dirty = True
                self.log.warning(
                    "Progression flush failed",
                    extra={
                        "user_id": session.user_id,
                        "reason": reason,
                        "error_code": exc.error_code,
                        "error": str(exc),
                        "unflushed_ticks": session.ticks_since_flush,
                    },
                )
                return False

            self._acknowledge(session, pending)

        self.log.debug(
            "Progression flushed",
            extra={"user_id": session.user_id, "reason": reason, "seq": pending.seq},
        )
        return True

    async def commit(
        self,
        session: CultivationSession,
        pending: PendingWrite,
        writer: Callable[[], Awaitable[T]],
    ) -> T:
        """
        Run a store call that persists ``pending`` alongside other rows.

        Errors propagate so the caller can leave memory unchanged. The
        caller applies its own memory change right after this returns,
        before any write queued behind it gets the lock.
        """
        async with session.write_lock:
            session.committing = True
            try:
                result = await writer()
                self._acknowledge(session, pending)
            finally:
                session.committing = False
        return result

    def _acknowledge(self, session: CultivationSession, pending: PendingWrite) -> None:
        session.written_seq = pending.seq
        session.ticks_since_flush = max(0, session.ticks_since_flush - pending.ticks)
        if pending.is_full:
            session.dirty = False
        session.state.mark_persisted(pending.snapshot.last_update_time)

    # =========================================================================
    # CADENCE
    # =========================================================================

    def start(self, session: CultivationSession) -> asyncio.Task:
        if session.flush_task is None or session.flush_task.done():
            session.flush_task = asyncio.get_running_loop().create_task(
                self._run(session), name=f"cultivation-flush-{session.user_id}"
            )
        return session.flush_task

    async def _run(self, session: CultivationSession) -> None:
        with LogContext(user_id=session.user_id, operation="flush"):
            await self._loop(session)

    async def _loop(self, session: CultivationSession) -> None:
        while True:
            await asyncio.sleep(self._flush_interval)
            try:
                async with self._boundary.hold(session.user_id, "flush"):
                    if not session.state.is_meditating:
                        return
                    pending = self.capture(session)
            except ConcurrencyViolationError:
                self.log.warning(
                    "Flush skipped: boundary busy",
                    extra={"user_id": session.user_id, "unflushed_ticks": session.ticks_since_flush},
                )
                continue

            # Cancelling the loop must not abort a write already under way
            await asyncio.shield(self._spawn(self.write(session, pending, "cadence")))

    # =========================================================================
    # OUT-OF-BAND FLUSHES
    # =========================================================================

    def flush_in_background(self, session: CultivationSession) -> asyncio.Task:
        """Best-effort flush for a hidden/suspended host. Returns the task."""

        async def _flush() -> bool:
            try:
                async with self._boundary.hold(session.user_id, "visibility_flush"):
                    pending = self.capture(session)
            except ConcurrencyViolationError:
                self.log.warning(
                    "Visibility flush skipped: boundary busy",
                    extra={"user_id": session.user_id},
                )
                return False
            return await self.write(session, pending, "visibility_hidden")

        return self._spawn(_flush())

    def emergency_flush(self, session: CultivationSession) -> asyncio.Task:
        """
        Fire-and-forget write of the last in-memory values with meditation
        forced off. Stops the session's loops and returns without waiting.

        Must be called from inside a running event loop.
        """
        session.cancel_loops()
        session.state.is_meditating = False
        pending = self.capture(session, FLUSH_FIELDS, is_meditating=False)

        self.log.info(
            "Emergency flush scheduled",
            extra={
                "user_id": session.user_id,
                "spirit_power": pending.snapshot.spirit_power,
                "unflushed_ticks": pending.ticks,
            },
        )
        return self._spawn(self.write(session, pending, "emergency"))

    def _spawn(self, coro: Awaitable[T]) -> asyncio.Task:
        task = asyncio.ensure_future(coro)
        self._background.add(task)
        task.add_done_callback(self._background.discard)
        return task

    async def drain(self) -> None:
        """Wait for every background write still in flight."""
        if self._background:
            await asyncio.gather(*list(self._background), return_exceptions=True)
