"""
CultivationStore - storage collaborator for player progression
================================================================

Handles:
- Onboarding a progression row (first tier, level 1, zeroed resources)
- Loading progression and owned methods into domain objects
- Blind snapshot overwrites for the flush cadence
- Debit + method mutation in one transaction for purchases and upgrades
- Single-statement method activation

Every public coroutine is one DatabaseService transaction. SQLAlchemy
failures surface as `PersistenceFailureError`; unique-constraint hits on
purchase surface as `InvalidTransitionError`.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Dict, List, Optional, Sequence

from sqlalchemy import case
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from src.core.database.service import DatabaseService
from src.core.logging.logger import get_logger
from src.database.models.progression import UserCultivation, UserMethod
from src.domain.models.cultivation import OwnedMethod, ProgressionSnapshot, ProgressionState
from src.modules.shared.base_repository import BaseRepository
from src.modules.shared.exceptions import (
    InvalidTransitionError,
    NotFoundError,
    PersistenceFailureError,
)

if TYPE_CHECKING:
    from logging import Logger

    from sqlalchemy.ext.asyncio import AsyncSession


# Fields written by the periodic, hidden and emergency flushes
FLUSH_FIELDS = ("spirit_power", "spirit_stones", "is_meditating", "last_update_time")

# Fields written after breakthroughs and method operations
FULL_FIELDS = (
    "tier_id",
    "current_level",
    "spirit_power",
    "spirit_stones",
    "breakthrough_bonus",
    "is_meditating",
    "last_update_time",
)

_COLUMN_NAMES = {"tier_id": "realm_id"}


def _snapshot_values(snapshot: ProgressionSnapshot, fields: Sequence[str]) -> Dict[str, Any]:
    return {_COLUMN_NAMES.get(name, name): getattr(snapshot, name) for name in fields}


class CultivationStore:
    """
    Async persistence for `ProgressionState` and `OwnedMethod`.

    Args:
        logger: Structured logger (defaults to this module's logger)
        database: DatabaseService-compatible class providing `get_session`
            and `get_transaction`
    """

    def __init__(
        self,
        logger: Optional[Logger] = None,
        database: type[DatabaseService] = DatabaseService,
    ) -> None:
        self.log = logger or get_logger(__name__)
        self._db = database
        self._progression_repo = BaseRepository[UserCultivation](UserCultivation, self.log)
        self._method_repo = BaseRepository[UserMethod](UserMethod, self.log)

    # -------------------------------------------------------------------------
    # Progression
    # -------------------------------------------------------------------------

    async def create_progression(self, user_id: str, tier_id: int) -> ProgressionState:
        """Insert the onboarding row for a new player."""
        try:
            async with self._db.get_transaction() as session:
                row = UserCultivation(
                    user_id=user_id,
                    realm_id=tier_id,
                    current_level=1,
                    spirit_power=0,
                    spirit_stones=0,
                    breakthrough_bonus=0,
                    is_meditating=False,
                )
                self._progression_repo.add(session, row)
                await self._progression_repo.flush(session)
                state = ProgressionState.from_db(row)
        except IntegrityError as exc:
            raise InvalidTransitionError(
                "onboard", f"Progression already exists for user {user_id}"
            ) from exc
        except SQLAlchemyError as exc:
            raise PersistenceFailureError("create_progression", user_id, exc) from exc

        self.log.info(
            "Progression created",
            extra={"user_id": user_id, "tier_id": tier_id},
        )
        return state

    async def load_progression(self, user_id: str) -> ProgressionState:
        """
        Raises:
            NotFoundError: No progression row for this user
        """
        async with self._db.get_session() as session:
            row = await self._progression_repo.find_one_where(
                session, UserCultivation.user_id == user_id
            )
            if row is None:
                raise NotFoundError("Progression", user_id)
            return ProgressionState.from_db(row)

    async def has_progression(self, user_id: str) -> bool:
        async with self._db.get_session() as session:
            return await self._progression_repo.exists(
                session, UserCultivation.user_id == user_id
            )

    async def save_snapshot(
        self,
        snapshot: ProgressionSnapshot,
        fields: Sequence[str] = FLUSH_FIELDS,
    ) -> None:
        """Blind overwrite of ``fields`` from ``snapshot``. No read-modify-write."""
        try:
            async with self._db.get_transaction() as session:
                await self._write_progression(session, snapshot, fields)
        except SQLAlchemyError as exc:
            raise PersistenceFailureError("save_snapshot", snapshot.user_id, exc) from exc

    async def _write_progression(
        self,
        session: AsyncSession,
        snapshot: ProgressionSnapshot,
        fields: Sequence[str],
    ) -> None:
        matched = await self._progression_repo.update_where(
            session,
            UserCultivation.user_id == snapshot.user_id,
            values=_snapshot_values(snapshot, fields),
        )
        if matched == 0:
            raise NotFoundError("Progression", snapshot.user_id)

    # -------------------------------------------------------------------------
    # Owned methods
    # -------------------------------------------------------------------------

    async def list_owned_methods(self, user_id: str) -> List[OwnedMethod]:
        async with self._db.get_session() as session:
            rows = await self._method_repo.find_many_where(
                session,
                UserMethod.user_id == user_id,
                order_by=[UserMethod.id],
            )
            return [OwnedMethod.from_db(row) for row in rows]

    async def get_owned_method(self, owned_method_id: int) -> Optional[OwnedMethod]:
        """Look up an owned method by id regardless of owner."""
        async with self._db.get_session() as session:
            row = await self._method_repo.get(session, owned_method_id)
            return OwnedMethod.from_db(row) if row is not None else None

    async def purchase_method(
        self, snapshot: ProgressionSnapshot, method_id: int
    ) -> OwnedMethod:
        """
        Persist an already-debited snapshot and the new OwnedMethod together.

        Raises:
            InvalidTransitionError: The method is already owned
            PersistenceFailureError: The transaction failed
        """
        try:
            async with self._db.get_transaction() as session:
                await self._write_progression(session, snapshot, FULL_FIELDS)
                row = UserMethod(
                    user_id=snapshot.user_id,
                    method_id=method_id,
                    current_level=1,
                    is_active=False,
                )
                self._method_repo.add(session, row)
                await self._method_repo.flush(session)
                owned = OwnedMethod.from_db(row)
        except IntegrityError as exc:
            raise InvalidTransitionError("purchase", "You already know this method") from exc
        except SQLAlchemyError as exc:
            raise PersistenceFailureError("purchase_method", snapshot.user_id, exc) from exc

        return owned

    async def upgrade_method(
        self,
        snapshot: ProgressionSnapshot,
        owned_method_id: int,
        new_level: int,
    ) -> OwnedMethod:
        """Persist an already-debited snapshot and the raised method level together."""
        try:
            async with self._db.get_transaction() as session:
                await self._write_progression(session, snapshot, FULL_FIELDS)
                row = await self._method_repo.find_one_where(
                    session,
                    UserMethod.id == owned_method_id,
                    UserMethod.user_id == snapshot.user_id,
                    for_update=True,
                )
                if row is None:
                    raise NotFoundError("OwnedMethod", owned_method_id)
                row.current_level = new_level
                await self._method_repo.flush(session)
                owned = OwnedMethod.from_db(row)
        except SQLAlchemyError as exc:
            raise PersistenceFailureError("upgrade_method", snapshot.user_id, exc) from exc

        return owned

    async def activate_method(self, user_id: str, owned_method_id: int) -> List[OwnedMethod]:
        """
        Make ``owned_method_id`` the only active method in one UPDATE.

        Returns the user's owned methods after the change.
        """
        try:
            async with self._db.get_transaction() as session:
                await self._method_repo.update_where(
                    session,
                    UserMethod.user_id == user_id,
                    values={
                        "is_active": case((UserMethod.id == owned_method_id, True), else_=False)
                    },
                )
                rows = await self._method_repo.find_many_where(
                    session,
                    UserMethod.user_id == user_id,
                    order_by=[UserMethod.id],
                )
                owned = [OwnedMethod.from_db(row) for row in rows]
        except SQLAlchemyError as exc:
            raise PersistenceFailureError("activate_method", user_id, exc) from exc

        return owned
