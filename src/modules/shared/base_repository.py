"""
Base Repository Pattern

Purpose
-------
Type-safe, generic repository abstraction over SQLAlchemy 2.0 async sessions.
Repositories encapsulate query construction; the caller owns the session and
therefore the transaction.

Design Notes
------------
This base repository provides:
- Primary-key and conditional lookups (optionally SELECT FOR UPDATE)
- Ordered multi-row reads
- Existence/counting utilities
- Set-based UPDATEs that skip the identity map (blind overwrites)
- Debug logging for every query

What this class does NOT do:
- Manage transactions (CultivationStore/DatabaseService handle that)
- Contain business logic

Usage
-----
    class UserMethodRepository(BaseRepository[UserMethod]):
        async def list_for_user(self, session, user_id):
            return await self.find_many_where(
                session, UserMethod.user_id == user_id, order_by=[UserMethod.id]
            )
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Dict, Generic, List, Optional, Sequence, Type, TypeVar

from sqlalchemy import func, select, update

if TYPE_CHECKING:
    from logging import Logger

    from sqlalchemy import ColumnElement
    from sqlalchemy.ext.asyncio import AsyncSession

T = TypeVar("T")


class BaseRepository(Generic[T]):
    """
    Generic base repository.

    Type Parameters:
        T: The SQLAlchemy model class this repository manages
    """

    def __init__(self, model_class: Type[T], logger: Logger) -> None:
        self.model_class = model_class
        self.log = logger

    async def get(
        self,
        session: AsyncSession,
        id_value: Any,
        for_update: bool = False,
    ) -> Optional[T]:
        """Get a single record by primary key."""
        stmt = select(self.model_class).where(
            self.model_class.id == id_value  # type: ignore[attr-defined]
        )
        if for_update:
            stmt = stmt.with_for_update()

        result = await session.execute(stmt)
        instance = result.scalar_one_or_none()

        self.log.debug(
            f"Repository.get: {self.model_class.__name__}",
            extra={
                "model": self.model_class.__name__,
                "id": id_value,
                "found": instance is not None,
                "locked": for_update,
            },
        )
        return instance

    async def find_one_where(
        self,
        session: AsyncSession,
        *conditions: ColumnElement[bool],
        for_update: bool = False,
    ) -> Optional[T]:
        """Find a single record matching conditions."""
        stmt = select(self.model_class).where(*conditions)
        if for_update:
            stmt = stmt.with_for_update()

        result = await session.execute(stmt)
        instance = result.scalar_one_or_none()

        self.log.debug(
            f"Repository.find_one_where: {self.model_class.__name__}",
            extra={
                "model": self.model_class.__name__,
                "found": instance is not None,
                "locked": for_update,
            },
        )
        return instance

    async def find_many_where(
        self,
        session: AsyncSession,
        *conditions: ColumnElement[bool],
        order_by: Optional[Sequence[Any]] = None,
        limit: Optional[int] = None,
    ) -> List[T]:
        """Find multiple records matching conditions, optionally ordered."""
        stmt = select(self.model_class).where(*conditions)
        if order_by:
            stmt = stmt.order_by(*order_by)
        if limit is not None:
            stmt = stmt.limit(limit)

        result = await session.execute(stmt)
        instances = list(result.scalars().all())

        self.log.debug(
            f"Repository.find_many_where: {self.model_class.__name__}",
            extra={
                "model": self.model_class.__name__,
                "found_count": len(instances),
                "limit": limit,
            },
        )
        return instances

    async def exists(self, session: AsyncSession, *conditions: ColumnElement[bool]) -> bool:
        return await self.count(session, *conditions) > 0

    async def count(self, session: AsyncSession, *conditions: ColumnElement[bool]) -> int:
        stmt = select(func.count()).select_from(self.model_class).where(*conditions)
        result = await session.execute(stmt)
        count = result.scalar_one()

        self.log.debug(
            f"Repository.count: {self.model_class.__name__}",
            extra={"model": self.model_class.__name__, "count": count},
        )
        return count

    def add(self, session: AsyncSession, instance: T) -> T:
        session.add(instance)
        self.log.debug(
            f"Repository.add: {self.model_class.__name__}",
            extra={"model": self.model_class.__name__},
        )
        return instance

    async def flush(self, session: AsyncSession) -> None:
        await session.flush()

    async def update_where(
        self,
        session: AsyncSession,
        *conditions: ColumnElement[bool],
        values: Dict[str, Any],
    ) -> int:
        """
        Issue one UPDATE for every row matching ``conditions``.

        Loaded instances are not refreshed. Returns the matched row count.
        """
        stmt = (
            update(self.model_class)
            .where(*conditions)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        result = await session.execute(stmt)

        self.log.debug(
            f"Repository.update_where: {self.model_class.__name__}",
            extra={
                "model": self.model_class.__name__,
                "columns": sorted(values),
                "matched": result.rowcount,
            },
        )
        return result.rowcount
