"""
Cultivation catalog: the tier ladder and the learnable methods.

The catalog is read once at startup and shared read-only by every session,
so lookups need no locking. Editing the catalog is an admin concern handled
outside this engine; a reload builds a fresh `Catalog` object.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Dict, Iterable, List, Optional, Sequence, Tuple

from sqlalchemy.exc import SQLAlchemyError

from src.core.database.service import DatabaseService
from src.core.exceptions import DatabaseError
from src.core.logging.logger import get_logger
from src.database.models.catalog import CultivationMethod, Realm
from src.domain.models.base import DomainValidationError
from src.domain.models.cultivation import MethodDefinition, Tier
from src.modules.shared.base_repository import BaseRepository
from src.modules.shared.exceptions import NotFoundError

if TYPE_CHECKING:
    from logging import Logger


class Catalog:
    """
    Immutable, ordered view of tiers and methods.

    Tiers are ordered by ``order_index``; methods by rarity, then upgrade
    cost, then id.
    """

    def __init__(self, tiers: Iterable[Tier], methods: Iterable[MethodDefinition]) -> None:
        ordered = sorted(tiers, key=lambda t: t.order_index)
        if not ordered:
            raise DomainValidationError("catalog requires at least one tier", field="tiers")

        by_order: Dict[int, Tier] = {}
        for tier in ordered:
            if tier.order_index in by_order:
                raise DomainValidationError(
                    f"duplicate tier order_index {tier.order_index}",
                    field="order_index",
                )
            by_order[tier.order_index] = tier

        self._tiers: Tuple[Tier, ...] = tuple(ordered)
        self._tiers_by_id: Dict[int, Tier] = {t.id: t for t in ordered}
        self._tiers_by_order = by_order

        self._methods: Tuple[MethodDefinition, ...] = tuple(
            sorted(methods, key=lambda m: (m.rarity.rank, m.upgrade_cost_base, m.id))
        )
        self._methods_by_id: Dict[int, MethodDefinition] = {m.id: m for m in self._methods}

    @property
    def tiers(self) -> Tuple[Tier, ...]:
        return self._tiers

    @property
    def methods(self) -> Tuple[MethodDefinition, ...]:
        return self._methods

    @property
    def first_tier(self) -> Tier:
        return self._tiers[0]

    def tier(self, tier_id: int) -> Tier:
        try:
            return self._tiers_by_id[tier_id]
        except KeyError:
            raise NotFoundError("Tier", tier_id) from None

    def next_tier(self, tier: Tier) -> Optional[Tier]:
        """The tier at ``order_index + 1`` exactly, or None."""
        return self._tiers_by_order.get(tier.order_index + 1)

    def method(self, method_id: int) -> MethodDefinition:
        try:
            return self._methods_by_id[method_id]
        except KeyError:
            raise NotFoundError("Method", method_id) from None

    def unowned_methods(self, owned_method_ids: Iterable[int]) -> List[MethodDefinition]:
        owned = set(owned_method_ids)
        return [m for m in self._methods if m.id not in owned]

    def __repr__(self) -> str:
        return f"<Catalog tiers={len(self._tiers)} methods={len(self._methods)}>"


class CatalogService:
    """Loads the catalog from the `realms` and `cultivation_methods` tables."""

    def __init__(
        self,
        logger: Optional[Logger] = None,
        database: type[DatabaseService] = DatabaseService,
    ) -> None:
        self.log = logger or get_logger(__name__)
        self._db = database
        self._realm_repo = BaseRepository[Realm](Realm, self.log)
        self._method_repo = BaseRepository[CultivationMethod](CultivationMethod, self.log)

    async def load(self) -> Catalog:
        """
        Raises:
            DatabaseError: The catalog tables could not be read
            DomainValidationError: The stored tiers do not form a valid ladder
        """
        try:
            async with self._db.get_session() as session:
                realms: Sequence[Realm] = await self._realm_repo.find_many_where(
                    session, order_by=[Realm.order_index]
                )
                method_rows: Sequence[CultivationMethod] = await self._method_repo.find_many_where(
                    session, order_by=[CultivationMethod.id]
                )
        except SQLAlchemyError as exc:
            raise DatabaseError("load_catalog", exc) from exc

        catalog = Catalog(
            (Tier.from_db(row) for row in realms),
            (MethodDefinition.from_db(row) for row in method_rows),
        )

        self.log.info(
            "Catalog loaded",
            extra={"tier_count": len(catalog.tiers), "method_count": len(catalog.methods)},
        )
        return catalog
