"""
Realm - one ordered tier of the cultivation ladder.
Schema only.
"""

from __future__ import annotations

from sqlalchemy import BigInteger, Boolean, CheckConstraint, Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from src.core.database.base import Base, IdMixin, TimestampMixin


class Realm(Base, IdMixin, TimestampMixin):
    """
    Catalog tier.

    Schema-only:
    - name
    - order_index (unique ordering key; next tier = order_index + 1)
    - spirit_power_required (threshold to break into this tier)
    - is_major_tier
    """

    __tablename__ = "realms"
    __table_args__ = (
        Index("ix_realms_order_index", "order_index", unique=True),
        CheckConstraint("spirit_power_required >= 0", name="power_required_non_negative"),
    )

    name: Mapped[str] = mapped_column(String(100), nullable=False)
    order_index: Mapped[int] = mapped_column(Integer, nullable=False)
    spirit_power_required: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    is_major_tier: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    def __repr__(self) -> str:
        return f"<Realm id={self.id} order={self.order_index} name={self.name!r}>"
