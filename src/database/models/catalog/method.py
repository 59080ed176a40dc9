"""
CultivationMethod - learnable technique definition.
Schema only.
"""

from __future__ import annotations

from sqlalchemy import BigInteger, CheckConstraint, Enum, Float, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from src.core.database.base import Base, IdMixin, TimestampMixin
from src.database.models.enums import MethodRarity


class CultivationMethod(Base, IdMixin, TimestampMixin):
    """
    Catalog method definition.

    Schema-only:
    - name / description
    - base_speed_multiplier (> 0)
    - upgrade_cost_base (> 0) / upgrade_cost_multiplier (>= 1)
    - max_level (>= 1)
    - rarity
    """

    __tablename__ = "cultivation_methods"
    __table_args__ = (
        CheckConstraint("base_speed_multiplier > 0", name="speed_positive"),
        CheckConstraint("upgrade_cost_base > 0", name="cost_base_positive"),
        CheckConstraint("upgrade_cost_multiplier >= 1", name="cost_multiplier_min"),
        CheckConstraint("max_level >= 1", name="max_level_min"),
    )

    name: Mapped[str] = mapped_column(String(100), nullable=False, unique=True)
    description: Mapped[str] = mapped_column(Text, nullable=False, default="")

    base_speed_multiplier: Mapped[float] = mapped_column(Float, nullable=False, default=1.0)
    upgrade_cost_base: Mapped[int] = mapped_column(BigInteger, nullable=False)
    upgrade_cost_multiplier: Mapped[float] = mapped_column(Float, nullable=False, default=1.5)
    max_level: Mapped[int] = mapped_column(Integer, nullable=False, default=10)

    rarity: Mapped[MethodRarity] = mapped_column(
        Enum(
            MethodRarity,
            name="method_rarity",
            values_callable=lambda members: [m.value for m in members],
            native_enum=False,
            length=16,
        ),
        nullable=False,
        default=MethodRarity.COMMON,
    )

    def __repr__(self) -> str:
        return f"<CultivationMethod id={self.id} name={self.name!r} rarity={self.rarity.value}>"
