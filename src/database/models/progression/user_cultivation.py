"""
UserCultivation - persisted progression record, one row per player.
Schema only.
"""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import (
    BigInteger,
    Boolean,
    CheckConstraint,
    DateTime,
    ForeignKey,
    Integer,
    String,
)
from sqlalchemy.orm import Mapped, mapped_column

from src.core.database.base import Base, IdMixin, TimestampMixin, utc_now


class UserCultivation(Base, IdMixin, TimestampMixin):
    """
    Player cultivation state.

    Schema-only:
    - user_id (owning key from the identity collaborator)
    - realm_id / current_level
    - spirit_power / spirit_stones
    - breakthrough_bonus
    - is_meditating / last_update_time
    """

    __tablename__ = "user_cultivation"
    __table_args__ = (
        CheckConstraint("current_level BETWEEN 1 AND 9", name="level_range"),
        CheckConstraint("spirit_power >= 0", name="power_non_negative"),
        CheckConstraint("spirit_stones >= 0", name="stones_non_negative"),
        CheckConstraint("breakthrough_bonus BETWEEN 0 AND 100", name="bonus_range"),
    )

    user_id: Mapped[str] = mapped_column(String(64), nullable=False, unique=True, index=True)

    realm_id: Mapped[int] = mapped_column(
        BigInteger,
        ForeignKey("realms.id", ondelete="RESTRICT"),
        nullable=False,
    )
    current_level: Mapped[int] = mapped_column(Integer, nullable=False, default=1)

    spirit_power: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    spirit_stones: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    breakthrough_bonus: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    is_meditating: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    last_update_time: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utc_now
    )

    def __repr__(self) -> str:
        return (
            f"<UserCultivation user={self.user_id} realm={self.realm_id} "
            f"level={self.current_level} power={self.spirit_power}>"
        )
