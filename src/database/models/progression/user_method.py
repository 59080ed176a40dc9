"""
UserMethod - a cultivation method learned by a player.
Schema only.
"""

from __future__ import annotations

from sqlalchemy import BigInteger, Boolean, CheckConstraint, ForeignKey, Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from src.core.database.base import Base, IdMixin, TimestampMixin


class UserMethod(Base, IdMixin, TimestampMixin):
    """
    Owned method.

    Schema-only:
    - user_id / method_id (unique pair; methods are never unlearned)
    - current_level
    - is_active (at most one per user, enforced by the store's
      single-statement activation)
    """

    __tablename__ = "user_methods"
    __table_args__ = (
        Index("ix_user_methods_user_method", "user_id", "method_id", unique=True),
        CheckConstraint("current_level >= 1", name="level_min"),
    )

    user_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    method_id: Mapped[int] = mapped_column(
        BigInteger,
        ForeignKey("cultivation_methods.id", ondelete="RESTRICT"),
        nullable=False,
    )
    current_level: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    def __repr__(self) -> str:
        return (
            f"<UserMethod id={self.id} user={self.user_id} method={self.method_id} "
            f"level={self.current_level} active={self.is_active}>"
        )
