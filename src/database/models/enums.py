"""
Database Model Enums
====================

Lightweight enumerations for database models.

These enums are declarative schema helpers shared by the ORM models and the
domain layer; they carry no business logic.
"""

from __future__ import annotations

import enum


class MethodRarity(str, enum.Enum):
    """
    Rarity grade of a cultivation method.

    Declared from most to least common; the order drives catalog listing and
    the purchase cost multiplier lookup.
    """

    COMMON = "common"
    UNCOMMON = "uncommon"
    RARE = "rare"
    EPIC = "epic"
    LEGENDARY = "legendary"

    @property
    def rank(self) -> int:
        return list(MethodRarity).index(self)


__all__ = ["MethodRarity"]
