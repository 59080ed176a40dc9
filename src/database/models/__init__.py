"""
Database Models Package
========================

SQLAlchemy ORM models for the cultivation engine, organized by domain.

Conventions:
- Schema-only, no business logic
- Use Mapped[] syntax with mapped_column()
- Inherit from IdMixin and TimestampMixin
- Explicit foreign key constraints

Domain Organization:
--------------------
- catalog: Read-only reference data (Realm, CultivationMethod)
- progression: Player state (UserCultivation, UserMethod)
- enums: Shared type-safe enumerations
"""

from src.core.database.base import Base

from .catalog import CultivationMethod, Realm
from .enums import MethodRarity
from .progression import UserCultivation, UserMethod

__all__ = [
    "Base",
    # Catalog
    "Realm",
    "CultivationMethod",
    # Progression
    "UserCultivation",
    "UserMethod",
    # Enums
    "MethodRarity",
]
