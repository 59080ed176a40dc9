"""
Catalog ORM models (read-only reference data).

Exports:
- Realm
- CultivationMethod
"""

from .method import CultivationMethod
from .realm import Realm

__all__ = ["Realm", "CultivationMethod"]
