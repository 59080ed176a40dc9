"""
Player progression ORM models.

Exports:
- UserCultivation
- UserMethod
"""

from .user_cultivation import UserCultivation
from .user_method import UserMethod

__all__ = ["UserCultivation", "UserMethod"]
