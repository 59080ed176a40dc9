"""
Domain models package.

Purpose
-------
Rich domain models that encapsulate the cultivation rules, validation and
state transitions.

Design Notes
------------
Domain models are separate from database models:
- Database models (src/database/models/): Anemic SQLAlchemy schemas
- Domain models (src/domain/models/): Rich objects with business logic

Services convert between the two with ``from_db`` / ``snapshot``.
"""

from .base import (
    AggregateRoot,
    DomainEvent,
    DomainValidationError,
    Entity,
    validate_non_negative,
    validate_not_empty,
    validate_positive,
    validate_range,
)
from .cultivation import (
    MAX_BREAKTHROUGH_BONUS,
    MAX_SUB_LEVEL,
    MIN_SUB_LEVEL,
    MethodDefinition,
    OwnedMethod,
    ProgressionSnapshot,
    ProgressionState,
    Tier,
)

__all__ = [
    # Base classes
    "Entity",
    "AggregateRoot",
    "DomainEvent",
    "DomainValidationError",
    # Validators
    "validate_positive",
    "validate_non_negative",
    "validate_range",
    "validate_not_empty",
    # Cultivation
    "Tier",
    "MethodDefinition",
    "OwnedMethod",
    "ProgressionSnapshot",
    "ProgressionState",
    "MIN_SUB_LEVEL",
    "MAX_SUB_LEVEL",
    "MAX_BREAKTHROUGH_BONUS",
]
