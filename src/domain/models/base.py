"""
Base domain model classes.

Purpose
-------
Foundational abstractions for rich domain models that encapsulate business
rules and state transitions, kept separate from the SQLAlchemy schema.

Responsibilities
----------------
- Define base Entity class with identity and equality semantics
- Define base AggregateRoot class for consistency boundaries
- Provide validation helpers for business invariants
- Track domain events raised by state transitions

Non-Responsibilities
--------------------
- Persistence (handled by repositories)
- Database schema (handled by SQLAlchemy models)
- Service orchestration (handled by service layer)

Usage Example
-------------
>>> class Cultivator(AggregateRoot):
...     def __init__(self, user_id: str, power: int):
...         super().__init__(user_id)
...         self.power = power
...
...     def gain(self, amount: int) -> None:
...         self.power += amount
...         self.add_domain_event("cultivation.power_gained", {
...             "user_id": self.id,
...             "amount": amount,
...         })
"""

from __future__ import annotations

from abc import ABC
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Hashable, List, Optional


# ============================================================================
# DOMAIN EVENTS
# ============================================================================


@dataclass
class DomainEvent:
    """
    A state change that already happened inside an aggregate.

    Attributes
    ----------
    event_name : str
        Event name (e.g., "cultivation.stones_found")
    payload : Dict[str, Any]
        Event payload with relevant data
    occurred_at : datetime
        When the event occurred (UTC)
    """

    event_name: str
    payload: Dict[str, Any]
    occurred_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


# ============================================================================
# ENTITY
# ============================================================================


class Entity(ABC):
    """
    Base class for entities with identity.

    Two entities with the same ID are the same entity even if their
    attributes differ.
    """

    def __init__(self, entity_id: Hashable) -> None:
        self._id = entity_id
        self._domain_events: List[DomainEvent] = []

    @property
    def id(self) -> Hashable:
        return self._id

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Entity):
            return False
        return type(self) is type(other) and self.id == other.id

    def __hash__(self) -> int:
        return hash((type(self).__name__, self.id))

    def add_domain_event(self, event_name: str, payload: Dict[str, Any]) -> None:
        """Record a domain event to be published by the owning service."""
        self._domain_events.append(DomainEvent(event_name=event_name, payload=payload))

    def clear_domain_events(self) -> List[DomainEvent]:
        """Clear and return all pending domain events."""
        events = self._domain_events.copy()
        self._domain_events.clear()
        return events

    def get_pending_events(self) -> List[DomainEvent]:
        return self._domain_events.copy()


# ============================================================================
# AGGREGATE ROOT
# ============================================================================


class AggregateRoot(Entity):
    """
    Entry point for all changes to a cluster of domain objects.

    Subclasses expose business methods that keep aggregate invariants and
    emit domain events for significant transitions.
    """


# ============================================================================
# DOMAIN MODEL VALIDATION
# ============================================================================


class DomainValidationError(Exception):
    """Raised when a domain object would enter an invalid state."""

    def __init__(self, message: str, field: Optional[str] = None):
        super().__init__(message)
        self.field = field


def validate_positive(value: float, field_name: str) -> None:
    """Raise DomainValidationError unless value > 0."""
    if value <= 0:
        raise DomainValidationError(
            f"{field_name} must be positive, got {value}",
            field=field_name,
        )


def validate_non_negative(value: float, field_name: str) -> None:
    """Raise DomainValidationError if value < 0."""
    if value < 0:
        raise DomainValidationError(
            f"{field_name} must be non-negative, got {value}",
            field=field_name,
        )


def validate_range(value: int, min_val: int, max_val: int, field_name: str) -> None:
    """Raise DomainValidationError unless min_val <= value <= max_val."""
    if not (min_val <= value <= max_val):
        raise DomainValidationError(
            f"{field_name} must be between {min_val} and {max_val}, got {value}",
            field=field_name,
        )


def validate_not_empty(value: str, field_name: str) -> None:
    """Raise DomainValidationError if the string is empty or whitespace."""
    if not value or not value.strip():
        raise DomainValidationError(
            f"{field_name} cannot be empty",
            field=field_name,
        )
