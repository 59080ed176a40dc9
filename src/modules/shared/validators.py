"""
Cultivation Domain Validators

Purpose
-------
Raise-on-error checks shared by the cultivation services. Each returns None
on success and raises a structured domain exception otherwise.

Usage
-----
    from src.modules.shared.validators import validate_resource_cost

    validate_resource_cost("spirit_stones", required=2500, available=2000)
    # Raises: InsufficientResourcesError
"""

from __future__ import annotations

from .exceptions import InsufficientResourcesError, InvalidTransitionError


def validate_resource_cost(resource: str, required: int, available: int) -> None:
    """
    Validate that a player has sufficient resources.

    Raises:
        InsufficientResourcesError: If available < required
    """
    if available < required:
        raise InsufficientResourcesError(resource, required, available)


def validate_below_max_level(current_level: int, max_level: int) -> None:
    """
    Raises:
        InvalidTransitionError: If the method is already at its cap
    """
    if current_level >= max_level:
        raise InvalidTransitionError(
            "upgrade",
            f"Method is already at max level {max_level}",
        )


def validate_method_ownership(owner_id: str, user_id: str) -> None:
    """
    Raises:
        InvalidTransitionError: If the owned method belongs to someone else
    """
    if owner_id != user_id:
        raise InvalidTransitionError("method_access", "You do not own this method")


def validate_not_owned(already_owned: bool) -> None:
    """
    Raises:
        InvalidTransitionError: If the method has already been learned
    """
    if already_owned:
        raise InvalidTransitionError("purchase", "You already know this method")
