"""
Cultivation Formulas

Purpose
-------
Pure calculation functions for the cultivation mechanics: accrual speed,
method purchase and upgrade costs, breakthrough requirements and odds.

Design Notes
------------
All formulas:
- Accept parameters explicitly (no config access, no randomness)
- Return integers wherever the result is a resource amount
- Are shared by computation and reporting, so what a player is shown is
  exactly what a tick grants

Usage
-----
    from src.modules.shared.formulas import calculate_accrual_rate

    speed = calculate_accrual_rate(base_rate=10, multiplier=1.5, level=3)
"""

from __future__ import annotations

import math
from typing import Mapping, Optional


def calculate_accrual_rate(
    base_rate: int,
    multiplier: float = 1.0,
    level: Optional[int] = None,
    level_bonus_step: float = 0.1,
) -> int:
    """
    Spirit power gained per tick.

    ``floor(base_rate * multiplier * (1 + (level - 1) * step))``; with no
    active method pass the defaults and the result is ``base_rate``.

    Example:
        >>> calculate_accrual_rate(10)
        10
        >>> calculate_accrual_rate(10, multiplier=1.5, level=3)
        18
    """
    level_bonus = 1.0 if level is None else 1 + (level - 1) * level_bonus_step
    return math.floor(base_rate * multiplier * level_bonus)


def calculate_purchase_cost(
    upgrade_cost_base: int,
    rarity: str,
    rarity_multipliers: Mapping[str, int],
) -> int:
    """
    Spirit stones needed to learn a method.

    Example:
        >>> calculate_purchase_cost(100, "rare", {"rare": 25})
        2500
    """
    return upgrade_cost_base * int(rarity_multipliers[rarity])


def calculate_upgrade_cost(
    upgrade_cost_base: int,
    upgrade_cost_multiplier: float,
    current_level: int,
) -> int:
    """
    Spirit stones needed to raise a method from ``current_level``.

    Example:
        >>> calculate_upgrade_cost(100, 1.5, 1)
        100
        >>> calculate_upgrade_cost(100, 1.5, 3)
        225
    """
    return math.floor(upgrade_cost_base * upgrade_cost_multiplier ** (current_level - 1))


def calculate_minor_requirement(
    tier_power_required: int,
    current_level: int,
    cost_step: float = 0.5,
) -> int:
    """
    Spirit power needed for a sub-level breakthrough inside a tier.

    Example:
        >>> calculate_minor_requirement(1000, 8)
        5000
    """
    return math.floor(tier_power_required * (1 + current_level * cost_step))


def calculate_total_success_rate(base_rate: int, bonus: int, cap: int = 100) -> int:
    """
    Breakthrough success chance in percentage points, capped.

    Example:
        >>> calculate_total_success_rate(30, 20)
        50
        >>> calculate_total_success_rate(30, 95)
        100
    """
    return min(cap, base_rate + bonus)


def calculate_failure_power(spirit_power: int, retention: float = 0.5) -> int:
    """
    Spirit power left after a failed major breakthrough.

    Example:
        >>> calculate_failure_power(60000)
        30000
    """
    return math.floor(spirit_power * retention)


def calculate_progress_percent(spirit_power: int, required: Optional[int]) -> float:
    """
    Progress toward the next tier's requirement, 0..100.

    ``required`` of None means there is no next tier.
    """
    if required is None or required <= 0:
        return 100.0
    return min(100.0, spirit_power / required * 100)
