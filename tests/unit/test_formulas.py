"""
Unit tests for the cultivation formulas.

Accrual speed, method costs, breakthrough requirements, odds and progress.
"""

import pytest

from src.modules.shared.formulas import (
    calculate_accrual_rate,
    calculate_failure_power,
    calculate_minor_requirement,
    calculate_progress_percent,
    calculate_purchase_cost,
    calculate_total_success_rate,
    calculate_upgrade_cost,
)

RARITY = {"common": 1, "uncommon": 5, "rare": 25, "epic": 100, "legendary": 500}


@pytest.mark.unit
class TestAccrualRate:
    def test_no_method_is_base_rate(self):
        assert calculate_accrual_rate(10) == 10

    def test_method_level_one_uses_multiplier_only(self):
        assert calculate_accrual_rate(10, multiplier=1.5, level=1) == 15

    def test_level_bonus_is_floored(self):
        # 10 * 1.5 * 1.2 = 18
        assert calculate_accrual_rate(10, multiplier=1.5, level=3) == 18
        # 10 * 1.5 * 1.1 = 16.5
        assert calculate_accrual_rate(10, multiplier=1.5, level=2) == 16

    def test_custom_level_step(self):
        assert calculate_accrual_rate(10, multiplier=2.0, level=2, level_bonus_step=0.5) == 30


@pytest.mark.unit
class TestMethodCosts:
    def test_rare_purchase_cost(self):
        assert calculate_purchase_cost(100, "rare", RARITY) == 2500

    @pytest.mark.parametrize(
        "rarity, expected",
        [("common", 100), ("uncommon", 500), ("epic", 10000), ("legendary", 50000)],
    )
    def test_purchase_cost_by_rarity(self, rarity, expected):
        assert calculate_purchase_cost(100, rarity, RARITY) == expected

    def test_unknown_rarity_raises(self):
        with pytest.raises(KeyError):
            calculate_purchase_cost(100, "mythic", RARITY)

    def test_upgrade_cost_first_level_is_base(self):
        assert calculate_upgrade_cost(100, 1.5, 1) == 100

    def test_upgrade_cost_grows_geometrically(self):
        assert calculate_upgrade_cost(100, 1.5, 2) == 150
        assert calculate_upgrade_cost(100, 1.5, 3) == 225
        assert calculate_upgrade_cost(100, 1.5, 4) == 337


@pytest.mark.unit
class TestBreakthroughFormulas:
    def test_minor_requirement_level_eight(self):
        assert calculate_minor_requirement(1000, 8) == 5000

    def test_minor_requirement_level_one(self):
        assert calculate_minor_requirement(1000, 1) == 1500

    def test_minor_requirement_first_tier_is_free(self):
        assert calculate_minor_requirement(0, 5) == 0

    def test_success_rate_adds_bonus(self):
        assert calculate_total_success_rate(30, 20) == 50

    def test_success_rate_is_capped(self):
        assert calculate_total_success_rate(30, 95) == 100
        assert calculate_total_success_rate(100, 0) == 100

    def test_failure_keeps_half(self):
        assert calculate_failure_power(60000) == 30000
        assert calculate_failure_power(7) == 3


@pytest.mark.unit
class TestProgressPercent:
    def test_partial_progress(self):
        assert calculate_progress_percent(250, 1000) == pytest.approx(25.0)

    def test_progress_is_capped(self):
        assert calculate_progress_percent(5000, 1000) == 100.0

    def test_last_tier_is_complete(self):
        assert calculate_progress_percent(0, None) == 100.0

    def test_zero_requirement_is_complete(self):
        assert calculate_progress_percent(0, 0) == 100.0
