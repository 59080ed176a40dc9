"""
Unit tests for the cultivation Catalog.
"""

import pytest

from src.domain.models.base import DomainValidationError
from src.domain.models.cultivation import Tier
from src.modules.cultivation.catalog import Catalog
from src.modules.shared.exceptions import NotFoundError
from tests.conftest import make_methods, make_tiers


@pytest.mark.unit
class TestTierLadder:
    def test_tiers_sorted_by_order_index(self):
        catalog = Catalog(reversed(make_tiers()), make_methods())

        assert [t.order_index for t in catalog.tiers] == [1, 2, 3, 4]
        assert catalog.first_tier.name == "Mortal"

    def test_next_tier(self, catalog):
        tier = catalog.tier(3)

        assert catalog.next_tier(tier).id == 4

    def test_last_tier_has_no_next(self, catalog):
        assert catalog.next_tier(catalog.tier(4)) is None

    def test_next_tier_requires_contiguous_order(self):
        tiers = [
            Tier(id=1, name="A", order_index=1, spirit_power_required=0),
            Tier(id=2, name="B", order_index=3, spirit_power_required=100),
        ]
        catalog = Catalog(tiers, [])

        assert catalog.next_tier(catalog.tier(1)) is None

    def test_unknown_tier_raises(self, catalog):
        with pytest.raises(NotFoundError):
            catalog.tier(99)

    def test_empty_catalog_rejected(self):
        with pytest.raises(DomainValidationError):
            Catalog([], make_methods())

    def test_duplicate_order_index_rejected(self):
        tiers = [
            Tier(id=1, name="A", order_index=1, spirit_power_required=0),
            Tier(id=2, name="B", order_index=1, spirit_power_required=100),
        ]
        with pytest.raises(DomainValidationError):
            Catalog(tiers, [])


@pytest.mark.unit
class TestMethods:
    def test_methods_ordered_by_rarity(self, catalog):
        assert [m.rarity.value for m in catalog.methods] == ["common", "rare", "legendary"]

    def test_method_lookup(self, catalog):
        assert catalog.method(2).name == "Azure Cloud Sutra"

    def test_unknown_method_raises(self, catalog):
        with pytest.raises(NotFoundError) as exc_info:
            catalog.method(42)

        assert exc_info.value.error_code == "METHOD_NOT_FOUND"

    def test_unowned_methods(self, catalog):
        assert [m.id for m in catalog.unowned_methods([1, 3])] == [2]
