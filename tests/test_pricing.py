"""
Money helper tests: dynamic pricing tiers, tax rounding, tolerant comparison.
"""

from shopcore.catalog import DynamicPriceRange
from shopcore.pricing import apply_dynamic_pricing, calculate_tax_amount, money_differs, round_money

TIERS = [
    DynamicPriceRange(min_quantity=5, price=8.0),
    DynamicPriceRange(min_quantity=10, price=6.0),
    DynamicPriceRange(min_quantity=1, price=10.0),
]


class TestDynamicPricing:
    def test_largest_reached_tier_wins(self):
        assert apply_dynamic_pricing(12.0, True, TIERS, 7) == 8.0

    def test_low_quantity_uses_lowest_tier(self):
        assert apply_dynamic_pricing(12.0, True, TIERS, 3) == 10.0

    def test_tier_boundary_is_inclusive(self):
        assert apply_dynamic_pricing(12.0, True, TIERS, 10) == 6.0
        assert apply_dynamic_pricing(12.0, True, TIERS, 5) == 8.0

    def test_below_every_tier_uses_base_price(self):
        assert apply_dynamic_pricing(12.0, True, TIERS, 0) == 12.0

    def test_storage_order_does_not_matter(self):
        for order in (TIERS, list(reversed(TIERS)), sorted(TIERS, key=lambda t: t.price)):
            assert apply_dynamic_pricing(12.0, True, order, 7) == 8.0

    def test_disabled_or_empty_uses_base_price(self):
        assert apply_dynamic_pricing(12.0, False, TIERS, 7) == 12.0
        assert apply_dynamic_pricing(12.0, True, [], 7) == 12.0
        assert apply_dynamic_pricing(12.0, True, None, 7) == 12.0


class TestTaxAndRounding:
    def test_tax_amount(self):
        assert calculate_tax_amount(100.0, 16) == 16.0
        assert calculate_tax_amount(50.0, 16) == 8.0

    def test_tax_rounds_half_up(self):
        assert calculate_tax_amount(0.5, 1) == 0.01

    def test_round_money_half_up(self):
        # float round() would give 2.67 here
        assert round_money(2.675) == 2.68
        assert round_money(1.005) == 1.01

    def test_one_cent_tolerance_is_exact(self):
        assert not money_differs(16.01, 16.00)
        assert not money_differs(15.99, 16.00)
        assert money_differs(16.02, 16.00)

    def test_float_noise_is_not_a_difference(self):
        assert not money_differs(0.1 + 0.2, 0.3)
