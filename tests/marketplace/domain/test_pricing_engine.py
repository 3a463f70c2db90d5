"""Tests for the pricing engine."""

import pytest
from marketplace.order.pricing import (
    PricingPolicy,
    compute_pricing,
    line_subtotal,
    shipping_for,
)


def _lines(*pairs):
    return [{"price": price, "quantity": quantity} for price, quantity in pairs]


class TestScenarioPricing:
    def test_subtotal_below_threshold_pays_shipping(self):
        pricing = compute_pricing(_lines((40.0, 1)), policy=PricingPolicy())
        assert pricing.subtotal == pytest.approx(40.0)
        assert pricing.shipping == pytest.approx(10.0)
        assert pricing.tax == pytest.approx(3.20)
        assert pricing.total == pytest.approx(53.20)

    def test_subtotal_above_threshold_ships_free(self):
        pricing = compute_pricing(_lines((60.0, 1)), policy=PricingPolicy())
        assert pricing.shipping == pytest.approx(0.0)
        assert pricing.tax == pytest.approx(4.80)
        assert pricing.total == pytest.approx(64.80)


class TestShippingThreshold:
    def test_exactly_at_threshold_still_pays_shipping(self):
        assert shipping_for(50.0, PricingPolicy()) == pytest.approx(10.0)

    def test_just_above_threshold_is_free(self):
        assert shipping_for(50.01, PricingPolicy()) == pytest.approx(0.0)

    def test_custom_policy(self):
        policy = PricingPolicy(tax_rate=0.1, free_shipping_threshold=100.0, flat_shipping_cost=5.0)
        pricing = compute_pricing(_lines((60.0, 1)), policy=policy)
        assert pricing.shipping == pytest.approx(5.0)
        assert pricing.tax == pytest.approx(6.0)
        assert pricing.total == pytest.approx(71.0)


class TestSubtotals:
    def test_subtotal_sums_price_times_quantity(self):
        pricing = compute_pricing(_lines((19.99, 3), (5.25, 2)), policy=PricingPolicy())
        assert pricing.subtotal == pytest.approx(70.47)

    def test_line_subtotal_rounds_to_cents(self):
        assert line_subtotal(0.1, 3) == pytest.approx(0.3)
        assert line_subtotal(19.99, 3) == 59.97

    def test_total_balances_parts(self):
        pricing = compute_pricing(_lines((12.34, 3), (7.77, 1)), discount=2.5, policy=PricingPolicy())
        assert pricing.total == pytest.approx(pricing.subtotal + pricing.tax + pricing.shipping - pricing.discount)


class TestDiscount:
    def test_discount_defaults_to_zero(self):
        assert compute_pricing(_lines((10.0, 1)), policy=PricingPolicy()).discount == 0.0

    def test_discount_is_subtracted_from_total(self):
        pricing = compute_pricing(_lines((40.0, 1)), discount=5.0, policy=PricingPolicy())
        assert pricing.total == pytest.approx(48.20)

    def test_discount_is_capped_at_subtotal(self):
        pricing = compute_pricing(_lines((10.0, 1)), discount=25.0, policy=PricingPolicy())
        assert pricing.discount == pytest.approx(10.0)

    def test_negative_discount_is_ignored(self):
        pricing = compute_pricing(_lines((10.0, 1)), discount=-3.0, policy=PricingPolicy())
        assert pricing.discount == 0.0


class TestPolicyFromSettings:
    def test_defaults_match_configured_values(self):
        policy = PricingPolicy.from_settings()
        assert policy.tax_rate == pytest.approx(0.08)
        assert policy.free_shipping_threshold == pytest.approx(50.0)
        assert policy.flat_shipping_cost == pytest.approx(10.0)
        assert policy.currency == "USD"

    def test_compute_uses_active_settings_without_explicit_policy(self):
        pricing = compute_pricing(_lines((40.0, 1)))
        assert pricing.total == pytest.approx(53.20)
        assert pricing.currency == "USD"
