from decimal import Decimal

from django.test import SimpleTestCase

from shipping.config import ShippingConfig, WeightTier
from shipping.resolver import (
    METHOD_DIGITAL,
    METHOD_FLAT,
    METHOD_FREE,
    METHOD_FREIGHT,
    METHOD_TIER,
    METHOD_UNKNOWN_WEIGHT,
    ShippingItem,
    known_weight_grams,
    resolve,
    tier_for_weight,
)

TIERS = (
    WeightTier(None, Decimal("9.99"), "Heavy"),
    WeightTier(500, Decimal("4.99"), "Light"),
)


def config(**kw):
    kw.setdefault("weight_tiers", TIERS)
    kw.setdefault("free_shipping_enabled", False)
    return ShippingConfig(**kw)


def item(weight=0, qty=1, **kw):
    return ShippingItem(quantity=qty, weight_grams=weight, **kw)


class WeightTierTests(SimpleTestCase):
    def test_tiers_are_matched_in_ascending_order(self):
        self.assertEqual(resolve([item(300)], 10, config()).cost, Decimal("4.99"))
        self.assertEqual(resolve([item(500)], 10, config()).cost, Decimal("4.99"))
        q = resolve([item(5000)], 10, config())
        self.assertEqual(q.cost, Decimal("9.99"))
        self.assertEqual(q.method, METHOD_TIER)
        self.assertEqual(q.label, "Heavy")

    def test_weight_is_multiplied_by_quantity(self):
        self.assertEqual(known_weight_grams([item(200, qty=3), item(0, qty=5)]), 600)
        self.assertEqual(resolve([item(200, qty=3)], 10, config()).cost, Decimal("9.99"))

    def test_unknown_weight_rate(self):
        q = resolve([item(0)], 10, config(unknown_weight_rate=Decimal("6.49")))
        self.assertEqual(q.method, METHOD_UNKNOWN_WEIGHT)
        self.assertEqual(q.cost, Decimal("6.49"))

    def test_flat_rate_when_no_tier_fits(self):
        cfg = config(weight_tiers=(WeightTier(500, Decimal("4.99")),), flat_rate=Decimal("8.00"))
        q = resolve([item(900)], 10, cfg)
        self.assertEqual(q.method, METHOD_FLAT)
        self.assertEqual(q.cost, Decimal("8.00"))
        self.assertIsNone(tier_for_weight(cfg.weight_tiers, 900))


class FreeAndDigitalTests(SimpleTestCase):
    def test_digital_only_cart(self):
        q = resolve([item(0, is_digital=True)], 100, config())
        self.assertEqual(q.cost, Decimal("0.00"))
        self.assertEqual(q.method, METHOD_DIGITAL)

    def test_mixed_cart_ignores_digital_items(self):
        q = resolve([item(0, is_digital=True), item(300)], 10, config())
        self.assertEqual(q.cost, Decimal("4.99"))

    def test_empty_cart_costs_nothing(self):
        self.assertEqual(resolve([], 0, config()).cost, Decimal("0.00"))

    def test_free_shipping_over_threshold_within_cap(self):
        cfg = config(
            free_shipping_enabled=True,
            free_shipping_threshold=Decimal("50"),
            free_shipping_weight_cap_grams=2000,
        )
        q = resolve([item(1000)], Decimal("60.00"), cfg)
        self.assertEqual(q.method, METHOD_FREE)
        self.assertEqual(q.cost, Decimal("0.00"))
        self.assertEqual(q.label, "Free Shipping")

    def test_free_shipping_boundaries(self):
        cfg = config(
            free_shipping_enabled=True,
            free_shipping_threshold=Decimal("50"),
            free_shipping_weight_cap_grams=2000,
        )
        self.assertEqual(resolve([item(1000)], 50, cfg).method, METHOD_FREE)
        self.assertEqual(resolve([item(1000)], "49.99", cfg).method, METHOD_TIER)
        self.assertEqual(resolve([item(2500)], 60, cfg).method, METHOD_TIER)

    def test_no_cap_means_any_weight(self):
        cfg = config(free_shipping_enabled=True, free_shipping_weight_cap_grams=None)
        self.assertEqual(resolve([item(90000)], 100, cfg).method, METHOD_FREE)

    def test_disabled_free_shipping(self):
        self.assertEqual(resolve([item(300)], 500, config()).method, METHOD_TIER)


class FreightQuoteTests(SimpleTestCase):
    def test_markup_applied(self):
        cfg = config(freight_markup_percent=Decimal("15"), minimum_shipping_charge=Decimal("2.99"))
        q = resolve([item(300, vid="V1")], 10, cfg, freight_quote=lambda items: Decimal("10.00"))
        self.assertEqual(q.method, METHOD_FREIGHT)
        self.assertEqual(q.cost, Decimal("11.50"))

    def test_minimum_charge(self):
        cfg = config(freight_markup_percent=Decimal("15"), minimum_shipping_charge=Decimal("2.99"))
        q = resolve([item(300, vid="V1")], 10, cfg, freight_quote=lambda items: 1.0)
        self.assertEqual(q.cost, Decimal("2.99"))

    def test_failures_fall_back_to_tiers(self):
        def broken(items):
            raise ConnectionError("down")

        for quoter in (broken, lambda items: None, lambda items: 0, lambda items: "n/a"):
            with self.subTest(quoter=quoter):
                q = resolve([item(300, vid="V1")], 10, config(), freight_quote=quoter)
                self.assertEqual(q.method, METHOD_TIER)
                self.assertEqual(q.cost, Decimal("4.99"))

    def test_quotes_disabled(self):
        q = resolve(
            [item(300)], 10, config(use_freight_quotes=False), freight_quote=lambda items: 10
        )
        self.assertEqual(q.method, METHOD_TIER)

    def test_free_shipping_beats_quote(self):
        cfg = config(free_shipping_enabled=True)
        q = resolve([item(300)], 100, cfg, freight_quote=lambda items: 10)
        self.assertEqual(q.method, METHOD_FREE)
