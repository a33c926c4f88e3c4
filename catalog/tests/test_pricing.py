import math
import random
from decimal import Decimal

from django.test import SimpleTestCase, TestCase, override_settings

from catalog.models import StoreSetting
from catalog.pricing import (
    PRICING_SETTING_KEY,
    PricingConfig,
    compute_compare_at_price,
    compute_pricing,
    get_pricing_config,
    price_for_margin,
    save_pricing_config,
    should_auto_hide,
    to_money,
)


class ComputePricingTests(SimpleTestCase):
    def test_standard_cost_plus(self):
        r = compute_pricing(10, 3)
        self.assertEqual(r.retail_price, 25.99)
        self.assertEqual(r.processor_fee, 1.05)
        self.assertEqual(r.total_cost, 14.05)
        self.assertEqual(r.margin_dollars, 11.94)
        self.assertEqual(r.margin_percent, 45.9)
        self.assertTrue(r.is_viable)

    def test_float_noise_does_not_add_a_dollar(self):
        self.assertEqual(compute_pricing(10.1, 2.9).retail_price, 25.99)

    def test_plain_rounding_when_charm_pricing_off(self):
        r = compute_pricing(10, 3, config=PricingConfig(round_to_99=False))
        self.assertEqual(r.retail_price, 26.0)

    def test_markup_argument_overrides_config(self):
        self.assertEqual(compute_pricing(10, 3, 3).retail_price, 38.99)

    def test_unusable_inputs_are_not_viable(self):
        for supplier, shipping in [
            (0, 3),
            (-1, 3),
            (10, -1),
            (math.nan, 3),
            (math.inf, 3),
            ("abc", 3),
            (None, 3),
            (10, None),
        ]:
            with self.subTest(supplier=supplier, shipping=shipping):
                r = compute_pricing(supplier, shipping)
                self.assertFalse(r.is_viable)
                self.assertEqual(r.retail_price, 0.0)

    def test_zero_markup(self):
        self.assertFalse(compute_pricing(10, 3, 0).is_viable)

    def test_below_margin_floor(self):
        r = compute_pricing(10, 3, 1.2)
        self.assertEqual(r.retail_price, 15.99)
        self.assertLess(r.margin_percent, 40)
        self.assertFalse(r.is_viable)


class PricingHelpersTests(SimpleTestCase):
    def test_compare_at_is_repeatable_with_seed(self):
        expected = round(25.99 * random.Random(1).uniform(1.3, 1.6), 2)
        got = compute_compare_at_price(25.99, rng=random.Random(1))
        self.assertAlmostEqual(got, expected, places=2)
        self.assertTrue(25.99 * 1.3 - 0.01 <= got <= 25.99 * 1.6 + 0.01)

    def test_compare_at_band_order_does_not_matter(self):
        config = PricingConfig(compare_at_min=1.6, compare_at_max=1.3)
        got = compute_compare_at_price(10.0, config, random.Random(3))
        self.assertTrue(12.99 <= got <= 16.01)

    def test_price_for_margin(self):
        retail = price_for_margin(10, 3, 40)
        self.assertEqual(retail, 23.99)
        self.assertGreaterEqual(compute_pricing(10, 3, retail / 13).margin_percent, 40)

    def test_price_for_margin_unreachable(self):
        with self.assertRaises(ValueError):
            price_for_margin(10, 3, 98)

    def test_should_auto_hide(self):
        self.assertTrue(should_auto_hide(39.9))
        self.assertFalse(should_auto_hide(40.0))
        self.assertFalse(should_auto_hide(20, PricingConfig(minimum_margin_percent=15)))

    def test_to_money(self):
        self.assertEqual(to_money(1.005), Decimal("1.01"))
        self.assertEqual(to_money(None), Decimal("0.00"))
        self.assertEqual(to_money("12.5"), Decimal("12.50"))

    def test_config_from_mapping(self):
        config = PricingConfig.from_mapping(
            {"markup_multiplier": "2.5", "round_to_99": 0, "bogus": 1, "fee_fixed": None}
        )
        self.assertEqual(config.markup_multiplier, 2.5)
        self.assertFalse(config.round_to_99)
        self.assertEqual(config.fee_fixed, 0.30)


class PricingConfigStoreTests(TestCase):
    @override_settings(PRICING_DEFAULTS={"markup_multiplier": 2.2})
    def test_settings_then_stored_overrides(self):
        self.assertEqual(get_pricing_config().markup_multiplier, 2.2)

        StoreSetting.set_value(PRICING_SETTING_KEY, {"minimum_margin_percent": 35})
        config = get_pricing_config()
        self.assertEqual(config.markup_multiplier, 2.2)
        self.assertEqual(config.minimum_margin_percent, 35.0)

    def test_save_round_trips(self):
        save_pricing_config(PricingConfig(markup_multiplier=3.0))
        self.assertEqual(get_pricing_config().markup_multiplier, 3.0)
