from decimal import Decimal
from unittest import mock

from django.db import DatabaseError
from django.test import SimpleTestCase, TestCase, override_settings

from catalog.models import StoreSetting
from providers.base import FreightOption
from providers.exceptions import SupplierUnavailable
from shipping.config import (
    SHIPPING_SETTING_KEY,
    ShippingConfig,
    WeightTier,
    get_shipping_config,
    save_shipping_config,
)
from shipping.freight import cheapest_price, make_freight_quoter, pick_option
from shipping.resolver import ShippingItem


class ShippingConfigTests(SimpleTestCase):
    def test_from_mapping_coerces_types(self):
        cfg = ShippingConfig.from_mapping(
            {
                "free_shipping_enabled": 0,
                "free_shipping_threshold": "75",
                "free_shipping_weight_cap_grams": "",
                "flat_rate": "-3",
                "unknown_weight_rate": "abc",
                "weight_tiers": [{"max_weight_grams": "1000", "price": "6.5"}, {"price": 11}],
                "nonsense": True,
            }
        )
        self.assertFalse(cfg.free_shipping_enabled)
        self.assertEqual(cfg.free_shipping_threshold, Decimal("75.00"))
        self.assertIsNone(cfg.free_shipping_weight_cap_grams)
        self.assertEqual(cfg.flat_rate, Decimal("0.00"))
        self.assertEqual(cfg.unknown_weight_rate, Decimal("5.99"))
        self.assertEqual(
            cfg.weight_tiers,
            (WeightTier(1000, Decimal("6.50")), WeightTier(None, Decimal("11.00"))),
        )

    def test_as_dict_sorts_tiers_catch_all_last(self):
        cfg = ShippingConfig(
            weight_tiers=(WeightTier(None, Decimal("9.99")), WeightTier(500, Decimal("4.99")))
        )
        tiers = cfg.as_dict()["weight_tiers"]
        self.assertEqual([t["max_weight_grams"] for t in tiers], [500, None])

    def test_partial_update_keeps_base(self):
        base = ShippingConfig(flat_rate=Decimal("6.00"))
        cfg = ShippingConfig.from_mapping({"free_shipping_threshold": 40}, base)
        self.assertEqual(cfg.flat_rate, Decimal("6.00"))
        self.assertEqual(cfg.free_shipping_threshold, Decimal("40.00"))


class ShippingConfigStoreTests(TestCase):
    @override_settings(SHIPPING_DEFAULTS={"flat_rate": "7.50"})
    def test_stored_config_overrides_settings(self):
        self.assertEqual(get_shipping_config().flat_rate, Decimal("7.50"))
        StoreSetting.set_value(SHIPPING_SETTING_KEY, {"free_shipping_threshold": "30"})
        cfg = get_shipping_config()
        self.assertEqual(cfg.flat_rate, Decimal("7.50"))
        self.assertEqual(cfg.free_shipping_threshold, Decimal("30.00"))

    def test_save_and_reload(self):
        save_shipping_config(ShippingConfig(weight_tiers=(WeightTier(None, Decimal("3.33")),)))
        self.assertEqual(get_shipping_config().weight_tiers, (WeightTier(None, Decimal("3.33")),))

    def test_storage_failure_uses_defaults(self):
        with mock.patch.object(StoreSetting, "get_value", side_effect=DatabaseError("gone")):
            cfg = get_shipping_config()
        self.assertIsInstance(cfg, ShippingConfig)


class FreightHelpersTests(SimpleTestCase):
    OPTIONS = [
        FreightOption("CJPacket", 6.0),
        FreightOption("Baked In", 0.0),
        FreightOption("USPS+", 8.0),
    ]

    def test_cheapest_ignores_zero(self):
        self.assertEqual(cheapest_price(self.OPTIONS), 6.0)
        self.assertIsNone(cheapest_price([FreightOption("Free", 0.0)]))

    def test_pick_prefers_fulfilment_line(self):
        self.assertEqual(pick_option(self.OPTIONS).name, "USPS+")
        self.assertEqual(pick_option(self.OPTIONS[:2]).name, "CJPacket")

    def test_quoter(self):
        client = mock.Mock()
        client.calculate_freight.return_value = self.OPTIONS
        quote = make_freight_quoter(client)

        self.assertEqual(quote([ShippingItem(quantity=2, vid="V1")]), Decimal("8.0"))
        client.calculate_freight.assert_called_once_with(
            end_country_code="US",
            products=[{"vid": "V1", "quantity": 2}],
            start_country_code="US",
        )

    def test_quoter_gives_up_without_vids_or_on_error(self):
        client = mock.Mock()
        quote = make_freight_quoter(client)
        self.assertIsNone(quote([ShippingItem(vid="V1"), ShippingItem(vid=None)]))
        client.calculate_freight.assert_not_called()

        client.calculate_freight.side_effect = SupplierUnavailable("down")
        self.assertIsNone(quote([ShippingItem(vid="V1")]))
