from __future__ import annotations

import json
from decimal import Decimal
from unittest import mock

from django.contrib.auth import get_user_model
from django.test import TestCase
from django.urls import reverse

from catalog.models import Product, StoreSetting, Variant
from providers.base import FreightOption
from providers.exceptions import SupplierUnavailable
from shipping.config import SHIPPING_SETTING_KEY


def sellable_variant(vid="V1", price="10.00", weight=300, **product_kw):
    product_kw.setdefault("retail_price", Decimal(price))
    product = Product.objects.create(
        name=f"Product {vid}", status=Product.STATUS_ACTIVE, **product_kw
    )
    return Variant.objects.create(
        product=product, external_vid=vid, price=Decimal(price), weight_grams=weight
    )


class CartQuoteViewTests(TestCase):
    def add_to_cart(self, variant, qty=1):
        self.client.post(reverse("orders:cart_add"), {"variant_id": variant.id, "qty": qty})

    def test_weight_tier_without_supplier_account(self):
        self.add_to_cart(sellable_variant())

        data = self.client.get(reverse("shipping:cart_quote")).json()

        self.assertEqual(data["subtotal"], "10.00")
        self.assertEqual(data["method"], "Weight Tier")
        self.assertEqual(data["cost"], "4.99")

    def test_free_shipping_over_threshold(self):
        self.add_to_cart(sellable_variant(price="30.00"), qty=2)
        data = self.client.get(reverse("shipping:cart_quote")).json()
        self.assertEqual(data["method"], "Free Shipping")
        self.assertEqual(data["cost"], "0.00")

    @mock.patch("shipping.views.get_client")
    def test_live_freight_quote(self, get_client):
        get_client.return_value.calculate_freight.return_value = [FreightOption("USPS+", 10.0)]
        self.add_to_cart(sellable_variant())

        data = self.client.get(reverse("shipping:cart_quote")).json()

        self.assertEqual(data["method"], "Freight Quote")
        self.assertEqual(data["cost"], "11.50")

    def test_empty_cart(self):
        data = self.client.get(reverse("shipping:cart_quote")).json()
        self.assertEqual(data["cost"], "0.00")
        self.assertEqual(data["subtotal"], "0")


class FreightEstimateViewTests(TestCase):
    url = "shipping:freight_estimate"

    def post(self, payload):
        return self.client.post(
            reverse(self.url), json.dumps(payload), content_type="application/json"
        )

    @mock.patch("shipping.views.get_client")
    def test_lists_options(self, get_client):
        client = get_client.return_value
        client.calculate_freight.return_value = [FreightOption("CJPacket", 6.5, "7-12")]

        resp = self.post({"vid": "V1", "countryCode": "CA", "quantity": 2})

        self.assertEqual(resp.status_code, 200)
        self.assertEqual(
            resp.json()["options"],
            [{"carrier": "CJPacket", "price": 6.5, "estimatedDays": "7-12"}],
        )
        client.calculate_freight.assert_called_once_with(
            end_country_code="CA", products=[{"vid": "V1", "quantity": 2}]
        )

    def test_vid_required(self):
        self.assertEqual(self.post({}).status_code, 400)

    @mock.patch("shipping.views.get_client")
    def test_bad_quantity_is_400(self, get_client):
        for quantity in ("two", [2], {"n": 2}, -1):
            with self.subTest(quantity=quantity):
                resp = self.post({"vid": "V1", "quantity": quantity})
                self.assertEqual(resp.status_code, 400)
        get_client.assert_not_called()

    @mock.patch("shipping.views.get_client")
    def test_supplier_failure_is_502(self, get_client):
        get_client.return_value.calculate_freight.side_effect = SupplierUnavailable("HTTP 503")
        self.assertEqual(self.post({"vid": "V1"}).status_code, 502)

    def test_no_supplier_account_is_503(self):
        self.assertEqual(self.post({"vid": "V1"}).status_code, 503)


class ShippingConfigViewTests(TestCase):
    def setUp(self) -> None:
        U = get_user_model()
        self.staff = U.objects.create_user("ops", "ops@x.com", "x", is_staff=True)

    def test_staff_only(self):
        resp = self.client.get(reverse("shipping:config"))
        self.assertEqual(resp.status_code, 302)

    def test_read_and_update(self):
        self.client.force_login(self.staff)
        url = reverse("shipping:config")

        self.assertEqual(self.client.get(url).json()["flat_rate"], "4.99")

        resp = self.client.put(
            url,
            json.dumps({"flat_rate": "6.25", "use_freight_quotes": False}),
            content_type="application/json",
        )

        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.json()["flat_rate"], "6.25")
        stored = StoreSetting.get_value(SHIPPING_SETTING_KEY)
        self.assertFalse(stored["use_freight_quotes"])
        self.assertEqual(stored["free_shipping_threshold"], "50.00")
