from __future__ import annotations

from decimal import Decimal
from types import SimpleNamespace

from django.test import TestCase
from django.urls import reverse

from catalog.models import Product, Variant
from orders.cart import Cart


class CartViewTests(TestCase):
    def setUp(self) -> None:
        self.product = Product.objects.create(
            name="Cotton Dress",
            status=Product.STATUS_ACTIVE,
            retail_price=Decimal("25.99"),
            weight_grams=300,
        )
        self.black = Variant.objects.create(
            product=self.product, external_vid="V1", name="Black L", price=Decimal("25.99")
        )
        # no own price: falls back to the product retail price
        self.red = Variant.objects.create(product=self.product, external_vid="V2", name="Red M")

    def add(self, variant_id, qty=1, **extra):
        return self.client.post(
            reverse("orders:cart_add"), {"variant_id": variant_id, "qty": qty, **extra}
        )

    def test_add_accumulates_and_replaces(self):
        self.add(self.black.id)
        self.add(self.black.id, 2)
        data = self.client.get(reverse("orders:cart_detail")).json()
        self.assertEqual(data["items"][0]["qty"], 3)
        self.assertEqual(data["subtotal"], "77.97")

        data = self.add(self.black.id, 1, replace="1").json()
        self.assertEqual(data["items"][0]["qty"], 1)

    def test_unit_price_fallback(self):
        data = self.add(self.red.id, 2).json()
        self.assertEqual(data["items"][0]["unit_price"], "25.99")
        self.assertEqual(data["items"][0]["line_total"], "51.98")

    def test_remove_and_zero_qty(self):
        self.add(self.black.id)
        self.add(self.red.id)
        data = self.client.post(reverse("orders:cart_remove"), {"variant_id": self.black.id}).json()
        self.assertEqual([i["variant_id"] for i in data["items"]], [self.red.id])

        data = self.add(self.red.id, 0, replace="1").json()
        self.assertEqual(data["items"], [])

    def test_unsellable_lines_are_dropped(self):
        self.add(self.black.id)
        Product.objects.filter(pk=self.product.pk).update(status=Product.STATUS_HIDDEN)
        data = self.client.get(reverse("orders:cart_detail")).json()
        self.assertEqual(data["items"], [])
        self.assertEqual(data["subtotal"], "0")

    def test_bad_input(self):
        self.assertEqual(self.client.post(reverse("orders:cart_add"), {}).status_code, 400)
        self.assertEqual(self.add("abc").status_code, 400)
        self.assertEqual(self.client.post(reverse("orders:cart_remove"), {}).status_code, 400)

    def test_shipping_items(self):
        self.add(self.black.id, 2)
        items = Cart(SimpleNamespace(session=self.client.session)).shipping_items()
        self.assertEqual(len(items), 1)
        self.assertEqual(items[0].quantity, 2)
        self.assertEqual(items[0].weight_grams, 300)
        self.assertEqual(items[0].vid, "V1")
