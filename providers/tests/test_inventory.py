from decimal import Decimal
from unittest import mock

from django.test import TestCase

from catalog.models import Product
from providers.exceptions import AuthError, SupplierUnavailable
from providers.services.inventory import (
    _inventories,
    refresh_product_stock,
    refresh_stock_for_all,
    stock_in,
)


def product(pid, **kw):
    kw.setdefault("retail_price", Decimal("25.99"))
    return Product.objects.create(external_id=pid, name=f"Item {pid}", **kw)


class InventoryHelpersTests(TestCase):
    def test_inventories_shapes(self):
        rows = [{"countryCode": "US", "totalInventoryNum": 4}]
        self.assertEqual(_inventories({"inventories": rows}), rows)
        self.assertEqual(_inventories({"data": {"inventories": rows}}), rows)
        self.assertEqual(_inventories(rows), rows)
        self.assertEqual(_inventories(None), [])

    def test_stock_in_sums_one_country(self):
        rows = [
            {"countryCode": "US", "totalInventoryNum": 4},
            {"countryCode": "us", "totalInventoryNum": "6"},
            {"countryCode": "CN", "totalInventoryNum": 900},
            {"countryCode": "US", "totalInventoryNum": "lots"},
        ]
        self.assertEqual(stock_in(rows, "US"), 10)


class RefreshStockTests(TestCase):
    def test_local_stock_wins(self):
        p = product("P1", warehouse="CN", warehouse_ambiguous=True, delivery_cycle_days="1-3")
        client = mock.Mock()
        client.get_stock.return_value = {
            "inventories": [
                {"countryCode": "CN", "totalInventoryNum": 500},
                {"countryCode": "US", "totalInventoryNum": 12},
            ]
        }

        outcome = refresh_product_stock(client, p)

        client.get_stock.assert_called_once_with("P1")
        self.assertEqual(outcome["warehouse"], "US")
        p.refresh_from_db()
        self.assertEqual(p.warehouse, "US")
        self.assertFalse(p.warehouse_ambiguous)
        self.assertEqual(p.stock_count, 12)
        self.assertEqual(p.shipping_estimate, "2-5 business days")

    def test_china_only_uses_delivery_cycle(self):
        p = product("P1", warehouse="US", delivery_cycle_days="2-4")
        client = mock.Mock()
        client.get_stock.return_value = [{"countryCode": "CN", "totalInventoryNum": 80}]

        refresh_product_stock(client, p)

        p.refresh_from_db()
        self.assertEqual(p.warehouse, "CN")
        self.assertEqual(p.stock_count, 80)
        self.assertEqual(p.shipping_estimate, "9-18 business days")

    def test_refresh_all_counts_and_continues_on_errors(self):
        product("P1")
        product("P2")
        Product.objects.create(name="Manual", retail_price=Decimal("9.99"))
        client = mock.Mock()
        client.get_stock.side_effect = [
            SupplierUnavailable("timeout"),
            {"inventories": [{"countryCode": "CA", "totalInventoryNum": 3}]},
        ]

        counts = refresh_stock_for_all(client)

        self.assertEqual(counts["updated"], 1)
        self.assertEqual(counts["errors"], 1)
        self.assertEqual(counts["CA"], 1)
        self.assertEqual(client.get_stock.call_count, 2)

    def test_auth_failure_propagates(self):
        product("P1")
        client = mock.Mock()
        client.get_stock.side_effect = AuthError("expired")
        with self.assertRaises(AuthError):
            refresh_stock_for_all(client)
