from datetime import datetime, timezone
from unittest import mock

from django.test import TestCase

from providers.auth import TokenCacheState, reset_token_caches
from providers.exceptions import AuthError
from providers.models import ProviderAccount
from providers.services.clients import get_client_for
from providers.services.health import ping_provider
from providers.tasks import refresh_provider_stock
from providers.tests.fakes import FakeSupplier, cj_item


class PingProviderTests(TestCase):
    def setUp(self):
        self.account = ProviderAccount.objects.create(code="cj", name="CJ")

    @mock.patch("providers.services.health.get_client_for")
    def test_ok_with_sample(self, get_client_for):
        get_client_for.return_value = FakeSupplier([cj_item("P1")])
        result = ping_provider(self.account)
        self.assertEqual(
            result,
            {"ok": True, "total": 1, "sample_found": True, "sample_name": "Cotton Dress P1"},
        )

    @mock.patch("providers.services.health.get_client_for")
    def test_supplier_error(self, get_client_for):
        get_client_for.return_value = FakeSupplier([], list_error=AuthError("bad key"))
        result = ping_provider(self.account)
        self.assertFalse(result["ok"])
        self.assertIn("AuthError", result["error"])

    def test_unknown_adapter(self):
        account = ProviderAccount.objects.create(code="acme", name="Acme")
        result = ping_provider(account)
        self.assertFalse(result["ok"])
        self.assertIn("acme", result["error"])


class ClientFactoryTests(TestCase):
    def tearDown(self):
        reset_token_caches()

    def test_token_state_is_written_back(self):
        account = ProviderAccount.objects.create(
            code="cj", name="CJ", credentials_json={"api_key": "k"}
        )
        client = get_client_for(account)
        expiry = datetime(2030, 1, 1, tzinfo=timezone.utc)
        client._persist_tokens(TokenCacheState("tok", expiry, expiry))

        account.refresh_from_db()
        self.assertEqual(account.credentials_json["api_key"], "k")
        self.assertEqual(account.credentials_json["access_token"], "tok")
        self.assertEqual(account.credentials_json["access_token_expires"], expiry.isoformat())
        self.assertTrue(account.has_token)


class TaskTests(TestCase):
    @mock.patch("providers.tasks.refresh_stock_for_all")
    @mock.patch("providers.tasks.get_client")
    def test_refresh_stock_task(self, get_client, refresh):
        refresh.return_value = {"updated": 2}
        result = refresh_provider_stock.apply(args=("cj",), kwargs={"limit": 5}).get()
        self.assertEqual(result, {"updated": 2})
        refresh.assert_called_once_with(get_client.return_value, limit=5)
        get_client.assert_called_once_with("cj")
