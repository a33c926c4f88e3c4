# providers/services/clients.py
from __future__ import annotations

from providers.adapters.cj import CJAdapter
from providers.auth import TokenCacheState
from providers.base import BaseProvider
from providers.models import ProviderAccount


def get_client_for(account: ProviderAccount) -> BaseProvider:
    """Return the adapter for a provider and give it a callback to persist tokens."""

    def _save_tokens(state: TokenCacheState) -> None:
        creds = dict(account.credentials_json or {})
        creds["access_token"] = state.access_token
        creds["access_token_expires"] = (
            state.token_expiry.isoformat() if state.token_expiry else None
        )
        creds["last_auth_request"] = (
            state.last_auth_request.isoformat() if state.last_auth_request else None
        )
        account.credentials_json = creds
        account.save(update_fields=["credentials_json"])

    code = (account.code or "").lower()
    if code == "cj":
        credentials = {"account_code": code, **(account.credentials_json or {})}
        return CJAdapter(credentials=credentials, save_tokens=_save_tokens)
    raise ValueError(f"No adapter registered for provider code '{account.code}'")


def get_client(provider_code: str) -> BaseProvider:
    account = ProviderAccount.objects.get(code=provider_code, is_active=True)
    return get_client_for(account)
