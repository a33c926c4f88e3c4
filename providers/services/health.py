# providers/services/health.py
from __future__ import annotations

import logging
from typing import Any, Dict

from providers.exceptions import SupplierError
from providers.models import ProviderAccount
from providers.services.clients import get_client_for

log = logging.getLogger(__name__)


def ping_provider(account: ProviderAccount) -> Dict[str, Any]:
    """One-item list call: proves credentials, token and envelope parsing in a single request."""
    try:
        client = get_client_for(account)
    except ValueError as e:
        return {"ok": False, "error": str(e)}
    try:
        page = client.list_products(page_num=1, page_size=1)
    except SupplierError as e:
        log.warning("health.ping_failed provider=%s err=%s", account.code, e)
        return {"ok": False, "error": f"{type(e).__name__}: {e}"}
    sample = page.items[0] if page.items else None
    mapped = client.map_to_internal(sample) if sample else None
    return {
        "ok": True,
        "total": page.total,
        "sample_found": bool(sample),
        "sample_name": mapped["product"]["name"] if mapped else None,
    }
