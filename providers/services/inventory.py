# providers/services/inventory.py
from __future__ import annotations

import logging
import threading
from typing import Any, Dict, Iterable, List, Mapping, Optional

from catalog.models import Product
from providers.base import BaseProvider
from providers.exceptions import AuthError, BudgetExceeded, SupplierError
from providers.warehouse import build_shipping_estimate, classify_from_inventories

log = logging.getLogger(__name__)


def _inventories(payload: Any) -> List[Mapping[str, Any]]:
    """getInventoryByPid answers with either {"inventories": [...]} or the bare list."""
    if isinstance(payload, Mapping):
        inner = payload.get("data", payload)
        if isinstance(inner, Mapping):
            return list(inner.get("inventories") or [])
        payload = inner
    if isinstance(payload, list):
        return [row for row in payload if isinstance(row, Mapping)]
    return []


def stock_in(inventories: Iterable[Mapping[str, Any]], country: str) -> int:
    total = 0
    for inv in inventories:
        if str(inv.get("countryCode") or "").upper() != country:
            continue
        try:
            total += max(0, int(inv.get("totalInventoryNum") or 0))
        except (TypeError, ValueError):
            continue
    return total


def refresh_product_stock(client: BaseProvider, product: Product) -> Dict[str, Any]:
    """
    Re-derive warehouse and stock from the supplier's per-country inventory.
    Stock data is authoritative, so the result is never flagged ambiguous.
    """
    inventories = _inventories(client.get_stock(product.external_id))
    warehouse, available = classify_from_inventories(inventories)

    product.warehouse = warehouse
    product.warehouse_ambiguous = False
    product.stock_count = stock_in(inventories, warehouse)
    product.shipping_estimate = build_shipping_estimate(warehouse, product.delivery_cycle_days)
    product.save(
        update_fields=[
            "warehouse",
            "warehouse_ambiguous",
            "stock_count",
            "shipping_estimate",
            "updated_at",
        ]
    )
    log.info(
        "inventory.refreshed pid=%s warehouse=%s stock=%s available=%s",
        product.external_id,
        warehouse,
        product.stock_count,
        ",".join(available),
    )
    return {"warehouse": warehouse, "stock": product.stock_count, "available": available}


def refresh_stock_for_all(
    client: BaseProvider,
    *,
    statuses=(Product.STATUS_ACTIVE, Product.STATUS_PENDING),
    limit: Optional[int] = None,
    cancel: Optional[threading.Event] = None,
) -> Dict[str, int]:
    counts = {"updated": 0, "errors": 0, "US": 0, "CA": 0, "CN": 0}
    qs = Product.objects.filter(status__in=statuses, external_id__isnull=False).order_by("id")
    if limit:
        qs = qs[:limit]
    for product in qs.iterator():
        if cancel is not None and cancel.is_set():
            break
        try:
            outcome = refresh_product_stock(client, product)
        except (AuthError, BudgetExceeded):
            raise
        except SupplierError as e:
            counts["errors"] += 1
            log.warning("inventory.failed pid=%s err=%s", product.external_id, e)
            continue
        counts["updated"] += 1
        counts[outcome["warehouse"]] = counts.get(outcome["warehouse"], 0) + 1
    log.info("inventory.done counts=%s", counts)
    return counts
