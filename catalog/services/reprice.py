# catalog/services/reprice.py
from __future__ import annotations

import logging
from decimal import Decimal
from typing import Any, Dict, Mapping, Optional

from catalog.models import Product
from catalog.pricing import (
    PricingConfig,
    compute_compare_at_price,
    compute_pricing,
    get_pricing_config,
    to_money,
)

log = logging.getLogger(__name__)


def reprice_products(
    overrides: Optional[Mapping[str, Any]] = None,
    *,
    config: Optional[PricingConfig] = None,
    rng=None,
) -> Dict[str, int]:
    """
    Re-run pricing for every active product with the current (or overridden)
    config. Products that would fall below the margin floor are left alone
    and counted as skipped.
    """
    config = PricingConfig.from_mapping(overrides, config or get_pricing_config())
    counts = {"processed": 0, "updated": 0, "skipped": 0}

    qs = Product.objects.filter(status=Product.STATUS_ACTIVE).order_by("id")
    for product in qs.iterator(chunk_size=200):
        counts["processed"] += 1
        supplier = float(product.supplier_price or 0)
        if supplier <= 0:
            counts["skipped"] += 1
            continue
        shipping = (
            float(product.shipping_cost)
            if product.shipping_cost is not None
            else config.shipping_cost_estimate
        )
        pricing = compute_pricing(supplier, shipping, config.markup_multiplier, config)
        if not pricing.is_viable:
            counts["skipped"] += 1
            continue

        product.processor_fee = to_money(pricing.processor_fee)
        product.total_cost = to_money(pricing.total_cost)
        product.markup_multiplier = to_money(config.markup_multiplier)
        product.retail_price = to_money(pricing.retail_price)
        product.compare_at_price = to_money(
            compute_compare_at_price(pricing.retail_price, config, rng)
        )
        product.margin_dollars = to_money(pricing.margin_dollars)
        product.margin_percent = Decimal(str(pricing.margin_percent))
        product.save(pricing_config=config)
        counts["updated"] += 1

    log.info("pricing.repriced counts=%s config=%s", counts, config.as_dict())
    return counts
