# shipping/freight.py
from __future__ import annotations

import logging
from decimal import Decimal
from typing import Iterable, Optional, Sequence

from providers.base import BaseProvider, FreightOption
from providers.exceptions import SupplierError
from shipping.resolver import FreightQuoter, ShippingItem

log = logging.getLogger(__name__)

# The logistics line orders are actually fulfilled with
PREFERRED_LOGISTICS = ("USPS+", "USPS Plus")


def cheapest_price(options: Iterable[FreightOption]) -> Optional[float]:
    """Lowest positive quote. $0 means "shipping baked into product cost", not a real quote."""
    prices = [o.price for o in options if o.price and o.price > 0]
    return min(prices) if prices else None


def pick_option(
    options: Sequence[FreightOption], preferred: Sequence[str] = PREFERRED_LOGISTICS
) -> Optional[FreightOption]:
    valid = [o for o in options if o.price and o.price > 0]
    if not valid:
        return None
    for o in valid:
        if o.name in preferred:
            return o
    return min(valid, key=lambda o: o.price)


def make_freight_quoter(
    client: BaseProvider,
    *,
    start_country_code: Optional[str] = "US",
    end_country_code: str = "US",
) -> FreightQuoter:
    """Checkout-time quoter for shipping.resolver.resolve()."""

    def quote(items: Sequence[ShippingItem]) -> Optional[Decimal]:
        products = [{"vid": i.vid, "quantity": i.quantity} for i in items if i.vid]
        if not products or len(products) != len(items):
            # an item we cannot quote makes the whole quote meaningless
            return None
        try:
            options = client.calculate_freight(
                end_country_code=end_country_code,
                products=products,
                start_country_code=start_country_code,
            )
        except SupplierError as e:
            log.warning("freight.quote_failed err=%s", e)
            return None
        chosen = pick_option(options)
        if chosen is None:
            log.info("freight.no_valid_quote options=%s", len(options))
            return None
        log.info("freight.selected name=%s price=%s", chosen.name, chosen.price)
        return Decimal(str(chosen.price))

    return quote
