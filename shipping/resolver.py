# shipping/resolver.py
"""
Shipping charge for a set of items. First rule that applies wins:

  digital only  -> 0, instant delivery
  free shipping -> enabled, subtotal >= threshold, weight within cap
  freight quote -> only when enabled AND a quoter is supplied (checkout)
  weight tier   -> first tier whose max is None or >= known weight
  unknown       -> no item has a weight
  flat rate     -> nothing above produced a price
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Callable, Iterable, Optional, Sequence

from shipping.config import ShippingConfig, WeightTier

log = logging.getLogger(__name__)

METHOD_DIGITAL = "Digital Delivery"
METHOD_FREE = "Free Shipping"
METHOD_FREIGHT = "Freight Quote"
METHOD_TIER = "Weight Tier"
METHOD_UNKNOWN_WEIGHT = "Unknown Weight"
METHOD_FLAT = "Flat Rate"

CENT = Decimal("0.01")
ZERO = Decimal("0.00")


@dataclass(frozen=True)
class ShippingItem:
    quantity: int = 1
    weight_grams: int = 0  # 0 = unknown
    unit_price: Decimal = ZERO
    is_digital: bool = False
    vid: Optional[str] = None
    warehouse: str = "CN"


@dataclass(frozen=True)
class ShippingQuote:
    cost: Decimal
    method: str
    label: str

    def as_dict(self) -> dict:
        return {"cost": str(self.cost), "method": self.method, "label": self.label}


FreightQuoter = Callable[[Sequence[ShippingItem]], Optional[Decimal]]


def known_weight_grams(items: Iterable[ShippingItem]) -> int:
    return sum(
        int(i.weight_grams) * max(int(i.quantity), 0)
        for i in items
        if i.weight_grams and i.weight_grams > 0
    )


def tier_for_weight(tiers: Sequence[WeightTier], weight_grams: int) -> Optional[WeightTier]:
    ordered = sorted(tiers, key=lambda t: (t.max_weight_grams is None, t.max_weight_grams or 0))
    for tier in ordered:
        if tier.max_weight_grams is None or tier.max_weight_grams >= weight_grams:
            return tier
    return None


def _qualifies_for_free(subtotal: Decimal, weight: int, config: ShippingConfig) -> bool:
    if not config.free_shipping_enabled or subtotal < config.free_shipping_threshold:
        return False
    cap = config.free_shipping_weight_cap_grams
    return cap is None or weight <= cap


def _freight_quote(
    items: Sequence[ShippingItem], config: ShippingConfig, quoter: FreightQuoter
) -> Optional[ShippingQuote]:
    try:
        raw = quoter(items)
    except Exception as e:  # quote failures fall through to tiers
        log.warning("shipping.freight_failed err=%s", e)
        return None
    if raw is None:
        return None
    try:
        quoted = Decimal(str(raw))
    except (InvalidOperation, ValueError):
        log.warning("shipping.freight_unusable value=%r", raw)
        return None
    if not quoted.is_finite() or quoted <= 0:
        return None
    marked_up = quoted * (1 + config.freight_markup_percent / Decimal("100"))
    cost = max(marked_up, config.minimum_shipping_charge).quantize(CENT)
    return ShippingQuote(cost, METHOD_FREIGHT, "Standard Shipping")


def resolve(
    items: Sequence[ShippingItem],
    subtotal,
    config: ShippingConfig,
    freight_quote: Optional[FreightQuoter] = None,
) -> ShippingQuote:
    physical = [i for i in items if not i.is_digital]
    if not physical:
        return ShippingQuote(ZERO, METHOD_DIGITAL, "Instant Delivery")

    subtotal = Decimal(str(subtotal or 0))
    weight = known_weight_grams(physical)

    if _qualifies_for_free(subtotal, weight, config):
        return ShippingQuote(ZERO, METHOD_FREE, "Free Shipping")

    if config.use_freight_quotes and freight_quote is not None:
        quote = _freight_quote(physical, config, freight_quote)
        if quote is not None:
            return quote

    if weight > 0:
        tier = tier_for_weight(config.weight_tiers, weight)
        if tier is not None:
            return ShippingQuote(
                tier.price.quantize(CENT), METHOD_TIER, tier.label or "Standard Shipping"
            )
        log.warning("shipping.no_tier weight=%s", weight)
    else:
        return ShippingQuote(
            config.unknown_weight_rate.quantize(CENT), METHOD_UNKNOWN_WEIGHT, "Standard Shipping"
        )

    return ShippingQuote(config.flat_rate.quantize(CENT), METHOD_FLAT, "Standard Shipping")
