# catalog/pricing.py
"""
Cost-plus pricing.

    base    = supplier price + shipping
    retail  = ceil(base * markup) - 0.01        (charm pricing, or 2dp rounding)
    fee     = retail * fee_percent + fee_fixed  (card processor)
    total   = base + fee
    margin  = retail - total

Everything here is pure except get_pricing_config(), which reads the
"pricing_config" StoreSetting on top of settings.PRICING_DEFAULTS.
"""
from __future__ import annotations

import logging
import math
import random
from dataclasses import asdict, dataclass, fields, replace
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Mapping, Optional

log = logging.getLogger(__name__)

PRICING_SETTING_KEY = "pricing_config"
# Product.margin_percent holds 5 integer digits
MIN_MARGIN_PERCENT = -9999.9


@dataclass(frozen=True)
class PricingConfig:
    markup_multiplier: float = 2.0
    minimum_margin_percent: float = 40.0
    shipping_cost_estimate: float = 3.0
    fee_percent: float = 0.029
    fee_fixed: float = 0.30
    compare_at_min: float = 1.3
    compare_at_max: float = 1.6
    round_to_99: bool = True

    @classmethod
    def from_mapping(
        cls, data: Optional[Mapping[str, Any]], base: Optional["PricingConfig"] = None
    ):
        base = base or cls()
        known = {f.name for f in fields(cls)}
        overrides = {k: v for k, v in (data or {}).items() if k in known and v is not None}
        for k, v in list(overrides.items()):
            overrides[k] = bool(v) if k == "round_to_99" else float(v)
        return replace(base, **overrides)

    def as_dict(self) -> dict:
        return asdict(self)


@dataclass(frozen=True)
class PricingResult:
    supplier_price: float
    shipping_cost: float
    processor_fee: float
    total_cost: float
    retail_price: float
    compare_at_price: Optional[float]
    margin_dollars: float
    margin_percent: float
    is_viable: bool


ZERO_RESULT = PricingResult(
    supplier_price=0.0,
    shipping_cost=0.0,
    processor_fee=0.0,
    total_cost=0.0,
    retail_price=0.0,
    compare_at_price=None,
    margin_dollars=0.0,
    margin_percent=0.0,
    is_viable=False,
)


def _num(x) -> Optional[float]:
    if isinstance(x, bool):
        return None
    try:
        f = float(x)
    except (TypeError, ValueError):
        return None
    return f if math.isfinite(f) else None


def _round2(x: float) -> float:
    return float(Decimal(str(x)).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP))


def _round1(x: float) -> float:
    return float(Decimal(str(x)).quantize(Decimal("0.1"), rounding=ROUND_HALF_UP))


def retail_from_cost(base_cost: float, markup_multiplier: float, config: PricingConfig) -> float:
    raw = base_cost * markup_multiplier
    if config.round_to_99:
        # round(…, 6) keeps float noise like 26.000000000000004 from bumping a whole dollar
        return _round2(math.ceil(round(raw, 6)) - 0.01)
    return _round2(raw)


def compute_pricing(
    supplier_price,
    shipping_cost,
    markup_multiplier=None,
    config: Optional[PricingConfig] = None,
) -> PricingResult:
    """Never raises: unusable inputs give ZERO_RESULT, which callers treat as "hide"."""
    config = config or PricingConfig()
    supplier = _num(supplier_price)
    shipping = _num(shipping_cost)
    markup = _num(config.markup_multiplier if markup_multiplier is None else markup_multiplier)

    if supplier is None or shipping is None or markup is None:
        return ZERO_RESULT
    if supplier <= 0 or shipping < 0 or markup <= 0:
        return ZERO_RESULT

    base_cost = supplier + shipping
    retail = retail_from_cost(base_cost, markup, config)
    if retail <= 0:
        return ZERO_RESULT

    fee = retail * config.fee_percent + config.fee_fixed
    total = base_cost + fee
    margin = retail - total
    margin_pct = margin / retail * 100

    return PricingResult(
        supplier_price=_round2(supplier),
        shipping_cost=_round2(shipping),
        processor_fee=_round2(fee),
        total_cost=_round2(total),
        retail_price=retail,
        compare_at_price=None,
        margin_dollars=_round2(margin),
        margin_percent=_round1(margin_pct),
        is_viable=margin_pct >= config.minimum_margin_percent,
    )


def evaluate_retail(
    retail_price,
    supplier_price,
    shipping_cost,
    config: Optional[PricingConfig] = None,
) -> PricingResult:
    """
    Fees and margin for a retail price that was set rather than computed
    (admin edits, manual products). Unusable input gives ZERO_RESULT.
    """
    config = config or PricingConfig()
    retail = _num(retail_price)
    supplier = _num(supplier_price) or 0.0
    shipping = _num(shipping_cost) or 0.0
    if retail is None or retail <= 0:
        return ZERO_RESULT

    fee = retail * config.fee_percent + config.fee_fixed
    total = supplier + shipping + fee
    margin = retail - total
    margin_pct = max(margin / retail * 100, MIN_MARGIN_PERCENT)

    return PricingResult(
        supplier_price=_round2(supplier),
        shipping_cost=_round2(shipping),
        processor_fee=_round2(fee),
        total_cost=_round2(total),
        retail_price=_round2(retail),
        compare_at_price=None,
        margin_dollars=_round2(margin),
        margin_percent=_round1(margin_pct),
        is_viable=margin_pct >= config.minimum_margin_percent,
    )


def compute_compare_at_price(
    retail_price: float,
    config: Optional[PricingConfig] = None,
    rng: Optional[random.Random] = None,
) -> float:
    """
    "Was" price for display. Deliberately random within
    [compare_at_min, compare_at_max]; pass a seeded Random to make it repeatable.
    """
    config = config or PricingConfig()
    rng = rng or random
    lo, hi = sorted((config.compare_at_min, config.compare_at_max))
    return _round2(retail_price * rng.uniform(lo, hi))


def price_for_margin(
    supplier_price: float,
    shipping_cost: float,
    target_margin_percent: float,
    config: Optional[PricingConfig] = None,
) -> float:
    """Smallest retail price that still clears `target_margin_percent` after fees."""
    config = config or PricingConfig()
    denominator = 1 - config.fee_percent - target_margin_percent / 100
    if denominator <= 0:
        raise ValueError(f"target margin {target_margin_percent}% is unreachable")
    retail = (supplier_price + shipping_cost + config.fee_fixed) / denominator
    return retail_from_cost(retail, 1.0, config)


def should_auto_hide(margin_percent: float, config: Optional[PricingConfig] = None) -> bool:
    config = config or PricingConfig()
    return margin_percent < config.minimum_margin_percent


def to_money(x) -> Decimal:
    return Decimal(str(_round2(float(x or 0))))


def get_pricing_config() -> PricingConfig:
    from django.conf import settings

    from catalog.models import StoreSetting

    base = PricingConfig.from_mapping(getattr(settings, "PRICING_DEFAULTS", None))
    stored = StoreSetting.get_value(PRICING_SETTING_KEY)
    if isinstance(stored, dict):
        return PricingConfig.from_mapping(stored, base)
    return base


def save_pricing_config(config: PricingConfig) -> None:
    from catalog.models import StoreSetting

    StoreSetting.set_value(PRICING_SETTING_KEY, config.as_dict())
    log.info("pricing.config_saved %s", config.as_dict())
