# shipping/config.py
from __future__ import annotations

import logging
from dataclasses import dataclass, field, fields, replace
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, Mapping, Optional, Tuple

log = logging.getLogger(__name__)

SHIPPING_SETTING_KEY = "shipping_config"


def _money(x, default: Decimal) -> Decimal:
    try:
        value = Decimal(str(x))
    except (InvalidOperation, TypeError, ValueError):
        return default
    if not value.is_finite():
        return default
    return max(value, Decimal("0")).quantize(Decimal("0.01"))


def _grams(x) -> Optional[int]:
    if x is None or x == "":
        return None
    try:
        return max(int(float(x)), 0)
    except (TypeError, ValueError):
        return None


@dataclass(frozen=True)
class WeightTier:
    max_weight_grams: Optional[int]  # None = catch-all
    price: Decimal
    label: str = ""

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "WeightTier":
        return cls(
            max_weight_grams=_grams(data.get("max_weight_grams")),
            price=_money(data.get("price"), Decimal("0.00")),
            label=str(data.get("label") or ""),
        )

    def as_dict(self) -> Dict[str, Any]:
        return {
            "max_weight_grams": self.max_weight_grams,
            "price": str(self.price),
            "label": self.label,
        }


DEFAULT_WEIGHT_TIERS: Tuple[WeightTier, ...] = (
    WeightTier(500, Decimal("4.99"), "Light parcel"),
    WeightTier(2000, Decimal("7.99"), "Standard parcel"),
    WeightTier(None, Decimal("12.99"), "Heavy parcel"),
)


@dataclass(frozen=True)
class ShippingConfig:
    # Master controls
    free_shipping_enabled: bool = True
    free_shipping_threshold: Decimal = Decimal("50.00")
    free_shipping_weight_cap_grams: Optional[int] = 10000  # None = no cap

    weight_tiers: Tuple[WeightTier, ...] = field(default=DEFAULT_WEIGHT_TIERS)
    unknown_weight_rate: Decimal = Decimal("5.99")

    # Real-time supplier quotes (checkout only)
    use_freight_quotes: bool = True
    freight_markup_percent: Decimal = Decimal("15")
    minimum_shipping_charge: Decimal = Decimal("2.99")

    # Last resort
    flat_rate: Decimal = Decimal("4.99")

    @property
    def sorted_tiers(self) -> Tuple[WeightTier, ...]:
        """Ascending by max weight; the catch-all (None) goes last."""
        return tuple(
            sorted(
                self.weight_tiers,
                key=lambda t: (t.max_weight_grams is None, t.max_weight_grams or 0),
            )
        )

    @classmethod
    def from_mapping(
        cls, data: Optional[Mapping[str, Any]], base: Optional["ShippingConfig"] = None
    ) -> "ShippingConfig":
        base = base or cls()
        data = dict(data or {})
        known = {f.name for f in fields(cls)}
        overrides: Dict[str, Any] = {}
        for key, value in data.items():
            if key not in known:
                continue
            current = getattr(base, key)
            if key == "weight_tiers":
                overrides[key] = tuple(
                    t if isinstance(t, WeightTier) else WeightTier.from_mapping(t)
                    for t in (value or [])
                )
            elif key == "free_shipping_weight_cap_grams":
                overrides[key] = _grams(value)
            elif isinstance(current, bool):
                overrides[key] = bool(value)
            elif isinstance(current, Decimal):
                overrides[key] = _money(value, current)
        return replace(base, **overrides)

    def as_dict(self) -> Dict[str, Any]:
        return {
            "free_shipping_enabled": self.free_shipping_enabled,
            "free_shipping_threshold": str(self.free_shipping_threshold),
            "free_shipping_weight_cap_grams": self.free_shipping_weight_cap_grams,
            "weight_tiers": [t.as_dict() for t in self.sorted_tiers],
            "unknown_weight_rate": str(self.unknown_weight_rate),
            "use_freight_quotes": self.use_freight_quotes,
            "freight_markup_percent": str(self.freight_markup_percent),
            "minimum_shipping_charge": str(self.minimum_shipping_charge),
            "flat_rate": str(self.flat_rate),
        }


def get_shipping_config() -> ShippingConfig:
    """Defaults from settings.SHIPPING_DEFAULTS, overridden by the stored admin config."""
    from django.conf import settings
    from django.db import DatabaseError

    from catalog.models import StoreSetting

    base = ShippingConfig.from_mapping(getattr(settings, "SHIPPING_DEFAULTS", None))
    try:
        stored = StoreSetting.get_value(SHIPPING_SETTING_KEY)
    except DatabaseError as e:
        log.error("shipping.config_load_failed err=%s, using defaults", e)
        return base
    if isinstance(stored, dict):
        return ShippingConfig.from_mapping(stored, base)
    return base


def save_shipping_config(config: ShippingConfig) -> None:
    from catalog.models import StoreSetting

    StoreSetting.set_value(SHIPPING_SETTING_KEY, config.as_dict())
    log.info("shipping.config_saved")
