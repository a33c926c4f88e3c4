# providers/warehouse.py
from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field, replace
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple

log = logging.getLogger(__name__)

WAREHOUSES = ("US", "CN", "CA")

_RE_WORD = re.compile(r"[a-z]+")
_RE_HOURS = re.compile(r"^\s*(\d+)\s*h?\s*$", re.I)


@dataclass(frozen=True)
class WarehouseSignals:
    """
    Everything the classifier looks at. CJ has no single authoritative
    "ships from" field, so each signal is listed here and can be overridden
    from settings.WAREHOUSE_SIGNALS.
    """

    # CJ sourceFrom: 4 = US warehouse (1 = 1688, 2 = CJ China are not decisive)
    source_codes: Mapping[int, str] = field(default_factory=lambda: {4: "US"})
    fields: Tuple[str, ...] = (
        "warehouse",
        "warehouseName",
        "warehouseCode",
        "shipmentCountryCode",
        "deliveryTimeText",
    )
    country_markers: Mapping[str, Tuple[str, ...]] = field(
        default_factory=lambda: {
            "US": ("us", "usa", "united states"),
            "CA": ("ca", "canada"),
            "CN": ("cn", "china"),
        }
    )
    # deliveryTime in hours at or under which stock is assumed local
    fast_delivery_hours: int = 48
    fast_delivery_warehouse: str = "US"
    default: str = "CN"


@dataclass(frozen=True)
class WarehouseGuess:
    warehouse: str
    ambiguous: bool
    reason: str


DEFAULT_SIGNALS = WarehouseSignals()


def signals_from_settings() -> WarehouseSignals:
    from django.conf import settings

    overrides: Dict[str, Any] = dict(getattr(settings, "WAREHOUSE_SIGNALS", {}) or {})
    if "fields" in overrides:
        overrides["fields"] = tuple(overrides["fields"])
    if "country_markers" in overrides:
        overrides["country_markers"] = {
            k: tuple(v) for k, v in overrides["country_markers"].items()
        }
    if "source_codes" in overrides:
        overrides["source_codes"] = {int(k): v for k, v in overrides["source_codes"].items()}
    return replace(DEFAULT_SIGNALS, **overrides)


def _markers_in(text: str, signals: WarehouseSignals) -> set:
    text = text.lower()
    words = set(_RE_WORD.findall(text))
    found = set()
    for country, markers in signals.country_markers.items():
        for marker in markers:
            hit = marker in text if " " in marker else marker in words
            if hit:
                found.add(country)
                break
    return found


def _delivery_hours(value) -> Optional[int]:
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, (int, float)):
        return int(value)
    m = _RE_HOURS.match(str(value))
    return int(m.group(1)) if m else None


def classify_warehouse(
    raw: Mapping[str, Any], signals: WarehouseSignals = DEFAULT_SIGNALS
) -> WarehouseGuess:
    """Best-effort origin for one supplier product. Ambiguous results are flagged, not hidden."""
    source = raw.get("sourceFrom")
    try:
        source_code = int(source) if source is not None and source != "" else None
    except (TypeError, ValueError):
        source_code = None
    if source_code in signals.source_codes:
        return WarehouseGuess(signals.source_codes[source_code], False, f"sourceFrom={source_code}")

    found = set()
    for name in signals.fields:
        value = raw.get(name)
        if value:
            found |= _markers_in(str(value), signals)

    if len(found) == 1:
        country = next(iter(found))
        return WarehouseGuess(country, False, f"marker={country}")
    if len(found) > 1:
        pick = signals.default if signals.default in found else sorted(found)[0]
        return WarehouseGuess(pick, True, f"conflicting markers={','.join(sorted(found))}")

    hours = _delivery_hours(raw.get("deliveryTime"))
    if hours is not None and 0 < hours <= signals.fast_delivery_hours:
        return WarehouseGuess(signals.fast_delivery_warehouse, False, f"deliveryTime={hours}h")

    return WarehouseGuess(signals.default, True, "no warehouse signal")


def classify_from_inventories(inventories: Iterable[Mapping[str, Any]]) -> Tuple[str, List[str]]:
    """
    Stock endpoint answer → (warehouse, countries with stock).
    Local stock wins: US, then CA, otherwise CN.
    """
    available: List[str] = []
    for inv in inventories or []:
        code = str(inv.get("countryCode") or "").upper()
        try:
            qty = int(inv.get("totalInventoryNum") or 0)
        except (TypeError, ValueError):
            qty = 0
        if code and qty > 0 and code not in available:
            available.append(code)
    for preferred in ("US", "CA"):
        if preferred in available:
            return preferred, available
    return "CN", available


def parse_delivery_cycle(cycle) -> Optional[Tuple[int, int]]:
    if cycle is None or cycle == "":
        return None
    parts = [p.strip() for p in str(cycle).split("-")]
    try:
        nums = [int(float(p)) for p in parts if p]
    except ValueError:
        return None
    if len(nums) == 2:
        return nums[0], nums[1]
    if len(nums) == 1:
        return nums[0], nums[0]
    return None


def build_shipping_estimate(warehouse: str, cycle=None) -> str:
    """Customer-facing delivery window: processing cycle plus transit."""
    if warehouse == "US":
        return "2-5 business days"
    parsed = parse_delivery_cycle(cycle)
    if not parsed:
        return "10-20 business days"
    return f"{parsed[0] + 7}-{parsed[1] + 14} business days"
