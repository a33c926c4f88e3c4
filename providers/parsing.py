# providers/parsing.py
"""
Pure helpers that turn loosely-typed supplier JSON into typed values.

Nothing in here touches the network or the database.
"""
from __future__ import annotations

import json
import math
import re
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple, Union

from providers.exceptions import PriceParseError

PRICE_RANGE_SEPARATOR = "--"


# -----------------------------
# Prices
# -----------------------------
@dataclass(frozen=True)
class ParsedPrice:
    low: float
    high: float

    @property
    def is_range(self) -> bool:
        return self.low != self.high

    @property
    def value(self) -> float:
        """Upper bound: the cost we commit to when we cannot pick a variant."""
        return self.high


def _finite_float(x) -> Optional[float]:
    if isinstance(x, bool):
        return None
    try:
        f = float(str(x).strip()) if isinstance(x, str) else float(x)
    except (TypeError, ValueError):
        return None
    return f if math.isfinite(f) else None


def parse_price(value: Any) -> ParsedPrice:
    """
    Accepts 12.5, "12.50" or "9.10 -- 14.20". Raises PriceParseError for
    anything else, including zero and negative values.
    """
    if value is None:
        raise PriceParseError(value)

    if isinstance(value, str) and PRICE_RANGE_SEPARATOR in value:
        parts = [_finite_float(p) for p in value.split(PRICE_RANGE_SEPARATOR)]
        bounds = [p for p in parts if p is not None]
        if not bounds:
            raise PriceParseError(value)
        low, high = bounds[0], bounds[-1]
    else:
        parsed = _finite_float(value)
        if parsed is None:
            raise PriceParseError(value)
        low = high = parsed

    if low <= 0 or high <= 0:
        raise PriceParseError(value)
    return ParsedPrice(low=min(low, high), high=max(low, high))


def parse_price_or_none(value: Any) -> Optional[float]:
    try:
        return parse_price(value).value
    except PriceParseError:
        return None


def to_float(x, default: float = 0.0) -> float:
    parsed = _finite_float(x) if x is not None else None
    return default if parsed is None else parsed


# -----------------------------
# Images
# -----------------------------
@dataclass(frozen=True)
class SingleImage:
    url: str


@dataclass(frozen=True)
class ImageList:
    urls: Tuple[str, ...]


@dataclass(frozen=True)
class UnparseableImage:
    raw: Any


ImageField = Union[SingleImage, ImageList, UnparseableImage]


def parse_image_field(value: Any) -> ImageField:
    """CJ sends images as a URL, a list, or a JSON array encoded in a string."""
    if isinstance(value, (list, tuple)):
        return ImageList(tuple(str(u).strip() for u in value if isinstance(u, str) and u.strip()))
    if isinstance(value, str):
        v = value.strip()
        if not v:
            return UnparseableImage(value)
        if v.startswith("["):
            try:
                parsed = json.loads(v)
            except ValueError:
                return UnparseableImage(value)
            if isinstance(parsed, list):
                return parse_image_field(parsed)
            return UnparseableImage(value)
        return SingleImage(v)
    return UnparseableImage(value)


def image_urls(field: ImageField) -> List[str]:
    if isinstance(field, SingleImage):
        return [field.url]
    if isinstance(field, ImageList):
        return list(field.urls)
    return []


def _dedupe(urls: Iterable[str]) -> List[str]:
    seen = set()
    out: List[str] = []
    for u in urls:
        if not isinstance(u, str) or not u.startswith("http") or u in seen:
            continue
        seen.add(u)
        out.append(u)
    return out


def unwrap_payload(detail: Optional[Mapping[str, Any]]) -> Mapping[str, Any]:
    if not detail:
        return {}
    inner = detail.get("data")
    return inner if isinstance(inner, Mapping) else detail


def normalize_images(detail: Optional[Mapping[str, Any]], fallback: Any = None) -> List[str]:
    """Gallery first, then variant images, then the list thumbnail. De-duplicated."""
    payload = unwrap_payload(detail)
    urls = image_urls(parse_image_field(payload.get("productImageSet")))
    if not urls:
        urls = image_urls(parse_image_field(payload.get("productImage")))
    for v in payload.get("variants") or []:
        if isinstance(v, Mapping) and v.get("variantImage"):
            urls.append(str(v["variantImage"]))
    urls.extend(image_urls(parse_image_field(fallback)))
    return _dedupe(urls)


_RE_IMG = re.compile(r"<img[^>]*>", re.I)
_RE_EMPTY_P = re.compile(r"<p>\s*</p>", re.I)


def clean_description(html: Optional[str]) -> str:
    """Drop embedded marketing images and the empty paragraphs they leave behind."""
    if not html:
        return ""
    text = _RE_IMG.sub("", str(html))
    text = _RE_EMPTY_P.sub("", text)
    return text.strip()


# -----------------------------
# Dates
# -----------------------------
def parse_iso_dt(x) -> Optional[datetime]:
    if not x:
        return None
    if isinstance(x, datetime):
        return x if x.tzinfo else x.replace(tzinfo=timezone.utc)
    try:
        # accept both naive and tz-aware ISO strings
        dt = datetime.fromisoformat(str(x).replace("Z", "+00:00"))
    except ValueError:
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt


def parse_expiry(expires_in) -> Optional[datetime]:
    """Parse expiresIn seconds or None"""
    try:
        sec = int(expires_in)
    except (TypeError, ValueError):
        return None
    return datetime.now(timezone.utc) + timedelta(seconds=sec)


# -----------------------------
# Variant keys: "Black-L", "32oz-Bean Green", "Rose Gold-No 10"
# -----------------------------
_SIZE_TOKENS = {
    "XXXS", "XXS", "XS", "S", "M", "L", "XL", "XXL", "XXXL",
    "1XL", "2XL", "3XL", "4XL", "5XL",
    "Large Size", "Small", "Medium", "Large",
}
_RE_RING = re.compile(r"^No\.?\s*\d+$", re.I)
_RE_INCH = re.compile(r"^\d+(\.\d+)?\s*inch(es)?$", re.I)
_RE_CM = re.compile(r"^\d+(\.\d+)?\s*cm$", re.I)
_RE_OZ = re.compile(r"^\d+(\.\d+)?\s*oz$", re.I)
_RE_G = re.compile(r"^\d+(\.\d+)?\s*g$", re.I)


def _looks_like_size(token: str) -> bool:
    t = token.strip()
    return t in _SIZE_TOKENS or any(
        r.match(t) is not None for r in (_RE_RING, _RE_INCH, _RE_CM, _RE_OZ, _RE_G)
    )


def parse_color_size(key: Optional[str]) -> Dict[str, Optional[str]]:
    """Returns {'color': ..., 'size': ...}; either may be None."""
    out: Dict[str, Optional[str]] = {"color": None, "size": None}
    if not key:
        return out
    parts = [p.strip() for p in str(key).split("-") if p.strip()]
    if not parts:
        return out

    if len(parts) == 1:
        # "95g Cork": size + type
        tokens = parts[0].split()
        if tokens and _looks_like_size(tokens[0]):
            out["size"] = tokens[0]
            out["color"] = " ".join(tokens[1:]) or None
        elif _looks_like_size(parts[0]):
            out["size"] = parts[0]
        else:
            out["color"] = parts[0]
        return out

    a, b = parts[0], parts[1]
    # size suffix glued onto the second segment: "... 3 Inch"
    b_tokens = b.split()
    if len(b_tokens) > 1 and _looks_like_size(b_tokens[-1]):
        out["size"] = b_tokens[-1]
        b = " ".join(b_tokens[:-1]).strip()

    if _looks_like_size(b) and not _looks_like_size(a):
        out["color"], out["size"] = a, b
    elif _looks_like_size(a) and not _looks_like_size(b):
        out["size"], out["color"] = a, b
    else:
        out["color"] = a
        out["size"] = out["size"] or b
    return out
