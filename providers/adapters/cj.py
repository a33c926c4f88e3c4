# providers/adapters/cj.py
from __future__ import annotations

import logging
import time
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Generator, List, Mapping, Optional, Sequence

import requests
from django.core.cache import cache

from providers.auth import AuthTokenCache, TokenCacheState, TokenGrant, token_cache_for
from providers.base import BaseProvider, FreightOption, Normalized, ProductPage
from providers.exceptions import (
    AuthError,
    BudgetExceeded,
    PriceParseError,
    RateLimitExceeded,
    SupplierAPIError,
    SupplierUnavailable,
    is_rate_limit_code,
)
from providers.parsing import (
    clean_description,
    normalize_images,
    parse_color_size,
    parse_expiry,
    parse_iso_dt,
    parse_price,
    parse_price_or_none,
    to_float,
)
from providers.throttle import RateLimiter, limiter_for

log = logging.getLogger(__name__)

SUCCESS_CODES = {0, 200, "0", "200"}


# -----------------------------
# CJ Adapter
# -----------------------------
class CJAdapter(BaseProvider):
    """
    CJ Dropshipping API client.

    credentials (dict) supports:
      - api_base: str (e.g. "https://developers.cjdropshipping.com/api2.0/v1")
      - api_key: str
      - account_code: str   key for the shared limiter / token cache (default "cj")

      Optional:
      - api_timeout: int (seconds)              (default 30)
      - max_retries: int                        (default 3) transient failures only
      - min_interval_s: float                   (default 3.0) CJ allows ~1 call / 3 s
      - daily_cap: int                          our own soft cap < provider limit (off if unset)
      - access_token, access_token_expires, last_auth_request
    """

    DEFAULT_TIMEOUT = 30
    DEFAULT_RETRIES = 3
    DEFAULT_MIN_INTERVAL_S = 3.0

    def __init__(
        self,
        *,
        credentials: Mapping[str, Any],
        save_tokens: Optional[Callable[[TokenCacheState], None]] = None,
        limiter: Optional[RateLimiter] = None,
        token_cache: Optional[AuthTokenCache] = None,
        session: Optional[requests.Session] = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        super().__init__(dict(credentials or {}))
        self.credentials: Dict[str, Any] = dict(self.credentials)
        self._save_tokens_cb = save_tokens
        account_key = str(self.credentials.get("account_code") or "cj")

        # HTTP behavior
        self._timeout = int(self.credentials.get("api_timeout") or self.DEFAULT_TIMEOUT)
        self._retries = max(1, int(self.credentials.get("max_retries") or self.DEFAULT_RETRIES))
        min_interval_s = self.credentials.get("min_interval_s")
        if min_interval_s is None:
            min_interval_s = self.DEFAULT_MIN_INTERVAL_S
        min_interval_s = float(min_interval_s)
        self._daily_cap = int(self.credentials.get("daily_cap") or 0)
        self._sleep = sleep

        self.session = session or requests.Session()
        self.limiter = limiter or limiter_for(account_key, min_interval_s)
        self.token_cache = token_cache or token_cache_for(
            account_key,
            seed=TokenCacheState(
                access_token=self.credentials.get("access_token"),
                token_expiry=parse_iso_dt(self.credentials.get("access_token_expires")),
                last_auth_request=parse_iso_dt(self.credentials.get("last_auth_request")),
            ),
            on_change=self._persist_tokens,
        )

        # request accounting (in-process; the daily cap lives in the shared cache)
        self.calls_made = 0

    # ---------- basic config ----------
    def _base(self) -> str:
        return (
            self.credentials.get("api_base") or "https://developers.cjdropshipping.com/api2.0/v1"
        ).rstrip("/")

    def _headers(self, token: Optional[str] = None) -> Dict[str, str]:
        h = {
            "Accept": "application/json",
            "Content-Type": "application/json",
        }
        if token:
            h["CJ-Access-Token"] = token
        return h

    # ---------- counters ----------
    def _cache_key(self) -> str:
        day = datetime.now(timezone.utc).strftime("%Y-%m-%d")
        return f"cj:reqcount:{day}:{self.credentials.get('account_code') or 'cj'}"

    def _budget(self, cost: int = 1) -> None:
        if self._daily_cap <= 0:
            return
        key = self._cache_key()
        cache.add(key, 0, timeout=86400)  # create if missing
        if cache.incr(key, cost) > self._daily_cap:
            raise BudgetExceeded(f"Internal daily cap reached ({self._daily_cap})")

    # ---------- auth ----------
    def _persist_tokens(self, state: TokenCacheState) -> None:
        if self._save_tokens_cb:
            self._save_tokens_cb(state)

    def _request_access_token(self) -> TokenGrant:
        api_key = self.credentials.get("api_key")
        if not api_key:
            raise AuthError("Missing CJ credentials: api_key required")

        url = f"{self._base()}/authentication/getAccessToken"
        self._budget(1)
        self.calls_made += 1
        log.info("cj.auth.request")
        try:
            resp = self.session.post(
                url, headers=self._headers(), json={"apiKey": api_key}, timeout=self._timeout
            )
        except requests.RequestException as e:
            raise SupplierUnavailable(f"CJ auth request failed: {e}") from e

        try:
            body = resp.json() or {}
        except ValueError:
            raise AuthError(f"CJ Auth failed: HTTP {resp.status_code}, non-JSON body")

        if resp.status_code == 429 or is_rate_limit_code(body.get("code")):
            raise RateLimitExceeded(f"CJ Auth rate limited: {body.get('message')}")
        if not body.get("result"):
            raise AuthError(f"CJ Auth failed: {body.get('message') or 'unknown error'}")

        data = body.get("data") or {}
        access = data.get("accessToken")
        if not access:
            raise AuthError("CJ Auth failed: no accessToken in response")
        return TokenGrant(
            access_token=access,
            expires_at=parse_iso_dt(data.get("accessTokenExpiryDate"))
            or parse_expiry(data.get("expiresIn")),
            refresh_token=data.get("refreshToken"),
            refresh_expires_at=parse_iso_dt(data.get("refreshTokenExpiryDate")),
        )

    # ---------- HTTP ----------
    def _call(
        self,
        method: str,
        path: str,
        *,
        params: Optional[Dict[str, Any]] = None,
        json_body: Optional[Any] = None,
    ) -> Any:
        """limiter → token → HTTP → envelope. Retries network errors and 5xx only."""
        url = f"{self._base()}{path}"
        params = {k: v for k, v in (params or {}).items() if v not in (None, "")}
        last_exc: Optional[Exception] = None

        for attempt in range(1, self._retries + 1):
            self._budget(1)
            self.limiter.acquire()
            token = self.token_cache.get_token(self._request_access_token)
            self.calls_made += 1
            log.debug("cj.call %s %s attempt=%s", method, path, attempt)
            try:
                resp = self.session.request(
                    method,
                    url,
                    headers=self._headers(token),
                    params=params or None,
                    json=json_body,
                    timeout=self._timeout,
                )
            except requests.RequestException as e:
                last_exc = e
            else:
                if resp.status_code < 500:
                    return self._unwrap(resp, path)
                last_exc = requests.HTTPError(f"{resp.status_code} {resp.reason}", response=resp)

            if attempt < self._retries:
                # small backoff
                self._sleep(0.5 * attempt)

        raise SupplierUnavailable(
            f"CJ {method} {path} failed after {self._retries} attempts: {last_exc}"
        ) from last_exc

    def _unwrap(self, resp: requests.Response, path: str) -> Any:
        if resp.status_code == 429:
            raise RateLimitExceeded("Too Many Requests")
        if resp.status_code in (401, 403):
            self.token_cache.invalidate()
            raise AuthError(f"CJ rejected access token ({resp.status_code})")
        try:
            body = resp.json()
        except ValueError:
            raise SupplierAPIError(
                f"non-JSON response from {path}", code=None, status=resp.status_code
            )
        if not isinstance(body, dict):
            raise SupplierAPIError(
                f"unexpected response shape from {path}", status=resp.status_code
            )

        code = body.get("code")
        message = body.get("message") or ""
        if is_rate_limit_code(code) or "too many requests" in message.lower():
            raise RateLimitExceeded(message or "Provider rate limit reached")
        if code not in SUCCESS_CODES or resp.status_code >= 400:
            log.warning("cj.api_error path=%s code=%s message=%s", path, code, message)
            raise SupplierAPIError(message, code=code, status=resp.status_code)
        return body.get("data")

    # ---------- operations ----------
    def list_products(
        self,
        *,
        page_num: int = 1,
        page_size: int = 200,
        category_id: Optional[str] = None,
        product_name: Optional[str] = None,
        country_code: Optional[str] = None,
    ) -> ProductPage:
        data = self._call(
            "GET",
            "/product/list",
            params={
                "pageNum": page_num,
                "pageSize": page_size,
                "categoryId": category_id,
                "productNameEn": product_name,
                "countryCode": country_code,
            },
        ) or {}
        return ProductPage(
            items=list(data.get("list") or []),
            page_num=int(data.get("pageNum") or page_num),
            page_size=int(data.get("pageSize") or page_size),
            total=int(data.get("total") or 0),
        )

    def iter_pages(
        self, *, page: int = 1, page_size: int = 200, max_pages: int = 1, **filters
    ) -> Generator[ProductPage, None, None]:
        page_num = page if page and page > 0 else 1
        for _ in range(max(1, max_pages)):
            result = self.list_products(page_num=page_num, page_size=page_size, **filters)
            yield result
            if not result.has_more:
                break
            page_num += 1

    def iter_products(self, **kwargs) -> Generator[Mapping[str, Any], None, None]:
        for result in self.iter_pages(**kwargs):
            yield from result.items

    def get_product_detail(self, pid: str) -> Mapping[str, Any]:
        return self._call("GET", "/product/query", params={"pid": pid}) or {}

    def get_stock(self, pid: str) -> Mapping[str, Any]:
        return self._call("GET", "/product/stock/getInventoryByPid", params={"pid": pid}) or {}

    def get_categories(self) -> List[Mapping[str, Any]]:
        return list(self._call("GET", "/product/getCategory") or [])

    def get_reviews(self, pid: str, *, page_num: int = 1, page_size: int = 20) -> Mapping[str, Any]:
        return (
            self._call(
                "GET",
                "/product/productComments",
                params={"pid": pid, "pageNum": page_num, "pageSize": page_size},
            )
            or {}
        )

    def calculate_freight(
        self,
        *,
        end_country_code: str,
        products: Sequence[Mapping[str, Any]],
        start_country_code: Optional[str] = None,
    ) -> List[FreightOption]:
        body: Dict[str, Any] = {
            "endCountryCode": end_country_code,
            "products": [
                {"quantity": int(p.get("quantity") or 1), "vid": p["vid"]} for p in products
            ],
        }
        if start_country_code:
            body["startCountryCode"] = start_country_code
        data = self._call("POST", "/logistic/freightCalculate", json_body=body) or []
        options: List[FreightOption] = []
        for row in data:
            price = parse_price_or_none(row.get("logisticPrice"))
            options.append(
                FreightOption(
                    name=str(row.get("logisticName") or ""),
                    price=price or 0.0,
                    aging=str(row.get("logisticAging") or ""),
                )
            )
        return options

    def create_order(self, **params) -> Any:
        payload = {**params, "payType": params.get("payType") or 2}
        log.info("cj.create_order order_number=%s", payload.get("orderNumber"))
        return self._call("POST", "/shopping/order/createOrderV2", json_body=payload)

    def get_tracking(self, order_number: str) -> Any:
        return self._call("GET", "/logistic/trackingInfo", params={"orderNumber": order_number})

    # ---------- mapping to internal normalized shape ----------
    def map_to_internal(self, raw: Mapping[str, Any]) -> Normalized:
        """
        Turn a raw CJ list row or detail into our normalized structure. The
        price stays a ParsedPrice (or the PriceParseError) so the caller can
        decide between "skip" and "error".
        """
        try:
            price: Any = parse_price(raw.get("sellPrice"))
        except PriceParseError as e:
            price = e

        variants_out = []
        for v in raw.get("variants") or []:
            vid = str(v.get("vid") or "").strip()
            if not vid:
                continue
            attrs = parse_color_size(v.get("variantKey") or v.get("variantProperty"))
            variants_out.append(
                {
                    "vid": vid,
                    "name": v.get("variantNameEn") or v.get("variantName") or "",
                    "price": parse_price_or_none(v.get("variantSellPrice")),
                    "color": attrs["color"],
                    "size": attrs["size"],
                    "image": v.get("variantImage") or "",
                    "weight_grams": int(to_float(v.get("variantWeight"), 0.0)),
                }
            )

        product = {
            "name": (raw.get("productNameEn") or "").strip(),
            "price": price,
            "weight_grams": int(to_float(raw.get("productWeight"), 0.0)),
            "category_label": raw.get("categoryName") or "",
            "description": clean_description(raw.get("description")),
            "thumbnail": raw.get("productImage"),
            "delivery_cycle": raw.get("deliveryCycle") or None,
        }

        return {
            "product": product,
            "variants": variants_out,
            "images": normalize_images(raw),
            "external": {"external_id": str(raw.get("pid") or "")},
            "raw": raw,
        }
