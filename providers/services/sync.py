# providers/services/sync.py
from __future__ import annotations

import logging
import random
import threading
import time
from dataclasses import asdict, dataclass, field
from decimal import Decimal
from typing import Any, Callable, Dict, List, Mapping, Optional

from django.conf import settings
from django.core.cache import cache
from django.db import transaction
from django.utils.timezone import now

from catalog.classifier import Classifier, default_classifier
from catalog.pricing import (
    PricingConfig,
    compute_compare_at_price,
    compute_pricing,
    get_pricing_config,
    to_money,
)
from catalog.repository import CatalogRepository
from catalog.utils import supplier_slug
from providers.base import BaseProvider, Normalized
from providers.exceptions import (
    AuthError,
    BudgetExceeded,
    PersistenceError,
    PriceParseError,
    RateLimitExceeded,
    SupplierAPIError,
    SupplierDataError,
    SupplierError,
)
from providers.models import ProviderAccount, ProviderSyncLog
from providers.parsing import (
    PRICE_RANGE_SEPARATOR,
    clean_description,
    normalize_images,
    unwrap_payload,
)
from providers.services.clients import get_client_for
from providers.warehouse import (
    WarehouseSignals,
    build_shipping_estimate,
    classify_warehouse,
    signals_from_settings,
)
from shipping.freight import cheapest_price

log = logging.getLogger(__name__)

DEFAULT_CALL_BUDGET = 900
DEFAULT_STOCK_COUNT = 100
MIN_SHIPPING_ESTIMATE = 3.0
SHIPPING_ESTIMATE_RATIO = 0.3
RATE_LIMIT_RETRY_DELAY_S = 3.0

# Fatal for the whole run (auth) or a soft stop (budget); never per-item.
_RUN_STOPPERS = (AuthError, BudgetExceeded)


class ItemSkipped(Exception):
    """Item is not an error, just not importable (no name, price range, gone upstream)."""


@dataclass
class SyncOptions:
    resync: bool = False
    warehouse: str = "all"  # US | CN | CA | all
    category_id: Optional[str] = None
    keyword: Optional[str] = None
    page: int = 1
    page_size: int = 200
    max_pages: int = 1
    call_budget: int = DEFAULT_CALL_BUDGET
    include_shipping: bool = True

    @property
    def country_code(self) -> Optional[str]:
        # the list endpoint can only pre-filter on local warehouses
        return self.warehouse if self.warehouse in ("US", "CA") else None


@dataclass
class SyncRunResult:
    synced: int = 0
    created: int = 0
    updated: int = 0
    hidden: int = 0
    skipped: int = 0
    errors: List[str] = field(default_factory=list)
    api_calls: int = 0
    stopped_reason: Optional[str] = None  # None | "budget" | "cancelled" | "fatal"

    def as_dict(self) -> Dict[str, Any]:
        return asdict(self)


class CatalogSync:
    """
    Pulls supplier list pages and reconciles each item into the catalog.

    Items are processed one at a time through the client's shared limiter.
    A bad item lands in `errors` and the loop moves on. Auth failures and
    anything raised outside the per-item loop stop the run as "fatal"; the
    call budget ends it early with partial results.
    """

    def __init__(
        self,
        client: BaseProvider,
        *,
        repository: Optional[CatalogRepository] = None,
        classifier: Classifier = default_classifier,
        pricing_config: Optional[PricingConfig] = None,
        signals: Optional[WarehouseSignals] = None,
        stock_count: Optional[int] = None,
        rng: Optional[random.Random] = None,
        sleep: Callable[[float], None] = time.sleep,
        retry_delay_s: float = RATE_LIMIT_RETRY_DELAY_S,
    ):
        self.client = client
        self.repository = repository or CatalogRepository()
        self.classifier = classifier
        self.pricing_config = pricing_config
        self.signals = signals
        self.stock_count = stock_count
        self.rng = rng
        self._sleep = sleep
        self.retry_delay_s = retry_delay_s
        self._calls_at_start = 0

    def _calls_used(self) -> int:
        return getattr(self.client, "calls_made", 0) - self._calls_at_start

    # ---------- run ----------
    def run(
        self, options: Optional[SyncOptions] = None, cancel: Optional[threading.Event] = None
    ) -> SyncRunResult:
        options = options or SyncOptions()
        result = SyncRunResult()
        self._calls_at_start = getattr(self.client, "calls_made", 0)

        try:
            config = self.pricing_config or get_pricing_config()
            signals = self.signals or signals_from_settings()
            stock_count = self.stock_count
            if stock_count is None:
                stock_count = int(
                    getattr(settings, "SYNC_DEFAULT_STOCK_COUNT", DEFAULT_STOCK_COUNT)
                )
            self._run(options, cancel, result, config, signals, stock_count)
        except AuthError as e:
            result.stopped_reason = "fatal"
            result.errors.append(f"Sync failed: {e}")
            log.error("sync.fatal err=%s", e)
        except BudgetExceeded as e:
            result.stopped_reason = "budget"
            log.warning("sync.budget_exceeded err=%s", e)
        except SupplierError as e:
            # the list page itself failed: nothing left to iterate
            result.stopped_reason = "fatal"
            result.errors.append(f"Sync failed: {e}")
            log.error("sync.page_failed err=%s", e)
        except Exception as e:
            result.stopped_reason = "fatal"
            result.errors.append(f"Sync failed: {e}")
            log.exception("sync.crashed err=%s", e)
        finally:
            result.api_calls = self._calls_used()
        return result

    def _run(self, options, cancel, result, config, signals, stock_count) -> None:
        if options.resync:
            try:
                deleted = self.repository.delete_synced()
                log.info("sync.resync_deleted count=%s", deleted)
            except PersistenceError as e:
                result.errors.append(str(e))

        categories = self.repository.categories()
        pages = self.client.iter_pages(
            page=options.page,
            page_size=options.page_size,
            max_pages=options.max_pages,
            category_id=options.category_id,
            product_name=options.keyword,
            country_code=options.country_code,
        )
        for page in pages:
            log.info(
                "sync.page page=%s items=%s total=%s", page.page_num, len(page.items), page.total
            )
            for raw in page.items:
                if cancel is not None and cancel.is_set():
                    result.stopped_reason = "cancelled"
                    log.info("sync.cancelled synced=%s", result.synced)
                    return
                if self._calls_used() >= options.call_budget:
                    result.stopped_reason = "budget"
                    log.warning("sync.budget_reached calls=%s", self._calls_used())
                    return

                pid = str(raw.get("pid") or "")
                try:
                    outcome = self.process_item(
                        raw,
                        categories=categories,
                        options=options,
                        config=config,
                        signals=signals,
                        stock_count=stock_count,
                    )
                except _RUN_STOPPERS:
                    raise
                except ItemSkipped as e:
                    result.skipped += 1
                    log.info("sync.item_skipped pid=%s reason=%s", pid, e)
                    continue
                except Exception as e:
                    result.errors.append(f"Product {pid}: {e}")
                    log.warning("sync.item_failed pid=%s err=%s", pid, e, exc_info=False)
                    continue

                result.synced += 1
                if outcome["created"]:
                    result.created += 1
                else:
                    result.updated += 1
                if outcome["hidden"]:
                    result.hidden += 1

    # ---------- one item ----------
    def process_item(
        self,
        raw: Mapping[str, Any],
        *,
        categories,
        options: SyncOptions,
        config: PricingConfig,
        signals: WarehouseSignals,
        stock_count: int,
    ) -> Dict[str, Any]:
        mapped = self.client.map_to_internal(raw)
        pid = mapped["external"]["external_id"]
        p = mapped["product"]

        if not pid:
            raise SupplierDataError("missing pid")
        if not p["name"]:
            raise ItemSkipped("missing name")
        sell_price = raw.get("sellPrice")
        if isinstance(sell_price, str) and PRICE_RANGE_SEPARATOR in sell_price:
            raise ItemSkipped("price range, no base price")
        if isinstance(p["price"], PriceParseError):
            raise p["price"]
        price = p["price"].value

        shipping = self._shipping_cost(mapped, price)
        pricing = compute_pricing(price, shipping, config.markup_multiplier, config)

        guess = classify_warehouse(raw, signals)
        if options.warehouse not in (None, "", "all") and guess.warehouse != options.warehouse:
            raise ItemSkipped(f"warehouse {guess.warehouse} filtered out")
        if guess.ambiguous:
            log.info("sync.warehouse_ambiguous pid=%s reason=%s", pid, guess.reason)

        detail = self._fetch_detail(pid, options)
        images = normalize_images(detail, p["thumbnail"])
        description = clean_description(unwrap_payload(detail).get("description"))

        category_id = self.classifier.classify(p["category_label"], p["name"], categories)

        delivery_cycle = p["delivery_cycle"]
        values: Dict[str, Any] = {
            "name": p["name"],
            "description": description,
            "category_id": category_id,
            "images": images,
            "supplier_price": to_money(pricing.supplier_price),
            "shipping_cost": to_money(pricing.shipping_cost),
            "processor_fee": to_money(pricing.processor_fee),
            "total_cost": to_money(pricing.total_cost),
            "markup_multiplier": to_money(config.markup_multiplier),
            "retail_price": to_money(pricing.retail_price),
            "margin_dollars": to_money(pricing.margin_dollars),
            "margin_percent": Decimal(str(pricing.margin_percent)),
            "stock_count": stock_count,
            "weight_grams": p["weight_grams"],
            "warehouse": guess.warehouse,
            "warehouse_ambiguous": guess.ambiguous,
            "delivery_cycle_days": str(delivery_cycle or "") if options.include_shipping else "",
            "shipping_estimate": (
                build_shipping_estimate(guess.warehouse, delivery_cycle)
                if options.include_shipping
                else ""
            ),
            "last_synced_at": now(),
            "raw": dict(raw),
        }
        create_only = {
            "slug": supplier_slug(p["name"], pid),
            "compare_at_price": to_money(
                compute_compare_at_price(pricing.retail_price, config, self.rng)
            ),
        }

        with transaction.atomic():
            product, created = self.repository.upsert_product(
                pid,
                values,
                is_viable=pricing.is_viable,
                create_only=create_only,
                pricing_config=config,
            )
            for v in mapped["variants"]:
                if v["price"] is None:
                    continue
                v_pricing = compute_pricing(v["price"], shipping, config.markup_multiplier, config)
                self.repository.upsert_variant(
                    product,
                    v["vid"],
                    {
                        "name": v["name"],
                        "color": v["color"],
                        "size": v["size"],
                        "supplier_price": to_money(v["price"]),
                        "price": to_money(v_pricing.retail_price),
                        "image": v["image"],
                        "weight_grams": v["weight_grams"],
                        "stock_count": stock_count,
                        "is_active": True,
                    },
                )

        log.debug(
            "sync.item_saved pid=%s retail=%s margin=%s%% warehouse=%s created=%s",
            pid,
            pricing.retail_price,
            pricing.margin_percent,
            guess.warehouse,
            created,
        )
        return {
            "product": product,
            "created": created,
            "hidden": product.status == product.STATUS_HIDDEN,
        }

    def _shipping_cost(self, mapped: Normalized, price: float) -> float:
        fallback = max(price * SHIPPING_ESTIMATE_RATIO, MIN_SHIPPING_ESTIMATE)
        variants = mapped["variants"]
        if not variants:
            return fallback
        try:
            options = self.client.calculate_freight(
                end_country_code="US",
                products=[{"vid": variants[0]["vid"], "quantity": 1}],
            )
        except _RUN_STOPPERS:
            raise
        except SupplierError as e:
            log.info("sync.freight_failed pid=%s err=%s", mapped["external"]["external_id"], e)
            return fallback
        return cheapest_price(options) or fallback

    def _fetch_detail(self, pid: str, options: SyncOptions) -> Optional[Mapping[str, Any]]:
        """Best effort: None means "use the list thumbnail"."""
        if self._calls_used() >= options.call_budget:
            log.info("sync.detail_skipped_budget pid=%s", pid)
            return None
        try:
            return self.client.get_product_detail(pid)
        except _RUN_STOPPERS:
            raise
        except RateLimitExceeded:
            log.info("sync.detail_rate_limited pid=%s retry_in=%ss", pid, self.retry_delay_s)
            self._sleep(self.retry_delay_s)
            try:
                return self.client.get_product_detail(pid)
            except _RUN_STOPPERS:
                raise
            except SupplierError as e:
                log.info("sync.detail_retry_failed pid=%s err=%s", pid, e)
                return None
        except SupplierAPIError as e:
            if e.is_not_found:
                raise ItemSkipped(f"unavailable upstream: {e.message}") from e
            log.info("sync.detail_failed pid=%s err=%s", pid, e)
            return None
        except SupplierError as e:
            log.info("sync.detail_failed pid=%s err=%s", pid, e)
            return None


def sync_provider_products(
    *,
    provider_code: str,
    resync: bool = False,
    warehouse: str = "all",
    category_id: Optional[str] = None,
    keyword: Optional[str] = None,
    page: int = 1,
    page_size: int = 200,
    max_pages: int = 1,
    call_budget: int = DEFAULT_CALL_BUDGET,
    include_shipping: bool = True,
    cancel: Optional[threading.Event] = None,
    client: Optional[BaseProvider] = None,
) -> SyncRunResult:
    """
    Sync a single provider by code.

    - Logs start/end + counts + first error
    - Persists ProviderSyncLog for every attempt (including early lock failures)
    - Concurrency lock to prevent overlapping runs sharing one token and limiter
    """
    account = ProviderAccount.objects.get(code=provider_code, is_active=True)
    client = client or get_client_for(account)
    warehouse = (warehouse or "all").strip()
    options = SyncOptions(
        resync=resync,
        warehouse="all" if warehouse.lower() == "all" else warehouse.upper(),
        category_id=category_id,
        keyword=keyword,
        page=page,
        page_size=page_size,
        max_pages=max_pages,
        call_budget=call_budget,
        include_shipping=include_shipping,
    )

    started = now()
    log_row = ProviderSyncLog.objects.create(
        provider_account=account,
        started_at=started,
        status=ProviderSyncLog.STATUS_SUCCESS,
        counts={},
        first_error="",
    )

    log.info(
        "sync.start provider=%s resync=%s warehouse=%s page=%s page_size=%s max_pages=%s budget=%s",
        provider_code,
        options.resync,
        options.warehouse,
        options.page,
        options.page_size,
        options.max_pages,
        options.call_budget,
    )

    lock_key = f"providers:sync_lock:{provider_code.lower()}"
    lock_timeout = int(getattr(settings, "SYNC_LOCK_TIMEOUT", 60 * 60 * 2))
    if not cache.add(lock_key, "1", timeout=lock_timeout):
        # record and fail early
        log_row.status = ProviderSyncLog.STATUS_ERROR
        log_row.first_error = "Concurrency lock: another sync is running."
        log_row.finished_at = now()
        log_row.duration_ms = int((log_row.finished_at - started).total_seconds() * 1000)
        log_row.save(update_fields=["status", "first_error", "finished_at", "duration_ms"])
        raise RuntimeError(f"Sync already running for provider '{provider_code}'")

    result = SyncRunResult()
    try:
        result = CatalogSync(client).run(options, cancel=cancel)
    finally:
        cache.delete(lock_key)
        finished = now()
        if result.stopped_reason == "fatal":
            status = ProviderSyncLog.STATUS_ERROR
        elif result.errors:
            status = ProviderSyncLog.STATUS_PARTIAL
        else:
            status = ProviderSyncLog.STATUS_SUCCESS
        log_row.status = status
        log_row.first_error = result.errors[0] if result.errors else ""
        log_row.finished_at = finished
        log_row.duration_ms = int((finished - started).total_seconds() * 1000)
        log_row.counts = result.as_dict()
        log_row.save(
            update_fields=["status", "finished_at", "duration_ms", "counts", "first_error"]
        )
        log.info(
            "sync.end provider=%s synced=%s created=%s updated=%s hidden=%s skipped=%s "
            "errors=%s api_calls=%s stopped=%s",
            provider_code,
            result.synced,
            result.created,
            result.updated,
            result.hidden,
            result.skipped,
            len(result.errors),
            result.api_calls,
            result.stopped_reason,
        )

    return result
