# providers/tasks.py
from __future__ import annotations

import logging

from celery import shared_task

from providers.services.clients import get_client
from providers.services.inventory import refresh_stock_for_all
from providers.services.reviews import sync_reviews_for_all
from providers.services.sync import sync_provider_products

log = logging.getLogger(__name__)


@shared_task
def sync_provider(code: str, resync: bool = False, warehouse: str = "all", max_pages: int = 1):
    result = sync_provider_products(
        provider_code=code, resync=resync, warehouse=warehouse, max_pages=max_pages
    )
    return result.as_dict()


@shared_task
def refresh_provider_stock(code: str, limit: int | None = None):
    return refresh_stock_for_all(get_client(code), limit=limit)


@shared_task
def sync_provider_reviews(code: str, limit: int | None = None):
    return sync_reviews_for_all(get_client(code), limit=limit)
