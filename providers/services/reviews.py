# providers/services/reviews.py
from __future__ import annotations

import logging
import re
from typing import Any, Dict, List, Mapping, Optional

from django.db.models import Avg, Count

from catalog.models import Product, Review
from providers.base import BaseProvider
from providers.exceptions import AuthError, BudgetExceeded, SupplierError
from providers.parsing import parse_iso_dt

log = logging.getLogger(__name__)

MIN_SCORE = 3
MAX_REVIEWS = 10
# (score, how many) taken in this order before topping up from the rest
RATING_MIX = ((5, 4), (4, 3), (3, 3))
REVIEW_SOURCE = "cj"

_RE_CJK = re.compile(r"[\u3040-\u30ff\u3400-\u9fff]")


def has_cjk(text: str) -> bool:
    return bool(_RE_CJK.search(text or ""))


def _score(row: Mapping[str, Any]) -> int:
    try:
        return int(float(row.get("score") or 0))
    except (TypeError, ValueError):
        return 0


def filter_reviews(rows: List[Mapping[str, Any]]) -> List[Dict[str, Any]]:
    """Keep scored >= 3, non-empty, non-CJK comments."""
    kept = []
    for row in rows or []:
        comment = str(row.get("comment") or "").strip()
        score = _score(row)
        if score < MIN_SCORE or not comment or has_cjk(comment):
            continue
        kept.append({**row, "score": score, "comment": comment})
    return kept


def pick_mixed_ratings(
    reviews: List[Dict[str, Any]], limit: int = MAX_REVIEWS
) -> List[Dict[str, Any]]:
    picked: List[Dict[str, Any]] = []
    for score, count in RATING_MIX:
        picked.extend([r for r in reviews if r["score"] == score][:count])
    if len(picked) < limit:
        picked.extend([r for r in reviews if r not in picked][: limit - len(picked)])
    return picked[:limit]


def sync_reviews_for_product(
    client: BaseProvider, product: Product, *, page_size: int = 50
) -> Dict[str, Any]:
    response = client.get_reviews(product.external_id, page_num=1, page_size=page_size) or {}
    rows = list(response.get("list") or []) if isinstance(response, Mapping) else []
    chosen = pick_mixed_ratings(filter_reviews(rows))

    synced = 0
    for row in chosen:
        external_id = str(row.get("commentId") or "")
        if not external_id:
            continue
        defaults = {
            "rating": row["score"],
            "author_name": (row.get("commentUser") or "Customer")[:120],
            "body": row["comment"],
            "is_verified": True,
            "is_approved": True,
        }
        created_at = parse_iso_dt(row.get("commentDate"))
        if created_at:
            defaults["created_at"] = created_at
        Review.objects.update_or_create(
            product=product, source=REVIEW_SOURCE, external_id=external_id, defaults=defaults
        )
        synced += 1

    stats = Review.objects.filter(product=product, is_approved=True).aggregate(
        count=Count("id"), average=Avg("rating")
    )
    average = round(float(stats["average"] or 0), 1)
    log.info(
        "reviews.synced pid=%s fetched=%s kept=%s count=%s avg=%s",
        product.external_id,
        len(rows),
        synced,
        stats["count"],
        average,
    )
    return {"synced": synced, "review_count": stats["count"], "average_rating": average}


def sync_reviews_for_all(client: BaseProvider, *, limit: Optional[int] = None) -> Dict[str, int]:
    counts = {"synced": 0, "errors": 0}
    qs = Product.objects.filter(
        status__in=[Product.STATUS_ACTIVE, Product.STATUS_PENDING], external_id__isnull=False
    ).order_by("id")
    if limit:
        qs = qs[:limit]
    for product in qs.iterator():
        try:
            sync_reviews_for_product(client, product)
        except (AuthError, BudgetExceeded):
            raise
        except SupplierError as e:
            counts["errors"] += 1
            log.warning("reviews.failed pid=%s err=%s", product.external_id, e)
            continue
        counts["synced"] += 1
    return counts
