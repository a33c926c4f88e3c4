# providers/views.py
from __future__ import annotations

import json
import logging

from django.contrib.admin.views.decorators import staff_member_required
from django.http import Http404, JsonResponse
from django.views.decorators.http import require_POST

from providers.models import ProviderAccount
from providers.services.sync import sync_provider_products

log = logging.getLogger(__name__)

WAREHOUSE_CHOICES = {"all", "US", "CN", "CA"}


def _int(value, default: int) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


@staff_member_required
@require_POST
def trigger_sync(request, code: str):
    """
    Operator trigger. Body: {resync, warehouse, categoryId, keyword, page, pageSize, maxPages}.
    Always answers with the run summary, never a traceback.
    """
    try:
        body = json.loads(request.body or b"{}")
    except ValueError:
        return JsonResponse({"error": "invalid JSON body"}, status=400)
    if not isinstance(body, dict):
        return JsonResponse({"error": "invalid JSON body"}, status=400)

    warehouse = str(body.get("warehouse") or "all")
    if warehouse not in WAREHOUSE_CHOICES and warehouse.upper() not in WAREHOUSE_CHOICES:
        return JsonResponse({"error": f"unknown warehouse {warehouse!r}"}, status=400)

    try:
        result = sync_provider_products(
            provider_code=code,
            resync=bool(body.get("resync")),
            warehouse=warehouse,
            category_id=body.get("categoryId") or None,
            keyword=body.get("keyword") or None,
            page=_int(body.get("page"), 1),
            page_size=_int(body.get("pageSize"), 200),
            max_pages=_int(body.get("maxPages"), 1),
        )
    except ProviderAccount.DoesNotExist:
        raise Http404(f"No active provider '{code}'")
    except RuntimeError as e:
        return JsonResponse({"error": str(e)}, status=409)

    log.info("sync.triggered provider=%s user=%s", code, request.user.pk)
    status = 502 if result.stopped_reason == "fatal" else 200
    return JsonResponse(result.as_dict(), status=status)
