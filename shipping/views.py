# shipping/views.py
from __future__ import annotations

import json
import logging

from django.contrib.admin.views.decorators import staff_member_required
from django.http import HttpResponseBadRequest, JsonResponse
from django.views.decorators.http import require_GET, require_http_methods, require_POST

from orders.cart import Cart
from providers.exceptions import SupplierError
from providers.models import ProviderAccount
from providers.services.clients import get_client
from shipping.config import ShippingConfig, get_shipping_config, save_shipping_config
from shipping.freight import make_freight_quoter
from shipping.resolver import resolve

log = logging.getLogger(__name__)

SUPPLIER_CODE = "cj"


def _json_body(request) -> dict:
    try:
        body = json.loads(request.body or b"{}")
    except ValueError:
        return {}
    return body if isinstance(body, dict) else {}


@require_POST
def freight_estimate(request):
    """Live supplier freight options for one variant."""
    body = _json_body(request)
    vid = body.get("vid")
    if not vid:
        return HttpResponseBadRequest("vid required")
    try:
        quantity = int(body.get("quantity") or 1)
    except (TypeError, ValueError):
        return HttpResponseBadRequest("quantity must be a whole number")
    if quantity < 1:
        return HttpResponseBadRequest("quantity must be at least 1")
    try:
        client = get_client(SUPPLIER_CODE)
    except (ProviderAccount.DoesNotExist, ValueError) as e:
        return JsonResponse({"error": f"supplier unavailable: {e}"}, status=503)
    try:
        options = client.calculate_freight(
            end_country_code=body.get("countryCode") or "US",
            products=[{"vid": vid, "quantity": quantity}],
        )
    except SupplierError as e:
        log.warning("shipping.estimate_failed vid=%s err=%s", vid, e)
        return JsonResponse({"error": str(e)}, status=502)
    return JsonResponse(
        {
            "options": [
                {"carrier": o.name, "price": o.price, "estimatedDays": o.aging} for o in options
            ]
        }
    )


@require_GET
def cart_shipping_quote(request):
    cart = Cart(request)
    config = get_shipping_config()
    quoter = None
    if config.use_freight_quotes:
        try:
            quoter = make_freight_quoter(get_client(SUPPLIER_CODE))
        except (ProviderAccount.DoesNotExist, ValueError) as e:
            log.info("shipping.quoter_unavailable err=%s", e)
    subtotal = cart.subtotal
    quote = resolve(cart.shipping_items(), subtotal, config, freight_quote=quoter)
    return JsonResponse({"subtotal": str(subtotal), **quote.as_dict()})


@staff_member_required
@require_http_methods(["GET", "PUT"])
def shipping_config(request):
    if request.method == "PUT":
        config = ShippingConfig.from_mapping(_json_body(request), get_shipping_config())
        save_shipping_config(config)
        return JsonResponse(config.as_dict())
    return JsonResponse(get_shipping_config().as_dict())
