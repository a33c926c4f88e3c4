# orders/views.py
from decimal import Decimal

from django.http import HttpResponseBadRequest, JsonResponse
from django.views.decorators.http import require_GET, require_POST

from orders.cart import Cart


def _cart_payload(cart: Cart) -> dict:
    lines = list(cart)
    return {
        "items": [
            {
                "variant_id": line.variant.id,
                "name": line.variant.name or line.product.name,
                "qty": line.qty,
                "unit_price": str(line.unit_price),
                "line_total": str(line.line_total),
            }
            for line in lines
        ],
        "subtotal": str(sum((line.line_total for line in lines), Decimal("0"))),
    }


@require_GET
def cart_detail(request):
    return JsonResponse(_cart_payload(Cart(request)))


@require_POST
def cart_add(request):
    variant_id = request.POST.get("variant_id")
    qty = request.POST.get("qty", "1")
    if not variant_id:
        return HttpResponseBadRequest("variant_id required")
    try:
        variant_id, qty = int(variant_id), int(qty)
    except ValueError:
        return HttpResponseBadRequest("variant_id and qty must be integers")
    cart = Cart(request)
    cart.add(variant_id, qty, replace=request.POST.get("replace") == "1")
    return JsonResponse(_cart_payload(cart))


@require_POST
def cart_remove(request):
    variant_id = request.POST.get("variant_id")
    if not variant_id or not variant_id.isdigit():
        return HttpResponseBadRequest("variant_id required")
    cart = Cart(request)
    cart.remove(int(variant_id))
    return JsonResponse(_cart_payload(cart))
