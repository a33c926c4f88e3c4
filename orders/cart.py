# orders/cart.py
from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Dict, Iterator, List, Tuple

from shipping.resolver import ShippingItem

CART_SESSION_KEY = "cart_v1"


@dataclass
class CartLine:
    variant: "Variant"  # noqa: F821
    qty: int
    unit_price: Decimal

    @property
    def product(self):
        return self.variant.product

    @property
    def line_total(self) -> Decimal:
        return (self.unit_price or Decimal("0")) * int(self.qty or 0)

    def to_shipping_item(self) -> ShippingItem:
        product = self.product
        return ShippingItem(
            quantity=int(self.qty),
            weight_grams=self.variant.effective_weight_grams,
            unit_price=self.unit_price,
            is_digital=product.is_digital,
            vid=self.variant.external_vid,
            warehouse=product.warehouse,
        )


class Cart:
    """
    Session-backed cart keyed by Variant id:

        {"123": {"qty": 2}, "456": {"qty": 1}}
    """

    def __init__(self, request):
        self.session = request.session
        raw = self.session.get(CART_SESSION_KEY, {})
        self._data: Dict[str, Dict[str, int]] = raw if isinstance(raw, dict) else {}

    def _save(self) -> None:
        self.session[CART_SESSION_KEY] = self._data
        self.session.modified = True

    def items_raw(self) -> List[Tuple[int, int]]:
        """(variant_id, qty) pairs without DB hits; junk keys and non-positive qty are ignored."""
        out: List[Tuple[int, int]] = []
        for key, payload in self._data.items():
            try:
                vid = int(key)
                qty = int(payload.get("qty", 0)) if isinstance(payload, dict) else int(payload)
            except (TypeError, ValueError):
                continue
            if qty > 0:
                out.append((vid, qty))
        return out

    def add(self, variant_id: int, qty: int = 1, replace: bool = False) -> None:
        key = str(int(variant_id))
        existing = dict(self.items_raw()).get(int(variant_id), 0)
        new_qty = int(qty) if replace else existing + int(qty)
        if new_qty <= 0:
            self._data.pop(key, None)
        else:
            self._data[key] = {"qty": new_qty}
        self._save()

    def remove(self, variant_id: int) -> None:
        self._data.pop(str(int(variant_id)), None)
        self._save()

    def __iter__(self) -> Iterator[CartLine]:
        from catalog.models import Product, Variant  # local import to avoid circulars

        pairs = self.items_raw()
        if not pairs:
            return iter(())
        variants = {
            v.id: v
            for v in Variant.objects.select_related("product").filter(
                id__in=[vid for vid, _ in pairs],
                is_active=True,
                product__status=Product.STATUS_ACTIVE,
            )
        }
        lines = []
        for vid, qty in pairs:
            v = variants.get(vid)
            if v is None:
                continue
            price = v.price if v.price and v.price > 0 else v.product.retail_price
            lines.append(CartLine(variant=v, qty=qty, unit_price=price))
        return iter(lines)

    @property
    def subtotal(self) -> Decimal:
        return sum((line.line_total for line in self), Decimal("0"))

    def shipping_items(self) -> List[ShippingItem]:
        return [line.to_shipping_item() for line in self]

    @property
    def is_empty(self) -> bool:
        return not self.items_raw()

    def clear(self) -> None:
        self.session.pop(CART_SESSION_KEY, None)
        self.session.modified = True
