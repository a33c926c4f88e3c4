# catalog/utils.py
from __future__ import annotations

from typing import Optional

from django.db.models import Model
from django.utils.text import slugify


def slugify_unique(
    model_cls: type[Model],
    value: str,
    slug_field: str = "slug",
    *,
    max_length: int = 240,
    exclude_pk: Optional[int] = None,
) -> str:
    """
    Create a unique slug for `model_cls` from `value`, appending -2, -3, ... if needed.
    """
    base = slugify(value)[:max_length].strip("-") or "item"
    slug = base
    i = 2
    qs = model_cls.objects.all()
    if exclude_pk is not None:
        qs = qs.exclude(pk=exclude_pk)
    while qs.filter(**{slug_field: slug}).exists():
        slug = f"{base}-{i}"
        i += 1
    return slug


def supplier_slug(name: str, external_id: str) -> str:
    """Stable slug for synced products: the pid prefix keeps same-named items apart."""
    base = slugify(name)[:80].strip("-") or "product"
    suffix = slugify(external_id or "")[:8]
    return f"{base}-{suffix}" if suffix else base
