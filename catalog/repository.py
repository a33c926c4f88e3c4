# catalog/repository.py
from __future__ import annotations

import logging
from typing import Any, Dict, List, Mapping, Optional, Tuple

from django.db import DatabaseError

from catalog.models import Category, Product, Variant
from providers.exceptions import PersistenceError

log = logging.getLogger(__name__)


class CatalogRepository:
    """
    Row-level writes the sync needs, keyed on supplier ids so a re-run
    updates in place instead of duplicating.
    """

    def categories(self) -> List[Category]:
        return list(Category.objects.filter(is_active=True).only("id", "name", "slug"))

    def delete_synced(self) -> int:
        """Full replace: drop every product that came from a supplier (variants cascade)."""
        try:
            deleted, _ = Product.objects.filter(external_id__isnull=False).delete()
        except DatabaseError as e:
            raise PersistenceError(f"Resync delete failed: {e}") from e
        return deleted

    def upsert_product(
        self,
        external_id: str,
        values: Mapping[str, Any],
        *,
        is_viable: bool,
        create_only: Optional[Mapping[str, Any]] = None,
        pricing_config=None,
    ) -> Tuple[Product, bool]:
        try:
            product = Product.objects.filter(external_id=external_id).first()
            created = product is None
            if created:
                product = Product(external_id=external_id, **dict(create_only or {}))
                product.status = Product.STATUS_PENDING if is_viable else Product.STATUS_HIDDEN
            else:
                if not is_viable:
                    product.status = Product.STATUS_HIDDEN
                elif product.status == Product.STATUS_HIDDEN:
                    product.status = Product.STATUS_PENDING
            for field, value in values.items():
                setattr(product, field, value)
            product.save(pricing_config=pricing_config)
        except DatabaseError as e:
            raise PersistenceError(f"upsert failed for {external_id}: {e}") from e
        return product, created

    def upsert_variant(
        self, product: Product, external_vid: str, values: Mapping[str, Any]
    ) -> Tuple[Variant, bool]:
        defaults: Dict[str, Any] = {"product": product, **values}
        try:
            return Variant.objects.update_or_create(external_vid=external_vid, defaults=defaults)
        except DatabaseError as e:
            raise PersistenceError(f"variant upsert failed for {external_vid}: {e}") from e
