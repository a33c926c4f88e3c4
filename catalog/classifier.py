# catalog/classifier.py
from __future__ import annotations

from typing import Any, Iterable, Optional, Protocol, Sequence, Tuple

# Scanned in order; the first slug with a matching keyword wins.
KEYWORD_TABLE: Tuple[Tuple[str, Tuple[str, ...]], ...] = (
    ("womens-fashion", ("women", "dress", "shirt", "fashion", "clothing")),
    ("pet-supplies", ("pet", "dog", "cat", "animal")),
    ("home-garden", ("home", "garden", "furniture", "decor")),
    ("health-beauty", ("beauty", "skin", "hair", "health", "makeup")),
    ("jewelry", ("jewelry", "necklace", "ring", "earring", "bracelet")),
    ("electronics", ("electronic", "phone", "gadget", "tech")),
    ("kids-toys", ("kid", "toy", "baby", "child")),
    ("kitchen", ("kitchen", "cook", "knife", "utensil")),
)


class Classifier(Protocol):
    def classify(
        self, category_label: Optional[str], product_name: Optional[str], categories: Sequence[Any]
    ) -> Optional[Any]:
        """Return the id of one of `categories`, or None."""


class KeywordClassifier:
    """
    Two passes over "<supplier category> <product name>":
    an existing category name appearing verbatim, then the keyword table.
    `categories` are objects (or dicts) with id, name and slug.
    """

    def __init__(self, table: Iterable[Tuple[str, Iterable[str]]] = KEYWORD_TABLE):
        self.table = tuple((slug, tuple(k.lower() for k in kws)) for slug, kws in table)

    @staticmethod
    def _attr(category, name: str):
        if isinstance(category, dict):
            return category.get(name)
        return getattr(category, name, None)

    def classify(self, category_label, product_name, categories):
        haystack = f"{category_label or ''} {product_name or ''}".lower()
        if not haystack.strip():
            return None

        for category in categories:
            name = (self._attr(category, "name") or "").lower()
            if name and name in haystack:
                return self._attr(category, "id")

        by_slug = {self._attr(c, "slug"): c for c in categories}
        for slug, keywords in self.table:
            if any(k in haystack for k in keywords):
                match = by_slug.get(slug)
                if match is not None:
                    return self._attr(match, "id")
        return None


default_classifier = KeywordClassifier()


def classify(category_label, product_name, categories) -> Optional[Any]:
    return default_classifier.classify(category_label, product_name, categories)
