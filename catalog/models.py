# catalog/models.py
from __future__ import annotations

from decimal import Decimal

from django.db import models
from django.utils import timezone
from django.utils.text import slugify

from catalog.utils import slugify_unique

WAREHOUSE_CHOICES = [
    ("US", "US"),
    ("CN", "CN"),
    ("CA", "CA"),
]

ZERO = Decimal("0.00")


# ---------- Base ----------
class TimeStampedModel(models.Model):
    created_at = models.DateTimeField(default=timezone.now, editable=False)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        abstract = True


# ---------- Taxonomy ----------
class Category(models.Model):
    name = models.CharField(max_length=120, unique=True)
    slug = models.SlugField(max_length=140, unique=True, blank=True)
    is_active = models.BooleanField(default=True)

    class Meta:
        ordering = ["name"]
        verbose_name_plural = "categories"

    def save(self, *args, **kwargs):
        if not self.slug:
            self.slug = slugify(self.name)
        super().save(*args, **kwargs)

    def __str__(self) -> str:
        return self.name


# ---------- Core ----------
class Product(TimeStampedModel):
    STATUS_ACTIVE = "active"
    STATUS_PENDING = "pending"
    STATUS_HIDDEN = "hidden"
    STATUS_CHOICES = [
        (STATUS_ACTIVE, "Active"),
        (STATUS_PENDING, "Pending review"),
        (STATUS_HIDDEN, "Hidden"),
    ]
    # Written by save() on every call, including update_fields saves
    DERIVED_FIELDS = (
        "slug",
        "status",
        "processor_fee",
        "total_cost",
        "margin_dollars",
        "margin_percent",
    )

    # Supplier pid; NULL for products created by hand
    external_id = models.CharField(max_length=64, unique=True, null=True, blank=True)
    name = models.CharField(max_length=255)
    slug = models.SlugField(max_length=255, unique=True, blank=True)
    description = models.TextField(blank=True)
    category = models.ForeignKey(
        Category,
        on_delete=models.SET_NULL,
        related_name="products",
        null=True,
        blank=True,
    )
    images = models.JSONField(default=list, blank=True)

    # Cost side
    supplier_price = models.DecimalField(max_digits=10, decimal_places=2, default=ZERO)
    shipping_cost = models.DecimalField(max_digits=10, decimal_places=2, default=ZERO)
    processor_fee = models.DecimalField(max_digits=10, decimal_places=2, default=ZERO)
    total_cost = models.DecimalField(max_digits=10, decimal_places=2, default=ZERO)
    markup_multiplier = models.DecimalField(max_digits=5, decimal_places=2, default=Decimal("2.00"))

    # Sell side
    retail_price = models.DecimalField(max_digits=10, decimal_places=2, default=ZERO)
    compare_at_price = models.DecimalField(max_digits=10, decimal_places=2, null=True, blank=True)
    margin_dollars = models.DecimalField(max_digits=10, decimal_places=2, default=ZERO)
    margin_percent = models.DecimalField(max_digits=6, decimal_places=1, default=Decimal("0.0"))

    stock_count = models.PositiveIntegerField(default=0)
    weight_grams = models.PositiveIntegerField(default=0, help_text="0 = unknown")
    is_digital = models.BooleanField(default=False)

    warehouse = models.CharField(max_length=2, choices=WAREHOUSE_CHOICES, default="CN")
    warehouse_ambiguous = models.BooleanField(default=False)
    shipping_estimate = models.CharField(max_length=64, blank=True)
    delivery_cycle_days = models.CharField(max_length=32, blank=True)

    status = models.CharField(
        max_length=10, choices=STATUS_CHOICES, default=STATUS_PENDING, db_index=True
    )
    last_synced_at = models.DateTimeField(null=True, blank=True)
    raw = models.JSONField(default=dict, blank=True, help_text="Last supplier payload")

    class Meta:
        indexes = [
            models.Index(fields=["status"], name="catalog_prod_status_idx"),
            models.Index(fields=["warehouse"], name="catalog_prod_warehouse_idx"),
            models.Index(fields=["category"], name="catalog_prod_category_idx"),
        ]
        ordering = ["-created_at"]

    def __str__(self) -> str:
        return self.name

    def refresh_margin(self, config=None) -> None:
        """Recompute fee, total cost and margin from the current retail price."""
        from catalog.pricing import evaluate_retail, to_money

        if (self.retail_price or ZERO) <= 0:
            return
        result = evaluate_retail(
            self.retail_price, self.supplier_price, self.shipping_cost, config
        )
        self.processor_fee = to_money(result.processor_fee)
        self.total_cost = to_money(result.total_cost)
        self.margin_dollars = to_money(result.margin_dollars)
        self.margin_percent = Decimal(str(result.margin_percent))

    def enforce_status_invariants(self, config=None) -> None:
        """Unpriced or unprofitable products are never sellable, whatever status was asked for."""
        from catalog.pricing import get_pricing_config, should_auto_hide

        config = config or get_pricing_config()
        self.refresh_margin(config)
        if self.is_digital:
            return
        if self.status == self.STATUS_ACTIVE and (self.retail_price or ZERO) <= 0:
            self.status = self.STATUS_HIDDEN
        if self.retail_price and should_auto_hide(float(self.margin_percent or 0), config):
            self.status = self.STATUS_HIDDEN

    def save(self, *args, pricing_config=None, **kwargs):
        if self.name:
            wanted = self.slug or self.name
            self.slug = slugify_unique(Product, wanted, exclude_pk=self.pk)
        self.enforce_status_invariants(pricing_config)
        update_fields = kwargs.get("update_fields")
        if update_fields:
            kwargs["update_fields"] = set(update_fields) | set(self.DERIVED_FIELDS)
        super().save(*args, **kwargs)

    @property
    def primary_image(self) -> str:
        return self.images[0] if self.images else ""


class Variant(TimeStampedModel):
    product = models.ForeignKey(Product, on_delete=models.CASCADE, related_name="variants")
    external_vid = models.CharField(max_length=64, unique=True, null=True, blank=True)
    name = models.CharField(max_length=255, blank=True)
    color = models.CharField(max_length=100, null=True, blank=True)
    size = models.CharField(max_length=50, null=True, blank=True)

    supplier_price = models.DecimalField(max_digits=10, decimal_places=2, default=ZERO)
    price = models.DecimalField(max_digits=10, decimal_places=2, default=ZERO)
    image = models.URLField(max_length=500, blank=True)
    weight_grams = models.PositiveIntegerField(default=0)
    stock_count = models.PositiveIntegerField(default=0)

    is_active = models.BooleanField(default=True)

    class Meta:
        indexes = [
            models.Index(fields=["is_active"], name="catalog_var_active_idx"),
            models.Index(fields=["product", "external_vid"], name="catalog_var_prod_vid_idx"),
        ]
        ordering = ["product_id", "id"]

    def __str__(self) -> str:
        return f"{self.product.name} · {self.name or self.external_vid}"

    @property
    def effective_weight_grams(self) -> int:
        return self.weight_grams or self.product.weight_grams


class Review(models.Model):
    product = models.ForeignKey(Product, on_delete=models.CASCADE, related_name="reviews")
    external_id = models.CharField(max_length=64, blank=True)
    rating = models.PositiveSmallIntegerField()
    author_name = models.CharField(max_length=120, default="Customer")
    body = models.TextField()
    is_verified = models.BooleanField(default=True)
    is_approved = models.BooleanField(default=True)
    source = models.CharField(max_length=20, default="cj")
    created_at = models.DateTimeField(default=timezone.now)

    class Meta:
        ordering = ["-created_at"]
        constraints = [
            models.UniqueConstraint(
                fields=["product", "source", "external_id"],
                name="uq_review_source_external_id",
            )
        ]

    def __str__(self) -> str:
        return f"{self.product_id} ★{self.rating} by {self.author_name}"


class StoreSetting(models.Model):
    """Key/value configuration store (pricing_config, shipping_config, ...)."""

    key = models.CharField(max_length=64, unique=True)
    value = models.JSONField(default=dict, blank=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["key"]

    def __str__(self) -> str:
        return self.key

    @classmethod
    def get_value(cls, key: str, default=None):
        row = cls.objects.filter(key=key).only("value").first()
        return row.value if row else default

    @classmethod
    def set_value(cls, key: str, value) -> "StoreSetting":
        row, _ = cls.objects.update_or_create(key=key, defaults={"value": value})
        return row
