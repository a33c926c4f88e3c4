from __future__ import annotations

from django.contrib import admin, messages

from catalog.services.reprice import reprice_products
from providers.exceptions import SupplierError
from providers.models import ProviderAccount
from providers.services.clients import get_client
from providers.services.inventory import refresh_product_stock
from providers.services.reviews import sync_reviews_for_product

from .models import Category, Product, Review, StoreSetting, Variant

SUPPLIER_CODE = "cj"


# -------- Inlines --------
class VariantInline(admin.TabularInline):
    model = Variant
    extra = 0
    fields = ("external_vid", "name", "color", "size", "supplier_price", "price", "is_active")
    readonly_fields = ("external_vid", "supplier_price")
    show_change_link = True


# -------- Actions --------
@admin.action(description="Publish (status → active)")
def mark_active(modeladmin, request, queryset):
    published = 0
    for product in queryset:
        product.status = Product.STATUS_ACTIVE
        product.save()
        # save() demotes unpriced / unprofitable products back to hidden
        if product.status == Product.STATUS_ACTIVE:
            published += 1
    messages.info(request, f"Published {published} of {queryset.count()} product(s).")


@admin.action(description="Hide")
def mark_hidden(modeladmin, request, queryset):
    queryset.update(status=Product.STATUS_HIDDEN)


@admin.action(description="Reprice all active products with the current config")
def reprice_active(modeladmin, request, queryset):
    counts = reprice_products()
    messages.success(request, f"Repriced: {counts}")


def _each_with_client(request, queryset, fn, label):
    try:
        client = get_client(SUPPLIER_CODE)
    except (ProviderAccount.DoesNotExist, ValueError) as e:
        messages.error(request, f"No supplier client: {e}")
        return
    done = 0
    for product in queryset.exclude(external_id__isnull=True):
        try:
            fn(client, product)
            done += 1
        except SupplierError as e:
            messages.warning(request, f"{product.external_id}: {e}")
    messages.success(request, f"{label} for {done} product(s).")


@admin.action(description="Refresh warehouse & stock from supplier")
def refresh_stock(modeladmin, request, queryset):
    _each_with_client(request, queryset, refresh_product_stock, "Stock refreshed")


@admin.action(description="Import supplier reviews")
def import_reviews(modeladmin, request, queryset):
    _each_with_client(request, queryset, sync_reviews_for_product, "Reviews synced")


# -------- ModelAdmins --------
@admin.register(Product)
class ProductAdmin(admin.ModelAdmin):
    list_display = (
        "name",
        "category",
        "status",
        "warehouse",
        "warehouse_ambiguous",
        "supplier_price",
        "retail_price",
        "margin_percent",
        "last_synced_at",
    )
    list_filter = ("status", "warehouse", "warehouse_ambiguous", "is_digital", "category")
    search_fields = ("name", "slug", "external_id", "variants__external_vid")
    readonly_fields = ("external_id", "raw", "last_synced_at", "created_at", "updated_at")
    inlines = [VariantInline]
    list_select_related = ("category",)
    ordering = ("-updated_at",)
    list_per_page = 50
    actions = [mark_active, mark_hidden, reprice_active, refresh_stock, import_reviews]


@admin.register(Variant)
class VariantAdmin(admin.ModelAdmin):
    list_display = ("external_vid", "product", "color", "size", "price", "is_active")
    list_filter = ("is_active",)
    search_fields = ("external_vid", "name", "product__name")
    autocomplete_fields = ("product",)
    list_select_related = ("product",)
    ordering = ("product", "id")


@admin.register(Review)
class ReviewAdmin(admin.ModelAdmin):
    list_display = ("product", "rating", "author_name", "is_approved", "source", "created_at")
    list_filter = ("rating", "is_approved", "source")
    search_fields = ("product__name", "author_name", "body")
    list_select_related = ("product",)


@admin.register(Category)
class CategoryAdmin(admin.ModelAdmin):
    list_display = ("name", "slug", "is_active")
    prepopulated_fields = {"slug": ("name",)}
    search_fields = ("name", "slug")
    ordering = ("name",)


@admin.register(StoreSetting)
class StoreSettingAdmin(admin.ModelAdmin):
    list_display = ("key", "updated_at")
    search_fields = ("key",)
