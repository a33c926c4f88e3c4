# providers/admin.py
from django.contrib import admin, messages
from django.contrib.admin.widgets import AdminTextareaWidget
from django.db import models

from providers.models import ProviderAccount, ProviderSyncLog
from providers.services.health import ping_provider
from providers.services.sync import sync_provider_products


@admin.action(description="Sync selected providers now")
def sync_selected_providers(modeladmin, request, queryset):
    total = 0
    for account in queryset:
        if not account.is_active:
            messages.warning(request, f"Skipped {account.code}: inactive")
            continue
        try:
            result = sync_provider_products(provider_code=account.code)
        except RuntimeError as e:
            messages.error(request, f"{account.code} failed: {e}")
            continue
        summary = (
            f"{account.code}: synced={result.synced} created={result.created} "
            f"updated={result.updated} hidden={result.hidden} errors={len(result.errors)}"
        )
        if result.errors:
            messages.warning(request, f"{summary}; first error: {result.errors[0]}")
        else:
            messages.success(request, summary)
        total += 1
    if total:
        messages.info(request, f"Synced {total} provider(s).")


@admin.action(description="Test credentials (ping)")
def test_selected_providers(modeladmin, request, queryset):
    for account in queryset:
        result = ping_provider(account)
        if result.get("ok"):
            messages.success(
                request,
                f"{account.code} ping OK (total={result.get('total')}, "
                f"sample_found={result.get('sample_found')})",
            )
        else:
            messages.error(request, f"{account.code} ping failed: {result.get('error')}")


@admin.register(ProviderAccount)
class ProviderAccountAdmin(admin.ModelAdmin):
    list_display = ("code", "name", "priority", "is_active", "has_token")
    list_filter = ("is_active",)
    search_fields = ("code", "name")
    actions = [sync_selected_providers, test_selected_providers]

    formfield_overrides = {
        models.JSONField: {"widget": AdminTextareaWidget},
    }

    @admin.display(boolean=True, description="Token cached")
    def has_token(self, obj):
        return obj.has_token


@admin.register(ProviderSyncLog)
class ProviderSyncLogAdmin(admin.ModelAdmin):
    list_display = (
        "provider_account",
        "status",
        "started_at",
        "finished_at",
        "duration_ms",
    )
    list_filter = ("status", "provider_account")
    date_hierarchy = "started_at"
    search_fields = ("provider_account__code", "first_error")
    readonly_fields = ("counts", "first_error")
