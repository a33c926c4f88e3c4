from __future__ import annotations

from django.core.management.base import BaseCommand, CommandError

from providers.models import ProviderAccount
from providers.services.sync import DEFAULT_CALL_BUDGET, sync_provider_products


class Command(BaseCommand):
    help = "Sync products from a provider into the catalog."

    def add_arguments(self, parser):
        parser.add_argument("--code", required=True, help="Provider code (e.g., cj)")
        parser.add_argument(
            "--resync",
            action="store_true",
            help="Delete every supplier-sourced product first (full replace)",
        )
        parser.add_argument(
            "--warehouse",
            default="all",
            choices=["all", "US", "CN", "CA"],
            help="Only import this origin",
        )
        parser.add_argument("--category-id", default=None, help="CJ categoryId")
        parser.add_argument("--keyword", default=None, help="CJ product name search")
        parser.add_argument("--page", type=int, default=1)
        parser.add_argument("--page-size", type=int, default=200)
        parser.add_argument("--max-pages", type=int, default=1)
        parser.add_argument(
            "--budget",
            type=int,
            default=DEFAULT_CALL_BUDGET,
            help="Stop after this many supplier API calls",
        )

    def handle(self, *args, **opts):
        try:
            result = sync_provider_products(
                provider_code=opts["code"],
                resync=opts["resync"],
                warehouse=opts["warehouse"],
                category_id=opts["category_id"],
                keyword=opts["keyword"],
                page=opts["page"],
                page_size=opts["page_size"],
                max_pages=opts["max_pages"],
                call_budget=opts["budget"],
            )
        except ProviderAccount.DoesNotExist:
            raise CommandError(f"No active provider account with code {opts['code']!r}")
        except RuntimeError as e:
            raise CommandError(str(e)) from e

        style = self.style.SUCCESS if not result.errors else self.style.WARNING
        self.stdout.write(
            style(
                f"Sync complete: synced={result.synced} created={result.created} "
                f"updated={result.updated} hidden={result.hidden} skipped={result.skipped} "
                f"api_calls={result.api_calls} stopped={result.stopped_reason or '-'}"
            )
        )
        for err in result.errors:
            self.stdout.write(f"  ! {err}")
