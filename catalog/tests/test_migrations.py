from io import StringIO

from django.core.management import call_command
from django.db import connection
from django.db.migrations.executor import MigrationExecutor
from django.test import TestCase


class MigrationStateTests(TestCase):
    def test_models_have_no_unmigrated_changes(self):
        out = StringIO()
        try:
            call_command(
                "makemigrations", "catalog", "providers", check=True, dry_run=True, stdout=out
            )
        except SystemExit:
            self.fail(f"models changed without a migration:\n{out.getvalue()}")

    def test_initial_migrations_are_applied(self):
        applied = MigrationExecutor(connection).loader.applied_migrations
        self.assertIn(("catalog", "0001_initial"), applied)
        self.assertIn(("providers", "0001_initial"), applied)
