# sped_core/rules/management/commands/seed_rule_catalog.py
from __future__ import annotations

from django.core.management.base import BaseCommand

from sped_core.rules.catalog import seed_catalog


class Command(BaseCommand):
    help = "Create the built-in rule definitions and evidence types. Only inserts missing rows."

    def handle(self, *args, **opts):
        counts = seed_catalog()
        self.stdout.write(
            self.style.SUCCESS(
                f"rule_definitions_created={counts['rule_definitions']} "
                f"evidence_types_created={counts['evidence_types']}"
            )
        )
