# sped_core/reviews/management/commands/mark_overdue_reviews.py
from __future__ import annotations

from django.core.management.base import BaseCommand

from sped_core.reviews.services import ReviewScheduleService


class Command(BaseCommand):
    help = "Mark OPEN review schedules past their due date as OVERDUE. Safe to run repeatedly (e.g. from cron)."

    def add_arguments(self, parser):
        parser.add_argument("--dry-run", action="store_true", help="Report the count without updating rows.")

    def handle(self, *args, **opts):
        dry_run = opts["dry_run"]
        count = ReviewScheduleService.mark_overdue(dry_run=dry_run)

        prefix = "would_mark" if dry_run else "marked"
        self.stdout.write(self.style.SUCCESS(f"{prefix}_overdue={count}"))
