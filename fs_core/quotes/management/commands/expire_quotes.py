from __future__ import annotations

from django.core.management.base import BaseCommand

from fs_core.quotes.services import QuoteService


class Command(BaseCommand):
    help = "Expire sent/viewed quotes whose expires_at has passed and release their deficiencies."

    def handle(self, *args, **options):
        count = QuoteService.expire_due()
        self.stdout.write(self.style.SUCCESS(f"Expired {count} quote(s)."))
