"""Management command to expire aged loyalty points."""

from django.core.management.base import BaseCommand

from loyalman.engine import LoyaltyEngine
from loyalman.models import LoyaltyProgram


class Command(BaseCommand):
    help = "Expire unspent points whose expiry date has passed"

    def add_arguments(self, parser):
        parser.add_argument(
            "--program",
            default=None,
            help="Only sweep this program code (default: every enabled program)",
        )

    def handle(self, *args, **options):
        if options["program"]:
            codes = [options["program"]]
        else:
            codes = list(
                LoyaltyProgram.objects.filter(is_enabled=True)
                .order_by("code")
                .values_list("code", flat=True)
            )

        total = 0
        for code in codes:
            expired = LoyaltyEngine(code).reaper.sweep()
            total += expired
            self.stdout.write(f"{code}: {expired} points expired")

        self.stdout.write(self.style.SUCCESS(f"Expired {total} points in {len(codes)} programs."))
