from django.core.management.base import BaseCommand
from django.db import transaction

from ipd.models import BillingRecord
from ipd.services.ledger import deposit_drift


class Command(BaseCommand):
    help = "Compare each billing record's cached deposit with its payment history"

    def add_arguments(self, parser):
        parser.add_argument(
            "--fix",
            action="store_true",
            help="Overwrite the cached deposit with the payment total",
        )

    def handle(self, *args, **options):
        drift = deposit_drift()

        for billing, cached, actual in drift:
            self.stdout.write(f"Billing {billing.pk} ({billing.admission}): cached {cached}, payments {actual}")

        if not drift:
            self.stdout.write(self.style.SUCCESS("All deposits match their payments"))
            return

        if options["fix"]:
            with transaction.atomic():
                for billing, _, actual in drift:
                    BillingRecord.objects.filter(pk=billing.pk).update(total_deposit=actual)
            self.stdout.write(self.style.SUCCESS(f"Fixed {len(drift)} billing record(s)"))
        else:
            self.stdout.write(self.style.WARNING(f"{len(drift)} billing record(s) out of step"))
