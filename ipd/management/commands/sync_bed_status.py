from django.core.management.base import BaseCommand

from ipd.services.beds import sync_bed_status


class Command(BaseCommand):
    help = "Rebuild bed statuses from the active admissions holding them"

    def add_arguments(self, parser):
        parser.add_argument(
            "--dry-run",
            action="store_true",
            help="Report mismatched beds without changing them",
        )

    def handle(self, *args, **options):
        dry_run = options["dry_run"]
        fixes = sync_bed_status(dry_run=dry_run)

        for bed, old_status, new_status in fixes:
            self.stdout.write(f"{bed}: {old_status} -> {new_status}")

        if not fixes:
            self.stdout.write(self.style.SUCCESS("All bed statuses match their admissions"))
        elif dry_run:
            self.stdout.write(self.style.WARNING(f"{len(fixes)} bed(s) out of sync (dry run, nothing changed)"))
        else:
            self.stdout.write(self.style.SUCCESS(f"Updated {len(fixes)} bed(s)"))
