"""
ClinicDesk seed command: reproducible demo data.

Usage:
    python manage.py seed           # seed all apps
    python manage.py seed --flush   # delete seeded data first, then rebuild

Patients are only created when the patient table is empty and are never
flushed.
"""

from django.core.management.base import BaseCommand
from django.db import transaction

from clinicdesk.billing.seeders import flush_billing, seed_billing
from clinicdesk.core.seeders import seed_core
from clinicdesk.patients.seeders import seed_patients
from clinicdesk.prescriptions.seeders import flush_prescriptions, seed_prescriptions


class Command(BaseCommand):
    help = "Seed database with realistic demo data for ClinicDesk"

    def add_arguments(self, parser):
        parser.add_argument(
            "--flush",
            action="store_true",
            help="Delete seeded users, invoices, payments and prescriptions before seeding (patients are kept).",
        )

    def handle(self, *args, **options):
        flush = options.get("flush", False)

        self.stdout.write("=" * 80)
        self.stdout.write("  ClinicDesk seed")
        self.stdout.write("=" * 80)

        steps = [
            ("Core (Roles, Users, AuditLog)", lambda: seed_core(flush=flush)),
            ("Patients", seed_patients),
            ("Billing (Invoices, Payments)", seed_billing),
            ("Prescriptions (Prescriptions, Refills)", seed_prescriptions),
        ]

        stats = {}
        with transaction.atomic():
            if flush:
                # prescriptions and payments protect the rows core flushes
                flush_prescriptions()
                flush_billing()
                self.stdout.write("\nFlushed prescriptions, invoices and payments.")

            for index, (label, step) in enumerate(steps, start=1):
                self.stdout.write(f"\n[{index}/{len(steps)}] Seeding {label}...")
                step_stats = step()
                stats.update(step_stats)
                for key, value in step_stats.items():
                    self.stdout.write(f"  ✓ {key}: {value}")

        self.stdout.write("\n" + "=" * 80)
        self.stdout.write(self.style.SUCCESS("  ✓ Seeding finished"))
        self.stdout.write("=" * 80)
        self.stdout.write("\nCreated records:")
        for key, value in sorted(stats.items()):
            self.stdout.write(f"  • {key}: {value}")
