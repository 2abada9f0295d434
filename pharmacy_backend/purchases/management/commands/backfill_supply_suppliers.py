# purchases/management/commands/backfill_supply_suppliers.py

from __future__ import annotations

from django.core.management.base import BaseCommand
from django.db import transaction

from purchases.models import Supplier, Supply


class Command(BaseCommand):
    help = "Link legacy supplies (supplier_name only) to their Supplier by case-insensitive name."

    def add_arguments(self, parser):
        parser.add_argument(
            "--dry-run",
            action="store_true",
            help="Show what would change without saving.",
        )

    @transaction.atomic
    def handle(self, *args, **options):
        dry_run = bool(options.get("dry_run"))

        self.stdout.write("Backfilling supply -> supplier links...")
        if dry_run:
            self.stdout.write("DRY RUN: no database changes will be saved.\n")

        suppliers = {s.name.strip().lower(): s for s in Supplier.objects.all()}

        linked = 0
        unmatched = {}

        legacy = Supply.objects.filter(supplier__isnull=True).only("id", "supplier_name", "name")
        for supply in legacy:
            key = (supply.supplier_name or "").strip().lower()
            supplier = suppliers.get(key)

            if supplier is None:
                unmatched[supply.supplier_name] = unmatched.get(supply.supplier_name, 0) + 1
                continue

            self.stdout.write(f"SUPPLY {supply.id} ({supply.name}) -> {supplier.name}")
            if not dry_run:
                # queryset update: the row's status and totals stay as they are
                Supply.objects.filter(id=supply.id).update(supplier=supplier, supplier_name=supplier.name)
            linked += 1

        self.stdout.write("\n--- Summary ---")
        self.stdout.write(f"Supplies linked:    {linked}")
        self.stdout.write(f"Supplies unmatched: {sum(unmatched.values())}")
        for name, count in sorted(unmatched.items()):
            self.stdout.write(f"  no supplier named '{name}': {count}")

        if dry_run:
            self.stdout.write("\nDRY RUN complete (no changes saved).")
