# purchases/management/commands/reconcile_supplier_balances.py

from __future__ import annotations

from django.core.management.base import BaseCommand

from purchases.models import Supplier
from purchases.services.exceptions import SupplierNotFoundError
from purchases.services.reconciliation import reconcile_supplier


class Command(BaseCommand):
    help = "Compare each supplier's stored payable with its ledger balance (optionally fix drift)."

    def add_arguments(self, parser):
        parser.add_argument(
            "--supplier",
            dest="supplier_id",
            help="Reconcile one supplier by id (default: all suppliers)",
        )
        parser.add_argument(
            "--fix",
            action="store_true",
            help="Overwrite total_payable with the ledger balance and re-derive supply statuses.",
        )
        parser.add_argument(
            "--strict",
            action="store_true",
            help="Fail (non-zero exit) if any drift or mismatch is found.",
        )

    def handle(self, *args, **options):
        fix = bool(options.get("fix"))
        strict = bool(options.get("strict"))
        supplier_id = options.get("supplier_id")

        if supplier_id:
            supplier_ids = [supplier_id]
        else:
            supplier_ids = list(Supplier.objects.order_by("name").values_list("id", flat=True))

        self.stdout.write(self.style.MIGRATE_HEADING("Supplier balance reconciliation"))
        if fix:
            self.stdout.write("FIX MODE: drift and stale statuses will be corrected.\n")

        problems = 0
        for sid in supplier_ids:
            try:
                report = reconcile_supplier(supplier_id=sid, fix=fix)
            except SupplierNotFoundError:
                self.stderr.write(self.style.ERROR(f"[FAIL] Supplier not found: {sid}"))
                return self._exit(True)

            label = f"{report['supplier_name']} ({report['supplier_id']})"
            issues = (
                int(not report["in_sync"])
                + len(report["status_mismatches"])
                + len(report["allocation_mismatches"])
            )

            if issues == 0:
                self.stdout.write(self.style.SUCCESS(f"[OK] {label} payable={report['stored_payable']}"))
                continue

            problems += issues
            self.stderr.write(
                self.style.ERROR(
                    f"[FAIL] {label} stored={report['stored_payable']} "
                    f"ledger={report['ledger_balance']} drift={report['drift']}"
                )
            )
            for row in report["status_mismatches"][:10]:
                self.stderr.write(f"  status supply_id={row['supply_id']} stored={row['stored']} expected={row['expected']}")
            for row in report["allocation_mismatches"][:10]:
                self.stderr.write(
                    f"  allocation supply_id={row['supply_id']} paid={row['paid_amount']} allocated={row['allocated']}"
                )

        self.stdout.write("")
        if problems == 0:
            self.stdout.write(self.style.SUCCESS(f"Reconciled {len(supplier_ids)} supplier(s): no drift"))
        elif fix:
            self.stdout.write(self.style.WARNING(f"Found {problems} problem(s); drift and statuses corrected"))
        else:
            self.stderr.write(self.style.ERROR(f"Found {problems} problem(s); re-run with --fix to correct"))

        return self._exit(strict and problems > 0 and not fix)

    def _exit(self, fail: bool):
        if fail:
            raise SystemExit(1)
        return None
