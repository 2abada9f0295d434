# purchases/tests/test_statement.py

from datetime import timedelta
from decimal import Decimal
from io import StringIO

from django.core.management import call_command
from django.test import TestCase, override_settings
from django.utils import timezone

from purchases.models import PaymentMethod, PaymentStatus, Supplier, Supply
from purchases.services.allocation import allocate_payment
from purchases.services.credit_service import apply_credit, record_cash_refund
from purchases.services.exceptions import SupplierNotFoundError
from purchases.services.reconciliation import reconcile_supplier
from purchases.services.returns import process_purchase_return
from purchases.services.statement_service import build_supplier_statement
from purchases.services.supplier_service import create_supplier, record_payment, void_payment
from purchases.services.supply_service import record_supply, void_supply


class SupplierStatementTests(TestCase):
    """
    GUARANTEES:
    - stats separate cash paid, returns, refunds and credit applied
    - ledger balance == stored payable (drift 0) after every mutation
    - top products are ranked by quantity with the newest unit cost
    """

    def setUp(self):
        self.today = timezone.localdate()

    def _record(self, name, batch, qty, cost, *, days_ago, due_in=None):
        supply, _ = record_supply(
            supplier_name="Acme Pharma",
            name=name,
            batch_number=batch,
            quantity=qty,
            purchase_cost=cost,
            expiry_date=self.today + timedelta(days=365),
            invoice_date=self.today - timedelta(days=days_ago),
            invoice_due_date=None if due_in is None else self.today + timedelta(days=due_in),
            auto_apply_credit=False,
        )
        return supply

    def _assert_no_drift(self, supplier_id):
        stats = build_supplier_statement(supplier_id=supplier_id)["stats"]
        self.assertEqual(stats["drift"], "0.00")
        self.assertEqual(stats["ledger_balance"], stats["stored_payable"])
        self.assertEqual(stats["balance"], stats["stored_payable"])

    def test_stats_and_top_products(self):
        a1 = self._record("Amoxicillin 500mg", "AMX-1", 10, "100.00", days_ago=40, due_in=-10)
        self._record("Amoxicillin 500mg", "AMX-2", 20, "110.00", days_ago=5, due_in=10)
        self._record("Cetirizine 10mg", "CET-1", 5, "20.00", days_ago=3)
        supplier_id = a1.supplier_id

        record_payment(supplier_id=supplier_id, amount="500.00")
        process_purchase_return(
            supplier_id=supplier_id,
            items=[{"supply_id": str(a1.id), "quantity": 1, "total": "100"}],
        )

        statement = build_supplier_statement(supplier_id=supplier_id)
        stats = statement["stats"]

        # 1000 + 2200 + 100 purchased, 100 returned, 500 paid
        self.assertEqual(stats["gross_purchased"], "3300.00")
        self.assertEqual(stats["total_purchased"], "3200.00")
        self.assertEqual(stats["total_paid"], "500.00")
        self.assertEqual(stats["total_returns"], "100.00")
        self.assertEqual(stats["balance"], "2700.00")
        self.assertEqual(stats["supplier_credit"], "0.00")
        self.assertEqual(stats["total_skus"], 2)
        self.assertEqual(stats["total_quantity"], 35)

        # newest first: 100 (no due date) + 2200 due soon, then 400 of the overdue line
        self.assertEqual(stats["due_in_15_days"], "2200.00")
        self.assertEqual(stats["overdue_amount"], "400.00")

        top = statement["top_products"]
        self.assertEqual(top[0], {"name": "Amoxicillin 500mg", "total_qty": 30, "purchase_count": 2, "last_price": "110.00"})
        self.assertEqual(top[1]["name"], "Cetirizine 10mg")

        self.assertEqual(statement["ledger"][0]["type"], "Debit Note")
        self.assertEqual(statement["ledger"][0]["running_balance"], "2700.00")
        self.assertEqual(statement["supplier"].id, supplier_id)

    @override_settings(SUPPLIER_LEDGER={"TOP_PRODUCTS_LIMIT": 1, "AGING_WINDOW_DAYS": 15})
    def test_top_products_limit(self):
        s = self._record("Amoxicillin 500mg", "AMX-1", 10, "1.00", days_ago=1)
        self._record("Cetirizine 10mg", "CET-1", 5, "1.00", days_ago=1)

        self.assertEqual(len(build_supplier_statement(supplier_id=s.supplier_id)["top_products"]), 1)

    def test_credit_side_stats(self):
        s = self._record("Amoxicillin 500mg", "AMX-1", 10, "100.00", days_ago=10)
        record_payment(supplier_id=s.supplier_id, amount="1600.00")
        apply_credit(supplier_id=s.supplier_id, amount="100")
        record_cash_refund(supplier_id=s.supplier_id, amount="200")

        stats = build_supplier_statement(supplier_id=s.supplier_id)["stats"]

        self.assertEqual(stats["total_paid"], "1600.00")
        self.assertEqual(stats["cash_payments"], "1300.00")
        self.assertEqual(stats["total_credit_applied"], "100.00")
        self.assertEqual(stats["total_refunds"], "200.00")
        self.assertEqual(stats["supplier_credit"], "300.00")
        self.assertEqual(stats["overdue_amount"], "0.00")
        self._assert_no_drift(s.supplier_id)

    def test_balance_consistency_across_operations(self):
        a = self._record("Amoxicillin 500mg", "AMX-1", 10, "100.00", days_ago=30)
        b = self._record("Cetirizine 10mg", "CET-1", 4, "25.00", days_ago=20)
        supplier_id = a.supplier_id
        self._assert_no_drift(supplier_id)

        allocate_payment(supplier_id=supplier_id, items=[{"supply_id": str(a.id), "amount": "400"}])
        self._assert_no_drift(supplier_id)

        pay = allocate_payment(
            supplier_id=supplier_id,
            items=[{"supply_id": str(a.id), "amount": "600"}, {"supply_id": str(b.id), "amount": "100"}],
        ).payment
        self._assert_no_drift(supplier_id)

        process_purchase_return(
            supplier_id=supplier_id,
            items=[{"supply_id": str(b.id), "quantity": 2, "total": "50"}],
        )
        self._assert_no_drift(supplier_id)

        apply_credit(supplier_id=supplier_id, amount="20")
        record_cash_refund(supplier_id=supplier_id, amount="30")
        self._assert_no_drift(supplier_id)

        c, credit_applied = record_supply(
            supplier_name="acme pharma",
            name="Ibuprofen 200mg",
            batch_number="IBU-1",
            quantity=1,
            purchase_cost="10.00",
            expiry_date=self.today + timedelta(days=100),
            auto_apply_credit=True,
        )
        self.assertEqual(credit_applied, Decimal("0.00"))
        self._assert_no_drift(supplier_id)

        void_payment(payment_id=pay.id)
        void_supply(supply_id=c.id)
        self._assert_no_drift(supplier_id)

        b.refresh_from_db()
        self.assertEqual(b.payment_status, PaymentStatus.UNPAID)

    def test_unknown_supplier(self):
        with self.assertRaises(SupplierNotFoundError):
            build_supplier_statement(supplier_id="5b5b5b5b-3333-4333-8333-333333333333")


class ReconciliationTests(TestCase):
    """
    GUARANTEES:
    - Drift between stored payable and ledger is reported (ERROR log)
    - fix=True restores the payable and stale statuses
    - Re-running on a clean supplier changes nothing
    """

    def setUp(self):
        today = timezone.localdate()
        self.supply, _ = record_supply(
            supplier_name="Acme Pharma",
            name="Amoxicillin 500mg",
            batch_number="AMX-1",
            quantity=10,
            purchase_cost="100.00",
            expiry_date=today + timedelta(days=365),
            auto_apply_credit=False,
        )
        self.supplier = self.supply.supplier
        allocate_payment(supplier_id=self.supplier.id, items=[{"supply_id": str(self.supply.id), "amount": "250"}])

    def _corrupt(self):
        Supplier.objects.filter(id=self.supplier.id).update(total_payable=Decimal("999.00"))
        Supply.objects.filter(id=self.supply.id).update(payment_status=PaymentStatus.PAID)

    def test_clean_supplier(self):
        report = reconcile_supplier(supplier_id=self.supplier.id)

        self.assertTrue(report["in_sync"])
        self.assertEqual(report["drift"], "0.00")
        self.assertEqual(report["status_mismatches"], [])
        self.assertEqual(report["allocation_mismatches"], [])
        self.assertFalse(report["fixed"])

    def test_reports_without_fixing(self):
        self._corrupt()

        with self.assertLogs("purchases.reconciliation", level="ERROR"):
            report = reconcile_supplier(supplier_id=self.supplier.id)

        self.assertEqual(report["ledger_balance"], "750.00")
        self.assertEqual(report["drift"], "-249.00")
        self.assertEqual(len(report["status_mismatches"]), 1)

        self.supplier.refresh_from_db()
        self.assertEqual(self.supplier.total_payable, Decimal("999.00"))

    def test_fix(self):
        self._corrupt()

        with self.assertLogs("purchases.reconciliation", level="ERROR"):
            report = reconcile_supplier(supplier_id=self.supplier.id, fix=True)

        self.assertTrue(report["fixed"])
        self.supplier.refresh_from_db()
        self.supply.refresh_from_db()
        self.assertEqual(self.supplier.total_payable, Decimal("750.00"))
        self.assertEqual(self.supply.payment_status, PaymentStatus.PARTIAL)
        self.assertTrue(reconcile_supplier(supplier_id=self.supplier.id)["in_sync"])

    def test_allocation_mismatch_is_reported(self):
        Supply.objects.filter(id=self.supply.id).update(paid_amount=Decimal("300.00"))

        report = reconcile_supplier(supplier_id=self.supplier.id)

        self.assertEqual(
            report["allocation_mismatches"],
            [{"supply_id": str(self.supply.id), "paid_amount": "300.00", "allocated": "250.00"}],
        )

    def test_command_fix(self):
        self._corrupt()
        out, err = StringIO(), StringIO()

        call_command("reconcile_supplier_balances", "--fix", stdout=out, stderr=err)

        self.supplier.refresh_from_db()
        self.assertEqual(self.supplier.total_payable, Decimal("750.00"))
        self.assertIn("drift=-249.00", err.getvalue())

    def test_command_strict_fails_on_drift(self):
        self._corrupt()

        with self.assertRaises(SystemExit):
            call_command(
                "reconcile_supplier_balances",
                "--strict",
                "--supplier",
                str(self.supplier.id),
                stdout=StringIO(),
                stderr=StringIO(),
            )


class BackfillSupplySuppliersTests(TestCase):
    def setUp(self):
        self.supplier = create_supplier(name="Acme Pharma")
        self.legacy = Supply.objects.create(
            supplier=None,
            supplier_name="acme pharma",
            name="Old Stock Syrup",
            batch_number="OLD-1",
            quantity=2,
            purchase_cost=Decimal("25.00"),
            expiry_date=timezone.localdate() + timedelta(days=90),
        )
        self.orphan = Supply.objects.create(
            supplier=None,
            supplier_name="Vanished Traders",
            name="Old Stock Tablets",
            batch_number="OLD-2",
            quantity=1,
            purchase_cost=Decimal("5.00"),
            expiry_date=timezone.localdate() + timedelta(days=90),
        )

    def test_dry_run_changes_nothing(self):
        out = StringIO()
        call_command("backfill_supply_suppliers", "--dry-run", stdout=out)

        self.legacy.refresh_from_db()
        self.assertIsNone(self.legacy.supplier_id)
        self.assertIn("Supplies linked:    1", out.getvalue())

    def test_links_by_name(self):
        out = StringIO()
        call_command("backfill_supply_suppliers", stdout=out)

        self.legacy.refresh_from_db()
        self.orphan.refresh_from_db()
        self.assertEqual(self.legacy.supplier_id, self.supplier.id)
        self.assertEqual(self.legacy.supplier_name, "Acme Pharma")
        self.assertIsNone(self.orphan.supplier_id)
        self.assertIn("no supplier named 'Vanished Traders': 1", out.getvalue())
