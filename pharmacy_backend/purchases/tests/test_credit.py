# purchases/tests/test_credit.py

from datetime import timedelta
from decimal import Decimal

from django.test import TestCase
from django.utils import timezone

from purchases.models import ItemPayment, PaymentMethod, PaymentStatus, SupplierPayment
from purchases.services.credit_service import apply_credit, credit_position_for, record_cash_refund
from purchases.services.exceptions import InsufficientCreditError, LedgerValidationError
from purchases.services.ledger_builder import build_ledger, closing_balance
from purchases.services.supplier_service import record_payment
from purchases.services.supplier_state import supplier_supplies
from purchases.services.supply_service import record_supply


def _record(*, name, batch, qty, cost, days_ago):
    today = timezone.localdate()
    supply, _ = record_supply(
        supplier_name="Acme Pharma",
        name=name,
        batch_number=batch,
        quantity=qty,
        purchase_cost=cost,
        expiry_date=today + timedelta(days=365),
        invoice_date=today - timedelta(days=days_ago),
        auto_apply_credit=False,
    )
    return supply


class SupplierCreditTests(TestCase):
    """
    Supplier credit (negative payable).

    GUARANTEES:
    - apply_credit / record_cash_refund never exceed the derived credit
    - A rejected request writes nothing
    - Ledger closing balance == Supplier.total_payable after every step
    """

    def setUp(self):
        # 1000 purchased, 1500 paid on account -> 500 credit
        self.supply = _record(name="Amoxicillin 500mg", batch="AMX-1", qty=10, cost="100.00", days_ago=20)
        self.supplier = self.supply.supplier
        record_payment(supplier_id=self.supplier.id, amount="1500.00")
        self.supplier.refresh_from_db()

    def _assert_consistent(self):
        self.supplier.refresh_from_db()
        ledger = build_ledger(supplies=supplier_supplies(self.supplier), payments=self.supplier.payments.all())
        self.assertEqual(closing_balance(ledger), self.supplier.total_payable)
        self.assertEqual(credit_position_for(self.supplier).balance, self.supplier.total_payable)

    def test_starting_position(self):
        self.assertEqual(self.supplier.total_payable, Decimal("-500.00"))
        self.assertEqual(credit_position_for(self.supplier).supplier_credit, Decimal("500.00"))
        self._assert_consistent()

    def test_apply_credit_until_exhausted(self):
        payment, remaining = apply_credit(supplier_id=self.supplier.id, amount="300")

        self.assertEqual(payment.method, PaymentMethod.CREDIT_APPLICATION)
        self.assertEqual(payment.amount, Decimal("300.00"))
        self.assertEqual(remaining, Decimal("200.00"))
        self._assert_consistent()
        self.assertEqual(self.supplier.total_payable, Decimal("-200.00"))

        with self.assertRaises(InsufficientCreditError) as ctx:
            apply_credit(supplier_id=self.supplier.id, amount="300")

        self.assertIn("Available: 200.00", str(ctx.exception))
        self.assertEqual(
            SupplierPayment.objects.filter(method=PaymentMethod.CREDIT_APPLICATION).count(), 1
        )
        self._assert_consistent()

    def test_apply_credit_settles_oldest_lines_first(self):
        newer = _record(name="Cetirizine 10mg", batch="CET-1", qty=3, cost="100.00", days_ago=5)
        older = _record(name="Ibuprofen 200mg", batch="IBU-1", qty=2, cost="100.00", days_ago=15)
        # payable: -500 + 300 + 200 = 0; top the credit back up
        record_payment(supplier_id=self.supplier.id, amount="400.00")

        payment, remaining = apply_credit(
            supplier_id=self.supplier.id,
            amount="400",
            supply_ids=[newer.id, older.id],
        )

        older.refresh_from_db()
        newer.refresh_from_db()
        self.assertEqual(older.paid_amount, Decimal("200.00"))
        self.assertEqual(older.payment_status, PaymentStatus.PAID)
        self.assertEqual(newer.paid_amount, Decimal("200.00"))
        self.assertEqual(newer.payment_status, PaymentStatus.PARTIAL)

        self.assertEqual(ItemPayment.objects.filter(payment=payment).count(), 2)
        self.assertEqual(remaining, Decimal("0.00"))
        self._assert_consistent()
        self.assertEqual(self.supplier.total_payable, Decimal("0.00"))

    def test_apply_credit_caps_each_line_at_due(self):
        small = _record(name="Cetirizine 10mg", batch="CET-2", qty=1, cost="50.00", days_ago=5)
        # payable: -500 + 50 = -450

        payment, remaining = apply_credit(supplier_id=self.supplier.id, amount="200", supply_ids=[small.id])

        small.refresh_from_db()
        self.assertEqual(small.paid_amount, Decimal("50.00"))
        self.assertEqual(payment.amount, Decimal("200.00"))
        self.assertEqual(remaining, Decimal("250.00"))
        self._assert_consistent()

    def test_cash_refund(self):
        refund, remaining = record_cash_refund(supplier_id=self.supplier.id, amount="200", note="Cheque 1182")

        self.assertEqual(refund.method, PaymentMethod.CASH_REFUND)
        self.assertEqual(refund.note, "Cheque 1182")
        self.assertEqual(remaining, Decimal("300.00"))
        self._assert_consistent()
        self.assertEqual(self.supplier.total_payable, Decimal("-300.00"))

        self.supply.refresh_from_db()
        self.assertEqual(self.supply.paid_amount, Decimal("0.00"))
        self.assertFalse(ItemPayment.objects.exists())

    def test_refund_over_credit_is_rejected(self):
        with self.assertRaises(InsufficientCreditError):
            record_cash_refund(supplier_id=self.supplier.id, amount="500.01")

        self.assertFalse(SupplierPayment.objects.filter(method=PaymentMethod.CASH_REFUND).exists())
        self._assert_consistent()

    def test_no_credit_when_supplier_is_owed(self):
        _record(name="Cetirizine 10mg", batch="CET-3", qty=10, cost="100.00", days_ago=1)

        with self.assertRaises(InsufficientCreditError):
            apply_credit(supplier_id=self.supplier.id, amount="1")

    def test_amount_validation(self):
        for amount in (None, "", "0", "-10", "ten"):
            with self.assertRaises(LedgerValidationError):
                apply_credit(supplier_id=self.supplier.id, amount=amount)

    def test_refund_reference_replay(self):
        first, _ = record_cash_refund(supplier_id=self.supplier.id, amount="100", reference="RF-1")
        second, remaining = record_cash_refund(supplier_id=self.supplier.id, amount="100", reference="RF-1")

        self.assertEqual(first.id, second.id)
        self.assertEqual(remaining, Decimal("400.00"))
        self._assert_consistent()

    def test_refund_reference_cannot_be_reused_for_credit(self):
        record_cash_refund(supplier_id=self.supplier.id, amount="100", reference="RF-2")

        with self.assertRaisesMessage(LedgerValidationError, "reference already used by a Cash Refund payment"):
            apply_credit(supplier_id=self.supplier.id, amount="100", reference="RF-2")

        self.assertFalse(SupplierPayment.objects.filter(method=PaymentMethod.CREDIT_APPLICATION).exists())
        self._assert_consistent()
        self.assertEqual(self.supplier.total_payable, Decimal("-400.00"))
