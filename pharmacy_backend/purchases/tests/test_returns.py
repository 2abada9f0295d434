# purchases/tests/test_returns.py

from datetime import timedelta
from decimal import Decimal

from django.test import TestCase
from django.utils import timezone

from products.models import StockBatch, StockMovement
from products.services import intake_stock
from purchases.models import PaymentMethod, SupplierPayment
from purchases.services.exceptions import InsufficientStockError, LedgerValidationError
from purchases.services.ledger_builder import build_ledger, closing_balance
from purchases.services.returns import process_purchase_return
from purchases.services.supplier_service import record_payment
from purchases.services.supplier_state import supplier_supplies
from purchases.services.supply_service import record_supply


class PurchaseReturnTests(TestCase):
    """
    Returning goods to a supplier (Debit Note).

    GUARANTEES:
    - One Debit Note per return; payable drops by the debit total
    - Stock leaves the returned line's batch first
    - A stock shortfall aborts before anything is written
    - The original Supply row is never modified
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
            invoice_date=today - timedelta(days=3),
            auto_apply_credit=False,
        )
        self.supplier = self.supply.supplier
        self.batch = self.supply.stock_batch

    def test_return_by_supply_line(self):
        result = process_purchase_return(
            supplier_id=self.supplier.id,
            items=[{"supply_id": str(self.supply.id), "quantity": 4, "total": "400"}],
            reason="Damaged cartons",
        )

        debit_note = result.debit_note
        self.assertEqual(debit_note.method, PaymentMethod.DEBIT_NOTE)
        self.assertEqual(debit_note.amount, Decimal("400.00"))
        self.assertEqual(debit_note.note, "Return (1 items): Damaged cartons")
        self.assertEqual(result.new_balance, Decimal("600.00"))

        self.batch.refresh_from_db()
        self.assertEqual(self.batch.quantity_remaining, 6)

        movement = StockMovement.objects.get(reason=StockMovement.Reason.SUPPLIER_RETURN)
        self.assertEqual(movement.quantity, 4)
        self.assertEqual(movement.reference, str(debit_note.id))

        before = (self.supply.quantity, self.supply.paid_amount, self.supply.payment_status)
        self.supply.refresh_from_db()
        self.assertEqual((self.supply.quantity, self.supply.paid_amount, self.supply.payment_status), before)

        self.supplier.refresh_from_db()
        ledger = build_ledger(supplies=supplier_supplies(self.supplier), payments=self.supplier.payments.all())
        self.assertEqual(closing_balance(ledger), self.supplier.total_payable)
        self.assertEqual(ledger[0].type, "Debit Note")

    def test_return_prefers_the_lines_own_batch(self):
        today = timezone.localdate()
        earlier_expiring = intake_stock(
            product=self.supply.product,
            quantity_received=5,
            unit_cost="90.00",
            expiry_date=today + timedelta(days=30),
            batch_number="AMX-OLD",
        )

        process_purchase_return(
            supplier_id=self.supplier.id,
            items=[{"supply_id": str(self.supply.id), "quantity": 3, "total": "300"}],
        )

        earlier_expiring.refresh_from_db()
        self.batch.refresh_from_db()
        self.assertEqual(earlier_expiring.quantity_remaining, 5)
        self.assertEqual(self.batch.quantity_remaining, 7)

    def test_return_by_name_is_case_insensitive(self):
        result = process_purchase_return(
            supplier_id=self.supplier.id,
            items=[{"name": "AMOXICILLIN 500MG", "quantity": "2", "total": "200"}],
        )

        self.assertEqual(result.stock_movements, 1)
        self.assertEqual(result.unresolved, [])
        self.batch.refresh_from_db()
        self.assertEqual(self.batch.quantity_remaining, 8)

    def test_insufficient_stock_leaves_everything_untouched(self):
        with self.assertRaises(InsufficientStockError):
            process_purchase_return(
                supplier_id=self.supplier.id,
                items=[{"supply_id": str(self.supply.id), "quantity": 20, "total": "2000"}],
            )

        self.assertFalse(SupplierPayment.objects.exists())
        self.assertFalse(StockMovement.objects.filter(reason=StockMovement.Reason.SUPPLIER_RETURN).exists())
        self.batch.refresh_from_db()
        self.supplier.refresh_from_db()
        self.assertEqual(self.batch.quantity_remaining, 10)
        self.assertEqual(self.supplier.total_payable, Decimal("1000.00"))

    def test_shortfall_is_checked_across_lines_of_one_product(self):
        with self.assertRaises(InsufficientStockError):
            process_purchase_return(
                supplier_id=self.supplier.id,
                items=[
                    {"supply_id": str(self.supply.id), "quantity": 6, "total": "600"},
                    {"name": "Amoxicillin 500mg", "quantity": 6, "total": "600"},
                ],
            )

        self.assertEqual(StockBatch.objects.get(id=self.batch.id).quantity_remaining, 10)

    def test_unresolved_item_still_counts_toward_debit(self):
        with self.assertLogs("purchases.returns", level="WARNING"):
            result = process_purchase_return(
                supplier_id=self.supplier.id,
                items=[
                    {"supply_id": str(self.supply.id), "quantity": 1, "total": "100"},
                    {"name": "Discontinued Syrup", "quantity": 2, "total": "30"},
                ],
            )

        self.assertEqual(result.debit_note.amount, Decimal("130.00"))
        self.assertEqual(result.unresolved, ["Discontinued Syrup"])
        self.assertEqual(result.new_balance, Decimal("870.00"))

    def test_invalid_payloads(self):
        bad_payloads = [
            [],
            [{"supply_id": str(self.supply.id), "quantity": 0, "total": "10"}],
            [{"supply_id": str(self.supply.id), "quantity": 1.5, "total": "10"}],
            [{"supply_id": str(self.supply.id), "quantity": 1, "total": "0"}],
            [{"supply_id": str(self.supply.id), "quantity": 1, "total": "x"}],
        ]
        for items in bad_payloads:
            with self.assertRaises(LedgerValidationError):
                process_purchase_return(supplier_id=self.supplier.id, items=items)

        self.assertFalse(SupplierPayment.objects.exists())

    def test_reference_replay(self):
        kwargs = {
            "supplier_id": self.supplier.id,
            "items": [{"supply_id": str(self.supply.id), "quantity": 1, "total": "100"}],
            "reference": "RET-77",
        }

        first = process_purchase_return(**kwargs)
        second = process_purchase_return(**kwargs)

        self.assertTrue(second.replayed)
        self.assertEqual(first.debit_note.id, second.debit_note.id)
        self.batch.refresh_from_db()
        self.assertEqual(self.batch.quantity_remaining, 9)

    def test_reference_spent_on_a_payment_is_rejected(self):
        record_payment(supplier_id=self.supplier.id, amount="100", reference="R-1")

        with self.assertRaisesMessage(LedgerValidationError, "reference already used by a Cash payment"):
            process_purchase_return(
                supplier_id=self.supplier.id,
                items=[{"supply_id": str(self.supply.id), "quantity": 2, "total": "200"}],
                reference="R-1",
            )

        self.assertFalse(SupplierPayment.objects.filter(method=PaymentMethod.DEBIT_NOTE).exists())
        self.batch.refresh_from_db()
        self.assertEqual(self.batch.quantity_remaining, 10)
        self.supplier.refresh_from_db()
        self.assertEqual(self.supplier.total_payable, Decimal("900.00"))
