# purchases/tests/test_supplies.py

from datetime import timedelta
from decimal import Decimal

from django.contrib.auth import get_user_model
from django.test import TestCase, override_settings
from django.utils import timezone

from products.models import Product, StockBatch, StockMovement
from purchases.models import ItemPayment, PaymentMethod, PaymentStatus, Supplier, SupplierPayment, Supply
from purchases.services.allocation import allocate_payment
from purchases.services.exceptions import InsufficientStockError, LedgerValidationError, SupplyNotFoundError
from purchases.services.reconciliation import reconcile_supplier
from purchases.services.returns import process_purchase_return
from purchases.services.supplier_service import create_supplier, record_payment
from purchases.services.supply_service import record_supply, update_supply, void_supply

User = get_user_model()


class RecordSupplyTests(TestCase):
    """
    Recording a purchase line.

    GUARANTEES:
    - Supplier and product are matched by name ignoring case, created when new
    - Paid + free units are received into one new batch
    - The payable rises by quantity x purchase_cost (free units are not billed)
    - Existing credit is auto-applied when enabled
    """

    def setUp(self):
        self.user = User.objects.create_user(username="buyer", password="password123")
        self.today = timezone.localdate()

    def _record(self, **overrides):
        payload = {
            "supplier_name": "Acme Pharma",
            "name": "Amoxicillin 500mg",
            "batch_number": "AMX-1",
            "quantity": 10,
            "free_quantity": 2,
            "purchase_cost": "100.00",
            "selling_price": "150.00",
            "purchase_invoice_number": "INV-001",
            "invoice_date": self.today - timedelta(days=2),
            "invoice_due_date": self.today + timedelta(days=28),
            "expiry_date": self.today + timedelta(days=400),
            "user": self.user,
        }
        payload.update(overrides)
        return record_supply(**payload)

    def test_creates_supplier_product_batch_and_payable(self):
        supply, credit_applied = self._record()

        self.assertEqual(credit_applied, Decimal("0.00"))
        self.assertEqual(supply.payment_status, PaymentStatus.UNPAID)
        self.assertEqual(supply.total_cost, Decimal("1000.00"))
        self.assertEqual(supply.added_date, self.today - timedelta(days=2))

        supplier = Supplier.objects.get(name="Acme Pharma")
        self.assertEqual(supplier.total_payable, Decimal("1000.00"))
        self.assertEqual(supply.supplier_id, supplier.id)

        product = Product.objects.get(name="Amoxicillin 500mg")
        self.assertEqual(product.unit_price, Decimal("150.00"))
        self.assertEqual(product.last_purchase_cost, Decimal("100.00"))

        batch = StockBatch.objects.get(id=supply.stock_batch_id)
        self.assertEqual(batch.quantity_received, 12)
        self.assertEqual(batch.batch_number, "AMX-1")

        receipt = StockMovement.objects.get(batch=batch)
        self.assertEqual(receipt.reference, str(supply.id))
        self.assertEqual(receipt.performed_by, self.user)

    def test_matches_existing_supplier_and_product_ignoring_case(self):
        supplier = create_supplier(name="Acme Pharma", phone="0300-1234567")
        self._record()
        supply, _ = self._record(supplier_name="  ACME pharma ", name="amoxicillin 500MG", batch_number="AMX-2")

        self.assertEqual(Supplier.objects.count(), 1)
        self.assertEqual(Product.objects.count(), 1)
        self.assertEqual(supply.supplier_id, supplier.id)
        self.assertEqual(supply.supplier_name, "Acme Pharma")

        supplier.refresh_from_db()
        self.assertEqual(supplier.total_payable, Decimal("2000.00"))

    def test_duplicate_batch_rolls_back(self):
        self._record()

        with self.assertRaises(LedgerValidationError):
            self._record()

        self.assertEqual(Supply.objects.count(), 1)
        self.assertEqual(Supplier.objects.get().total_payable, Decimal("1000.00"))

    def test_validation(self):
        for overrides in (
            {"quantity": 0},
            {"quantity": "many"},
            {"free_quantity": -1},
            {"purchase_cost": "-1"},
            {"purchase_cost": None},
            {"expiry_date": None},
            {"batch_number": "  "},
            {"supplier_name": ""},
        ):
            with self.assertRaises(LedgerValidationError):
                self._record(**overrides)

        self.assertFalse(Supply.objects.exists())

    def test_auto_applies_existing_credit(self):
        supplier = create_supplier(name="Acme Pharma")
        record_payment(supplier_id=supplier.id, amount="300.00")

        supply, credit_applied = self._record(auto_apply_credit=True)

        self.assertEqual(credit_applied, Decimal("300.00"))
        self.assertEqual(supply.paid_amount, Decimal("300.00"))
        self.assertEqual(supply.payment_status, PaymentStatus.PARTIAL)

        adjustment = SupplierPayment.objects.get(method=PaymentMethod.CREDIT_ADJUSTMENT)
        self.assertEqual(adjustment.amount, Decimal("0.00"))
        self.assertEqual(ItemPayment.objects.get(payment=adjustment).amount, Decimal("300.00"))

        supplier.refresh_from_db()
        self.assertEqual(supplier.total_payable, Decimal("700.00"))

    def test_auto_apply_is_capped_at_line_cost(self):
        supplier = create_supplier(name="Acme Pharma")
        record_payment(supplier_id=supplier.id, amount="5000.00")

        supply, credit_applied = self._record(auto_apply_credit=True)

        self.assertEqual(credit_applied, Decimal("1000.00"))
        self.assertEqual(supply.payment_status, PaymentStatus.PAID)
        supplier.refresh_from_db()
        self.assertEqual(supplier.total_payable, Decimal("-4000.00"))

    @override_settings(SUPPLIER_LEDGER={"AUTO_APPLY_CREDIT": False})
    def test_auto_apply_follows_settings(self):
        supplier = create_supplier(name="Acme Pharma")
        record_payment(supplier_id=supplier.id, amount="300.00")

        supply, credit_applied = self._record()

        self.assertEqual(credit_applied, Decimal("0.00"))
        self.assertEqual(supply.payment_status, PaymentStatus.UNPAID)
        self.assertFalse(SupplierPayment.objects.filter(method=PaymentMethod.CREDIT_ADJUSTMENT).exists())


class VoidSupplyTests(TestCase):
    """
    GUARANTEES:
    - Remaining batch stock is withdrawn with a VOID movement
    - Allocations to the line are removed; the payments stay on account
    - The payable drops by the full line cost
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

    def test_void_reverses_stock_and_payable(self):
        payment = allocate_payment(
            supplier_id=self.supplier.id,
            items=[{"supply_id": str(self.supply.id), "amount": "400"}],
        ).payment
        batch_id = self.supply.stock_batch_id

        details = void_supply(supply_id=self.supply.id)

        self.assertEqual(details["quantity_withdrawn"], 10)
        self.assertEqual(details["allocations_removed"], 1)
        self.assertFalse(Supply.objects.filter(id=self.supply.id).exists())
        self.assertTrue(SupplierPayment.objects.filter(id=payment.id).exists())

        batch = StockBatch.objects.get(id=batch_id)
        self.assertEqual(batch.quantity_remaining, 0)
        self.assertTrue(StockMovement.objects.filter(batch=batch, reason=StockMovement.Reason.VOID).exists())

        self.supplier.refresh_from_db()
        self.assertEqual(self.supplier.total_payable, Decimal("-400.00"))

    def test_void_legacy_line_resolves_supplier_by_name(self):
        Supply.objects.filter(id=self.supply.id).update(supplier=None, supplier_name="acme pharma")

        void_supply(supply_id=self.supply.id)

        self.supplier.refresh_from_db()
        self.assertEqual(self.supplier.total_payable, Decimal("0.00"))

    def test_void_unknown_supply(self):
        with self.assertRaises(SupplyNotFoundError):
            void_supply(supply_id="3f1e1f0e-0000-4000-8000-000000000000")


class UpdateSupplyTests(TestCase):
    """
    Editing a recorded purchase line.

    GUARANTEES:
    - The payable moves by the change in line cost
    - payment_status is re-derived from paid_amount vs the new total
    - The batch is resized by the unit delta with an ADJUSTMENT movement
    - Units already sold or returned cannot be edited away
    - No drift between the ledger and the stored payable afterwards
    """

    def setUp(self):
        self.user = User.objects.create_user(username="buyer", password="password123")
        self.today = timezone.localdate()
        self.supply, _ = record_supply(
            supplier_name="Acme Pharma",
            name="Amoxicillin 500mg",
            batch_number="AMX-1",
            quantity=10,
            purchase_cost="100.00",
            expiry_date=self.today + timedelta(days=365),
            auto_apply_credit=False,
        )
        self.supplier = self.supply.supplier
        self.batch = self.supply.stock_batch

    def _assert_in_sync(self):
        report = reconcile_supplier(supplier_id=self.supplier.id)
        self.assertTrue(report["in_sync"])
        self.assertEqual(report["drift"], "0.00")
        self.assertEqual(report["status_mismatches"], [])

    def test_shrinking_quantity(self):
        allocate_payment(supplier_id=self.supplier.id, items=[{"supply_id": str(self.supply.id), "amount": "400"}])

        supply = update_supply(supply_id=self.supply.id, quantity=6, user=self.user)

        self.assertEqual(supply.total_cost, Decimal("600.00"))
        self.assertEqual(supply.payment_status, PaymentStatus.PARTIAL)
        self.supplier.refresh_from_db()
        self.assertEqual(self.supplier.total_payable, Decimal("200.00"))

        self.batch.refresh_from_db()
        self.assertEqual((self.batch.quantity_received, self.batch.quantity_remaining), (6, 6))
        movement = StockMovement.objects.get(reason=StockMovement.Reason.ADJUSTMENT)
        self.assertEqual(movement.movement_type, StockMovement.MovementType.OUT)
        self.assertEqual(movement.quantity, 4)
        self.assertEqual(movement.reference, str(self.supply.id))
        self._assert_in_sync()

        # now overpaid: 400 paid against 300
        supply = update_supply(supply_id=self.supply.id, quantity=3)

        self.assertEqual(supply.payment_status, PaymentStatus.PAID)
        self.supplier.refresh_from_db()
        self.assertEqual(self.supplier.total_payable, Decimal("-100.00"))
        self.assertEqual(self.supplier.credit_balance, Decimal("100.00"))
        self._assert_in_sync()

    def test_growing_quantity_and_cost(self):
        supply = update_supply(supply_id=self.supply.id, quantity=12, purchase_cost="90.00")

        self.assertEqual(supply.total_cost, Decimal("1080.00"))
        self.assertEqual(supply.payment_status, PaymentStatus.UNPAID)
        self.supplier.refresh_from_db()
        self.assertEqual(self.supplier.total_payable, Decimal("1080.00"))

        self.batch.refresh_from_db()
        self.assertEqual((self.batch.quantity_received, self.batch.quantity_remaining), (12, 12))
        self.assertEqual(self.batch.unit_cost, Decimal("90.00"))
        movement = StockMovement.objects.get(reason=StockMovement.Reason.ADJUSTMENT)
        self.assertEqual(movement.movement_type, StockMovement.MovementType.IN)
        self.assertEqual(movement.quantity, 2)
        self._assert_in_sync()

    def test_free_units_move_stock_not_payable(self):
        update_supply(supply_id=self.supply.id, free_quantity=3)

        self.batch.refresh_from_db()
        self.assertEqual(self.batch.quantity_remaining, 13)
        self.supplier.refresh_from_db()
        self.assertEqual(self.supplier.total_payable, Decimal("1000.00"))
        self._assert_in_sync()

    def test_cannot_remove_units_already_returned(self):
        process_purchase_return(
            supplier_id=self.supplier.id,
            items=[{"supply_id": str(self.supply.id), "quantity": 8, "total": "800"}],
        )

        with self.assertRaises(InsufficientStockError):
            update_supply(supply_id=self.supply.id, quantity=5)

        self.supply.refresh_from_db()
        self.assertEqual(self.supply.quantity, 10)
        self.batch.refresh_from_db()
        self.assertEqual(self.batch.quantity_remaining, 2)
        self.supplier.refresh_from_db()
        self.assertEqual(self.supplier.total_payable, Decimal("200.00"))
        self.assertFalse(StockMovement.objects.filter(reason=StockMovement.Reason.ADJUSTMENT).exists())

    def test_invoice_fields_only(self):
        due = self.today + timedelta(days=30)

        supply = update_supply(
            supply_id=self.supply.id,
            purchase_invoice_number=" INV-0042 ",
            invoice_date=self.today,
            invoice_due_date=due,
            notes="Corrected invoice",
        )

        self.assertEqual(supply.purchase_invoice_number, "INV-0042")
        self.assertEqual(supply.invoice_due_date, due)
        self.assertFalse(StockMovement.objects.filter(reason=StockMovement.Reason.ADJUSTMENT).exists())
        self.supplier.refresh_from_db()
        self.assertEqual(self.supplier.total_payable, Decimal("1000.00"))

    def test_validation(self):
        bad_changes = [
            {"batch_number": "AMX-2"},
            {"quantity": 0},
            {"purchase_cost": "-1"},
            {"expiry_date": None},
            {"invoice_date": self.today, "invoice_due_date": self.today - timedelta(days=1)},
        ]
        for changes in bad_changes:
            with self.assertRaises(LedgerValidationError):
                update_supply(supply_id=self.supply.id, **changes)

        with self.assertRaises(SupplyNotFoundError):
            update_supply(supply_id="3f1e1f0e-0000-4000-8000-000000000000", quantity=2)

        self.supplier.refresh_from_db()
        self.assertEqual(self.supplier.total_payable, Decimal("1000.00"))
