# purchases/models.py

"""
SUPPLIER LEDGER MODELS

- Supplier: master record + signed aggregate payable
  (positive: we owe the supplier, negative: supplier credit)
- Supply: one purchase invoice line; carries its own paid state
- SupplierPayment: every money-shaped event against a supplier
  (cash/bank/check payments, debit notes, credit adjustments,
  credit applications, cash refunds)
- ItemPayment: allocation of one SupplierPayment to one Supply

PaymentMethod effects live in METHOD_EFFECTS and are checked to cover
every method when this module is imported.
"""

import uuid
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal

from django.conf import settings
from django.core.exceptions import ImproperlyConfigured, ValidationError
from django.db import models
from django.db.models.functions import Lower
from django.utils import timezone

from products.models import Product, StockBatch

TWOPLACES = Decimal("0.01")
ZERO = Decimal("0.00")


def _money(v) -> Decimal:
    return Decimal(str(v or "0.00")).quantize(TWOPLACES, rounding=ROUND_HALF_UP)


User = settings.AUTH_USER_MODEL


# ============================================================
# PAYMENT METHODS + EFFECT TABLE
# ============================================================

class PaymentMethod(models.TextChoices):
    CASH = "Cash", "Cash"
    BANK_TRANSFER = "Bank Transfer", "Bank Transfer"
    CHECK = "Check", "Check"
    DEBIT_NOTE = "Debit Note", "Debit Note"
    CREDIT_ADJUSTMENT = "Credit Adjustment", "Credit Adjustment"
    CREDIT_APPLICATION = "Credit Application", "Credit Application"
    CASH_REFUND = "Cash Refund", "Cash Refund"


DEBIT = "DEBIT"  # lowers the payable
CREDIT = "CREDIT"  # raises the payable (toward zero when in credit)


@dataclass(frozen=True)
class MethodEffect:
    direction: str
    label: str
    cash_paid: bool = False
    is_return: bool = False
    settlement_sign: int = 0
    allocatable: bool = False

    def aggregate_delta(self, amount) -> Decimal:
        """Change to Supplier.total_payable caused by a payment of `amount`."""
        amt = _money(amount)
        return -amt if self.direction == DEBIT else amt


METHOD_EFFECTS = {
    PaymentMethod.CASH: MethodEffect(DEBIT, "Payment", cash_paid=True, settlement_sign=1, allocatable=True),
    PaymentMethod.BANK_TRANSFER: MethodEffect(
        DEBIT, "Payment", cash_paid=True, settlement_sign=1, allocatable=True
    ),
    PaymentMethod.CHECK: MethodEffect(DEBIT, "Payment", cash_paid=True, settlement_sign=1, allocatable=True),
    PaymentMethod.DEBIT_NOTE: MethodEffect(DEBIT, "Debit Note", is_return=True),
    # Stored with amount 0: the credit it consumes already lowered the aggregate.
    PaymentMethod.CREDIT_ADJUSTMENT: MethodEffect(DEBIT, "Credit Adjustment", allocatable=True),
    PaymentMethod.CREDIT_APPLICATION: MethodEffect(CREDIT, "Credit Application", settlement_sign=-1),
    PaymentMethod.CASH_REFUND: MethodEffect(CREDIT, "Cash Refund", settlement_sign=-1),
}

_unmapped = set(PaymentMethod) - set(METHOD_EFFECTS)
if _unmapped:
    raise ImproperlyConfigured(f"PaymentMethod without effect: {sorted(_unmapped)}")


def method_effect(method) -> MethodEffect:
    try:
        return METHOD_EFFECTS[PaymentMethod(method)]
    except ValueError as exc:
        raise ValidationError({"method": f"Unknown payment method: {method}"}) from exc


# ============================================================
# SUPPLIER
# ============================================================

class Supplier(models.Model):
    """
    Supplier master.

    total_payable is the running aggregate of every Supply (+cost) and every
    SupplierPayment (signed by its method effect). Services keep it in step
    under a row lock; the reconcile command re-derives it from history.
    """

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    name = models.CharField(max_length=200)
    contact_person = models.CharField(max_length=120, blank=True, default="")
    phone = models.CharField(max_length=50, blank=True, default="")
    email = models.EmailField(blank=True, default="")
    address = models.TextField(blank=True, default="")

    total_payable = models.DecimalField(max_digits=14, decimal_places=2, default=ZERO)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["name"]
        constraints = [
            models.UniqueConstraint(Lower("name"), name="uniq_supplier_name_ci"),
        ]

    def clean(self):
        self.name = (self.name or "").strip()
        if not self.name:
            raise ValidationError({"name": "name is required"})

    def save(self, *args, **kwargs):
        self.full_clean()
        return super().save(*args, **kwargs)

    @property
    def payment_status(self) -> str:
        return "Due" if _money(self.total_payable) > ZERO else "Paid"

    @property
    def due_amount(self) -> Decimal:
        return max(_money(self.total_payable), ZERO)

    @property
    def credit_balance(self) -> Decimal:
        return max(-_money(self.total_payable), ZERO)

    def __str__(self):
        return self.name


# ============================================================
# SUPPLY (PURCHASE INVOICE LINE)
# ============================================================

class PaymentStatus(models.TextChoices):
    UNPAID = "Unpaid", "Unpaid"
    PARTIAL = "Partial", "Partial"
    PAID = "Paid", "Paid"


def derive_payment_status(paid_amount, total_cost) -> str:
    paid = _money(paid_amount)
    if paid <= ZERO:
        return PaymentStatus.UNPAID
    if paid >= _money(total_cost):
        return PaymentStatus.PAID
    return PaymentStatus.PARTIAL


class Supply(models.Model):
    """
    One purchase invoice line.

    payment_status is always derived from paid_amount vs total_cost on save.
    supplier_name is kept for legacy rows that predate the supplier FK
    (see the backfill_supply_suppliers command).
    """

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    supplier = models.ForeignKey(
        Supplier,
        on_delete=models.CASCADE,
        related_name="supplies",
        null=True,
        blank=True,
    )
    supplier_name = models.CharField(max_length=200, db_index=True)

    product = models.ForeignKey(
        Product,
        on_delete=models.SET_NULL,
        related_name="supplies",
        null=True,
        blank=True,
    )
    stock_batch = models.ForeignKey(
        StockBatch,
        on_delete=models.SET_NULL,
        related_name="supplies",
        null=True,
        blank=True,
    )

    name = models.CharField(max_length=255)
    batch_number = models.CharField(max_length=128)

    quantity = models.PositiveIntegerField()
    free_quantity = models.PositiveIntegerField(default=0)

    purchase_cost = models.DecimalField(
        max_digits=12, decimal_places=2, help_text="Unit purchase cost"
    )
    selling_price = models.DecimalField(max_digits=10, decimal_places=2, default=ZERO)

    purchase_invoice_number = models.CharField(max_length=64, blank=True, default="")
    invoice_date = models.DateField(null=True, blank=True)
    invoice_due_date = models.DateField(null=True, blank=True)
    expiry_date = models.DateField()
    added_date = models.DateField(default=timezone.localdate)

    notes = models.TextField(blank=True, default="")

    paid_amount = models.DecimalField(max_digits=14, decimal_places=2, default=ZERO)
    payment_status = models.CharField(
        max_length=10, choices=PaymentStatus.choices, default=PaymentStatus.UNPAID
    )

    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["-added_date", "-created_at"]
        verbose_name_plural = "supplies"
        constraints = [
            models.CheckConstraint(
                condition=models.Q(quantity__gt=0),
                name="supply_quantity_gt_zero",
            ),
            models.CheckConstraint(
                condition=models.Q(purchase_cost__gte=ZERO),
                name="supply_purchase_cost_nonnegative",
            ),
            models.CheckConstraint(
                condition=models.Q(paid_amount__gte=ZERO),
                name="supply_paid_amount_nonnegative",
            ),
        ]
        indexes = [
            models.Index(fields=["supplier", "added_date"], name="purchases_supply_sup_idx"),
            models.Index(fields=["payment_status"], name="purchases_supply_status_idx"),
        ]

    def clean(self):
        self.name = (self.name or "").strip()
        if not self.name:
            raise ValidationError({"name": "name is required"})

        self.supplier_name = (self.supplier_name or "").strip()
        if not self.supplier_name:
            raise ValidationError({"supplier_name": "supplier_name is required"})

        if self.purchase_cost is not None and self.purchase_cost < ZERO:
            raise ValidationError({"purchase_cost": "purchase_cost cannot be negative"})

        if self.paid_amount is not None and self.paid_amount < ZERO:
            raise ValidationError({"paid_amount": "paid_amount cannot be negative"})

    def save(self, *args, **kwargs):
        self.paid_amount = _money(self.paid_amount)
        self.payment_status = derive_payment_status(self.paid_amount, self.total_cost)
        update_fields = kwargs.get("update_fields")
        if update_fields is not None and "paid_amount" in update_fields:
            kwargs["update_fields"] = set(update_fields) | {"payment_status"}
        self.full_clean()
        return super().save(*args, **kwargs)

    @property
    def total_cost(self) -> Decimal:
        return _money(Decimal(int(self.quantity or 0)) * Decimal(str(self.purchase_cost or "0")))

    @property
    def due_amount(self) -> Decimal:
        return max(self.total_cost - _money(self.paid_amount), ZERO)

    def __str__(self):
        return f"{self.name} x {self.quantity} ({self.supplier_name})"


# ============================================================
# SUPPLIER PAYMENT
# ============================================================

class SupplierPayment(models.Model):
    """
    Any money-shaped event against a supplier.

    amount is never negative; its effect on the payable comes from the
    method (see METHOD_EFFECTS). reference is an optional idempotency key,
    unique per supplier when set.
    """

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    supplier = models.ForeignKey(
        Supplier,
        on_delete=models.CASCADE,
        related_name="payments",
    )

    amount = models.DecimalField(max_digits=14, decimal_places=2, default=ZERO)
    payment_date = models.DateField(default=timezone.localdate)
    method = models.CharField(
        max_length=32, choices=PaymentMethod.choices, default=PaymentMethod.CASH
    )
    note = models.CharField(max_length=255, blank=True, default="")
    reference = models.CharField(max_length=64, blank=True, default="")

    created_by = models.ForeignKey(
        User,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="supplier_payments_created",
    )

    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["-payment_date", "-created_at"]
        constraints = [
            models.CheckConstraint(
                condition=models.Q(amount__gte=ZERO),
                name="supplier_payment_amount_nonnegative",
            ),
            models.UniqueConstraint(
                fields=["supplier", "reference"],
                condition=~models.Q(reference=""),
                name="uniq_supplier_payment_reference",
            ),
        ]
        indexes = [
            models.Index(fields=["supplier", "payment_date"], name="purchases_pay_sup_idx"),
            models.Index(fields=["method"], name="purchases_pay_method_idx"),
        ]

    def clean(self):
        method_effect(self.method)

        if self.amount is not None and self.amount < ZERO:
            raise ValidationError({"amount": "amount cannot be negative"})

    def save(self, *args, **kwargs):
        self.note = (self.note or "").strip()
        self.reference = (self.reference or "").strip()
        self.amount = _money(self.amount)
        self.full_clean()
        return super().save(*args, **kwargs)

    @property
    def effect(self) -> MethodEffect:
        return method_effect(self.method)

    @property
    def aggregate_delta(self) -> Decimal:
        return self.effect.aggregate_delta(self.amount)

    def __str__(self):
        return f"{self.supplier.name} - {self.method} {self.amount}"


# ============================================================
# ITEM PAYMENT (ALLOCATION)
# ============================================================

class ItemPayment(models.Model):
    """
    Allocation of one payment to one supply line.

    Created only by the allocation services; never edited afterwards.
    Deleted when the owning payment or the supply is voided.
    """

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    supplier = models.ForeignKey(
        Supplier,
        on_delete=models.CASCADE,
        related_name="item_payments",
    )
    supply = models.ForeignKey(
        Supply,
        on_delete=models.CASCADE,
        related_name="item_payments",
    )
    payment = models.ForeignKey(
        SupplierPayment,
        on_delete=models.CASCADE,
        related_name="item_payments",
    )

    amount = models.DecimalField(max_digits=14, decimal_places=2)
    payment_date = models.DateField(default=timezone.localdate)
    notes = models.CharField(max_length=255, blank=True, default="")

    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["created_at"]
        constraints = [
            models.CheckConstraint(
                condition=models.Q(amount__gt=ZERO),
                name="item_payment_amount_gt_zero",
            ),
        ]
        indexes = [
            models.Index(fields=["supply", "created_at"], name="purchases_ip_supply_idx"),
            models.Index(fields=["payment"], name="purchases_ip_payment_idx"),
        ]

    def clean(self):
        if self.amount is None or self.amount <= ZERO:
            raise ValidationError({"amount": "amount must be > 0"})

    def save(self, *args, **kwargs):
        if not self._state.adding:
            raise ValidationError("ItemPayment records are immutable")
        self.amount = _money(self.amount)
        self.full_clean()
        return super().save(*args, **kwargs)

    def __str__(self):
        return f"{self.supply} <- {self.amount}"
