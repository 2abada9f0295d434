# products/models/stock_batch.py

"""
STOCK BATCH (DELIVERY-BASED INVENTORY)

Represents ONE physical delivery of stock from a supplier.

RULES:
- quantity_received and unit_cost change only through a purchase
  correction (products.services.stock_adjustments)
- quantity_remaining is mutated ONLY via services
- is_active is ALWAYS derived (never user-controlled)
- Non-deletable once referenced by StockMovement (audit safety)
- batch_number is unique per product
"""

import uuid
from decimal import Decimal

from django.core.exceptions import ValidationError
from django.db import models
from django.db.models import F, Q

from .product import Product


class StockBatch(models.Model):
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    product = models.ForeignKey(
        Product,
        on_delete=models.CASCADE,
        related_name="stock_batches",
    )

    batch_number = models.CharField(
        max_length=128,
        help_text="Supplier / delivery batch reference",
    )

    expiry_date = models.DateField()

    quantity_received = models.PositiveIntegerField(
        help_text="Quantity delivered, paid and free units (purchase corrections only)"
    )

    quantity_remaining = models.PositiveIntegerField(
        default=0,
        help_text="Remaining quantity (service-managed only)",
    )

    unit_cost = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        help_text="Unit purchase cost for this delivery (purchase corrections only).",
    )

    # Derived field, NEVER edited directly
    is_active = models.BooleanField(default=False)

    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["expiry_date", "created_at"]
        indexes = [
            models.Index(fields=["product", "expiry_date"], name="products_st_product_exp_idx"),
            models.Index(fields=["product", "is_active", "expiry_date"], name="products_st_product_act_idx"),
            models.Index(fields=["expiry_date"], name="products_st_expiry_idx"),
        ]
        constraints = [
            models.UniqueConstraint(
                fields=["product", "batch_number"],
                name="unique_batch_per_product",
            ),
            models.CheckConstraint(
                condition=Q(quantity_received__gt=0),
                name="chk_stockbatch_qty_received_gt_zero",
            ),
            models.CheckConstraint(
                condition=Q(quantity_remaining__lte=F("quantity_received")),
                name="chk_stockbatch_remaining_lte_received",
            ),
            models.CheckConstraint(
                condition=Q(unit_cost__gte=Decimal("0.00")),
                name="chk_stockbatch_unit_cost_nonnegative",
            ),
        ]

    # -------------------------------------------------
    # VALIDATION
    # -------------------------------------------------

    def clean(self):
        if self.quantity_received is None or self.quantity_received <= 0:
            raise ValidationError(
                {"quantity_received": "quantity_received must be greater than zero"}
            )

        if self.quantity_remaining > self.quantity_received:
            raise ValidationError(
                {"quantity_remaining": "quantity_remaining cannot exceed quantity_received"}
            )

        if not self.expiry_date:
            raise ValidationError({"expiry_date": "expiry_date is required"})

        if self.unit_cost is None or self.unit_cost < Decimal("0.00"):
            raise ValidationError({"unit_cost": "unit_cost cannot be negative"})

    # -------------------------------------------------
    # IMMUTABILITY + DERIVED STATE
    # -------------------------------------------------

    def save(self, *args, correction: bool = False, **kwargs):
        if not self._state.adding and not correction:
            original = StockBatch.objects.only("quantity_received", "unit_cost").get(pk=self.pk)

            if self.quantity_received != original.quantity_received:
                raise ValidationError({"quantity_received": "quantity_received is immutable"})

            if self.unit_cost != original.unit_cost:
                raise ValidationError({"unit_cost": "unit_cost is immutable"})

        self.is_active = int(self.quantity_remaining or 0) > 0

        self.full_clean()
        super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):
        from products.models.stock_movement import StockMovement

        if StockMovement.objects.filter(batch=self).exists():
            raise ValidationError("Cannot delete StockBatch: it has StockMovement audit history.")
        return super().delete(*args, **kwargs)

    @property
    def total_remaining_value(self) -> Decimal:
        return Decimal(self.unit_cost or 0) * Decimal(int(self.quantity_remaining or 0))

    def __str__(self):
        product_name = getattr(self.product, "name", "Product")
        return f"{product_name} | Batch {self.batch_number}"
