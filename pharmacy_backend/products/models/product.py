# products/models/product.py

import uuid
from decimal import Decimal

from django.core.exceptions import ValidationError
from django.db import models
from django.db.models import Sum
from django.db.models.functions import Lower


class Product(models.Model):
    """
    A stocked medicine / item.

    STOCK MODEL (IMPORTANT):
    - Product itself does NOT store stock
    - Stock lives in StockBatch (one row per supplier delivery)
    - Total stock = sum of quantity_remaining over batches

    Purchases find-or-create products by case-insensitive name, so the
    name is unique ignoring case.
    """

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    sku = models.CharField(max_length=128, unique=True, null=True, blank=True)
    name = models.CharField(max_length=255, db_index=True)
    category = models.CharField(max_length=120, blank=True, default="General")

    # Current selling price (0 until a purchase or an operator sets it)
    unit_price = models.DecimalField(
        max_digits=10, decimal_places=2, default=Decimal("0.00")
    )

    # Unit cost from the most recent purchase
    last_purchase_cost = models.DecimalField(
        max_digits=12, decimal_places=2, null=True, blank=True, default=None
    )

    low_stock_threshold = models.PositiveIntegerField(default=10)

    is_active = models.BooleanField(default=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["name"]
        constraints = [
            models.UniqueConstraint(Lower("name"), name="uniq_product_name_ci"),
        ]
        indexes = [
            models.Index(fields=["sku"], name="products_pr_sku_idx"),
        ]

    def __str__(self):
        return f"{self.name} ({self.sku})" if self.sku else self.name

    def clean(self):
        self.name = (self.name or "").strip()
        if not self.name:
            raise ValidationError({"name": "name is required"})

        if self.sku is not None:
            self.sku = self.sku.strip() or None

        if self.unit_price is None or Decimal(self.unit_price) < Decimal("0.00"):
            raise ValidationError({"unit_price": "unit_price cannot be negative"})

    def save(self, *args, **kwargs):
        self.full_clean()
        return super().save(*args, **kwargs)

    @property
    def total_stock(self) -> int:
        """Units on hand across every batch, expired included."""
        return (
            self.stock_batches.aggregate(total=Sum("quantity_remaining")).get("total")
            or 0
        )

    @property
    def is_low_stock(self) -> bool:
        return self.total_stock <= int(self.low_stock_threshold or 0)
