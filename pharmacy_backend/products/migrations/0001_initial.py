"""
======================================================
PATH: products/migrations/0001_initial.py
======================================================
MIGRATION: INITIAL STOCK SCHEMA

Creates Product, StockBatch (one row per supplier delivery) and the
append-only StockMovement ledger.
"""

from __future__ import annotations

import uuid
from decimal import Decimal

from django.conf import settings
from django.db import migrations, models
import django.db.models.deletion
import django.db.models.functions.text


class Migration(migrations.Migration):
    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="Product",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("sku", models.CharField(blank=True, max_length=128, null=True, unique=True)),
                ("name", models.CharField(db_index=True, max_length=255)),
                ("category", models.CharField(blank=True, default="General", max_length=120)),
                ("unit_price", models.DecimalField(decimal_places=2, default=Decimal("0.00"), max_digits=10)),
                (
                    "last_purchase_cost",
                    models.DecimalField(blank=True, decimal_places=2, default=None, max_digits=12, null=True),
                ),
                ("low_stock_threshold", models.PositiveIntegerField(default=10)),
                ("is_active", models.BooleanField(default=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
            ],
            options={
                "ordering": ["name"],
                "indexes": [models.Index(fields=["sku"], name="products_pr_sku_idx")],
                "constraints": [
                    models.UniqueConstraint(
                        django.db.models.functions.text.Lower("name"),
                        name="uniq_product_name_ci",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="StockBatch",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                (
                    "batch_number",
                    models.CharField(help_text="Supplier / delivery batch reference", max_length=128),
                ),
                ("expiry_date", models.DateField()),
                (
                    "quantity_received",
                    models.PositiveIntegerField(
                        help_text="Quantity delivered, paid and free units (immutable)"
                    ),
                ),
                (
                    "quantity_remaining",
                    models.PositiveIntegerField(
                        default=0, help_text="Remaining quantity (service-managed only)"
                    ),
                ),
                (
                    "unit_cost",
                    models.DecimalField(
                        decimal_places=2,
                        help_text="Unit purchase cost for this delivery (immutable).",
                        max_digits=12,
                    ),
                ),
                ("is_active", models.BooleanField(default=False)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                (
                    "product",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="stock_batches",
                        to="products.product",
                    ),
                ),
            ],
            options={
                "ordering": ["expiry_date", "created_at"],
                "indexes": [
                    models.Index(fields=["product", "expiry_date"], name="products_st_product_exp_idx"),
                    models.Index(
                        fields=["product", "is_active", "expiry_date"],
                        name="products_st_product_act_idx",
                    ),
                    models.Index(fields=["expiry_date"], name="products_st_expiry_idx"),
                ],
                "constraints": [
                    models.UniqueConstraint(
                        fields=("product", "batch_number"), name="unique_batch_per_product"
                    ),
                    models.CheckConstraint(
                        condition=models.Q(quantity_received__gt=0),
                        name="chk_stockbatch_qty_received_gt_zero",
                    ),
                    models.CheckConstraint(
                        condition=models.Q(quantity_remaining__lte=models.F("quantity_received")),
                        name="chk_stockbatch_remaining_lte_received",
                    ),
                    models.CheckConstraint(
                        condition=models.Q(unit_cost__gte=Decimal("0.00")),
                        name="chk_stockbatch_unit_cost_nonnegative",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="StockMovement",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                (
                    "movement_type",
                    models.CharField(choices=[("IN", "Stock In"), ("OUT", "Stock Out")], max_length=3),
                ),
                (
                    "reason",
                    models.CharField(
                        choices=[
                            ("RECEIPT", "Stock Receipt"),
                            ("SUPPLIER_RETURN", "Return to Supplier"),
                            ("VOID", "Purchase Voided"),
                        ],
                        max_length=20,
                    ),
                ),
                ("quantity", models.PositiveIntegerField()),
                ("unit_cost_snapshot", models.DecimalField(decimal_places=2, max_digits=12)),
                ("reference", models.CharField(blank=True, default="", max_length=64)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                (
                    "batch",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="stock_movements",
                        to="products.stockbatch",
                    ),
                ),
                (
                    "performed_by",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="stock_movements",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
                (
                    "product",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="stock_movements",
                        to="products.product",
                    ),
                ),
            ],
            options={
                "ordering": ["created_at"],
                "indexes": [
                    models.Index(fields=["reason"], name="products_sm_reason_idx"),
                    models.Index(fields=["product", "created_at"], name="products_sm_product_idx"),
                    models.Index(fields=["batch", "created_at"], name="products_sm_batch_idx"),
                    models.Index(fields=["reference"], name="products_sm_reference_idx"),
                ],
            },
        ),
    ]
