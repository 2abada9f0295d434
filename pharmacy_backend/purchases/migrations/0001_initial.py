"""
======================================================
PATH: purchases/migrations/0001_initial.py
======================================================
MIGRATION: INITIAL SUPPLIER LEDGER SCHEMA

Creates Supplier (signed total_payable), Supply (purchase line with its
own paid state), SupplierPayment (every money-shaped event) and the
ItemPayment allocation table.
"""

from __future__ import annotations

import uuid
from decimal import Decimal

from django.conf import settings
from django.db import migrations, models
import django.db.models.deletion
import django.db.models.functions.text
import django.utils.timezone


PAYMENT_METHOD_CHOICES = [
    ("Cash", "Cash"),
    ("Bank Transfer", "Bank Transfer"),
    ("Check", "Check"),
    ("Debit Note", "Debit Note"),
    ("Credit Adjustment", "Credit Adjustment"),
    ("Credit Application", "Credit Application"),
    ("Cash Refund", "Cash Refund"),
]


class Migration(migrations.Migration):
    initial = True

    dependencies = [
        ("products", "0001_initial"),
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="Supplier",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("name", models.CharField(max_length=200)),
                ("contact_person", models.CharField(blank=True, default="", max_length=120)),
                ("phone", models.CharField(blank=True, default="", max_length=50)),
                ("email", models.EmailField(blank=True, default="", max_length=254)),
                ("address", models.TextField(blank=True, default="")),
                ("total_payable", models.DecimalField(decimal_places=2, default=Decimal("0.00"), max_digits=14)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
            ],
            options={
                "ordering": ["name"],
                "constraints": [
                    models.UniqueConstraint(
                        django.db.models.functions.text.Lower("name"),
                        name="uniq_supplier_name_ci",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="Supply",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("supplier_name", models.CharField(db_index=True, max_length=200)),
                ("name", models.CharField(max_length=255)),
                ("batch_number", models.CharField(max_length=128)),
                ("quantity", models.PositiveIntegerField()),
                ("free_quantity", models.PositiveIntegerField(default=0)),
                (
                    "purchase_cost",
                    models.DecimalField(decimal_places=2, help_text="Unit purchase cost", max_digits=12),
                ),
                ("selling_price", models.DecimalField(decimal_places=2, default=Decimal("0.00"), max_digits=10)),
                ("purchase_invoice_number", models.CharField(blank=True, default="", max_length=64)),
                ("invoice_date", models.DateField(blank=True, null=True)),
                ("invoice_due_date", models.DateField(blank=True, null=True)),
                ("expiry_date", models.DateField()),
                ("added_date", models.DateField(default=django.utils.timezone.localdate)),
                ("notes", models.TextField(blank=True, default="")),
                ("paid_amount", models.DecimalField(decimal_places=2, default=Decimal("0.00"), max_digits=14)),
                (
                    "payment_status",
                    models.CharField(
                        choices=[("Unpaid", "Unpaid"), ("Partial", "Partial"), ("Paid", "Paid")],
                        default="Unpaid",
                        max_length=10,
                    ),
                ),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                (
                    "product",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="supplies",
                        to="products.product",
                    ),
                ),
                (
                    "stock_batch",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="supplies",
                        to="products.stockbatch",
                    ),
                ),
                (
                    "supplier",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="supplies",
                        to="purchases.supplier",
                    ),
                ),
            ],
            options={
                "verbose_name_plural": "supplies",
                "ordering": ["-added_date", "-created_at"],
                "indexes": [
                    models.Index(fields=["supplier", "added_date"], name="purchases_supply_sup_idx"),
                    models.Index(fields=["payment_status"], name="purchases_supply_status_idx"),
                ],
                "constraints": [
                    models.CheckConstraint(
                        condition=models.Q(quantity__gt=0),
                        name="supply_quantity_gt_zero",
                    ),
                    models.CheckConstraint(
                        condition=models.Q(purchase_cost__gte=Decimal("0.00")),
                        name="supply_purchase_cost_nonnegative",
                    ),
                    models.CheckConstraint(
                        condition=models.Q(paid_amount__gte=Decimal("0.00")),
                        name="supply_paid_amount_nonnegative",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="SupplierPayment",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("amount", models.DecimalField(decimal_places=2, default=Decimal("0.00"), max_digits=14)),
                ("payment_date", models.DateField(default=django.utils.timezone.localdate)),
                ("method", models.CharField(choices=PAYMENT_METHOD_CHOICES, default="Cash", max_length=32)),
                ("note", models.CharField(blank=True, default="", max_length=255)),
                ("reference", models.CharField(blank=True, default="", max_length=64)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                (
                    "created_by",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="supplier_payments_created",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
                (
                    "supplier",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="payments",
                        to="purchases.supplier",
                    ),
                ),
            ],
            options={
                "ordering": ["-payment_date", "-created_at"],
                "indexes": [
                    models.Index(fields=["supplier", "payment_date"], name="purchases_pay_sup_idx"),
                    models.Index(fields=["method"], name="purchases_pay_method_idx"),
                ],
                "constraints": [
                    models.CheckConstraint(
                        condition=models.Q(amount__gte=Decimal("0.00")),
                        name="supplier_payment_amount_nonnegative",
                    ),
                    models.UniqueConstraint(
                        condition=models.Q(("reference", ""), _negated=True),
                        fields=("supplier", "reference"),
                        name="uniq_supplier_payment_reference",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="ItemPayment",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("amount", models.DecimalField(decimal_places=2, max_digits=14)),
                ("payment_date", models.DateField(default=django.utils.timezone.localdate)),
                ("notes", models.CharField(blank=True, default="", max_length=255)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                (
                    "payment",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="item_payments",
                        to="purchases.supplierpayment",
                    ),
                ),
                (
                    "supplier",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="item_payments",
                        to="purchases.supplier",
                    ),
                ),
                (
                    "supply",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="item_payments",
                        to="purchases.supply",
                    ),
                ),
            ],
            options={
                "ordering": ["created_at"],
                "indexes": [
                    models.Index(fields=["supply", "created_at"], name="purchases_ip_supply_idx"),
                    models.Index(fields=["payment"], name="purchases_ip_payment_idx"),
                ],
                "constraints": [
                    models.CheckConstraint(
                        condition=models.Q(amount__gt=Decimal("0.00")),
                        name="item_payment_amount_gt_zero",
                    ),
                ],
            },
        ),
    ]
