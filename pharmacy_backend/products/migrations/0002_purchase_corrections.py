"""
======================================================
PATH: products/migrations/0002_purchase_corrections.py
======================================================
MIGRATION: PURCHASE CORRECTIONS

Adds the ADJUSTMENT movement reason used when a recorded purchase line is
edited, and documents that a correction may resize or re-cost its batch.
"""

from __future__ import annotations

from django.db import migrations, models


class Migration(migrations.Migration):
    dependencies = [
        ("products", "0001_initial"),
    ]

    operations = [
        migrations.AlterField(
            model_name="stockbatch",
            name="quantity_received",
            field=models.PositiveIntegerField(
                help_text="Quantity delivered, paid and free units (purchase corrections only)"
            ),
        ),
        migrations.AlterField(
            model_name="stockbatch",
            name="unit_cost",
            field=models.DecimalField(
                decimal_places=2,
                help_text="Unit purchase cost for this delivery (purchase corrections only).",
                max_digits=12,
            ),
        ),
        migrations.AlterField(
            model_name="stockmovement",
            name="reason",
            field=models.CharField(
                choices=[
                    ("RECEIPT", "Stock Receipt"),
                    ("SUPPLIER_RETURN", "Return to Supplier"),
                    ("VOID", "Purchase Voided"),
                    ("ADJUSTMENT", "Purchase Correction"),
                ],
                max_length=20,
            ),
        ),
    ]
