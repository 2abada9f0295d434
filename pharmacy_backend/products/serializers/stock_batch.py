# products/serializers/stock_batch.py
"""
======================================================
PATH: products/serializers/stock_batch.py
======================================================
STOCK BATCH / MOVEMENT SERIALIZERS (READ SIDE)

Batches are created by recording a purchase and reduced by supplier
returns or purchase voids, never through this boundary.
"""

from __future__ import annotations

from rest_framework import serializers

from products.models import StockBatch, StockMovement


class StockBatchSerializer(serializers.ModelSerializer):
    product = serializers.CharField(source="product.name", read_only=True)
    product_id = serializers.UUIDField(source="product.id", read_only=True)

    class Meta:
        model = StockBatch
        fields = [
            "id",
            "product",
            "product_id",
            "batch_number",
            "expiry_date",
            "quantity_received",
            "quantity_remaining",
            "unit_cost",
            "is_active",
            "created_at",
        ]
        read_only_fields = fields


class StockMovementSerializer(serializers.ModelSerializer):
    batch_number = serializers.CharField(source="batch.batch_number", read_only=True)

    class Meta:
        model = StockMovement
        fields = [
            "id",
            "batch",
            "batch_number",
            "movement_type",
            "reason",
            "quantity",
            "unit_cost_snapshot",
            "reference",
            "created_at",
        ]
        read_only_fields = fields
