# products/serializers/product.py

"""
PRODUCT SERIALIZER

Stock is derived from StockBatch only (single source of truth).
List views annotate `total_stock_db`; single objects fall back to the
model property.
"""

from rest_framework import serializers

from products.models import Product


class ProductSerializer(serializers.ModelSerializer):
    total_stock = serializers.SerializerMethodField(read_only=True)
    is_low_stock = serializers.SerializerMethodField(read_only=True)

    class Meta:
        model = Product
        fields = [
            "id",
            "sku",
            "name",
            "category",
            "unit_price",
            "last_purchase_cost",
            "low_stock_threshold",
            "total_stock",
            "is_low_stock",
            "is_active",
            "created_at",
            "updated_at",
        ]
        read_only_fields = fields

    def get_total_stock(self, obj) -> int:
        annotated = getattr(obj, "total_stock_db", None)
        if annotated is not None:
            return int(annotated)
        return int(obj.total_stock)

    def get_is_low_stock(self, obj) -> bool:
        return self.get_total_stock(obj) <= int(obj.low_stock_threshold or 0)
