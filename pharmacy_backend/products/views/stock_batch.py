"""
======================================================
PATH: products/views/stock_batch.py
======================================================
STOCK BATCH VIEWSET

Read-only batch listing. Quantities change only through purchase
recording, supplier returns and purchase voids.

Query params:
- product_id: restrict to one product
- include_empty: include fully consumed batches (default true)
"""

from __future__ import annotations

from rest_framework import viewsets
from rest_framework.permissions import IsAuthenticated

from products.models import StockBatch
from products.serializers import StockBatchSerializer


class StockBatchViewSet(viewsets.ReadOnlyModelViewSet):
    serializer_class = StockBatchSerializer
    permission_classes = [IsAuthenticated]

    def get_queryset(self):
        qs = StockBatch.objects.select_related("product").order_by("expiry_date", "created_at")

        product_id = (self.request.query_params.get("product_id") or "").strip()
        if product_id:
            qs = qs.filter(product_id=product_id)

        include_empty = (self.request.query_params.get("include_empty") or "true").strip().lower() in (
            "1", "true", "yes"
        )
        if not include_empty:
            qs = qs.filter(is_active=True)

        return qs
