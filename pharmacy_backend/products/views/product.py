# products/views/product.py

"""
PRODUCT VIEWSET

Read-only catalog for the back office. Products are created by recording
purchases; stock totals are annotated to avoid N+1 on lists.
"""

from django.db.models import Sum
from django.db.models.functions import Coalesce
from drf_spectacular.utils import OpenApiParameter, extend_schema
from rest_framework import viewsets
from rest_framework.decorators import action
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from products.models import Product
from products.serializers import ProductSerializer, StockMovementSerializer


@extend_schema(tags=["Products"])
class ProductViewSet(viewsets.ReadOnlyModelViewSet):
    serializer_class = ProductSerializer
    permission_classes = [IsAuthenticated]

    def get_queryset(self):
        qs = Product.objects.annotate(
            total_stock_db=Coalesce(Sum("stock_batches__quantity_remaining"), 0)
        ).order_by("name")

        q = (self.request.query_params.get("q") or "").strip()
        if q:
            qs = qs.filter(name__icontains=q)

        include_inactive = (self.request.query_params.get("include_inactive") or "").strip().lower()
        if include_inactive not in ("1", "true", "yes"):
            qs = qs.filter(is_active=True)

        return qs

    @extend_schema(
        parameters=[
            OpenApiParameter("q", str, description="Case-insensitive name search"),
            OpenApiParameter("include_inactive", bool),
        ]
    )
    def list(self, request, *args, **kwargs):
        return super().list(request, *args, **kwargs)

    @extend_schema(responses=StockMovementSerializer(many=True))
    @action(detail=True, methods=["get"])
    def movements(self, request, pk=None):
        """GET /api/products/products/{id}/movements/ (newest first)"""
        product = self.get_object()
        qs = product.stock_movements.select_related("batch").order_by("-created_at")
        return Response(StockMovementSerializer(qs, many=True).data)
