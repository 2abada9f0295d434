# products/urls.py

"""
PRODUCTS URLS

Registers read-side inventory routes under /api/products/:
- products/                 catalog with stock totals
- products/{id}/movements/  inventory ledger for one product
- stock-batches/            deliveries and what is left of them
"""

from django.urls import include, path
from rest_framework.routers import DefaultRouter

from products.views import ProductViewSet, StockBatchViewSet

router = DefaultRouter()

router.register(r"products", ProductViewSet, basename="products")
router.register(r"stock-batches", StockBatchViewSet, basename="stock-batches")

urlpatterns = [
    path("", include(router.urls)),
]
