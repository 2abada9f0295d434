# products/serializers/__init__.py

from .product import ProductSerializer
from .stock_batch import StockBatchSerializer, StockMovementSerializer

__all__ = [
    "ProductSerializer",
    "StockBatchSerializer",
    "StockMovementSerializer",
]
