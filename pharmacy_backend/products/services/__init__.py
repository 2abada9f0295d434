from .inventory import withdraw_batch_stock
from .stock_adjustments import correct_batch
from .stock_fifo import InsufficientStockError, available_stock, deduct_stock_fifo
from .stock_intake import find_or_create_product, intake_stock

__all__ = [
    "InsufficientStockError",
    "available_stock",
    "correct_batch",
    "deduct_stock_fifo",
    "find_or_create_product",
    "intake_stock",
    "withdraw_batch_stock",
]
