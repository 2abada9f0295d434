# products/apps.py

"""
PRODUCTS APP CONFIG

Stock records (Product, StockBatch, StockMovement) and the inventory
services purchases call into.
"""

from django.apps import AppConfig


class ProductsConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "products"
    verbose_name = "Products & Stock"
