# purchases/apps.py

"""
PURCHASES APP CONFIG

Suppliers, purchase lines, supplier payments and the supplier ledger
engine.
"""

from django.apps import AppConfig


class PurchasesConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "purchases"
    verbose_name = "Purchases & Supplier Ledger"
