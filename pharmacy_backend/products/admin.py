# products/admin.py
"""
=====================================================
PATH: products/admin.py
=====================================================

Admin rules (audit-safe):

- Products can be edited (name, price, threshold, activity).
- Stock arrives only by recording a purchase, so StockBatch and
  StockMovement are view-only here.
"""

from __future__ import annotations

from datetime import timedelta

from django.contrib import admin
from django.utils import timezone

from products.models import Product, StockBatch, StockMovement


class StockBatchInline(admin.TabularInline):
    model = StockBatch
    extra = 0
    can_delete = False
    show_change_link = False

    fields = (
        "batch_number",
        "expiry_date",
        "quantity_received",
        "unit_cost",
        "quantity_remaining",
        "is_active",
        "created_at",
    )
    readonly_fields = fields

    def has_add_permission(self, request, obj=None):
        return False


@admin.register(Product)
class ProductAdmin(admin.ModelAdmin):
    list_display = (
        "name",
        "sku",
        "category",
        "unit_price",
        "last_purchase_cost",
        "total_stock",
        "is_low_stock",
        "is_active",
    )
    list_filter = ("is_active", "category")
    search_fields = ("sku", "name")
    ordering = ("name",)
    readonly_fields = ("last_purchase_cost", "created_at", "updated_at")

    inlines = [StockBatchInline]


@admin.register(StockBatch)
class StockBatchAdmin(admin.ModelAdmin):
    list_display = (
        "product",
        "batch_number",
        "expiry_date",
        "quantity_received",
        "unit_cost",
        "quantity_remaining",
        "expiry_status",
        "is_active",
        "created_at",
    )
    list_filter = ("is_active", "expiry_date", "created_at")
    search_fields = ("batch_number", "product__name", "product__sku")
    ordering = ("expiry_date", "created_at")

    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False

    @admin.display(description="Expiry Status")
    def expiry_status(self, obj):
        today = timezone.localdate()

        if obj.expiry_date < today:
            return "EXPIRED"

        if obj.expiry_date <= today + timedelta(days=30):
            return "SOON"

        return "OK"


@admin.register(StockMovement)
class StockMovementAdmin(admin.ModelAdmin):
    list_display = ("product", "batch", "movement_type", "reason", "quantity", "reference", "created_at")
    list_filter = ("reason", "movement_type")
    search_fields = ("product__name", "batch__batch_number", "reference")

    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False
