# purchases/admin.py
"""
=====================================================
PATH: purchases/admin.py
=====================================================

Admin rules (audit-safe):

- Supplier contact details can be edited; total_payable cannot
  (it moves only through the ledger services).
- Supplies, payments and allocations are view-only: changing them here
  would bypass the payable bookkeeping.
"""

from __future__ import annotations

from django.contrib import admin

from purchases.models import ItemPayment, Supplier, SupplierPayment, Supply


class ReadOnlyAdminMixin:
    def has_add_permission(self, request, obj=None):
        return False

    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False


@admin.register(Supplier)
class SupplierAdmin(admin.ModelAdmin):
    list_display = ("name", "contact_person", "phone", "total_payable", "payment_status", "updated_at")
    search_fields = ("name", "contact_person", "phone", "email")
    ordering = ("name",)
    readonly_fields = ("total_payable", "created_at", "updated_at")

    def has_delete_permission(self, request, obj=None):
        return False


class ItemPaymentInline(ReadOnlyAdminMixin, admin.TabularInline):
    model = ItemPayment
    fk_name = "supply"
    extra = 0
    fields = ("payment", "amount", "payment_date", "notes", "created_at")
    readonly_fields = fields


@admin.register(Supply)
class SupplyAdmin(ReadOnlyAdminMixin, admin.ModelAdmin):
    list_display = (
        "name",
        "supplier_name",
        "batch_number",
        "quantity",
        "purchase_cost",
        "paid_amount",
        "payment_status",
        "invoice_due_date",
        "added_date",
    )
    list_filter = ("payment_status", "added_date")
    search_fields = ("name", "supplier_name", "batch_number", "purchase_invoice_number")
    ordering = ("-added_date", "-created_at")
    inlines = [ItemPaymentInline]


@admin.register(SupplierPayment)
class SupplierPaymentAdmin(ReadOnlyAdminMixin, admin.ModelAdmin):
    list_display = ("supplier", "method", "amount", "payment_date", "reference", "created_by", "created_at")
    list_filter = ("method", "payment_date")
    search_fields = ("supplier__name", "note", "reference")
    ordering = ("-payment_date", "-created_at")


@admin.register(ItemPayment)
class ItemPaymentAdmin(ReadOnlyAdminMixin, admin.ModelAdmin):
    list_display = ("supply", "payment", "amount", "payment_date", "created_at")
    search_fields = ("supply__name", "supplier__name")
