# purchases/api/urls.py

from django.urls import path

from purchases.api.views import (
    SupplierApplyCreditView,
    SupplierCashRefundView,
    SupplierClearHistoryView,
    SupplierDetailView,
    SupplierLedgerView,
    SupplierListCreateView,
    SupplierPaymentDetailView,
    SupplierPaymentListView,
    SupplierPayItemsView,
    SupplierPayView,
    SupplierReconcileView,
    SupplierReturnView,
    SupplyDetailView,
    SupplyListCreateView,
)

urlpatterns = [
    path("suppliers/", SupplierListCreateView.as_view(), name="purchase-suppliers"),
    path("suppliers/<uuid:supplier_id>/", SupplierDetailView.as_view(), name="purchase-supplier-detail"),
    path("suppliers/<uuid:supplier_id>/ledger/", SupplierLedgerView.as_view(), name="purchase-supplier-ledger"),
    path("suppliers/<uuid:supplier_id>/pay/", SupplierPayView.as_view(), name="purchase-supplier-pay"),
    path(
        "suppliers/<uuid:supplier_id>/pay-items/",
        SupplierPayItemsView.as_view(),
        name="purchase-supplier-pay-items",
    ),
    path(
        "suppliers/<uuid:supplier_id>/apply-credit/",
        SupplierApplyCreditView.as_view(),
        name="purchase-supplier-apply-credit",
    ),
    path(
        "suppliers/<uuid:supplier_id>/record-refund/",
        SupplierCashRefundView.as_view(),
        name="purchase-supplier-record-refund",
    ),
    path("suppliers/<uuid:supplier_id>/returns/", SupplierReturnView.as_view(), name="purchase-supplier-returns"),
    path(
        "suppliers/<uuid:supplier_id>/clear-history/",
        SupplierClearHistoryView.as_view(),
        name="purchase-supplier-clear-history",
    ),
    path(
        "suppliers/<uuid:supplier_id>/reconcile/",
        SupplierReconcileView.as_view(),
        name="purchase-supplier-reconcile",
    ),
    path("supplies/", SupplyListCreateView.as_view(), name="purchase-supplies"),
    path("supplies/<uuid:supply_id>/", SupplyDetailView.as_view(), name="purchase-supply-detail"),
    path("payments/", SupplierPaymentListView.as_view(), name="supplier-payments"),
    path("payments/<uuid:payment_id>/", SupplierPaymentDetailView.as_view(), name="supplier-payment-detail"),
]
