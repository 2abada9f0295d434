# purchases/api/views.py

"""
SUPPLIER LEDGER API

Thin HTTP layer: serializers validate payload shape, services own every
rule and every write. Service errors map to:
- *NotFoundError            -> 404
- any other ledger error    -> 400
"""

from django.db.models import Prefetch
from drf_spectacular.utils import OpenApiParameter, extend_schema
from rest_framework import status
from rest_framework.generics import GenericAPIView, ListAPIView
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from purchases.api.filters import SupplierPaymentFilter, SupplyFilter
from purchases.api.serializers import (
    ApplyCreditSerializer,
    CashRefundSerializer,
    PayItemsSerializer,
    PaymentCreateSerializer,
    PurchaseReturnSerializer,
    SupplierPaymentSerializer,
    SupplierSerializer,
    SupplierWriteSerializer,
    SupplyCreateSerializer,
    SupplyDetailSerializer,
    SupplySerializer,
    SupplyUpdateSerializer,
)
from purchases.models import ItemPayment, Supplier, SupplierPayment, Supply
from purchases.services.allocation import allocate_payment
from purchases.services.credit_service import apply_credit, record_cash_refund
from purchases.services.exceptions import NOT_FOUND_ERRORS, SupplierLedgerError
from purchases.services.reconciliation import reconcile_supplier
from purchases.services.returns import process_purchase_return
from purchases.services.statement_service import build_supplier_statement, get_supplier
from purchases.services.supplier_service import (
    clear_history,
    create_supplier,
    delete_supplier,
    record_payment,
    update_supplier,
    void_payment,
)
from purchases.services.supply_service import record_supply, update_supply, void_supply


def _error_response(exc: SupplierLedgerError) -> Response:
    code = status.HTTP_404_NOT_FOUND if isinstance(exc, NOT_FOUND_ERRORS) else status.HTTP_400_BAD_REQUEST
    return Response({"detail": str(exc)}, status=code)


def _flag(request, name: str) -> bool:
    return (request.query_params.get(name) or "").strip().lower() in ("1", "true", "yes")


# ============================================================
# SUPPLIERS
# ============================================================

class SupplierListCreateView(GenericAPIView):
    permission_classes = [IsAuthenticated]
    serializer_class = SupplierSerializer

    @extend_schema(
        tags=["purchases"],
        parameters=[OpenApiParameter("q", str, description="Name contains")],
        responses=SupplierSerializer(many=True),
    )
    def get(self, request):
        qs = Supplier.objects.order_by("name")
        q = (request.query_params.get("q") or "").strip()
        if q:
            qs = qs.filter(name__icontains=q)
        return Response(SupplierSerializer(qs, many=True).data, status=status.HTTP_200_OK)

    @extend_schema(tags=["purchases"], request=SupplierWriteSerializer, responses={201: SupplierSerializer})
    def post(self, request):
        s = SupplierWriteSerializer(data=request.data)
        s.is_valid(raise_exception=True)

        try:
            supplier = create_supplier(**s.validated_data)
        except SupplierLedgerError as exc:
            return _error_response(exc)

        return Response(SupplierSerializer(supplier).data, status=status.HTTP_201_CREATED)


class SupplierDetailView(GenericAPIView):
    permission_classes = [IsAuthenticated]
    serializer_class = SupplierSerializer

    @extend_schema(tags=["purchases"], responses=SupplierSerializer)
    def get(self, request, supplier_id):
        try:
            supplier = get_supplier(supplier_id)
        except SupplierLedgerError as exc:
            return _error_response(exc)
        return Response(SupplierSerializer(supplier).data, status=status.HTTP_200_OK)

    def _update(self, request, supplier_id, *, partial: bool):
        s = SupplierWriteSerializer(data=request.data, partial=partial)
        s.is_valid(raise_exception=True)

        try:
            supplier = update_supplier(supplier_id=supplier_id, **s.validated_data)
        except SupplierLedgerError as exc:
            return _error_response(exc)
        return Response(SupplierSerializer(supplier).data, status=status.HTTP_200_OK)

    @extend_schema(tags=["purchases"], request=SupplierWriteSerializer, responses=SupplierSerializer)
    def put(self, request, supplier_id):
        return self._update(request, supplier_id, partial=False)

    @extend_schema(tags=["purchases"], request=SupplierWriteSerializer, responses=SupplierSerializer)
    def patch(self, request, supplier_id):
        return self._update(request, supplier_id, partial=True)

    @extend_schema(
        tags=["purchases"],
        parameters=[OpenApiParameter("withdraw_stock", bool, description="Withdraw remaining batch stock first")],
    )
    def delete(self, request, supplier_id):
        try:
            details = delete_supplier(
                supplier_id=supplier_id,
                withdraw_stock=_flag(request, "withdraw_stock"),
                user=request.user,
            )
        except SupplierLedgerError as exc:
            return _error_response(exc)
        return Response({"detail": "Supplier deleted", **details}, status=status.HTTP_200_OK)


class SupplierLedgerView(GenericAPIView):
    permission_classes = [IsAuthenticated]

    @extend_schema(tags=["purchases"])
    def get(self, request, supplier_id):
        try:
            statement = build_supplier_statement(supplier_id=supplier_id)
        except SupplierLedgerError as exc:
            return _error_response(exc)

        statement["supplier"] = SupplierSerializer(statement["supplier"]).data
        return Response(statement, status=status.HTTP_200_OK)


# ============================================================
# PAYMENTS / CREDIT / RETURNS
# ============================================================

class SupplierPayView(GenericAPIView):
    permission_classes = [IsAuthenticated]
    serializer_class = PaymentCreateSerializer

    @extend_schema(tags=["purchases"], request=PaymentCreateSerializer, responses={201: SupplierPaymentSerializer})
    def post(self, request, supplier_id):
        s = self.get_serializer(data=request.data)
        s.is_valid(raise_exception=True)
        data = s.validated_data

        try:
            payment, replayed = record_payment(
                supplier_id=supplier_id,
                amount=data["amount"],
                method=data["method"],
                payment_date=data.get("payment_date"),
                note=data.get("note", ""),
                reference=data.get("reference", ""),
                user=request.user,
            )
        except SupplierLedgerError as exc:
            return _error_response(exc)

        return Response(
            SupplierPaymentSerializer(payment).data,
            status=status.HTTP_200_OK if replayed else status.HTTP_201_CREATED,
        )


class SupplierPayItemsView(GenericAPIView):
    permission_classes = [IsAuthenticated]
    serializer_class = PayItemsSerializer

    @extend_schema(tags=["purchases"], request=PayItemsSerializer)
    def post(self, request, supplier_id):
        s = self.get_serializer(data=request.data)
        s.is_valid(raise_exception=True)
        data = s.validated_data

        try:
            result = allocate_payment(
                supplier_id=supplier_id,
                items=[{"supply_id": str(i["supply_id"]), "amount": i["amount"]} for i in data["items"]],
                method=data["method"],
                payment_date=data.get("payment_date"),
                note=data.get("note", ""),
                reference=data.get("reference", ""),
                user=request.user,
            )
        except SupplierLedgerError as exc:
            return _error_response(exc)

        return Response(
            {
                "payment": SupplierPaymentSerializer(result.payment).data,
                "items_updated": result.items_updated,
                "skipped_supply_ids": result.skipped_supply_ids,
                "replayed": result.replayed,
            },
            status=status.HTTP_200_OK if result.replayed else status.HTTP_201_CREATED,
        )


class SupplierApplyCreditView(GenericAPIView):
    permission_classes = [IsAuthenticated]
    serializer_class = ApplyCreditSerializer

    @extend_schema(tags=["purchases"], request=ApplyCreditSerializer)
    def post(self, request, supplier_id):
        s = self.get_serializer(data=request.data)
        s.is_valid(raise_exception=True)
        data = s.validated_data

        try:
            payment, remaining = apply_credit(
                supplier_id=supplier_id,
                amount=data["amount"],
                supply_ids=[str(x) for x in data.get("supply_ids") or []],
                note=data.get("note", ""),
                payment_date=data.get("payment_date"),
                reference=data.get("reference", ""),
                user=request.user,
            )
        except SupplierLedgerError as exc:
            return _error_response(exc)

        return Response(
            {"payment": SupplierPaymentSerializer(payment).data, "remaining_credit": str(remaining)},
            status=status.HTTP_201_CREATED,
        )


class SupplierCashRefundView(GenericAPIView):
    permission_classes = [IsAuthenticated]
    serializer_class = CashRefundSerializer

    @extend_schema(tags=["purchases"], request=CashRefundSerializer)
    def post(self, request, supplier_id):
        s = self.get_serializer(data=request.data)
        s.is_valid(raise_exception=True)
        data = s.validated_data

        try:
            refund, remaining = record_cash_refund(
                supplier_id=supplier_id,
                amount=data["amount"],
                note=data.get("note", ""),
                payment_date=data.get("payment_date"),
                reference=data.get("reference", ""),
                user=request.user,
            )
        except SupplierLedgerError as exc:
            return _error_response(exc)

        return Response(
            {"refund": SupplierPaymentSerializer(refund).data, "remaining_credit": str(remaining)},
            status=status.HTTP_201_CREATED,
        )


class SupplierReturnView(GenericAPIView):
    permission_classes = [IsAuthenticated]
    serializer_class = PurchaseReturnSerializer

    @extend_schema(tags=["purchases"], request=PurchaseReturnSerializer)
    def post(self, request, supplier_id):
        s = self.get_serializer(data=request.data)
        s.is_valid(raise_exception=True)
        data = s.validated_data

        items = []
        for line in data["items"]:
            items.append(
                {
                    "supply_id": str(line["supply_id"]) if line.get("supply_id") else None,
                    "product_id": str(line["product_id"]) if line.get("product_id") else None,
                    "name": line.get("name", ""),
                    "quantity": line["quantity"],
                    "total": line["total"],
                }
            )

        try:
            result = process_purchase_return(
                supplier_id=supplier_id,
                items=items,
                reason=data.get("reason", ""),
                return_date=data.get("return_date"),
                reference=data.get("reference", ""),
                user=request.user,
            )
        except SupplierLedgerError as exc:
            return _error_response(exc)

        return Response(
            {
                "debit_note": SupplierPaymentSerializer(result.debit_note).data,
                "new_balance": str(result.new_balance),
                "stock_movements": result.stock_movements,
                "unresolved_items": result.unresolved,
                "replayed": result.replayed,
            },
            status=status.HTTP_200_OK if result.replayed else status.HTTP_201_CREATED,
        )


class SupplierClearHistoryView(GenericAPIView):
    permission_classes = [IsAuthenticated]

    @extend_schema(tags=["purchases"], request=None)
    def post(self, request, supplier_id):
        try:
            details = clear_history(supplier_id=supplier_id)
        except SupplierLedgerError as exc:
            return _error_response(exc)
        return Response({"detail": "Supplier history cleared", **details}, status=status.HTTP_200_OK)


class SupplierReconcileView(GenericAPIView):
    permission_classes = [IsAuthenticated]

    @extend_schema(
        tags=["purchases"],
        request=None,
        parameters=[OpenApiParameter("fix", bool, description="Overwrite stored payable with ledger balance")],
    )
    def post(self, request, supplier_id):
        try:
            report = reconcile_supplier(supplier_id=supplier_id, fix=_flag(request, "fix"))
        except SupplierLedgerError as exc:
            return _error_response(exc)
        return Response(report, status=status.HTTP_200_OK)


# ============================================================
# SUPPLIES
# ============================================================

class SupplyListCreateView(ListAPIView):
    permission_classes = [IsAuthenticated]
    serializer_class = SupplySerializer
    filterset_class = SupplyFilter

    def get_queryset(self):
        return Supply.objects.select_related("supplier").order_by("-added_date", "-created_at")

    @extend_schema(tags=["purchases"], request=SupplyCreateSerializer, responses={201: SupplySerializer})
    def post(self, request):
        s = SupplyCreateSerializer(data=request.data)
        s.is_valid(raise_exception=True)

        try:
            supply, credit_applied = record_supply(**s.validated_data, user=request.user)
        except SupplierLedgerError as exc:
            return _error_response(exc)

        data = SupplySerializer(supply).data
        data["credit_applied"] = str(credit_applied)
        return Response(data, status=status.HTTP_201_CREATED)


class SupplyDetailView(GenericAPIView):
    permission_classes = [IsAuthenticated]
    serializer_class = SupplyDetailSerializer

    @extend_schema(tags=["purchases"], responses=SupplyDetailSerializer)
    def get(self, request, supply_id):
        supply = (
            Supply.objects.select_related("supplier")
            .prefetch_related(Prefetch("item_payments", queryset=ItemPayment.objects.select_related("payment")))
            .filter(id=supply_id)
            .first()
        )
        if supply is None:
            return Response({"detail": "Supply not found"}, status=status.HTTP_404_NOT_FOUND)
        return Response(SupplyDetailSerializer(supply).data, status=status.HTTP_200_OK)

    def _update(self, request, supply_id, *, partial: bool):
        s = SupplyUpdateSerializer(data=request.data, partial=partial)
        s.is_valid(raise_exception=True)

        try:
            supply = update_supply(supply_id=supply_id, user=request.user, **s.validated_data)
        except SupplierLedgerError as exc:
            return _error_response(exc)
        return Response(SupplySerializer(supply).data, status=status.HTTP_200_OK)

    @extend_schema(tags=["purchases"], request=SupplyUpdateSerializer, responses=SupplySerializer)
    def put(self, request, supply_id):
        return self._update(request, supply_id, partial=False)

    @extend_schema(tags=["purchases"], request=SupplyUpdateSerializer, responses=SupplySerializer)
    def patch(self, request, supply_id):
        return self._update(request, supply_id, partial=True)

    @extend_schema(tags=["purchases"])
    def delete(self, request, supply_id):
        try:
            details = void_supply(supply_id=supply_id, user=request.user)
        except SupplierLedgerError as exc:
            return _error_response(exc)
        return Response({"detail": "Supply voided", **details}, status=status.HTTP_200_OK)


# ============================================================
# PAYMENTS
# ============================================================

class SupplierPaymentListView(ListAPIView):
    permission_classes = [IsAuthenticated]
    serializer_class = SupplierPaymentSerializer
    filterset_class = SupplierPaymentFilter

    def get_queryset(self):
        return SupplierPayment.objects.select_related("supplier").order_by("-payment_date", "-created_at")

    @extend_schema(tags=["purchases"])
    def get(self, request, *args, **kwargs):
        return super().get(request, *args, **kwargs)


class SupplierPaymentDetailView(GenericAPIView):
    permission_classes = [IsAuthenticated]

    @extend_schema(tags=["purchases"])
    def delete(self, request, payment_id):
        try:
            summary = void_payment(payment_id=payment_id)
        except SupplierLedgerError as exc:
            return _error_response(exc)
        return Response({"detail": "Payment voided", **summary}, status=status.HTTP_200_OK)
