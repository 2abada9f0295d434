# purchases/api/serializers.py

from decimal import Decimal

from rest_framework import serializers

from purchases.models import ItemPayment, PaymentMethod, Supplier, SupplierPayment, Supply


# ============================================================
# READ SERIALIZERS
# ============================================================

class SupplierSerializer(serializers.ModelSerializer):
    payment_status = serializers.CharField(read_only=True)
    due_amount = serializers.DecimalField(max_digits=14, decimal_places=2, read_only=True)
    credit_balance = serializers.DecimalField(max_digits=14, decimal_places=2, read_only=True)

    class Meta:
        model = Supplier
        fields = [
            "id",
            "name",
            "contact_person",
            "phone",
            "email",
            "address",
            "total_payable",
            "payment_status",
            "due_amount",
            "credit_balance",
            "created_at",
            "updated_at",
        ]
        read_only_fields = ("id", "total_payable", "created_at", "updated_at")


class SupplierWriteSerializer(serializers.Serializer):
    name = serializers.CharField(max_length=200)
    contact_person = serializers.CharField(max_length=120, required=False, allow_blank=True)
    phone = serializers.CharField(max_length=50, required=False, allow_blank=True)
    email = serializers.EmailField(required=False, allow_blank=True)
    address = serializers.CharField(required=False, allow_blank=True)


class SupplyItemPaymentSerializer(serializers.ModelSerializer):
    method = serializers.CharField(source="payment.method", read_only=True)

    class Meta:
        model = ItemPayment
        fields = ["id", "payment", "method", "amount", "payment_date", "notes", "created_at"]


class SupplySerializer(serializers.ModelSerializer):
    total_cost = serializers.DecimalField(max_digits=14, decimal_places=2, read_only=True)
    due_amount = serializers.DecimalField(max_digits=14, decimal_places=2, read_only=True)

    class Meta:
        model = Supply
        fields = [
            "id",
            "supplier",
            "supplier_name",
            "product",
            "stock_batch",
            "name",
            "batch_number",
            "quantity",
            "free_quantity",
            "purchase_cost",
            "selling_price",
            "total_cost",
            "paid_amount",
            "due_amount",
            "payment_status",
            "purchase_invoice_number",
            "invoice_date",
            "invoice_due_date",
            "expiry_date",
            "added_date",
            "notes",
            "created_at",
        ]
        read_only_fields = fields


class SupplyDetailSerializer(SupplySerializer):
    item_payments = SupplyItemPaymentSerializer(many=True, read_only=True)

    class Meta(SupplySerializer.Meta):
        fields = SupplySerializer.Meta.fields + ["item_payments"]
        read_only_fields = fields


class SupplierPaymentSerializer(serializers.ModelSerializer):
    supplier_name = serializers.CharField(source="supplier.name", read_only=True)

    class Meta:
        model = SupplierPayment
        fields = [
            "id",
            "supplier",
            "supplier_name",
            "amount",
            "payment_date",
            "method",
            "note",
            "reference",
            "created_at",
        ]
        read_only_fields = fields


# ============================================================
# WRITE (COMMAND) SERIALIZERS
# ============================================================

def _check_invoice_dates(attrs):
    invoice_date = attrs.get("invoice_date")
    due = attrs.get("invoice_due_date")
    if invoice_date and due and due < invoice_date:
        raise serializers.ValidationError(
            {"invoice_due_date": "invoice_due_date cannot be before invoice_date"}
        )
    return attrs


class SupplyCreateSerializer(serializers.Serializer):
    supplier_name = serializers.CharField(max_length=200)
    name = serializers.CharField(max_length=255)
    category = serializers.CharField(max_length=100, required=False, allow_blank=True)
    batch_number = serializers.CharField(max_length=128)

    quantity = serializers.IntegerField(min_value=1)
    free_quantity = serializers.IntegerField(min_value=0, required=False, default=0)

    purchase_cost = serializers.DecimalField(max_digits=12, decimal_places=2, min_value=0)
    selling_price = serializers.DecimalField(
        max_digits=10, decimal_places=2, min_value=0, required=False, allow_null=True
    )

    purchase_invoice_number = serializers.CharField(max_length=64, required=False, allow_blank=True)
    invoice_date = serializers.DateField(required=False, allow_null=True)
    invoice_due_date = serializers.DateField(required=False, allow_null=True)
    expiry_date = serializers.DateField()
    notes = serializers.CharField(required=False, allow_blank=True)

    auto_apply_credit = serializers.BooleanField(required=False, allow_null=True, default=None)

    def validate(self, attrs):
        return _check_invoice_dates(attrs)


class SupplyUpdateSerializer(serializers.Serializer):
    quantity = serializers.IntegerField(min_value=1)
    free_quantity = serializers.IntegerField(min_value=0, required=False)
    purchase_cost = serializers.DecimalField(max_digits=12, decimal_places=2, min_value=0)

    purchase_invoice_number = serializers.CharField(max_length=64, required=False, allow_blank=True)
    invoice_date = serializers.DateField(required=False, allow_null=True)
    invoice_due_date = serializers.DateField(required=False, allow_null=True)
    expiry_date = serializers.DateField()
    notes = serializers.CharField(required=False, allow_blank=True)

    def validate(self, attrs):
        return _check_invoice_dates(attrs)


class PaymentMetaSerializer(serializers.Serializer):
    payment_date = serializers.DateField(required=False, allow_null=True)
    note = serializers.CharField(max_length=255, required=False, allow_blank=True)
    reference = serializers.CharField(max_length=64, required=False, allow_blank=True)


class PaymentCreateSerializer(PaymentMetaSerializer):
    amount = serializers.DecimalField(max_digits=14, decimal_places=2, min_value=Decimal("0.01"))
    method = serializers.ChoiceField(
        choices=[PaymentMethod.CASH, PaymentMethod.BANK_TRANSFER, PaymentMethod.CHECK],
        default=PaymentMethod.CASH,
    )


class PayItemLineSerializer(serializers.Serializer):
    supply_id = serializers.UUIDField()
    amount = serializers.DecimalField(max_digits=14, decimal_places=2, min_value=Decimal("0.01"))


class PayItemsSerializer(PaymentMetaSerializer):
    items = PayItemLineSerializer(many=True, allow_empty=False)
    method = serializers.ChoiceField(
        choices=[
            PaymentMethod.CASH,
            PaymentMethod.BANK_TRANSFER,
            PaymentMethod.CHECK,
            PaymentMethod.CREDIT_ADJUSTMENT,
        ],
        default=PaymentMethod.CASH,
    )


class ApplyCreditSerializer(PaymentMetaSerializer):
    amount = serializers.DecimalField(max_digits=14, decimal_places=2, min_value=Decimal("0.01"))
    supply_ids = serializers.ListField(child=serializers.UUIDField(), required=False, allow_empty=True)


class CashRefundSerializer(PaymentMetaSerializer):
    amount = serializers.DecimalField(max_digits=14, decimal_places=2, min_value=Decimal("0.01"))


class ReturnLineSerializer(serializers.Serializer):
    supply_id = serializers.UUIDField(required=False, allow_null=True)
    product_id = serializers.UUIDField(required=False, allow_null=True)
    name = serializers.CharField(max_length=255, required=False, allow_blank=True)
    quantity = serializers.IntegerField(min_value=1)
    total = serializers.DecimalField(max_digits=14, decimal_places=2, min_value=0)

    def validate(self, attrs):
        if not (attrs.get("supply_id") or attrs.get("product_id") or (attrs.get("name") or "").strip()):
            raise serializers.ValidationError("Each item needs supply_id, product_id or name")
        return attrs


class PurchaseReturnSerializer(serializers.Serializer):
    items = ReturnLineSerializer(many=True, allow_empty=False)
    reason = serializers.CharField(max_length=200, required=False, allow_blank=True)
    return_date = serializers.DateField(required=False, allow_null=True)
    reference = serializers.CharField(max_length=64, required=False, allow_blank=True)
