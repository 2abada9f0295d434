# purchases/api/filters.py

import django_filters

from purchases.models import PaymentMethod, PaymentStatus, SupplierPayment, Supply


class SupplyFilter(django_filters.FilterSet):
    supplier = django_filters.UUIDFilter(field_name="supplier_id")
    supplier_name = django_filters.CharFilter(field_name="supplier_name", lookup_expr="iexact")
    payment_status = django_filters.ChoiceFilter(choices=PaymentStatus.choices)
    added_from = django_filters.DateFilter(field_name="added_date", lookup_expr="gte")
    added_to = django_filters.DateFilter(field_name="added_date", lookup_expr="lte")
    q = django_filters.CharFilter(method="filter_q")

    class Meta:
        model = Supply
        fields = ["supplier", "supplier_name", "payment_status", "added_from", "added_to"]

    def filter_q(self, queryset, name, value):
        value = (value or "").strip()
        if not value:
            return queryset
        return queryset.filter(name__icontains=value) | queryset.filter(
            purchase_invoice_number__icontains=value
        )


class SupplierPaymentFilter(django_filters.FilterSet):
    supplier = django_filters.UUIDFilter(field_name="supplier_id")
    method = django_filters.ChoiceFilter(choices=PaymentMethod.choices)
    date_from = django_filters.DateFilter(field_name="payment_date", lookup_expr="gte")
    date_to = django_filters.DateFilter(field_name="payment_date", lookup_expr="lte")

    class Meta:
        model = SupplierPayment
        fields = ["supplier", "method", "date_from", "date_to"]
