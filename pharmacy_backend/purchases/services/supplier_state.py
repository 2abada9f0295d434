# purchases/services/supplier_state.py

"""
SUPPLIER STATE HELPERS (shared by every mutating service)

- lock_supplier(): loads + row-locks the supplier for the rest of the
  surrounding transaction, so mutations on one supplier never interleave.
- adjust_payable(): the only place Supplier.total_payable is changed
  incrementally.
- replayed_payment(): idempotency lookup by (supplier, reference); a
  reference already spent on a different kind of payment is rejected.
- supplier_supplies(): supplies owned by a supplier, including legacy rows
  linked only by supplier_name.

Callers must already be inside transaction.atomic.
"""

from __future__ import annotations

import logging
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

from django.core.exceptions import ValidationError as DjangoValidationError
from django.db.models import Q

from purchases.models import Supplier, SupplierPayment, Supply
from purchases.services.exceptions import LedgerValidationError, SupplierNotFoundError


logger = logging.getLogger("purchases")

TWOPLACES = Decimal("0.01")
ZERO = Decimal("0.00")


def _money(v) -> Decimal:
    return Decimal(str(v or "0.00")).quantize(TWOPLACES, rounding=ROUND_HALF_UP)


def parse_amount(value, *, field_name: str = "amount", allow_zero: bool = False) -> Decimal:
    """Money input normalizer: rejects missing, non-numeric and negative values."""
    if value is None or value == "":
        raise LedgerValidationError(f"{field_name} is required")
    if isinstance(value, bool):
        raise LedgerValidationError(f"{field_name} must be a number")
    try:
        amt = _money(value)
    except (InvalidOperation, ValueError, TypeError) as exc:
        raise LedgerValidationError(f"{field_name} must be a number") from exc

    if amt < ZERO or (amt == ZERO and not allow_zero):
        raise LedgerValidationError(
            f"{field_name} must be >= 0" if allow_zero else f"{field_name} must be > 0"
        )
    return amt


def lock_supplier(supplier_id) -> Supplier:
    try:
        return Supplier.objects.select_for_update().get(id=supplier_id)
    except (Supplier.DoesNotExist, DjangoValidationError, ValueError) as exc:
        # a malformed UUID is reported as a missing supplier
        raise SupplierNotFoundError("Supplier not found") from exc


def adjust_payable(supplier: Supplier, delta) -> Decimal:
    delta = _money(delta)
    if delta == ZERO:
        return _money(supplier.total_payable)

    supplier.total_payable = _money(supplier.total_payable) + delta
    supplier.save(update_fields=["total_payable", "updated_at"])

    logger.debug(
        "Supplier payable adjusted",
        extra={
            "supplier_id": str(supplier.id),
            "delta": str(delta),
            "total_payable": str(supplier.total_payable),
        },
    )
    return supplier.total_payable


def replayed_payment(supplier: Supplier, reference: str, *, methods) -> SupplierPayment | None:
    """
    Existing payment for (supplier, reference), or None.

    methods: the payment method(s) the calling operation records. A match
    recorded with any other method raises LedgerValidationError.
    """
    ref = (reference or "").strip()
    if not ref:
        return None

    payment = SupplierPayment.objects.filter(supplier=supplier, reference=ref).first()
    if payment is None:
        return None

    if payment.method not in {str(m) for m in methods}:
        raise LedgerValidationError(
            f"reference already used by a {payment.get_method_display()} payment"
        )

    logger.info(
        "Idempotent replay: returning existing supplier payment",
        extra={"supplier_id": str(supplier.id), "payment_id": str(payment.id), "reference": ref},
    )
    return payment


def supplier_supplies(supplier: Supplier):
    return Supply.objects.filter(
        Q(supplier=supplier) | Q(supplier__isnull=True, supplier_name__iexact=supplier.name)
    )
