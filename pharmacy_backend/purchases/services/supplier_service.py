# purchases/services/supplier_service.py

"""
SUPPLIER MAINTENANCE SERVICE

Purpose:
- Register / update suppliers (name unique ignoring case).
- Record on-account payments (not tied to invoice lines).
- Void a payment: undo its line allocations and its effect on the payable.
- Delete a supplier (cascade) or clear its history back to a zero balance.

Rules:
- Every mutation is atomic with the supplier row locked.
- Debit Notes cannot be voided: the stock they returned is not restored here.
"""

from __future__ import annotations

import logging

from django.core.exceptions import ValidationError as DjangoValidationError
from django.db import transaction
from django.utils import timezone

from products.services import withdraw_batch_stock
from purchases.models import ItemPayment, PaymentMethod, Supplier, SupplierPayment, Supply, method_effect
from purchases.services.exceptions import LedgerValidationError, PaymentNotFoundError
from purchases.services.supplier_state import (
    ZERO,
    adjust_payable,
    lock_supplier,
    parse_amount,
    replayed_payment,
    supplier_supplies,
)


logger = logging.getLogger("purchases")

SUPPLIER_FIELDS = ("name", "contact_person", "phone", "email", "address")
ON_ACCOUNT_METHODS = {PaymentMethod.CASH, PaymentMethod.BANK_TRANSFER, PaymentMethod.CHECK}


def _validation_message(exc: DjangoValidationError) -> str:
    if hasattr(exc, "message_dict"):
        return "; ".join(f"{k}: {' '.join(v)}" for k, v in exc.message_dict.items())
    return " ".join(exc.messages)


def _name_taken(name: str, *, exclude_id=None) -> bool:
    qs = Supplier.objects.filter(name__iexact=(name or "").strip())
    if exclude_id is not None:
        qs = qs.exclude(id=exclude_id)
    return qs.exists()


# ============================================================
# REGISTER / UPDATE
# ============================================================

@transaction.atomic
def create_supplier(*, name: str, contact_person: str = "", phone: str = "", email: str = "", address: str = "") -> Supplier:
    if _name_taken(name):
        raise LedgerValidationError(f"Supplier '{(name or '').strip()}' already exists")

    try:
        supplier = Supplier.objects.create(
            name=name,
            contact_person=contact_person or "",
            phone=phone or "",
            email=email or "",
            address=address or "",
        )
    except DjangoValidationError as exc:
        raise LedgerValidationError(_validation_message(exc)) from exc

    logger.info("Supplier registered", extra={"supplier_id": str(supplier.id), "supplier_name": supplier.name})
    return supplier


def find_or_create_supplier(name: str) -> Supplier:
    """Case-insensitive lookup; registers a bare supplier when missing."""
    clean = (name or "").strip()
    if not clean:
        raise LedgerValidationError("supplier_name is required")

    supplier = Supplier.objects.filter(name__iexact=clean).first()
    if supplier is not None:
        return supplier
    return create_supplier(name=clean)


@transaction.atomic
def update_supplier(*, supplier_id, **changes) -> Supplier:
    supplier = lock_supplier(supplier_id)
    old_name = supplier.name

    for key in SUPPLIER_FIELDS:
        if key in changes and changes[key] is not None:
            setattr(supplier, key, changes[key])

    if supplier.name.strip().lower() != old_name.lower() and _name_taken(supplier.name, exclude_id=supplier.id):
        raise LedgerValidationError(f"Supplier '{supplier.name.strip()}' already exists")

    try:
        supplier.save()
    except DjangoValidationError as exc:
        raise LedgerValidationError(_validation_message(exc)) from exc

    if supplier.name != old_name:
        # keep the denormalized name on linked and legacy lines in step
        renamed = supplier.supplies.update(supplier_name=supplier.name)
        renamed += Supply.objects.filter(supplier__isnull=True, supplier_name__iexact=old_name).update(
            supplier=supplier, supplier_name=supplier.name
        )
        logger.info(
            "Supplier renamed",
            extra={"supplier_id": str(supplier.id), "old_name": old_name, "supplies_updated": renamed},
        )

    return supplier


# ============================================================
# ON-ACCOUNT PAYMENT
# ============================================================

@transaction.atomic
def record_payment(
    *,
    supplier_id,
    amount,
    method=PaymentMethod.CASH,
    payment_date=None,
    note: str = "",
    reference: str = "",
    user=None,
):
    """
    RECORD ON-ACCOUNT PAYMENT (atomic)

    Returns (payment, replayed).
    """
    if method not in ON_ACCOUNT_METHODS:
        raise LedgerValidationError("On-account payments must be Cash, Bank Transfer or Check")

    amt = parse_amount(amount)
    supplier = lock_supplier(supplier_id)

    existing = replayed_payment(supplier, reference, methods=[method])
    if existing is not None:
        return existing, True

    payment = SupplierPayment.objects.create(
        supplier=supplier,
        amount=amt,
        payment_date=payment_date or timezone.localdate(),
        method=method,
        note=note or "",
        reference=reference,
        created_by=user,
    )
    adjust_payable(supplier, payment.aggregate_delta)

    logger.info(
        "Supplier payment recorded",
        extra={
            "supplier_id": str(supplier.id),
            "payment_id": str(payment.id),
            "method": str(method),
            "amount": str(amt),
            "total_payable": str(supplier.total_payable),
        },
    )
    return payment, False


# ============================================================
# VOID PAYMENT
# ============================================================

@transaction.atomic
def void_payment(*, payment_id) -> dict:
    """
    VOID PAYMENT (atomic)

    - every ItemPayment under it is reversed on its supply
    - the payable moves back by the opposite of the payment's effect
    """
    try:
        supplier_id = SupplierPayment.objects.values_list("supplier_id", flat=True).get(id=payment_id)
    except (SupplierPayment.DoesNotExist, DjangoValidationError, ValueError) as exc:
        raise PaymentNotFoundError("Payment not found") from exc

    supplier = lock_supplier(supplier_id)
    payment = SupplierPayment.objects.select_for_update().get(id=payment_id)

    if payment.method == PaymentMethod.DEBIT_NOTE:
        raise LedgerValidationError("Debit notes cannot be voided; record a new purchase instead")

    reversed_lines = 0
    allocations = ItemPayment.objects.filter(payment=payment)
    for item in allocations:
        supply = Supply.objects.select_for_update().get(id=item.supply_id)
        supply.paid_amount = max(supply.paid_amount - item.amount, ZERO)
        supply.save(update_fields=["paid_amount"])
        reversed_lines += 1

    delta = -method_effect(payment.method).aggregate_delta(payment.amount)
    summary = {
        "payment_id": str(payment.id),
        "method": payment.method,
        "amount": str(payment.amount),
        "lines_reversed": reversed_lines,
    }

    payment.delete()
    new_balance = adjust_payable(supplier, delta)
    summary["total_payable"] = str(new_balance)

    logger.info("Supplier payment voided", extra={"supplier_id": str(supplier.id), **summary})
    return summary


# ============================================================
# DELETE / CLEAR HISTORY
# ============================================================

@transaction.atomic
def delete_supplier(*, supplier_id, withdraw_stock: bool = False, user=None) -> dict:
    """
    DELETE SUPPLIER (atomic cascade)

    withdraw_stock=True first takes whatever is left of each line's batch
    out of inventory.
    """
    supplier = lock_supplier(supplier_id)
    supplies = list(supplier_supplies(supplier).select_related("stock_batch"))

    batches_withdrawn = 0
    if withdraw_stock:
        for supply in supplies:
            if supply.stock_batch is None:
                continue
            if withdraw_batch_stock(batch=supply.stock_batch, user=user, reference=str(supply.id)):
                batches_withdrawn += 1

    details = {
        "supplies_removed": len(supplies),
        "payments_removed": supplier.payments.count(),
        "item_payments_removed": supplier.item_payments.count(),
        "batches_withdrawn": batches_withdrawn,
    }

    # legacy lines are not covered by the FK cascade
    supplier_supplies(supplier).filter(supplier__isnull=True).delete()
    name = supplier.name
    supplier.delete()

    logger.info(
        "Supplier deleted",
        extra={"supplier_id": str(supplier_id), "supplier_name": name, "withdraw_stock": withdraw_stock, **details},
    )
    return details


@transaction.atomic
def clear_history(*, supplier_id) -> dict:
    """
    CLEAR SUPPLIER HISTORY (atomic)

    Removes supplies, payments and allocations and resets the payable to 0.
    Stock is left untouched.
    """
    supplier = lock_supplier(supplier_id)

    item_payments_removed, _ = ItemPayment.objects.filter(supplier=supplier).delete()
    payments_removed, _ = supplier.payments.all().delete()
    supplies_removed, _ = supplier_supplies(supplier).delete()

    supplier.total_payable = ZERO
    supplier.save(update_fields=["total_payable", "updated_at"])

    details = {
        "supplies_removed": supplies_removed,
        "payments_removed": payments_removed,
        "item_payments_removed": item_payments_removed,
    }
    logger.info("Supplier history cleared", extra={"supplier_id": str(supplier.id), **details})
    return details
