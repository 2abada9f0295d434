# purchases/services/allocation.py

"""
PAYMENT ALLOCATION SERVICE

Purpose:
- Record one payment and split it across specific invoice lines (supplies).
- Keep every touched Supply's paid_amount / payment_status and the
  Supplier aggregate in step, in ONE atomic transaction.

Rules:
- Only allocatable methods are accepted: Cash, Bank Transfer, Check,
  Credit Adjustment.
- Credit Adjustment settles lines from credit the supplier already holds:
  the payment row stores amount 0 and the aggregate is left alone, while
  each ItemPayment carries the real allocated amount.
- Lines are looked up among the supplier's supplies, legacy rows linked
  only by supplier_name included. A line that does not exist (or belongs
  to another supplier) is skipped and logged; the rest of the batch still
  applies. The result reports how many lines were actually updated.
- The payment amount is the sum of ALL requested lines, skipped ones
  included: the money was still paid and stays on account.
- Amounts above a line's outstanding due are accepted (logged at WARNING).
- ItemPayment rows are created only through record_item_payment().
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from decimal import Decimal

from django.core.exceptions import ValidationError as DjangoValidationError
from django.db import transaction
from django.utils import timezone

from purchases.models import ItemPayment, PaymentMethod, Supply, SupplierPayment, method_effect
from purchases.services.exceptions import LedgerValidationError
from purchases.services.supplier_state import (
    ZERO,
    adjust_payable,
    lock_supplier,
    parse_amount,
    replayed_payment,
    supplier_supplies,
)


logger = logging.getLogger("purchases.allocation")


@dataclass
class AllocationResult:
    payment: SupplierPayment
    items_updated: int
    skipped_supply_ids: list[str] = field(default_factory=list)
    replayed: bool = False


def record_item_payment(*, supplier, supply: Supply, payment: SupplierPayment, amount: Decimal, notes: str = ""):
    """
    Create one allocation row and move the supply's paid state.

    The supply must already be locked by the caller.
    """
    item = ItemPayment.objects.create(
        supplier=supplier,
        supply=supply,
        payment=payment,
        amount=amount,
        payment_date=payment.payment_date,
        notes=notes,
    )

    supply.paid_amount = supply.paid_amount + amount
    supply.save(update_fields=["paid_amount"])
    return item


def _normalize_items(items) -> list[tuple[str, Decimal]]:
    if not items:
        raise LedgerValidationError("items must contain at least one line")

    normalized = []
    for line in items:
        if not isinstance(line, dict):
            raise LedgerValidationError("Each item must be an object with supply_id and amount")

        supply_id = line.get("supply_id")
        if not supply_id:
            raise LedgerValidationError("supply_id is required for every item")

        normalized.append((str(supply_id), parse_amount(line.get("amount"))))
    return normalized


def _load_supplies(*, supplier, supply_ids: list[str]) -> dict[str, Supply]:
    found = {}
    for supply_id in set(supply_ids):
        try:
            supply = supplier_supplies(supplier).select_for_update().filter(id=supply_id).first()
        except (DjangoValidationError, ValueError):
            supply = None
        if supply is not None:
            found[supply_id] = supply
    return found


@transaction.atomic
def allocate_payment(
    *,
    supplier_id,
    items,
    method=PaymentMethod.CASH,
    payment_date=None,
    note: str = "",
    reference: str = "",
    user=None,
) -> AllocationResult:
    """
    ALLOCATE ONE PAYMENT ACROSS INVOICE LINES (atomic)
    """
    try:
        effect = method_effect(method)
    except DjangoValidationError as exc:
        raise LedgerValidationError(f"Unknown payment method: {method}") from exc

    if not effect.allocatable:
        raise LedgerValidationError(f"{method} cannot be allocated to invoice lines")

    lines = _normalize_items(items)
    supplier = lock_supplier(supplier_id)

    existing = replayed_payment(supplier, reference, methods=[PaymentMethod(method)])
    if existing is not None:
        return AllocationResult(
            payment=existing,
            items_updated=existing.item_payments.count(),
            replayed=True,
        )

    is_credit_adjustment = PaymentMethod(method) == PaymentMethod.CREDIT_ADJUSTMENT
    total_amount = sum((amt for _, amt in lines), ZERO)

    logger.info(
        "Allocating supplier payment",
        extra={
            "supplier_id": str(supplier.id),
            "method": str(method),
            "amount": str(total_amount),
            "lines": len(lines),
        },
    )

    default_note = "Credit applied to invoices" if is_credit_adjustment else ""
    payment = SupplierPayment.objects.create(
        supplier=supplier,
        amount=ZERO if is_credit_adjustment else total_amount,
        payment_date=payment_date or timezone.localdate(),
        method=method,
        note=note or default_note,
        reference=reference,
        created_by=user,
    )

    supplies = _load_supplies(supplier=supplier, supply_ids=[sid for sid, _ in lines])
    item_notes = note or ("Credit Adjustment" if is_credit_adjustment else "")

    updated = 0
    skipped = []
    for supply_id, amount in lines:
        supply = supplies.get(supply_id)
        if supply is None:
            logger.warning(
                "Allocation line skipped: supply not found for supplier",
                extra={"supplier_id": str(supplier.id), "supply_id": supply_id, "amount": str(amount)},
            )
            skipped.append(supply_id)
            continue

        if amount > supply.due_amount:
            logger.warning(
                "Allocation exceeds outstanding due on supply",
                extra={
                    "supply_id": supply_id,
                    "amount": str(amount),
                    "due_amount": str(supply.due_amount),
                },
            )

        record_item_payment(
            supplier=supplier,
            supply=supply,
            payment=payment,
            amount=amount,
            notes=item_notes,
        )
        updated += 1

    adjust_payable(supplier, payment.aggregate_delta)

    logger.info(
        "Supplier payment allocated",
        extra={
            "supplier_id": str(supplier.id),
            "payment_id": str(payment.id),
            "items_updated": updated,
            "items_skipped": len(skipped),
            "total_payable": str(supplier.total_payable),
        },
    )

    return AllocationResult(payment=payment, items_updated=updated, skipped_supply_ids=skipped)
