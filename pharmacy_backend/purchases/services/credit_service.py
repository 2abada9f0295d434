# purchases/services/credit_service.py

"""
SUPPLIER CREDIT / REFUND SERVICE

Credit position (pure):
- gross_purchased  = sum of line costs
- total_returns    = sum of Debit Notes
- net_purchases    = gross_purchased - total_returns
- settlements      = signed sum of cash-equivalent payments:
                     +Cash/Bank Transfer/Check, -Credit Application, -Cash Refund
- balance          = net_purchases - settlements
- supplier_credit  = max(0, -balance)

`settlements` answers "what has reduced the balance"; it is NOT the
"cash paid" figure shown on statements (Cash/Bank Transfer/Check only).

Operations (atomic, supplier row locked, validated before any write):
- apply_credit(): consume credit into a Credit Application payment and
  optionally settle chosen invoice lines oldest-first.
- record_cash_refund(): the supplier pays credit back in cash.
Both fail with InsufficientCreditError when the amount exceeds credit.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from typing import Iterable

from django.core.exceptions import ValidationError as DjangoValidationError
from django.db import transaction
from django.utils import timezone

from purchases.models import PaymentMethod, SupplierPayment, method_effect
from purchases.services.allocation import record_item_payment
from purchases.services.exceptions import InsufficientCreditError, LedgerValidationError
from purchases.services.supplier_state import (
    adjust_payable,
    lock_supplier,
    parse_amount,
    replayed_payment,
    supplier_supplies,
)


logger = logging.getLogger("purchases.credit")

TWOPLACES = Decimal("0.01")
ZERO = Decimal("0.00")


def _money(v) -> Decimal:
    return Decimal(str(v or "0.00")).quantize(TWOPLACES, rounding=ROUND_HALF_UP)


@dataclass(frozen=True)
class CreditPosition:
    gross_purchased: Decimal
    total_returns: Decimal
    net_purchases: Decimal
    settlements: Decimal
    balance: Decimal
    supplier_credit: Decimal


def compute_credit_position(*, supplies: Iterable, payments: Iterable) -> CreditPosition:
    gross = sum(
        (_money(Decimal(int(s.quantity or 0)) * Decimal(str(s.purchase_cost or "0"))) for s in supplies),
        ZERO,
    )

    returns = ZERO
    settlements = ZERO
    for p in payments:
        effect = method_effect(p.method)
        amount = _money(p.amount)
        if effect.is_return:
            returns += amount
        settlements += amount * effect.settlement_sign

    net = gross - returns
    balance = net - settlements
    return CreditPosition(
        gross_purchased=gross,
        total_returns=returns,
        net_purchases=net,
        settlements=settlements,
        balance=balance,
        supplier_credit=-balance if balance < ZERO else ZERO,
    )


def credit_position_for(supplier) -> CreditPosition:
    return compute_credit_position(
        supplies=list(supplier_supplies(supplier)),
        payments=list(supplier.payments.all()),
    )


def _require_credit(*, supplier, amount: Decimal, action: str) -> CreditPosition:
    position = credit_position_for(supplier)
    if amount > position.supplier_credit:
        logger.warning(
            "Insufficient supplier credit",
            extra={
                "supplier_id": str(supplier.id),
                "action": action,
                "amount": str(amount),
                "available": str(position.supplier_credit),
            },
        )
        raise InsufficientCreditError(
            f"Insufficient credit balance. Available: {position.supplier_credit}"
        )
    return position


def _locked_supplies_oldest_first(*, supplier, supply_ids):
    ids = [str(s) for s in supply_ids if s]
    if not ids:
        return []
    try:
        return list(
            supplier_supplies(supplier)
            .select_for_update()
            .filter(id__in=ids)
            .order_by("added_date", "created_at")
        )
    except (DjangoValidationError, ValueError) as exc:
        raise LedgerValidationError("supply_ids must be valid ids") from exc


@transaction.atomic
def apply_credit(
    *,
    supplier_id,
    amount,
    supply_ids=None,
    note: str = "",
    payment_date=None,
    reference: str = "",
    user=None,
):
    """
    APPLY SUPPLIER CREDIT (atomic)

    Returns (payment, remaining_credit).
    """
    amt = parse_amount(amount)
    supplier = lock_supplier(supplier_id)

    existing = replayed_payment(supplier, reference, methods=[PaymentMethod.CREDIT_APPLICATION])
    if existing is not None:
        return existing, credit_position_for(supplier).supplier_credit

    position = _require_credit(supplier=supplier, amount=amt, action="apply_credit")
    targets = _locked_supplies_oldest_first(supplier=supplier, supply_ids=supply_ids or [])

    payment = SupplierPayment.objects.create(
        supplier=supplier,
        amount=amt,
        payment_date=payment_date or timezone.localdate(),
        method=PaymentMethod.CREDIT_APPLICATION,
        note=note or f"Credit applied to {len(targets)} invoice(s)",
        reference=reference,
        created_by=user,
    )

    remaining = amt
    settled = 0
    for supply in targets:
        if remaining <= ZERO:
            break
        portion = min(supply.due_amount, remaining)
        if portion <= ZERO:
            continue
        record_item_payment(
            supplier=supplier,
            supply=supply,
            payment=payment,
            amount=portion,
            notes="Credit Application",
        )
        remaining -= portion
        settled += 1

    adjust_payable(supplier, payment.aggregate_delta)
    remaining_credit = position.supplier_credit - amt

    logger.info(
        "Supplier credit applied",
        extra={
            "supplier_id": str(supplier.id),
            "payment_id": str(payment.id),
            "amount": str(amt),
            "lines_settled": settled,
            "remaining_credit": str(remaining_credit),
        },
    )
    return payment, remaining_credit


@transaction.atomic
def record_cash_refund(
    *,
    supplier_id,
    amount,
    note: str = "",
    payment_date=None,
    reference: str = "",
    user=None,
):
    """
    RECORD CASH REFUND FROM SUPPLIER (atomic)

    Returns (refund_payment, remaining_credit). Invoice lines are untouched.
    """
    amt = parse_amount(amount)
    supplier = lock_supplier(supplier_id)

    existing = replayed_payment(supplier, reference, methods=[PaymentMethod.CASH_REFUND])
    if existing is not None:
        return existing, credit_position_for(supplier).supplier_credit

    position = _require_credit(supplier=supplier, amount=amt, action="record_cash_refund")

    refund = SupplierPayment.objects.create(
        supplier=supplier,
        amount=amt,
        payment_date=payment_date or timezone.localdate(),
        method=PaymentMethod.CASH_REFUND,
        note=note or "Cash refund received from supplier",
        reference=reference,
        created_by=user,
    )

    adjust_payable(supplier, refund.aggregate_delta)
    remaining_credit = position.supplier_credit - amt

    logger.info(
        "Supplier cash refund recorded",
        extra={
            "supplier_id": str(supplier.id),
            "payment_id": str(refund.id),
            "amount": str(amt),
            "remaining_credit": str(remaining_credit),
        },
    )
    return refund, remaining_credit
