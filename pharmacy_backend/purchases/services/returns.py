# purchases/services/returns.py

"""
PURCHASE RETURN (DEBIT NOTE) SERVICE

Purpose:
- Send goods back to a supplier: one Debit Note payment for the whole
  return, stock taken out FEFO (the returned line's own batch first), and
  the supplier payable lowered by the debit total.

Rules:
- Each item names its product through supply_id, product_id or name
  (tried in that order, name matched case-insensitively).
- Items whose product cannot be resolved are logged and skipped for stock
  purposes; their value still counts toward the debit note.
- Stock is checked for every product BEFORE anything is written: a
  shortfall raises InsufficientStockError and leaves all records as-is.
- The original Supply rows are NOT modified; the invoice stays historically
  accurate and the return is its own ledger entry.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import dataclass, field
from decimal import Decimal

from django.core.exceptions import ValidationError as DjangoValidationError
from django.db import transaction
from django.utils import timezone

from products.models import Product, StockMovement
from products.services import InsufficientStockError as StockShortfall
from products.services import available_stock, deduct_stock_fifo
from purchases.models import PaymentMethod, SupplierPayment
from purchases.services.exceptions import InsufficientStockError, LedgerValidationError
from purchases.services.supplier_state import (
    ZERO,
    adjust_payable,
    lock_supplier,
    parse_amount,
    replayed_payment,
    supplier_supplies,
)


logger = logging.getLogger("purchases.returns")


@dataclass
class ReturnLine:
    quantity: int
    total: Decimal
    product: Product | None = None
    supply: object = None
    label: str = ""


@dataclass
class ReturnResult:
    debit_note: SupplierPayment
    new_balance: Decimal
    stock_movements: int = 0
    unresolved: list[str] = field(default_factory=list)
    replayed: bool = False


def _to_quantity(value) -> int:
    if isinstance(value, bool):
        raise LedgerValidationError("quantity must be a whole number")
    if isinstance(value, str) and value.strip().isdigit():
        value = int(value.strip())
    if not isinstance(value, int) or value <= 0:
        raise LedgerValidationError("quantity must be a whole number > 0")
    return value


def _find_product(*, supplier, line: dict):
    supply = None
    supply_id = line.get("supply_id")
    if supply_id:
        try:
            supply = supplier_supplies(supplier).select_related("product", "stock_batch").filter(id=supply_id).first()
        except (DjangoValidationError, ValueError):
            supply = None
        if supply is not None and supply.product is not None:
            return supply.product, supply

    product_id = line.get("product_id")
    if product_id:
        try:
            product = Product.objects.filter(id=product_id).first()
        except (DjangoValidationError, ValueError):
            product = None
        if product is not None:
            return product, supply

    name = (line.get("name") or (supply.name if supply is not None else "") or "").strip()
    if name:
        product = Product.objects.filter(name__iexact=name).first()
        if product is not None:
            return product, supply

    return None, supply


def _normalize_lines(*, supplier, items) -> list[ReturnLine]:
    if not items:
        raise LedgerValidationError("items must contain at least one line")

    lines = []
    for raw in items:
        if not isinstance(raw, dict):
            raise LedgerValidationError("Each return item must be an object")

        qty = _to_quantity(raw.get("quantity"))
        total = parse_amount(raw.get("total"), field_name="total", allow_zero=True)
        product, supply = _find_product(supplier=supplier, line=raw)
        label = str(raw.get("name") or raw.get("product_id") or raw.get("supply_id") or "")
        lines.append(ReturnLine(quantity=qty, total=total, product=product, supply=supply, label=label))
    return lines


def _check_stock(lines: list[ReturnLine]) -> None:
    requested = defaultdict(int)
    products = {}
    for line in lines:
        if line.product is None:
            continue
        requested[line.product.id] += line.quantity
        products[line.product.id] = line.product

    for product_id, qty in requested.items():
        product = products[product_id]
        on_hand = available_stock(product=product)
        if on_hand < qty:
            raise InsufficientStockError(
                f"Insufficient stock for {product.name}. Stock: {on_hand}, Return: {qty}"
            )


@transaction.atomic
def process_purchase_return(
    *,
    supplier_id,
    items,
    reason: str = "",
    return_date=None,
    reference: str = "",
    user=None,
) -> ReturnResult:
    """
    PROCESS PURCHASE RETURN (atomic)
    """
    supplier = lock_supplier(supplier_id)

    existing = replayed_payment(supplier, reference, methods=[PaymentMethod.DEBIT_NOTE])
    if existing is not None:
        return ReturnResult(debit_note=existing, new_balance=supplier.total_payable, replayed=True)

    lines = _normalize_lines(supplier=supplier, items=items)
    total_debit = sum((line.total for line in lines), ZERO)
    if total_debit <= ZERO:
        raise LedgerValidationError("Return total must be > 0")

    _check_stock(lines)

    reason = (reason or "").strip()
    count = len(lines)
    note = f"Return ({count} items): {reason}" if reason else f"Return of {count} items"

    debit_note = SupplierPayment.objects.create(
        supplier=supplier,
        amount=total_debit,
        payment_date=return_date or timezone.localdate(),
        method=PaymentMethod.DEBIT_NOTE,
        note=note[:255],
        reference=reference,
        created_by=user,
    )

    movements = 0
    unresolved = []
    for line in lines:
        if line.product is None:
            logger.warning(
                "Return item has no matching product; stock untouched",
                extra={"supplier_id": str(supplier.id), "item": line.label, "quantity": line.quantity},
            )
            unresolved.append(line.label)
            continue

        preferred = line.supply.stock_batch if line.supply is not None else None
        try:
            movements += len(
                deduct_stock_fifo(
                    product=line.product,
                    quantity=line.quantity,
                    reason=StockMovement.Reason.SUPPLIER_RETURN,
                    user=user,
                    reference=str(debit_note.id),
                    preferred_batch=preferred,
                )
            )
        except StockShortfall as exc:
            raise InsufficientStockError(str(exc)) from exc

    new_balance = adjust_payable(supplier, debit_note.aggregate_delta)

    logger.info(
        "Purchase return processed",
        extra={
            "supplier_id": str(supplier.id),
            "debit_note_id": str(debit_note.id),
            "amount": str(total_debit),
            "items": count,
            "unresolved": len(unresolved),
            "total_payable": str(new_balance),
        },
    )

    return ReturnResult(
        debit_note=debit_note,
        new_balance=new_balance,
        stock_movements=movements,
        unresolved=unresolved,
    )
