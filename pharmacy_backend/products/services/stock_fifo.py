# products/services/stock_fifo.py

"""
FEFO STOCK DEDUCTION

Purpose:
- Take stock out for returns to a supplier using FEFO
  (earliest expiry first, then oldest batch).
- Expired batches are included: sending short-dated or expired goods back
  is the usual reason for a supplier return.
- A preferred batch (the delivery being returned) is drained first.
- Integer-only quantities (StockMovement.quantity is PositiveIntegerField).

Availability is checked before any batch is touched, so a shortfall raises
InsufficientStockError with nothing written.
"""

from __future__ import annotations

import logging

from django.db import transaction
from django.db.models import Sum

from products.models import StockBatch, StockMovement


logger = logging.getLogger("products.inventory")


# ============================================================
# DOMAIN ERRORS
# ============================================================

class InsufficientStockError(Exception):
    pass


def _to_int_qty(value) -> int:
    """
    Quantity normalizer.
    HARD RULE: quantities are integer units in this system.
    """
    if value is None or value == "":
        return 0

    if isinstance(value, bool):
        raise ValueError("quantity must be a whole integer unit")

    if isinstance(value, int):
        return value

    if isinstance(value, str):
        s = value.strip()
        if s.isdigit():
            return int(s)

    raise ValueError("quantity must be a whole integer unit")


def available_stock(*, product) -> int:
    return (
        StockBatch.objects.filter(product=product, quantity_remaining__gt=0)
        .aggregate(total=Sum("quantity_remaining"))
        .get("total")
        or 0
    )


def _ordered_batches(*, product, preferred_batch=None) -> list[StockBatch]:
    batches = list(
        StockBatch.objects.select_for_update()
        .filter(product=product, quantity_remaining__gt=0)
        .order_by("expiry_date", "created_at")
    )
    if preferred_batch is None:
        return batches

    preferred_id = getattr(preferred_batch, "id", preferred_batch)
    first = [b for b in batches if b.id == preferred_id]
    rest = [b for b in batches if b.id != preferred_id]
    return first + rest


# ============================================================
# FEFO DEDUCTION
# ============================================================

@transaction.atomic
def deduct_stock_fifo(
    *,
    product,
    quantity,
    reason=StockMovement.Reason.SUPPLIER_RETURN,
    user=None,
    reference: str = "",
    preferred_batch=None,
):
    if not product:
        raise ValueError("product is required")

    qty = _to_int_qty(quantity)
    if qty <= 0:
        return []

    batch_list = _ordered_batches(product=product, preferred_batch=preferred_batch)
    total_available = sum(int(b.quantity_remaining or 0) for b in batch_list)

    if total_available < qty:
        raise InsufficientStockError(
            f"Insufficient stock for {getattr(product, 'name', 'product')}. "
            f"Requested: {qty}, Available: {total_available}"
        )

    remaining_qty = qty
    movements = []

    for batch in batch_list:
        if remaining_qty <= 0:
            break

        available = int(batch.quantity_remaining or 0)
        consumed = available if available <= remaining_qty else remaining_qty

        batch.quantity_remaining = available - consumed
        batch.save(update_fields=["quantity_remaining", "is_active"])

        movements.append(
            StockMovement.objects.create(
                product=product,
                batch=batch,
                movement_type=StockMovement.MovementType.OUT,
                reason=reason,
                quantity=consumed,
                unit_cost_snapshot=batch.unit_cost,
                reference=str(reference or ""),
                performed_by=user,
            )
        )

        remaining_qty -= consumed

    logger.info(
        "Stock deducted",
        extra={
            "product_id": str(product.id),
            "quantity": qty,
            "reason": str(reason),
            "batches": len(movements),
        },
    )
    return movements
