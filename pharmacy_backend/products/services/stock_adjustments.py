# products/services/stock_adjustments.py

"""
STOCK ADJUSTMENTS SERVICE

Purpose:
- Apply a purchase correction to the delivery batch it brought in.
- Enforce auditability via immutable StockMovement rows.

Rules:
- quantity_delta moves quantity_received and quantity_remaining together
- units already sold or returned cannot be taken back out of the batch
- a non-zero delta creates StockMovement(reason=ADJUSTMENT), IN or OUT by sign
- unit_cost / expiry_date are overwritten only when given
"""

from __future__ import annotations

import logging

from django.core.exceptions import ValidationError
from django.db import transaction

from products.models import StockBatch, StockMovement
from products.services.stock_fifo import InsufficientStockError


logger = logging.getLogger("products.inventory")


def _to_int_delta(value) -> int:
    if isinstance(value, bool):
        # guardrail: bool is an int subclass in Python
        raise ValidationError("quantity_delta must be an integer")
    try:
        return int(value or 0)
    except (TypeError, ValueError) as exc:
        raise ValidationError("quantity_delta must be an integer") from exc


@transaction.atomic
def correct_batch(
    *,
    batch: StockBatch,
    quantity_delta=0,
    unit_cost=None,
    expiry_date=None,
    user=None,
    reference: str = "",
) -> StockBatch:
    """
    Resize / re-cost a delivery batch after its purchase line was edited.

    quantity_delta:
      +N -> N more units were delivered than first recorded
      -N -> N fewer units; fails if fewer than N are still on hand
    """
    if not batch or not getattr(batch, "id", None):
        raise ValidationError("batch is required")

    delta = _to_int_delta(quantity_delta)

    # lock row for concurrency safety
    locked = StockBatch.objects.select_for_update().get(id=batch.id)
    remaining = int(locked.quantity_remaining or 0)

    if delta < 0 and -delta > remaining:
        raise InsufficientStockError(
            f"Cannot remove {-delta} units from batch {locked.batch_number}: only {remaining} left"
        )

    locked.quantity_received = int(locked.quantity_received or 0) + delta
    locked.quantity_remaining = remaining + delta
    if unit_cost is not None:
        locked.unit_cost = unit_cost
    if expiry_date is not None:
        locked.expiry_date = expiry_date

    # model derives is_active and validates invariants
    locked.save(correction=True)

    if delta:
        StockMovement.objects.create(
            product=locked.product,
            batch=locked,
            movement_type=StockMovement.MovementType.IN if delta > 0 else StockMovement.MovementType.OUT,
            reason=StockMovement.Reason.ADJUSTMENT,
            quantity=abs(delta),
            unit_cost_snapshot=locked.unit_cost,
            reference=str(reference or ""),
            performed_by=user,
        )

    logger.info(
        "Batch corrected",
        extra={
            "batch_id": str(locked.id),
            "quantity_delta": delta,
            "quantity_remaining": locked.quantity_remaining,
            "unit_cost": str(locked.unit_cost),
        },
    )
    return locked
