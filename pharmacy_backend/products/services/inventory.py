# products/services/inventory.py

"""
======================================================
PATH: products/services/inventory.py
======================================================
INVENTORY CORE SERVICES

Purpose:
- Withdraw whatever is left of a delivery batch when the purchase that
  brought it in is voided (or its supplier is deleted with stock).

Rules:
- Quantities are integer units.
- StockBatch derives is_active from quantity_remaining (model-enforced).
- Withdrawal is idempotent: an empty batch produces no movement.
"""

from __future__ import annotations

import logging

from django.core.exceptions import ValidationError
from django.db import transaction

from products.models.stock_batch import StockBatch
from products.models.stock_movement import StockMovement


logger = logging.getLogger("products.inventory")


@transaction.atomic
def withdraw_batch_stock(
    *,
    batch: StockBatch,
    reason=StockMovement.Reason.VOID,
    user=None,
    reference: str = "",
) -> int:
    """
    Zero out a batch and record one OUT movement for the withdrawn units.

    Returns the number of units withdrawn.
    """
    if not batch or not getattr(batch, "id", None):
        raise ValidationError("batch is required")

    batch = StockBatch.objects.select_for_update().get(id=batch.id)
    remaining = int(batch.quantity_remaining or 0)
    if remaining <= 0:
        return 0

    batch.quantity_remaining = 0
    batch.save(update_fields=["quantity_remaining", "is_active"])

    StockMovement.objects.create(
        product=batch.product,
        batch=batch,
        movement_type=StockMovement.MovementType.OUT,
        reason=reason,
        quantity=remaining,
        unit_cost_snapshot=batch.unit_cost,
        reference=str(reference or ""),
        performed_by=user,
    )

    logger.info(
        "Batch stock withdrawn",
        extra={"batch_id": str(batch.id), "quantity": remaining, "reason": str(reason)},
    )
    return remaining
