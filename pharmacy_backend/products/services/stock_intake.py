# products/services/stock_intake.py

"""
STOCK INTAKE / PURCHASE RECEIPT (APPLICATION SERVICE)

Purpose:
- Intake stock ONLY via a purchase receipt (delivery-based).
- Capture immutable unit cost for the delivery.
- Produce a matching StockMovement(RECEIPT) ledger record.
- Keep everything atomic and audit-safe.

Also owns product resolution for purchases: a supply names its product,
and the product is found by case-insensitive name or created on the spot.
"""

from __future__ import annotations

import logging
import uuid
from decimal import Decimal, ROUND_HALF_UP

from django.core.exceptions import ValidationError
from django.db import transaction

from products.models import Product, StockBatch, StockMovement


logger = logging.getLogger("products.inventory")

TWOPLACES = Decimal("0.01")


def _money(v) -> Decimal:
    if v is None or v == "":
        return Decimal("0.00")
    return Decimal(str(v)).quantize(TWOPLACES, rounding=ROUND_HALF_UP)


def find_or_create_product(*, name: str, category: str = "", selling_price=None) -> Product:
    """
    Case-insensitive lookup by name; creates an active product when missing.
    """
    clean_name = (name or "").strip()
    if not clean_name:
        raise ValidationError("Product name is required")

    product = Product.objects.filter(name__iexact=clean_name).first()
    if product is not None:
        if not product.is_active:
            product.is_active = True
            product.save(update_fields=["is_active", "updated_at"])
        return product

    product = Product.objects.create(
        name=clean_name,
        category=(category or "").strip() or "General",
        unit_price=_money(selling_price),
    )
    logger.info(
        "Product created from purchase",
        extra={"product_id": str(product.id), "product_name": product.name},
    )
    return product


@transaction.atomic
def intake_stock(
    *,
    product,
    quantity_received: int,
    unit_cost,
    expiry_date,
    batch_number: str | None = None,
    user=None,
    reference: str = "",
    selling_price=None,
) -> StockBatch:
    if not product:
        raise ValidationError("Product is required")

    if quantity_received is None or int(quantity_received) <= 0:
        raise ValidationError("quantity_received must be greater than zero")

    if not expiry_date:
        raise ValidationError("expiry_date is required")

    unit_cost_dec = _money(unit_cost)
    if unit_cost_dec < Decimal("0.00"):
        raise ValidationError("unit_cost cannot be negative")

    bn = (batch_number or "").strip()
    if not bn:
        bn = f"INTAKE-{uuid.uuid4().hex[:10].upper()}"

    if StockBatch.objects.filter(product=product, batch_number=bn).exists():
        raise ValidationError(
            f"Batch {bn} was already received for {product.name}. "
            "Each delivery batch_number must be unique per product."
        )

    batch = StockBatch.objects.create(
        product=product,
        batch_number=bn,
        expiry_date=expiry_date,
        quantity_received=int(quantity_received),
        quantity_remaining=int(quantity_received),
        unit_cost=unit_cost_dec,
    )

    StockMovement.objects.create(
        product=product,
        batch=batch,
        movement_type=StockMovement.MovementType.IN,
        reason=StockMovement.Reason.RECEIPT,
        quantity=int(quantity_received),
        unit_cost_snapshot=unit_cost_dec,
        reference=str(reference or ""),
        performed_by=user,
    )

    update_fields = ["last_purchase_cost", "updated_at"]
    product.last_purchase_cost = unit_cost_dec
    if selling_price is not None and _money(selling_price) > Decimal("0.00"):
        product.unit_price = _money(selling_price)
        update_fields.append("unit_price")
    product.save(update_fields=update_fields)

    logger.info(
        "Stock received",
        extra={
            "product_id": str(product.id),
            "batch_id": str(batch.id),
            "quantity": int(quantity_received),
            "unit_cost": str(unit_cost_dec),
        },
    )
    return batch
