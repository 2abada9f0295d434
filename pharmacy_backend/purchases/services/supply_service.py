# purchases/services/supply_service.py

"""
SUPPLY (PURCHASE LINE) SERVICE

record_supply():
- Resolve supplier + product by case-insensitive name (create when new)
- Receive quantity + free_quantity units into a new StockBatch (RECEIPT)
- Create the Supply (Unpaid) and raise the supplier payable by its cost
- Optionally settle the new line from credit the supplier already holds
  (Credit Adjustment allocation, capped at the line cost)

update_supply():
- Edit quantity, free units, unit cost, invoice number, dates or notes
- Resize / re-cost the line's batch by the unit delta (ADJUSTMENT movement)
- Move the payable by the cost delta; payment_status is re-derived on save

void_supply():
- Withdraw what is left of the line's batch (VOID movement)
- Drop its allocations (the payments themselves stay on account)
- Lower the payable by the full line cost and delete the Supply

All run in one transaction with the supplier row locked.
"""

from __future__ import annotations

import logging
from decimal import ROUND_HALF_UP, Decimal

from django.conf import settings
from django.core.exceptions import ValidationError as DjangoValidationError
from django.db import transaction
from django.utils import timezone

from products.services import InsufficientStockError as StockShortfall
from products.services import correct_batch, find_or_create_product, intake_stock, withdraw_batch_stock
from purchases.models import ItemPayment, PaymentMethod, Supplier, Supply
from purchases.services.allocation import allocate_payment
from purchases.services.exceptions import InsufficientStockError, LedgerValidationError, SupplyNotFoundError
from purchases.services.supplier_service import find_or_create_supplier
from purchases.services.supplier_state import adjust_payable, lock_supplier, parse_amount


logger = logging.getLogger("purchases.supplies")

TWOPLACES = Decimal("0.01")
ZERO = Decimal("0.00")


def _money(v) -> Decimal:
    return Decimal(str(v or "0.00")).quantize(TWOPLACES, rounding=ROUND_HALF_UP)


def _auto_apply_default() -> bool:
    return bool(getattr(settings, "SUPPLIER_LEDGER", {}).get("AUTO_APPLY_CREDIT", True))


def _whole_number(value, *, field_name: str, allow_zero: bool = False) -> int:
    try:
        qty = int(value)
    except (TypeError, ValueError) as exc:
        raise LedgerValidationError(f"{field_name} must be a whole number") from exc
    if qty < 0 or (qty == 0 and not allow_zero):
        raise LedgerValidationError(f"{field_name} must be > 0")
    return qty


def _validation_message(exc: DjangoValidationError) -> str:
    return "; ".join(exc.messages)


# ============================================================
# RECORD SUPPLY
# ============================================================

@transaction.atomic
def record_supply(
    *,
    supplier_name: str,
    name: str,
    batch_number: str,
    quantity,
    purchase_cost,
    expiry_date,
    free_quantity=0,
    selling_price=None,
    purchase_invoice_number: str = "",
    invoice_date=None,
    invoice_due_date=None,
    notes: str = "",
    category: str = "",
    auto_apply_credit: bool | None = None,
    user=None,
):
    """
    RECORD ONE PURCHASE LINE (atomic)

    Returns (supply, credit_applied).
    """
    qty = _whole_number(quantity, field_name="quantity")
    free_qty = _whole_number(free_quantity or 0, field_name="free_quantity", allow_zero=True)
    unit_cost = parse_amount(purchase_cost, field_name="purchase_cost", allow_zero=True)
    sell_price = None
    if selling_price not in (None, ""):
        sell_price = parse_amount(selling_price, field_name="selling_price", allow_zero=True)

    if not expiry_date:
        raise LedgerValidationError("expiry_date is required")
    if not (batch_number or "").strip():
        raise LedgerValidationError("batch_number is required")

    supplier = lock_supplier(find_or_create_supplier(supplier_name).id)
    credit_before = supplier.credit_balance

    try:
        product = find_or_create_product(name=name, category=category, selling_price=sell_price)
        supply = Supply.objects.create(
            supplier=supplier,
            supplier_name=supplier.name,
            product=product,
            name=product.name,
            batch_number=batch_number.strip(),
            quantity=qty,
            free_quantity=free_qty,
            purchase_cost=unit_cost,
            selling_price=sell_price or ZERO,
            purchase_invoice_number=(purchase_invoice_number or "").strip(),
            invoice_date=invoice_date,
            invoice_due_date=invoice_due_date,
            expiry_date=expiry_date,
            added_date=invoice_date or timezone.localdate(),
            notes=notes or "",
        )
        batch = intake_stock(
            product=product,
            quantity_received=qty + free_qty,
            unit_cost=unit_cost,
            expiry_date=expiry_date,
            batch_number=supply.batch_number,
            user=user,
            reference=str(supply.id),
            selling_price=sell_price,
        )
    except DjangoValidationError as exc:
        raise LedgerValidationError(_validation_message(exc)) from exc

    supply.stock_batch = batch
    supply.save(update_fields=["stock_batch"])

    adjust_payable(supplier, supply.total_cost)

    logger.info(
        "Supply recorded",
        extra={
            "supplier_id": str(supplier.id),
            "supply_id": str(supply.id),
            "batch_id": str(batch.id),
            "quantity": qty,
            "free_quantity": free_qty,
            "total_cost": str(supply.total_cost),
            "total_payable": str(supplier.total_payable),
        },
    )

    if auto_apply_credit is None:
        auto_apply_credit = _auto_apply_default()

    credit_applied = ZERO
    if auto_apply_credit and credit_before > ZERO and supply.total_cost > ZERO:
        credit_applied = min(credit_before, supply.total_cost)
        allocate_payment(
            supplier_id=supplier.id,
            items=[{"supply_id": str(supply.id), "amount": credit_applied}],
            method=PaymentMethod.CREDIT_ADJUSTMENT,
            payment_date=supply.added_date,
            note=f"Auto-applied credit to {supply.name}",
            user=user,
        )
        supply.refresh_from_db()

    return supply, credit_applied


# ============================================================
# SUPPLY LOCKING
# ============================================================

EDITABLE_SUPPLY_FIELDS = (
    "quantity",
    "free_quantity",
    "purchase_cost",
    "purchase_invoice_number",
    "invoice_date",
    "invoice_due_date",
    "expiry_date",
    "notes",
)


def _lock_supply(supply_id):
    """
    Lock the owning supplier first, then the supply row.

    Returns (supplier or None, supply). Legacy lines linked by name only
    resolve their supplier case-insensitively.
    """
    try:
        head = Supply.objects.values("supplier_id", "supplier_name").get(id=supply_id)
    except (Supply.DoesNotExist, DjangoValidationError, ValueError) as exc:
        raise SupplyNotFoundError("Supply not found") from exc

    supplier_id = head["supplier_id"]
    if supplier_id is None:
        # legacy line linked by name only
        supplier_id = Supplier.objects.filter(name__iexact=head["supplier_name"]).values_list("id", flat=True).first()
    supplier = lock_supplier(supplier_id) if supplier_id else None
    supply = Supply.objects.select_for_update().get(id=supply_id)
    return supplier, supply


# ============================================================
# UPDATE SUPPLY
# ============================================================

@transaction.atomic
def update_supply(*, supply_id, user=None, **changes) -> Supply:
    """
    EDIT ONE PURCHASE LINE (atomic)

    Only EDITABLE_SUPPLY_FIELDS may change; product and batch number stay
    (void and re-record the line for those).
    """
    unknown = sorted(set(changes) - set(EDITABLE_SUPPLY_FIELDS))
    if unknown:
        raise LedgerValidationError(f"Cannot edit supply field(s): {', '.join(unknown)}")

    supplier, supply = _lock_supply(supply_id)

    old_cost = supply.total_cost
    old_units = supply.quantity + supply.free_quantity
    old_unit_cost = supply.purchase_cost
    old_expiry = supply.expiry_date

    if "quantity" in changes:
        supply.quantity = _whole_number(changes["quantity"], field_name="quantity")
    if "free_quantity" in changes:
        supply.free_quantity = _whole_number(
            changes["free_quantity"] or 0, field_name="free_quantity", allow_zero=True
        )
    if "purchase_cost" in changes:
        supply.purchase_cost = parse_amount(changes["purchase_cost"], field_name="purchase_cost", allow_zero=True)
    if "purchase_invoice_number" in changes:
        supply.purchase_invoice_number = (changes["purchase_invoice_number"] or "").strip()
    if "invoice_date" in changes:
        supply.invoice_date = changes["invoice_date"]
    if "invoice_due_date" in changes:
        supply.invoice_due_date = changes["invoice_due_date"]
    if "expiry_date" in changes:
        if not changes["expiry_date"]:
            raise LedgerValidationError("expiry_date is required")
        supply.expiry_date = changes["expiry_date"]
    if "notes" in changes:
        supply.notes = changes["notes"] or ""

    if supply.invoice_date and supply.invoice_due_date and supply.invoice_due_date < supply.invoice_date:
        raise LedgerValidationError("invoice_due_date cannot be before invoice_date")

    units_delta = supply.quantity + supply.free_quantity - old_units
    cost_changed = supply.purchase_cost != old_unit_cost
    expiry_changed = supply.expiry_date != old_expiry

    try:
        if supply.stock_batch_id is not None and (units_delta or cost_changed or expiry_changed):
            correct_batch(
                batch=supply.stock_batch,
                quantity_delta=units_delta,
                unit_cost=supply.purchase_cost if cost_changed else None,
                expiry_date=supply.expiry_date if expiry_changed else None,
                user=user,
                reference=str(supply.id),
            )
        elif units_delta:
            logger.warning(
                "Edited supply has no stock batch; stock untouched",
                extra={"supply_id": str(supply.id), "quantity_delta": units_delta},
            )

        # full save re-derives payment_status from the new total
        supply.save()
    except StockShortfall as exc:
        raise InsufficientStockError(str(exc)) from exc
    except DjangoValidationError as exc:
        raise LedgerValidationError(_validation_message(exc)) from exc

    cost_delta = supply.total_cost - old_cost
    if supplier is not None:
        adjust_payable(supplier, cost_delta)
    elif cost_delta:
        logger.warning(
            "Edited supply has no linked supplier; payable not adjusted",
            extra={"supply_id": str(supply.id), "supplier_name": supply.supplier_name},
        )

    if supply.paid_amount > supply.total_cost:
        logger.warning(
            "Edited supply is now overpaid",
            extra={
                "supply_id": str(supply.id),
                "paid_amount": str(supply.paid_amount),
                "total_cost": str(supply.total_cost),
            },
        )

    logger.info(
        "Supply updated",
        extra={
            "supply_id": str(supply.id),
            "fields": ",".join(sorted(changes)),
            "quantity_delta": units_delta,
            "cost_delta": str(cost_delta),
            "payment_status": supply.payment_status,
        },
    )
    return supply


# ============================================================
# VOID SUPPLY
# ============================================================

@transaction.atomic
def void_supply(*, supply_id, user=None) -> dict:
    supplier, supply = _lock_supply(supply_id)

    withdrawn = 0
    if supply.stock_batch is not None:
        withdrawn = withdraw_batch_stock(batch=supply.stock_batch, user=user, reference=str(supply.id))

    allocations_removed, _ = ItemPayment.objects.filter(supply=supply).delete()
    total_cost = supply.total_cost

    if supplier is not None:
        adjust_payable(supplier, -total_cost)
    else:
        logger.warning(
            "Voided supply has no linked supplier; payable not adjusted",
            extra={"supply_id": str(supply.id), "supplier_name": supply.supplier_name},
        )

    details = {
        "supply_id": str(supply.id),
        "total_cost": str(total_cost),
        "quantity_withdrawn": withdrawn,
        "allocations_removed": allocations_removed,
    }
    supply.delete()

    logger.info("Supply voided", extra=details)
    return details
