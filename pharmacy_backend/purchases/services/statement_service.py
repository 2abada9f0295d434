# purchases/services/statement_service.py

"""
SUPPLIER STATEMENT (READ MODEL)

One read of a supplier's history feeds:
- the ledger (newest first, running balance computed oldest first)
- stats: purchases, payments, returns, refunds, credit, aging
- top products bought from this supplier

Everything is recomputed per request; nothing here writes.

stats.drift is ledger balance minus the stored Supplier.total_payable and
is 0 under correct operation (see reconcile_supplier_balances).
"""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal

from django.conf import settings
from django.core.exceptions import ValidationError as DjangoValidationError

from purchases.models import PaymentMethod, Supplier, method_effect
from purchases.services.aging import estimate_aging
from purchases.services.credit_service import compute_credit_position
from purchases.services.exceptions import SupplierNotFoundError
from purchases.services.ledger_builder import build_ledger, closing_balance
from purchases.services.supplier_state import supplier_supplies


TWOPLACES = Decimal("0.01")
ZERO = Decimal("0.00")


def _money(v) -> Decimal:
    return Decimal(str(v or "0.00")).quantize(TWOPLACES, rounding=ROUND_HALF_UP)


def _top_products_limit() -> int:
    return int(getattr(settings, "SUPPLIER_LEDGER", {}).get("TOP_PRODUCTS_LIMIT", 5))


def get_supplier(supplier_id) -> Supplier:
    try:
        return Supplier.objects.get(id=supplier_id)
    except (Supplier.DoesNotExist, DjangoValidationError, ValueError) as exc:
        raise SupplierNotFoundError("Supplier not found") from exc


def product_stats(supplies, *, limit: int | None = None) -> tuple[list[dict], int, int]:
    """
    Returns (top_products, total_skus, total_quantity).

    Products are grouped by line name; last_price is the unit cost of the
    newest line for that name.
    """
    grouped: dict[str, dict] = {}
    for s in supplies:
        stats = grouped.setdefault(
            s.name,
            {"name": s.name, "total_qty": 0, "purchase_count": 0, "last_price": ZERO, "_last": None},
        )
        stats["total_qty"] += int(s.quantity or 0)
        stats["purchase_count"] += 1

        stamp = (s.added_date, s.created_at.timestamp() if s.created_at else 0.0)
        if stats["_last"] is None or stamp > stats["_last"]:
            stats["_last"] = stamp
            stats["last_price"] = _money(s.purchase_cost)

    rows = sorted(grouped.values(), key=lambda r: r["total_qty"], reverse=True)
    limit = _top_products_limit() if limit is None else limit

    top = [
        {
            "name": r["name"],
            "total_qty": r["total_qty"],
            "purchase_count": r["purchase_count"],
            "last_price": str(r["last_price"]),
        }
        for r in rows[:limit]
    ]
    total_quantity = sum(int(s.quantity or 0) for s in supplies)
    return top, len(grouped), total_quantity


def _sum_methods(payments, methods) -> Decimal:
    return sum((_money(p.amount) for p in payments if p.method in methods), ZERO)


def build_supplier_statement(*, supplier_id, today=None) -> dict:
    supplier = get_supplier(supplier_id)

    supplies = list(supplier_supplies(supplier))
    payments = list(supplier.payments.all())

    entries = build_ledger(supplies=supplies, payments=payments)
    ledger_balance = closing_balance(entries)
    position = compute_credit_position(supplies=supplies, payments=payments)
    aging = estimate_aging(supplies=supplies, balance=ledger_balance, today=today)
    top_products, total_skus, total_quantity = product_stats(supplies)

    cash_paid_methods = {m for m in PaymentMethod if method_effect(m).cash_paid}
    total_paid = _sum_methods(payments, cash_paid_methods)
    stored = _money(supplier.total_payable)

    stats = {
        "gross_purchased": position.gross_purchased,
        "total_purchased": position.net_purchases,
        "total_paid": total_paid,
        "cash_payments": position.settlements,
        "total_returns": position.total_returns,
        "total_refunds": _sum_methods(payments, {PaymentMethod.CASH_REFUND}),
        "total_credit_applied": _sum_methods(payments, {PaymentMethod.CREDIT_APPLICATION}),
        "balance": position.balance,
        "supplier_credit": position.supplier_credit,
        "ledger_balance": ledger_balance,
        "stored_payable": stored,
        "drift": ledger_balance - stored,
        "total_skus": total_skus,
        "total_quantity": total_quantity,
        "overdue_amount": aging.overdue_amount,
        "due_in_15_days": aging.due_soon_amount,
        "aging_window_days": aging.window_days,
    }

    return {
        "supplier": supplier,
        "ledger": [e.as_dict() for e in entries],
        "stats": {k: (str(v) if isinstance(v, Decimal) else v) for k, v in stats.items()},
        "top_products": top_products,
    }
