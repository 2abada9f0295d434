# purchases/services/ledger_builder.py

"""
SUPPLIER LEDGER BUILDER (PURE)

Turns one supplier's supplies and payments into a chronological ledger
with a running balance.

Rules:
- Invoice lines raise the balance (is_credit).
- Payments move it by their method effect: DEBIT methods lower it,
  CREDIT methods (credit application, cash refund) raise it.
- Entries are sorted ascending by date with a stable sort; within one date,
  invoice lines come before payments and each group keeps creation order.
- Balances are computed ascending from 0, then the list is reversed for
  display (newest first). Reversal never recomputes balances.

No database access here: callers pass already-loaded rows.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass
from datetime import date
from decimal import ROUND_HALF_UP, Decimal
from typing import Iterable

from purchases.models import CREDIT, PaymentStatus, method_effect


TWOPLACES = Decimal("0.01")
ZERO = Decimal("0.00")

INVOICE_STATUS_LABELS = {
    PaymentStatus.PAID: "Settled",
    PaymentStatus.PARTIAL: "Partial",
}


def _money(v) -> Decimal:
    return Decimal(str(v or "0.00")).quantize(TWOPLACES, rounding=ROUND_HALF_UP)


@dataclass
class LedgerEntry:
    id: str
    date: date
    type: str
    ref: str
    amount: Decimal
    status: str
    is_credit: bool
    is_debit: bool
    running_balance: Decimal = ZERO

    # invoice lines
    name: str = ""
    batch_number: str = ""
    quantity: int = 0
    unit_cost: Decimal | None = None
    paid_amount: Decimal | None = None
    due_amount: Decimal | None = None
    payment_status: str = ""
    due_date: date | None = None
    expiry_date: date | None = None

    # payments
    method: str = ""
    note: str = ""

    def as_dict(self) -> dict:
        data = asdict(self)
        for key in ("amount", "running_balance", "unit_cost", "paid_amount", "due_amount"):
            if data[key] is not None:
                data[key] = str(_money(data[key]))
        return data


def _supply_entry(supply) -> LedgerEntry:
    total = _money(Decimal(int(supply.quantity or 0)) * Decimal(str(supply.purchase_cost or "0")))
    paid = _money(supply.paid_amount)
    return LedgerEntry(
        id=str(supply.id),
        date=supply.added_date,
        type="Invoice",
        ref=supply.purchase_invoice_number or "N/A",
        amount=total,
        status=INVOICE_STATUS_LABELS.get(supply.payment_status, "Posted"),
        is_credit=True,
        is_debit=False,
        name=supply.name,
        batch_number=supply.batch_number,
        quantity=int(supply.quantity or 0),
        unit_cost=_money(supply.purchase_cost),
        paid_amount=paid,
        due_amount=total - paid,
        payment_status=supply.payment_status or PaymentStatus.UNPAID,
        due_date=supply.invoice_due_date,
        expiry_date=supply.expiry_date,
    )


def _payment_entry(payment) -> LedgerEntry:
    effect = method_effect(payment.method)
    raises_balance = effect.direction == CREDIT
    return LedgerEntry(
        id=str(payment.id),
        date=payment.payment_date,
        type=effect.label,
        ref=str(payment.method),
        amount=_money(payment.amount),
        status="Posted",
        is_credit=raises_balance,
        is_debit=not raises_balance,
        method=str(payment.method),
        note=payment.note or "",
    )


def _creation_key(row):
    return row.created_at.timestamp() if getattr(row, "created_at", None) else 0.0


def build_ledger(*, supplies: Iterable, payments: Iterable) -> list[LedgerEntry]:
    """
    Returns ledger entries newest-first with running balances computed
    oldest-first.
    """
    supply_rows = sorted(supplies, key=lambda s: (s.added_date, _creation_key(s)))
    payment_rows = sorted(payments, key=lambda p: (p.payment_date, _creation_key(p)))

    entries = [_supply_entry(s) for s in supply_rows] + [_payment_entry(p) for p in payment_rows]
    entries.sort(key=lambda e: e.date)

    balance = ZERO
    for entry in entries:
        if entry.is_credit:
            balance += entry.amount
        elif entry.is_debit:
            balance -= entry.amount
        entry.running_balance = balance

    entries.reverse()
    return entries


def closing_balance(entries: list[LedgerEntry]) -> Decimal:
    """Balance after the newest entry (entries as returned by build_ledger)."""
    return entries[0].running_balance if entries else ZERO
