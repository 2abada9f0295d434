# purchases/services/aging.py

"""
PAYABLE AGING ESTIMATOR (PURE, BEST-EFFORT)

Estimates how much of a supplier's outstanding balance is overdue or due
soon.

Model (FIFO settlement): older invoices are assumed paid first, so the
outstanding balance sits on the NEWEST invoices. Invoice lines are walked
newest-first and each absorbs min(its cost, remaining balance).

This is an estimate, not a ledger of record: payments recorded on account
are not tied to particular invoices, so per-line paid_amount is not used.

Guarantee: overdue_amount + due_soon_amount <= max(0, balance).
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, timedelta
from decimal import ROUND_HALF_UP, Decimal
from typing import Iterable

from django.conf import settings
from django.utils import timezone


TWOPLACES = Decimal("0.01")
ZERO = Decimal("0.00")


def _money(v) -> Decimal:
    return Decimal(str(v or "0.00")).quantize(TWOPLACES, rounding=ROUND_HALF_UP)


def default_window_days() -> int:
    return int(getattr(settings, "SUPPLIER_LEDGER", {}).get("AGING_WINDOW_DAYS", 15))


@dataclass(frozen=True)
class AgingSummary:
    overdue_amount: Decimal
    due_soon_amount: Decimal
    window_days: int


def estimate_aging(
    *,
    supplies: Iterable,
    balance,
    today: date | None = None,
    window_days: int | None = None,
) -> AgingSummary:
    window = default_window_days() if window_days is None else int(window_days)
    remaining_debt = _money(balance)

    if remaining_debt <= ZERO:
        return AgingSummary(ZERO, ZERO, window)

    today = today or timezone.localdate()
    horizon = today + timedelta(days=window)

    newest_first = sorted(
        supplies,
        key=lambda s: (s.added_date, s.created_at.timestamp() if s.created_at else 0.0),
        reverse=True,
    )

    overdue = ZERO
    due_soon = ZERO

    for supply in newest_first:
        if remaining_debt <= ZERO:
            break

        inv_cost = _money(Decimal(int(supply.quantity or 0)) * Decimal(str(supply.purchase_cost or "0")))
        debt_on_this = min(inv_cost, remaining_debt)

        if debt_on_this > ZERO and supply.invoice_due_date:
            if supply.invoice_due_date < today:
                overdue += debt_on_this
            elif supply.invoice_due_date <= horizon:
                due_soon += debt_on_this

        remaining_debt -= debt_on_this

    return AgingSummary(overdue, due_soon, window)
