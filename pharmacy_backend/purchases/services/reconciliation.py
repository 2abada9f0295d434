# purchases/services/reconciliation.py

"""
SUPPLIER BALANCE RECONCILIATION

Compares the stored aggregate (Supplier.total_payable) with the balance
re-derived from history (ledger closing balance), and re-derives every
supply's payment_status from its paid_amount.

- Drift is logged at ERROR: it means a write sequence was interrupted or
  data was edited outside the services.
- fix=True overwrites total_payable with the ledger balance and saves any
  stale statuses. Re-deriving status is idempotent.
- paid_amount vs sum(ItemPayment) mismatches are reported only; deciding
  which side is right needs an operator.
"""

from __future__ import annotations

import logging
from decimal import ROUND_HALF_UP, Decimal

from django.db import transaction
from django.db.models import Sum

from purchases.models import ItemPayment, derive_payment_status
from purchases.services.ledger_builder import build_ledger, closing_balance
from purchases.services.supplier_state import lock_supplier, supplier_supplies


logger = logging.getLogger("purchases.reconciliation")

TWOPLACES = Decimal("0.01")
ZERO = Decimal("0.00")


def _money(v) -> Decimal:
    return Decimal(str(v or "0.00")).quantize(TWOPLACES, rounding=ROUND_HALF_UP)


@transaction.atomic
def reconcile_supplier(*, supplier_id, fix: bool = False) -> dict:
    supplier = lock_supplier(supplier_id)

    supplies = list(supplier_supplies(supplier).select_for_update())
    payments = list(supplier.payments.all())

    ledger_balance = closing_balance(build_ledger(supplies=supplies, payments=payments))
    stored = _money(supplier.total_payable)
    drift = ledger_balance - stored

    allocated = dict(
        ItemPayment.objects.filter(supply__in=supplies)
        .values("supply_id")
        .annotate(total=Sum("amount"))
        .values_list("supply_id", "total")
    )

    status_mismatches = []
    allocation_mismatches = []
    for supply in supplies:
        expected = derive_payment_status(supply.paid_amount, supply.total_cost)
        if supply.payment_status != expected:
            status_mismatches.append(
                {"supply_id": str(supply.id), "stored": supply.payment_status, "expected": expected}
            )
            if fix:
                # save() re-derives the status
                supply.save(update_fields=["paid_amount"])

        allocated_total = _money(allocated.get(supply.id))
        if allocated_total != _money(supply.paid_amount):
            allocation_mismatches.append(
                {
                    "supply_id": str(supply.id),
                    "paid_amount": str(_money(supply.paid_amount)),
                    "allocated": str(allocated_total),
                }
            )

    if drift != ZERO:
        logger.error(
            "Supplier balance drift detected",
            extra={
                "supplier_id": str(supplier.id),
                "stored_payable": str(stored),
                "ledger_balance": str(ledger_balance),
                "drift": str(drift),
                "fix": fix,
            },
        )
        if fix:
            supplier.total_payable = ledger_balance
            supplier.save(update_fields=["total_payable", "updated_at"])

    report = {
        "supplier_id": str(supplier.id),
        "supplier_name": supplier.name,
        "stored_payable": str(stored),
        "ledger_balance": str(ledger_balance),
        "drift": str(drift),
        "in_sync": drift == ZERO,
        "status_mismatches": status_mismatches,
        "allocation_mismatches": allocation_mismatches,
        "fixed": bool(fix and (drift != ZERO or status_mismatches)),
    }

    logger.info(
        "Supplier reconciled",
        extra={
            "supplier_id": str(supplier.id),
            "drift": str(drift),
            "status_mismatches": len(status_mismatches),
            "allocation_mismatches": len(allocation_mismatches),
        },
    )
    return report
