# purchases/services/exceptions.py

"""
SUPPLIER LEDGER SERVICE ERRORS

Centralized domain errors for the supplier ledger engine.
Views map NotFound errors to 404 and everything else here to 400.
"""


class SupplierLedgerError(Exception):
    """Base exception for all supplier ledger failures."""


class SupplierNotFoundError(SupplierLedgerError):
    """Raised when the supplier does not exist."""


class SupplyNotFoundError(SupplierLedgerError):
    """Raised when a supply (invoice line) does not exist."""


class PaymentNotFoundError(SupplierLedgerError):
    """Raised when a supplier payment does not exist."""


class LedgerValidationError(SupplierLedgerError, ValueError):
    """Raised on missing or malformed input (amounts, methods, items)."""


class InsufficientCreditError(SupplierLedgerError):
    """Raised when a credit application or cash refund exceeds supplier credit."""


class InsufficientStockError(SupplierLedgerError):
    """Raised when a purchase return asks for more units than are on hand."""


NOT_FOUND_ERRORS = (SupplierNotFoundError, SupplyNotFoundError, PaymentNotFoundError)
