"""
Billing-specific exceptions.

Raised by ``billing.services`` and translated to DRF responses in the views
via ``to_dict()`` and ``status_code``.
"""

from __future__ import annotations

from typing import Any


class BillingError(Exception):
    """Base exception for all billing errors."""

    status_code = 400
    code = 'billing_error'

    def __init__(self, message: str, *, field: str | None = None, meta: dict[str, Any] | None = None):
        self.message = message
        self.field = field
        self.meta = meta or {}
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {
            'detail': self.message,
            'code': self.code,
        }
        if self.field:
            result['field'] = self.field
        if self.meta:
            result['meta'] = self.meta
        return result


class InvoiceValidationError(BillingError):
    """Raised when invoice amounts or dates are inconsistent."""

    code = 'invalid_invoice'


class PaymentValidationError(BillingError):
    """Raised when a payment amount, date or note is not acceptable."""

    code = 'invalid_payment'


class InvoiceStateError(BillingError):
    """
    Raised when an operation is not allowed in the invoice's current status
    (e.g. paying a cancelled invoice, deleting an invoice with payments).
    """

    status_code = 409
    code = 'invalid_invoice_state'

    def __init__(self, message: str, *, status: str, **kwargs):
        self.status = status
        super().__init__(message, **kwargs)

    def to_dict(self) -> dict[str, Any]:
        result = super().to_dict()
        result['status'] = self.status
        return result
