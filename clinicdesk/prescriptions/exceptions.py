"""
Prescription workflow exceptions.

Raised by ``prescriptions.services`` and translated to DRF responses in the
views.
"""

from __future__ import annotations

from typing import Any


class PrescriptionError(Exception):
    """Base exception for prescription workflow errors."""

    status_code = 400
    code = 'prescription_error'

    def __init__(self, message: str, *, field: str | None = None):
        self.message = message
        self.field = field
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {'detail': self.message, 'code': self.code}
        if self.field:
            result['field'] = self.field
        return result


class PrescriptionValidationError(PrescriptionError):
    code = 'invalid_prescription'


class InvalidStatusTransition(PrescriptionError):
    """
    Raised when a status change is not allowed from the current status.

    Attributes:
        current: status the prescription is in
        requested: status that was asked for
        allowed: statuses reachable from ``current``
    """

    status_code = 409
    code = 'invalid_status_transition'

    def __init__(self, current: str, requested: str, allowed: list[str]):
        self.current = current
        self.requested = requested
        self.allowed = allowed
        super().__init__(f"Cannot change status from '{current}' to '{requested}'.", field='status')

    def to_dict(self) -> dict[str, Any]:
        result = super().to_dict()
        result['current'] = self.current
        result['allowed'] = self.allowed
        return result


class RefillNotAllowed(PrescriptionError):
    """Raised when a refill is requested for an inactive or exhausted prescription."""

    status_code = 409
    code = 'refill_not_allowed'
