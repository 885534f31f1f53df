# Overview: Typed error kinds shared by services and mapped to HTTP status codes at the boundary.

"""
Error kinds raised by the asset ledger core.

Every service raises one of these instead of a bare ValueError so the
transport layer can map it to a stable wire code without parsing messages:

    NotFoundError       404  referenced id does not exist
    ForbiddenError      403  office/role predicate failed
    UnauthorizedError   401  no (valid) principal
    ValidationError     400  argument violates a precondition
    InvalidStateError   400  state-machine precondition unmet
    InsufficientStockError 400  not enough AVAILABLE instances
    ConflictError       409  uniqueness / referential constraint
"""
from __future__ import annotations


class LedgerError(Exception):
    """Base class for all domain errors."""

    status_code = 400
    code = "Error"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict:
        return {"error": self.message, "code": self.code}


class NotFoundError(LedgerError):
    status_code = 404
    code = "NotFound"


class ForbiddenError(LedgerError):
    status_code = 403
    code = "Forbidden"


class UnauthorizedError(LedgerError):
    status_code = 401
    code = "Unauthorized"


class ValidationError(LedgerError):
    """400-level input problem."""

    status_code = 400
    code = "Invalid"


class InvalidStateError(LedgerError):
    status_code = 400
    code = "InvalidState"


class InsufficientStockError(LedgerError):
    status_code = 400
    code = "Insufficient"

    def __init__(self, requested: int, available: int):
        super().__init__(
            f"Not enough available items. Requested: {requested}, Available: {available}"
        )
        self.requested = requested
        self.available = available

    def to_dict(self) -> dict:
        return {
            **super().to_dict(),
            "requested": self.requested,
            "available": self.available,
        }


class ConflictError(LedgerError):
    """409-level constraint conflict (e.g., duplicate barcode)."""

    status_code = 409
    code = "Conflict"
