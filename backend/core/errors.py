"""Internal error taxonomy for ledger, request and identity operations.

These never leave a service: each operation converts them into an
``OperationResult`` at its boundary (see ``core.results``).
"""

from enum import Enum


class ResultKind(str, Enum):
    OK = "ok"
    VALIDATION = "validation"
    NOT_FOUND = "not_found"
    INSUFFICIENT_STOCK = "insufficient_stock"
    ILLEGAL_TRANSITION = "illegal_transition"
    BACKEND = "backend"


class StockError(Exception):
    kind: ResultKind = ResultKind.BACKEND

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(StockError):
    """Malformed or missing input, raised before any persistence call."""
    kind = ResultKind.VALIDATION


class NotFoundError(StockError):
    kind = ResultKind.NOT_FOUND


class InsufficientStockError(StockError):
    kind = ResultKind.INSUFFICIENT_STOCK


class IllegalTransitionError(StockError):
    kind = ResultKind.ILLEGAL_TRANSITION


class BackendError(StockError):
    """Opaque failure surfaced from the database or the identity layer."""
    kind = ResultKind.BACKEND
