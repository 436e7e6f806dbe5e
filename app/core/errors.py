"""Domain error kinds raised by the reconciliation services.

Routes never build ``HTTPException`` for these: the handlers registered in
``app.main`` turn any ``ReconciliationError`` into the standard error
envelope ``{"success": false, "error": {"code": ..., "message": ...}}``.
"""

from __future__ import annotations


class ReconciliationError(Exception):
    """Base class for errors surfaced to API callers."""

    code: str = "INTERNAL_ERROR"
    status_code: int = 500

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict:
        return {"code": self.code, "message": self.message}


class NotFoundError(ReconciliationError):
    """Unknown or not-owned transaction, rule, batch or payment."""

    code = "NOT_FOUND"
    status_code = 404


class InvalidStateError(ReconciliationError):
    """The requested transition is not allowed from the current status."""

    code = "INVALID_STATE"
    status_code = 409


class InvalidInputError(ReconciliationError):
    """Malformed input to import, rule creation or report queries."""

    code = "VALIDATION_ERROR"
    status_code = 422


class AuthRequiredError(ReconciliationError):
    code = "AUTH_REQUIRED"
    status_code = 401


class LedgerWriteError(ReconciliationError):
    """The payment ledger rejected a write; the match attempt was abandoned."""

    code = "LEDGER_WRITE_FAILED"
    status_code = 502
