"""Payment ledger contract used by the reconciliation engine.

The engine does not own payments.  Everything it needs (lookups for
matching and reporting, and the paid/pending flip on manual match and
unmatch) goes through a ``PaymentLedger`` implementation supplied by the
surrounding system.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Optional


class PaymentStatus:
    PENDING = "pending"
    COMPLETED = "completed"


class LedgerError(Exception):
    """Raised by ledger implementations when a read or write fails."""


@dataclass(frozen=True)
class PaymentRecord:
    """Read-only projection of a ledger payment."""

    id: str
    owner_id: str
    amount: Decimal
    due_date: date
    status: str
    paid_at: Optional[date] = None
    property_id: Optional[str] = None
    tenant_id: Optional[str] = None
    tenant_name: Optional[str] = None
    property_name: Optional[str] = None
    payment_type: Optional[str] = None


class PaymentLedger(ABC):
    """Lookup and mutation capability over expected payments.

    ``shares_transaction`` tells callers whether ledger writes join their
    own database transaction (commit/rollback together) or are durable on
    their own and therefore need compensation when a later step fails.
    """

    shares_transaction: bool = False

    @abstractmethod
    def find_pending_payment(
        self,
        owner_id: str,
        amount_min: Decimal,
        amount_max: Decimal,
        due_from: Optional[date] = None,
        due_to: Optional[date] = None,
        property_id: Optional[str] = None,
        tenant_id: Optional[str] = None,
    ) -> Optional[PaymentRecord]:
        """Return one pending payment inside the given amount/date ranges.

        All ranges are inclusive.  Omitted date bounds are unbounded.
        """

    @abstractmethod
    def get_payment(self, payment_id: str, owner_id: str) -> Optional[PaymentRecord]:
        """Return the payment if it exists and belongs to ``owner_id``."""

    @abstractmethod
    def list_pending_payments(
        self,
        owner_id: str,
        amount_min: Decimal,
        amount_max: Decimal,
        limit: int,
    ) -> list[PaymentRecord]:
        pass

    @abstractmethod
    def list_overdue_payments(
        self, owner_id: str, due_before: date
    ) -> list[PaymentRecord]:
        """Pending payments with ``due_date < due_before``, oldest first."""

    @abstractmethod
    def list_payments_due(
        self, owner_id: str, start: date, end: date
    ) -> list[PaymentRecord]:
        """Payments of any status due inside ``[start, end]``."""

    @abstractmethod
    def mark_paid(self, payment_id: str, paid_date: date) -> None:
        """Flip the payment to completed.  Repeating the call is harmless."""

    @abstractmethod
    def mark_pending(self, payment_id: str) -> None:
        """Revert the payment to pending and clear its paid date."""
