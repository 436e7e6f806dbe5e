"""Discrepancy classification for bank transactions.

``detect_discrepancy`` compares a transaction with the payment it was
matched to (or ``None`` when nothing matched) and returns a small
``Discrepancy`` value, or ``None`` if the two agree within tolerance.

Like the other rule helpers these functions are pure, so they can be
unit-tested with plain ``SimpleNamespace`` stand-ins.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass
from decimal import Decimal
from typing import Any, Optional

from app.services.reconciliation.tolerance import (
    CENT,
    amounts_differ,
    within_days,
)


class DiscrepancyType:
    AMOUNT_MISMATCH = "amount_mismatch"
    DATE_MISMATCH = "date_mismatch"
    DUPLICATE = "duplicate"
    MISSING_PAYMENT = "missing_payment"
    UNEXPECTED = "unexpected"
    PARTIAL = "partial"

    ALL = (
        AMOUNT_MISMATCH,
        DATE_MISMATCH,
        DUPLICATE,
        MISSING_PAYMENT,
        UNEXPECTED,
        PARTIAL,
    )


@dataclass(frozen=True)
class Discrepancy:
    """Why a transaction does not line up cleanly with an expected payment.

    Purely descriptive: nothing in the engine acts on a discrepancy
    automatically.
    """

    type: str
    expected_amount: Optional[Decimal] = None
    actual_amount: Optional[Decimal] = None
    notes: Optional[str] = None

    def with_notes(self, notes: Optional[str]) -> Discrepancy:
        if not notes:
            return self
        return Discrepancy(self.type, self.expected_amount, self.actual_amount, notes)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


def detect_discrepancy(
    transaction: Any,
    payment: Any,
    amount_epsilon: Decimal = CENT,
    date_mismatch_days: int = 14,
) -> Optional[Discrepancy]:
    """Classify how ``transaction`` differs from ``payment``.

    Amount is checked before date, so a transaction that is both short and
    late reports ``partial`` rather than ``date_mismatch``.

    Args:
        transaction: Object with ``amount`` and ``posted_date``.
        payment: Object with ``amount`` and ``due_date``, or ``None``.
        amount_epsilon: Largest amount difference treated as equal.
        date_mismatch_days: Largest posted/due gap treated as on time.
    """
    if payment is None:
        return Discrepancy(
            type=DiscrepancyType.UNEXPECTED,
            actual_amount=transaction.amount,
        )

    if amounts_differ(payment.amount, transaction.amount, amount_epsilon):
        kind = (
            DiscrepancyType.PARTIAL
            if transaction.amount < payment.amount
            else DiscrepancyType.AMOUNT_MISMATCH
        )
        return Discrepancy(
            type=kind,
            expected_amount=payment.amount,
            actual_amount=transaction.amount,
        )

    if not within_days(transaction.posted_date, payment.due_date, date_mismatch_days):
        return Discrepancy(type=DiscrepancyType.DATE_MISMATCH)

    return None


def write_off_discrepancy(transaction: Any, reason: str) -> Discrepancy:
    """Discrepancy recorded when a transaction is written off."""
    return Discrepancy(
        type=DiscrepancyType.UNEXPECTED,
        actual_amount=transaction.amount,
        notes=reason,
    )
