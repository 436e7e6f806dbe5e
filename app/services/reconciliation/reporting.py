"""Reconciliation summaries, missing-payment checks and period reports.

All three views are read-only.  Empty inputs produce zeroed structures,
never errors, so dashboards can render a fresh account without special
cases.
"""

from __future__ import annotations

from datetime import date, timedelta
from decimal import Decimal
from typing import Iterable, Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from app.core.errors import InvalidInputError
from app.core.logging import get_logger
from app.models.bank_transaction import BankTransaction, TransactionStatus
from app.schemas.bank_transaction import DiscrepancyInfo
from app.schemas.reports import (
    AmountTotals,
    DiscrepancyCounts,
    ExpectedPaymentTotals,
    MissingPayment,
    MissingPaymentsResponse,
    PeriodReport,
    ReconciliationSummary,
    ReportDiscrepancy,
    ReportPeriod,
    StatusCounts,
    SummaryPeriod,
    TransactionTotals,
    Variance,
)
from app.services.ledger.base import PaymentLedger, PaymentStatus
from app.services.reconciliation.discrepancy import DiscrepancyType

logger = get_logger(__name__)

ZERO = Decimal("0")


def _percentage(part: int, whole: int) -> float:
    if whole == 0:
        return 0.0
    return round(part / whole * 100, 2)


def _sum_amounts(items: Iterable) -> Decimal:
    return sum((item.amount for item in items), ZERO)


class ReconciliationReporter:
    """Builds the reporting views for one owner."""

    def __init__(self, db: Session, ledger: PaymentLedger) -> None:
        self.db = db
        self.ledger = ledger

    # ── Summary ──────────────────────────────────────────────────────

    def summary(
        self,
        owner_id: str,
        period_days: int = 30,
        today: Optional[date] = None,
    ) -> ReconciliationSummary:
        """Status counts, amounts and discrepancy counts for the trailing window."""
        today = today or date.today()
        start = today - timedelta(days=period_days)
        transactions = self._transactions(owner_id, start=start)

        by_status = {status: [] for status in TransactionStatus.ALL}
        for txn in transactions:
            by_status.setdefault(txn.status, []).append(txn)

        by_type = {kind: 0 for kind in DiscrepancyType.ALL}
        flagged = 0
        for txn in transactions:
            kind = txn.discrepancy_type
            if kind is not None:
                flagged += 1
                by_type[kind] = by_type.get(kind, 0) + 1

        linked = len(by_status[TransactionStatus.MATCHED]) + len(
            by_status[TransactionStatus.PARTIAL_MATCH]
        )

        return ReconciliationSummary(
            period=SummaryPeriod(days=period_days, start=start, end=today),
            transactions=StatusCounts(
                total=len(transactions),
                matched=len(by_status[TransactionStatus.MATCHED]),
                partial_match=len(by_status[TransactionStatus.PARTIAL_MATCH]),
                unmatched=len(by_status[TransactionStatus.UNMATCHED]),
                written_off=len(by_status[TransactionStatus.WRITTEN_OFF]),
            ),
            amounts=AmountTotals(
                total=_sum_amounts(transactions),
                matched=_sum_amounts(by_status[TransactionStatus.MATCHED]),
                unmatched=_sum_amounts(by_status[TransactionStatus.UNMATCHED]),
            ),
            discrepancies=DiscrepancyCounts(total=flagged, by_type=by_type),
            match_rate=_percentage(linked, len(transactions)),
        )

    # ── Missing payments ─────────────────────────────────────────────

    def missing_payments(
        self,
        owner_id: str,
        days_overdue: int = 7,
        today: Optional[date] = None,
    ) -> MissingPaymentsResponse:
        """Pending payments overdue by more than ``days_overdue`` days.

        Auto-matches at import leave the payment pending in the ledger, so
        payments a matched or partially matched transaction points at are
        not missing.
        """
        today = today or date.today()
        cutoff = today - timedelta(days=days_overdue)
        claimed = self._claimed_payment_ids(owner_id)
        overdue = [
            p
            for p in self.ledger.list_overdue_payments(owner_id, due_before=cutoff)
            if p.id not in claimed
        ]

        missing = [
            MissingPayment(
                payment_id=p.id,
                amount=p.amount,
                due_date=p.due_date,
                days_overdue=(today - p.due_date).days,
                tenant_name=p.tenant_name or "Unknown",
                property_name=p.property_name,
                payment_type=p.payment_type,
            )
            for p in overdue
        ]
        logger.info(
            "Missing payments: owner=%s cutoff=%s count=%d",
            owner_id,
            cutoff,
            len(missing),
        )
        return MissingPaymentsResponse(
            missing=missing,
            count=len(missing),
            total_amount=_sum_amounts(missing),
        )

    # ── Period report ────────────────────────────────────────────────

    def period_report(
        self,
        owner_id: str,
        start: Optional[date] = None,
        end: Optional[date] = None,
        bank_account_id: Optional[str] = None,
        today: Optional[date] = None,
    ) -> PeriodReport:
        """Bank transactions vs expected payments for ``[start, end]``.

        Defaults to the current month so far.
        """
        today = today or date.today()
        start = start or today.replace(day=1)
        end = end or today
        if start > end:
            raise InvalidInputError("start_date must not be after end_date")

        transactions = self._transactions(
            owner_id, start=start, end=end, bank_account_id=bank_account_id
        )
        payments = self.ledger.list_payments_due(owner_id, start, end)

        by_status = {status: 0 for status in TransactionStatus.ALL}
        for txn in transactions:
            by_status[txn.status] = by_status.get(txn.status, 0) + 1

        completed = [p for p in payments if p.status == PaymentStatus.COMPLETED]
        pending = [p for p in payments if p.status == PaymentStatus.PENDING]
        transaction_total = _sum_amounts(transactions)

        return PeriodReport(
            period=ReportPeriod(start=start, end=end),
            bank_account_id=bank_account_id,
            bank_transactions=TransactionTotals(
                total=len(transactions),
                total_amount=transaction_total,
                by_status=by_status,
            ),
            expected_payments=ExpectedPaymentTotals(
                total=len(payments),
                total_amount=_sum_amounts(payments),
                received=len(completed),
                pending=len(pending),
            ),
            variance=Variance(
                amount=transaction_total - _sum_amounts(completed),
                match_rate=_percentage(
                    by_status[TransactionStatus.MATCHED], len(transactions)
                ),
            ),
            discrepancies=[
                ReportDiscrepancy(
                    transaction_id=txn.id,
                    posted_date=txn.posted_date,
                    amount=txn.amount,
                    discrepancy=DiscrepancyInfo.model_validate(
                        txn.discrepancy, from_attributes=True
                    ),
                )
                for txn in transactions
                if txn.discrepancy_type is not None
            ],
        )

    # ── Private helpers ──────────────────────────────────────────────

    def _transactions(
        self,
        owner_id: str,
        start: Optional[date] = None,
        end: Optional[date] = None,
        bank_account_id: Optional[str] = None,
    ) -> list[BankTransaction]:
        stmt = select(BankTransaction).where(BankTransaction.owner_id == owner_id)
        if start is not None:
            stmt = stmt.where(BankTransaction.posted_date >= start)
        if end is not None:
            stmt = stmt.where(BankTransaction.posted_date <= end)
        if bank_account_id is not None:
            stmt = stmt.where(BankTransaction.bank_account_id == bank_account_id)
        return list(self.db.scalars(stmt.order_by(BankTransaction.posted_date)).all())

    def _claimed_payment_ids(self, owner_id: str) -> set[str]:
        stmt = (
            select(BankTransaction.matched_payment_id)
            .where(BankTransaction.owner_id == owner_id)
            .where(BankTransaction.status.in_(TransactionStatus.LINKED))
            .where(BankTransaction.matched_payment_id.is_not(None))
        )
        return set(self.db.scalars(stmt).all())
