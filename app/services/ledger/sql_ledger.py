"""SQLAlchemy-backed payment ledger over the ``payments`` table.

Shares the caller's session, so a manual match that marks a payment paid
and updates the bank transaction commits (or rolls back) as one unit.
"""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from typing import Optional

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.logging import get_logger
from app.models.payment import Payment
from app.services.ledger.base import (
    LedgerError,
    PaymentLedger,
    PaymentRecord,
    PaymentStatus,
)

logger = get_logger(__name__)


def _to_record(payment: Payment) -> PaymentRecord:
    return PaymentRecord(
        id=payment.id,
        owner_id=payment.owner_id,
        amount=payment.amount,
        due_date=payment.due_date,
        status=payment.status,
        paid_at=payment.paid_at,
        property_id=payment.property_id,
        tenant_id=payment.tenant_id,
        tenant_name=payment.tenant_name,
        property_name=payment.property_name,
        payment_type=payment.payment_type,
    )


class SqlPaymentLedger(PaymentLedger):
    """Payment ledger reading and writing through an ORM session."""

    shares_transaction = True

    def __init__(self, db: Session) -> None:
        self.db = db

    # ── Lookups ──────────────────────────────────────────────────────

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
        stmt = (
            select(Payment)
            .where(Payment.owner_id == owner_id)
            .where(Payment.status == PaymentStatus.PENDING)
            .where(Payment.amount >= amount_min)
            .where(Payment.amount <= amount_max)
        )
        if due_from is not None:
            stmt = stmt.where(Payment.due_date >= due_from)
        if due_to is not None:
            stmt = stmt.where(Payment.due_date <= due_to)
        if property_id is not None:
            stmt = stmt.where(Payment.property_id == property_id)
        if tenant_id is not None:
            stmt = stmt.where(Payment.tenant_id == tenant_id)

        payment = self._first(stmt.order_by(Payment.due_date, Payment.id))
        return _to_record(payment) if payment is not None else None

    def get_payment(self, payment_id: str, owner_id: str) -> Optional[PaymentRecord]:
        payment = self._first(
            select(Payment)
            .where(Payment.id == payment_id)
            .where(Payment.owner_id == owner_id)
        )
        return _to_record(payment) if payment is not None else None

    def list_pending_payments(
        self,
        owner_id: str,
        amount_min: Decimal,
        amount_max: Decimal,
        limit: int,
    ) -> list[PaymentRecord]:
        stmt = (
            select(Payment)
            .where(Payment.owner_id == owner_id)
            .where(Payment.status == PaymentStatus.PENDING)
            .where(Payment.amount >= amount_min)
            .where(Payment.amount <= amount_max)
            .order_by(Payment.due_date, Payment.id)
            .limit(limit)
        )
        return [_to_record(p) for p in self._all(stmt)]

    def list_overdue_payments(
        self, owner_id: str, due_before: date
    ) -> list[PaymentRecord]:
        stmt = (
            select(Payment)
            .where(Payment.owner_id == owner_id)
            .where(Payment.status == PaymentStatus.PENDING)
            .where(Payment.due_date < due_before)
            .order_by(Payment.due_date, Payment.id)
        )
        return [_to_record(p) for p in self._all(stmt)]

    def list_payments_due(
        self, owner_id: str, start: date, end: date
    ) -> list[PaymentRecord]:
        stmt = (
            select(Payment)
            .where(Payment.owner_id == owner_id)
            .where(Payment.due_date >= start)
            .where(Payment.due_date <= end)
            .order_by(Payment.due_date, Payment.id)
        )
        return [_to_record(p) for p in self._all(stmt)]

    # ── Mutations ────────────────────────────────────────────────────

    def mark_paid(self, payment_id: str, paid_date: date) -> None:
        payment = self._load_for_write(payment_id)
        payment.status = PaymentStatus.COMPLETED
        payment.paid_at = paid_date
        self._flush()
        logger.info("Payment marked paid: id=%s paid_at=%s", payment_id, paid_date)

    def mark_pending(self, payment_id: str) -> None:
        payment = self._load_for_write(payment_id)
        payment.status = PaymentStatus.PENDING
        payment.paid_at = None
        self._flush()
        logger.info("Payment reverted to pending: id=%s", payment_id)

    # ── Private helpers ──────────────────────────────────────────────

    def _first(self, stmt) -> Optional[Payment]:
        try:
            return self.db.scalars(stmt).first()
        except SQLAlchemyError as exc:
            raise LedgerError(f"Payment lookup failed: {exc}") from exc

    def _all(self, stmt) -> list[Payment]:
        try:
            return list(self.db.scalars(stmt).all())
        except SQLAlchemyError as exc:
            raise LedgerError(f"Payment lookup failed: {exc}") from exc

    def _load_for_write(self, payment_id: str) -> Payment:
        payment = self._first(
            select(Payment).where(Payment.id == payment_id).with_for_update()
        )
        if payment is None:
            raise LedgerError(f"Payment {payment_id!r} does not exist")
        return payment

    def _flush(self) -> None:
        try:
            self.db.flush()
        except SQLAlchemyError as exc:
            raise LedgerError(f"Payment update failed: {exc}") from exc
