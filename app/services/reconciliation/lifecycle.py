"""Bank transaction lifecycle: import, auto-match and the manual workflow.

The manager owns every status change of a ``BankTransaction``:

  (import)        -> matched | partial_match | unmatched   (or skipped as duplicate)
  unmatched       -> matched                               (manual match)
  partial_match   -> matched                               (manual match)
  matched         -> unmatched                             (unmatch)
  partial_match   -> unmatched                             (unmatch)
  unmatched       -> written_off                           (write-off, terminal)
  partial_match   -> written_off                           (write-off, terminal)

Manual match and unmatch also flip the payment in the external ledger.
Those two writes must land together: with a ledger that shares our
session they commit as one unit, otherwise the ledger write goes first
and is compensated if the transaction commit fails.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import Any, Callable, Optional

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from app.core.config import Settings
from app.core.errors import (
    InvalidInputError,
    InvalidStateError,
    LedgerWriteError,
    NotFoundError,
)
from app.core.logging import get_logger
from app.models.bank_transaction import BankTransaction, TransactionStatus
from app.models.import_batch import ImportBatch
from app.schemas.bank_transaction import ImportRequest, MatchSuggestion
from app.services.ledger.base import (
    LedgerError,
    PaymentLedger,
    PaymentRecord,
    PaymentStatus,
)
from app.services.reconciliation.discrepancy import (
    detect_discrepancy,
    write_off_discrepancy,
)
from app.services.reconciliation.matcher import (
    MatchDecision,
    MatchingStrategyEvaluator,
)
from app.services.reconciliation.rule_repository import RuleRepository
from app.services.reconciliation.tolerance import (
    days_apart,
    percent_window,
    to_money,
    utcnow,
)

logger = get_logger(__name__)

MANUAL_MATCH = "manual"
AUTO_RECONCILER = "system:auto-match"


@dataclass
class ImportOutcome:
    """Result of ``import_transactions``."""

    batch: ImportBatch
    transactions: list[BankTransaction] = field(default_factory=list)
    duplicates: int = 0
    remaining: int = 0
    errors: list[str] = field(default_factory=list)


class TransactionLifecycleManager:
    """Applies the bank transaction state machine for one owner at a time."""

    MATCHABLE = (TransactionStatus.UNMATCHED, TransactionStatus.PARTIAL_MATCH)

    def __init__(
        self,
        db: Session,
        ledger: PaymentLedger,
        config: Settings,
        evaluator: Optional[MatchingStrategyEvaluator] = None,
        rules: Optional[RuleRepository] = None,
    ) -> None:
        self.db = db
        self.ledger = ledger
        self.config = config
        self.evaluator = evaluator or MatchingStrategyEvaluator(ledger, config)
        self.rules = rules or RuleRepository(db)

    # ── Import ───────────────────────────────────────────────────────

    def import_transactions(
        self, owner_id: str, request: ImportRequest
    ) -> ImportOutcome:
        """Store a batch of bank records, auto-matching each new one.

        Records whose ``(external_id, bank_account_id)`` is already stored
        (or repeated earlier in the same batch) are counted as duplicates
        and skipped.  Each stored transaction is committed on its own, so
        a failure later in the batch never loses earlier rows.
        """
        records = request.transactions
        if len(records) > self.config.import_max_batch_size:
            raise InvalidInputError(
                f"Batch of {len(records)} transactions exceeds the limit of "
                f"{self.config.import_max_batch_size}; split it into smaller batches"
            )

        cutoff = request.max_transactions
        to_process = records[:cutoff] if cutoff is not None else records
        bank_account_id = request.bank_account_id

        batch = ImportBatch(
            id=uuid.uuid4(),
            owner_id=owner_id,
            bank_account_id=bank_account_id,
            status="processing",
            received=len(records),
            remaining=len(records) - len(to_process),
        )
        self.db.add(batch)
        self.db.commit()
        outcome = ImportOutcome(batch=batch, remaining=batch.remaining)

        logger.info(
            "Import started: batch=%s owner=%s account=%s records=%d cutoff=%s",
            batch.id,
            owner_id,
            bank_account_id,
            len(records),
            cutoff,
        )

        try:
            rules = self.rules.list(owner_id, active_only=True)
            seen: set[str] = set()

            for record in to_process:
                if record.external_id in seen or self._is_stored(
                    record.external_id, bank_account_id
                ):
                    outcome.duplicates += 1
                    logger.info(
                        "Duplicate skipped: external_id=%s account=%s",
                        record.external_id,
                        bank_account_id,
                    )
                    continue
                seen.add(record.external_id)

                txn = BankTransaction(
                    id=uuid.uuid4(),
                    owner_id=owner_id,
                    bank_account_id=bank_account_id,
                    external_id=record.external_id,
                    posted_date=record.posted_date,
                    amount=to_money(record.amount),
                    description=record.description,
                    category=record.category,
                    payer_name=record.payer_name,
                    payer_reference=record.payer_reference,
                    import_batch_id=batch.id,
                    imported_at=utcnow(),
                )
                error = self._auto_match(txn, rules, owner_id)
                self._tally(batch, txn, failed=error is not None)
                self.db.add(txn)
                try:
                    self.db.commit()
                except IntegrityError:
                    # Stored concurrently by another import since the dedupe check
                    self.db.rollback()
                    outcome.duplicates += 1
                    logger.warning(
                        "Duplicate detected on insert: external_id=%s account=%s",
                        record.external_id,
                        bank_account_id,
                    )
                    continue
                if error is not None:
                    outcome.errors.append(f"{record.external_id}: {error}")
                outcome.transactions.append(txn)

            self._finalize_batch(batch, outcome)

        except Exception:
            self.db.rollback()
            batch.status = "failed"
            batch.completed_at = utcnow()
            self.db.commit()
            logger.exception("Import failed: batch=%s", batch.id)
            raise

        logger.info(
            "Import complete: batch=%s imported=%d duplicates=%d remaining=%d "
            "errors=%d",
            batch.id,
            len(outcome.transactions),
            outcome.duplicates,
            outcome.remaining,
            len(outcome.errors),
        )
        return outcome

    # ── Queries ──────────────────────────────────────────────────────

    def list_transactions(
        self,
        owner_id: str,
        status: Optional[str] = None,
        bank_account_id: Optional[str] = None,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
        page: int = 1,
        limit: int = 50,
    ) -> tuple[list[BankTransaction], int]:
        """Owner's transactions, newest posted date first, plus the total count."""
        stmt = select(BankTransaction).where(BankTransaction.owner_id == owner_id)
        if status is not None:
            stmt = stmt.where(BankTransaction.status == status)
        if bank_account_id is not None:
            stmt = stmt.where(BankTransaction.bank_account_id == bank_account_id)
        if start_date is not None:
            stmt = stmt.where(BankTransaction.posted_date >= start_date)
        if end_date is not None:
            stmt = stmt.where(BankTransaction.posted_date <= end_date)

        total = self.db.scalar(select(func.count()).select_from(stmt.subquery()))
        items = self.db.scalars(
            stmt.order_by(
                BankTransaction.posted_date.desc(), BankTransaction.imported_at.desc()
            )
            .offset((page - 1) * limit)
            .limit(limit)
        ).all()
        return list(items), total or 0

    def get_transaction(
        self, owner_id: str, transaction_id: uuid.UUID
    ) -> BankTransaction:
        return self._get_owned(owner_id, transaction_id)

    def list_batches(self, owner_id: str, limit: int = 50) -> list[ImportBatch]:
        stmt = (
            select(ImportBatch)
            .where(ImportBatch.owner_id == owner_id)
            .order_by(ImportBatch.created_at.desc())
            .limit(limit)
        )
        return list(self.db.scalars(stmt).all())

    def get_batch(self, owner_id: str, batch_id: uuid.UUID) -> ImportBatch:
        batch = self.db.get(ImportBatch, batch_id)
        if batch is None or batch.owner_id != owner_id:
            raise NotFoundError("Import batch not found")
        return batch

    def suggest_matches(
        self, owner_id: str, transaction: BankTransaction
    ) -> list[MatchSuggestion]:
        """Rank pending payments within +/- 20% of the transaction amount.

        ``confidence = 100 - diff/amount * 50 - days_apart * 2``, floored
        at zero and rounded, best first.
        """
        amount_min, amount_max = percent_window(
            transaction.amount, self.config.suggestion_amount_percent
        )
        candidates = self.ledger.list_pending_payments(
            owner_id, amount_min, amount_max, self.config.suggestion_limit
        )

        suggestions = []
        for payment in candidates:
            diff = abs(payment.amount - transaction.amount)
            ratio = diff / abs(payment.amount) if payment.amount else Decimal("1")
            score = (
                Decimal("100")
                - ratio * 50
                - days_apart(payment.due_date, transaction.posted_date) * 2
            )
            suggestions.append(
                MatchSuggestion(
                    payment_id=payment.id,
                    amount=payment.amount,
                    due_date=payment.due_date,
                    tenant_name=payment.tenant_name or "Unknown",
                    property_name=payment.property_name,
                    payment_type=payment.payment_type,
                    confidence=max(0, round(score)),
                )
            )
        suggestions.sort(key=lambda s: s.confidence, reverse=True)
        return suggestions

    # ── Manual workflow ──────────────────────────────────────────────

    def manual_match(
        self,
        owner_id: str,
        transaction_id: uuid.UUID,
        payment_id: str,
        notes: Optional[str] = None,
    ) -> BankTransaction:
        """Bind a transaction to a payment chosen by the user.

        The payment is marked paid (paid date = posted date) in the same
        unit of work that marks the transaction matched.
        """
        txn = self._get_owned(owner_id, transaction_id, for_update=True)
        if txn.status not in self.MATCHABLE:
            raise InvalidStateError(
                f"Transaction in status {txn.status!r} cannot be matched"
            )

        payment = self.ledger.get_payment(payment_id, owner_id)
        if payment is None:
            raise NotFoundError("Payment not found")
        if payment.status != PaymentStatus.PENDING:
            raise InvalidStateError(
                f"Payment is {payment.status!r}; only pending payments can be matched"
            )
        if self._claimed_elsewhere(owner_id, payment.id, txn.id):
            raise InvalidStateError(
                f"Payment {payment.id} is already matched to another transaction"
            )

        discrepancy = self._detect(txn, payment)
        paid_date = txn.posted_date

        self._write_ledger(
            lambda: self.ledger.mark_paid(payment.id, paid_date),
            f"mark payment {payment.id} paid",
        )

        txn.status = TransactionStatus.MATCHED
        txn.matched_payment_id = payment.id
        txn.match_confidence = Decimal("100")
        txn.match_type = MANUAL_MATCH
        txn.matched_rule_id = None
        txn.reconciled_at = utcnow()
        txn.reconciled_by = owner_id
        txn.discrepancy = discrepancy.with_notes(notes) if discrepancy else None

        self._commit(compensate=lambda: self.ledger.mark_pending(payment.id))

        logger.info(
            "Transaction manually matched: id=%s payment=%s user=%s discrepancy=%s",
            txn.id,
            payment.id,
            owner_id,
            txn.discrepancy_type,
        )
        return txn

    def unmatch(self, owner_id: str, transaction_id: uuid.UUID) -> BankTransaction:
        """Undo a match and revert the payment to pending."""
        txn = self._get_owned(owner_id, transaction_id, for_update=True)
        if txn.status not in TransactionStatus.LINKED or txn.matched_payment_id is None:
            raise InvalidStateError("Transaction is not matched")

        payment_id = txn.matched_payment_id
        restore_paid = self._release_payment(owner_id, txn)

        txn.clear_match()
        txn.status = TransactionStatus.UNMATCHED

        self._commit(compensate=restore_paid)

        logger.info(
            "Transaction unmatched: id=%s payment=%s user=%s",
            txn.id,
            payment_id,
            owner_id,
        )
        return txn

    def write_off(
        self, owner_id: str, transaction_id: uuid.UUID, reason: str
    ) -> BankTransaction:
        """Close a transaction as intentionally unreconciled.  Terminal.

        A matched transaction gives its payment back to the ledger the same
        way ``unmatch`` does.
        """
        txn = self._get_owned(owner_id, transaction_id, for_update=True)
        if txn.status == TransactionStatus.WRITTEN_OFF:
            raise InvalidStateError("Transaction is already written off")

        restore_paid = None
        if txn.status in TransactionStatus.LINKED and txn.matched_payment_id:
            restore_paid = self._release_payment(owner_id, txn)

        txn.clear_match()
        txn.status = TransactionStatus.WRITTEN_OFF
        txn.discrepancy = write_off_discrepancy(txn, reason)
        txn.reconciled_at = utcnow()
        txn.reconciled_by = owner_id

        self._commit(compensate=restore_paid)

        logger.info(
            "Transaction written off: id=%s reason=%r user=%s",
            txn.id,
            reason,
            owner_id,
        )
        return txn

    # ── Private helpers ──────────────────────────────────────────────

    def _auto_match(
        self,
        txn: BankTransaction,
        rules: list[Any],
        owner_id: str,
    ) -> Optional[str]:
        """Set status, match and discrepancy fields on a new transaction.

        Returns an error message if matching failed; the transaction is
        then left unmatched.
        """
        try:
            if not txn.category:
                txn.category = self.evaluator.categorize(txn, rules)

            decision = self.evaluator.find_match(txn, rules, owner_id)
            payment = None
            if decision.found and decision.confidence >= Decimal(
                str(self.config.auto_match_min_confidence)
            ):
                payment = self.ledger.get_payment(decision.payment_id, owner_id)

            if payment is None:
                self._leave_unmatched(txn)
            else:
                self._apply_auto_match(txn, decision, payment)
            return None

        except Exception as exc:
            self.db.rollback()
            logger.exception(
                "Auto-match failed for external_id=%s; storing as unmatched",
                txn.external_id,
            )
            self._leave_unmatched(txn)
            return str(exc) or exc.__class__.__name__

    def _apply_auto_match(
        self,
        txn: BankTransaction,
        decision: MatchDecision,
        payment: PaymentRecord,
    ) -> None:
        exact = decision.confidence == Decimal("100")
        txn.status = (
            TransactionStatus.MATCHED if exact else TransactionStatus.PARTIAL_MATCH
        )
        txn.matched_payment_id = payment.id
        txn.match_confidence = decision.confidence
        txn.match_type = decision.match_type
        txn.matched_rule_id = decision.rule_id
        txn.discrepancy = self._detect(txn, payment)
        if exact:
            txn.reconciled_at = utcnow()
            txn.reconciled_by = AUTO_RECONCILER

    @staticmethod
    def _tally(batch: ImportBatch, txn: BankTransaction, failed: bool) -> None:
        """Fold a new transaction into the batch counters (same commit as the row)."""
        batch.imported += 1
        batch.total_amount += txn.amount
        if txn.status == TransactionStatus.MATCHED:
            batch.matched += 1
            batch.matched_amount += txn.amount
        elif txn.status == TransactionStatus.PARTIAL_MATCH:
            batch.partial_match += 1
        else:
            batch.unmatched += 1
            batch.unmatched_amount += txn.amount
        if failed:
            batch.failed += 1
        if batch.period_start is None or txn.posted_date < batch.period_start:
            batch.period_start = txn.posted_date
        if batch.period_end is None or txn.posted_date > batch.period_end:
            batch.period_end = txn.posted_date

    def _finalize_batch(self, batch: ImportBatch, outcome: ImportOutcome) -> None:
        batch.duplicates = outcome.duplicates
        batch.errors = list(outcome.errors)
        batch.status = "partial" if outcome.remaining else "completed"
        batch.completed_at = utcnow()
        self.db.commit()

    def _leave_unmatched(self, txn: BankTransaction) -> None:
        txn.clear_match()
        txn.status = TransactionStatus.UNMATCHED
        txn.discrepancy = self._detect(txn, None)

    def _detect(self, txn: BankTransaction, payment: Optional[PaymentRecord]):
        return detect_discrepancy(
            txn,
            payment,
            amount_epsilon=Decimal(str(self.config.amount_match_epsilon)),
            date_mismatch_days=self.config.date_mismatch_days,
        )

    def _release_payment(
        self, owner_id: str, txn: BankTransaction
    ) -> Optional[Callable[[], None]]:
        """Revert the payment of a linked transaction to pending.

        Nothing is written while another linked transaction still points at
        the payment.  Returns the compensation that marks it paid again.
        """
        payment_id = txn.matched_payment_id
        before = self.ledger.get_payment(payment_id, owner_id)
        if before is None:
            logger.warning(
                "Matched payment %s no longer in ledger; releasing %s only",
                payment_id,
                txn.id,
            )
            return None
        if before.status != PaymentStatus.COMPLETED:
            return None
        if self._claimed_elsewhere(owner_id, payment_id, txn.id):
            logger.info(
                "Payment %s still matched to another transaction; left paid",
                payment_id,
            )
            return None

        self._write_ledger(
            lambda: self.ledger.mark_pending(payment_id),
            f"revert payment {payment_id} to pending",
        )
        paid_date = before.paid_at or txn.posted_date

        def restore_paid() -> None:
            self.ledger.mark_paid(payment_id, paid_date)

        return restore_paid

    def _claimed_elsewhere(
        self, owner_id: str, payment_id: str, transaction_id: uuid.UUID
    ) -> bool:
        stmt = (
            select(BankTransaction.id)
            .where(BankTransaction.owner_id == owner_id)
            .where(BankTransaction.matched_payment_id == payment_id)
            .where(BankTransaction.status.in_(TransactionStatus.LINKED))
            .where(BankTransaction.id != transaction_id)
        )
        return self.db.scalar(stmt.limit(1)) is not None

    def _is_stored(self, external_id: str, bank_account_id: str) -> bool:
        stmt = (
            select(BankTransaction.id)
            .where(BankTransaction.external_id == external_id)
            .where(BankTransaction.bank_account_id == bank_account_id)
        )
        return self.db.scalar(stmt) is not None

    def _get_owned(
        self,
        owner_id: str,
        transaction_id: uuid.UUID,
        for_update: bool = False,
    ) -> BankTransaction:
        stmt = select(BankTransaction).where(BankTransaction.id == transaction_id)
        if for_update:
            stmt = stmt.with_for_update().execution_options(populate_existing=True)
        txn = self.db.scalars(stmt).first()
        if txn is None or txn.owner_id != owner_id:
            raise NotFoundError("Transaction not found")
        return txn

    def _write_ledger(self, action: Callable[[], None], description: str) -> None:
        try:
            action()
        except (LedgerError, SQLAlchemyError) as exc:
            self.db.rollback()
            logger.error("Ledger write failed (%s): %s", description, exc)
            raise LedgerWriteError(
                f"Payment ledger could not {description}; nothing was changed"
            ) from exc

    def _commit(self, compensate: Optional[Callable[[], None]] = None) -> None:
        """Commit, undoing a standalone ledger write if the commit fails."""
        try:
            self.db.commit()
        except StaleDataError as exc:
            self.db.rollback()
            self._compensate(compensate)
            raise InvalidStateError(
                "Transaction was modified concurrently; reload it and retry"
            ) from exc
        except SQLAlchemyError:
            self.db.rollback()
            self._compensate(compensate)
            logger.exception("Commit failed; transaction change rolled back")
            raise

    def _compensate(self, compensate: Optional[Callable[[], None]]) -> None:
        if compensate is None or self.ledger.shares_transaction:
            # Shared-session ledgers were rolled back together with us
            return
        try:
            compensate()
            logger.warning("Ledger write compensated after failed commit")
        except LedgerError:
            logger.critical(
                "Ledger compensation failed; payment and bank transaction disagree "
                "and need manual repair",
                exc_info=True,
            )
