"""Request-scoped service wiring shared by the route modules."""

from __future__ import annotations

from fastapi import Depends
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.database import get_db
from app.services.ledger.base import PaymentLedger
from app.services.ledger.sql_ledger import SqlPaymentLedger
from app.services.reconciliation.lifecycle import TransactionLifecycleManager
from app.services.reconciliation.reporting import ReconciliationReporter
from app.services.reconciliation.rule_repository import RuleRepository


def get_payment_ledger(db: Session = Depends(get_db)) -> PaymentLedger:
    return SqlPaymentLedger(db)


def get_lifecycle_manager(
    db: Session = Depends(get_db),
    ledger: PaymentLedger = Depends(get_payment_ledger),
) -> TransactionLifecycleManager:
    return TransactionLifecycleManager(db=db, ledger=ledger, config=settings)


def get_rule_repository(db: Session = Depends(get_db)) -> RuleRepository:
    return RuleRepository(db)


def get_reporter(
    db: Session = Depends(get_db),
    ledger: PaymentLedger = Depends(get_payment_ledger),
) -> ReconciliationReporter:
    return ReconciliationReporter(db=db, ledger=ledger)
