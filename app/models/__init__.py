"""SQLAlchemy models for the bank reconciliation engine."""

from app.models.import_batch import ImportBatch
from app.models.bank_transaction import BankTransaction, TransactionStatus
from app.models.rule import ReconciliationRule
from app.models.payment import Payment

__all__ = [
    "ImportBatch",
    "BankTransaction",
    "TransactionStatus",
    "ReconciliationRule",
    "Payment",
]
