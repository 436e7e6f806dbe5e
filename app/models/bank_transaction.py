"""Bank transaction model: one externally reported movement of money."""

from __future__ import annotations

import uuid
from datetime import date, datetime
from decimal import Decimal
from typing import Optional

from sqlalchemy import (
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.core.database import Base
from app.services.reconciliation.discrepancy import Discrepancy


class TransactionStatus:
    """Persisted values of ``BankTransaction.status``."""

    MATCHED = "matched"
    PARTIAL_MATCH = "partial_match"
    UNMATCHED = "unmatched"
    WRITTEN_OFF = "written_off"

    ALL = (MATCHED, PARTIAL_MATCH, UNMATCHED, WRITTEN_OFF)
    LINKED = (MATCHED, PARTIAL_MATCH)


class BankTransaction(Base):
    """A bank-reported transaction awaiting (or done with) reconciliation.

    Rows are created only by import and never deleted; write-off is a
    terminal status.  ``matched_payment_id`` points into the external
    payment ledger and is set exactly when the status is ``matched`` or
    ``partial_match``.
    """

    __tablename__ = "bank_transactions"

    id: Mapped[uuid.UUID] = mapped_column(
        primary_key=True,
        default=uuid.uuid4,
    )
    owner_id: Mapped[str] = mapped_column(
        String(64),
        nullable=False,
        index=True,
    )
    bank_account_id: Mapped[str] = mapped_column(
        String(64),
        nullable=False,
    )
    external_id: Mapped[str] = mapped_column(
        String(128),
        nullable=False,
        comment="Bank's own transaction identifier",
    )
    posted_date: Mapped[date] = mapped_column(
        "date",
        Date,
        nullable=False,
    )
    amount: Mapped[Decimal] = mapped_column(
        Numeric(15, 2),
        nullable=False,
    )
    description: Mapped[str] = mapped_column(
        Text,
        nullable=False,
        default="",
    )
    category: Mapped[Optional[str]] = mapped_column(
        String(100),
    )
    payer_name: Mapped[Optional[str]] = mapped_column(
        String(255),
    )
    payer_reference: Mapped[Optional[str]] = mapped_column(
        String(255),
    )
    status: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default=TransactionStatus.UNMATCHED,
        comment="matched | partial_match | unmatched | written_off",
    )
    matched_payment_id: Mapped[Optional[str]] = mapped_column(
        String(64),
        index=True,
    )
    match_confidence: Mapped[Optional[Decimal]] = mapped_column(
        Numeric(5, 2),
    )
    match_type: Mapped[Optional[str]] = mapped_column(
        String(10),
        comment="exact | rule | fuzzy | manual",
    )
    matched_rule_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        nullable=True,
    )
    discrepancy_type: Mapped[Optional[str]] = mapped_column(
        String(30),
        comment=(
            "amount_mismatch | date_mismatch | duplicate | missing_payment "
            "| unexpected | partial"
        ),
    )
    discrepancy_expected_amount: Mapped[Optional[Decimal]] = mapped_column(
        Numeric(15, 2),
    )
    discrepancy_actual_amount: Mapped[Optional[Decimal]] = mapped_column(
        Numeric(15, 2),
    )
    discrepancy_notes: Mapped[Optional[str]] = mapped_column(
        Text,
    )
    import_batch_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        ForeignKey("import_batches.id"),
        nullable=True,
    )
    imported_at: Mapped[datetime] = mapped_column(
        DateTime,
        nullable=False,
        server_default=func.now(),
    )
    reconciled_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime,
    )
    reconciled_by: Mapped[Optional[str]] = mapped_column(
        String(64),
    )
    version: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
    )

    import_batch: Mapped[Optional[ImportBatch]] = relationship(
        "ImportBatch",
        back_populates="transactions",
        lazy="select",
    )

    __table_args__ = (
        UniqueConstraint(
            "external_id", "bank_account_id", name="uq_bank_tx_external_account"
        ),
        Index("ix_bank_tx_owner_date", "owner_id", "date"),
    )
    __mapper_args__ = {"version_id_col": version}

    # -- Embedded discrepancy value --

    @property
    def discrepancy(self) -> Optional[Discrepancy]:
        if self.discrepancy_type is None:
            return None
        return Discrepancy(
            type=self.discrepancy_type,
            expected_amount=self.discrepancy_expected_amount,
            actual_amount=self.discrepancy_actual_amount,
            notes=self.discrepancy_notes,
        )

    @discrepancy.setter
    def discrepancy(self, value: Optional[Discrepancy]) -> None:
        if value is None:
            self.discrepancy_type = None
            self.discrepancy_expected_amount = None
            self.discrepancy_actual_amount = None
            self.discrepancy_notes = None
            return
        self.discrepancy_type = value.type
        self.discrepancy_expected_amount = value.expected_amount
        self.discrepancy_actual_amount = value.actual_amount
        self.discrepancy_notes = value.notes

    def clear_match(self) -> None:
        """Drop every field set by a match so the row reads as never matched."""
        self.matched_payment_id = None
        self.match_confidence = None
        self.match_type = None
        self.matched_rule_id = None
        self.reconciled_at = None
        self.reconciled_by = None
        self.discrepancy = None

    def __repr__(self) -> str:
        return (
            f"<BankTransaction(external_id={self.external_id!r}, "
            f"amount={self.amount}, status={self.status!r})>"
        )
