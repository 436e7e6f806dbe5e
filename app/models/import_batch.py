"""Import batch model: tracks each bank-transaction import call."""

from __future__ import annotations

import uuid
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Optional

from sqlalchemy import Date, DateTime, Integer, JSON, Numeric, String, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.core.database import Base


class ImportBatch(Base):
    """Aggregated outcome of one import call.

    Counters are filled in as the batch is processed; a batch stopped by
    the caller's cutoff ends with status ``partial``, and everything it
    imported before that stays imported.
    """

    __tablename__ = "import_batches"

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
    status: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default="processing",
        comment="processing | completed | partial | failed",
    )
    period_start: Mapped[Optional[date]] = mapped_column(
        Date,
    )
    period_end: Mapped[Optional[date]] = mapped_column(
        Date,
    )
    received: Mapped[int] = mapped_column(Integer, default=0)
    imported: Mapped[int] = mapped_column(Integer, default=0)
    duplicates: Mapped[int] = mapped_column(Integer, default=0)
    matched: Mapped[int] = mapped_column(Integer, default=0)
    partial_match: Mapped[int] = mapped_column(Integer, default=0)
    unmatched: Mapped[int] = mapped_column(Integer, default=0)
    failed: Mapped[int] = mapped_column(Integer, default=0)
    remaining: Mapped[int] = mapped_column(Integer, default=0)
    total_amount: Mapped[Decimal] = mapped_column(
        Numeric(15, 2),
        default=0,
    )
    matched_amount: Mapped[Decimal] = mapped_column(
        Numeric(15, 2),
        default=0,
    )
    unmatched_amount: Mapped[Decimal] = mapped_column(
        Numeric(15, 2),
        default=0,
    )
    errors: Mapped[Optional[list[Any]]] = mapped_column(
        JSON,
        nullable=True,
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime,
        server_default=func.now(),
    )
    completed_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime,
        nullable=True,
    )

    # -- Relationships --
    transactions: Mapped[list[BankTransaction]] = relationship(
        "BankTransaction",
        back_populates="import_batch",
        lazy="select",
    )

    def __repr__(self) -> str:
        return (
            f"<ImportBatch(id={self.id!r}, status={self.status!r}, "
            f"imported={self.imported}, duplicates={self.duplicates})>"
        )
