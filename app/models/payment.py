"""Payment model: expected payments owned by the surrounding payment ledger.

The reconciliation engine never touches this table directly; it goes
through ``SqlPaymentLedger``, which is the only module that reads or
writes these rows.
"""

from __future__ import annotations

import uuid
from datetime import date, datetime
from decimal import Decimal
from typing import Optional

from sqlalchemy import Date, DateTime, Index, Numeric, String, func
from sqlalchemy.orm import Mapped, mapped_column

from app.core.database import Base


def _payment_id() -> str:
    return f"pay_{uuid.uuid4().hex}"


class Payment(Base):
    """An expected payment (rent, deposit, fee...) for a property owner."""

    __tablename__ = "payments"

    id: Mapped[str] = mapped_column(
        String(64),
        primary_key=True,
        default=_payment_id,
    )
    owner_id: Mapped[str] = mapped_column(
        String(64),
        nullable=False,
        index=True,
        comment="Property owner the payment is due to",
    )
    property_id: Mapped[Optional[str]] = mapped_column(
        String(64),
    )
    tenant_id: Mapped[Optional[str]] = mapped_column(
        String(64),
    )
    tenant_name: Mapped[Optional[str]] = mapped_column(
        String(255),
    )
    property_name: Mapped[Optional[str]] = mapped_column(
        String(255),
    )
    payment_type: Mapped[Optional[str]] = mapped_column(
        String(30),
        comment="rent | deposit | fee | other",
    )
    amount: Mapped[Decimal] = mapped_column(
        Numeric(15, 2),
        nullable=False,
    )
    due_date: Mapped[date] = mapped_column(
        Date,
        nullable=False,
    )
    status: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default="pending",
        comment="pending | completed | failed | refunded",
    )
    paid_at: Mapped[Optional[date]] = mapped_column(
        Date,
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime,
        server_default=func.now(),
    )
    updated_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime,
        onupdate=func.now(),
    )

    __table_args__ = (
        Index("ix_payment_owner_status_due", "owner_id", "status", "due_date"),
    )

    def __repr__(self) -> str:
        return (
            f"<Payment(id={self.id!r}, amount={self.amount}, "
            f"due_date={self.due_date}, status={self.status!r})>"
        )
