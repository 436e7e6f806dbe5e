"""Reconciliation rule model: user-authored, priority-ordered matching heuristics."""

from __future__ import annotations

import uuid
from datetime import datetime
from decimal import Decimal
from typing import Any, Optional

from sqlalchemy import Boolean, DateTime, Index, Integer, Numeric, String, func
from sqlalchemy.orm import Mapped, mapped_column

from app.core.database import Base


class ReconciliationRule(Base):
    """A rule evaluated (lowest ``priority`` first) during auto-matching.

    Conditions are AND-combined when present.  A rule with
    ``auto_match=False`` can still categorise a transaction but never
    causes a match.
    """

    __tablename__ = "reconciliation_rules"

    id: Mapped[uuid.UUID] = mapped_column(
        primary_key=True,
        default=uuid.uuid4,
    )
    owner_id: Mapped[str] = mapped_column(
        String(64),
        nullable=False,
        index=True,
    )
    name: Mapped[str] = mapped_column(
        String(100),
        nullable=False,
    )
    priority: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=50,
    )
    is_active: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=True,
    )

    # -- Conditions --
    description_pattern: Mapped[Optional[str]] = mapped_column(
        String(255),
    )
    amount_min: Mapped[Optional[Decimal]] = mapped_column(
        Numeric(15, 2),
    )
    amount_max: Mapped[Optional[Decimal]] = mapped_column(
        Numeric(15, 2),
    )
    payer_name_pattern: Mapped[Optional[str]] = mapped_column(
        String(255),
    )

    # -- Actions --
    match_to_property_id: Mapped[Optional[str]] = mapped_column(
        String(64),
    )
    match_to_tenant_id: Mapped[Optional[str]] = mapped_column(
        String(64),
    )
    category: Mapped[Optional[str]] = mapped_column(
        String(100),
    )
    auto_match: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=False,
    )
    tolerance: Mapped[Decimal] = mapped_column(
        Numeric(15, 2),
        nullable=False,
        default=Decimal("0.50"),
        comment="Absolute amount tolerance used when auto-matching",
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime,
        server_default=func.now(),
    )
    updated_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime,
        onupdate=func.now(),
    )

    __table_args__ = (Index("ix_rule_owner_priority", "owner_id", "priority"),)

    @property
    def conditions(self) -> dict[str, Any]:
        amount_range = None
        if self.amount_min is not None and self.amount_max is not None:
            amount_range = {"min": self.amount_min, "max": self.amount_max}
        return {
            "description_pattern": self.description_pattern,
            "amount_range": amount_range,
            "payer_name_pattern": self.payer_name_pattern,
        }

    @property
    def actions(self) -> dict[str, Any]:
        return {
            "match_to_property_id": self.match_to_property_id,
            "match_to_tenant_id": self.match_to_tenant_id,
            "category": self.category,
            "auto_match": self.auto_match,
            "tolerance": self.tolerance,
        }

    def __repr__(self) -> str:
        return (
            f"<ReconciliationRule(name={self.name!r}, priority={self.priority}, "
            f"auto_match={self.auto_match})>"
        )
