"""Pydantic schemas for summaries, missing-payment checks and period reports."""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from app.schemas.bank_transaction import DiscrepancyInfo


class StatusCounts(BaseModel):
    total: int = 0
    matched: int = 0
    partial_match: int = 0
    unmatched: int = 0
    written_off: int = 0


class AmountTotals(BaseModel):
    total: Decimal = Decimal("0")
    matched: Decimal = Decimal("0")
    unmatched: Decimal = Decimal("0")


class DiscrepancyCounts(BaseModel):
    total: int = 0
    by_type: dict[str, int] = Field(default_factory=dict)


class SummaryPeriod(BaseModel):
    days: int
    start: date
    end: date


class ReconciliationSummary(BaseModel):
    """Trailing-window overview of an owner's bank transactions."""

    period: SummaryPeriod
    transactions: StatusCounts
    amounts: AmountTotals
    discrepancies: DiscrepancyCounts
    match_rate: float = Field(
        0.0,
        description="Percentage of transactions matched or partially matched",
    )


class MissingPayment(BaseModel):
    payment_id: str
    amount: Decimal
    due_date: date
    days_overdue: int
    tenant_name: str = "Unknown"
    property_name: Optional[str] = None
    payment_type: Optional[str] = None


class MissingPaymentsResponse(BaseModel):
    missing: list[MissingPayment] = Field(default_factory=list)
    count: int = 0
    total_amount: Decimal = Decimal("0")


class ReportPeriod(BaseModel):
    start: date
    end: date


class TransactionTotals(BaseModel):
    total: int = 0
    total_amount: Decimal = Decimal("0")
    by_status: dict[str, int] = Field(default_factory=dict)


class ExpectedPaymentTotals(BaseModel):
    total: int = 0
    total_amount: Decimal = Decimal("0")
    received: int = 0
    pending: int = 0


class Variance(BaseModel):
    amount: Decimal = Field(
        Decimal("0"),
        description="Sum of transaction amounts minus sum of completed payments",
    )
    match_rate: float = Field(0.0, description="Percentage of transactions matched")


class ReportDiscrepancy(BaseModel):
    transaction_id: UUID
    posted_date: date = Field(..., serialization_alias="date")
    amount: Decimal
    discrepancy: DiscrepancyInfo


class PeriodReport(BaseModel):
    period: ReportPeriod
    bank_account_id: Optional[str] = None
    bank_transactions: TransactionTotals
    expected_payments: ExpectedPaymentTotals
    variance: Variance
    discrepancies: list[ReportDiscrepancy] = Field(default_factory=list)


class ImportBatchResponse(BaseModel):
    """Stored record of one import call."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    bank_account_id: str
    status: str = Field(..., description="processing | completed | partial | failed")
    period_start: Optional[date] = None
    period_end: Optional[date] = None
    received: int = 0
    imported: int = 0
    duplicates: int = 0
    matched: int = 0
    partial_match: int = 0
    unmatched: int = 0
    failed: int = 0
    remaining: int = 0
    total_amount: Optional[Decimal] = None
    matched_amount: Optional[Decimal] = None
    unmatched_amount: Optional[Decimal] = None
    errors: Optional[list[str]] = None
    created_at: datetime
    completed_at: Optional[datetime] = None
