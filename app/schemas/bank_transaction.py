"""Pydantic schemas for bank transactions, imports and matching requests."""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import Optional, Union
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator


class DiscrepancyInfo(BaseModel):
    """Embedded discrepancy classification."""

    model_config = ConfigDict(from_attributes=True)

    type: str = Field(
        ...,
        description=(
            "amount_mismatch | date_mismatch | duplicate | missing_payment "
            "| unexpected | partial"
        ),
    )
    expected_amount: Optional[Decimal] = None
    actual_amount: Optional[Decimal] = None
    notes: Optional[str] = None


class ImportedTransaction(BaseModel):
    """One pre-parsed bank record as submitted for import."""

    model_config = ConfigDict(populate_by_name=True)

    external_id: str = Field(
        ...,
        min_length=1,
        max_length=128,
        description="The bank's own identifier for this transaction",
    )
    posted_date: Union[date, datetime] = Field(
        ...,
        alias="date",
        description="Posting date; a full timestamp is reduced to its date",
    )
    amount: Decimal = Field(
        ...,
        max_digits=15,
        decimal_places=2,
        description="Signed amount; incoming money is positive",
    )
    description: str = Field("", max_length=2000)
    category: Optional[str] = Field(None, max_length=100)
    payer_name: Optional[str] = Field(None, max_length=255)
    payer_reference: Optional[str] = Field(None, max_length=255)

    @field_validator("posted_date")
    @classmethod
    def posted_day(cls, value: date) -> date:
        if isinstance(value, datetime):
            return value.date()
        return value


class ImportRequest(BaseModel):
    """Request body for a batch import scoped to one bank account."""

    bank_account_id: str = Field(..., min_length=1, max_length=64)
    transactions: list[ImportedTransaction] = Field(default_factory=list)
    max_transactions: Optional[int] = Field(
        None,
        ge=1,
        description=(
            "Process at most this many records; the rest are reported as "
            "remaining so the caller can resubmit them in a later batch"
        ),
    )


class BankTransactionResponse(BaseModel):
    """Bank transaction as returned by the API."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    bank_account_id: str
    external_id: str
    posted_date: date = Field(..., serialization_alias="date")
    amount: Decimal
    description: str
    category: Optional[str] = None
    payer_name: Optional[str] = None
    payer_reference: Optional[str] = None
    status: str = Field(
        ...,
        description="matched | partial_match | unmatched | written_off",
    )
    matched_payment_id: Optional[str] = None
    match_confidence: Optional[Decimal] = None
    match_type: Optional[str] = None
    matched_rule_id: Optional[UUID] = None
    discrepancy: Optional[DiscrepancyInfo] = None
    import_batch_id: Optional[UUID] = None
    imported_at: datetime
    reconciled_at: Optional[datetime] = None
    reconciled_by: Optional[str] = None


class ImportResponse(BaseModel):
    """Outcome of one import call."""

    batch_id: UUID
    status: str = Field(..., description="completed | partial")
    imported: int = Field(..., description="Transactions stored by this call")
    duplicates: int = Field(
        ...,
        description="Records skipped because their external id was already stored",
    )
    remaining: int = Field(
        0,
        description="Records not processed because of max_transactions",
    )
    errors: list[str] = Field(
        default_factory=list,
        description="Per-transaction matching failures (those rows are unmatched)",
    )
    transactions: list[BankTransactionResponse] = Field(default_factory=list)


class Pagination(BaseModel):
    page: int
    limit: int
    total: int
    pages: int


class TransactionListResponse(BaseModel):
    transactions: list[BankTransactionResponse]
    pagination: Pagination


class MatchSuggestion(BaseModel):
    """A pending payment that could plausibly be paid by the transaction."""

    payment_id: str
    amount: Decimal
    due_date: date
    tenant_name: str = "Unknown"
    property_name: Optional[str] = None
    payment_type: Optional[str] = None
    confidence: int = Field(..., ge=0, le=100)


class TransactionDetailResponse(BaseModel):
    transaction: BankTransactionResponse
    suggestions: list[MatchSuggestion] = Field(default_factory=list)


class ManualMatchRequest(BaseModel):
    transaction_id: UUID
    payment_id: str = Field(..., min_length=1, max_length=64)
    notes: Optional[str] = Field(None, max_length=2000)


class WriteOffRequest(BaseModel):
    transaction_id: UUID
    reason: str = Field(..., min_length=1, max_length=2000)
