"""Bank transaction endpoints.

Import batches of bank records, browse and inspect transactions, and drive
the manual workflow (match, unmatch, write-off).
"""

from __future__ import annotations

import math
from datetime import date
from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query

from app.api.deps import get_lifecycle_manager
from app.core.auth import get_current_user_id
from app.core.errors import InvalidInputError
from app.core.logging import get_logger
from app.models.bank_transaction import BankTransaction, TransactionStatus
from app.models.import_batch import ImportBatch
from app.schemas.bank_transaction import (
    BankTransactionResponse,
    ImportRequest,
    ImportResponse,
    ManualMatchRequest,
    Pagination,
    TransactionDetailResponse,
    TransactionListResponse,
    WriteOffRequest,
)
from app.schemas.reports import ImportBatchResponse
from app.services.reconciliation.lifecycle import TransactionLifecycleManager

logger = get_logger(__name__)

router = APIRouter()


@router.post("/import", response_model=ImportResponse, status_code=201)
def import_transactions(
    body: ImportRequest,
    user_id: str = Depends(get_current_user_id),
    manager: TransactionLifecycleManager = Depends(get_lifecycle_manager),
) -> ImportResponse:
    """Import pre-parsed bank transactions and auto-match each new one.

    Duplicates (same ``external_id`` on the same bank account) are skipped
    and counted.  With ``max_transactions`` set, the rest of the batch is
    reported as ``remaining`` and the batch status is ``partial``.
    """
    outcome = manager.import_transactions(user_id, body)
    return ImportResponse(
        batch_id=outcome.batch.id,
        status=outcome.batch.status,
        imported=len(outcome.transactions),
        duplicates=outcome.duplicates,
        remaining=outcome.remaining,
        errors=outcome.errors,
        transactions=[
            BankTransactionResponse.model_validate(txn)
            for txn in outcome.transactions
        ],
    )


@router.get("/transactions", response_model=TransactionListResponse)
def list_transactions(
    status: Optional[str] = Query(
        None, description="matched | partial_match | unmatched | written_off"
    ),
    bank_account_id: Optional[str] = Query(None),
    start_date: Optional[date] = Query(None, description="Posted on or after"),
    end_date: Optional[date] = Query(None, description="Posted on or before"),
    page: int = Query(1, ge=1, description="Page number"),
    limit: int = Query(50, ge=1, le=500, description="Items per page"),
    user_id: str = Depends(get_current_user_id),
    manager: TransactionLifecycleManager = Depends(get_lifecycle_manager),
) -> TransactionListResponse:
    """List the caller's transactions, newest first, with pagination."""
    if status is not None and status not in TransactionStatus.ALL:
        raise InvalidInputError(f"Unknown status filter: {status}")
    if start_date and end_date and start_date > end_date:
        raise InvalidInputError("start_date must not be after end_date")

    items, total = manager.list_transactions(
        user_id,
        status=status,
        bank_account_id=bank_account_id,
        start_date=start_date,
        end_date=end_date,
        page=page,
        limit=limit,
    )
    logger.info(
        "Transactions query: user=%s total=%d page=%d limit=%d returned=%d",
        user_id,
        total,
        page,
        limit,
        len(items),
    )
    return TransactionListResponse(
        transactions=[BankTransactionResponse.model_validate(t) for t in items],
        pagination=Pagination(
            page=page,
            limit=limit,
            total=total,
            pages=math.ceil(total / limit),
        ),
    )


@router.get(
    "/transactions/{transaction_id}", response_model=TransactionDetailResponse
)
def get_transaction(
    transaction_id: UUID,
    user_id: str = Depends(get_current_user_id),
    manager: TransactionLifecycleManager = Depends(get_lifecycle_manager),
) -> TransactionDetailResponse:
    """A single transaction plus pending payments it could plausibly pay."""
    txn = manager.get_transaction(user_id, transaction_id)
    return TransactionDetailResponse(
        transaction=BankTransactionResponse.model_validate(txn),
        suggestions=manager.suggest_matches(user_id, txn),
    )


@router.post("/match", response_model=BankTransactionResponse)
def match_transaction(
    body: ManualMatchRequest,
    user_id: str = Depends(get_current_user_id),
    manager: TransactionLifecycleManager = Depends(get_lifecycle_manager),
) -> BankTransaction:
    """Manually match a transaction to a pending payment."""
    return manager.manual_match(
        user_id, body.transaction_id, body.payment_id, notes=body.notes
    )


@router.post(
    "/transactions/{transaction_id}/unmatch",
    response_model=BankTransactionResponse,
)
def unmatch_transaction(
    transaction_id: UUID,
    user_id: str = Depends(get_current_user_id),
    manager: TransactionLifecycleManager = Depends(get_lifecycle_manager),
) -> BankTransaction:
    """Undo a match; the payment goes back to pending."""
    return manager.unmatch(user_id, transaction_id)


@router.post("/write-off", response_model=BankTransactionResponse)
def write_off_transaction(
    body: WriteOffRequest,
    user_id: str = Depends(get_current_user_id),
    manager: TransactionLifecycleManager = Depends(get_lifecycle_manager),
) -> BankTransaction:
    """Close an unmatched or partially matched transaction for good."""
    return manager.write_off(user_id, body.transaction_id, body.reason)


@router.get("/batches", response_model=List[ImportBatchResponse])
def list_batches(
    limit: int = Query(50, ge=1, le=200),
    user_id: str = Depends(get_current_user_id),
    manager: TransactionLifecycleManager = Depends(get_lifecycle_manager),
) -> list[ImportBatch]:
    """The caller's import batches, most recent first."""
    return manager.list_batches(user_id, limit=limit)


@router.get("/batches/{batch_id}", response_model=ImportBatchResponse)
def get_batch(
    batch_id: UUID,
    user_id: str = Depends(get_current_user_id),
    manager: TransactionLifecycleManager = Depends(get_lifecycle_manager),
) -> ImportBatch:
    return manager.get_batch(user_id, batch_id)
