"""Reporting endpoints.

Trailing-window summary, overdue payments with no matching deposit, and
the period report comparing bank activity with expected payments.
"""

from __future__ import annotations

from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query

from app.api.deps import get_reporter
from app.core.auth import get_current_user_id
from app.core.config import settings
from app.schemas.reports import (
    MissingPaymentsResponse,
    PeriodReport,
    ReconciliationSummary,
)
from app.services.reconciliation.reporting import ReconciliationReporter

router = APIRouter()


@router.get("/summary", response_model=ReconciliationSummary)
def reconciliation_summary(
    period_days: int = Query(
        settings.default_summary_period_days,
        ge=1,
        le=3650,
        description="Trailing window in days",
    ),
    user_id: str = Depends(get_current_user_id),
    reporter: ReconciliationReporter = Depends(get_reporter),
) -> ReconciliationSummary:
    """Status counts, amounts, discrepancy counts and match rate."""
    return reporter.summary(user_id, period_days=period_days)


@router.get("/missing-payments", response_model=MissingPaymentsResponse)
def missing_payments(
    days_overdue: int = Query(
        settings.default_missing_days_overdue,
        ge=0,
        le=3650,
        description="Grace period after the due date",
    ),
    user_id: str = Depends(get_current_user_id),
    reporter: ReconciliationReporter = Depends(get_reporter),
) -> MissingPaymentsResponse:
    """Pending payments overdue by more than ``days_overdue`` days."""
    return reporter.missing_payments(user_id, days_overdue=days_overdue)


@router.get("/report", response_model=PeriodReport)
def period_report(
    start_date: Optional[date] = Query(
        None, description="Defaults to the first day of the current month"
    ),
    end_date: Optional[date] = Query(None, description="Defaults to today"),
    bank_account_id: Optional[str] = Query(None),
    user_id: str = Depends(get_current_user_id),
    reporter: ReconciliationReporter = Depends(get_reporter),
) -> PeriodReport:
    return reporter.period_report(
        user_id, start=start_date, end=end_date, bank_account_id=bank_account_id
    )
