"""Shared test fixtures for the bank reconciliation engine tests.

Uses a SQLite file database so tests run without PostgreSQL.
"""

from __future__ import annotations

import os

# Override DATABASE_URL before importing anything from app: the Settings
# model reads .env eagerly via pydantic-settings, and the module-level
# ``engine`` in app.core.database would try to connect to PostgreSQL.
os.environ["DATABASE_URL"] = "sqlite:///./test.db"

from dataclasses import replace
from datetime import date
from decimal import Decimal
from typing import Optional

import pytest
from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker
from fastapi.testclient import TestClient

from app.core.database import Base, get_db
from app.main import app
from app.models.payment import Payment
from app.services.ledger.base import (
    LedgerError,
    PaymentLedger,
    PaymentRecord,
    PaymentStatus,
)

# Use SQLite file-based database for tests (no PostgreSQL needed)
TEST_DATABASE_URL = "sqlite:///./test.db"

OWNER = "owner-1"
OTHER_OWNER = "owner-2"

engine = create_engine(
    TEST_DATABASE_URL,
    connect_args={"check_same_thread": False},
)


# Enable foreign keys for SQLite
@event.listens_for(engine, "connect")
def _set_sqlite_pragma(dbapi_conn, connection_record):
    cursor = dbapi_conn.cursor()
    cursor.execute("PRAGMA foreign_keys=ON;")
    cursor.close()


TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture(scope="function")
def db_session():
    """Create a fresh database for each test."""
    Base.metadata.create_all(bind=engine)
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture(scope="function")
def client(db_session):
    """FastAPI test client with overridden DB dependency."""

    def override_get_db():
        try:
            yield db_session
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture
def auth_headers() -> dict[str, str]:
    return {"X-User-Id": OWNER}


@pytest.fixture
def add_payment(db_session):
    """Factory storing an expected payment and returning its id."""

    def _add(
        amount: str,
        due_date: date,
        owner_id: str = OWNER,
        status: str = "pending",
        payment_id: Optional[str] = None,
        **extra,
    ) -> str:
        payment = Payment(
            owner_id=owner_id,
            amount=Decimal(amount),
            due_date=due_date,
            status=status,
            **extra,
        )
        if payment_id is not None:
            payment.id = payment_id
        db_session.add(payment)
        db_session.commit()
        return payment.id

    return _add


class InMemoryLedger(PaymentLedger):
    """Payment ledger kept in a dict; writes are durable immediately.

    Setting ``fail_writes`` makes ``mark_paid`` and ``mark_pending`` raise.
    """

    shares_transaction = False

    def __init__(self, payments=()):
        self.payments = {p.id: p for p in payments}
        self.fail_writes = False
        self.writes: list[tuple[str, str]] = []

    def add(self, payment_id, amount, due_date, owner_id=OWNER, **extra):
        record = PaymentRecord(
            id=payment_id,
            owner_id=owner_id,
            amount=Decimal(amount),
            due_date=due_date,
            status=extra.pop("status", PaymentStatus.PENDING),
            **extra,
        )
        self.payments[payment_id] = record
        return record

    def _sorted(self, owner_id):
        return sorted(
            (p for p in self.payments.values() if p.owner_id == owner_id),
            key=lambda p: (p.due_date, p.id),
        )

    def find_pending_payment(
        self,
        owner_id,
        amount_min,
        amount_max,
        due_from=None,
        due_to=None,
        property_id=None,
        tenant_id=None,
    ):
        for p in self._sorted(owner_id):
            if p.status != PaymentStatus.PENDING:
                continue
            if not amount_min <= p.amount <= amount_max:
                continue
            if due_from is not None and p.due_date < due_from:
                continue
            if due_to is not None and p.due_date > due_to:
                continue
            if property_id is not None and p.property_id != property_id:
                continue
            if tenant_id is not None and p.tenant_id != tenant_id:
                continue
            return p
        return None

    def get_payment(self, payment_id, owner_id):
        p = self.payments.get(payment_id)
        return p if p is not None and p.owner_id == owner_id else None

    def list_pending_payments(self, owner_id, amount_min, amount_max, limit):
        return [
            p
            for p in self._sorted(owner_id)
            if p.status == PaymentStatus.PENDING
            and amount_min <= p.amount <= amount_max
        ][:limit]

    def list_overdue_payments(self, owner_id, due_before):
        return [
            p
            for p in self._sorted(owner_id)
            if p.status == PaymentStatus.PENDING and p.due_date < due_before
        ]

    def list_payments_due(self, owner_id, start, end):
        return [p for p in self._sorted(owner_id) if start <= p.due_date <= end]

    def mark_paid(self, payment_id, paid_date):
        self._write(payment_id, "paid")
        self.payments[payment_id] = replace(
            self.payments[payment_id],
            status=PaymentStatus.COMPLETED,
            paid_at=paid_date,
        )

    def mark_pending(self, payment_id):
        self._write(payment_id, "pending")
        self.payments[payment_id] = replace(
            self.payments[payment_id], status=PaymentStatus.PENDING, paid_at=None
        )

    def _write(self, payment_id, action):
        if self.fail_writes:
            raise LedgerError(f"ledger unavailable ({action} {payment_id})")
        if payment_id not in self.payments:
            raise LedgerError(f"Payment {payment_id!r} does not exist")
        self.writes.append((action, payment_id))


@pytest.fixture
def memory_ledger() -> InMemoryLedger:
    return InMemoryLedger()
