"""Tests for the SQLAlchemy-backed payment ledger."""

from __future__ import annotations

from datetime import date
from decimal import Decimal

import pytest

from app.models.payment import Payment
from app.services.ledger.base import LedgerError, PaymentStatus
from app.services.ledger.sql_ledger import SqlPaymentLedger

OWNER = "owner-1"


@pytest.fixture
def ledger(db_session) -> SqlPaymentLedger:
    return SqlPaymentLedger(db_session)


class TestLookups:
    def test_find_pending_respects_ranges(self, ledger, add_payment) -> None:
        add_payment("100.00", date(2024, 1, 1))
        target = add_payment("150.00", date(2024, 1, 10))
        add_payment("150.00", date(2024, 2, 10))

        found = ledger.find_pending_payment(
            OWNER,
            Decimal("140"),
            Decimal("160"),
            due_from=date(2024, 1, 5),
            due_to=date(2024, 1, 15),
        )

        assert found.id == target
        assert found.amount == Decimal("150.00")

    def test_find_pending_earliest_due_first(self, ledger, add_payment) -> None:
        add_payment("150.00", date(2024, 3, 1))
        earliest = add_payment("150.00", date(2024, 1, 1))

        found = ledger.find_pending_payment(OWNER, Decimal("150"), Decimal("150"))

        assert found.id == earliest

    def test_find_pending_scopes(self, ledger, add_payment) -> None:
        add_payment("150.00", date(2024, 1, 1), property_id="A", tenant_id="T1")
        target = add_payment(
            "150.00", date(2024, 1, 2), property_id="B", tenant_id="T2"
        )

        found = ledger.find_pending_payment(
            OWNER, Decimal("150"), Decimal("150"), property_id="B"
        )
        assert found.id == target
        assert (
            ledger.find_pending_payment(
                OWNER, Decimal("150"), Decimal("150"), property_id="A", tenant_id="T2"
            )
            is None
        )

    def test_find_pending_skips_completed_and_foreign(
        self, ledger, add_payment
    ) -> None:
        add_payment("150.00", date(2024, 1, 1), status="completed")
        add_payment("150.00", date(2024, 1, 1), owner_id="owner-2")

        assert ledger.find_pending_payment(OWNER, Decimal("0"), Decimal("999")) is None

    def test_get_payment_checks_owner(self, ledger, add_payment) -> None:
        payment_id = add_payment("150.00", date(2024, 1, 1), tenant_name="Ana")

        assert ledger.get_payment(payment_id, OWNER).tenant_name == "Ana"
        assert ledger.get_payment(payment_id, "owner-2") is None
        assert ledger.get_payment("pay_missing", OWNER) is None

    def test_list_pending_limit(self, ledger, add_payment) -> None:
        for day in range(1, 8):
            add_payment("100.00", date(2024, 1, day))

        found = ledger.list_pending_payments(OWNER, Decimal("90"), Decimal("110"), 5)

        assert len(found) == 5
        assert [p.due_date.day for p in found] == [1, 2, 3, 4, 5]

    def test_list_overdue(self, ledger, add_payment) -> None:
        old = add_payment("100.00", date(2024, 1, 1))
        add_payment("100.00", date(2024, 1, 1), status="completed")
        add_payment("100.00", date(2024, 1, 20))

        overdue = ledger.list_overdue_payments(OWNER, due_before=date(2024, 1, 20))

        assert [p.id for p in overdue] == [old]

    def test_list_payments_due_any_status(self, ledger, add_payment) -> None:
        add_payment("100.00", date(2024, 1, 1), status="completed")
        add_payment("200.00", date(2024, 1, 31))
        add_payment("300.00", date(2024, 2, 1))

        due = ledger.list_payments_due(OWNER, date(2024, 1, 1), date(2024, 1, 31))

        assert [p.amount for p in due] == [Decimal("100.00"), Decimal("200.00")]


class TestMutations:
    def test_mark_paid_and_pending(self, ledger, add_payment, db_session) -> None:
        payment_id = add_payment("100.00", date(2024, 1, 1))

        ledger.mark_paid(payment_id, date(2024, 1, 3))
        db_session.commit()
        payment = db_session.get(Payment, payment_id)
        assert payment.status == PaymentStatus.COMPLETED
        assert payment.paid_at == date(2024, 1, 3)

        ledger.mark_pending(payment_id)
        db_session.commit()
        payment = db_session.get(Payment, payment_id)
        assert payment.status == PaymentStatus.PENDING
        assert payment.paid_at is None

    def test_mark_paid_unknown_payment(self, ledger) -> None:
        with pytest.raises(LedgerError):
            ledger.mark_paid("pay_missing", date(2024, 1, 3))

    def test_writes_join_the_session_transaction(
        self, ledger, add_payment, db_session
    ) -> None:
        payment_id = add_payment("100.00", date(2024, 1, 1))

        ledger.mark_paid(payment_id, date(2024, 1, 3))
        db_session.rollback()

        assert db_session.get(Payment, payment_id).status == PaymentStatus.PENDING
        assert ledger.shares_transaction is True
