"""API integration tests for the reporting endpoints."""

from __future__ import annotations

from datetime import date, timedelta

BASE = "/api/v1/reconciliation"


def test_summary_empty(client, auth_headers):
    """GET /summary returns a zeroed structure when there is no data."""
    response = client.get(f"{BASE}/summary", headers=auth_headers)

    assert response.status_code == 200
    data = response.json()
    assert data["period"]["days"] == 30
    assert data["transactions"]["total"] == 0
    assert float(data["amounts"]["total"]) == 0
    assert data["discrepancies"]["total"] == 0
    assert data["match_rate"] == 0


def test_summary_counts_imported(client, auth_headers, add_payment):
    today = date.today()
    add_payment("1500.00", today)
    client.post(
        f"{BASE}/import",
        json={
            "bank_account_id": "acct-1",
            "transactions": [
                {"external_id": "a", "date": str(today), "amount": "1500.00"},
                {"external_id": "b", "date": str(today), "amount": "42.00"},
            ],
        },
        headers=auth_headers,
    )

    data = client.get(
        f"{BASE}/summary", params={"period_days": 7}, headers=auth_headers
    ).json()

    assert data["transactions"]["total"] == 2
    assert data["transactions"]["matched"] == 1
    assert data["transactions"]["unmatched"] == 1
    assert data["match_rate"] == 50.0
    assert data["discrepancies"]["by_type"]["unexpected"] == 1


def test_summary_rejects_bad_period(client, auth_headers):
    response = client.get(
        f"{BASE}/summary", params={"period_days": 0}, headers=auth_headers
    )

    assert response.status_code == 422
    assert response.json()["error"]["code"] == "VALIDATION_ERROR"


def test_missing_payments(client, auth_headers, add_payment):
    due = date.today() - timedelta(days=10)
    payment_id = add_payment("800.00", due)
    add_payment("900.00", date.today())

    response = client.get(f"{BASE}/missing-payments", headers=auth_headers)

    assert response.status_code == 200
    data = response.json()
    assert data["count"] == 1
    assert data["missing"][0]["payment_id"] == payment_id
    assert data["missing"][0]["days_overdue"] == 10
    assert float(data["total_amount"]) == 800


def test_report_defaults_and_shape(client, auth_headers):
    response = client.get(f"{BASE}/report", headers=auth_headers)

    assert response.status_code == 200
    data = response.json()
    assert data["period"]["start"] == str(date.today().replace(day=1))
    assert data["period"]["end"] == str(date.today())
    assert data["bank_transactions"]["total"] == 0
    assert data["expected_payments"]["total"] == 0
    assert float(data["variance"]["amount"]) == 0
    assert data["discrepancies"] == []


def test_report_rejects_inverted_range(client, auth_headers):
    response = client.get(
        f"{BASE}/report",
        params={"start_date": "2025-03-31", "end_date": "2025-03-01"},
        headers=auth_headers,
    )

    assert response.status_code == 422
    data = response.json()
    assert data["success"] is False
    assert data["error"]["code"] == "VALIDATION_ERROR"


def test_reports_require_caller_id(client):
    for path in ("summary", "missing-payments", "report"):
        response = client.get(f"{BASE}/{path}")
        assert response.status_code == 401
        assert response.json()["error"]["code"] == "AUTH_REQUIRED"
