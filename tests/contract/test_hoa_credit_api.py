"""Contract tests for HOA dues and credit endpoints."""

from decimal import Decimal

import pytest

from sams.services.hoa_dues_service import HOADuesService

pytestmark = pytest.mark.contract


@pytest.fixture
def dues(db_session, mtc, api_client):
    HOADuesService(db_session).get_or_create_year("MTC", "101", 2025)
    HOADuesService(db_session).get_or_create_year("MTC", "102", 2025)
    return api_client


class TestHOADuesEndpoints:
    """Dues queries and payments."""

    def test_year_dues(self, dues):
        response = dues.get("/hoadues/MTC/year/2025", params={"as_of": "2025-03-15"})

        assert response.status_code == 200
        data = response.json()
        assert [d["unit_id"] for d in data] == ["101", "102"]
        assert len(data[0]["months"]) == 12
        assert data[0]["status"]["status"] == "behind"
        assert data[0]["next_month_due"]["label"] == "Jan 2025"

    def test_unit_dues_missing_year(self, dues):
        response = dues.get("/hoadues/MTC/unit/101/2030")

        assert response.status_code == 404
        assert response.json()["error"]["code"] == "not_found"

    def test_preview_payment(self, dues):
        response = dues.post(
            "/hoadues/MTC/payment/102/2025/preview",
            json={"amount": "2152.50", "payment_date": "2025-03-01"},
        )

        assert response.status_code == 200
        assert Decimal(response.json()["total_penalties"]) == Decimal("152.50")

    def test_record_payment(self, dues):
        response = dues.post(
            "/hoadues/MTC/payment/101/2025",
            json={"amount": "2500", "payment_date": "2025-01-05", "payment_method": "cash"},
        )

        assert response.status_code == 201
        assert len(response.json()["distribution"]["bill_payments"]) == 3

        unit = dues.get("/hoadues/MTC/unit/101/2025", params={"as_of": "2025-03-15"}).json()
        assert [m["status"] for m in unit["months"][:3]] == ["paid", "paid", "partial"]
        assert Decimal(unit["status"]["balance"]) == Decimal("500.00")
        assert unit["summary"]["paid_months"] == [0, 1]

    def test_record_requires_method(self, dues):
        response = dues.post(
            "/hoadues/MTC/payment/101/2025",
            json={"amount": "100", "payment_date": "2025-01-05", "payment_method": ""},
        )

        assert response.status_code == 422


class TestCreditEndpoints:
    """Credit balance and history."""

    def test_balance_defaults_to_zero(self, api_client, mtc):
        response = api_client.get("/credit/MTC/101")

        assert response.status_code == 200
        data = response.json()
        assert Decimal(data["balance"]) == Decimal("0")
        assert data["last_updated"] is None

    def test_adjust_and_history(self, api_client, mtc):
        api_client.post("/credit/MTC/101", json={"amount": "500", "note": "Overpayment"})
        response = api_client.post("/credit/MTC/101", json={"amount": "-200"})

        assert response.status_code == 200
        assert Decimal(response.json()["balance"]) == Decimal("300.00")

        history = api_client.get("/credit/MTC/101/history", params={"limit": 1}).json()
        assert len(history) == 1
        assert Decimal(history[0]["amount"]) == Decimal("-200.00")

    def test_insufficient_credit(self, api_client, mtc):
        response = api_client.post("/credit/MTC/101", json={"amount": "-50"})

        assert response.status_code == 400
        assert response.json()["error"]["code"] == "insufficient_credit"

    def test_zero_adjustment(self, api_client, mtc):
        response = api_client.post("/credit/MTC/101", json={"amount": "0"})

        assert response.status_code == 400
        assert response.json()["error"]["code"] == "validation_error"

    def test_history_entry(self, api_client, mtc):
        response = api_client.post(
            "/credit/MTC/101/history",
            json={"amount": "-400", "entry_date": "2024-12-31", "note": "Correction"},
        )

        assert response.status_code == 201
        assert Decimal(response.json()["balance_after"]) == Decimal("-400.00")

    def test_history_limit_bounds(self, api_client, mtc):
        response = api_client.get("/credit/MTC/101/history", params={"limit": 0})

        assert response.status_code == 422
