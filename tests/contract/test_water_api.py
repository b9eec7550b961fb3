"""Contract tests for the water billing endpoints."""

from decimal import Decimal

import pytest

pytestmark = pytest.mark.contract

BASE = "/water/clients/MTC"


@pytest.fixture
def readings(api_client, mtc):
    api_client.post(f"{BASE}/readings/2025/0", json={"readings": {"101": 100, "102": 200}})
    api_client.post(f"{BASE}/readings/2025/1", json={"readings": {"101": 110, "102": 215}})
    return api_client


@pytest.fixture
def billed(readings):
    response = readings.post(
        f"{BASE}/bills/generate", json={"year": 2025, "month": 1, "bill_date": "2025-02-01"}
    )
    assert response.status_code == 201
    return readings


class TestReadingsEndpoints:
    """Readings upsert and fetch."""

    def test_save_and_get(self, api_client, mtc):
        response = api_client.post(f"{BASE}/readings/2025/0", json={"readings": {"101": 100}})

        assert response.status_code == 201
        assert response.json()["saved"] == 1

        data = api_client.get(f"{BASE}/readings/2025/0").json()
        assert Decimal(str(data["readings"]["101"])) == Decimal("100")

    def test_unknown_client(self, api_client, mtc):
        response = api_client.get("/water/clients/NOPE/readings/2025/0")

        assert response.status_code == 404
        assert response.json()["error"]["code"] == "not_found"

    def test_unknown_unit(self, api_client, mtc):
        response = api_client.post(f"{BASE}/readings/2025/0", json={"readings": {"999": 1}})

        assert response.status_code == 404


class TestBillEndpoints:
    """Generation and queries."""

    def test_generate(self, readings):
        response = readings.post(
            f"{BASE}/bills/generate", json={"year": 2025, "month": 1, "bill_date": "2025-02-01"}
        )

        assert response.status_code == 201
        data = response.json()
        assert data["period"] == "2025-01"
        assert data["bills_generated"] == 2
        assert Decimal(data["total_amount"]) == Decimal("1250.00")
        assert {bill["unit_id"] for bill in data["bills"]} == {"101", "102"}
        assert data["bills"][0]["status"] == "unpaid"

    def test_generate_twice_conflicts(self, billed):
        response = billed.post(
            f"{BASE}/bills/generate", json={"year": 2025, "month": 1, "bill_date": "2025-02-01"}
        )

        assert response.status_code == 409
        assert response.json()["error"]["code"] == "conflict"

    def test_generate_invalid_month(self, readings):
        response = readings.post(f"{BASE}/bills/generate", json={"year": 2025, "month": 12})

        assert response.status_code == 422

    def test_month_and_year_bills(self, billed):
        month = billed.get(f"{BASE}/bills/2025/1").json()
        year = billed.get(f"{BASE}/bills/2025").json()

        assert len(month) == 2
        assert list(year["months"]) == ["2025-01"]
        assert len(year["months"]["2025-01"]) == 2

    def test_unpaid_bills(self, billed):
        data = billed.get(f"{BASE}/bills/unpaid/102", params={"as_of": "2025-03-15"}).json()

        assert len(data["bills"]) == 1
        assert Decimal(str(data["total_penalty_due"])) == Decimal("37.50")

    def test_recalculate_penalties(self, billed):
        response = billed.post(
            f"{BASE}/bills/recalculate-penalties", json={"as_of": "2025-04-01"}
        )

        assert response.status_code == 200
        data = response.json()
        assert data["updated_bills"] == 2
        assert Decimal(data["total_penalties"]) == Decimal("128.13")

        summary = billed.get(f"{BASE}/bills/penalty-summary", params={"unit_id": "101"}).json()
        assert Decimal(str(summary["total_penalties"])) == Decimal("51.25")

    def test_recalculate_scoped(self, billed):
        data = billed.post(
            f"{BASE}/bills/recalculate-penalties",
            json={"as_of": "2025-04-01", "unit_ids": ["101"]},
        ).json()

        assert data["processed_bills"] == 1
        assert data["unit_scope"] == ["101"]


class TestWaterPaymentEndpoints:
    """Preview, record and history."""

    def test_preview(self, billed):
        response = billed.post(
            f"{BASE}/payments/preview",
            json={"unit_id": "101", "amount": "600", "payment_date": "2025-02-05"},
        )

        assert response.status_code == 200
        data = response.json()
        assert Decimal(data["total_applied"]) == Decimal("500.00")
        assert Decimal(data["new_credit_balance"]) == Decimal("100.00")
        assert data["bill_payments"][0]["new_status"] == "paid"

    def test_record_and_history(self, billed):
        response = billed.post(
            f"{BASE}/payments/record",
            json={
                "unit_id": "101",
                "amount": "600",
                "payment_date": "2025-02-05",
                "payment_method": "transfer",
                "reference": "T-1",
            },
        )

        assert response.status_code == 201
        data = response.json()
        assert data["payment_type"] == "bills_paid"

        history = billed.get(f"{BASE}/payments/history/101", params={"year": 2025}).json()
        assert len(history) == 1
        assert history[0]["transaction_id"] == data["transaction_id"]
        assert history[0]["reference"] == "T-1"

    def test_record_zero_amount_rejected(self, billed):
        response = billed.post(
            f"{BASE}/payments/record",
            json={
                "unit_id": "101",
                "amount": "0",
                "payment_date": "2025-02-05",
                "payment_method": "cash",
            },
        )

        assert response.status_code == 422


class TestWaterConfigEndpoints:
    """Billing configuration."""

    def test_get_and_update(self, api_client, mtc):
        config = api_client.get(f"{BASE}/config").json()
        assert Decimal(config["rate_per_m3"]) == Decimal("50.00")

        response = api_client.put(
            f"{BASE}/config",
            json={"penalty_rate": "0.03", "penalty_days": 15, "rate_per_m3": "60"},
        )

        assert response.status_code == 200
        assert response.json()["penalty_days"] == 15
        assert Decimal(api_client.get(f"{BASE}/config").json()["rate_per_m3"]) == Decimal("60")

    def test_missing_config(self, api_client, avii):
        response = api_client.get("/water/clients/AVII/config")

        assert response.status_code == 422
        assert response.json()["error"]["code"] == "config_error"
