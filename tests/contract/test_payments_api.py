"""Contract tests for unified payment, transaction and admin endpoints."""

import json
from datetime import date
from decimal import Decimal

import pytest

from sams.config import get_settings
from sams.services.hoa_dues_service import HOADuesService
from sams.services.water_bills_service import WaterBillsService

pytestmark = pytest.mark.contract


@pytest.fixture
def unit_with_bills(db_session, mtc, api_client):
    HOADuesService(db_session).get_or_create_year("MTC", "101", 2025)
    bills = WaterBillsService(db_session)
    bills.save_readings("MTC", 2025, 0, {"101": Decimal("100")})
    bills.save_readings("MTC", 2025, 1, {"101": Decimal("110")})
    bills.generate_bills("MTC", 2025, 1, bill_date=date(2025, 2, 1))
    return api_client


class TestHealth:
    def test_health(self, api_client):
        response = api_client.get("/health")

        assert response.status_code == 200
        assert response.json() == {"status": "ok"}


class TestUnifiedPaymentEndpoints:
    """Cross-module payments."""

    def test_preview(self, unit_with_bills):
        response = unit_with_bills.post(
            "/payments/unified/MTC/preview",
            json={"unit_id": "101", "amount": "2600", "payment_date": "2025-02-05"},
        )

        assert response.status_code == 200
        data = response.json()
        assert Decimal(data["hoa"]["total_paid"]) == Decimal("2100.00")
        assert Decimal(data["water"]["total_paid"]) == Decimal("500.00")
        assert [b["priority"] for b in data["bills"][:4]] == [1, 3, 4, 5]

    def test_record(self, unit_with_bills):
        response = unit_with_bills.post(
            "/payments/unified/MTC/record",
            json={
                "unit_id": "101",
                "amount": "2600",
                "payment_date": "2025-02-05",
                "payment_method": "transfer",
            },
        )

        assert response.status_code == 201
        transaction_id = response.json()["transaction_id"]

        transaction = unit_with_bills.get(f"/transactions/MTC/{transaction_id}").json()
        assert transaction["category_id"] == "-split-"
        assert sum(Decimal(a["amount"]) for a in transaction["allocations"]) == Decimal("2600")

    def test_unknown_unit(self, unit_with_bills):
        response = unit_with_bills.post(
            "/payments/unified/MTC/preview",
            json={"unit_id": "999", "amount": "10", "payment_date": "2025-02-05"},
        )

        assert response.status_code == 404


class TestTransactionEndpoints:
    """Transaction CRUD."""

    def test_create_list_delete(self, api_client, mtc):
        response = api_client.post(
            "/transactions/MTC",
            json={
                "transaction_date": "2025-01-10",
                "amount": "-350",
                "transaction_type": "expense",
                "vendor_name": "Pool Service",
            },
        )
        assert response.status_code == 201
        transaction_id = response.json()["id"]

        listed = api_client.get("/transactions/MTC", params={"start_date": "2025-01-01"}).json()
        assert [t["id"] for t in listed] == [transaction_id]

        deleted = api_client.delete(f"/transactions/MTC/{transaction_id}")
        assert deleted.status_code == 200
        assert deleted.json()["transaction_id"] == transaction_id
        assert api_client.get(f"/transactions/MTC/{transaction_id}").status_code == 404

    def test_zero_amount(self, api_client, mtc):
        response = api_client.post(
            "/transactions/MTC", json={"transaction_date": "2025-01-10", "amount": "0"}
        )

        assert response.status_code == 400

    def test_delete_reverses_payment(self, unit_with_bills):
        recorded = unit_with_bills.post(
            "/payments/unified/MTC/record",
            json={
                "unit_id": "101",
                "amount": "2600",
                "payment_date": "2025-02-05",
                "payment_method": "transfer",
            },
        ).json()

        response = unit_with_bills.delete(f"/transactions/MTC/{recorded['transaction_id']}")

        assert response.status_code == 200
        data = response.json()
        assert data["water_bills_reversed"] == ["2025-01"]
        assert data["hoa_months_reversed"] == ["2025-00", "2025-01", "2025-02"]


class TestAdminEndpoints:
    """Import and the monthly penalty job."""

    @pytest.fixture
    def import_root(self, tmp_path, monkeypatch):
        monkeypatch.setenv("IMPORT_DATA_PATH", str(tmp_path))
        get_settings.cache_clear()
        yield tmp_path
        get_settings.cache_clear()

    def write_config(self, directory):
        directory.mkdir(parents=True, exist_ok=True)
        (directory / "Config.json").write_text(
            json.dumps(
                {
                    "name": "Test",
                    "accounts": [{"name": "Bank"}],
                    "hoa": {"penaltyRate": 0.05, "penaltyDays": 10},
                }
            ),
            encoding="utf-8",
        )

    def test_import_dry_run(self, api_client, import_root):
        self.write_config(import_root / "TEST")

        response = api_client.post(
            "/admin/import/TEST", json={"components": ["config"], "dry_run": True}
        )

        assert response.status_code == 200
        assert response.json()[0]["component"] == "config"
        assert response.json()[0]["success"] == 1

    def test_import_from_subdirectory(self, api_client, import_root):
        self.write_config(import_root / "exports" / "2025")

        response = api_client.post(
            "/admin/import/TEST",
            json={"components": ["config"], "dry_run": True, "data_path": "exports/2025"},
        )

        assert response.status_code == 200

    @pytest.mark.parametrize("data_path", ["../outside", "/etc", "TEST/../../outside"])
    def test_import_path_outside_data_directory_rejected(self, api_client, import_root, data_path):
        self.write_config(import_root.parent / "outside")

        response = api_client.post(
            "/admin/import/TEST",
            json={"components": ["config"], "dry_run": True, "data_path": data_path},
        )

        assert response.status_code == 400
        assert response.json()["error"]["code"] == "validation_error"

    def test_import_unknown_component(self, api_client, import_root):
        response = api_client.post("/admin/import/TEST", json={"components": ["budgets"]})

        assert response.status_code == 400

    def test_monthly_penalty_run(self, unit_with_bills):
        response = unit_with_bills.post(
            "/admin/penalties/run-monthly", params={"as_of": "2025-04-01"}
        )

        assert response.status_code == 200
        data = response.json()
        assert data["total_updated"] == 1
        assert data["errors"] == []
        assert data["results"][0]["client_code"] == "MTC"
