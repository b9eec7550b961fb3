"""End-to-end billing flows across modules, API and command line."""

import argparse
import json
from datetime import date
from decimal import Decimal

import pytest

from sams.cli import import_data
from sams.main import run_penalty_job
from sams.models import AuditLog, BillStatus, Client, WaterBill
from sams.services.credit_service import CreditService
from sams.services.hoa_dues_service import HOADuesService

BASE = "/water/clients/MTC"


@pytest.mark.integration
class TestMonthlyCycle:
    """Readings to bills to payments to reversal for one unit."""

    def test_full_cycle(self, api_client, db_session, mtc):
        HOADuesService(db_session).get_or_create_year("MTC", "101", 2025)

        # January and February readings, February bills
        api_client.post(f"{BASE}/readings/2025/0", json={"readings": {"101": 100, "102": 200}})
        api_client.post(f"{BASE}/readings/2025/1", json={"readings": {"101": 110, "102": 215}})
        generated = api_client.post(
            f"{BASE}/bills/generate", json={"year": 2025, "month": 1, "bill_date": "2025-02-01"}
        )
        assert generated.status_code == 201

        # Unit 101 pays late dues, February dues, water and a bit of March
        recorded = api_client.post(
            "/payments/unified/MTC/record",
            json={
                "unit_id": "101",
                "amount": "2600",
                "payment_date": "2025-02-05",
                "payment_method": "transfer",
            },
        )
        assert recorded.status_code == 201

        # Unit 102 does not pay and accrues penalties
        run = api_client.post("/admin/penalties/run-monthly", params={"as_of": "2025-04-01"})
        assert run.json()["total_updated"] == 1
        bills = {b.unit.unit_code: b for b in db_session.query(WaterBill).all()}
        assert bills["101"].status == BillStatus.PAID
        assert bills["102"].penalty_amount == Decimal("76.88")

        # Unit 102 pays everything with some extra
        paid = api_client.post(
            f"{BASE}/payments/record",
            json={
                "unit_id": "102",
                "amount": "900",
                "payment_date": "2025-04-01",
                "payment_method": "cash",
            },
        )
        assert paid.status_code == 201
        assert Decimal(paid.json()["distribution"]["total_penalties"]) == Decimal("76.88")
        assert CreditService(db_session).get_credit_balance("MTC", "102").balance == Decimal(
            "73.12"
        )

        # Reversing the unified payment puts unit 101 back where it started
        deleted = api_client.delete(f"/transactions/MTC/{recorded.json()['transaction_id']}")
        assert deleted.status_code == 200
        months = HOADuesService(db_session).get_unit_dues("MTC", "101", 2025).months
        assert all(m.status == BillStatus.UNPAID for m in months)
        db_session.expire_all()
        assert db_session.get(WaterBill, bills["101"].id).status == BillStatus.UNPAID

        actions = {log.action for log in db_session.query(AuditLog).all()}
        assert {"generate", "unified_payment", "water_payment", "delete"} <= actions

    def test_partial_month_completed_before_next(self, api_client, db_session, mtc):
        HOADuesService(db_session).get_or_create_year("MTC", "103", 2025)

        api_client.post(
            "/hoadues/MTC/payment/103/2025",
            json={"amount": "1500", "payment_date": "2025-01-05", "payment_method": "cash"},
        )

        response = api_client.post(
            "/hoadues/MTC/payment/103/2025/preview",
            json={"amount": "700", "payment_date": "2025-01-06"},
        )

        payments = response.json()["bill_payments"]
        assert [p["period"] for p in payments] == ["2025-01", "2025-02"]
        assert Decimal(payments[0]["amount_paid"]) == Decimal("500.00")
        assert payments[0]["new_status"] == "paid"
        assert payments[1]["new_status"] == "partial"
        assert Decimal(response.json()["new_credit_balance"]) == Decimal("0.00")

@pytest.mark.integration
class TestImportCommand:
    """Command line import against a temporary export."""

    @pytest.fixture
    def export_dir(self, tmp_path):
        (tmp_path / "Config.json").write_text(
            json.dumps(
                {
                    "name": "Marina",
                    "accounts": [{"name": "Bank"}],
                    "hoa": {"penaltyRate": 0.05, "penaltyDays": 10},
                }
            ),
            encoding="utf-8",
        )
        (tmp_path / "Units.json").write_text(
            json.dumps([{"UnitID": "201", "Dues": 800}]), encoding="utf-8"
        )
        return tmp_path

    @pytest.fixture
    def cli_session(self, db_session, monkeypatch):
        monkeypatch.setattr("sams.services.db.SessionLocal", lambda: db_session)
        return db_session

    def args(self, export_dir, **overrides) -> argparse.Namespace:
        parser = argparse.ArgumentParser()
        import_data.add_arguments(parser)
        argv = ["MAR", "--components", "config", "units", "--data-path", str(export_dir)]
        namespace = parser.parse_args(argv)
        for key, value in overrides.items():
            setattr(namespace, key, value)
        return namespace

    def test_import_succeeds(self, export_dir, cli_session):
        assert import_data.run(self.args(export_dir)) == 0

        client = cli_session.query(Client).filter(Client.code == "MAR").one()
        assert [u.unit_code for u in client.units] == ["201"]

    def test_dry_run(self, export_dir, cli_session):
        assert import_data.run(self.args(export_dir, dry_run=True, components=["config"])) == 0

        assert cli_session.query(Client).count() == 0

    def test_missing_file_fails(self, tmp_path, cli_session):
        assert import_data.run(self.args(tmp_path)) == 1

    def test_rejects_unknown_component(self, export_dir):
        parser = argparse.ArgumentParser()
        import_data.add_arguments(parser)

        with pytest.raises(SystemExit):
            parser.parse_args(["MAR", "--components", "budgets"])

    def test_penalty_job_unknown_client(self, cli_session):
        assert run_penalty_job(date(2025, 4, 1), client_code="NOPE") == 1

    def test_penalty_job_all_clients(self, cli_session, mtc):
        assert run_penalty_job(date(2025, 4, 1)) == 0

    def test_penalty_job_unit_scope(self, cli_session, mtc):
        assert run_penalty_job(date(2025, 4, 1), client_code="MTC", unit_ids=["101"]) == 0
