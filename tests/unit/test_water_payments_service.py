"""Unit tests for water payments and penalty recalculation."""

from datetime import date
from decimal import Decimal

import pytest

from sams.api.errors import InsufficientCreditError, ValidationError
from sams.models import BillingConfig, BillingModule, BillStatus, Transaction, WaterBill
from sams.services.credit_service import CreditService
from sams.services.payment_distribution import PaymentInput
from sams.services.penalty_service import PenaltyRecalculationService
from sams.services.transaction_service import TransactionService
from sams.services.water_bills_service import WaterBillsService
from sams.services.water_payments_service import WaterPaymentsService


@pytest.fixture
def billed(db_session, mtc):
    """February bills: unit 101 owes 500, unit 102 owes 750."""
    bills = WaterBillsService(db_session)
    bills.save_readings("MTC", 2025, 0, {"101": Decimal("100"), "102": Decimal("200")})
    bills.save_readings("MTC", 2025, 1, {"101": Decimal("110"), "102": Decimal("215")})
    bills.generate_bills("MTC", 2025, 1, bill_date=date(2025, 2, 1))
    return mtc


@pytest.fixture
def service(db_session, billed):
    return WaterPaymentsService(db_session)


def bill_for(db_session, unit_code: str) -> WaterBill:
    return next(b for b in db_session.query(WaterBill).all() if b.unit.unit_code == unit_code)


def pay(amount: str, on: date, **kwargs) -> PaymentInput:
    return PaymentInput(
        amount=Decimal(amount), payment_date=on, payment_method="transfer", **kwargs
    )


class TestWaterPayments:
    """Recording and previewing payments."""

    def test_preview_does_not_persist(self, service, db_session):
        distribution = service.preview_payment("MTC", "101", Decimal("600"), date(2025, 2, 5))

        assert distribution.total_applied == Decimal("500.00")
        assert distribution.new_credit_balance == Decimal("100.00")
        assert db_session.query(Transaction).count() == 0
        assert bill_for(db_session, "101").status == BillStatus.UNPAID

    def test_overpayment_pays_bill_and_adds_credit(self, service, db_session):
        result = service.record_payment("MTC", "101", pay("600", date(2025, 2, 5), reference="T-1"))

        assert result.payment_type == "bills_paid"
        bill = bill_for(db_session, "101")
        assert bill.status == BillStatus.PAID
        assert bill.base_paid == Decimal("500.00")
        assert bill.last_transaction_id == result.transaction_id
        assert CreditService(db_session).get_credit_balance("MTC", "101").balance == Decimal(
            "100.00"
        )

        transaction = db_session.get(Transaction, result.transaction_id)
        assert transaction.category_id == "-split-"
        assert [a.allocation_type for a in transaction.allocations] == [
            "water_bill",
            "account_credit",
        ]
        assert sum(a.amount for a in transaction.allocations) == transaction.amount
        assert "Unit 101" in transaction.notes

    def test_partial_payment(self, service, db_session):
        service.record_payment("MTC", "101", pay("200", date(2025, 2, 5)))

        bill = bill_for(db_session, "101")
        assert bill.status == BillStatus.PARTIAL
        assert bill.unpaid_amount == Decimal("300.00")

    def test_late_payment_includes_penalty(self, service, db_session):
        distribution = service.preview_payment("MTC", "101", Decimal("525"), date(2025, 3, 15))
        assert distribution.total_penalties == Decimal("25.00")

        service.record_payment("MTC", "101", pay("525", date(2025, 3, 15)))

        bill = bill_for(db_session, "101")
        assert bill.status == BillStatus.PAID
        assert bill.penalty_amount == Decimal("25.00")
        assert bill.penalty_paid == Decimal("25.00")

    def test_credit_only_when_nothing_due(self, service, db_session):
        result = service.record_payment("MTC", "103", pay("300", date(2025, 2, 5)))

        assert result.payment_type == "credit_only"
        assert CreditService(db_session).get_credit_balance("MTC", "103").balance == Decimal(
            "300.00"
        )

    def test_existing_credit_is_used(self, service, db_session):
        CreditService(db_session).update_credit_balance("MTC", "101", Decimal("100"))

        result = service.record_payment("MTC", "101", pay("400", date(2025, 2, 5)))

        assert result.distribution.credit_used == Decimal("100.00")
        assert bill_for(db_session, "101").status == BillStatus.PAID
        assert CreditService(db_session).get_credit_balance("MTC", "101").balance == Decimal(
            "0.00"
        )

    def test_invalid_payment(self, service):
        with pytest.raises(ValidationError):
            service.record_payment("MTC", "101", pay("0", date(2025, 2, 5)))

    def test_payment_history(self, service):
        service.record_payment("MTC", "101", pay("200", date(2025, 2, 5)))
        service.record_payment("MTC", "101", pay("300", date(2025, 2, 6)))

        history = service.get_payment_history("MTC", "101", fiscal_year=2025)

        assert [record.amount for record in history] == [Decimal("300.00"), Decimal("200.00")]
        assert service.get_payment_history("MTC", "101", fiscal_year=2024) == []

    def test_unpaid_summary(self, service):
        summary = service.get_unpaid_bills_summary("MTC", "102", as_of=date(2025, 3, 15))

        assert len(summary["bills"]) == 1
        assert summary["total_base_due"] == Decimal("750.00")
        assert summary["total_penalty_due"] == Decimal("37.50")
        assert summary["credit_balance"] == Decimal("0.00")


class TestPaymentReversal:
    """Deleting a water payment transaction."""

    def test_delete_restores_bill_and_credit(self, service, db_session):
        result = service.record_payment("MTC", "101", pay("600", date(2025, 2, 5)))

        summary = TransactionService(db_session).delete_transaction("MTC", result.transaction_id)

        assert summary.water_bills_reversed == ["2025-01"]
        assert summary.credit_reversed == Decimal("100.00")
        bill = bill_for(db_session, "101")
        assert bill.status == BillStatus.UNPAID
        assert bill.base_paid == Decimal("0.00")
        assert bill.last_transaction_id is None
        assert CreditService(db_session).get_credit_balance("MTC", "101").balance == Decimal(
            "0.00"
        )

    def test_spent_credit_blocks_deletion(self, service, db_session):
        result = service.record_payment("MTC", "101", pay("600", date(2025, 2, 5)))
        CreditService(db_session).update_credit_balance("MTC", "101", Decimal("-100"))

        with pytest.raises(InsufficientCreditError):
            TransactionService(db_session).delete_transaction("MTC", result.transaction_id)

        assert bill_for(db_session, "101").status == BillStatus.PAID
        assert db_session.get(Transaction, result.transaction_id) is not None


class TestPenaltyRecalculation:
    """Stored penalty recalculation."""

    def test_recalculate_for_client(self, db_session, billed):
        service = PenaltyRecalculationService(db_session)

        result = service.recalculate_for_client("MTC", as_of=date(2025, 4, 1))

        assert result.processed_bills == 2
        assert result.updated_bills == 2
        assert result.total_penalties == Decimal("128.13")
        assert bill_for(db_session, "101").penalty_amount == Decimal("51.25")
        assert bill_for(db_session, "102").penalty_amount == Decimal("76.88")
        assert bill_for(db_session, "101").last_penalty_update == date(2025, 4, 1)

    def test_second_run_updates_nothing(self, db_session, billed):
        service = PenaltyRecalculationService(db_session)
        service.recalculate_for_client("MTC", as_of=date(2025, 4, 1))

        result = service.recalculate_for_client("MTC", as_of=date(2025, 4, 1))

        assert result.updated_bills == 0

    def test_unit_scope(self, db_session, billed):
        result = PenaltyRecalculationService(db_session).recalculate_for_units(
            "MTC", ["101"], as_of=date(2025, 4, 1)
        )

        assert result.processed_bills == 1
        assert result.skipped_out_of_scope == 1
        assert result.unit_scope == ["101"]
        assert bill_for(db_session, "102").penalty_amount == Decimal("0.00")

    def test_empty_unit_scope_rejected(self, db_session, billed):
        with pytest.raises(ValidationError):
            PenaltyRecalculationService(db_session).recalculate_for_units("MTC", [])

    def test_paid_bills_skipped(self, service, db_session):
        service.record_payment("MTC", "101", pay("500", date(2025, 2, 5)))

        result = PenaltyRecalculationService(db_session).recalculate_for_client(
            "MTC", as_of=date(2025, 4, 1)
        )

        assert result.skipped_paid == 1
        assert result.processed_bills == 1

    def test_all_clients(self, db_session, billed, avii):
        run = PenaltyRecalculationService(db_session).recalculate_all_clients(
            as_of=date(2025, 4, 1)
        )

        assert [r.client_code for r in run.results] == ["MTC"]
        assert run.total_updated == 2
        assert run.errors == []

    def test_penalty_summary(self, db_session, billed):
        service = PenaltyRecalculationService(db_session)
        service.recalculate_for_client("MTC", as_of=date(2025, 4, 1))

        summary = service.get_penalty_summary("MTC")
        unit_summary = service.get_penalty_summary("MTC", "101")

        assert summary["total_penalties"] == Decimal("128.13")
        assert summary["unpaid_bill_count"] == 2
        assert unit_summary["total_penalties"] == Decimal("51.25")

    @pytest.fixture
    def avii_billed(self, db_session, avii):
        db_session.add(
            BillingConfig(
                client_id=avii.id,
                module=BillingModule.WATER,
                penalty_rate=Decimal("0.05"),
                penalty_days=10,
                rate_per_m3=Decimal("50.00"),
            )
        )
        db_session.commit()
        bills = WaterBillsService(db_session)
        bills.save_readings("AVII", 2025, 0, {"1A": Decimal("10")})
        bills.save_readings("AVII", 2025, 1, {"1A": Decimal("20")})
        bills.generate_bills("AVII", 2025, 1, bill_date=date(2024, 8, 1))
        return avii

    def test_all_clients_records_misconfigured_client(self, db_session, billed, avii_billed):
        config = (
            db_session.query(BillingConfig)
            .filter_by(client_id=avii_billed.id, module=BillingModule.WATER)
            .one()
        )
        config.penalty_rate = Decimal("-0.01")
        db_session.commit()

        run = PenaltyRecalculationService(db_session).recalculate_all_clients(
            as_of=date(2025, 4, 1)
        )

        assert [r.client_code for r in run.results] == ["MTC"]
        assert run.total_updated == 2
        assert len(run.errors) == 1
        assert run.errors[0]["client"] == "AVII"
        assert run.errors[0]["error_type"] == "config_error"
        assert bill_for(db_session, "101").penalty_amount == Decimal("51.25")

    def test_all_clients_continues_after_unexpected_error(
        self, db_session, billed, avii_billed, monkeypatch
    ):
        service = PenaltyRecalculationService(db_session)
        original = service.recalculate_for_client

        def failing_for_avii(code, **kwargs):
            if code == "AVII":
                raise RuntimeError("database went away")
            return original(code, **kwargs)

        monkeypatch.setattr(service, "recalculate_for_client", failing_for_avii)

        run = service.recalculate_all_clients(as_of=date(2025, 4, 1))

        assert [r.client_code for r in run.results] == ["MTC"]
        assert run.errors == [
            {"client": "AVII", "error": "database went away", "error_type": "internal_error"}
        ]
