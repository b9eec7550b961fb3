"""Unit tests for HOA dues."""

from datetime import date
from decimal import Decimal

import pytest

from sams.api.errors import NotFoundError, ValidationError
from sams.models import BillStatus, HOADuesYear, Transaction
from sams.services.credit_service import CreditService
from sams.services.hoa_dues_service import HOADuesService, hoa_due_date
from sams.services.payment_distribution import PaymentInput
from sams.services.transaction_service import TransactionService


def pay(amount: str, on: date) -> PaymentInput:
    return PaymentInput(amount=Decimal(amount), payment_date=on, payment_method="cash")


@pytest.fixture
def service(db_session, mtc):
    return HOADuesService(db_session)


class TestDuesYear:
    """Dues year creation and lookup."""

    def test_creates_twelve_unpaid_months(self, service):
        dues_year = service.get_or_create_year("MTC", "101", 2025)

        assert dues_year.scheduled_amount == Decimal("1000.00")
        assert [m.month_index for m in dues_year.months] == list(range(12))
        assert all(m.status == BillStatus.UNPAID for m in dues_year.months)

    def test_existing_year_is_returned(self, service, db_session):
        first = service.get_or_create_year("MTC", "101", 2025)
        second = service.get_or_create_year("MTC", "101", 2025, scheduled_amount=Decimal("5"))

        assert first.id == second.id
        assert db_session.query(HOADuesYear).count() == 1

    def test_custom_scheduled_amount(self, service):
        dues_year = service.get_or_create_year("MTC", "102", 2025, scheduled_amount=Decimal("1200"))

        assert dues_year.scheduled_amount == Decimal("1200.00")

    def test_negative_amount_rejected(self, service):
        with pytest.raises(ValidationError):
            service.get_or_create_year("MTC", "101", 2025, scheduled_amount=Decimal("-1"))

    def test_find_year(self, service, mtc):
        created = service.get_or_create_year("MTC", "101", 2025)
        unit = next(u for u in mtc.units if u.unit_code == "101")

        assert service.find_year(mtc, unit, 2025).id == created.id
        assert service.find_year(mtc, unit, 2026) is None

    def test_missing_year(self, service):
        with pytest.raises(NotFoundError):
            service.get_unit_dues("MTC", "101", 2030)

    def test_year_dues_sorted_by_unit(self, service):
        service.get_or_create_year("MTC", "102", 2025)
        service.get_or_create_year("MTC", "101", 2025)

        assert [d.unit.unit_code for d in service.get_year_dues("MTC", 2025)] == ["101", "102"]


class TestDueDates:
    """Monthly and quarterly due dates."""

    def test_monthly(self, mtc):
        assert hoa_due_date(mtc, 2025, 4) == date(2025, 5, 1)

    def test_quarterly_uses_quarter_start(self, avii):
        assert hoa_due_date(avii, 2026, 0) == date(2025, 7, 1)
        assert hoa_due_date(avii, 2026, 2) == date(2025, 7, 1)
        assert hoa_due_date(avii, 2026, 4) == date(2025, 10, 1)


class TestHOAPayments:
    """Payment recording."""

    def test_payment_spreads_across_months(self, service):
        result = service.record_payment("MTC", "101", 2025, pay("2500", date(2025, 1, 5)))

        months = service.get_unit_dues("MTC", "101", 2025).months
        assert months[0].status == BillStatus.PAID
        assert months[1].status == BillStatus.PAID
        assert months[2].status == BillStatus.PARTIAL
        assert months[2].base_paid == Decimal("500.00")
        assert months[0].reference == str(result.transaction_id)
        assert months[0].paid_date == date(2025, 1, 5)

    def test_late_months_carry_penalties(self, service, db_session):
        service.get_or_create_year("MTC", "102", 2025)
        preview = service.preview_payment("MTC", "102", 2025, Decimal("2152.50"), date(2025, 3, 1))
        assert preview.total_penalties == Decimal("152.50")

        result = service.record_payment("MTC", "102", 2025, pay("2152.50", date(2025, 3, 1)))

        months = service.get_unit_dues("MTC", "102", 2025).months
        assert months[0].penalty_amount == Decimal("102.50")
        assert months[1].penalty_amount == Decimal("50.00")
        assert months[0].status == BillStatus.PAID
        assert months[1].status == BillStatus.PAID
        assert months[2].status == BillStatus.UNPAID
        transaction = db_session.get(Transaction, result.transaction_id)
        assert [a.allocation_type for a in transaction.allocations] == [
            "hoa_month",
            "hoa_penalty",
            "hoa_month",
            "hoa_penalty",
        ]
        assert transaction.category_id == "-split-"

    def test_quarterly_pays_whole_quarters_only(self, db_session, avii):
        service = HOADuesService(db_session)

        result = service.record_payment("AVII", "1A", 2026, pay("5000", date(2025, 7, 5)))

        months = service.get_unit_dues("AVII", "1A", 2026).months
        assert [m.status for m in months[:4]] == [
            BillStatus.PAID,
            BillStatus.PAID,
            BillStatus.PAID,
            BillStatus.UNPAID,
        ]
        assert result.distribution.new_credit_balance == Decimal("2000.00")
        assert CreditService(db_session).get_credit_balance("AVII", "1A").balance == Decimal(
            "2000.00"
        )
        transaction = db_session.get(Transaction, result.transaction_id)
        assert transaction.category_id == "-split-"

    def test_delete_payment_restores_months(self, service, db_session):
        result = service.record_payment("MTC", "101", 2025, pay("2500", date(2025, 1, 5)))

        summary = TransactionService(db_session).delete_transaction("MTC", result.transaction_id)

        assert summary.hoa_months_reversed == ["2025-00", "2025-01", "2025-02"]
        months = service.get_unit_dues("MTC", "101", 2025).months
        assert all(m.status == BillStatus.UNPAID for m in months)
        assert all(m.reference is None for m in months)


class TestDuesStatus:
    """Year-to-date status and summaries."""

    def test_behind(self, service):
        service.record_payment("MTC", "101", 2025, pay("2500", date(2025, 1, 5)))
        dues_year = service.get_unit_dues("MTC", "101", 2025)

        status = service.calculate_dues_status(dues_year, date(2025, 3, 15), 1)

        assert status.months_elapsed == 3
        assert status.total_paid == Decimal("2500.00")
        assert status.due_to_date == Decimal("3000.00")
        assert status.balance == Decimal("500.00")
        assert status.status == "behind"
        assert status.paid_months == 2

    def test_current_before_year_starts(self, service):
        dues_year = service.get_or_create_year("MTC", "101", 2025)

        status = service.calculate_dues_status(dues_year, date(2024, 12, 1), 1)

        assert status.months_elapsed == 0
        assert status.status == "current"

    def test_summary_and_next_month(self, service):
        service.record_payment("MTC", "101", 2025, pay("2500", date(2025, 1, 5)))
        dues_year = service.get_unit_dues("MTC", "101", 2025)

        summary = service.get_year_summary(dues_year)
        next_due = service.get_next_month_due(dues_year, 1)

        assert summary["scheduled_total"] == Decimal("12000.00")
        assert summary["remaining"] == Decimal("9500.00")
        assert summary["paid_months"] == [0, 1]
        assert summary["partial_months"] == [2]
        assert next_due == {"month_index": 2, "label": "Mar 2025", "amount_due": Decimal("500.00")}
        assert service.get_next_month_due(dues_year, start_month=7)["label"] == "Sep 2024"
