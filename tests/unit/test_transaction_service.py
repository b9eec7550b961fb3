"""Unit tests for transactions."""

from datetime import date
from decimal import Decimal

import pytest

from sams.api.errors import NotFoundError, ValidationError
from sams.models import AuditLog, BillStatus, Transaction
from sams.services.allocation_service import AllocationLine
from sams.services.transaction_service import TransactionService, bill_status


def line(allocation_id: str, amount: str, category: str) -> AllocationLine:
    return AllocationLine(
        allocation_id=allocation_id,
        allocation_type="hoa_month",
        target_id="month_1_2025",
        target_name="Jan 2025",
        amount=Decimal(amount),
        category_id=category,
        category_name=category.title(),
    )


class TestBillStatus:
    """Status from paid amounts."""

    def test_statuses(self):
        due = Decimal("100")
        assert bill_status(Decimal("0"), Decimal("0"), due, Decimal("0")) == BillStatus.UNPAID
        assert bill_status(Decimal("50"), Decimal("0"), due, Decimal("0")) == BillStatus.PARTIAL
        assert bill_status(Decimal("100"), Decimal("0"), due, Decimal("5")) == BillStatus.PARTIAL
        assert bill_status(Decimal("100"), Decimal("5"), due, Decimal("5")) == BillStatus.PAID


class TestTransactionService:
    """Creation, listing and deletion."""

    @pytest.fixture
    def service(self, db_session, mtc):
        return TransactionService(db_session)

    def test_create_simple(self, service):
        transaction = service.create_transaction(
            "MTC",
            transaction_date=date(2025, 1, 10),
            amount=Decimal("-350.5"),
            transaction_type="expense",
            category_id="maintenance",
            vendor_name="Pool Service",
        )

        assert transaction.id is not None
        assert transaction.amount == Decimal("-350.50")
        assert transaction.unit_id is None

    def test_zero_amount_rejected(self, service):
        with pytest.raises(ValidationError):
            service.create_transaction("MTC", date(2025, 1, 10), Decimal("0"))

    def test_allocations_must_sum_to_amount(self, service, db_session):
        with pytest.raises(ValidationError):
            service.create_transaction(
                "MTC",
                date(2025, 1, 10),
                Decimal("100"),
                unit_code="101",
                allocations=[line("alloc_001", "60", "hoa-dues")],
            )
        assert db_session.query(Transaction).count() == 0

    def test_mixed_categories_become_split(self, service):
        transaction = service.create_transaction(
            "MTC",
            date(2025, 1, 10),
            Decimal("100"),
            unit_code="101",
            category_id="hoa-dues",
            allocations=[
                line("alloc_001", "60", "hoa-dues"),
                line("alloc_002", "40", "account-credit"),
            ],
        )

        assert transaction.category_id == "-split-"
        assert transaction.category_name == "-Split-"
        assert [a.allocation_id for a in transaction.allocations] == ["alloc_001", "alloc_002"]

    def test_single_category_keeps_category(self, service):
        transaction = service.create_transaction(
            "MTC",
            date(2025, 1, 10),
            Decimal("100"),
            unit_code="101",
            category_id="hoa-dues",
            allocations=[line("alloc_001", "100", "hoa-dues")],
        )

        assert transaction.category_id == "hoa-dues"

    def test_list_filters(self, service):
        service.create_transaction("MTC", date(2025, 1, 10), Decimal("100"), unit_code="101")
        service.create_transaction("MTC", date(2025, 2, 10), Decimal("200"), unit_code="102")
        service.create_transaction("MTC", date(2025, 3, 10), Decimal("300"), unit_code="101")

        assert [t.amount for t in service.list_transactions("MTC")] == [
            Decimal("300.00"),
            Decimal("200.00"),
            Decimal("100.00"),
        ]
        assert len(service.list_transactions("MTC", unit_code="101")) == 2
        assert [
            t.amount
            for t in service.list_transactions(
                "MTC", start_date=date(2025, 2, 1), end_date=date(2025, 2, 28)
            )
        ] == [Decimal("200.00")]

    def test_get_from_other_client_not_found(self, service, avii):
        transaction = service.create_transaction("MTC", date(2025, 1, 10), Decimal("100"))

        with pytest.raises(NotFoundError):
            service.get_transaction("AVII", transaction.id)

    def test_delete_plain_transaction(self, service, db_session):
        transaction = service.create_transaction("MTC", date(2025, 1, 10), Decimal("100"))

        summary = service.delete_transaction("MTC", transaction.id, actor="admin")

        assert summary.water_bills_reversed == []
        assert summary.credit_reversed == 0
        assert db_session.query(Transaction).count() == 0
        assert db_session.query(AuditLog).filter(AuditLog.action == "delete").count() == 1

    def test_delete_missing(self, service):
        with pytest.raises(NotFoundError):
            service.delete_transaction("MTC", 999)
