"""Unit tests for payment distribution."""

from datetime import date
from decimal import Decimal

import pytest

from sams.api.errors import ValidationError
from sams.models import BillStatus
from sams.services.payment_distribution import (
    BillView,
    PaymentInput,
    calculate_payment_distribution,
    validate_payment_input,
)


def bill(key: str, due: date, charge: str, penalty: str = "0", **kwargs) -> BillView:
    return BillView(
        bill_key=key,
        module="water",
        period=key,
        unit_code="101",
        due_date=due,
        current_charge=Decimal(charge),
        penalty_amount=Decimal(penalty),
        **kwargs,
    )


@pytest.fixture
def two_bills():
    """Older bill with penalty, newer bill without."""
    return [
        bill("2025-00", date(2025, 1, 1), "100", "10"),
        bill("2025-01", date(2025, 2, 1), "100"),
    ]


def assert_balanced(result):
    assert (
        result.payment_amount + result.current_credit_balance
        == result.total_applied + result.new_credit_balance
    )


class TestCalculatePaymentDistribution:
    """Distribution rules."""

    def test_oldest_bill_first_then_partial(self, two_bills):
        result = calculate_payment_distribution(two_bills, Decimal("150"))

        first, second = result.bill_payments
        assert first.amount_paid == Decimal("110.00")
        assert first.penalty_paid == Decimal("10.00")
        assert first.new_status == BillStatus.PAID
        assert second.amount_paid == Decimal("40.00")
        assert second.new_status == BillStatus.PARTIAL
        assert result.new_credit_balance == 0
        assert_balanced(result)

    def test_base_paid_before_penalty(self, two_bills):
        result = calculate_payment_distribution(two_bills, Decimal("105"))

        payment = result.bill_payments[0]
        assert payment.base_paid == Decimal("100.00")
        assert payment.penalty_paid == Decimal("5.00")
        assert payment.new_status == BillStatus.PARTIAL

    def test_overpayment_goes_to_credit(self, two_bills):
        result = calculate_payment_distribution(two_bills, Decimal("250"))

        assert result.total_applied == Decimal("210.00")
        assert result.overpayment == Decimal("40.00")
        assert result.new_credit_balance == Decimal("40.00")
        assert result.credit_change == Decimal("40.00")
        assert_balanced(result)

    def test_credit_used_after_payment(self, two_bills):
        result = calculate_payment_distribution(two_bills, Decimal("50"), Decimal("70"))

        assert result.total_available_funds == Decimal("120.00")
        assert result.total_applied == Decimal("120.00")
        assert result.credit_used == Decimal("70.00")
        assert result.new_credit_balance == 0
        assert_balanced(result)

    def test_credit_only_preview(self, two_bills):
        result = calculate_payment_distribution(two_bills, Decimal("0"), Decimal("30"))

        assert result.bill_payments[0].base_paid == Decimal("30.00")
        assert result.credit_used == Decimal("30.00")
        assert_balanced(result)

    def test_paid_bills_are_skipped(self):
        bills = [
            bill("2025-00", date(2025, 1, 1), "100", base_paid=Decimal("100")),
            bill("2025-01", date(2025, 2, 1), "100"),
        ]

        result = calculate_payment_distribution(bills, Decimal("100"))

        assert [p.bill_key for p in result.bill_payments] == ["2025-01"]

    def test_previous_partial_stays_partial(self):
        bills = [bill("2025-00", date(2025, 1, 1), "100", base_paid=Decimal("20"))]

        result = calculate_payment_distribution(bills, Decimal("0"))

        assert result.bill_payments == []
        assert result.total_bills_due == Decimal("80.00")

    def test_negative_amounts_rejected(self, two_bills):
        with pytest.raises(ValidationError):
            calculate_payment_distribution(two_bills, Decimal("-1"))
        with pytest.raises(ValidationError):
            calculate_payment_distribution(two_bills, Decimal("10"), Decimal("-1"))


class TestAllOrNothingGroups:
    """Quarterly groups paid together or not at all."""

    @pytest.fixture
    def quarters(self):
        q1 = date(2025, 7, 1)
        q2 = date(2025, 10, 1)
        return [
            bill("2026-00", q1, "100"),
            bill("2026-01", q1, "100"),
            bill("2026-02", q1, "100"),
            bill("2026-03", q2, "100"),
            bill("2026-04", q2, "100"),
            bill("2026-05", q2, "100"),
        ]

    def test_whole_group_paid_remainder_to_credit(self, quarters):
        result = calculate_payment_distribution(quarters, Decimal("400"), allow_partial=False)

        assert [p.bill_key for p in result.bill_payments] == ["2026-00", "2026-01", "2026-02"]
        assert all(p.new_status == BillStatus.PAID for p in result.bill_payments)
        assert result.new_credit_balance == Decimal("100.00")
        assert_balanced(result)

    def test_insufficient_for_group_pays_nothing(self, quarters):
        result = calculate_payment_distribution(quarters, Decimal("200"), allow_partial=False)

        assert result.bill_payments == []
        assert result.new_credit_balance == Decimal("200.00")
        assert_balanced(result)


class TestValidatePaymentInput:
    """Payment input validation."""

    def test_valid(self):
        validate_payment_input(PaymentInput(Decimal("10"), date(2025, 1, 1), "cash"))

    @pytest.mark.parametrize(
        "amount,method",
        [(Decimal("0"), "cash"), (Decimal("-5"), "cash"), (Decimal("10"), "  ")],
    )
    def test_invalid(self, amount, method):
        with pytest.raises(ValidationError):
            validate_payment_input(PaymentInput(amount, date(2025, 1, 1), method))
