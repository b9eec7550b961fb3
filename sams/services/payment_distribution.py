"""Payment distribution across bills (pure calculation, no database access).

The same calculation backs payment previews and payment recording for water
bills, HOA dues and unified payments, so a preview always matches what gets
recorded.

Rules:
    - Funds are the payment amount plus the unit's credit balance. The payment
      is spent first and credit only once the payment is exhausted.
    - Bills are paid in the order given (callers sort oldest/highest priority first).
    - Within a bill the base charge is paid before the penalty.
    - Whatever is left becomes the new credit balance, which is never negative.

Invariant: payment + credit_before == total_applied + new_credit_balance.
"""

import logging
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from itertools import groupby

from sams.api.errors import ValidationError
from sams.models.water import BillStatus
from sams.services.locale_service import ZERO, round_currency

logger = logging.getLogger(__name__)


@dataclass
class BillView:
    """Module-independent view of an open bill (water bill or HOA month)."""

    bill_key: str
    """Unique key across modules: "water:2026-00", "hoa:2026-03"."""

    module: str
    period: str
    unit_code: str
    due_date: date
    current_charge: Decimal
    penalty_amount: Decimal = ZERO
    base_paid: Decimal = ZERO
    penalty_paid: Decimal = ZERO
    status: BillStatus = BillStatus.UNPAID
    fiscal_year: int | None = None
    month_index: int | None = None
    label: str = ""
    priority: int = 0
    source_id: int | None = None

    @property
    def base_due(self) -> Decimal:
        return max(ZERO, round_currency(self.current_charge - self.base_paid))

    @property
    def penalty_due(self) -> Decimal:
        return max(ZERO, round_currency(self.penalty_amount - self.penalty_paid))

    @property
    def total_due(self) -> Decimal:
        return self.base_due + self.penalty_due


@dataclass
class BillPayment:
    """Amount applied to one bill by a distribution."""

    bill_key: str
    module: str
    period: str
    amount_paid: Decimal
    base_paid: Decimal
    penalty_paid: Decimal
    new_status: BillStatus
    total_base_due: Decimal
    total_penalty_due: Decimal
    total_due: Decimal
    label: str = ""
    source_id: int | None = None


@dataclass
class PaymentDistribution:
    """Result of distributing a payment plus credit across bills."""

    payment_amount: Decimal
    current_credit_balance: Decimal
    total_available_funds: Decimal
    bill_payments: list[BillPayment] = field(default_factory=list)
    total_base_charges: Decimal = ZERO
    total_penalties: Decimal = ZERO
    total_applied: Decimal = ZERO
    credit_used: Decimal = ZERO
    overpayment: Decimal = ZERO
    new_credit_balance: Decimal = ZERO
    total_bills_due: Decimal = ZERO

    @property
    def credit_change(self) -> Decimal:
        """Signed change of the credit balance."""
        return self.new_credit_balance - self.current_credit_balance


@dataclass
class PaymentInput:
    """Payment details supplied by the caller of a record operation."""

    amount: Decimal
    payment_date: date
    payment_method: str
    reference: str | None = None
    notes: str | None = None
    account_name: str | None = None


def validate_payment_input(payment: PaymentInput) -> None:
    """Reject payments that cannot be recorded.

    Raises:
        ValidationError: If the amount is not positive, the date is missing or
            the payment method is blank
    """
    errors = []
    if payment.amount is None or Decimal(str(payment.amount)) <= 0:
        errors.append("Payment amount must be greater than zero")
    if not isinstance(payment.payment_date, date):
        errors.append("Valid payment date is required")
    if not payment.payment_method or not payment.payment_method.strip():
        errors.append("Payment method is required")
    if errors:
        raise ValidationError("; ".join(errors))


def _pay_bill(bill: BillView, available: Decimal) -> BillPayment:
    base_due = bill.base_due
    penalty_due = bill.penalty_due
    base_paid = min(available, base_due)
    penalty_paid = min(available - base_paid, penalty_due)
    amount = base_paid + penalty_paid
    if amount >= base_due + penalty_due:
        new_status = BillStatus.PAID
    elif amount > 0 or bill.base_paid > 0 or bill.penalty_paid > 0:
        new_status = BillStatus.PARTIAL
    else:
        new_status = BillStatus.UNPAID
    return BillPayment(
        bill_key=bill.bill_key,
        module=bill.module,
        period=bill.period,
        amount_paid=amount,
        base_paid=base_paid,
        penalty_paid=penalty_paid,
        new_status=new_status,
        total_base_due=base_due,
        total_penalty_due=penalty_due,
        total_due=base_due + penalty_due,
        label=bill.label,
        source_id=bill.source_id,
    )


def calculate_payment_distribution(
    bills: list[BillView],
    payment_amount: Decimal,
    credit_balance: Decimal = ZERO,
    allow_partial: bool = True,
) -> PaymentDistribution:
    """Distribute a payment plus credit across bills.

    Args:
        bills: Open bills in payment order (oldest or highest priority first)
        payment_amount: Cash received
        credit_balance: Unit credit available before the payment
        allow_partial: When False, bills sharing a due date are paid together
            or not at all and distribution stops at the first group that
            cannot be covered

    Returns:
        PaymentDistribution with per-bill payments and credit movements

    Raises:
        ValidationError: If the payment or credit is negative
    """
    payment = round_currency(payment_amount)
    credit = round_currency(credit_balance)
    if payment < 0:
        raise ValidationError("Payment amount cannot be negative")
    if credit < 0:
        raise ValidationError("Credit balance cannot be negative")

    funds = payment + credit
    result = PaymentDistribution(
        payment_amount=payment,
        current_credit_balance=credit,
        total_available_funds=funds,
        total_bills_due=sum((b.total_due for b in bills), ZERO),
    )

    remaining = funds
    open_bills = [b for b in bills if b.total_due > 0]

    if allow_partial:
        for bill in open_bills:
            if remaining <= 0:
                break
            bill_payment = _pay_bill(bill, remaining)
            result.bill_payments.append(bill_payment)
            remaining -= bill_payment.amount_paid
    else:
        for due_date, group in groupby(open_bills, key=lambda b: b.due_date):
            group = list(group)
            group_due = sum((b.total_due for b in group), ZERO)
            if group_due > remaining:
                logger.debug(
                    "Stopping at due date %s: group needs %s, %s available",
                    due_date,
                    group_due,
                    remaining,
                )
                break
            for bill in group:
                bill_payment = _pay_bill(bill, remaining)
                result.bill_payments.append(bill_payment)
                remaining -= bill_payment.amount_paid

    result.total_base_charges = sum((p.base_paid for p in result.bill_payments), ZERO)
    result.total_penalties = sum((p.penalty_paid for p in result.bill_payments), ZERO)
    result.total_applied = result.total_base_charges + result.total_penalties
    result.credit_used = max(ZERO, result.total_applied - payment)
    result.overpayment = max(ZERO, payment - result.total_applied)
    result.new_credit_balance = credit - result.credit_used + result.overpayment
    return result


__all__ = [
    "BillView",
    "BillPayment",
    "PaymentDistribution",
    "PaymentInput",
    "validate_payment_input",
    "calculate_payment_distribution",
]
