"""HOA dues: yearly schedules, payments and status calculations.

Each unit owes scheduled_amount for each of the 12 fiscal months. Monthly
clients owe each month on its first day; quarterly clients owe the three
months of a quarter on the first day of the quarter, and a quarter is only
paid as a whole.
"""

import logging
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import NamedTuple

from sqlalchemy.orm import Session

from sams.api.errors import NotFoundError, ValidationError
from sams.models import (
    BillingModule,
    BillPaymentRecord,
    BillStatus,
    Client,
    HOADuesMonth,
    HOADuesYear,
    Transaction,
    Unit,
)
from sams.services.allocation_service import AllocationService
from sams.services.audit_service import AuditService
from sams.services.client_service import ClientService
from sams.services.credit_service import CreditService
from sams.services.fiscal_year import fiscal_month_label, fiscal_month_start, get_fiscal_year_bounds
from sams.services.locale_service import ZERO, round_currency
from sams.services.payment_distribution import (
    BillPayment,
    BillView,
    PaymentDistribution,
    PaymentInput,
    calculate_payment_distribution,
    validate_payment_input,
)
from sams.services.penalty_service import recalculate_penalties
from sams.services.transaction_service import TransactionService

logger = logging.getLogger(__name__)

HOA_CATEGORY = ("hoa-dues", "HOA Dues")
MONTHS_PER_YEAR = 12


class DuesStatus(NamedTuple):
    """Year-to-date dues position of a unit."""

    months_elapsed: int
    paid_months: int
    total_paid: Decimal
    due_to_date: Decimal
    balance: Decimal
    status: str


@dataclass
class HOAPaymentResult:
    """Outcome of a recorded HOA dues payment."""

    transaction_id: int
    distribution: PaymentDistribution


def hoa_due_date(client: Client, fiscal_year: int, month_index: int) -> date:
    """Due date of a dues month: month start, or quarter start for quarterly clients."""
    if client.dues_frequency == "quarterly":
        month_index = month_index - month_index % 3
    return fiscal_month_start(fiscal_year, month_index, client.fiscal_year_start_month)


class HOADuesService:
    """HOA dues schedules and payments."""

    def __init__(self, db: Session):
        self.db = db
        self.clients = ClientService(db)
        self.credit = CreditService(db)

    def get_or_create_year(
        self,
        client_code: str,
        unit_code: str,
        fiscal_year: int,
        scheduled_amount: Decimal | None = None,
        commit: bool = True,
    ) -> HOADuesYear:
        """Return the unit's dues year, creating it with 12 unpaid months if needed.

        Args:
            client_code: Client code
            unit_code: Unit code
            fiscal_year: Fiscal year
            scheduled_amount: Monthly dues (default: the unit's monthly_dues)
            commit: Commit a newly created year

        Returns:
            HOADuesYear with its months loaded
        """
        client = self.clients.get_client(client_code)
        unit = self.clients.get_unit(client, unit_code)
        dues_year = self.find_year(client, unit, fiscal_year)
        if dues_year:
            return dues_year

        amount = round_currency(
            scheduled_amount if scheduled_amount is not None else unit.monthly_dues
        )
        if amount < 0:
            raise ValidationError("Scheduled dues amount cannot be negative")
        dues_year = HOADuesYear(
            client_id=client.id,
            unit_id=unit.id,
            fiscal_year=fiscal_year,
            scheduled_amount=amount,
        )
        for month_index in range(MONTHS_PER_YEAR):
            dues_year.months.append(
                HOADuesMonth(
                    month_index=month_index,
                    base_paid=ZERO,
                    penalty_amount=ZERO,
                    penalty_paid=ZERO,
                    status=BillStatus.UNPAID,
                )
            )
        self.db.add(dues_year)
        self.db.flush()
        if commit:
            self.db.commit()
        logger.info(f"Created HOA dues year {fiscal_year} for {client_code}/{unit_code} at {amount}")
        return dues_year

    def find_year(self, client: Client, unit: Unit, fiscal_year: int) -> HOADuesYear | None:
        """The unit's dues year, or None when it was never created."""
        return (
            self.db.query(HOADuesYear)
            .filter(
                HOADuesYear.client_id == client.id,
                HOADuesYear.unit_id == unit.id,
                HOADuesYear.fiscal_year == fiscal_year,
            )
            .first()
        )

    def get_unit_dues(self, client_code: str, unit_code: str, fiscal_year: int) -> HOADuesYear:
        client = self.clients.get_client(client_code)
        unit = self.clients.get_unit(client, unit_code)
        dues_year = self.find_year(client, unit, fiscal_year)
        if not dues_year:
            raise NotFoundError(
                f"No HOA dues for {client_code}/{unit_code} in fiscal year {fiscal_year}"
            )
        return dues_year

    def get_year_dues(self, client_code: str, fiscal_year: int) -> list[HOADuesYear]:
        """All units' dues years of a client for one fiscal year."""
        client = self.clients.get_client(client_code)
        return (
            self.db.query(HOADuesYear)
            .join(Unit, HOADuesYear.unit_id == Unit.id)
            .filter(HOADuesYear.client_id == client.id, HOADuesYear.fiscal_year == fiscal_year)
            .order_by(Unit.unit_code)
            .all()
        )

    def convert_to_bills(self, dues_year: HOADuesYear, client: Client, as_of: date) -> list[BillView]:
        """Turn a dues year into BillViews with penalties calculated as of a date.

        Penalties are computed in memory; stored penalty_amount only changes
        when a payment is recorded.
        """
        config = self.clients.get_penalty_config(client, BillingModule.HOA)
        start_month = client.fiscal_year_start_month
        views = []
        for month in dues_year.months:
            views.append(
                BillView(
                    bill_key=f"hoa:{dues_year.fiscal_year}-{month.month_index:02d}",
                    module="hoa",
                    period=f"{dues_year.fiscal_year}-{month.month_index:02d}",
                    unit_code=dues_year.unit.unit_code,
                    due_date=hoa_due_date(client, dues_year.fiscal_year, month.month_index),
                    current_charge=dues_year.scheduled_amount,
                    penalty_amount=month.penalty_amount,
                    base_paid=month.base_paid,
                    penalty_paid=month.penalty_paid,
                    status=month.status,
                    fiscal_year=dues_year.fiscal_year,
                    month_index=month.month_index,
                    label=fiscal_month_label(dues_year.fiscal_year, month.month_index, start_month),
                    source_id=month.id,
                )
            )
        for view, penalty in recalculate_penalties(views, as_of, config):
            view.penalty_amount = penalty.penalty_amount
        return views

    def apply_bill_payments(
        self,
        bill_payments: list[BillPayment],
        views: dict[str, BillView],
        transaction: Transaction,
        payment: PaymentInput,
    ) -> None:
        """Write HOA payments of a distribution to the month rows (no commit)."""
        for bill_payment in bill_payments:
            if bill_payment.module != "hoa":
                continue
            view = views[bill_payment.bill_key]
            month = self.db.get(HOADuesMonth, bill_payment.source_id)
            month.penalty_amount = view.penalty_amount
            month.base_paid = month.base_paid + bill_payment.base_paid
            month.penalty_paid = month.penalty_paid + bill_payment.penalty_paid
            month.status = bill_payment.new_status
            month.paid_date = payment.payment_date
            month.reference = str(transaction.id)
            month.notes = payment.notes
            month.last_transaction_id = transaction.id
            self.db.add(
                BillPaymentRecord(
                    transaction_id=transaction.id,
                    module="hoa",
                    hoa_month_id=month.id,
                    payment_date=payment.payment_date,
                    amount=bill_payment.amount_paid,
                    base_paid=bill_payment.base_paid,
                    penalty_paid=bill_payment.penalty_paid,
                    payment_method=payment.payment_method,
                    reference=payment.reference,
                )
            )

    def preview_payment(
        self, client_code: str, unit_code: str, fiscal_year: int, amount: Decimal, payment_date: date
    ) -> PaymentDistribution:
        """Calculate how a dues payment would be applied without saving anything."""
        client = self.clients.get_client(client_code)
        unit = self.clients.get_unit(client, unit_code)
        dues_year = self.get_unit_dues(client_code, unit_code, fiscal_year)
        views = self.convert_to_bills(dues_year, client, payment_date)
        credit = self.credit.get_balance_for_unit(client.id, unit.id)
        return calculate_payment_distribution(
            views, amount, credit, allow_partial=client.dues_frequency != "quarterly"
        )

    def record_payment(
        self,
        client_code: str,
        unit_code: str,
        fiscal_year: int,
        payment: PaymentInput,
        actor: str | None = None,
    ) -> HOAPaymentResult:
        """Record an HOA dues payment against a fiscal year.

        Months are paid in order including future months (prepayment);
        anything left over goes to the unit's credit balance.

        Raises:
            ValidationError: If the payment input is invalid
            ConfigurationError: If HOA penalty settings are missing
        """
        validate_payment_input(payment)
        client = self.clients.get_client(client_code)
        unit = self.clients.get_unit(client, unit_code)

        try:
            dues_year = self.get_or_create_year(client_code, unit_code, fiscal_year, commit=False)
            views = self.convert_to_bills(dues_year, client, payment.payment_date)
            credit = self.credit.get_balance_for_unit(client.id, unit.id)
            distribution = calculate_payment_distribution(
                views,
                payment.amount,
                credit,
                allow_partial=client.dues_frequency != "quarterly",
            )
            allocations = AllocationService().build_allocations(
                distribution.bill_payments,
                unit_code,
                credit_used=distribution.credit_used,
                overpayment=distribution.overpayment,
            )
            labels = ", ".join(p.label for p in distribution.bill_payments) or "credit"
            notes = f"HOA Dues payment for Unit {unit_code} - {labels}"
            if payment.notes:
                notes += f" - {payment.notes}"
            category_id, category_name = HOA_CATEGORY

            transaction = TransactionService(self.db).create_transaction(
                client_code,
                transaction_date=payment.payment_date,
                amount=payment.amount,
                unit_code=unit_code,
                category_id=category_id,
                category_name=category_name,
                payment_method=payment.payment_method,
                reference=payment.reference,
                description=f"HOA Dues Unit {unit_code}",
                notes=notes,
                account_name=payment.account_name,
                allocations=allocations,
                commit=False,
            )
            self.apply_bill_payments(
                distribution.bill_payments,
                {view.bill_key: view for view in views},
                transaction,
                payment,
            )
            if distribution.credit_change != 0:
                self.credit.apply_change(
                    client.id,
                    unit.id,
                    distribution.credit_change,
                    transaction_id=transaction.id,
                    note=f"HOA Dues payment {payment.reference or transaction.id}",
                    source="hoaDues",
                    entry_date=payment.payment_date,
                )
            AuditService.log(
                self.db,
                entity_type="transaction",
                entity_id=transaction.id,
                action="hoa_payment",
                changes={
                    "unit_id": unit_code,
                    "fiscal_year": fiscal_year,
                    "months_paid": [p.period for p in distribution.bill_payments],
                    "credit_change": str(distribution.credit_change),
                },
                actor=actor,
            )
            self.db.commit()
        except Exception as e:
            self.db.rollback()
            logger.error("Failed to record HOA payment for %s/%s: %s", client_code, unit_code, e)
            raise

        logger.info(
            "Recorded HOA payment %s for %s/%s: %d months, credit %s -> %s",
            transaction.id,
            client_code,
            unit_code,
            len(distribution.bill_payments),
            distribution.current_credit_balance,
            distribution.new_credit_balance,
        )
        return HOAPaymentResult(transaction_id=transaction.id, distribution=distribution)

    def calculate_dues_status(
        self, dues_year: HOADuesYear, as_of: date, start_month: int = 1
    ) -> DuesStatus:
        """Compare what a unit paid with what it owed up to a date.

        Args:
            dues_year: Dues year to evaluate
            as_of: Evaluation date
            start_month: Client fiscal year start month

        Returns:
            DuesStatus with status "current", "behind" or "no_data"
        """
        first_day, last_day = get_fiscal_year_bounds(dues_year.fiscal_year, start_month)
        if as_of < first_day:
            months_elapsed = 0
        elif as_of > last_day:
            months_elapsed = MONTHS_PER_YEAR
        else:
            months_elapsed = (as_of.month - first_day.month) % 12 + 1

        total_paid = round_currency(dues_year.total_paid)
        due_to_date = round_currency(dues_year.scheduled_amount * months_elapsed)
        balance = due_to_date - total_paid
        if dues_year.scheduled_amount <= 0:
            status = "no_data"
        elif balance <= 0:
            status = "current"
        else:
            status = "behind"
        return DuesStatus(
            months_elapsed=months_elapsed,
            paid_months=sum(1 for m in dues_year.months if m.status == BillStatus.PAID),
            total_paid=total_paid,
            due_to_date=due_to_date,
            balance=balance,
            status=status,
        )

    def get_year_summary(self, dues_year: HOADuesYear) -> dict:
        """Totals and month lists of a dues year."""
        scheduled_total = round_currency(dues_year.scheduled_amount * MONTHS_PER_YEAR)
        total_paid = round_currency(dues_year.total_paid)
        return {
            "fiscal_year": dues_year.fiscal_year,
            "scheduled_amount": dues_year.scheduled_amount,
            "scheduled_total": scheduled_total,
            "total_paid": total_paid,
            "penalties_paid": sum((m.penalty_paid for m in dues_year.months), ZERO),
            "remaining": max(ZERO, scheduled_total - total_paid),
            "paid_months": [m.month_index for m in dues_year.months if m.status == BillStatus.PAID],
            "partial_months": [
                m.month_index for m in dues_year.months if m.status == BillStatus.PARTIAL
            ],
            "unpaid_months": [
                m.month_index for m in dues_year.months if m.status == BillStatus.UNPAID
            ],
        }

    def get_next_month_due(self, dues_year: HOADuesYear, start_month: int = 1) -> dict | None:
        """First month of the year that is not fully paid, or None."""
        for month in dues_year.months:
            if month.status != BillStatus.PAID:
                return {
                    "month_index": month.month_index,
                    "label": fiscal_month_label(dues_year.fiscal_year, month.month_index, start_month),
                    "amount_due": max(ZERO, dues_year.scheduled_amount - month.base_paid),
                }
        return None


__all__ = ["HOADuesService", "HOAPaymentResult", "DuesStatus", "hoa_due_date"]
