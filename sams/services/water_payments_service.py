"""Water bill payments: preview, recording, history and unpaid summaries.

A payment plus the unit's credit is spread over its unpaid water bills,
oldest first, base charge before penalty. Anything left over becomes
credit. Recording creates one transaction with allocations, updates the
bills, writes BillPaymentRecord rows and moves the credit balance, all in
one database transaction.
"""

import logging
from dataclasses import dataclass
from datetime import date
from decimal import Decimal

from sqlalchemy.orm import Session

from sams.models import BillingModule, BillPaymentRecord, Client, Transaction, Unit, WaterBill
from sams.services.allocation_service import AllocationService
from sams.services.audit_service import AuditService
from sams.services.client_service import ClientService, PenaltyConfig
from sams.services.credit_service import CreditService
from sams.services.dates import local_today
from sams.services.fiscal_year import fiscal_month_label
from sams.services.locale_service import ZERO, round_currency
from sams.services.payment_distribution import (
    BillPayment,
    BillView,
    PaymentDistribution,
    PaymentInput,
    calculate_payment_distribution,
    validate_payment_input,
)
from sams.services.penalty_service import calculate_penalty_for_bill
from sams.services.transaction_service import TransactionService
from sams.services.water_bills_service import WaterBillsService

logger = logging.getLogger(__name__)

WATER_CATEGORY = ("water-consumption", "Water Consumption")


@dataclass
class WaterPaymentResult:
    """Outcome of a recorded water payment."""

    transaction_id: int
    distribution: PaymentDistribution
    payment_type: str
    """bills_paid, or credit_only when the unit had nothing due."""


def water_bill_view(
    bill: WaterBill, unit_code: str, config: PenaltyConfig, as_of: date
) -> BillView:
    """BillView of a water bill with its penalty recalculated as of a date."""
    penalty = calculate_penalty_for_bill(bill, as_of, config)
    return BillView(
        bill_key=f"water:{bill.period}",
        module="water",
        period=bill.period,
        unit_code=unit_code,
        due_date=bill.due_date,
        current_charge=bill.current_charge,
        penalty_amount=penalty.penalty_amount,
        base_paid=bill.base_paid,
        penalty_paid=bill.penalty_paid,
        status=bill.status,
        fiscal_year=bill.fiscal_year,
        month_index=bill.month_index,
        label=fiscal_month_label(bill.fiscal_year, bill.month_index, config.fiscal_year_start_month),
        source_id=bill.id,
    )


def format_money(amount: Decimal) -> str:
    return f"${round_currency(amount):,.2f}"


def build_payment_notes(
    unit_code: str, distribution: PaymentDistribution, user_notes: str | None = None
) -> str:
    """Transaction notes describing what a payment covered.

    Example:
        "Water bill payment for Unit 101 - Jul 2025, Aug 2025 - $900.00 charges + $45.00 penalties"
    """
    parts = [f"Water bill payment for Unit {unit_code}"]
    labels = [p.label or p.period for p in distribution.bill_payments]
    if labels:
        parts.append(", ".join(labels))
    if user_notes:
        parts.append(user_notes)
    if distribution.bill_payments:
        breakdown = f"{format_money(distribution.total_base_charges)} charges"
        if distribution.total_penalties > 0:
            breakdown += f" + {format_money(distribution.total_penalties)} penalties"
        parts.append(breakdown)
    else:
        parts.append(f"No bills due - {format_money(distribution.overpayment)} credit")
    return " - ".join(parts)


class WaterPaymentsService:
    """Water payment recording and reporting."""

    def __init__(self, db: Session):
        self.db = db
        self.clients = ClientService(db)
        self.bills = WaterBillsService(db)
        self.credit = CreditService(db)

    def bill_views(self, client: Client, unit: Unit, as_of: date) -> list[BillView]:
        """Unpaid water bills of a unit as BillViews, oldest first."""
        config = self.clients.get_penalty_config(client, BillingModule.WATER)
        return [
            water_bill_view(bill, unit.unit_code, config, as_of)
            for bill in self.bills.unpaid_bills(unit)
        ]

    def preview_payment(
        self, client_code: str, unit_code: str, amount: Decimal, payment_date: date
    ) -> PaymentDistribution:
        """Calculate how a payment would be applied without saving anything."""
        client = self.clients.get_client(client_code)
        unit = self.clients.get_unit(client, unit_code)
        credit = self.credit.get_balance_for_unit(client.id, unit.id)
        views = self.bill_views(client, unit, payment_date)
        return calculate_payment_distribution(views, amount, credit, allow_partial=True)

    def apply_bill_payments(
        self,
        bill_payments: list[BillPayment],
        views: dict[str, BillView],
        transaction: Transaction,
        payment: PaymentInput,
    ) -> None:
        """Write water bill payments of a distribution to the bill rows (no commit)."""
        for bill_payment in bill_payments:
            if bill_payment.module != "water":
                continue
            view = views[bill_payment.bill_key]
            bill = self.db.get(WaterBill, bill_payment.source_id)
            bill.penalty_amount = view.penalty_amount
            bill.base_paid = bill.base_paid + bill_payment.base_paid
            bill.penalty_paid = bill.penalty_paid + bill_payment.penalty_paid
            bill.paid_amount = bill.base_paid + bill.penalty_paid
            bill.status = bill_payment.new_status
            bill.last_payment_date = payment.payment_date
            bill.last_transaction_id = transaction.id
            self.db.add(
                BillPaymentRecord(
                    transaction_id=transaction.id,
                    module="water",
                    water_bill_id=bill.id,
                    payment_date=payment.payment_date,
                    amount=bill_payment.amount_paid,
                    base_paid=bill_payment.base_paid,
                    penalty_paid=bill_payment.penalty_paid,
                    payment_method=payment.payment_method,
                    reference=payment.reference,
                )
            )

    def record_payment(
        self, client_code: str, unit_code: str, payment: PaymentInput, actor: str | None = None
    ) -> WaterPaymentResult:
        """Record a water payment.

        Args:
            client_code: Client code
            unit_code: Unit code
            payment: Amount, date, method, reference and notes
            actor: Who recorded the payment, for the audit log

        Returns:
            WaterPaymentResult with the transaction id and distribution

        Raises:
            ValidationError: If the payment input is invalid
            ConfigurationError: If water penalty settings are missing
        """
        validate_payment_input(payment)
        client = self.clients.get_client(client_code)
        unit = self.clients.get_unit(client, unit_code)

        views = self.bill_views(client, unit, payment.payment_date)
        credit = self.credit.get_balance_for_unit(client.id, unit.id)
        distribution = calculate_payment_distribution(
            views, payment.amount, credit, allow_partial=True
        )
        allocations = AllocationService().build_allocations(
            distribution.bill_payments,
            unit_code,
            credit_used=distribution.credit_used,
            overpayment=distribution.overpayment,
        )
        category_id, category_name = WATER_CATEGORY

        try:
            transaction = TransactionService(self.db).create_transaction(
                client_code,
                transaction_date=payment.payment_date,
                amount=payment.amount,
                unit_code=unit_code,
                category_id=category_id,
                category_name=category_name,
                payment_method=payment.payment_method,
                reference=payment.reference,
                description=f"Water payment Unit {unit_code}",
                notes=build_payment_notes(unit_code, distribution, payment.notes),
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
                    note=f"Water payment {payment.reference or transaction.id}",
                    source="waterBills",
                    entry_date=payment.payment_date,
                )
            AuditService.log(
                self.db,
                entity_type="transaction",
                entity_id=transaction.id,
                action="water_payment",
                actor=actor,
                changes={
                    "unit_id": unit_code,
                    "amount": str(distribution.payment_amount),
                    "bills_paid": [p.period for p in distribution.bill_payments],
                    "credit_used": str(distribution.credit_used),
                    "overpayment": str(distribution.overpayment),
                },
            )
            self.db.commit()
        except Exception as e:
            self.db.rollback()
            logger.error("Failed to record water payment for %s/%s: %s", client_code, unit_code, e)
            raise

        payment_type = "bills_paid" if distribution.bill_payments else "credit_only"
        logger.info(
            "Recorded water payment %s for %s/%s: %s applied, credit %s -> %s",
            transaction.id,
            client_code,
            unit_code,
            distribution.total_applied,
            distribution.current_credit_balance,
            distribution.new_credit_balance,
        )
        return WaterPaymentResult(
            transaction_id=transaction.id,
            distribution=distribution,
            payment_type=payment_type,
        )

    def get_unpaid_bills_summary(
        self, client_code: str, unit_code: str, as_of: date | None = None
    ) -> dict:
        """Unpaid bills with current penalties, credit balance and recent credit history."""
        client = self.clients.get_client(client_code)
        unit = self.clients.get_unit(client, unit_code)
        as_of = as_of or local_today()
        views = self.bill_views(client, unit, as_of)
        credit = self.credit.get_credit_balance(client_code, unit_code)
        return {
            "unit_id": unit_code,
            "bills": views,
            "total_base_due": sum((v.base_due for v in views), ZERO),
            "total_penalty_due": sum((v.penalty_due for v in views), ZERO),
            "total_due": sum((v.total_due for v in views), ZERO),
            "credit_balance": credit.balance,
            "credit_history": self.credit.get_credit_history(client_code, unit_code, limit=10),
        }

    def get_payment_history(
        self, client_code: str, unit_code: str, fiscal_year: int | None = None
    ) -> list[BillPaymentRecord]:
        """Water payments applied to a unit's bills, newest first."""
        client = self.clients.get_client(client_code)
        unit = self.clients.get_unit(client, unit_code)
        query = (
            self.db.query(BillPaymentRecord)
            .join(WaterBill, BillPaymentRecord.water_bill_id == WaterBill.id)
            .filter(WaterBill.unit_id == unit.id)
        )
        if fiscal_year is not None:
            query = query.filter(WaterBill.fiscal_year == fiscal_year)
        return query.order_by(
            BillPaymentRecord.payment_date.desc(), BillPaymentRecord.id.desc()
        ).all()


__all__ = [
    "WaterPaymentsService",
    "WaterPaymentResult",
    "water_bill_view",
    "build_payment_notes",
]
