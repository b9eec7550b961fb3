"""Unified payments across HOA dues and water bills.

One payment can settle both modules. Open bills are ranked:

    1  past-due HOA months
    2  past-due water bills
    3  current-month HOA dues
    4  current-month water bill
    5  future HOA months (prepayment)

Future water bills are never included because water is billed after
consumption. Levels are processed one at a time; the funds left after a
level carry over to the next, and the remainder becomes credit.
"""

import logging
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal

from sqlalchemy.orm import Session

from sams.models import BillingModule, Client, Unit
from sams.services.allocation_service import AllocationService
from sams.services.audit_service import AuditService
from sams.services.client_service import ClientService
from sams.services.credit_service import CreditService
from sams.services.fiscal_year import get_fiscal_month_index, get_fiscal_year
from sams.services.hoa_dues_service import HOA_CATEGORY, HOADuesService
from sams.services.locale_service import ZERO, round_currency
from sams.services.payment_distribution import (
    BillPayment,
    BillView,
    PaymentInput,
    calculate_payment_distribution,
    validate_payment_input,
)
from sams.services.transaction_service import TransactionService
from sams.services.water_payments_service import WATER_CATEGORY, WaterPaymentsService

logger = logging.getLogger(__name__)

PRIORITY_PAST_DUE_HOA = 1
PRIORITY_PAST_DUE_WATER = 2
PRIORITY_CURRENT_HOA = 3
PRIORITY_CURRENT_WATER = 4
PRIORITY_FUTURE_HOA = 5


@dataclass
class ModuleSummary:
    """Per-module slice of a unified distribution."""

    bills_affected: list[BillPayment] = field(default_factory=list)
    total_paid: Decimal = ZERO
    base_paid: Decimal = ZERO
    penalties_paid: Decimal = ZERO


@dataclass
class UnifiedPaymentPreview:
    """Result of a unified distribution."""

    payment_amount: Decimal
    current_credit_balance: Decimal
    credit_used: Decimal = ZERO
    credit_added: Decimal = ZERO
    final_credit_balance: Decimal = ZERO
    total_applied: Decimal = ZERO
    bills: list[BillView] = field(default_factory=list)
    bill_payments: list[BillPayment] = field(default_factory=list)
    hoa: ModuleSummary = field(default_factory=ModuleSummary)
    water: ModuleSummary = field(default_factory=ModuleSummary)

    @property
    def credit_change(self) -> Decimal:
        return self.final_credit_balance - self.current_credit_balance


@dataclass
class UnifiedPaymentResult:
    transaction_id: int
    preview: UnifiedPaymentPreview


def assign_priority(view: BillView, current_fiscal_year: int, current_month_index: int) -> int | None:
    """Priority level of a bill relative to the current fiscal month, None to exclude it."""
    position = (view.fiscal_year, view.month_index)
    current = (current_fiscal_year, current_month_index)
    if view.module == "hoa":
        if position < current:
            return PRIORITY_PAST_DUE_HOA
        if position == current:
            return PRIORITY_CURRENT_HOA
        return PRIORITY_FUTURE_HOA
    if position < current:
        return PRIORITY_PAST_DUE_WATER
    if position == current:
        return PRIORITY_CURRENT_WATER
    return None


class UnifiedPaymentService:
    """Preview and record payments spanning HOA dues and water bills."""

    def __init__(self, db: Session):
        self.db = db
        self.clients = ClientService(db)
        self.credit = CreditService(db)
        self.hoa = HOADuesService(db)
        self.water = WaterPaymentsService(db)

    def aggregate_bills(self, client: Client, unit: Unit, as_of: date) -> list[BillView]:
        """Open HOA and water bills of a unit, ranked and sorted for payment.

        HOA months come from the previous and current fiscal years, water
        bills from all unpaid bills; penalties are calculated as of as_of.
        """
        start_month = client.fiscal_year_start_month
        fiscal_year = get_fiscal_year(as_of, start_month)
        month_index = get_fiscal_month_index(as_of, start_month)

        views: list[BillView] = []
        for year in (fiscal_year - 1, fiscal_year):
            dues_year = self.hoa.find_year(client, unit, year)
            if dues_year:
                views.extend(
                    v for v in self.hoa.convert_to_bills(dues_year, client, as_of) if v.total_due > 0
                )
        if self.clients.has_billing_config(client, BillingModule.WATER):
            views.extend(v for v in self.water.bill_views(client, unit, as_of) if v.total_due > 0)

        ranked = []
        for view in views:
            priority = assign_priority(view, fiscal_year, month_index)
            if priority is None:
                continue
            view.priority = priority
            ranked.append(view)
        return sorted(ranked, key=lambda v: (v.priority, v.due_date, v.bill_key))

    def _distribute(
        self, bills: list[BillView], amount: Decimal, credit: Decimal
    ) -> UnifiedPaymentPreview:
        preview = UnifiedPaymentPreview(
            payment_amount=round_currency(amount),
            current_credit_balance=credit,
            bills=bills,
        )
        remaining_payment = preview.payment_amount
        remaining_credit = credit

        for level in range(PRIORITY_PAST_DUE_HOA, PRIORITY_FUTURE_HOA + 1):
            level_bills = [b for b in bills if b.priority == level]
            if not level_bills or remaining_payment + remaining_credit <= 0:
                continue
            result = calculate_payment_distribution(
                level_bills, remaining_payment, remaining_credit, allow_partial=True
            )
            preview.bill_payments.extend(result.bill_payments)
            remaining_payment -= result.total_applied - result.credit_used
            remaining_credit -= result.credit_used

        for payment in preview.bill_payments:
            summary = preview.hoa if payment.module == "hoa" else preview.water
            summary.bills_affected.append(payment)
            summary.total_paid += payment.amount_paid
            summary.base_paid += payment.base_paid
            summary.penalties_paid += payment.penalty_paid

        preview.total_applied = preview.hoa.total_paid + preview.water.total_paid
        preview.credit_used = credit - remaining_credit
        preview.credit_added = remaining_payment
        preview.final_credit_balance = remaining_credit + remaining_payment
        return preview

    def preview(
        self, client_code: str, unit_code: str, amount: Decimal, payment_date: date
    ) -> UnifiedPaymentPreview:
        """Calculate a unified distribution without saving anything."""
        client = self.clients.get_client(client_code)
        unit = self.clients.get_unit(client, unit_code)
        bills = self.aggregate_bills(client, unit, payment_date)
        credit = self.credit.get_balance_for_unit(client.id, unit.id)
        return self._distribute(bills, amount, credit)

    def record(
        self, client_code: str, unit_code: str, payment: PaymentInput, actor: str | None = None
    ) -> UnifiedPaymentResult:
        """Record a unified payment as one split transaction.

        Raises:
            ValidationError: If the payment input is invalid
            ConfigurationError: If HOA or water penalty settings are missing
        """
        validate_payment_input(payment)
        client = self.clients.get_client(client_code)
        unit = self.clients.get_unit(client, unit_code)
        bills = self.aggregate_bills(client, unit, payment.payment_date)
        credit = self.credit.get_balance_for_unit(client.id, unit.id)
        preview = self._distribute(bills, payment.amount, credit)

        allocations = AllocationService().build_allocations(
            preview.bill_payments,
            unit_code,
            credit_used=preview.credit_used,
            overpayment=preview.credit_added,
        )
        modules = {p.module for p in preview.bill_payments}
        if modules == {"water"}:
            category_id, category_name = WATER_CATEGORY
        else:
            category_id, category_name = HOA_CATEGORY
        labels = ", ".join(p.label for p in preview.bill_payments) or "credit"
        notes = f"Payment for Unit {unit_code} - {labels}"
        if payment.notes:
            notes += f" - {payment.notes}"

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
                description=f"Payment Unit {unit_code}",
                notes=notes,
                account_name=payment.account_name,
                allocations=allocations,
                commit=False,
            )
            views = {view.bill_key: view for view in bills}
            self.hoa.apply_bill_payments(preview.bill_payments, views, transaction, payment)
            self.water.apply_bill_payments(preview.bill_payments, views, transaction, payment)
            if preview.credit_change != 0:
                self.credit.apply_change(
                    client.id,
                    unit.id,
                    preview.credit_change,
                    transaction_id=transaction.id,
                    note=f"Unified payment {payment.reference or transaction.id}",
                    source="unifiedPayment",
                    entry_date=payment.payment_date,
                )
            AuditService.log(
                self.db,
                entity_type="transaction",
                entity_id=transaction.id,
                action="unified_payment",
                actor=actor,
                changes={
                    "unit_id": unit_code,
                    "hoa_months": [p.period for p in preview.hoa.bills_affected],
                    "water_bills": [p.period for p in preview.water.bills_affected],
                    "credit_change": str(preview.credit_change),
                },
            )
            self.db.commit()
        except Exception as e:
            self.db.rollback()
            logger.error("Failed to record unified payment for %s/%s: %s", client_code, unit_code, e)
            raise

        logger.info(
            "Recorded unified payment %s for %s/%s: HOA %s, water %s, credit %s -> %s",
            transaction.id,
            client_code,
            unit_code,
            preview.hoa.total_paid,
            preview.water.total_paid,
            preview.current_credit_balance,
            preview.final_credit_balance,
        )
        return UnifiedPaymentResult(transaction_id=transaction.id, preview=preview)


__all__ = [
    "UnifiedPaymentService",
    "UnifiedPaymentPreview",
    "UnifiedPaymentResult",
    "ModuleSummary",
    "assign_priority",
]
