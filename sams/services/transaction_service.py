"""Transactions: creation with allocations, listing and deletion with reversal."""

import logging
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal

from sqlalchemy.orm import Session

from sams.api.errors import NotFoundError, ValidationError
from sams.models import (
    BillPaymentRecord,
    BillStatus,
    HOADuesMonth,
    Transaction,
    TransactionAllocation,
    WaterBill,
)
from sams.services.allocation_service import AllocationLine
from sams.services.audit_service import AuditService
from sams.services.client_service import ClientService
from sams.services.credit_service import CreditService
from sams.services.locale_service import ZERO, round_currency

logger = logging.getLogger(__name__)


@dataclass
class ReversalSummary:
    """What deleting a transaction undid."""

    transaction_id: int
    water_bills_reversed: list[str] = field(default_factory=list)
    hoa_months_reversed: list[str] = field(default_factory=list)
    credit_reversed: Decimal = ZERO


def bill_status(base_paid: Decimal, penalty_paid: Decimal, base_due: Decimal, penalty_due: Decimal) -> BillStatus:
    """Status from paid and owed totals."""
    if base_paid + penalty_paid <= 0:
        return BillStatus.UNPAID
    if base_paid >= base_due and penalty_paid >= penalty_due:
        return BillStatus.PAID
    return BillStatus.PARTIAL


class TransactionService:
    """Transaction persistence."""

    def __init__(self, db: Session):
        self.db = db
        self.clients = ClientService(db)

    def create_transaction(
        self,
        client_code: str,
        transaction_date: date,
        amount: Decimal,
        unit_code: str | None = None,
        transaction_type: str = "income",
        category_id: str | None = None,
        category_name: str | None = None,
        payment_method: str | None = None,
        reference: str | None = None,
        description: str | None = None,
        notes: str | None = None,
        vendor_name: str | None = None,
        account_name: str | None = None,
        legacy_sequence: str | None = None,
        allocations: list[AllocationLine] | None = None,
        commit: bool = True,
    ) -> Transaction:
        """Create a transaction, optionally split into allocations.

        Args:
            client_code: Client code
            transaction_date: Business date
            amount: Cash amount
            unit_code: Unit the transaction belongs to
            allocations: Split lines; they must sum to amount
            commit: Commit immediately (False when part of a larger unit of work)

        Returns:
            The created Transaction (flushed, so its id is set)

        Raises:
            ValidationError: If the amount is zero or allocations do not sum to it
        """
        amount = round_currency(amount)
        if amount == 0 and not allocations:
            raise ValidationError("Transaction amount cannot be zero")

        client = self.clients.get_client(client_code)
        unit = self.clients.get_unit(client, unit_code) if unit_code else None

        if allocations:
            allocated = sum((line.amount for line in allocations), ZERO)
            if allocated != amount:
                logger.error(
                    "Allocation total %s does not match transaction amount %s", allocated, amount
                )
                raise ValidationError(
                    f"Allocations total {allocated} does not match transaction amount {amount}"
                )
            if len({line.category_id for line in allocations}) > 1:
                category_id, category_name = "-split-", "-Split-"

        transaction = Transaction(
            client_id=client.id,
            unit_id=unit.id if unit else None,
            transaction_date=transaction_date,
            amount=amount,
            transaction_type=transaction_type,
            category_id=category_id,
            category_name=category_name,
            payment_method=payment_method,
            reference=reference,
            description=description,
            notes=notes,
            vendor_name=vendor_name,
            account_name=account_name,
            legacy_sequence=legacy_sequence,
        )
        for line in allocations or []:
            transaction.allocations.append(
                TransactionAllocation(
                    allocation_id=line.allocation_id,
                    allocation_type=line.allocation_type,
                    target_id=line.target_id,
                    target_name=line.target_name,
                    amount=line.amount,
                    category_id=line.category_id,
                    category_name=line.category_name,
                    data=line.data,
                )
            )
        self.db.add(transaction)
        self.db.flush()
        if commit:
            self.db.commit()
        logger.info(
            "Created transaction %s for %s/%s: %s (%s)",
            transaction.id,
            client_code,
            unit_code,
            amount,
            transaction.category_id,
        )
        return transaction

    def get_transaction(self, client_code: str, transaction_id: int) -> Transaction:
        client = self.clients.get_client(client_code)
        transaction = (
            self.db.query(Transaction)
            .filter(Transaction.id == transaction_id, Transaction.client_id == client.id)
            .first()
        )
        if not transaction:
            raise NotFoundError(f"Transaction {transaction_id} not found for client {client_code}")
        return transaction

    def list_transactions(
        self,
        client_code: str,
        unit_code: str | None = None,
        start_date: date | None = None,
        end_date: date | None = None,
    ) -> list[Transaction]:
        """List a client's transactions, newest first, with optional filters."""
        client = self.clients.get_client(client_code)
        query = self.db.query(Transaction).filter(Transaction.client_id == client.id)
        if unit_code:
            unit = self.clients.get_unit(client, unit_code)
            query = query.filter(Transaction.unit_id == unit.id)
        if start_date:
            query = query.filter(Transaction.transaction_date >= start_date)
        if end_date:
            query = query.filter(Transaction.transaction_date <= end_date)
        return query.order_by(Transaction.transaction_date.desc(), Transaction.id.desc()).all()

    def _reverse_water_payment(self, record: BillPaymentRecord) -> str:
        bill: WaterBill = record.water_bill
        bill.base_paid = max(ZERO, bill.base_paid - record.base_paid)
        bill.penalty_paid = max(ZERO, bill.penalty_paid - record.penalty_paid)
        bill.paid_amount = bill.base_paid + bill.penalty_paid
        bill.status = bill_status(
            bill.base_paid, bill.penalty_paid, bill.current_charge, bill.penalty_amount
        )
        latest = self._latest_other_payment(BillPaymentRecord.water_bill_id == bill.id, record)
        bill.last_payment_date = latest.payment_date if latest else None
        bill.last_transaction_id = latest.transaction_id if latest else None
        return bill.period

    def _reverse_hoa_payment(self, record: BillPaymentRecord) -> str:
        month: HOADuesMonth = record.hoa_month
        month.base_paid = max(ZERO, month.base_paid - record.base_paid)
        month.penalty_paid = max(ZERO, month.penalty_paid - record.penalty_paid)
        month.status = bill_status(
            month.base_paid,
            month.penalty_paid,
            month.dues_year.scheduled_amount,
            month.penalty_amount,
        )
        latest = self._latest_other_payment(BillPaymentRecord.hoa_month_id == month.id, record)
        if latest:
            month.paid_date = latest.payment_date
            month.reference = str(latest.transaction_id)
            month.last_transaction_id = latest.transaction_id
        else:
            month.paid_date = None
            month.reference = None
            month.notes = None
            month.last_transaction_id = None
            month.penalty_amount = ZERO
        return f"{month.dues_year.fiscal_year}-{month.month_index:02d}"

    def _latest_other_payment(self, criterion, record: BillPaymentRecord) -> BillPaymentRecord | None:
        return (
            self.db.query(BillPaymentRecord)
            .filter(criterion, BillPaymentRecord.transaction_id != record.transaction_id)
            .order_by(BillPaymentRecord.payment_date.desc(), BillPaymentRecord.id.desc())
            .first()
        )

    def delete_transaction(
        self, client_code: str, transaction_id: int, actor: str | None = None
    ) -> ReversalSummary:
        """Delete a transaction and reverse everything it paid.

        Water bills and HOA months paid by the transaction get their paid
        amounts reduced (never below zero) and their status recomputed, and
        the transaction's credit changes are reversed. All of it happens in
        one database transaction.

        Raises:
            NotFoundError: If the transaction does not exist
            InsufficientCreditError: If credit added by the transaction was spent since
        """
        transaction = self.get_transaction(client_code, transaction_id)
        summary = ReversalSummary(transaction_id=transaction.id)

        try:
            records = (
                self.db.query(BillPaymentRecord)
                .filter(BillPaymentRecord.transaction_id == transaction.id)
                .all()
            )
            for record in records:
                if record.water_bill_id is not None:
                    summary.water_bills_reversed.append(self._reverse_water_payment(record))
                elif record.hoa_month_id is not None:
                    summary.hoa_months_reversed.append(self._reverse_hoa_payment(record))
                self.db.delete(record)

            summary.credit_reversed = CreditService(self.db).reverse_for_transaction(
                transaction.id
            )

            AuditService.log(
                self.db,
                entity_type="transaction",
                entity_id=transaction.id,
                action="delete",
                actor=actor,
                changes={
                    "amount": str(transaction.amount),
                    "water_bills_reversed": summary.water_bills_reversed,
                    "hoa_months_reversed": summary.hoa_months_reversed,
                    "credit_reversed": str(summary.credit_reversed),
                },
            )
            self.db.delete(transaction)
            self.db.commit()
        except Exception as e:
            self.db.rollback()
            logger.error("Failed to delete transaction %s: %s", transaction_id, e)
            raise

        logger.info(
            "Deleted transaction %s: %d water bills, %d HOA months, credit %s reversed",
            transaction_id,
            len(summary.water_bills_reversed),
            len(summary.hoa_months_reversed),
            summary.credit_reversed,
        )
        return summary


__all__ = ["TransactionService", "ReversalSummary", "bill_status"]
