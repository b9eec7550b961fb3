"""Unit credit balances and their history.

Credit is the running overpayment balance of a unit. Payments add to it,
bill payments draw from it and transaction deletion reverses both. Every
change is recorded as a CreditBalanceEntry carrying the balance after the
change, and the balance itself can never go below zero.
"""

import logging
from datetime import date, datetime
from decimal import Decimal
from typing import NamedTuple

from sqlalchemy.orm import Session

from sams.api.errors import InsufficientCreditError, ValidationError
from sams.models import CreditBalance, CreditBalanceEntry
from sams.services.client_service import ClientService
from sams.services.dates import local_today
from sams.services.locale_service import ZERO, format_amount, round_currency

logger = logging.getLogger(__name__)

DEFAULT_HISTORY_LIMIT = 50


class CreditBalanceInfo(NamedTuple):
    """Current credit balance of a unit."""

    client_id: str
    unit_id: str
    balance: Decimal
    display: str
    last_updated: datetime | None


class CreditService:
    """Read and change unit credit balances."""

    def __init__(self, db: Session):
        self.db = db
        self.clients = ClientService(db)

    def _find_record(self, client_id: int, unit_id: int) -> CreditBalance | None:
        return (
            self.db.query(CreditBalance)
            .filter(CreditBalance.client_id == client_id, CreditBalance.unit_id == unit_id)
            .first()
        )

    def _get_or_create_record(self, client_id: int, unit_id: int) -> CreditBalance:
        record = self._find_record(client_id, unit_id)
        if not record:
            record = CreditBalance(client_id=client_id, unit_id=unit_id, balance=ZERO)
            self.db.add(record)
            self.db.flush()
        return record

    def _info(self, client_code: str, unit_code: str, record: CreditBalance | None) -> CreditBalanceInfo:
        balance = round_currency(record.balance) if record else ZERO
        return CreditBalanceInfo(
            client_id=client_code,
            unit_id=unit_code,
            balance=balance,
            display=format_amount(balance),
            last_updated=record.updated_at if record else None,
        )

    def get_credit_balance(self, client_code: str, unit_code: str) -> CreditBalanceInfo:
        """Return the unit's credit balance (zero when it never had credit)."""
        client = self.clients.get_client(client_code)
        unit = self.clients.get_unit(client, unit_code)
        return self._info(client_code, unit_code, self._find_record(client.id, unit.id))

    def get_balance_for_unit(self, client_id: int, unit_id: int) -> Decimal:
        """Credit balance by primary keys, for services that already hold the rows."""
        record = self._find_record(client_id, unit_id)
        return round_currency(record.balance) if record else ZERO

    def apply_change(
        self,
        client_id: int,
        unit_id: int,
        amount: Decimal,
        transaction_id: int | None = None,
        note: str | None = None,
        source: str = "manual",
        entry_date: date | None = None,
        enforce_non_negative: bool = True,
    ) -> CreditBalanceEntry:
        """Change a balance inside the caller's unit of work (no commit).

        Raises:
            InsufficientCreditError: If the resulting balance would be negative
        """
        amount = round_currency(amount)
        record = self._get_or_create_record(client_id, unit_id)
        new_balance = round_currency(record.balance) + amount
        if enforce_non_negative and new_balance < 0:
            logger.error(
                "Insufficient credit for unit_id=%s: balance %s, change %s",
                unit_id,
                record.balance,
                amount,
            )
            raise InsufficientCreditError(
                f"Insufficient credit balance: {format_amount(record.balance)} available, "
                f"{format_amount(-amount)} requested"
            )
        record.balance = new_balance
        entry = CreditBalanceEntry(
            credit_balance_id=record.id,
            entry_date=entry_date or local_today(),
            amount=amount,
            balance_after=new_balance,
            transaction_id=transaction_id,
            note=note,
            source=source,
        )
        self.db.add(entry)
        return entry

    def update_credit_balance(
        self,
        client_code: str,
        unit_code: str,
        amount: Decimal,
        transaction_id: int | None = None,
        note: str | None = None,
        source: str = "manual",
        commit: bool = True,
    ) -> CreditBalanceInfo:
        """Add (positive) or use (negative) credit.

        Args:
            client_code: Client code
            unit_code: Unit code
            amount: Signed change
            transaction_id: Transaction that caused the change, if any
            note: Free-text history note
            source: Origin of the change (manual, waterBills, hoaDues, ...)
            commit: Commit the change; otherwise it is only flushed into the
                caller's unit of work

        Returns:
            The balance after the change

        Raises:
            ValidationError: If amount is zero
            InsufficientCreditError: If the balance would become negative
        """
        if round_currency(amount) == 0:
            raise ValidationError("Credit change amount cannot be zero")
        client = self.clients.get_client(client_code)
        unit = self.clients.get_unit(client, unit_code)
        try:
            self.apply_change(client.id, unit.id, amount, transaction_id, note, source)
            if commit:
                self.db.commit()
            else:
                self.db.flush()
        except Exception:
            if commit:
                self.db.rollback()
            raise
        logger.info(f"Credit for {client_code}/{unit_code} changed by {amount} ({source})")
        return self._info(client_code, unit_code, self._find_record(client.id, unit.id))

    def add_credit_history_entry(
        self,
        client_code: str,
        unit_code: str,
        amount: Decimal,
        entry_date: date,
        transaction_id: int | None = None,
        note: str | None = None,
        source: str = "import",
    ) -> CreditBalanceEntry:
        """Record a historical or corrective entry with an explicit date.

        Imported history may have run through a negative balance in the
        legacy system, so the non-negative rule is not enforced here.
        """
        client = self.clients.get_client(client_code)
        unit = self.clients.get_unit(client, unit_code)
        entry = self.apply_change(
            client.id,
            unit.id,
            amount,
            transaction_id=transaction_id,
            note=note,
            source=source,
            entry_date=entry_date,
            enforce_non_negative=False,
        )
        self.db.commit()
        return entry

    def get_credit_history(
        self, client_code: str, unit_code: str, limit: int = DEFAULT_HISTORY_LIMIT
    ) -> list[CreditBalanceEntry]:
        """Return history entries, most recent first."""
        client = self.clients.get_client(client_code)
        unit = self.clients.get_unit(client, unit_code)
        record = self._find_record(client.id, unit.id)
        if not record:
            return []
        return (
            self.db.query(CreditBalanceEntry)
            .filter(CreditBalanceEntry.credit_balance_id == record.id)
            .order_by(CreditBalanceEntry.entry_date.desc(), CreditBalanceEntry.id.desc())
            .limit(limit)
            .all()
        )

    def reverse_for_transaction(self, transaction_id: int, note: str | None = None) -> Decimal:
        """Undo the credit changes a transaction made (no commit).

        Returns:
            Net amount reversed (positive when credit was removed)

        Raises:
            InsufficientCreditError: If credit added by the transaction has
                already been spent
        """
        entries = (
            self.db.query(CreditBalanceEntry)
            .filter(
                CreditBalanceEntry.transaction_id == transaction_id,
                CreditBalanceEntry.source != "reversal",
            )
            .all()
        )
        reversed_total = ZERO
        by_record: dict[int, Decimal] = {}
        for entry in entries:
            by_record[entry.credit_balance_id] = (
                by_record.get(entry.credit_balance_id, ZERO) + entry.amount
            )
        for record_id, net in by_record.items():
            if net == 0:
                continue
            record = self.db.get(CreditBalance, record_id)
            self.apply_change(
                record.client_id,
                record.unit_id,
                -net,
                transaction_id=transaction_id,
                note=note or f"Reversal of transaction {transaction_id}",
                source="reversal",
            )
            reversed_total += net
        return reversed_total


__all__ = ["CreditService", "CreditBalanceInfo", "DEFAULT_HISTORY_LIMIT"]
