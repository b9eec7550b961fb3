"""Import of legacy JSON exports.

A client's export directory holds:

    Config.json        client settings, accounts, HOA and water billing config
    Units.json         units with owner and monthly dues
    Transactions.json  all transactions; the unnamed "" field is the legacy sequence number
    HOADues.json       dues per unit with payments whose notes carry "Seq: N"
    waterMeterReadings.json  one row per unit: {"Unit": ..., "<reading date>": value, ...}
    waterCrossRef.json       water charges paid: {PaymentSeq, Unit, ChargeDate,
                             PaymentDate, Category: WC|WCP, AmountApplied}

Transactions are imported first and produce the CrossRef files that map
legacy sequence numbers to new transaction ids:

    HOA_Transaction_CrossRef.json          {generated, totalRecords, bySequence, byUnit}
    Water_Bills_Transaction_CrossRef.json  {generated, totalRecords, byPaymentSeq, byUnit}

HOA dues are imported next and use the HOA CrossRef to attach each dues
payment to its transaction as an hoa_month allocation. Water bills come
last: readings are replayed month by month, bills generated, and the
water charges applied and linked through the water CrossRef.

A dry run performs every component inside one unit of work that is rolled
back when the run ends, so later components see what earlier ones would
have created.
"""

import json
import logging
import re
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta, timezone
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any

from sqlalchemy.orm import Session

from sams.api.errors import (
    ConfigurationError,
    ConflictError,
    ImportAbortedError,
    NotFoundError,
    ValidationError,
)
from sams.models import (
    Account,
    BillingModule,
    BillPaymentRecord,
    Client,
    Transaction,
    TransactionAllocation,
    Unit,
    WaterBill,
)
from sams.services.allocation_service import (
    CATEGORIES,
    CREDIT_ALLOCATION_TYPE,
    AllocationService,
    allocation_id,
)
from sams.services.audit_service import AuditService
from sams.services.client_service import ClientService
from sams.services.credit_service import CreditService
from sams.services.dates import local_today, parse_legacy_date
from sams.services.fiscal_year import (
    fiscal_month_label,
    fiscal_month_start,
    get_fiscal_month_index,
    get_fiscal_year,
    period_id,
    previous_period,
)
from sams.services.hoa_dues_service import HOADuesService
from sams.services.locale_service import ZERO, round_currency
from sams.services.payment_distribution import BillPayment
from sams.services.transaction_service import bill_status
from sams.services.water_bills_service import WaterBillsService

logger = logging.getLogger(__name__)

HOA_CROSSREF_FILE = "HOA_Transaction_CrossRef.json"
WATER_CROSSREF_FILE = "Water_Bills_Transaction_CrossRef.json"
WATER_READINGS_FILE = "waterMeterReadings.json"
WATER_CHARGES_FILE = "waterCrossRef.json"

HOA_CATEGORIES = {"HOA Dues"}
WATER_CATEGORIES = {"Water Consumption", "Consumo de agua"}

# WC pays the consumption charge, WCP pays its penalty
WATER_CHARGE_KINDS = {"WC": "base", "WCP": "penalty"}
WATER_DUE_DAY = 10

SEQUENCE_RE = re.compile(r"Seq:\s*(\d+)")

COMPONENTS = ("config", "units", "transactions", "hoadues", "waterbills")

ROW_ERRORS = (ValidationError, ValueError, TypeError, InvalidOperation)


@dataclass
class ImportResult:
    """Counters for one import component."""

    component: str
    total: int = 0
    success: int = 0
    failed: int = 0
    errors: list[str] = field(default_factory=list)
    details: dict[str, Any] = field(default_factory=dict)


@dataclass
class LegacyWaterPayment:
    """Water charges one legacy payment applied to one bill."""

    sequence: str
    unit_code: str
    payment_date: date
    base: Decimal = ZERO
    penalty: Decimal = ZERO
    rows: int = 0

    @property
    def amount(self) -> Decimal:
        return self.base + self.penalty


def row_error(error: Exception) -> str:
    if isinstance(error, ValidationError):
        return error.message
    if isinstance(error, InvalidOperation):
        return "invalid number"
    return str(error)


def billing_period(read_on: date, start_month: int = 1) -> tuple[int, int]:
    """Fiscal period billed from a meter reading: the month after the reading date."""
    billed = (read_on.replace(day=1) + timedelta(days=32)).replace(day=1)
    return get_fiscal_year(billed, start_month), get_fiscal_month_index(billed, start_month)


def normalize_unit_id(value: Any) -> str | None:
    """Strip owner metadata from a legacy unit id: "102 (Moguel)" -> "102"."""
    if value is None:
        return None
    text = str(value).strip()
    if not text:
        return None
    return text.split("(")[0].strip()


def slugify_category(name: str | None) -> str | None:
    if not name:
        return None
    return re.sub(r"[^a-z0-9]+", "-", name.lower()).strip("-")


def parse_amount(value: Any) -> Decimal:
    """Parse a legacy amount ("1,234.50", 1234.5) into pesos."""
    try:
        return round_currency(Decimal(str(value).replace(",", "").replace("$", "").strip()))
    except (InvalidOperation, ValueError):
        raise ValidationError(f"Invalid amount: {value!r}")


class ImportService:
    """Imports one client's legacy export directory."""

    def __init__(
        self,
        db: Session,
        client_code: str,
        data_path: str | Path,
        dry_run: bool = False,
        max_errors: int = 3,
    ):
        self.db = db
        self.client_code = client_code
        self.data_path = Path(data_path)
        self.dry_run = dry_run
        self.max_errors = max_errors
        self.clients = ClientService(db)
        self.hoa_crossref: dict | None = None
        self.water_crossref: dict | None = None

    def _load_json(self, filename: str) -> Any:
        path = self.data_path / filename
        if not path.exists():
            raise ValidationError(f"Import file not found: {path}")
        with path.open(encoding="utf-8") as f:
            return json.load(f)

    def _write_json(self, filename: str, data: dict) -> None:
        path = self.data_path / filename
        with path.open("w", encoding="utf-8") as f:
            json.dump(data, f, indent=2, ensure_ascii=False, default=str)
        logger.info("Wrote %s", path)

    def _record_failure(self, result: ImportResult, message: str) -> None:
        result.failed += 1
        result.errors.append(message)
        logger.error("[%s] %s", result.component, message)
        if len(result.errors) >= self.max_errors:
            self.db.rollback()
            raise ImportAbortedError(
                f"Import of {result.component} aborted after {len(result.errors)} errors: "
                + "; ".join(result.errors)
            )

    def _finish(self, client: Client | None, result: ImportResult) -> ImportResult:
        if self.dry_run:
            # Kept in the session until run() rolls the whole dry run back
            self.db.flush()
            logger.info("[DRY RUN] %s: %s records would be imported", result.component, result.success)
            return result
        if client is not None:
            AuditService.log(
                self.db,
                entity_type="import",
                entity_id=client.id,
                action=f"import_{result.component}",
                changes={"success": result.success, "failed": result.failed, **result.details},
            )
        self.db.commit()
        logger.info(
            "Imported %s for %s: %d/%d succeeded",
            result.component,
            self.client_code,
            result.success,
            result.total,
        )
        return result

    def import_config(self) -> ImportResult:
        """Create or update the client, its accounts and billing configs from Config.json."""
        result = ImportResult(component="config")
        data = self._load_json("Config.json")

        client = self.db.query(Client).filter(Client.code == self.client_code).first()
        if not client:
            client = Client(code=self.client_code, name=data.get("name", self.client_code))
            self.db.add(client)
        client.name = data.get("name", client.name)
        try:
            client.fiscal_year_start_month = int(data.get("fiscalYearStartMonth", 1))
        except (TypeError, ValueError):
            self.db.rollback()
            raise ValidationError(
                f"Invalid fiscalYearStartMonth: {data.get('fiscalYearStartMonth')!r}"
            )
        client.dues_frequency = data.get("duesFrequency", "monthly")
        self.db.flush()

        accounts = data.get("accounts", [])
        result.total = len(accounts)
        existing = {a.name for a in client.accounts}
        for account in accounts:
            if account["name"] not in existing:
                client.accounts.append(
                    Account(name=account["name"], account_type=account.get("type", "bank"))
                )
            result.success += 1

        for module in BillingModule:
            settings = data.get(module.value)
            if not settings:
                continue
            if "penaltyRate" not in settings or "penaltyDays" not in settings:
                self._record_failure(result, f"{module.value} config needs penaltyRate and penaltyDays")
                continue
            try:
                self.clients.upsert_billing_config(
                    client,
                    module,
                    penalty_rate=Decimal(str(settings["penaltyRate"])),
                    penalty_days=int(settings["penaltyDays"]),
                    rate_per_m3=(
                        Decimal(str(settings["ratePerM3"])) if "ratePerM3" in settings else None
                    ),
                    minimum_charge=(
                        Decimal(str(settings["minimumCharge"]))
                        if "minimumCharge" in settings
                        else None
                    ),
                    commit=False,
                )
            except ROW_ERRORS as e:
                self._record_failure(result, f"{module.value} config: {row_error(e)}")
                continue
            result.details[f"{module.value}_config"] = True
        return self._finish(client, result)

    def import_units(self) -> ImportResult:
        """Create units from Units.json, skipping ones that already exist."""
        result = ImportResult(component="units")
        client = self.clients.get_client(self.client_code)
        units = self._load_json("Units.json")
        result.total = len(units)
        existing = {u.unit_code for u in self.clients.list_units(client)}

        for index, row in enumerate(units):
            unit_code = normalize_unit_id(row.get("UnitID") or row.get("Unit") or row.get("unitId"))
            if not unit_code:
                self._record_failure(result, f"Unit record {index} has no unit id")
                continue
            if unit_code in existing:
                logger.warning("Unit %s already exists, skipping", unit_code)
                continue
            percent = row.get("% Owner", row.get("percentOwned"))
            try:
                dues = parse_amount(row.get("Dues", row.get("monthlyDues", 0)) or 0)
                percent_owned = Decimal(str(percent)) if percent not in (None, "") else None
            except ROW_ERRORS as e:
                self._record_failure(result, f"Unit {unit_code}: {row_error(e)}")
                continue
            self.db.add(
                Unit(
                    client_id=client.id,
                    unit_code=unit_code,
                    owner_name=row.get("Owner") or row.get("owner"),
                    email=row.get("eMail") or row.get("Email") or row.get("email"),
                    monthly_dues=dues,
                    percent_owned=percent_owned,
                )
            )
            existing.add(unit_code)
            result.success += 1
        return self._finish(client, result)

    def _parse_date(self, value: Any, index: int) -> date:
        try:
            return parse_legacy_date(str(value))
        except ValueError as e:
            logger.warning("Transaction %s: %s, using today", index, e)
            return local_today()

    def import_transactions(self) -> ImportResult:
        """Import Transactions.json and write the HOA and water CrossRef files.

        Raises:
            ImportAbortedError: If an account cannot be mapped or too many records fail
        """
        result = ImportResult(component="transactions")
        client = self.clients.get_client(self.client_code)
        rows = self._load_json("Transactions.json")
        result.total = len(rows)

        accounts = {a.name for a in client.accounts}
        units = {u.unit_code: u for u in self.clients.list_units(client)}
        generated = datetime.now(timezone.utc).isoformat()
        hoa_crossref: dict[str, Any] = {
            "generated": generated,
            "totalRecords": 0,
            "bySequence": {},
            "byUnit": {},
        }
        water_crossref: dict[str, Any] = {
            "generated": generated,
            "totalRecords": 0,
            "byPaymentSeq": {},
            "byUnit": {},
        }

        for index, row in enumerate(rows):
            account_name = row.get("Account")
            if account_name not in accounts:
                self.db.rollback()
                raise ImportAbortedError(
                    f"No account mapping found for {account_name!r} in transaction {index}. "
                    f"Available accounts: {', '.join(sorted(accounts))}"
                )
            try:
                amount = parse_amount(row.get("Amount"))
            except ValidationError as e:
                self._record_failure(result, f"Transaction {index}: {e.message}")
                continue

            txn_date = self._parse_date(row.get("Date"), index)
            unit_code = normalize_unit_id(row.get("Unit"))
            unit = units.get(unit_code) if unit_code else None
            if unit_code and unit is None:
                logger.warning("Transaction %s references unknown unit %s", index, unit_code)
            sequence = row.get("")
            category = row.get("Category")

            if self.dry_run:
                transaction_id: Any = f"dry-run-{index}"
            else:
                transaction = Transaction(
                    client_id=client.id,
                    unit_id=unit.id if unit else None,
                    transaction_date=txn_date,
                    amount=amount,
                    transaction_type="income" if amount >= 0 else "expense",
                    category_id=slugify_category(category),
                    category_name=category,
                    vendor_name=row.get("Vendor"),
                    account_name=account_name,
                    payment_method=row.get("Method") or row.get("PaymentMethod"),
                    description=row.get("Description"),
                    notes=row.get("Notes"),
                    legacy_sequence=str(sequence) if sequence not in (None, "") else None,
                )
                self.db.add(transaction)
                self.db.flush()
                transaction_id = transaction.id
            result.success += 1

            if sequence in (None, ""):
                continue
            seq_key = str(sequence)
            if category in HOA_CATEGORIES:
                entry = {
                    "transactionId": transaction_id,
                    "unitId": unit_code,
                    "amount": row.get("Amount"),
                    "date": row.get("Date"),
                }
                hoa_crossref["bySequence"][seq_key] = entry
                hoa_crossref["byUnit"].setdefault(unit_code, []).append(
                    {**entry, "sequenceNumber": sequence}
                )
                hoa_crossref["totalRecords"] += 1
            elif category in WATER_CATEGORIES:
                entry = {
                    "transactionId": transaction_id,
                    "unitId": unit_code,
                    "amount": row.get("Amount"),
                    "date": row.get("Date"),
                    "notes": row.get("Notes") or "",
                }
                water_crossref["byPaymentSeq"][seq_key] = entry
                water_crossref["byUnit"].setdefault(unit_code, []).append(
                    {
                        "paymentSeq": sequence,
                        "transactionId": transaction_id,
                        "amount": row.get("Amount"),
                        "date": row.get("Date"),
                    }
                )
                water_crossref["totalRecords"] += 1

        result.details = {
            "hoa_crossref_records": hoa_crossref["totalRecords"],
            "water_crossref_records": water_crossref["totalRecords"],
        }
        if not self.dry_run:
            self._write_json(HOA_CROSSREF_FILE, hoa_crossref)
            self._write_json(WATER_CROSSREF_FILE, water_crossref)
        self.hoa_crossref = hoa_crossref
        self.water_crossref = water_crossref
        return self._finish(client, result)

    def _load_hoa_crossref(self) -> dict:
        if self.hoa_crossref is not None:
            return self.hoa_crossref
        path = self.data_path / HOA_CROSSREF_FILE
        if not path.exists():
            logger.warning("No HOA CrossRef found, dues payments will not be linked")
            return {"bySequence": {}}
        return self._load_json(HOA_CROSSREF_FILE)

    @staticmethod
    def _parse_dues_payment(payment: dict) -> tuple[int, Decimal, str | None, str | None]:
        """(month number, amount, notes, legacy sequence) of a dues payment row."""
        month_number = int(payment.get("month", 0))
        amount = parse_amount(payment.get("paid", 0) or 0)
        notes = payment.get("notes")
        match = SEQUENCE_RE.search(notes or "")
        return month_number, amount, notes, match.group(1) if match else None

    def import_hoa_dues(self, fiscal_year: int | None = None) -> ImportResult:
        """Import HOADues.json and link dues payments to their transactions.

        Args:
            fiscal_year: Fiscal year the export belongs to (default: current)
        """
        result = ImportResult(component="hoadues")
        client = self.clients.get_client(self.client_code)
        data = self._load_json("HOADues.json")
        fiscal_year = fiscal_year or get_fiscal_year(local_today(), client.fiscal_year_start_month)
        crossref = self._load_hoa_crossref().get("bySequence", {})
        result.total = len(data)
        linked = unlinked = 0
        hoa = HOADuesService(self.db)
        credit = CreditService(self.db)
        allocated_by_transaction: dict[int, Decimal] = {}

        for raw_unit, unit_data in data.items():
            unit_code = normalize_unit_id(raw_unit)
            try:
                unit = self.clients.get_unit(client, unit_code)
                scheduled = parse_amount(unit_data.get("scheduledAmount", unit.monthly_dues))
                starting_credit = parse_amount(unit_data.get("creditBalance", 0) or 0)
                payments = [
                    self._parse_dues_payment(payment)
                    for payment in unit_data.get("payments", [])
                ]
            except NotFoundError as e:
                self._record_failure(result, f"Unit {raw_unit}: {e.message}")
                continue
            except ROW_ERRORS as e:
                self._record_failure(result, f"Unit {raw_unit}: {row_error(e)}")
                continue
            payments = [p for p in payments if 1 <= p[0] <= 12 and p[1] > 0]

            if self.dry_run:
                for _, _, _, sequence in payments:
                    if sequence in crossref:
                        linked += 1
                    else:
                        unlinked += 1
                result.success += 1
                continue

            dues_year = hoa.get_or_create_year(
                self.client_code,
                unit_code,
                fiscal_year,
                scheduled_amount=scheduled,
                commit=False,
            )
            months = {m.month_index: m for m in dues_year.months}

            for month_number, amount, notes, sequence in payments:
                month = months[month_number - 1]
                month.base_paid = month.base_paid + amount
                month.status = bill_status(
                    month.base_paid, month.penalty_paid, dues_year.scheduled_amount, month.penalty_amount
                )
                month.notes = notes

                ref = crossref.get(sequence) if sequence else None
                transaction = self.db.get(Transaction, ref["transactionId"]) if ref else None
                if transaction is None:
                    unlinked += 1
                    continue
                linked += 1
                month.paid_date = transaction.transaction_date
                month.reference = str(transaction.id)
                month.last_transaction_id = transaction.id
                self._add_dues_allocation(transaction, unit_code, fiscal_year, month_number, amount, client)
                self.db.add(
                    BillPaymentRecord(
                        transaction_id=transaction.id,
                        module="hoa",
                        hoa_month_id=month.id,
                        payment_date=transaction.transaction_date,
                        amount=amount,
                        base_paid=amount,
                        penalty_paid=ZERO,
                        payment_method=transaction.payment_method,
                    )
                )
                allocated_by_transaction[transaction.id] = (
                    allocated_by_transaction.get(transaction.id, ZERO) + amount
                )

            if starting_credit:
                credit.apply_change(
                    client.id,
                    unit.id,
                    starting_credit,
                    note="Imported credit balance",
                    source="import",
                    enforce_non_negative=False,
                )
            result.success += 1

        if not self.dry_run:
            self._balance_credit_allocations(allocated_by_transaction)
        result.details = {"linked_payments": linked, "unlinked_payments": unlinked}
        return self._finish(client, result)

    def _add_dues_allocation(
        self,
        transaction: Transaction,
        unit_code: str,
        fiscal_year: int,
        month_number: int,
        amount: Decimal,
        client: Client,
    ) -> None:
        category_id, category_name = CATEGORIES["hoa_month"]
        transaction.allocations.append(
            TransactionAllocation(
                allocation_id=allocation_id(len(transaction.allocations) + 1),
                allocation_type="hoa_month",
                target_id=f"month_{month_number}_{fiscal_year}",
                target_name=fiscal_month_label(
                    fiscal_year, month_number - 1, client.fiscal_year_start_month
                ),
                amount=amount,
                category_id=category_id,
                category_name=category_name,
                data={"unit_id": unit_code, "month": month_number, "fiscal_year": fiscal_year},
            )
        )

    def _balance_credit_allocations(self, allocated_by_transaction: dict[int, Decimal]) -> None:
        """Add a credit line so each linked transaction's allocations sum to its amount."""
        category_id, category_name = CATEGORIES[CREDIT_ALLOCATION_TYPE]
        for transaction_id, allocated in allocated_by_transaction.items():
            transaction = self.db.get(Transaction, transaction_id)
            difference = round_currency(transaction.amount - allocated)
            if difference == 0:
                continue
            unit_code = transaction.unit.unit_code if transaction.unit else None
            transaction.allocations.append(
                TransactionAllocation(
                    allocation_id=allocation_id(len(transaction.allocations) + 1),
                    allocation_type=CREDIT_ALLOCATION_TYPE,
                    target_id=f"credit_{unit_code}",
                    target_name="Credit added" if difference > 0 else "Credit used",
                    amount=difference,
                    category_id=category_id,
                    category_name=category_name,
                    data={"unit_id": unit_code},
                )
            )
            transaction.category_id, transaction.category_name = "-split-", "-Split-"
            logger.debug("Transaction %s: credit allocation %s", transaction_id, difference)

    def _load_water_crossref(self) -> dict:
        if self.water_crossref is not None:
            return self.water_crossref
        if not (self.data_path / WATER_CROSSREF_FILE).exists():
            logger.warning("No water CrossRef found, water payments will not be linked")
            return {"byPaymentSeq": {}}
        return self._load_json(WATER_CROSSREF_FILE)

    def _water_readings_by_period(
        self, rows: list[dict], units: dict[str, Unit], start_month: int, result: ImportResult
    ) -> dict[tuple[int, int], dict[str, Decimal]]:
        """Group meter readings by the fiscal period they bill."""
        periods: dict[tuple[int, int], dict[str, Decimal]] = {}
        for index, row in enumerate(rows):
            unit_code = normalize_unit_id(row.get("Unit"))
            if unit_code not in units:
                self._record_failure(result, f"Readings row {index}: unknown unit {row.get('Unit')!r}")
                continue
            parsed = []
            try:
                for column, value in row.items():
                    if column == "Unit" or value in (None, ""):
                        continue
                    reading = Decimal(str(value))
                    if reading < 0:
                        raise ValidationError(f"negative reading {value!r} on {column}")
                    parsed.append((billing_period(parse_legacy_date(column), start_month), reading))
            except ROW_ERRORS as e:
                self._record_failure(result, f"Readings for unit {unit_code}: {row_error(e)}")
                continue
            for period, reading in parsed:
                periods.setdefault(period, {})[unit_code] = reading
            result.success += 1
        return periods

    def _water_payments_by_period(
        self, charges: list[dict], units: dict[str, Unit], start_month: int, result: ImportResult
    ) -> dict[tuple[int, int], list[LegacyWaterPayment]]:
        """Group charge rows by billed period, then by payment sequence and unit."""
        grouped: dict[tuple[int, int], dict[tuple[str, str], LegacyWaterPayment]] = {}
        for index, charge in enumerate(charges):
            unit_code = normalize_unit_id(charge.get("Unit"))
            kind = WATER_CHARGE_KINDS.get(charge.get("Category"))
            if unit_code not in units or kind is None:
                self._record_failure(
                    result,
                    f"Water charge {index}: unknown unit {charge.get('Unit')!r} "
                    f"or category {charge.get('Category')!r}",
                )
                continue
            try:
                charged_on = parse_legacy_date(str(charge.get("ChargeDate") or ""))
                paid_on = (
                    parse_legacy_date(str(charge["PaymentDate"]))
                    if charge.get("PaymentDate")
                    else charged_on
                )
                amount = parse_amount(charge.get("AmountApplied"))
            except ROW_ERRORS as e:
                self._record_failure(result, f"Water charge {index}: {row_error(e)}")
                continue
            period = (
                get_fiscal_year(charged_on, start_month),
                get_fiscal_month_index(charged_on, start_month),
            )
            sequence = str(charge.get("PaymentSeq"))
            payment = grouped.setdefault(period, {}).setdefault(
                (sequence, unit_code),
                LegacyWaterPayment(sequence=sequence, unit_code=unit_code, payment_date=paid_on),
            )
            if kind == "base":
                payment.base += amount
            else:
                payment.penalty += amount
            payment.rows += 1
        return {period: list(payments.values()) for period, payments in grouped.items()}

    def _apply_water_payment(
        self,
        client: Client,
        unit: Unit,
        payment: LegacyWaterPayment,
        period: tuple[int, int],
        crossref: dict,
        result: ImportResult,
        allocated_by_transaction: dict[int, Decimal],
    ) -> bool | None:
        """Apply one legacy payment to its bill.

        Returns:
            True when linked to a transaction, False when not, None when the
            bill does not exist
        """
        fiscal_year, month_index = period
        bill = (
            self.db.query(WaterBill)
            .filter(
                WaterBill.unit_id == unit.id,
                WaterBill.fiscal_year == fiscal_year,
                WaterBill.month_index == month_index,
            )
            .first()
        )
        if bill is None:
            self._record_failure(
                result,
                f"Water payment {payment.sequence}: no {period_id(*period)} bill "
                f"for unit {unit.unit_code}",
            )
            return None

        bill.base_paid = bill.base_paid + payment.base
        bill.penalty_paid = bill.penalty_paid + payment.penalty
        bill.penalty_amount = max(bill.penalty_amount, bill.penalty_paid)
        bill.paid_amount = bill.base_paid + bill.penalty_paid
        bill.status = bill_status(
            bill.base_paid, bill.penalty_paid, bill.current_charge, bill.penalty_amount
        )
        bill.last_payment_date = payment.payment_date
        result.success += payment.rows

        ref = crossref.get(payment.sequence)
        if ref is None:
            logger.warning("No transaction found in CrossRef for water payment %s", payment.sequence)
            return False
        if self.dry_run:
            return True
        transaction = self.db.get(Transaction, ref["transactionId"])
        if transaction is None:
            return False

        bill.last_payment_date = transaction.transaction_date
        bill.last_transaction_id = transaction.id
        self.db.add(
            BillPaymentRecord(
                transaction_id=transaction.id,
                module="water",
                water_bill_id=bill.id,
                payment_date=transaction.transaction_date,
                amount=payment.amount,
                base_paid=payment.base,
                penalty_paid=payment.penalty,
                payment_method=transaction.payment_method,
            )
        )
        bill_payment = BillPayment(
            bill_key=f"water:{bill.period}",
            module="water",
            period=bill.period,
            amount_paid=payment.amount,
            base_paid=payment.base,
            penalty_paid=payment.penalty,
            new_status=bill.status,
            total_base_due=bill.current_charge,
            total_penalty_due=bill.penalty_amount,
            total_due=bill.total_amount,
            label=fiscal_month_label(fiscal_year, month_index, client.fiscal_year_start_month),
            source_id=bill.id,
        )
        for line in AllocationService().build_allocations(
            [bill_payment], unit.unit_code, start_index=len(transaction.allocations) + 1
        ):
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
        allocated_by_transaction[transaction.id] = (
            allocated_by_transaction.get(transaction.id, ZERO) + payment.amount
        )
        return True

    def import_water_bills(self) -> ImportResult:
        """Replay meter readings into monthly water bills and apply their payments.

        A reading bills the month after it was taken: readings dated in
        January produce February's bills, dated the 1st and due on day
        WATER_DUE_DAY. Charges belong to the bill of their ChargeDate month.
        Periods are processed oldest first (readings, bills, then payments),
        so each generation recalculates penalties on balances as they stood.
        Payments missing from the water CrossRef still update the bill but
        leave no payment record.

        The component is skipped when the client has no readings file or no
        water billing config.
        """
        result = ImportResult(component="waterbills")
        client = self.clients.get_client(self.client_code)
        if not (self.data_path / WATER_READINGS_FILE).exists():
            logger.info("%s not found, skipping water bills import", WATER_READINGS_FILE)
            result.details = {"skipped": f"{WATER_READINGS_FILE} not found"}
            return self._finish(client, result)
        if not self.clients.has_billing_config(client, BillingModule.WATER):
            logger.info("%s has no water billing config, skipping water bills import", self.client_code)
            result.details = {"skipped": "water billing not configured"}
            return self._finish(client, result)

        readings_rows = self._load_json(WATER_READINGS_FILE)
        charges = (
            self._load_json(WATER_CHARGES_FILE)
            if (self.data_path / WATER_CHARGES_FILE).exists()
            else []
        )
        crossref = self._load_water_crossref().get("byPaymentSeq", {})
        result.total = len(readings_rows) + len(charges)
        start_month = client.fiscal_year_start_month
        units = {u.unit_code: u for u in self.clients.list_units(client)}

        readings = self._water_readings_by_period(readings_rows, units, start_month, result)
        payments = self._water_payments_by_period(charges, units, start_month, result)

        water = WaterBillsService(self.db)
        bills_generated = linked = unlinked = 0
        allocated_by_transaction: dict[int, Decimal] = {}

        for period in sorted(set(readings) | set(payments)):
            fiscal_year, month_index = period
            if period in readings:
                water.save_readings(
                    self.client_code, fiscal_year, month_index, readings[period], commit=False
                )
                if previous_period(*period) in readings:
                    bill_date = fiscal_month_start(fiscal_year, month_index, start_month)
                    try:
                        generation = water.generate_bills(
                            self.client_code,
                            fiscal_year,
                            month_index,
                            bill_date=bill_date,
                            due_date=bill_date.replace(day=WATER_DUE_DAY),
                            actor="import",
                            commit=False,
                        )
                    except (ConflictError, ConfigurationError, ValidationError) as e:
                        self._record_failure(result, f"Bills {period_id(*period)}: {e.message}")
                        continue
                    bills_generated += generation.bills_generated

            for payment in payments.get(period, []):
                outcome = self._apply_water_payment(
                    client,
                    units[payment.unit_code],
                    payment,
                    period,
                    crossref,
                    result,
                    allocated_by_transaction,
                )
                if outcome is True:
                    linked += 1
                elif outcome is False:
                    unlinked += 1

        if not self.dry_run:
            self._balance_credit_allocations(allocated_by_transaction)
        result.details = {
            "reading_periods": len(readings),
            "bills_generated": bills_generated,
            "linked_payments": linked,
            "unlinked_payments": unlinked,
        }
        return self._finish(client, result)

    def run(self, components: list[str] | None = None, fiscal_year: int | None = None) -> list[ImportResult]:
        """Run import components in dependency order.

        A dry run is rolled back once every selected component has run.

        Args:
            components: Subset of config, units, transactions, hoadues, waterbills
                (default: all)
            fiscal_year: Fiscal year for HOA dues

        Returns:
            One ImportResult per component run
        """
        selected = components or list(COMPONENTS)
        unknown = set(selected) - set(COMPONENTS)
        if unknown:
            raise ValidationError(f"Unknown import components: {', '.join(sorted(unknown))}")

        results = []
        try:
            for component in COMPONENTS:
                if component not in selected:
                    continue
                logger.info(
                    "Importing %s for %s%s",
                    component,
                    self.client_code,
                    " (dry run)" if self.dry_run else "",
                )
                if component == "config":
                    results.append(self.import_config())
                elif component == "units":
                    results.append(self.import_units())
                elif component == "transactions":
                    results.append(self.import_transactions())
                elif component == "hoadues":
                    results.append(self.import_hoa_dues(fiscal_year))
                elif component == "waterbills":
                    results.append(self.import_water_bills())
        finally:
            if self.dry_run:
                self.db.rollback()
        return results


__all__ = [
    "ImportService",
    "ImportResult",
    "LegacyWaterPayment",
    "billing_period",
    "normalize_unit_id",
    "parse_amount",
    "COMPONENTS",
    "HOA_CROSSREF_FILE",
    "WATER_CROSSREF_FILE",
    "WATER_READINGS_FILE",
    "WATER_CHARGES_FILE",
]
