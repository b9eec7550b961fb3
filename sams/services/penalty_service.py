"""Late penalty calculation and recalculation.

Penalties compound monthly on the unpaid base charge once the grace period
after the due date has passed:

    grace_end = due_date + penalty_days
    months_overdue = max(1, ceil(days_past_grace / 30))   (0 until grace_end)
    penalty = principal * ((1 + rate) ** months_overdue - 1)

The compounding is done month by month on a running total and rounded to the
centavo once at the end. Bills that share a due date (quarterly billing) are
penalized as a group: the penalty is computed on the group's unpaid total and
split evenly across its unpaid bills.
"""

import logging
import math
import time
from dataclasses import dataclass, field
from datetime import date, timedelta
from decimal import Decimal
from itertools import groupby
from typing import Any, NamedTuple

from sqlalchemy.orm import Session

from sams.api.errors import AppError, ValidationError
from sams.models import BillingModule, BillStatus, Client, WaterBill
from sams.services.allocation_service import AllocationService
from sams.services.client_service import ClientService, PenaltyConfig
from sams.services.dates import local_today
from sams.services.fiscal_year import fiscal_month_start
from sams.services.locale_service import CENT, ZERO, round_currency

logger = logging.getLogger(__name__)

DAYS_PER_PENALTY_MONTH = 30


class PenaltyResult(NamedTuple):
    """Outcome of a penalty calculation for one bill."""

    penalty_amount: Decimal
    updated: bool
    months_overdue: int


def calculate_due_date(bill: Any, start_month: int = 1) -> date:
    """Return the due date of a bill.

    Uses the bill's own due_date when set; otherwise the first day of the
    calendar month of its fiscal period.
    """
    due_date = getattr(bill, "due_date", None)
    if due_date:
        return due_date
    return fiscal_month_start(bill.fiscal_year, bill.month_index, start_month)


def calculate_months_overdue(due_date: date, as_of: date, grace_days: int) -> int:
    """Number of penalty months elapsed after the grace period."""
    grace_end = due_date + timedelta(days=grace_days)
    if as_of <= grace_end:
        return 0
    days_past_grace = (as_of - grace_end).days
    return max(1, math.ceil(days_past_grace / DAYS_PER_PENALTY_MONTH))


def calculate_compounding_penalty(principal: Decimal, months: int, rate: Decimal) -> Decimal:
    """Compound a monthly penalty on principal.

    Args:
        principal: Unpaid base amount
        months: Months overdue
        rate: Monthly rate (0.05 = 5%)

    Returns:
        Total penalty rounded to the centavo
    """
    if principal <= 0 or months <= 0 or rate <= 0:
        return ZERO
    running_total = Decimal(principal)
    penalty = Decimal("0")
    for _ in range(months):
        month_penalty = running_total * rate
        penalty += month_penalty
        running_total += month_penalty
    return round_currency(penalty)


def _unpaid_principal(bill: Any) -> Decimal:
    return max(ZERO, round_currency(bill.current_charge - bill.base_paid))


def _result_for(bill: Any, expected: Decimal, months: int) -> PenaltyResult:
    # A recalculation never drops the penalty below what was already paid
    expected = max(expected, round_currency(bill.penalty_paid or ZERO))
    current = round_currency(bill.penalty_amount or ZERO)
    return PenaltyResult(expected, abs(expected - current) > CENT, months)


def calculate_penalty_for_bill(bill: Any, as_of: date, config: PenaltyConfig) -> PenaltyResult:
    """Calculate the penalty a single bill should carry on a date.

    Bills whose base charge is fully paid keep their current penalty.

    Args:
        bill: WaterBill or BillView
        as_of: Calculation date
        config: Validated penalty settings

    Returns:
        PenaltyResult with the expected penalty and whether it differs from
        the stored one by more than one centavo
    """
    principal = _unpaid_principal(bill)
    if principal <= 0:
        return PenaltyResult(round_currency(bill.penalty_amount or ZERO), False, 0)

    due_date = calculate_due_date(bill, config.fiscal_year_start_month)
    months = calculate_months_overdue(due_date, as_of, config.penalty_days)
    expected = calculate_compounding_penalty(principal, months, config.penalty_rate)
    return _result_for(bill, expected, months)


def group_bills_by_due_date(bills: list[Any], start_month: int = 1) -> list[tuple[date, list[Any]]]:
    """Group bills by due date, earliest first."""

    def due_key(bill: Any) -> date:
        return calculate_due_date(bill, start_month)

    return [(due, list(group)) for due, group in groupby(sorted(bills, key=due_key), key=due_key)]


def recalculate_penalties(
    bills: list[Any], as_of: date, config: PenaltyConfig
) -> list[tuple[Any, PenaltyResult]]:
    """Recalculate penalties for one unit's bills grouped by due date.

    Paid bills and bills with no unpaid base charge are left out of the
    result. Within a due-date group the compounding penalty of the group
    total is split evenly across the unpaid bills, the last one absorbing
    the rounding remainder.
    """
    splitter = AllocationService()
    results: list[tuple[Any, PenaltyResult]] = []
    open_bills = [
        b for b in bills if b.status != BillStatus.PAID and _unpaid_principal(b) > 0
    ]
    for due_date, group in group_bills_by_due_date(open_bills, config.fiscal_year_start_month):
        principal = sum((_unpaid_principal(b) for b in group), ZERO)
        months = calculate_months_overdue(due_date, as_of, config.penalty_days)
        group_penalty = calculate_compounding_penalty(principal, months, config.penalty_rate)
        for bill, share in zip(group, splitter.split_evenly(group_penalty, len(group))):
            results.append((bill, _result_for(bill, share, months)))
    return results


@dataclass
class PenaltyRecalculationResult:
    """Counters from a penalty recalculation run for one client."""

    client_code: str
    processed_bills: int = 0
    updated_bills: int = 0
    skipped_paid: int = 0
    skipped_out_of_scope: int = 0
    total_penalties: Decimal = ZERO
    processing_time_ms: int = 0
    unit_scope: list[str] | None = None


@dataclass
class MonthlyPenaltyRun:
    """Result of the all-clients monthly penalty job."""

    results: list[PenaltyRecalculationResult] = field(default_factory=list)
    errors: list[dict] = field(default_factory=list)

    @property
    def total_updated(self) -> int:
        return sum(r.updated_bills for r in self.results)


class PenaltyRecalculationService:
    """Persists water bill penalty recalculations."""

    def __init__(self, db: Session):
        self.db = db
        self.clients = ClientService(db)

    def recalculate_for_client(
        self,
        client_code: str,
        as_of: date | None = None,
        unit_ids: list[str] | None = None,
        commit: bool = True,
    ) -> PenaltyRecalculationResult:
        """Recalculate and store penalties on a client's unpaid water bills.

        Args:
            client_code: Client code
            as_of: Calculation date (default: today in the business timezone)
            unit_ids: Restrict the run to these unit codes
            commit: Commit the updates; otherwise they are only flushed into
                the caller's unit of work

        Returns:
            PenaltyRecalculationResult counters

        Raises:
            ConfigurationError: If the client's water penalty settings are missing
        """
        started = time.monotonic()
        as_of = as_of or local_today()
        client = self.clients.get_client(client_code)
        config = self.clients.get_penalty_config(client, BillingModule.WATER)

        result = PenaltyRecalculationResult(
            client_code=client_code,
            unit_scope=list(unit_ids) if unit_ids else None,
        )
        scope = set(unit_ids) if unit_ids else None

        bills = (
            self.db.query(WaterBill)
            .filter(WaterBill.client_id == client.id)
            .order_by(WaterBill.fiscal_year, WaterBill.month_index)
            .all()
        )

        candidates = []
        for bill in bills:
            if scope is not None and bill.unit.unit_code not in scope:
                result.skipped_out_of_scope += 1
                continue
            if bill.status == BillStatus.PAID:
                result.skipped_paid += 1
                continue
            candidates.append(bill)

        by_unit: dict[int, list[WaterBill]] = {}
        for bill in candidates:
            by_unit.setdefault(bill.unit_id, []).append(bill)

        try:
            for unit_bills in by_unit.values():
                for bill, penalty in recalculate_penalties(unit_bills, as_of, config):
                    result.processed_bills += 1
                    if penalty.updated:
                        bill.penalty_amount = penalty.penalty_amount
                        bill.last_penalty_update = as_of
                        result.updated_bills += 1
                    result.total_penalties += penalty.penalty_amount
            if commit:
                self.db.commit()
            else:
                self.db.flush()
        except Exception as e:
            if commit:
                self.db.rollback()
            logger.error("Penalty recalculation failed for %s: %s", client_code, e)
            raise

        result.processing_time_ms = int((time.monotonic() - started) * 1000)
        logger.info(
            "Penalties recalculated for %s: %s processed, %s updated, total %s",
            client_code,
            result.processed_bills,
            result.updated_bills,
            result.total_penalties,
        )
        return result

    def recalculate_for_units(
        self, client_code: str, unit_ids: list[str], as_of: date | None = None
    ) -> PenaltyRecalculationResult:
        """Recalculate penalties only for the given units."""
        if not unit_ids:
            raise ValidationError("unit_ids must be a non-empty list")
        return self.recalculate_for_client(client_code, as_of=as_of, unit_ids=unit_ids)

    def recalculate_all_clients(self, as_of: date | None = None) -> MonthlyPenaltyRun:
        """Run the monthly penalty job for every client with water bills.

        A failing client is recorded and the run continues with the rest.
        """
        run = MonthlyPenaltyRun()
        client_codes = [
            code
            for (code,) in self.db.query(Client.code)
            .join(WaterBill, WaterBill.client_id == Client.id)
            .distinct()
            .order_by(Client.code)
            .all()
        ]
        for code in client_codes:
            try:
                run.results.append(self.recalculate_for_client(code, as_of=as_of))
            except AppError as e:
                logger.error("Monthly penalty run failed for %s: %s", code, e.message)
                run.errors.append({"client": code, "error": e.message, "error_type": e.code})
            except Exception as e:
                self.db.rollback()
                logger.error("Monthly penalty run failed for %s", code, exc_info=True)
                run.errors.append({"client": code, "error": str(e), "error_type": "internal_error"})
        return run

    def get_penalty_summary(self, client_code: str, unit_code: str | None = None) -> dict:
        """Total penalties and unpaid bill count for a client or one unit."""
        client = self.clients.get_client(client_code)
        query = self.db.query(WaterBill).filter(
            WaterBill.client_id == client.id, WaterBill.status != BillStatus.PAID
        )
        if unit_code:
            unit = self.clients.get_unit(client, unit_code)
            query = query.filter(WaterBill.unit_id == unit.id)
        bills = query.all()
        total_penalties = sum(
            (max(ZERO, b.penalty_amount - b.penalty_paid) for b in bills), ZERO
        )
        return {
            "client_id": client_code,
            "unit_id": unit_code,
            "total_penalties": round_currency(total_penalties),
            "unpaid_bill_count": len(bills),
            "bills_with_penalties": sum(1 for b in bills if b.penalty_amount > 0),
        }


__all__ = [
    "PenaltyResult",
    "PenaltyRecalculationResult",
    "MonthlyPenaltyRun",
    "PenaltyRecalculationService",
    "calculate_due_date",
    "calculate_months_overdue",
    "calculate_compounding_penalty",
    "calculate_penalty_for_bill",
    "recalculate_penalties",
]
