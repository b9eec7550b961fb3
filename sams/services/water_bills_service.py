"""Water meter readings and monthly water bill generation."""

import logging
from dataclasses import dataclass, field
from datetime import date, timedelta
from decimal import Decimal

from sqlalchemy.orm import Session

from sams.api.errors import ConfigurationError, ConflictError, ValidationError
from sams.models import BillingModule, BillStatus, Client, Unit, WaterBill, WaterReading
from sams.services.audit_service import AuditService
from sams.services.client_service import ClientService
from sams.services.dates import local_today
from sams.services.fiscal_year import period_id, previous_period
from sams.services.locale_service import ZERO, round_currency
from sams.services.penalty_service import PenaltyRecalculationService

logger = logging.getLogger(__name__)


@dataclass
class BillGenerationResult:
    """Bills created for one month and a summary of the run."""

    period: str
    bills: list[WaterBill] = field(default_factory=list)
    skipped_units: list[str] = field(default_factory=list)
    total_consumption: Decimal = ZERO
    total_amount: Decimal = ZERO
    penalties_updated: int = 0

    @property
    def bills_generated(self) -> int:
        return len(self.bills)


def calculate_water_charge(
    consumption: Decimal, rate_per_m3: Decimal, minimum_charge: Decimal | None
) -> Decimal:
    """Monthly charge: consumption times rate, never below the minimum charge."""
    minimum = round_currency(minimum_charge or ZERO)
    if consumption <= 0 and minimum <= 0:
        return ZERO
    return max(round_currency(Decimal(consumption) * rate_per_m3), minimum)


class WaterBillsService:
    """Readings storage and bill generation for the water module."""

    def __init__(self, db: Session):
        self.db = db
        self.clients = ClientService(db)

    def _validate_period(self, month_index: int) -> None:
        if not 0 <= month_index <= 11:
            raise ValidationError(f"Invalid fiscal month: {month_index} (expected 0-11)")

    def save_readings(
        self,
        client_code: str,
        fiscal_year: int,
        month_index: int,
        readings: dict[str, Decimal],
        commit: bool = True,
    ) -> list[WaterReading]:
        """Store meter readings for a fiscal month, replacing existing ones.

        Args:
            client_code: Client code
            fiscal_year: Fiscal year
            month_index: Fiscal month (0-11)
            readings: Mapping of unit code to cumulative meter value
            commit: Commit the readings; otherwise they are only flushed

        Returns:
            Saved WaterReading rows
        """
        self._validate_period(month_index)
        client = self.clients.get_client(client_code)
        saved = []
        for unit_code, value in readings.items():
            unit = self.clients.get_unit(client, unit_code)
            value = Decimal(str(value))
            if value < 0:
                raise ValidationError(f"Negative meter reading for unit {unit_code}")
            reading = (
                self.db.query(WaterReading)
                .filter(
                    WaterReading.client_id == client.id,
                    WaterReading.unit_id == unit.id,
                    WaterReading.fiscal_year == fiscal_year,
                    WaterReading.month_index == month_index,
                )
                .first()
            )
            if reading:
                reading.reading = value
            else:
                reading = WaterReading(
                    client_id=client.id,
                    unit_id=unit.id,
                    fiscal_year=fiscal_year,
                    month_index=month_index,
                    reading=value,
                )
                self.db.add(reading)
            saved.append(reading)
        if commit:
            self.db.commit()
        else:
            self.db.flush()
        logger.info(
            "Saved %d readings for %s %s", len(saved), client_code, period_id(fiscal_year, month_index)
        )
        return saved

    def _readings_by_unit(self, client: Client, fiscal_year: int, month_index: int) -> dict[int, Decimal]:
        rows = (
            self.db.query(WaterReading)
            .filter(
                WaterReading.client_id == client.id,
                WaterReading.fiscal_year == fiscal_year,
                WaterReading.month_index == month_index,
            )
            .all()
        )
        return {row.unit_id: row.reading for row in rows}

    def get_readings(self, client_code: str, fiscal_year: int, month_index: int) -> dict[str, Decimal]:
        """Return readings of a fiscal month keyed by unit code."""
        self._validate_period(month_index)
        client = self.clients.get_client(client_code)
        rows = (
            self.db.query(WaterReading, Unit)
            .join(Unit, WaterReading.unit_id == Unit.id)
            .filter(
                WaterReading.client_id == client.id,
                WaterReading.fiscal_year == fiscal_year,
                WaterReading.month_index == month_index,
            )
            .order_by(Unit.unit_code)
            .all()
        )
        return {unit.unit_code: reading.reading for reading, unit in rows}

    def generate_bills(
        self,
        client_code: str,
        fiscal_year: int,
        month_index: int,
        bill_date: date | None = None,
        due_date: date | None = None,
        actor: str | None = None,
        commit: bool = True,
    ) -> BillGenerationResult:
        """Generate the water bills of a fiscal month from meter readings.

        Penalties on existing unpaid bills are recalculated first so the new
        month starts from up-to-date balances. Readings are validated before
        anything is written, so a rejected generation leaves stored penalties
        untouched. Consumption is the month's reading minus the previous
        month's reading; units without a previous reading are skipped. No
        bill is created for a zero charge.

        Args:
            client_code: Client code
            fiscal_year: Fiscal year
            month_index: Fiscal month (0-11)
            bill_date: Bill date (default: today)
            due_date: Due date (default: bill date + penalty days)
            actor: Who triggered generation, for the audit log
            commit: Commit the bills; otherwise they are only flushed

        Returns:
            BillGenerationResult

        Raises:
            ConflictError: If bills already exist for the month
            ConfigurationError: If the water rate is not configured
            ValidationError: If a meter reading is lower than the previous one
        """
        self._validate_period(month_index)
        client = self.clients.get_client(client_code)
        config = self.clients.get_billing_config(client, BillingModule.WATER)
        if config.rate_per_m3 is None:
            raise ConfigurationError(f"Water rate per m3 not configured for client {client_code}")

        existing = (
            self.db.query(WaterBill)
            .filter(
                WaterBill.client_id == client.id,
                WaterBill.fiscal_year == fiscal_year,
                WaterBill.month_index == month_index,
            )
            .count()
        )
        if existing:
            raise ConflictError(
                f"Bills already exist for {client_code} {period_id(fiscal_year, month_index)}"
            )

        current = self._readings_by_unit(client, fiscal_year, month_index)
        prior = self._readings_by_unit(client, *previous_period(fiscal_year, month_index))
        if not current:
            raise ValidationError(
                f"No readings recorded for {client_code} {period_id(fiscal_year, month_index)}"
            )
        units = self.clients.list_units(client)
        for unit in units:
            if unit.id in current and unit.id in prior and current[unit.id] < prior[unit.id]:
                raise ValidationError(
                    f"Reading for unit {unit.unit_code} is lower than the previous month"
                )

        bill_date = bill_date or local_today()
        due_date = due_date or bill_date + timedelta(days=config.penalty_days)
        result = BillGenerationResult(period=period_id(fiscal_year, month_index))

        try:
            # Penalties are brought up to date in the same unit of work as the new bills
            penalty_run = PenaltyRecalculationService(self.db).recalculate_for_client(
                client_code, as_of=bill_date, commit=False
            )
            result.penalties_updated = penalty_run.updated_bills

            for unit in units:
                if unit.id not in current:
                    continue
                if unit.id not in prior:
                    logger.warning(
                        "No prior reading for %s/%s, skipping bill", client_code, unit.unit_code
                    )
                    result.skipped_units.append(unit.unit_code)
                    continue
                consumption = current[unit.id] - prior[unit.id]
                charge = calculate_water_charge(consumption, config.rate_per_m3, config.minimum_charge)
                if charge <= 0:
                    continue
                bill = WaterBill(
                    client_id=client.id,
                    unit_id=unit.id,
                    fiscal_year=fiscal_year,
                    month_index=month_index,
                    bill_date=bill_date,
                    due_date=due_date,
                    prior_reading=prior[unit.id],
                    current_reading=current[unit.id],
                    consumption=consumption,
                    current_charge=charge,
                    penalty_amount=ZERO,
                    base_paid=ZERO,
                    penalty_paid=ZERO,
                    paid_amount=ZERO,
                    status=BillStatus.UNPAID,
                    config_snapshot=config.snapshot(),
                )
                self.db.add(bill)
                result.bills.append(bill)
                result.total_consumption += consumption
                result.total_amount += charge

            self.db.flush()
            AuditService.log(
                self.db,
                entity_type="water_bills",
                entity_id=client.id,
                action="generate",
                actor=actor,
                changes={
                    "period": result.period,
                    "bills_generated": result.bills_generated,
                    "total_amount": str(result.total_amount),
                    "skipped_units": result.skipped_units,
                },
            )
            if commit:
                self.db.commit()
            else:
                self.db.flush()
        except Exception as e:
            if commit:
                self.db.rollback()
            logger.error("Water bill generation failed for %s %s: %s", client_code, result.period, e)
            raise

        logger.info(
            "Generated %d water bills for %s %s totaling %s",
            result.bills_generated,
            client_code,
            result.period,
            result.total_amount,
        )
        return result

    def get_bills(
        self, client_code: str, fiscal_year: int, month_index: int, unpaid_only: bool = False
    ) -> list[WaterBill]:
        self._validate_period(month_index)
        client = self.clients.get_client(client_code)
        query = self.db.query(WaterBill).filter(
            WaterBill.client_id == client.id,
            WaterBill.fiscal_year == fiscal_year,
            WaterBill.month_index == month_index,
        )
        if unpaid_only:
            query = query.filter(WaterBill.status != BillStatus.PAID)
        return query.order_by(WaterBill.unit_id).all()

    def get_year_bills(self, client_code: str, fiscal_year: int) -> list[WaterBill]:
        client = self.clients.get_client(client_code)
        return (
            self.db.query(WaterBill)
            .filter(WaterBill.client_id == client.id, WaterBill.fiscal_year == fiscal_year)
            .order_by(WaterBill.month_index, WaterBill.unit_id)
            .all()
        )

    def get_unpaid_bills_for_unit(self, client_code: str, unit_code: str) -> list[WaterBill]:
        """Unpaid and partially paid bills of a unit, oldest first."""
        client = self.clients.get_client(client_code)
        unit = self.clients.get_unit(client, unit_code)
        return self.unpaid_bills(unit)

    def unpaid_bills(self, unit: Unit) -> list[WaterBill]:
        return (
            self.db.query(WaterBill)
            .filter(WaterBill.unit_id == unit.id, WaterBill.status != BillStatus.PAID)
            .order_by(WaterBill.fiscal_year, WaterBill.month_index)
            .all()
        )


__all__ = ["WaterBillsService", "BillGenerationResult", "calculate_water_charge"]
