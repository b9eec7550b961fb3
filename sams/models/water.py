"""Water meter reading and water bill ORM models."""

from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Any

from sqlalchemy import JSON, Date, ForeignKey, Index, Numeric, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from sams.models import Base, BaseModel


class BillStatus(str, Enum):
    """Payment status shared by water bills and HOA months."""

    UNPAID = "unpaid"
    PARTIAL = "partial"
    PAID = "paid"


class WaterReading(Base, BaseModel):
    """Cumulative meter reading for a unit at the end of a fiscal month."""

    __tablename__ = "water_readings"

    client_id: Mapped[int] = mapped_column(ForeignKey("clients.id"), nullable=False, index=True)
    unit_id: Mapped[int] = mapped_column(ForeignKey("units.id"), nullable=False, index=True)
    fiscal_year: Mapped[int] = mapped_column(nullable=False)
    month_index: Mapped[int] = mapped_column(
        nullable=False,
        comment="Fiscal month, 0-based",
    )
    reading: Mapped[Decimal] = mapped_column(
        Numeric(12, 2),
        nullable=False,
        comment="Meter value in cubic meters",
    )

    unit: Mapped["Unit"] = relationship("Unit")  # noqa: F821

    __table_args__ = (
        UniqueConstraint(
            "client_id", "unit_id", "fiscal_year", "month_index", name="uq_water_reading_period"
        ),
        Index("idx_water_reading_period", "client_id", "fiscal_year", "month_index"),
    )

    def __repr__(self) -> str:
        return (
            f"<WaterReading(id={self.id}, unit_id={self.unit_id}, "
            f"period={self.fiscal_year}-{self.month_index:02d}, reading={self.reading})>"
        )


class WaterBill(Base, BaseModel):
    """Monthly water bill for one unit.

    Bills are postpaid: the bill for a fiscal month charges the consumption
    measured during that month. base_paid and penalty_paid accumulate the
    payments applied to the bill; paid_amount is their sum.
    """

    __tablename__ = "water_bills"

    client_id: Mapped[int] = mapped_column(ForeignKey("clients.id"), nullable=False, index=True)
    unit_id: Mapped[int] = mapped_column(ForeignKey("units.id"), nullable=False, index=True)
    fiscal_year: Mapped[int] = mapped_column(nullable=False)
    month_index: Mapped[int] = mapped_column(nullable=False, comment="Fiscal month, 0-based")

    bill_date: Mapped[date] = mapped_column(Date, nullable=False)
    due_date: Mapped[date] = mapped_column(Date, nullable=False)

    prior_reading: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    current_reading: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    consumption: Mapped[Decimal] = mapped_column(
        Numeric(12, 2),
        nullable=False,
        comment="Cubic meters consumed in the month",
    )

    current_charge: Mapped[Decimal] = mapped_column(
        Numeric(12, 2),
        nullable=False,
        comment="Base charge for the month's consumption",
    )
    penalty_amount: Mapped[Decimal] = mapped_column(
        Numeric(12, 2),
        nullable=False,
        default=Decimal("0.00"),
        comment="Accumulated late penalty",
    )
    base_paid: Mapped[Decimal] = mapped_column(
        Numeric(12, 2), nullable=False, default=Decimal("0.00")
    )
    penalty_paid: Mapped[Decimal] = mapped_column(
        Numeric(12, 2), nullable=False, default=Decimal("0.00")
    )
    paid_amount: Mapped[Decimal] = mapped_column(
        Numeric(12, 2), nullable=False, default=Decimal("0.00")
    )
    status: Mapped[BillStatus] = mapped_column(nullable=False, default=BillStatus.UNPAID, index=True)

    last_penalty_update: Mapped[date | None] = mapped_column(Date, nullable=True)
    last_payment_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    last_transaction_id: Mapped[int | None] = mapped_column(
        nullable=True,
        comment="Most recent transaction applied to the bill",
    )

    config_snapshot: Mapped[dict[str, Any] | None] = mapped_column(
        JSON,
        nullable=True,
        comment="Water rates and penalty settings at generation time",
    )

    unit: Mapped["Unit"] = relationship("Unit")  # noqa: F821

    __table_args__ = (
        UniqueConstraint(
            "client_id", "unit_id", "fiscal_year", "month_index", name="uq_water_bill_period"
        ),
        Index("idx_water_bill_period", "client_id", "fiscal_year", "month_index"),
        Index("idx_water_bill_unit_status", "unit_id", "status"),
    )

    @property
    def period(self) -> str:
        return f"{self.fiscal_year}-{self.month_index:02d}"

    @property
    def total_amount(self) -> Decimal:
        return self.current_charge + self.penalty_amount

    @property
    def unpaid_amount(self) -> Decimal:
        return max(Decimal("0.00"), self.total_amount - self.paid_amount)

    def __repr__(self) -> str:
        return (
            f"<WaterBill(id={self.id}, unit_id={self.unit_id}, period={self.period}, "
            f"current_charge={self.current_charge}, penalty_amount={self.penalty_amount}, "
            f"status={self.status})>"
        )


__all__ = ["BillStatus", "WaterReading", "WaterBill"]
