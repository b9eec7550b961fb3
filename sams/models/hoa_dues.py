"""HOA dues year and month ORM models."""

from datetime import date
from decimal import Decimal

from sqlalchemy import Date, ForeignKey, Numeric, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from sams.models import Base, BaseModel
from sams.models.water import BillStatus


class HOADuesYear(Base, BaseModel):
    """Dues schedule of one unit for one fiscal year (12 monthly rows)."""

    __tablename__ = "hoa_dues_years"

    client_id: Mapped[int] = mapped_column(ForeignKey("clients.id"), nullable=False, index=True)
    unit_id: Mapped[int] = mapped_column(ForeignKey("units.id"), nullable=False, index=True)
    fiscal_year: Mapped[int] = mapped_column(nullable=False)
    scheduled_amount: Mapped[Decimal] = mapped_column(
        Numeric(12, 2),
        nullable=False,
        comment="Monthly dues owed for each month of the year",
    )

    months: Mapped[list["HOADuesMonth"]] = relationship(
        "HOADuesMonth",
        back_populates="dues_year",
        cascade="all, delete-orphan",
        order_by="HOADuesMonth.month_index",
    )
    unit: Mapped["Unit"] = relationship("Unit")  # noqa: F821

    __table_args__ = (
        UniqueConstraint("client_id", "unit_id", "fiscal_year", name="uq_hoa_dues_year"),
    )

    @property
    def total_paid(self) -> Decimal:
        return sum((m.base_paid for m in self.months), Decimal("0.00"))

    def __repr__(self) -> str:
        return (
            f"<HOADuesYear(id={self.id}, unit_id={self.unit_id}, fiscal_year={self.fiscal_year}, "
            f"scheduled_amount={self.scheduled_amount})>"
        )


class HOADuesMonth(Base, BaseModel):
    """Payment state of one fiscal month of HOA dues."""

    __tablename__ = "hoa_dues_months"

    dues_year_id: Mapped[int] = mapped_column(
        ForeignKey("hoa_dues_years.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    month_index: Mapped[int] = mapped_column(nullable=False, comment="Fiscal month, 0-based")
    base_paid: Mapped[Decimal] = mapped_column(
        Numeric(12, 2), nullable=False, default=Decimal("0.00")
    )
    penalty_amount: Mapped[Decimal] = mapped_column(
        Numeric(12, 2),
        nullable=False,
        default=Decimal("0.00"),
        comment="Penalty assessed when the month was last paid",
    )
    penalty_paid: Mapped[Decimal] = mapped_column(
        Numeric(12, 2), nullable=False, default=Decimal("0.00")
    )
    status: Mapped[BillStatus] = mapped_column(nullable=False, default=BillStatus.UNPAID)
    paid_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    reference: Mapped[str | None] = mapped_column(
        String(100),
        nullable=True,
        comment="Transaction id of the latest payment",
    )
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    last_transaction_id: Mapped[int | None] = mapped_column(nullable=True)

    dues_year: Mapped["HOADuesYear"] = relationship("HOADuesYear", back_populates="months")

    __table_args__ = (UniqueConstraint("dues_year_id", "month_index", name="uq_hoa_dues_month"),)

    def __repr__(self) -> str:
        return (
            f"<HOADuesMonth(id={self.id}, dues_year_id={self.dues_year_id}, "
            f"month_index={self.month_index}, base_paid={self.base_paid}, status={self.status})>"
        )


__all__ = ["HOADuesYear", "HOADuesMonth"]
