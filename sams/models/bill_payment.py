"""Record of a payment applied to a water bill or an HOA month."""

from datetime import date
from decimal import Decimal

from sqlalchemy import Date, ForeignKey, Index, Numeric, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from sams.models import Base, BaseModel


class BillPaymentRecord(Base, BaseModel):
    """
    One application of a transaction to one bill.

    Exactly one of water_bill_id / hoa_month_id is set, matching module.
    Deleting a transaction walks these rows to reverse what it paid.
    """

    __tablename__ = "bill_payments"

    transaction_id: Mapped[int] = mapped_column(
        ForeignKey("transactions.id"),
        nullable=False,
        index=True,
        comment="Transaction that made the payment",
    )
    module: Mapped[str] = mapped_column(String(20), nullable=False, comment="water or hoa")
    water_bill_id: Mapped[int | None] = mapped_column(
        ForeignKey("water_bills.id"),
        nullable=True,
        index=True,
    )
    hoa_month_id: Mapped[int | None] = mapped_column(
        ForeignKey("hoa_dues_months.id"),
        nullable=True,
        index=True,
    )
    payment_date: Mapped[date] = mapped_column(Date, nullable=False)
    amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    base_paid: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    penalty_paid: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    payment_method: Mapped[str | None] = mapped_column(String(100), nullable=True)
    reference: Mapped[str | None] = mapped_column(String(255), nullable=True)

    transaction: Mapped["Transaction"] = relationship("Transaction")  # noqa: F821
    water_bill: Mapped["WaterBill | None"] = relationship("WaterBill")  # noqa: F821
    hoa_month: Mapped["HOADuesMonth | None"] = relationship("HOADuesMonth")  # noqa: F821

    __table_args__ = (Index("idx_bill_payment_module", "module", "transaction_id"),)

    def __repr__(self) -> str:
        return (
            f"<BillPaymentRecord(id={self.id}, transaction_id={self.transaction_id}, "
            f"module={self.module}, amount={self.amount})>"
        )


__all__ = ["BillPaymentRecord"]
