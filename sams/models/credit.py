"""Unit credit balance and credit history ORM models."""

from datetime import date
from decimal import Decimal

from sqlalchemy import Date, ForeignKey, Numeric, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from sams.models import Base, BaseModel


class CreditBalance(Base, BaseModel):
    """Running overpayment balance of one unit. Never negative."""

    __tablename__ = "credit_balances"

    client_id: Mapped[int] = mapped_column(ForeignKey("clients.id"), nullable=False, index=True)
    unit_id: Mapped[int] = mapped_column(ForeignKey("units.id"), nullable=False, index=True)
    balance: Mapped[Decimal] = mapped_column(
        Numeric(12, 2),
        nullable=False,
        default=Decimal("0.00"),
    )

    entries: Mapped[list["CreditBalanceEntry"]] = relationship(
        "CreditBalanceEntry",
        back_populates="credit_balance",
        cascade="all, delete-orphan",
    )
    unit: Mapped["Unit"] = relationship("Unit")  # noqa: F821

    __table_args__ = (UniqueConstraint("client_id", "unit_id", name="uq_credit_balance_unit"),)

    def __repr__(self) -> str:
        return f"<CreditBalance(id={self.id}, unit_id={self.unit_id}, balance={self.balance})>"


class CreditBalanceEntry(Base, BaseModel):
    """History line for a credit balance change."""

    __tablename__ = "credit_balance_entries"

    credit_balance_id: Mapped[int] = mapped_column(
        ForeignKey("credit_balances.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    entry_date: Mapped[date] = mapped_column(Date, nullable=False)
    amount: Mapped[Decimal] = mapped_column(
        Numeric(12, 2),
        nullable=False,
        comment="Signed change: positive adds credit, negative uses it",
    )
    balance_after: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    transaction_id: Mapped[int | None] = mapped_column(
        nullable=True,
        index=True,
        comment="Transaction that caused the change (kept after the transaction is deleted)",
    )
    note: Mapped[str | None] = mapped_column(String(500), nullable=True)
    source: Mapped[str] = mapped_column(
        String(50),
        nullable=False,
        default="manual",
        comment="waterBills, hoaDues, unifiedPayment, manual, import, reversal",
    )

    credit_balance: Mapped["CreditBalance"] = relationship(
        "CreditBalance", back_populates="entries"
    )

    def __repr__(self) -> str:
        return (
            f"<CreditBalanceEntry(id={self.id}, credit_balance_id={self.credit_balance_id}, "
            f"amount={self.amount}, balance_after={self.balance_after}, source={self.source})>"
        )


__all__ = ["CreditBalance", "CreditBalanceEntry"]
