"""Transaction and split allocation ORM models."""

from datetime import date
from decimal import Decimal
from typing import Any

from sqlalchemy import JSON, Date, ForeignKey, Index, Numeric, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from sams.models import Base, BaseModel


class Transaction(Base, BaseModel):
    """A money movement recorded against a client account.

    Income transactions created by payment recording carry allocations that
    say which bills, penalties and credit movements the amount covers. The
    allocations of a transaction always sum to its amount.
    """

    __tablename__ = "transactions"

    client_id: Mapped[int] = mapped_column(
        ForeignKey("clients.id"),
        nullable=False,
        index=True,
        comment="Owning client",
    )
    unit_id: Mapped[int | None] = mapped_column(
        ForeignKey("units.id"),
        nullable=True,
        index=True,
        comment="Unit the transaction belongs to, if any",
    )
    transaction_date: Mapped[date] = mapped_column(
        Date,
        nullable=False,
        index=True,
        comment="Business date in the client timezone",
    )
    amount: Mapped[Decimal] = mapped_column(
        Numeric(12, 2),
        nullable=False,
        comment="Cash amount (positive for income)",
    )
    transaction_type: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default="income",
        comment="income or expense",
    )
    category_id: Mapped[str | None] = mapped_column(
        String(100),
        nullable=True,
        comment="Category slug, -split- for multi-category transactions",
    )
    category_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    vendor_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    account_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    payment_method: Mapped[str | None] = mapped_column(String(100), nullable=True)
    reference: Mapped[str | None] = mapped_column(String(255), nullable=True)
    description: Mapped[str | None] = mapped_column(String(500), nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    legacy_sequence: Mapped[str | None] = mapped_column(
        String(50),
        nullable=True,
        index=True,
        comment="Sequence number from the legacy export",
    )

    allocations: Mapped[list["TransactionAllocation"]] = relationship(
        "TransactionAllocation",
        back_populates="transaction",
        cascade="all, delete-orphan",
        order_by="TransactionAllocation.allocation_id",
    )
    unit: Mapped["Unit | None"] = relationship("Unit")  # noqa: F821

    __table_args__ = (Index("idx_transaction_client_date", "client_id", "transaction_date"),)

    @property
    def is_split(self) -> bool:
        return len(self.allocations) > 1

    def __repr__(self) -> str:
        return (
            f"<Transaction(id={self.id}, client_id={self.client_id}, unit_id={self.unit_id}, "
            f"amount={self.amount}, category_id={self.category_id}, "
            f"transaction_date={self.transaction_date})>"
        )


class TransactionAllocation(Base, BaseModel):
    """One split line of a transaction.

    Types: water_bill, water_penalty, hoa_month, hoa_penalty, account_credit.
    Credit usage is a negative account_credit line, overpayment a positive one.
    """

    __tablename__ = "transaction_allocations"

    transaction_id: Mapped[int] = mapped_column(
        ForeignKey("transactions.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    allocation_id: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        comment="Sequential id within the transaction (alloc_001)",
    )
    allocation_type: Mapped[str] = mapped_column(String(50), nullable=False)
    target_id: Mapped[str | None] = mapped_column(
        String(100),
        nullable=True,
        comment="bill_<period>, month_<n>_<year> or credit_<unit>",
    )
    target_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    category_id: Mapped[str | None] = mapped_column(String(100), nullable=True)
    category_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    data: Mapped[dict[str, Any] | None] = mapped_column(JSON, nullable=True)
    """Extra context: unit, module, fiscal year, period."""

    transaction: Mapped["Transaction"] = relationship("Transaction", back_populates="allocations")

    def __repr__(self) -> str:
        return (
            f"<TransactionAllocation(id={self.id}, transaction_id={self.transaction_id}, "
            f"allocation_id={self.allocation_id}, type={self.allocation_type}, "
            f"amount={self.amount})>"
        )


__all__ = ["Transaction", "TransactionAllocation"]
