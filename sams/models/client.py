"""Client (association), unit and account ORM models."""

from decimal import Decimal

from sqlalchemy import ForeignKey, Index, Numeric, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from sams.models import Base, BaseModel


class Client(Base, BaseModel):
    """A residential association managed by SAMS (e.g. MTC, AVII).

    Every other record is scoped to a client. The fiscal year start month
    drives period naming: with a start month of 7, July 2025 is month 0 of
    fiscal year 2026.
    """

    __tablename__ = "clients"

    code: Mapped[str] = mapped_column(
        String(20),
        unique=True,
        nullable=False,
        index=True,
        comment="Short client identifier used in URLs (MTC, AVII)",
    )
    name: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
        comment="Display name of the association",
    )
    fiscal_year_start_month: Mapped[int] = mapped_column(
        nullable=False,
        default=1,
        comment="Calendar month (1-12) in which the fiscal year starts",
    )
    dues_frequency: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default="monthly",
        comment="HOA dues billing frequency: monthly or quarterly",
    )

    units: Mapped[list["Unit"]] = relationship(
        "Unit",
        back_populates="client",
        cascade="all, delete-orphan",
    )
    accounts: Mapped[list["Account"]] = relationship(
        "Account",
        back_populates="client",
        cascade="all, delete-orphan",
    )

    def __repr__(self) -> str:
        return (
            f"<Client(id={self.id}, code={self.code}, "
            f"fiscal_year_start_month={self.fiscal_year_start_month})>"
        )


class Unit(Base, BaseModel):
    """A unit (apartment/lot) within a client association."""

    __tablename__ = "units"

    client_id: Mapped[int] = mapped_column(
        ForeignKey("clients.id"),
        nullable=False,
        index=True,
        comment="Owning client",
    )
    unit_code: Mapped[str] = mapped_column(
        String(50),
        nullable=False,
        comment="Unit identifier within the client (e.g. 101, 1A)",
    )
    owner_name: Mapped[str | None] = mapped_column(
        String(255),
        nullable=True,
        comment="Owner display name",
    )
    email: Mapped[str | None] = mapped_column(
        String(255),
        nullable=True,
        comment="Owner contact email",
    )
    monthly_dues: Mapped[Decimal] = mapped_column(
        Numeric(12, 2),
        nullable=False,
        default=Decimal("0.00"),
        comment="Scheduled monthly HOA dues amount",
    )
    percent_owned: Mapped[Decimal | None] = mapped_column(
        Numeric(8, 6),
        nullable=True,
        comment="Ownership share of the building",
    )

    client: Mapped["Client"] = relationship("Client", back_populates="units")

    __table_args__ = (
        UniqueConstraint("client_id", "unit_code", name="uq_unit_client_code"),
        Index("idx_unit_client_code", "client_id", "unit_code"),
    )

    def __repr__(self) -> str:
        return f"<Unit(id={self.id}, client_id={self.client_id}, unit_code={self.unit_code})>"


class Account(Base, BaseModel):
    """A bank or cash account that receives transactions."""

    __tablename__ = "accounts"

    client_id: Mapped[int] = mapped_column(
        ForeignKey("clients.id"),
        nullable=False,
        index=True,
        comment="Owning client",
    )
    name: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
        comment="Account name as it appears in legacy exports",
    )
    account_type: Mapped[str] = mapped_column(
        String(50),
        nullable=False,
        default="bank",
        comment="Account type: bank or cash",
    )

    client: Mapped["Client"] = relationship("Client", back_populates="accounts")

    __table_args__ = (UniqueConstraint("client_id", "name", name="uq_account_client_name"),)

    def __repr__(self) -> str:
        return f"<Account(id={self.id}, client_id={self.client_id}, name={self.name})>"


__all__ = ["Client", "Unit", "Account"]
