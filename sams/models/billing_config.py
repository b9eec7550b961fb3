"""Per-client billing configuration for HOA dues and water bills."""

from decimal import Decimal
from enum import Enum

from sqlalchemy import ForeignKey, Numeric, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from sams.models import Base, BaseModel


class BillingModule(str, Enum):
    """Billing modules that carry their own configuration."""

    HOA = "hoa"
    """Monthly HOA dues"""

    WATER = "water"
    """Metered water consumption"""


class BillingConfig(Base, BaseModel):
    """Penalty and rate settings for one client module.

    There are no fallback values: penalty computation refuses to run
    when the row for a module is missing.
    """

    __tablename__ = "billing_configs"

    client_id: Mapped[int] = mapped_column(
        ForeignKey("clients.id"),
        nullable=False,
        index=True,
        comment="Owning client",
    )
    module: Mapped[BillingModule] = mapped_column(
        nullable=False,
        comment="Billing module: hoa or water",
    )
    penalty_rate: Mapped[Decimal] = mapped_column(
        Numeric(6, 4),
        nullable=False,
        comment="Monthly compounding penalty rate (0.05 = 5%)",
    )
    penalty_days: Mapped[int] = mapped_column(
        nullable=False,
        comment="Grace period in days after the due date",
    )
    rate_per_m3: Mapped[Decimal | None] = mapped_column(
        Numeric(10, 2),
        nullable=True,
        comment="Water price per cubic meter",
    )
    minimum_charge: Mapped[Decimal | None] = mapped_column(
        Numeric(10, 2),
        nullable=True,
        comment="Minimum monthly water charge",
    )

    __table_args__ = (UniqueConstraint("client_id", "module", name="uq_billing_config_module"),)

    def snapshot(self) -> dict:
        """Return the settings as a JSON-safe dict for storing on generated bills."""
        return {
            "penalty_rate": str(self.penalty_rate),
            "penalty_days": self.penalty_days,
            "rate_per_m3": str(self.rate_per_m3) if self.rate_per_m3 is not None else None,
            "minimum_charge": (
                str(self.minimum_charge) if self.minimum_charge is not None else None
            ),
        }

    def __repr__(self) -> str:
        return (
            f"<BillingConfig(id={self.id}, client_id={self.client_id}, module={self.module}, "
            f"penalty_rate={self.penalty_rate}, penalty_days={self.penalty_days})>"
        )


__all__ = ["BillingConfig", "BillingModule"]
