"""SQLAlchemy base model with common fields and model exports."""

from datetime import datetime, timezone

from sqlalchemy import DateTime
from sqlalchemy.orm import Mapped, declarative_base, mapped_column

# Base class for all models
Base = declarative_base()


class BaseModel:
    """Base model with common timestamp fields."""

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
        nullable=False,
    )


# Import models to register them with Base (after Base is defined)
# This must be after Base declaration to avoid circular imports
from sams.models.client import Account, Client, Unit  # noqa: E402
from sams.models.billing_config import BillingConfig, BillingModule  # noqa: E402
from sams.models.transaction import Transaction, TransactionAllocation  # noqa: E402
from sams.models.water import BillStatus, WaterBill, WaterReading  # noqa: E402
from sams.models.hoa_dues import HOADuesMonth, HOADuesYear  # noqa: E402
from sams.models.bill_payment import BillPaymentRecord  # noqa: E402
from sams.models.credit import CreditBalance, CreditBalanceEntry  # noqa: E402
from sams.models.audit_log import AuditLog  # noqa: E402

__all__ = [
    "Base",
    "BaseModel",
    "Client",
    "Unit",
    "Account",
    "BillingConfig",
    "BillingModule",
    "Transaction",
    "TransactionAllocation",
    "BillStatus",
    "WaterReading",
    "WaterBill",
    "HOADuesYear",
    "HOADuesMonth",
    "BillPaymentRecord",
    "CreditBalance",
    "CreditBalanceEntry",
    "AuditLog",
]
