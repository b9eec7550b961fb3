"""Split allocations for payment transactions.

A payment transaction is split into lines:
- {module} base line per bill: water_bill, hoa_month
- {module} penalty line per bill with penalty paid: water_penalty, hoa_penalty
- account_credit: negative when credit was used, positive for overpayment

The lines of a transaction always sum to the cash amount of the transaction.
"""

from dataclasses import dataclass, field
from decimal import ROUND_DOWN, Decimal
from typing import Any, Iterable

from sams.services.locale_service import ZERO, round_currency
from sams.services.payment_distribution import BillPayment

BASE_ALLOCATION_TYPES = {"water": "water_bill", "hoa": "hoa_month"}
PENALTY_ALLOCATION_TYPES = {"water": "water_penalty", "hoa": "hoa_penalty"}
CREDIT_ALLOCATION_TYPE = "account_credit"

CATEGORIES = {
    "water_bill": ("water-consumption", "Water Consumption"),
    "water_penalty": ("water-penalties", "Water Penalties"),
    "hoa_month": ("hoa-dues", "HOA Dues"),
    "hoa_penalty": ("hoa-penalties", "HOA Penalties"),
    CREDIT_ALLOCATION_TYPE: ("account-credit", "Account Credit"),
}


@dataclass
class AllocationLine:
    """Allocation line before it is persisted as a TransactionAllocation."""

    allocation_id: str
    allocation_type: str
    target_id: str
    target_name: str
    amount: Decimal
    category_id: str
    category_name: str
    data: dict[str, Any] = field(default_factory=dict)


def allocation_id(index: int) -> str:
    """Sequential allocation id: 1 -> alloc_001."""
    return f"alloc_{index:03d}"


def target_id_for(bill_payment: BillPayment) -> str:
    """Allocation target of a bill: bill_<period> for water, month_<n>_<year> for HOA."""
    if bill_payment.module == "hoa":
        fiscal_year, month_index = bill_payment.period.split("-")
        return f"month_{int(month_index) + 1}_{fiscal_year}"
    return f"bill_{bill_payment.period}"


class AllocationService:
    """Builds transaction allocations and even splits."""

    def split_evenly(self, total_amount: Decimal, count: int) -> list[Decimal]:
        """Split an amount into count equal shares, the last share absorbing rounding.

        Ensures: sum(result) == total_amount

        Args:
            total_amount: Amount to split
            count: Number of shares

        Returns:
            List of count Decimal shares
        """
        if count <= 0:
            return []
        total = round_currency(total_amount)
        share = (total / count).quantize(Decimal("0.01"), rounding=ROUND_DOWN)
        shares = [share] * (count - 1)
        shares.append(total - share * (count - 1))
        return shares

    def build_allocations(
        self,
        bill_payments: Iterable[BillPayment],
        unit_code: str,
        credit_used: Decimal = ZERO,
        overpayment: Decimal = ZERO,
        start_index: int = 1,
    ) -> list[AllocationLine]:
        """Create allocation lines for a distribution.

        Args:
            bill_payments: Per-bill payments from a PaymentDistribution
            unit_code: Unit the payment belongs to
            credit_used: Credit consumed by the payment (negative credit line)
            overpayment: Amount added to credit (positive credit line)
            start_index: First allocation number

        Returns:
            Allocation lines in bill order, credit line last
        """
        lines: list[AllocationLine] = []
        index = start_index

        for payment in bill_payments:
            data = {"unit_id": unit_code, "module": payment.module, "period": payment.period}
            target = target_id_for(payment)
            if payment.base_paid > 0:
                allocation_type = BASE_ALLOCATION_TYPES[payment.module]
                category_id, category_name = CATEGORIES[allocation_type]
                lines.append(
                    AllocationLine(
                        allocation_id=allocation_id(index),
                        allocation_type=allocation_type,
                        target_id=target,
                        target_name=payment.label or payment.period,
                        amount=payment.base_paid,
                        category_id=category_id,
                        category_name=category_name,
                        data=data,
                    )
                )
                index += 1
            if payment.penalty_paid > 0:
                allocation_type = PENALTY_ALLOCATION_TYPES[payment.module]
                category_id, category_name = CATEGORIES[allocation_type]
                lines.append(
                    AllocationLine(
                        allocation_id=allocation_id(index),
                        allocation_type=allocation_type,
                        target_id=target,
                        target_name=f"{payment.label or payment.period} penalty",
                        amount=payment.penalty_paid,
                        category_id=category_id,
                        category_name=category_name,
                        data=data,
                    )
                )
                index += 1

        credit_amount = overpayment - credit_used
        if credit_amount != 0:
            category_id, category_name = CATEGORIES[CREDIT_ALLOCATION_TYPE]
            lines.append(
                AllocationLine(
                    allocation_id=allocation_id(index),
                    allocation_type=CREDIT_ALLOCATION_TYPE,
                    target_id=f"credit_{unit_code}",
                    target_name=(
                        f"Credit added for Unit {unit_code}"
                        if credit_amount > 0
                        else f"Credit used for Unit {unit_code}"
                    ),
                    amount=credit_amount,
                    category_id=category_id,
                    category_name=category_name,
                    data={"unit_id": unit_code},
                )
            )
        return lines


__all__ = [
    "AllocationLine",
    "AllocationService",
    "allocation_id",
    "target_id_for",
    "BASE_ALLOCATION_TYPES",
    "PENALTY_ALLOCATION_TYPES",
    "CREDIT_ALLOCATION_TYPE",
]
