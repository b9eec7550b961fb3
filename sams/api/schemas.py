"""Request and response schemas for the HTTP API."""

from datetime import date, datetime
from decimal import Decimal
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from sams.models.water import BillStatus


# Payments


class AmountPreviewPayload(BaseModel):
    """Amount and date to preview a payment distribution for."""

    amount: Decimal = Field(..., ge=0, description="Payment amount")
    payment_date: date


class PaymentDetailsPayload(BaseModel):
    """Payment to record."""

    amount: Decimal = Field(..., gt=0, description="Payment amount")
    payment_date: date
    payment_method: str = Field(..., min_length=1)
    reference: str | None = None
    notes: str | None = None
    account_name: str | None = None


class PaymentPreviewPayload(AmountPreviewPayload):
    unit_id: str = Field(..., description="Unit code")


class PaymentPayload(PaymentDetailsPayload):
    unit_id: str = Field(..., description="Unit code")


class BillPaymentResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    bill_key: str
    module: str
    period: str
    label: str
    amount_paid: Decimal
    base_paid: Decimal
    penalty_paid: Decimal
    new_status: BillStatus
    total_base_due: Decimal
    total_penalty_due: Decimal
    total_due: Decimal


class DistributionResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    payment_amount: Decimal
    current_credit_balance: Decimal
    total_available_funds: Decimal
    bill_payments: list[BillPaymentResponse]
    total_base_charges: Decimal
    total_penalties: Decimal
    total_applied: Decimal
    credit_used: Decimal
    overpayment: Decimal
    new_credit_balance: Decimal
    total_bills_due: Decimal


class PaymentRecordedResponse(BaseModel):
    transaction_id: int
    payment_type: str | None = None
    distribution: DistributionResponse


class BillViewResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    bill_key: str
    module: str
    period: str
    label: str
    due_date: date
    current_charge: Decimal
    penalty_amount: Decimal
    base_paid: Decimal
    penalty_paid: Decimal
    base_due: Decimal
    penalty_due: Decimal
    total_due: Decimal
    status: BillStatus
    priority: int


class ModuleSummaryResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    bills_affected: list[BillPaymentResponse]
    total_paid: Decimal
    base_paid: Decimal
    penalties_paid: Decimal


class UnifiedPreviewResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    payment_amount: Decimal
    current_credit_balance: Decimal
    credit_used: Decimal
    credit_added: Decimal
    final_credit_balance: Decimal
    total_applied: Decimal
    bills: list[BillViewResponse]
    hoa: ModuleSummaryResponse
    water: ModuleSummaryResponse


class UnifiedRecordedResponse(BaseModel):
    transaction_id: int
    preview: UnifiedPreviewResponse


# Water


class ReadingsPayload(BaseModel):
    readings: dict[str, Decimal] = Field(..., description="Meter reading per unit code")


class GenerateBillsPayload(BaseModel):
    year: int = Field(..., description="Fiscal year")
    month: int = Field(..., ge=0, le=11, description="Fiscal month, 0-based")
    bill_date: date | None = None
    due_date: date | None = None


class RecalculatePenaltiesPayload(BaseModel):
    unit_ids: list[str] | None = None
    as_of: date | None = None


class WaterBillResponse(BaseModel):
    id: int
    unit_id: str
    period: str
    fiscal_year: int
    month_index: int
    bill_date: date
    due_date: date
    consumption: Decimal
    current_charge: Decimal
    penalty_amount: Decimal
    base_paid: Decimal
    penalty_paid: Decimal
    paid_amount: Decimal
    total_amount: Decimal
    status: BillStatus
    last_payment_date: date | None = None


class BillGenerationResponse(BaseModel):
    period: str
    bills_generated: int
    total_consumption: Decimal
    total_amount: Decimal
    skipped_units: list[str]
    penalties_updated: int
    bills: list[WaterBillResponse]


class PenaltyRecalculationResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    client_code: str
    processed_bills: int
    updated_bills: int
    skipped_paid: int
    skipped_out_of_scope: int
    total_penalties: Decimal
    processing_time_ms: int
    unit_scope: list[str] | None = None


class BillingConfigPayload(BaseModel):
    penalty_rate: Decimal = Field(..., ge=0, description="Monthly penalty rate (0.05 = 5%)")
    penalty_days: int = Field(..., ge=0, description="Grace period in days")
    rate_per_m3: Decimal | None = Field(default=None, ge=0)
    minimum_charge: Decimal | None = Field(default=None, ge=0)


class BillingConfigResponse(BillingConfigPayload):
    model_config = ConfigDict(from_attributes=True)


class PaymentHistoryResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    transaction_id: int
    payment_date: date
    amount: Decimal
    base_paid: Decimal
    penalty_paid: Decimal
    payment_method: str | None = None
    reference: str | None = None


# Credit


class CreditBalanceResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    client_id: str
    unit_id: str
    balance: Decimal
    display: str
    last_updated: datetime | None = None


class CreditAdjustmentPayload(BaseModel):
    amount: Decimal = Field(..., description="Signed change: positive adds credit")
    note: str | None = None
    source: str = "manual"
    transaction_id: int | None = None


class CreditHistoryPayload(BaseModel):
    amount: Decimal
    entry_date: date
    note: str | None = None
    transaction_id: int | None = None
    source: str = "manual"


class CreditHistoryEntryResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    entry_date: date
    amount: Decimal
    balance_after: Decimal
    transaction_id: int | None = None
    note: str | None = None
    source: str


# HOA dues


class HOADuesMonthResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    month_index: int
    base_paid: Decimal
    penalty_amount: Decimal
    penalty_paid: Decimal
    status: BillStatus
    paid_date: date | None = None
    reference: str | None = None
    notes: str | None = None


class DuesStatusResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    months_elapsed: int
    paid_months: int
    total_paid: Decimal
    due_to_date: Decimal
    balance: Decimal
    status: str


class HOADuesYearResponse(BaseModel):
    unit_id: str
    fiscal_year: int
    scheduled_amount: Decimal
    months: list[HOADuesMonthResponse]
    summary: dict[str, Any]
    status: DuesStatusResponse
    next_month_due: dict[str, Any] | None = None


# Transactions


class TransactionPayload(BaseModel):
    transaction_date: date
    amount: Decimal
    unit_id: str | None = None
    transaction_type: str = "income"
    category_id: str | None = None
    category_name: str | None = None
    vendor_name: str | None = None
    account_name: str | None = None
    payment_method: str | None = None
    reference: str | None = None
    description: str | None = None
    notes: str | None = None


class AllocationResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    allocation_id: str
    allocation_type: str
    target_id: str | None = None
    target_name: str | None = None
    amount: Decimal
    category_id: str | None = None
    category_name: str | None = None


class TransactionResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    transaction_date: date
    amount: Decimal
    transaction_type: str
    category_id: str | None = None
    category_name: str | None = None
    vendor_name: str | None = None
    account_name: str | None = None
    payment_method: str | None = None
    reference: str | None = None
    description: str | None = None
    notes: str | None = None
    legacy_sequence: str | None = None
    allocations: list[AllocationResponse] = []


class ReversalResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    transaction_id: int
    water_bills_reversed: list[str]
    hoa_months_reversed: list[str]
    credit_reversed: Decimal


# Admin


class ImportPayload(BaseModel):
    components: list[str] | None = None
    dry_run: bool = False
    fiscal_year: int | None = None
    data_path: str | None = Field(
        default=None,
        description="Export directory relative to IMPORT_DATA_PATH (default: <client>)",
    )


class ImportResultResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    component: str
    total: int
    success: int
    failed: int
    errors: list[str]
    details: dict[str, Any]
