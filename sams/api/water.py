"""Water billing API routes."""

import logging
from datetime import date

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from sams.api.schemas import (
    BillGenerationResponse,
    BillingConfigPayload,
    BillingConfigResponse,
    BillViewResponse,
    DistributionResponse,
    GenerateBillsPayload,
    PaymentHistoryResponse,
    PaymentPayload,
    PaymentPreviewPayload,
    PaymentRecordedResponse,
    PenaltyRecalculationResponse,
    ReadingsPayload,
    RecalculatePenaltiesPayload,
    WaterBillResponse,
)
from sams.models import BillingModule, WaterBill
from sams.services.client_service import ClientService
from sams.services.db import get_db
from sams.services.payment_distribution import PaymentInput
from sams.services.penalty_service import PenaltyRecalculationService
from sams.services.water_bills_service import WaterBillsService
from sams.services.water_payments_service import WaterPaymentsService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/water/clients/{client_id}", tags=["water"])


def water_bill_response(bill: WaterBill) -> WaterBillResponse:
    return WaterBillResponse(
        id=bill.id,
        unit_id=bill.unit.unit_code,
        period=bill.period,
        fiscal_year=bill.fiscal_year,
        month_index=bill.month_index,
        bill_date=bill.bill_date,
        due_date=bill.due_date,
        consumption=bill.consumption,
        current_charge=bill.current_charge,
        penalty_amount=bill.penalty_amount,
        base_paid=bill.base_paid,
        penalty_paid=bill.penalty_paid,
        paid_amount=bill.paid_amount,
        total_amount=bill.total_amount,
        status=bill.status,
        last_payment_date=bill.last_payment_date,
    )


@router.get("/readings/{year}/{month}")
async def get_readings(client_id: str, year: int, month: int, db: Session = Depends(get_db)):
    """Meter readings of a fiscal month keyed by unit."""
    readings = WaterBillsService(db).get_readings(client_id, year, month)
    return {"client_id": client_id, "year": year, "month": month, "readings": readings}


@router.post("/readings/{year}/{month}", status_code=status.HTTP_201_CREATED)
async def save_readings(
    client_id: str, year: int, month: int, payload: ReadingsPayload, db: Session = Depends(get_db)
):
    """Save (upsert) meter readings of a fiscal month."""
    saved = WaterBillsService(db).save_readings(client_id, year, month, payload.readings)
    return {"client_id": client_id, "year": year, "month": month, "saved": len(saved)}


@router.post(
    "/bills/generate", response_model=BillGenerationResponse, status_code=status.HTTP_201_CREATED
)
async def generate_bills(
    client_id: str, payload: GenerateBillsPayload, db: Session = Depends(get_db)
) -> BillGenerationResponse:
    """
    Generate the water bills of a fiscal month.

    Returns:
        201: Generated bills and totals
        409: Bills already exist for the month
        422: Water billing configuration missing
    """
    result = WaterBillsService(db).generate_bills(
        client_id, payload.year, payload.month, bill_date=payload.bill_date, due_date=payload.due_date
    )
    return BillGenerationResponse(
        period=result.period,
        bills_generated=result.bills_generated,
        total_consumption=result.total_consumption,
        total_amount=result.total_amount,
        skipped_units=result.skipped_units,
        penalties_updated=result.penalties_updated,
        bills=[water_bill_response(bill) for bill in result.bills],
    )


@router.post("/bills/recalculate-penalties", response_model=PenaltyRecalculationResponse)
async def recalculate_penalties(
    client_id: str, payload: RecalculatePenaltiesPayload, db: Session = Depends(get_db)
) -> PenaltyRecalculationResponse:
    """Recalculate penalties for the client, optionally scoped to some units."""
    service = PenaltyRecalculationService(db)
    if payload.unit_ids:
        result = service.recalculate_for_units(client_id, payload.unit_ids, as_of=payload.as_of)
    else:
        result = service.recalculate_for_client(client_id, as_of=payload.as_of)
    return PenaltyRecalculationResponse.model_validate(result)


@router.get("/bills/penalty-summary")
async def penalty_summary(client_id: str, unit_id: str | None = None, db: Session = Depends(get_db)):
    """Total outstanding penalties and unpaid bill count."""
    return PenaltyRecalculationService(db).get_penalty_summary(client_id, unit_id)


@router.get("/bills/unpaid/{unit_id}")
async def unpaid_bills(
    client_id: str, unit_id: str, as_of: date | None = None, db: Session = Depends(get_db)
):
    """Unpaid bills of a unit with current penalties and credit."""
    summary = WaterPaymentsService(db).get_unpaid_bills_summary(client_id, unit_id, as_of=as_of)
    return {
        **summary,
        "bills": [BillViewResponse.model_validate(view) for view in summary["bills"]],
        "credit_history": [
            {
                "date": entry.entry_date,
                "amount": entry.amount,
                "balance": entry.balance_after,
                "note": entry.note,
                "source": entry.source,
            }
            for entry in summary["credit_history"]
        ],
    }


@router.post("/payments/preview", response_model=DistributionResponse)
async def preview_payment(
    client_id: str, payload: PaymentPreviewPayload, db: Session = Depends(get_db)
) -> DistributionResponse:
    """Show how a payment would be applied without recording it."""
    distribution = WaterPaymentsService(db).preview_payment(
        client_id, payload.unit_id, payload.amount, payload.payment_date
    )
    return DistributionResponse.model_validate(distribution)


@router.post(
    "/payments/record", response_model=PaymentRecordedResponse, status_code=status.HTTP_201_CREATED
)
async def record_payment(
    client_id: str, payload: PaymentPayload, db: Session = Depends(get_db)
) -> PaymentRecordedResponse:
    """Record a water payment."""
    result = WaterPaymentsService(db).record_payment(
        client_id,
        payload.unit_id,
        PaymentInput(
            amount=payload.amount,
            payment_date=payload.payment_date,
            payment_method=payload.payment_method,
            reference=payload.reference,
            notes=payload.notes,
            account_name=payload.account_name,
        ),
    )
    logger.info(f"Water payment recorded: transaction {result.transaction_id}")
    return PaymentRecordedResponse(
        transaction_id=result.transaction_id,
        payment_type=result.payment_type,
        distribution=DistributionResponse.model_validate(result.distribution),
    )


@router.get("/payments/history/{unit_id}", response_model=list[PaymentHistoryResponse])
async def payment_history(
    client_id: str, unit_id: str, year: int | None = None, db: Session = Depends(get_db)
) -> list[PaymentHistoryResponse]:
    records = WaterPaymentsService(db).get_payment_history(client_id, unit_id, fiscal_year=year)
    return [PaymentHistoryResponse.model_validate(record) for record in records]


@router.get("/config", response_model=BillingConfigResponse)
async def get_config(client_id: str, db: Session = Depends(get_db)) -> BillingConfigResponse:
    clients = ClientService(db)
    config = clients.get_billing_config(clients.get_client(client_id), BillingModule.WATER)
    return BillingConfigResponse.model_validate(config)


@router.put("/config", response_model=BillingConfigResponse)
async def update_config(
    client_id: str, payload: BillingConfigPayload, db: Session = Depends(get_db)
) -> BillingConfigResponse:
    clients = ClientService(db)
    config = clients.upsert_billing_config(
        clients.get_client(client_id),
        BillingModule.WATER,
        penalty_rate=payload.penalty_rate,
        penalty_days=payload.penalty_days,
        rate_per_m3=payload.rate_per_m3,
        minimum_charge=payload.minimum_charge,
    )
    return BillingConfigResponse.model_validate(config)


@router.get("/bills/{year}/{month}", response_model=list[WaterBillResponse])
async def get_month_bills(
    client_id: str, year: int, month: int, unpaid_only: bool = False, db: Session = Depends(get_db)
) -> list[WaterBillResponse]:
    bills = WaterBillsService(db).get_bills(client_id, year, month, unpaid_only=unpaid_only)
    return [water_bill_response(bill) for bill in bills]


@router.get("/bills/{year}")
async def get_year_bills(client_id: str, year: int, db: Session = Depends(get_db)):
    """All bills of a fiscal year grouped by fiscal month."""
    months: dict[str, list[WaterBillResponse]] = {}
    for bill in WaterBillsService(db).get_year_bills(client_id, year):
        months.setdefault(bill.period, []).append(water_bill_response(bill))
    return {"client_id": client_id, "year": year, "months": months}

