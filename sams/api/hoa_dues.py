"""HOA dues API routes."""

import logging
from datetime import date

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from sams.api.schemas import (
    AmountPreviewPayload,
    DistributionResponse,
    DuesStatusResponse,
    HOADuesMonthResponse,
    HOADuesYearResponse,
    PaymentDetailsPayload,
    PaymentRecordedResponse,
)
from sams.models import HOADuesYear
from sams.services.dates import local_today
from sams.services.db import get_db
from sams.services.hoa_dues_service import HOADuesService
from sams.services.payment_distribution import PaymentInput

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/hoadues/{client_id}", tags=["hoa-dues"])


def dues_year_response(
    service: HOADuesService, dues_year: HOADuesYear, start_month: int, as_of: date
) -> HOADuesYearResponse:
    return HOADuesYearResponse(
        unit_id=dues_year.unit.unit_code,
        fiscal_year=dues_year.fiscal_year,
        scheduled_amount=dues_year.scheduled_amount,
        months=[HOADuesMonthResponse.model_validate(m) for m in dues_year.months],
        summary=service.get_year_summary(dues_year),
        status=DuesStatusResponse(
            **service.calculate_dues_status(dues_year, as_of, start_month)._asdict()
        ),
        next_month_due=service.get_next_month_due(dues_year, start_month),
    )


@router.get("/year/{year}", response_model=list[HOADuesYearResponse])
async def get_year_dues(
    client_id: str, year: int, as_of: date | None = None, db: Session = Depends(get_db)
) -> list[HOADuesYearResponse]:
    """Dues of every unit for a fiscal year."""
    service = HOADuesService(db)
    client = service.clients.get_client(client_id)
    as_of = as_of or local_today()
    return [
        dues_year_response(service, dues_year, client.fiscal_year_start_month, as_of)
        for dues_year in service.get_year_dues(client_id, year)
    ]


@router.get("/unit/{unit_id}/{year}", response_model=HOADuesYearResponse)
async def get_unit_dues(
    client_id: str,
    unit_id: str,
    year: int,
    as_of: date | None = None,
    db: Session = Depends(get_db),
) -> HOADuesYearResponse:
    """Dues of one unit for a fiscal year.

    Returns:
        200: Months, summary and year-to-date status
        404: Unknown client, unit or no dues for the year
    """
    service = HOADuesService(db)
    client = service.clients.get_client(client_id)
    dues_year = service.get_unit_dues(client_id, unit_id, year)
    return dues_year_response(
        service, dues_year, client.fiscal_year_start_month, as_of or local_today()
    )


@router.post("/payment/{unit_id}/{year}/preview", response_model=DistributionResponse)
async def preview_payment(
    client_id: str,
    unit_id: str,
    year: int,
    payload: AmountPreviewPayload,
    db: Session = Depends(get_db),
) -> DistributionResponse:
    distribution = HOADuesService(db).preview_payment(
        client_id, unit_id, year, payload.amount, payload.payment_date
    )
    return DistributionResponse.model_validate(distribution)


@router.post(
    "/payment/{unit_id}/{year}",
    response_model=PaymentRecordedResponse,
    status_code=status.HTTP_201_CREATED,
)
async def record_payment(
    client_id: str,
    unit_id: str,
    year: int,
    payload: PaymentDetailsPayload,
    db: Session = Depends(get_db),
) -> PaymentRecordedResponse:
    """Record an HOA dues payment for a unit and fiscal year."""
    result = HOADuesService(db).record_payment(
        client_id,
        unit_id,
        year,
        PaymentInput(
            amount=payload.amount,
            payment_date=payload.payment_date,
            payment_method=payload.payment_method,
            reference=payload.reference,
            notes=payload.notes,
            account_name=payload.account_name,
        ),
    )
    logger.info("HOA payment recorded: transaction %s", result.transaction_id)
    return PaymentRecordedResponse(
        transaction_id=result.transaction_id,
        distribution=DistributionResponse.model_validate(result.distribution),
    )
