"""Unified payment API routes (HOA dues and water in one payment)."""

import logging

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from sams.api.schemas import (
    PaymentPayload,
    PaymentPreviewPayload,
    UnifiedPreviewResponse,
    UnifiedRecordedResponse,
)
from sams.services.db import get_db
from sams.services.payment_distribution import PaymentInput
from sams.services.unified_payment_service import UnifiedPaymentService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/payments/unified/{client_id}", tags=["payments"])


@router.post("/preview", response_model=UnifiedPreviewResponse)
async def preview_unified_payment(
    client_id: str, payload: PaymentPreviewPayload, db: Session = Depends(get_db)
) -> UnifiedPreviewResponse:
    """Show how a payment would be split across HOA dues and water bills."""
    preview = UnifiedPaymentService(db).preview(
        client_id, payload.unit_id, payload.amount, payload.payment_date
    )
    return UnifiedPreviewResponse.model_validate(preview)


@router.post("/record", response_model=UnifiedRecordedResponse, status_code=status.HTTP_201_CREATED)
async def record_unified_payment(
    client_id: str, payload: PaymentPayload, db: Session = Depends(get_db)
) -> UnifiedRecordedResponse:
    """
    Record a payment across HOA dues and water bills.

    Returns:
        201: Transaction id and the applied distribution
        400: Invalid payment
        404: Unknown client or unit
        422: HOA or water penalty configuration missing
    """
    result = UnifiedPaymentService(db).record(
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
    logger.info(f"Unified payment recorded: transaction {result.transaction_id}")
    return UnifiedRecordedResponse(
        transaction_id=result.transaction_id,
        preview=UnifiedPreviewResponse.model_validate(result.preview),
    )
