"""Credit balance API routes."""

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from sams.api.schemas import (
    CreditAdjustmentPayload,
    CreditBalanceResponse,
    CreditHistoryEntryResponse,
    CreditHistoryPayload,
)
from sams.services.credit_service import DEFAULT_HISTORY_LIMIT, CreditService
from sams.services.db import get_db

router = APIRouter(prefix="/credit/{client_id}", tags=["credit"])


@router.get("/{unit_id}", response_model=CreditBalanceResponse)
async def get_credit_balance(
    client_id: str, unit_id: str, db: Session = Depends(get_db)
) -> CreditBalanceResponse:
    """Current credit balance of a unit (zero when it never had credit)."""
    info = CreditService(db).get_credit_balance(client_id, unit_id)
    return CreditBalanceResponse(**info._asdict())


@router.post("/{unit_id}", response_model=CreditBalanceResponse)
async def update_credit_balance(
    client_id: str, unit_id: str, payload: CreditAdjustmentPayload, db: Session = Depends(get_db)
) -> CreditBalanceResponse:
    """Add or use credit.

    Returns:
        200: Balance after the change
        400: Zero amount, or not enough credit
    """
    info = CreditService(db).update_credit_balance(
        client_id,
        unit_id,
        payload.amount,
        transaction_id=payload.transaction_id,
        note=payload.note,
        source=payload.source,
    )
    return CreditBalanceResponse(**info._asdict())


@router.get("/{unit_id}/history", response_model=list[CreditHistoryEntryResponse])
async def get_credit_history(
    client_id: str,
    unit_id: str,
    limit: int = Query(DEFAULT_HISTORY_LIMIT, ge=1, le=500),
    db: Session = Depends(get_db),
) -> list[CreditHistoryEntryResponse]:
    entries = CreditService(db).get_credit_history(client_id, unit_id, limit=limit)
    return [CreditHistoryEntryResponse.model_validate(entry) for entry in entries]


@router.post(
    "/{unit_id}/history",
    response_model=CreditHistoryEntryResponse,
    status_code=status.HTTP_201_CREATED,
)
async def add_credit_history_entry(
    client_id: str, unit_id: str, payload: CreditHistoryPayload, db: Session = Depends(get_db)
) -> CreditHistoryEntryResponse:
    """Add a dated history entry, for corrections and imported history."""
    entry = CreditService(db).add_credit_history_entry(
        client_id,
        unit_id,
        payload.amount,
        payload.entry_date,
        transaction_id=payload.transaction_id,
        note=payload.note,
        source=payload.source,
    )
    return CreditHistoryEntryResponse.model_validate(entry)
