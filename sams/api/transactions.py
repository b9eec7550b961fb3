"""Transaction API routes."""

import logging
from datetime import date

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from sams.api.schemas import ReversalResponse, TransactionPayload, TransactionResponse
from sams.services.db import get_db
from sams.services.transaction_service import TransactionService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/transactions/{client_id}", tags=["transactions"])


@router.get("", response_model=list[TransactionResponse])
async def list_transactions(
    client_id: str,
    unit_id: str | None = None,
    start_date: date | None = None,
    end_date: date | None = None,
    db: Session = Depends(get_db),
) -> list[TransactionResponse]:
    transactions = TransactionService(db).list_transactions(
        client_id, unit_code=unit_id, start_date=start_date, end_date=end_date
    )
    return [TransactionResponse.model_validate(t) for t in transactions]


@router.post("", response_model=TransactionResponse, status_code=status.HTTP_201_CREATED)
async def create_transaction(
    client_id: str, payload: TransactionPayload, db: Session = Depends(get_db)
) -> TransactionResponse:
    """Create a plain (unallocated) transaction."""
    transaction = TransactionService(db).create_transaction(
        client_id,
        transaction_date=payload.transaction_date,
        amount=payload.amount,
        unit_code=payload.unit_id,
        transaction_type=payload.transaction_type,
        category_id=payload.category_id,
        category_name=payload.category_name,
        payment_method=payload.payment_method,
        reference=payload.reference,
        description=payload.description,
        notes=payload.notes,
        vendor_name=payload.vendor_name,
        account_name=payload.account_name,
    )
    return TransactionResponse.model_validate(transaction)


@router.get("/{transaction_id}", response_model=TransactionResponse)
async def get_transaction(
    client_id: str, transaction_id: int, db: Session = Depends(get_db)
) -> TransactionResponse:
    return TransactionResponse.model_validate(
        TransactionService(db).get_transaction(client_id, transaction_id)
    )


@router.delete("/{transaction_id}", response_model=ReversalResponse)
async def delete_transaction(
    client_id: str, transaction_id: int, db: Session = Depends(get_db)
) -> ReversalResponse:
    """
    Delete a transaction and reverse the bills, dues and credit it touched.

    Returns:
        200: What was reversed
        400: Credit added by the transaction has already been used
        404: Transaction not found
    """
    summary = TransactionService(db).delete_transaction(client_id, transaction_id)
    logger.info(
        "Deleted transaction %s: %d water bills, %d HOA months reversed",
        transaction_id,
        len(summary.water_bills_reversed),
        len(summary.hoa_months_reversed),
    )
    return ReversalResponse.model_validate(summary)
