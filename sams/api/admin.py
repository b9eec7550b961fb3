"""Administrative API routes: data import and the monthly penalty job."""

import logging
from datetime import date
from pathlib import Path

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from sams.api.errors import ValidationError
from sams.api.schemas import ImportPayload, ImportResultResponse, PenaltyRecalculationResponse
from sams.config import get_settings
from sams.services.db import get_db
from sams.services.import_service import ImportService
from sams.services.penalty_service import PenaltyRecalculationService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/admin", tags=["admin"])


def resolve_import_path(client_id: str, data_path: str | None) -> Path:
    """Export directory of an import request, confined to IMPORT_DATA_PATH.

    Raises:
        ValidationError: If the directory resolves outside IMPORT_DATA_PATH
    """
    root = Path(get_settings().import_data_path).resolve()
    path = (root / (data_path or client_id)).resolve()
    if path != root and root not in path.parents:
        logger.warning("Rejected import path %s outside %s", data_path, root)
        raise ValidationError(f"Import path must be inside the import data directory: {data_path}")
    return path


@router.post("/import/{client_id}", response_model=list[ImportResultResponse])
async def import_client_data(
    client_id: str, payload: ImportPayload, db: Session = Depends(get_db)
) -> list[ImportResultResponse]:
    """
    Import a client's legacy export.

    Returns:
        200: One result per component
        400: Unknown component, missing file or data_path outside IMPORT_DATA_PATH
        422: Component aborted after too many errors
    """
    settings = get_settings()
    data_path = resolve_import_path(client_id, payload.data_path)
    service = ImportService(
        db,
        client_id,
        data_path,
        dry_run=payload.dry_run,
        max_errors=settings.import_max_errors,
    )
    results = service.run(payload.components, fiscal_year=payload.fiscal_year)
    return [ImportResultResponse.model_validate(r) for r in results]


@router.post("/penalties/run-monthly")
async def run_monthly_penalties(as_of: date | None = None, db: Session = Depends(get_db)) -> dict:
    """Recalculate water penalties for every client."""
    run = PenaltyRecalculationService(db).recalculate_all_clients(as_of=as_of)
    logger.info(f"Monthly penalty run: {run.total_updated} bills updated, {len(run.errors)} errors")
    return {
        "total_updated": run.total_updated,
        "results": [PenaltyRecalculationResponse.model_validate(r) for r in run.results],
        "errors": run.errors,
    }
