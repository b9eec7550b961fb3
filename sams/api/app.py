"""FastAPI application for the SAMS accounting backend."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from sams.api.admin import router as admin_router
from sams.api.credit import router as credit_router
from sams.api.errors import AppError, error_response
from sams.api.hoa_dues import router as hoa_dues_router
from sams.api.payments import router as payments_router
from sams.api.transactions import router as transactions_router
from sams.api.water import router as water_router
from sams.config import get_settings
from sams.models import Base
from sams.services.db import engine

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(_app: FastAPI):
    """Create missing tables on startup and dispose the engine on shutdown."""
    logger.info("SAMS API starting...")
    try:
        Base.metadata.create_all(bind=engine)
        logger.info("✓ Database schema ready")
    except Exception as e:
        logger.error(f"Failed to initialize database: {e}", exc_info=True)
        raise

    try:
        yield
    finally:
        engine.dispose()
        logger.info("✓ Database engine disposed")


settings = get_settings()

app = FastAPI(
    title=settings.api_title,
    description="Property management accounting: water bills, HOA dues, credit and payments",
    version=settings.api_version,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(AppError)
async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    """Render service errors as {"error": {"code", "message"}}."""
    if exc.http_status >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    else:
        logger.warning("%s %s: %s (%s)", request.method, request.url.path, exc.message, exc.code)
    return JSONResponse(status_code=exc.http_status, content=error_response(exc))


app.include_router(water_router)
app.include_router(hoa_dues_router)
app.include_router(credit_router)
app.include_router(payments_router)
app.include_router(transactions_router)
app.include_router(admin_router)


@app.get("/health")
async def health_check() -> dict:
    """Health check endpoint for monitoring."""
    return {"status": "ok"}


__all__ = ["app"]
