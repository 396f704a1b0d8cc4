"""FastAPI application entry point."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from backend.config import settings
from backend.database import create_db_and_tables
from backend.errors import ServiceError, StorageError, ValidationError
from backend.utils.logging import setup_logging
from backend.api import analytics, batches, system, trades, webhook

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown events."""
    setup_logging()
    create_db_and_tables()
    logger.info("Signal ledger started")
    yield
    logger.info("Signal ledger stopped")


app = FastAPI(
    title="Signal Ledger",
    description="Strategy alert ingestion, trade matching and batch portfolio analytics",
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def _error_response(status_code: int, code: str, detail, errors: list | None = None) -> JSONResponse:
    content = {"success": False, "error": code, "detail": detail}
    if errors:
        content["errors"] = jsonable_encoder(errors)
    return JSONResponse(status_code=status_code, content=content)


@app.exception_handler(ServiceError)
async def service_error_handler(request: Request, exc: ServiceError):
    if isinstance(exc, StorageError):
        # Cause was logged where the transaction was rolled back
        return _error_response(exc.status_code, exc.code, exc.public_detail)
    logger.warning(f"{request.method} {request.url.path} rejected ({exc.code}): {exc.detail}")
    errors = exc.errors if isinstance(exc, ValidationError) else None
    return _error_response(exc.status_code, exc.code, exc.detail, errors)


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    errors = [
        {"loc": [str(part) for part in err["loc"]], "msg": err["msg"]}
        for err in exc.errors()
    ]
    return _error_response(422, ValidationError.code, "Invalid request", errors)


# Mount routers
app.include_router(webhook.router)
app.include_router(trades.router)
app.include_router(batches.router)
app.include_router(analytics.router)
app.include_router(system.router)
