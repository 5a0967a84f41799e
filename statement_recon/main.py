"""Statement Reconciliation Service - FastAPI Application."""

import time
import traceback
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import UTC, datetime
from typing import Any
from uuid import uuid4

import structlog
from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy import text

from statement_recon.config import settings
from statement_recon.database import init_db
from statement_recon.deps import DbSession
from statement_recon.logger import configure_logging, get_logger, log_exception
from statement_recon.routers import reconciliation, statements
from statement_recon.services.exceptions import ReconciliationError
from statement_recon.utils.exceptions import http_error_for

# Initialize logging early
configure_logging()
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Log engine configuration on startup and shutdown."""
    await init_db()
    logger.info("Application started", version="0.1.0", environment=settings.environment)
    yield
    logger.info("Application shutting down")


app = FastAPI(
    title="Statement Reconciliation API",
    description="Bank statement import and reconciliation against the payment ledger",
    version="0.1.0",
    lifespan=lifespan,
)


@app.middleware("http")
async def logging_middleware(request: Request, call_next: Any) -> Response:
    """Bind request id and tenant into the log context and log each request."""
    request_id = request.headers.get("X-Request-ID") or str(uuid4())

    structlog.contextvars.clear_contextvars()
    structlog.contextvars.bind_contextvars(
        request_id=request_id,
        tenant_header=request.headers.get("X-Tenant-ID"),
        method=request.method,
        path=request.url.path,
    )

    start_time = time.perf_counter()
    try:
        response = await call_next(request)
        duration = time.perf_counter() - start_time

        logger.info(
            "Request handled",
            status_code=response.status_code,
            duration_ms=round(duration * 1000, 2),
        )

        response.headers["X-Request-ID"] = request_id
        return response
    except Exception as exc:
        duration = time.perf_counter() - start_time
        logger.exception(
            "Request failed",
            duration_ms=round(duration * 1000, 2),
            error=str(exc),
        )
        raise


@app.exception_handler(ReconciliationError)
async def reconciliation_error_handler(request: Request, exc: ReconciliationError) -> JSONResponse:
    """Map domain errors that escaped a router to their HTTP status."""
    http_exc = http_error_for(exc)
    return JSONResponse(
        status_code=http_exc.status_code,
        content={
            "detail": http_exc.detail,
            "error_type": type(exc).__name__,
            "request_id": structlog.contextvars.get_contextvars().get("request_id"),
        },
    )


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Global exception handler to ensure JSON response."""
    log_exception(logger, exc, "Unhandled exception", method=request.method, path=request.url.path)

    # Only show exception details in DEBUG mode
    if settings.debug:
        detail = str(exc)
        trace = traceback.format_exc()
    else:
        detail = "An internal server error occurred. Please try again later."
        trace = None

    return JSONResponse(
        status_code=500,
        content={
            "detail": detail,
            "trace": trace,
            "request_id": structlog.contextvars.get_contextvars().get("request_id"),
        },
    )


app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST"],
    allow_headers=["Content-Type", "X-Tenant-ID", "X-Request-ID"],
)

app.include_router(statements.router)
app.include_router(reconciliation.router)


@app.get("/health")
async def health_check(db: DbSession) -> Response:
    """Check application health status.

    Returns 200 when the database answers, 503 otherwise.
    """
    try:
        await db.execute(text("SELECT 1"))
        database_ok = True
    except Exception as e:
        logger.error(
            "Health check: database unavailable",
            error=str(e),
            error_type=type(e).__name__,
        )
        database_ok = False

    return JSONResponse(
        status_code=200 if database_ok else 503,
        content={
            "status": "healthy" if database_ok else "unhealthy",
            "timestamp": datetime.now(UTC).isoformat(),
            "checks": {"database": database_ok},
            "version": settings.git_commit_sha,
        },
    )
