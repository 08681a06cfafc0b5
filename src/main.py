"""foodshare - food donation claims and checkout backend."""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from src.core.config import constants
from src.core.db_client import DatabaseError, RecordNotFoundError, close_connection, init_db
from src.core.errors import (
    ErrorCode,
    ErrorResponse,
    ErrorSeverity,
    FoodshareError,
    InvalidRequestError,
    classify_error_with_response,
    http_status_for,
)
from src.core.logging import configure_logfire, instrument_fastapi
from src.core.redis_client import redis_client
from src.core.scheduler import start_scheduler, stop_scheduler
from src.core.scheduler_tracker import job_tracker
from src.interface.cart_router import router as cart_router
from src.interface.donation_router import router as donation_router
from src.interface.notification_router import router as notification_router
from src.interface.user_router import router as user_router


logger = logging.getLogger(__name__)


async def check_redis_connectivity() -> None:
    """Verify Redis connectivity (optional service).

    Only checks if Redis is configured. Logs a warning if unavailable but doesn't fail.
    """
    if not redis_client.is_available:
        logger.info("startup_validation", extra={"service": "redis", "status": "disabled"})
        return

    if await redis_client.ping():
        logger.info("startup_validation", extra={"service": "redis", "status": "ok"})
    else:
        logger.warning("startup_validation", extra={"service": "redis", "status": "unavailable"})


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncIterator[None]:
    """Application lifespan context manager."""
    # Startup
    configure_logfire()
    await check_redis_connectivity()

    await init_db()
    logger.info("Database initialized")

    start_scheduler()
    yield
    # Shutdown
    stop_scheduler()
    await redis_client.close()
    await close_connection()


app = FastAPI(
    title="foodshare",
    description="Food donation claims, checkout and pickup notifications",
    version="0.1.0",
    lifespan=lifespan,
)

# Instrument FastAPI with Logfire
instrument_fastapi(app)

# Register routers
app.include_router(cart_router)
app.include_router(donation_router)
app.include_router(notification_router)
app.include_router(user_router)


def _error_response(exc: Exception) -> JSONResponse:
    error = classify_error_with_response(exc)
    return JSONResponse(status_code=http_status_for(exc), content=error.model_dump(mode="json"))


@app.exception_handler(FoodshareError)
async def foodshare_error_handler(request: Request, exc: FoodshareError) -> JSONResponse:
    """Render domain errors as structured JSON."""
    logger.info(
        "request_rejected",
        extra={"path": request.url.path, "code": exc.code, "status_code": exc.status_code, "error": str(exc)},
    )
    return _error_response(exc)


@app.exception_handler(RecordNotFoundError)
async def record_not_found_handler(request: Request, exc: RecordNotFoundError) -> JSONResponse:
    """Render missing records as 404."""
    logger.info("record_not_found", extra={"path": request.url.path, "error": str(exc)})
    return _error_response(exc)


@app.exception_handler(DatabaseError)
async def database_error_handler(request: Request, exc: DatabaseError) -> JSONResponse:
    """Render store failures as 500."""
    logger.error("database_error", extra={"path": request.url.path, "error": str(exc)})
    return _error_response(exc)


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Render request body validation failures as 400."""
    errors = exc.errors()
    first = errors[0] if errors else {}
    location = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
    message = f"{location}: {first.get('msg')}" if location else str(first.get("msg", "Invalid request"))

    logger.info("request_validation_failed", extra={"path": request.url.path, "errors": len(errors)})
    error = ErrorResponse(
        code=ErrorCode.ERR_INVALID_REQUEST,
        message=message,
        suggestion=InvalidRequestError.suggestion,
        severity=ErrorSeverity.LOW,
    )
    return JSONResponse(status_code=400, content=error.model_dump(mode="json"))


@app.get("/health")
async def health_check() -> JSONResponse:
    """Health check endpoint."""
    return JSONResponse(content={"status": "healthy", "redis": redis_client.get_health_status()}, status_code=200)


@app.get("/health/scheduler")
async def scheduler_health_check() -> JSONResponse:
    """Scheduler health check endpoint with job statuses."""
    job_names = [constants.CLAIM_SWEEP_JOB_ID]

    job_statuses = {}
    for job_name in job_names:
        job_statuses[job_name] = await job_tracker.get_job_status(job_name)

    dlq = job_tracker.get_dead_letter_queue()

    has_failures = any(status["consecutive_failures"] > 0 for status in job_statuses.values())

    overall_status = "degraded" if has_failures else "healthy"
    if len(dlq) > 0:
        overall_status = "critical"

    return JSONResponse(
        content={
            "status": overall_status,
            "jobs": job_statuses,
            "dead_letter_queue_size": len(dlq),
            "dead_letter_queue": dlq,
        },
        status_code=200 if overall_status == "healthy" else 503,
    )
