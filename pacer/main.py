"""
Refresh pacer service.

FastAPI application hosting the token bucket pacer, the refresh scheduler and
their status endpoints.
"""

import uuid
from contextlib import asynccontextmanager
from typing import Any

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from pacer import __version__
from pacer._log import get_logger, setup_logging
from pacer.config import settings, validate_settings
from pacer.database import AsyncSessionLocal, engine, init_db
from pacer.errors import RulebookError
from pacer.lifecycle import start_pacing, stop_pacing
from pacer.routers.pacing import router as pacing_router
from pacer.routers.schedule import router as schedule_router

# Import models to register them with Base.metadata
from pacer.models import Record, TokenBucketState, UsageCount  # noqa: F401

logger = get_logger("main")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler for startup/shutdown."""
    setup_logging(settings.log_level)
    validate_settings(settings)
    await init_db(settings.database_url)
    await start_pacing(app.state, AsyncSessionLocal, settings)
    logger.info("Pacer service started (instance %s)", settings.instance_id)
    yield
    await stop_pacing(app.state)
    await engine.dispose()
    logger.info("Pacer service stopped")


app = FastAPI(
    title="Refresh Pacer",
    description="Distributed token bucket pacing and rule-based refresh scheduling",
    version=__version__,
    docs_url="/api/docs",
    redoc_url="/api/redoc",
    openapi_url="/api/openapi.json",
    lifespan=lifespan,
)

# Include routers
app.include_router(pacing_router)
app.include_router(schedule_router)


# --- Middleware ---


@app.middleware("http")
async def add_request_id(request: Request, call_next):
    """Add a unique request ID to each request."""
    request_id = str(uuid.uuid4())
    request.state.request_id = request_id
    response = await call_next(request)
    response.headers["X-Request-ID"] = request_id
    return response


# --- Exception Handlers ---


def _sanitize_error_detail(error: dict[str, Any]) -> dict[str, Any]:
    """Sanitize Pydantic error detail to be JSON-serializable."""
    sanitized = {}
    for key, value in error.items():
        if key == "ctx":
            # Context may contain non-serializable objects like ValueError
            sanitized[key] = {k: str(v) for k, v in value.items()} if isinstance(value, dict) else str(value)
        elif key == "loc":
            sanitized[key] = [str(loc) for loc in value]
        else:
            sanitized[key] = value
    return sanitized


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Handle Pydantic validation errors with consistent error format."""
    request_id = getattr(request.state, "request_id", None)

    errors = [_sanitize_error_detail(e) for e in exc.errors()]
    if errors:
        first_error = errors[0]
        field = ".".join(str(loc) for loc in first_error.get("loc", []))
        msg = first_error.get("msg", "Validation error")
        message = f"{field}: {msg}" if field else msg
    else:
        message = "Validation error"

    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={
            "error": {
                "code": "VALIDATION_ERROR",
                "message": message,
                "request_id": request_id,
                "details": errors,
            }
        },
    )


@app.exception_handler(RulebookError)
async def rulebook_exception_handler(request: Request, exc: RulebookError) -> JSONResponse:
    """Reject malformed rulebooks; the installed rulebook is unchanged."""
    request_id = getattr(request.state, "request_id", None)
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={
            "error": {
                "code": "INVALID_RULEBOOK",
                "message": str(exc),
                "request_id": request_id,
            }
        },
    )


@app.exception_handler(Exception)
async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Handle uncaught exceptions with consistent error format."""
    request_id = getattr(request.state, "request_id", None)
    logger.exception("Unhandled error for request %s", request_id, exc_info=exc)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "error": {
                "code": "INTERNAL_ERROR",
                "message": "An unexpected error occurred",
                "request_id": request_id,
            }
        },
    )


# --- Health Check ---


@app.get("/api/v1/health", tags=["System"])
async def health_check(request: Request) -> dict[str, str]:
    """
    Health check endpoint.

    Returns 200 OK if the API is running, and whether the pacer tasks are alive.
    """
    pacer = getattr(request.app.state, "pacer", None)
    return {
        "status": "healthy",
        "pacer": "running" if pacer is not None and pacer.running else "stopped",
    }
