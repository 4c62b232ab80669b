from __future__ import annotations

import logging
import time
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Any, Mapping

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from .errors import BugTrackerError, FieldViolation
from .logging_config import setup_logging
from .routers import bugs as bugs_router
from .schemas import HealthStatus
from .settings import get_settings
from .utils import error_envelope

logger = logging.getLogger(__name__)

openapi_tags = [
    {"name": "health", "description": "Service health and status endpoints."},
    {
        "name": "bugs",
        "description": "Lifecycle operations for bug reports with filtering and sorting.",
    },
]

_started_at = time.monotonic()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup/shutdown lifecycle."""
    settings = get_settings()
    setup_logging(settings.log_level, settings.log_format)
    logger.info("Bug tracker API started (%s)", settings.app_env)
    yield
    logger.info("Bug tracker API shutting down")


app = FastAPI(
    title="Bug Tracker Backend",
    description="API service for tracking bug reports through their lifecycle.",
    version="0.1.0",
    openapi_tags=openapi_tags,
    lifespan=lifespan,
)

_settings = get_settings()

# Configure CORS based on settings (.env -> CORS_ALLOW_ORIGINS), with '*' fallback
allow_all = (_settings.cors_allow_origins == ["*"]) or (len(_settings.cors_allow_origins) == 0)
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"] if allow_all else _settings.cors_allow_origins,
    allow_credentials=not allow_all,
    allow_methods=["*"],
    allow_headers=["*"],
)


def _field_from_error(error: Mapping[str, Any]) -> str:
    """Turn a pydantic error location into a field path such as 'tags[1]'."""
    parts = list(error.get("loc", ()))
    if parts and parts[0] in ("body", "query", "path"):
        parts = parts[1:]
    # Malformed JSON is located by character offset, not by field
    if error.get("type") == "json_invalid" or not any(isinstance(p, str) for p in parts):
        return "body"
    field = ""
    for part in parts:
        if isinstance(part, int):
            field += f"[{part}]"
        else:
            field = f"{field}.{part}" if field else str(part)
    return field


@app.exception_handler(BugTrackerError)
async def bug_tracker_error_handler(request: Request, exc: BugTrackerError) -> JSONResponse:
    """Map domain errors to their status code and the failure envelope."""
    logger.warning(
        "%s on %s: %s", exc.code, request.url.path, exc,
        extra={"error_code": exc.code, "path": request.url.path},
    )
    return JSONResponse(status_code=exc.http_status, content=exc.to_response())


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """
    Return request shape errors in the same envelope as field violations.

    Response format:
        {
            "success": false,
            "message": "Validation failed",
            "errors": [{"field": "...", "message": "..."}, ...]
        }
    """
    violations = [FieldViolation(_field_from_error(e), e["msg"]) for e in exc.errors()]
    logger.warning(
        "Request validation failed on %s", request.url.path,
        extra={"error_code": "VALIDATION_ERROR", "path": request.url.path},
    )
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content=error_envelope("Validation failed", violations),
    )


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    """Unknown routes and unsupported methods also answer with the envelope."""
    message = "Route not found" if exc.status_code == 404 else str(exc.detail)
    return JSONResponse(
        status_code=exc.status_code,
        content=error_envelope(message),
        headers=getattr(exc, "headers", None),
    )


@app.exception_handler(Exception)
async def generic_error_handler(request: Request, exc: Exception) -> JSONResponse:
    """Catch-all. Exception text is only exposed in development mode."""
    logger.error(
        "Unhandled exception on %s", request.url.path,
        exc_info=True,
        extra={"error_code": "INTERNAL_ERROR", "path": request.url.path},
    )
    extra = {"error": str(exc)} if get_settings().is_development else {}
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=error_envelope("Internal server error", **extra),
    )


# PUBLIC_INTERFACE
@app.get("/health", response_model=HealthStatus, summary="Health Check", tags=["health"])
def health_check() -> HealthStatus:
    """
    Liveness probe used by the client before loading bugs.

    Returns:
        status, current UTC timestamp and process uptime in seconds.
    """
    return HealthStatus(
        status="OK",
        timestamp=datetime.now(timezone.utc),
        uptime=round(time.monotonic() - _started_at, 3),
    )


# Include routers
app.include_router(bugs_router.router)
