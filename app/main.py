"""
app/main.py — FastAPI application entry point
Includes: lifespan management, CORS, rate limiting, security headers,
          error envelope translation, ping keep-alive endpoint.
"""

from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI, Request, Response, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from loguru import logger
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from starlette.exceptions import HTTPException as StarletteHTTPException

from app.config import get_settings
from app.core.exceptions import (
    AssignmentConsistencyError,
    CemeteryNotFoundError,
    PersonNotFoundError,
    StoreError,
)
from app.core.logging import log_error, setup_logging
from app.core.rate_limiter import RATE_LIMITS, limiter
from app.core.responses import error_response
from app.models import ErrorCode, ValidationErrorDetail
from app.routers import admin, api

settings = get_settings()

VERSION = "1.0.0"


# ──────────────────────────────────────────────────────────────────────────────
# Application Lifespan
# ──────────────────────────────────────────────────────────────────────────────

@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """
    FastAPI lifespan: startup → yield → shutdown.
    Startup: initialize logging, validate store configuration.
    """
    setup_logging(settings.log_level)
    logger.info("Deluge starting up...")
    _validate_env()
    logger.info("Startup complete.")
    yield
    logger.info("Shutting down Deluge.")


def _validate_env() -> None:
    """Fail loudly on a misconfigured store; warn on optional settings."""
    if settings.store_backend == "dynamodb" and not settings.dynamodb_table_prefix:
        logger.critical("STORE_BACKEND=dynamodb requires DYNAMODB_TABLE_PREFIX.")
        raise RuntimeError("DYNAMODB_TABLE_PREFIX is not set")
    if settings.store_backend == "memory" and settings.is_production:
        logger.warning("In-memory store in production: data is lost on restart.")
    if not settings.admin_api_key:
        logger.warning("ADMIN_API_KEY not set. Admin endpoints are disabled.")


# ──────────────────────────────────────────────────────────────────────────────
# FastAPI App
# ──────────────────────────────────────────────────────────────────────────────

app = FastAPI(
    title="Deluge",
    description="Prayer assignment and coverage statistics for cemeteries.",
    version=VERSION,
    docs_url=None if settings.is_production else "/docs",
    redoc_url=None,
    lifespan=lifespan,
)

# ── Rate limiting — slowapi ───────────────────────────────────────────────────
app.state.limiter = limiter
app.add_middleware(SlowAPIMiddleware)

# ── CORS ──────────────────────────────────────────────────────────────────────
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"] if settings.is_development else [],
    allow_credentials=False,
    allow_methods=["GET", "POST", "PATCH", "DELETE"],
    allow_headers=["*"],
)


# ── Security headers middleware ───────────────────────────────────────────────
@app.middleware("http")
async def add_security_headers(request: Request, call_next) -> Response:
    response = await call_next(request)
    response.headers["X-Content-Type-Options"] = "nosniff"
    response.headers["X-Frame-Options"] = "DENY"
    response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
    if settings.is_production:
        response.headers["Strict-Transport-Security"] = (
            "max-age=31536000; includeSubDomains"
        )
    return response


# ──────────────────────────────────────────────────────────────────────────────
# Error envelope
# ──────────────────────────────────────────────────────────────────────────────

_HTTP_ERROR_CODES = {
    status.HTTP_400_BAD_REQUEST: ErrorCode.VALIDATION_ERROR,
    status.HTTP_401_UNAUTHORIZED: ErrorCode.UNAUTHORIZED,
    status.HTTP_403_FORBIDDEN: ErrorCode.FORBIDDEN,
    status.HTTP_404_NOT_FOUND: ErrorCode.NOT_FOUND,
    status.HTTP_429_TOO_MANY_REQUESTS: ErrorCode.RATE_LIMITED,
}


@app.exception_handler(RateLimitExceeded)
async def handle_route_rate_limit(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    return error_response(
        status.HTTP_429_TOO_MANY_REQUESTS,
        ErrorCode.RATE_LIMITED,
        "Rate limit exceeded. Slow down.",
    )


@app.exception_handler(RequestValidationError)
async def handle_validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
    details = [
        ValidationErrorDetail(
            field=".".join(str(p) for p in err.get("loc", ()) if p != "body") or "body",
            message=err.get("msg", "Invalid"),
        )
        for err in exc.errors()
    ]
    return error_response(
        status.HTTP_400_BAD_REQUEST,
        ErrorCode.VALIDATION_ERROR,
        "Invalid request body",
        details=details,
    )


@app.exception_handler(PersonNotFoundError)
async def handle_person_not_found(request: Request, exc: PersonNotFoundError) -> JSONResponse:
    return error_response(
        status.HTTP_404_NOT_FOUND,
        ErrorCode.PERSON_NOT_FOUND,
        "The specified person does not exist.",
    )


@app.exception_handler(CemeteryNotFoundError)
async def handle_cemetery_not_found(request: Request, exc: CemeteryNotFoundError) -> JSONResponse:
    return error_response(
        status.HTTP_404_NOT_FOUND,
        ErrorCode.CEMETERY_NOT_FOUND,
        "The specified cemetery does not exist.",
    )


@app.exception_handler(AssignmentConsistencyError)
async def handle_assignment_inconsistency(
    request: Request, exc: AssignmentConsistencyError
) -> JSONResponse:
    log_error("assignment_selector", "assign", exc, {"person_id": exc.person_id})
    return error_response(
        status.HTTP_500_INTERNAL_SERVER_ERROR,
        ErrorCode.INTERNAL_ERROR,
        "An unexpected error occurred.",
    )


@app.exception_handler(StoreError)
async def handle_store_error(request: Request, exc: StoreError) -> JSONResponse:
    log_error("store", request.url.path, exc, {"table": exc.table})
    return error_response(
        status.HTTP_500_INTERNAL_SERVER_ERROR,
        ErrorCode.INTERNAL_ERROR,
        "An unexpected error occurred.",
    )


@app.exception_handler(StarletteHTTPException)
async def handle_http_exception(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    code = _HTTP_ERROR_CODES.get(exc.status_code, ErrorCode.INTERNAL_ERROR)
    return error_response(exc.status_code, code, str(exc.detail))


@app.exception_handler(Exception)
async def handle_unexpected(request: Request, exc: Exception) -> JSONResponse:
    log_error("api", request.url.path, exc)
    return error_response(
        status.HTTP_500_INTERNAL_SERVER_ERROR,
        ErrorCode.INTERNAL_ERROR,
        "An unexpected error occurred.",
    )


# ── Routers ───────────────────────────────────────────────────────────────────
app.include_router(api.router, prefix="/api", tags=["api"])
app.include_router(admin.router, prefix="/api/admin", tags=["admin"])


# ── Ping keep-alive endpoint ──────────────────────────────────────────────────
@app.get("/api/ping", tags=["health"])
@limiter.limit(RATE_LIMITS["ping"])
async def ping(request: Request):
    """Liveness only. Does NOT touch the store."""
    return {"status": "ok", "version": VERSION}
