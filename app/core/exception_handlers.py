"""Global exception handlers for consistent error responses.

Design:
- AppError subclasses map to HTTP statuses (400, 403, 404, 503)
- RateLimitExceededAppError renders the rate limit payload with 429
- Unexpected Exception becomes a generic 500 (safety net)
- Error envelopes include request_id for tracing
"""

import logging

from fastapi import Request
from fastapi.responses import JSONResponse

from app.core.config import settings
from app.core.errors import (
    AppError,
    AuthenticationAppError,
    NotFoundAppError,
    RateLimitExceededAppError,
    StorageAppError,
)
from app.core.logging import get_request_id

logger = logging.getLogger(__name__)


def _status_for(exc: AppError) -> int:
    if isinstance(exc, AuthenticationAppError):
        return 403
    if isinstance(exc, NotFoundAppError):
        return 404
    if isinstance(exc, RateLimitExceededAppError):
        return 429
    if isinstance(exc, StorageAppError):
        return 503
    return 400


async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    """Render domain errors as ``{"error": {code, message, request_id, details?}}``.

    Args:
        request: FastAPI request object.
        exc: AppError instance (or subclass).

    Returns:
        JSONResponse with the mapped status code.
    """
    status_code = _status_for(exc)

    logger.warning(
        "app_error_handled",
        extra={
            "error_code": exc.code,
            "error_message": exc.message,
            "status_code": status_code,
            "request_path": request.url.path,
        },
    )

    error_content = {
        "code": exc.code,
        "message": exc.message,
        "request_id": get_request_id(),
    }
    if exc.details:
        error_content["details"] = exc.details

    return JSONResponse(status_code=status_code, content={"error": error_content})


async def rate_limit_exceeded_handler(
    request: Request,
    exc: RateLimitExceededAppError,
) -> JSONResponse:
    """Render a rate limit denial as a 429 with the limiter's payload.

    Body: ``{error, limit, remaining: 0, reset, retryAfter}``. Headers:
    X-RateLimit-Limit, X-RateLimit-Remaining, X-RateLimit-Reset and
    Retry-After (unless APP_RATE_LIMIT_INCLUDE_HEADERS=false).
    """
    if exc.denial is None:
        return await app_error_handler(request, exc)

    headers = exc.denial.to_headers() if settings.app.rate_limit_include_headers else None
    return JSONResponse(
        status_code=429,
        content=exc.denial.to_payload(),
        headers=headers,
    )


async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Fallback for unexpected errors; details stay in the logs.

    Args:
        request: FastAPI request object.
        exc: Exception instance (unexpected).

    Returns:
        JSONResponse with a generic 500 error.
    """
    logger.error(
        "unhandled_exception",
        extra={
            "error_type": type(exc).__name__,
            "error_msg": str(exc),
            "request_path": request.url.path,
            "request_method": request.method,
        },
    )

    return JSONResponse(
        status_code=500,
        content={
            "error": {
                "code": "internal_server_error",
                "message": "An unexpected error occurred. Please try again later.",
                "request_id": get_request_id(),
            }
        },
    )


def setup_exception_handlers(app) -> None:
    """Register all exception handlers with a FastAPI app.

    Starlette resolves handlers by walking the exception's MRO, so the
    rate limit handler takes precedence over the AppError one.
    """
    app.exception_handler(RateLimitExceededAppError)(rate_limit_exceeded_handler)
    app.exception_handler(AppError)(app_error_handler)
    app.exception_handler(Exception)(general_exception_handler)
