"""Rate limiting dependencies for FastAPI routes.

This module wires the sliding-window limiter into the HTTP layer:
- ``get_rate_limiter`` builds the process-wide limiter over the configured
  store (Firestore or in-memory).
- ``rate_limited(config)`` returns a route dependency that consumes one unit
  of ``config`` for the calling subject and raises a 429 when exhausted.
"""

from __future__ import annotations

import logging
from typing import Annotated, Callable

from fastapi import Header, Request, Response

from app.adapters.rate_limit.base import AbstractRateLimitStore
from app.adapters.rate_limit.in_memory import InMemoryRateLimitStore
from app.core.auth import resolve_subject_id
from app.core.config import settings
from app.core.errors import RateLimitExceededAppError
from app.services.rate_limiter import (
    RateLimitConfig,
    RateLimitResult,
    SlidingWindowRateLimiter,
    ms_to_iso,
)

logger = logging.getLogger(__name__)


_limiter: SlidingWindowRateLimiter | None = None
_limiter_backend: str | None = None


def _build_store(backend: str) -> AbstractRateLimitStore:
    if backend == "memory":
        return InMemoryRateLimitStore()

    # Imported lazily so the in-memory backend works without GCP credentials
    from app.adapters.rate_limit.firestore import FirestoreRateLimitStore

    return FirestoreRateLimitStore.from_settings(
        project_id=settings.firestore.project_id,
        database=settings.firestore.database,
        collection=settings.firestore.collection,
    )


def get_rate_limiter() -> SlidingWindowRateLimiter:
    """Return the process-wide limiter.

    The instance is cached in-module; it is rebuilt when the configured
    backend changes (primarily in tests).
    """
    global _limiter, _limiter_backend

    backend = settings.app.rate_limit_backend
    if _limiter is None or _limiter_backend != backend:
        _limiter = SlidingWindowRateLimiter(_build_store(backend))
        _limiter_backend = backend
        logger.info("rate_limit.limiter_initialized", extra={"backend": backend})

    return _limiter


def reset_rate_limiter() -> None:
    """Drop the cached limiter so the next call rebuilds it."""
    global _limiter, _limiter_backend
    _limiter = None
    _limiter_backend = None


def rate_limit_headers(result: RateLimitResult) -> dict[str, str]:
    """X-RateLimit-* headers describing an allowed result."""
    return {
        "X-RateLimit-Limit": str(result.limit),
        "X-RateLimit-Remaining": str(result.remaining),
        "X-RateLimit-Reset": ms_to_iso(result.reset_at),
    }


def enforce_limit(subject_id: str, config: RateLimitConfig) -> RateLimitResult:
    """Consume one unit of ``config`` for ``subject_id``.

    Raises:
        RateLimitExceededAppError: When the subject exhausted its budget.
    """
    result = get_rate_limiter().check_limit(subject_id, config)
    if result.allowed:
        logger.info(
            "rate_limit.allowed",
            extra={
                "limit_name": config.limit_name,
                "subject_id": subject_id,
                "limit": result.limit,
                "remaining": result.remaining,
            },
        )
        return result

    denial = result.denial
    raise RateLimitExceededAppError(
        code="rate_limit_exceeded",
        message=denial.message if denial else f"Rate limit exceeded for {config.limit_name}",
        details={
            "limit_name": config.limit_name,
            "retry_after": denial.retry_after_seconds if denial else 0,
        },
        denial=denial,
    )


def rate_limited(config: RateLimitConfig) -> Callable[..., None]:
    """Build a route dependency enforcing ``config`` per subject.

    Usage:
        @router.post("/x", dependencies=[Depends(rate_limited(GENERAL_API_LIMIT))])

    A no-op when APP_RATE_LIMIT_ENABLED=false.
    """

    def dependency(
        request: Request,
        response: Response,
        x_api_key: Annotated[str | None, Header(alias="X-API-Key")] = None,
        x_subject_id: Annotated[str | None, Header(alias="X-Subject-Id")] = None,
    ) -> None:
        if not settings.app.rate_limit_enabled:
            return

        subject_id = resolve_subject_id(request, x_api_key, x_subject_id)
        result = enforce_limit(subject_id, config)

        if settings.app.rate_limit_include_headers:
            response.headers.update(rate_limit_headers(result))

    return dependency
