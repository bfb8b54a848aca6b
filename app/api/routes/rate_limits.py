"""Rate limit endpoints for the product's other services.

``consume`` lets a request handler that lives elsewhere (AI generation,
checkout) charge one action against a predefined policy before acting.
"""

from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends, Header, Request, Response

from app.core.auth import resolve_subject_id, verify_api_key
from app.core.config import settings
from app.core.errors import NotFoundAppError
from app.core.rate_limit import enforce_limit, get_rate_limiter, rate_limit_headers
from app.schemas.rate_limit import (
    CleanupResponse,
    RateLimitExceededResponse,
    RateLimitStatusResponse,
)
from app.services.rate_limiter import RATE_LIMIT_POLICIES, ms_to_iso

router = APIRouter(tags=["Rate limits"])


@router.post(
    "/rate-limits/{policy}/consume",
    response_model=RateLimitStatusResponse,
    responses={429: {"model": RateLimitExceededResponse}},
    dependencies=[Depends(verify_api_key)],
)
def consume_rate_limit(
    policy: str,
    request: Request,
    response: Response,
    x_api_key: Annotated[str | None, Header(alias="X-API-Key")] = None,
    x_subject_id: Annotated[str | None, Header(alias="X-Subject-Id")] = None,
) -> RateLimitStatusResponse:
    """Charge one action against ``policy`` for the calling subject.

    Returns 429 with the rate limit payload once the budget is exhausted.
    Runs even when APP_RATE_LIMIT_ENABLED=false: an explicit consume call is
    the caller's own enforcement.
    """
    config = RATE_LIMIT_POLICIES.get(policy)
    if config is None:
        raise NotFoundAppError(
            code="rate_limit_policy_not_found",
            message=f"Unknown rate limit policy: {policy}",
            details={"policy": policy, "available_policies": sorted(RATE_LIMIT_POLICIES)},
        )

    subject_id = resolve_subject_id(request, x_api_key, x_subject_id)
    result = enforce_limit(subject_id, config)

    if settings.app.rate_limit_include_headers:
        response.headers.update(rate_limit_headers(result))

    return RateLimitStatusResponse(
        allowed=result.allowed,
        limit=result.limit,
        remaining=result.remaining,
        reset=ms_to_iso(result.reset_at),
    )


@router.post(
    "/admin/rate-limits/cleanup",
    response_model=CleanupResponse,
    tags=["Admin"],
    dependencies=[Depends(verify_api_key)],
)
def cleanup_rate_limits() -> CleanupResponse:
    """Delete rate limit records whose window has fully elapsed.

    Meant to be triggered periodically (e.g. Cloud Scheduler).
    """
    return CleanupResponse(deleted=get_rate_limiter().cleanup_expired())
