"""Scraping target validation endpoint.

Contact enrichment fetches pages server-side; callers submit the URLs here
first and fetch only the ``valid`` bucket.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends

from app.core.auth import verify_api_key
from app.core.config import settings
from app.core.rate_limit import rate_limited
from app.core.url_policy import get_url_policy
from app.schemas.scraping import UrlRejection, ValidateUrlsRequest, ValidateUrlsResponse
from app.services.rate_limiter import GENERAL_API_LIMIT
from app.utils.url_validator import check_url

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Scraping"])


@router.post(
    "/scraping/validate",
    response_model=ValidateUrlsResponse,
    dependencies=[Depends(verify_api_key), Depends(rate_limited(GENERAL_API_LIMIT))],
)
def validate_scraping_urls(payload: ValidateUrlsRequest) -> ValidateUrlsResponse:
    """Partition URLs into safe and unsafe buckets.

    Args:
        payload: URLs plus optional allow-list mode.

    Returns:
        ValidateUrlsResponse with input order preserved in each bucket and
        the rejection reason for every invalid URL.
    """
    enforce_allowlist = (
        settings.scraping.enforce_allowlist
        if payload.enforce_allowlist is None
        else payload.enforce_allowlist
    )
    policy = get_url_policy()

    response = ValidateUrlsResponse()
    for url in payload.urls:
        decision = check_url(url, enforce_allowlist, policy)
        if decision.safe:
            response.valid.append(url)
            continue
        response.invalid.append(url)
        response.rejections.append(
            UrlRejection(url=url, hostname=decision.hostname, reason=decision.reason)
        )

    logger.info(
        "scraping.urls_validated",
        extra={
            "submitted": len(payload.urls),
            "valid": len(response.valid),
            "invalid": len(response.invalid),
            "enforce_allowlist": enforce_allowlist,
        },
    )
    return response
