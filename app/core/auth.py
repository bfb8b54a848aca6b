"""API key authentication and caller identity.

Callers are other services of the outreach product. They authenticate with a
shared X-API-Key and name the end user they act for in X-Subject-Id; that
subject is what rate limits are counted against.
"""

from __future__ import annotations

import logging
from typing import Annotated

from fastapi import Header, HTTPException, Request, status

from app.core.config import parse_csv, settings
from app.core.errors import AuthenticationAppError, ValidationAppError
from app.core.logging import hash_identifier

logger = logging.getLogger(__name__)

# Keeps the percent-encoded record key well under the store's id size limit
MAX_SUBJECT_ID_BYTES = 256


def parse_api_keys(keys_string: str | None) -> set[str]:
    """Parse comma-separated API keys into a set.

    Examples:
        >>> parse_api_keys("key1, key2 , key3 ") == {"key1", "key2", "key3"}
        True
        >>> parse_api_keys(None)
        set()
    """
    return set(parse_csv(keys_string))


def validate_api_key(provided_key: str) -> None:
    """Check ``provided_key`` against the configured keys.

    Raises:
        AuthenticationAppError: If the key is unknown, or auth is required but
            no keys are configured.
    """
    if not settings.app.api_key_required:
        return

    valid_keys = parse_api_keys(settings.app.api_keys)

    if not valid_keys:
        logger.error(
            "auth.keys_not_configured",
            extra={"auth_required": settings.app.api_key_required},
        )
        raise AuthenticationAppError(
            code="api_keys_not_configured",
            message="API key authentication is enabled but no valid keys are configured",
            details={"hint": "Set APP_API_KEYS or disable auth with APP_API_KEY_REQUIRED=false"},
        )

    if provided_key not in valid_keys:
        logger.warning(
            "auth.invalid_key",
            extra={"api_key_hash": hash_identifier(provided_key)},
        )
        raise AuthenticationAppError(
            code="invalid_api_key",
            message="Invalid or missing API key",
        )


async def verify_api_key(
    x_api_key: Annotated[str | None, Header(alias="X-API-Key")] = None,
) -> None:
    """FastAPI dependency for API key authentication.

    Usage:
        @router.post("/protected", dependencies=[Depends(verify_api_key)])

    Raises:
        HTTPException: 403 Forbidden if authentication fails.
    """
    if not settings.app.api_key_required:
        return

    if not x_api_key:
        logger.warning("auth.missing_key")
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Missing API key. Provide X-API-Key header.",
        )

    try:
        validate_api_key(x_api_key)
    except AuthenticationAppError as exc:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=exc.message,
        ) from exc


def resolve_subject_id(
    request: Request,
    x_api_key: str | None = None,
    x_subject_id: str | None = None,
) -> str:
    """Identity that rate limits are counted against.

    Precedence: explicit X-Subject-Id, then a fingerprint of the API key,
    then the client address.

    Raises:
        ValidationAppError: If X-Subject-Id exceeds MAX_SUBJECT_ID_BYTES.
    """
    if x_subject_id and x_subject_id.strip():
        subject_id = x_subject_id.strip()
        if len(subject_id.encode("utf-8")) > MAX_SUBJECT_ID_BYTES:
            raise ValidationAppError(
                code="subject_id_too_long",
                message=f"X-Subject-Id must be at most {MAX_SUBJECT_ID_BYTES} bytes",
            )
        return subject_id

    if x_api_key:
        return f"api_key:{hash_identifier(x_api_key)}"

    client_host = request.client.host if request.client else "unknown"
    return f"ip:{client_host}"
