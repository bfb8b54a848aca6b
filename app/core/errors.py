"""Application-level exception types.

This module defines domain errors used across services/adapters, enabling
consistent error handling, logging, and API responses.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, NotRequired, TypedDict

if TYPE_CHECKING:
    from app.services.rate_limiter import RateLimitDenial


class ErrorDetails(TypedDict, total=False):
    """Structured error context for observability and clients.

    Fields are optional to keep shapes consistent without forcing every
    error to carry every field.
    """

    code: str
    message: str
    hint: str
    limit_name: str
    policy: str
    available_policies: list[str]
    http_status: int
    retry_after: int
    backend: str
    request_id: str
    context: NotRequired[dict[str, Any]]


@dataclass
class AppError(Exception):
    """Base error for application/domain failures.

    Attributes:
        code: Stable, machine-readable error code.
        message: Human-readable error message.
        details: Optional structured details for debugging/observability.
    """

    code: str
    message: str
    details: ErrorDetails | None = None

    def __post_init__(self) -> None:
        # Populate Exception args so str(error) is useful in logs/tracebacks.
        super().__init__(self.message)


class ValidationAppError(AppError):
    """Raised when input/config validation fails."""


class AuthenticationAppError(AppError):
    """Raised when authentication/authorization fails."""


class NotFoundAppError(AppError):
    """Raised when a named resource (e.g. a rate limit policy) does not exist."""


class StorageAppError(AppError):
    """Raised when the persistent store fails outside the fail-open path."""


@dataclass
class RateLimitExceededAppError(AppError):
    """Raised at the HTTP boundary when a subject exhausted its budget.

    Carries the limiter's denial so the handler can render the 429 payload.
    """

    denial: "RateLimitDenial | None" = None
