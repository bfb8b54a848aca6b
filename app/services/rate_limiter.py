"""Sliding-window rate limiter over a document store.

Each (subject, limit name) pair owns one record holding the timestamps of the
actions accepted inside the trailing window. On every check the timestamps
older than the window are dropped, so records behave as expired without a
separate cleanup pass; ``cleanup_expired`` only reclaims storage.

Store failures fail open: the action is allowed and a warning is logged.

The read-modify-write is not atomic. Two concurrent checks for the same
subject can read the same state and both be admitted, overshooting the limit
by one. Guarded actions are low stakes, so this race is accepted.
"""

from __future__ import annotations

import logging
import math
import re
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Callable
from urllib.parse import quote

from app.adapters.rate_limit.base import AbstractRateLimitStore, RateLimitRecord
from app.core.errors import StorageAppError

logger = logging.getLogger(__name__)

_WHITESPACE_RE = re.compile(r"\s+")

HOUR_MS = 60 * 60 * 1000
MINUTE_MS = 60 * 1000


@dataclass(frozen=True)
class RateLimitConfig:
    """Immutable limit policy.

    Attributes:
        max_requests: Actions allowed inside one window.
        window_ms: Window length in milliseconds.
        limit_name: Human-readable policy name (also part of the record key).
    """

    max_requests: int
    window_ms: int
    limit_name: str

    def __post_init__(self) -> None:
        if self.max_requests < 1:
            raise ValueError("max_requests must be >= 1")
        if self.window_ms <= 0:
            raise ValueError("window_ms must be > 0")
        if not self.limit_name or not self.limit_name.strip():
            raise ValueError("limit_name must be a non-empty string")


AI_GENERATION_LIMIT = RateLimitConfig(max_requests=5, window_ms=HOUR_MS, limit_name="AI Generation")
CHECKOUT_LIMIT = RateLimitConfig(max_requests=10, window_ms=HOUR_MS, limit_name="Checkout")
GENERAL_API_LIMIT = RateLimitConfig(max_requests=60, window_ms=MINUTE_MS, limit_name="General API")

RATE_LIMIT_POLICIES: dict[str, RateLimitConfig] = {
    "ai_generation": AI_GENERATION_LIMIT,
    "checkout": CHECKOUT_LIMIT,
    "general_api": GENERAL_API_LIMIT,
}


def ms_to_iso(epoch_ms: int) -> str:
    """Render epoch milliseconds as an ISO-8601 UTC string (``...Z``)."""
    moment = datetime.fromtimestamp(epoch_ms / 1000, tz=timezone.utc)
    return moment.isoformat(timespec="milliseconds").replace("+00:00", "Z")


@dataclass(frozen=True)
class RateLimitDenial:
    """Structured denial, renderable as an HTTP 429 response."""

    limit_name: str
    message: str
    limit: int
    reset_at: int
    retry_after_seconds: int

    def to_payload(self) -> dict[str, Any]:
        """JSON body of the 429 response."""
        return {
            "error": self.message,
            "limit": self.limit,
            "remaining": 0,
            "reset": ms_to_iso(self.reset_at),
            "retryAfter": self.retry_after_seconds,
        }

    def to_headers(self) -> dict[str, str]:
        """Headers of the 429 response."""
        return {
            "X-RateLimit-Limit": str(self.limit),
            "X-RateLimit-Remaining": "0",
            "X-RateLimit-Reset": ms_to_iso(self.reset_at),
            "Retry-After": str(self.retry_after_seconds),
        }


@dataclass(frozen=True)
class RateLimitResult:
    """Result of a rate limit check.

    Attributes:
        allowed: Whether the action may proceed.
        limit: Max actions per window.
        remaining: Actions left in the window (0 when denied).
        reset_at: UNIX epoch milliseconds when the window admits a new action.
        denial: Present only when the action was denied.
    """

    allowed: bool
    limit: int
    remaining: int
    reset_at: int
    denial: RateLimitDenial | None = None


def normalize_limit_name(limit_name: str) -> str:
    """Lower-case the name and collapse whitespace runs into ``_``.

    Examples:
        >>> normalize_limit_name("AI Generation")
        'ai_generation'
        >>> normalize_limit_name("General   API")
        'general_api'
    """
    return _WHITESPACE_RE.sub("_", limit_name.strip().lower())


def build_record_key(subject_id: str, limit_name: str) -> str:
    """Deterministic store key for a (subject, limit) pair.

    The subject is percent-encoded (``/`` and ``%`` included) so that any
    caller-supplied id yields a single, valid document id.

    Examples:
        >>> build_record_key("user_1", "Checkout")
        'user_1_checkout'
        >>> build_record_key("user/1", "Checkout")
        'user%2F1_checkout'
    """
    return f"{quote(subject_id, safe=':@')}_{normalize_limit_name(limit_name)}"


class SlidingWindowRateLimiter:
    """Rate limiter using a timestamp log per subject and limit name."""

    def __init__(
        self,
        store: AbstractRateLimitStore,
        *,
        clock: Callable[[], float] = time.time,
    ) -> None:
        """Initialize the limiter.

        Args:
            store: Persistent record store.
            clock: Time source returning UNIX time in seconds.
        """
        self._store = store
        self._clock = clock

    def _now_ms(self) -> int:
        return int(self._clock() * 1000)

    def check_limit(self, subject_id: str, config: RateLimitConfig) -> RateLimitResult:
        """Record an action for ``subject_id`` if ``config`` still allows it.

        Args:
            subject_id: Opaque, stable caller identity.
            config: Limit policy to apply.

        Returns:
            RateLimitResult describing the decision. Store failures produce
            an allowed result with the full budget reported as remaining.

        Raises:
            ValueError: If subject_id is empty.
        """
        if not subject_id:
            raise ValueError("subject_id must be a non-empty string")

        now = self._now_ms()
        try:
            return self._check(subject_id, config, now)
        except Exception as exc:
            logger.warning(
                "rate_limit.store_error",
                extra={
                    "limit_name": config.limit_name,
                    "subject_id": subject_id,
                    "error_type": type(exc).__name__,
                    "error_msg": str(exc),
                },
            )
            return RateLimitResult(
                allowed=True,
                limit=config.max_requests,
                remaining=config.max_requests,
                reset_at=now + config.window_ms,
            )

    def _check(self, subject_id: str, config: RateLimitConfig, now: int) -> RateLimitResult:
        window_start = now - config.window_ms
        key = build_record_key(subject_id, config.limit_name)

        record = self._store.get(key)
        if record is None:
            self._store.put(
                key,
                {
                    "subjectId": subject_id,
                    "limitName": config.limit_name,
                    "requests": [now],
                    "createdAt": now,
                    "expiresAt": now + config.window_ms,
                },
            )
            return RateLimitResult(
                allowed=True,
                limit=config.max_requests,
                remaining=config.max_requests - 1,
                reset_at=now + config.window_ms,
            )

        recent = [ts for ts in record.get("requests") or [] if ts > window_start]

        if len(recent) >= config.max_requests:
            reset_at = min(recent) + config.window_ms
            retry_after = math.ceil((reset_at - now) / 1000)
            logger.warning(
                "rate_limit.exceeded",
                extra={
                    "limit_name": config.limit_name,
                    "subject_id": subject_id,
                    "limit": config.max_requests,
                    "retry_after_s": retry_after,
                },
            )
            return RateLimitResult(
                allowed=False,
                limit=config.max_requests,
                remaining=0,
                reset_at=reset_at,
                denial=RateLimitDenial(
                    limit_name=config.limit_name,
                    message=f"Rate limit exceeded for {config.limit_name}",
                    limit=config.max_requests,
                    reset_at=reset_at,
                    retry_after_seconds=retry_after,
                ),
            )

        updated: RateLimitRecord = {
            "subjectId": subject_id,
            "limitName": config.limit_name,
            "requests": [*recent, now],
            "lastUpdated": now,
            "expiresAt": now + config.window_ms,
        }
        self._store.put(key, updated)

        return RateLimitResult(
            allowed=True,
            limit=config.max_requests,
            remaining=config.max_requests - len(updated["requests"]),
            reset_at=now + config.window_ms,
        )

    def check_ai_generation_limit(self, subject_id: str) -> RateLimitResult:
        return self.check_limit(subject_id, AI_GENERATION_LIMIT)

    def check_checkout_limit(self, subject_id: str) -> RateLimitResult:
        return self.check_limit(subject_id, CHECKOUT_LIMIT)

    def check_general_api_limit(self, subject_id: str) -> RateLimitResult:
        return self.check_limit(subject_id, GENERAL_API_LIMIT)

    def cleanup_expired(self) -> int:
        """Delete records whose every timestamp has left its window.

        A record's ``expiresAt`` is its newest timestamp plus the window, so
        deleting records with ``expiresAt`` in the past never changes a
        decision.

        Returns:
            Number of deleted records.

        Raises:
            StorageAppError: If the store fails.
        """
        now = self._now_ms()
        try:
            deleted = self._store.delete_expired(now)
        except Exception as exc:
            logger.error(
                "rate_limit.cleanup_failed",
                extra={"error_type": type(exc).__name__, "error_msg": str(exc)},
            )
            raise StorageAppError(
                code="rate_limit_store_unavailable",
                message="Rate limit storage is unavailable",
            ) from exc

        logger.info("rate_limit.cleanup_completed", extra={"deleted": deleted})
        return deleted
