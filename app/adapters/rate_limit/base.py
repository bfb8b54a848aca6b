"""Rate limit store interface.

The limiter should depend on this abstraction (not a concrete backend) so the
document store can be swapped without touching the decision algorithm.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any

RateLimitRecord = dict[str, Any]


class AbstractRateLimitStore(ABC):
    """Key/value store for rate limit records.

    Records are JSON-like dicts with the fields ``subjectId``, ``limitName``,
    ``requests`` (epoch-ms timestamps), ``createdAt`` or ``lastUpdated`` and
    ``expiresAt``. No transactional guarantee is assumed by callers.
    """

    @abstractmethod
    def get(self, key: str) -> RateLimitRecord | None:
        """Return the record stored under ``key`` or None when absent."""
        raise NotImplementedError

    @abstractmethod
    def put(self, key: str, record: RateLimitRecord) -> None:
        """Store ``record`` under ``key``, fully replacing any previous value."""
        raise NotImplementedError

    @abstractmethod
    def delete_expired(self, before_ms: int) -> int:
        """Delete records whose ``expiresAt`` is earlier than ``before_ms``.

        Args:
            before_ms: Cut-off as UNIX epoch milliseconds.

        Returns:
            Number of deleted records.
        """
        raise NotImplementedError
