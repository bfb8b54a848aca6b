"""In-memory rate limit store.

Notes:
- Per-process only: running multiple workers multiplies the effective limit.
- Thread-safe: uses a lock around shared state.
"""

from __future__ import annotations

import copy
import threading

from app.adapters.rate_limit.base import AbstractRateLimitStore, RateLimitRecord


class InMemoryRateLimitStore(AbstractRateLimitStore):
    """Dict-backed store used for local development and tests.

    Important:
        Records live only as long as the process. If the API runs with
        multiple Uvicorn/Gunicorn workers, each worker keeps its own
        independent records.
    """

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._records: dict[str, RateLimitRecord] = {}

    def get(self, key: str) -> RateLimitRecord | None:
        with self._lock:
            record = self._records.get(key)
            return copy.deepcopy(record) if record is not None else None

    def put(self, key: str, record: RateLimitRecord) -> None:
        with self._lock:
            self._records[key] = copy.deepcopy(record)

    def delete_expired(self, before_ms: int) -> int:
        with self._lock:
            expired = [
                key
                for key, record in self._records.items()
                if record.get("expiresAt", 0) < before_ms
            ]
            for key in expired:
                del self._records[key]
            return len(expired)

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)
