"""Pytest configuration and fixtures shared across all test modules.

Environment defaults are set before any app import so Settings picks them up:
rate limits use the in-memory store and API keys are fixed test values.
"""

import os

# Must run before anything imports app.core.config
os.environ.setdefault("APP_ENV", "testing")
os.environ.setdefault("APP_API_KEY_REQUIRED", "true")
os.environ.setdefault("APP_API_KEYS", "test-api-key-123,test-api-key-456")
os.environ.setdefault("APP_RATE_LIMIT_BACKEND", "memory")
os.environ.setdefault("APP_RATE_LIMIT_ENABLED", "true")
os.environ.setdefault("LOG_LEVEL", "WARNING")

from unittest.mock import Mock

import pytest

from app.adapters.rate_limit.in_memory import InMemoryRateLimitStore
from app.core import rate_limit as rate_limit_module
from app.services.rate_limiter import SlidingWindowRateLimiter


@pytest.fixture(autouse=True)
def _reset_rate_limiter():
    """Give every test a fresh process-wide limiter."""
    rate_limit_module.reset_rate_limiter()
    yield
    rate_limit_module.reset_rate_limiter()


@pytest.fixture
def clock() -> Mock:
    """Controllable time source (UNIX seconds)."""
    return Mock(return_value=1_700_000_000.0)


@pytest.fixture
def store() -> InMemoryRateLimitStore:
    return InMemoryRateLimitStore()


@pytest.fixture
def limiter(store: InMemoryRateLimitStore, clock: Mock) -> SlidingWindowRateLimiter:
    return SlidingWindowRateLimiter(store, clock=clock)


@pytest.fixture
def valid_api_key_headers() -> dict[str, str]:
    return {"X-API-Key": "test-api-key-123"}
