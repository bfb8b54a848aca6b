"""Tests for log redaction and JSON formatting."""

from __future__ import annotations

import json
import logging
from io import StringIO

import pytest

from app.core.logging import (
    JsonFormatter,
    SensitiveDataFilter,
    clear_request_id,
    hash_identifier,
    redact,
    set_request_id,
)


@pytest.fixture
def capture():
    """Logger wired like production; yields (logger, stream)."""
    logger = logging.getLogger("test_redaction")
    logger.setLevel(logging.INFO)
    logger.handlers.clear()
    logger.propagate = False

    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.addFilter(SensitiveDataFilter())
    handler.setFormatter(JsonFormatter())
    logger.addHandler(handler)

    yield logger, stream

    logger.handlers.clear()
    clear_request_id()


def test_redacts_api_keys(capture):
    logger, stream = capture

    logger.info(
        "auth.invalid_key",
        extra={"api_key": "sk-secret-123", "x-api-key": "another-secret", "safe_field": "visible"},
    )

    output = stream.getvalue()
    assert "sk-secret-123" not in output
    assert "another-secret" not in output
    assert "[REDACTED]" in output
    assert "visible" in output


def test_redacts_nested_credentials(capture):
    logger, stream = capture

    logger.info(
        "firestore.client_created",
        extra={"config": {"credentials": "{...}", "project": "outreach-prod"}},
    )

    payload = json.loads(stream.getvalue())
    assert payload["config"] == {"credentials": "[REDACTED]", "project": "outreach-prod"}


def test_rate_limit_fields_pass_through(capture):
    logger, stream = capture

    logger.warning(
        "rate_limit.exceeded",
        extra={"limit_name": "AI Generation", "subject_id": "user_2abc", "retry_after_s": 120},
    )

    payload = json.loads(stream.getvalue())
    assert payload["message"] == "rate_limit.exceeded"
    assert payload["level"] == "warning"
    assert payload["limit_name"] == "AI Generation"
    assert payload["subject_id"] == "user_2abc"
    assert payload["retry_after_s"] == 120


def test_request_id_from_context(capture):
    logger, stream = capture
    set_request_id("req-42")

    logger.info("url_validation.rejected")

    assert json.loads(stream.getvalue())["request_id"] == "req-42"


def test_redact_sequences():
    assert redact([{"token": "t"}, ("a", {"password": "p"})]) == [
        {"token": "[REDACTED]"},
        ("a", {"password": "[REDACTED]"}),
    ]


def test_hash_identifier_is_stable_and_short():
    assert hash_identifier("abc") == hash_identifier("abc")
    assert len(hash_identifier("abc")) == 16
    assert hash_identifier("abc") != hash_identifier("abd")
