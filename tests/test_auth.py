"""Unit tests for API key authentication and subject resolution."""

from unittest.mock import MagicMock, patch

import pytest
from fastapi import HTTPException

from app.core.auth import (
    MAX_SUBJECT_ID_BYTES,
    parse_api_keys,
    resolve_subject_id,
    validate_api_key,
    verify_api_key,
)
from app.core.errors import AuthenticationAppError, ValidationAppError
from app.core.logging import hash_identifier


class TestParseAPIKeys:
    def test_parse_multiple_keys_with_whitespace(self) -> None:
        assert parse_api_keys("key1 , key2  ,  key3") == {"key1", "key2", "key3"}

    @pytest.mark.parametrize("value", [None, "", "   ,  ,  "])
    def test_parse_empty_values(self, value) -> None:
        assert parse_api_keys(value) == set()

    def test_parse_removes_duplicate_keys(self) -> None:
        assert parse_api_keys("key1,key2,key1") == {"key1", "key2"}


class TestValidateAPIKey:
    @patch("app.core.auth.settings")
    def test_validate_bypassed_when_auth_disabled(self, mock_settings) -> None:
        mock_settings.app.api_key_required = False

        validate_api_key("any-random-key")
        validate_api_key("")

    @patch("app.core.auth.settings")
    def test_validate_raises_when_no_keys_configured(self, mock_settings) -> None:
        mock_settings.app.api_key_required = True
        mock_settings.app.api_keys = None

        with pytest.raises(AuthenticationAppError) as exc_info:
            validate_api_key("some-key")

        assert exc_info.value.code == "api_keys_not_configured"

    @patch("app.core.auth.settings")
    def test_validate_accepts_valid_key(self, mock_settings) -> None:
        mock_settings.app.api_key_required = True
        mock_settings.app.api_keys = "valid-key-1,valid-key-2"

        validate_api_key("valid-key-1")
        validate_api_key("valid-key-2")

    @patch("app.core.auth.settings")
    def test_validate_rejects_invalid_key(self, mock_settings) -> None:
        mock_settings.app.api_key_required = True
        mock_settings.app.api_keys = "valid-key-1"

        with pytest.raises(AuthenticationAppError) as exc_info:
            validate_api_key("invalid-key")

        assert exc_info.value.code == "invalid_api_key"


class TestVerifyAPIKeyDependency:
    @pytest.mark.asyncio
    @patch("app.core.auth.settings")
    async def test_verify_bypassed_when_auth_disabled(self, mock_settings) -> None:
        mock_settings.app.api_key_required = False

        await verify_api_key(x_api_key=None)

    @pytest.mark.asyncio
    @patch("app.core.auth.settings")
    async def test_verify_raises_403_when_header_missing(self, mock_settings) -> None:
        mock_settings.app.api_key_required = True
        mock_settings.app.api_keys = "valid-key"

        with pytest.raises(HTTPException) as exc_info:
            await verify_api_key(x_api_key=None)

        assert exc_info.value.status_code == 403
        assert "Missing API key" in exc_info.value.detail

    @pytest.mark.asyncio
    @patch("app.core.auth.settings")
    async def test_verify_raises_403_when_key_invalid(self, mock_settings) -> None:
        mock_settings.app.api_key_required = True
        mock_settings.app.api_keys = "valid-key"

        with pytest.raises(HTTPException) as exc_info:
            await verify_api_key(x_api_key="wrong-key")

        assert exc_info.value.status_code == 403

    @pytest.mark.asyncio
    @patch("app.core.auth.settings")
    async def test_verify_accepts_valid_key(self, mock_settings) -> None:
        mock_settings.app.api_key_required = True
        mock_settings.app.api_keys = "my-valid-key"

        await verify_api_key(x_api_key="my-valid-key")


class TestResolveSubjectId:
    @pytest.fixture
    def request_(self) -> MagicMock:
        request = MagicMock()
        request.client.host = "203.0.113.7"
        return request

    def test_explicit_subject_wins(self, request_) -> None:
        assert resolve_subject_id(request_, "key", "  user_2abc ") == "user_2abc"

    def test_falls_back_to_api_key_fingerprint(self, request_) -> None:
        subject = resolve_subject_id(request_, "secret-key", None)

        assert subject == f"api_key:{hash_identifier('secret-key')}"
        assert "secret-key" not in subject

    def test_falls_back_to_client_ip(self, request_) -> None:
        assert resolve_subject_id(request_, None, "   ") == "ip:203.0.113.7"

    def test_unknown_client(self) -> None:
        request = MagicMock()
        request.client = None
        assert resolve_subject_id(request) == "ip:unknown"

    def test_subject_with_slash_is_kept_verbatim(self, request_) -> None:
        assert resolve_subject_id(request_, "key", "org/user_1") == "org/user_1"

    def test_oversized_subject_rejected(self, request_) -> None:
        with pytest.raises(ValidationAppError) as exc_info:
            resolve_subject_id(request_, "key", "u" * (MAX_SUBJECT_ID_BYTES + 1))

        assert exc_info.value.code == "subject_id_too_long"
