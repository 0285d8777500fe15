"""
Unit Tests for Security Module
Tests for: password hashing, JWT tokens, token extraction, internal API keys
"""
from datetime import timedelta
from types import SimpleNamespace
from unittest.mock import patch

import pytest
from fastapi import HTTPException
from starlette.requests import Request

from infohub.core.config import settings
from infohub.core.security import (
    create_access_token,
    create_password_reset_token,
    create_refresh_token,
    decode_token,
    extract_token,
    generate_api_key,
    get_password_hash,
    hash_token,
    verify_internal_api_key,
    verify_password,
)


def _request(headers=None, cookies=None) -> Request:
    raw = [(k.lower().encode(), v.encode()) for k, v in (headers or {}).items()]
    if cookies:
        raw.append((b"cookie", "; ".join(f"{k}={v}" for k, v in cookies.items()).encode()))
    return Request({"type": "http", "method": "GET", "path": "/", "headers": raw, "query_string": b""})


class TestPasswordHashing:
    """Test password hashing functions"""

    def test_verify_password_correct(self):
        hashed = get_password_hash("testpassword123")
        assert hashed != "testpassword123"
        assert verify_password("testpassword123", hashed) is True

    def test_verify_password_incorrect(self):
        hashed = get_password_hash("testpassword123")
        assert verify_password("wrongpassword", hashed) is False

    def test_hash_long_password_truncated(self):
        """Bcrypt only looks at the first 72 bytes"""
        hashed = get_password_hash("a" * 100)
        assert verify_password("a" * 100, hashed) is True


class TestTokens:
    """Test JWT creation and decoding"""

    def test_access_token_round_trip(self):
        token = create_access_token({"sub": "user-1", "role": "teacher"})
        payload = decode_token(token)

        assert payload["sub"] == "user-1"
        assert payload["type"] == "access"

    def test_refresh_and_reset_token_types(self):
        assert decode_token(create_refresh_token({"sub": "u"}))["type"] == "refresh"
        assert decode_token(create_password_reset_token("u", "a@b.c"))["type"] == "password_reset"

    def test_expired_token_rejected(self):
        token = create_access_token({"sub": "u"}, expires_delta=timedelta(seconds=-10))
        with pytest.raises(HTTPException) as exc_info:
            decode_token(token)
        assert exc_info.value.status_code == 401

    def test_garbage_token_rejected(self):
        with pytest.raises(HTTPException):
            decode_token("not-a-jwt")

    def test_hash_token_is_stable(self):
        assert hash_token("abc") == hash_token("abc")
        assert hash_token("abc") != hash_token("abd")


class TestTokenExtraction:
    """Test bearer header and cookie lookup"""

    def test_header_wins_over_cookie(self):
        request = _request({"Authorization": "Bearer header-token"}, {settings.AUTH_COOKIE_NAME: "cookie-token"})
        assert extract_token(request) == "header-token"

    def test_cookie_fallback(self):
        request = _request(cookies={settings.AUTH_COOKIE_NAME: "cookie-token"})
        assert extract_token(request) == "cookie-token"

    def test_no_token(self):
        assert extract_token(_request()) is None


class TestApiKeys:
    """Test API key helpers"""

    def test_generate_api_key_prefix(self):
        assert generate_api_key().startswith("sih_")

    def test_internal_api_key(self):
        with patch("infohub.core.security.settings", SimpleNamespace(INTERNAL_API_KEYS=["key-one", "key-two"])):
            assert verify_internal_api_key("key-two") is True
            assert verify_internal_api_key("key-three") is False
        assert verify_internal_api_key(None) is False
