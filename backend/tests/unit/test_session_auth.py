"""
Unit Tests — Session cookies
════════════════════════════
  • verify_password      — constant-time match, empty config never matches
  • encode / decode      — HS256 round trip of guest counters
  • decode_session       — expired, tampered, wrong-secret, missing claims → 401
  • get_current_session  — cookie present / absent
"""

from __future__ import annotations

import time
from unittest.mock import MagicMock, patch

import pytest
from fastapi import HTTPException
from jose import jwt

from thunderdome.auth.session import (
    SessionData,
    decode_session,
    encode_session,
    get_current_session,
    get_optional_session,
    new_session,
    verify_password,
)
from thunderdome.core.config import settings
from tests.conftest import TEST_PASSWORD


def _cookie_request(token: str | None):
    req = MagicMock()
    req.cookies = {settings.session_cookie_name: token} if token else {}
    return req


@pytest.mark.unit
@pytest.mark.auth
class TestPassword:

    def test_correct_password(self):
        assert verify_password(TEST_PASSWORD) is True

    def test_wrong_password(self):
        assert verify_password(TEST_PASSWORD + "x") is False
        assert verify_password("") is False

    def test_unset_password_never_matches(self):
        with patch.object(settings, "auth_password", ""):
            assert verify_password("") is False
            assert verify_password("anything") is False


@pytest.mark.unit
@pytest.mark.auth
class TestTokens:

    def test_round_trip_keeps_guest_counters(self):
        session = new_session(guest=True).model_copy(update={
            "guest_execution_count": 2,
            "guest_execution_date":  "2025-03-01",
        })

        decoded = decode_session(encode_session(session))

        assert decoded == session

    def test_token_carries_iat_and_exp(self):
        claims = jwt.get_unverified_claims(encode_session(new_session(guest=False)))
        assert claims["exp"] - claims["iat"] == settings.session_max_age_seconds
        assert claims["guest"] is False

    def test_expired_token_rejected(self):
        now   = int(time.time())
        token = jwt.encode(
            {"sub": "s", "guest": False, "authenticated_at": 0, "iat": now - 100, "exp": now - 10},
            settings.session_secret,
            algorithm="HS256",
        )
        with pytest.raises(HTTPException) as exc_info:
            decode_session(token)
        assert exc_info.value.status_code == 401
        assert exc_info.value.detail["error_code"] == "UNAUTHORIZED"

    def test_wrong_secret_rejected(self):
        token = jwt.encode(
            {"sub": "s", "authenticated_at": 0, "exp": int(time.time()) + 60},
            "some-other-secret",
            algorithm="HS256",
        )
        with pytest.raises(HTTPException) as exc_info:
            decode_session(token)
        assert exc_info.value.status_code == 401

    def test_tampered_token_rejected(self):
        token = encode_session(new_session(guest=True))
        header, payload, signature = token.split(".")
        tampered = f"{header}.{payload}.{signature[::-1]}"
        with pytest.raises(HTTPException):
            decode_session(tampered)

    def test_missing_claims_rejected(self):
        token = jwt.encode({"exp": int(time.time()) + 60}, settings.session_secret, algorithm="HS256")
        with pytest.raises(HTTPException) as exc_info:
            decode_session(token)
        assert exc_info.value.status_code == 401


@pytest.mark.unit
@pytest.mark.auth
class TestDependencies:

    async def test_current_session_from_cookie(self):
        session = new_session(guest=False)
        result  = await get_current_session(_cookie_request(encode_session(session)))
        assert isinstance(result, SessionData)
        assert result.sub == session.sub

    async def test_missing_cookie_is_401(self):
        with pytest.raises(HTTPException) as exc_info:
            await get_current_session(_cookie_request(None))
        assert exc_info.value.status_code == 401

    async def test_optional_session_swallows_invalid_cookie(self):
        assert await get_optional_session(_cookie_request("garbage")) is None
        assert await get_optional_session(_cookie_request(None)) is None
