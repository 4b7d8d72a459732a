"""
Session Cookies — HS256 JWTs signed with SESSION_SECRET

Two kinds of session, both carried in one HttpOnly cookie:

  user    password login (AUTH_PASSWORD) — unlimited executions
  guest   anonymous — daily execution quota, counter carried in the token

The token is re-issued whenever its claims change (guest counter bump), so
the cookie itself is the session store; nothing is kept server-side.

Claims:
  sub                    random session id
  guest                  bool
  authenticated_at       epoch milliseconds
  guest_execution_count  executions used on guest_execution_date
  guest_execution_date   YYYY-MM-DD (UTC) the counter belongs to
  iat / exp              standard
"""

from __future__ import annotations

import hmac
import logging
import time
import uuid
from typing import Annotated

from fastapi import Depends, HTTPException, Request, Response, status
from jose import ExpiredSignatureError, JWTError, jwt
from pydantic import BaseModel

from thunderdome.core.config import settings
from thunderdome.schemas.errors import ApiErrors

logger = logging.getLogger(__name__)

_ALGORITHM = "HS256"


# ---------------------------------------------------------------------------
# Verified session payload
# ---------------------------------------------------------------------------

class SessionData(BaseModel):
    """Parsed, validated session claims — passed to route handlers."""
    sub:                   str
    guest:                 bool = False
    authenticated_at:      int
    guest_execution_count: int = 0
    guest_execution_date:  str | None = None


def new_session(guest: bool) -> SessionData:
    return SessionData(
        sub=str(uuid.uuid4()),
        guest=guest,
        authenticated_at=int(time.time() * 1000),
    )


# ---------------------------------------------------------------------------
# Password check
# ---------------------------------------------------------------------------

def verify_password(candidate: str) -> bool:
    """Constant-time comparison against AUTH_PASSWORD. Empty config never matches."""
    expected = settings.auth_password
    if not expected:
        logger.warning("Session | login attempted but AUTH_PASSWORD is not set")
        return False
    return hmac.compare_digest(candidate.encode("utf-8"), expected.encode("utf-8"))


# ---------------------------------------------------------------------------
# Encode / decode
# ---------------------------------------------------------------------------

def encode_session(session: SessionData) -> str:
    now = int(time.time())
    claims = session.model_dump()
    claims["iat"] = now
    claims["exp"] = now + settings.session_max_age_seconds
    return jwt.encode(claims, settings.session_secret, algorithm=_ALGORITHM)


def decode_session(token: str) -> SessionData:
    """
    Verify signature + expiry and return the session.

    Raises:
        HTTPException 401: expired, tampered, or malformed token.
    """
    try:
        claims = jwt.decode(
            token,
            settings.session_secret,
            algorithms=[_ALGORITHM],
            options={"verify_exp": True},
        )
    except ExpiredSignatureError:
        raise HTTPException(
            status.HTTP_401_UNAUTHORIZED,
            detail=ApiErrors.unauthorized("Session has expired").model_dump(),
        )
    except JWTError as exc:
        raise HTTPException(
            status.HTTP_401_UNAUTHORIZED,
            detail=ApiErrors.unauthorized(f"Invalid session: {exc}").model_dump(),
        )

    try:
        return SessionData.model_validate(claims)
    except ValueError:
        raise HTTPException(
            status.HTTP_401_UNAUTHORIZED,
            detail=ApiErrors.unauthorized("Session is missing required claims").model_dump(),
        )


# ---------------------------------------------------------------------------
# Cookie helpers
# ---------------------------------------------------------------------------

def set_session_cookie(response: Response, session: SessionData) -> None:
    response.set_cookie(
        key=settings.session_cookie_name,
        value=encode_session(session),
        max_age=settings.session_max_age_seconds,
        httponly=True,
        secure=settings.is_production,
        samesite="lax",
    )


def clear_session_cookie(response: Response) -> None:
    response.delete_cookie(key=settings.session_cookie_name)


# ---------------------------------------------------------------------------
# FastAPI dependencies
# ---------------------------------------------------------------------------

async def get_optional_session(request: Request) -> SessionData | None:
    """The current session, or None when no cookie is present or it is invalid."""
    token = request.cookies.get(settings.session_cookie_name)
    if not token:
        return None
    try:
        return decode_session(token)
    except HTTPException:
        return None


async def get_current_session(request: Request) -> SessionData:
    """
    FastAPI dependency — inject into any route that requires a session::

        @router.post("/execute")
        async def execute(session: SessionData = Depends(get_current_session)):
            ...
    """
    token = request.cookies.get(settings.session_cookie_name)
    if not token:
        raise HTTPException(
            status.HTTP_401_UNAUTHORIZED,
            detail=ApiErrors.unauthorized().model_dump(),
        )
    return decode_session(token)


CurrentSession = Annotated[SessionData, Depends(get_current_session)]
