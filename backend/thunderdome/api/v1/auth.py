"""
Session Auth API

POST /api/v1/auth/login         password login → unlimited session
POST /api/v1/auth/guest         anonymous session with a daily execution quota
GET  /api/v1/auth/status        is there a valid session?
GET  /api/v1/auth/guest-status  guest quota usage
POST /api/v1/auth/logout        clear the session cookie
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, Request, Response, status

from thunderdome.api.dependencies import QuotaGate
from thunderdome.auth.session import (
    CurrentSession,
    SessionData,
    clear_session_cookie,
    get_optional_session,
    new_session,
    set_session_cookie,
    verify_password,
)
from thunderdome.schemas.auth import (
    GuestSessionResponse,
    GuestStatusResponse,
    LoginRequest,
    SessionStatusResponse,
    SuccessResponse,
)
from thunderdome.schemas.errors import ApiErrors
from thunderdome.services.quota import current_date_string, get_client_ip

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["Auth"])


@router.post("/login", response_model=SuccessResponse, summary="Log in with the shared password")
async def login(body: LoginRequest, response: Response) -> SuccessResponse:
    if not verify_password(body.password):
        logger.info("Auth | login rejected")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=ApiErrors.invalid_password().model_dump(),
        )

    session = new_session(guest=False)
    set_session_cookie(response, session)
    logger.info("Auth | login session=%s", session.sub)
    return SuccessResponse()


@router.post("/guest", response_model=GuestSessionResponse, summary="Start a guest session")
async def guest(response: Response) -> GuestSessionResponse:
    session = new_session(guest=True).model_copy(update={
        "guest_execution_count": 0,
        "guest_execution_date":  current_date_string(),
    })
    set_session_cookie(response, session)
    logger.info("Auth | guest session=%s", session.sub)
    return GuestSessionResponse()


@router.get("/status", response_model=SessionStatusResponse, summary="Current session state")
async def session_status(
    session: SessionData | None = Depends(get_optional_session),
) -> SessionStatusResponse:
    if session is None:
        return SessionStatusResponse(is_authenticated=False, is_guest=False)
    return SessionStatusResponse(
        is_authenticated=True,
        is_guest=session.guest,
        authenticated_at=session.authenticated_at,
    )


@router.get("/guest-status", response_model=GuestStatusResponse, summary="Guest execution quota")
async def guest_status(request: Request, session: CurrentSession, gate: QuotaGate) -> GuestStatusResponse:
    return GuestStatusResponse(**gate.status(session, get_client_ip(request)).to_dict())


@router.post("/logout", response_model=SuccessResponse, summary="End the session")
async def logout(response: Response) -> SuccessResponse:
    clear_session_cookie(response)
    return SuccessResponse()
