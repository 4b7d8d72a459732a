"""
Auth API — Pydantic Request/Response Schemas

camelCase on the wire like the arena schemas, so the browser reads
``isGuest`` / ``executionsRemaining`` from every route the same way.
"""

from __future__ import annotations

from pydantic import Field

from thunderdome.schemas.arena import CamelModel


class LoginRequest(CamelModel):
    password: str


class SuccessResponse(CamelModel):
    success: bool = True


class GuestSessionResponse(SuccessResponse):
    is_guest: bool = True


class SessionStatusResponse(CamelModel):
    is_authenticated: bool
    is_guest:         bool
    authenticated_at: int | None = Field(None, description="Epoch milliseconds of login / guest start")


class GuestStatusResponse(CamelModel):
    """Daily quota view; the limit fields are null for logged-in users."""
    is_guest:             bool
    has_limit:            bool
    execution_limit:      int | None
    executions_used:      int
    executions_remaining: int | None
    limit_reached:        bool
    resets_daily:         bool
