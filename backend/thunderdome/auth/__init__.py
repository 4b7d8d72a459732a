from thunderdome.auth.session import (
    CurrentSession,
    SessionData,
    get_current_session,
    get_optional_session,
)

__all__ = ["CurrentSession", "SessionData", "get_current_session", "get_optional_session"]
