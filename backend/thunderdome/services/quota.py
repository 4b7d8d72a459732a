"""
Guest Quota Gate

Guests get a fixed number of executions per calendar day (UTC).  Two counters
are checked and both must be under the limit:

  session  carried in the guest's signed cookie (survives server restarts)
  IP       in-memory, keyed by client address (survives cookie clearing)

A record dated before today counts as zero; nothing is reset eagerly.
Logged-in (non-guest) sessions bypass the gate entirely.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable

from fastapi import Request

from thunderdome.auth.session import SessionData
from thunderdome.core.errors import QuotaExceededError

logger = logging.getLogger(__name__)

UNKNOWN_IP = "unknown"


def current_date_string(now: datetime | None = None) -> str:
    """Today's date in UTC as YYYY-MM-DD."""
    return (now or datetime.now(timezone.utc)).strftime("%Y-%m-%d")


def get_client_ip(request: Request) -> str:
    """
    Resolve the client address.

    Order: first X-Forwarded-For entry, X-Real-IP, X-Client-IP, socket peer.
    """
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        first = forwarded.split(",")[0].strip()
        if first:
            return first

    for header in ("x-real-ip", "x-client-ip"):
        value = request.headers.get(header)
        if value and value.strip():
            return value.strip()

    if request.client and request.client.host:
        return request.client.host
    return UNKNOWN_IP


@dataclass
class IPRecord:
    count: int
    date:  str


@dataclass(frozen=True)
class GuestStatus:
    is_guest:             bool
    has_limit:            bool
    execution_limit:      int | None
    executions_used:      int
    executions_remaining: int | None
    limit_reached:        bool
    resets_daily:         bool

    def to_dict(self) -> dict:
        return {
            "is_guest":             self.is_guest,
            "has_limit":            self.has_limit,
            "execution_limit":      self.execution_limit,
            "executions_used":      self.executions_used,
            "executions_remaining": self.executions_remaining,
            "limit_reached":        self.limit_reached,
            "resets_daily":         self.resets_daily,
        }


class GuestQuotaGate:
    """
    Usage::

        gate = GuestQuotaGate(limit=settings.guest_daily_execution_limit)
        session = gate.admit(session, ip)   # raises QuotaExceededError
        set_session_cookie(response, session)
    """

    def __init__(self, limit: int, clock: Callable[[], str] = current_date_string) -> None:
        self.limit  = limit
        self._clock = clock
        self._ips: dict[str, IPRecord] = {}
        self._lock  = threading.Lock()

    # -----------------------------------------------------------------------
    # Counters
    # -----------------------------------------------------------------------

    def ip_count(self, ip: str) -> int:
        with self._lock:
            record = self._ips.get(ip)
            if record is None or record.date != self._clock():
                return 0
            return record.count

    def session_count(self, session: SessionData) -> int:
        if session.guest_execution_date != self._clock():
            return 0
        return session.guest_execution_count

    def used(self, session: SessionData, ip: str) -> int:
        return max(self.session_count(session), self.ip_count(ip))

    def is_exceeded(self, session: SessionData, ip: str) -> bool:
        return self.used(session, ip) >= self.limit

    def remaining(self, session: SessionData, ip: str) -> int:
        return max(0, self.limit - self.used(session, ip))

    # -----------------------------------------------------------------------
    # Public interface
    # -----------------------------------------------------------------------

    def status(self, session: SessionData | None, ip: str) -> GuestStatus:
        if session is None or not session.guest:
            return GuestStatus(
                is_guest=False,
                has_limit=False,
                execution_limit=None,
                executions_used=0,
                executions_remaining=None,
                limit_reached=False,
                resets_daily=False,
            )
        used = self.used(session, ip)
        return GuestStatus(
            is_guest=True,
            has_limit=True,
            execution_limit=self.limit,
            executions_used=used,
            executions_remaining=max(0, self.limit - used),
            limit_reached=used >= self.limit,
            resets_daily=True,
        )

    def admit(self, session: SessionData, ip: str) -> SessionData:
        """
        Count one execution against the guest's allowance.

        Returns the session with its counter bumped (non-guests are returned
        unchanged).

        Raises:
            QuotaExceededError: either counter already at the limit.
        """
        if not session.guest:
            return session

        today = self._clock()
        with self._lock:
            record    = self._ips.get(ip)
            ip_used   = record.count if record is not None and record.date == today else 0
            sess_used = session.guest_execution_count if session.guest_execution_date == today else 0

            if max(ip_used, sess_used) >= self.limit:
                logger.info(
                    "QuotaGate | blocked ip=%s session_used=%d ip_used=%d limit=%d",
                    ip, sess_used, ip_used, self.limit,
                )
                raise QuotaExceededError(self.limit)

            self._ips[ip] = IPRecord(count=ip_used + 1, date=today)

        logger.debug("QuotaGate | admitted ip=%s used=%d", ip, max(ip_used, sess_used) + 1)
        return session.model_copy(update={
            "guest_execution_count": sess_used + 1,
            "guest_execution_date":  today,
        })

    def cleanup(self) -> int:
        """Drop IP records from previous days. Returns the number removed."""
        today = self._clock()
        with self._lock:
            stale = [ip for ip, record in self._ips.items() if record.date != today]
            for ip in stale:
                del self._ips[ip]
        if stale:
            logger.info("QuotaGate | cleaned up %d stale IP record(s)", len(stale))
        return len(stale)
