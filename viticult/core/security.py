"""CSRF tokens and login-attempt tracking for the admin dashboard.

Both keep their state in the token store (Redis or in-process memory).
"""
import math
import secrets
import time
from typing import Callable, Optional

from fastapi import Depends, Request

from viticult.core.config import settings
from viticult.core.errors import AccountLockedError, PermissionDeniedError
from viticult.core.logging import get_logger
from viticult.infrastructure.redis import TokenStore, get_token_store
from viticult.utils.network import raw_client_ip

logger = get_logger(__name__)

CSRF_HEADER = "X-CSRF-Token"
SUSPICIOUS_FAILURE_COUNT = 3


class CsrfProtection:
    """Issues and validates CSRF tokens bound to a session key.

    The session key is the client IP: the admin client fetches a token from
    ``/api/admin/csrf-token`` and echoes it in the ``X-CSRF-Token`` header.

    Example:
        >>> csrf = CsrfProtection(MemoryTokenStore())
        >>> token = csrf.issue("203.0.113.9")
        >>> csrf.validate("203.0.113.9", token)
    """

    def __init__(
        self,
        store: TokenStore,
        ttl_seconds: int = 3600,
        clock: Callable[[], float] = time.time,
    ):
        self.store = store
        self.ttl_seconds = ttl_seconds
        self._clock = clock

    @staticmethod
    def _key(session_key: str, token: str) -> str:
        return f"csrf:{session_key}:{token}"

    def issue(self, session_key: str) -> str:
        token = secrets.token_hex(32)
        self.store.set_json(
            self._key(session_key, token),
            {"expiresAt": self._clock() + self.ttl_seconds, "used": False},
            ttl_seconds=self.ttl_seconds,
        )
        return token

    def validate(self, session_key: str, token: Optional[str], single_use: bool = True) -> None:
        """Validate a token, consuming it when ``single_use`` is set.

        Raises:
            PermissionDeniedError: 403 with the reason in the message
        """
        if not token:
            logger.warning("CSRF token missing", extra={"client_ip": session_key})
            raise PermissionDeniedError("CSRF token missing")

        key = self._key(session_key, token)
        record = self.store.get_json(key)
        if record is None:
            logger.warning("Invalid CSRF token", extra={"client_ip": session_key})
            raise PermissionDeniedError("Invalid CSRF token")

        now = self._clock()
        if now > record.get("expiresAt", 0):
            self.store.delete(key)
            raise PermissionDeniedError("CSRF token expired")

        if record.get("used"):
            logger.warning("Reused CSRF token", extra={"client_ip": session_key})
            raise PermissionDeniedError("CSRF token already used")

        if single_use:
            record["used"] = True
            remaining = max(1, int(record["expiresAt"] - now))
            self.store.set_json(key, record, ttl_seconds=remaining)


class LoginAttemptTracker:
    """Progressive lockout for repeated failed admin logins.

    Attempts are counted per ``email-ip`` pair. The counter resets once the
    window (30 minutes by default) has passed since the first attempt. From
    ``max_attempts`` failures on, login is refused for ``count`` minutes
    after the last failure, capped at ``max_lockout_minutes``.
    """

    def __init__(
        self,
        store: TokenStore,
        max_attempts: int = 5,
        window_minutes: int = 30,
        max_lockout_minutes: int = 60,
        clock: Callable[[], float] = time.time,
    ):
        self.store = store
        self.max_attempts = max_attempts
        self.window_seconds = window_minutes * 60
        self.max_lockout_seconds = max_lockout_minutes * 60
        self._clock = clock

    @staticmethod
    def _key(email: str, ip: str) -> str:
        return f"login:{email.lower()}-{ip}"

    def _load(self, email: str, ip: str) -> Optional[dict]:
        key = self._key(email, ip)
        record = self.store.get_json(key)
        if record and self._clock() - record.get("firstAttempt", 0) > self.window_seconds:
            self.store.delete(key)
            return None
        return record

    def check(self, email: str, ip: str) -> None:
        """Raise ``AccountLockedError`` while the pair is locked out."""
        record = self._load(email, ip)
        if not record or record["count"] < self.max_attempts:
            return

        lockout_seconds = min(record["count"] * 60, self.max_lockout_seconds)
        elapsed = self._clock() - record["lastAttempt"]
        if elapsed < lockout_seconds:
            remaining_minutes = math.ceil((lockout_seconds - elapsed) / 60)
            logger.warning(
                f"Locked out login attempt for {email}",
                extra={"admin_email": email, "client_ip": ip}
            )
            raise AccountLockedError(remaining_minutes)

    def record_failure(self, email: str, ip: str) -> int:
        """Count a failed attempt and return the new total."""
        now = self._clock()
        record = self._load(email, ip) or {"count": 0, "firstAttempt": now}
        record["count"] += 1
        record["lastAttempt"] = now
        self.store.set_json(
            self._key(email, ip),
            record,
            ttl_seconds=self.window_seconds + self.max_lockout_seconds,
        )

        if record["count"] >= SUSPICIOUS_FAILURE_COUNT:
            logger.error(
                f"Suspicious login activity: {record['count']} failed attempts for {email}",
                extra={"admin_email": email, "client_ip": ip}
            )
        return record["count"]

    def clear(self, email: str, ip: str) -> None:
        self.store.delete(self._key(email, ip))


def get_csrf_protection(store: TokenStore = Depends(get_token_store)) -> CsrfProtection:
    return CsrfProtection(store, ttl_seconds=settings.csrf_token_ttl_seconds)


def get_login_tracker(store: TokenStore = Depends(get_token_store)) -> LoginAttemptTracker:
    return LoginAttemptTracker(
        store,
        max_attempts=settings.login_max_attempts,
        window_minutes=settings.login_attempt_window_minutes,
        max_lockout_minutes=settings.login_max_lockout_minutes,
    )


def require_csrf(request: Request, csrf: CsrfProtection = Depends(get_csrf_protection)) -> None:
    """Dependency enforcing a single-use CSRF token on the request."""
    csrf.validate(raw_client_ip(request), request.headers.get(CSRF_HEADER), single_use=True)
