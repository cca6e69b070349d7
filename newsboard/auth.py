"""
Email/password authentication for the admin dashboard.

Passwords are stored as PBKDF2-SHA256 hashes (`pbkdf2_sha256$iter$salt$hash`).
Sessions are opaque bearer tokens kept in process memory with a TTL.
"""

from __future__ import annotations

import base64
import hashlib
import hmac
import logging
import secrets
import threading
import time
from dataclasses import dataclass

from newsboard.config import settings
from newsboard.domain import Identity
from newsboard.exceptions import AuthenticationError, NotFoundError, PermissionDeniedError, ValidationError
from newsboard.repository.users import AccountRepo

logger = logging.getLogger(__name__)

_ALGORITHM = "pbkdf2_sha256"
MIN_PASSWORD_LENGTH = 8


def hash_password(password: str, *, iterations: int | None = None, salt: str | None = None) -> str:
    iterations = iterations or settings.password_hash_iterations
    salt = salt or secrets.token_hex(16)
    digest = hashlib.pbkdf2_hmac("sha256", password.encode("utf-8"), salt.encode("ascii"), iterations)
    return f"{_ALGORITHM}${iterations}${salt}${base64.b64encode(digest).decode('ascii')}"


def verify_password(password: str, encoded: str) -> bool:
    try:
        algorithm, iterations, salt, _ = encoded.split("$", 3)
        iterations_int = int(iterations)
    except (AttributeError, ValueError):
        return False
    if algorithm != _ALGORITHM:
        return False
    candidate = hash_password(password, iterations=iterations_int, salt=salt)
    return hmac.compare_digest(candidate, encoded)


@dataclass(frozen=True)
class Session:
    token: str
    identity: Identity
    expires_at: float

    def expired(self, now: float | None = None) -> bool:
        return (now if now is not None else time.time()) >= self.expires_at


class AuthService:
    """Sign-in, sign-out and token resolution."""

    def __init__(self, accounts: AccountRepo, *, session_ttl_seconds: int | None = None) -> None:
        self.accounts = accounts
        self.session_ttl_seconds = session_ttl_seconds or settings.session_ttl_seconds
        self._sessions: dict[str, Session] = {}
        self._lock = threading.Lock()

    def sign_in(self, email: str, password: str) -> Session:
        account = self.accounts.get_by_email(email)
        # Same error for unknown email and wrong password
        if account is None or not verify_password(password or "", account.password_hash):
            logger.warning("Sign-in failed", extra={"email": (email or "").strip().lower()})
            raise AuthenticationError("Invalid email or password")

        session = Session(
            token=secrets.token_urlsafe(32),
            identity=account.identity(),
            expires_at=time.time() + self.session_ttl_seconds,
        )
        with self._lock:
            self._sessions[session.token] = session
        logger.info("Signed in", extra={"user_id": account.uid})
        return session

    def sign_out(self, token: str) -> None:
        with self._lock:
            session = self._sessions.pop(token or "", None)
        if session is not None:
            logger.info("Signed out", extra={"user_id": session.identity.uid})

    def resolve(self, token: str | None) -> Identity | None:
        """Identity for a live session token, else None. Expired sessions are dropped."""
        if not token:
            return None
        with self._lock:
            session = self._sessions.get(token)
            if session is None:
                return None
            if session.expired():
                del self._sessions[token]
                return None
        # Admin flag may have changed since sign-in
        account = self.accounts.get_by_uid(session.identity.uid)
        return account.identity() if account else None

    def session_count(self) -> int:
        with self._lock:
            return len(self._sessions)

    @staticmethod
    def require_admin(identity: Identity | None, *, path: str = "admin", operation: str = "update") -> Identity:
        if identity is None:
            raise AuthenticationError()
        if not identity.is_admin:
            raise PermissionDeniedError(path=path, operation=operation, uid=identity.uid)
        return identity

    def register(self, email: str, password: str, *, is_admin: bool = False) -> Identity:
        if len(password or "") < MIN_PASSWORD_LENGTH:
            raise ValidationError(
                f"Password must be at least {MIN_PASSWORD_LENGTH} characters.",
                field="password",
            )
        account = self.accounts.create_account(email, hash_password(password), is_admin=is_admin)
        return account.identity()

    def bootstrap_admin(self, email: str, password: str) -> Identity:
        """Create an admin account, or promote and re-password an existing one."""
        account = self.accounts.get_by_email(email)
        if account is None:
            return self.register(email, password, is_admin=True)
        if len(password or "") < MIN_PASSWORD_LENGTH:
            raise ValidationError(
                f"Password must be at least {MIN_PASSWORD_LENGTH} characters.",
                field="password",
            )
        self.accounts.set_password_hash(account.uid, hash_password(password))
        promoted = self.accounts.set_admin(account.uid, True)
        if promoted is None:
            raise NotFoundError("Account disappeared during bootstrap.", resource_type="account", resource_id=account.uid)
        logger.info("Admin account bootstrapped", extra={"user_id": promoted.uid})
        return promoted.identity()
