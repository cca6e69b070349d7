"""
Dependency helpers for API routes.

These are kept as simple functions (not FastAPI Depends) because the app
already uses request.app.state for most stateful components.
"""

from __future__ import annotations

from typing import Optional

from fastapi import Request

from newsboard.api.state import AppState
from newsboard.auth import AuthService
from newsboard.domain import Identity
from newsboard.exceptions import AuthenticationError, ConfigurationError
from newsboard.logging_config import LogContext


def get_state(request: Request) -> AppState:
    state = getattr(request.app.state, "state", None)
    if state is None:
        raise ConfigurationError("Application state not initialised")
    return state


def bearer_token(request: Request) -> Optional[str]:
    header = (request.headers.get("authorization") or "").strip()
    scheme, _, token = header.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return token.strip()


def get_identity(request: Request) -> Optional[Identity]:
    """Identity for the request's bearer token, or None for anonymous callers."""
    identity = get_state(request).auth.resolve(bearer_token(request))
    if identity is not None:
        LogContext.set_user_id(identity.uid)
        request.state.user_id = identity.uid
    return identity


def require_identity(request: Request) -> Identity:
    identity = get_identity(request)
    if identity is None:
        raise AuthenticationError()
    return identity


def require_admin(request: Request, *, path: str, operation: str) -> Identity:
    """Signed-in admin identity, else 401 (anonymous) or 403 (not an admin)."""
    return AuthService.require_admin(get_identity(request), path=path, operation=operation)
