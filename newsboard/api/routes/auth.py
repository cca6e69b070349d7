"""
Authentication routes for the admin dashboard.
"""

from __future__ import annotations

from fastapi import APIRouter, Request, Response

from newsboard.api.dependencies import bearer_token, get_state, require_identity
from newsboard.api.models import LoginRequest, LoginResponse, UserResponse
from newsboard.domain import Identity

router = APIRouter(prefix="/v1/auth", tags=["auth"])


def _user(identity: Identity) -> dict:
    return {"uid": identity.uid, "email": identity.email, "is_admin": identity.is_admin}


@router.post(
    "/login",
    response_model=LoginResponse,
    responses={401: {"description": "Invalid email or password"}},
)
def login(payload: LoginRequest, request: Request, response: Response) -> dict:
    session = get_state(request).auth.sign_in(payload.email, payload.password)
    response.headers["Cache-Control"] = "no-store"
    return {"token": session.token, "expires_at": session.expires_at, "user": _user(session.identity)}


@router.post("/logout", status_code=204)
def logout(request: Request) -> Response:
    token = bearer_token(request)
    if token:
        get_state(request).auth.sign_out(token)
    return Response(status_code=204)


@router.get(
    "/me",
    response_model=UserResponse,
    responses={401: {"description": "Not signed in"}},
)
def me(request: Request, response: Response) -> dict:
    identity = require_identity(request)
    response.headers["Cache-Control"] = "no-store"
    return _user(identity)
