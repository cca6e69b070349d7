"""
Newsboard API package.

Public exports:
- create_app: FastAPI factory (`uvicorn --factory newsboard.api:create_app`)
- AppState: app.state container used by tests
"""

from __future__ import annotations

from newsboard.api.app import build_state, create_app
from newsboard.api.state import AppState

__all__ = ["AppState", "build_state", "create_app"]
