"""
Observability utilities for API request tracking.

Provides request ID generation and middleware for logging correlation
and security monitoring with structured JSON logging.
"""

from __future__ import annotations

import time
import uuid
from collections.abc import Callable
from contextvars import ContextVar
from typing import Any

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.types import ASGIApp

from newsboard.api.middleware import get_client_ip as get_client_ip_safe
from newsboard.exceptions import NewsboardError, handle_exception
from newsboard.logging_config import LogContext, get_logger

# Context variables for request-scoped data (async-safe)
_request_id_ctx: ContextVar[str | None] = ContextVar("request_id", default=None)
_client_ip_ctx: ContextVar[str | None] = ContextVar("client_ip", default=None)

_SENSITIVE_PARAMS = {"api_key", "token", "password", "secret", "auth"}


def generate_request_id() -> str:
    return str(uuid.uuid4())


def get_request_id() -> str | None:
    """Get the current request ID from context."""
    return _request_id_ctx.get()


def get_client_ip() -> str | None:
    return _client_ip_ctx.get()


class ObservabilityMiddleware(BaseHTTPMiddleware):
    """
    Middleware for request observability and tracing.

    - Generates unique request ID (or uses X-Request-ID header)
    - Tracks request duration
    - Logs request/response metadata in JSON format
    - Adds request ID to response headers

    Log format:
        {
            "timestamp": "2026-01-03T10:00:00Z",
            "level": "INFO",
            "request_id": "abc123",
            "message": "request_completed",
            "path": "/v1/content",
            "duration_ms": 12.4
        }
    """

    def __init__(self, app: ASGIApp, *, slow_request_threshold_ms: float = 1000.0) -> None:
        super().__init__(app)
        self._logger = get_logger(__name__)
        self.slow_request_threshold_ms = slow_request_threshold_ms

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        request_id = request.headers.get("x-request-id") or generate_request_id()
        client_ip = get_client_ip_safe(request)

        _request_id_ctx.set(request_id)
        _client_ip_ctx.set(client_ip)
        request.state.request_id = request_id

        LogContext.set_request_id(request_id)
        LogContext.set_client_ip(client_ip)
        LogContext.set_user_id(None)
        LogContext.set_endpoint(str(request.url.path))

        request_meta: dict[str, Any] = {
            "request_id": request_id,
            "method": request.method,
            "path": request.url.path,
            "client_ip": client_ip,
            "user_agent": request.headers.get("user-agent"),
        }
        if request.url.query:
            request_meta["query_params"] = self._sanitize_query_params(str(request.url.query))
        self._logger.info("request_started", extra=request_meta)

        start = time.perf_counter()
        try:
            response = await call_next(request)
        except Exception as exc:
            duration_ms = (time.perf_counter() - start) * 1000
            error_meta: dict[str, Any] = {
                "request_id": request_id,
                "method": request.method,
                "path": request.url.path,
                "error_type": type(exc).__name__,
                "duration_ms": round(duration_ms, 2),
            }
            if isinstance(exc, NewsboardError):
                exc.request_id = request_id
                exc.log()
            else:
                error_meta["error_detail"] = handle_exception(exc, request_id=request_id).get("detail")
                self._logger.error("request_failed", extra=error_meta, exc_info=True)
            raise

        duration_ms = (time.perf_counter() - start) * 1000
        response.headers["X-Request-ID"] = request_id
        response_meta: dict[str, Any] = {
            "request_id": request_id,
            "method": request.method,
            "path": request.url.path,
            "status_code": response.status_code,
            "duration_ms": round(duration_ms, 2),
        }
        if getattr(request.state, "user_id", None):
            response_meta["user_id"] = request.state.user_id
        if hasattr(request.state, "result_count"):
            response_meta["result_count"] = request.state.result_count

        if duration_ms >= self.slow_request_threshold_ms and not response.headers.get("content-type", "").startswith("text/event-stream"):
            response_meta["slow_request"] = True
            self._logger.warning("request_completed_slow", extra=response_meta)
        else:
            self._logger.info("request_completed", extra=response_meta)
        return response

    @staticmethod
    def _sanitize_query_params(query: str) -> str:
        """Redact sensitive query parameter values for logging."""
        sanitized = []
        for part in query.split("&"):
            key, sep, _ = part.partition("=")
            if sep and key.lower() in _SENSITIVE_PARAMS:
                sanitized.append(f"{key}=***REDACTED***")
            else:
                sanitized.append(part)
        return "&".join(sanitized)
