"""
FastAPI application factory.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI, Request, Response
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from newsboard.api.middleware import setup_compression, setup_cors, setup_request_size_limit, setup_security_headers
from newsboard.api.observability import ObservabilityMiddleware, generate_request_id, get_request_id
from newsboard.api.routes import auth as auth_routes
from newsboard.api.routes import content as content_routes
from newsboard.api.routes import media as media_routes
from newsboard.api.routes import ticker as ticker_routes
from newsboard.api.state import AppState
from newsboard.auth import AuthService
from newsboard.config import settings
from newsboard.documents import DocumentStore
from newsboard.exceptions import (
    NewsboardError,
    PermissionDeniedError,
    RateLimitError,
    ValidationError,
    exception_to_http_status,
)
from newsboard.image_adjuster import ImageAdjuster
from newsboard.images import ImageFetcher, fetch_image_as_data_url
from newsboard.repository import AccountRepo, ContentRepo, TickerRepo
from newsboard.security.rate_limit import RateLimitConfig, SQLiteRateLimiter
from newsboard.security.rules import default_rules

logger = logging.getLogger(__name__)


def build_state(
    *,
    db_path: Path | None = None,
    rate_limit_db_path: Path | None = None,
    accounts: AccountRepo | None = None,
    image_fetcher: ImageFetcher | None = None,
    image_adjuster: ImageAdjuster | None = None,
    debug: bool | None = None,
) -> AppState:
    """Wire the store, repositories and services for one app instance."""
    rules = default_rules(settings.content_collection, settings.ticker_collection)
    store = DocumentStore(db_path or settings.documents_db_path, rules=rules)
    fetcher = image_fetcher or fetch_image_as_data_url
    return AppState(
        store=store,
        content=ContentRepo(store, image_fetcher=fetcher),
        ticker=TickerRepo(store),
        auth=AuthService(accounts or AccountRepo()),
        rate_limiter=SQLiteRateLimiter(
            rate_limit_db_path or settings.rate_limit_db_path,
            RateLimitConfig(
                requests_per_window=settings.rate_limit_requests,
                window_seconds=settings.rate_limit_window_seconds,
            ),
        ),
        image_fetcher=fetcher,
        image_adjuster=image_adjuster,
        debug=settings.debug_mode if debug is None else debug,
    )


def create_app(
    *,
    db_path: Path | None = None,
    rate_limit_db_path: Path | None = None,
    accounts: AccountRepo | None = None,
    image_fetcher: ImageFetcher | None = None,
    image_adjuster: ImageAdjuster | None = None,
    debug: bool | None = None,
) -> FastAPI:
    state = build_state(
        db_path=db_path,
        rate_limit_db_path=rate_limit_db_path,
        accounts=accounts,
        image_fetcher=image_fetcher,
        image_adjuster=image_adjuster,
        debug=debug,
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        email, password = settings.bootstrap_admin_email, settings.bootstrap_admin_password
        if email and password:
            state.auth.bootstrap_admin(email, password)
        logger.info("Newsboard API started", extra={"db_path": str(state.store.db_path)})
        yield

    app = FastAPI(
        title="Newsboard API",
        version="1.0.0",
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )
    app.state.state = state

    setup_compression(app)
    setup_cors(app)
    setup_security_headers(app)
    setup_request_size_limit(app)

    # Observability middleware (must be added last to wrap all others)
    app.add_middleware(ObservabilityMiddleware)

    @app.get("/v1/health")
    def health(response: Response) -> dict:
        response.headers["Cache-Control"] = "no-store"
        return {"ok": True}

    app.include_router(auth_routes.router)
    app.include_router(content_routes.router)
    app.include_router(ticker_routes.router)
    app.include_router(media_routes.router)

    def _error_headers(request: Request) -> dict[str, str]:
        rid = request.headers.get("x-request-id") or get_request_id() or generate_request_id()
        return {"X-Request-ID": rid, "Cache-Control": "no-store"}

    def _error_response(request: Request, exc: NewsboardError) -> JSONResponse:
        headers = _error_headers(request)
        exc.request_id = headers["X-Request-ID"]
        content = exc.to_dict()
        if isinstance(exc, PermissionDeniedError):
            if state.debug:
                content.update(operation=exc.operation, path=exc.path)
            else:
                content.pop("detail", None)
        if isinstance(exc, RateLimitError) and exc.retry_after:
            headers["Retry-After"] = str(exc.retry_after)
        return JSONResponse(status_code=exception_to_http_status(exc), content=content, headers=headers)

    @app.exception_handler(NewsboardError)
    def _newsboard_error(request: Request, exc: NewsboardError) -> JSONResponse:
        return _error_response(request, exc)

    @app.exception_handler(RequestValidationError)
    def _request_validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
        errors = exc.errors()
        first = errors[0] if errors else {}
        loc = [str(part) for part in first.get("loc", ()) if part not in ("body", "query", "path")]
        error = ValidationError(
            str(first.get("msg") or "Invalid request"),
            field=".".join(loc) or None,
        )
        return _error_response(request, error)

    @app.exception_handler(Exception)
    def _unhandled(request: Request, exc: Exception) -> JSONResponse:
        # ObservabilityMiddleware logs the exception; we still return a safe, stable envelope.
        _ = exc
        return JSONResponse(
            status_code=500,
            content={"error": "internal_error", "message": "Internal server error"},
            headers=_error_headers(request),
        )

    return app
