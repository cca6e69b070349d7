"""
Centralized exception hierarchy for Newsboard.

Provides specific exception types for different error scenarios,
enabling better error handling and user-friendly error messages.
"""

from __future__ import annotations

import logging
import uuid
from typing import Any

logger = logging.getLogger(__name__)


# =============================================================================
# Base Exception
# =============================================================================


class NewsboardError(RuntimeError):
    """
    Base exception for all Newsboard errors.

    Attributes:
        message: Human-readable error message.
        detail: Additional error details (optional).
        error_code: Machine-readable error code.
        request_id: Unique identifier for the request (optional).
    """

    def __init__(
        self,
        message: str,
        *,
        detail: str | None = None,
        error_code: str | None = None,
        request_id: str | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.detail = detail
        self.error_code = error_code or self._default_error_code()
        self.request_id = request_id or self._generate_request_id()

    def _default_error_code(self) -> str:
        """Generate default error code from class name."""
        return f"newsboard_{self.__class__.__name__.lower()}"

    def _generate_request_id(self) -> str:
        """Generate request ID if not provided."""
        return str(uuid.uuid4())

    def to_dict(self) -> dict[str, Any]:
        """Convert exception to API response format."""
        result = {
            "error": self.error_code,
            "message": self.message,
        }
        if self.detail:
            result["detail"] = self.detail
        if self.request_id:
            result["request_id"] = self.request_id
        return result

    def __str__(self) -> str:
        if self.detail:
            return f"{self.message}: {self.detail}"
        return self.message

    def log(self, level: int = logging.ERROR) -> None:
        """Log the exception with structured data."""
        logger.log(
            level,
            self.message,
            extra={
                "error_code": self.error_code,
                "detail": self.detail,
                "request_id": self.request_id,
                "exception_type": self.__class__.__name__,
            },
        )


# =============================================================================
# Input Validation Errors
# =============================================================================


class ValidationError(NewsboardError):
    """
    Raised when input validation fails.

    HTTP Status: 400 Bad Request
    """

    def __init__(
        self,
        message: str,
        *,
        field: str | None = None,
        detail: str | None = None,
        request_id: str | None = None,
    ) -> None:
        self.field = field
        full_message = f"{field}: {message}" if field else message
        super().__init__(
            full_message,
            detail=detail,
            error_code="validation_error",
            request_id=request_id,
        )

    def to_dict(self) -> dict[str, Any]:
        result = super().to_dict()
        if self.field:
            result["field"] = self.field
        return result


class InvalidURLError(ValidationError):
    """Raised when URL validation fails."""

    def __init__(
        self,
        url: str,
        *,
        reason: str = "Invalid URL format",
        request_id: str | None = None,
    ) -> None:
        super().__init__(
            message="Invalid URL",
            field="url",
            detail=f"{reason}: {url[:120]!r}",
            request_id=request_id,
        )
        self.url = url
        self.reason = reason


class InvalidImageDataError(ValidationError):
    """Raised when an image data URI cannot be parsed."""

    def __init__(
        self,
        *,
        reason: str = "Invalid image data URI format.",
        request_id: str | None = None,
    ) -> None:
        super().__init__(
            message=reason,
            field="image_uri",
            request_id=request_id,
        )


# =============================================================================
# Authentication / Authorization Errors
# =============================================================================


class AuthenticationError(NewsboardError):
    """
    Raised when the caller is not signed in or credentials are wrong.

    HTTP Status: 401 Unauthorized
    """

    def __init__(
        self,
        message: str = "Authentication required",
        *,
        detail: str | None = None,
        request_id: str | None = None,
    ) -> None:
        super().__init__(
            message,
            detail=detail,
            error_code="authentication_error",
            request_id=request_id,
        )


class PermissionDeniedError(NewsboardError):
    """
    Raised when access rules deny an operation on a document path.

    HTTP Status: 403 Forbidden

    Carries the denied operation ("get", "list", "create", "update",
    "delete") and the resource path so a developer can see exactly
    which request the rules rejected.
    """

    def __init__(
        self,
        *,
        path: str,
        operation: str,
        uid: str | None = None,
        request_id: str | None = None,
    ) -> None:
        self.path = path
        self.operation = operation
        self.uid = uid
        super().__init__(
            "Missing or insufficient permissions",
            detail=f"Operation: {operation}; Path: {path}",
            error_code="permission_denied",
            request_id=request_id,
        )

    def context(self) -> dict[str, Any]:
        """Structured description of the denied request."""
        return {"operation": self.operation, "path": self.path, "uid": self.uid}


# =============================================================================
# Not Found Errors
# =============================================================================


class NotFoundError(NewsboardError):
    """
    Raised when a requested resource is not found.

    HTTP Status: 404 Not Found
    """

    def __init__(
        self,
        message: str,
        *,
        resource_type: str | None = None,
        resource_id: str | None = None,
        request_id: str | None = None,
    ) -> None:
        self.resource_type = resource_type
        self.resource_id = resource_id
        detail = None
        if resource_type and resource_id:
            detail = f"{resource_type} with ID {resource_id!r} not found"
        super().__init__(
            message,
            detail=detail,
            error_code="not_found",
            request_id=request_id,
        )


class DocumentNotFoundError(NotFoundError):
    """Raised when a document does not exist in its collection."""

    def __init__(
        self,
        collection: str,
        doc_id: str,
        *,
        request_id: str | None = None,
    ) -> None:
        super().__init__(
            message="Document not found",
            resource_type=collection,
            resource_id=doc_id,
            request_id=request_id,
        )
        self.collection = collection
        self.doc_id = doc_id


# =============================================================================
# Rate Limiting Errors
# =============================================================================


class RateLimitError(NewsboardError):
    """
    Raised when rate limit is exceeded.

    HTTP Status: 429 Too Many Requests
    """

    def __init__(
        self,
        message: str = "Rate limit exceeded",
        *,
        retry_after: int | None = None,
        limit: int | None = None,
        window: int | None = None,
        request_id: str | None = None,
    ) -> None:
        self.retry_after = retry_after
        self.limit = limit
        self.window = window
        detail_parts = []
        if retry_after:
            detail_parts.append(f"Retry after {retry_after}s")
        if limit and window:
            detail_parts.append(f"Limit: {limit} requests per {window}s")
        detail = "; ".join(detail_parts) if detail_parts else None
        super().__init__(
            message,
            detail=detail,
            error_code="rate_limited",
            request_id=request_id,
        )


# =============================================================================
# External API Errors
# =============================================================================


class ExternalAPIError(NewsboardError):
    """
    Base class for external API errors.

    HTTP Status: 502 Bad Gateway
    """

    def __init__(
        self,
        message: str,
        *,
        service: str | None = None,
        status_code: int | None = None,
        request_id: str | None = None,
    ) -> None:
        self.service = service
        self.status_code = status_code
        detail_parts = []
        if service:
            detail_parts.append(f"Service: {service}")
        if status_code:
            detail_parts.append(f"Status: {status_code}")
        detail = "; ".join(detail_parts) if detail_parts else None
        super().__init__(
            message,
            detail=detail,
            error_code="external_api_error",
            request_id=request_id,
        )


class UpstreamAuthError(ExternalAPIError):
    """Raised when an upstream service rejects our credentials."""

    def __init__(
        self,
        service: str,
        *,
        request_id: str | None = None,
    ) -> None:
        super().__init__(
            message=f"Authentication failed for {service}",
            service=service,
            request_id=request_id,
        )
        self.error_code = "upstream_auth_error"


class APITimeoutError(ExternalAPIError):
    """Raised when API request times out."""

    def __init__(
        self,
        service: str,
        *,
        timeout_seconds: int | None = None,
        request_id: str | None = None,
    ) -> None:
        self.timeout_seconds = timeout_seconds
        detail = f"Timeout after {timeout_seconds}s" if timeout_seconds else None
        super().__init__(
            message=f"Request to {service} timed out",
            service=service,
            request_id=request_id,
        )
        self.error_code = "api_timeout"
        if detail:
            self.detail = detail


class APIConnectionError(ExternalAPIError):
    """Raised when API connection fails."""

    def __init__(
        self,
        service: str,
        *,
        reason: str | None = None,
        request_id: str | None = None,
    ) -> None:
        self.reason = reason
        detail = reason if reason else "Could not establish connection"
        super().__init__(
            message=f"Connection to {service} failed",
            service=service,
            request_id=request_id,
        )
        self.error_code = "api_connection_error"
        self.detail = detail


# =============================================================================
# Circuit Breaker Errors
# =============================================================================


class CircuitBreakerOpenError(NewsboardError):
    """
    Raised when circuit breaker is open.

    HTTP Status: 503 Service Unavailable
    """

    def __init__(
        self,
        service: str,
        *,
        retry_after_seconds: int | None = None,
        failure_count: int | None = None,
        request_id: str | None = None,
    ) -> None:
        self.service = service
        self.retry_after_seconds = retry_after_seconds
        self.failure_count = failure_count
        detail_parts = [f"Service: {service}"]
        if retry_after_seconds:
            detail_parts.append(f"Retry after: {retry_after_seconds}s")
        if failure_count:
            detail_parts.append(f"Failures: {failure_count}")
        detail = "; ".join(detail_parts)
        super().__init__(
            message=f"Circuit breaker open for {service}",
            detail=detail,
            error_code="circuit_breaker_open",
            request_id=request_id,
        )


# =============================================================================
# Configuration Errors
# =============================================================================


class ConfigurationError(NewsboardError):
    """
    Raised when configuration is invalid or missing.

    HTTP Status: 500 Internal Server Error
    """

    def __init__(
        self,
        message: str,
        *,
        setting_name: str | None = None,
        request_id: str | None = None,
    ) -> None:
        self.setting_name = setting_name
        detail = f"Missing or invalid setting: {setting_name}" if setting_name else None
        super().__init__(
            message,
            detail=detail,
            error_code="configuration_error",
            request_id=request_id,
        )


class MissingAPIKeyError(ConfigurationError):
    """Raised when required API key is missing."""

    def __init__(
        self,
        service: str,
        *,
        env_var: str | None = None,
        request_id: str | None = None,
    ) -> None:
        self.service = service
        self.env_var = env_var
        detail = f"API key for {service} is required"
        if env_var:
            detail += f" (set {env_var} environment variable)"
        super().__init__(
            message=f"Missing API key for {service}",
            setting_name=env_var or f"{service}_api_key",
            request_id=request_id,
        )
        self.detail = detail


# =============================================================================
# Data Store Errors
# =============================================================================


class DataStoreError(NewsboardError):
    """
    Raised when data store operation fails.

    HTTP Status: 500 Internal Server Error
    """

    def __init__(
        self,
        message: str,
        *,
        operation: str | None = None,
        path: str | None = None,
        request_id: str | None = None,
    ) -> None:
        self.operation = operation
        self.path = path
        detail_parts = []
        if operation:
            detail_parts.append(f"Operation: {operation}")
        if path:
            detail_parts.append(f"Path: {path}")
        detail = "; ".join(detail_parts) if detail_parts else None
        super().__init__(
            message,
            detail=detail,
            error_code="data_store_error",
            request_id=request_id,
        )


class DatabaseError(DataStoreError):
    """Raised when database operation fails."""

    def __init__(
        self,
        message: str = "Database operation failed",
        *,
        operation: str | None = None,
        table: str | None = None,
        request_id: str | None = None,
    ) -> None:
        self.table = table
        super().__init__(
            message,
            operation=operation,
            path=table,
            request_id=request_id,
        )


# =============================================================================
# HTTP Exception Helpers
# =============================================================================


def exception_to_http_status(exc: NewsboardError) -> int:
    """
    Map exception to appropriate HTTP status code.

    Args:
        exc: The exception to map.

    Returns:
        HTTP status code.
    """
    # Most specific classes first: isinstance() walks this in order.
    status_map = {
        InvalidURLError: 400,
        InvalidImageDataError: 400,
        ValidationError: 400,
        AuthenticationError: 401,
        PermissionDeniedError: 403,
        DocumentNotFoundError: 404,
        NotFoundError: 404,
        RateLimitError: 429,
        UpstreamAuthError: 503,
        APITimeoutError: 504,
        APIConnectionError: 503,
        ExternalAPIError: 502,
        CircuitBreakerOpenError: 503,
        MissingAPIKeyError: 503,
        ConfigurationError: 500,
        DatabaseError: 500,
        DataStoreError: 500,
    }

    for exc_class, status in status_map.items():
        if isinstance(exc, exc_class):
            return status
    return 500


# =============================================================================
# Exception Handler for FastAPI
# =============================================================================


def handle_exception(exc: Exception, request_id: str | None = None) -> dict[str, Any]:
    """
    Convert any exception to standardized error response.

    Args:
        exc: The exception to handle.
        request_id: Request ID for tracing.

    Returns:
        Dictionary with error details.
    """
    if isinstance(exc, NewsboardError):
        exc.request_id = request_id or exc.request_id
        return exc.to_dict()

    if isinstance(exc, ValueError):
        return ValidationError(str(exc), request_id=request_id).to_dict()
    if isinstance(exc, TimeoutError):
        return APITimeoutError("unknown", request_id=request_id).to_dict()
    if isinstance(exc, ConnectionError):
        return APIConnectionError("unknown", reason=str(exc), request_id=request_id).to_dict()

    logger.error(
        "Unhandled exception",
        extra={
            "exception_type": type(exc).__name__,
            "exception_message": str(exc),
            "request_id": request_id,
        },
        exc_info=True,
    )
    return NewsboardError(
        "An unexpected error occurred",
        request_id=request_id,
    ).to_dict()
