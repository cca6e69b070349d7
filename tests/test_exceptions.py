"""Tests for the exception hierarchy and HTTP mapping."""

import pytest

from newsboard.exceptions import (
    APIConnectionError,
    APITimeoutError,
    AuthenticationError,
    CircuitBreakerOpenError,
    ConfigurationError,
    DataStoreError,
    DocumentNotFoundError,
    ExternalAPIError,
    InvalidImageDataError,
    InvalidURLError,
    MissingAPIKeyError,
    NewsboardError,
    PermissionDeniedError,
    RateLimitError,
    UpstreamAuthError,
    ValidationError,
    exception_to_http_status,
    handle_exception,
)


class TestValidationError:
    def test_field_prefixes_message(self):
        err = ValidationError("must be positive", field="duration")
        assert err.message == "duration: must be positive"
        body = err.to_dict()
        assert body["error"] == "validation_error"
        assert body["field"] == "duration"
        assert body["request_id"]

    def test_invalid_url_keeps_reason(self):
        err = InvalidURLError("ftp://example.com", reason="Scheme 'ftp' not allowed")
        assert err.field == "url"
        assert "Scheme 'ftp' not allowed" in err.detail
        assert isinstance(err, ValidationError)

    def test_invalid_image_data_field(self):
        err = InvalidImageDataError(reason="Image data is empty.")
        assert err.field == "image_uri"
        assert err.message == "image_uri: Image data is empty."


class TestPermissionDenied:
    def test_context_describes_denied_request(self):
        err = PermissionDeniedError(path="news/abc", operation="update", uid="user-1")
        assert err.message == "Missing or insufficient permissions"
        assert err.context() == {"operation": "update", "path": "news/abc", "uid": "user-1"}
        assert "Operation: update; Path: news/abc" == err.detail
        assert str(err) == "Missing or insufficient permissions: Operation: update; Path: news/abc"


class TestDetails:
    def test_rate_limit_detail(self):
        err = RateLimitError(retry_after=30, limit=10, window=60)
        assert err.detail == "Retry after 30s; Limit: 10 requests per 60s"

    def test_rate_limit_without_detail(self):
        assert RateLimitError().detail is None

    def test_document_not_found(self):
        err = DocumentNotFoundError("news", "missing")
        assert err.detail == "news with ID 'missing' not found"
        assert err.error_code == "not_found"

    def test_missing_api_key_names_env_var(self):
        err = MissingAPIKeyError("openai", env_var="OPENAI_API_KEY")
        assert err.setting_name == "OPENAI_API_KEY"
        assert "set OPENAI_API_KEY" in err.detail

    def test_timeout_detail(self):
        err = APITimeoutError("openai_images", timeout_seconds=120)
        assert err.detail == "Timeout after 120s"
        assert err.error_code == "api_timeout"

    def test_data_store_detail(self):
        err = DataStoreError("write failed", operation="set", path="news/1")
        assert err.detail == "Operation: set; Path: news/1"


@pytest.mark.parametrize(
    "exc, status",
    [
        (ValidationError("bad"), 400),
        (InvalidURLError("x"), 400),
        (InvalidImageDataError(), 400),
        (AuthenticationError(), 401),
        (PermissionDeniedError(path="news/1", operation="delete"), 403),
        (DocumentNotFoundError("news", "1"), 404),
        (RateLimitError(), 429),
        (ExternalAPIError("boom"), 502),
        (UpstreamAuthError("openai"), 503),
        (APITimeoutError("openai"), 504),
        (APIConnectionError("openai"), 503),
        (CircuitBreakerOpenError("openai"), 503),
        (MissingAPIKeyError("openai"), 503),
        (ConfigurationError("bad config"), 500),
        (DataStoreError("disk"), 500),
        (NewsboardError("generic"), 500),
    ],
)
def test_exception_to_http_status(exc, status):
    assert exception_to_http_status(exc) == status


class TestHandleException:
    def test_newsboard_error_keeps_code_and_takes_request_id(self):
        body = handle_exception(AuthenticationError(), request_id="req-1")
        assert body["error"] == "authentication_error"
        assert body["request_id"] == "req-1"

    def test_value_error_becomes_validation_error(self):
        body = handle_exception(ValueError("nope"), request_id="req-2")
        assert body["error"] == "validation_error"
        assert body["message"] == "nope"

    def test_connection_error(self):
        body = handle_exception(ConnectionError("refused"))
        assert body["error"] == "api_connection_error"
        assert body["detail"] == "refused"

    def test_unknown_error_is_generic(self):
        body = handle_exception(KeyError("x"), request_id="req-3")
        assert body["message"] == "An unexpected error occurred"
        assert body["request_id"] == "req-3"
