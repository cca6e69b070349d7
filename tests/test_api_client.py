"""Tests for the dashboard's HTTP client and SSE feed (fake requests sessions)."""

from __future__ import annotations

import json
import threading

import pytest
import requests

from newsboard.exceptions import (
    APIConnectionError,
    APITimeoutError,
    AuthenticationError,
    ExternalAPIError,
    NotFoundError,
    PermissionDeniedError,
    RateLimitError,
    ValidationError,
)
from newsboard.ui.api_client import ApiClient, RemoteFeed, error_from_response, iter_sse_events


def make_response(status=200, body=None, headers=None, reason="") -> requests.Response:
    response = requests.Response()
    response.status_code = status
    response.reason = reason
    response._content = json.dumps(body).encode() if body is not None else b""
    response.headers.update(headers or {})
    return response


class FakeSession:
    def __init__(self, *responses, error=None):
        self.responses = list(responses)
        self.error = error
        self.calls = []

    def request(self, method, url, **kwargs):
        self.calls.append((method, url, kwargs))
        if self.error is not None:
            raise self.error
        return self.responses.pop(0)


class TestErrorFromResponse:
    def test_validation_error_keeps_field(self):
        response = make_response(400, {"error": "validation_error", "message": "url: Please provide a URL", "field": "url"})
        err = error_from_response(response)
        assert isinstance(err, ValidationError)
        assert err.field == "url"
        assert err.message == "url: Please provide a URL"

    def test_authentication(self):
        err = error_from_response(make_response(401, {"message": "Invalid email or password"}))
        assert isinstance(err, AuthenticationError)
        assert err.message == "Invalid email or password"

    def test_permission_uses_request_context(self):
        err = error_from_response(make_response(403, {"message": "Missing or insufficient permissions"}), path="content/abc", operation="delete")
        assert isinstance(err, PermissionDeniedError)
        assert err.context()["path"] == "content/abc"
        assert err.context()["operation"] == "delete"

    def test_not_found(self):
        assert isinstance(error_from_response(make_response(404, {"message": "Document not found"})), NotFoundError)

    def test_rate_limit_reads_retry_after(self):
        err = error_from_response(make_response(429, {"message": "Rate limit exceeded"}, {"Retry-After": "12"}))
        assert isinstance(err, RateLimitError)
        assert err.retry_after == 12

    def test_other_status_is_external(self):
        err = error_from_response(make_response(503, None, reason="Service Unavailable"))
        assert isinstance(err, ExternalAPIError)
        assert err.status_code == 503
        assert err.message == "Service Unavailable"


class TestApiClient:
    def test_login_stores_token_and_sends_it(self):
        session = FakeSession(
            make_response(200, {"token": "tok", "expires_at": 1.0, "user": {"uid": "u", "email": "a@b.c", "is_admin": True}}),
            make_response(200, {"items": [], "total": 0}),
        )
        client = ApiClient("http://api.test/", session=session)
        client.login("a@b.c", "secret-pass")
        assert client.token == "tok"

        assert client.list_content(include_inactive=True) == []
        method, url, kwargs = session.calls[1]
        assert (method, url) == ("GET", "http://api.test/v1/content")
        assert kwargs["headers"] == {"Authorization": "Bearer tok"}
        assert kwargs["params"] == {"include_inactive": True}

    def test_items_parsed(self):
        raw = {"id": "a", "url": "https://e.com", "type": "text", "duration": 5, "active": True, "created_at": "2024-01-01T00:00:00+00:00"}
        client = ApiClient("http://api.test", session=FakeSession(make_response(201, raw)))
        item = client.create_content({"url": "https://e.com", "type": "text", "duration": 5})
        assert item.id == "a"
        assert item.duration == 5

    def test_no_content(self):
        client = ApiClient("http://api.test", token="tok", session=FakeSession(make_response(204)))
        client.logout()
        assert client.token is None

    def test_error_envelope_raised(self):
        client = ApiClient("http://api.test", session=FakeSession(make_response(403, {"message": "denied"})))
        with pytest.raises(PermissionDeniedError) as exc_info:
            client.delete_content("abc")
        assert exc_info.value.context()["path"] == "content/abc"

    def test_timeout(self):
        client = ApiClient("http://api.test", session=FakeSession(error=requests.exceptions.ReadTimeout("slow")), timeout=3)
        with pytest.raises(APITimeoutError):
            client.list_ticker()

    def test_connection_error(self):
        client = ApiClient("http://api.test", session=FakeSession(error=requests.exceptions.ConnectionError("refused")))
        with pytest.raises(APIConnectionError):
            client.me()


class TestIterSseEvents:
    def test_groups_lines(self):
        lines = [
            ": keep-alive",
            "",
            "event: snapshot",
            'data: {"total": 0}',
            "",
            "data: first",
            "data: second",
            "",
            "event: error",
            'data: {"message": "denied"}',
        ]
        assert list(iter_sse_events(lines)) == [
            ("snapshot", '{"total": 0}'),
            ("message", "first\nsecond"),
            ("error", '{"message": "denied"}'),
        ]

    def test_bytes_lines(self):
        assert list(iter_sse_events([b"event: snapshot", b"data: {}", b""])) == [("snapshot", "{}")]


class FakeStreamResponse:
    def __init__(self, status, lines):
        self.status_code = status
        self.lines = lines

    def iter_lines(self, decode_unicode=False):
        yield from self.lines

    def close(self):
        pass

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        return False


class FakeStreamSession:
    def __init__(self, lines):
        self.lines = lines
        self.urls = []

    def get(self, url, **kwargs):
        self.urls.append(url)
        return FakeStreamResponse(200, self.lines)


class TestRemoteFeed:
    def test_delivers_content_snapshots(self):
        payload = {"items": [{"id": "a", "url": "https://e.com", "type": "text", "duration": 5, "active": True, "created_at": ""}], "total": 1}
        session = FakeStreamSession(["event: snapshot", f"data: {json.dumps(payload)}", ""])
        client = ApiClient("http://api.test", session=session)
        received = threading.Event()
        seen = []

        def on_items(items):
            seen.append(items)
            received.set()

        follower = RemoteFeed(client, reconnect_delay=0.05).subscribe_content(on_items, lambda err: None)
        try:
            assert received.wait(2)
        finally:
            follower.unsubscribe()

        assert seen[0][0].id == "a"
        assert session.urls[0] == "http://api.test/v1/content/stream"

    def test_error_event_reported(self):
        session = FakeStreamSession(["event: error", 'data: {"error": "permission_denied", "message": "Missing or insufficient permissions"}', ""])
        client = ApiClient("http://api.test", session=session)
        failed = threading.Event()
        errors = []

        def on_error(err):
            errors.append(err)
            failed.set()

        follower = RemoteFeed(client, reconnect_delay=0.05).subscribe_ticker(lambda messages: None, on_error)
        try:
            assert failed.wait(2)
        finally:
            follower.unsubscribe()

        assert errors[0].error_code == "permission_denied"
