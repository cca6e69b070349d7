"""
HTTP client for the Newsboard API, used by the Streamlit pages.

- ApiClient: thin JSON wrapper over a requests session; error envelopes
  come back as the matching NewsboardError subclass
- RemoteFeed: follows the SSE streams in background threads and feeds a
  DisplayViewer, reconnecting after a drop
"""

from __future__ import annotations

import json
import logging
import threading
from typing import Any, Callable, Iterable, Iterator, Optional

import requests

from newsboard.config import settings
from newsboard.domain import ContentItem, TickerMessage
from newsboard.exceptions import (
    APIConnectionError,
    APITimeoutError,
    AuthenticationError,
    ExternalAPIError,
    NewsboardError,
    NotFoundError,
    PermissionDeniedError,
    RateLimitError,
    ValidationError,
)
from newsboard.http_session import get_requests_session

logger = logging.getLogger(__name__)

SERVICE_NAME = "newsboard-api"


def error_from_response(response: requests.Response, *, path: str = "", operation: str = "") -> NewsboardError:
    """Rebuild the server's error envelope as a local exception."""
    try:
        body = response.json()
    except ValueError:
        body = {}
    if not isinstance(body, dict):
        body = {}
    message = str(body.get("message") or response.reason or "Request failed")
    status = response.status_code

    if status == 400:
        field = body.get("field")
        if field and message.startswith(f"{field}: "):
            message = message[len(field) + 2 :]
        return ValidationError(message, field=field, detail=body.get("detail"))
    if status == 401:
        return AuthenticationError(message)
    if status == 403:
        return PermissionDeniedError(
            path=str(body.get("path") or path),
            operation=str(body.get("operation") or operation),
        )
    if status == 404:
        return NotFoundError(message)
    if status == 429:
        retry_after = response.headers.get("Retry-After")
        return RateLimitError(message, retry_after=int(retry_after) if retry_after and retry_after.isdigit() else None)
    return ExternalAPIError(message, service=SERVICE_NAME, status_code=status)


class ApiClient:
    """
    JSON client for the Newsboard API.

    Example:
        client = ApiClient("http://localhost:8000")
        client.login("admin@example.com", "secret")
        client.create_content({"url": "...", "type": "image", "duration": 10})
    """

    def __init__(
        self,
        base_url: str | None = None,
        *,
        token: str | None = None,
        session: requests.Session | None = None,
        timeout: float = 10,
    ) -> None:
        self.base_url = (base_url or settings.api_url).rstrip("/")
        self.token = token
        self.session = session or get_requests_session()
        self.timeout = timeout

    def url(self, path: str) -> str:
        return f"{self.base_url}{path}"

    def headers(self) -> dict[str, str]:
        return {"Authorization": f"Bearer {self.token}"} if self.token else {}

    def request(self, method: str, path: str, *, operation: str = "", timeout: float | None = None, **kwargs) -> Any:
        try:
            response = self.session.request(
                method,
                self.url(path),
                headers=self.headers(),
                timeout=timeout or self.timeout,
                **kwargs,
            )
        except requests.exceptions.Timeout:
            raise APITimeoutError(SERVICE_NAME, timeout_seconds=int(timeout or self.timeout)) from None
        except requests.exceptions.RequestException as exc:
            raise APIConnectionError(SERVICE_NAME, reason=str(exc)) from exc

        if response.status_code >= 400:
            raise error_from_response(response, path=path.removeprefix("/v1/"), operation=operation)
        if response.status_code == 204 or not response.content:
            return None
        return response.json()

    # ------------------------------------------------------------------
    # Auth
    # ------------------------------------------------------------------

    def login(self, email: str, password: str) -> dict:
        data = self.request("POST", "/v1/auth/login", json={"email": email, "password": password})
        self.token = data["token"]
        return data

    def logout(self) -> None:
        if self.token:
            self.request("POST", "/v1/auth/logout")
        self.token = None

    def me(self) -> dict:
        return self.request("GET", "/v1/auth/me")

    # ------------------------------------------------------------------
    # Content
    # ------------------------------------------------------------------

    def list_content(self, *, include_inactive: bool = False) -> list[ContentItem]:
        data = self.request("GET", "/v1/content", params={"include_inactive": include_inactive}, operation="list")
        return [ContentItem.from_document(raw["id"], raw) for raw in data.get("items", [])]

    def create_content(self, payload: dict) -> ContentItem:
        # Image inlining happens server-side and can take a while
        raw = self.request("POST", "/v1/content", json=payload, operation="create", timeout=60)
        return ContentItem.from_document(raw["id"], raw)

    def update_content(self, item_id: str, payload: dict) -> ContentItem:
        raw = self.request("PATCH", f"/v1/content/{item_id}", json=payload, operation="update", timeout=60)
        return ContentItem.from_document(raw["id"], raw)

    def toggle_content(self, item_id: str) -> ContentItem:
        raw = self.request("POST", f"/v1/content/{item_id}/toggle", operation="update")
        return ContentItem.from_document(raw["id"], raw)

    def delete_content(self, item_id: str) -> None:
        self.request("DELETE", f"/v1/content/{item_id}", operation="delete")

    # ------------------------------------------------------------------
    # Ticker
    # ------------------------------------------------------------------

    def list_ticker(self) -> list[TickerMessage]:
        data = self.request("GET", "/v1/ticker", operation="list")
        return [TickerMessage.from_document(raw["id"], raw) for raw in data.get("messages", [])]

    def create_ticker(self, text: str) -> TickerMessage:
        raw = self.request("POST", "/v1/ticker", json={"text": text}, operation="create")
        return TickerMessage.from_document(raw["id"], raw)

    def update_ticker(self, message_id: str, text: str) -> TickerMessage:
        raw = self.request("PATCH", f"/v1/ticker/{message_id}", json={"text": text}, operation="update")
        return TickerMessage.from_document(raw["id"], raw)

    def delete_ticker(self, message_id: str) -> None:
        self.request("DELETE", f"/v1/ticker/{message_id}", operation="delete")

    # ------------------------------------------------------------------
    # Media
    # ------------------------------------------------------------------

    def fetch_image(self, url: str) -> dict:
        return self.request("POST", "/v1/media/fetch", json={"url": url}, operation="create", timeout=60)

    def adjust_image(self, image_uri: str, aspect_ratio: str | None = None) -> dict:
        payload = {"image_uri": image_uri, "aspect_ratio": aspect_ratio or settings.default_aspect_ratio}
        return self.request(
            "POST",
            "/v1/media/adjust",
            json=payload,
            operation="create",
            timeout=settings.image_adjust_timeout_seconds + 10,
        )


# =============================================================================
# Server-sent events
# =============================================================================


def iter_sse_events(lines: Iterable[str]) -> Iterator[tuple[str, str]]:
    """Group SSE lines into (event, data) pairs. Comment lines are skipped."""
    event = "message"
    data: list[str] = []
    for line in lines:
        if line is None:
            continue
        if isinstance(line, bytes):
            line = line.decode("utf-8", errors="replace")
        if not line:
            if data:
                yield event, "\n".join(data)
            event, data = "message", []
            continue
        if line.startswith(":"):
            continue
        name, _, value = line.partition(":")
        value = value[1:] if value.startswith(" ") else value
        if name == "event":
            event = value
        elif name == "data":
            data.append(value)
    if data:
        yield event, "\n".join(data)


class _StreamFollower:
    """Background thread following one SSE endpoint until unsubscribed."""

    def __init__(
        self,
        client: ApiClient,
        path: str,
        on_payload: Callable[[dict], None],
        on_error: Callable[[NewsboardError], None],
        *,
        reconnect_delay: float,
        read_timeout: float,
    ) -> None:
        self.client = client
        self.path = path
        self.on_payload = on_payload
        self.on_error = on_error
        self.reconnect_delay = reconnect_delay
        self.read_timeout = read_timeout
        self._stop = threading.Event()
        self._response: Optional[requests.Response] = None
        self._thread = threading.Thread(target=self._run, name=f"sse:{path}", daemon=True)

    def start(self) -> "_StreamFollower":
        self._thread.start()
        return self

    def unsubscribe(self) -> None:
        self._stop.set()
        response = self._response
        if response is not None:
            response.close()

    def _run(self) -> None:
        while not self._stop.is_set():
            try:
                self._follow()
            except NewsboardError as exc:
                if not self._stop.is_set():
                    self.on_error(exc)
            except requests.exceptions.RequestException as exc:
                if self._stop.is_set():
                    return
                logger.warning("Stream %s dropped, reconnecting in %ss: %s", self.path, self.reconnect_delay, exc)
                self.on_error(APIConnectionError(SERVICE_NAME, reason=str(exc)))
            self._stop.wait(self.reconnect_delay)

    def _follow(self) -> None:
        with self.client.session.get(
            self.client.url(self.path),
            headers={**self.client.headers(), "Accept": "text/event-stream"},
            stream=True,
            timeout=(self.client.timeout, self.read_timeout),
        ) as response:
            self._response = response
            if response.status_code >= 400:
                raise error_from_response(response, path=self.path.removeprefix("/v1/"), operation="list")
            logger.info("Connected to stream %s", self.path)
            for event, data in iter_sse_events(response.iter_lines(decode_unicode=True)):
                if self._stop.is_set():
                    return
                try:
                    payload = json.loads(data)
                except json.JSONDecodeError:
                    logger.warning("Ignoring malformed stream event on %s", self.path)
                    continue
                if event == "snapshot":
                    self.on_payload(payload)
                elif event == "error":
                    raise NewsboardError(str(payload.get("message") or "Stream error"), error_code=payload.get("error"))
        self._response = None


class RemoteFeed:
    """ContentFeed that reads the live queries over the API's SSE streams."""

    def __init__(self, client: ApiClient, *, reconnect_delay: float = 5.0, read_timeout: float | None = None) -> None:
        self.client = client
        self.reconnect_delay = reconnect_delay
        self.read_timeout = read_timeout or settings.stream_heartbeat_seconds * 3

    def _follow(self, path: str, on_payload, on_error) -> _StreamFollower:
        return _StreamFollower(
            self.client,
            path,
            on_payload,
            on_error,
            reconnect_delay=self.reconnect_delay,
            read_timeout=self.read_timeout,
        ).start()

    def subscribe_content(self, on_items, on_error) -> _StreamFollower:
        def on_payload(payload: dict) -> None:
            on_items([ContentItem.from_document(raw["id"], raw) for raw in payload.get("items", [])])

        return self._follow("/v1/content/stream", on_payload, on_error)

    def subscribe_ticker(self, on_messages, on_error) -> _StreamFollower:
        def on_payload(payload: dict) -> None:
            on_messages([TickerMessage.from_document(raw["id"], raw) for raw in payload.get("messages", [])])

        return self._follow("/v1/ticker/stream", on_payload, on_error)
