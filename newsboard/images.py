"""
Fetch remote images and inline them as base64 data URIs.

Displays keep working when the original image host goes away because the
stored content item carries the image bytes itself.
"""

from __future__ import annotations

import logging
from dataclasses import asdict, dataclass
from typing import Any, Callable, Optional
from urllib.parse import urljoin

import requests

from newsboard.config import settings
from newsboard.exceptions import InvalidURLError
from newsboard.http_session import get_requests_session
from newsboard.security.validators import to_data_uri, validate_fetch_url

logger = logging.getLogger(__name__)

MAX_REDIRECTS = 5


@dataclass
class ImageFetchResult:
    """Outcome of an image fetch. Exactly one of data_url / error is set."""

    success: bool
    data_url: Optional[str] = None
    error: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


ImageFetcher = Callable[[str], ImageFetchResult]


def get_image_session() -> requests.Session:
    """Session for image hosts: browser User-Agent, retries on server errors."""
    return get_requests_session(
        retries=2,
        backoff_factor=0.5,
        status_forcelist=(500, 502, 503, 504),
        user_agent=settings.image_fetch_user_agent,
    )


def fetch_image_as_data_url(
    url: str,
    *,
    session: requests.Session | None = None,
    timeout: float | None = None,
    max_bytes: int | None = None,
) -> ImageFetchResult:
    """
    Download an image and return it as a `data:image/...;base64,` URI.

    Never raises: every failure comes back as `ImageFetchResult(success=False,
    error=...)` so callers can surface the message to the admin.
    """
    try:
        url = validate_fetch_url(url)
    except InvalidURLError as exc:
        return ImageFetchResult(success=False, error=exc.detail or exc.message)

    timeout = timeout or settings.image_fetch_timeout_seconds
    max_bytes = max_bytes or settings.max_image_bytes
    session = session or get_image_session()

    try:
        response = _get_following_safe_redirects(session, url, timeout)
        with response:
            if not 200 <= response.status_code < 300:
                logger.warning("Image fetch failed", extra={"url": url, "status": response.status_code})
                return ImageFetchResult(
                    success=False,
                    error=f"Failed to fetch image. Status: {response.status_code} {response.reason or ''}".rstrip(),
                )

            content_type = (response.headers.get("content-type") or "").split(";")[0].strip().lower()
            if not content_type.startswith("image/"):
                return ImageFetchResult(
                    success=False,
                    error=f"Invalid content type. Expected an image, got {content_type or 'unknown'}.",
                )

            declared = response.headers.get("content-length")
            if declared and declared.isdigit() and int(declared) > max_bytes:
                return ImageFetchResult(success=False, error=f"Image is larger than {max_bytes} bytes.")

            chunks: list[bytes] = []
            total = 0
            for chunk in response.iter_content(chunk_size=64 * 1024):
                if not chunk:
                    continue
                total += len(chunk)
                if total > max_bytes:
                    return ImageFetchResult(success=False, error=f"Image is larger than {max_bytes} bytes.")
                chunks.append(chunk)
    except InvalidURLError as exc:
        logger.warning("Image redirect blocked", extra={"url": url, "reason": exc.reason})
        return ImageFetchResult(success=False, error=f"Redirect blocked: {exc.detail or exc.message}")
    except requests.exceptions.Timeout:
        logger.warning("Image fetch timed out", extra={"url": url})
        return ImageFetchResult(success=False, error=f"Timed out after {timeout}s fetching image.")
    except requests.exceptions.RequestException as exc:
        logger.warning("Image fetch error", extra={"url": url, "error": str(exc)})
        return ImageFetchResult(success=False, error=f"Could not fetch image: {exc}")

    payload = b"".join(chunks)
    if not payload:
        return ImageFetchResult(success=False, error="Image response was empty.")

    logger.info("Image fetched", extra={"url": url, "bytes": len(payload), "content_type": content_type})
    return ImageFetchResult(success=True, data_url=to_data_uri(content_type, payload))


def _get_following_safe_redirects(session: requests.Session, url: str, timeout: float) -> requests.Response:
    """
    GET `url`, following redirects by hand so every hop passes `validate_fetch_url`.

    Raises InvalidURLError for a disallowed hop and TooManyRedirects after
    MAX_REDIRECTS hops.
    """
    for _ in range(MAX_REDIRECTS + 1):
        response = session.get(url, timeout=timeout, stream=True, allow_redirects=False)
        if not response.is_redirect:
            return response
        location = response.headers.get("location", "")
        response.close()
        url = validate_fetch_url(urljoin(url, location))
        logger.debug("Following image redirect", extra={"url": url})
    raise requests.exceptions.TooManyRedirects(f"Exceeded {MAX_REDIRECTS} redirects.")
