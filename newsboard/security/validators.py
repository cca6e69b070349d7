"""
Input validation for URLs and image data.

Prevents SSRF when the server fetches remote images on an admin's behalf,
and parses base64 image data URIs for the image adjuster.
"""

from __future__ import annotations

import base64
import binascii
import ipaddress
import re
from dataclasses import dataclass
from urllib.parse import urlparse

from newsboard.exceptions import InvalidImageDataError, InvalidURLError

_DATA_URI_PATTERN = re.compile(r"^data:(image/[\w.+-]+);base64,(.+)$", re.DOTALL)

# Hostnames that never belong to a public image host
_BLOCKED_HOSTS = {
    "localhost",
    "localhost.localdomain",
    "metadata.google.internal",
    "metadata",
}


@dataclass
class ImageData:
    """A decoded `data:image/...;base64,...` URI."""

    mime_type: str
    payload: bytes

    @property
    def extension(self) -> str:
        subtype = self.mime_type.split("/", 1)[1].lower()
        return {"jpeg": "jpg", "svg+xml": "svg"}.get(subtype, subtype)


def is_http_url(value: str) -> bool:
    """True for absolute http:// and https:// URLs."""
    try:
        parsed = urlparse(value or "")
    except ValueError:
        return False
    return parsed.scheme in ("http", "https") and bool(parsed.netloc)


def is_data_uri(value: str) -> bool:
    return (value or "").startswith("data:")


def validate_fetch_url(url: str) -> str:
    """
    Validate a URL the server is about to fetch.

    Rules:
    - http or https only
    - no embedded credentials
    - no localhost, metadata hosts, or private/link-local/loopback literal IPs

    Returns:
        The stripped URL.

    Raises:
        InvalidURLError: If the URL fails validation.
    """
    url = (url or "").strip()
    if not url:
        raise InvalidURLError(url, reason="URL must be a non-empty string")

    try:
        parsed = urlparse(url)
    except ValueError as exc:
        raise InvalidURLError(url, reason=f"Invalid URL format: {exc}") from exc

    if parsed.scheme not in ("http", "https"):
        raise InvalidURLError(url, reason=f"Scheme {parsed.scheme!r} not allowed")
    if not parsed.hostname:
        raise InvalidURLError(url, reason="Missing hostname")
    if parsed.username or parsed.password or "@" in parsed.netloc:
        raise InvalidURLError(url, reason="Credentials in URL not allowed")

    host = parsed.hostname.lower().rstrip(".")
    if host in _BLOCKED_HOSTS or host.endswith(".localhost"):
        raise InvalidURLError(url, reason="Host not allowed")

    try:
        address = ipaddress.ip_address(host)
    except ValueError:
        address = None
    if address is not None and (
        address.is_private
        or address.is_loopback
        or address.is_link_local
        or address.is_reserved
        or address.is_multicast
        or address.is_unspecified
    ):
        raise InvalidURLError(url, reason="Private or reserved address not allowed")

    return url


def parse_image_data_uri(uri: str) -> ImageData:
    """
    Parse `data:image/<subtype>;base64,<data>`.

    Raises:
        InvalidImageDataError: If the URI is not a base64 image data URI.
    """
    match = _DATA_URI_PATTERN.match((uri or "").strip())
    if not match:
        raise InvalidImageDataError()
    mime_type, encoded = match.groups()
    try:
        payload = base64.b64decode(encoded, validate=True)
    except (binascii.Error, ValueError) as exc:
        raise InvalidImageDataError(reason="Image data is not valid base64.") from exc
    if not payload:
        raise InvalidImageDataError(reason="Image data is empty.")
    return ImageData(mime_type=mime_type.lower(), payload=payload)


def to_data_uri(mime_type: str, payload: bytes) -> str:
    return f"data:{mime_type};base64,{base64.b64encode(payload).decode('ascii')}"
