"""
Generative aspect-ratio adjustment for display images.

Asks the OpenAI images edit endpoint to letterbox an image into the
screen's aspect ratio (portrait 9:16 by default) without distortion.
The openai package is imported lazily so the rest of the app runs
without it installed.
"""

from __future__ import annotations

import base64
import binascii
import io
import logging
from dataclasses import dataclass
from typing import Any, Optional

from newsboard.circuit_breaker import CircuitBreaker, get_image_service_breaker
from newsboard.config import settings
from newsboard.exceptions import (
    APIConnectionError,
    APITimeoutError,
    ExternalAPIError,
    MissingAPIKeyError,
    UpstreamAuthError,
    ValidationError,
)
from newsboard.logging_config import PerformanceTracker
from newsboard.security.validators import parse_image_data_uri, to_data_uri

logger = logging.getLogger(__name__)

SERVICE_NAME = "openai_images"

# Sizes supported by the images edit endpoint
_PORTRAIT_SIZE = "1024x1536"
_LANDSCAPE_SIZE = "1536x1024"
_SQUARE_SIZE = "1024x1024"

_openai = None


def _get_openai():
    """Lazy import OpenAI client."""
    global _openai
    if _openai is None:
        try:
            import openai

            _openai = openai
        except ImportError:
            raise ImportError("openai is required for image adjustment. Install with: pip install openai")
    return _openai


def parse_aspect_ratio(value: str) -> tuple[int, int]:
    """Parse "W:H" into positive integers."""
    try:
        width, height = (int(part) for part in (value or "").split(":", 1))
    except ValueError:
        raise ValidationError("Aspect ratio must look like 9:16.", field="aspect_ratio") from None
    if width <= 0 or height <= 0:
        raise ValidationError("Aspect ratio must look like 9:16.", field="aspect_ratio")
    return width, height


def output_size_for(aspect_ratio: str) -> str:
    width, height = parse_aspect_ratio(aspect_ratio)
    if width < height:
        return _PORTRAIT_SIZE
    if width > height:
        return _LANDSCAPE_SIZE
    return _SQUARE_SIZE


def build_prompt(aspect_ratio: str) -> str:
    return (
        f"Adjust the image to fit a {aspect_ratio} aspect ratio without distortion, "
        "adding black bars if necessary. Keep the original content unchanged."
    )


@dataclass
class AdjustedImage:
    image_uri: str
    aspect_ratio: str
    size: str


class ImageAdjuster:
    """
    Letterbox images to a target aspect ratio with a generative image model.

    Example:
        adjuster = ImageAdjuster()
        adjusted = adjuster.adjust("data:image/png;base64,...")
        adjusted.image_uri  # data:image/png;base64,...
    """

    def __init__(
        self,
        *,
        client: Any = None,
        api_key: Optional[str] = None,
        model: Optional[str] = None,
        breaker: CircuitBreaker | None = None,
        timeout: Optional[float] = None,
    ) -> None:
        self._client = client
        self._api_key = api_key
        self.model = model or settings.openai_image_model
        self.breaker = breaker or get_image_service_breaker()
        self.timeout = timeout or settings.image_adjust_timeout_seconds

    @property
    def client(self) -> Any:
        if self._client is None:
            api_key = self._api_key or settings.openai_api_key
            if not api_key:
                raise MissingAPIKeyError("OpenAI", env_var="OPENAI_API_KEY")
            openai = _get_openai()
            self._client = openai.OpenAI(api_key=api_key, timeout=self.timeout)
        return self._client

    def adjust(self, image_uri: str, aspect_ratio: str | None = None) -> AdjustedImage:
        """
        Return `image_uri` letterboxed to `aspect_ratio`.

        Raises:
            InvalidImageDataError: If image_uri is not a base64 image data URI.
            ExternalAPIError: If the model fails or returns no image.
            CircuitBreakerOpenError: If the image service keeps failing.
        """
        aspect_ratio = aspect_ratio or settings.default_aspect_ratio
        size = output_size_for(aspect_ratio)
        image = parse_image_data_uri(image_uri)

        with PerformanceTracker("image_adjust", model=self.model, size=size):
            response = self.breaker.call(self._edit, image.payload, image.mime_type, image.extension, aspect_ratio, size)

        encoded = self._extract_b64(response)
        if not encoded:
            raise ExternalAPIError("The API did not return an adjusted image.", service=SERVICE_NAME)

        try:
            adjusted = base64.b64decode(encoded, validate=True)
        except (binascii.Error, ValueError) as exc:
            raise ExternalAPIError("The API returned an unreadable image.", service=SERVICE_NAME) from exc

        logger.info("Image adjusted", extra={"aspect_ratio": aspect_ratio, "size": size})
        return AdjustedImage(image_uri=to_data_uri("image/png", adjusted), aspect_ratio=aspect_ratio, size=size)

    def _edit(self, payload: bytes, mime_type: str, extension: str, aspect_ratio: str, size: str) -> Any:
        client = self.client
        openai = _get_openai()
        upload = (f"image.{extension}", io.BytesIO(payload), mime_type)
        try:
            return client.images.edit(
                model=self.model,
                image=upload,
                prompt=build_prompt(aspect_ratio),
                size=size,
                n=1,
            )
        except openai.OpenAIError as exc:
            raise _map_openai_error(openai, exc) from exc

    @staticmethod
    def _extract_b64(response: Any) -> str | None:
        data = getattr(response, "data", None) or []
        if not data:
            return None
        first = data[0]
        return getattr(first, "b64_json", None) or None


def _map_openai_error(openai: Any, exc: Exception) -> ExternalAPIError:
    """Translate openai SDK exceptions into the app's ExternalAPIError family."""
    if isinstance(exc, openai.AuthenticationError):
        return UpstreamAuthError(SERVICE_NAME)
    # APITimeoutError subclasses APIConnectionError in the SDK
    if isinstance(exc, openai.APITimeoutError):
        return APITimeoutError(SERVICE_NAME, timeout_seconds=int(settings.image_adjust_timeout_seconds))
    if isinstance(exc, openai.APIConnectionError):
        return APIConnectionError(SERVICE_NAME, reason=str(exc))
    if isinstance(exc, openai.APIStatusError):
        return ExternalAPIError(
            f"Image service error: {getattr(exc, 'message', str(exc))}",
            service=SERVICE_NAME,
            status_code=exc.status_code,
        )
    return ExternalAPIError(f"Image service error: {exc}", service=SERVICE_NAME)
