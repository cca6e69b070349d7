"""
Media helper routes used by the dashboard form.

- /v1/media/fetch: inline a remote image as a data URI (structured result)
- /v1/media/adjust: generative letterboxing to the screen aspect ratio
"""

from __future__ import annotations

from fastapi import APIRouter, Request, Response

from newsboard.api.dependencies import get_state, require_admin
from newsboard.api.middleware import get_client_ip
from newsboard.api.models import ImageAdjustRequest, ImageAdjustResponse, ImageFetchRequest, ImageFetchResponse
from newsboard.config import settings
from newsboard.exceptions import NotFoundError, RateLimitError

router = APIRouter(prefix="/v1/media", tags=["media"])


@router.post("/fetch", response_model=ImageFetchResponse)
def fetch_image(payload: ImageFetchRequest, request: Request, response: Response) -> dict:
    """Fetch failures come back as `success: false` with a message, not as HTTP errors."""
    require_admin(request, path="media/fetch", operation="create")
    result = get_state(request).image_fetcher(payload.url)
    response.headers["Cache-Control"] = "no-store"
    return result.to_dict()


@router.post(
    "/adjust",
    response_model=ImageAdjustResponse,
    responses={
        400: {"description": "Invalid image data URI"},
        429: {"description": "Rate limited"},
        502: {"description": "Image service returned no image"},
        503: {"description": "Image service unavailable"},
    },
)
def adjust_image(payload: ImageAdjustRequest, request: Request, response: Response) -> dict:
    if not settings.enable_image_adjuster:
        raise NotFoundError("Image adjuster disabled")
    identity = require_admin(request, path="media/adjust", operation="create")
    state = get_state(request)

    allowed, retry_after = state.rate_limiter.check_rate_limit(f"{identity.uid}:{get_client_ip(request)}")
    if not allowed:
        raise RateLimitError(
            retry_after=retry_after,
            limit=state.rate_limiter.requests_per_window,
            window=state.rate_limiter.window_seconds,
        )

    adjusted = state.get_image_adjuster().adjust(payload.image_uri, payload.aspect_ratio)
    response.headers["Cache-Control"] = "no-store"
    return {
        "adjusted_image_uri": adjusted.image_uri,
        "aspect_ratio": adjusted.aspect_ratio,
        "size": adjusted.size,
    }
