"""
Pydantic models for API requests and responses.

Request models only check shapes; business rules (non-empty url, duration
>= 1, ticker length) live in newsboard.validation so the API, the
repositories and scripts all reject the same payloads.
"""

from __future__ import annotations

from typing import Any, Optional, Union

from pydantic import BaseModel, Field
from pydantic.config import ConfigDict


# =============================================================================
# Request Models
# =============================================================================


class LoginRequest(BaseModel):
    """Request model for dashboard sign-in."""

    model_config = ConfigDict(
        json_schema_extra={"examples": [{"email": "admin@example.com", "password": "correct horse battery"}]}
    )

    email: str = Field(min_length=1, max_length=320, description="Account email")
    password: str = Field(min_length=1, max_length=1024, description="Account password")


class ContentItemCreate(BaseModel):
    """Request model for creating a content item."""

    model_config = ConfigDict(
        extra="forbid",
        json_schema_extra={
            "examples": [
                {
                    "url": "https://example.com/poster.jpg",
                    "type": "image",
                    "duration": 15,
                    "active": True,
                    "caption": "Opening hours changed",
                }
            ]
        },
    )

    url: Optional[str] = Field(default=None, description="http(s) URL or data URI")
    type: Optional[str] = Field(default=None, description="image | video | text")
    duration: Any = Field(default=None, description="Display time in seconds (>= 1)")
    active: Any = Field(default=True, description="Shown on displays when true")
    caption: Optional[str] = Field(default=None, description="Optional caption")


class ContentItemUpdate(BaseModel):
    """Request model for a partial content item update. Only sent fields change."""

    model_config = ConfigDict(
        extra="forbid",
        json_schema_extra={"examples": [{"duration": 20}, {"active": False}]},
    )

    url: Optional[str] = None
    type: Optional[str] = None
    duration: Any = None
    active: Any = None
    caption: Optional[str] = None


class TickerMessageRequest(BaseModel):
    """Request model for creating or replacing a ticker message."""

    model_config = ConfigDict(
        extra="forbid",
        json_schema_extra={"examples": [{"text": "Road closed on Main St until 18:00"}]},
    )

    text: Optional[str] = Field(default=None, description="Message text (1-200 characters)")


class ImageFetchRequest(BaseModel):
    """Request model for inlining a remote image."""

    url: str = Field(min_length=1, max_length=4096, description="http(s) image URL")


class ImageAdjustRequest(BaseModel):
    """Request model for generative aspect-ratio adjustment."""

    image_uri: str = Field(min_length=1, description="data:image/<subtype>;base64,<data>")
    aspect_ratio: Optional[str] = Field(default=None, max_length=16, description="Target ratio, e.g. 9:16")


# =============================================================================
# Response Models
# =============================================================================


class UserResponse(BaseModel):
    uid: str
    email: str
    is_admin: bool


class LoginResponse(BaseModel):
    token: str
    expires_at: float
    user: UserResponse


class ContentItemResponse(BaseModel):
    id: str
    url: str
    type: str
    duration: Union[int, float]
    active: bool
    created_at: str
    caption: Optional[str] = None


class ContentListResponse(BaseModel):
    items: list[ContentItemResponse]
    total: int


class TickerMessageResponse(BaseModel):
    id: str
    text: str
    created_at: str


class TickerListResponse(BaseModel):
    messages: list[TickerMessageResponse]
    text: str = Field(description="Message texts joined for the scrolling banner")


class DeleteResponse(BaseModel):
    id: str
    deleted: bool = True


class ImageFetchResponse(BaseModel):
    success: bool
    data_url: Optional[str] = None
    error: Optional[str] = None


class ImageAdjustResponse(BaseModel):
    adjusted_image_uri: str
    aspect_ratio: str
    size: str


class ErrorResponse(BaseModel):
    error: str
    message: str
    detail: Optional[str] = None
    field: Optional[str] = None
    request_id: Optional[str] = None
