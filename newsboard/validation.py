"""
Payload validation for content items and ticker messages.

Provides:
- validate_content_item(): full payload check used on create
- validate_content_update(): checks only the fields present in a partial update
- validate_ticker_message(): text presence and length

All functions raise ValidationError (with the offending field) before
anything is written, and return a cleaned copy of the payload.
"""

from __future__ import annotations

import math
from typing import Any, Mapping

from newsboard.config import CONTENT_KINDS, settings
from newsboard.exceptions import ValidationError

CONTENT_FIELDS = ("url", "type", "duration", "active", "caption")
TICKER_FIELDS = ("text",)


def _clean_url(value: Any) -> str:
    url = str(value or "").strip()
    if not url:
        raise ValidationError("Please provide a URL or a data URI.", field="url")
    return url


def _clean_type(value: Any) -> str:
    kind = str(value or "").strip().lower()
    if kind not in CONTENT_KINDS:
        raise ValidationError(
            f"Must be one of: {', '.join(sorted(CONTENT_KINDS))}",
            field="type",
            detail=f"Got {value!r}",
        )
    return kind


def _clean_duration(value: Any) -> int | float:
    if isinstance(value, bool):
        raise ValidationError("Duration must be a number of seconds.", field="duration")
    try:
        seconds = float(value)
    except (TypeError, ValueError, OverflowError):
        raise ValidationError("Duration must be a number of seconds.", field="duration") from None
    if not math.isfinite(seconds):
        raise ValidationError("Duration must be a finite number of seconds.", field="duration")
    if seconds < 1:
        raise ValidationError("Duration must be at least 1 second.", field="duration")
    return int(seconds) if seconds.is_integer() else seconds


def _clean_active(value: Any) -> bool:
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in ("1", "true", "yes", "on"):
            return True
        if lowered in ("0", "false", "no", "off", ""):
            return False
        raise ValidationError("Active must be true or false.", field="active")
    return bool(value)


def _clean_caption(value: Any) -> str | None:
    if value is None:
        return None
    caption = str(value).strip()
    if len(caption) > settings.max_caption_chars:
        raise ValidationError(
            f"Caption cannot exceed {settings.max_caption_chars} characters.",
            field="caption",
        )
    return caption or None


def _reject_unknown(data: Mapping[str, Any], allowed: tuple[str, ...]) -> None:
    unknown = sorted(k for k in data if k not in allowed)
    if unknown:
        raise ValidationError("Unknown fields", field=unknown[0], detail=", ".join(unknown))


def validate_content_item(data: Mapping[str, Any] | None) -> dict[str, Any]:
    """Validate a complete content item payload (create)."""
    if not isinstance(data, Mapping):
        raise ValidationError("Content item payload must be an object")
    _reject_unknown(data, CONTENT_FIELDS)

    cleaned: dict[str, Any] = {
        "url": _clean_url(data.get("url")),
        "type": _clean_type(data.get("type")),
        "duration": _clean_duration(data.get("duration")),
        "active": _clean_active(data.get("active", True)),
    }
    caption = _clean_caption(data.get("caption"))
    if caption is not None:
        cleaned["caption"] = caption
    return cleaned


def validate_content_update(data: Mapping[str, Any] | None) -> dict[str, Any]:
    """Validate only the fields present in a partial content update."""
    if not isinstance(data, Mapping):
        raise ValidationError("Content item update must be an object")
    _reject_unknown(data, CONTENT_FIELDS)
    if not data:
        raise ValidationError("Nothing to update")

    cleaned: dict[str, Any] = {}
    if "url" in data:
        cleaned["url"] = _clean_url(data["url"])
    if "type" in data:
        cleaned["type"] = _clean_type(data["type"])
    if "duration" in data:
        cleaned["duration"] = _clean_duration(data["duration"])
    if "active" in data:
        cleaned["active"] = _clean_active(data["active"])
    if "caption" in data:
        cleaned["caption"] = _clean_caption(data["caption"])
    return cleaned


def validate_ticker_message(data: Mapping[str, Any] | None) -> dict[str, Any]:
    """Validate a ticker message payload (create and update)."""
    if not isinstance(data, Mapping):
        raise ValidationError("Ticker message payload must be an object")
    _reject_unknown(data, TICKER_FIELDS)

    text = str(data.get("text") or "").strip()
    if not text:
        raise ValidationError("Message text cannot be empty.", field="text")
    if len(text) > settings.max_ticker_chars:
        raise ValidationError(
            f"Message text cannot exceed {settings.max_ticker_chars} characters.",
            field="text",
        )
    return {"text": text}
