from __future__ import annotations

import math
import re
from dataclasses import asdict, dataclass
from datetime import datetime, timezone
from typing import Any, Iterable, Optional
from urllib.parse import parse_qs, urlencode, urlparse

from newsboard.config import CONTENT_KINDS

DEFAULT_DURATION_SECONDS = 10
TICKER_SEPARATOR = " ••• "

_YOUTUBE_FALLBACK = re.compile(r"^.*(youtu\.be/|v/|u/\w/|embed/|shorts/|watch\?v=|&v=)([^#&?]*).*")


@dataclass
class ContentItem:
    """One unit of rotating display content."""

    id: str
    url: str
    type: str  # image | video | text
    duration: int | float
    active: bool
    created_at: str
    caption: Optional[str] = None

    @classmethod
    def from_document(cls, doc_id: str, data: dict[str, Any]) -> "ContentItem":
        return cls(
            id=doc_id,
            url=str(data.get("url") or ""),
            type=str(data.get("type") or "image"),
            duration=_as_seconds(data.get("duration")),
            active=bool(data.get("active", True)),
            created_at=serialize_timestamp(data.get("created_at")),
            caption=data.get("caption") or None,
        )

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class TickerMessage:
    """Short urgent text shown in the scrolling banner."""

    id: str
    text: str
    created_at: str

    @classmethod
    def from_document(cls, doc_id: str, data: dict[str, Any]) -> "TickerMessage":
        return cls(
            id=doc_id,
            text=str(data.get("text") or ""),
            created_at=serialize_timestamp(data.get("created_at")),
        )

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


def _as_seconds(value: Any) -> int | float:
    try:
        seconds = float(value)
    except (TypeError, ValueError, OverflowError):
        return 0
    if not math.isfinite(seconds):
        return 0
    return int(seconds) if seconds.is_integer() else seconds


def is_valid_kind(value: str) -> bool:
    return (value or "").lower() in CONTENT_KINDS


def effective_duration(value: Any, default: int = DEFAULT_DURATION_SECONDS) -> float:
    """Return the display duration in seconds, falling back to `default`.

    Missing, unparsable and non-positive durations all use the default.
    """
    try:
        seconds = float(value)
    except (TypeError, ValueError):
        return float(default)
    if seconds != seconds or seconds <= 0:  # NaN or non-positive
        return float(default)
    return seconds


def serialize_timestamp(value: Any) -> str:
    """Render a stored timestamp as an ISO-8601 UTC string ('' if unknown)."""
    if value is None or value == "":
        return ""
    if isinstance(value, datetime):
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc).isoformat()
    if isinstance(value, (int, float)):
        return datetime.fromtimestamp(float(value), tz=timezone.utc).isoformat()
    return str(value)


def format_created_at(value: str) -> str:
    """Human-readable timestamp for the dashboard table."""
    if not value:
        return "Date unavailable"
    try:
        dt = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return "Invalid date"
    return dt.strftime("%b %d, %Y %H:%M")


def ticker_text(messages: Iterable[TickerMessage | dict[str, Any]]) -> str:
    """Join ticker message texts for the scrolling banner ('' hides the ticker)."""
    parts: list[str] = []
    for message in messages:
        text = message.get("text") if isinstance(message, dict) else message.text
        text = (text or "").strip()
        if text:
            parts.append(text)
    return TICKER_SEPARATOR.join(parts)


def youtube_video_id(url: str) -> Optional[str]:
    """
    Extract a YouTube video id from the common URL shapes.

    Handles youtu.be/<id>, /watch?v=<id>, /embed/<id> and /shorts/<id>.
    """
    video_id: Optional[str] = None
    try:
        parsed = urlparse(url or "")
    except ValueError:
        parsed = None

    if parsed is not None:
        host = (parsed.hostname or "").lower()
        if host == "youtu.be":
            video_id = parsed.path.lstrip("/").split("?")[0] or None
        elif host in ("www.youtube.com", "youtube.com", "m.youtube.com"):
            if parsed.path == "/watch":
                video_id = (parse_qs(parsed.query).get("v") or [None])[0]
            elif parsed.path.startswith("/embed/") or parsed.path.startswith("/shorts/"):
                parts = parsed.path.split("/")
                video_id = parts[2] if len(parts) > 2 and parts[2] else None

    if not video_id:
        match = _YOUTUBE_FALLBACK.match(url or "")
        video_id = match.group(2) if match and len(match.group(2)) == 11 else None

    return video_id


def youtube_embed_url(url: str) -> Optional[str]:
    """Muted, looping, autoplaying embed URL for a YouTube video, else None."""
    video_id = youtube_video_id(url)
    if not video_id:
        return None
    params = {
        "autoplay": "1",
        "mute": "1",
        "loop": "1",
        "playlist": video_id,  # loop only works on single videos with a playlist
        "controls": "0",
        "showinfo": "0",
        "rel": "0",
        "iv_load_policy": "3",
        "modestbranding": "1",
    }
    return f"https://www.youtube.com/embed/{video_id}?{urlencode(params)}"


@dataclass(frozen=True)
class Identity:
    """An authenticated account as seen by access rules."""

    uid: str
    email: str
    is_admin: bool = False
