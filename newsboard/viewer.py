"""
Display viewer: what a signage screen shows right now.

Follows the live active-content and ticker queries, feeds snapshots to
the rotation timer, and keeps a local copy of the last good content list
so a screen that loses the store (offline, denied) keeps playing.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
import threading
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable, Optional, Protocol

from newsboard.config import settings
from newsboard.domain import ContentItem, Identity, TickerMessage, ticker_text, youtube_embed_url
from newsboard.events import PERMISSION_ERROR, ErrorEmitter, error_emitter
from newsboard.exceptions import NewsboardError, PermissionDeniedError
from newsboard.repository.content import ContentRepo
from newsboard.repository.ticker import TickerRepo
from newsboard.rotation import RotationTimer

logger = logging.getLogger(__name__)


# =============================================================================
# Local cache
# =============================================================================


class LocalCache:
    """
    JSON file holding the last content list a screen received.

    Several keys may share one file; each key maps to a list of item dicts.
    """

    def __init__(self, path: str | Path | None = None, key: str | None = None) -> None:
        self.path = Path(path or settings.display_cache_path)
        self.key = key or settings.display_cache_key
        self._lock = threading.Lock()

    def _read_all(self) -> dict:
        try:
            with open(self.path, encoding="utf-8") as f:
                data = json.load(f)
        except FileNotFoundError:
            return {}
        except (OSError, json.JSONDecodeError) as exc:
            logger.warning("Display cache unreadable, ignoring: %s", exc)
            return {}
        return data if isinstance(data, dict) else {}

    def load(self) -> Optional[list[ContentItem]]:
        """Cached items, or None when nothing was ever cached."""
        with self._lock:
            entry = self._read_all().get(self.key)
        if not isinstance(entry, dict) or not isinstance(entry.get("items"), list):
            return None
        return [
            ContentItem.from_document(str(raw.get("id", "")), raw)
            for raw in entry["items"]
            if isinstance(raw, dict)
        ]

    def save(self, items: list[ContentItem]) -> None:
        with self._lock:
            data = self._read_all()
            data[self.key] = {
                "saved_at": datetime.now(timezone.utc).isoformat(),
                "items": [item.to_dict() for item in items],
            }
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_path = tempfile.mkstemp(dir=self.path.parent, prefix=".display_cache.", suffix=".tmp")
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as f:
                    json.dump(data, f, ensure_ascii=False)
                os.replace(tmp_path, self.path)
            except OSError:
                Path(tmp_path).unlink(missing_ok=True)
                raise

    def clear(self) -> None:
        with self._lock:
            data = self._read_all()
            if data.pop(self.key, None) is None:
                return
            with open(self.path, "w", encoding="utf-8") as f:
                json.dump(data, f, ensure_ascii=False)


# =============================================================================
# Feeds
# =============================================================================


class Unsubscribe(Protocol):
    def unsubscribe(self) -> None: ...


ErrorHandler = Callable[[NewsboardError], None]


class ContentFeed(Protocol):
    """Source of live content and ticker snapshots for a viewer."""

    def subscribe_content(
        self, on_items: Callable[[list[ContentItem]], None], on_error: ErrorHandler
    ) -> Unsubscribe: ...

    def subscribe_ticker(
        self, on_messages: Callable[[list[TickerMessage]], None], on_error: ErrorHandler
    ) -> Unsubscribe: ...


class LocalFeed:
    """Feed backed directly by the in-process repositories."""

    def __init__(self, content: ContentRepo, ticker: TickerRepo, identity: Identity | None = None) -> None:
        self.content = content
        self.ticker = ticker
        self.identity = identity

    def subscribe_content(self, on_items, on_error) -> Unsubscribe:
        return self.content.subscribe_active(on_items, on_error, self.identity)

    def subscribe_ticker(self, on_messages, on_error) -> Unsubscribe:
        return self.ticker.subscribe(on_messages, on_error, self.identity)


# =============================================================================
# Viewer
# =============================================================================


@dataclass
class ViewState:
    loading: bool
    empty: bool
    offline: bool
    item: Optional[ContentItem]
    index: int
    total: int
    ticker_text: str
    remaining: Optional[float]
    embed_url: Optional[str]
    error: Optional[str] = None

    @property
    def show_ticker(self) -> bool:
        return bool(self.ticker_text)


class DisplayViewer:
    """
    Drives one display.

    Example:
        viewer = DisplayViewer(LocalFeed(content_repo, ticker_repo))
        viewer.start()
        state = viewer.state()
    """

    def __init__(
        self,
        feed: ContentFeed,
        *,
        rotation: RotationTimer | None = None,
        cache: LocalCache | None = None,
        emitter: ErrorEmitter | None = None,
    ) -> None:
        self.feed = feed
        self.rotation = rotation or RotationTimer()
        self.cache = cache or LocalCache()
        self.emitter = emitter or error_emitter

        self._lock = threading.RLock()
        self._content_sub: Optional[Unsubscribe] = None
        self._ticker_sub: Optional[Unsubscribe] = None
        self._messages: list[TickerMessage] = []
        self._loading = True
        self._online = True
        self._running = False
        self._error: Optional[str] = None

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start(self) -> None:
        with self._lock:
            if self._running:
                return
            self._running = True
            self.rotation.resume()
            if self._online:
                self._subscribe()
            else:
                self._show_cached()

    def stop(self) -> None:
        with self._lock:
            self._running = False
            self._unsubscribe()
            self.rotation.stop()

    @property
    def online(self) -> bool:
        with self._lock:
            return self._online

    def set_online(self, online: bool) -> None:
        """Switch between the live store and the local cache."""
        with self._lock:
            if online == self._online:
                return
            self._online = online
            logger.info("Display %s", "online" if online else "offline")
            if not self._running:
                return
            if online:
                self._subscribe()
            else:
                self._unsubscribe()
                self._show_cached()

    def _subscribe(self) -> None:
        self._unsubscribe()
        self._error = None
        self._content_sub = self.feed.subscribe_content(self._on_items, self._on_content_error)
        self._ticker_sub = self.feed.subscribe_ticker(self._on_messages, self._on_ticker_error)

    def _unsubscribe(self) -> None:
        for sub in (self._content_sub, self._ticker_sub):
            if sub is not None:
                sub.unsubscribe()
        self._content_sub = None
        self._ticker_sub = None

    # ------------------------------------------------------------------
    # Snapshot handlers
    # ------------------------------------------------------------------

    def _on_items(self, items: list[ContentItem]) -> None:
        with self._lock:
            self.rotation.set_items(items)
            self._loading = False
            self._error = None
        try:
            self.cache.save(items)
        except OSError as exc:
            logger.warning("Could not write display cache: %s", exc)

    def _on_messages(self, messages: list[TickerMessage]) -> None:
        with self._lock:
            self._messages = list(messages)

    def _on_content_error(self, error: NewsboardError) -> None:
        logger.warning("Content subscription failed, using cache", extra={"error": error.message})
        with self._lock:
            self._error = error.message
            self._show_cached()
        if isinstance(error, PermissionDeniedError):
            self.emitter.emit(PERMISSION_ERROR, error)

    def _on_ticker_error(self, error: NewsboardError) -> None:
        with self._lock:
            self._messages = []
        if isinstance(error, PermissionDeniedError):
            self.emitter.emit(PERMISSION_ERROR, error)

    def _show_cached(self) -> None:
        cached = self.cache.load()
        self.rotation.set_items(cached or [])
        self._loading = False

    # ------------------------------------------------------------------
    # Rendering state
    # ------------------------------------------------------------------

    def state(self) -> ViewState:
        with self._lock:
            item = self.rotation.current
            total = len(self.rotation.items)
            embed = youtube_embed_url(item.url) if item is not None and item.type == "video" else None
            return ViewState(
                loading=self._loading,
                empty=not self._loading and total == 0,
                offline=not self._online,
                item=item,
                index=self.rotation.index,
                total=total,
                ticker_text=ticker_text(self._messages),
                remaining=self.rotation.remaining(),
                embed_url=embed,
                error=self._error,
            )
