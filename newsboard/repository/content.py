"""
Content item repository.

Wraps the `news` collection of the document store: validation before
every write, inlining of remote images, and live queries for displays.
"""

from __future__ import annotations

from typing import Any, Callable, Mapping

from newsboard.config import settings
from newsboard.documents import Document, DocumentStore, ErrorCallback, Query, SnapshotStream, Subscription
from newsboard.domain import ContentItem, Identity
from newsboard.exceptions import DocumentNotFoundError, ValidationError
from newsboard.images import ImageFetcher, fetch_image_as_data_url
from newsboard.logging_config import log_event
from newsboard.security.validators import is_http_url
from newsboard.validation import validate_content_item, validate_content_update

ItemsCallback = Callable[[list[ContentItem]], None]


def _to_items(snapshot: list[Document]) -> list[ContentItem]:
    return [ContentItem.from_document(doc.id, doc.data) for doc in snapshot]


class ContentRepo:
    """
    Repository for rotating content items.

    Writes require an admin identity (enforced by the store's rules);
    reads are public.
    """

    def __init__(
        self,
        store: DocumentStore,
        *,
        collection: str | None = None,
        image_fetcher: ImageFetcher | None = None,
    ) -> None:
        self.store = store
        self.collection = collection or settings.content_collection
        self._fetch_image = image_fetcher or fetch_image_as_data_url

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def all_query(self) -> Query:
        return Query(self.collection, order_by=("created_at", True))

    def active_query(self) -> Query:
        return Query(self.collection, filters=(("active", "==", True),), order_by=("created_at", True))

    def get(self, item_id: str, identity: Identity | None = None) -> ContentItem | None:
        doc = self.store.get(self.collection, item_id, identity)
        return ContentItem.from_document(doc.id, doc.data) if doc else None

    def list_all(self, identity: Identity | None = None) -> list[ContentItem]:
        """All items, newest first (dashboard)."""
        return _to_items(self.store.list(self.all_query(), identity))

    def list_active(self, identity: Identity | None = None) -> list[ContentItem]:
        """Active items, newest first (display rotation order)."""
        return _to_items(self.store.list(self.active_query(), identity))

    def subscribe_active(
        self,
        on_items: ItemsCallback,
        on_error: ErrorCallback | None = None,
        identity: Identity | None = None,
    ) -> Subscription:
        return self.store.subscribe(self.active_query(), lambda snap: on_items(_to_items(snap)), on_error, identity)

    def subscribe_all(
        self,
        on_items: ItemsCallback,
        on_error: ErrorCallback | None = None,
        identity: Identity | None = None,
    ) -> Subscription:
        return self.store.subscribe(self.all_query(), lambda snap: on_items(_to_items(snap)), on_error, identity)

    def watch_active(self, identity: Identity | None = None, heartbeat: float | None = None) -> SnapshotStream:
        return self.store.watch(self.active_query(), identity, heartbeat)

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def _inline_image(self, url: str) -> str:
        """Replace an http(s) image URL with a data URI of its bytes."""
        if not is_http_url(url):
            return url
        result = self._fetch_image(url)
        if not result.success or not result.data_url:
            raise ValidationError(
                f"Could not process image URL: {result.error or 'unknown error'}",
                field="url",
            )
        return result.data_url

    def add(self, data: Mapping[str, Any], identity: Identity | None = None) -> ContentItem:
        cleaned = validate_content_item(data)
        self.store.rules.check("create", self.collection, identity)
        if cleaned["type"] == "image":
            cleaned["url"] = self._inline_image(cleaned["url"])
        item_id = self.store.add(self.collection, cleaned, identity)
        log_event("content_created", item_id=item_id, kind=cleaned["type"])
        created = self.get(item_id, identity)
        if created is None:
            # Deleted again before it could be read back
            raise DocumentNotFoundError(self.collection, item_id)
        return created

    def update(self, item_id: str, data: Mapping[str, Any], identity: Identity | None = None) -> ContentItem:
        cleaned = validate_content_update(data)
        self.store.rules.check("update", f"{self.collection}/{item_id}", identity)
        if "url" in cleaned or cleaned.get("type") == "image":
            existing = self.get(item_id, identity)
            if existing is None:
                raise DocumentNotFoundError(self.collection, item_id)
            kind = cleaned.get("type", existing.type)
            url = cleaned.get("url", existing.url)
            if kind == "image" and is_http_url(url):
                cleaned["url"] = self._inline_image(url)
        doc = self.store.update(self.collection, item_id, cleaned, identity)
        log_event("content_updated", item_id=item_id, fields=sorted(cleaned))
        return ContentItem.from_document(doc.id, doc.data)

    def set_active(self, item_id: str, active: bool, identity: Identity | None = None) -> ContentItem:
        doc = self.store.update(self.collection, item_id, {"active": bool(active)}, identity)
        log_event("content_active_set", item_id=item_id, active=bool(active))
        return ContentItem.from_document(doc.id, doc.data)

    def toggle_active(self, item_id: str, identity: Identity | None = None) -> ContentItem:
        existing = self.get(item_id, identity)
        if existing is None:
            raise DocumentNotFoundError(self.collection, item_id)
        return self.set_active(item_id, not existing.active, identity)

    def delete(self, item_id: str, identity: Identity | None = None) -> None:
        self.store.delete(self.collection, item_id, identity)
        log_event("content_deleted", item_id=item_id)
