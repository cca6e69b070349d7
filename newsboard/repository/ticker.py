"""Ticker message repository over the `tickerMessages` collection."""

from __future__ import annotations

from typing import Any, Callable, Mapping

from newsboard.config import settings
from newsboard.documents import Document, DocumentStore, ErrorCallback, Query, SnapshotStream, Subscription
from newsboard.domain import Identity, TickerMessage
from newsboard.exceptions import DocumentNotFoundError
from newsboard.logging_config import log_event
from newsboard.validation import validate_ticker_message

MessagesCallback = Callable[[list[TickerMessage]], None]


def _to_messages(snapshot: list[Document]) -> list[TickerMessage]:
    return [TickerMessage.from_document(doc.id, doc.data) for doc in snapshot]


class TickerRepo:
    def __init__(self, store: DocumentStore, *, collection: str | None = None) -> None:
        self.store = store
        self.collection = collection or settings.ticker_collection

    def query(self) -> Query:
        return Query(self.collection, order_by=("created_at", True))

    def get(self, message_id: str, identity: Identity | None = None) -> TickerMessage | None:
        doc = self.store.get(self.collection, message_id, identity)
        return TickerMessage.from_document(doc.id, doc.data) if doc else None

    def list_all(self, identity: Identity | None = None) -> list[TickerMessage]:
        return _to_messages(self.store.list(self.query(), identity))

    def subscribe(
        self,
        on_messages: MessagesCallback,
        on_error: ErrorCallback | None = None,
        identity: Identity | None = None,
    ) -> Subscription:
        return self.store.subscribe(self.query(), lambda snap: on_messages(_to_messages(snap)), on_error, identity)

    def watch(self, identity: Identity | None = None, heartbeat: float | None = None) -> SnapshotStream:
        return self.store.watch(self.query(), identity, heartbeat)

    def add(self, data: Mapping[str, Any], identity: Identity | None = None) -> TickerMessage:
        cleaned = validate_ticker_message(data)
        message_id = self.store.add(self.collection, cleaned, identity)
        log_event("ticker_created", message_id=message_id)
        created = self.get(message_id, identity)
        if created is None:
            raise DocumentNotFoundError(self.collection, message_id)
        return created

    def update(self, message_id: str, data: Mapping[str, Any], identity: Identity | None = None) -> TickerMessage:
        cleaned = validate_ticker_message(data)
        doc = self.store.update(self.collection, message_id, cleaned, identity)
        log_event("ticker_updated", message_id=message_id)
        return TickerMessage.from_document(doc.id, doc.data)

    def delete(self, message_id: str, identity: Identity | None = None) -> None:
        self.store.delete(self.collection, message_id, identity)
        log_event("ticker_deleted", message_id=message_id)
