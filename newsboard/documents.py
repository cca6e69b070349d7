"""
Live document store backed by SQLite.

Collections of JSON documents with server-assigned ids and timestamps,
filtered/ordered queries, and live subscriptions that push a fresh
snapshot to listeners after every committed write that changes the
query result. Every operation is checked against `AccessRules`.
"""

from __future__ import annotations

import json
import logging
import queue
import sqlite3
import threading
import uuid
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable, Iterator, Optional

from newsboard.domain import Identity
from newsboard.exceptions import DataStoreError, DocumentNotFoundError, NewsboardError
from newsboard.security.rules import AccessRules

logger = logging.getLogger(__name__)

SERVER_FIELDS = ("created_at", "updated_at")
_OPERATORS = ("==", "!=", "<", "<=", ">", ">=")


@dataclass
class Document:
    """A stored document: id plus its data (including server timestamps)."""

    id: str
    data: dict[str, Any]
    seq: int = 0

    def get(self, key: str, default: Any = None) -> Any:
        return self.data.get(key, default)


@dataclass
class Query:
    """
    A collection query.

    filters are `(field, op, value)` triples ANDed together; order_by is
    `(field, descending)`. Ties are broken by insertion order.
    """

    collection: str
    filters: tuple[tuple[str, str, Any], ...] = ()
    order_by: Optional[tuple[str, bool]] = None
    limit: Optional[int] = None

    def __post_init__(self) -> None:
        for _, op, _ in self.filters:
            if op not in _OPERATORS:
                raise ValueError(f"Unsupported filter operator: {op!r}")

    def where(self, field_name: str, op: str, value: Any) -> "Query":
        return Query(self.collection, (*self.filters, (field_name, op, value)), self.order_by, self.limit)

    def matches(self, data: dict[str, Any]) -> bool:
        for field_name, op, value in self.filters:
            current = data.get(field_name)
            try:
                if op == "==" and current != value:
                    return False
                if op == "!=" and current == value:
                    return False
                if op == "<" and not current < value:
                    return False
                if op == "<=" and not current <= value:
                    return False
                if op == ">" and not current > value:
                    return False
                if op == ">=" and not current >= value:
                    return False
            except TypeError:
                return False
        return True

    def apply(self, documents: list[Document]) -> list[Document]:
        result = [doc for doc in documents if self.matches(doc.data)]
        if self.order_by:
            field_name, descending = self.order_by
            result.sort(key=lambda d: (_sort_key(d.data.get(field_name)), d.seq), reverse=descending)
        else:
            result.sort(key=lambda d: d.seq)
        if self.limit is not None:
            result = result[: max(0, int(self.limit))]
        return result


def _sort_key(value: Any) -> tuple[int, Any]:
    # None sorts first, then numbers, then everything else as text
    if value is None:
        return (0, 0)
    if isinstance(value, bool):
        return (1, int(value))
    if isinstance(value, (int, float)):
        return (1, value)
    return (2, str(value))


def server_timestamp() -> str:
    return datetime.now(timezone.utc).isoformat()


Snapshot = list[Document]
SnapshotCallback = Callable[[Snapshot], None]
ErrorCallback = Callable[[NewsboardError], None]


@dataclass(eq=False)
class Subscription:
    """Handle for a live query. `unsubscribe()` is safe to call repeatedly."""

    query: Query
    on_snapshot: SnapshotCallback
    on_error: Optional[ErrorCallback] = None
    identity: Optional[Identity] = None
    _store: Optional["DocumentStore"] = field(default=None, repr=False)
    _last: Optional[list[tuple[str, str]]] = field(default=None, repr=False)
    _last_seq: int = field(default=-1, repr=False)
    _active: bool = field(default=True, repr=False)
    _pending: deque = field(default_factory=deque, repr=False)
    _draining: bool = field(default=False, repr=False)
    _mutex: threading.Lock = field(default_factory=threading.Lock, repr=False)

    @property
    def active(self) -> bool:
        return self._active

    def unsubscribe(self) -> None:
        if not self._active:
            return
        self._active = False
        if self._store is not None:
            self._store._remove_subscription(self)


class SnapshotStream:
    """
    Blocking iterator over the snapshots of a live query.

    Yields `None` when no snapshot arrived within `heartbeat` seconds so
    callers (SSE endpoints) can emit keep-alives. Closing the stream
    unsubscribes from the store.
    """

    _CLOSED = object()

    def __init__(self, heartbeat: Optional[float] = None) -> None:
        self.heartbeat = heartbeat
        self._queue: queue.Queue[Any] = queue.Queue()
        self._subscription: Optional[Subscription] = None
        self._closed = False

    def _push(self, snapshot: Snapshot) -> None:
        self._queue.put(snapshot)

    def _fail(self, error: NewsboardError) -> None:
        self._queue.put(error)

    def __iter__(self) -> Iterator[Optional[Snapshot]]:
        return self

    def __next__(self) -> Optional[Snapshot]:
        if self._closed and self._queue.empty():
            raise StopIteration
        try:
            item = self._queue.get(timeout=self.heartbeat)
        except queue.Empty:
            return None
        if item is self._CLOSED:
            raise StopIteration
        if isinstance(item, NewsboardError):
            self.close()
            raise item
        return item

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        if self._subscription is not None:
            self._subscription.unsubscribe()
        self._queue.put(self._CLOSED)

    def __enter__(self) -> "SnapshotStream":
        return self

    def __exit__(self, *exc: object) -> None:
        self.close()


class DocumentStore:
    """
    SQLite document store with live queries.

    Design goals:
    - Single-file DB (easy deploy + backup)
    - Full JSON blob per document, schemaless like a hosted document DB
    - Listeners see every committed change that affects their query
    """

    def __init__(self, db_path: str | Path = "data/newsboard.db", rules: AccessRules | None = None) -> None:
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self.rules = rules or AccessRules()
        self._lock = threading.RLock()
        self._subscriptions: dict[str, list[Subscription]] = {}
        # Bumped under _lock on every committed write
        self._write_seq = 0
        self._init_db()

    def _conn(self) -> sqlite3.Connection:
        conn = sqlite3.connect(str(self.db_path), timeout=10)
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA journal_mode = WAL;")
        conn.execute("PRAGMA synchronous = NORMAL;")
        return conn

    def _init_db(self) -> None:
        with self._conn() as conn:
            conn.executescript(
                """
                CREATE TABLE IF NOT EXISTS documents (
                    seq INTEGER PRIMARY KEY AUTOINCREMENT,
                    collection TEXT NOT NULL,
                    doc_id TEXT NOT NULL,
                    data_json TEXT NOT NULL,
                    created_at TEXT NOT NULL,
                    updated_at TEXT NOT NULL,
                    UNIQUE (collection, doc_id)
                );

                CREATE INDEX IF NOT EXISTS idx_documents_collection ON documents(collection);
                """
            )

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def _load_collection(self, collection: str) -> list[Document]:
        try:
            with self._conn() as conn:
                rows = conn.execute(
                    "SELECT seq, doc_id, data_json FROM documents WHERE collection = ?",
                    (collection,),
                ).fetchall()
        except sqlite3.Error as exc:
            raise DataStoreError(f"Failed to read collection: {exc}", operation="list", path=collection) from exc
        return [Document(id=row["doc_id"], data=json.loads(row["data_json"]), seq=row["seq"]) for row in rows]

    def _run_query(self, query: Query) -> Snapshot:
        return query.apply(self._load_collection(query.collection))

    def get(self, collection: str, doc_id: str, identity: Identity | None = None) -> Optional[Document]:
        self.rules.check("get", f"{collection}/{doc_id}", identity)
        try:
            with self._conn() as conn:
                row = conn.execute(
                    "SELECT seq, doc_id, data_json FROM documents WHERE collection = ? AND doc_id = ?",
                    (collection, doc_id),
                ).fetchone()
        except sqlite3.Error as exc:
            raise DataStoreError(f"Failed to read document: {exc}", operation="get", path=f"{collection}/{doc_id}") from exc
        if row is None:
            return None
        return Document(id=row["doc_id"], data=json.loads(row["data_json"]), seq=row["seq"])

    def list(self, query: Query, identity: Identity | None = None) -> Snapshot:
        self.rules.check("list", query.collection, identity)
        return self._run_query(query)

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def add(self, collection: str, data: dict[str, Any], identity: Identity | None = None) -> str:
        """Insert a document with a generated id and server timestamps."""
        doc_id = uuid.uuid4().hex[:20]
        path = f"{collection}/{doc_id}"
        self.rules.check("create", path, identity)

        now = server_timestamp()
        payload = {k: v for k, v in data.items() if k not in SERVER_FIELDS and k != "id"}
        payload["created_at"] = now
        payload["updated_at"] = now
        with self._lock:
            try:
                with self._conn() as conn:
                    conn.execute(
                        """
                        INSERT INTO documents (collection, doc_id, data_json, created_at, updated_at)
                        VALUES (?, ?, ?, ?, ?)
                        """,
                        (collection, doc_id, json.dumps(payload, ensure_ascii=False), now, now),
                    )
            except sqlite3.Error as exc:
                raise DataStoreError(f"Failed to create document: {exc}", operation="create", path=path) from exc
            seq = self._next_write_seq()
        logger.info("Document created", extra={"path": path})
        self._notify(collection, seq)
        return doc_id

    def update(
        self,
        collection: str,
        doc_id: str,
        fields: dict[str, Any],
        identity: Identity | None = None,
    ) -> Document:
        """Merge `fields` into an existing document."""
        path = f"{collection}/{doc_id}"
        self.rules.check("update", path, identity)

        with self._lock:
            existing = self.get(collection, doc_id, identity)
            if existing is None:
                raise DocumentNotFoundError(collection, doc_id)
            merged = dict(existing.data)
            merged.update({k: v for k, v in fields.items() if k not in SERVER_FIELDS and k != "id"})
            merged["updated_at"] = server_timestamp()
            try:
                with self._conn() as conn:
                    conn.execute(
                        "UPDATE documents SET data_json = ?, updated_at = ? WHERE collection = ? AND doc_id = ?",
                        (json.dumps(merged, ensure_ascii=False), merged["updated_at"], collection, doc_id),
                    )
            except sqlite3.Error as exc:
                raise DataStoreError(f"Failed to update document: {exc}", operation="update", path=path) from exc
            seq = self._next_write_seq()
        logger.info("Document updated", extra={"path": path})
        self._notify(collection, seq)
        return Document(id=doc_id, data=merged, seq=existing.seq)

    def delete(self, collection: str, doc_id: str, identity: Identity | None = None) -> None:
        path = f"{collection}/{doc_id}"
        self.rules.check("delete", path, identity)

        with self._lock:
            try:
                with self._conn() as conn:
                    cursor = conn.execute(
                        "DELETE FROM documents WHERE collection = ? AND doc_id = ?",
                        (collection, doc_id),
                    )
            except sqlite3.Error as exc:
                raise DataStoreError(f"Failed to delete document: {exc}", operation="delete", path=path) from exc
            if cursor.rowcount == 0:
                raise DocumentNotFoundError(collection, doc_id)
            seq = self._next_write_seq()
        logger.info("Document deleted", extra={"path": path})
        self._notify(collection, seq)

    # ------------------------------------------------------------------
    # Live queries
    # ------------------------------------------------------------------

    def subscribe(
        self,
        query: Query,
        on_snapshot: SnapshotCallback,
        on_error: ErrorCallback | None = None,
        identity: Identity | None = None,
    ) -> Subscription:
        """
        Listen to a query.

        The current result is delivered before this returns (unless another
        thread is already delivering a newer one to it); afterwards a new
        snapshot is delivered after each write that changes it. When the
        rules deny the listen, `on_error` receives the PermissionDeniedError
        and no snapshot is ever delivered (without an `on_error`, the error
        is raised).
        """
        subscription = Subscription(query, on_snapshot, on_error, identity, _store=self)
        try:
            self.rules.check("list", query.collection, identity)
        except NewsboardError as exc:
            self._reject(subscription, exc)
            return subscription

        # Register before reading so no write can fall between the two
        with self._lock:
            self._subscriptions.setdefault(query.collection, []).append(subscription)
            seq = self._write_seq
        try:
            snapshot = self._run_query(query)
        except NewsboardError as exc:
            self._reject(subscription, exc)
            return subscription
        self._deliver(subscription, snapshot, seq)
        return subscription

    def _reject(self, subscription: Subscription, error: NewsboardError) -> None:
        subscription.unsubscribe()
        if subscription.on_error is None:
            raise error
        subscription.on_error(error)

    def watch(
        self,
        query: Query,
        identity: Identity | None = None,
        heartbeat: float | None = None,
    ) -> SnapshotStream:
        """Iterate a live query's snapshots. See `SnapshotStream`."""
        stream = SnapshotStream(heartbeat=heartbeat)
        stream._subscription = self.subscribe(query, stream._push, stream._fail, identity)
        return stream

    def subscriber_count(self, collection: str | None = None) -> int:
        with self._lock:
            if collection is not None:
                return len(self._subscriptions.get(collection, []))
            return sum(len(subs) for subs in self._subscriptions.values())

    def _remove_subscription(self, subscription: Subscription) -> None:
        with self._lock:
            subs = self._subscriptions.get(subscription.query.collection, [])
            if subscription in subs:
                subs.remove(subscription)

    def _next_write_seq(self) -> int:
        with self._lock:
            self._write_seq += 1
            return self._write_seq

    def _notify(self, collection: str, seq: int) -> None:
        with self._lock:
            subscriptions = list(self._subscriptions.get(collection, []))
        if not subscriptions:
            return
        # Loaded after write `seq` committed, so it reflects every write up to it
        documents = self._load_collection(collection)
        for subscription in subscriptions:
            if subscription.active:
                self._deliver(subscription, subscription.query.apply(documents), seq)

    @staticmethod
    def _fingerprint(snapshot: Snapshot) -> list[tuple[str, str]]:
        return [(doc.id, json.dumps(doc.data, sort_keys=True, default=str)) for doc in snapshot]

    def _deliver(self, subscription: Subscription, snapshot: Snapshot, seq: int) -> None:
        """
        Queue a snapshot read at write sequence `seq` for a listener.

        One thread at a time drains a subscription's queue, so callbacks for
        a listener never overlap and never run under a store lock. Snapshots
        read before the last delivered one are dropped as stale.
        """
        with subscription._mutex:
            subscription._pending.append((seq, snapshot))
            if subscription._draining:
                return
            subscription._draining = True

        while True:
            with subscription._mutex:
                if not subscription._pending:
                    subscription._draining = False
                    return
                seq, snapshot = subscription._pending.popleft()
                if not subscription.active or seq < subscription._last_seq:
                    continue
                fingerprint = self._fingerprint(snapshot)
                subscription._last_seq = seq
                if fingerprint == subscription._last:
                    continue
                subscription._last = fingerprint
            try:
                subscription.on_snapshot(snapshot)
            except Exception:
                # One broken listener must not stop delivery to the others
                logger.exception("Snapshot listener failed", extra={"collection": subscription.query.collection})
