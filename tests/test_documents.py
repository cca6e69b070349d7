"""Tests for the SQLite document store and its live queries."""

from __future__ import annotations

import threading

import pytest

from newsboard.documents import DocumentStore, Query
from newsboard.exceptions import DocumentNotFoundError, PermissionDeniedError
from newsboard.security.rules import AccessRules, default_rules


class TestCrud:
    def test_add_sets_server_timestamps(self, store, admin):
        doc_id = store.add("news", {"url": "u", "created_at": "spoofed", "id": "spoofed"}, admin)
        doc = store.get("news", doc_id)
        assert doc is not None
        assert doc.get("url") == "u"
        assert doc.get("created_at") != "spoofed"
        assert "id" not in doc.data
        assert doc.get("created_at") == doc.get("updated_at")

    def test_get_missing_returns_none(self, store):
        assert store.get("news", "missing") is None

    def test_update_merges_fields(self, store, admin):
        doc_id = store.add("news", {"url": "u", "duration": 5}, admin)
        created = store.get("news", doc_id).get("created_at")

        updated = store.update("news", doc_id, {"duration": 8, "created_at": "ignored"}, admin)

        assert updated.get("url") == "u"
        assert updated.get("duration") == 8
        assert updated.get("created_at") == created
        assert store.get("news", doc_id).get("duration") == 8

    def test_update_missing_raises(self, store, admin):
        with pytest.raises(DocumentNotFoundError):
            store.update("news", "missing", {"duration": 1}, admin)

    def test_delete(self, store, admin):
        doc_id = store.add("news", {"url": "u"}, admin)
        store.delete("news", doc_id, admin)
        assert store.get("news", doc_id) is None
        with pytest.raises(DocumentNotFoundError):
            store.delete("news", doc_id, admin)


class TestQueries:
    def test_filter_and_order(self, store, admin):
        store.add("news", {"n": 1, "active": True}, admin)
        store.add("news", {"n": 3, "active": False}, admin)
        store.add("news", {"n": 2, "active": True}, admin)

        query = Query("news", order_by=("n", True)).where("active", "==", True)
        assert [doc.get("n") for doc in store.list(query)] == [2, 1]

    def test_ties_keep_insertion_order(self, store, admin):
        for name in ("a", "b", "c"):
            store.add("news", {"name": name, "rank": 1}, admin)
        query = Query("news", order_by=("rank", False))
        assert [doc.get("name") for doc in store.list(query)] == ["a", "b", "c"]

    def test_limit(self, store, admin):
        for n in range(5):
            store.add("news", {"n": n}, admin)
        assert len(store.list(Query("news", limit=2))) == 2

    def test_mismatched_types_do_not_match(self, store, admin):
        store.add("news", {"n": "text"}, admin)
        assert store.list(Query("news", filters=(("n", ">", 3),))) == []

    def test_unsupported_operator(self):
        with pytest.raises(ValueError):
            Query("news", filters=(("n", "in", [1]),))


class TestRules:
    def test_public_read_but_admin_only_writes(self, store, viewer_identity):
        assert store.list(Query("news")) == []
        with pytest.raises(PermissionDeniedError) as exc_info:
            store.add("news", {"url": "u"}, viewer_identity)
        assert exc_info.value.operation == "create"
        assert exc_info.value.path.startswith("news/")
        assert exc_info.value.uid == "user-1"

    def test_anonymous_write_denied(self, store):
        with pytest.raises(PermissionDeniedError):
            store.delete("news", "abc")

    def test_unknown_collection_closed(self, store, viewer_identity, admin):
        with pytest.raises(PermissionDeniedError):
            store.list(Query("secrets"), viewer_identity)
        assert store.list(Query("secrets"), admin) == []

    def test_closed_rules_deny_reads(self, tmp_path):
        closed = DocumentStore(tmp_path / "closed.db", rules=AccessRules())
        with pytest.raises(PermissionDeniedError) as exc_info:
            closed.get("news", "x")
        assert exc_info.value.context() == {"operation": "get", "path": "news/x", "uid": None}

    def test_default_rules(self):
        rules = default_rules("news")
        assert rules.allows("list", "news", None)
        assert not rules.allows("update", "news", None)


class TestSubscriptions:
    def test_initial_snapshot_then_changes(self, store, admin):
        snapshots = []
        store.subscribe(Query("news"), snapshots.append)
        assert snapshots == [[]]

        doc_id = store.add("news", {"url": "u"}, admin)
        assert [doc.id for doc in snapshots[-1]] == [doc_id]

        store.delete("news", doc_id, admin)
        assert snapshots[-1] == []
        assert len(snapshots) == 3

    def test_unchanged_result_not_redelivered(self, store, admin):
        snapshots = []
        store.subscribe(Query("news").where("active", "==", True), snapshots.append)
        store.add("news", {"active": False}, admin)
        assert len(snapshots) == 1

    def test_unsubscribe_stops_delivery(self, store, admin):
        snapshots = []
        subscription = store.subscribe(Query("news"), snapshots.append)
        subscription.unsubscribe()
        subscription.unsubscribe()
        store.add("news", {"url": "u"}, admin)
        assert len(snapshots) == 1
        assert store.subscriber_count("news") == 0

    def test_denied_listen_reports_error(self, tmp_path):
        closed = DocumentStore(tmp_path / "closed.db", rules=AccessRules())
        snapshots, errors = [], []
        subscription = closed.subscribe(Query("news"), snapshots.append, errors.append)
        assert snapshots == []
        assert isinstance(errors[0], PermissionDeniedError)
        assert errors[0].operation == "list"
        assert not subscription.active

    def test_denied_listen_without_handler_raises(self, tmp_path):
        closed = DocumentStore(tmp_path / "closed.db", rules=AccessRules())
        with pytest.raises(PermissionDeniedError):
            closed.subscribe(Query("news"), lambda snapshot: None)

    def test_broken_listener_does_not_block_others(self, store, admin):
        seen = []

        def broken(snapshot):
            if snapshot:
                raise RuntimeError("listener bug")

        store.subscribe(Query("news"), broken)
        store.subscribe(Query("news"), seen.append)
        store.add("news", {"url": "u"}, admin)
        assert len(seen) == 2

    def test_other_collections_not_notified(self, store, admin):
        snapshots = []
        store.subscribe(Query("news"), snapshots.append)
        store.add("tickerMessages", {"text": "hi"}, admin)
        assert len(snapshots) == 1

    def test_slow_concurrent_write_never_overwrites_newer_snapshot(self, store, admin, monkeypatch):
        seen = []
        store.subscribe(Query("news"), lambda snapshot: seen.append([doc.get("name") for doc in snapshot]))

        load_collection = store._load_collection
        first_loaded = threading.Event()
        second_done = threading.Event()

        def slow_for_first_writer(collection):
            documents = load_collection(collection)
            if threading.current_thread().name == "first-writer":
                first_loaded.set()
                second_done.wait(timeout=5)
            return documents

        monkeypatch.setattr(store, "_load_collection", slow_for_first_writer)
        first = threading.Thread(target=store.add, args=("news", {"name": "a"}, admin), name="first-writer")
        first.start()
        assert first_loaded.wait(timeout=5)

        store.add("news", {"name": "b"}, admin)
        second_done.set()
        first.join(timeout=5)

        assert seen == [[], ["a", "b"]]

    def test_write_during_subscribe_is_not_lost(self, store, admin, monkeypatch):
        store.add("news", {"name": "a"}, admin)
        run_query = store._run_query

        def write_after_reading(query):
            snapshot = run_query(query)
            store.add("news", {"name": "b"}, admin)
            return snapshot

        monkeypatch.setattr(store, "_run_query", write_after_reading)
        seen = []
        store.subscribe(Query("news"), lambda snapshot: seen.append([doc.get("name") for doc in snapshot]))

        assert seen == [["a", "b"]]


class TestSnapshotStream:
    def test_yields_snapshots_in_order(self, store, admin):
        stream = store.watch(Query("news"), heartbeat=1.0)
        store.add("news", {"url": "u"}, admin)

        first = next(stream)
        second = next(stream)
        assert first == []
        assert len(second) == 1
        stream.close()
        assert store.subscriber_count("news") == 0

    def test_heartbeat_yields_none(self, store):
        with store.watch(Query("news"), heartbeat=0.05) as stream:
            assert next(stream) == []
            assert next(stream) is None

    def test_close_ends_iteration(self, store):
        stream = store.watch(Query("news"), heartbeat=0.05)
        next(stream)
        stream.close()
        assert list(stream) == []

    def test_denied_watch_raises_on_iteration(self, tmp_path):
        closed = DocumentStore(tmp_path / "closed.db", rules=AccessRules())
        stream = closed.watch(Query("news"), heartbeat=0.05)
        with pytest.raises(PermissionDeniedError):
            next(stream)

    def test_cross_thread_delivery(self, store, admin):
        stream = store.watch(Query("news"), heartbeat=2.0)
        next(stream)
        writer = threading.Thread(target=store.add, args=("news", {"url": "u"}, admin))
        writer.start()
        writer.join()
        assert len(next(stream)) == 1
        stream.close()
