"""Tests for the display viewer, its local cache and error events."""

from __future__ import annotations

import json

import pytest

from newsboard.documents import DocumentStore
from newsboard.events import PERMISSION_ERROR, DevErrorListener, ErrorEmitter
from newsboard.exceptions import PermissionDeniedError
from newsboard.repository import ContentRepo, TickerRepo
from newsboard.rotation import ManualScheduler, RotationTimer
from newsboard.security.rules import default_rules
from newsboard.viewer import DisplayViewer, LocalCache, LocalFeed

from conftest import PNG_DATA_URI


def item_payload(**overrides):
    data = {"url": PNG_DATA_URI, "type": "image", "duration": 5, "active": True}
    data.update(overrides)
    return data


@pytest.fixture
def scheduler():
    return ManualScheduler()


@pytest.fixture
def cache(tmp_path):
    return LocalCache(tmp_path / "cache.json", key="screen-1")


@pytest.fixture
def emitter():
    return ErrorEmitter()


@pytest.fixture
def make_viewer(content_repo, ticker_repo, scheduler, cache, emitter):
    def _make(feed=None):
        return DisplayViewer(
            feed or LocalFeed(content_repo, ticker_repo),
            rotation=RotationTimer(scheduler, default_duration=10, settle_delay=0.125),
            cache=cache,
            emitter=emitter,
        )

    return _make


class TestLiveDisplay:
    def test_loading_until_first_snapshot(self, make_viewer):
        viewer = make_viewer()
        state = viewer.state()
        assert state.loading
        assert not state.empty

    def test_empty_state(self, make_viewer):
        viewer = make_viewer()
        viewer.start()
        state = viewer.state()
        assert not state.loading
        assert state.empty
        assert state.item is None
        assert not state.show_ticker

    def test_follows_live_changes(self, make_viewer, content_repo, admin, scheduler):
        viewer = make_viewer()
        viewer.start()

        older = content_repo.add(item_payload(caption="older"), admin)
        newer = content_repo.add(item_payload(caption="newer"), admin)
        state = viewer.state()
        assert state.total == 2
        assert state.item.id == newer.id

        scheduler.advance(5)
        assert viewer.state().item.id == older.id

        content_repo.toggle_active(older.id, admin)
        state = viewer.state()
        assert state.total == 1
        assert state.index == 0
        assert state.item.id == newer.id

        content_repo.delete(newer.id, admin)
        assert viewer.state().empty

    def test_ticker_text(self, make_viewer, ticker_repo, admin):
        viewer = make_viewer()
        viewer.start()
        ticker_repo.add({"text": "First"}, admin)
        ticker_repo.add({"text": "Second"}, admin)
        state = viewer.state()
        assert state.show_ticker
        assert state.ticker_text == "Second ••• First"

    def test_video_items_get_embed_url(self, make_viewer, content_repo, admin):
        viewer = make_viewer()
        viewer.start()
        content_repo.add(item_payload(type="video", url="https://youtu.be/dQw4w9WgXcQ"), admin)
        assert viewer.state().embed_url.startswith("https://www.youtube.com/embed/dQw4w9WgXcQ")

    def test_snapshots_are_cached(self, make_viewer, content_repo, admin, cache):
        viewer = make_viewer()
        viewer.start()
        item = content_repo.add(item_payload(), admin)
        assert [cached.id for cached in cache.load()] == [item.id]

    def test_stop_unsubscribes(self, make_viewer, content_repo, admin, store):
        viewer = make_viewer()
        viewer.start()
        viewer.stop()
        assert store.subscriber_count() == 0
        content_repo.add(item_payload(), admin)
        assert viewer.state().total == 0


class TestOfflineMode:
    def test_offline_shows_cache_and_ignores_updates(self, make_viewer, content_repo, admin):
        viewer = make_viewer()
        viewer.start()
        first = content_repo.add(item_payload(), admin)

        viewer.set_online(False)
        content_repo.add(item_payload(), admin)
        state = viewer.state()
        assert state.offline
        assert [state.item.id] == [first.id]
        assert state.total == 1

        viewer.set_online(True)
        assert viewer.state().total == 2
        assert not viewer.state().offline

    def test_start_offline_uses_cache(self, make_viewer, cache, make_item):
        cache.save([make_item("cached-1"), make_item("cached-2")])
        viewer = make_viewer()
        viewer.set_online(False)
        viewer.start()
        state = viewer.state()
        assert state.total == 2
        assert state.item.id == "cached-1"


class TestPermissionErrors:
    @pytest.fixture
    def closed_feed(self, tmp_path):
        closed = DocumentStore(tmp_path / "closed.db", rules=default_rules())
        return LocalFeed(ContentRepo(closed), TickerRepo(closed))

    def test_denied_listen_falls_back_to_cache_and_emits(self, make_viewer, closed_feed, cache, emitter, make_item):
        cache.save([make_item("cached-1")])
        listener = DevErrorListener(emitter)
        listener.attach()

        viewer = make_viewer(closed_feed)
        viewer.start()

        state = viewer.state()
        assert state.item.id == "cached-1"
        assert state.error == "Missing or insufficient permissions"
        assert state.ticker_text == ""
        assert isinstance(listener.last_error, PermissionDeniedError)
        assert listener.last_error.context()["operation"] == "list"

    def test_denied_listen_without_cache_is_empty(self, make_viewer, closed_feed):
        viewer = make_viewer(closed_feed)
        viewer.start()
        assert viewer.state().empty


class TestEvents:
    def test_dev_listener_raises_in_debug(self):
        emitter = ErrorEmitter()
        error = PermissionDeniedError(path="news", operation="list")
        with DevErrorListener(emitter, raise_errors=True):
            with pytest.raises(PermissionDeniedError):
                emitter.emit(PERMISSION_ERROR, error)

    def test_detach_stops_delivery(self):
        emitter = ErrorEmitter()
        listener = DevErrorListener(emitter)
        with listener:
            pass
        emitter.emit(PERMISSION_ERROR, PermissionDeniedError(path="news", operation="list"))
        assert listener.last_error is None


class TestLocalCache:
    def test_missing_file(self, cache):
        assert cache.load() is None

    def test_save_load_clear(self, cache, make_item):
        cache.save([make_item("a", 7)])
        loaded = cache.load()
        assert loaded[0].id == "a"
        assert loaded[0].duration == 7

        cache.clear()
        assert cache.load() is None

    def test_keys_share_a_file(self, tmp_path, make_item):
        path = tmp_path / "cache.json"
        LocalCache(path, key="one").save([make_item("a")])
        LocalCache(path, key="two").save([make_item("b")])
        assert LocalCache(path, key="one").load()[0].id == "a"
        assert set(json.loads(path.read_text())) == {"one", "two"}

    def test_corrupt_file_ignored(self, tmp_path):
        path = tmp_path / "cache.json"
        path.write_text("{not json")
        assert LocalCache(path).load() is None
