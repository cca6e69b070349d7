"""Tests for the content item repository."""

from __future__ import annotations

import pytest

from newsboard.exceptions import DocumentNotFoundError, PermissionDeniedError, ValidationError
from newsboard.images import ImageFetchResult
from newsboard.repository import content as content_repo_module

from conftest import PNG_DATA_URI


def image_payload(**overrides):
    data = {"url": "https://cdn.example.com/a.png", "type": "image", "duration": 8, "active": True}
    data.update(overrides)
    return data


class TestAdd:
    def test_remote_image_is_inlined(self, content_repo, fetcher, admin):
        item = content_repo.add(image_payload(), admin)
        assert fetcher.calls == ["https://cdn.example.com/a.png"]
        assert item.url == PNG_DATA_URI
        assert item.type == "image"
        assert item.duration == 8
        assert item.created_at

    def test_data_uri_stored_as_is(self, content_repo, fetcher, admin):
        item = content_repo.add(image_payload(url=PNG_DATA_URI), admin)
        assert fetcher.calls == []
        assert item.url == PNG_DATA_URI

    def test_non_image_urls_not_fetched(self, content_repo, fetcher, admin):
        item = content_repo.add(image_payload(type="text", url="https://news.example.com"), admin)
        assert fetcher.calls == []
        assert item.url == "https://news.example.com"

    def test_failed_fetch_rejects_write(self, content_repo, fetcher, admin):
        fetcher.result = ImageFetchResult(success=False, error="HTTP 404")
        with pytest.raises(ValidationError) as exc_info:
            content_repo.add(image_payload(), admin)
        assert exc_info.value.field == "url"
        assert "Could not process image URL: HTTP 404" in exc_info.value.message
        assert content_repo.list_all(admin) == []

    def test_non_admin_denied_before_fetch(self, content_repo, fetcher, viewer_identity):
        with pytest.raises(PermissionDeniedError):
            content_repo.add(image_payload(), viewer_identity)
        assert fetcher.calls == []

    def test_validation_runs_before_permission_check(self, content_repo):
        with pytest.raises(ValidationError):
            content_repo.add(image_payload(duration=0), None)


class TestQueries:
    def test_active_items_newest_first(self, content_repo, admin):
        first = content_repo.add(image_payload(url=PNG_DATA_URI, caption="first"), admin)
        content_repo.add(image_payload(url=PNG_DATA_URI, active=False), admin)
        third = content_repo.add(image_payload(url=PNG_DATA_URI, caption="third"), admin)

        active = content_repo.list_active()
        assert [item.id for item in active] == [third.id, first.id]
        assert len(content_repo.list_all(admin)) == 3

    def test_get_missing(self, content_repo):
        assert content_repo.get("missing") is None

    def test_subscribe_active_sees_toggle(self, content_repo, admin):
        seen = []
        content_repo.subscribe_active(seen.append)
        item = content_repo.add(image_payload(url=PNG_DATA_URI), admin)
        content_repo.toggle_active(item.id, admin)

        assert [len(items) for items in seen] == [0, 1, 0]


class TestUpdate:
    def test_partial_update_keeps_other_fields(self, content_repo, admin):
        item = content_repo.add(image_payload(url=PNG_DATA_URI, caption="Hello"), admin)
        updated = content_repo.update(item.id, {"duration": 20}, admin)
        assert updated.duration == 20
        assert updated.caption == "Hello"
        assert updated.url == PNG_DATA_URI

    def test_new_remote_image_url_is_inlined(self, content_repo, fetcher, admin):
        item = content_repo.add(image_payload(url=PNG_DATA_URI), admin)
        updated = content_repo.update(item.id, {"url": "https://cdn.example.com/b.png"}, admin)
        assert fetcher.calls == ["https://cdn.example.com/b.png"]
        assert updated.url == PNG_DATA_URI

    def test_switching_to_image_inlines_existing_url(self, content_repo, fetcher, admin):
        item = content_repo.add(image_payload(type="text", url="https://cdn.example.com/c.png"), admin)
        content_repo.update(item.id, {"type": "image"}, admin)
        assert fetcher.calls == ["https://cdn.example.com/c.png"]

    def test_update_missing_item(self, content_repo, admin):
        with pytest.raises(DocumentNotFoundError):
            content_repo.update("missing", {"url": "https://cdn.example.com/x.png"}, admin)

    def test_non_admin_update_denied(self, content_repo, admin, viewer_identity):
        item = content_repo.add(image_payload(url=PNG_DATA_URI), admin)
        with pytest.raises(PermissionDeniedError) as exc_info:
            content_repo.update(item.id, {"duration": 3}, viewer_identity)
        assert exc_info.value.path == f"news/{item.id}"


class TestToggleDelete:
    def test_toggle_flips_active(self, content_repo, admin):
        item = content_repo.add(image_payload(url=PNG_DATA_URI), admin)
        assert content_repo.toggle_active(item.id, admin).active is False
        assert content_repo.toggle_active(item.id, admin).active is True

    def test_toggle_missing(self, content_repo, admin):
        with pytest.raises(DocumentNotFoundError):
            content_repo.toggle_active("missing", admin)

    def test_delete(self, content_repo, admin):
        item = content_repo.add(image_payload(url=PNG_DATA_URI), admin)
        content_repo.delete(item.id, admin)
        assert content_repo.get(item.id) is None

    def test_anonymous_delete_denied(self, content_repo, admin):
        item = content_repo.add(image_payload(url=PNG_DATA_URI), admin)
        with pytest.raises(PermissionDeniedError) as exc_info:
            content_repo.delete(item.id)
        assert exc_info.value.operation == "delete"


class TestWriteEvents:
    def test_writes_emit_structured_events(self, content_repo, admin, monkeypatch):
        events = []
        monkeypatch.setattr(content_repo_module, "log_event", lambda name, **fields: events.append((name, fields)))

        item = content_repo.add(image_payload(url=PNG_DATA_URI), admin)
        content_repo.update(item.id, {"duration": 12}, admin)
        content_repo.set_active(item.id, False, admin)
        content_repo.delete(item.id, admin)

        assert [name for name, _ in events] == [
            "content_created",
            "content_updated",
            "content_active_set",
            "content_deleted",
        ]
        assert events[0][1] == {"item_id": item.id, "kind": "image"}
        assert events[1][1]["fields"] == ["duration"]

    def test_item_gone_before_read_back(self, content_repo, admin, monkeypatch):
        monkeypatch.setattr(content_repo, "get", lambda item_id, identity=None: None)
        with pytest.raises(DocumentNotFoundError):
            content_repo.add(image_payload(url=PNG_DATA_URI), admin)
