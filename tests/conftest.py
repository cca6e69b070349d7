"""
Pytest configuration and shared fixtures for newsboard tests.

Everything runs offline: the document store lives in tmp_path, accounts are
in memory, and image fetch / generation are replaced by fakes.
"""

from __future__ import annotations

from pathlib import Path

import pytest

from newsboard.auth import AuthService
from newsboard.config import settings
from newsboard.documents import DocumentStore
from newsboard.domain import ContentItem, Identity
from newsboard.images import ImageFetchResult
from newsboard.repository import AccountRepo, ContentRepo, TickerRepo
from newsboard.security.rules import default_rules
from newsboard.security.validators import to_data_uri

PNG_BYTES = b"\x89PNG\r\n\x1a\n" + b"\x00" * 16
PNG_DATA_URI = to_data_uri("image/png", PNG_BYTES)


@pytest.fixture(autouse=True)
def fast_password_hashing(monkeypatch):
    monkeypatch.setattr(settings, "password_hash_iterations", 1_000)


@pytest.fixture
def admin() -> Identity:
    return Identity(uid="admin-1", email="admin@example.com", is_admin=True)


@pytest.fixture
def viewer_identity() -> Identity:
    return Identity(uid="user-1", email="viewer@example.com", is_admin=False)


@pytest.fixture
def store(tmp_path: Path) -> DocumentStore:
    return DocumentStore(
        tmp_path / "documents.db",
        rules=default_rules(settings.content_collection, settings.ticker_collection),
    )


class FakeFetcher:
    """Records requested URLs and returns a canned result."""

    def __init__(self, result: ImageFetchResult | None = None) -> None:
        self.result = result or ImageFetchResult(success=True, data_url=PNG_DATA_URI)
        self.calls: list[str] = []

    def __call__(self, url: str) -> ImageFetchResult:
        self.calls.append(url)
        return self.result


@pytest.fixture
def fetcher() -> FakeFetcher:
    return FakeFetcher()


@pytest.fixture
def content_repo(store: DocumentStore, fetcher: FakeFetcher) -> ContentRepo:
    return ContentRepo(store, image_fetcher=fetcher)


@pytest.fixture
def ticker_repo(store: DocumentStore) -> TickerRepo:
    return TickerRepo(store)


@pytest.fixture
def accounts() -> AccountRepo:
    # Empty URL keeps the repo in memory
    return AccountRepo(db_url="")


@pytest.fixture
def auth(accounts: AccountRepo) -> AuthService:
    return AuthService(accounts, session_ttl_seconds=3600)


@pytest.fixture
def make_item():
    def _make(item_id: str, duration=10, *, url: str | None = None, kind: str = "text") -> ContentItem:
        return ContentItem(
            id=item_id,
            url=url or f"https://example.com/{item_id}",
            type=kind,
            duration=duration,
            active=True,
            created_at="2024-01-01T00:00:00+00:00",
        )

    return _make
