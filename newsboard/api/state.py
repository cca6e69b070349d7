from __future__ import annotations

from dataclasses import dataclass

from newsboard.auth import AuthService
from newsboard.documents import DocumentStore
from newsboard.image_adjuster import ImageAdjuster
from newsboard.images import ImageFetcher, fetch_image_as_data_url
from newsboard.repository import ContentRepo, TickerRepo
from newsboard.security.rate_limit import SQLiteRateLimiter


@dataclass
class AppState:
    store: DocumentStore
    content: ContentRepo
    ticker: TickerRepo
    auth: AuthService
    rate_limiter: SQLiteRateLimiter
    image_fetcher: ImageFetcher = fetch_image_as_data_url
    image_adjuster: ImageAdjuster | None = None
    debug: bool = False

    def get_image_adjuster(self) -> ImageAdjuster:
        if self.image_adjuster is None:
            self.image_adjuster = ImageAdjuster()
        return self.image_adjuster
