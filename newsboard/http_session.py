"""Shared requests session factory used by the image fetcher and the API client."""

from __future__ import annotations

from typing import Iterable, Optional

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry


def get_requests_session(
    *,
    retries: int = 3,
    backoff_factor: float = 1.0,
    status_forcelist: Iterable[int] = (502, 503, 504),
    user_agent: Optional[str] = None,
) -> requests.Session:
    """Creates a requests session that retries idempotent GETs on gateway errors."""
    session = requests.Session()
    retry_strategy = Retry(
        total=retries,
        backoff_factor=backoff_factor,
        status_forcelist=list(status_forcelist),
        allowed_methods=["GET"],
    )
    adapter = HTTPAdapter(max_retries=retry_strategy)
    session.mount("http://", adapter)
    session.mount("https://", adapter)
    if user_agent:
        session.headers["User-Agent"] = user_agent
    return session
