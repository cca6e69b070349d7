"""
Server-side rate limiting using SQLite-based storage.

Protects the generative image endpoint, which is slow and billed per call.
Uses SQLite storage to avoid a Redis dependency for simple deployments.
"""

from __future__ import annotations

import hashlib
import sqlite3
import threading
import time
from dataclasses import dataclass
from pathlib import Path


@dataclass
class RateLimitConfig:
    """Configuration for rate limiting."""

    requests_per_window: int = 10
    window_seconds: int = 60
    cleanup_interval: int = 300  # Clean up old entries every 5 minutes


class SQLiteRateLimiter:
    """
    SQLite-based sliding-window rate limiter.

    Thread-safe, with one connection per thread and WAL mode.

    Example:
        limiter = SQLiteRateLimiter(Path("data/.rate_limits.db"))
        allowed, retry_after = limiter.check_rate_limit("client_id")
        if not allowed:
            raise RateLimitError(retry_after=retry_after)
    """

    def __init__(self, storage_path: str | Path, config: RateLimitConfig | None = None):
        cfg = config or RateLimitConfig()
        self.storage_path = Path(storage_path)
        self.storage_path.parent.mkdir(parents=True, exist_ok=True)
        self.requests_per_window = cfg.requests_per_window
        self.window_seconds = cfg.window_seconds
        self.cleanup_interval = cfg.cleanup_interval
        self._local = threading.local()
        self._lock = threading.Lock()
        self._last_cleanup = time.time()
        self._init_db()

    def _get_conn(self) -> sqlite3.Connection:
        """Get thread-local SQLite connection."""
        if not hasattr(self._local, "conn"):
            self._local.conn = sqlite3.connect(
                str(self.storage_path),
                check_same_thread=False,
                timeout=10.0,
            )
            self._local.conn.execute("PRAGMA journal_mode=WAL")
            self._local.conn.execute("PRAGMA busy_timeout=10000")
        return self._local.conn

    def _init_db(self) -> None:
        conn = self._get_conn()
        conn.execute("""
            CREATE TABLE IF NOT EXISTS rate_limit_requests (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                client_id TEXT NOT NULL,
                timestamp REAL NOT NULL
            )
        """)
        conn.execute("CREATE INDEX IF NOT EXISTS idx_client_timestamp ON rate_limit_requests(client_id, timestamp)")
        conn.commit()

    @staticmethod
    def _get_client_id(identifier: str) -> str:
        """Hash identifiers so raw IPs/user ids are never stored."""
        return hashlib.sha256(identifier.encode()).hexdigest()

    def _cleanup_old_entries(self, now: float) -> None:
        conn = self._get_conn()
        conn.execute("DELETE FROM rate_limit_requests WHERE timestamp < ?", (now - self.window_seconds * 2,))
        conn.commit()
        self._last_cleanup = now

    def check_rate_limit(self, client_identifier: str, *, cost: int = 1) -> tuple[bool, int]:
        """
        Check if a request should be rate limited, recording it if allowed.

        Returns:
            (allowed, retry_after_seconds)
        """
        client_id = self._get_client_id(client_identifier)
        now = time.time()

        with self._lock:
            if now - self._last_cleanup >= self.cleanup_interval:
                self._cleanup_old_entries(now)

            conn = self._get_conn()
            window_start = now - self.window_seconds
            current_count = conn.execute(
                "SELECT COUNT(*) FROM rate_limit_requests WHERE client_id = ? AND timestamp > ?",
                (client_id, window_start),
            ).fetchone()[0]

            if current_count + cost > self.requests_per_window:
                oldest = conn.execute(
                    "SELECT MIN(timestamp) FROM rate_limit_requests WHERE client_id = ? AND timestamp > ?",
                    (client_id, window_start),
                ).fetchone()[0]
                if oldest:
                    retry_after = max(1, int(oldest + self.window_seconds - now) + 1)
                else:
                    retry_after = self.window_seconds
                return False, retry_after

            conn.executemany(
                "INSERT INTO rate_limit_requests (client_id, timestamp) VALUES (?, ?)",
                [(client_id, now)] * cost,
            )
            conn.commit()
            return True, 0

    def reset_rate_limit(self, client_identifier: str) -> None:
        conn = self._get_conn()
        conn.execute("DELETE FROM rate_limit_requests WHERE client_id = ?", (self._get_client_id(client_identifier),))
        conn.commit()

    def reset_all(self) -> None:
        """Reset all rate limits. Useful for testing."""
        conn = self._get_conn()
        conn.execute("DELETE FROM rate_limit_requests")
        conn.commit()
