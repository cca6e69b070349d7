"""
Newsboard - Configuration Management
====================================
Centralized configuration with environment variable support.

Usage:
    from newsboard.config import settings

    db_path = settings.documents_db_path
    default_duration = settings.default_duration_seconds
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path

logger = logging.getLogger(__name__)


@dataclass
class Settings:
    """Application settings with environment variable overrides."""

    # Paths
    documents_db_path: Path = field(default_factory=lambda: Path("data/newsboard.db"))
    display_cache_path: Path = field(default_factory=lambda: Path("data/.display_cache.json"))
    rate_limit_db_path: Path = field(default_factory=lambda: Path("data/.rate_limits.db"))

    # Collections
    content_collection: str = "news"
    ticker_collection: str = "tickerMessages"

    # Accounts (PostgreSQL). Empty means in-memory accounts only.
    accounts_db_url: str | None = None
    session_ttl_seconds: int = 60 * 60 * 12  # 12 hours
    password_hash_iterations: int = 240_000

    # Rotation
    default_duration_seconds: int = 10
    pointer_settle_seconds: float = 0.1
    display_cache_key: str = "newsboard_display_cache"

    # Content limits
    max_ticker_chars: int = 200
    max_caption_chars: int = 200

    # Image fetching
    image_fetch_timeout_seconds: int = 15
    max_image_bytes: int = 8_000_000
    image_fetch_user_agent: str = (
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/124.0 Safari/537.36"
    )

    # Generative image adjustment
    openai_image_model: str = "gpt-image-1"
    image_adjust_timeout_seconds: int = 120
    default_aspect_ratio: str = "9:16"

    # Rate limiting (AI image adjustment)
    rate_limit_requests: int = 10
    rate_limit_window_seconds: int = 60

    # Circuit breakers
    circuit_breaker_image_failure_threshold: int = 3
    circuit_breaker_image_timeout_seconds: int = 60

    # Live streams (SSE)
    stream_heartbeat_seconds: float = 15.0

    # Reverse proxy / client IP extraction
    trust_proxy_headers: bool = False
    trusted_proxy_ips: set[str] = field(default_factory=set)

    # CORS configuration
    # Set NEWSBOARD_CORS_ALLOW_ORIGINS to a comma-separated list of allowed origins
    cors_allow_origins: set[str] = field(
        default_factory=lambda: {
            "http://localhost",
            "http://localhost:8501",  # Streamlit default
            "http://127.0.0.1",
            "http://127.0.0.1:8501",
        }
    )
    cors_max_age: int = 600

    # UI
    api_url: str = "http://localhost:8000"
    site_name: str = "Newsboard"

    # Feature flags
    enable_image_adjuster: bool = True
    debug_mode: bool = False

    def __post_init__(self):
        """Load overrides from environment variables."""
        self._load_env_overrides()

    def _load_env_overrides(self):
        """Load configuration from environment variables."""
        # Paths
        if db_path := os.environ.get("NEWSBOARD_DB_PATH"):
            self.documents_db_path = Path(db_path)
        if cache_path := os.environ.get("NEWSBOARD_DISPLAY_CACHE_PATH"):
            self.display_cache_path = Path(cache_path)
        if rate_db := os.environ.get("NEWSBOARD_RATE_LIMIT_DB_PATH"):
            self.rate_limit_db_path = Path(rate_db)

        # Accounts
        if accounts_url := os.environ.get("NEWSBOARD_ACCOUNTS_DB_URL"):
            self.accounts_db_url = accounts_url
        if ttl := os.environ.get("NEWSBOARD_SESSION_TTL_SECONDS"):
            self.session_ttl_seconds = int(ttl)

        # Rotation
        if duration := os.environ.get("NEWSBOARD_DEFAULT_DURATION"):
            self.default_duration_seconds = int(duration)
        if settle := os.environ.get("NEWSBOARD_POINTER_SETTLE_SECONDS"):
            self.pointer_settle_seconds = float(settle)

        # Image handling
        if fetch_timeout := os.environ.get("NEWSBOARD_IMAGE_FETCH_TIMEOUT"):
            self.image_fetch_timeout_seconds = int(fetch_timeout)
        if max_bytes := os.environ.get("NEWSBOARD_MAX_IMAGE_BYTES"):
            self.max_image_bytes = int(max_bytes)
        if model := os.environ.get("OPENAI_IMAGE_MODEL"):
            self.openai_image_model = model
        if ratio := os.environ.get("NEWSBOARD_ASPECT_RATIO"):
            self.default_aspect_ratio = ratio

        # Rate limiting
        if rate_limit := os.environ.get("RATE_LIMIT_REQUESTS"):
            self.rate_limit_requests = int(rate_limit)
        if window := os.environ.get("RATE_LIMIT_WINDOW"):
            self.rate_limit_window_seconds = int(window)

        # Streams
        if heartbeat := os.environ.get("NEWSBOARD_STREAM_HEARTBEAT"):
            self.stream_heartbeat_seconds = float(heartbeat)

        # Reverse proxy / headers
        if os.environ.get("TRUST_PROXY_HEADERS", "").lower() in ("1", "true", "yes"):
            self.trust_proxy_headers = True
        if trusted := os.environ.get("TRUSTED_PROXY_IPS", "").strip():
            self.trusted_proxy_ips = {ip.strip() for ip in trusted.split(",") if ip.strip()}

        # CORS configuration
        if cors_origins := os.environ.get("NEWSBOARD_CORS_ALLOW_ORIGINS", "").strip():
            if cors_origins == "*":
                logger.warning(
                    "NEWSBOARD_CORS_ALLOW_ORIGINS set to '*' - allowing all origins. "
                    "This should only be used in development."
                )
                self.cors_allow_origins = {"*"}
            else:
                self.cors_allow_origins = {origin.strip() for origin in cors_origins.split(",") if origin.strip()}

        # UI
        if api_url := os.environ.get("NEWSBOARD_API_URL"):
            self.api_url = api_url

        # Feature flags
        if os.environ.get("DISABLE_IMAGE_ADJUSTER", "").lower() in ("1", "true"):
            self.enable_image_adjuster = False
        if os.environ.get("DEBUG", "").lower() in ("1", "true"):
            self.debug_mode = True

    @property
    def openai_api_key(self) -> str | None:
        """Get OpenAI API key from environment (never stored in config)."""
        return os.environ.get("OPENAI_API_KEY")

    @property
    def bootstrap_admin_email(self) -> str | None:
        return os.environ.get("NEWSBOARD_ADMIN_EMAIL")

    @property
    def bootstrap_admin_password(self) -> str | None:
        return os.environ.get("NEWSBOARD_ADMIN_PASSWORD")


# Singleton instance
_settings: Settings | None = None


def get_settings() -> Settings:
    """Get the global settings instance."""
    global _settings
    if _settings is None:
        _settings = Settings()
        if _settings.debug_mode:
            logger.info("Settings loaded with debug mode enabled")
    return _settings


def reload_settings() -> Settings:
    """Force reload settings from environment."""
    global _settings
    _settings = Settings()
    return _settings


# Convenience alias
settings = get_settings()


CONTENT_KINDS = frozenset(
    {
        "image",
        "video",
        "text",
    }
)

CONTENT_KIND_ICONS = {
    "image": "🖼️",
    "video": "🎬",
    "text": "📰",
}
