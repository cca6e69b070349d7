"""
Security module for Newsboard.

Provides document access rules, URL and image-data validation,
and rate limiting for expensive endpoints.
"""

from newsboard.security.rate_limit import (
    RateLimitConfig,
    SQLiteRateLimiter,
)
from newsboard.security.rules import (
    AccessRules,
    default_rules,
)
from newsboard.security.validators import (
    ImageData,
    is_data_uri,
    is_http_url,
    parse_image_data_uri,
    to_data_uri,
    validate_fetch_url,
)

__all__ = [
    "AccessRules",
    "default_rules",
    "RateLimitConfig",
    "SQLiteRateLimiter",
    "ImageData",
    "is_data_uri",
    "is_http_url",
    "parse_image_data_uri",
    "to_data_uri",
    "validate_fetch_url",
]
