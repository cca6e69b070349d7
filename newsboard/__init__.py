"""Newsboard: digital-signage content rotator with an admin dashboard."""

__version__ = "0.1.0"
