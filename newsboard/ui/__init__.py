"""
Streamlit UI package.

- display: full-screen signage page (default)
- admin: dashboard for content items and ticker messages (`?view=admin`)
"""

from __future__ import annotations
