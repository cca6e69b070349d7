"""
Streamlit UI entrypoint.
"""

from __future__ import annotations

import streamlit as st

from newsboard.config import settings
from newsboard.logging_config import get_logger
from newsboard.ui.admin import render_admin_page
from newsboard.ui.display import render_display_page
from newsboard.ui.session import init_session_state, stop_display

logger = get_logger(__name__)


def main() -> None:
    st.set_page_config(
        page_title=settings.site_name,
        page_icon="📺",
        layout="wide",
        initial_sidebar_state="collapsed",
    )
    init_session_state()

    if st.query_params.get("view") == "admin":
        stop_display()
        render_admin_page()
        return
    render_display_page(show_controls=st.query_params.get("controls") == "1")


if __name__ == "__main__":
    main()
