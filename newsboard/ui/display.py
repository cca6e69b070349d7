"""
Full-screen display page.

The page body is a fragment re-run every second: each run advances the
rotation clock to the current time and redraws the selected item.
"""

from __future__ import annotations

import html
import logging

import streamlit as st

from newsboard.security.validators import is_http_url
from newsboard.ui.session import get_dev_error_listener, get_display_viewer, tick_display
from newsboard.ui.styles import apply_display_styles
from newsboard.viewer import ViewState

logger = logging.getLogger(__name__)

EMPTY_MESSAGE = "No active items."


def media_html(state: ViewState) -> str:
    """Markup for the stage: skeleton, empty state or the current item."""
    if state.loading:
        return '<div class="nb-stage"><div class="nb-skeleton"></div></div>'
    item = state.item
    if state.empty or item is None:
        return f'<div class="nb-stage"><p class="nb-empty">{EMPTY_MESSAGE}</p></div>'

    url = html.escape(item.url, quote=True)
    if item.type == "image":
        body = f'<img class="nb-media" src="{url}" alt="{html.escape(item.caption or "")}">'
    elif item.type == "video":
        if state.embed_url:
            body = (
                f'<iframe src="{html.escape(state.embed_url, quote=True)}" '
                'allow="autoplay; encrypted-media; picture-in-picture" allowfullscreen '
                'sandbox="allow-scripts allow-same-origin allow-forms"></iframe>'
            )
        else:
            body = f'<video src="{url}" autoplay muted loop playsinline></video>'
    elif is_http_url(item.url):
        body = f'<iframe src="{url}" sandbox="allow-scripts allow-same-origin"></iframe>'
    else:
        body = f'<div class="nb-text-card">{html.escape(item.url)}</div>'

    caption = f'<div class="nb-caption">{html.escape(item.caption)}</div>' if item.caption else ""
    return f'<div class="nb-stage">{body}{caption}</div>'


def ticker_html(text: str, *, label: str = "URGENT") -> str:
    """Scrolling ticker bar; empty string when there is nothing to show."""
    if not text:
        return ""
    escaped = html.escape(text)
    # Text is repeated so the marquee loops without a gap
    return (
        '<div class="nb-ticker">'
        f'<div class="nb-ticker-label">{label}</div>'
        '<div class="nb-ticker-track"><div class="nb-ticker-text">'
        f"<span>{escaped}</span><span>{escaped}</span>"
        "</div></div></div>"
    )


def status_html(state: ViewState) -> str:
    parts = []
    if state.total:
        parts.append(f"{state.index + 1}/{state.total}")
    if state.offline:
        parts.append("offline")
    elif state.error:
        parts.append("cached")
    return f'<div class="nb-status">{" · ".join(parts)}</div>' if parts else ""


def _render_controls() -> None:
    viewer = get_display_viewer()
    rotation = viewer.rotation
    prev_col, hold_col, next_col, online_col = st.columns([1, 1, 1, 2])
    if prev_col.button("◀", key="nb_prev", use_container_width=True):
        rotation.previous()
    if rotation.pointer_is_down:
        if hold_col.button("Resume", key="nb_release", use_container_width=True):
            rotation.pointer_up()
    elif hold_col.button("Hold", key="nb_hold", use_container_width=True):
        rotation.pointer_down()
    if next_col.button("▶", key="nb_next", use_container_width=True):
        rotation.next()
    online = online_col.toggle("Live updates", value=viewer.online, key="nb_online")
    if online != viewer.online:
        viewer.set_online(online)


@st.fragment(run_every=1)
def _render_frame() -> None:
    viewer = get_display_viewer()
    tick_display()
    state = viewer.state()
    st.markdown(media_html(state) + ticker_html(state.ticker_text) + status_html(state), unsafe_allow_html=True)

    listener = get_dev_error_listener()
    if state.error and listener.last_error is not None:
        ctx = listener.last_error.context()
        st.caption(f"Permission denied: {ctx['operation']} on {ctx['path']}")


def render_display_page(*, show_controls: bool = False) -> None:
    apply_display_styles()
    get_display_viewer()
    _render_frame()
    if show_controls:
        _render_controls()
