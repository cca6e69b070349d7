"""
Session state helpers for the Streamlit UI.
"""

from __future__ import annotations

import time

import streamlit as st

from newsboard.config import settings
from newsboard.events import DevErrorListener, error_emitter
from newsboard.rotation import ManualScheduler, RotationTimer
from newsboard.ui.api_client import ApiClient, RemoteFeed
from newsboard.viewer import DisplayViewer, LocalCache


def init_session_state() -> None:
    if "_auth_token" not in st.session_state:
        st.session_state["_auth_token"] = None
    if "_user" not in st.session_state:
        st.session_state["_user"] = None
    if "_editing_item" not in st.session_state:
        st.session_state["_editing_item"] = None
    if "_confirm_delete" not in st.session_state:
        st.session_state["_confirm_delete"] = None


# =============================================================================
# Admin session
# =============================================================================


def get_client() -> ApiClient:
    """API client carrying the signed-in admin's token (if any)."""
    if "_api_client" not in st.session_state:
        st.session_state["_api_client"] = ApiClient(settings.api_url)
    client: ApiClient = st.session_state["_api_client"]
    client.token = st.session_state.get("_auth_token")
    return client


def get_user() -> dict | None:
    return st.session_state.get("_user")


def is_signed_in() -> bool:
    return bool(st.session_state.get("_auth_token"))


def sign_in(email: str, password: str) -> dict:
    """Sign in through the API. Raises AuthenticationError on bad credentials."""
    client = get_client()
    data = client.login(email, password)
    st.session_state["_auth_token"] = data["token"]
    st.session_state["_user"] = data["user"]
    return data["user"]


def sign_out() -> None:
    try:
        get_client().logout()
    finally:
        st.session_state["_auth_token"] = None
        st.session_state["_user"] = None
        st.session_state["_editing_item"] = None
        st.session_state["_confirm_delete"] = None


def get_editing_item() -> str | None:
    return st.session_state.get("_editing_item")


def set_editing_item(item_id: str | None) -> None:
    st.session_state["_editing_item"] = item_id


def get_confirm_delete() -> str | None:
    return st.session_state.get("_confirm_delete")


def set_confirm_delete(item_id: str | None) -> None:
    st.session_state["_confirm_delete"] = item_id


# =============================================================================
# Display session
# =============================================================================


@st.cache_resource
def get_dev_error_listener() -> DevErrorListener:
    """Process-wide listener that logs permission errors emitted by displays."""
    listener = DevErrorListener(error_emitter)
    listener.attach()
    return listener


def get_display_viewer() -> DisplayViewer:
    """
    The display viewer for this browser session, started on first use.

    Rotation runs on a ManualScheduler ticked by `tick_display()` on every
    fragment rerun, so the carousel advances with the page refresh.
    """
    if "_display_viewer" not in st.session_state:
        scheduler = ManualScheduler(start=time.monotonic())
        viewer = DisplayViewer(
            RemoteFeed(ApiClient(settings.api_url)),
            rotation=RotationTimer(scheduler),
            cache=LocalCache(),
        )
        get_dev_error_listener()
        viewer.start()
        st.session_state["_display_scheduler"] = scheduler
        st.session_state["_display_viewer"] = viewer
    return st.session_state["_display_viewer"]


def tick_display() -> int:
    """Advance the display clock to now; returns how many callbacks fired."""
    scheduler: ManualScheduler | None = st.session_state.get("_display_scheduler")
    if scheduler is None:
        return 0
    return scheduler.advance_to(time.monotonic())


def stop_display() -> None:
    viewer: DisplayViewer | None = st.session_state.pop("_display_viewer", None)
    st.session_state.pop("_display_scheduler", None)
    if viewer is not None:
        viewer.stop()
