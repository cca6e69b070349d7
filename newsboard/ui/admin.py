"""
Admin dashboard page: sign-in, content items, ticker messages.

Every change goes through the API; the display picks it up from the live
stream without a reload.
"""

from __future__ import annotations

import logging
from typing import Any

import streamlit as st

from newsboard.config import CONTENT_KIND_ICONS, CONTENT_KINDS, settings
from newsboard.domain import ContentItem, format_created_at
from newsboard.exceptions import AuthenticationError, NewsboardError, ValidationError
from newsboard.security.validators import is_data_uri, is_http_url
from newsboard.ui.session import (
    get_client,
    get_confirm_delete,
    get_editing_item,
    get_user,
    is_signed_in,
    set_confirm_delete,
    set_editing_item,
    sign_in,
    sign_out,
)
from newsboard.ui.styles import apply_admin_styles

logger = logging.getLogger(__name__)

KIND_LABELS = {"image": "Image", "video": "Video", "text": "Text / web page"}

_FORM_DEFAULTS: dict[str, Any] = {
    "_form_url": "",
    "_form_type": "image",
    "_form_duration": float(settings.default_duration_seconds),
    "_form_active": True,
    "_form_caption": "",
}


# =============================================================================
# Form helpers
# =============================================================================


def form_payload(url: str, kind: str, duration: Any, active: bool, caption: str) -> dict[str, Any]:
    """Payload for POST /v1/content from the form fields."""
    payload: dict[str, Any] = {
        "url": (url or "").strip(),
        "type": kind,
        "duration": duration,
        "active": bool(active),
    }
    caption = (caption or "").strip()
    if caption:
        payload["caption"] = caption
    return payload


def changed_fields(item: ContentItem, payload: dict[str, Any]) -> dict[str, Any]:
    """Only the fields that differ from the stored item (partial update)."""
    current = item.to_dict()
    changes = {key: value for key, value in payload.items() if current.get(key) != value}
    if item.caption and "caption" not in payload:
        changes["caption"] = None
    return changes


def _show_error(exc: NewsboardError) -> None:
    if isinstance(exc, ValidationError):
        st.session_state["_form_error"] = exc.message
    else:
        st.toast(exc.message, icon="⚠️")
    logger.warning("Admin action failed: %s", exc)


def _reset_form() -> None:
    for key, value in _FORM_DEFAULTS.items():
        st.session_state[key] = value
    st.session_state["_form_error"] = None
    set_editing_item(None)


def _load_item_into_form(item: ContentItem) -> None:
    st.session_state["_form_url"] = item.url
    st.session_state["_form_type"] = item.type
    st.session_state["_form_duration"] = float(max(1, item.duration))
    st.session_state["_form_active"] = item.active
    st.session_state["_form_caption"] = item.caption or ""
    st.session_state["_form_error"] = None
    set_editing_item(item.id)


# =============================================================================
# Callbacks
# =============================================================================


def _on_fetch_image() -> None:
    url = (st.session_state.get("_form_url") or "").strip()
    if not is_http_url(url):
        st.session_state["_form_error"] = "Enter an http(s) image URL to fetch."
        return
    try:
        result = get_client().fetch_image(url)
    except NewsboardError as exc:
        _show_error(exc)
        return
    if result.get("success"):
        st.session_state["_form_url"] = result["data_url"]
        st.session_state["_form_error"] = None
        st.toast("Image fetched and embedded.")
    else:
        st.session_state["_form_error"] = result.get("error") or "Could not fetch image."


def _on_adjust_image() -> None:
    image_uri = (st.session_state.get("_form_url") or "").strip()
    if not is_data_uri(image_uri):
        st.session_state["_form_error"] = "Fetch or paste an image data URI before adjusting it."
        return
    try:
        result = get_client().adjust_image(image_uri, st.session_state.get("_form_ratio"))
    except NewsboardError as exc:
        _show_error(exc)
        return
    st.session_state["_form_url"] = result["adjusted_image_uri"]
    st.session_state["_form_error"] = None
    st.toast(f"Image adjusted to {result['aspect_ratio']}.")


def _on_submit(items_by_id: dict[str, ContentItem]) -> None:
    payload = form_payload(
        st.session_state.get("_form_url", ""),
        st.session_state.get("_form_type", "image"),
        st.session_state.get("_form_duration"),
        st.session_state.get("_form_active", True),
        st.session_state.get("_form_caption", ""),
    )
    client = get_client()
    editing = get_editing_item()
    try:
        if editing and editing in items_by_id:
            changes = changed_fields(items_by_id[editing], payload)
            if changes:
                client.update_content(editing, changes)
            st.toast("Item updated.")
        else:
            client.create_content(payload)
            st.toast("Item created.")
    except NewsboardError as exc:
        _show_error(exc)
        return
    _reset_form()


def _on_toggle(item_id: str) -> None:
    try:
        get_client().toggle_content(item_id)
    except NewsboardError as exc:
        _show_error(exc)


def _on_delete(item_id: str) -> None:
    try:
        get_client().delete_content(item_id)
        st.toast("Item deleted.")
    except NewsboardError as exc:
        _show_error(exc)
    set_confirm_delete(None)
    if get_editing_item() == item_id:
        _reset_form()


def _on_add_ticker() -> None:
    text = st.session_state.get("_ticker_text", "")
    try:
        get_client().create_ticker(text)
    except ValidationError as exc:
        st.session_state["_ticker_error"] = exc.message
        return
    except NewsboardError as exc:
        _show_error(exc)
        return
    st.session_state["_ticker_text"] = ""
    st.session_state["_ticker_error"] = None


def _on_delete_ticker(message_id: str) -> None:
    try:
        get_client().delete_ticker(message_id)
    except NewsboardError as exc:
        _show_error(exc)


# =============================================================================
# Sections
# =============================================================================


def render_login_form() -> None:
    st.title(f"{settings.site_name} admin")
    with st.form("login"):
        email = st.text_input("Email")
        password = st.text_input("Password", type="password")
        submitted = st.form_submit_button("Sign in", type="primary")
    if not submitted:
        return
    try:
        user = sign_in(email, password)
    except AuthenticationError as exc:
        st.error(exc.message)
        return
    except NewsboardError as exc:
        st.error(f"Sign-in failed: {exc.message}")
        return
    if not user.get("is_admin"):
        st.warning("This account is not an administrator; changes will be rejected.")
    st.rerun()


def render_content_form(items_by_id: dict[str, ContentItem]) -> None:
    for key, value in _FORM_DEFAULTS.items():
        st.session_state.setdefault(key, value)

    editing = get_editing_item()
    st.subheader("Edit item" if editing else "New item")

    st.text_input("URL or data URI", key="_form_url")
    st.selectbox(
        "Type",
        options=sorted(CONTENT_KINDS),
        format_func=lambda kind: f"{CONTENT_KIND_ICONS.get(kind, '')} {KIND_LABELS.get(kind, kind)}".strip(),
        key="_form_type",
    )
    st.number_input("Duration (seconds)", min_value=1.0, step=1.0, format="%g", key="_form_duration")
    st.checkbox("Active", key="_form_active")
    st.text_input("Caption (optional)", max_chars=settings.max_caption_chars, key="_form_caption")

    if st.session_state.get("_form_type") == "image":
        fetch_col, ratio_col, adjust_col = st.columns([1, 1, 1])
        fetch_col.button("Fetch image", on_click=_on_fetch_image, use_container_width=True)
        ratio_col.text_input("Aspect ratio", value=settings.default_aspect_ratio, key="_form_ratio")
        if settings.enable_image_adjuster:
            adjust_col.button("Adjust with AI", on_click=_on_adjust_image, use_container_width=True)

    url = st.session_state.get("_form_url") or ""
    if st.session_state.get("_form_type") == "image" and (is_data_uri(url) or is_http_url(url)):
        st.image(url, width=320)

    if st.session_state.get("_form_error"):
        st.error(st.session_state["_form_error"])

    save_col, cancel_col = st.columns([1, 1])
    save_col.button(
        "Save changes" if editing else "Add item",
        type="primary",
        on_click=_on_submit,
        args=(items_by_id,),
        use_container_width=True,
    )
    if editing:
        cancel_col.button("Cancel", on_click=_reset_form, use_container_width=True)


def render_content_table(items: list[ContentItem]) -> None:
    st.subheader(f"Items ({len(items)})")
    if not items:
        st.info("No content items yet.")
        return

    confirm = get_confirm_delete()
    for item in items:
        with st.container(border=True):
            preview_col, info_col, actions_col = st.columns([1, 3, 2])
            if item.type == "image":
                preview_col.image(item.url, width=96)
            else:
                preview_col.markdown(f'<span class="nb-badge">{KIND_LABELS.get(item.type, item.type)}</span>', unsafe_allow_html=True)

            badge = '<span class="nb-badge active">active</span>' if item.active else '<span class="nb-badge">inactive</span>'
            info_col.markdown(f"{badge} **{item.caption or item.type}**", unsafe_allow_html=True)
            info_col.caption(f"{item.duration}s · {format_created_at(item.created_at)}")

            actions_col.toggle(
                "Active",
                value=item.active,
                key=f"_toggle_{item.id}",
                on_change=_on_toggle,
                args=(item.id,),
            )
            edit_col, delete_col = actions_col.columns(2)
            edit_col.button("Edit", key=f"_edit_{item.id}", on_click=_load_item_into_form, args=(item,))
            if confirm == item.id:
                delete_col.button("Confirm", key=f"_confirm_{item.id}", type="primary", on_click=_on_delete, args=(item.id,))
                actions_col.button("Keep", key=f"_keep_{item.id}", on_click=set_confirm_delete, args=(None,))
            else:
                delete_col.button("Delete", key=f"_delete_{item.id}", on_click=set_confirm_delete, args=(item.id,))


def render_ticker_section() -> None:
    st.subheader("Ticker messages")
    st.text_input("Message", max_chars=settings.max_ticker_chars, key="_ticker_text")
    st.button("Add message", on_click=_on_add_ticker)
    if st.session_state.get("_ticker_error"):
        st.error(st.session_state["_ticker_error"])

    try:
        messages = get_client().list_ticker()
    except NewsboardError as exc:
        st.error(f"Could not load ticker messages: {exc.message}")
        return
    if not messages:
        st.caption("No ticker messages; the ticker is hidden on displays.")
    for message in messages:
        text_col, delete_col = st.columns([5, 1])
        text_col.write(message.text)
        delete_col.button("Delete", key=f"_ticker_delete_{message.id}", on_click=_on_delete_ticker, args=(message.id,))


def render_dashboard() -> None:
    user = get_user() or {}
    header_col, logout_col = st.columns([5, 1])
    header_col.title(f"{settings.site_name} dashboard")
    header_col.caption(f"Signed in as {user.get('email', 'unknown')}")
    if logout_col.button("Log out"):
        sign_out()
        st.rerun()

    try:
        items = get_client().list_content(include_inactive=True)
    except AuthenticationError:
        sign_out()
        st.rerun()
        return
    except NewsboardError as exc:
        st.error(f"Could not load content: {exc.message}")
        items = []

    content_tab, ticker_tab = st.tabs(["Content", "Ticker"])
    with content_tab:
        form_col, table_col = st.columns([2, 3])
        with form_col:
            render_content_form({item.id: item for item in items})
        with table_col:
            render_content_table(items)
    with ticker_tab:
        render_ticker_section()


def render_admin_page() -> None:
    apply_admin_styles()
    if not is_signed_in():
        render_login_form()
        return
    render_dashboard()
