"""
Content item routes.

Reads are public (displays run unauthenticated); every write requires an
admin bearer token.
"""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Query, Request, Response
from fastapi.responses import StreamingResponse

from newsboard.api.dependencies import get_identity, get_state, require_admin
from newsboard.api.models import (
    ContentItemCreate,
    ContentItemResponse,
    ContentItemUpdate,
    ContentListResponse,
    DeleteResponse,
)
from newsboard.api.routes import sse_snapshots
from newsboard.config import settings
from newsboard.domain import ContentItem
from newsboard.exceptions import DocumentNotFoundError

router = APIRouter(prefix="/v1/content", tags=["content"])


def _item_path(item_id: str = "") -> str:
    return f"{settings.content_collection}/{item_id}" if item_id else settings.content_collection


@router.get("", response_model=ContentListResponse)
def list_content(
    request: Request,
    response: Response,
    include_inactive: bool = Query(default=False, description="Admins only: include inactive items"),
) -> dict:
    """Active items newest first; admins may ask for everything (dashboard)."""
    state = get_state(request)
    if include_inactive:
        identity = require_admin(request, path=_item_path(), operation="list")
        items = state.content.list_all(identity)
    else:
        items = state.content.list_active(get_identity(request))
    request.state.result_count = len(items)
    response.headers["Cache-Control"] = "no-store"
    return {"items": [item.to_dict() for item in items], "total": len(items)}


@router.get("/stream")
def stream_content(
    request: Request,
    max_events: Optional[int] = Query(default=None, ge=1, description="Close after this many snapshots"),
) -> StreamingResponse:
    """Live active items as server-sent `snapshot` events."""
    state = get_state(request)
    stream = state.content.watch_active(get_identity(request), heartbeat=settings.stream_heartbeat_seconds)

    def render(snapshot) -> dict:
        items = [ContentItem.from_document(doc.id, doc.data).to_dict() for doc in snapshot]
        return {"items": items, "total": len(items)}

    return StreamingResponse(
        sse_snapshots(stream, render, max_events=max_events),
        media_type="text/event-stream",
        headers={"Cache-Control": "no-store", "X-Accel-Buffering": "no"},
    )


@router.get("/{item_id}", response_model=ContentItemResponse, responses={404: {"description": "Not found"}})
def get_content(item_id: str, request: Request) -> dict:
    item = get_state(request).content.get(item_id, get_identity(request))
    if item is None:
        raise DocumentNotFoundError(settings.content_collection, item_id)
    return item.to_dict()


@router.post("", response_model=ContentItemResponse, status_code=201)
def create_content(payload: ContentItemCreate, request: Request) -> dict:
    identity = require_admin(request, path=_item_path(), operation="create")
    item = get_state(request).content.add(payload.model_dump(exclude_unset=True), identity)
    return item.to_dict()


@router.patch("/{item_id}", response_model=ContentItemResponse)
def update_content(item_id: str, payload: ContentItemUpdate, request: Request) -> dict:
    identity = require_admin(request, path=_item_path(item_id), operation="update")
    item = get_state(request).content.update(item_id, payload.model_dump(exclude_unset=True), identity)
    return item.to_dict()


@router.post("/{item_id}/toggle", response_model=ContentItemResponse)
def toggle_content(item_id: str, request: Request) -> dict:
    identity = require_admin(request, path=_item_path(item_id), operation="update")
    return get_state(request).content.toggle_active(item_id, identity).to_dict()


@router.delete("/{item_id}", response_model=DeleteResponse)
def delete_content(item_id: str, request: Request) -> dict:
    identity = require_admin(request, path=_item_path(item_id), operation="delete")
    get_state(request).content.delete(item_id, identity)
    return {"id": item_id, "deleted": True}
