"""
Ticker message routes.
"""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Query, Request, Response
from fastapi.responses import StreamingResponse

from newsboard.api.dependencies import get_identity, get_state, require_admin
from newsboard.api.models import DeleteResponse, TickerListResponse, TickerMessageRequest, TickerMessageResponse
from newsboard.api.routes import sse_snapshots
from newsboard.config import settings
from newsboard.domain import TickerMessage, ticker_text

router = APIRouter(prefix="/v1/ticker", tags=["ticker"])


def _message_path(message_id: str = "") -> str:
    return f"{settings.ticker_collection}/{message_id}" if message_id else settings.ticker_collection


def _listing(messages: list[TickerMessage]) -> dict:
    return {"messages": [m.to_dict() for m in messages], "text": ticker_text(messages)}


@router.get("", response_model=TickerListResponse)
def list_messages(request: Request, response: Response) -> dict:
    messages = get_state(request).ticker.list_all(get_identity(request))
    request.state.result_count = len(messages)
    response.headers["Cache-Control"] = "no-store"
    return _listing(messages)


@router.get("/stream")
def stream_messages(
    request: Request,
    max_events: Optional[int] = Query(default=None, ge=1, description="Close after this many snapshots"),
) -> StreamingResponse:
    stream = get_state(request).ticker.watch(get_identity(request), heartbeat=settings.stream_heartbeat_seconds)

    def render(snapshot) -> dict:
        return _listing([TickerMessage.from_document(doc.id, doc.data) for doc in snapshot])

    return StreamingResponse(
        sse_snapshots(stream, render, max_events=max_events),
        media_type="text/event-stream",
        headers={"Cache-Control": "no-store", "X-Accel-Buffering": "no"},
    )


@router.post("", response_model=TickerMessageResponse, status_code=201)
def create_message(payload: TickerMessageRequest, request: Request) -> dict:
    identity = require_admin(request, path=_message_path(), operation="create")
    return get_state(request).ticker.add(payload.model_dump(exclude_unset=True), identity).to_dict()


@router.patch("/{message_id}", response_model=TickerMessageResponse)
def update_message(message_id: str, payload: TickerMessageRequest, request: Request) -> dict:
    identity = require_admin(request, path=_message_path(message_id), operation="update")
    return get_state(request).ticker.update(message_id, payload.model_dump(exclude_unset=True), identity).to_dict()


@router.delete("/{message_id}", response_model=DeleteResponse)
def delete_message(message_id: str, request: Request) -> dict:
    identity = require_admin(request, path=_message_path(message_id), operation="delete")
    get_state(request).ticker.delete(message_id, identity)
    return {"id": message_id, "deleted": True}
