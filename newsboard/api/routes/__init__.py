"""
Shared helpers for route modules.
"""

from __future__ import annotations

import json
from typing import Any, Iterator, Optional

from newsboard.documents import SnapshotStream
from newsboard.exceptions import NewsboardError


def sse(data: Any, *, event: str = "message") -> bytes:
    line = json.dumps(data, ensure_ascii=False)
    return f"event: {event}\ndata: {line}\n\n".encode()


def sse_snapshots(stream: SnapshotStream, render, *, max_events: Optional[int] = None) -> Iterator[bytes]:
    """
    Encode a snapshot stream as server-sent events.

    Each snapshot becomes a `snapshot` event rendered by `render`; idle
    periods produce comment heartbeats; a store error ends the stream
    with an `error` event. The stream is closed when the client goes away.
    """
    sent = 0
    try:
        for snapshot in stream:
            if snapshot is None:
                yield b": keep-alive\n\n"
                continue
            yield sse(render(snapshot), event="snapshot")
            sent += 1
            if max_events is not None and sent >= max_events:
                return
    except NewsboardError as exc:
        yield sse(exc.to_dict(), event="error")
    finally:
        stream.close()
