"""SSE endpoint: real-time stream of one session's shared text."""

import json

from fastapi import APIRouter, Depends, HTTPException
from sse_starlette import EventSourceResponse, ServerSentEvent
from starlette.background import BackgroundTask

from qrshare.config import settings
from qrshare.dependencies import get_registry
from qrshare.services.events import KEEPALIVE
from qrshare.services.session_id import is_valid_session_id
from qrshare.services.session_registry import SessionNotFoundError, SessionRegistry
from qrshare.services.stream_session import StreamOpenError, StreamSession

router = APIRouter(tags=["stream"])


async def _session_stream(stream: StreamSession):
    """Per-client SSE generator."""
    async for item in stream.events():
        if item is KEEPALIVE:
            yield ServerSentEvent(comment="keepalive")
        else:
            yield ServerSentEvent(data=json.dumps(item, ensure_ascii=False))


@router.get("/api/session/{session_id}/stream")
async def stream_session(
    session_id: str,
    registry: SessionRegistry = Depends(get_registry),
):
    """SSE stream of text shared into a session.

    Connect with EventSource API:
      const es = new EventSource(`/api/session/${id}/stream`)
      es.onmessage = (e) => {
        const event = JSON.parse(e.data)  // {type: "connected" | "value", ...}
      }
    """
    if not is_valid_session_id(session_id):
        raise HTTPException(status_code=404, detail="Session not found")

    stream = StreamSession(
        registry,
        session_id,
        keepalive_seconds=settings.keepalive_seconds,
        queue_maxsize=settings.subscriber_queue_maxsize,
    )
    try:
        stream.open()
    except SessionNotFoundError:
        raise HTTPException(status_code=404, detail="Session not found")
    except StreamOpenError:
        raise HTTPException(status_code=503, detail="Stream unavailable")

    # ping=0: keepalive comments come from the StreamSession itself.
    # The background task deregisters streams whose body never started.
    return EventSourceResponse(
        _session_stream(stream),
        ping=0,
        background=BackgroundTask(stream.aclose),
    )
