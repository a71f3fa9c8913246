"""
Server-Sent Events plumbing shared by the status and ping streams.

Each connection registers a `QueueSink` with a broadcaster, receives an initial
event, then relays every broadcast event as a `data: <json>\\n\\n` frame until
the client goes away. Disconnecting only deregisters the observer.
"""
import asyncio
import json
from typing import Any, AsyncIterator, Dict, Optional

from fastapi import Request
from fastapi.responses import StreamingResponse

from url_render_service.components.broadcast.status_broadcaster import QueueSink, StatusBroadcaster
from url_render_service.core.models import StatusEvent

SSE_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
    "Access-Control-Allow-Origin": "*",
    "X-Accel-Buffering": "no",
}

# How often an idle stream checks whether the client is still there.
DISCONNECT_POLL_INTERVAL = 5.0


def format_sse(payload: Dict[str, Any]) -> str:
    return f"data: {json.dumps(payload, ensure_ascii=False)}\n\n"


async def observer_stream(
    request: Request,
    broadcaster: StatusBroadcaster,
    initial_event: Optional[StatusEvent] = None,
    queue_size: int = 100,
    poll_interval: float = DISCONNECT_POLL_INTERVAL,
) -> AsyncIterator[str]:
    sink = QueueSink(maxsize=queue_size)
    cancel = broadcaster.register(sink)
    try:
        broadcaster.send_to(cancel, initial_event)
        while True:
            try:
                event = await sink.get(timeout=poll_interval)
            except asyncio.TimeoutError:
                if await request.is_disconnected():
                    break
                continue
            yield format_sse(event.to_dict())
    finally:
        cancel()


def sse_response(stream: AsyncIterator[str]) -> StreamingResponse:
    return StreamingResponse(stream, media_type="text/event-stream", headers=SSE_HEADERS)
