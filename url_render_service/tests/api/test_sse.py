import json
from unittest.mock import AsyncMock, MagicMock

import pytest

from url_render_service.api.sse import SSE_HEADERS, format_sse, observer_stream, sse_response
from url_render_service.components.broadcast.status_broadcaster import StatusBroadcaster
from url_render_service.core.models import StatusEvent
from url_render_service.core.status import ProcessStatus


def _request(disconnects):
    request = MagicMock()
    request.is_disconnected = AsyncMock(side_effect=disconnects)
    return request


def _decode(frame):
    assert frame.startswith("data: ") and frame.endswith("\n\n")
    return json.loads(frame[len("data: "):])


def test_format_sse_frame():
    assert format_sse({"type": "ping"}) == 'data: {"type": "ping"}\n\n'


def test_sse_response_headers():
    async def empty():
        yield ""

    response = sse_response(empty())
    assert response.media_type == "text/event-stream"
    assert response.headers["cache-control"] == SSE_HEADERS["Cache-Control"]


@pytest.mark.asyncio
async def test_stream_sends_initial_then_broadcast_events():
    broadcaster = StatusBroadcaster(heartbeat_interval=0)
    stream = observer_stream(_request([False] * 100), broadcaster, StatusEvent.status(ProcessStatus.IDLE), poll_interval=0.01)

    first = _decode(await stream.__anext__())
    assert first["type"] == "status" and first["data"] == "idle"
    assert len(broadcaster) == 1

    broadcaster.push(StatusEvent.status(ProcessStatus.PROCESSING))
    second = _decode(await stream.__anext__())
    assert second["data"] == "processing"
    assert "createdAt" in second

    await stream.aclose()
    assert len(broadcaster) == 0


@pytest.mark.asyncio
async def test_initial_event_goes_only_to_new_observer():
    broadcaster = StatusBroadcaster(heartbeat_interval=0)
    existing = []

    class ListSink:
        def write(self, event):
            existing.append(event)

    broadcaster.register(ListSink())
    stream = observer_stream(_request([False] * 100), broadcaster, StatusEvent.ping(), poll_interval=0.01)
    await stream.__anext__()
    assert existing == []
    await stream.aclose()


@pytest.mark.asyncio
async def test_disconnect_ends_stream_and_deregisters():
    broadcaster = StatusBroadcaster(heartbeat_interval=0)
    stream = observer_stream(_request([False, True]), broadcaster, StatusEvent.ping(), poll_interval=0.01)
    await stream.__anext__()

    with pytest.raises(StopAsyncIteration):
        await stream.__anext__()
    assert len(broadcaster) == 0
