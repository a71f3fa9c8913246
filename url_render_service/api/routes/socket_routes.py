"""
WebSocket channel mirroring the HTTP routes.

Messages are JSON objects `{"event": <route>, "data": <payload>}`. Supported
inbound events:

- `/api/render-url` with the URL as `data`: replies on the same event with the
  render envelope.
- `/api/ip`: replies with the public IP envelope.
- `/api/render-url/status`: pushes the current status to every status observer.

Every connection is also a status observer; status events arrive on
`/api/render-url/status`. Closing the socket deregisters the observer but does
not abort a render it started.
"""
import asyncio
import json
from typing import Any, Dict, Optional, Set

from fastapi import APIRouter, WebSocket, WebSocketDisconnect

from url_render_service.api.dependencies import connection_service, publish_screenshot, websocket_base_url
from url_render_service.api.routes.render_routes import IP_ROUTE, RENDER_ROUTE, STATUS_ROUTE
from url_render_service.components.broadcast.status_broadcaster import QueueSink
from url_render_service.core.exceptions import OperationsError
from url_render_service.core.logger import get_logger
from url_render_service.core.service import RenderService

logger = get_logger(__name__)

SOCKET_ROUTE = "/socket"
ERROR_EVENT = "error"

router = APIRouter()


class SocketConnection:
    """One connected socket client: inbound dispatch plus the outbound status relay."""

    def __init__(self, websocket: WebSocket, service: RenderService):
        self.websocket = websocket
        self.service = service
        self.base_url = websocket_base_url(websocket)
        self._send_lock = asyncio.Lock()
        self._tasks: Set[asyncio.Task] = set()
        self._closed = False
        self.sink: Optional[QueueSink] = None
        self.relay: Optional[asyncio.Task] = None

    async def emit(self, event: str, data: Any) -> bool:
        if self._closed:
            return False
        try:
            async with self._send_lock:
                await self.websocket.send_text(json.dumps({"event": event, "data": data}, ensure_ascii=False))
            return True
        except Exception as e:
            logger.debug(f"Socket emit of {event} failed: {e}")
            return False

    async def _relay_status(self, sink: QueueSink) -> None:
        while True:
            event = await sink.get()
            await self.emit(STATUS_ROUTE, event.to_dict())

    async def handle(self, message: Dict[str, Any]) -> None:
        event = message.get("event")
        if event == RENDER_ROUTE:
            url = message.get("data")
            outcome = await self.service.orchestrator.render(url if isinstance(url, str) else None)
            await self.emit(RENDER_ROUTE, publish_screenshot(outcome, self.base_url).to_dict())
        elif event == IP_ROUTE:
            try:
                ip = await self.service.ip_resolver.get_ip()
                await self.emit(IP_ROUTE, {"success": True, "data": ip})
            except OperationsError as e:
                await self.emit(IP_ROUTE, {"success": False, "error": e.detail})
        elif event == STATUS_ROUTE:
            self.service.status_broadcaster.push(self.service.current_status_event())
        else:
            await self.emit(ERROR_EVENT, {"success": False, "error": f"Unknown event: {event}"})

    async def _handle_safely(self, message: Dict[str, Any]) -> None:
        try:
            await self.handle(message)
        except Exception as e:
            logger.error(f"Socket event {message.get('event')!r} failed: {e}", exc_info=True)
            await self.emit(ERROR_EVENT, {"success": False, "error": "An unexpected server error occurred."})

    def _spawn(self, message: Dict[str, Any]) -> None:
        task = asyncio.get_running_loop().create_task(self._handle_safely(message))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def run(self) -> None:
        self.sink = QueueSink(maxsize=self.service.sink_queue_size)
        cancel = self.service.status_broadcaster.register(self.sink)
        self.relay = asyncio.get_running_loop().create_task(self._relay_status(self.sink))
        try:
            while True:
                raw = await self.websocket.receive_text()
                try:
                    message = json.loads(raw)
                except json.JSONDecodeError:
                    await self.emit(ERROR_EVENT, {"success": False, "error": "Message is not valid JSON"})
                    continue
                if not isinstance(message, dict):
                    await self.emit(ERROR_EVENT, {"success": False, "error": "Message must be a JSON object"})
                    continue
                self._spawn(message)
        except WebSocketDisconnect:
            logger.debug("Socket client disconnected.")
        finally:
            self._closed = True
            cancel()
            self.relay.cancel()
            try:
                await self.relay
            except asyncio.CancelledError:
                pass


@router.websocket(SOCKET_ROUTE)
async def socket_channel(websocket: WebSocket):
    await websocket.accept()
    await SocketConnection(websocket, connection_service(websocket)).run()
