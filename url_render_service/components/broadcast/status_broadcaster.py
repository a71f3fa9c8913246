"""
Fan-out of status and ping events to live observers.

A `StatusBroadcaster` keeps a table of registered sinks keyed by a monotonically
increasing integer id. `push()` stamps an event with the current time and the
seconds elapsed since the previous push, then writes it to every sink. A
failing sink is logged and skipped; it never prevents delivery to the others.

Sinks are synchronous, non-blocking writers. `QueueSink` buffers events in an
`asyncio.Queue` so an SSE generator or a WebSocket sender task can drain them at
its own pace.
"""
import asyncio
import itertools
import time
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Callable, Dict, Optional, Protocol

from url_render_service.core.exceptions import BroadcastError
from url_render_service.core.logger import get_logger
from url_render_service.core.models import StatusEvent

if TYPE_CHECKING:
    from url_render_service.core.config import ConfigurationManager

logger = get_logger(__name__)


class EventSink(Protocol):
    """Anything that can accept a stamped event without blocking."""

    def write(self, event: StatusEvent) -> None:
        ...


class QueueSink:
    """
    An `EventSink` backed by a bounded `asyncio.Queue`.

    `write` raises `BroadcastError` when the queue is full (a consumer that has
    stopped reading); the broadcaster isolates that failure.
    """

    def __init__(self, maxsize: int = 100):
        self.queue: "asyncio.Queue[StatusEvent]" = asyncio.Queue(maxsize=maxsize)

    def write(self, event: StatusEvent) -> None:
        try:
            self.queue.put_nowait(event)
        except asyncio.QueueFull as e:
            raise BroadcastError("Observer queue is full; event dropped", original_exception=e)

    async def get(self, timeout: Optional[float] = None) -> StatusEvent:
        if timeout is None:
            return await self.queue.get()
        return await asyncio.wait_for(self.queue.get(), timeout=timeout)


class StatusBroadcaster:
    """
    Process-wide registry of observers for one event stream.

    Attributes:
        name (str): Label used in log lines (e.g. "status", "ping").
        heartbeat_interval (float): Seconds between background ping events; 0 disables.
    """
    DEFAULT_HEARTBEAT_INTERVAL = 15.0

    def __init__(
        self,
        name: str = "status",
        config: Optional['ConfigurationManager'] = None,
        heartbeat_interval: Optional[float] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.name = name
        if heartbeat_interval is None:
            heartbeat_interval = config.get("broadcast.heartbeat_interval", self.DEFAULT_HEARTBEAT_INTERVAL) if config else self.DEFAULT_HEARTBEAT_INTERVAL
        self.heartbeat_interval = float(heartbeat_interval or 0)
        self._clock = clock
        self._sinks: Dict[int, EventSink] = {}
        self._ids = itertools.count(1)
        self._last_push: Optional[float] = None
        self._heartbeat_task: Optional[asyncio.Task] = None

    def __len__(self) -> int:
        return len(self._sinks)

    @property
    def observer_ids(self):
        return list(self._sinks)

    def register(self, sink: EventSink) -> Callable[[], None]:
        """
        Registers `sink` and returns its cancel callback.

        The callback is idempotent: calling it more than once, or after the sink
        was already removed, does nothing.
        """
        sink_id = next(self._ids)
        self._sinks[sink_id] = sink
        logger.debug(f"[{self.name}] observer {sink_id} registered ({len(self._sinks)} active)")

        def cancel() -> None:
            if self._sinks.pop(sink_id, None) is not None:
                logger.debug(f"[{self.name}] observer {sink_id} removed ({len(self._sinks)} active)")

        cancel.sink_id = sink_id  # type: ignore[attr-defined]
        return cancel

    def _stamp(self, event: StatusEvent, advance: bool = True) -> StatusEvent:
        now = self._clock()
        elapsed = None if self._last_push is None else round(now - self._last_push, 3)
        if advance:
            self._last_push = now
        return event.stamped(datetime.now(timezone.utc), elapsed)

    def _deliver(self, sink_id: int, sink: EventSink, event: StatusEvent) -> bool:
        try:
            sink.write(event)
            return True
        except Exception as e:
            logger.warning(f"[{self.name}] failed to deliver {event.type} event to observer {sink_id}: {e}")
            return False

    def push(self, event: Optional[StatusEvent] = None) -> int:
        """
        Stamps `event` (a ping when omitted) and writes it to every registered sink.

        Returns:
            int: The number of sinks that accepted the event.
        """
        stamped = self._stamp(event if event is not None else StatusEvent.ping())
        delivered = 0
        # Copy first: a sink may deregister itself (or another) while we iterate.
        for sink_id, sink in list(self._sinks.items()):
            if self._deliver(sink_id, sink, stamped):
                delivered += 1
        return delivered

    def send_to(self, cancel: Callable[[], None], event: Optional[StatusEvent] = None) -> bool:
        """Writes one event to a single observer, identified by its cancel callback."""
        sink_id = getattr(cancel, "sink_id", None)
        sink = self._sinks.get(sink_id) if sink_id is not None else None
        if sink is None:
            return False
        # Not a push: `_last_push` stays put.
        return self._deliver(sink_id, sink, self._stamp(event if event is not None else StatusEvent.ping(), advance=False))

    # --- Heartbeat ---

    def start_heartbeat(self) -> None:
        """Starts the background ping task (requires a running event loop)."""
        if self.heartbeat_interval <= 0 or self._heartbeat_task is not None:
            return
        self._heartbeat_task = asyncio.get_running_loop().create_task(self._heartbeat_loop())
        logger.info(f"[{self.name}] heartbeat started (interval: {self.heartbeat_interval}s)")

    async def _heartbeat_loop(self) -> None:
        while True:
            await asyncio.sleep(self.heartbeat_interval)
            self.push(StatusEvent.ping())

    async def stop_heartbeat(self) -> None:
        task, self._heartbeat_task = self._heartbeat_task, None
        if task is None:
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
        logger.info(f"[{self.name}] heartbeat stopped")
