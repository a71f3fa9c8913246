"""
Wires the render components together for one process.

`RenderService` builds every component from a configuration object (or takes
pre-built ones), and owns their startup/shutdown ordering. The API layer keeps
one instance on `app.state`.
"""
from typing import TYPE_CHECKING, Any, Dict, Optional

from url_render_service.components.broadcast.status_broadcaster import StatusBroadcaster
from url_render_service.components.network.public_ip import PublicIpResolver
from url_render_service.components.ops.restarter import ProcessRestarter
from url_render_service.core.logger import get_logger
from url_render_service.core.models import StatusEvent
from url_render_service.core.orchestrator import RenderOrchestrator

if TYPE_CHECKING:
    from url_render_service.core.config import ConfigurationManager

logger = get_logger(__name__)


class RenderService:
    """
    Process-wide container for the orchestrator and its collaborators.

    Attributes:
        orchestrator (RenderOrchestrator): Entry point for renders; owns the gate,
            the browser manager, the screenshot storage and the status broadcaster.
        ping_broadcaster (StatusBroadcaster): Separate registry for `/api/ping` observers.
        ip_resolver (PublicIpResolver): Cached public IPv4 lookup.
        restarter (ProcessRestarter): Process-manager restart hook.
    """

    def __init__(
        self,
        config: Optional['ConfigurationManager'] = None,
        orchestrator: Optional[RenderOrchestrator] = None,
        ping_broadcaster: Optional[StatusBroadcaster] = None,
        ip_resolver: Optional[PublicIpResolver] = None,
        restarter: Optional[ProcessRestarter] = None,
    ):
        self.config = config
        self.orchestrator = orchestrator or RenderOrchestrator(config=config)
        self.ping_broadcaster = ping_broadcaster or StatusBroadcaster(name="ping", config=config)
        self.ip_resolver = ip_resolver or PublicIpResolver(config=config)
        self.restarter = restarter or ProcessRestarter(config=config)
        self._started = False

    @property
    def browser_manager(self):
        return self.orchestrator.browser_manager

    @property
    def status_broadcaster(self) -> StatusBroadcaster:
        return self.orchestrator.status_broadcaster

    @property
    def screenshot_storage(self):
        return self.orchestrator.screenshot_storage

    @property
    def gate(self):
        return self.orchestrator.gate

    @property
    def sink_queue_size(self) -> int:
        """Buffer size for each observer queue (`broadcast.sink_queue_size`)."""
        return int(self.config.get("broadcast.sink_queue_size", 100)) if self.config else 100

    def current_status_event(self) -> StatusEvent:
        return StatusEvent.status(self.gate.status)

    async def start(self) -> None:
        """Creates the screenshot root and starts the heartbeats. The browser launches lazily."""
        if self._started:
            return
        self.screenshot_storage.ensure_root()
        self.status_broadcaster.start_heartbeat()
        self.ping_broadcaster.start_heartbeat()
        self._started = True
        logger.info("RenderService started.")

    async def stop(self) -> None:
        """Stops heartbeats, closes the browser and the HTTP client. Safe to call twice."""
        await self.status_broadcaster.stop_heartbeat()
        await self.ping_broadcaster.stop_heartbeat()
        await self.browser_manager.shutdown()
        await self.ip_resolver.aclose()
        self._started = False
        logger.info("RenderService stopped.")

    def health(self) -> Dict[str, Any]:
        snapshot = self.orchestrator.describe()
        snapshot["pingObservers"] = len(self.ping_broadcaster)
        return snapshot
