"""
Components sub-package for the URL Render Service.

This package contains the building blocks the render orchestrator drives:
the browser lifecycle, readiness detection, screenshot storage, status
broadcasting, and operational helpers.

The `__all__` variable defines the public API of this sub-package,
making key components directly importable from `url_render_service.components`.
"""
from .broadcast.status_broadcaster import QueueSink, StatusBroadcaster
from .network.public_ip import PublicIpResolver
from .ops.restarter import ProcessRestarter
from .renderer.playwright_manager import BrowserLifecycleManager
from .renderer.readiness import ContentReadinessWaiter
from .renderer.stealth import FingerprintPolicy, NullFingerprintPolicy
from .storage.screenshot_storage import ScreenshotStorage

__all__ = [
    "BrowserLifecycleManager",
    "ContentReadinessWaiter",
    "FingerprintPolicy",
    "NullFingerprintPolicy",
    "ScreenshotStorage",
    "StatusBroadcaster",
    "QueueSink",
    "PublicIpResolver",
    "ProcessRestarter",
]
