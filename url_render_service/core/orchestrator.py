"""
Render orchestration for the URL Render Service.

`RenderOrchestrator.render(url)` is the single entry point the transports call.
It validates the URL, takes the single-flight gate, drives one isolated browser
context through navigation, readiness detection and screenshot capture, and
always returns a `RenderOutcome`; no exception escapes to the caller.

Per request the sequence is:

    validate -> gate -> broadcast PROCESSING
      -> acquire browser -> new context/page -> goto -> wait for markers -> screenshot
      -> close page -> close context -> [release browser on failure]
      -> gate IDLE -> broadcast IDLE
"""
import asyncio
import time
from typing import TYPE_CHECKING, Any, Dict, Optional
from urllib.parse import urlparse

from url_render_service.components.broadcast.status_broadcaster import StatusBroadcaster
from url_render_service.components.renderer.playwright_manager import BrowserLifecycleManager
from url_render_service.components.renderer.readiness import ContentReadinessWaiter
from url_render_service.components.renderer.stealth import FingerprintPolicy, fingerprint_policy_from_config
from url_render_service.components.storage.screenshot_storage import ScreenshotStorage
from url_render_service.core.exceptions import (
    BusyError,
    NavigationError,
    RendererError,
    RenderServiceError,
    ResourceCleanupError,
    ValidationError,
)
from url_render_service.core.logger import get_logger
from url_render_service.core.models import RenderOutcome, RenderResult, StatusEvent
from url_render_service.core.status import ProcessGate, ProcessStatus

if TYPE_CHECKING:
    from url_render_service.core.config import ConfigurationManager

logger = get_logger(__name__)


def validate_url(url: Optional[str]) -> str:
    """
    Checks that `url` is present and uses an HTTP(S) scheme.

    Raises:
        ValidationError: "URL is required" or "URL is invalid".
    """
    if not url or not url.strip():
        raise ValidationError("URL is required")
    url = url.strip()
    parsed = urlparse(url)
    if parsed.scheme.lower() not in ("http", "https") or not parsed.netloc:
        raise ValidationError("URL is invalid")
    return url


class RenderOrchestrator:
    """
    Coordinates one render at a time against the shared browser.

    Every collaborator can be injected; anything omitted is built from `config`.
    """
    DEFAULT_NAVIGATION_TIMEOUT = 50000  # Milliseconds
    DEFAULT_CLOSE_TIMEOUT = 10000  # Milliseconds

    def __init__(
        self,
        config: Optional['ConfigurationManager'] = None,
        browser_manager: Optional[BrowserLifecycleManager] = None,
        readiness_waiter: Optional[ContentReadinessWaiter] = None,
        screenshot_storage: Optional[ScreenshotStorage] = None,
        status_broadcaster: Optional[StatusBroadcaster] = None,
        gate: Optional[ProcessGate] = None,
        fingerprint_policy: Optional[FingerprintPolicy] = None,
    ):
        get = config.get if config else (lambda key, default=None: default)
        self.navigation_timeout = int(get('renderer.navigation_timeout', self.DEFAULT_NAVIGATION_TIMEOUT))
        self.close_timeout = int(get('renderer.close_timeout', self.DEFAULT_CLOSE_TIMEOUT))

        self.browser_manager = browser_manager or BrowserLifecycleManager(config=config)
        self.readiness_waiter = readiness_waiter or ContentReadinessWaiter(config=config)
        self.screenshot_storage = screenshot_storage or ScreenshotStorage(config=config)
        self.status_broadcaster = status_broadcaster or StatusBroadcaster(name="status", config=config)
        self.gate = gate or ProcessGate()
        self.fingerprint_policy = fingerprint_policy or fingerprint_policy_from_config(config)

    @property
    def status(self) -> ProcessStatus:
        return self.gate.status

    def _set_status(self, status: ProcessStatus) -> None:
        self.gate.set_status(status)
        self.status_broadcaster.push(StatusEvent.status(status))

    async def render(self, url: Optional[str]) -> RenderOutcome:
        """
        Renders `url` and returns the outcome envelope.

        Validation and busy rejections return before the browser is touched and
        before any status event is broadcast.
        """
        try:
            url = validate_url(url)
        except ValidationError as e:
            logger.info(f"Render rejected ({e.message}): {url!r}")
            return RenderOutcome.fail(e)

        if not self.gate.try_enter():
            logger.info(f"Render rejected (busy): {url}")
            return RenderOutcome.fail(BusyError())
        self.status_broadcaster.push(StatusEvent.status(ProcessStatus.PROCESSING))

        logger.info(f"Render started: {url}")
        started = time.monotonic()
        context = None
        page = None
        failed = False
        try:
            browser = await self.browser_manager.acquire()
            context_options = self.fingerprint_policy.context_options()
            context = await browser.new_context(**context_options)
            await self.fingerprint_policy.apply(context, context_options)
            page = await context.new_page()

            try:
                await page.goto(url, wait_until='domcontentloaded', timeout=self.navigation_timeout)
            except Exception as e:
                raise NavigationError(str(e) or e.__class__.__name__, original_exception=e)

            readiness = await self.readiness_waiter.wait(page)
            time_taken = round(time.monotonic() - started, 3)
            screenshot = await self.screenshot_storage.capture(page, url)

            self.browser_manager.note_render_completed()
            logger.info(
                f"Render finished in {time_taken}s: {url} "
                f"(marker={readiness.matched_marker!r}, timed_out={readiness.timed_out})"
            )
            return RenderOutcome.ok(RenderResult(html=readiness.html, screenshot=screenshot, time_taken=time_taken, url=url))
        except RenderServiceError as e:
            failed = True
            logger.error(f"Render failed for {url}: {e.detail}", exc_info=True)
            return RenderOutcome.fail(e)
        except Exception as e:
            failed = True
            logger.error(f"Render failed for {url}: {e}", exc_info=True)
            return RenderOutcome.fail(RendererError(str(e) or e.__class__.__name__, original_exception=e))
        finally:
            await self._close_quietly(page, "page")
            await self._close_quietly(context, "context")
            if failed:
                # The browser may be poisoned; the next request gets a fresh one.
                await self.browser_manager.release(reason=f"render failure for {url}")
            self._set_status(ProcessStatus.IDLE)

    async def _close_quietly(self, resource: Any, name: str) -> None:
        if resource is None:
            return
        try:
            await asyncio.wait_for(resource.close(), timeout=self.close_timeout / 1000)
        except Exception as e:
            cleanup_error = ResourceCleanupError(name, original_exception=e)
            logger.error(cleanup_error.message, exc_info=True)

    def describe(self) -> Dict[str, Any]:
        return {
            "status": self.gate.status.value,
            "browser": self.browser_manager.describe(),
            "observers": len(self.status_broadcaster),
        }
