"""
Owns the single shared Playwright browser process.

This module provides `BrowserLifecycleManager`, which lazily launches a browser
on first demand, hands the live handle to callers, and tears it down on request
(explicit release, crash recovery, rotation, process shutdown). Launching is
serialized by an `asyncio.Lock`, so concurrent callers of `acquire()` always end
up sharing one browser.

Rotation is deferred: when the configured age, render count or per-render
probability says the browser should be replaced, the replacement happens at
the next `acquire()`. A render that already holds the browser is never
interrupted by rotation.
"""
import asyncio
import os
import random
import signal
import time
from typing import TYPE_CHECKING, Any, Callable, Dict, Iterable, List, Optional

from playwright.async_api import Browser, Playwright, async_playwright

from url_render_service.core.exceptions import BrowserLaunchError, RendererError, ResourceCleanupError
from url_render_service.core.logger import get_logger

if TYPE_CHECKING:
    from url_render_service.core.config import ConfigurationManager

logger = get_logger(__name__)


def _redeliver_signal(signum: int) -> None:
    """Restores the default disposition for `signum` and sends it to ourselves."""
    signal.signal(signum, signal.SIG_DFL)
    os.kill(os.getpid(), signum)


class BrowserLifecycleManager:
    """
    Lifecycle manager for the shared browser process.

    Attributes:
        browser_type (str): The Playwright browser to launch ('chromium', 'firefox', 'webkit').
        playwright (Optional[Playwright]): The running Playwright engine.
        browser (Optional[Browser]): The cached browser handle, or None when not running.
        launch_count (int): Number of successful launches since construction.
    """
    DEFAULT_BROWSER_TYPE = 'chromium'
    DEFAULT_HEADLESS = True
    DEFAULT_LAUNCH_TIMEOUT = 30000  # Milliseconds
    DEFAULT_CLOSE_TIMEOUT = 10000  # Milliseconds
    # Sandboxing must be off inside containers; the zygote/dev-shm flags stop
    # Chromium from leaving zombie helper processes behind.
    DEFAULT_LAUNCH_ARGS = [
        '--no-sandbox',
        '--disable-setuid-sandbox',
        '--disable-dev-shm-usage',
        '--no-zygote',
        '--disable-gpu',
        '--disable-blink-features=AutomationControlled',
    ]
    DEFAULT_ROTATION_INTERVAL = 1800  # Seconds, 0 disables
    SUPPORTED_BROWSERS = ('chromium', 'firefox', 'webkit')

    def __init__(
        self,
        config: Optional['ConfigurationManager'] = None,
        playwright_factory: Callable[[], Any] = async_playwright,
        clock: Callable[[], float] = time.monotonic,
        rng: Optional[random.Random] = None,
    ):
        """
        Args:
            config (Optional[ConfigurationManager]): Source of `renderer.*` settings.
                If None, class defaults are used.
            playwright_factory: Callable returning an object whose `start()` coroutine
                yields a Playwright engine. Replaceable for tests.
            clock: Monotonic clock used for browser age.
            rng: Random source for probabilistic rotation.

        Raises:
            RendererError: If an unsupported browser type is configured.
        """
        get = config.get if config else (lambda key, default=None: default)
        self.browser_type = get('renderer.browser_type', self.DEFAULT_BROWSER_TYPE)
        self.headless = bool(get('renderer.headless', self.DEFAULT_HEADLESS))
        self.launch_args: List[str] = list(get('renderer.launch_args', self.DEFAULT_LAUNCH_ARGS) or [])
        self.launch_timeout = int(get('renderer.launch_timeout', self.DEFAULT_LAUNCH_TIMEOUT))
        self.close_timeout = int(get('renderer.close_timeout', self.DEFAULT_CLOSE_TIMEOUT))
        self.rotation_interval = float(get('renderer.rotation.interval_seconds', self.DEFAULT_ROTATION_INTERVAL) or 0)
        self.rotate_after_renders = int(get('renderer.rotation.after_renders', 0) or 0)
        self.rotation_probability = float(get('renderer.rotation.probability', 0.0) or 0.0)

        if self.browser_type not in self.SUPPORTED_BROWSERS:
            logger.error(f"Unsupported browser type configured: {self.browser_type}")
            raise RendererError(f"Unsupported browser type: {self.browser_type}. Must be 'chromium', 'firefox', or 'webkit'.")

        self._playwright_factory = playwright_factory
        self._clock = clock
        self._rng = rng or random.Random()
        self._launch_lock = asyncio.Lock()

        self.playwright: Optional[Playwright] = None
        self.browser: Optional[Browser] = None
        self.launch_count = 0
        self._launched_at: Optional[float] = None
        self._renders_since_launch = 0
        self._rotation_requested: Optional[str] = None
        self._exiting = False

        logger.info(
            f"BrowserLifecycleManager configured: browser={self.browser_type}, headless={self.headless}, "
            f"launch_timeout={self.launch_timeout}ms, rotation_interval={self.rotation_interval}s"
        )

    async def __aenter__(self) -> 'BrowserLifecycleManager':
        await self.acquire()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.shutdown()

    # --- State ---

    @property
    def is_running(self) -> bool:
        return self.browser is not None and self.browser.is_connected()

    @property
    def uptime(self) -> Optional[float]:
        if self._launched_at is None or self.browser is None:
            return None
        return self._clock() - self._launched_at

    def describe(self) -> Dict[str, Any]:
        """Snapshot used by the health endpoint."""
        uptime = self.uptime
        return {
            "browserType": self.browser_type,
            "running": self.is_running,
            "launches": self.launch_count,
            "uptime": round(uptime, 3) if uptime is not None else None,
            "rendersSinceLaunch": self._renders_since_launch,
            "rotationPending": self._rotation_reason() is not None,
        }

    # --- Acquire / release ---

    async def acquire(self) -> Browser:
        """
        Returns the live browser, launching one if needed.

        Callers must not cache the handle across requests; it can be replaced at
        any time by rotation, crash recovery or an explicit release.

        Raises:
            BrowserLaunchError: If the browser fails to start within `launch_timeout`.
        """
        async with self._launch_lock:
            if self.browser is not None:
                reason = self._rotation_reason()
                if reason is None and not self.browser.is_connected():
                    reason = "browser disconnected"
                if reason is not None:
                    await self._release_locked(reason)
            if self.browser is None:
                await self._launch_locked()
            return self.browser

    async def _ensure_playwright(self) -> Playwright:
        if self.playwright is None:
            self.playwright = await self._playwright_factory().start()
        return self.playwright

    async def _launch_locked(self) -> None:
        logger.info(f"Launching {self.browser_type} browser (timeout {self.launch_timeout}ms).")
        started = self._clock()
        try:
            playwright = await self._ensure_playwright()
            launcher = getattr(playwright, self.browser_type)
            self.browser = await asyncio.wait_for(
                launcher.launch(headless=self.headless, args=self.launch_args, timeout=self.launch_timeout),
                timeout=self.launch_timeout / 1000,
            )
        except asyncio.TimeoutError as e:
            logger.error(f"{self.browser_type} browser did not start within {self.launch_timeout}ms.")
            await self._stop_playwright()
            raise BrowserLaunchError(f"Browser launch timed out after {self.launch_timeout}ms", original_exception=e)
        except Exception as e:
            logger.error(f"Failed to initialize Playwright or launch browser {self.browser_type}: {e}", exc_info=True)
            await self._stop_playwright()
            raise BrowserLaunchError(f"Failed to initialize Playwright or launch browser {self.browser_type}: {e}", original_exception=e)

        self.launch_count += 1
        self._launched_at = self._clock()
        self._renders_since_launch = 0
        self._rotation_requested = None
        logger.info(f"{self.browser_type} browser launched (#{self.launch_count}) in {self._launched_at - started:.2f}s.")

    async def release(self, reason: str = "release requested") -> bool:
        """
        Closes the browser and forgets the handle so the next `acquire()` relaunches.

        Close errors are logged, never raised. Calling this when no browser is
        running is a no-op.

        Returns:
            bool: True if a browser was torn down.
        """
        async with self._launch_lock:
            return await self._release_locked(reason)

    async def _release_locked(self, reason: str) -> bool:
        browser, self.browser = self.browser, None
        self._launched_at = None
        self._renders_since_launch = 0
        self._rotation_requested = None
        if browser is None:
            return False
        logger.info(f"Releasing {self.browser_type} browser: {reason}")
        try:
            await asyncio.wait_for(browser.close(), timeout=self.close_timeout / 1000)
            logger.info("Browser closed successfully.")
        except Exception as e:
            cleanup_error = ResourceCleanupError("browser", original_exception=e)
            logger.error(f"{cleanup_error.message}", exc_info=True)
        return True

    async def _stop_playwright(self) -> None:
        playwright, self.playwright = self.playwright, None
        if playwright is None:
            return
        try:
            await playwright.stop()
            logger.info("Playwright stopped successfully.")
        except Exception as e:
            logger.error(f"Error stopping Playwright: {e}", exc_info=True)

    async def shutdown(self) -> None:
        """Closes the browser and stops the Playwright engine."""
        async with self._launch_lock:
            await self._release_locked("shutdown")
            await self._stop_playwright()

    # --- Rotation ---

    def note_render_completed(self) -> None:
        """
        Records a finished render and decides whether the browser is due for rotation.

        The rotation itself happens on the next `acquire()`.
        """
        if self.browser is None:
            return
        self._renders_since_launch += 1
        if self.rotation_probability > 0 and self._rng.random() < self.rotation_probability:
            self._rotation_requested = f"random rotation (p={self.rotation_probability})"

    def request_rotation(self, reason: str = "rotation requested") -> None:
        if self.browser is not None:
            self._rotation_requested = reason

    def _rotation_reason(self) -> Optional[str]:
        if self.browser is None:
            return None
        if self._rotation_requested:
            return self._rotation_requested
        if self.rotate_after_renders > 0 and self._renders_since_launch >= self.rotate_after_renders:
            return f"rotation after {self._renders_since_launch} renders"
        age = self.uptime
        if self.rotation_interval > 0 and age is not None and age >= self.rotation_interval:
            return f"rotation after {age:.0f}s"
        return None

    # --- Signals ---

    def install_signal_handlers(
        self,
        loop: Optional[asyncio.AbstractEventLoop] = None,
        signals: Iterable[int] = (signal.SIGINT, signal.SIGTERM),
        on_exit: Callable[[int], None] = _redeliver_signal,
    ) -> None:
        """
        Closes the browser before the process exits on a termination signal.

        Meant for standalone use; under uvicorn the application lifespan performs
        the same shutdown. `on_exit` runs after the browser is closed (default:
        re-deliver the signal with its default disposition).
        """
        loop = loop or asyncio.get_running_loop()
        for signum in signals:
            loop.add_signal_handler(signum, self.handle_signal, signum, loop, on_exit)
        logger.debug(f"Signal handlers installed for {list(signals)}")

    def handle_signal(self, signum: int, loop: asyncio.AbstractEventLoop, on_exit: Callable[[int], None]) -> Optional[asyncio.Task]:
        if self._exiting:
            return None
        self._exiting = True
        logger.warning(f"Received signal {signum}; closing browser before exit.")
        return loop.create_task(self._shutdown_then_exit(signum, on_exit))

    async def _shutdown_then_exit(self, signum: int, on_exit: Callable[[int], None]) -> None:
        try:
            await asyncio.wait_for(self.shutdown(), timeout=self.close_timeout / 1000)
        except Exception as e:
            logger.error(f"Browser shutdown on signal {signum} failed: {e}", exc_info=True)
        finally:
            on_exit(signum)
