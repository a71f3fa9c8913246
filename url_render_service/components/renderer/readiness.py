"""
Waits for application-specific content to appear in a loaded page.

The wait runs inside the page: a `MutationObserver` re-checks the visible text
on every DOM change, and a timer ends the wait after `timeout` milliseconds.
Whichever fires first wins and tears down the other, so no observer or timer
outlives the wait. Content already present on entry resolves immediately.

Reaching the timeout is not an error: the current document is returned and the
result is flagged `timed_out`.
"""
import asyncio
import time
from dataclasses import dataclass
from typing import TYPE_CHECKING, List, Optional, Sequence

from playwright.async_api import Page

from url_render_service.core.exceptions import ReadinessError
from url_render_service.core.logger import get_logger

if TYPE_CHECKING:
    from url_render_service.core.config import ConfigurationManager

logger = get_logger(__name__)

# Resolves with {html, marker}; marker is null when the timeout won.
WAIT_FOR_MARKERS_SCRIPT = """
({ markers, timeoutMs }) => new Promise((resolve) => {
  const root = document.body || document.documentElement;
  const matchedMarker = () => {
    const text = (document.body || document.documentElement).innerText || '';
    return markers.find((marker) => text.includes(marker)) ?? null;
  };
  const finish = (marker) => resolve({ html: document.documentElement.outerHTML, marker });

  const initial = matchedMarker();
  if (initial !== null) {
    finish(initial);
    return;
  }

  let timer = null;
  const observer = new MutationObserver(() => {
    const marker = matchedMarker();
    if (marker !== null) {
      observer.disconnect();
      clearTimeout(timer);
      finish(marker);
    }
  });
  observer.observe(root, { childList: true, subtree: true, characterData: true });

  timer = setTimeout(() => {
    observer.disconnect();
    finish(null);
  }, timeoutMs);
})
"""


@dataclass(frozen=True)
class ReadinessResult:
    """Serialized document plus how the wait ended."""
    html: str
    matched_marker: Optional[str]
    timed_out: bool
    elapsed: float


class ContentReadinessWaiter:
    """
    Event-driven wait for success markers in a page's visible text.

    Attributes:
        markers (List[str]): Substrings that signal the page finished rendering.
        timeout (int): Milliseconds to wait before returning the document anyway.
        grace (int): Extra milliseconds the Python side waits for the in-page promise
                     before reading the document directly (guards against a hung page).
    """
    DEFAULT_MARKERS = ['配送', '商品详情']
    DEFAULT_TIMEOUT = 30000  # Milliseconds
    DEFAULT_GRACE = 5000  # Milliseconds

    def __init__(
        self,
        config: Optional['ConfigurationManager'] = None,
        markers: Optional[Sequence[str]] = None,
        timeout: Optional[int] = None,
        grace: Optional[int] = None,
    ):
        if config:
            markers = markers if markers is not None else config.get('renderer.success_markers', self.DEFAULT_MARKERS)
            timeout = timeout if timeout is not None else config.get('renderer.readiness_timeout', self.DEFAULT_TIMEOUT)
        self.markers: List[str] = [str(m) for m in (markers if markers is not None else self.DEFAULT_MARKERS)]
        self.timeout = int(timeout if timeout is not None else self.DEFAULT_TIMEOUT)
        self.grace = int(grace if grace is not None else self.DEFAULT_GRACE)

    async def wait(self, page: Page) -> ReadinessResult:
        """
        Resolves once any marker is visible, or after `timeout` milliseconds.

        Raises:
            ReadinessError: If the document cannot be read from the page at all.
        """
        started = time.monotonic()
        try:
            payload = await asyncio.wait_for(
                page.evaluate(WAIT_FOR_MARKERS_SCRIPT, {"markers": self.markers, "timeoutMs": self.timeout}),
                timeout=(self.timeout + self.grace) / 1000,
            )
        except asyncio.TimeoutError:
            logger.warning(f"In-page readiness wait did not settle within {self.timeout + self.grace}ms; reading document directly.")
            html = await self._read_document(page)
            return ReadinessResult(html=html, matched_marker=None, timed_out=True, elapsed=time.monotonic() - started)
        except Exception as e:
            raise ReadinessError(f"Failed to wait for page content: {e}", original_exception=e)

        elapsed = time.monotonic() - started
        html = payload.get("html") or ""
        marker = payload.get("marker")
        if marker is None:
            logger.info(f"No success marker appeared within {self.timeout}ms; returning current document.")
        else:
            logger.debug(f"Success marker {marker!r} found after {elapsed:.2f}s.")
        return ReadinessResult(html=html, matched_marker=marker, timed_out=marker is None, elapsed=elapsed)

    async def _read_document(self, page: Page) -> str:
        try:
            return await asyncio.wait_for(page.content(), timeout=self.grace / 1000)
        except Exception as e:
            raise ReadinessError(f"Failed to read page content after readiness timeout: {e}", original_exception=e)
