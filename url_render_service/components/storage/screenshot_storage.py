"""
Screenshot storage for rendered pages.

Screenshots are written to a date-partitioned tree relative to the working
directory:

    screenshots/<YYYY-MM-DD>/<HH-MM-SS>-<id>.png

`<id>` comes from a query parameter of the rendered URL (default `id`), so a
file can be traced back to the item it shows. Before each capture, partitions
older than the retention window are removed.
"""
import os
import re
import shutil
import uuid
from datetime import date, datetime, timedelta
from typing import TYPE_CHECKING, Callable, List, Optional
from urllib.parse import parse_qs, urlparse

from playwright.async_api import Page

from url_render_service.core.exceptions import StorageError
from url_render_service.core.logger import get_logger

if TYPE_CHECKING:
    from url_render_service.core.config import ConfigurationManager

logger = get_logger(__name__)

_PARTITION_FORMAT = "%Y-%m-%d"
_UNSAFE_ID_CHARS = re.compile(r"[^A-Za-z0-9_-]+")


def _to_posix(path: str) -> str:
    return path.replace(os.sep, "/")


class ScreenshotStorage:
    """
    Allocates collision-free screenshot paths and prunes stale partitions.

    Attributes:
        base_dir (str): Root of the screenshot tree, as configured (relative paths
                        are resolved against the working directory).
        retention_days (int): Partitions dated before `today - retention_days` are deleted.
        id_param (str): Query parameter used to label files.
    """
    DEFAULT_BASE_DIR = "screenshots"
    DEFAULT_RETENTION_DAYS = 1
    DEFAULT_ID_PARAM = "id"
    DEFAULT_SCREENSHOT_TIMEOUT = 30000  # Milliseconds

    def __init__(
        self,
        config: Optional['ConfigurationManager'] = None,
        base_dir: Optional[str] = None,
        clock: Callable[[], datetime] = datetime.now,
        cwd: Optional[str] = None,
    ):
        get = config.get if config else (lambda key, default=None: default)
        self.base_dir = base_dir or get('screenshots.base_dir', self.DEFAULT_BASE_DIR)
        self.retention_days = int(get('screenshots.retention_days', self.DEFAULT_RETENTION_DAYS))
        self.id_param = get('screenshots.id_param', self.DEFAULT_ID_PARAM)
        self.full_page = bool(get('screenshots.full_page', False))
        self._clock = clock
        self._cwd = cwd
        logger.info(f"ScreenshotStorage initialized at '{self.base_dir}' (retention {self.retention_days} day(s)).")

    @property
    def cwd(self) -> str:
        return self._cwd or os.getcwd()

    @property
    def root(self) -> str:
        """Absolute path of the screenshot tree."""
        return os.path.abspath(os.path.join(self.cwd, self.base_dir))

    def ensure_root(self) -> str:
        try:
            os.makedirs(self.root, exist_ok=True)
        except OSError as e:
            raise StorageError(f"Failed to create screenshot directory '{self.root}': {e}", original_exception=e)
        return self.root

    # --- Retention ---

    def prune(self, now: Optional[datetime] = None) -> List[str]:
        """
        Removes partitions dated before `today - retention_days`.

        Entries whose names are not dates are left alone.

        Returns:
            List[str]: Names of the removed partitions.
        """
        root = self.root
        if not os.path.isdir(root):
            return []
        cutoff: date = (now or self._clock()).date() - timedelta(days=self.retention_days)
        removed: List[str] = []
        for entry in sorted(os.listdir(root)):
            path = os.path.join(root, entry)
            if not os.path.isdir(path):
                continue
            try:
                partition_date = datetime.strptime(entry, _PARTITION_FORMAT).date()
            except ValueError:
                continue
            if partition_date < cutoff:
                try:
                    shutil.rmtree(path)
                    removed.append(entry)
                except OSError as e:
                    logger.error(f"Failed to remove stale screenshot partition '{path}': {e}", exc_info=True)
        if removed:
            logger.info(f"Pruned {len(removed)} screenshot partition(s): {', '.join(removed)}")
        return removed

    # --- Allocation ---

    def request_id(self, url: str) -> str:
        """The sanitized `id_param` value of `url`, or a short random token."""
        values = parse_qs(urlparse(url).query).get(self.id_param) or []
        for value in values:
            cleaned = _UNSAFE_ID_CHARS.sub("", value)[:64]
            if cleaned:
                return cleaned
        return uuid.uuid4().hex[:8]

    def allocate(self, url: str, now: Optional[datetime] = None) -> str:
        """
        Returns a fresh relative path for a screenshot of `url`.

        The partition directory is created if missing. When a file with the same
        timestamp and id already exists, `-1`, `-2`, ... is appended.
        """
        now = now or self._clock()
        partition = os.path.join(self.base_dir, now.strftime(_PARTITION_FORMAT))
        stem = f"{now.strftime('%H-%M-%S')}-{self.request_id(url)}"
        try:
            os.makedirs(os.path.join(self.cwd, partition), exist_ok=True)
        except OSError as e:
            raise StorageError(f"Failed to create screenshot partition '{partition}': {e}", original_exception=e)

        candidate = os.path.join(partition, f"{stem}.png")
        suffix = 0
        while os.path.exists(os.path.join(self.cwd, candidate)):
            suffix += 1
            candidate = os.path.join(partition, f"{stem}-{suffix}.png")
        return _to_posix(os.path.normpath(candidate))

    def absolute(self, relative_path: str) -> str:
        return os.path.join(self.cwd, relative_path)

    async def capture(self, page: Page, url: str, timeout: Optional[int] = None) -> str:
        """
        Prunes stale partitions, allocates a path and writes a screenshot of `page`.

        Returns:
            str: The screenshot path relative to the working directory.

        Raises:
            StorageError: If the directory cannot be created.
        """
        now = self._clock()
        self.prune(now)
        relative_path = self.allocate(url, now)
        await page.screenshot(
            path=self.absolute(relative_path),
            full_page=self.full_page,
            timeout=timeout if timeout is not None else self.DEFAULT_SCREENSHOT_TIMEOUT,
        )
        logger.info(f"Screenshot saved successfully to: {relative_path}")
        return relative_path
