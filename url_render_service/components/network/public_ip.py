"""
Public IPv4 lookup with a short-lived cache.

The service reports the address it egresses from, as seen by an external echo
endpoint (default `https://4.ipw.cn/`, which answers with the bare address).
Lookups are cached for `cache_ttl` seconds and concurrent callers share one
in-flight request.
"""
import asyncio
import ipaddress
import time
from typing import TYPE_CHECKING, Callable, Optional

import httpx

from url_render_service.core.exceptions import OperationsError
from url_render_service.core.logger import get_logger

if TYPE_CHECKING:
    from url_render_service.core.config import ConfigurationManager

logger = get_logger(__name__)


class PublicIpResolver:
    DEFAULT_URL = "https://4.ipw.cn/"
    DEFAULT_CACHE_TTL = 60.0  # Seconds
    DEFAULT_TIMEOUT = 10.0  # Seconds

    def __init__(
        self,
        config: Optional['ConfigurationManager'] = None,
        client: Optional[httpx.AsyncClient] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        get = config.get if config else (lambda key, default=None: default)
        self.url = get('public_ip.url', self.DEFAULT_URL)
        self.cache_ttl = float(get('public_ip.cache_ttl', self.DEFAULT_CACHE_TTL))
        self.timeout = float(get('public_ip.timeout', self.DEFAULT_TIMEOUT))
        self._client = client
        self._owns_client = client is None
        self._clock = clock
        self._lock = asyncio.Lock()
        self._cached: Optional[str] = None
        self._cached_at: Optional[float] = None

    def _client_or_new(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=httpx.Timeout(self.timeout), follow_redirects=True)
        return self._client

    def _fresh(self) -> bool:
        return (
            self._cached is not None
            and self._cached_at is not None
            and self._clock() - self._cached_at < self.cache_ttl
        )

    async def get_ip(self) -> str:
        """
        Returns the public IPv4 address.

        Raises:
            OperationsError: If the echo endpoint fails or answers with something
                             that is not an IPv4 address.
        """
        if self._fresh():
            return self._cached
        async with self._lock:
            if self._fresh():
                return self._cached
            try:
                response = await self._client_or_new().get(self.url)
                response.raise_for_status()
            except httpx.HTTPError as e:
                logger.error(f"Public IP lookup via {self.url} failed: {e}")
                raise OperationsError(f"Public IP lookup failed: {e}", original_exception=e)
            candidate = response.text.strip()
            try:
                ipaddress.IPv4Address(candidate)
            except ValueError as e:
                raise OperationsError(f"Unexpected public IP response: {candidate[:64]!r}", original_exception=e)
            self._cached, self._cached_at = candidate, self._clock()
            logger.info(f"Public IP resolved: {candidate}")
            return candidate

    async def aclose(self) -> None:
        if self._client is not None and self._owns_client:
            await self._client.aclose()
        self._client = None
