"""
Router Configuration Resolver

Fetches the payment router's ``/v1/config`` and caches the result for a short
TTL. When the router is unreachable or returns something unusable, a fallback
built from local defaults is cached instead, so the payment flow degrades
rather than failing every request.
"""

import asyncio
import logging
import time
from typing import Awaitable, Callable, Optional

import httpx

from ..engine.exceptions import RouterConfigError
from ..schemas.router import (
    DEFAULT_NETWORK,
    DEFAULT_PAYMENT_HEADER,
    RouterConfig,
    fallback_router_config,
    normalize_router_config,
)

logger = logging.getLogger(__name__)

#: Send primitive: ``await base_fetch(request)`` -> response.
BaseFetch = Callable[..., Awaitable[httpx.Response]]

CONFIG_PATH = "/v1/config"


class RouterConfigResolver:
    """
    TTL-cached view of the router's payment configuration.

    The cache holds exactly one value (last successful or fallback config) and
    the time it was fetched. Refresh fetches a whole new config and replaces
    the old one; configs from two responses are never merged.

    Args:
        base_fetch: Unpatched send primitive used for the config request.
        router_url: Router origin, e.g. ``http://localhost:8080``.
        network: Network used when the router does not name one.
        payment_header: Header name used when the router does not name one.
        cache_ttl: Seconds a resolved config stays fresh.
        clock: Source of unix time, injectable for tests.

    Example:
        resolver = RouterConfigResolver(
            base_fetch=client.send,
            router_url="http://localhost:8080",
        )
        config = await resolver.resolve()
    """

    CACHE_TTL_SECONDS: float = 30.0

    def __init__(
        self,
        base_fetch: BaseFetch,
        router_url: str,
        network: str = DEFAULT_NETWORK,
        payment_header: str = DEFAULT_PAYMENT_HEADER,
        cache_ttl: float = CACHE_TTL_SECONDS,
        clock: Callable[[], float] = time.time,
    ):
        self._base_fetch = base_fetch
        self._config_url = httpx.URL(router_url).join(CONFIG_PATH)
        self._network = network
        self._payment_header = payment_header
        self._cache_ttl = cache_ttl
        self._clock = clock
        self._cached: Optional[RouterConfig] = None
        self._cached_at: float = 0.0
        self._lock = asyncio.Lock()

    @property
    def config_url(self) -> str:
        return str(self._config_url)

    def _fresh(self, now: float) -> Optional[RouterConfig]:
        if self._cached is not None and now - self._cached_at < self._cache_ttl:
            return self._cached
        return None

    async def resolve(self) -> RouterConfig:
        """
        Return the router config, fetching it when the cached one is stale.

        Never raises for router problems: any failure yields the fallback
        config, which is cached for the same TTL.

        Returns:
            RouterConfig: Cached, freshly fetched, or fallback config.
        """
        cached = self._fresh(self._clock())
        if cached is not None:
            return cached

        async with self._lock:
            # another caller may have refreshed while we waited
            now = self._clock()
            cached = self._fresh(now)
            if cached is not None:
                return cached

            try:
                config = await self._fetch()
            except RouterConfigError as e:
                logger.warning("Router config unavailable (%s); using fallback config", e)
                config = fallback_router_config(
                    network=self._network, payment_header=self._payment_header
                )

            self._cached = config
            self._cached_at = now
            return config

    async def _fetch(self) -> RouterConfig:
        request = httpx.Request("GET", self._config_url, headers={"Accept": "application/json"})
        try:
            response = await self._base_fetch(request)
        except httpx.HTTPError as e:
            raise RouterConfigError(f"Failed to reach {self._config_url}: {e}") from e

        try:
            if not response.is_success:
                raise RouterConfigError(
                    f"HTTP {response.status_code} from {self._config_url}",
                    status_code=response.status_code,
                )
            await response.aread()
            try:
                data = response.json()
            except ValueError as e:
                raise RouterConfigError(f"Invalid JSON from {self._config_url}") from e
        finally:
            await response.aclose()

        config = normalize_router_config(
            data, network=self._network, payment_header=self._payment_header
        )
        logger.debug("Resolved router config for %s (asset=%s)", config.network, config.asset)
        return config

    def invalidate(self) -> None:
        """Forget the cached config; the next ``resolve()`` fetches again."""
        self._cached = None
        self._cached_at = 0.0
