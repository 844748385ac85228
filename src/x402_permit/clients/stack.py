"""
Payment Stack Wiring

Builds every payment component from the environment in one call and keeps
them together, so a process holds exactly one permit cache, one resolver and
one installer.
"""

import functools
import logging
import time
from dataclasses import dataclass
from typing import Callable, Mapping, Optional

import httpx

from ..adapters.evm.signatures import PermitSigner
from ..settings import X402EnvConfig, load_x402_env
from .http_client import UNPATCHED_SEND, Http402Client, PaymentFetch
from .installer import FetchInstaller, httpx_send_installer
from .permit_cache import PermitCache
from .router_config import RouterConfigResolver

logger = logging.getLogger(__name__)


@dataclass
class X402PaymentStack:
    """Configured payment components sharing one base client."""
    env: X402EnvConfig
    base_client: httpx.AsyncClient
    resolver: RouterConfigResolver
    permit_cache: PermitCache
    signer: PermitSigner
    fetch: PaymentFetch
    installer: FetchInstaller
    owns_base_client: bool = True

    def client(self, **kwargs) -> Http402Client:
        """New ``Http402Client`` running this stack's payment flow."""
        return Http402Client(self.fetch, **kwargs)

    async def aclose(self) -> None:
        if self.owns_base_client:
            await self.base_client.aclose()


def create_x402_stack(
    env_source: Optional[Mapping[str, str]] = None,
    base_client: Optional[httpx.AsyncClient] = None,
    *,
    signer: Optional[PermitSigner] = None,
    clock: Callable[[], float] = time.time,
) -> X402PaymentStack:
    """
    Load configuration and wire resolver, cache, signer, fetch and installer.

    The base fetch is ``httpx.AsyncClient.send`` bound to ``base_client``
    as imported, so router config requests and unpatched sends never pass
    through the payment flow themselves.

    Args:
        env_source: Mapping of X402_* variables; ``os.environ`` (plus ``.env``)
            when omitted.
        base_client: Client for router config requests and ``stack.fetch``;
            a new one (closed by ``aclose``) when omitted.
        signer: Permit signer; built with ``X402_RPC_URL`` when omitted.
        clock: Source of unix time for the caches.

    Returns:
        X402PaymentStack: Wired components.

    Raises:
        ConfigurationError: If the environment is invalid.
    """
    env = load_x402_env(env_source)
    owns_base_client = base_client is None
    if base_client is None:
        base_client = httpx.AsyncClient()
    base_fetch = functools.partial(UNPATCHED_SEND, base_client)

    resolver = RouterConfigResolver(
        base_fetch=base_fetch,
        router_url=env.router_url,
        network=env.network,
        payment_header=env.payment_header,
        clock=clock,
    )
    permit_cache = PermitCache(clock=clock)
    signer = signer or PermitSigner(rpc_url=env.rpc_url)
    fetch = PaymentFetch(
        base_fetch,
        resolver=resolver,
        permit_cache=permit_cache,
        signer=signer,
        private_key=env.private_key,
        permit_cap=env.permit_cap,
        payment_signature=env.payment_signature,
        payment_header=env.payment_header,
    )

    logger.info("Payment stack ready: %s", env)
    return X402PaymentStack(
        env=env,
        base_client=base_client,
        resolver=resolver,
        permit_cache=permit_cache,
        signer=signer,
        fetch=fetch,
        installer=httpx_send_installer(fetch),
        owns_base_client=owns_base_client,
    )
