"""
HTTP 401/402 Payment Flow

Payment-aware wrapper around the httpx send primitive. A request rejected
with 401 or 402 is retried exactly once with a signed permit attached; the
retried response is handed back to the caller whatever its status.

Two ways to use it:
    - ``Http402Client``: an ``httpx.AsyncClient`` whose ``send`` runs the flow
    - ``FetchInstaller`` (see ``installer.py``): substitutes the flow for
      ``httpx.AsyncClient.send`` process-wide, for SDKs that build their own
      clients
"""

import base64
import functools
import json
import logging
import re
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional

import httpx

from ..adapters.evm.signatures import PermitSigner
from ..engine.exceptions import X402Error
from ..schemas.permits import CachedPermit
from ..schemas.router import DEFAULT_PAYMENT_HEADER
from ..settings import DEFAULT_PERMIT_CAP
from .permit_cache import PermitCache
from .router_config import RouterConfigResolver

logger = logging.getLogger(__name__)

#: ``httpx.AsyncClient.send`` as it was when this module was imported.
UNPATCHED_SEND = httpx.AsyncClient.send

BaseFetch = Callable[..., Awaitable[httpx.Response]]

PAYMENT_REQUIRED_STATUSES = frozenset({401, 402})
SETTLEMENT_HEADERS = ("PAYMENT-RESPONSE", "X-PAYMENT-RESPONSE")

_DECIMAL_REGEX = re.compile(r"[0-9]+")


@dataclass
class RetryAttempt:
    """
    State of one logical request through the payment flow.

    ``permit`` and ``permit_key`` are set once a permit is attached; the
    outcome of the single retry is booked against exactly that permit.
    """
    request: httpx.Request
    attempts: int = 0
    permit: Optional[CachedPermit] = None
    permit_key: Optional[str] = None


def is_payment_required(response: httpx.Response) -> bool:
    return response.status_code in PAYMENT_REQUIRED_STATUSES


def parse_settlement_amount(response: httpx.Response) -> Optional[int]:
    """
    Read the settled amount from an x402 settlement header.

    The header value is base64 JSON; only a non-negative integer ``amount``
    (number or decimal string) is accepted.

    Returns:
        Optional[int]: Amount in token base units, or None if absent or unreadable.
    """
    raw = None
    for name in SETTLEMENT_HEADERS:
        raw = response.headers.get(name)
        if raw:
            break
    if not raw:
        return None

    try:
        data = json.loads(base64.b64decode(raw))
    except ValueError:
        logger.debug("Unreadable settlement header: %r", raw[:64])
        return None
    if not isinstance(data, dict):
        return None

    amount = data.get("amount")
    if isinstance(amount, bool):
        return None
    if isinstance(amount, int):
        return amount if amount >= 0 else None
    if isinstance(amount, str) and _DECIMAL_REGEX.fullmatch(amount.strip()):
        return int(amount.strip())
    return None


def clone_with_header(request: httpx.Request, name: str, value: str) -> httpx.Request:
    """
    Copy ``request`` with one header set. The body must already be read.
    """
    headers = request.headers.copy()
    headers[name] = value
    return httpx.Request(
        request.method,
        request.url,
        headers=headers,
        content=request.content,
        extensions=dict(request.extensions),
    )


class PaymentFetch:
    """
    Drop-in replacement for the send primitive that pays when asked to.

    Signed-permit mode (the default):
        1. Buffer the request body so it can be replayed
        2. Send; return any status other than 401/402 untouched
        3. Resolve the router config and obtain a permit from the cache
           (signing one on a miss)
        4. Close the rejection, resend once with
           ``{router_config.payment_header}: {permit.payment_sig}``
        5. Return the retried response; a second rejection invalidates the
           permit, a settlement header is recorded as spend

    If step 3 fails with a library error the original rejection is returned.

    Static mode (``payment_signature`` given): the header is attached to every
    request and no retry is attempted.

    Args:
        base_fetch: Default send primitive, used by ``__call__``.
        resolver: Router config resolver.
        permit_cache: Permit cache shared by every request of the process.
        signer: Permit signer.
        private_key: Paying wallet key.
        permit_cap: Allowance of each signed permit (base units).
        payment_signature: Static payment proof; enables static mode.
        payment_header: Header used in static mode.

    Example:
        fetch = PaymentFetch(base_fetch, resolver=resolver, permit_cache=cache,
                             signer=signer, private_key=key)
        response = await fetch(httpx.Request("POST", url, json=body))
    """

    def __init__(
        self,
        base_fetch: BaseFetch,
        *,
        resolver: Optional[RouterConfigResolver] = None,
        permit_cache: Optional[PermitCache] = None,
        signer: Optional[PermitSigner] = None,
        private_key: Optional[str] = None,
        permit_cap: str = DEFAULT_PERMIT_CAP,
        payment_signature: Optional[str] = None,
        payment_header: str = DEFAULT_PAYMENT_HEADER,
    ):
        if payment_signature is None and (resolver is None or signer is None or not private_key):
            raise ValueError("signed-permit mode needs a resolver, a signer and a private key")
        self._base_fetch = base_fetch
        self._resolver = resolver
        self._permit_cache = permit_cache or PermitCache()
        self._signer = signer
        self._private_key = private_key
        self._permit_cap = permit_cap
        self._payment_signature = payment_signature
        self._payment_header = payment_header

    @property
    def static_mode(self) -> bool:
        return self._payment_signature is not None

    @property
    def permit_cache(self) -> PermitCache:
        return self._permit_cache

    async def __call__(self, request: httpx.Request, **kwargs) -> httpx.Response:
        return await self.send_with(self._base_fetch, request, **kwargs)

    async def send_with(
        self,
        base_fetch: BaseFetch,
        request: httpx.Request,
        **kwargs,
    ) -> httpx.Response:
        """
        Run the payment flow over ``base_fetch``.

        Keyword arguments (``stream``, ``auth``, ``follow_redirects``) are
        passed to every send unchanged.
        """
        if self.static_mode:
            request.headers[self._payment_header] = self._payment_signature
            return await base_fetch(request, **kwargs)

        await request.aread()
        attempt = RetryAttempt(request=request)

        response = await base_fetch(request, **kwargs)
        attempt.attempts += 1
        if not is_payment_required(response):
            return response

        try:
            router_config = await self._resolver.resolve()
            permit = await self._permit_cache.get_permit(
                router_config.permit_key,
                functools.partial(
                    self._signer.sign,
                    private_key=self._private_key,
                    permit_cap=self._permit_cap,
                    router_config=router_config,
                ),
            )
        except X402Error as e:
            logger.warning(
                "Could not obtain a permit for %s %s (%s); returning HTTP %s",
                request.method, request.url, e, response.status_code,
            )
            return response

        attempt.permit = permit
        attempt.permit_key = router_config.permit_key
        attempt.request = clone_with_header(request, router_config.payment_header, permit.payment_sig)
        await response.aclose()

        retried = await base_fetch(attempt.request, **kwargs)
        attempt.attempts += 1

        if is_payment_required(retried):
            logger.warning(
                "Payment rejected for %s %s after %s attempts (HTTP %s); dropping permit",
                request.method, request.url, attempt.attempts, retried.status_code,
            )
            await self._permit_cache.invalidate(attempt.permit_key, attempt.permit)
            self._resolver.invalidate()
            return retried

        amount = parse_settlement_amount(retried)
        if amount is not None:
            await self._permit_cache.record_spend(attempt.permit_key, amount, permit=attempt.permit)
        return retried


class Http402Client(httpx.AsyncClient):
    """
    ``httpx.AsyncClient`` with automatic 401/402 payment handling.

    Every send (``get``, ``post``, ``stream`` ...) goes through the given
    ``PaymentFetch``; the underlying transport is this client's own, so
    transports, timeouts and limits work as usual.

    Usage:
        ```python
        async with Http402Client(stack.fetch, base_url="https://api.example.com") as client:
            response = await client.post("/v1/chat/completions", json=body)
        ```
    """

    def __init__(self, payment_fetch: PaymentFetch, **kwargs):
        """
        Args:
            payment_fetch: Payment flow shared with the rest of the process.
            **kwargs: All standard httpx.AsyncClient arguments.
        """
        super().__init__(**kwargs)
        self._payment_fetch = payment_fetch

    async def send(self, request: httpx.Request, **kwargs) -> httpx.Response:
        return await self._payment_fetch.send_with(
            functools.partial(UNPATCHED_SEND, self), request, **kwargs
        )
