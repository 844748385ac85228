"""
Client module for x402 permit payments.

Payment-aware HTTP sending with cached, signed ERC-2612 permits, either
through an explicit ``Http402Client`` or by installing the flow on
``httpx.AsyncClient.send`` for SDKs that build their own clients.
"""

from .http_client import (
    Http402Client,
    PaymentFetch,
    RetryAttempt,
    UNPATCHED_SEND,
    parse_settlement_amount,
)
from .installer import FetchInstaller, httpx_send_installer
from .permit_cache import PermitCache, permit_key
from .router_config import RouterConfigResolver
from .stack import X402PaymentStack, create_x402_stack

__all__ = [
    "Http402Client",
    "PaymentFetch",
    "RetryAttempt",
    "UNPATCHED_SEND",
    "parse_settlement_amount",
    "FetchInstaller",
    "httpx_send_installer",
    "PermitCache",
    "permit_key",
    "RouterConfigResolver",
    "X402PaymentStack",
    "create_x402_stack",
]
