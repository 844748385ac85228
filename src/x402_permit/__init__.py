"""
x402-permit: pay for HTTP API usage with cached ERC-2612 permits.

    stack = create_x402_stack()
    async with stack.client(base_url=api_url) as client:
        response = await client.post("/v1/chat/completions", json=body)
"""

from .clients import (
    Http402Client,
    PaymentFetch,
    FetchInstaller,
    PermitCache,
    RouterConfigResolver,
    X402PaymentStack,
    create_x402_stack,
)
from .adapters import PermitSigner
from .engine import X402Error, ConfigurationError
from .settings import X402EnvConfig, load_x402_env

__all__ = [
    "Http402Client",
    "PaymentFetch",
    "FetchInstaller",
    "PermitCache",
    "RouterConfigResolver",
    "X402PaymentStack",
    "create_x402_stack",
    "PermitSigner",
    "X402Error",
    "ConfigurationError",
    "X402EnvConfig",
    "load_x402_env",
]
