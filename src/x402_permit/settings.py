"""
Environment Configuration

Loads the X402_* environment variables the payment layer consumes, applies
defaults, and validates them up front. Any problem raises
``ConfigurationError`` before a signer or HTTP client is built.

Environment Variables:
    - X402_PRIVATE_KEY: Paying wallet key, 0x/0X + 64 hex digits (required)
    - X402_ROUTER_URL: Payment router base URL (default http://localhost:8080)
    - X402_NETWORK: CAIP-2 network id (default eip155:8453)
    - X402_PERMIT_CAP: Permit allowance in base units (default 10000000)
    - X402_PAYMENT_HEADER: Payment proof header (default PAYMENT-SIGNATURE)
    - X402_PAYMENT_SIGNATURE: Static payment proof; disables permit signing
    - X402_RPC_URL: RPC endpoint for nonce reads (default: chain public RPC)
"""

import os
import re
from typing import Mapping, Optional
from urllib.parse import urlsplit

import dotenv
from eth_account import Account
from pydantic import BaseModel, ConfigDict

from .engine.exceptions import ConfigurationError
from .schemas.router import DEFAULT_NETWORK, DEFAULT_PAYMENT_HEADER


PRIVATE_KEY_REGEX = re.compile(r"^0[xX][0-9a-fA-F]{64}$")
POSITIVE_INTEGER_REGEX = re.compile(r"^[1-9][0-9]*$")

DEFAULT_ROUTER_URL = "http://localhost:8080"
DEFAULT_PERMIT_CAP = "10000000"


class X402EnvConfig(BaseModel):
    """Validated payment-layer configuration.

    Attributes:
        private_key: Normalized ``0x``-prefixed key.
        router_url: Router origin (scheme://host[:port]).
        network: CAIP-2 network id used when the router does not name one.
        permit_cap: Permit allowance, positive integer string.
        payment_header: Payment header used when the router does not name one.
        payment_signature: Static payment proof, or None for signed-permit mode.
        rpc_url: RPC override for chain reads.
    """
    model_config = ConfigDict(frozen=True)

    private_key: str
    router_url: str
    network: str
    permit_cap: str
    payment_header: str
    payment_signature: Optional[str] = None
    rpc_url: Optional[str] = None

    @property
    def static_mode(self) -> bool:
        return self.payment_signature is not None

    def __repr__(self) -> str:
        # keep the key out of logs and tracebacks
        return (
            f"X402EnvConfig(router_url={self.router_url!r}, network={self.network!r}, "
            f"permit_cap={self.permit_cap!r}, payment_header={self.payment_header!r}, "
            f"static_mode={self.static_mode})"
        )

    __str__ = __repr__


def _read_trimmed(env: Mapping[str, str], key: str) -> Optional[str]:
    value = env.get(key)
    if not isinstance(value, str):
        return None
    trimmed = value.strip()
    return trimmed or None


def normalize_private_key(private_key: str) -> str:
    """
    Validate a private key and canonicalize its prefix to lowercase ``0x``.

    Raises:
        ConfigurationError: If the key is not 0x/0X followed by 64 hex digits,
            or is outside the secp256k1 key range.
    """
    if not isinstance(private_key, str) or not PRIVATE_KEY_REGEX.fullmatch(private_key):
        raise ConfigurationError("X402_PRIVATE_KEY must be a 0x-prefixed 64-byte hex string")
    normalized = "0x" + private_key[2:]
    try:
        # zero and values at or above the curve order are not signing keys
        Account.from_key(normalized)
    except Exception as e:
        raise ConfigurationError("X402_PRIVATE_KEY is not a valid secp256k1 private key") from e
    return normalized


def normalize_router_url(router_url: str) -> str:
    """
    Reduce a router URL to its origin.

    ``https://router.example.com/v1/`` -> ``https://router.example.com``

    Raises:
        ConfigurationError: If the URL has no scheme or host.
    """
    try:
        parts = urlsplit(router_url)
        port = parts.port
    except ValueError as e:
        raise ConfigurationError("X402_ROUTER_URL must be a valid URL") from e
    if parts.scheme not in ("http", "https") or not parts.hostname:
        raise ConfigurationError("X402_ROUTER_URL must be a valid URL")

    host = parts.hostname
    if ":" in host:
        host = f"[{host}]"
    origin = f"{parts.scheme}://{host}"
    if port is not None:
        origin = f"{origin}:{port}"
    return origin


def normalize_permit_cap(permit_cap: str) -> str:
    """
    Raises:
        ConfigurationError: Unless the cap is a positive integer string
            without sign or leading zeros.
    """
    if not isinstance(permit_cap, str) or not POSITIVE_INTEGER_REGEX.fullmatch(permit_cap):
        raise ConfigurationError("X402_PERMIT_CAP must be a positive integer string")
    return permit_cap


def load_x402_env(env: Optional[Mapping[str, str]] = None) -> X402EnvConfig:
    """
    Load and validate configuration.

    Args:
        env: Mapping to read from. When omitted, a ``.env`` file is loaded
            (without overriding existing variables) and ``os.environ`` is used.

    Returns:
        X402EnvConfig: Validated configuration.

    Raises:
        ConfigurationError: If a required value is missing or malformed.

    Example:
        config = load_x402_env({"X402_PRIVATE_KEY": "0x" + "1" * 64})
        config.router_url  # "http://localhost:8080"
    """
    if env is None:
        dotenv.load_dotenv()
        env = os.environ

    private_key_raw = _read_trimmed(env, "X402_PRIVATE_KEY")
    if not private_key_raw:
        raise ConfigurationError("X402_PRIVATE_KEY is required")

    router_url_raw = _read_trimmed(env, "X402_ROUTER_URL") or DEFAULT_ROUTER_URL
    permit_cap_raw = _read_trimmed(env, "X402_PERMIT_CAP") or DEFAULT_PERMIT_CAP

    return X402EnvConfig(
        private_key=normalize_private_key(private_key_raw),
        router_url=normalize_router_url(router_url_raw),
        network=_read_trimmed(env, "X402_NETWORK") or DEFAULT_NETWORK,
        permit_cap=normalize_permit_cap(permit_cap_raw),
        payment_header=_read_trimmed(env, "X402_PAYMENT_HEADER") or DEFAULT_PAYMENT_HEADER,
        payment_signature=_read_trimmed(env, "X402_PAYMENT_SIGNATURE"),
        rpc_url=_read_trimmed(env, "X402_RPC_URL"),
    )
