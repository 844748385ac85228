"""
EVM Chain Configuration

Supported chains for permit signing, input format rules, and CAIP-2 parsing.
Networks the signer does not know fall back to Base.
"""

import re
from typing import Dict, Optional

from pydantic import BaseModel, Field


PRIVATE_KEY_REGEX = re.compile(r"^0x[0-9a-fA-F]{64}$")
ADDRESS_REGEX = re.compile(r"^0x[0-9a-fA-F]{40}$")

#: Lifetime of a freshly signed permit.
DEFAULT_VALIDITY_SECONDS: int = 3600


class EvmChainConfig(BaseModel):
    """EVM blockchain network configuration."""
    caip2: str
    chain_id: int
    name: str
    public_rpc_url: str = Field(..., description="Public RPC endpoint used for chain reads")
    explorer_url: str = Field(..., description="Block explorer URL")


_EVM_CHAINS_DATA: Dict[str, Dict] = {
    "eip155:1": {
        "chain_id": 1,
        "name": "Ethereum Mainnet",
        "public_rpc_url": "https://eth.merkle.io",
        "explorer_url": "https://etherscan.io",
    },
    "eip155:8453": {
        "chain_id": 8453,
        "name": "Base",
        "public_rpc_url": "https://mainnet.base.org",
        "explorer_url": "https://basescan.org",
    },
    "eip155:84532": {
        "chain_id": 84532,
        "name": "Base Sepolia",
        "public_rpc_url": "https://sepolia.base.org",
        "explorer_url": "https://sepolia.basescan.org",
    },
}

CHAINS: Dict[str, EvmChainConfig] = {
    caip2: EvmChainConfig(caip2=caip2, **data) for caip2, data in _EVM_CHAINS_DATA.items()
}

BASE_CHAIN: EvmChainConfig = CHAINS["eip155:8453"]


def resolve_chain(network: str) -> EvmChainConfig:
    """Return the chain configured for ``network``, or Base if unknown."""
    return CHAINS.get(network, BASE_CHAIN)


def resolve_chain_id(network: str, fallback: int) -> int:
    """
    Parse the numeric chain id from an ``eip155:<id>`` network string.

    Leading digits of the suffix are used (``"eip155:8453"`` -> 8453).

    Args:
        network: CAIP-2 network identifier.
        fallback: Returned when the suffix is absent or not numeric.

    Returns:
        int: Chain id for the EIP-712 domain.
    """
    parts = network.split(":")
    if len(parts) < 2:
        return fallback
    match = re.match(r"\s*(\d+)", parts[1])
    if not match:
        return fallback
    return int(match.group(1))


def get_rpc_url(chain: EvmChainConfig, override: Optional[str] = None) -> str:
    """Pick the RPC endpoint for chain reads: explicit override, else the public one."""
    return override or chain.public_rpc_url


def is_private_key(value: str) -> bool:
    return isinstance(value, str) and bool(PRIVATE_KEY_REGEX.fullmatch(value))


def is_address(value: str) -> bool:
    return isinstance(value, str) and bool(ADDRESS_REGEX.fullmatch(value))
