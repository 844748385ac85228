from .constants import (
    CHAINS,
    BASE_CHAIN,
    EvmChainConfig,
    resolve_chain,
    resolve_chain_id,
    get_rpc_url,
)
from .EIP2612_types import PermitTypedData
from .ERC20_ABI import get_nonces_abi
from .signatures import PermitSigner, validate_private_key, validate_address

__all__ = [
    "CHAINS",
    "BASE_CHAIN",
    "EvmChainConfig",
    "resolve_chain",
    "resolve_chain_id",
    "get_rpc_url",
    "PermitTypedData",
    "get_nonces_abi",
    "PermitSigner",
    "validate_private_key",
    "validate_address",
]
