from .evm import (
    PermitSigner,
    EvmChainConfig,
    resolve_chain,
    resolve_chain_id,
)

__all__ = [
    "PermitSigner",
    "EvmChainConfig",
    "resolve_chain",
    "resolve_chain_id",
]
