"""
ERC-2612 Contract ABI Module

Minimal ABI fragments for the chain reads the permit signer performs.

Usage:
    from ERC20_ABI import get_nonces_abi

    contract = web3.eth.contract(address=token_address, abi=get_nonces_abi())
    nonce = await contract.functions.nonces(owner).call()
"""

from typing import Dict, Any, List


def get_nonces_abi() -> List[Dict[str, Any]]:
    """
    Get ABI for ERC-2612 ``nonces(owner)``.

    The returned nonce must be embedded in the next permit signed by
    ``owner``; the token increments it when a permit is consumed.

    Returns:
        List[Dict[str, Any]]: ABI for the nonces view function
    """
    return [
        {
            "name": "nonces",
            "type": "function",
            "stateMutability": "view",
            "inputs": [{"name": "owner", "type": "address"}],
            "outputs": [{"name": "nonce", "type": "uint256"}],
        }
    ]
