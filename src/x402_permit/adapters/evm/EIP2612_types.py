"""
EIP-2612 Permit Typed Data

Typed-data envelope for an ERC-2612 ``Permit``. ``to_dict()`` is the
``full_message`` accepted by ``eth_account.Account.sign_typed_data`` and
``eth_signTypedData_v4``.
"""

from dataclasses import dataclass
from typing import Any, Dict, List


EIP712_DOMAIN_TYPE: List[Dict[str, str]] = [
    {"name": "name", "type": "string"},
    {"name": "version", "type": "string"},
    {"name": "chainId", "type": "uint256"},
    {"name": "verifyingContract", "type": "address"},
]

PERMIT_TYPE: List[Dict[str, str]] = [
    {"name": "owner", "type": "address"},
    {"name": "spender", "type": "address"},
    {"name": "value", "type": "uint256"},
    {"name": "nonce", "type": "uint256"},
    {"name": "deadline", "type": "uint256"},
]


@dataclass(frozen=True)
class PermitTypedData:
    """
    ERC-2612 permit over a token's EIP-712 domain.

    Attributes:
        token_name: Domain ``name`` as stored in the token contract
        token_version: Domain ``version``
        chain_id: EIP-155 chain id
        verifying_contract: Token contract address
        owner: Address granting the allowance
        spender: Address allowed to spend (the facilitator)
        value: Allowance in token base units
        nonce: Owner's current ``nonces(owner)`` value
        deadline: Unix timestamp after which the permit is void
    """
    token_name: str
    token_version: str
    chain_id: int
    verifying_contract: str
    owner: str
    spender: str
    value: int
    nonce: int
    deadline: int

    def domain(self) -> Dict[str, Any]:
        return {
            "name": self.token_name,
            "version": self.token_version,
            "chainId": self.chain_id,
            "verifyingContract": self.verifying_contract,
        }

    def message(self) -> Dict[str, Any]:
        return {
            "owner": self.owner,
            "spender": self.spender,
            "value": self.value,
            "nonce": self.nonce,
            "deadline": self.deadline,
        }

    def to_dict(self) -> Dict[str, Any]:
        return {
            "types": {"EIP712Domain": EIP712_DOMAIN_TYPE, "Permit": PERMIT_TYPE},
            "primaryType": "Permit",
            "domain": self.domain(),
            "message": self.message(),
        }
