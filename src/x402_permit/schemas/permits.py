"""
Permit and Payment Payload Schemas

Models for the signed spending authorization handed to the router:

    CachedPermit            What the permit cache stores and reuses
    PaymentPayload          Versioned JSON carried (base64) in the payment header
      ├── AcceptedPayment   Router target the permit was built for
      └── PermitPayload     EIP-2612 authorization tuple + signature
"""

import time
from typing import Literal, Optional

from pydantic import Field

from .bases import CanonicalModel, FrozenModel


X402_VERSION = 2


class CachedPermit(FrozenModel):
    """A signed, reusable spending authorization.

    Attributes:
        payment_sig: Base64 of the JSON ``PaymentPayload``.
        deadline: Unix seconds after which the permit is invalid.
        max_value: Authorized cap in token base units (integer string).
        nonce: ERC-2612 nonce consumed by this permit (integer string).
        network: Network the permit was issued against.
        asset: Token contract the permit was issued against.
        pay_to: Recipient the permit was issued against.
    """
    payment_sig: str = Field(..., alias="paymentSig")
    deadline: int
    max_value: str = Field(..., alias="maxValue", pattern=r"^[0-9]+$")
    nonce: str
    network: str
    asset: str
    pay_to: str = Field(..., alias="payTo")

    @property
    def max_value_int(self) -> int:
        return int(self.max_value)

    def is_expired(self, now: Optional[float] = None) -> bool:
        """True once ``now`` has reached the deadline."""
        if now is None:
            now = time.time()
        return now >= self.deadline


class TokenDomainExtra(CanonicalModel):
    name: str
    version: str


class AcceptedPayment(CanonicalModel):
    scheme: Literal["upto"] = "upto"
    network: str
    asset: str
    pay_to: str = Field(..., alias="payTo")
    extra: TokenDomainExtra


class PermitAuthorization(CanonicalModel):
    """EIP-2612 authorization tuple. Integers are carried as decimal strings."""
    from_address: str = Field(..., alias="from")
    to: str
    value: str
    valid_before: str = Field(..., alias="validBefore")
    nonce: str


class PermitPayload(CanonicalModel):
    authorization: PermitAuthorization
    signature: str


class PaymentPayload(CanonicalModel):
    """Versioned x402 payment payload.

    Serialized with ``to_base64()`` to produce ``CachedPermit.payment_sig``.
    """
    x402_version: int = Field(default=X402_VERSION, alias="x402Version")
    accepted: AcceptedPayment
    payload: PermitPayload
