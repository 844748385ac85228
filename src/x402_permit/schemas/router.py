"""
Router Configuration Schema

The payment router publishes the parameters a permit must be built against
(token contract, recipient, facilitator spender, EIP-712 domain). This module
holds the immutable snapshot of those parameters and the normalizer that turns
whatever the router returned into one.
"""

from typing import Any, Dict, Mapping, Optional

from pydantic import Field

from .bases import FrozenModel


DEFAULT_NETWORK = "eip155:8453"
DEFAULT_PAYMENT_HEADER = "PAYMENT-SIGNATURE"
DEFAULT_TOKEN_NAME = "USD Coin"
DEFAULT_TOKEN_VERSION = "2"


class RouterConfig(FrozenModel):
    """Router-supplied payment parameters.

    Attributes:
        network: CAIP-2 chain identifier (e.g. ``eip155:8453``).
        asset: Token contract address, also the EIP-712 verifying contract.
        pay_to: Recipient address of the payment.
        facilitator_signer: Address authorised as permit spender.
        token_name: EIP-712 domain ``name`` of the token.
        token_version: EIP-712 domain ``version`` of the token.
        payment_header: HTTP header carrying the payment proof.
    """
    network: str = Field(..., min_length=1)
    asset: str = Field(default="", description="Token contract address")
    pay_to: str = Field(default="", alias="payTo")
    facilitator_signer: str = Field(default="", alias="facilitatorSigner")
    token_name: str = Field(default=DEFAULT_TOKEN_NAME, alias="tokenName")
    token_version: str = Field(default=DEFAULT_TOKEN_VERSION, alias="tokenVersion")
    payment_header: str = Field(default=DEFAULT_PAYMENT_HEADER, alias="paymentHeader", min_length=1)

    @property
    def permit_key(self) -> str:
        """Cache key identifying permits issued for this router target."""
        return f"{self.network}:{self.asset}:{self.pay_to}"


# Accepted spellings for each field, in lookup order.
_FIELD_KEYS = {
    "network": ("network",),
    "asset": ("asset",),
    "pay_to": ("payTo", "pay_to"),
    "facilitator_signer": ("facilitatorSigner", "facilitator_signer", "facilitator"),
    "token_name": ("tokenName", "token_name"),
    "token_version": ("tokenVersion", "token_version"),
    "payment_header": ("paymentHeader", "payment_header"),
}


def _pick(sources, keys) -> Optional[str]:
    for source in sources:
        for key in keys:
            value = source.get(key)
            if isinstance(value, (str, int)) and not isinstance(value, bool):
                text = str(value).strip()
                if text:
                    return text
    return None


def normalize_router_config(
    data: Any,
    *,
    network: str = DEFAULT_NETWORK,
    payment_header: str = DEFAULT_PAYMENT_HEADER,
) -> RouterConfig:
    """
    Build a RouterConfig from an arbitrary router response.

    Lookup order per field is the top-level object, then the first entry of an
    x402 ``accepts`` list, then that entry's ``extra`` object. Missing or blank
    values fall back to ``network``/``payment_header`` and the token domain
    defaults; address fields fall back to empty placeholders that the signer
    rejects.

    Args:
        data: Decoded JSON body (any type).
        network: Network used when the router does not name one.
        payment_header: Header name used when the router does not name one.

    Returns:
        RouterConfig: Never has an empty ``network`` or ``payment_header``.
    """
    sources = []
    if isinstance(data, Mapping):
        sources.append(data)
        accepts = data.get("accepts")
        if isinstance(accepts, list) and accepts and isinstance(accepts[0], Mapping):
            sources.append(accepts[0])
            extra = accepts[0].get("extra")
            if isinstance(extra, Mapping):
                # x402 requirements carry the EIP-712 domain as extra.name / extra.version
                sources.append({"tokenName": extra.get("name"), "tokenVersion": extra.get("version")})

    values: Dict[str, str] = {}
    for field, keys in _FIELD_KEYS.items():
        value = _pick(sources, keys)
        if value is not None:
            values[field] = value

    values.setdefault("network", network or DEFAULT_NETWORK)
    values.setdefault("payment_header", payment_header or DEFAULT_PAYMENT_HEADER)
    return RouterConfig(**values)


def fallback_router_config(
    *,
    network: str = DEFAULT_NETWORK,
    payment_header: str = DEFAULT_PAYMENT_HEADER,
) -> RouterConfig:
    """Router configuration built from local defaults only."""
    return normalize_router_config({}, network=network, payment_header=payment_header)
