"""
EVM Permit Signer

Produces time-boxed ERC-2612 permits for the payment router. The only chain
interaction is a read of the token's ``nonces(owner)``; the EIP-712 signature
is computed in-process with ``eth_account`` and nothing is broadcast.

Exported helpers
----------------
PermitSigner
    Validates inputs, reads the nonce, signs, and returns a ``CachedPermit``
    whose ``payment_sig`` is the base64 x402 payment payload.

validate_private_key / validate_address
    Precondition checks raising ``AddressValidationError`` that names the
    offending field.
"""

import logging
import re
import time
from typing import Callable, Optional

from eth_account import Account
from web3 import AsyncWeb3, Web3

from ...engine.exceptions import (
    AddressValidationError,
    BlockchainInteractionError,
    PaymentSignatureError,
)
from ...schemas.permits import (
    AcceptedPayment,
    CachedPermit,
    PaymentPayload,
    PermitAuthorization,
    PermitPayload,
    TokenDomainExtra,
)
from ...schemas.router import RouterConfig
from .constants import (
    DEFAULT_VALIDITY_SECONDS,
    EvmChainConfig,
    get_rpc_url,
    is_address,
    is_private_key,
    resolve_chain,
    resolve_chain_id,
)
from .EIP2612_types import PermitTypedData
from .ERC20_ABI import get_nonces_abi

logger = logging.getLogger(__name__)

_POSITIVE_INTEGER_REGEX = re.compile(r"^[1-9][0-9]*$")


def validate_private_key(value: str, field: str = "X402_PRIVATE_KEY") -> str:
    if not is_private_key(value):
        raise AddressValidationError(field, f"{field} must be a 0x-prefixed 64-byte hex string")
    return value


def validate_address(value: str, field: str) -> str:
    if not is_address(value):
        raise AddressValidationError(field, f"{field} must be a 0x-prefixed 20-byte hex address")
    return value


class PermitSigner:
    """
    Signs ERC-2612 permits against a router configuration.

    Each call to :meth:`sign` reads a fresh on-chain nonce, so a permit is
    never signed twice with the same nonce by this signer. Errors propagate
    to the caller; there are no retries here.

    Args:
        rpc_url: Optional RPC endpoint used for every chain instead of the
            chain's public endpoint.
        request_timeout: RPC request timeout in seconds.
        validity_seconds: Permit lifetime; ``deadline = now + validity_seconds``.
        clock: Source of unix time, injectable for tests.

    Example:
        signer = PermitSigner()
        permit = await signer.sign(
            private_key="0x...",
            permit_cap="10000000",
            router_config=config,
        )
    """

    def __init__(
        self,
        rpc_url: Optional[str] = None,
        request_timeout: int = 30,
        validity_seconds: int = DEFAULT_VALIDITY_SECONDS,
        clock: Callable[[], float] = time.time,
    ):
        self._rpc_url = rpc_url
        self._request_timeout = request_timeout
        self._validity_seconds = validity_seconds
        self._clock = clock

    def _get_web3_instance(self, chain: EvmChainConfig) -> AsyncWeb3:
        return AsyncWeb3(AsyncWeb3.AsyncHTTPProvider(
            get_rpc_url(chain, self._rpc_url),
            request_kwargs={"timeout": self._request_timeout},
        ))

    async def read_nonce(self, chain: EvmChainConfig, asset: str, owner: str) -> int:
        """
        Read the ERC-2612 ``nonces(owner)`` value from the asset contract.

        Raises:
            BlockchainInteractionError: If the RPC call fails or reverts.
        """
        web3 = self._get_web3_instance(chain)
        contract = web3.eth.contract(
            address=AsyncWeb3.to_checksum_address(asset),
            abi=get_nonces_abi(),
        )
        try:
            nonce = await contract.functions.nonces(owner).call()
        except Exception as e:
            raise BlockchainInteractionError(
                f"Failed to read nonces({owner}) on {asset} ({chain.name}): {e}"
            ) from e
        return int(nonce)

    async def sign(
        self,
        *,
        private_key: str,
        permit_cap: str,
        router_config: RouterConfig,
    ) -> CachedPermit:
        """
        Produce a signed permit for ``router_config``.

        Steps:
            1. Validate the key, the asset and the facilitator address
            2. Resolve chain and chain id from ``router_config.network``
            3. Read ``nonces(owner)`` on the asset contract
            4. Sign ``Permit{owner, spender, value, nonce, deadline}``
            5. Wrap authorization and signature in the x402 payment payload

        Args:
            private_key: 0x-prefixed 64-digit hex key of the paying wallet.
            permit_cap: Allowance in token base units (positive integer string).
            router_config: Router parameters the permit is built against.

        Returns:
            CachedPermit: Permit ready for the payment header.

        Raises:
            AddressValidationError: Key or router address is malformed.
            PaymentSignatureError: Cap is malformed or signing failed.
            BlockchainInteractionError: Nonce read failed.
        """
        validate_private_key(private_key)
        asset = validate_address(router_config.asset, "routerConfig.asset")
        facilitator = validate_address(
            router_config.facilitator_signer, "routerConfig.facilitatorSigner"
        )
        if not isinstance(permit_cap, str) or not _POSITIVE_INTEGER_REGEX.fullmatch(permit_cap):
            raise PaymentSignatureError("permitCap must be a positive integer string")

        chain = resolve_chain(router_config.network)
        chain_id = resolve_chain_id(router_config.network, chain.chain_id)
        try:
            owner = Account.from_key(private_key).address
        except Exception as e:
            raise AddressValidationError(
                "X402_PRIVATE_KEY", f"X402_PRIVATE_KEY is not a usable secp256k1 private key: {e}"
            ) from e
        spender = Web3.to_checksum_address(facilitator)

        nonce = await self.read_nonce(chain, asset, owner)
        deadline = int(self._clock()) + self._validity_seconds

        typed_data = PermitTypedData(
            token_name=router_config.token_name,
            token_version=router_config.token_version,
            chain_id=chain_id,
            verifying_contract=Web3.to_checksum_address(asset),
            owner=owner,
            spender=spender,
            value=int(permit_cap),
            nonce=nonce,
            deadline=deadline,
        )
        try:
            signed = Account.sign_typed_data(private_key, full_message=typed_data.to_dict())
        except Exception as e:
            raise PaymentSignatureError(f"Failed to sign permit typed data: {e}") from e

        payment_payload = PaymentPayload(
            accepted=AcceptedPayment(
                network=router_config.network,
                asset=router_config.asset,
                pay_to=router_config.pay_to,
                extra=TokenDomainExtra(
                    name=router_config.token_name,
                    version=router_config.token_version,
                ),
            ),
            payload=PermitPayload(
                authorization=PermitAuthorization(
                    from_address=owner,
                    to=spender,
                    value=permit_cap,
                    valid_before=str(deadline),
                    nonce=str(nonce),
                ),
                signature=Web3.to_hex(signed.signature),
            ),
        )

        logger.info(
            "Signed permit for %s on chain %s (nonce=%s, deadline=%s, cap=%s)",
            owner, chain_id, nonce, deadline, permit_cap,
        )
        return CachedPermit(
            payment_sig=payment_payload.to_base64(),
            deadline=deadline,
            max_value=permit_cap,
            nonce=str(nonce),
            network=router_config.network,
            asset=router_config.asset,
            pay_to=router_config.pay_to,
        )
