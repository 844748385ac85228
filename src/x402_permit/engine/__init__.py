from .exceptions import (
    X402Error,
    ConfigurationError,
    PaymentSignatureError,
    AddressValidationError,
    BlockchainInteractionError,
    RouterConfigError,
)

__all__ = [
    "X402Error",
    "ConfigurationError",
    "PaymentSignatureError",
    "AddressValidationError",
    "BlockchainInteractionError",
    "RouterConfigError",
]
