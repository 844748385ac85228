"""
Exception and Error Definitions Module

Defines the exception hierarchy for configuration loading, permit signing and
chain interactions. All exceptions inherit from X402Error so callers can
handle every library failure in one place.

Exception Hierarchy:
    X402Error (root)
    ├── ConfigurationError
    ├── PaymentSignatureError
    │   └── AddressValidationError
    ├── BlockchainInteractionError
    └── RouterConfigError

A 401/402 response from the router is not an exception: it is returned to the
caller as an HTTP response.
"""

from typing import Optional


class X402Error(Exception):
    """
    Root exception class for all project-specific exceptions.
    """
    pass


class ConfigurationError(X402Error):
    """
    Raised when configuration is missing or invalid.

    This includes scenarios such as:
    - Missing X402_PRIVATE_KEY
    - Private key not 0x-prefixed 64-digit hex
    - Router URL that cannot be parsed
    - Permit cap that is not a positive integer string

    Configuration errors are fatal at startup and never retried.
    """
    pass


class PaymentSignatureError(X402Error):
    """
    Raised when permit signature generation fails.

    This includes scenarios such as:
    - Typed-data encoding errors
    - Private key rejected by the signing backend
    """
    pass


class AddressValidationError(PaymentSignatureError, ValueError):
    """
    Raised when a private key or address handed to the signer is malformed.

    The message always names the offending field (for example
    ``routerConfig.asset``). Malformed input never becomes valid, so the
    signing attempt is not retried with the same values.
    """

    def __init__(self, field: str, message: str):
        super().__init__(message)
        self.field = field


class BlockchainInteractionError(X402Error):
    """
    Raised when a chain read (RPC call) fails.

    This includes scenarios such as:
    - RPC call timeout
    - Network connectivity issues
    - Contract call revert on ``nonces(owner)``
    """
    pass


class RouterConfigError(X402Error):
    """
    Raised when the router's ``/v1/config`` endpoint cannot be used.

    The resolver catches this and degrades to a fallback configuration; it
    never reaches callers of ``RouterConfigResolver.resolve``.

    Attributes:
        status_code: HTTP status returned by the router, if any
    """

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code
