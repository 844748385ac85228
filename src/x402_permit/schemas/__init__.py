from .bases import CanonicalModel, FrozenModel
from .router import (
    RouterConfig,
    normalize_router_config,
    fallback_router_config,
    DEFAULT_NETWORK,
    DEFAULT_PAYMENT_HEADER,
    DEFAULT_TOKEN_NAME,
    DEFAULT_TOKEN_VERSION,
)
from .permits import (
    CachedPermit,
    PaymentPayload,
    AcceptedPayment,
    TokenDomainExtra,
    PermitAuthorization,
    PermitPayload,
    X402_VERSION,
)

__all__ = [
    "CanonicalModel",
    "FrozenModel",
    "RouterConfig",
    "normalize_router_config",
    "fallback_router_config",
    "DEFAULT_NETWORK",
    "DEFAULT_PAYMENT_HEADER",
    "DEFAULT_TOKEN_NAME",
    "DEFAULT_TOKEN_VERSION",
    "CachedPermit",
    "PaymentPayload",
    "AcceptedPayment",
    "TokenDomainExtra",
    "PermitAuthorization",
    "PermitPayload",
    "X402_VERSION",
]
