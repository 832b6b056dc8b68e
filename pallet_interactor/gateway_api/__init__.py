"""HTTP client wrappers for the chain gateway."""

from .client import (
    CallRejectedError,
    GatewayApiClient,
    GatewayApiError,
    GatewayUnreachableError,
    UnauthorizedError,
    default_client,
)

__all__ = [
    "GatewayApiClient",
    "GatewayApiError",
    "CallRejectedError",
    "GatewayUnreachableError",
    "UnauthorizedError",
    "default_client",
]
