"""Client for the Extensiv warehouse-management API."""

from wholesale_orders.upstream.auth import AccessToken, AccessTokenProvider
from wholesale_orders.upstream.client import UpstreamClient, is_retryable

__all__ = [
    "AccessToken",
    "AccessTokenProvider",
    "UpstreamClient",
    "is_retryable",
]
