from .client import UpstreamClientPool, build_upstream_client
from .connector import UpstreamConnector, UpstreamStatusError, UpstreamTimeoutError

__all__ = [
    "UpstreamClientPool",
    "build_upstream_client",
    "UpstreamConnector",
    "UpstreamStatusError",
    "UpstreamTimeoutError",
]
