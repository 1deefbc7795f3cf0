import logging
from typing import Optional

import httpx

from mcp_forwarder.config import ForwarderConfig

logger = logging.getLogger("uvicorn.error")


def build_upstream_client(
    config: ForwarderConfig,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> httpx.AsyncClient:
    """Create the pooled client shared by every downstream connection.

    Read timeouts are disabled: event streams stay idle for long periods and
    tool calls may run for minutes. ``UPSTREAM_TIMEOUT_MS`` is applied per
    request by the callers instead.
    """
    limits = httpx.Limits(
        max_connections=config.upstream_max_sockets,
        max_keepalive_connections=config.upstream_max_sockets,
        keepalive_expiry=config.upstream_keep_alive_ms / 1000,
    )
    return httpx.AsyncClient(
        timeout=httpx.Timeout(None),
        limits=limits,
        follow_redirects=True,
        max_redirects=5,
        transport=transport,
    )


class UpstreamClientPool:
    """Owns the shared ``httpx.AsyncClient``; created lazily, closed on shutdown."""

    def __init__(
        self,
        config: ForwarderConfig,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.config = config
        self.transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    @property
    def client(self) -> httpx.AsyncClient:
        if self._client is None or self._client.is_closed:
            self._client = build_upstream_client(self.config, self.transport)
            logger.debug(
                f"[Upstream] Created client pool (max sockets: {self.config.upstream_max_sockets})"
            )
        return self._client

    async def aclose(self) -> None:
        if self._client is not None and not self._client.is_closed:
            await self._client.aclose()
        self._client = None
