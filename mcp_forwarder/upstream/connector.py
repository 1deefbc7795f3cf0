import asyncio
import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, Mapping, Optional

import httpx
from opentelemetry import trace

from mcp_forwarder.upstream.client import UpstreamClientPool

logger = logging.getLogger("uvicorn.error")
tracer = trace.get_tracer(__name__)


class UpstreamStatusError(Exception):
    """The upstream answered the stream request with a non-success status."""

    def __init__(self, status_code: int, url: str):
        self.status_code = status_code
        self.url = url
        super().__init__(f"Upstream SSE responded {status_code}")


class UpstreamTimeoutError(Exception):
    """No response headers arrived within ``UPSTREAM_TIMEOUT_MS``."""

    def __init__(self, timeout: float):
        self.timeout = timeout
        super().__init__(f"upstream-timeout after {int(timeout * 1000)}ms")


class UpstreamConnector:
    """Opens one streaming GET against the upstream per call to ``connect``."""

    def __init__(self, pool: UpstreamClientPool, timeout: Optional[float] = None):
        self.pool = pool
        self.timeout = timeout if timeout and timeout > 0 else None

    async def _send(self, request: httpx.Request) -> httpx.Response:
        send = self.pool.client.send(request, stream=True)
        if self.timeout is None:
            return await send
        try:
            return await asyncio.wait_for(send, self.timeout)
        except asyncio.TimeoutError as e:
            raise UpstreamTimeoutError(self.timeout) from e

    @asynccontextmanager
    async def connect(
        self, url: str, headers: Mapping[str, str]
    ) -> AsyncIterator[httpx.Response]:
        """
        Open the upstream event stream.

        Yields the response with its body still unread. Raises
        ``UpstreamStatusError`` for non-success statuses and
        ``UpstreamTimeoutError`` when the optional timeout expires. The
        response is always closed when the context exits, including on
        cancellation.
        """
        request = self.pool.client.build_request("GET", url, headers=dict(headers))
        with tracer.start_as_current_span("upstream_sse_connect") as span:
            span.set_attribute("proxy.target_url", url)
            try:
                response = await self._send(request)
            except Exception as e:
                span.set_attribute("proxy.error", str(e) or type(e).__name__)
                raise
            span.set_attribute("proxy.status_code", response.status_code)

        try:
            logger.info(
                f"[Upstream] SSE response status: {response.status_code}, "
                f"Content-Type: {response.headers.get('content-type', '')}"
            )
            if not response.is_success:
                raise UpstreamStatusError(response.status_code, url)
            yield response
        finally:
            await response.aclose()
