"""
Session bootstrap for clients that connect without a session id.

A single JSON-RPC ``initialize`` call is sent to the upstream's unary
endpoint; the session id the upstream issues comes back in the
``Mcp-Session-Id`` response header.
"""

import logging
import time
from dataclasses import dataclass
from typing import Any, Callable, Mapping, Optional

from opentelemetry import trace

from mcp_forwarder.config import ForwarderConfig, USER_AGENT_NAME
from mcp_forwarder.session.resolver import SESSION_HEADER, get_header
from mcp_forwarder.upstream.client import UpstreamClientPool
from mcp_forwarder.upstream.headers import handshake_headers
from mcp_forwarder.utils import mask_session
from mcp_forwarder.utils.exception_logging import describe_exception

logger = logging.getLogger("uvicorn.error")
tracer = trace.get_tracer(__name__)


@dataclass
class InitializeResult:
    """
    Outcome of the initialize handshake.

    Attributes:
        ok: True when the upstream answered with a 2xx status
        status: HTTP status, 0 when the request never got a response
        session_id: Session id from the response header, if any
        result: Parsed JSON body when the upstream answered with JSON
        error: Transport error message when the request failed
        text: Raw body for diagnostics when no session id and no JSON came back
    """

    ok: bool
    status: int
    session_id: Optional[str] = None
    result: Optional[Any] = None
    error: Optional[str] = None
    text: Optional[str] = None

    @property
    def server_info(self) -> Optional[str]:
        """``"<name> v<version>"`` from ``result.serverInfo`` when present."""
        if not isinstance(self.result, dict):
            return None
        inner = self.result.get("result")
        if not isinstance(inner, dict):
            return None
        info = inner.get("serverInfo")
        if not isinstance(info, dict):
            return None
        return f"{info.get('name') or ''} v{info.get('version') or ''}"


def _now_ms() -> int:
    return int(time.time() * 1000)


def build_initialize_request(
    config: ForwarderConfig, now_ms: Callable[[], int] = _now_ms
) -> dict:
    return {
        "jsonrpc": "2.0",
        "id": f"init-{now_ms()}",
        "method": "initialize",
        "params": {
            "clientInfo": {
                "name": USER_AGENT_NAME,
                "version": config.service_version,
            },
            "capabilities": {},
        },
    }


class SessionBootstrapper:
    def __init__(
        self,
        config: ForwarderConfig,
        pool: UpstreamClientPool,
        now_ms: Callable[[], int] = _now_ms,
    ):
        self.config = config
        self.pool = pool
        self._now_ms = now_ms

    async def initialize(
        self, extra_headers: Optional[Mapping[str, str]] = None
    ) -> InitializeResult:
        """Run the handshake. Never raises; failures come back with ``ok=False``."""
        body = build_initialize_request(self.config, self._now_ms)
        headers = handshake_headers(self.config, extra_headers)
        started = time.monotonic()

        with tracer.start_as_current_span("upstream_initialize") as span:
            span.set_attribute("proxy.target_url", self.config.upstream_url)
            try:
                response = await self.pool.client.post(
                    self.config.upstream_url,
                    json=body,
                    headers=headers,
                    timeout=self.config.upstream_timeout,
                )
            except Exception as e:
                duration_ms = int((time.monotonic() - started) * 1000)
                reason = describe_exception(e)
                span.set_attribute("proxy.error", reason)
                logger.error(
                    f"[Bootstrap] initialize failed - error: {reason}, duration: {duration_ms}ms"
                )
                return InitializeResult(ok=False, status=0, error=reason)

            span.set_attribute("proxy.status_code", response.status_code)

        content_type = response.headers.get("content-type", "")
        session_id = get_header(response.headers, SESSION_HEADER)
        result_json = None
        if "application/json" in content_type:
            try:
                result_json = response.json()
            except ValueError:
                result_json = None

        text = None
        if not session_id and "application/json" not in content_type:
            text = response.text

        duration_ms = int((time.monotonic() - started) * 1000)
        logger.info(
            f"[Bootstrap] initialize complete - status: {response.status_code}, "
            f"duration: {duration_ms}ms, sessionId: {mask_session(session_id)}"
        )
        return InitializeResult(
            ok=response.is_success,
            status=response.status_code,
            session_id=session_id or None,
            result=result_json,
            text=text,
        )
