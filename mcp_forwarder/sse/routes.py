"""
Downstream event-stream endpoints.

``GET /sse`` (legacy SSE transport) and ``GET /mcp`` (streamable HTTP
transport, GET side) share one implementation: resolve or bootstrap the
session, then hand the connection to a ``StreamForwarder``.
"""

import logging
from typing import Mapping
from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit

from fastapi import APIRouter, Depends, Request

from mcp_forwarder.services import ForwarderServices, get_services
from mcp_forwarder.session.resolver import resolve_session
from mcp_forwarder.sse.channel import DownstreamChannel
from mcp_forwarder.sse.events import create_sse_response
from mcp_forwarder.sse.forwarder import StreamForwarder
from mcp_forwarder.utils import mask_session

router = APIRouter()

logger = logging.getLogger("uvicorn.error")


def merge_query(url: str, query_params: Mapping[str, str]) -> str:
    """Copy downstream query parameters onto *url*, replacing same-named ones."""
    if not query_params:
        return url
    parts = urlsplit(url)
    merged = dict(parse_qsl(parts.query, keep_blank_values=True))
    for key, value in query_params.items():
        merged[key] = value
    return urlunsplit(parts._replace(query=urlencode(merged)))


def create_forwarder(
    request: Request, services: ForwarderServices
) -> StreamForwarder:
    config = services.config
    session = resolve_session(request.headers, request.query_params)
    upstream_sse_url = merge_query(config.upstream_sse_url, request.query_params)
    logger.info(
        f"[MCP-SSE] Downstream connected on {request.url.path}. "
        f"Session: {mask_session(session.session_id)}, "
        f"LastEventId: {session.last_event_id}, Upstream: {upstream_sse_url}"
    )
    return StreamForwarder(
        config=config,
        connector=services.connector,
        bootstrapper=services.bootstrapper,
        channel=DownstreamChannel(),
        session=session,
        upstream_sse_url=upstream_sse_url,
    )


async def forward_event_stream(forwarder: StreamForwarder):
    """Response body: frames from the channel until the client goes away."""
    forwarder.start()
    try:
        async for frame in forwarder.channel:
            yield frame
    finally:
        await forwarder.aclose()


@router.get("/sse")
@router.get("/mcp")
async def stream_upstream_events(
    request: Request,
    services: ForwarderServices = Depends(get_services),
):
    """
    Open a long-lived event stream relayed from the upstream.

    Session id and last event id are taken from the ``Mcp-Session-Id`` /
    ``Last-Event-ID`` headers, or from the ``sessionId`` / ``lastEventId``
    query parameters. Without a session id one is obtained through an
    ``initialize`` handshake first.

    Besides the relayed upstream bytes the stream carries ``ready``,
    ``info``, ``warn`` and ``error`` events describing connection state, and
    a ``: heartbeat`` comment every 15 seconds.

    Example with curl:
        curl -N -H "Accept: text/event-stream" "http://localhost:3000/sse"
    """
    forwarder = create_forwarder(request, services)
    return create_sse_response(forward_event_stream(forwarder))
