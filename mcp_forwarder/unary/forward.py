"""
Single request/response forwarding of JSON-RPC messages to the upstream.

No retry state lives here: one inbound POST becomes one upstream POST and
the upstream answer is passed back with its status, content type and
session header.
"""

import json
import logging
from typing import AsyncIterator, Mapping, Optional
from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit

import httpx
from fastapi import Request
from fastapi.responses import JSONResponse, Response, StreamingResponse
from opentelemetry import trace

from mcp_forwarder.services import ForwarderServices
from mcp_forwarder.session.resolver import (
    SESSION_HEADER,
    SESSION_QUERY_PARAM,
    get_header,
    resolve_session,
)
from mcp_forwarder.sse.routes import merge_query
from mcp_forwarder.upstream.headers import unary_headers
from mcp_forwarder.utils.exception_logging import describe_exception
from mcp_forwarder.utils.traced_requests import traced_request

logger = logging.getLogger("uvicorn.error")
tracer = trace.get_tracer(__name__)

UPSTREAM_FAILED_CODE = -32001


def upstream_failed_response(message: str) -> JSONResponse:
    return JSONResponse(
        status_code=502,
        content={
            "error": "upstream_failed",
            "code": UPSTREAM_FAILED_CODE,
            "message": message,
        },
    )


def build_sse_message_url(
    upstream_sse_url: str,
    subpath: str,
    query_params: Mapping[str, str],
    session_id: Optional[str],
) -> str:
    """
    Target for ``POST /sse/<subpath>``: the same path on the upstream's SSE
    origin. Downstream query parameters are kept; a header-only session id is
    added as ``sessionId`` because legacy SSE servers read it from the query.
    """
    parts = urlsplit(upstream_sse_url)
    path = "/sse/" + subpath.lstrip("/")
    query = dict(parse_qsl(parts.query, keep_blank_values=True))
    query.update(query_params or {})
    if session_id and not query.get(SESSION_QUERY_PARAM):
        query[SESSION_QUERY_PARAM] = session_id
    return urlunsplit((parts.scheme, parts.netloc, path, urlencode(query), ""))


async def _iter_and_close(response: httpx.Response) -> AsyncIterator[bytes]:
    try:
        async for chunk in response.aiter_bytes():
            yield chunk
    finally:
        await response.aclose()


async def forward_unary(
    request: Request,
    services: ForwarderServices,
    target_url: str,
    operation: str = "unary_forward",
    default_media_type: str = "text/plain",
) -> Response:
    """
    Forward one JSON-RPC POST and relay the upstream response.

    JSON bodies are returned as read; anything else (for example an SSE
    answer from a streamable-HTTP server) is streamed through. Transport
    failures become a 502 with a structured JSON error body.
    """
    config = services.config
    session = resolve_session(request.headers, request.query_params)

    body = await request.body()
    if not body.strip():
        body = b"{}"
    try:
        json.loads(body)
    except ValueError as e:
        logger.warning(f"[Unary] Invalid JSON body: {e}")
        return JSONResponse(
            status_code=400,
            content={"error": "Invalid JSON body", "message": str(e)},
        )

    headers = unary_headers(config, session.session_id)
    client = services.pool.client

    with traced_request(
        tracer,
        operation=operation,
        session_value=session.session_id,
        target_url=target_url,
        start_message=f"[Unary] Forward POST start. Upstream: {target_url}, Session: {session.session_id}",
    ) as span:
        try:
            upstream_request = client.build_request(
                "POST",
                target_url,
                headers=headers,
                content=body,
                timeout=httpx.Timeout(config.upstream_timeout),
            )
            response = await client.send(upstream_request, stream=True)
        except Exception as e:
            reason = describe_exception(e)
            span.set_attribute("proxy.error", reason)
            logger.error(f"[Unary] Forward POST failed for {target_url}: {reason}")
            return upstream_failed_response(reason)

        span.set_attribute("proxy.status_code", response.status_code)

    content_type = response.headers.get("content-type", "")
    session_header = get_header(response.headers, SESSION_HEADER) or session.session_id
    response_headers = {}
    if session_header:
        response_headers[SESSION_HEADER] = session_header

    logger.info(
        f"[Unary] Forward POST response. Status: {response.status_code}, "
        f"Content-Type: {content_type}"
    )

    if "application/json" in content_type or not content_type:
        try:
            content = await response.aread()
        except Exception as e:
            reason = describe_exception(e)
            logger.error(f"[Unary] Reading upstream body failed for {target_url}: {reason}")
            return upstream_failed_response(reason)
        finally:
            await response.aclose()
        return Response(
            content=content,
            status_code=response.status_code,
            headers=response_headers,
            media_type=content_type or default_media_type,
        )

    return StreamingResponse(
        _iter_and_close(response),
        status_code=response.status_code,
        headers=response_headers,
        media_type=content_type,
    )


def unary_target_url(services: ForwarderServices, request: Request) -> str:
    return merge_query(services.config.upstream_url, request.query_params)
