from fastapi import APIRouter, Depends, Request

from mcp_forwarder.services import ForwarderServices, get_services
from mcp_forwarder.session.resolver import resolve_session
from mcp_forwarder.unary.forward import (
    build_sse_message_url,
    forward_unary,
    unary_target_url,
)

router = APIRouter()


@router.post("/mcp")
async def forward_mcp_message(
    request: Request,
    services: ForwarderServices = Depends(get_services),
):
    """Forward a JSON-RPC message to the upstream streamable-HTTP endpoint."""
    return await forward_unary(
        request,
        services,
        unary_target_url(services, request),
        operation="unary_mcp",
        default_media_type="application/json",
    )


@router.post("/sse/{subpath:path}")
async def forward_sse_message(
    subpath: str,
    request: Request,
    services: ForwarderServices = Depends(get_services),
):
    """
    Forward a message posted to the SSE message channel.

    Clients learn ``/sse/message?sessionId=...`` from the upstream's
    ``endpoint`` event and post here; the request goes to the same path on
    the upstream.
    """
    session = resolve_session(request.headers, request.query_params)
    target = build_sse_message_url(
        services.config.upstream_sse_url,
        subpath,
        request.query_params,
        session.session_id,
    )
    return await forward_unary(request, services, target, operation="unary_sse_message")
