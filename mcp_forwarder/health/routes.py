from datetime import datetime, timezone

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from mcp_forwarder.services import ForwarderServices, get_services

router = APIRouter()


class UpstreamSettings(BaseModel):
    timeout_ms: int
    keepAlive_ms: int
    maxSockets: int
    # Names only, values may hold credentials
    headers: list[str]


class HealthResponse(BaseModel):
    status: str
    upstream: str
    upstreamSse: str
    corsOrigin: str
    upstreamCfg: UpstreamSettings
    time: str


@router.get("/health", response_model=HealthResponse)
async def health(services: ForwarderServices = Depends(get_services)) -> HealthResponse:
    config = services.config
    return HealthResponse(
        status="ok",
        upstream=config.upstream_url,
        upstreamSse=config.upstream_sse_url,
        corsOrigin=config.cors_origin,
        upstreamCfg=UpstreamSettings(
            timeout_ms=config.upstream_timeout_ms or 0,
            keepAlive_ms=config.upstream_keep_alive_ms,
            maxSockets=config.upstream_max_sockets,
            headers=sorted(config.upstream_headers),
        ),
        time=datetime.now(timezone.utc).isoformat(),
    )
