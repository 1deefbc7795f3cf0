from dataclasses import dataclass
from typing import Optional

import httpx
from fastapi import Request

from mcp_forwarder.config import ForwarderConfig
from mcp_forwarder.session.bootstrap import SessionBootstrapper
from mcp_forwarder.upstream.client import UpstreamClientPool
from mcp_forwarder.upstream.connector import UpstreamConnector


@dataclass
class ForwarderServices:
    """Per-process collaborators shared by all requests."""

    config: ForwarderConfig
    pool: UpstreamClientPool
    connector: UpstreamConnector
    bootstrapper: SessionBootstrapper

    @classmethod
    def build(
        cls,
        config: ForwarderConfig,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> "ForwarderServices":
        pool = UpstreamClientPool(config, transport=transport)
        return cls(
            config=config,
            pool=pool,
            connector=UpstreamConnector(pool, timeout=config.upstream_timeout),
            bootstrapper=SessionBootstrapper(config, pool),
        )


def get_services(request: Request) -> ForwarderServices:
    """FastAPI dependency returning the services stored on ``app.state``."""
    return request.app.state.services
