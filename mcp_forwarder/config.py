"""
Immutable runtime configuration for the forwarder.

The environment is read once (see ``mcp_forwarder.vars``) and frozen into a
``ForwarderConfig`` at startup. Components receive the config through their
constructors and never look at ``os.environ`` themselves.
"""

import json
import logging
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Mapping, Optional
from urllib.parse import urlsplit, urlunsplit

from mcp_forwarder import vars as settings

logger = logging.getLogger("uvicorn.error")

USER_AGENT_NAME = "mcp-forwarder-python"


def parse_headers_json(raw: Optional[str]) -> dict[str, str]:
    """Parse the static upstream header map.

    Invalid JSON or anything that is not an object yields an empty map.
    Non-string values are dropped.
    """
    if not raw:
        return {}
    try:
        parsed = json.loads(raw)
    except ValueError as e:
        logger.warning(f"[Config] Failed to parse UPSTREAM_HEADERS_JSON: {e}")
        return {}
    if not isinstance(parsed, dict):
        logger.warning("[Config] UPSTREAM_HEADERS_JSON is not a JSON object, ignoring")
        return {}
    return {str(k): v for k, v in parsed.items() if isinstance(v, str)}


def derive_sse_url(url: str) -> str:
    """Turn a streamable-HTTP endpoint (``.../mcp``) into its SSE sibling."""
    try:
        parts = urlsplit(url)
    except ValueError:
        return url
    if parts.path.endswith("/mcp"):
        return urlunsplit(parts._replace(path=parts.path[: -len("/mcp")] + "/sse"))
    return url


@dataclass(frozen=True)
class ForwarderConfig:
    upstream_url: str
    upstream_sse_url: str
    upstream_headers: Mapping[str, str] = field(
        default_factory=lambda: MappingProxyType({})
    )
    upstream_timeout_ms: int = 0
    upstream_keep_alive_ms: int = 15000
    upstream_max_sockets: int = 50
    heartbeat_interval_ms: int = 15000
    cors_origin: str = "*"
    base_path: str = ""
    service_name: str = "mcp-forwarder"
    service_version: str = "1.2"

    def __post_init__(self):
        if not isinstance(self.upstream_headers, MappingProxyType):
            object.__setattr__(
                self, "upstream_headers", MappingProxyType(dict(self.upstream_headers))
            )

    @property
    def upstream_timeout(self) -> Optional[float]:
        """Timeout in seconds, or None when disabled."""
        if not self.upstream_timeout_ms or self.upstream_timeout_ms <= 0:
            return None
        return self.upstream_timeout_ms / 1000

    @property
    def user_agent(self) -> str:
        return f"{USER_AGENT_NAME}/{self.service_version}"

    @property
    def cors_origins(self) -> list[str]:
        return [o.strip() for o in self.cors_origin.split(",") if o.strip()] or ["*"]

    @classmethod
    def from_env(cls) -> "ForwarderConfig":
        sse_url = settings.UPSTREAM_SSE_URL or derive_sse_url(settings.UPSTREAM_URL)
        config = cls(
            upstream_url=settings.UPSTREAM_URL,
            upstream_sse_url=sse_url,
            upstream_headers=parse_headers_json(settings.UPSTREAM_HEADERS_JSON),
            upstream_timeout_ms=settings.UPSTREAM_TIMEOUT_MS,
            upstream_keep_alive_ms=settings.UPSTREAM_KEEP_ALIVE_MS,
            upstream_max_sockets=settings.UPSTREAM_MAX_SOCKETS,
            heartbeat_interval_ms=settings.HEARTBEAT_INTERVAL_MS,
            cors_origin=settings.CORS_ORIGIN,
            base_path=(settings.MCP_BASE_PATH or "").rstrip("/"),
            service_name=settings.SERVICE_NAME,
            service_version=settings.SERVICE_VERSION,
        )
        logger.info(
            f"[Config] Upstream: {config.upstream_url}, SSE: {config.upstream_sse_url}, "
            f"Timeout: {config.upstream_timeout_ms}ms, "
            f"Static headers: {sorted(config.upstream_headers)}"
        )
        return config
