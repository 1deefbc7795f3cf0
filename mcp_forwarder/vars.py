import os

SERVICE_NAME = os.getenv("SERVICE_NAME", "mcp-forwarder")
SERVICE_VERSION = os.getenv("SERVICE_VERSION", "1.2")
MCP_BASE_PATH = os.environ.get("MCP_BASE_PATH", "")

UPSTREAM_URL = os.environ.get("UPSTREAM_URL", "https://mcp.deepwiki.com/mcp")
# Empty means "derive from UPSTREAM_URL" (a trailing /mcp becomes /sse)
UPSTREAM_SSE_URL = os.environ.get("UPSTREAM_SSE_URL", "")
UPSTREAM_HEADERS_JSON = os.environ.get("UPSTREAM_HEADERS_JSON", "{}")
# 0 disables the upstream timeout; long-running tool calls are expected
UPSTREAM_TIMEOUT_MS = int(os.environ.get("UPSTREAM_TIMEOUT_MS", "0") or 0)
UPSTREAM_KEEP_ALIVE_MS = int(os.environ.get("UPSTREAM_KEEP_ALIVE_MS", "15000"))
UPSTREAM_MAX_SOCKETS = int(os.environ.get("UPSTREAM_MAX_SOCKETS", "50"))

HEARTBEAT_INTERVAL_MS = int(os.environ.get("HEARTBEAT_INTERVAL_MS", "15000"))

CORS_ORIGIN = os.environ.get("CORS_ORIGIN", "*")

HOST = os.environ.get("HOST", "0.0.0.0")
PORT = int(os.environ.get("PORT", "3000"))
SERVER_KEEP_ALIVE_TIMEOUT_MS = int(
    os.environ.get("SERVER_KEEP_ALIVE_TIMEOUT_MS", "120000")
)

OTLP_ENDPOINT = os.getenv("OTLP_ENDPOINT")
OTLP_HEADERS = os.getenv("OTLP_HEADERS", "")
