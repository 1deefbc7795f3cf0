"""
SSE forwarding between downstream clients and the upstream MCP server.

A downstream client opens ``GET /sse`` (or ``GET /mcp``) and receives the
upstream's event stream byte for byte. The forwarder keeps the upstream side
alive across failures, reconnecting with exponential backoff, and writes a
heartbeat comment every 15 seconds so idle proxies do not cut the
connection.

Example usage with curl:
    curl -N -H "Accept: text/event-stream" \\
         -H "Mcp-Session-Id: <session>" \\
         "http://localhost:3000/sse"

Example usage with JavaScript:
    const source = new EventSource('/sse?sessionId=<session>');
    source.addEventListener('error', (event) => {
        const data = JSON.parse(event.data);
        console.log(`reconnecting in ${data.nextDelayMs}ms (attempt ${data.attempt})`);
    });
"""

from .events import (
    SSEEvent,
    SSEEventType,
    create_sse_response,
)
from .forwarder import ForwarderState, StreamForwarder, relay

__all__ = [
    "SSEEvent",
    "SSEEventType",
    "create_sse_response",
    "ForwarderState",
    "StreamForwarder",
    "relay",
]
