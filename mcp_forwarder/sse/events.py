"""
Synthetic event frames the forwarder writes to downstream clients.

These are interleaved with the relayed upstream bytes, so every frame is a
complete, blank-line terminated SSE block:

    : heartbeat

    event: warn
    data: {"msg": "upstream_disconnected", "attempt": 1, "nextDelayMs": 1000}

"""

import json
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, AsyncIterator, Optional

from fastapi.responses import StreamingResponse


class SSEEventType(str, Enum):
    """Names of the informational events emitted by the forwarder."""

    READY = "ready"
    INFO = "info"
    WARN = "warn"
    ERROR = "error"


@dataclass
class SSEEvent:
    """
    A named event with a JSON (or plain string) payload.

    Attributes:
        type: Event name written on the ``event:`` line
        data: Payload; dicts are JSON encoded, strings are written as-is
    """

    type: SSEEventType
    data: Any = field(default_factory=dict)

    def to_sse_string(self) -> str:
        """Convert the event to SSE wire format."""
        payload = self.data if isinstance(self.data, str) else json.dumps(self.data)
        data_lines = "".join(f"data: {line}\n" for line in payload.split("\n"))
        return f"event: {self.type.value}\n{data_lines}\n"

    def to_bytes(self) -> bytes:
        return self.to_sse_string().encode("utf-8")

    @classmethod
    def _with_msg(cls, event_type: SSEEventType, msg: str, fields: dict) -> "SSEEvent":
        data = {"msg": msg}
        data.update(fields)
        return cls(type=event_type, data=data)

    @classmethod
    def ready(cls, upstream_sse_url: str) -> "SSEEvent":
        return cls(type=SSEEventType.READY, data={"upstreamSseUrl": upstream_sse_url})

    @classmethod
    def info(cls, msg: str, **fields: Any) -> "SSEEvent":
        return cls._with_msg(SSEEventType.INFO, msg, fields)

    @classmethod
    def warn(cls, msg: str, **fields: Any) -> "SSEEvent":
        return cls._with_msg(SSEEventType.WARN, msg, fields)

    @classmethod
    def error(cls, msg: str, **fields: Any) -> "SSEEvent":
        return cls._with_msg(SSEEventType.ERROR, msg, fields)


def comment_frame(text: Optional[str] = None) -> bytes:
    """A comment frame; clients ignore it, intermediaries see traffic."""
    return f": {text or ''}\n\n".encode("utf-8")


HEARTBEAT_FRAME = comment_frame("heartbeat")

SSE_RESPONSE_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",  # Disable buffering in nginx
}


def create_sse_response(
    event_stream: AsyncIterator[bytes],
) -> StreamingResponse:
    """
    Create a FastAPI StreamingResponse for SSE.

    Args:
        event_stream: Async iterator yielding raw SSE bytes

    Returns:
        A StreamingResponse configured for Server-Sent Events
    """
    return StreamingResponse(
        event_stream,
        media_type="text/event-stream",
        headers=dict(SSE_RESPONSE_HEADERS),
    )
