import asyncio
from typing import AsyncIterator, Optional

from mcp_forwarder.sse.events import SSEEvent


# Frames queued towards a slow client before writers start to wait
DEFAULT_MAX_PENDING_FRAMES = 256


class DownstreamChannel:
    """
    Writer side of one downstream event stream.

    Relay, heartbeat and event writers all push whole frames into one queue,
    so concurrent writes never interleave inside a frame. The response body
    drains the queue through ``__aiter__``. A closed channel drops writes;
    frames queued before the close are still delivered to the reader.
    """

    def __init__(self, max_pending: int = DEFAULT_MAX_PENDING_FRAMES):
        self._queue: asyncio.Queue[Optional[bytes]] = asyncio.Queue(maxsize=max_pending)
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    async def write(self, data: bytes) -> bool:
        """Queue *data* for the client; returns False when nothing was written."""
        if self._closed or not data:
            return False
        await self._queue.put(bytes(data))
        return True

    async def send_event(self, event: SSEEvent) -> bool:
        return await self.write(event.to_bytes())

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        try:
            self._queue.put_nowait(None)
        except asyncio.QueueFull:
            # the reader checks the flag after every frame
            pass

    async def __aiter__(self) -> AsyncIterator[bytes]:
        while True:
            if self._closed and self._queue.empty():
                return
            item = await self._queue.get()
            if item is None:
                return
            yield item
