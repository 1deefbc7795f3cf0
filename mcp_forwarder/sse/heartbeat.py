import asyncio
import logging
from typing import Optional

from mcp_forwarder.sse.backoff import Sleep
from mcp_forwarder.sse.channel import DownstreamChannel
from mcp_forwarder.sse.events import HEARTBEAT_FRAME

logger = logging.getLogger("uvicorn.error")

DEFAULT_HEARTBEAT_INTERVAL_MS = 15000


class HeartbeatEmitter:
    """
    Writes a comment frame to the channel every *interval_ms*.

    Runs independently of the upstream connection, so it keeps going while
    the forwarder is reconnecting or waiting out a backoff.
    """

    def __init__(
        self,
        channel: DownstreamChannel,
        interval_ms: int = DEFAULT_HEARTBEAT_INTERVAL_MS,
        sleep: Sleep = asyncio.sleep,
    ):
        self.channel = channel
        self.interval_ms = interval_ms
        self._sleep = sleep
        self._task: Optional[asyncio.Task] = None
        self.beats = 0

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def _run(self) -> None:
        while not self.channel.closed:
            await self._sleep(self.interval_ms / 1000)
            if self.channel.closed:
                return
            if await self.channel.write(HEARTBEAT_FRAME):
                self.beats += 1

    def start(self) -> None:
        if self.running or self.interval_ms <= 0:
            return
        logger.debug(f"[MCP-SSE] Heartbeat every {self.interval_ms}ms")
        self._task = asyncio.create_task(self._run())

    def stop(self) -> None:
        """Cancel the timer; safe to call more than once."""
        if self._task is not None and not self._task.done():
            self._task.cancel()
        self._task = None
