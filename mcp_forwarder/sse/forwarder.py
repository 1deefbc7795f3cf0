"""
Streaming session forwarder.

One ``StreamForwarder`` serves one downstream event-stream connection. It
bootstraps a session when the client brought none, holds a single upstream
stream open, relays its bytes untouched and reconnects with exponential
backoff whenever the upstream fails or ends. Only a downstream disconnect
(``close``) stops it.

States::

    CONNECTING -> STREAMING -> BACKOFF -> CONNECTING -> ...
    any state  -> CLOSED   (terminal)
"""

import asyncio
import logging
import time
from enum import Enum
from typing import Optional

import httpx

from mcp_forwarder.config import ForwarderConfig
from mcp_forwarder.session.bootstrap import SessionBootstrapper
from mcp_forwarder.session.resolver import SessionRef
from mcp_forwarder.sse.backoff import Sleep, next_delay, sleep_ms
from mcp_forwarder.sse.channel import DownstreamChannel
from mcp_forwarder.sse.events import SSEEvent
from mcp_forwarder.sse.heartbeat import HeartbeatEmitter
from mcp_forwarder.upstream.connector import UpstreamConnector
from mcp_forwarder.upstream.headers import streaming_headers
from mcp_forwarder.utils import mask_session
from mcp_forwarder.utils.exception_logging import (
    describe_exception,
    log_exception_with_details,
)

logger = logging.getLogger("uvicorn.error")


class ForwarderState(str, Enum):
    CONNECTING = "connecting"
    STREAMING = "streaming"
    BACKOFF = "backoff"
    CLOSED = "closed"


async def relay(response: httpx.Response, channel: DownstreamChannel) -> int:
    """
    Copy the upstream body to the channel chunk by chunk.

    Chunks are written as httpx decodes them (any Content-Encoding removed);
    SSE framing is never parsed or rebuilt. Returns the number of bytes
    relayed when the upstream ends or the channel closes.
    """
    relayed = 0
    async for chunk in response.aiter_bytes():
        if channel.closed:
            break
        if chunk and await channel.write(chunk):
            relayed += len(chunk)
    return relayed


class StreamForwarder:
    def __init__(
        self,
        config: ForwarderConfig,
        connector: UpstreamConnector,
        bootstrapper: Optional[SessionBootstrapper],
        channel: DownstreamChannel,
        session: SessionRef,
        upstream_sse_url: Optional[str] = None,
        sleep: Sleep = asyncio.sleep,
        heartbeat_sleep: Sleep = asyncio.sleep,
    ):
        self.config = config
        self.connector = connector
        self.bootstrapper = bootstrapper
        self.channel = channel
        self.session = session
        self.upstream_sse_url = upstream_sse_url or config.upstream_sse_url
        self.heartbeat = HeartbeatEmitter(
            channel, config.heartbeat_interval_ms, sleep=heartbeat_sleep
        )
        self._sleep = sleep
        self.state = ForwarderState.CONNECTING
        self.attempt = 0
        self.connect_count = 0
        self._task: Optional[asyncio.Task] = None
        self._started_at = time.monotonic()

    @property
    def closed(self) -> bool:
        return self.state is ForwarderState.CLOSED or self.channel.closed

    def _set_state(self, state: ForwarderState) -> None:
        if self.state is ForwarderState.CLOSED:
            return
        self.state = state

    async def _emit(self, event: SSEEvent) -> None:
        if not self.closed:
            await self.channel.send_event(event)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start(self) -> asyncio.Task:
        """Start heartbeat and connect loop as background tasks."""
        if self._task is None:
            self.heartbeat.start()
            self._task = asyncio.create_task(self.run())
        return self._task

    def close(self) -> None:
        """
        Downstream went away: stop everything.

        Flips the state to CLOSED, cancels the heartbeat and the connect loop
        (which cancels an in-flight upstream request or backoff wait) and
        closes the channel. Synchronous and idempotent.
        """
        if self.state is ForwarderState.CLOSED:
            return
        self.state = ForwarderState.CLOSED
        self.heartbeat.stop()
        self.channel.close()
        if self._task is not None and self._task is not asyncio.current_task():
            self._task.cancel()
        duration_ms = int((time.monotonic() - self._started_at) * 1000)
        logger.info(
            f"[MCP-SSE] Downstream closed. Session: {mask_session(self.session.session_id)}, "
            f"duration: {duration_ms}ms"
        )

    async def aclose(self) -> None:
        """``close`` and wait until the connect loop has unwound."""
        self.close()
        task, self._task = self._task, None
        if task is not None and task is not asyncio.current_task():
            try:
                await task
            except asyncio.CancelledError:
                pass

    # ------------------------------------------------------------------
    # Connect loop
    # ------------------------------------------------------------------

    async def run(self) -> None:
        try:
            await self._emit(SSEEvent.ready(self.upstream_sse_url))
            if not self.session.session_id and self.bootstrapper is not None:
                await self._bootstrap_or_warn()
            await self._connect_loop()
        except asyncio.CancelledError:
            raise
        except Exception as e:
            # Upstream failures are handled per attempt and never reach here
            log_exception_with_details(logger, "[MCP-SSE]", e)
            await self._emit(SSEEvent.error("forwarder_failed", reason=describe_exception(e)))
            # ends the downstream response
            self.close()

    async def _bootstrap_or_warn(self) -> None:
        try:
            await self._bootstrap_session()
        except asyncio.CancelledError:
            raise
        except Exception as e:
            log_exception_with_details(logger, "[Bootstrap]", e)
            await self._emit(
                SSEEvent.warn("auto_initialize_failed", status=0, error=describe_exception(e))
            )

    async def _bootstrap_session(self) -> None:
        await self._emit(SSEEvent.info("no_session_provided_attempting_initialize"))
        init = await self.bootstrapper.initialize(self.config.upstream_headers)
        if self.closed:
            return
        if init.ok and init.session_id:
            self.session = self.session.with_session(str(init.session_id))
            await self._emit(
                SSEEvent.info("auto_session_created", sessionId=self.session.session_id)
            )
            if init.server_info:
                await self._emit(SSEEvent.info("server_info", server=init.server_info))
            return
        await self._emit(
            SSEEvent.warn(
                "auto_initialize_failed",
                status=init.status,
                error=init.error or init.text,
            )
        )
        await self._emit(SSEEvent.info("if_upstream_requires_credentials_set_env_vars"))

    async def _connect_loop(self) -> None:
        while not self.closed:
            delay_ms = await self._attempt()
            if delay_ms is None or self.closed:
                return
            self._set_state(ForwarderState.BACKOFF)
            await sleep_ms(delay_ms, self._sleep)

    def _schedule_next(self) -> int:
        self.attempt += 1
        return next_delay(self.attempt)

    async def _attempt(self) -> Optional[int]:
        """
        One upstream connection from open to end.

        Returns the backoff delay in ms before the next attempt, or None when
        the downstream closed and nothing should follow.
        """
        self._set_state(ForwarderState.CONNECTING)
        headers = streaming_headers(self.config, self.session)
        self.connect_count += 1
        logger.info(
            f"[MCP-SSE] Connecting to upstream SSE: {self.upstream_sse_url}, "
            f"Session: {mask_session(self.session.session_id)}"
        )
        try:
            async with self.connector.connect(self.upstream_sse_url, headers) as response:
                self.attempt = 0
                await self._emit(
                    SSEEvent.info(
                        "upstream_connected",
                        status=response.status_code,
                        contentType=response.headers.get("content-type"),
                    )
                )
                self._set_state(ForwarderState.STREAMING)
                relayed = await relay(response, self.channel)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            if self.closed:
                return None
            delay_ms = self._schedule_next()
            reason = describe_exception(e)
            logger.error(
                f"[MCP-SSE] Upstream connection error: {reason}, "
                f"attempt: {self.attempt}, reconnect in {delay_ms}ms"
            )
            await self._emit(
                SSEEvent.error(
                    "upstream_error",
                    reason=reason,
                    attempt=self.attempt,
                    nextDelayMs=delay_ms,
                )
            )
            return delay_ms

        if self.closed:
            return None
        delay_ms = self._schedule_next()
        logger.warning(
            f"[MCP-SSE] Upstream SSE closed after {relayed} bytes, "
            f"attempt: {self.attempt}, reconnect in {delay_ms}ms"
        )
        await self._emit(
            SSEEvent.warn(
                "upstream_disconnected", attempt=self.attempt, nextDelayMs=delay_ms
            )
        )
        return delay_ms
