"""Test doubles for the upstream side of the forwarder."""

import asyncio
from contextlib import asynccontextmanager
from typing import Awaitable, Callable, Iterable, List, Optional, Union

import httpx

from mcp_forwarder.upstream.connector import UpstreamStatusError


class FakeStreamResponse:
    """Minimal stand-in for a streaming ``httpx.Response``."""

    def __init__(
        self,
        chunks: Iterable[bytes] = (),
        status_code: int = 200,
        headers: Optional[dict] = None,
        hang: bool = False,
    ):
        self.chunks = list(chunks)
        self.status_code = status_code
        self.headers = httpx.Headers(headers or {"content-type": "text/event-stream"})
        self.hang = hang

    async def aiter_bytes(self):
        for chunk in self.chunks:
            yield chunk
        if self.hang:
            await asyncio.Event().wait()


class FakeConnector:
    """
    Connector that plays back scripted outcomes, one per ``connect`` call.

    An outcome is a ``FakeStreamResponse``, an exception to raise, or an int
    status code (non-2xx raises ``UpstreamStatusError``). Once the script is
    exhausted ``connect`` blocks until cancelled.
    """

    def __init__(self, outcomes: List[Union[FakeStreamResponse, BaseException, int]]):
        self.outcomes = list(outcomes)
        self.calls: List[tuple] = []

    @asynccontextmanager
    async def connect(self, url, headers):
        self.calls.append((url, dict(headers)))
        if not self.outcomes:
            await asyncio.Event().wait()
        outcome = self.outcomes.pop(0)
        if isinstance(outcome, BaseException):
            raise outcome
        if isinstance(outcome, int):
            if outcome >= 300:
                raise UpstreamStatusError(outcome, url)
            outcome = FakeStreamResponse(status_code=outcome)
        yield outcome


class RecordingSleep:
    """
    Replacement for ``asyncio.sleep`` that records requested delays.

    ``on_sleep`` is called with the number of sleeps so far, before the
    (zero length) wait; tests use it to close the downstream mid-backoff.
    """

    def __init__(self, on_sleep: Optional[Callable[[int], None]] = None):
        self.delays: List[float] = []
        self.on_sleep = on_sleep

    async def __call__(self, seconds: float) -> None:
        self.delays.append(seconds)
        if self.on_sleep is not None:
            self.on_sleep(len(self.delays))
        await asyncio.sleep(0)


def mock_transport(
    handler: Callable[[httpx.Request], Union[httpx.Response, Awaitable[httpx.Response]]],
) -> httpx.MockTransport:
    return httpx.MockTransport(handler)


async def collect_frames(channel) -> List[bytes]:
    """Drain a closed channel into a list."""
    return [frame async for frame in channel]
