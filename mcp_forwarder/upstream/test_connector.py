"""
Tests for the streaming connector and the shared client pool.
"""

import asyncio

import httpx
import pytest

from mcp_forwarder.upstream.client import UpstreamClientPool, build_upstream_client
from mcp_forwarder.upstream.connector import (
    UpstreamConnector,
    UpstreamStatusError,
    UpstreamTimeoutError,
)
from mcp_forwarder.utils_tests.upstream_mock import mock_transport


@pytest.mark.asyncio
async def test_connect_yields_unread_stream(forwarder_config):
    seen = []

    def handler(request):
        seen.append(request)
        return httpx.Response(
            200,
            headers={"content-type": "text/event-stream"},
            content=b"data: 1\n\ndata: 2\n\n",
        )

    pool = UpstreamClientPool(forwarder_config, transport=mock_transport(handler))
    connector = UpstreamConnector(pool)
    try:
        async with connector.connect(
            forwarder_config.upstream_sse_url, {"Accept": "text/event-stream"}
        ) as response:
            body = b"".join([chunk async for chunk in response.aiter_bytes()])
    finally:
        await pool.aclose()

    assert body == b"data: 1\n\ndata: 2\n\n"
    assert seen[0].method == "GET"
    assert seen[0].headers["accept"] == "text/event-stream"


@pytest.mark.asyncio
async def test_non_success_status_raises(forwarder_config):
    pool = UpstreamClientPool(
        forwarder_config, transport=mock_transport(lambda r: httpx.Response(500))
    )
    try:
        with pytest.raises(UpstreamStatusError) as exc_info:
            async with UpstreamConnector(pool).connect(forwarder_config.upstream_sse_url, {}):
                pass
    finally:
        await pool.aclose()

    assert exc_info.value.status_code == 500
    assert str(exc_info.value) == "Upstream SSE responded 500"


@pytest.mark.asyncio
async def test_timeout_before_headers(forwarder_config):
    async def slow_handler(request):
        await asyncio.sleep(10)
        return httpx.Response(200)

    pool = UpstreamClientPool(forwarder_config, transport=mock_transport(slow_handler))
    try:
        with pytest.raises(UpstreamTimeoutError) as exc_info:
            async with UpstreamConnector(pool, timeout=0.01).connect(
                forwarder_config.upstream_sse_url, {}
            ):
                pass
    finally:
        await pool.aclose()

    assert str(exc_info.value) == "upstream-timeout after 10ms"


@pytest.mark.asyncio
async def test_transport_error_propagates(forwarder_config):
    def handler(request):
        raise httpx.ConnectError("refused", request=request)

    pool = UpstreamClientPool(forwarder_config, transport=mock_transport(handler))
    try:
        with pytest.raises(httpx.ConnectError):
            async with UpstreamConnector(pool).connect(forwarder_config.upstream_sse_url, {}):
                pass
    finally:
        await pool.aclose()


def test_non_positive_timeout_disables_it(forwarder_config):
    pool = UpstreamClientPool(forwarder_config)
    assert UpstreamConnector(pool, timeout=0).timeout is None
    assert UpstreamConnector(pool, timeout=-1).timeout is None


@pytest.mark.asyncio
async def test_pool_reuses_client_until_closed(forwarder_config):
    pool = UpstreamClientPool(forwarder_config)
    first = pool.client
    assert pool.client is first

    await pool.aclose()
    assert first.is_closed
    assert pool.client is not first
    await pool.aclose()


@pytest.mark.asyncio
async def test_client_has_no_read_timeout(forwarder_config):
    client = build_upstream_client(forwarder_config)
    try:
        assert client.timeout.read is None
        assert client.follow_redirects
    finally:
        await client.aclose()
