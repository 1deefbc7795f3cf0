"""
Tests for the unary POST forwarding routes, against a mocked upstream.
"""

import gzip
import json

import httpx
import pytest
from fastapi.testclient import TestClient

from mcp_forwarder.server import create_app
from mcp_forwarder.unary.forward import build_sse_message_url
from mcp_forwarder.utils_tests.upstream_mock import mock_transport


class UpstreamRecorder:
    """MockTransport handler that records requests and replays one response."""

    def __init__(self, response=None, error=None):
        self.requests = []
        self.response = response
        self.error = error

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.error is not None:
            raise self.error
        return self.response or httpx.Response(200, json={"jsonrpc": "2.0", "result": {}})


@pytest.fixture
def upstream():
    return UpstreamRecorder()


@pytest.fixture
def client(forwarder_config, upstream):
    app = create_app(
        forwarder_config, transport=mock_transport(upstream), enable_metrics=False
    )
    with TestClient(app) as test_client:
        yield test_client


class TestForwardMcpMessage:
    def test_json_response_is_passed_through(self, client, upstream):
        upstream.response = httpx.Response(
            200,
            headers={"Mcp-Session-Id": "upstream-session"},
            json={"jsonrpc": "2.0", "id": 1, "result": {"tools": []}},
        )

        response = client.post(
            "/mcp",
            json={"jsonrpc": "2.0", "id": 1, "method": "tools/list"},
            headers={"Mcp-Session-Id": "client-session"},
        )

        assert response.status_code == 200
        assert response.json() == {"jsonrpc": "2.0", "id": 1, "result": {"tools": []}}
        assert response.headers["mcp-session-id"] == "upstream-session"

        sent = upstream.requests[0]
        assert sent.method == "POST"
        assert str(sent.url) == "http://upstream.test/mcp"
        assert sent.headers["mcp-session-id"] == "client-session"
        assert sent.headers["x-api-key"] == "static-key"
        assert sent.headers["content-type"] == "application/json"
        assert json.loads(sent.content)["method"] == "tools/list"

    def test_inbound_session_echoed_when_upstream_sends_none(self, client):
        response = client.post("/mcp", json={}, headers={"Mcp-Session-Id": "mine"})
        assert response.headers["mcp-session-id"] == "mine"

    def test_upstream_error_status_is_kept(self, client, upstream):
        upstream.response = httpx.Response(404, json={"error": "unknown session"})

        response = client.post("/mcp", json={"jsonrpc": "2.0"})

        assert response.status_code == 404
        assert response.json() == {"error": "unknown session"}

    def test_empty_body_is_sent_as_empty_object(self, client, upstream):
        response = client.post("/mcp", content=b"")

        assert response.status_code == 200
        assert upstream.requests[0].content == b"{}"

    def test_invalid_json_is_rejected_locally(self, client, upstream):
        response = client.post(
            "/mcp", content=b"{broken", headers={"Content-Type": "application/json"}
        )

        assert response.status_code == 400
        assert response.json()["error"] == "Invalid JSON body"
        assert upstream.requests == []

    def test_transport_failure_returns_502(self, client, upstream):
        upstream.error = httpx.ConnectError("connection refused")

        response = client.post("/mcp", json={"jsonrpc": "2.0"})

        assert response.status_code == 502
        assert response.json() == {
            "error": "upstream_failed",
            "code": -32001,
            "message": "connection refused",
        }

    def test_event_stream_answer_is_streamed(self, client, upstream):
        upstream.response = httpx.Response(
            200,
            headers={"content-type": "text/event-stream"},
            content=b'event: message\ndata: {"id": 1}\n\n',
        )

        response = client.post("/mcp", json={"jsonrpc": "2.0", "id": 1})

        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/event-stream")
        assert response.content == b'event: message\ndata: {"id": 1}\n\n'

    def test_compressed_event_stream_is_decoded(self, client, upstream):
        body = b'event: message\ndata: {"id": 2}\n\n'
        upstream.response = httpx.Response(
            200,
            headers={"content-type": "text/event-stream", "content-encoding": "gzip"},
            content=gzip.compress(body),
        )

        response = client.post("/mcp", json={"jsonrpc": "2.0", "id": 2})

        assert response.content == body
        assert "content-encoding" not in response.headers

    def test_missing_content_type_defaults_to_json(self, client, upstream):
        upstream.response = httpx.Response(200, content=b'{"jsonrpc": "2.0"}')

        response = client.post("/mcp", json={})

        assert response.headers["content-type"].startswith("application/json")
        assert response.json() == {"jsonrpc": "2.0"}

    def test_query_is_forwarded(self, client, upstream):
        client.post("/mcp?tenant=a", json={})
        assert str(upstream.requests[0].url) == "http://upstream.test/mcp?tenant=a"


class TestForwardSseMessage:
    def test_posts_to_same_path_on_upstream(self, client, upstream):
        upstream.response = httpx.Response(202, content=b"")

        response = client.post("/sse/message?sessionId=abc", json={"jsonrpc": "2.0"})

        assert response.status_code == 202
        assert str(upstream.requests[0].url) == "http://upstream.test/sse/message?sessionId=abc"

    def test_missing_content_type_defaults_to_text(self, client, upstream):
        upstream.response = httpx.Response(200, content=b"Accepted")

        response = client.post("/sse/message?sessionId=abc", json={})

        assert response.headers["content-type"].startswith("text/plain")
        assert response.text == "Accepted"

    def test_header_session_is_added_to_query(self, client, upstream):
        client.post("/sse/message", json={}, headers={"Mcp-Session-Id": "hdr"})
        assert str(upstream.requests[0].url) == "http://upstream.test/sse/message?sessionId=hdr"


def test_build_sse_message_url_keeps_existing_session_param():
    url = build_sse_message_url(
        "https://host.example/sse", "messages/", {"sessionId": "q"}, "header-session"
    )
    assert url == "https://host.example/sse/messages/?sessionId=q"
