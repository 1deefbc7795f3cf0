# Ensure tests import the package from this checkout first, also when the
# project has not been installed with `pip install -e .`.
import os
import sys

import pytest

SERVICE_ROOT = os.path.dirname(__file__)
if SERVICE_ROOT not in sys.path:
    sys.path.insert(0, SERVICE_ROOT)

from mcp_forwarder.config import ForwarderConfig  # noqa: E402
from mcp_forwarder.utils_tests.upstream_mock import RecordingSleep  # noqa: E402

TEST_UPSTREAM_URL = "http://upstream.test/mcp"
TEST_UPSTREAM_SSE_URL = "http://upstream.test/sse"


@pytest.fixture
def forwarder_config():
    """Configuration pointing at a fake upstream, heartbeat effectively off."""
    return ForwarderConfig(
        upstream_url=TEST_UPSTREAM_URL,
        upstream_sse_url=TEST_UPSTREAM_SSE_URL,
        upstream_headers={"X-Api-Key": "static-key"},
        heartbeat_interval_ms=3_600_000,
    )


@pytest.fixture
def recording_sleep():
    return RecordingSleep()
