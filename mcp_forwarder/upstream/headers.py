"""
Header assembly for upstream requests.

Outbound headers are built from an ordered list of stages merged left to
right: base defaults, then the statically configured upstream headers, then
the headers derived from the session. A later stage overrides an earlier one
when the names match case-insensitively.
"""

from typing import Iterable, Mapping, Optional

from mcp_forwarder.config import ForwarderConfig
from mcp_forwarder.session.resolver import (
    LAST_EVENT_ID_HEADER,
    SESSION_HEADER,
    SessionRef,
)

EVENT_STREAM = "text/event-stream"
JSON_OR_EVENT_STREAM = "application/json, text/event-stream"


def merge_header_stages(stages: Iterable[Optional[Mapping[str, str]]]) -> dict[str, str]:
    merged: dict[str, str] = {}
    names: dict[str, str] = {}
    for stage in stages:
        if not stage:
            continue
        for name, value in stage.items():
            if value is None:
                continue
            previous = names.get(name.lower())
            if previous is not None and previous != name:
                merged.pop(previous, None)
            names[name.lower()] = name
            merged[name] = str(value)
    return merged


def session_stage(session: Optional[SessionRef]) -> dict[str, str]:
    if session is None:
        return {}
    stage = {}
    if session.session_id:
        stage[SESSION_HEADER] = str(session.session_id)
    if session.last_event_id:
        stage[LAST_EVENT_ID_HEADER] = str(session.last_event_id)
    return stage


def streaming_headers(config: ForwarderConfig, session: SessionRef) -> dict[str, str]:
    """Headers for the upstream GET that opens the event stream."""
    return merge_header_stages(
        [
            {"Accept": EVENT_STREAM, "User-Agent": config.user_agent},
            config.upstream_headers,
            session_stage(session),
        ]
    )


def unary_headers(config: ForwarderConfig, session_id: Optional[str]) -> dict[str, str]:
    """Headers for forwarded JSON-RPC POSTs."""
    return merge_header_stages(
        [
            {
                "Accept": JSON_OR_EVENT_STREAM,
                "User-Agent": config.user_agent,
            },
            config.upstream_headers,
            {"Content-Type": "application/json"},
            session_stage(SessionRef(session_id=session_id)),
        ]
    )


def handshake_headers(
    config: ForwarderConfig, extra_headers: Optional[Mapping[str, str]]
) -> dict[str, str]:
    """Headers for the initialize call; the JSON defaults always win."""
    return merge_header_stages(
        [
            extra_headers,
            {
                "Content-Type": "application/json",
                "Accept": JSON_OR_EVENT_STREAM,
                "User-Agent": config.user_agent,
            },
        ]
    )
