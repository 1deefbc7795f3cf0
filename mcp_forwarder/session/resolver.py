from dataclasses import dataclass
from typing import Mapping, Optional

SESSION_HEADER = "Mcp-Session-Id"
LAST_EVENT_ID_HEADER = "Last-Event-ID"
SESSION_QUERY_PARAM = "sessionId"
LAST_EVENT_ID_QUERY_PARAM = "lastEventId"


@dataclass(frozen=True)
class SessionRef:
    """Session id and resumption marker carried on upstream connections."""

    session_id: Optional[str] = None
    last_event_id: Optional[str] = None

    def with_session(self, session_id: Optional[str]) -> "SessionRef":
        return SessionRef(session_id=session_id, last_event_id=self.last_event_id)


def get_header(headers: Optional[Mapping[str, str]], name: str) -> Optional[str]:
    """Case-insensitive header lookup that works on plain dicts too."""
    if not headers:
        return None
    wanted = name.lower()
    for key, value in headers.items():
        if str(key).lower() == wanted and value:
            return value
    return None


def _query_value(query_params: Optional[Mapping[str, str]], name: str) -> Optional[str]:
    if not query_params:
        return None
    return query_params.get(name) or None


def resolve_session(
    headers: Optional[Mapping[str, str]],
    query_params: Optional[Mapping[str, str]],
) -> SessionRef:
    """Read session id and last event id; headers win over the query string."""
    return SessionRef(
        session_id=get_header(headers, SESSION_HEADER)
        or _query_value(query_params, SESSION_QUERY_PARAM),
        last_event_id=get_header(headers, LAST_EVENT_ID_HEADER)
        or _query_value(query_params, LAST_EVENT_ID_QUERY_PARAM),
    )
