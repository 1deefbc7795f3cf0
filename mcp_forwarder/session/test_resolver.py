from starlette.datastructures import Headers, QueryParams

from mcp_forwarder.session.resolver import SessionRef, get_header, resolve_session


class TestResolveSession:
    def test_header_wins_over_query(self):
        session = resolve_session(
            {"Mcp-Session-Id": "from-header"}, {"sessionId": "from-query"}
        )
        assert session.session_id == "from-header"

    def test_query_used_when_header_missing(self):
        session = resolve_session({}, {"sessionId": "abc", "lastEventId": "7"})
        assert session == SessionRef(session_id="abc", last_event_id="7")

    def test_header_lookup_is_case_insensitive(self):
        session = resolve_session(
            {"mcp-session-id": "s1", "last-event-id": "e1"}, None
        )
        assert session.session_id == "s1"
        assert session.last_event_id == "e1"

    def test_fields_resolve_independently(self):
        session = resolve_session({"Last-Event-ID": "e9"}, {"sessionId": "q-session"})
        assert session.session_id == "q-session"
        assert session.last_event_id == "e9"

    def test_nothing_provided(self):
        assert resolve_session(None, None) == SessionRef()

    def test_empty_values_are_treated_as_absent(self):
        session = resolve_session({"Mcp-Session-Id": ""}, {"sessionId": "q"})
        assert session.session_id == "q"


def test_get_header_missing():
    assert get_header({"Accept": "x"}, "Mcp-Session-Id") is None
    assert get_header(None, "Accept") is None


def test_with_session_keeps_last_event_id():
    ref = SessionRef(last_event_id="42").with_session("new")
    assert ref == SessionRef(session_id="new", last_event_id="42")


def test_starlette_query_params():
    session = resolve_session(Headers({}), QueryParams("lastEventId=3"))
    assert session == SessionRef(last_event_id="3")
