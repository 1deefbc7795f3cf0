from .resolver import SessionRef, resolve_session, get_header

__all__ = [
    "SessionRef",
    "resolve_session",
    "get_header",
]
