from typing import Optional


def mask_token(text: str, token: Optional[str]) -> str:
    """Replace every occurrence of *token* in *text* with a short prefix."""
    return text.replace(token, f"{token[:4]}****") if token else text


def mask_session(session_id: Optional[str]) -> str:
    """Low-leak representation of a session id for log lines."""
    if not session_id:
        return "<none>"
    return mask_token(session_id, session_id)
