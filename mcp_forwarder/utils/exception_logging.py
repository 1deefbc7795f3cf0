"""
Helpers for logging and describing upstream failures.

Both functions are used from error paths of long-lived streams, so neither of
them is allowed to raise.
"""

import logging


def _safe_str(obj) -> str:
    try:
        return str(obj)
    except Exception:
        try:
            return repr(obj)
        except Exception:
            return f"<{type(obj).__name__} (string conversion failed)>"


def _sub_exceptions(exception) -> list:
    try:
        return list(getattr(exception, "exceptions", None) or [])
    except Exception:
        return []


def describe_exception(exception: BaseException) -> str:
    """
    Short human readable reason for an exception.

    Falls back to the exception type name when the message is empty (httpx
    timeouts are often raised without one). Exception groups list their
    sub-exceptions.

    Args:
        exception: The exception to describe

    Returns:
        A non-empty description string
    """
    if exception is None:
        return "unknown"
    message = _safe_str(exception).strip()
    if not message:
        message = type(exception).__name__
    subs = _sub_exceptions(exception)
    if subs:
        joined = "; ".join(f"{type(s).__name__}: {describe_exception(s)}" for s in subs)
        message = f"{message} (Sub-exceptions: {joined})"
    return message


def log_exception_with_details(
    logger: logging.Logger,
    prefix: str,
    exception: BaseException,
    level: int = logging.ERROR,
) -> None:
    """
    Log an exception, expanding exception groups into one line per member.

    Args:
        logger: The logger instance to use
        prefix: Prefix for the log message (e.g., "[MCP-SSE]", "[Unary]")
        exception: The exception to log
        level: The logging level to use (default: ERROR)
    """
    try:
        subs = _sub_exceptions(exception)
        if subs:
            logger.log(
                level,
                f"{prefix} Exception with {len(subs)} sub-exceptions: {_safe_str(exception)}",
            )
            for i, sub in enumerate(subs):
                logger.log(
                    level,
                    f"{prefix} Sub-exception {i + 1}: {type(sub).__name__}: {_safe_str(sub)}",
                    exc_info=sub,
                )
        else:
            logger.log(
                level,
                f"{prefix} Exception: {_safe_str(exception)}",
                exc_info=exception if exception is not None else False,
            )
    except Exception:
        try:
            logger.log(logging.ERROR, f"{prefix} Exception (logging failed)")
        except Exception:
            pass
