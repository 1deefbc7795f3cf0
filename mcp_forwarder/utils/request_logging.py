import logging
import time

from starlette.requests import Request

logger = logging.getLogger("uvicorn.error")


async def log_requests(request: Request, call_next):
    """HTTP middleware: one log line per request with status and duration.

    For streaming responses the duration covers the time until the response
    headers were produced, not the lifetime of the stream.
    """
    started = time.monotonic()
    status = 500
    try:
        response = await call_next(request)
        status = response.status_code
        return response
    finally:
        duration_ms = int((time.monotonic() - started) * 1000)
        logger.info(
            f"[Request] {request.method} {request.url.path} - "
            f"status={status} dur={duration_ms}ms"
        )
