"""Reconnect delays for upstream event streams."""

import asyncio
from typing import Awaitable, Callable

BASE_DELAY_MS = 1000
MAX_DELAY_MS = 30000

# 2 ** 15 * BASE_DELAY_MS is already far above MAX_DELAY_MS
_MAX_EXPONENT = 15

Sleep = Callable[[float], Awaitable[None]]


def next_delay(
    attempt: int, base_ms: int = BASE_DELAY_MS, max_ms: int = MAX_DELAY_MS
) -> int:
    """Delay in ms before reconnect number *attempt* (1-based).

    ``min(max_ms, base_ms * 2 ** (attempt - 1))``. Attempts below 1 count as 1.
    """
    exponent = min(max(attempt, 1) - 1, _MAX_EXPONENT)
    return min(max_ms, base_ms * (2**exponent))


async def sleep_ms(delay_ms: int, sleep: Sleep = asyncio.sleep) -> None:
    await sleep(delay_ms / 1000)
