from __future__ import annotations

import asyncio
import random
from typing import Awaitable, Callable

Sleep = Callable[[float], Awaitable[None]]


def compute_backoff(
    attempt: int, initial: float = 1.0, base: float = 2.0, jitter: float = 0.0
) -> float:
    """Compute exponential backoff for the given 1-based attempt.

    With the defaults this yields 1s, 2s, 4s, ...
    """
    delay = initial * base ** (attempt - 1)
    if jitter:
        delay += random.uniform(0, jitter)
    return delay


async def schedule_retry(attempt: int, sleep: Sleep = asyncio.sleep) -> float:
    """Sleep for computed backoff delay before retrying. Returns the delay."""
    delay = compute_backoff(attempt)
    await sleep(delay)
    return delay
