"""
Common helpers shared by the parsing, matching and ATS modules.
"""

import asyncio
import concurrent.futures
import math
from typing import Coroutine, Iterable, List, TypeVar

T = TypeVar('T')


def run_async(coro: Coroutine[None, None, T]) -> T:
    """
    Run a coroutine from synchronous code.

    With no running event loop this is asyncio.run(). Inside a running loop
    (e.g. a sync function called from an async web handler) the coroutine runs
    on a worker thread with its own loop, since loops cannot be nested.
    """
    try:
        asyncio.get_running_loop()
    except RuntimeError:
        return asyncio.run(coro)

    with concurrent.futures.ThreadPoolExecutor(max_workers=1) as executor:
        future = executor.submit(asyncio.run, coro)
        return future.result()


def clamp_score(value: object, low: int = 0, high: int = 100) -> int:
    """
    Coerce anything score-like into an int within [low, high].

    Non-numeric input (None, "n/a") becomes `low`.

    Example:
        >>> clamp_score("87.6")
        88
        >>> clamp_score(140)
        100
    """
    try:
        number = float(value)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        return low
    if math.isnan(number):
        return low
    return round_half_up(max(low, min(high, number)))


def round_half_up(number: float) -> int:
    """Round .5 away from zero for positives (2.5 -> 3), unlike round()."""
    return int(math.floor(number + 0.5))


def truncate(text: str, limit: int) -> str:
    """Cut text to at most `limit` characters."""
    if not text:
        return ""
    return text if len(text) <= limit else text[:limit]


def chunked(items: List[T], size: int) -> Iterable[List[T]]:
    """Yield consecutive slices of `size` items (the last one may be shorter)."""
    if size < 1:
        raise ValueError("size must be >= 1")
    for start in range(0, len(items), size):
        yield items[start:start + size]
