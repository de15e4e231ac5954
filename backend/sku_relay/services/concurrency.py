from __future__ import annotations

import asyncio
from typing import Awaitable, Callable, List, Sequence, TypeVar, Union

from sku_relay.config.upload_config import PROCESS_CONCURRENCY

T = TypeVar("T")
R = TypeVar("R")


async def run_in_batches(
    items: Sequence[T],
    worker: Callable[[T], Awaitable[R]],
    limit: int = PROCESS_CONCURRENCY,
) -> List[Union[R, BaseException]]:
    """
    Run ``worker`` over ``items`` in windows of at most ``limit``.

    Each window is awaited in full before the next one starts. The result
    list matches ``items`` by index; a worker's exception is returned in its
    slot instead of cancelling the rest of the window.
    """
    if limit < 1:
        raise ValueError("limit must be at least 1")

    results: List[Union[R, BaseException]] = []
    for start in range(0, len(items), limit):
        window = items[start:start + limit]
        results.extend(await asyncio.gather(*(worker(item) for item in window), return_exceptions=True))
    return results
