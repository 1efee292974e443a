"""Bounded fan-out helper for network-bound per-item work."""

from __future__ import annotations

import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from typing import Callable, List, Optional, Sequence, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")
R = TypeVar("R")


def map_bounded(
    items: Sequence[T],
    limit: int,
    fn: Callable[[T], R],
    default_factory: Optional[Callable[[T], R]] = None,
) -> List[Optional[R]]:
    """Apply ``fn`` to every item with at most ``limit`` calls in flight.

    Workers pull the next unclaimed index from a shared cursor and write the result
    at that same index, so ``output[i]`` always belongs to ``items[i]``. An item whose
    call raises gets ``default_factory(item)`` (or ``None``) instead.
    """
    if limit < 1:
        raise ValueError("limit must be >= 1")

    items = list(items)
    results: List[Optional[R]] = [None] * len(items)
    if not items:
        return results

    lock = threading.Lock()
    cursor = {"next": 0}

    def claim() -> Optional[int]:
        with lock:
            index = cursor["next"]
            if index >= len(items):
                return None
            cursor["next"] = index + 1
            return index

    def worker() -> None:
        while True:
            index = claim()
            if index is None:
                return
            item = items[index]
            try:
                results[index] = fn(item)
            except Exception as exc:  # noqa: BLE001
                logger.warning("Item %d failed, using default: %s", index, exc)
                results[index] = default_factory(item) if default_factory else None

    workers = min(limit, len(items))
    with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="bounded") as executor:
        futures = [executor.submit(worker) for _ in range(workers)]
        for future in futures:
            future.result()

    return results
