"""Helpers for splitting work into batches and bounded concurrent fan-out."""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable, Iterable, Sequence
from typing import TypeVar

T = TypeVar("T")
R = TypeVar("R")


def chunk(items: Sequence[T], size: int) -> list[list[T]]:
    """Split ``items`` into consecutive lists of at most ``size`` elements."""
    if size < 1:
        raise ValueError("size must be at least 1")
    return [list(items[start : start + size]) for start in range(0, len(items), size)]


async def gather_bounded(
    items: Iterable[T],
    fn: Callable[[T], Awaitable[R]],
    limit: int,
) -> list[R | BaseException]:
    """Run ``fn`` over every item with at most ``limit`` calls in flight.

    Results keep the input order. Exceptions are returned in place of results
    so that one failing item does not cancel the others.
    """
    semaphore = asyncio.Semaphore(max(1, limit))

    async def run(item: T) -> R:
        async with semaphore:
            return await fn(item)

    return await asyncio.gather(
        *(run(item) for item in items), return_exceptions=True
    )
