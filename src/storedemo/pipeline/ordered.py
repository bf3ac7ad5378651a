from __future__ import annotations

import asyncio
from collections import deque
from collections.abc import AsyncIterable, AsyncIterator, Awaitable, Callable, Iterable
from typing import Optional, TypeVar, Union

T = TypeVar("T")
R = TypeVar("R")


async def _as_async(source: Union[AsyncIterable[T], Iterable[T]]) -> AsyncIterator[T]:
    if isinstance(source, AsyncIterable):
        iterator = source.__aiter__()
        try:
            async for item in iterator:
                yield item
        finally:
            aclose = getattr(iterator, "aclose", None)
            if aclose is not None:
                await aclose()
    else:
        for item in source:
            yield item


async def ordered_map(
    source: Union[AsyncIterable[T], Iterable[T]],
    fn: Callable[[T], Awaitable[R]],
    limit: Optional[int] = None,
) -> AsyncIterator[R]:
    """
    Run ``fn`` over ``source`` concurrently and yield results in source order.

    Tasks are started as items arrive and kept in a FIFO queue that is drained
    strictly from the head, so a fast late task waits behind a slow early
    one. With ``limit`` set, at most ``limit`` tasks exist at once; the head
    is awaited before another item is pulled from ``source``.

    An exception from ``fn`` or from ``source`` propagates once reached in
    order. Leaving the iteration for any reason cancels and reaps every task
    still queued.
    """
    if limit is not None and limit < 1:
        raise ValueError(f"limit must be >= 1 or None, got: {limit}")

    items = _as_async(source)
    pending: deque[asyncio.Task[R]] = deque()
    try:
        async for item in items:
            if limit is not None and len(pending) >= limit:
                yield await pending.popleft()
            pending.append(asyncio.ensure_future(fn(item)))
        while pending:
            yield await pending.popleft()
    finally:
        for task in pending:
            task.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)
        await items.aclose()
