from __future__ import annotations

import asyncio
from abc import ABC, abstractmethod
from collections.abc import AsyncIterator, Callable, Iterator
from dataclasses import dataclass
from datetime import datetime
from typing import Optional, TypeVar

from storedemo.storage.location import Location

T = TypeVar("T")

_EXHAUSTED = object()


@dataclass(frozen=True)
class ObjectMeta:
    location: Location
    size: int
    last_modified: Optional[datetime] = None
    e_tag: Optional[str] = None


class ObjectStream:
    """
    Streaming body of one object.

    Iterating yields ``bytes`` chunks in object order. Chunk boundaries are
    chosen by the backend. A failure after the stream was opened surfaces as
    ``FetchError`` from the iterator. Use as an async context manager (or call
    ``aclose``) to release the underlying connection or file handle early.
    """

    def __init__(
        self,
        meta: ObjectMeta,
        chunks: AsyncIterator[bytes],
        close: Optional[Callable[[], None]] = None,
    ) -> None:
        self.meta = meta
        self._chunks = chunks
        # releases the handle even when iteration never started
        self._close = close

    def __aiter__(self) -> ObjectStream:
        return self

    async def __anext__(self) -> bytes:
        return await self._chunks.__anext__()

    async def aclose(self) -> None:
        aclose = getattr(self._chunks, "aclose", None)
        if aclose is not None:
            await aclose()
        if self._close is not None:
            close, self._close = self._close, None
            await asyncio.to_thread(close)

    async def __aenter__(self) -> ObjectStream:
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def read_all(self) -> bytes:
        return b"".join([chunk async for chunk in self])


class ObjectStore(ABC):
    """
    Uniform contract over local disk and cloud blob stores.

    Implementations are immutable after construction and safe to share
    between concurrently running tasks.
    """

    backend: str = "abstract"

    @abstractmethod
    def list(self, prefix: Optional[Location] = None) -> AsyncIterator[ObjectMeta]:
        """
        Lazily yield every object strictly below ``prefix``.

        Order is backend-defined. Raises ``ListError`` from the iterator when
        the backend fails part way through.
        """

    @abstractmethod
    async def get(self, location: Location) -> ObjectStream:
        """Open ``location`` for streaming. Raises ``NotFound``/``GetError``."""

    @abstractmethod
    async def head(self, location: Location) -> ObjectMeta: ...

    @abstractmethod
    async def put(self, location: Location, data: bytes) -> ObjectMeta: ...

    def __repr__(self) -> str:
        return f"{type(self).__name__}()"


async def iterate_in_thread(
    iterator: Iterator[T],
    translate: Callable[[Exception], Exception],
) -> AsyncIterator[T]:
    """Drive a blocking iterator one item at a time on the default executor."""
    while True:
        try:
            item = await asyncio.to_thread(next, iterator, _EXHAUSTED)
        except Exception as exc:
            raise translate(exc) from exc
        if item is _EXHAUSTED:
            return
        yield item


async def read_in_thread(
    read: Callable[[int], bytes],
    close: Callable[[], None],
    chunk_size: int,
    translate: Callable[[Exception], Exception],
) -> AsyncIterator[bytes]:
    """Yield chunks from a blocking ``read(n)`` until it returns empty."""
    try:
        while True:
            try:
                chunk = await asyncio.to_thread(read, chunk_size)
            except Exception as exc:
                raise translate(exc) from exc
            if not chunk:
                return
            yield bytes(chunk)
    finally:
        close()
