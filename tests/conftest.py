from __future__ import annotations

import asyncio

import pytest

from storedemo.config.object_store_config import LocalStoreConfig
from storedemo.errors import FetchError, NotFound
from storedemo.storage.base import ObjectStore, ObjectStream
from storedemo.storage.local import LocalFileSystemStore
from storedemo.storage.location import Location
from storedemo.storage.memory import InMemoryObjectStore

# 10 bytes: 4 zeros, 6 non-zero
KNOWN_BYTES = bytes([0, 1, 0, 2, 0, 3, 4, 0, 5, 6])


class InstrumentedStore(ObjectStore):
    """Wraps another store and records how many streams are open at once."""

    backend = "instrumented"

    def __init__(
        self,
        inner: ObjectStore,
        chunk_delay: float = 0.01,
        broken: set[str] | None = None,
        missing: set[str] | None = None,
    ) -> None:
        self.inner = inner
        self.chunk_delay = chunk_delay
        # fail mid-stream
        self.broken = broken or set()
        # listed, but deleted before the fetch
        self.missing = missing or set()
        self.open_streams = 0
        self.max_open_streams = 0
        self.gets: list[str] = []

    def list(self, prefix=None):
        return self.inner.list(prefix)

    async def head(self, location):
        return await self.inner.head(location)

    async def put(self, location, data):
        return await self.inner.put(location, data)

    async def get(self, location: Location) -> ObjectStream:
        if str(location) in self.missing:
            raise NotFound(f"Object not found: {location}", {"location": str(location)})
        stream = await self.inner.get(location)
        self.gets.append(str(location))
        self.open_streams += 1
        self.max_open_streams = max(self.max_open_streams, self.open_streams)
        return ObjectStream(stream.meta, self._track(location, stream))

    async def _track(self, location: Location, stream: ObjectStream):
        try:
            first = True
            async for chunk in stream:
                await asyncio.sleep(self.chunk_delay)
                if str(location) in self.broken and not first:
                    raise FetchError(f"connection reset while reading {location}", {"location": str(location)})
                first = False
                yield chunk
        finally:
            self.open_streams -= 1
            await stream.aclose()


@pytest.fixture()
def memory_store() -> InMemoryObjectStore:
    return InMemoryObjectStore(chunk_size=3)


@pytest.fixture()
def local_store(tmp_path) -> LocalFileSystemStore:
    return LocalFileSystemStore(LocalStoreConfig(root=str(tmp_path), chunk_size=4))


@pytest.fixture()
def seed():
    async def _seed(store: ObjectStore, objects: dict[str, bytes]) -> None:
        for key, data in objects.items():
            await store.put(Location.parse(key), data)

    return _seed
