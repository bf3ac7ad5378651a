from __future__ import annotations

import asyncio
import hashlib
from collections.abc import AsyncIterator
from datetime import datetime, timezone
from typing import Optional

from storedemo.config.object_store_config import DEFAULT_CHUNK_SIZE
from storedemo.errors import InvalidPath, NotFound
from storedemo.storage.base import ObjectMeta, ObjectStore, ObjectStream
from storedemo.storage.location import Location


class InMemoryObjectStore(ObjectStore):
    """
    Process-local store for tests and embedding.

    Listing iterates a snapshot taken when the listing starts, in key order.
    """

    backend = "memory"

    def __init__(self, chunk_size: int = DEFAULT_CHUNK_SIZE) -> None:
        self.chunk_size = chunk_size
        self._objects: dict[Location, tuple[bytes, ObjectMeta]] = {}
        self._lock = asyncio.Lock()

    async def list(self, prefix: Optional[Location] = None) -> AsyncIterator[ObjectMeta]:
        prefix = prefix or Location()
        async with self._lock:
            snapshot = sorted((meta for _, meta in self._objects.values()), key=lambda m: m.location)
        for meta in snapshot:
            if prefix.is_root or prefix.is_prefix_of(meta.location):
                yield meta

    async def head(self, location: Location) -> ObjectMeta:
        async with self._lock:
            entry = self._objects.get(location)
        if entry is None:
            raise NotFound(f"Object not found: {location}", {"location": str(location)})
        return entry[1]

    async def _chunks(self, data: bytes) -> AsyncIterator[bytes]:
        for start in range(0, len(data), self.chunk_size):
            yield data[start:start + self.chunk_size]
            await asyncio.sleep(0)

    async def get(self, location: Location) -> ObjectStream:
        async with self._lock:
            entry = self._objects.get(location)
        if entry is None:
            raise NotFound(f"Object not found: {location}", {"location": str(location)})
        data, meta = entry
        return ObjectStream(meta, self._chunks(data))

    async def put(self, location: Location, data: bytes) -> ObjectMeta:
        if location.is_root:
            raise InvalidPath("Cannot write to the store root", {"location": ""})
        data = bytes(data)
        meta = ObjectMeta(
            location=location,
            size=len(data),
            last_modified=datetime.now(timezone.utc),
            e_tag=hashlib.md5(data).hexdigest(),
        )
        async with self._lock:
            self._objects[location] = (data, meta)
        return meta
