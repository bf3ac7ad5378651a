from __future__ import annotations

from storedemo.pipeline.listing import ItemProgress, ItemState
from storedemo.storage.base import ObjectMeta, ObjectStore, ObjectStream


async def open_stream(store: ObjectStore, item: ItemProgress) -> ObjectStream:
    item.advance(ItemState.FETCHING)
    stream = await store.get(item.meta.location)
    item.advance(ItemState.STREAMING)
    return stream


async def count_zeros(store: ObjectStore, item: ItemProgress) -> int:
    """Count zero-valued bytes across the full object body."""
    zeros = 0
    async with await open_stream(store, item) as stream:
        async for chunk in stream:
            zeros += chunk.count(0)
    return zeros


def describe(meta: ObjectMeta) -> str:
    return f"File name: {meta.location}, size: {meta.size}"
