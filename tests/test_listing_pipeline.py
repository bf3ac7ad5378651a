import asyncio

import pytest

from conftest import KNOWN_BYTES, InstrumentedStore
from storedemo.errors import FetchError, ListError, NotFound
from storedemo.pipeline.listing import ItemProgress, ItemState, collect_listing, process_listing
from storedemo.pipeline.transforms import count_zeros, describe, open_stream
from storedemo.storage.base import ObjectMeta
from storedemo.storage.location import Location


@pytest.mark.asyncio()
async def test_zero_count_of_known_bytes(memory_store, seed):
    await seed(memory_store, {"data/known.bin": KNOWN_BYTES})
    results = await collect_listing(memory_store, Location.parse("data"), count_zeros)
    assert [(str(r.location), r.value) for r in results] == [("data/known.bin", 4)]
    assert results[0].state is ItemState.SUMMARIZED


@pytest.mark.asyncio()
async def test_results_keep_listing_order_when_completion_is_reversed(memory_store, seed):
    n = 6
    await seed(memory_store, {f"data/{i}": b"\x00" * i for i in range(n)})
    completed = []

    async def slow_first(store, item):
        index = int(item.meta.location.name)
        await asyncio.sleep((n - index) * 0.02)
        value = await count_zeros(store, item)
        completed.append(index)
        return value

    results = await collect_listing(memory_store, Location.parse("data"), slow_first)
    assert completed[0] == n - 1
    assert completed[-1] == 0
    assert [str(r.location) for r in results] == [f"data/{i}" for i in range(n)]
    assert [r.value for r in results] == list(range(n))


@pytest.mark.asyncio()
async def test_empty_prefix_yields_nothing(memory_store, seed):
    await seed(memory_store, {"data/a": b"\x00"})
    assert await collect_listing(memory_store, Location.parse("other"), count_zeros) == []


@pytest.mark.asyncio()
@pytest.mark.parametrize("limit", [1, 3])
async def test_concurrency_bound(memory_store, seed, limit):
    await seed(memory_store, {f"data/{i:02d}": KNOWN_BYTES for i in range(10)})
    store = InstrumentedStore(memory_store)
    results = await collect_listing(store, Location.parse("data"), count_zeros, limit=limit)
    assert [r.value for r in results] == [4] * 10
    assert store.max_open_streams == limit
    assert store.open_streams == 0


@pytest.mark.asyncio()
async def test_unbounded_opens_every_stream(memory_store, seed):
    await seed(memory_store, {f"data/{i:02d}": KNOWN_BYTES for i in range(10)})
    store = InstrumentedStore(memory_store)
    await collect_listing(store, Location.parse("data"), count_zeros, limit=None)
    assert store.max_open_streams == 10


@pytest.mark.asyncio()
async def test_stream_failure_is_isolated(memory_store, seed):
    await seed(memory_store, {"data/a": KNOWN_BYTES, "data/b": KNOWN_BYTES, "data/c": KNOWN_BYTES})
    store = InstrumentedStore(memory_store, broken={"data/b"})
    results = await collect_listing(store, Location.parse("data"), count_zeros, limit=2)

    assert [r.state for r in results] == [ItemState.SUMMARIZED, ItemState.FAILED, ItemState.SUMMARIZED]
    failed = results[1]
    assert isinstance(failed.error, FetchError)
    assert failed.failed_in is ItemState.STREAMING
    assert failed.value is None
    assert not failed.ok
    assert [r.value for r in results if r.ok] == [4, 4]


@pytest.mark.asyncio()
async def test_object_vanishing_after_listing_is_isolated(memory_store, seed):
    await seed(memory_store, {"data/a": KNOWN_BYTES, "data/gone": KNOWN_BYTES, "data/z": KNOWN_BYTES})
    store = InstrumentedStore(memory_store, missing={"data/gone"})

    results = await collect_listing(store, Location.parse("data"), count_zeros)
    assert [r.ok for r in results] == [True, False, True]
    assert isinstance(results[1].error, NotFound)
    assert results[1].failed_in is ItemState.FETCHING


@pytest.mark.asyncio()
async def test_fail_fast_raises_first_error(memory_store, seed):
    await seed(memory_store, {"data/a": KNOWN_BYTES, "data/b": KNOWN_BYTES})
    store = InstrumentedStore(memory_store, broken={"data/a"})
    with pytest.raises(FetchError):
        await collect_listing(store, Location.parse("data"), count_zeros, fail_fast=True)


class ListingFailsStore(InstrumentedStore):
    async def _broken_list(self, prefix):
        async for meta in self.inner.list(prefix):
            yield meta
            raise ListError("listing page failed")

    def list(self, prefix=None):
        return self._broken_list(prefix)


@pytest.mark.asyncio()
async def test_list_error_is_fatal(memory_store, seed):
    await seed(memory_store, {"data/a": KNOWN_BYTES, "data/b": KNOWN_BYTES})
    with pytest.raises(ListError):
        await collect_listing(ListingFailsStore(memory_store), Location.parse("data"), count_zeros)


@pytest.mark.asyncio()
async def test_results_stream_incrementally(memory_store, seed):
    await seed(memory_store, {"data/a": b"\x00", "data/b": b"\x00\x00"})
    seen = []
    async for result in process_listing(memory_store, None, count_zeros, limit=1):
        seen.append((str(result.location), result.value))
    assert seen == [("data/a", 1), ("data/b", 2)]


@pytest.mark.asyncio()
async def test_local_store_round_trip(local_store, seed):
    await seed(local_store, {"in/a.bin": KNOWN_BYTES, "in/deeper/b.bin": bytes(7)})
    results = await collect_listing(local_store, Location.parse("in"), count_zeros, limit=4)
    assert {str(r.location): r.value for r in results} == {"in/a.bin": 4, "in/deeper/b.bin": 7}


@pytest.mark.asyncio()
async def test_open_stream_advances_state(memory_store, seed):
    await seed(memory_store, {"x": b"abc"})
    item = ItemProgress(await memory_store.head(Location.parse("x")))
    async with await open_stream(memory_store, item) as stream:
        assert await stream.read_all() == b"abc"
    assert item.history == [ItemState.DISCOVERED, ItemState.FETCHING, ItemState.STREAMING]


def _meta(key="x", size=1):
    return ObjectMeta(location=Location.parse(key), size=size)


def test_item_progress_rejects_backwards_moves():
    item = ItemProgress(_meta())
    item.advance(ItemState.FETCHING)
    with pytest.raises(RuntimeError):
        item.advance(ItemState.DISCOVERED)
    item.advance(ItemState.FAILED)
    with pytest.raises(RuntimeError):
        item.advance(ItemState.SUMMARIZED)


def test_terminal_states():
    assert ItemState.SUMMARIZED.terminal
    assert ItemState.FAILED.terminal
    assert not ItemState.STREAMING.terminal


def test_describe():
    assert describe(_meta("data/a.bin", 10)) == "File name: data/a.bin, size: 10"
