import pytest

from storedemo.errors import FetchError, ListError
from storedemo.storage.base import ObjectMeta, ObjectStream, iterate_in_thread, read_in_thread
from storedemo.storage.location import Location


class Reader:
    def __init__(self, data, fail_at=None):
        self.data = data
        self.pos = 0
        self.reads = 0
        self.fail_at = fail_at
        self.closed = False

    def read(self, n):
        self.reads += 1
        if self.fail_at is not None and self.reads >= self.fail_at:
            raise OSError("disk went away")
        chunk = self.data[self.pos:self.pos + n]
        self.pos += len(chunk)
        return chunk

    def close(self):
        self.closed = True


def _fetch_error(exc):
    return FetchError(f"stream failed: {exc}")


@pytest.mark.asyncio()
async def test_read_in_thread_chunks_and_closes():
    reader = Reader(b"abcdefg")
    chunks = [c async for c in read_in_thread(reader.read, reader.close, 3, _fetch_error)]
    assert chunks == [b"abc", b"def", b"g"]
    assert reader.closed


@pytest.mark.asyncio()
async def test_read_in_thread_translates_errors():
    reader = Reader(b"abcdefg", fail_at=2)
    received = []
    with pytest.raises(FetchError, match="disk went away"):
        async for chunk in read_in_thread(reader.read, reader.close, 3, _fetch_error):
            received.append(chunk)
    assert received == [b"abc"]
    assert reader.closed


@pytest.mark.asyncio()
async def test_early_close_releases_reader():
    reader = Reader(b"abcdefg")
    stream = ObjectStream(ObjectMeta(Location.parse("a"), 7), read_in_thread(reader.read, reader.close, 2, _fetch_error))
    async with stream:
        assert await stream.__anext__() == b"ab"
    assert reader.closed
    assert reader.pos == 2


@pytest.mark.asyncio()
async def test_close_before_first_chunk_releases_reader():
    reader = Reader(b"abcdefg")
    chunks = read_in_thread(reader.read, reader.close, 2, _fetch_error)
    stream = ObjectStream(ObjectMeta(Location.parse("a"), 7), chunks, close=reader.close)
    async with stream:
        pass
    assert reader.closed
    assert reader.reads == 0


@pytest.mark.asyncio()
async def test_iterate_in_thread():
    items = [item async for item in iterate_in_thread(iter([1, 2, 3]), lambda exc: ListError(str(exc)))]
    assert items == [1, 2, 3]

    def broken():
        yield 1
        raise ConnectionError("page 2 failed")

    with pytest.raises(ListError, match="page 2 failed"):
        [item async for item in iterate_in_thread(broken(), lambda exc: ListError(str(exc)))]
