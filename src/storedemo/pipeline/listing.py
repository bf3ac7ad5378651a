from __future__ import annotations

from collections.abc import AsyncIterator, Awaitable, Callable
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Generic, Optional, TypeVar

from storedemo.errors import FetchError, GetError, StoreError
from storedemo.logging_config import get_logger, with_context
from storedemo.pipeline.ordered import ordered_map
from storedemo.storage.base import ObjectMeta, ObjectStore
from storedemo.storage.location import Location

logger = get_logger(__name__)

R = TypeVar("R")


class ItemState(str, Enum):
    DISCOVERED = "discovered"
    FETCHING = "fetching"
    STREAMING = "streaming"
    SUMMARIZED = "summarized"
    FAILED = "failed"

    @property
    def terminal(self) -> bool:
        return self in (ItemState.SUMMARIZED, ItemState.FAILED)


_PROGRESSION = (ItemState.DISCOVERED, ItemState.FETCHING, ItemState.STREAMING, ItemState.SUMMARIZED)


@dataclass
class ItemProgress:
    """Mutable per-item state, owned by the single task processing ``meta``."""

    meta: ObjectMeta
    state: ItemState = ItemState.DISCOVERED
    history: list[ItemState] = field(default_factory=lambda: [ItemState.DISCOVERED])

    def advance(self, state: ItemState) -> None:
        if self.state.terminal:
            raise RuntimeError(f"{self.meta.location}: already {self.state.value}, cannot move to {state.value}")
        if state is not ItemState.FAILED and _PROGRESSION.index(state) <= _PROGRESSION.index(self.state):
            raise RuntimeError(f"{self.meta.location}: cannot move from {self.state.value} to {state.value}")
        self.state = state
        self.history.append(state)


@dataclass(frozen=True)
class ObjectResult(Generic[R]):
    meta: ObjectMeta
    state: ItemState
    value: Optional[R] = None
    error: Optional[StoreError] = None
    # state the item was in when it failed
    failed_in: Optional[ItemState] = None

    @property
    def location(self) -> Location:
        return self.meta.location

    @property
    def ok(self) -> bool:
        return self.state is ItemState.SUMMARIZED


Transform = Callable[[ObjectStore, ItemProgress], Awaitable[Any]]


async def process_listing(
    store: ObjectStore,
    prefix: Optional[Location],
    transform: Transform,
    limit: Optional[int] = None,
    fail_fast: bool = False,
) -> AsyncIterator[ObjectResult]:
    """
    List ``prefix`` and run ``transform`` over every object, yielding one
    ``ObjectResult`` per object in listing order.

    ``GetError`` and ``FetchError`` raised by a transform are recorded in that
    object's result and do not disturb the others, unless ``fail_fast`` is
    set, in which case the first one (in listing order) is raised after the
    remaining tasks are cancelled. ``ListError`` is always raised.
    """

    async def run(meta: ObjectMeta) -> ObjectResult:
        item = ItemProgress(meta)
        log = with_context(logger, location=str(meta.location))
        log.debug("Processing object: size=%s", meta.size)
        try:
            value = await transform(store, item)
        except (GetError, FetchError) as exc:
            failed_in = item.state
            item.advance(ItemState.FAILED)
            if fail_fast:
                raise
            log.warning("Object processing failed: state=%s error=%s", failed_in.value, exc)
            return ObjectResult(meta=meta, state=ItemState.FAILED, error=exc, failed_in=failed_in)
        item.advance(ItemState.SUMMARIZED)
        return ObjectResult(meta=meta, state=ItemState.SUMMARIZED, value=value)

    processed = failed = 0
    async for result in ordered_map(store.list(prefix), run, limit):
        processed += 1
        failed += not result.ok
        yield result
    logger.info("Listing processed: prefix=%s objects=%s failed=%s", prefix, processed, failed)


async def collect_listing(
    store: ObjectStore,
    prefix: Optional[Location],
    transform: Transform,
    limit: Optional[int] = None,
    fail_fast: bool = False,
) -> list[ObjectResult]:
    return [result async for result in process_listing(store, prefix, transform, limit, fail_fast)]
