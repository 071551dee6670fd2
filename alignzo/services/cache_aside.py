"""
Cache-aside read path.

Every cached read goes through the same three-way state machine:

- HIT: the cache answered with an acceptable value
- MISS: the source answered; the value is written back without waiting
- FALLBACK: something raised, so the source is asked again directly and
  the cache is bypassed. If that fails too, the default is returned.

Read paths never raise for cache reasons.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Awaitable, Callable, Generic, Optional, TypeVar

from alignzo.cache.background import DetachedTasks
from alignzo.data.base import FetchResult

logger = logging.getLogger(__name__)

T = TypeVar("T")


class CacheOutcome(Enum):
    HIT = "hit"
    MISS = "miss"
    FALLBACK = "fallback"


@dataclass
class ReadResult(Generic[T]):
    value: T
    outcome: CacheOutcome

    @property
    def source(self) -> str:
        return "cache" if self.outcome == CacheOutcome.HIT else "database"


def is_present(value: Any) -> bool:
    return value is not None


def is_non_empty(value: Any) -> bool:
    return bool(value)


async def read_through(
    name: str,
    cache_get: Callable[[], Awaitable[Optional[T]]],
    fetch: Callable[[], Awaitable[FetchResult[T]]],
    cache_set: Callable[[T], Awaitable[bool]],
    tasks: DetachedTasks,
    default: Callable[[], T] = list,
    is_hit: Callable[[T], bool] = is_present,
    on_stale: Optional[Callable[[], Awaitable[Any]]] = None,
    fallback: Optional[Callable[[], Awaitable[FetchResult[T]]]] = None,
) -> ReadResult[T]:
    """
    Serve a read from cache, falling back to the source of truth.

    Args:
        name: Label used in logs and background task descriptions
        cache_get: Reads the cached value (None on miss)
        fetch: Loads from the source of truth
        cache_set: Writes a freshly fetched value back to cache
        tasks: Runner for the non-blocking write-back
        default: Factory for the value returned when nothing could be loaded
        is_hit: Decides whether a cached value may be served
        on_stale: Called when a cached value exists but is rejected by is_hit
        fallback: Direct source read used after an error (defaults to fetch)
    """
    try:
        cached = await cache_get()
        if cached is not None and is_hit(cached):
            logger.info(f"[Cache] {name} hit")
            return ReadResult(cached, CacheOutcome.HIT)

        if cached is not None and on_stale is not None:
            logger.info(f"[Cache] {name} hit but stale, refreshing")
            await on_stale()

        logger.info(f"[Cache] {name} miss, fetching from database")
        result = await fetch()
        if result.success and result.data is not None:
            tasks.spawn(cache_set(result.data), f"cache write for {name}")
            return ReadResult(result.data, CacheOutcome.MISS)

        logger.warning(f"[Cache] {name} source read failed: {result.error}")
        return ReadResult(default(), CacheOutcome.MISS)

    except Exception as e:
        logger.error(f"Error in cached {name} fetch: {e}")

    try:
        result = await (fallback or fetch)()
    except Exception as e:
        logger.error(f"Fallback fetch for {name} also failed: {e}")
        return ReadResult(default(), CacheOutcome.FALLBACK)

    if result.success and result.data is not None:
        return ReadResult(result.data, CacheOutcome.FALLBACK)
    return ReadResult(default(), CacheOutcome.FALLBACK)
