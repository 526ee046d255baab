"""Interval-bucketed memoization with request coalescing.

Indicator evaluations are expensive and several graph nodes (or several
strategies) ask for the same computation within one candle interval.
IntervalCache keys every computation by (identity, interval, derived key)
and stamps it with the clock bucket ``(now_ms - anchor_ms) // interval_ms``.
The anchor is zero except for week intervals, which roll over on Monday
00:00 UTC like exchange weekly candles. Month intervals ("1M") have no
fixed length and are rejected.

- the first caller in a bucket starts the producer as an asyncio.Task;
- concurrent and later callers in the same bucket await that same task;
- crossing into a new bucket replaces the entry on the next request;
- a producer that fails (or is cancelled) is evicted so the next call retries.

Callers await the shared task through asyncio.shield, so a caller that
abandons its request (e.g. on shutdown) never cancels the evaluation other
callers are waiting on.
"""

from __future__ import annotations

import asyncio
import functools
import re
import time
from collections.abc import Awaitable, Callable, Hashable
from dataclasses import dataclass
from typing import Any, TypeVar

from candlegraph.exceptions import InvalidIntervalError
from candlegraph.logging import get_logger

logger = get_logger(__name__)

T = TypeVar("T")

CacheKey = tuple[str, str, Hashable]

_INTERVAL_RE = re.compile(r"^(\d+)([mhdw])$")

_UNIT_MS: dict[str, int] = {
    "m": 60_000,
    "h": 3_600_000,
    "d": 86_400_000,
    "w": 604_800_000,
}

# 1970-01-01 was a Thursday; the first Monday is four days later.
_WEEK_ANCHOR_MS = 4 * 86_400_000


@functools.lru_cache(maxsize=64)
def parse_interval(interval: str) -> int:
    """Convert an interval string ("1m", "15m", "4h", "1d") to milliseconds.

    Raises:
        InvalidIntervalError: If the string is not <positive int><m|h|d|w>.
    """
    match = _INTERVAL_RE.match(interval.strip())
    if match is None:
        raise InvalidIntervalError(f"Unsupported interval: {interval!r}")
    amount = int(match.group(1))
    if amount <= 0:
        raise InvalidIntervalError(f"Interval must be positive: {interval!r}")
    return amount * _UNIT_MS[match.group(2)]


def interval_anchor(interval: str) -> int:
    """Return the epoch offset (ms) that bucket boundaries for ``interval`` align to."""
    parse_interval(interval)
    return _WEEK_ANCHOR_MS if interval.strip().endswith("w") else 0


def _wall_clock_ms() -> int:
    return int(time.time() * 1000)


@dataclass
class _Entry:
    bucket: int
    task: asyncio.Task


def _failed(task: asyncio.Task) -> bool:
    return task.done() and (task.cancelled() or task.exception() is not None)


class IntervalCache:
    """Process-wide cache of in-flight and completed interval computations.

    Args:
        time_fn: Returns the current time in epoch milliseconds. Defaults to
            the wall clock; backtests pass the simulated clock.
    """

    def __init__(self, time_fn: Callable[[], int] | None = None) -> None:
        self._time_fn = time_fn or _wall_clock_ms
        self._entries: dict[CacheKey, _Entry] = {}
        self._lock = asyncio.Lock()
        self.hits = 0
        self.misses = 0

    def __len__(self) -> int:
        return len(self._entries)

    def bucket_for(self, interval: str) -> int:
        """Return the clock bucket index for ``interval`` at the current time."""
        return (self._time_fn() - interval_anchor(interval)) // parse_interval(interval)

    async def get(
        self,
        identity: str,
        interval: str,
        derived_key: Hashable,
        producer: Callable[[], Awaitable[T]],
    ) -> T:
        """Return the cached result for the key, computing it at most once per bucket.

        Args:
            identity: Name of the computation (e.g., the graph node name).
            interval: Bucketing interval (e.g., "15m").
            derived_key: Pure function of the caller's arguments (e.g., the symbol).
            producer: Zero-argument coroutine factory invoked on a miss.

        Returns:
            The producer's result, shared by every caller in the bucket.

        Raises:
            Whatever the producer raised. Failures are never cached.
        """
        key: CacheKey = (identity, interval, derived_key)
        bucket = self.bucket_for(interval)

        async with self._lock:
            entry = self._entries.get(key)
            if entry is None or entry.bucket != bucket or _failed(entry.task):
                task = asyncio.ensure_future(producer())
                entry = _Entry(bucket=bucket, task=task)
                self._entries[key] = entry
                task.add_done_callback(functools.partial(self._on_done, key, entry))
                self.misses += 1
                logger.debug(
                    "interval_cache_miss",
                    identity=identity,
                    interval=interval,
                    key=str(derived_key),
                    bucket=bucket,
                )
            else:
                self.hits += 1

        return await asyncio.shield(entry.task)

    def _on_done(self, key: CacheKey, entry: _Entry, task: asyncio.Task) -> None:
        if not _failed(task):
            return
        # Only evict if the entry was not already replaced by a newer bucket.
        if self._entries.get(key) is entry:
            del self._entries[key]
        logger.debug(
            "interval_cache_evicted",
            identity=key[0],
            interval=key[1],
            key=str(key[2]),
            cancelled=task.cancelled(),
        )

    def invalidate(self, identity: str | None = None) -> int:
        """Drop entries for one computation identity, or all entries.

        Returns:
            Number of entries removed.
        """
        if identity is None:
            removed = len(self._entries)
            self._entries.clear()
            return removed
        keys = [k for k in self._entries if k[0] == identity]
        for k in keys:
            del self._entries[k]
        return len(keys)

    def prune(self) -> int:
        """Drop completed entries whose bucket has already rolled over.

        Returns:
            Number of entries removed.
        """
        stale = [
            k
            for k, entry in self._entries.items()
            if entry.task.done() and entry.bucket != self.bucket_for(k[1])
        ]
        for k in stale:
            del self._entries[k]
        return len(stale)


def cached(
    cache: IntervalCache,
    interval: str,
    key: Callable[[tuple], Hashable] | None = None,
    identity: str | None = None,
) -> Callable[[Callable[..., Awaitable[T]]], Callable[..., Awaitable[T]]]:
    """Decorate an async function so calls go through ``cache``.

    Usage:
        @cached(cache, "4h", key=lambda args: args[0])
        async def higher_timeframe(symbol): ...

    Args:
        cache: The shared IntervalCache.
        interval: Bucketing interval for this computation.
        key: Derives the cache key from the positional args tuple.
            Defaults to the tuple itself.
        identity: Computation identity. Defaults to the function's qualified name.
    """

    def decorator(fn: Callable[..., Awaitable[T]]) -> Callable[..., Awaitable[T]]:
        name = identity or f"{fn.__module__}.{fn.__qualname__}"

        @functools.wraps(fn)
        async def wrapper(*args: Any) -> T:
            derived = key(args) if key is not None else args
            return await cache.get(name, interval, derived, lambda: fn(*args))

        return wrapper

    return decorator
