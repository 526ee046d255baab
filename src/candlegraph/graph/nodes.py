"""Signal graph node variants.

A graph is an arena of nodes addressed by integer NodeId. Source nodes are
leaves that read an interval-cached computation and extract named fields;
output nodes combine the resolved values of their declared upstream nodes
into a decision.
"""

from collections.abc import Awaitable, Callable, Hashable
from dataclasses import dataclass
from typing import Any, NewType

NodeId = NewType("NodeId", int)


def default_key(args: tuple) -> Hashable:
    """Cache key from resolution args: the symbol alone, or the full tuple."""
    return args[0] if len(args) == 1 else args


@dataclass(frozen=True)
class SourceNode:
    """Leaf node backed by an interval-cached fetch.

    Attributes:
        name: Unique node name, also the cache computation identity.
        interval: Cache bucketing interval (e.g., "15m").
        fetch: Coroutine function called with the resolution args on a cache miss.
        fields: Output field -> plot name mapping applied to the cached plots.
            None passes the cached value through unchanged.
        key: Derives the cache key from the resolution args.
    """

    name: str
    interval: str
    fetch: Callable[..., Awaitable[Any]]
    fields: dict[str, str] | None = None
    key: Callable[[tuple], Hashable] = default_key


@dataclass(frozen=True)
class OutputNode:
    """Node computing a value (usually a SignalDecision or None) from upstream values.

    ``decide`` receives a tuple of resolved upstream values in declaration
    order and may be a plain function or a coroutine function.
    """

    name: str
    decide: Callable[[tuple], Any]
    inputs: tuple[NodeId, ...]


Node = SourceNode | OutputNode
