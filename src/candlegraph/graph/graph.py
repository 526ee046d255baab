"""Signal graph: arena of nodes with pull-based, per-pass memoized resolution.

The graph is built once per strategy at configuration time. Each call to
``resolve`` starts a fresh ResolutionPass that:

1. Walks dependencies bottom-up from the requested node
2. Memoizes one asyncio.Task per node, so a source shared by several
   consumers executes once and every dependent sees the same value
3. Resolves the upstreams of an output node concurrently
4. Reads source nodes through the IntervalCache (never caching output decisions)

Failures propagate to the caller. Nothing from a failed pass is kept, so the
next resolution retries immediately.
"""

from __future__ import annotations

import asyncio
import inspect
from collections.abc import Awaitable, Callable, Hashable
from typing import Any

from candlegraph.cache.interval_cache import IntervalCache, parse_interval
from candlegraph.exceptions import GraphDefinitionError
from candlegraph.graph.nodes import Node, NodeId, OutputNode, SourceNode, default_key
from candlegraph.indicators.extract import extract
from candlegraph.logging import get_logger

logger = get_logger(__name__)


class SignalGraph:
    """Static DAG of source and output nodes.

    Upstream references must point at nodes that already exist, so the graph
    is acyclic by construction.

    Args:
        cache: Interval cache shared by all source nodes.
    """

    def __init__(self, cache: IntervalCache) -> None:
        self._cache = cache
        self._nodes: list[Node] = []
        self._names: dict[str, NodeId] = {}

    @property
    def cache(self) -> IntervalCache:
        return self._cache

    def __len__(self) -> int:
        return len(self._nodes)

    def node(self, node_id: NodeId) -> Node:
        if not 0 <= node_id < len(self._nodes):
            raise GraphDefinitionError(f"Unknown node id: {node_id}")
        return self._nodes[node_id]

    def node_id(self, name: str) -> NodeId:
        try:
            return self._names[name]
        except KeyError:
            raise GraphDefinitionError(f"Unknown node name: {name!r}") from None

    def add_source(
        self,
        name: str,
        interval: str,
        fetch: Callable[..., Awaitable[Any]],
        fields: dict[str, str] | None = None,
        key: Callable[[tuple], Hashable] | None = None,
    ) -> NodeId:
        """Register a source node and return its id.

        Raises:
            GraphDefinitionError: On a duplicate name.
            InvalidIntervalError: If ``interval`` cannot be parsed.
        """
        parse_interval(interval)
        node = SourceNode(
            name=name,
            interval=interval,
            fetch=fetch,
            fields=dict(fields) if fields is not None else None,
            key=key or default_key,
        )
        return self._append(node)

    def add_output(
        self,
        name: str,
        decide: Callable[[tuple], Any],
        *inputs: NodeId,
    ) -> NodeId:
        """Register an output node over ``inputs`` (in order) and return its id.

        Raises:
            GraphDefinitionError: On a duplicate name, no inputs, or an unknown input.
        """
        if not inputs:
            raise GraphDefinitionError(f"Output node {name!r} needs at least one input")
        for upstream in inputs:
            if not 0 <= upstream < len(self._nodes):
                raise GraphDefinitionError(
                    f"Output node {name!r} references unknown node id {upstream}"
                )
        return self._append(OutputNode(name=name, decide=decide, inputs=tuple(inputs)))

    def _append(self, node: Node) -> NodeId:
        if node.name in self._names:
            raise GraphDefinitionError(f"Duplicate node name: {node.name!r}")
        node_id = NodeId(len(self._nodes))
        self._nodes.append(node)
        self._names[node.name] = node_id
        return node_id

    async def resolve(self, node_id: NodeId, *args: Any) -> Any:
        """Resolve ``node_id`` for the given args (typically just the symbol)."""
        self.node(node_id)
        resolution = ResolutionPass(self, args)
        try:
            return await resolution.resolve(node_id)
        finally:
            resolution.discard()


class ResolutionPass:
    """Memoized recursive walk scoped to one ``SignalGraph.resolve`` call."""

    def __init__(self, graph: SignalGraph, args: tuple) -> None:
        self._graph = graph
        self._args = args
        self._tasks: dict[NodeId, asyncio.Task] = {}

    def resolve(self, node_id: NodeId) -> asyncio.Task:
        task = self._tasks.get(node_id)
        if task is None:
            task = asyncio.ensure_future(self._evaluate(node_id))
            self._tasks[node_id] = task
        return task

    async def _evaluate(self, node_id: NodeId) -> Any:
        node = self._graph.node(node_id)
        if isinstance(node, SourceNode):
            return await self._evaluate_source(node)

        values = await asyncio.gather(*(self.resolve(i) for i in node.inputs))
        result = node.decide(tuple(values))
        if inspect.isawaitable(result):
            result = await result
        logger.debug(
            "output_node_resolved",
            node=node.name,
            has_value=result is not None,
        )
        return result

    async def _evaluate_source(self, node: SourceNode) -> Any:
        args = self._args
        raw = await self._graph.cache.get(
            node.name,
            node.interval,
            node.key(args),
            lambda: node.fetch(*args),
        )
        if node.fields is None:
            return raw
        return extract(raw, node.fields)

    def discard(self) -> None:
        """Cancel unfinished node tasks and drop the memo."""
        for task in self._tasks.values():
            if not task.done():
                task.cancel()
            elif not task.cancelled():
                # Mark sibling failures as retrieved; the first one already propagated.
                task.exception()
        self._tasks.clear()
