"""Tests for SignalGraph construction and per-pass memoized resolution."""

import asyncio
from decimal import Decimal

import pytest

from candlegraph.cache.interval_cache import IntervalCache
from candlegraph.exceptions import (
    GraphDefinitionError,
    InvalidIntervalError,
    MissingPlotError,
)
from candlegraph.graph.graph import SignalGraph
from candlegraph.graph.nodes import NodeId
from candlegraph.indicators.models import PlotPoint, PlotSeries


def _make_plots(**values: float | None) -> dict[str, PlotSeries]:
    return {
        name: PlotSeries(name=name, points=(PlotPoint(0, 0), PlotPoint(900_000, value)))
        for name, value in values.items()
    }


def _make_counting_fetch(plots: dict, delay: float = 0.0):
    calls: list[tuple] = []

    async def fetch(*args: object) -> dict:
        calls.append(args)
        if delay:
            await asyncio.sleep(delay)
        return plots

    return fetch, calls


class TestGraphConstruction:
    def test_node_ids_are_sequential(self, clock) -> None:
        graph = SignalGraph(IntervalCache(time_fn=clock))
        fetch, _ = _make_counting_fetch({})

        a = graph.add_source("a", "15m", fetch)
        b = graph.add_source("b", "1h", fetch)
        out = graph.add_output("out", lambda values: values, a, b)

        assert (a, b, out) == (0, 1, 2)
        assert len(graph) == 3
        assert graph.node_id("out") == out
        assert graph.node(out).inputs == (a, b)

    def test_duplicate_name_rejected(self, clock) -> None:
        graph = SignalGraph(IntervalCache(time_fn=clock))
        fetch, _ = _make_counting_fetch({})
        graph.add_source("trend", "4h", fetch)

        with pytest.raises(GraphDefinitionError, match="Duplicate"):
            graph.add_source("trend", "15m", fetch)

    def test_output_requires_inputs(self, clock) -> None:
        graph = SignalGraph(IntervalCache(time_fn=clock))

        with pytest.raises(GraphDefinitionError, match="at least one input"):
            graph.add_output("out", lambda values: None)

    def test_output_cannot_reference_unknown_node(self, clock) -> None:
        graph = SignalGraph(IntervalCache(time_fn=clock))
        fetch, _ = _make_counting_fetch({})
        a = graph.add_source("a", "15m", fetch)

        with pytest.raises(GraphDefinitionError, match="unknown node id"):
            graph.add_output("out", lambda values: None, a, NodeId(7))

    def test_invalid_interval_rejected(self, clock) -> None:
        graph = SignalGraph(IntervalCache(time_fn=clock))
        fetch, _ = _make_counting_fetch({})

        with pytest.raises(InvalidIntervalError):
            graph.add_source("a", "15 minutes", fetch)

    def test_unknown_name_lookup(self, clock) -> None:
        graph = SignalGraph(IntervalCache(time_fn=clock))

        with pytest.raises(GraphDefinitionError):
            graph.node_id("missing")


class TestResolve:
    @pytest.mark.asyncio
    async def test_source_fields_extracted_as_decimal(self, clock) -> None:
        graph = SignalGraph(IntervalCache(time_fn=clock))
        fetch, calls = _make_counting_fetch(_make_plots(Signal=1, Close=50000.5))
        entry = graph.add_source(
            "entry", "15m", fetch, fields={"position": "Signal", "priceOpen": "Close"}
        )

        result = await graph.resolve(entry, "BTCUSDT")

        assert result == {"position": Decimal("1"), "priceOpen": Decimal("50000.5")}
        assert calls == [("BTCUSDT",)]

    @pytest.mark.asyncio
    async def test_shared_upstream_evaluates_once_per_pass(self, clock) -> None:
        """A source feeding two branches runs once and both see the same value."""
        graph = SignalGraph(IntervalCache(time_fn=clock))
        fetch, calls = _make_counting_fetch(_make_plots(Signal=1), delay=0.01)
        shared = graph.add_source("shared", "15m", fetch, fields={"s": "Signal"})
        left = graph.add_output("left", lambda values: values[0], shared)
        right = graph.add_output("right", lambda values: values[0], shared)
        top = graph.add_output("top", lambda values: values, left, right)

        left_value, right_value = await graph.resolve(top, "BTCUSDT")

        assert left_value is right_value
        assert len(calls) == 1

    @pytest.mark.asyncio
    async def test_sources_cached_across_passes_within_bucket(self, clock) -> None:
        graph = SignalGraph(IntervalCache(time_fn=clock))
        fetch, calls = _make_counting_fetch(_make_plots(Signal=1))
        source = graph.add_source("trend", "4h", fetch, fields={"trend": "Signal"})
        out = graph.add_output("out", lambda values: values[0]["trend"], source)

        assert await graph.resolve(out, "BTCUSDT") == Decimal("1")
        assert await graph.resolve(out, "BTCUSDT") == Decimal("1")
        assert len(calls) == 1

    @pytest.mark.asyncio
    async def test_output_decisions_are_not_cached(self, clock) -> None:
        graph = SignalGraph(IntervalCache(time_fn=clock))
        fetch, _ = _make_counting_fetch(_make_plots(Signal=1))
        source = graph.add_source("entry", "15m", fetch, fields={"s": "Signal"})
        decisions = []

        def decide(values: tuple) -> int:
            decisions.append(values)
            return len(decisions)

        out = graph.add_output("out", decide, source)

        assert await graph.resolve(out, "BTCUSDT") == 1
        assert await graph.resolve(out, "BTCUSDT") == 2

    @pytest.mark.asyncio
    async def test_async_decide_is_awaited(self, clock) -> None:
        graph = SignalGraph(IntervalCache(time_fn=clock))
        fetch, _ = _make_counting_fetch(_make_plots(Signal=-1))
        source = graph.add_source("entry", "15m", fetch, fields={"s": "Signal"})

        async def decide(values: tuple) -> Decimal:
            return values[0]["s"]

        out = graph.add_output("out", decide, source)

        assert await graph.resolve(out, "BTCUSDT") == Decimal("-1")

    @pytest.mark.asyncio
    async def test_inputs_passed_in_declaration_order(self, clock) -> None:
        graph = SignalGraph(IntervalCache(time_fn=clock))
        slow, _ = _make_counting_fetch(_make_plots(v=1), delay=0.02)
        fast, _ = _make_counting_fetch(_make_plots(v=2))
        a = graph.add_source("slow", "15m", slow, fields={"v": "v"})
        b = graph.add_source("fast", "15m", fast, fields={"v": "v"})
        out = graph.add_output("out", lambda values: [v["v"] for v in values], a, b)

        assert await graph.resolve(out, "BTCUSDT") == [Decimal("1"), Decimal("2")]

    @pytest.mark.asyncio
    async def test_source_failure_propagates_and_next_call_retries(self, clock) -> None:
        graph = SignalGraph(IntervalCache(time_fn=clock))
        attempts = {"count": 0}

        async def flaky(symbol: str) -> dict:
            attempts["count"] += 1
            if attempts["count"] == 1:
                raise ConnectionError("exchange unavailable")
            return _make_plots(Signal=1)

        source = graph.add_source("entry", "15m", flaky, fields={"s": "Signal"})
        out = graph.add_output("out", lambda values: values[0]["s"], source)

        with pytest.raises(ConnectionError):
            await graph.resolve(out, "BTCUSDT")
        assert await graph.resolve(out, "BTCUSDT") == Decimal("1")

    @pytest.mark.asyncio
    async def test_missing_plot_raises(self, clock) -> None:
        graph = SignalGraph(IntervalCache(time_fn=clock))
        fetch, _ = _make_counting_fetch(_make_plots(Signal=1))
        source = graph.add_source("entry", "15m", fetch, fields={"tp": "TakeProfit"})

        with pytest.raises(MissingPlotError) as exc_info:
            await graph.resolve(source, "BTCUSDT")
        assert exc_info.value.plot_name == "TakeProfit"

    @pytest.mark.asyncio
    async def test_passthrough_source_without_fields(self, clock) -> None:
        graph = SignalGraph(IntervalCache(time_fn=clock))
        raw = object()

        async def fetch(symbol: str) -> object:
            return raw

        source = graph.add_source("forecast", "15m", fetch)

        assert await graph.resolve(source, "BTCUSDT") is raw

    @pytest.mark.asyncio
    async def test_resolve_unknown_node(self, clock) -> None:
        graph = SignalGraph(IntervalCache(time_fn=clock))

        with pytest.raises(GraphDefinitionError):
            await graph.resolve(NodeId(0), "BTCUSDT")
