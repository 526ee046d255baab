"""Tests for historical signal bar collection."""

from decimal import Decimal

import pytest

from candlegraph.exceptions import MissingPlotError
from candlegraph.indicators.models import PlotPoint, PlotSeries
from candlegraph.indicators.signal_bars import collect_signal_bars
from candlegraph.models import Position

BAR_MS = 900_000


def _make_plots(start_bar: int, bars: list[tuple]) -> dict[str, PlotSeries]:
    """Build signal script plots from (bars_since, signal, close, sl, tp) rows."""
    names = ("d_BarsSince", "Signal", "Close", "StopLoss", "TakeProfit")
    columns: dict[str, list[PlotPoint]] = {n: [] for n in names}
    for i, row in enumerate(bars):
        ts = (start_bar + i) * BAR_MS
        for name, value in zip(names, row):
            columns[name].append(PlotPoint(ts, value))
    return {n: PlotSeries(name=n, points=tuple(pts)) for n, pts in columns.items()}


class TestCollectSignalBars:
    def test_picks_fresh_nonzero_signals(self) -> None:
        plots = _make_plots(
            0,
            [
                (0, 0, 100.0, None, None),  # bars-since 0 but no signal
                (0, 1, 101.0, 99.0, 103.0),  # fresh long
                (1, 1, 102.0, 99.0, 103.0),  # stale
                (0, -1, 104.0, 106.0, 100.0),  # fresh short
            ],
        )

        bars = collect_signal_bars(plots)

        assert [b.timestamp_ms for b in bars] == [BAR_MS, 3 * BAR_MS]
        assert bars[0].position is Position.LONG
        assert bars[0].close == Decimal("101.0")
        assert bars[0].stop_loss == Decimal("99.0")
        assert bars[0].take_profit == Decimal("103.0")
        assert bars[1].position is Position.SHORT

    def test_deduplicates_across_overlapping_runs(self) -> None:
        seen: set[int] = set()
        first = _make_plots(0, [(0, 1, 100.0, 98.0, 102.0), (1, 1, 100.5, 98.0, 102.0)])
        overlapping = _make_plots(0, [(0, 1, 100.0, 98.0, 102.0), (0, -1, 99.0, 101.0, 97.0)])

        assert len(collect_signal_bars(first, seen)) == 1
        second = collect_signal_bars(overlapping, seen)

        assert [b.timestamp_ms for b in second] == [BAR_MS]
        assert seen == {0, BAR_MS}

    def test_bar_without_close_is_skipped(self) -> None:
        plots = _make_plots(0, [(0, 1, None, None, None)])

        assert collect_signal_bars(plots) == []

    def test_missing_required_plot(self) -> None:
        plots = _make_plots(0, [(0, 1, 100.0, 98.0, 102.0)])
        del plots["d_BarsSince"]

        with pytest.raises(MissingPlotError):
            collect_signal_bars(plots)
