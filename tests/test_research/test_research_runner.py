"""Tests for the research runners (signal collection, DCA and gate analyses)."""

from decimal import Decimal
from unittest.mock import AsyncMock, MagicMock

import pytest

from candlegraph.config import ForecastSettings
from candlegraph.exchange.client import CandleSource
from candlegraph.forecast import VolatilityForecast
from candlegraph.indicators.models import PlotPoint, PlotSeries
from candlegraph.indicators.signal_bars import SignalBar
from candlegraph.models import Candle, Position
from candlegraph.research.runner import (
    collect_signals,
    dates_to_ms,
    run_dca_analysis,
    run_dca_analysis_cli,
    run_volatility_gate_analysis,
)
from candlegraph.simulation.models import TradeOutcome

BAR_MS = 900_000


class _ListSource(CandleSource):
    def __init__(self, candles: list[Candle]) -> None:
        self.candles = candles

    async def fetch_candles(self, symbol, interval, since_ms, limit):
        return [c for c in self.candles if c.timestamp_ms >= since_ms][:limit]


def _make_candle(i: int, high: str = "100.5", low: str = "99.5") -> Candle:
    return Candle(
        timestamp_ms=i * BAR_MS,
        open=Decimal("100"),
        high=Decimal(high),
        low=Decimal(low),
        close=Decimal("100"),
        volume=Decimal("1"),
    )


def _make_series() -> list[Candle]:
    """Flat series with a long TP spike on bar 5 and a short DCA-then-TP on bars 12/14."""
    candles = [_make_candle(i) for i in range(60)]
    candles[5] = _make_candle(5, high="102.5")
    candles[12] = _make_candle(12, high="101.5")
    candles[14] = _make_candle(14, low="97.9")
    return candles


def _make_signal(bar: int, position: Position) -> SignalBar:
    return SignalBar(
        timestamp_ms=bar * BAR_MS,
        position=position,
        close=Decimal("100"),
        stop_loss=None,
        take_profit=None,
    )


def _make_signal_plots(rows: list[tuple[int, int, int]]) -> dict[str, PlotSeries]:
    """Plots from (bar, bars_since, signal) rows."""
    columns = {n: [] for n in ("d_BarsSince", "Signal", "Close", "StopLoss", "TakeProfit")}
    for bar, bars_since, signal in rows:
        ts = bar * BAR_MS
        columns["d_BarsSince"].append(PlotPoint(ts, bars_since))
        columns["Signal"].append(PlotPoint(ts, signal))
        columns["Close"].append(PlotPoint(ts, 100.0))
        columns["StopLoss"].append(PlotPoint(ts, None))
        columns["TakeProfit"].append(PlotPoint(ts, None))
    return {n: PlotSeries(n, tuple(pts)) for n, pts in columns.items()}


class TestDatesToMs:
    def test_parses_utc_midnight(self) -> None:
        assert dates_to_ms(["2024-02-08"]) == [1_707_350_400_000]

    def test_invalid_date(self) -> None:
        with pytest.raises(ValueError, match="YYYY-MM-DD"):
            dates_to_ms(["08/02/2024"])


class TestCollectSignals:
    @pytest.mark.asyncio
    async def test_merges_and_deduplicates_runs(self) -> None:
        evaluator = MagicMock()
        evaluator.evaluate = AsyncMock(
            side_effect=[
                _make_signal_plots([(1, 0, 1), (2, 1, 1), (3, 0, -1)]),
                _make_signal_plots([(3, 0, -1), (4, 1, -1), (5, 0, 1)]),
            ]
        )

        bars = await collect_signals(
            evaluator, "signal.pine", "BTCUSDT", "15m", 100, [10 * BAR_MS, 20 * BAR_MS]
        )

        assert [b.timestamp_ms // BAR_MS for b in bars] == [1, 3, 5]
        assert [b.position for b in bars] == [Position.LONG, Position.SHORT, Position.LONG]
        request = evaluator.evaluate.await_args_list[1].args[1]
        assert request.as_of_ms == 20 * BAR_MS
        assert request.limit == 100


class TestRunDcaAnalysis:
    @pytest.mark.asyncio
    async def test_stats_per_direction(self) -> None:
        signals = [_make_signal(10, Position.SHORT), _make_signal(2, Position.LONG)]

        analysis = await run_dca_analysis(_ListSource(_make_series()), signals, "BTCUSDT", "15m")

        assert [t.entry_timestamp_ms // BAR_MS for t in analysis.trades] == [2, 10]
        long_trade, short_trade = analysis.trades
        assert long_trade.outcome is TradeOutcome.TAKE_PROFIT
        assert long_trade.exit_bar_offset == 3
        assert short_trade.outcome is TradeOutcome.TAKE_PROFIT
        assert short_trade.dca_triggered is True
        assert short_trade.dca_bar_offset == 2

        assert analysis.stats["long"].total == 1
        assert analysis.stats["short"].dca_total == 1
        assert analysis.stats["all"].total == 2
        assert analysis.stats["all"].avg_capital == Decimal("1.50")
        assert analysis.to_dict()["stats"]["all"]["counts"]["tp"] == 2

    @pytest.mark.asyncio
    async def test_no_signals(self) -> None:
        source = MagicMock(spec=CandleSource)

        analysis = await run_dca_analysis(source, [], "BTCUSDT", "15m")

        assert analysis.trades == []
        assert analysis.stats["all"].total == 0
        source.fetch_candles.assert_not_called()


class TestRunVolatilityGateAnalysis:
    @pytest.mark.asyncio
    async def test_gate_split_and_forecast_failures(self) -> None:
        def forecaster(history, interval, horizon_bars, confidence) -> VolatilityForecast:
            signal_bar = history[-1].timestamp_ms // BAR_MS + 1
            if signal_bar == 20:
                raise RuntimeError("model did not converge")
            move = Decimal("2.0") if signal_bar == 2 else Decimal("0.5")
            return VolatilityForecast(
                reliable=True,
                move_percent=move,
                upper_price=Decimal("102"),
                lower_price=Decimal("98"),
            )

        spy = MagicMock(side_effect=forecaster)
        signals = [
            _make_signal(2, Position.LONG),
            _make_signal(10, Position.SHORT),
            _make_signal(20, Position.LONG),
        ]

        analysis = await run_volatility_gate_analysis(
            _ListSource(_make_series()),
            spy,
            signals,
            "BTCUSDT",
            "15m",
            forecast_settings=ForecastSettings(history_bars=5),
        )

        assert [t.entry_timestamp_ms // BAR_MS for t in analysis.gated] == [2]
        assert [t.entry_timestamp_ms // BAR_MS for t in analysis.blocked] == [10]
        assert analysis.excluded == 1
        assert set(analysis.forecasts) == {2 * BAR_MS, 10 * BAR_MS}

        history = spy.call_args_list[1].args[0]
        assert [c.timestamp_ms // BAR_MS for c in history] == [5, 6, 7, 8, 9]

        assert analysis.comparison.all.total == 2
        assert analysis.comparison.gated.ev_simple == Decimal("0.016000")
        assert analysis.to_dict()["excluded"] == 1

    @pytest.mark.asyncio
    async def test_unreliable_forecast_is_blocked(self) -> None:
        forecaster = MagicMock(
            return_value=VolatilityForecast(
                reliable=False,
                move_percent=Decimal("3"),
                upper_price=Decimal("103"),
                lower_price=Decimal("97"),
            )
        )

        analysis = await run_volatility_gate_analysis(
            _ListSource(_make_series()),
            forecaster,
            [_make_signal(2, Position.LONG)],
            "BTCUSDT",
            "15m",
        )

        assert analysis.gated == []
        assert len(analysis.blocked) == 1
        assert analysis.comparison.ev_gain is None

    @pytest.mark.asyncio
    async def test_signal_on_first_bar_has_no_history(self) -> None:
        forecaster = MagicMock()

        analysis = await run_volatility_gate_analysis(
            _ListSource(_make_series()),
            forecaster,
            [_make_signal(0, Position.LONG)],
            "BTCUSDT",
            "15m",
        )

        forecaster.assert_not_called()
        assert analysis.excluded == 1
        assert analysis.gated == analysis.blocked == []


class TestRunDcaAnalysisCli:
    @pytest.mark.asyncio
    async def test_collects_signals_for_dates(self, mock_settings) -> None:
        evaluator = MagicMock()
        evaluator.evaluate = AsyncMock(return_value=_make_signal_plots([(2, 0, 1)]))

        analysis = await run_dca_analysis_cli(
            _ListSource(_make_series()),
            evaluator,
            ["2024-02-08", "2024-02-15"],
            settings=mock_settings,
        )

        assert analysis.symbol == "BTCUSDT"
        assert [t.outcome for t in analysis.trades] == [TradeOutcome.TAKE_PROFIT]
        assert evaluator.evaluate.await_count == 2
        assert evaluator.evaluate.await_args.args[0] == "signal_strategy_15m.pine"
