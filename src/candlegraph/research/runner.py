"""High-level entry points for historical signal research.

Provides collect_signals() to gather fresh signal bars from a signal script
run at several as-of dates, run_dca_analysis() to score those signals with
a DCA leg per direction, and run_volatility_gate_analysis() to measure how a
volatility forecast gate changes expected value.

All functions handle an empty signal set gracefully by returning results
with empty cohorts and a warning log message.
"""

import time
from collections.abc import Sequence
from datetime import datetime, timezone

from candlegraph.analytics.ev import (
    FeeModel,
    compare_cohorts,
    compute_outcome_stats,
    split_by_direction,
)
from candlegraph.cache.interval_cache import parse_interval
from candlegraph.config import (
    AppSettings,
    FeeSettings,
    ForecastSettings,
    SimulationSettings,
)
from candlegraph.exchange.client import CandleSource
from candlegraph.exchange.history import fetch_candle_range
from candlegraph.forecast import Forecaster, VolatilityForecast, passes_volatility_gate
from candlegraph.indicators.evaluator import IndicatorEvaluator
from candlegraph.indicators.models import IndicatorRequest
from candlegraph.indicators.signal_bars import SignalBar, collect_signal_bars
from candlegraph.logging import get_logger, setup_logging
from candlegraph.models import Position
from candlegraph.research.models import DcaAnalysis, GateAnalysis
from candlegraph.simulation.models import SimulatedTrade, SimulationParams
from candlegraph.simulation.simulator import CandleIndex, simulate_trade

logger = get_logger(__name__)

_DAY_MS = 86_400_000


def dates_to_ms(dates: Sequence[str]) -> list[int]:
    """Convert "YYYY-MM-DD" strings (UTC midnight) to epoch milliseconds.

    Raises:
        ValueError: If a date string is invalid.
    """
    result = []
    for date in dates:
        try:
            dt = datetime.strptime(date, "%Y-%m-%d").replace(tzinfo=timezone.utc)
        except ValueError as e:
            raise ValueError(
                f"Invalid date format. Expected YYYY-MM-DD. Error: {e}"
            ) from e
        result.append(int(dt.timestamp() * 1000))
    return result


async def collect_signals(
    evaluator: IndicatorEvaluator,
    script_id: str,
    symbol: str,
    interval: str,
    limit: int,
    as_of_ms: Sequence[int],
) -> list[SignalBar]:
    """Run the signal script at each as-of time and merge its fresh signal bars.

    Overlapping evaluation windows are deduplicated by bar timestamp.

    Returns:
        Signal bars ordered by timestamp.
    """
    seen: set[int] = set()
    bars: list[SignalBar] = []
    for as_of in as_of_ms:
        plots = await evaluator.evaluate(
            script_id,
            IndicatorRequest(symbol=symbol, interval=interval, limit=limit, as_of_ms=as_of),
        )
        found = collect_signal_bars(plots, seen)
        logger.debug("signals_collected", as_of_ms=as_of, new_signals=len(found))
        bars.extend(found)

    bars.sort(key=lambda b: b.timestamp_ms)
    logger.info(
        "collect_signals_complete",
        symbol=symbol,
        interval=interval,
        evaluations=len(as_of_ms),
        signals=len(bars),
    )
    return bars


def _direction_stats(trades: list[SimulatedTrade], fee_model: FeeModel) -> dict:
    by_direction = split_by_direction(trades)
    return {
        "long": compute_outcome_stats(by_direction[Position.LONG], fee_model),
        "short": compute_outcome_stats(by_direction[Position.SHORT], fee_model),
        "all": compute_outcome_stats(trades, fee_model),
    }


async def run_dca_analysis(
    source: CandleSource,
    signals: Sequence[SignalBar],
    symbol: str,
    interval: str,
    simulation_settings: SimulationSettings | None = None,
    fee_settings: FeeSettings | None = None,
    batch_limit: int = 500,
) -> DcaAnalysis:
    """Simulate every signal with a DCA leg and score long, short and all trades.

    Candles are fetched once for the span from the first signal to the last
    signal plus the lookahead window.

    Args:
        source: Candle source for the simulation series.
        signals: Signal bars to simulate (see collect_signals).
        symbol: Trading pair symbol.
        interval: Candle interval of the signals.
        simulation_settings: TP/SL/DCA thresholds. Defaults to standard values.
        fee_settings: Return and fee schedule. Defaults to standard values.
        batch_limit: Bars per candle fetch.

    Returns:
        DcaAnalysis with per-direction OutcomeStats.
    """
    if simulation_settings is None:
        simulation_settings = SimulationSettings()
    if fee_settings is None:
        fee_settings = FeeSettings()

    params = SimulationParams.from_settings(simulation_settings)
    fee_model = FeeModel.from_settings(fee_settings)
    signals = sorted(signals, key=lambda b: b.timestamp_ms)
    start_time = time.monotonic()

    if not signals:
        logger.warning("dca_analysis_no_signals", symbol=symbol, interval=interval)
        return DcaAnalysis(
            symbol=symbol,
            interval=interval,
            signals=[],
            trades=[],
            stats=_direction_stats([], fee_model),
        )

    step_ms = parse_interval(interval)
    candles = await fetch_candle_range(
        source,
        symbol,
        interval,
        signals[0].timestamp_ms,
        signals[-1].timestamp_ms + params.window_bars * step_ms,
        batch_limit=batch_limit,
    )

    index = CandleIndex(candles)
    trades = [
        simulate_trade(index, bar.timestamp_ms, bar.position, params, entry_price=bar.close)
        for bar in signals
    ]
    stats = _direction_stats(trades, fee_model)

    elapsed = time.monotonic() - start_time
    all_stats = stats["all"]
    logger.info(
        "dca_analysis_complete",
        symbol=symbol,
        interval=interval,
        signals=len(signals),
        trades=all_stats.total,
        dca_percentage=str(all_stats.dca_percentage) if all_stats.dca_percentage is not None else "N/A",
        ev_simple=str(all_stats.ev_simple) if all_stats.ev_simple is not None else "N/A",
        ev_dca=str(all_stats.ev_dca) if all_stats.ev_dca is not None else "N/A",
        elapsed_seconds=round(elapsed, 2),
    )

    return DcaAnalysis(
        symbol=symbol,
        interval=interval,
        signals=list(signals),
        trades=trades,
        stats=stats,
    )


async def run_volatility_gate_analysis(
    source: CandleSource,
    forecaster: Forecaster,
    signals: Sequence[SignalBar],
    symbol: str,
    interval: str,
    warmup_days: int = 31,
    simulation_settings: SimulationSettings | None = None,
    fee_settings: FeeSettings | None = None,
    forecast_settings: ForecastSettings | None = None,
    batch_limit: int = 500,
) -> GateAnalysis:
    """Split signals by a volatility forecast gate and compare cohort EV.

    For each signal the forecaster sees the ``history_bars`` candles before
    the signal bar, never the signal bar itself. A signal with no prior
    candles, or whose forecaster raises, is excluded from both
    cohorts; an unreliable or too-small forecast puts it in the blocked
    cohort.

    Args:
        source: Candle source for history and the simulation series.
        forecaster: Black-box volatility forecaster.
        signals: Signal bars to evaluate.
        symbol: Trading pair symbol.
        interval: Candle interval of the signals.
        warmup_days: History fetched before the first signal.
        simulation_settings: TP/SL/DCA thresholds. Defaults to standard values.
        fee_settings: Return and fee schedule. Defaults to standard values.
        forecast_settings: Gate threshold and forecaster inputs.
        batch_limit: Bars per candle fetch.

    Returns:
        GateAnalysis with the cohort comparison.
    """
    if simulation_settings is None:
        simulation_settings = SimulationSettings()
    if fee_settings is None:
        fee_settings = FeeSettings()
    if forecast_settings is None:
        forecast_settings = ForecastSettings()

    params = SimulationParams.from_settings(simulation_settings)
    fee_model = FeeModel.from_settings(fee_settings)
    signals = sorted(signals, key=lambda b: b.timestamp_ms)
    min_move = forecast_settings.min_move_percent
    start_time = time.monotonic()

    if not signals:
        logger.warning("gate_analysis_no_signals", symbol=symbol, interval=interval)
        return GateAnalysis(
            symbol=symbol,
            interval=interval,
            min_move_percent=min_move,
            signals=[],
            forecasts={},
            gated=[],
            blocked=[],
            excluded=0,
            comparison=compare_cohorts([], [], fee_model),
        )

    step_ms = parse_interval(interval)
    candles = await fetch_candle_range(
        source,
        symbol,
        interval,
        signals[0].timestamp_ms - warmup_days * _DAY_MS,
        signals[-1].timestamp_ms + params.window_bars * step_ms,
        batch_limit=batch_limit,
    )
    index = CandleIndex(candles)

    forecasts: dict[int, VolatilityForecast] = {}
    gated: list[SimulatedTrade] = []
    blocked: list[SimulatedTrade] = []
    excluded = 0

    for bar in signals:
        entry_idx = index.find(bar.timestamp_ms)
        if entry_idx is None:
            logger.warning("gate_signal_not_in_series", timestamp_ms=bar.timestamp_ms)
            excluded += 1
            continue

        history = candles[max(0, entry_idx - forecast_settings.history_bars) : entry_idx]
        if not history:
            logger.warning("gate_signal_without_history", timestamp_ms=bar.timestamp_ms)
            excluded += 1
            continue

        try:
            forecast = forecaster(
                history,
                interval,
                forecast_settings.horizon_bars,
                forecast_settings.confidence,
            )
        except Exception as e:
            logger.warning(
                "forecast_failed",
                timestamp_ms=bar.timestamp_ms,
                history_bars=len(history),
                error=str(e),
            )
            excluded += 1
            continue

        forecasts[bar.timestamp_ms] = forecast
        trade = simulate_trade(index, bar.timestamp_ms, bar.position, params, entry_price=bar.close)
        if passes_volatility_gate(forecast, min_move, forecast_settings.require_reliable):
            gated.append(trade)
        else:
            blocked.append(trade)

    comparison = compare_cohorts(gated, blocked, fee_model)

    elapsed = time.monotonic() - start_time
    logger.info(
        "gate_analysis_complete",
        symbol=symbol,
        interval=interval,
        min_move_percent=str(min_move),
        signals=len(signals),
        gated=len(gated),
        blocked=len(blocked),
        excluded=excluded,
        ev_all=str(comparison.all.ev_simple) if comparison.all.ev_simple is not None else "N/A",
        ev_gated=(
            str(comparison.gated.ev_simple) if comparison.gated.ev_simple is not None else "N/A"
        ),
        ev_gain=str(comparison.ev_gain) if comparison.ev_gain is not None else "N/A",
        elapsed_seconds=round(elapsed, 2),
    )

    return GateAnalysis(
        symbol=symbol,
        interval=interval,
        min_move_percent=min_move,
        signals=list(signals),
        forecasts=forecasts,
        gated=gated,
        blocked=blocked,
        excluded=excluded,
        comparison=comparison,
    )


async def _collect_for_dates(
    evaluator: IndicatorEvaluator,
    settings: AppSettings,
    dates: Sequence[str] | None,
    symbol: str,
    script_id: str | None,
) -> list[SignalBar]:
    research = settings.research
    if dates is None:
        dates = research.as_of_dates
    return await collect_signals(
        evaluator,
        script_id or research.signal_script,
        symbol,
        research.interval,
        research.indicator_limit,
        dates_to_ms(dates),
    )


async def run_dca_analysis_cli(
    source: CandleSource,
    evaluator: IndicatorEvaluator,
    dates: Sequence[str] | None = None,
    symbol: str | None = None,
    script_id: str | None = None,
    settings: AppSettings | None = None,
) -> DcaAnalysis:
    """Convenience entry point for CLI usage with date strings.

    Configures logging, collects signals at each as-of date and runs the
    DCA analysis with settings loaded from the environment.

    Args:
        source: Candle source.
        evaluator: Indicator evaluator running the signal script.
        dates: As-of dates as "YYYY-MM-DD" strings. Defaults to RESEARCH_AS_OF_DATES.
        symbol: Overrides RESEARCH_SYMBOL.
        script_id: Overrides RESEARCH_SIGNAL_SCRIPT.
        settings: Application settings. Defaults to loading from the environment.

    Raises:
        ValueError: If a date string is invalid.
    """
    if settings is None:
        settings = AppSettings()
    setup_logging(settings.log_level)

    symbol = symbol or settings.research.symbol
    signals = await _collect_for_dates(evaluator, settings, dates, symbol, script_id)
    return await run_dca_analysis(
        source,
        signals,
        symbol,
        settings.research.interval,
        simulation_settings=settings.simulation,
        fee_settings=settings.fees,
        batch_limit=settings.exchange.batch_limit,
    )


async def run_volatility_gate_analysis_cli(
    source: CandleSource,
    evaluator: IndicatorEvaluator,
    forecaster: Forecaster,
    dates: Sequence[str] | None = None,
    symbol: str | None = None,
    script_id: str | None = None,
    settings: AppSettings | None = None,
) -> GateAnalysis:
    """Convenience entry point for the volatility gate analysis with date strings.

    Raises:
        ValueError: If a date string is invalid.
    """
    if settings is None:
        settings = AppSettings()
    setup_logging(settings.log_level)

    symbol = symbol or settings.research.symbol
    signals = await _collect_for_dates(evaluator, settings, dates, symbol, script_id)
    return await run_volatility_gate_analysis(
        source,
        forecaster,
        signals,
        symbol,
        settings.research.interval,
        warmup_days=settings.research.warmup_days,
        simulation_settings=settings.simulation,
        fee_settings=settings.fees,
        forecast_settings=settings.forecast,
        batch_limit=settings.exchange.batch_limit,
    )
