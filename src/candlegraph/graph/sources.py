"""Helpers binding external collaborators to graph source nodes."""

import time
from collections.abc import Callable, Hashable
from decimal import Decimal

from candlegraph.cache.interval_cache import parse_interval
from candlegraph.exceptions import CandlegraphError, ForecastError, IndicatorEvaluationError
from candlegraph.exchange.client import CandleSource
from candlegraph.forecast import Forecaster, VolatilityForecast
from candlegraph.graph.graph import SignalGraph
from candlegraph.graph.nodes import NodeId
from candlegraph.indicators.evaluator import IndicatorEvaluator
from candlegraph.indicators.models import IndicatorRequest, Plots
from candlegraph.logging import get_logger

logger = get_logger(__name__)


def indicator_source(
    graph: SignalGraph,
    name: str,
    evaluator: IndicatorEvaluator,
    script_id: str,
    interval: str,
    fields: dict[str, str],
    limit: int = 100,
    clock: Callable[[], int] | None = None,
    key: Callable[[tuple], Hashable] | None = None,
) -> NodeId:
    """Add a source node that evaluates ``script_id`` for the resolved symbol.

    Args:
        graph: Graph to register the node in.
        name: Node name (also the cache identity).
        evaluator: Indicator script engine.
        script_id: Script to run (e.g., "timeframe_15m.pine").
        interval: Timeframe the script runs on and the cache bucket size.
        fields: Output field -> plot name mapping.
        limit: Lookback in bars.
        clock: Simulated clock (epoch ms) pinning evaluations during backtests.
        key: Cache key derivation; defaults to the symbol.

    Raises:
        IndicatorEvaluationError: When the evaluator fails with a non-candlegraph
            error (candlegraph errors such as CandleFetchError pass through).
    """

    async def fetch(symbol: str) -> Plots:
        request = IndicatorRequest(
            symbol=symbol,
            interval=interval,
            limit=limit,
            as_of_ms=clock() if clock is not None else None,
        )
        logger.debug("evaluating_indicator", script=script_id, symbol=symbol, interval=interval)
        try:
            return await evaluator.evaluate(script_id, request)
        except CandlegraphError:
            raise
        except Exception as e:
            raise IndicatorEvaluationError(
                f"Indicator {script_id!r} failed for {symbol} {interval}: {e}"
            ) from e

    return graph.add_source(name, interval, fetch, fields=fields, key=key)


def forecast_source(
    graph: SignalGraph,
    name: str,
    candles: CandleSource,
    forecaster: Forecaster,
    interval: str,
    history_bars: int = 1000,
    horizon_bars: int = 32,
    confidence: Decimal = Decimal("0.95"),
    clock: Callable[[], int] | None = None,
) -> NodeId:
    """Add a source node producing a VolatilityForecast for the resolved symbol.

    The forecaster sees the ``history_bars`` candles preceding the current
    (or simulated) time. Its value is passed through without field extraction.
    Forecaster failures surface as ForecastError.
    """
    interval_ms = parse_interval(interval)

    async def fetch(symbol: str) -> VolatilityForecast:
        now_ms = clock() if clock is not None else int(time.time() * 1000)
        since_ms = now_ms - history_bars * interval_ms
        history = await candles.fetch_candles(symbol, interval, since_ms, history_bars)
        history = [c for c in history if c.timestamp_ms < now_ms]
        try:
            forecast = forecaster(history, interval, horizon_bars, confidence)
        except CandlegraphError:
            raise
        except Exception as e:
            raise ForecastError(f"Forecast failed for {symbol} {interval}: {e}") from e
        logger.debug(
            "volatility_forecast",
            symbol=symbol,
            reliable=forecast.reliable,
            move_percent=str(forecast.move_percent),
            bars=len(history),
        )
        return forecast

    return graph.add_source(name, interval, fetch, fields=None)
