"""Deterministic forward-scan trade outcome simulator.

Given a candle series and an entry bar, walks forward bar by bar up to the
lookahead window and classifies the hypothetical trade:

1. DCA: the first bar whose adverse extreme (low for long, high for short)
   reaches the DCA price marks the averaging leg. The scan continues.
2. Stop-loss is checked before take-profit on every bar, so a bar that
   touches both is scored as a loss.
3. Window (or series) exhausted without SL/TP -> TIMEOUT.
4. Entry timestamp absent from the series -> NOT_FOUND, no scan.

Pure function of its inputs: identical candles and parameters always give
the identical outcome and exit offset.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from decimal import Decimal

from candlegraph.indicators.signal_bars import SignalBar
from candlegraph.logging import get_logger
from candlegraph.models import Candle, Position, SignalDecision
from candlegraph.simulation.models import (
    SimulatedTrade,
    SimulationParams,
    TradeLevels,
    TradeOutcome,
)

logger = get_logger(__name__)


class CandleIndex:
    """Timestamp -> bar index lookup over an ordered candle series.

    Build once and reuse across many simulations on the same series.
    """

    def __init__(self, candles: Sequence[Candle]) -> None:
        self.candles = candles
        self._by_ts = {c.timestamp_ms: i for i, c in enumerate(candles)}

    def __len__(self) -> int:
        return len(self.candles)

    def find(self, timestamp_ms: int) -> int | None:
        return self._by_ts.get(timestamp_ms)


def _adverse_reached(position: Position, candle: Candle, level: Decimal) -> bool:
    if position is Position.LONG:
        return candle.low <= level
    return candle.high >= level


def _favorable_reached(position: Position, candle: Candle, level: Decimal) -> bool:
    if position is Position.LONG:
        return candle.high >= level
    return candle.low <= level


def simulate_trade(
    candles: Sequence[Candle] | CandleIndex,
    entry_timestamp_ms: int,
    position: Position,
    params: SimulationParams,
    entry_price: Decimal | None = None,
    levels: TradeLevels | None = None,
) -> SimulatedTrade:
    """Simulate one trade opened on the bar at ``entry_timestamp_ms``.

    Args:
        candles: Ordered candle series, or a prebuilt CandleIndex.
        entry_timestamp_ms: Timestamp of the entry bar.
        position: Trade direction.
        params: TP/SL/DCA percents and lookahead window.
        entry_price: Entry price; defaults to the entry bar's close.
        levels: Explicit price levels; defaults to percent offsets from
            ``entry_price`` per ``params``.

    Returns:
        The classified SimulatedTrade.
    """
    index = candles if isinstance(candles, CandleIndex) else CandleIndex(candles)
    entry_idx = index.find(entry_timestamp_ms)

    if entry_idx is None:
        if levels is None and entry_price is not None:
            levels = TradeLevels.for_entry(position, entry_price, params)
        return SimulatedTrade(
            entry_timestamp_ms=entry_timestamp_ms,
            position=position,
            entry_price=entry_price,
            take_profit_price=levels.take_profit if levels else None,
            stop_loss_price=levels.stop_loss if levels else None,
            dca_price=levels.dca if levels else None,
            dca_triggered=False,
            dca_bar_offset=None,
            outcome=TradeOutcome.NOT_FOUND,
            exit_bar_offset=None,
        )

    series = index.candles
    if entry_price is None:
        entry_price = series[entry_idx].close
    if levels is None:
        levels = TradeLevels.for_entry(position, entry_price, params)

    dca_triggered = False
    dca_bar_offset: int | None = None
    outcome = TradeOutcome.TIMEOUT
    exit_bar_offset: int | None = None

    last_idx = min(entry_idx + params.window_bars, len(series) - 1)
    for j in range(entry_idx + 1, last_idx + 1):
        candle = series[j]
        offset = j - entry_idx

        if (
            levels.dca is not None
            and not dca_triggered
            and _adverse_reached(position, candle, levels.dca)
        ):
            dca_triggered = True
            dca_bar_offset = offset

        if _adverse_reached(position, candle, levels.stop_loss):
            outcome = TradeOutcome.STOP_LOSS
            exit_bar_offset = offset
            break

        if _favorable_reached(position, candle, levels.take_profit):
            outcome = TradeOutcome.TAKE_PROFIT
            exit_bar_offset = offset
            break

    return SimulatedTrade(
        entry_timestamp_ms=entry_timestamp_ms,
        position=position,
        entry_price=entry_price,
        take_profit_price=levels.take_profit,
        stop_loss_price=levels.stop_loss,
        dca_price=levels.dca,
        dca_triggered=dca_triggered,
        dca_bar_offset=dca_bar_offset,
        outcome=outcome,
        exit_bar_offset=exit_bar_offset,
    )


def simulate_decision(
    candles: Sequence[Candle] | CandleIndex,
    entry_timestamp_ms: int,
    decision: SignalDecision,
    params: SimulationParams,
) -> SimulatedTrade:
    """Simulate a graph decision using its own TP/SL prices.

    The DCA level still comes from ``params`` relative to the entry price
    (the decision's price_open, or the entry bar's close).
    """
    index = candles if isinstance(candles, CandleIndex) else CandleIndex(candles)
    entry_price = decision.price_open
    if entry_price is None:
        entry_idx = index.find(entry_timestamp_ms)
        if entry_idx is not None:
            entry_price = index.candles[entry_idx].close

    dca = None
    if entry_price is not None and params.dca_trigger_pct is not None:
        dca = entry_price * (1 - decision.position.sign * params.dca_trigger_pct)

    levels = TradeLevels(
        take_profit=decision.price_take_profit,
        stop_loss=decision.price_stop_loss,
        dca=dca,
    )
    return simulate_trade(
        index,
        entry_timestamp_ms,
        decision.position,
        params,
        entry_price=entry_price,
        levels=levels,
    )


def simulate_signals(
    candles: Sequence[Candle],
    signal_bars: Iterable[SignalBar],
    params: SimulationParams,
) -> list[SimulatedTrade]:
    """Simulate every signal bar, entering at the bar's close."""
    index = CandleIndex(candles)
    trades = [
        simulate_trade(index, bar.timestamp_ms, bar.position, params, entry_price=bar.close)
        for bar in signal_bars
    ]
    not_found = sum(1 for t in trades if not t.is_found)
    if not_found:
        logger.warning("signal_bars_not_in_series", count=not_found, total=len(trades))
    return trades
