"""Historical signal bar collection from a signal script's plots.

A signal script emits, per bar, a ``Signal`` plot (1 long, -1 short, 0 none)
and a ``d_BarsSince`` plot counting bars since the last signal. A bar is a
fresh signal when bars-since is 0 and the signal is non-zero. Running the
script at several as-of dates yields overlapping windows, so bars are
deduplicated by timestamp across calls.
"""

from dataclasses import dataclass
from decimal import Decimal

from candlegraph.exceptions import MissingPlotError
from candlegraph.indicators.extract import to_decimal
from candlegraph.indicators.models import Plots
from candlegraph.models import Position

BARS_SINCE_PLOT = "d_BarsSince"
SIGNAL_PLOT = "Signal"
CLOSE_PLOT = "Close"
STOP_LOSS_PLOT = "StopLoss"
TAKE_PROFIT_PLOT = "TakeProfit"


@dataclass(frozen=True)
class SignalBar:
    """A bar on which the signal script fired."""

    timestamp_ms: int
    position: Position
    close: Decimal
    stop_loss: Decimal | None
    take_profit: Decimal | None


def collect_signal_bars(plots: Plots, seen: set[int] | None = None) -> list[SignalBar]:
    """Return fresh signal bars from one evaluation, oldest first.

    Args:
        plots: Plots of a signal script run.
        seen: Timestamps already collected; updated in place with new bars.

    Raises:
        MissingPlotError: If any of the required plots is absent.
    """
    if seen is None:
        seen = set()

    required = (BARS_SINCE_PLOT, SIGNAL_PLOT, CLOSE_PLOT, STOP_LOSS_PLOT, TAKE_PROFIT_PLOT)
    for name in required:
        if name not in plots:
            raise MissingPlotError(name, list(plots.keys()))

    bars_since = plots[BARS_SINCE_PLOT].points
    signal = plots[SIGNAL_PLOT].points
    close = plots[CLOSE_PLOT].points
    stop_loss = plots[STOP_LOSS_PLOT].points
    take_profit = plots[TAKE_PROFIT_PLOT].points

    bars: list[SignalBar] = []
    for i, point in enumerate(bars_since):
        ts = point.time_ms
        sig = signal[i].value
        if point.value != 0 or not sig or ts is None or ts in seen:
            continue
        close_value = to_decimal(close[i].value)
        if close_value is None:
            continue
        seen.add(ts)
        bars.append(
            SignalBar(
                timestamp_ms=ts,
                position=Position.LONG if sig > 0 else Position.SHORT,
                close=close_value,
                stop_loss=to_decimal(stop_loss[i].value),
                take_profit=to_decimal(take_profit[i].value),
            )
        )

    bars.sort(key=lambda b: b.timestamp_ms)
    return bars
