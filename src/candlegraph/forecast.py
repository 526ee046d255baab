"""Volatility forecast contract and gate.

The statistical model (e.g. GARCH) that predicts a price range over a
horizon is an external black box. Candlegraph only consumes its output:
a predicted move with a reliability flag. An unreliable or too-small
forecast is a gating condition, never an error.
"""

from collections.abc import Sequence
from dataclasses import dataclass
from decimal import Decimal
from typing import Protocol

from candlegraph.models import Candle


@dataclass(frozen=True)
class VolatilityForecast:
    """Predicted price range over a horizon.

    Attributes:
        reliable: False when the model did not converge or lacked data.
        move_percent: Predicted move in percent (1.0 = 1%).
        upper_price: Upper band of the predicted range.
        lower_price: Lower band of the predicted range.
    """

    reliable: bool
    move_percent: Decimal
    upper_price: Decimal
    lower_price: Decimal


class Forecaster(Protocol):
    """Black-box volatility forecaster.

    Implementations raise ForecastError when no forecast can be produced.
    """

    def __call__(
        self,
        candles: Sequence[Candle],
        interval: str,
        horizon_bars: int,
        confidence: Decimal,
    ) -> VolatilityForecast: ...


def passes_volatility_gate(
    forecast: VolatilityForecast | None,
    min_move_percent: Decimal,
    require_reliable: bool = True,
) -> bool:
    """Return True when the forecast predicts enough movement to trade.

    Args:
        forecast: Forecast to check; None never passes.
        min_move_percent: Minimum predicted move (percent) required.
        require_reliable: Reject forecasts flagged unreliable.
    """
    if forecast is None:
        return False
    if require_reliable and not forecast.reliable:
        return False
    return forecast.move_percent >= min_move_percent
