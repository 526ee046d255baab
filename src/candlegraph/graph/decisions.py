"""Standard decision functions for output nodes.

A typical strategy combines a higher-timeframe *direction* source (trend or
allow/deny flags) with a lower-timeframe *entry* source (signal plus entry
close). The entry is vetoed when it is neutral or when it conflicts with the
direction; otherwise a level policy turns it into take-profit and stop-loss
prices.

Level derivation is strategy configuration, not a fixed rule. Three
policies are provided:

- PlotLevelsPolicy: the indicator script already plots TP/SL/ETA.
- FixedPercentPolicy: symmetric percent offsets from the entry close.
- ForecastBandPolicy: TP at the forecast band, stop either at half the TP
  distance or at least a minimum distance from entry.
"""

from collections.abc import Callable
from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from typing import Protocol

from candlegraph.forecast import VolatilityForecast, passes_volatility_gate
from candlegraph.indicators.extract import ExtractedFields
from candlegraph.models import Position, SignalDecision, new_signal_id


def direction_from_signal(value: Decimal | int | None) -> Position | None:
    """Map a Signal plot value to a position: >0 long, <0 short, 0/None neutral."""
    if value is None or value == 0:
        return None
    return Position.LONG if value > 0 else Position.SHORT


def is_directional_conflict(trend: Decimal | int | None, position: Position) -> bool:
    """True when a trend of -1 meets a long entry or +1 meets a short entry."""
    if trend is None or trend == 0:
        return False
    return (trend < 0 and position is Position.LONG) or (
        trend > 0 and position is Position.SHORT
    )


def bias_allows(direction: ExtractedFields, position: Position) -> bool:
    """Check a direction source's fields against a proposed position.

    Recognized fields (all optional): ``trend`` (-1/0/1), ``noTrades``,
    ``allowLong``, ``allowShort``. A truthy ``noTrades`` blocks everything;
    ``allowShort`` blocks longs and ``allowLong`` blocks shorts.
    """
    if direction.get("noTrades"):
        return False
    if is_directional_conflict(direction.get("trend"), position):
        return False
    if position is Position.LONG and direction.get("allowShort"):
        return False
    if position is Position.SHORT and direction.get("allowLong"):
        return False
    return True


@dataclass(frozen=True)
class Levels:
    """Take-profit / stop-loss prices and the expected holding time."""

    take_profit: Decimal
    stop_loss: Decimal
    minutes: int


class LevelPolicy(Protocol):
    def __call__(
        self,
        position: Position,
        entry: ExtractedFields,
        context: tuple,
    ) -> Levels | None: ...


@dataclass(frozen=True)
class PlotLevelsPolicy:
    """Use the TP/SL/ETA the indicator script plotted."""

    take_profit_field: str = "priceTakeProfit"
    stop_loss_field: str = "priceStopLoss"
    minutes_field: str = "minuteEstimatedTime"
    default_minutes: int = 240

    def __call__(
        self, position: Position, entry: ExtractedFields, context: tuple
    ) -> Levels | None:
        tp = entry.get(self.take_profit_field)
        sl = entry.get(self.stop_loss_field)
        if tp is None or sl is None:
            return None
        minutes = entry.get(self.minutes_field)
        return Levels(
            take_profit=tp,
            stop_loss=sl,
            minutes=int(minutes) if minutes is not None else self.default_minutes,
        )


@dataclass(frozen=True)
class FixedPercentPolicy:
    """TP and SL at fixed fractions of the entry close (0.01 = 1%)."""

    take_profit_pct: Decimal = Decimal("0.01")
    stop_loss_pct: Decimal = Decimal("0.01")
    minutes: int = 240
    price_field: str = "priceOpen"

    def __call__(
        self, position: Position, entry: ExtractedFields, context: tuple
    ) -> Levels | None:
        price = entry.get(self.price_field)
        if price is None:
            return None
        sign = position.sign
        return Levels(
            take_profit=price * (1 + sign * self.take_profit_pct),
            stop_loss=price * (1 - sign * self.stop_loss_pct),
            minutes=self.minutes,
        )


class StopMode(str, Enum):
    """How ForecastBandPolicy places the stop relative to the TP distance."""

    HALF_DISTANCE = "half_distance"
    MIN_STOP = "min_stop"


@dataclass(frozen=True)
class ForecastBandPolicy:
    """TP at the forecast band in the trade direction.

    The forecast is taken from the first VolatilityForecast among the output
    node's extra inputs. Missing, unreliable, or too-small forecasts yield
    None.

    Attributes:
        mode: HALF_DISTANCE puts the stop at half the TP distance; MIN_STOP
            does the same but never closer than ``min_stop_pct`` of entry.
        min_stop_pct: Minimum stop distance as a fraction of entry (MIN_STOP).
        min_move_percent: Optional gate on the forecast move (percent).
    """

    mode: StopMode = StopMode.HALF_DISTANCE
    min_stop_pct: Decimal = Decimal("0.005")
    min_move_percent: Decimal | None = None
    minutes: int = 480
    price_field: str = "priceOpen"

    def __call__(
        self, position: Position, entry: ExtractedFields, context: tuple
    ) -> Levels | None:
        price = entry.get(self.price_field)
        forecast = next((c for c in context if isinstance(c, VolatilityForecast)), None)
        if price is None or forecast is None or not forecast.reliable:
            return None
        if self.min_move_percent is not None and not passes_volatility_gate(
            forecast, self.min_move_percent
        ):
            return None

        if position is Position.LONG:
            distance = forecast.upper_price - price
        else:
            distance = price - forecast.lower_price
        if distance <= 0:
            return None

        stop_distance = distance / 2
        if self.mode is StopMode.MIN_STOP:
            stop_distance = max(stop_distance, price * self.min_stop_pct)

        sign = position.sign
        return Levels(
            take_profit=price + sign * distance,
            stop_loss=price - sign * stop_distance,
            minutes=self.minutes,
        )


def trend_entry_decision(
    policy: LevelPolicy,
    id_factory: Callable[[], str] = new_signal_id,
    position_field: str = "position",
    price_field: str = "priceOpen",
) -> Callable[[tuple], SignalDecision | None]:
    """Build a decision function over ``(direction, entry, *context)``.

    Returns None when the entry signal is neutral, when the direction source
    vetoes it, or when the policy cannot derive levels.
    """

    def decide(values: tuple) -> SignalDecision | None:
        direction, entry, *context = values
        position = direction_from_signal(entry.get(position_field))
        if position is None:
            return None
        if not bias_allows(direction, position):
            return None

        levels = policy(position, entry, tuple(context))
        if levels is None:
            return None

        return SignalDecision(
            id=id_factory(),
            position=position,
            price_take_profit=levels.take_profit,
            price_stop_loss=levels.stop_loss,
            minute_estimated_time=levels.minutes,
            price_open=entry.get(price_field),
        )

    return decide
