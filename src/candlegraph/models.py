"""Shared data models for candlegraph.

CRITICAL: All prices use Decimal. Never use float for prices, thresholds, or fees.
"""

import secrets
from dataclasses import dataclass
from decimal import Decimal
from enum import Enum


class Position(str, Enum):
    """Trade direction."""

    LONG = "long"
    SHORT = "short"

    @property
    def sign(self) -> int:
        """+1 for long, -1 for short (matches the indicator Signal plot)."""
        return 1 if self is Position.LONG else -1


@dataclass(frozen=True)
class Candle:
    """A single OHLCV bar.

    Series of candles are ordered strictly by timestamp_ms with no duplicates.
    """

    timestamp_ms: int
    open: Decimal
    high: Decimal
    low: Decimal
    close: Decimal
    volume: Decimal

    @staticmethod
    def from_ohlcv(row: list) -> "Candle":
        """Build a Candle from a ccxt OHLCV row [ts, open, high, low, close, volume]."""
        timestamp, open_, high, low, close, volume = row[:6]
        return Candle(
            timestamp_ms=int(timestamp),
            open=Decimal(str(open_)),
            high=Decimal(str(high)),
            low=Decimal(str(low)),
            close=Decimal(str(close)),
            volume=Decimal(str(volume or 0)),
        )


@dataclass(frozen=True)
class SignalDecision:
    """A trading decision produced by a signal graph output node.

    Immutable once produced; consumed by risk validators and, downstream,
    by execution or the outcome simulator.
    """

    id: str
    position: Position
    price_take_profit: Decimal
    price_stop_loss: Decimal
    minute_estimated_time: int
    price_open: Decimal | None = None  # entry close when known

    def to_dict(self) -> dict:
        """Serialize to dict for JSON output (Decimals as strings)."""
        return {
            "id": self.id,
            "position": self.position.value,
            "price_take_profit": str(self.price_take_profit),
            "price_stop_loss": str(self.price_stop_loss),
            "minute_estimated_time": self.minute_estimated_time,
            "price_open": str(self.price_open) if self.price_open is not None else None,
        }


def new_signal_id() -> str:
    """Return a fresh random signal identifier."""
    return secrets.token_hex(8)
