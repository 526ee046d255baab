"""Data models for the trade outcome simulator.

CRITICAL: All prices and thresholds use Decimal. Never use float for prices.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from enum import Enum

from candlegraph.config import SimulationSettings
from candlegraph.models import Position


class TradeOutcome(str, Enum):
    """Terminal classification of a simulated trade."""

    TAKE_PROFIT = "tp"
    STOP_LOSS = "sl"
    TIMEOUT = "timeout"
    NOT_FOUND = "not_found"


@dataclass(frozen=True)
class SimulationParams:
    """Threshold parameters for one simulation.

    Percent values are fractions of the entry price (0.02 = 2%).
    ``dca_trigger_pct`` None disables the averaging leg.
    """

    take_profit_pct: Decimal = Decimal("0.02")
    stop_loss_pct: Decimal = Decimal("0.02")
    dca_trigger_pct: Decimal | None = Decimal("0.01")
    window_bars: int = 32

    def __post_init__(self) -> None:
        if self.window_bars <= 0:
            raise ValueError(f"window_bars must be positive, got {self.window_bars}")

    @staticmethod
    def from_settings(settings: SimulationSettings) -> SimulationParams:
        return SimulationParams(
            take_profit_pct=settings.take_profit_pct,
            stop_loss_pct=settings.stop_loss_pct,
            dca_trigger_pct=settings.dca_trigger_pct,
            window_bars=settings.window_bars,
        )


@dataclass(frozen=True)
class TradeLevels:
    """Absolute price levels for one simulated trade."""

    take_profit: Decimal
    stop_loss: Decimal
    dca: Decimal | None = None

    @staticmethod
    def for_entry(
        position: Position, entry_price: Decimal, params: SimulationParams
    ) -> TradeLevels:
        """Derive levels as percent offsets from the entry price.

        Long: TP above, DCA and SL below. Short: mirrored.
        """
        sign = position.sign
        dca = None
        if params.dca_trigger_pct is not None:
            dca = entry_price * (1 - sign * params.dca_trigger_pct)
        return TradeLevels(
            take_profit=entry_price * (1 + sign * params.take_profit_pct),
            stop_loss=entry_price * (1 - sign * params.stop_loss_pct),
            dca=dca,
        )


@dataclass(frozen=True)
class SimulatedTrade:
    """Outcome of one forward scan. Never mutated after the scan completes.

    Bar offsets count from the entry bar (offset 1 = the bar after entry).
    Price fields are None only for NOT_FOUND trades without a known entry.
    """

    entry_timestamp_ms: int
    position: Position
    entry_price: Decimal | None
    take_profit_price: Decimal | None
    stop_loss_price: Decimal | None
    dca_price: Decimal | None
    dca_triggered: bool
    dca_bar_offset: int | None
    outcome: TradeOutcome
    exit_bar_offset: int | None

    @property
    def is_found(self) -> bool:
        return self.outcome is not TradeOutcome.NOT_FOUND

    def to_dict(self) -> dict:
        """Serialize to dict for JSON output (Decimals as strings)."""

        def _s(value: Decimal | None) -> str | None:
            return str(value) if value is not None else None

        return {
            "entry_timestamp_ms": self.entry_timestamp_ms,
            "position": self.position.value,
            "entry_price": _s(self.entry_price),
            "take_profit_price": _s(self.take_profit_price),
            "stop_loss_price": _s(self.stop_loss_price),
            "dca_price": _s(self.dca_price),
            "dca_triggered": self.dca_triggered,
            "dca_bar_offset": self.dca_bar_offset,
            "outcome": self.outcome.value,
            "exit_bar_offset": self.exit_bar_offset,
        }
