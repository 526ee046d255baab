"""Result models for the research runners.

CRITICAL: All prices and returns use Decimal. Never use float for prices.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal

from candlegraph.analytics.ev import CohortComparison, OutcomeStats
from candlegraph.forecast import VolatilityForecast
from candlegraph.indicators.signal_bars import SignalBar
from candlegraph.simulation.models import SimulatedTrade


@dataclass
class DcaAnalysis:
    """Outcome statistics of historical signals simulated with a DCA leg.

    ``stats`` holds one OutcomeStats per cohort: "long", "short" and "all".
    """

    symbol: str
    interval: str
    signals: list[SignalBar]
    trades: list[SimulatedTrade]
    stats: dict[str, OutcomeStats] = field(default_factory=dict)

    def to_dict(self) -> dict:
        return {
            "symbol": self.symbol,
            "interval": self.interval,
            "signal_count": len(self.signals),
            "trade_count": len(self.trades),
            "stats": {name: s.to_dict() for name, s in self.stats.items()},
        }


@dataclass
class GateAnalysis:
    """Effect of the volatility gate on historical signals.

    ``forecasts`` maps a signal timestamp to the forecast made from the
    history ending at that bar. Signals whose forecast failed are counted
    in ``excluded`` and appear in neither cohort.
    """

    symbol: str
    interval: str
    min_move_percent: Decimal
    signals: list[SignalBar]
    forecasts: dict[int, VolatilityForecast]
    gated: list[SimulatedTrade]
    blocked: list[SimulatedTrade]
    excluded: int
    comparison: CohortComparison

    def to_dict(self) -> dict:
        return {
            "symbol": self.symbol,
            "interval": self.interval,
            "min_move_percent": str(self.min_move_percent),
            "signal_count": len(self.signals),
            "gated_count": len(self.gated),
            "blocked_count": len(self.blocked),
            "excluded": self.excluded,
            "all": self.comparison.all.to_dict(),
            "gated": self.comparison.gated.to_dict(),
            "blocked": self.comparison.blocked.to_dict(),
            "ev_gain": (
                str(self.comparison.ev_gain) if self.comparison.ev_gain is not None else None
            ),
        }
