"""Trade outcome simulator -- forward scan classifying TP/SL/DCA/timeout."""

from candlegraph.simulation.models import (
    SimulatedTrade,
    SimulationParams,
    TradeLevels,
    TradeOutcome,
)
from candlegraph.simulation.simulator import (
    CandleIndex,
    simulate_decision,
    simulate_signals,
    simulate_trade,
)

__all__ = [
    "CandleIndex",
    "SimulatedTrade",
    "SimulationParams",
    "TradeLevels",
    "TradeOutcome",
    "simulate_decision",
    "simulate_signals",
    "simulate_trade",
]
