"""Signal graph -- interval-cached sources fanned into a decision node.

Provides the node arena and memoized resolver, helpers binding indicator
scripts and volatility forecasts to source nodes, and the standard
direction/entry decision functions with their TP/SL level policies.
"""

from candlegraph.graph.decisions import (
    FixedPercentPolicy,
    ForecastBandPolicy,
    Levels,
    PlotLevelsPolicy,
    StopMode,
    bias_allows,
    direction_from_signal,
    is_directional_conflict,
    trend_entry_decision,
)
from candlegraph.graph.graph import ResolutionPass, SignalGraph
from candlegraph.graph.nodes import NodeId, OutputNode, SourceNode
from candlegraph.graph.sources import forecast_source, indicator_source

__all__ = [
    "FixedPercentPolicy",
    "ForecastBandPolicy",
    "Levels",
    "NodeId",
    "OutputNode",
    "PlotLevelsPolicy",
    "ResolutionPass",
    "SignalGraph",
    "SourceNode",
    "StopMode",
    "bias_allows",
    "direction_from_signal",
    "forecast_source",
    "indicator_source",
    "is_directional_conflict",
    "trend_entry_decision",
]
