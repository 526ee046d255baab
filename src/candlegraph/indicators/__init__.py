"""Indicator layer -- evaluator contract, plot models and field extraction."""

from candlegraph.indicators.evaluator import IndicatorEvaluator
from candlegraph.indicators.extract import ExtractedFields, extract, to_decimal
from candlegraph.indicators.models import IndicatorRequest, PlotPoint, Plots, PlotSeries
from candlegraph.indicators.signal_bars import SignalBar, collect_signal_bars

__all__ = [
    "ExtractedFields",
    "IndicatorEvaluator",
    "IndicatorRequest",
    "PlotPoint",
    "PlotSeries",
    "Plots",
    "SignalBar",
    "collect_signal_bars",
    "extract",
    "to_decimal",
]
