"""Custom exceptions for candlegraph.

All exceptions raised across the cache, graph, risk and research layers
live here to avoid circular imports between modules.
"""


class CandlegraphError(Exception):
    """Base exception for all candlegraph errors."""


class CandleFetchError(CandlegraphError):
    """Raised when the candle source fails to return bars."""


class IndicatorEvaluationError(CandlegraphError):
    """Raised when the indicator evaluator fails for a script."""


class MissingPlotError(CandlegraphError):
    """Raised when a requested plot name is absent from an evaluation."""

    def __init__(self, plot_name: str, available: list[str]) -> None:
        self.plot_name = plot_name
        self.available = available
        super().__init__(
            f"Plot {plot_name!r} not found (available: {', '.join(sorted(available))})"
        )


class InvalidIntervalError(CandlegraphError):
    """Raised when an interval string such as "15m" cannot be parsed."""


class GraphDefinitionError(CandlegraphError):
    """Raised when a signal graph is constructed with invalid nodes or edges."""


class RiskValidationError(CandlegraphError):
    """Raised by a risk validator to veto a signal for the current cycle.

    This is a recoverable outcome: the strategy layer treats it as
    "no trade this cycle" and never escalates it.
    """

    def __init__(self, reason: str, validator: str = "") -> None:
        self.reason = reason
        self.validator = validator
        super().__init__(reason)


class ForecastError(CandlegraphError):
    """Raised when the volatility forecaster cannot produce a forecast."""


class UnknownActionError(CandlegraphError):
    """Raised when a strategy references an action name that is not configured."""
