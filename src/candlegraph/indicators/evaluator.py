"""Abstract indicator evaluator interface.

The script engine that turns raw candles into named plots lives outside
candlegraph. Graph source nodes and research runners depend only on this
contract.
"""

from abc import ABC, abstractmethod

from candlegraph.indicators.models import IndicatorRequest, Plots


class IndicatorEvaluator(ABC):
    """Evaluates an indicator script into named plot series."""

    @abstractmethod
    async def evaluate(self, script_id: str, request: IndicatorRequest) -> Plots:
        """Run ``script_id`` for the request and return its plots by name.

        Deterministic for identical inputs. Implementations raise
        IndicatorEvaluationError on failure.
        """
        ...
