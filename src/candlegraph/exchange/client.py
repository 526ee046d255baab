"""Abstract candle source interface.

Defines the contract for all market data implementations.
Graph, research and simulation code depends only on this interface,
keeping exchange-specific details isolated in the concrete implementation.
"""

from abc import ABC, abstractmethod

from candlegraph.models import Candle


class CandleSource(ABC):
    """Abstract base class for OHLCV candle providers."""

    @abstractmethod
    async def fetch_candles(
        self,
        symbol: str,
        interval: str,
        since_ms: int,
        limit: int,
    ) -> list[Candle]:
        """Fetch up to ``limit`` bars starting at ``since_ms``.

        May return fewer than ``limit`` bars near the data horizon.
        Bars are ordered by timestamp with no duplicates.
        """
        ...

    async def close(self) -> None:
        """Release any network resources held by the source."""
        return None
