"""ccxt-backed candle source.

Wraps a ccxt.async_support exchange with lazy one-time market loading,
OHLCV row conversion, and async cleanup.
"""

import asyncio

import ccxt.async_support as ccxt_async

from candlegraph.config import ExchangeSettings
from candlegraph.exceptions import CandleFetchError
from candlegraph.exchange.client import CandleSource
from candlegraph.logging import get_logger
from candlegraph.models import Candle

logger = get_logger(__name__)


class CcxtCandleSource(CandleSource):
    """Candle source backed by any ccxt exchange (binance spot by default)."""

    def __init__(self, settings: ExchangeSettings) -> None:
        self._settings = settings

        exchange_cls = getattr(ccxt_async, settings.exchange_id)
        self._exchange = exchange_cls(
            {
                "enableRateLimit": settings.enable_rate_limit,
                "options": {
                    "defaultType": settings.default_type,
                    "adjustForTimeDifference": settings.adjust_for_time_difference,
                    "recvWindow": settings.recv_window,
                },
            }
        )
        self._markets_loaded = False
        self._load_lock = asyncio.Lock()

    @property
    def exchange(self) -> ccxt_async.Exchange:
        """Access the underlying ccxt exchange instance."""
        return self._exchange

    async def _ensure_markets(self) -> None:
        """Load markets exactly once, even when called concurrently."""
        async with self._load_lock:
            if self._markets_loaded:
                return
            logger.info("loading_markets", exchange=self._settings.exchange_id)
            markets = await self._exchange.load_markets()
            self._markets_loaded = True
            logger.info(
                "markets_loaded",
                exchange=self._settings.exchange_id,
                market_count=len(markets),
            )

    async def fetch_candles(
        self,
        symbol: str,
        interval: str,
        since_ms: int,
        limit: int,
    ) -> list[Candle]:
        try:
            await self._ensure_markets()
            rows = await self._exchange.fetch_ohlcv(symbol, interval, since_ms, limit)
        except ccxt_async.BaseError as e:
            logger.warning(
                "candle_fetch_failed",
                symbol=symbol,
                interval=interval,
                since_ms=since_ms,
                error=str(e),
            )
            raise CandleFetchError(f"fetch_ohlcv failed for {symbol} {interval}: {e}") from e

        logger.debug(
            "candles_received",
            symbol=symbol,
            interval=interval,
            since_ms=since_ms,
            count=len(rows),
        )
        return [Candle.from_ohlcv(row) for row in rows]

    async def close(self) -> None:
        """Clean up ccxt async resources. CRITICAL: must be called to avoid resource leaks."""
        await self._exchange.close()
        logger.info("candle_source_closed", exchange=self._settings.exchange_id)
