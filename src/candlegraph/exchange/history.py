"""Paginated historical candle fetch.

Walks forward from a start timestamp in batches until the end timestamp
or a short batch, producing one ordered, duplicate-free candle series.
"""

from candlegraph.cache.interval_cache import parse_interval
from candlegraph.exchange.client import CandleSource
from candlegraph.logging import get_logger
from candlegraph.models import Candle

logger = get_logger(__name__)


async def fetch_candle_range(
    source: CandleSource,
    symbol: str,
    interval: str,
    start_ms: int,
    end_ms: int,
    batch_limit: int = 500,
) -> list[Candle]:
    """Fetch every candle with start_ms <= timestamp <= end_ms.

    Args:
        source: Candle source to page through.
        symbol: Trading pair symbol (e.g., "BTCUSDT").
        interval: Candle interval (e.g., "15m").
        start_ms: First timestamp to include (epoch milliseconds).
        end_ms: Last timestamp to include (epoch milliseconds, inclusive).
        batch_limit: Bars requested per call.

    Returns:
        Candles ordered by timestamp with no duplicates.
    """
    step_ms = parse_interval(interval)
    candles: list[Candle] = []
    last_ts: int | None = None
    since = start_ms

    while since < end_ms:
        batch = await source.fetch_candles(symbol, interval, since, batch_limit)
        if not batch:
            break

        for candle in batch:
            if candle.timestamp_ms > end_ms:
                continue
            if last_ts is not None and candle.timestamp_ms <= last_ts:
                continue
            candles.append(candle)
            last_ts = candle.timestamp_ms

        since = batch[-1].timestamp_ms + step_ms
        if len(batch) < batch_limit:
            break

    logger.info(
        "candle_range_fetched",
        symbol=symbol,
        interval=interval,
        start_ms=start_ms,
        end_ms=end_ms,
        count=len(candles),
    )
    return candles
