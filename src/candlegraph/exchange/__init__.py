"""Candle source layer -- exchange OHLCV access via ccxt."""

from candlegraph.exchange.ccxt_source import CcxtCandleSource
from candlegraph.exchange.client import CandleSource
from candlegraph.exchange.history import fetch_candle_range

__all__ = ["CandleSource", "CcxtCandleSource", "fetch_candle_range"]
