"""Interval cache -- per-interval memoization shared by all graph sources."""

from candlegraph.cache.interval_cache import IntervalCache, cached, parse_interval

__all__ = ["IntervalCache", "cached", "parse_interval"]
