"""Shared test fixtures for candlegraph."""

from decimal import Decimal

import pytest

from candlegraph.config import (
    AppSettings,
    FeeSettings,
    ForecastSettings,
    SimulationSettings,
)


class FakeClock:
    """Settable epoch-millisecond clock for interval cache tests."""

    def __init__(self, now_ms: int = 0) -> None:
        self.now_ms = now_ms

    def __call__(self) -> int:
        return self.now_ms

    def advance(self, ms: int) -> None:
        self.now_ms += ms


@pytest.fixture
def clock() -> FakeClock:
    """Clock at 2023-11-14 22:15 UTC, the start of a 15m bucket."""
    return FakeClock(now_ms=1_700_000_100_000)


@pytest.fixture
def mock_settings() -> AppSettings:
    """Return AppSettings with test defaults."""
    return AppSettings(
        log_level="DEBUG",
        simulation=SimulationSettings(),
        fees=FeeSettings(),
        forecast=ForecastSettings(min_move_percent=Decimal("1.0")),
    )
