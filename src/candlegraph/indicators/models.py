"""Indicator plot data models.

A plot series is time-aligned with the candle series it was computed from:
one sample per bar, value may be None (e.g. during indicator warm-up).
"""

from collections.abc import Mapping
from dataclasses import dataclass, field


@dataclass(frozen=True)
class PlotPoint:
    """One sample of a plot series."""

    time_ms: int | None
    value: float | int | None


@dataclass(frozen=True)
class PlotSeries:
    """A named, time-aligned sequence of samples."""

    name: str
    points: tuple[PlotPoint, ...] = field(default_factory=tuple)

    def __len__(self) -> int:
        return len(self.points)

    def value_at(self, offset: int = 0) -> float | int | None:
        """Return the value ``offset`` bars back from the most recent sample.

        Returns None when the series is shorter than ``offset + 1``.
        """
        if offset < 0:
            raise ValueError(f"offset must be >= 0, got {offset}")
        if offset >= len(self.points):
            return None
        return self.points[-1 - offset].value


Plots = Mapping[str, PlotSeries]


@dataclass(frozen=True)
class IndicatorRequest:
    """Parameters for one indicator evaluation.

    ``as_of_ms`` pins the evaluation to a simulated "now" for backtesting;
    None means the latest available data.
    """

    symbol: str
    interval: str
    limit: int
    as_of_ms: int | None = None
