"""Field extraction from indicator plots.

Turns a mapping of plot series into a flat dict of scalars keyed by
caller-chosen field names, reading the most recent sample unless an
explicit historical offset is requested.

CRITICAL: Numeric values are converted to Decimal via str() to avoid
binary float artifacts leaking into price thresholds.
"""

import math
from decimal import Decimal

from candlegraph.exceptions import MissingPlotError
from candlegraph.indicators.models import Plots

ExtractedFields = dict[str, Decimal | None]


def to_decimal(value: float | int | None) -> Decimal | None:
    """Convert a plot sample to Decimal. None and NaN become None."""
    if value is None:
        return None
    if isinstance(value, float) and math.isnan(value):
        return None
    return Decimal(str(value))


def extract(plots: Plots, fields: dict[str, str], offset: int = 0) -> ExtractedFields:
    """Pull one scalar per field from the named plot series.

    Args:
        plots: Plot series by name, as returned by the indicator evaluator.
        fields: Mapping of output field name -> source plot name,
            e.g. {"position": "Signal", "priceOpen": "Close"}.
        offset: Bars back from the most recent sample (0 = latest).

    Returns:
        Dict of field name -> Decimal value (None when the sample is empty).

    Raises:
        MissingPlotError: If a source plot name is not in ``plots``.
    """
    result: ExtractedFields = {}
    for field_name, plot_name in fields.items():
        series = plots.get(plot_name)
        if series is None:
            raise MissingPlotError(plot_name, list(plots.keys()))
        result[field_name] = to_decimal(series.value_at(offset))
    return result
