"""Expected-value statistics over simulated trades.

Pure Decimal analytics: outcome counts and percentages, DCA breakdown,
and expected value per trade under a fixed-return fee model. All functions
accept list[SimulatedTrade], never mutate it, and give identical results
on repeated calls.

NOT_FOUND trades carry no outcome information and are excluded before any
counting.

EV model (per unit of position, all values fractions of entry):
    single entry:  tp -> tp_return - fee, sl -> sl_return - fee, timeout -> timeout_return - fee
    DCA triggered: same with the DCA return schedule and the three-leg fee
"""

from __future__ import annotations

from collections import defaultdict
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal

from candlegraph.config import FeeSettings
from candlegraph.models import Position
from candlegraph.simulation.models import SimulatedTrade, TradeOutcome

_PCT_QUANTUM = Decimal("0.01")
_EV_QUANTUM = Decimal("0.000001")


@dataclass(frozen=True)
class FeeModel:
    """Per-outcome gross returns and round-trip fees.

    ``returns`` and ``dca_returns`` map TP/SL/TIMEOUT to a gross return
    fraction; ``fee`` and ``dca_fee`` are total round-trip fees.
    """

    returns: dict[TradeOutcome, Decimal]
    fee: Decimal
    dca_returns: dict[TradeOutcome, Decimal]
    dca_fee: Decimal

    @staticmethod
    def from_settings(settings: FeeSettings) -> FeeModel:
        return FeeModel(
            returns={
                TradeOutcome.TAKE_PROFIT: settings.take_profit_return,
                TradeOutcome.STOP_LOSS: settings.stop_loss_return,
                TradeOutcome.TIMEOUT: settings.timeout_return,
            },
            fee=settings.round_trip_fee,
            dca_returns={
                TradeOutcome.TAKE_PROFIT: settings.dca_take_profit_return,
                TradeOutcome.STOP_LOSS: settings.dca_stop_loss_return,
                TradeOutcome.TIMEOUT: settings.dca_timeout_return,
            },
            dca_fee=settings.dca_round_trip_fee,
        )

    def net_return(self, trade: SimulatedTrade, with_dca: bool) -> Decimal:
        """Net return of one trade; the DCA schedule applies only if ``with_dca`` and DCA fired."""
        if with_dca and trade.dca_triggered:
            return self.dca_returns[trade.outcome] - self.dca_fee
        return self.returns[trade.outcome] - self.fee


@dataclass(frozen=True)
class OutcomeStats:
    """Aggregate outcome statistics for one cohort of trades.

    Percentages are in percent (50.00 = half) and None for an empty cohort,
    as are the EV figures.

    Attributes:
        total: Trades counted (NOT_FOUND excluded).
        counts: Trades per outcome.
        percentages: Share of each outcome.
        dca_total: Trades where the DCA leg triggered.
        dca_percentage: Share of trades where DCA triggered.
        dca_counts: DCA trades per outcome.
        ev_simple: EV per trade ignoring the DCA leg.
        ev_dca: EV per trade with the DCA schedule on DCA trades.
        ev_delta: ev_dca - ev_simple.
        avg_capital: Mean position units deployed (1 single, 2 with DCA).
    """

    total: int
    counts: dict[TradeOutcome, int]
    percentages: dict[TradeOutcome, Decimal] | None
    dca_total: int
    dca_percentage: Decimal | None
    dca_counts: dict[TradeOutcome, int]
    ev_simple: Decimal | None
    ev_dca: Decimal | None
    ev_delta: Decimal | None
    avg_capital: Decimal | None

    def to_dict(self) -> dict:
        """Serialize to dict for JSON output (Decimals as strings)."""

        def _s(value: Decimal | None) -> str | None:
            return str(value) if value is not None else None

        return {
            "total": self.total,
            "counts": {k.value: v for k, v in self.counts.items()},
            "percentages": (
                {k.value: str(v) for k, v in self.percentages.items()}
                if self.percentages is not None
                else None
            ),
            "dca_total": self.dca_total,
            "dca_percentage": _s(self.dca_percentage),
            "dca_counts": {k.value: v for k, v in self.dca_counts.items()},
            "ev_simple": _s(self.ev_simple),
            "ev_dca": _s(self.ev_dca),
            "ev_delta": _s(self.ev_delta),
            "avg_capital": _s(self.avg_capital),
        }


_SCORED = (TradeOutcome.TAKE_PROFIT, TradeOutcome.STOP_LOSS, TradeOutcome.TIMEOUT)


def _percent(part: int, whole: int) -> Decimal:
    return (Decimal(part) / Decimal(whole) * 100).quantize(_PCT_QUANTUM, rounding=ROUND_HALF_UP)


def found_trades(trades: Iterable[SimulatedTrade]) -> list[SimulatedTrade]:
    """Drop NOT_FOUND trades."""
    return [t for t in trades if t.is_found]


def expected_value(
    trades: Iterable[SimulatedTrade],
    fee_model: FeeModel,
    with_dca: bool = False,
) -> Decimal | None:
    """Mean net return per trade, or None if there are no scorable trades."""
    scored = found_trades(trades)
    if not scored:
        return None
    total = sum((fee_model.net_return(t, with_dca) for t in scored), Decimal("0"))
    return (total / Decimal(len(scored))).quantize(_EV_QUANTUM, rounding=ROUND_HALF_UP)


def compute_outcome_stats(
    trades: Iterable[SimulatedTrade],
    fee_model: FeeModel,
) -> OutcomeStats:
    """Compute outcome counts, DCA breakdown and EV for a cohort."""
    scored = found_trades(trades)
    n = len(scored)

    counts = {o: 0 for o in _SCORED}
    dca_counts = {o: 0 for o in _SCORED}
    for trade in scored:
        counts[trade.outcome] += 1
        if trade.dca_triggered:
            dca_counts[trade.outcome] += 1
    dca_total = sum(dca_counts.values())

    if n == 0:
        return OutcomeStats(
            total=0,
            counts=counts,
            percentages=None,
            dca_total=0,
            dca_percentage=None,
            dca_counts=dca_counts,
            ev_simple=None,
            ev_dca=None,
            ev_delta=None,
            avg_capital=None,
        )

    ev_simple = expected_value(scored, fee_model, with_dca=False)
    ev_dca = expected_value(scored, fee_model, with_dca=True)
    avg_capital = (Decimal(n - dca_total) + Decimal(2 * dca_total)) / Decimal(n)

    return OutcomeStats(
        total=n,
        counts=counts,
        percentages={o: _percent(c, n) for o, c in counts.items()},
        dca_total=dca_total,
        dca_percentage=_percent(dca_total, n),
        dca_counts=dca_counts,
        ev_simple=ev_simple,
        ev_dca=ev_dca,
        ev_delta=ev_dca - ev_simple,
        avg_capital=avg_capital.quantize(_PCT_QUANTUM, rounding=ROUND_HALF_UP),
    )


def split_by_direction(trades: Iterable[SimulatedTrade]) -> dict[Position, list[SimulatedTrade]]:
    """Group trades by position, preserving order within each group."""
    grouped: dict[Position, list[SimulatedTrade]] = defaultdict(list)
    for trade in trades:
        grouped[trade.position].append(trade)
    return {p: grouped.get(p, []) for p in Position}


def partition(
    trades: Iterable[SimulatedTrade],
    predicate: Callable[[SimulatedTrade], bool],
) -> tuple[list[SimulatedTrade], list[SimulatedTrade]]:
    """Split trades into (matching, rest) by an external gating predicate."""
    matching: list[SimulatedTrade] = []
    rest: list[SimulatedTrade] = []
    for trade in trades:
        (matching if predicate(trade) else rest).append(trade)
    return matching, rest


@dataclass(frozen=True)
class CohortComparison:
    """Effect of a gate: stats for all trades, the gated cohort and the blocked cohort.

    ``ev_gain`` is the single-entry EV of the gated cohort minus that of all
    trades; None when either is undefined.
    """

    all: OutcomeStats
    gated: OutcomeStats
    blocked: OutcomeStats
    ev_gain: Decimal | None


def compare_cohorts(
    gated: list[SimulatedTrade],
    blocked: list[SimulatedTrade],
    fee_model: FeeModel,
) -> CohortComparison:
    """Compare trades a gate let through against those it blocked."""
    all_stats = compute_outcome_stats([*gated, *blocked], fee_model)
    gated_stats = compute_outcome_stats(gated, fee_model)
    blocked_stats = compute_outcome_stats(blocked, fee_model)

    ev_gain = None
    if gated_stats.ev_simple is not None and all_stats.ev_simple is not None:
        ev_gain = gated_stats.ev_simple - all_stats.ev_simple

    return CohortComparison(
        all=all_stats,
        gated=gated_stats,
        blocked=blocked_stats,
        ev_gain=ev_gain,
    )
