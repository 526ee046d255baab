"""Position actions triggered by lifecycle opportunities.

An action is a named bundle of plain async functions keyed by the trigger
they handle. Dispatch is a mapping lookup: a strategy lists action names,
and for each trigger the runner calls the functions those actions register
for it. Actions act on the live position only through PositionControl,
which the execution layer implements.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable, Mapping
from dataclasses import dataclass
from decimal import Decimal
from enum import Enum, IntEnum
from typing import Protocol

from candlegraph.logging import get_logger

logger = get_logger(__name__)


class ActionTrigger(str, Enum):
    """Opportunities an action can react to."""

    PARTIAL_PROFIT = "partial_profit_available"
    BREAKEVEN = "breakeven_available"


class ProfitLevel(IntEnum):
    """Partial take-profit levels reached on the way to the final target."""

    TP_LEVEL1 = 1
    TP_LEVEL2 = 2
    TP_LEVEL3 = 3


class PositionControl(Protocol):
    """Execution-side operations available to actions."""

    async def commit_partial_profit(self, symbol: str, percent: Decimal) -> None: ...

    async def commit_trailing_stop(
        self, symbol: str, offset: Decimal, current_price: Decimal
    ) -> None: ...


@dataclass(frozen=True)
class ActionContext:
    """Arguments passed to an action function."""

    symbol: str
    strategy_name: str
    control: PositionControl
    level: ProfitLevel | None = None
    current_price: Decimal | None = None


ActionFn = Callable[[ActionContext], Awaitable[None]]
ActionSpec = Mapping[ActionTrigger, ActionFn]


def partial_profit_action(
    splits: Mapping[ProfitLevel, Decimal] | None = None,
) -> ActionSpec:
    """Close a fixed percent of the position at each profit level.

    Default splits close 34% at level 1 and 33% at levels 2 and 3.
    """
    if splits is None:
        splits = {
            ProfitLevel.TP_LEVEL1: Decimal("34"),
            ProfitLevel.TP_LEVEL2: Decimal("33"),
            ProfitLevel.TP_LEVEL3: Decimal("33"),
        }

    async def on_partial_profit(ctx: ActionContext) -> None:
        if ctx.level is None:
            return
        percent = splits.get(ctx.level)
        if percent is None:
            return
        logger.info(
            "commit_partial_profit",
            symbol=ctx.symbol,
            strategy=ctx.strategy_name,
            level=int(ctx.level),
            percent=str(percent),
        )
        await ctx.control.commit_partial_profit(ctx.symbol, percent)

    return {ActionTrigger.PARTIAL_PROFIT: on_partial_profit}


def breakeven_action(offset: Decimal = Decimal("-3")) -> ActionSpec:
    """Shift the trailing stop by ``offset`` points once breakeven is available.

    A negative offset pulls the stop-loss closer to entry.
    """

    async def on_breakeven(ctx: ActionContext) -> None:
        if ctx.current_price is None:
            return
        logger.info(
            "commit_trailing_stop",
            symbol=ctx.symbol,
            strategy=ctx.strategy_name,
            offset=str(offset),
            current_price=str(ctx.current_price),
        )
        await ctx.control.commit_trailing_stop(ctx.symbol, offset, ctx.current_price)

    return {ActionTrigger.BREAKEVEN: on_breakeven}


def default_actions() -> dict[str, ActionSpec]:
    """The stock actions keyed by their configuration names."""
    return {
        "partial_profit_action": partial_profit_action(),
        "breakeven_action": breakeven_action(),
    }
