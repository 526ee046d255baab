"""Tests for partial-profit and breakeven actions."""

from decimal import Decimal
from unittest.mock import AsyncMock

import pytest

from candlegraph.strategy.actions import (
    ActionContext,
    ActionTrigger,
    ProfitLevel,
    breakeven_action,
    default_actions,
    partial_profit_action,
)


def _make_context(control, level=None, current_price=None) -> ActionContext:
    return ActionContext(
        symbol="BTCUSDT",
        strategy_name="trend_follow",
        control=control,
        level=level,
        current_price=current_price,
    )


class TestPartialProfitAction:
    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "level,percent",
        [
            (ProfitLevel.TP_LEVEL1, Decimal("34")),
            (ProfitLevel.TP_LEVEL2, Decimal("33")),
            (ProfitLevel.TP_LEVEL3, Decimal("33")),
        ],
    )
    async def test_default_splits(self, level, percent) -> None:
        control = AsyncMock()
        handler = partial_profit_action()[ActionTrigger.PARTIAL_PROFIT]

        await handler(_make_context(control, level=level))

        control.commit_partial_profit.assert_awaited_once_with("BTCUSDT", percent)

    @pytest.mark.asyncio
    async def test_unconfigured_level_is_ignored(self) -> None:
        control = AsyncMock()
        action = partial_profit_action({ProfitLevel.TP_LEVEL1: Decimal("50")})

        await action[ActionTrigger.PARTIAL_PROFIT](_make_context(control, level=ProfitLevel.TP_LEVEL2))

        control.commit_partial_profit.assert_not_awaited()


class TestBreakevenAction:
    @pytest.mark.asyncio
    async def test_commits_trailing_stop(self) -> None:
        control = AsyncMock()
        handler = breakeven_action()[ActionTrigger.BREAKEVEN]

        await handler(_make_context(control, current_price=Decimal("101.2")))

        control.commit_trailing_stop.assert_awaited_once_with(
            "BTCUSDT", Decimal("-3"), Decimal("101.2")
        )

    @pytest.mark.asyncio
    async def test_requires_current_price(self) -> None:
        control = AsyncMock()

        await breakeven_action()[ActionTrigger.BREAKEVEN](_make_context(control))

        control.commit_trailing_stop.assert_not_awaited()


def test_default_actions_names() -> None:
    actions = default_actions()

    assert set(actions) == {"partial_profit_action", "breakeven_action"}
    assert ActionTrigger.PARTIAL_PROFIT in actions["partial_profit_action"]
    assert ActionTrigger.BREAKEVEN in actions["breakeven_action"]
