"""Strategy configuration and per-tick signal production.

StrategySchema is the explicit configuration of one strategy (graph,
terminal node, risk filter, action names), built at startup and held in an
EngineConfig. StrategyRunner turns a schema into the ``get_signal(symbol)``
entry point:

1. Resolve the terminal output node of the graph for the symbol
2. Run the risk filter (a rejection means "no trade this cycle")
3. Emit a SCHEDULED lifecycle event
4. Remember the decision for later validator context once it is handed off

Graph failures (candle or indicator fetch errors) propagate to the caller
for this cycle; nothing is cached, so the next call retries.
"""

from __future__ import annotations

import time
from collections import defaultdict, deque
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from decimal import Decimal

import structlog

from candlegraph.cache.interval_cache import parse_interval
from candlegraph.exceptions import UnknownActionError
from candlegraph.graph.graph import SignalGraph
from candlegraph.graph.nodes import NodeId
from candlegraph.logging import get_logger
from candlegraph.models import SignalDecision
from candlegraph.risk.filter import RiskFilter
from candlegraph.strategy.actions import (
    ActionContext,
    ActionSpec,
    ActionTrigger,
    PositionControl,
    ProfitLevel,
)
from candlegraph.strategy.events import EventBus, EventKind, LifecycleEvent

logger = get_logger(__name__)


@dataclass
class StrategySchema:
    """Configuration of one strategy."""

    name: str
    interval: str
    graph: SignalGraph
    output: NodeId
    risk: RiskFilter = field(default_factory=RiskFilter)
    actions: tuple[str, ...] = ()


@dataclass
class EngineConfig:
    """All strategies and named actions, passed by reference into runners."""

    strategies: dict[str, StrategySchema] = field(default_factory=dict)
    actions: dict[str, ActionSpec] = field(default_factory=dict)

    def add_strategy(self, schema: StrategySchema) -> None:
        self.strategies[schema.name] = schema

    def runner(
        self,
        strategy_name: str,
        events: EventBus | None = None,
        control: PositionControl | None = None,
        time_fn: Callable[[], int] | None = None,
    ) -> StrategyRunner:
        """Build a runner for a configured strategy.

        Raises:
            KeyError: If the strategy name is not configured.
        """
        return StrategyRunner(
            schema=self.strategies[strategy_name],
            actions=self.actions,
            events=events,
            control=control,
            time_fn=time_fn,
        )


class StrategyRunner:
    """Produces risk-checked decisions for one strategy and emits lifecycle events.

    Args:
        schema: The strategy configuration.
        actions: Named action specs; every name in ``schema.actions`` must exist.
        events: Event bus for lifecycle events. None = events are not emitted.
        control: Execution-side position control used by actions.
        time_fn: Clock in epoch ms for event timestamps (simulated in backtests).
        history_limit: Accepted decisions remembered per symbol.

    Raises:
        InvalidIntervalError: If ``schema.interval`` cannot be parsed.
        UnknownActionError: If the schema references an unconfigured action.
    """

    def __init__(
        self,
        schema: StrategySchema,
        actions: Mapping[str, ActionSpec] | None = None,
        events: EventBus | None = None,
        control: PositionControl | None = None,
        time_fn: Callable[[], int] | None = None,
        history_limit: int = 50,
    ) -> None:
        parse_interval(schema.interval)
        actions = actions or {}
        missing = [name for name in schema.actions if name not in actions]
        if missing:
            raise UnknownActionError(
                f"Strategy {schema.name!r} references unknown actions: {', '.join(missing)}"
            )

        self._schema = schema
        self._actions = [actions[name] for name in schema.actions]
        self._events = events
        self._control = control
        self._time_fn = time_fn or (lambda: int(time.time() * 1000))
        self._history: dict[str, deque[SignalDecision]] = defaultdict(
            lambda: deque(maxlen=history_limit)
        )

    @property
    def schema(self) -> StrategySchema:
        return self._schema

    def prior_decisions(self, symbol: str) -> tuple[SignalDecision, ...]:
        return tuple(self._history[symbol])

    async def get_signal(self, symbol: str) -> SignalDecision | None:
        """Resolve, risk-check and schedule a decision for ``symbol``.

        Returns:
            The accepted SignalDecision, or None for no trade this cycle.
        """
        with structlog.contextvars.bound_contextvars(
            strategy=self._schema.name, interval=self._schema.interval, symbol=symbol
        ):
            try:
                decision = await self._schema.graph.resolve(self._schema.output, symbol)
            except Exception as e:
                logger.warning("signal_resolution_failed", error=str(e))
                raise

            if decision is None:
                logger.debug("no_signal")
                return None

            prior = self._history[symbol]
            if not await self._schema.risk.check(symbol, decision, tuple(prior)):
                return None

            logger.info(
                "signal_scheduled",
                signal_id=decision.id,
                position=decision.position.value,
                price_take_profit=str(decision.price_take_profit),
                price_stop_loss=str(decision.price_stop_loss),
                minute_estimated_time=decision.minute_estimated_time,
            )
            await self._emit(
                EventKind.SCHEDULED, symbol, decision, current_price=decision.price_open
            )
            prior.append(decision)
            return decision

    async def notify_opened(
        self, symbol: str, decision: SignalDecision, current_price: Decimal
    ) -> None:
        await self._emit(EventKind.OPENED, symbol, decision, current_price=current_price)

    async def notify_closed(
        self,
        symbol: str,
        decision: SignalDecision,
        pnl_percentage: Decimal,
        current_price: Decimal | None = None,
        reason: str | None = None,
    ) -> None:
        await self._emit(
            EventKind.CLOSED,
            symbol,
            decision,
            current_price=current_price,
            pnl_percentage=pnl_percentage,
            reason=reason,
        )

    async def notify_cancelled(
        self,
        symbol: str,
        decision: SignalDecision,
        reason: str,
        current_price: Decimal | None = None,
    ) -> None:
        await self._emit(
            EventKind.CANCELLED, symbol, decision, current_price=current_price, reason=reason
        )

    async def partial_profit_available(self, symbol: str, level: ProfitLevel) -> None:
        await self._dispatch(ActionTrigger.PARTIAL_PROFIT, symbol, level=level)

    async def breakeven_available(self, symbol: str, current_price: Decimal) -> None:
        await self._dispatch(ActionTrigger.BREAKEVEN, symbol, current_price=current_price)

    async def _dispatch(
        self,
        trigger: ActionTrigger,
        symbol: str,
        level: ProfitLevel | None = None,
        current_price: Decimal | None = None,
    ) -> None:
        if self._control is None:
            logger.warning("action_without_position_control", trigger=trigger.value)
            return
        context = ActionContext(
            symbol=symbol,
            strategy_name=self._schema.name,
            control=self._control,
            level=level,
            current_price=current_price,
        )
        for handlers in self._actions:
            handler = handlers.get(trigger)
            if handler is not None:
                await handler(context)

    async def _emit(
        self,
        kind: EventKind,
        symbol: str,
        decision: SignalDecision,
        current_price: Decimal | None = None,
        pnl_percentage: Decimal | None = None,
        reason: str | None = None,
    ) -> None:
        if self._events is None:
            return
        await self._events.emit(
            LifecycleEvent(
                kind=kind,
                symbol=symbol,
                strategy_name=self._schema.name,
                decision=decision,
                timestamp_ms=self._time_fn(),
                current_price=current_price,
                pnl_percentage=pnl_percentage,
                reason=reason,
            )
        )
