"""Strategy layer -- explicit strategy configuration, runners, actions and lifecycle events."""

from candlegraph.strategy.actions import (
    ActionContext,
    ActionTrigger,
    PositionControl,
    ProfitLevel,
    breakeven_action,
    default_actions,
    partial_profit_action,
)
from candlegraph.strategy.events import EventBus, EventKind, LifecycleEvent
from candlegraph.strategy.runner import EngineConfig, StrategyRunner, StrategySchema

__all__ = [
    "ActionContext",
    "ActionTrigger",
    "EngineConfig",
    "EventBus",
    "EventKind",
    "LifecycleEvent",
    "PositionControl",
    "ProfitLevel",
    "StrategyRunner",
    "StrategySchema",
    "breakeven_action",
    "default_actions",
    "partial_profit_action",
]
