"""Position lifecycle events.

The core only emits events; formatting and delivery belong to subscribers
(log sinks, notifiers, report writers) registered on the EventBus.
"""

from __future__ import annotations

import inspect
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from decimal import Decimal
from enum import Enum

from candlegraph.logging import get_logger
from candlegraph.models import SignalDecision

logger = get_logger(__name__)


class EventKind(str, Enum):
    """Lifecycle stage of a signal."""

    SCHEDULED = "scheduled"
    OPENED = "opened"
    CLOSED = "closed"
    CANCELLED = "cancelled"


@dataclass(frozen=True)
class LifecycleEvent:
    """One lifecycle transition of a signal.

    Attributes:
        kind: Lifecycle stage.
        symbol: Symbol the signal is for.
        strategy_name: Strategy that produced the signal.
        decision: The originating SignalDecision.
        timestamp_ms: Event time (wall or simulated clock).
        current_price: Market price at the event, when known.
        pnl_percentage: Realized PnL in percent (CLOSED only).
        reason: Close or cancel reason.
    """

    kind: EventKind
    symbol: str
    strategy_name: str
    decision: SignalDecision
    timestamp_ms: int
    current_price: Decimal | None = None
    pnl_percentage: Decimal | None = None
    reason: str | None = None

    def to_dict(self) -> dict:
        return {
            "kind": self.kind.value,
            "symbol": self.symbol,
            "strategy_name": self.strategy_name,
            "signal": self.decision.to_dict(),
            "timestamp_ms": self.timestamp_ms,
            "current_price": str(self.current_price) if self.current_price is not None else None,
            "pnl_percentage": (
                str(self.pnl_percentage) if self.pnl_percentage is not None else None
            ),
            "reason": self.reason,
        }


EventHandler = Callable[[LifecycleEvent], Awaitable[None] | None]


class EventBus:
    """Fan-out of lifecycle events to subscribers, in subscription order."""

    def __init__(self) -> None:
        self._handlers: list[tuple[EventKind | None, EventHandler]] = []

    def subscribe(
        self, handler: EventHandler, kind: EventKind | None = None
    ) -> Callable[[], None]:
        """Register ``handler`` for one event kind (or all kinds when None).

        Returns:
            A callable that removes the subscription.
        """
        entry = (kind, handler)
        self._handlers.append(entry)

        def unsubscribe() -> None:
            if entry in self._handlers:
                self._handlers.remove(entry)

        return unsubscribe

    async def emit(self, event: LifecycleEvent) -> None:
        """Deliver ``event`` to every matching subscriber."""
        logger.debug(
            "lifecycle_event",
            kind=event.kind.value,
            symbol=event.symbol,
            strategy=event.strategy_name,
            signal_id=event.decision.id,
        )
        for kind, handler in list(self._handlers):
            if kind is not None and kind is not event.kind:
                continue
            result = handler(event)
            if inspect.isawaitable(result):
                await result
