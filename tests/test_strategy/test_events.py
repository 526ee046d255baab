"""Tests for the lifecycle EventBus."""

from decimal import Decimal

import pytest

from candlegraph.models import Position, SignalDecision
from candlegraph.strategy.events import EventBus, EventKind, LifecycleEvent


def _make_event(kind: EventKind = EventKind.SCHEDULED) -> LifecycleEvent:
    decision = SignalDecision(
        id="sig-1",
        position=Position.LONG,
        price_take_profit=Decimal("102"),
        price_stop_loss=Decimal("99"),
        minute_estimated_time=240,
        price_open=Decimal("100"),
    )
    return LifecycleEvent(
        kind=kind,
        symbol="BTCUSDT",
        strategy_name="trend_follow",
        decision=decision,
        timestamp_ms=1_700_000_100_000,
    )


class TestEventBus:
    @pytest.mark.asyncio
    async def test_delivers_to_sync_and_async_handlers_in_order(self) -> None:
        bus = EventBus()
        received: list[str] = []

        def sync_handler(event: LifecycleEvent) -> None:
            received.append(f"sync:{event.kind.value}")

        async def async_handler(event: LifecycleEvent) -> None:
            received.append(f"async:{event.kind.value}")

        bus.subscribe(sync_handler)
        bus.subscribe(async_handler)
        await bus.emit(_make_event())

        assert received == ["sync:scheduled", "async:scheduled"]

    @pytest.mark.asyncio
    async def test_kind_filter(self) -> None:
        bus = EventBus()
        closed: list[LifecycleEvent] = []
        bus.subscribe(closed.append, kind=EventKind.CLOSED)

        await bus.emit(_make_event(EventKind.OPENED))
        await bus.emit(_make_event(EventKind.CLOSED))

        assert [e.kind for e in closed] == [EventKind.CLOSED]

    @pytest.mark.asyncio
    async def test_unsubscribe(self) -> None:
        bus = EventBus()
        received: list[LifecycleEvent] = []
        unsubscribe = bus.subscribe(received.append)

        unsubscribe()
        unsubscribe()
        await bus.emit(_make_event())

        assert received == []

    @pytest.mark.asyncio
    async def test_handler_error_propagates(self) -> None:
        bus = EventBus()

        def broken(event: LifecycleEvent) -> None:
            raise RuntimeError("sink down")

        bus.subscribe(broken)

        with pytest.raises(RuntimeError, match="sink down"):
            await bus.emit(_make_event())

    def test_to_dict(self) -> None:
        data = _make_event(EventKind.CANCELLED).to_dict()

        assert data["kind"] == "cancelled"
        assert data["signal"]["price_take_profit"] == "102"
        assert data["current_price"] is None
