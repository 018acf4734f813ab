"""Tests for the Event Bus."""

import pytest

from notification_master.core.bus import EventBus
from notification_master.core.events import Event, EventType


@pytest.mark.asyncio
async def test_emit_and_subscribe(bus: EventBus):
    """Basic pub/sub works."""
    received = []

    async def handler(event: Event):
        received.append(event)

    bus.on(EventType.CYCLE_COMPLETE, handler)
    await bus.emit(Event(type=EventType.CYCLE_COMPLETE, data={"outcome": "success"}))

    assert len(received) == 1
    assert received[0].data == {"outcome": "success"}


@pytest.mark.asyncio
async def test_wildcard_subscription(bus: EventBus):
    """Wildcard 'notification:*' matches delivered and updated, not cycles."""
    received = []

    async def handler(event: Event):
        received.append(event.type)

    bus.on("notification:*", handler)

    await bus.emit(Event(type=EventType.NOTIFICATION_DELIVERED))
    await bus.emit(Event(type=EventType.NOTIFICATION_UPDATED))
    await bus.emit(Event(type=EventType.CYCLE_START))  # should NOT match

    assert received == ["notification:delivered", "notification:updated"]


@pytest.mark.asyncio
async def test_catch_all_subscription(bus: EventBus):
    received = []

    async def handler(event: Event):
        received.append(event.type)

    bus.on(EventType.ALL, handler)

    await bus.emit(Event(type=EventType.SYSTEM_START))
    await bus.emit(Event(type=EventType.SERVICE_CHANGED))

    assert len(received) == 2


@pytest.mark.asyncio
async def test_off_unsubscribes(bus: EventBus):
    received = []

    async def handler(event: Event):
        received.append(event)

    bus.on(EventType.CYCLE_START, handler)
    bus.off(EventType.CYCLE_START, handler)
    await bus.emit(Event(type=EventType.CYCLE_START))

    assert received == []
    assert bus.subscriber_count == 0


@pytest.mark.asyncio
async def test_subscriber_error_does_not_reach_emitter(bus: EventBus):
    """A failing subscriber is logged; the others still run."""
    received = []

    async def broken(event: Event):
        raise RuntimeError("boom")

    async def healthy(event: Event):
        received.append(event)

    bus.on(EventType.CYCLE_START, broken)
    bus.on(EventType.CYCLE_START, healthy)

    await bus.emit(Event(type=EventType.CYCLE_START))

    assert len(received) == 1


@pytest.mark.asyncio
async def test_middleware_runs_in_order_and_can_modify(bus: EventBus):
    order = []

    async def first(event, next_handler):
        order.append("first")
        event.metadata["tagged"] = True
        return await next_handler(event)

    async def second(event, next_handler):
        order.append("second")
        return await next_handler(event)

    seen = []

    async def handler(event: Event):
        seen.append(event.metadata.get("tagged"))

    bus.use(first)
    bus.use(second)
    bus.on(EventType.CYCLE_START, handler)

    await bus.emit(Event(type=EventType.CYCLE_START))

    assert order == ["first", "second"]
    assert seen == [True]


@pytest.mark.asyncio
async def test_middleware_can_swallow_event(bus: EventBus):
    seen = []

    async def blocker(event, next_handler):
        return event

    async def handler(event: Event):
        seen.append(event)

    bus.use(blocker)
    bus.on(EventType.CYCLE_START, handler)
    await bus.emit(Event(type=EventType.CYCLE_START))

    assert seen == []


def test_child_event_links_parent():
    parent = Event(type=EventType.CYCLE_START, source="polling")
    child = parent.child(EventType.NOTIFICATION_DELIVERED, {"id": 1})

    assert child.parent_id == parent.id
    assert child.source == "polling"
    assert child.data == {"id": 1}


def test_event_category_and_matching():
    event = Event(type=EventType.NOTIFICATION_FAILED)

    assert event.category == "notification"
    assert event.matches("notification:*")
    assert event.matches(EventType.ALL)
    assert not event.matches("cycle:*")
