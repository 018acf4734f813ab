"""
In-process event bus.

The dispatcher, the schedulers and the service registry report what they did
here; the runtime and the CLI decide who listens. Emitting walks the
middleware chain first (the JSON-lines event logger sits there), then runs
every matching subscriber concurrently.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable

from notification_master.core.events import Event

logger = logging.getLogger(__name__)

EventHandler = Callable[[Event], Awaitable[None]]
MiddlewareNext = Callable[[Event], Awaitable[Event]]
MiddlewareFunc = Callable[[Event, MiddlewareNext], Awaitable[Event]]


@dataclass(frozen=True, slots=True)
class _Subscription:
    pattern: str
    handler: EventHandler


class EventBus:
    """
    Usage:
        bus = EventBus()
        bus.on("notification:*", on_notification)
        bus.use(event_logger.middleware)
        await bus.emit(Event(type=EventType.CYCLE_COMPLETE, data={"outcome": "success"}))

    Middleware has the shape `async def mw(event, next) -> Event` and runs in
    the order it was added. Returning without calling `next` drops the event.
    """

    def __init__(self) -> None:
        self._subscriptions: list[_Subscription] = []
        self._middleware: list[MiddlewareFunc] = []

    @property
    def subscriber_count(self) -> int:
        return len(self._subscriptions)

    def on(self, pattern: str, handler: EventHandler) -> None:
        self._subscriptions.append(_Subscription(pattern, handler))

    def off(self, pattern: str, handler: EventHandler) -> None:
        self._subscriptions = [
            s for s in self._subscriptions
            if not (s.pattern == pattern and s.handler is handler)
        ]

    def use(self, middleware: MiddlewareFunc) -> None:
        self._middleware.append(middleware)

    async def emit(self, event: Event) -> Event:
        """Send an event through middleware to subscribers. Never raises subscriber errors."""
        return await self._through(0, event)

    async def _through(self, index: int, event: Event) -> Event:
        if index == len(self._middleware):
            await self._fan_out(event)
            return event

        async def proceed(forwarded: Event) -> Event:
            return await self._through(index + 1, forwarded)

        return await self._middleware[index](event, proceed)

    async def _fan_out(self, event: Event) -> None:
        handlers = [s.handler for s in self._subscriptions if event.matches(s.pattern)]
        if not handlers:
            return
        results = await asyncio.gather(*(h(event) for h in handlers), return_exceptions=True)
        for result in results:
            if isinstance(result, Exception):
                logger.error(f"Subscriber for {event.type} failed: {result}", exc_info=result)
