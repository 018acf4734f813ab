"""
ActiveServiceRegistry — which single delivery mechanism is authorized.

Backed by the persisted `active_notification_service` setting, so it is the
same answer after a restart. Switching to a different service first runs
the deactivator of the current one (cancel the periodic job, stop the
foreground loop, …), then persists the new value. Asking for the service
that is already active does nothing at all.

Runners consult get_active() before every cycle and skip the cycle when
they are no longer the authorized mechanism.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Awaitable, Callable

from notification_master.core.events import Event, EventType
from notification_master.core.types import ActiveService

if TYPE_CHECKING:
    from notification_master.core.bus import EventBus
    from notification_master.store.settings import Settings

logger = logging.getLogger(__name__)

Deactivator = Callable[[], Awaitable[None]]


class ActiveServiceRegistry:
    """
    Usage:
        registry = ActiveServiceRegistry(settings)
        registry.register_deactivator(ActiveService.POLLING, poller.cancel)
        registry.register_deactivator(ActiveService.FOREGROUND, session.halt)

        await registry.set_active(ActiveService.FOREGROUND)
    """

    def __init__(self, settings: Settings, bus: EventBus | None = None) -> None:
        self._settings = settings
        self._bus = bus
        self._deactivators: dict[ActiveService, Deactivator] = {}

    def register_deactivator(self, service: ActiveService, deactivator: Deactivator) -> None:
        self._deactivators[service] = deactivator

    async def get_active(self) -> ActiveService:
        return await self._settings.active_service()

    async def is_active(self, service: ActiveService) -> bool:
        return await self.get_active() == service

    async def set_active(self, service: ActiveService) -> bool:
        """
        Make service the active mechanism.

        Returns False when it already was (no side effects), True otherwise.
        """
        current = await self.get_active()
        if current == service:
            return False

        deactivate = self._deactivators.get(current)
        if deactivate is not None:
            await deactivate()
            logger.debug(f"Disabled {current.label} service due to service change")

        await self._settings.set_active_service(service)
        logger.info(f"Active notification service changed: {current.label} -> {service.label}")
        await self._emit(current, service)
        return True

    async def release(self, service: ActiveService) -> bool:
        """
        Record NONE if service is the active one. Used by explicit stops,
        which have already shut their own mechanism down.
        """
        current = await self.get_active()
        if current != service:
            return False
        await self._settings.set_active_service(ActiveService.NONE)
        logger.info(f"Active notification service released: {service.label}")
        await self._emit(current, ActiveService.NONE)
        return True

    async def _emit(self, previous: ActiveService, current: ActiveService) -> None:
        if self._bus is not None:
            await self._bus.emit(
                Event(
                    type=EventType.SERVICE_CHANGED,
                    source="registry",
                    data={"previous": previous.label, "current": current.label},
                )
            )
