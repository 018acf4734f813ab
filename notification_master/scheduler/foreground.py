"""
ForegroundSession — a long-lived loop that polls at a fixed delay while a
status notification tells the user it is running.

Starting a session always supersedes any previous one. Each iteration
checks the registry; if foreground is no longer the active service the
iteration does nothing.
"""

from __future__ import annotations

import asyncio
import logging
from enum import Enum
from typing import TYPE_CHECKING

from notification_master.core.errors import RenderError
from notification_master.core.events import Event, EventType
from notification_master.core.types import ActiveService, CycleOutcome, PollingConfiguration
from notification_master.delivery.channels import SERVICE_CHANNEL_ID
from notification_master.scheduler.cancellation import CancellationToken

if TYPE_CHECKING:
    from notification_master.core.bus import EventBus
    from notification_master.delivery.dispatcher import DeliveryDispatcher
    from notification_master.scheduler.cycle import PollingCycle
    from notification_master.scheduler.host import HostScheduler
    from notification_master.services.registry import ActiveServiceRegistry
    from notification_master.store.settings import Settings

logger = logging.getLogger(__name__)

LOOP_NAME = "notification_foreground_service"
STATUS_TITLE = "Notification Service"


def status_message(interval_minutes: int) -> str:
    return f"Checking for notifications every {interval_minutes} minutes"


class SessionState(str, Enum):
    STOPPED = "stopped"
    ACTIVE = "active"


class ForegroundSession:
    def __init__(
        self,
        host: HostScheduler,
        cycle: PollingCycle,
        settings: Settings,
        registry: ActiveServiceRegistry,
        dispatcher: DeliveryDispatcher,
        bus: EventBus | None = None,
        run_timeout: float | None = None,
        status_channel_id: str = SERVICE_CHANNEL_ID,
    ) -> None:
        self._host = host
        self._cycle = cycle
        self._settings = settings
        self._registry = registry
        self._dispatcher = dispatcher
        self._bus = bus
        self._run_timeout = run_timeout
        self._status_channel_id = status_channel_id
        self._config: PollingConfiguration | None = None
        self._status_id: int | None = None

    @property
    def state(self) -> SessionState:
        return SessionState.ACTIVE if self._host.is_looping(LOOP_NAME) else SessionState.STOPPED

    @property
    def config(self) -> PollingConfiguration | None:
        return self._config

    @property
    def status_notification_id(self) -> int | None:
        return self._status_id

    async def start(
        self, config: PollingConfiguration, channel_id: str | None = None
    ) -> None:
        """channel_id overrides the channel the status notification is posted on."""
        await self._registry.set_active(ActiveService.FOREGROUND)
        await self._settings.save_polling(config, enabled=True)
        if channel_id:
            self._status_channel_id = channel_id
        await self._begin(config)
        logger.info(
            f"Started foreground service for {config.feed_url} "
            f"every {config.interval_minutes} minutes"
        )

    async def halt(self) -> None:
        """Stop the loop and clear the status notification. Persisted state is kept."""
        await self._host.stop_loop(LOOP_NAME)
        if self._status_id is not None:
            status_id, self._status_id = self._status_id, None
            try:
                await self._dispatcher.cancel(status_id)
            except Exception as e:
                logger.warning(f"Could not clear status notification #{status_id}: {e}")
        self._config = None

    async def stop(self) -> None:
        await self.halt()
        active = await self._registry.get_active()
        if active in (ActiveService.FOREGROUND, ActiveService.NONE):
            await self._settings.set_polling_enabled(False)
            await self._registry.release(ActiveService.FOREGROUND)
        logger.info("Stopped foreground service")

    async def restore(self) -> bool:
        if not await self._settings.polling_enabled():
            return False
        if not await self._registry.is_active(ActiveService.FOREGROUND):
            return False
        config = await self._settings.polling_configuration()
        if config is None:
            logger.warning("Foreground enabled but no URL persisted, not restoring")
            return False
        await self._begin(config)
        logger.info(f"Restored foreground service for {config.feed_url}")
        return True

    async def _begin(self, config: PollingConfiguration) -> None:
        await self.halt()
        self._config = config
        try:
            self._status_id = await self._dispatcher.show_status(
                STATUS_TITLE,
                status_message(config.interval_minutes),
                self._status_channel_id,
            )
        except RenderError as e:
            logger.warning(f"Could not post status notification: {e}")

        async def body() -> None:
            await self.run_once(config)

        await self._host.start_loop(LOOP_NAME, config.interval_seconds, body)

    async def run_once(self, config: PollingConfiguration) -> CycleOutcome:
        if not await self._registry.is_active(ActiveService.FOREGROUND):
            logger.info("Foreground is not the active service, skipping cycle")
            if self._bus is not None:
                await self._bus.emit(
                    Event(
                        type=EventType.CYCLE_SKIPPED,
                        source="foreground",
                        data={"url": config.feed_url},
                    )
                )
            return CycleOutcome.SUCCESS

        token = CancellationToken()
        timer = None
        if self._run_timeout:
            timer = asyncio.get_running_loop().call_later(
                self._run_timeout, token.cancel, "run timeout expired"
            )
        try:
            return await self._cycle.run(config.feed_url, token, source="foreground")
        finally:
            if timer is not None:
                timer.cancel()
