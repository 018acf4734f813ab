"""
PeriodicPoller — the recurring background job that runs polling cycles.

There is exactly one job, named "notification_polling_worker". Starting
again replaces it (UPDATE policy), so reconfiguring never leaves two jobs
alive. Each run asks the registry first and does nothing if polling is no
longer the active service.
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import TYPE_CHECKING

from notification_master.core.events import Event, EventType
from notification_master.core.types import ActiveService, CycleOutcome, PollingConfiguration
from notification_master.scheduler.job import ExistingJobPolicy, JobState

if TYPE_CHECKING:
    from notification_master.core.bus import EventBus
    from notification_master.scheduler.cancellation import CancellationToken
    from notification_master.scheduler.cycle import PollingCycle
    from notification_master.scheduler.host import HostScheduler
    from notification_master.services.registry import ActiveServiceRegistry
    from notification_master.store.settings import Settings

logger = logging.getLogger(__name__)

JOB_NAME = "notification_polling_worker"


class PollerState(str, Enum):
    IDLE = "idle"
    SCHEDULED = "scheduled"
    RUNNING = "running"
    FAILED = "failed"


class PeriodicPoller:
    """
    Usage:
        poller = PeriodicPoller(host, cycle, settings, registry)
        await poller.start(PollingConfiguration("https://x/feed", 15))
        ...
        await poller.stop()
    """

    def __init__(
        self,
        host: HostScheduler,
        cycle: PollingCycle,
        settings: Settings,
        registry: ActiveServiceRegistry,
        bus: EventBus | None = None,
        run_timeout: float | None = None,
        require_network: bool = True,
    ) -> None:
        self._host = host
        self._cycle = cycle
        self._settings = settings
        self._registry = registry
        self._bus = bus
        self._run_timeout = run_timeout
        self._require_network = require_network
        self._config: PollingConfiguration | None = None

    @property
    def config(self) -> PollingConfiguration | None:
        return self._config

    @property
    def state(self) -> PollerState:
        job = self._host.job(JOB_NAME)
        if job is None or job.state is JobState.CANCELLED:
            return PollerState.IDLE
        if job.state is JobState.FAILED:
            return PollerState.FAILED
        if job.state is JobState.RUNNING:
            return PollerState.RUNNING
        return PollerState.SCHEDULED

    async def start(self, config: PollingConfiguration) -> None:
        """Make polling the active service, persist config, (re)register the job."""
        await self._registry.set_active(ActiveService.POLLING)
        await self._settings.save_polling(config, enabled=True)
        await self._schedule(config)
        logger.info(
            f"Started polling for notifications at {config.feed_url} "
            f"every {config.interval_minutes} minutes"
        )

    async def stop(self) -> None:
        """Cancel the job. Persisted state is cleared only if polling owns it."""
        await self.cancel()
        active = await self._registry.get_active()
        if active in (ActiveService.POLLING, ActiveService.NONE):
            await self._settings.set_polling_enabled(False)
            await self._registry.release(ActiveService.POLLING)
        logger.info("Stopped polling for notifications")

    async def cancel(self) -> None:
        """Cancel the job without touching persisted state."""
        if await self._host.cancel_recurring(JOB_NAME):
            logger.debug(f"Cancelled {JOB_NAME}")
        self._config = None

    async def restore(self) -> bool:
        """Re-register from persisted settings after a restart."""
        if not await self._settings.polling_enabled():
            return False
        if not await self._registry.is_active(ActiveService.POLLING):
            return False
        config = await self._settings.polling_configuration()
        if config is None:
            logger.warning("Polling enabled but no URL persisted, not restoring")
            return False
        await self._schedule(config)
        logger.info(f"Restored polling of {config.feed_url}")
        return True

    async def run_once(
        self,
        config: PollingConfiguration,
        token: CancellationToken | None = None,
    ) -> CycleOutcome:
        if not await self._registry.is_active(ActiveService.POLLING):
            logger.info("Polling is not the active service, skipping cycle")
            if self._bus is not None:
                await self._bus.emit(
                    Event(
                        type=EventType.CYCLE_SKIPPED,
                        source="polling",
                        data={"url": config.feed_url},
                    )
                )
            return CycleOutcome.SUCCESS
        return await self._cycle.run(config.feed_url, token, source="polling")

    async def _schedule(self, config: PollingConfiguration) -> None:
        self._config = config

        async def job(token: CancellationToken) -> CycleOutcome:
            return await self.run_once(config, token)

        await self._host.schedule_recurring(
            JOB_NAME,
            config.interval_seconds,
            job,
            policy=ExistingJobPolicy.UPDATE,
            require_network=self._require_network,
            run_timeout=self._run_timeout,
        )
