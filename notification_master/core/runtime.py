"""
NotificationRuntime — composes every subsystem into one object.

Owns the event bus, persisted settings, the active-service registry, the
feed client/parser, the delivery dispatcher, the host scheduler and both
runners. The plugin bridge and the CLI only ever talk to this.
"""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Any

import httpx
from rich.console import Console

from notification_master.core.bus import EventBus, EventHandler, MiddlewareFunc
from notification_master.core.config import NotificationMasterConfig
from notification_master.core.events import Event, EventType
from notification_master.core.types import ActiveService
from notification_master.delivery.base import NotificationRenderer
from notification_master.delivery.channels import BUILTIN_CHANNELS, ChannelRegistry
from notification_master.delivery.dispatcher import DeliveryDispatcher
from notification_master.delivery.images import ImageLoader
from notification_master.delivery.renderers.console import ConsoleRenderer
from notification_master.delivery.renderers.file import FileRenderer
from notification_master.delivery.router import RendererRouter
from notification_master.feed.client import FeedClient
from notification_master.feed.parser import FeedParser
from notification_master.scheduler.cycle import PollingCycle
from notification_master.scheduler.foreground import ForegroundSession
from notification_master.scheduler.host import (
    AsyncioHostScheduler,
    HostScheduler,
    NetworkProbe,
    Sleep,
    http_probe,
)
from notification_master.scheduler.periodic import JOB_NAME, PeriodicPoller
from notification_master.services.registry import ActiveServiceRegistry
from notification_master.store.base import StorageProvider
from notification_master.store.memory import InMemoryStorage
from notification_master.store.settings import Settings
from notification_master.store.sqlite import SQLiteStorage

logger = logging.getLogger(__name__)


def create_storage(config: NotificationMasterConfig) -> StorageProvider:
    if config.storage.backend == "memory":
        return InMemoryStorage()
    return SQLiteStorage(config.get_storage_path())


class NotificationRuntime:
    """
    Usage:
        runtime = NotificationRuntime(config, renderer=ConsoleRenderer())
        await runtime.start()          # restores whatever was active
        await runtime.poller.start(PollingConfiguration(url, 15))
        ...
        await runtime.stop()           # persisted state survives

    transport, sleep, network_probe and host are injectable for tests.
    """

    def __init__(
        self,
        config: NotificationMasterConfig | None = None,
        renderer: NotificationRenderer | None = None,
        storage: StorageProvider | None = None,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
        host: HostScheduler | None = None,
        sleep: Sleep = asyncio.sleep,
        network_probe: NetworkProbe | None = None,
    ) -> None:
        if renderer is None:
            raise ValueError("NotificationRuntime needs a renderer")
        self.config = config or NotificationMasterConfig.load()
        self.bus = EventBus()
        self.storage = storage or create_storage(self.config)
        self.settings = Settings(self.storage)
        self.registry = ActiveServiceRegistry(self.settings, self.bus)

        http = self.config.http
        self.client = FeedClient(
            connect_timeout=http.connect_timeout,
            read_timeout=http.read_timeout,
            user_agent=http.user_agent,
            follow_redirects=http.follow_redirects,
            transport=transport,
        )
        self.parser = FeedParser(
            policy=self.config.delivery.parse_failure_policy,
            body_limit=self.config.delivery.diagnostic_body_limit,
        )
        self.dispatcher = DeliveryDispatcher(
            renderer,
            channels=ChannelRegistry(self.config.delivery.default_channel_id),
            image_loader=ImageLoader(timeout=http.read_timeout, transport=transport),
            bus=self.bus,
        )
        self.cycle = PollingCycle(self.client, self.parser, self.dispatcher, self.bus)

        sched = self.config.scheduler
        if network_probe is None and sched.network_check_url:
            network_probe = http_probe(sched.network_check_url)
        self.host = host or AsyncioHostScheduler(
            initial_backoff=sched.initial_backoff_seconds,
            max_backoff=sched.max_backoff_seconds,
            network_probe=network_probe,
            sleep=sleep,
        )
        run_timeout = sched.run_timeout_seconds or None
        self.poller = PeriodicPoller(
            self.host, self.cycle, self.settings, self.registry, self.bus,
            run_timeout=run_timeout,
        )
        self.foreground = ForegroundSession(
            self.host, self.cycle, self.settings, self.registry, self.dispatcher, self.bus,
            run_timeout=run_timeout,
        )
        self.registry.register_deactivator(ActiveService.POLLING, self.poller.cancel)
        self.registry.register_deactivator(ActiveService.FOREGROUND, self.foreground.halt)

        self._running = False

    @classmethod
    def create(
        cls,
        config: NotificationMasterConfig | None = None,
        console: Console | None = None,
        **kwargs: Any,
    ) -> NotificationRuntime:
        """Build a runtime that renders to the notifications log, and to console if given."""
        config = config or NotificationMasterConfig.load()
        router = RendererRouter()
        console_renderer = ConsoleRenderer(console)
        console_renderer.set_active(console is not None)
        router.register(console_renderer)
        router.register(FileRenderer(Path(config.logging.notifications_log).expanduser()))
        return cls(config, router, **kwargs)

    # ━━━ Event Bus Shortcuts ━━━

    def on(self, event_type: str, handler: EventHandler) -> None:
        self.bus.on(event_type, handler)

    def off(self, event_type: str, handler: EventHandler) -> None:
        self.bus.off(event_type, handler)

    def use(self, middleware: MiddlewareFunc) -> None:
        self.bus.use(middleware)

    @property
    def renderer(self) -> NotificationRenderer:
        return self.dispatcher.renderer

    # ━━━ Lifecycle ━━━

    @property
    def running(self) -> bool:
        return self._running

    async def start(self, restore: bool = True) -> ActiveService:
        """
        Open storage, register the built-in channels, then bring back
        whichever service was active before the last shutdown.
        """
        if self._running:
            return await self.registry.get_active()
        await self.storage.initialize()
        for spec in BUILTIN_CHANNELS:
            await self.dispatcher.create_channel(spec)
        self._running = True
        logger.info("Notification runtime starting")
        await self.bus.emit(Event(type=EventType.SYSTEM_START, source="runtime"))

        if restore:
            return await self.restore()
        return await self.registry.get_active()

    async def restore(self) -> ActiveService:
        active = await self.registry.get_active()
        if active is ActiveService.POLLING:
            await self.poller.restore()
        elif active is ActiveService.FOREGROUND:
            await self.foreground.restore()
        return active

    async def stop(self) -> None:
        """Cancel in-process work. Persisted settings are left as they are."""
        if not self._running:
            return
        self._running = False
        logger.info("Notification runtime stopping")
        await self.foreground.halt()
        await self.host.shutdown()
        await self.dispatcher.aclose()
        await self.client.aclose()
        await self.bus.emit(Event(type=EventType.SYSTEM_STOP, source="runtime"))
        await self.storage.close()

    async def __aenter__(self) -> NotificationRuntime:
        await self.start()
        return self

    async def __aexit__(self, *exc: Any) -> None:
        await self.stop()

    async def status(self) -> dict[str, Any]:
        active = await self.registry.get_active()
        config = await self.settings.polling_configuration(
            self.config.polling.default_interval_minutes
        )
        job = self.host.job(JOB_NAME)
        return {
            "active_service": active.label,
            "polling_enabled": await self.settings.polling_enabled(),
            "polling_url": config.feed_url if config else None,
            "interval_minutes": config.interval_minutes if config else None,
            "poller": self.poller.state.value,
            "foreground": self.foreground.state.value,
            "job": job.to_dict() if job else None,
        }
