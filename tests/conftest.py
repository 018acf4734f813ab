"""Shared test fixtures for Notification Master."""

import asyncio

import httpx
import pytest
import pytest_asyncio

from notification_master.core.bus import EventBus
from notification_master.core.config import NotificationMasterConfig
from notification_master.core.runtime import NotificationRuntime
from notification_master.core.errors import PermissionDeniedError, RenderError
from notification_master.core.types import ChannelSpec, RenderRequest
from notification_master.delivery.base import NotificationRenderer
from notification_master.delivery.dispatcher import DeliveryDispatcher
from notification_master.feed.client import FeedClient
from notification_master.feed.parser import FeedParser
from notification_master.scheduler.cycle import PollingCycle
from notification_master.scheduler.host import AsyncioHostScheduler
from notification_master.services.registry import ActiveServiceRegistry
from notification_master.store.memory import InMemoryStorage
from notification_master.store.settings import Settings


class FakeRenderer(NotificationRenderer):
    """Records everything it is asked to draw."""

    def __init__(self, *, permitted: bool = True, fail_titles: tuple[str, ...] = ()) -> None:
        self.permitted = permitted
        self.fail_titles = set(fail_titles)
        self.rendered: list[RenderRequest] = []
        self.updated: list[RenderRequest] = []
        self.cancelled: list[int] = []
        self.channels: list[ChannelSpec] = []

    @property
    def name(self) -> str:
        return "fake"

    async def render(self, request: RenderRequest) -> None:
        if not self.permitted:
            raise PermissionDeniedError("not allowed", notification_id=request.id)
        if request.title in self.fail_titles:
            raise RenderError("rejected", notification_id=request.id)
        self.rendered.append(request)

    async def update(self, request: RenderRequest) -> None:
        self.updated.append(request)

    async def cancel(self, notification_id: int) -> None:
        self.cancelled.append(notification_id)

    async def create_channel(self, channel: ChannelSpec) -> None:
        self.channels.append(channel)

    async def has_permission(self) -> bool:
        return self.permitted

    @property
    def titles(self) -> list[str]:
        return [r.title for r in self.rendered]


class ManualSleep:
    """Stands in for asyncio.sleep; every sleeper waits until advance()."""

    def __init__(self) -> None:
        self.delays: list[float] = []
        self._waiters: list[asyncio.Future] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)
        waiter = asyncio.get_running_loop().create_future()
        self._waiters.append(waiter)
        await waiter

    @property
    def sleeping(self) -> int:
        return sum(1 for w in self._waiters if not w.done())

    def advance(self) -> None:
        waiters, self._waiters = self._waiters, []
        for waiter in waiters:
            if not waiter.done():
                waiter.set_result(None)


class FeedServer:
    """httpx.MockTransport handler serving a scripted list of responses."""

    def __init__(self, *responses: httpx.Response | Exception) -> None:
        self.responses = list(responses)
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if not self.responses:
            return httpx.Response(200, json={"notifications": []})
        item = self.responses.pop(0) if len(self.responses) > 1 else self.responses[0]
        if isinstance(item, Exception):
            raise item
        return item

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self)


@pytest.fixture
def config():
    """Create a default config without loading from disk."""
    return NotificationMasterConfig(storage={"backend": "memory"})


@pytest.fixture
def bus():
    return EventBus()


@pytest.fixture
def storage():
    return InMemoryStorage()


@pytest.fixture
def settings(storage):
    return Settings(storage)


@pytest.fixture
def registry(settings, bus):
    return ActiveServiceRegistry(settings, bus)


@pytest.fixture
def renderer():
    return FakeRenderer()


@pytest.fixture
def make_renderer():
    return FakeRenderer


@pytest.fixture
def sleeper():
    return ManualSleep()


@pytest.fixture
def feed_server():
    return FeedServer()


@pytest.fixture
def eventually():
    """Wait (briefly, in real time) until predicate() is true."""

    async def wait(predicate, timeout: float = 2.0) -> None:
        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout
        while not predicate():
            if loop.time() > deadline:
                raise AssertionError("condition not reached in time")
            await asyncio.sleep(0.005)

    return wait


@pytest.fixture
def dispatcher(renderer, bus):
    return DeliveryDispatcher(renderer, bus=bus)


@pytest.fixture
def cycle(feed_server, dispatcher, bus):
    """A real fetch → parse → deliver pass against the scripted feed_server."""
    return PollingCycle(
        FeedClient(transport=feed_server.transport), FeedParser(), dispatcher, bus=bus
    )


@pytest_asyncio.fixture
async def host(sleeper):
    """Host scheduler driven by the manual sleeper; shut down after the test."""
    scheduler = AsyncioHostScheduler(initial_backoff=30, max_backoff=70, sleep=sleeper)
    yield scheduler
    await scheduler.shutdown()


@pytest_asyncio.fixture
async def runtime(config, renderer, feed_server, sleeper):
    """A started runtime: in-memory settings, scripted feed, manual time."""
    rt = NotificationRuntime(config, renderer, transport=feed_server.transport, sleep=sleeper)
    await rt.start()
    yield rt
    await rt.stop()
