"""
Host scheduler — the background-work capability the runners sit on.

Two concurrency domains:

- Recurring jobs. One asyncio task per job name, so a job never overlaps
  itself. Fires immediately on registration, then reschedules per
  CycleOutcome:
      SUCCESS        → wait the interval
      RETRY          → wait initial_backoff * attempt (linear, capped)
      FATAL_FAILURE  → job is FAILED; nothing fires until rescheduled
  A job that requires the network is deferred while the probe says offline.
  Each run gets a CancellationToken that fires after run_timeout.

- Fixed-delay loops (foreground session). Run body, sleep delay, repeat.
  A body that raises is logged and the loop carries on.

Sleeping is injectable so tests can drive time by hand.
"""

from __future__ import annotations

import asyncio
import logging
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Awaitable, Callable

import httpx

from notification_master.core.errors import CycleCancelled, SchedulerError
from notification_master.core.types import CycleOutcome
from notification_master.scheduler.cancellation import CancellationToken
from notification_master.scheduler.job import ExistingJobPolicy, JobState, ScheduledJob

logger = logging.getLogger(__name__)

JobFunc = Callable[[CancellationToken], Awaitable[CycleOutcome]]
LoopBody = Callable[[], Awaitable[None]]
NetworkProbe = Callable[[], Awaitable[bool]]
Sleep = Callable[[float], Awaitable[None]]


class HostScheduler(ABC):
    """Abstract background scheduler."""

    @abstractmethod
    async def schedule_recurring(
        self,
        name: str,
        interval_seconds: float,
        job: JobFunc,
        *,
        policy: ExistingJobPolicy = ExistingJobPolicy.UPDATE,
        require_network: bool = True,
        run_timeout: float | None = None,
    ) -> ScheduledJob:
        ...

    @abstractmethod
    async def cancel_recurring(self, name: str) -> bool:
        """Cancel a job. It never fires again until rescheduled."""
        ...

    @abstractmethod
    def job(self, name: str) -> ScheduledJob | None:
        ...

    @abstractmethod
    async def start_loop(self, name: str, delay_seconds: float, body: LoopBody) -> None:
        """Start (or replace) a fixed-delay loop."""
        ...

    @abstractmethod
    async def stop_loop(self, name: str) -> bool:
        ...

    @abstractmethod
    def is_looping(self, name: str) -> bool:
        ...

    @abstractmethod
    async def shutdown(self) -> None:
        """Cancel everything. Persisted state is not touched."""
        ...


@dataclass
class _JobHandle:
    record: ScheduledJob
    func: JobFunc
    task: asyncio.Task | None = None
    token: CancellationToken | None = None


class AsyncioHostScheduler(HostScheduler):
    """
    Usage:
        host = AsyncioHostScheduler(initial_backoff=30)
        await host.schedule_recurring("poll", 900, job)
        await host.start_loop("foreground", 900, body)
        ...
        await host.shutdown()
    """

    def __init__(
        self,
        initial_backoff: float = 30.0,
        max_backoff: float = 5 * 60 * 60,
        network_probe: NetworkProbe | None = None,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        self._initial_backoff = initial_backoff
        self._max_backoff = max_backoff
        self._network_probe = network_probe
        self._sleep = sleep
        self._jobs: dict[str, _JobHandle] = {}
        self._loops: dict[str, asyncio.Task] = {}

    # ── Recurring jobs ────────────────────────────────────────────────────────

    async def schedule_recurring(
        self,
        name: str,
        interval_seconds: float,
        job: JobFunc,
        *,
        policy: ExistingJobPolicy = ExistingJobPolicy.UPDATE,
        require_network: bool = True,
        run_timeout: float | None = None,
    ) -> ScheduledJob:
        if interval_seconds <= 0:
            raise SchedulerError(f"Interval for {name!r} must be positive, got {interval_seconds}")

        existing = self._jobs.get(name)
        if existing is not None and existing.record.live:
            if policy is ExistingJobPolicy.KEEP:
                logger.debug(f"Job {name!r} already scheduled, keeping it")
                return existing.record
        if existing is not None:
            await self.cancel_recurring(name)

        handle = _JobHandle(
            record=ScheduledJob(
                name=name,
                interval_seconds=interval_seconds,
                require_network=require_network,
                run_timeout=run_timeout,
            ),
            func=job,
        )
        self._jobs[name] = handle
        handle.task = asyncio.create_task(self._run_job(handle), name=f"job:{name}")
        logger.info(f"Scheduled {name!r} every {interval_seconds:g}s")
        return handle.record

    async def cancel_recurring(self, name: str) -> bool:
        handle = self._jobs.pop(name, None)
        if handle is None:
            return False
        handle.record.state = JobState.CANCELLED
        if handle.token is not None:
            handle.token.cancel("job cancelled")
        await _cancel_task(handle.task)
        logger.info(f"Cancelled {name!r}")
        return True

    def job(self, name: str) -> ScheduledJob | None:
        handle = self._jobs.get(name)
        return handle.record if handle else None

    @property
    def jobs(self) -> list[ScheduledJob]:
        return [h.record for h in self._jobs.values()]

    async def _run_job(self, handle: _JobHandle) -> None:
        record = handle.record
        while True:
            if record.require_network and not await self._network_available():
                record.state = JobState.WAITING_FOR_NETWORK
                delay = min(record.interval_seconds, self._initial_backoff)
                logger.debug(f"Job {record.name!r} waiting for network, recheck in {delay:g}s")
                record.next_run = time.time() + delay
                await self._sleep(delay)
                continue

            record.state = JobState.RUNNING
            outcome = await self._fire(handle)
            record.run_count += 1
            record.last_outcome = outcome
            record.last_run = time.time()

            if outcome is CycleOutcome.FATAL_FAILURE:
                record.state = JobState.FAILED
                logger.error(f"Job {record.name!r} failed; suspended until rescheduled")
                return

            if outcome is CycleOutcome.RETRY:
                record.retry_attempt += 1
                delay = min(self._initial_backoff * record.retry_attempt, self._max_backoff)
                logger.info(f"Job {record.name!r} retry #{record.retry_attempt} in {delay:g}s")
            else:
                record.retry_attempt = 0
                delay = record.interval_seconds

            record.state = JobState.SCHEDULED
            record.next_run = time.time() + delay
            await self._sleep(delay)

    async def _fire(self, handle: _JobHandle) -> CycleOutcome:
        token = CancellationToken()
        handle.token = token
        timer = None
        if handle.record.run_timeout:
            timer = asyncio.get_running_loop().call_later(
                handle.record.run_timeout, token.cancel, "run timeout expired"
            )
        try:
            return await handle.func(token)
        except CycleCancelled as e:
            logger.warning(f"Job {handle.record.name!r} aborted: {e}")
            return CycleOutcome.RETRY
        except Exception as e:
            logger.error(f"Job {handle.record.name!r} raised: {e}", exc_info=e)
            return CycleOutcome.FATAL_FAILURE
        finally:
            if timer is not None:
                timer.cancel()
            handle.token = None

    async def _network_available(self) -> bool:
        if self._network_probe is None:
            return True
        try:
            return await self._network_probe()
        except Exception as e:
            logger.debug(f"Network probe failed: {e}")
            return False

    # ── Fixed-delay loops ─────────────────────────────────────────────────────

    async def start_loop(self, name: str, delay_seconds: float, body: LoopBody) -> None:
        if delay_seconds <= 0:
            raise SchedulerError(f"Delay for {name!r} must be positive, got {delay_seconds}")
        await self.stop_loop(name)
        self._loops[name] = asyncio.create_task(
            self._run_loop(name, delay_seconds, body), name=f"loop:{name}"
        )
        logger.info(f"Started loop {name!r} every {delay_seconds:g}s")

    async def stop_loop(self, name: str) -> bool:
        task = self._loops.pop(name, None)
        if task is None:
            return False
        await _cancel_task(task)
        logger.info(f"Stopped loop {name!r}")
        return True

    def is_looping(self, name: str) -> bool:
        task = self._loops.get(name)
        return task is not None and not task.done()

    async def _run_loop(self, name: str, delay_seconds: float, body: LoopBody) -> None:
        while True:
            try:
                await body()
            except Exception as e:
                logger.error(f"Error during {name!r} cycle: {e}", exc_info=e)
            await self._sleep(delay_seconds)

    # ── Lifecycle ─────────────────────────────────────────────────────────────

    async def shutdown(self) -> None:
        for name in list(self._jobs):
            await self.cancel_recurring(name)
        for name in list(self._loops):
            await self.stop_loop(name)


async def _cancel_task(task: asyncio.Task | None) -> None:
    """Cancel task and wait for it, unless it is the caller itself."""
    if task is None or task.done():
        return
    task.cancel()
    if task is asyncio.current_task():
        return
    try:
        await task
    except asyncio.CancelledError:
        pass


def http_probe(url: str, timeout: float = 5.0) -> NetworkProbe:
    """A NetworkProbe that reports online when url answers at all."""

    async def probe() -> bool:
        try:
            async with httpx.AsyncClient(timeout=timeout) as client:
                await client.head(url)
            return True
        except httpx.HTTPError:
            return False

    return probe
