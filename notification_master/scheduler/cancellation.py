"""
CancellationToken — cooperative abort signal handed to a polling cycle.

The host scheduler fires the token when a run exceeds its time budget (the
equivalent of a background task's expiration handler) or when the job is
cancelled. The cycle checks it before each blocking step and races its
network fetch against it.
"""

from __future__ import annotations

import asyncio
from typing import Awaitable, TypeVar

from notification_master.core.errors import CycleCancelled

T = TypeVar("T")


class CancellationToken:
    """
    Usage:
        token = CancellationToken()
        loop.call_later(600, token.cancel, "run timeout")
        body = await token.run(client.fetch(url))   # raises CycleCancelled
    """

    def __init__(self) -> None:
        self._event = asyncio.Event()
        self._reason = ""

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    @property
    def reason(self) -> str:
        return self._reason

    def cancel(self, reason: str = "cancelled") -> None:
        if not self._event.is_set():
            self._reason = reason
            self._event.set()

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise CycleCancelled(f"Cycle aborted: {self._reason}")

    async def wait(self) -> None:
        await self._event.wait()

    async def run(self, aw: Awaitable[T]) -> T:
        """Await aw unless the token fires first, in which case abort it."""
        if self._event.is_set():
            if asyncio.iscoroutine(aw):
                aw.close()
            self.raise_if_cancelled()
        work = asyncio.ensure_future(aw)
        waiter = asyncio.ensure_future(self._event.wait())
        try:
            done, _ = await asyncio.wait(
                {work, waiter}, return_when=asyncio.FIRST_COMPLETED
            )
        except asyncio.CancelledError:
            work.cancel()
            raise
        finally:
            waiter.cancel()

        if work in done:
            return work.result()

        work.cancel()
        try:
            await work
        except (asyncio.CancelledError, Exception):
            pass
        raise CycleCancelled(f"Cycle aborted: {self._reason}")
