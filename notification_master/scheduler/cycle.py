"""
PollingCycle — one fetch → parse → deliver pass over the feed.

Shared by the periodic poller and the foreground session. The outcome
tells the host scheduler what to do next:

    NetworkError (retryable), CycleCancelled  → RETRY
    NetworkError (bad url), ParseError, other → FATAL_FAILURE
    anything delivered, or nothing pending    → SUCCESS
"""

from __future__ import annotations

import logging
import time
from typing import TYPE_CHECKING

from notification_master.core.errors import CycleCancelled, NetworkError, ParseError
from notification_master.core.events import Event, EventType
from notification_master.core.types import CycleOutcome

if TYPE_CHECKING:
    from notification_master.core.bus import EventBus
    from notification_master.delivery.dispatcher import DeliveryDispatcher
    from notification_master.feed.client import FeedClient
    from notification_master.feed.parser import FeedParser
    from notification_master.scheduler.cancellation import CancellationToken

logger = logging.getLogger(__name__)


class PollingCycle:
    def __init__(
        self,
        client: FeedClient,
        parser: FeedParser,
        dispatcher: DeliveryDispatcher,
        bus: EventBus | None = None,
    ) -> None:
        self._client = client
        self._parser = parser
        self._dispatcher = dispatcher
        self._bus = bus

    async def run(
        self,
        url: str,
        token: CancellationToken | None = None,
        source: str = "cycle",
    ) -> CycleOutcome:
        started = time.time()
        delivered: list[int] = []
        await self._emit(EventType.CYCLE_START, source, url=url)

        try:
            if token is not None:
                token.raise_if_cancelled()
            body = await self._client.fetch(url, token)
            if token is not None:
                token.raise_if_cancelled()
            feed = self._parser.parse(body)
            if feed.diagnostic:
                logger.warning(f"Feed at {url} did not decode, delivering diagnostic")
            delivered = await self._dispatcher.deliver_all(feed.records, token)
            outcome = CycleOutcome.SUCCESS
        except CycleCancelled as e:
            logger.warning(f"Polling cycle cancelled: {e}")
            outcome = CycleOutcome.RETRY
        except NetworkError as e:
            logger.warning(f"Polling cycle network failure: {e}")
            outcome = CycleOutcome.RETRY if e.retryable else CycleOutcome.FATAL_FAILURE
        except ParseError as e:
            logger.error(f"Polling cycle parse failure: {e}")
            outcome = CycleOutcome.FATAL_FAILURE
        except Exception as e:
            logger.error(f"Error in polling cycle: {e}", exc_info=e)
            outcome = CycleOutcome.FATAL_FAILURE

        logger.info(
            f"Polling cycle {outcome.value}: {len(delivered)} notification(s) from {url}"
        )
        await self._emit(
            EventType.CYCLE_COMPLETE,
            source,
            url=url,
            outcome=outcome.value,
            delivered=len(delivered),
            duration=time.time() - started,
        )
        return outcome

    async def _emit(self, event_type: str, source: str, **data) -> None:
        if self._bus is not None:
            await self._bus.emit(Event(type=event_type, source=source, data=data))
