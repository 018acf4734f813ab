"""
DeliveryDispatcher — turns records into render requests and posts them.

Style selection per record:
    image_url present       → IMAGE: placeholder now, picture later
    expanded_text present   → BIG_TEXT
    otherwise               → PLAIN

Ids come from one process-wide monotonic counter, so two deliveries can
never share an id. A caller-chosen id moves the counter past it. Image
follow-ups run as detached tasks on the same id; the cycle that produced
them never waits for them.
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING, Any, Iterable, Sequence

from notification_master.core.errors import PermissionDeniedError, RenderError
from notification_master.core.events import Event, EventType
from notification_master.core.types import (
    ChannelSpec,
    DeliveryStyle,
    NotificationAction,
    NotificationRecord,
    RenderRequest,
)
from notification_master.delivery.channels import ChannelRegistry, EffectiveChannel

if TYPE_CHECKING:
    from notification_master.core.bus import EventBus
    from notification_master.delivery.base import NotificationRenderer
    from notification_master.delivery.images import ImageLoader
    from notification_master.scheduler.cancellation import CancellationToken

logger = logging.getLogger(__name__)


def select_style(record: NotificationRecord) -> DeliveryStyle:
    if record.image_url:
        return DeliveryStyle.IMAGE
    if record.expanded_text:
        return DeliveryStyle.BIG_TEXT
    return DeliveryStyle.PLAIN


class DeliveryDispatcher:
    """
    Usage:
        dispatcher = DeliveryDispatcher(renderer, image_loader=ImageLoader())
        ids = await dispatcher.deliver_all(feed.records)
        await dispatcher.drain()      # wait for image follow-ups
    """

    def __init__(
        self,
        renderer: NotificationRenderer,
        channels: ChannelRegistry | None = None,
        image_loader: ImageLoader | None = None,
        bus: EventBus | None = None,
        first_id: int = 1,
    ) -> None:
        self._renderer = renderer
        self._channels = channels or ChannelRegistry()
        self._images = image_loader
        self._bus = bus
        self._next_id = first_id
        self._pending: set[asyncio.Task] = set()

    @property
    def renderer(self) -> NotificationRenderer:
        return self._renderer

    @property
    def channels(self) -> ChannelRegistry:
        return self._channels

    @property
    def pending_updates(self) -> int:
        return len(self._pending)

    def next_id(self) -> int:
        notification_id = self._next_id
        self._next_id += 1
        return notification_id

    def reserve_id(self, notification_id: int) -> int:
        """Claim a caller-chosen id so the counter never hands it out later."""
        self._next_id = max(self._next_id, notification_id + 1)
        return notification_id

    # ── Feed records ──────────────────────────────────────────────────────────

    async def deliver(self, record: NotificationRecord) -> int:
        """Post one record. Returns its id; raises RenderError on rejection."""
        return await self.show(
            record.title,
            record.message,
            channel_id=record.channel_hint,
            expanded_text=record.expanded_text,
            image_url=record.image_url,
        )

    async def deliver_all(
        self,
        records: Iterable[NotificationRecord],
        token: CancellationToken | None = None,
    ) -> list[int]:
        """
        Deliver in order. A record that fails to render is logged and skipped;
        the rest still go out. Raises CycleCancelled if the token fires.
        """
        ids: list[int] = []
        for record in records:
            if token is not None:
                token.raise_if_cancelled()
            try:
                ids.append(await self.deliver(record))
            except RenderError as e:
                logger.warning(f"Skipping notification {record.title!r}: {e}")
        return ids

    # ── Direct notifications ──────────────────────────────────────────────────

    async def show(
        self,
        title: str,
        message: str,
        *,
        channel_id: str | None = None,
        expanded_text: str | None = None,
        image_url: str | None = None,
        actions: Sequence[NotificationAction] = (),
        priority: int = 0,
        auto_cancel: bool = True,
        notification_id: int | None = None,
        target_route: str | None = None,
        extra: dict[str, Any] | None = None,
    ) -> int:
        if image_url:
            style = DeliveryStyle.IMAGE
        elif actions:
            style = DeliveryStyle.ACTIONS
        elif expanded_text:
            style = DeliveryStyle.BIG_TEXT
        else:
            style = DeliveryStyle.PLAIN

        request = RenderRequest(
            id=self.next_id() if notification_id is None else self.reserve_id(notification_id),
            title=title,
            message=message,
            channel_id=self._channels.resolve(channel_id),
            style=style,
            expanded_text=expanded_text,
            image_url=image_url,
            loading=style is DeliveryStyle.IMAGE,
            actions=tuple(actions),
            priority=priority,
            auto_cancel=auto_cancel,
            target_route=target_route,
            extra=dict(extra or {}),
        )
        await self._post(request)

        if style is DeliveryStyle.IMAGE:
            self._spawn_image_update(request)
        return request.id

    async def show_status(self, title: str, message: str, channel_id: str) -> int:
        """Post an ongoing, non-dismissable status notification."""
        request = RenderRequest(
            id=self.next_id(),
            title=title,
            message=message,
            channel_id=self._channels.resolve(channel_id),
            style=DeliveryStyle.STATUS,
            priority=-1,
            auto_cancel=False,
            ongoing=True,
        )
        await self._post(request)
        return request.id

    async def cancel(self, notification_id: int) -> None:
        await self._renderer.cancel(notification_id)

    async def create_channel(self, spec: ChannelSpec) -> EffectiveChannel:
        effective = self._channels.register(spec)
        await self._renderer.create_channel(effective.to_spec())
        return effective

    # ── Internals ─────────────────────────────────────────────────────────────

    async def _post(self, request: RenderRequest) -> None:
        try:
            await self._renderer.render(request)
        except PermissionDeniedError as e:
            # No permission is not a crash: the id is still handed back.
            logger.error(f"Permission error showing #{request.id}: {e}")
            await self._emit(EventType.NOTIFICATION_FAILED, request, error=str(e))
            return
        except Exception as e:
            await self._emit(EventType.NOTIFICATION_FAILED, request, error=str(e))
            if isinstance(e, RenderError):
                raise
            raise RenderError(
                f"Renderer {self._renderer.name} failed: {e}",
                notification_id=request.id,
            ) from e

        logger.debug(f"Notification #{request.id} posted ({request.style.value})")
        await self._emit(EventType.NOTIFICATION_DELIVERED, request)

    def _spawn_image_update(self, request: RenderRequest) -> None:
        task = asyncio.create_task(
            self._load_and_update(request), name=f"image-update-{request.id}"
        )
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def _load_and_update(self, request: RenderRequest) -> None:
        image: bytes | None = None
        if self._images is not None and request.image_url:
            try:
                image = await self._images.load(request.image_url)
            except Exception as e:
                logger.warning(f"Image load failed for #{request.id}: {e}")
        try:
            await self._renderer.update(request.with_image(image))
        except Exception as e:
            logger.error(f"Error updating #{request.id} with image: {e}")
            return
        await self._emit(EventType.NOTIFICATION_UPDATED, request, image=image is not None)

    async def _emit(self, event_type: str, request: RenderRequest, **data: Any) -> None:
        if self._bus is None:
            return
        await self._bus.emit(
            Event(
                type=event_type,
                source="dispatcher",
                data={
                    "id": request.id,
                    "title": request.title,
                    "channel_id": request.channel_id,
                    "style": request.style.value,
                    **data,
                },
            )
        )

    async def drain(self) -> None:
        """Wait for every detached image update to finish."""
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    async def aclose(self) -> None:
        for task in list(self._pending):
            task.cancel()
        if self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)
        if self._images is not None:
            await self._images.aclose()
