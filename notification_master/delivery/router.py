"""
RendererRouter — a NotificationRenderer that fans out to several renderers.

Routing:

    1. Try every active INTERACTIVE renderer (console, desktop popup, …).
    2. ALWAYS write to the passive renderers (file log).

A render is considered delivered when at least one renderer accepted it.
If every renderer failed the router raises RenderError so the dispatcher
can log and skip that record.
"""

from __future__ import annotations

import logging

from notification_master.core.errors import PermissionDeniedError, RenderError
from notification_master.core.types import ChannelSpec, RenderRequest
from notification_master.delivery.base import NotificationRenderer

logger = logging.getLogger(__name__)


class RendererRouter(NotificationRenderer):
    """
    Usage:
        router = RendererRouter()
        router.register(ConsoleRenderer(console))
        router.register(FileRenderer())

        await router.render(request)
    """

    def __init__(self) -> None:
        self._renderers: list[NotificationRenderer] = []

    @property
    def name(self) -> str:
        return "router"

    def register(self, renderer: NotificationRenderer) -> None:
        self._renderers.append(renderer)
        logger.debug(f"Renderer registered: {renderer.name}")

    def unregister(self, name: str) -> None:
        self._renderers = [r for r in self._renderers if r.name != name]

    @property
    def renderer_names(self) -> list[str]:
        return [r.name for r in self._renderers]

    @property
    def is_active(self) -> bool:
        return any(r.is_active for r in self._renderers)

    @property
    def is_interactive(self) -> bool:
        return any(r.is_interactive and r.is_active for r in self._renderers)

    async def render(self, request: RenderRequest) -> None:
        await self._fan_out(request, update=False)

    async def update(self, request: RenderRequest) -> None:
        await self._fan_out(request, update=True)

    async def cancel(self, notification_id: int) -> None:
        for renderer in self._targets():
            try:
                await renderer.cancel(notification_id)
            except Exception as e:
                logger.warning(f"Renderer {renderer.name} cancel failed: {e}")

    async def create_channel(self, channel: ChannelSpec) -> None:
        for renderer in self._renderers:
            await renderer.create_channel(channel)

    async def has_permission(self) -> bool:
        for renderer in self._targets():
            if await renderer.has_permission():
                return True
        return False

    async def request_permission(self) -> bool:
        granted = False
        for renderer in self._targets():
            granted = await renderer.request_permission() or granted
        return granted

    def _targets(self) -> list[NotificationRenderer]:
        interactive = [r for r in self._renderers if r.is_interactive and r.is_active]
        passive = [r for r in self._renderers if not r.is_interactive and r.is_active]
        return interactive + passive

    async def _fan_out(self, request: RenderRequest, update: bool) -> None:
        delivered = False
        denied = False
        for renderer in self._targets():
            try:
                if update:
                    await renderer.update(request)
                else:
                    await renderer.render(request)
                delivered = True
            except PermissionDeniedError as e:
                denied = True
                logger.warning(f"Renderer {renderer.name} denied #{request.id}: {e}")
            except Exception as e:
                logger.warning(f"Renderer {renderer.name} failed #{request.id}: {e}")

        if not delivered:
            if denied:
                raise PermissionDeniedError(
                    "Notification permission denied by every renderer",
                    notification_id=request.id,
                )
            raise RenderError(
                f"No renderer accepted notification #{request.id}",
                notification_id=request.id,
            )
