"""
Rendering primitives — the NotificationRenderer ABC.

This is the boundary to whatever actually draws notifications (a desktop
notification daemon, a terminal, a log file, a mobile bridge). The
dispatcher owns ids and styles; a renderer only draws what it is told.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from notification_master.core.types import ChannelSpec, RenderRequest


class NotificationRenderer(ABC):
    """
    Abstract rendering capability.

    render() draws a new notification under request.id; update() redraws an
    existing one (image follow-up). Raise PermissionDeniedError when the host
    refuses to post, RenderError for any other rejection.
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """Short identifier, e.g. 'console', 'file'."""
        ...

    @property
    def is_active(self) -> bool:
        """Whether this renderer can currently show anything."""
        return True

    @property
    def is_interactive(self) -> bool:
        """
        Interactive renderers are seen by a person (console, desktop popup).
        The router prefers them over passive ones.
        """
        return False

    @abstractmethod
    async def render(self, request: RenderRequest) -> None:
        ...

    async def update(self, request: RenderRequest) -> None:
        """Redraw an existing notification. Defaults to a fresh render."""
        await self.render(request)

    async def cancel(self, notification_id: int) -> None:
        """Remove a notification (e.g. the foreground status notification)."""
        return None

    async def create_channel(self, channel: ChannelSpec) -> None:
        """Register a presentation channel with the host, if it has channels."""
        return None

    async def has_permission(self) -> bool:
        return True

    async def request_permission(self) -> bool:
        return await self.has_permission()
