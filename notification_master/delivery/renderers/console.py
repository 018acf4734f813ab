"""
ConsoleRenderer — draws notifications as rich panels in the terminal.

Active only while a CLI session is attached (set_active(True) on start,
False on shutdown) so background-only runs fall through to the file log.
"""

from __future__ import annotations

from rich.console import Console
from rich.panel import Panel
from rich.text import Text

from notification_master.core.types import DeliveryStyle, RenderRequest
from notification_master.delivery.base import NotificationRenderer


class ConsoleRenderer(NotificationRenderer):
    """
    Usage:
        renderer = ConsoleRenderer(Console())
        renderer.set_active(True)
    """

    def __init__(self, console: Console | None = None) -> None:
        self._console = console or Console()
        self._active = False

    @property
    def name(self) -> str:
        return "console"

    @property
    def is_active(self) -> bool:
        return self._active

    @property
    def is_interactive(self) -> bool:
        return True

    def set_active(self, active: bool) -> None:
        self._active = active

    async def render(self, request: RenderRequest) -> None:
        self._console.print(self._panel(request))

    async def update(self, request: RenderRequest) -> None:
        # Status and image follow-ups only need a one-line note.
        if request.style is DeliveryStyle.IMAGE:
            state = "attached" if request.image else "could not be loaded"
            self._console.print(f"[dim]#{request.id} image {state}[/dim]")
        else:
            self._console.print(self._panel(request))

    async def cancel(self, notification_id: int) -> None:
        self._console.print(f"[dim]#{notification_id} dismissed[/dim]")

    @staticmethod
    def _panel(request: RenderRequest) -> Panel:
        body = Text(request.message)
        if request.expanded_text:
            body.append("\n\n")
            body.append(request.expanded_text, style="italic")
        if request.style is DeliveryStyle.IMAGE:
            body.append(f"\n\n🖼  {request.image_url}", style="dim")
        for action in request.actions:
            body.append(f"\n[{action.title}]", style="bold cyan")

        border = "yellow" if request.ongoing else "cyan"
        return Panel(
            body,
            title=f"[bold]{request.title}[/bold]",
            subtitle=f"#{request.id} · {request.channel_id}",
            border_style=border,
        )
