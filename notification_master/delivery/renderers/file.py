"""
FileRenderer — always-on renderer that appends to a plain-text log.

Ensures every delivered notification leaves a record even when nothing
interactive is attached.
"""

from __future__ import annotations

import datetime
import logging
from pathlib import Path

from notification_master.core.errors import RenderError
from notification_master.core.types import DeliveryStyle, RenderRequest
from notification_master.delivery.base import NotificationRenderer

logger = logging.getLogger(__name__)


class FileRenderer(NotificationRenderer):
    """Appends notifications to ~/.notification_master/notifications.log."""

    def __init__(self, log_path: Path | None = None) -> None:
        self._log_path = (
            log_path or Path.home() / ".notification_master" / "notifications.log"
        ).expanduser()

    @property
    def name(self) -> str:
        return "file"

    @property
    def log_path(self) -> Path:
        return self._log_path

    async def render(self, request: RenderRequest) -> None:
        self._append(request, "shown")

    async def update(self, request: RenderRequest) -> None:
        self._append(request, "updated")

    async def cancel(self, notification_id: int) -> None:
        ts = datetime.datetime.now().strftime("%Y-%m-%d %H:%M:%S")
        self._write(f"[{ts}] #{notification_id} removed\n{'─' * 60}\n")

    def _append(self, request: RenderRequest, verb: str) -> None:
        ts = datetime.datetime.now().strftime("%Y-%m-%d %H:%M:%S")
        lines = [
            f"[{ts}] #{request.id} {verb} [{request.channel_id}] ({request.style.value})",
            request.title,
            request.message,
        ]
        if request.expanded_text:
            lines.append(request.expanded_text)
        if request.style is DeliveryStyle.IMAGE:
            state = "loading" if request.loading else (
                f"{len(request.image)} bytes" if request.image else "unavailable"
            )
            lines.append(f"image: {request.image_url} ({state})")
        for action in request.actions:
            lines.append(f"action: {action.title} -> {action.route}")
        self._write("\n".join(lines) + f"\n{'─' * 60}\n")

    def _write(self, entry: str) -> None:
        try:
            self._log_path.parent.mkdir(parents=True, exist_ok=True)
            with open(self._log_path, "a", encoding="utf-8") as f:
                f.write(entry)
        except OSError as e:
            raise RenderError(f"FileRenderer write failed: {e}") from e
