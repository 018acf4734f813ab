"""
Notification Master shared types.

Plain dataclasses and enums with no dependencies on the rest of the package,
so every layer can import them.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from enum import Enum, IntEnum
from typing import Any


DEFAULT_INTERVAL_MINUTES = 15


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Enums
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━


class ActiveService(IntEnum):
    """
    The single delivery mechanism currently authorized.

    Integer values match the persisted representation.
    """

    NONE = 0
    POLLING = 1
    FOREGROUND = 2
    EXTERNAL_PUSH = 3

    @property
    def label(self) -> str:
        """Name exposed over the plugin bridge."""
        return _SERVICE_LABELS[self]

    @classmethod
    def parse(cls, value: Any) -> ActiveService:
        """
        Decode a persisted value (int, numeric string, or label).

        Unknown values decode to NONE.
        """
        if isinstance(value, bool):
            return cls.NONE
        if isinstance(value, int):
            try:
                return cls(value)
            except ValueError:
                return cls.NONE
        if isinstance(value, str):
            text = value.strip().lower()
            if text.isdigit():
                return cls.parse(int(text))
            for service, label in _SERVICE_LABELS.items():
                if label == text or service.name.lower() == text:
                    return service
        return cls.NONE


_SERVICE_LABELS = {
    ActiveService.NONE: "none",
    ActiveService.POLLING: "polling",
    ActiveService.FOREGROUND: "foreground",
    ActiveService.EXTERNAL_PUSH: "firebase",
}


class CycleOutcome(str, Enum):
    """What a polling cycle reports back to the host scheduler."""

    SUCCESS = "success"
    RETRY = "retry"
    FATAL_FAILURE = "fatal_failure"


class DeliveryStyle(str, Enum):
    """How a notification is presented."""

    PLAIN = "plain"
    BIG_TEXT = "big_text"
    IMAGE = "image"
    ACTIONS = "actions"
    STATUS = "status"


class Importance(IntEnum):
    """Channel importance levels accepted over the bridge."""

    DEFAULT = 0
    HIGH = 1
    LOW = 2
    MIN = 3
    SILENT = 4


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Feed Types
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━


@dataclass(frozen=True, slots=True)
class NotificationRecord:
    """A single pending notification decoded from the feed."""

    title: str
    message: str
    expanded_text: str | None = None
    channel_hint: str | None = None
    image_url: str | None = None


@dataclass(slots=True)
class FeedResponse:
    """
    The decoded feed for one cycle.

    diagnostic is True when the body could not be decoded and the single
    record summarises the raw body instead.
    """

    records: list[NotificationRecord] = field(default_factory=list)
    diagnostic: bool = False

    @property
    def empty(self) -> bool:
        return not self.records


@dataclass(frozen=True, slots=True)
class PollingConfiguration:
    """Where and how often to poll."""

    feed_url: str
    interval_minutes: int = DEFAULT_INTERVAL_MINUTES

    def __post_init__(self) -> None:
        if self.interval_minutes < 1:
            raise ValueError("interval_minutes must be a positive integer")

    @property
    def interval_seconds(self) -> float:
        return self.interval_minutes * 60.0


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Delivery Types
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━


@dataclass(frozen=True, slots=True)
class ChannelSpec:
    """A notification channel (presentation category)."""

    id: str
    name: str
    description: str = ""
    importance: Importance = Importance.DEFAULT
    enable_lights: bool = True
    light_color: int = 0xFF0000FF
    enable_vibration: bool = True
    enable_sound: bool = True


@dataclass(frozen=True, slots=True)
class NotificationAction:
    """A button attached to a notification; route is opaque to this library."""

    title: str
    route: str


@dataclass(frozen=True, slots=True)
class RenderRequest:
    """
    Everything a renderer needs to draw (or redraw) one notification.

    The same id is reused for the image follow-up update.
    """

    id: int
    title: str
    message: str
    channel_id: str
    style: DeliveryStyle = DeliveryStyle.PLAIN
    expanded_text: str | None = None
    image_url: str | None = None
    image: bytes | None = None
    loading: bool = False
    actions: tuple[NotificationAction, ...] = ()
    priority: int = 0
    auto_cancel: bool = True
    ongoing: bool = False
    alert_once: bool = False
    target_route: str | None = None
    extra: dict[str, Any] = field(default_factory=dict)

    def with_image(self, image: bytes | None) -> RenderRequest:
        """Copy for the follow-up update: loading cleared, no second alert."""
        return replace(self, image=image, loading=False, alert_once=True)
