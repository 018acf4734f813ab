"""
ChannelRegistry — the notification channels known to this process.

Three channels exist from the start (default, high priority, silent).
A feed record's channel hint is honoured only when it names a registered
channel; anything else falls back to the default channel.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace

from notification_master.core.types import ChannelSpec, Importance

logger = logging.getLogger(__name__)

DEFAULT_CHANNEL_ID = "notification_master_default_channel"
HIGH_PRIORITY_CHANNEL_ID = "notification_master_high_priority_channel"
SILENT_CHANNEL_ID = "notification_master_silent_channel"
SERVICE_CHANNEL_ID = "notification_master_service_channel"

BUILTIN_CHANNELS = (
    ChannelSpec(
        id=DEFAULT_CHANNEL_ID,
        name="Default Channel",
        description="Default notification channel",
        importance=Importance.DEFAULT,
        light_color=0xFF0000FF,
    ),
    ChannelSpec(
        id=HIGH_PRIORITY_CHANNEL_ID,
        name="High Priority Channel",
        description="Channel for important notifications",
        importance=Importance.HIGH,
        light_color=0xFFFF0000,
    ),
    ChannelSpec(
        id=SILENT_CHANNEL_ID,
        name="Silent Channel",
        description="Channel for silent notifications",
        importance=Importance.SILENT,
        enable_lights=False,
        enable_vibration=False,
        enable_sound=False,
    ),
    ChannelSpec(
        id=SERVICE_CHANNEL_ID,
        name="Notification Service",
        description="Channel for notification service",
        importance=Importance.LOW,
        enable_lights=False,
        enable_vibration=False,
        enable_sound=False,
    ),
)


@dataclass(frozen=True, slots=True)
class EffectiveChannel:
    """A channel after importance mapping. Renderers honour this, not the raw spec."""

    spec: ChannelSpec
    importance: Importance
    sound: bool

    def to_spec(self) -> ChannelSpec:
        """The channel as a renderer should create it."""
        return replace(self.spec, importance=self.importance, enable_sound=self.sound)


def resolve_importance(spec: ChannelSpec) -> EffectiveChannel:
    """SILENT is not a host tier of its own: it becomes LOW with sound off."""
    if spec.importance is Importance.SILENT:
        return EffectiveChannel(spec=spec, importance=Importance.LOW, sound=False)
    return EffectiveChannel(spec=spec, importance=spec.importance, sound=spec.enable_sound)


class ChannelRegistry:
    def __init__(self, default_channel_id: str = DEFAULT_CHANNEL_ID) -> None:
        self._channels: dict[str, ChannelSpec] = {c.id: c for c in BUILTIN_CHANNELS}
        if default_channel_id not in self._channels:
            self._channels[default_channel_id] = ChannelSpec(
                id=default_channel_id, name="Default Channel"
            )
        self._default_id = default_channel_id

    @property
    def default_id(self) -> str:
        return self._default_id

    def register(self, spec: ChannelSpec) -> EffectiveChannel:
        """Add or replace a channel."""
        self._channels[spec.id] = spec
        logger.debug(f"Channel registered: {spec.id} ({spec.importance.name})")
        return resolve_importance(spec)

    def get(self, channel_id: str) -> ChannelSpec | None:
        return self._channels.get(channel_id)

    def __contains__(self, channel_id: object) -> bool:
        return channel_id in self._channels

    def resolve(self, hint: str | None) -> str:
        """The channel a notification with this hint should be posted to."""
        if hint and hint in self._channels:
            return hint
        if hint:
            logger.debug(f"Unregistered channel hint {hint!r}, using default")
        return self._default_id

    @property
    def channel_ids(self) -> list[str]:
        return list(self._channels)
