"""
Events reported by cycles, deliveries and service switches.

Types are "category:action" strings so subscribers can listen to a whole
category with a pattern such as "notification:*".
"""

from __future__ import annotations

import fnmatch
import time
import uuid
from dataclasses import dataclass, field
from typing import Any


class EventType:
    SYSTEM_START = "system:start"
    SYSTEM_STOP = "system:stop"

    CYCLE_START = "cycle:start"
    CYCLE_COMPLETE = "cycle:complete"
    # A fire that found no active configuration or was superseded.
    CYCLE_SKIPPED = "cycle:skipped"

    NOTIFICATION_DELIVERED = "notification:delivered"
    # The image follow-up for an already shown notification.
    NOTIFICATION_UPDATED = "notification:updated"
    NOTIFICATION_FAILED = "notification:failed"

    SERVICE_CHANGED = "service:changed"

    ALL = "*"


def _new_event_id() -> str:
    return uuid.uuid4().hex[:16]


@dataclass(slots=True)
class Event:
    """
    One occurrence on the bus.

    `source` names the emitter ("polling", "foreground", "dispatcher",
    "runtime"). `parent_id` links follow-up events to the one that caused
    them, e.g. the deliveries of a cycle. Middleware may annotate
    `metadata`; subscribers read `data`.
    """

    type: str
    data: dict[str, Any] = field(default_factory=dict)
    source: str = ""
    id: str = field(default_factory=_new_event_id)
    timestamp: float = field(default_factory=time.time)
    parent_id: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)

    @property
    def category(self) -> str:
        return self.type.partition(":")[0]

    def matches(self, pattern: str) -> bool:
        if pattern == EventType.ALL or pattern == self.type:
            return True
        return "*" in pattern and fnmatch.fnmatchcase(self.type, pattern)

    def child(self, event_type: str, data: dict[str, Any] | None = None) -> Event:
        return Event(type=event_type, data=dict(data or {}), source=self.source, parent_id=self.id)
