"""
Notification Master — poll a notification feed and deliver what it says.

Public API:
    from notification_master import NotificationRuntime, NotificationMasterPlugin
"""

__version__ = "0.1.0"

# Core
from notification_master.core.runtime import NotificationRuntime
from notification_master.core.config import NotificationMasterConfig
from notification_master.core.events import Event, EventType
from notification_master.core.types import (
    ActiveService,
    CycleOutcome,
    NotificationRecord,
    PollingConfiguration,
)

# Delivery
from notification_master.delivery.base import NotificationRenderer

# RPC
from notification_master.plugin import MethodResponse, NotificationMasterPlugin

__all__ = [
    # Core
    "NotificationRuntime",
    "NotificationMasterConfig",
    "Event",
    "EventType",
    "ActiveService",
    "CycleOutcome",
    "NotificationRecord",
    "PollingConfiguration",
    # Delivery
    "NotificationRenderer",
    # RPC
    "NotificationMasterPlugin",
    "MethodResponse",
]
