"""
Notification Master exception hierarchy.

Every error in the system inherits from NotificationMasterError.
Each subsystem has its own error class for targeted catching.

Usage:
    try:
        body = await client.fetch(url)
    except NetworkError as e:
        # Retryable: report CycleOutcome.RETRY
    except NotificationMasterError as e:
        # Handle any Notification Master error
"""


class NotificationMasterError(Exception):
    """Base exception for all Notification Master errors."""

    def __init__(self, message: str, details: dict | None = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)


# ━━━ Layer 0: Core Errors ━━━


class ConfigError(NotificationMasterError):
    """Configuration is invalid, missing, or malformed."""

    pass


class StorageError(NotificationMasterError):
    """The preference store could not be opened, read or written."""

    pass


# ━━━ Layer 1: Feed Errors ━━━


class NetworkError(NotificationMasterError):
    """
    The feed could not be fetched: unreachable host, timeout or non-2xx status.

    status_code is 0 when no HTTP response was received at all.
    """

    def __init__(
        self,
        message: str,
        url: str = "",
        status_code: int = 0,
        retryable: bool = True,
        details: dict | None = None,
    ):
        self.url = url
        self.status_code = status_code
        self.retryable = retryable
        super().__init__(message, details)


class ParseError(NotificationMasterError):
    """Feed body could not be decoded into notification records."""

    def __init__(
        self,
        message: str,
        body_preview: str = "",
        details: dict | None = None,
    ):
        self.body_preview = body_preview
        super().__init__(message, details)


# ━━━ Layer 2: Delivery Errors ━━━


class RenderError(NotificationMasterError):
    """The rendering capability rejected a notification."""

    def __init__(
        self,
        message: str,
        notification_id: int = -1,
        details: dict | None = None,
    ):
        self.notification_id = notification_id
        super().__init__(message, details)


class PermissionDeniedError(RenderError):
    """The host has not granted permission to post notifications."""

    pass


# ━━━ Layer 3: Scheduling Errors ━━━


class SchedulerError(NotificationMasterError):
    """A job was scheduled with arguments the host scheduler cannot honour."""

    pass


class CycleCancelled(NotificationMasterError):
    """A polling cycle was aborted because its cancellation token fired."""

    pass


# ━━━ Layer 4: RPC Errors ━━━


class MethodCallError(NotificationMasterError):
    """
    Failure surfaced to the host application through the plugin bridge.

    code is the stable, named error code the application matches on
    (e.g. "POLLING_ERROR", "NOT_IMPLEMENTED").
    """

    def __init__(
        self,
        code: str,
        message: str,
        details: dict | None = None,
    ):
        self.code = code
        super().__init__(message, details)


class ConfigurationError(MethodCallError):
    """A required RPC argument is missing, empty, or malformed."""

    pass
