"""
NotificationMasterPlugin — the method-call surface used by the host app.

Every method has an argument schema. Arguments are validated before any
work starts; a missing mandatory argument is reported with a named code
(INVALID_URL, INVALID_ACTIONS, INVALID_CHANNEL, INVALID_ARGUMENT) and is
never silently defaulted. Failures while doing the work are reported as
NOTIFICATION_ERROR, CHANNEL_ERROR, POLLING_ERROR or SERVICE_ERROR.

invoke() raises MethodCallError; handle() never raises and returns a
MethodResponse instead.
"""

from __future__ import annotations

import contextlib
import logging
import platform
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Awaitable, Callable, ClassVar, Iterator

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    ValidationError,
    ValidationInfo,
    field_validator,
)

from notification_master.core.errors import ConfigurationError, MethodCallError
from notification_master.core.types import (
    ActiveService,
    ChannelSpec,
    Importance,
    NotificationAction,
    PollingConfiguration,
)
from notification_master.feed.client import validate_feed_url

if TYPE_CHECKING:
    from notification_master.core.runtime import NotificationRuntime

logger = logging.getLogger(__name__)

Handler = Callable[[dict[str, Any]], Awaitable[Any]]


@dataclass(slots=True)
class MethodResponse:
    ok: bool
    result: Any = None
    error_code: str | None = None
    error_message: str | None = None

    def to_dict(self) -> dict[str, Any]:
        if self.ok:
            return {"ok": True, "result": self.result}
        return {"ok": False, "code": self.error_code, "message": self.error_message}


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Argument Schemas
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━


class MethodArgs(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    # alias of a field -> error code reported when it fails validation
    error_codes: ClassVar[dict[str, str]] = {}

    @classmethod
    def parse(cls, args: dict[str, Any] | None) -> MethodArgs:
        try:
            return cls.model_validate(args or {})
        except ValidationError as e:
            first = e.errors()[0]
            field = str(first["loc"][0]) if first["loc"] else ""
            code = cls.error_codes.get(field, "INVALID_ARGUMENT")
            raise ConfigurationError(code, f"Invalid {field or 'arguments'}: {first['msg']}") from e


class NotificationArgs(MethodArgs):
    title: str = "Notification"
    message: str = ""
    channel_id: str | None = Field(default=None, alias="channelId")
    priority: int = 0
    auto_cancel: bool = Field(default=True, alias="autoCancel")
    target_screen: str | None = Field(default=None, alias="targetScreen")
    extra_data: dict[str, Any] | None = Field(default=None, alias="extraData")

    @field_validator("title", mode="before")
    @classmethod
    def _default_title(cls, v: Any) -> Any:
        return "Notification" if v is None else v

    @field_validator("message", mode="before")
    @classmethod
    def _default_message(cls, v: Any) -> Any:
        return "" if v is None else v


class ShowNotificationArgs(NotificationArgs):
    id: int | None = None


class BigTextArgs(NotificationArgs):
    big_text: str = Field(default="", alias="bigText")

    @field_validator("big_text", mode="before")
    @classmethod
    def _default_big_text(cls, v: Any) -> Any:
        return "" if v is None else v


class ImageArgs(NotificationArgs):
    error_codes: ClassVar[dict[str, str]] = {"imageUrl": "INVALID_URL"}

    image_url: str | None = Field(default=None, alias="imageUrl")


class ActionArgs(NotificationArgs):
    error_codes: ClassVar[dict[str, str]] = {"actions": "INVALID_ACTIONS"}

    actions: list[dict[str, Any]] | None = None

    def parsed_actions(self) -> list[NotificationAction]:
        """Entries without both a title and a route are dropped."""
        parsed = []
        for entry in self.actions or []:
            title, route = entry.get("title"), entry.get("route")
            if isinstance(title, str) and isinstance(route, str) and title:
                parsed.append(NotificationAction(title=title, route=route))
        return parsed


class ChannelArgs(MethodArgs):
    error_codes: ClassVar[dict[str, str]] = {
        "channelId": "INVALID_CHANNEL",
        "channelName": "INVALID_CHANNEL",
    }

    channel_id: str | None = Field(default=None, alias="channelId")
    channel_name: str | None = Field(default=None, alias="channelName")
    channel_description: str = Field(default="", alias="channelDescription")
    importance: int = Importance.DEFAULT
    enable_lights: bool = Field(default=True, alias="enableLights")
    light_color: int = Field(default=0xFF0000FF, alias="lightColor")
    enable_vibration: bool = Field(default=True, alias="enableVibration")
    enable_sound: bool = Field(default=True, alias="enableSound")

    @field_validator("channel_description", mode="before")
    @classmethod
    def _default_description(cls, v: Any) -> Any:
        return "" if v is None else v

    @field_validator("importance", "light_color", mode="before")
    @classmethod
    def _int_or_default(cls, v: Any, info: ValidationInfo) -> Any:
        if v is None or isinstance(v, bool) or not isinstance(v, int):
            return cls.model_fields[info.field_name].default
        return v

    def to_spec(self) -> ChannelSpec:
        try:
            importance = Importance(self.importance)
        except ValueError:
            importance = Importance.DEFAULT
        return ChannelSpec(
            id=self.channel_id or "",
            name=self.channel_name or "",
            description=self.channel_description,
            importance=importance,
            enable_lights=self.enable_lights,
            light_color=self.light_color,
            enable_vibration=self.enable_vibration,
            enable_sound=self.enable_sound,
        )


class PollingArgs(MethodArgs):
    error_codes: ClassVar[dict[str, str]] = {"pollingUrl": "INVALID_URL"}

    polling_url: str | None = Field(default=None, alias="pollingUrl")
    interval_minutes: int | None = Field(default=None, alias="intervalMinutes")
    channel_id: str | None = Field(default=None, alias="channelId")


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Plugin
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━


@contextlib.contextmanager
def _fail_as(code: str, action: str) -> Iterator[None]:
    try:
        yield
    except MethodCallError:
        raise
    except Exception as e:
        logger.error(f"Error {action}: {e}", exc_info=e)
        raise MethodCallError(code, str(e) or f"Error {action}") from e


class NotificationMasterPlugin:
    """
    Usage:
        plugin = NotificationMasterPlugin(runtime)
        nid = await plugin.invoke("showNotification", {"title": "Hi", "message": "…"})
        resp = await plugin.handle("startNotificationPolling", {"pollingUrl": ""})
        resp.error_code   # "INVALID_URL"
    """

    def __init__(self, runtime: NotificationRuntime) -> None:
        self._runtime = runtime
        self._methods: dict[str, Handler] = {
            "getPlatformVersion": self._get_platform_version,
            "requestNotificationPermission": self._request_permission,
            "checkNotificationPermission": self._check_permission,
            "showNotification": self._show_notification,
            "showBigTextNotification": self._show_big_text,
            "showImageNotification": self._show_image,
            "showNotificationWithActions": self._show_with_actions,
            "createCustomChannel": self._create_channel,
            "startNotificationPolling": self._start_polling,
            "stopNotificationPolling": self._stop_polling,
            "startForegroundService": self._start_foreground,
            "stopForegroundService": self._stop_foreground,
            "setFirebaseAsActiveService": self._set_external_push_active,
            "getActiveNotificationService": self._get_active_service,
        }

    @property
    def methods(self) -> list[str]:
        return list(self._methods)

    async def invoke(self, method: str, args: dict[str, Any] | None = None) -> Any:
        handler = self._methods.get(method)
        if handler is None:
            raise MethodCallError("NOT_IMPLEMENTED", f"Method {method!r} is not implemented")
        return await handler(args or {})

    async def handle(self, method: str, args: dict[str, Any] | None = None) -> MethodResponse:
        try:
            return MethodResponse(ok=True, result=await self.invoke(method, args))
        except MethodCallError as e:
            return MethodResponse(ok=False, error_code=e.code, error_message=e.message)

    # ── Platform & permission ─────────────────────────────────────────────────

    async def _get_platform_version(self, args: dict[str, Any]) -> str:
        return f"{platform.system()} {platform.release()}"

    async def _request_permission(self, args: dict[str, Any]) -> bool:
        with _fail_as("NOTIFICATION_ERROR", "requesting notification permission"):
            return await self._runtime.renderer.request_permission()

    async def _check_permission(self, args: dict[str, Any]) -> bool:
        with _fail_as("NOTIFICATION_ERROR", "checking notification permission"):
            return await self._runtime.renderer.has_permission()

    # ── Notifications ─────────────────────────────────────────────────────────

    async def _show_notification(self, args: dict[str, Any]) -> int:
        a = ShowNotificationArgs.parse(args)
        with _fail_as("NOTIFICATION_ERROR", "showing notification"):
            return await self._runtime.dispatcher.show(
                a.title,
                a.message,
                channel_id=a.channel_id,
                priority=a.priority,
                auto_cancel=a.auto_cancel,
                notification_id=a.id,
                target_route=a.target_screen,
                extra=a.extra_data,
            )

    async def _show_big_text(self, args: dict[str, Any]) -> int:
        a = BigTextArgs.parse(args)
        with _fail_as("NOTIFICATION_ERROR", "showing big text notification"):
            return await self._runtime.dispatcher.show(
                a.title,
                a.message,
                channel_id=a.channel_id,
                expanded_text=a.big_text or a.message,
                priority=a.priority,
                auto_cancel=a.auto_cancel,
                target_route=a.target_screen,
                extra=a.extra_data,
            )

    async def _show_image(self, args: dict[str, Any]) -> int:
        a = ImageArgs.parse(args)
        if not a.image_url:
            raise ConfigurationError("INVALID_URL", "Image URL cannot be null or empty")
        with _fail_as("NOTIFICATION_ERROR", "showing image notification"):
            return await self._runtime.dispatcher.show(
                a.title,
                a.message,
                channel_id=a.channel_id,
                image_url=a.image_url,
                priority=a.priority,
                auto_cancel=a.auto_cancel,
                target_route=a.target_screen,
                extra=a.extra_data,
            )

    async def _show_with_actions(self, args: dict[str, Any]) -> int:
        a = ActionArgs.parse(args)
        actions = a.parsed_actions()
        if not actions:
            raise ConfigurationError("INVALID_ACTIONS", "Actions cannot be null or empty")
        with _fail_as("NOTIFICATION_ERROR", "showing notification with actions"):
            return await self._runtime.dispatcher.show(
                a.title,
                a.message,
                channel_id=a.channel_id,
                actions=actions,
                priority=a.priority,
                auto_cancel=a.auto_cancel,
                target_route=a.target_screen,
                extra=a.extra_data,
            )

    async def _create_channel(self, args: dict[str, Any]) -> bool:
        a = ChannelArgs.parse(args)
        if not a.channel_id or not a.channel_name:
            raise ConfigurationError(
                "INVALID_CHANNEL", "Channel ID and name cannot be null or empty"
            )
        with _fail_as("CHANNEL_ERROR", "creating notification channel"):
            await self._runtime.dispatcher.create_channel(a.to_spec())
        return True

    # ── Background services ───────────────────────────────────────────────────

    def _polling_config(self, args: dict[str, Any]) -> tuple[PollingConfiguration, PollingArgs]:
        a = PollingArgs.parse(args)
        try:
            url = validate_feed_url(a.polling_url)
        except ValueError as e:
            raise ConfigurationError("INVALID_URL", f"Polling URL is invalid: {e}") from e
        interval = a.interval_minutes
        if interval is None:
            interval = self._runtime.config.polling.default_interval_minutes
        if interval < 1:
            raise ConfigurationError(
                "INVALID_ARGUMENT", f"intervalMinutes must be at least 1, got {interval}"
            )
        return PollingConfiguration(feed_url=url, interval_minutes=interval), a

    async def _start_polling(self, args: dict[str, Any]) -> bool:
        config, _ = self._polling_config(args)
        with _fail_as("POLLING_ERROR", "starting notification polling"):
            await self._runtime.poller.start(config)
        return True

    async def _stop_polling(self, args: dict[str, Any]) -> bool:
        with _fail_as("POLLING_ERROR", "stopping notification polling"):
            await self._runtime.poller.stop()
        return True

    async def _start_foreground(self, args: dict[str, Any]) -> bool:
        config, a = self._polling_config(args)
        with _fail_as("SERVICE_ERROR", "starting foreground service"):
            await self._runtime.foreground.start(config, channel_id=a.channel_id)
        return True

    async def _stop_foreground(self, args: dict[str, Any]) -> bool:
        with _fail_as("SERVICE_ERROR", "stopping foreground service"):
            await self._runtime.foreground.stop()
        return True

    async def _set_external_push_active(self, args: dict[str, Any]) -> bool:
        with _fail_as("SERVICE_ERROR", "setting Firebase as active service"):
            await self._runtime.registry.set_active(ActiveService.EXTERNAL_PUSH)
        return True

    async def _get_active_service(self, args: dict[str, Any]) -> str:
        with _fail_as("SERVICE_ERROR", "reading active notification service"):
            active = await self._runtime.registry.get_active()
        return active.label
