"""Tests for the plugin method surface."""

import platform

import pytest

from notification_master.core.errors import MethodCallError
from notification_master.core.types import ActiveService, DeliveryStyle, Importance
from notification_master.plugin import MethodResponse, NotificationMasterPlugin
from notification_master.scheduler.periodic import JOB_NAME

URL = "https://example.com/notifications.php"


@pytest.fixture
def plugin(runtime):
    return NotificationMasterPlugin(runtime)


def test_method_response_to_dict():
    assert MethodResponse(ok=True, result=3).to_dict() == {"ok": True, "result": 3}
    assert MethodResponse(ok=False, error_code="X", error_message="m").to_dict() == {
        "ok": False,
        "code": "X",
        "message": "m",
    }


@pytest.mark.asyncio
class TestDispatch:
    async def test_lists_every_method(self, plugin):
        assert len(plugin.methods) == 14
        assert "startForegroundService" in plugin.methods

    async def test_unknown_method(self, plugin):
        with pytest.raises(MethodCallError) as exc_info:
            await plugin.invoke("showHeadsUpNotification", {"title": "T"})
        assert exc_info.value.code == "NOT_IMPLEMENTED"

        response = await plugin.handle("showStyledNotification")
        assert response.ok is False
        assert response.error_code == "NOT_IMPLEMENTED"

    async def test_platform_version(self, plugin):
        version = await plugin.invoke("getPlatformVersion")
        assert version.startswith(platform.system())


@pytest.mark.asyncio
class TestPermissions:
    async def test_granted(self, plugin):
        assert await plugin.invoke("checkNotificationPermission") is True
        assert await plugin.invoke("requestNotificationPermission") is True

    async def test_denied(self, plugin, renderer):
        renderer.permitted = False
        assert await plugin.invoke("checkNotificationPermission") is False

    async def test_failure_is_notification_error(self, plugin, runtime, monkeypatch):
        async def broken():
            raise RuntimeError("bridge gone")

        monkeypatch.setattr(runtime.renderer, "has_permission", broken)

        response = await plugin.handle("checkNotificationPermission")
        assert response.error_code == "NOTIFICATION_ERROR"


@pytest.mark.asyncio
class TestShowNotifications:
    async def test_show_notification(self, plugin, renderer):
        notification_id = await plugin.invoke(
            "showNotification",
            {"title": "Hello", "message": "World", "targetScreen": "/inbox", "extraData": {"k": "v"}},
        )

        request = renderer.rendered[-1]
        assert request.id == notification_id
        assert request.title == "Hello"
        assert request.target_route == "/inbox"
        assert request.extra == {"k": "v"}

    async def test_missing_title_defaults(self, plugin, renderer):
        await plugin.invoke("showNotification", {"title": None, "message": None})

        assert renderer.rendered[-1].title == "Notification"
        assert renderer.rendered[-1].message == ""

    async def test_explicit_id_replaces(self, plugin, renderer):
        first = await plugin.invoke("showNotification", {"id": 7, "title": "a"})
        second = await plugin.invoke("showNotification", {"id": 7, "title": "b"})
        assert first == second == 7

    async def test_permission_denied_still_returns_id(self, plugin, renderer):
        renderer.permitted = False
        response = await plugin.handle("showNotification", {"title": "a"})
        assert response.ok is True
        assert isinstance(response.result, int)

    async def test_render_failure_is_notification_error(self, plugin, renderer):
        renderer.fail_titles.add("bad")
        response = await plugin.handle("showNotification", {"title": "bad"})
        assert response.error_code == "NOTIFICATION_ERROR"

    async def test_big_text_falls_back_to_message(self, plugin, renderer):
        await plugin.invoke("showBigTextNotification", {"title": "T", "message": "short"})

        request = renderer.rendered[-1]
        assert request.style is DeliveryStyle.BIG_TEXT
        assert request.expanded_text == "short"

    async def test_big_text(self, plugin, renderer):
        await plugin.invoke("showBigTextNotification", {"title": "T", "message": "m", "bigText": "long"})
        assert renderer.rendered[-1].expanded_text == "long"

    @pytest.mark.parametrize("args", [{}, {"imageUrl": ""}, {"imageUrl": None}, {"imageUrl": 5}])
    async def test_image_requires_url(self, plugin, renderer, args):
        before = len(renderer.rendered)

        response = await plugin.handle("showImageNotification", {"title": "T", **args})

        assert response.error_code == "INVALID_URL"
        assert len(renderer.rendered) == before

    async def test_image_notification(self, plugin, runtime, renderer):
        notification_id = await plugin.invoke(
            "showImageNotification", {"title": "T", "imageUrl": "https://example.com/a.png"}
        )
        await runtime.dispatcher.drain()

        assert renderer.rendered[-1].style is DeliveryStyle.IMAGE
        assert renderer.updated[-1].id == notification_id

    @pytest.mark.parametrize(
        "actions",
        [None, [], "open", [{"title": "Open"}], [{"route": "/x"}]],
    )
    async def test_actions_required(self, plugin, renderer, actions):
        before = len(renderer.rendered)

        response = await plugin.handle("showNotificationWithActions", {"title": "T", "actions": actions})

        assert response.error_code == "INVALID_ACTIONS"
        assert len(renderer.rendered) == before

    async def test_actions_notification(self, plugin, renderer):
        await plugin.invoke(
            "showNotificationWithActions",
            {
                "title": "T",
                "actions": [{"title": "Open", "route": "/open"}, {"title": "Broken"}],
            },
        )

        request = renderer.rendered[-1]
        assert request.style is DeliveryStyle.ACTIONS
        assert [a.title for a in request.actions] == ["Open"]


@pytest.mark.asyncio
class TestChannels:
    async def test_create_channel(self, plugin, runtime, renderer):
        result = await plugin.invoke(
            "createCustomChannel",
            {"channelId": "promo", "channelName": "Promotions", "importance": Importance.SILENT},
        )

        assert result is True
        assert renderer.channels[-1].id == "promo"
        assert renderer.channels[-1].importance is Importance.LOW
        assert renderer.channels[-1].enable_sound is False
        assert "promo" in runtime.dispatcher.channels

    async def test_bad_importance_defaults(self, plugin, renderer):
        await plugin.invoke(
            "createCustomChannel",
            {"channelId": "c", "channelName": "C", "importance": "loud", "lightColor": None},
        )
        assert renderer.channels[-1].importance is Importance.DEFAULT
        assert renderer.channels[-1].light_color == 0xFF0000FF

    async def test_out_of_range_importance_defaults(self, plugin, renderer):
        await plugin.invoke("createCustomChannel", {"channelId": "c", "channelName": "C", "importance": 99})
        assert renderer.channels[-1].importance is Importance.DEFAULT

    @pytest.mark.parametrize(
        "args",
        [{"channelName": "C"}, {"channelId": "c"}, {"channelId": "", "channelName": "C"}],
    )
    async def test_id_and_name_required(self, plugin, args):
        response = await plugin.handle("createCustomChannel", args)
        assert response.error_code == "INVALID_CHANNEL"

    async def test_failure_is_channel_error(self, plugin, runtime, monkeypatch):
        async def broken(spec):
            raise RuntimeError("no channel support")

        monkeypatch.setattr(runtime.dispatcher, "create_channel", broken)

        response = await plugin.handle("createCustomChannel", {"channelId": "c", "channelName": "C"})
        assert response.error_code == "CHANNEL_ERROR"


@pytest.mark.asyncio
class TestPolling:
    async def test_start_polling(self, plugin, runtime, sleeper, eventually):
        assert await plugin.invoke("startNotificationPolling", {"pollingUrl": URL}) is True
        await eventually(lambda: sleeper.sleeping == 1)

        job = runtime.host.job(JOB_NAME)
        assert job.interval_seconds == 15 * 60
        assert await plugin.invoke("getActiveNotificationService") == "polling"

    @pytest.mark.parametrize("url", [None, "", "ftp://example.com/feed"])
    async def test_invalid_url_persists_nothing(self, plugin, runtime, url):
        response = await plugin.handle("startNotificationPolling", {"pollingUrl": url})

        assert response.error_code == "INVALID_URL"
        assert runtime.host.job(JOB_NAME) is None
        assert await runtime.settings.polling_configuration() is None
        assert await runtime.settings.polling_enabled() is False
        assert await runtime.registry.get_active() is ActiveService.NONE

    @pytest.mark.parametrize("interval", [0, -5, "often"])
    async def test_invalid_interval(self, plugin, runtime, interval):
        response = await plugin.handle(
            "startNotificationPolling", {"pollingUrl": URL, "intervalMinutes": interval}
        )

        assert response.error_code == "INVALID_ARGUMENT"
        assert runtime.host.job(JOB_NAME) is None

    async def test_stop_polling(self, plugin, runtime, sleeper, eventually):
        await plugin.invoke("startNotificationPolling", {"pollingUrl": URL, "intervalMinutes": 5})
        await eventually(lambda: sleeper.sleeping == 1)

        assert await plugin.invoke("stopNotificationPolling") is True

        assert runtime.host.job(JOB_NAME) is None
        assert await plugin.invoke("getActiveNotificationService") == "none"

    async def test_start_failure_is_polling_error(self, plugin, runtime, monkeypatch):
        async def broken(config):
            raise RuntimeError("scheduler unavailable")

        monkeypatch.setattr(runtime.poller, "start", broken)

        response = await plugin.handle("startNotificationPolling", {"pollingUrl": URL})
        assert response.error_code == "POLLING_ERROR"
        assert response.error_message == "scheduler unavailable"


@pytest.mark.asyncio
class TestForeground:
    async def test_start_and_stop(self, plugin, runtime, renderer, sleeper, eventually):
        assert await plugin.invoke(
            "startForegroundService", {"pollingUrl": URL, "intervalMinutes": 10}
        ) is True
        await eventually(lambda: sleeper.sleeping == 1)

        assert await plugin.invoke("getActiveNotificationService") == "foreground"
        assert renderer.rendered[0].message == "Checking for notifications every 10 minutes"

        assert await plugin.invoke("stopForegroundService") is True
        assert await plugin.invoke("getActiveNotificationService") == "none"
        assert renderer.cancelled == [renderer.rendered[0].id]

    async def test_invalid_url(self, plugin, runtime):
        response = await plugin.handle("startForegroundService", {"pollingUrl": ""})

        assert response.error_code == "INVALID_URL"
        assert runtime.foreground.config is None

    async def test_switch_from_polling(self, plugin, runtime, sleeper, eventually):
        await plugin.invoke("startNotificationPolling", {"pollingUrl": URL})
        await eventually(lambda: sleeper.sleeping == 1)

        await plugin.invoke("startForegroundService", {"pollingUrl": URL})
        await eventually(lambda: sleeper.sleeping == 1)

        assert runtime.host.job(JOB_NAME) is None
        assert await plugin.invoke("getActiveNotificationService") == "foreground"

    async def test_start_failure_is_service_error(self, plugin, runtime, monkeypatch):
        async def broken(config, channel_id=None):
            raise RuntimeError("cannot start")

        monkeypatch.setattr(runtime.foreground, "start", broken)

        response = await plugin.handle("startForegroundService", {"pollingUrl": URL})
        assert response.error_code == "SERVICE_ERROR"


@pytest.mark.asyncio
class TestExternalPush:
    async def test_initially_none(self, plugin):
        assert await plugin.invoke("getActiveNotificationService") == "none"

    async def test_set_firebase_stops_polling(self, plugin, runtime, sleeper, eventually):
        await plugin.invoke("startNotificationPolling", {"pollingUrl": URL})
        await eventually(lambda: sleeper.sleeping == 1)

        assert await plugin.invoke("setFirebaseAsActiveService") is True

        assert runtime.host.job(JOB_NAME) is None
        assert await plugin.invoke("getActiveNotificationService") == "firebase"
        assert await runtime.settings.polling_enabled() is True
