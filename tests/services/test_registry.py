"""Tests for the active-service registry."""

import pytest

from notification_master.core.events import EventType
from notification_master.core.types import ActiveService


@pytest.mark.asyncio
class TestActiveServiceRegistry:
    async def test_defaults_to_none(self, registry):
        assert await registry.get_active() is ActiveService.NONE

    async def test_set_active_persists(self, registry, settings):
        changed = await registry.set_active(ActiveService.POLLING)

        assert changed is True
        assert await settings.active_service() is ActiveService.POLLING
        assert await registry.is_active(ActiveService.POLLING)

    async def test_same_service_is_a_no_op(self, registry):
        calls = []

        async def deactivate():
            calls.append("polling")

        registry.register_deactivator(ActiveService.POLLING, deactivate)
        await registry.set_active(ActiveService.POLLING)

        changed = await registry.set_active(ActiveService.POLLING)

        assert changed is False
        assert calls == []

    async def test_switch_runs_previous_deactivator_once(self, registry):
        calls = []

        async def stop_polling():
            calls.append("polling")

        async def stop_foreground():
            calls.append("foreground")

        registry.register_deactivator(ActiveService.POLLING, stop_polling)
        registry.register_deactivator(ActiveService.FOREGROUND, stop_foreground)

        await registry.set_active(ActiveService.POLLING)
        await registry.set_active(ActiveService.FOREGROUND)
        await registry.set_active(ActiveService.EXTERNAL_PUSH)

        assert calls == ["polling", "foreground"]
        assert await registry.get_active() is ActiveService.EXTERNAL_PUSH

    async def test_release_only_clears_own_service(self, registry):
        await registry.set_active(ActiveService.FOREGROUND)

        assert await registry.release(ActiveService.POLLING) is False
        assert await registry.get_active() is ActiveService.FOREGROUND

        assert await registry.release(ActiveService.FOREGROUND) is True
        assert await registry.get_active() is ActiveService.NONE

    async def test_emits_service_changed(self, registry, bus):
        changes = []

        async def on_changed(event):
            changes.append((event.data["previous"], event.data["current"]))

        bus.on(EventType.SERVICE_CHANGED, on_changed)

        await registry.set_active(ActiveService.POLLING)
        await registry.set_active(ActiveService.POLLING)
        await registry.release(ActiveService.POLLING)

        assert changes == [("none", "polling"), ("polling", "none")]

    async def test_reads_legacy_label(self, registry, settings):
        await settings.set("active_notification_service", "firebase")
        assert await registry.get_active() is ActiveService.EXTERNAL_PUSH
