"""Tests for the delivery dispatcher."""

import asyncio

import httpx
import pytest

from notification_master.core.errors import CycleCancelled, RenderError
from notification_master.core.events import EventType
from notification_master.core.types import (
    ChannelSpec,
    DeliveryStyle,
    Importance,
    NotificationAction,
    NotificationRecord,
)
from notification_master.delivery.channels import (
    DEFAULT_CHANNEL_ID,
    HIGH_PRIORITY_CHANNEL_ID,
    SERVICE_CHANNEL_ID,
)
from notification_master.delivery.dispatcher import DeliveryDispatcher, select_style
from notification_master.delivery.images import ImageLoader
from notification_master.scheduler.cancellation import CancellationToken


def _image_loader(status: int = 200, content: bytes = b"\x89PNG") -> ImageLoader:
    return ImageLoader(
        transport=httpx.MockTransport(lambda request: httpx.Response(status, content=content))
    )


def test_select_style():
    assert select_style(NotificationRecord("T", "M")) is DeliveryStyle.PLAIN
    assert select_style(NotificationRecord("T", "M", expanded_text="B")) is DeliveryStyle.BIG_TEXT
    assert (
        select_style(NotificationRecord("T", "M", expanded_text="B", image_url="https://x/a.png"))
        is DeliveryStyle.IMAGE
    )


@pytest.mark.asyncio
class TestDeliver:
    async def test_plain_record(self, renderer):
        dispatcher = DeliveryDispatcher(renderer)

        notification_id = await dispatcher.deliver(NotificationRecord("T", "M"))

        assert notification_id == 1
        request = renderer.rendered[0]
        assert request.style is DeliveryStyle.PLAIN
        assert request.channel_id == DEFAULT_CHANNEL_ID

    async def test_big_text_on_registered_channel(self, renderer):
        dispatcher = DeliveryDispatcher(renderer)

        await dispatcher.deliver(
            NotificationRecord("T", "M", expanded_text="B", channel_hint=HIGH_PRIORITY_CHANNEL_ID)
        )

        request = renderer.rendered[0]
        assert request.style is DeliveryStyle.BIG_TEXT
        assert request.expanded_text == "B"
        assert request.channel_id == HIGH_PRIORITY_CHANNEL_ID

    async def test_unknown_channel_hint_falls_back_to_default(self, renderer):
        dispatcher = DeliveryDispatcher(renderer)

        notification_id = await dispatcher.deliver(
            NotificationRecord("T", "M", expanded_text="B", channel_hint="high")
        )

        assert notification_id > 0
        assert renderer.rendered[0].channel_id == DEFAULT_CHANNEL_ID

    async def test_ids_are_unique_and_increasing(self, renderer):
        dispatcher = DeliveryDispatcher(renderer)

        ids = await asyncio.gather(
            *(dispatcher.deliver(NotificationRecord(f"n{i}", "m")) for i in range(20))
        )

        assert sorted(ids) == list(range(1, 21))

    async def test_permission_denied_is_swallowed(self, make_renderer, bus):
        renderer = make_renderer(permitted=False)
        failed = []

        async def on_failed(event):
            failed.append(event)

        bus.on(EventType.NOTIFICATION_FAILED, on_failed)
        dispatcher = DeliveryDispatcher(renderer, bus=bus)

        notification_id = await dispatcher.deliver(NotificationRecord("T", "M"))

        assert notification_id == 1
        assert renderer.rendered == []
        assert len(failed) == 1

    async def test_render_rejection_raises(self, make_renderer):
        dispatcher = DeliveryDispatcher(make_renderer(fail_titles=("bad",)))

        with pytest.raises(RenderError):
            await dispatcher.deliver(NotificationRecord("bad", "M"))


@pytest.mark.asyncio
class TestDeliverAll:
    async def test_delivers_in_order(self, renderer):
        dispatcher = DeliveryDispatcher(renderer)
        records = [NotificationRecord(f"n{i}", "m") for i in range(4)]

        ids = await dispatcher.deliver_all(records)

        assert ids == [1, 2, 3, 4]
        assert renderer.titles == ["n0", "n1", "n2", "n3"]

    async def test_one_bad_record_does_not_stop_the_rest(self, make_renderer):
        renderer = make_renderer(fail_titles=("bad",))
        dispatcher = DeliveryDispatcher(renderer)
        records = [NotificationRecord("a", "m"), NotificationRecord("bad", "m"), NotificationRecord("c", "m")]

        ids = await dispatcher.deliver_all(records)

        assert len(ids) == 2
        assert renderer.titles == ["a", "c"]

    async def test_cancelled_token_stops_delivery(self, renderer):
        dispatcher = DeliveryDispatcher(renderer)
        token = CancellationToken()
        token.cancel("expired")

        with pytest.raises(CycleCancelled):
            await dispatcher.deliver_all([NotificationRecord("a", "m")], token)

        assert renderer.rendered == []

    async def test_emits_delivered_events(self, renderer, bus):
        delivered = []

        async def on_delivered(event):
            delivered.append(event.data["id"])

        bus.on(EventType.NOTIFICATION_DELIVERED, on_delivered)
        dispatcher = DeliveryDispatcher(renderer, bus=bus)

        await dispatcher.deliver_all([NotificationRecord("a", "m"), NotificationRecord("b", "m")])

        assert delivered == [1, 2]


@pytest.mark.asyncio
class TestImageDelivery:
    async def test_placeholder_then_update_with_same_id(self, renderer, bus):
        updates = []

        async def on_updated(event):
            updates.append(event.data)

        bus.on(EventType.NOTIFICATION_UPDATED, on_updated)
        dispatcher = DeliveryDispatcher(renderer, image_loader=_image_loader(), bus=bus)

        notification_id = await dispatcher.deliver(
            NotificationRecord("T", "M", image_url="https://example.com/a.png")
        )

        placeholder = renderer.rendered[0]
        assert placeholder.style is DeliveryStyle.IMAGE
        assert placeholder.loading is True
        assert placeholder.image is None

        await dispatcher.drain()

        assert len(renderer.updated) == 1
        update = renderer.updated[0]
        assert update.id == notification_id
        assert update.image == b"\x89PNG"
        assert update.loading is False
        assert update.alert_once is True
        assert updates[0]["image"] is True
        await dispatcher.aclose()

    async def test_image_failure_updates_without_picture(self, renderer):
        dispatcher = DeliveryDispatcher(renderer, image_loader=_image_loader(status=404))

        await dispatcher.deliver(NotificationRecord("T", "M", image_url="https://example.com/a.png"))
        await dispatcher.drain()

        assert renderer.updated[0].image is None
        assert renderer.updated[0].loading is False
        await dispatcher.aclose()

    async def test_cycle_does_not_wait_for_image(self, renderer):
        release = asyncio.Event()

        class SlowLoader:
            async def load(self, url):
                await release.wait()
                return b"img"

            async def aclose(self):
                pass

        dispatcher = DeliveryDispatcher(renderer, image_loader=SlowLoader())

        ids = await dispatcher.deliver_all(
            [NotificationRecord("T", "M", image_url="https://example.com/a.png")]
        )

        assert ids == [1]
        assert dispatcher.pending_updates == 1
        assert renderer.updated == []

        release.set()
        await dispatcher.drain()
        assert dispatcher.pending_updates == 0
        assert renderer.updated[0].image == b"img"


@pytest.mark.asyncio
class TestDirect:
    async def test_actions_style(self, renderer):
        dispatcher = DeliveryDispatcher(renderer)
        actions = [NotificationAction("Open", "/details"), NotificationAction("Later", "/snooze")]

        await dispatcher.show("T", "M", actions=actions, target_route="/home", extra={"k": 1})

        request = renderer.rendered[0]
        assert request.style is DeliveryStyle.ACTIONS
        assert request.actions == tuple(actions)
        assert request.target_route == "/home"
        assert request.extra == {"k": 1}

    async def test_explicit_id_is_reused(self, renderer):
        dispatcher = DeliveryDispatcher(renderer)

        first = await dispatcher.show("T", "M", notification_id=42)
        second = await dispatcher.show("T2", "M2", notification_id=42)

        assert first == second == 42
        assert [r.id for r in renderer.rendered] == [42, 42]

    async def test_explicit_id_is_never_handed_out_again(self, renderer):
        dispatcher = DeliveryDispatcher(renderer)

        await dispatcher.show("App", "M", notification_id=2)
        ids = [await dispatcher.deliver(NotificationRecord(f"n{i}", "m")) for i in range(3)]

        assert 2 not in ids
        assert ids == [3, 4, 5]

    async def test_explicit_id_below_counter_leaves_it_alone(self, renderer):
        dispatcher = DeliveryDispatcher(renderer, first_id=10)

        await dispatcher.show("App", "M", notification_id=3)

        assert await dispatcher.deliver(NotificationRecord("T", "M")) == 10

    async def test_status_notification_is_ongoing(self, renderer):
        dispatcher = DeliveryDispatcher(renderer)

        notification_id = await dispatcher.show_status("Svc", "Running", SERVICE_CHANNEL_ID)
        await dispatcher.cancel(notification_id)

        request = renderer.rendered[0]
        assert request.style is DeliveryStyle.STATUS
        assert request.ongoing is True
        assert request.auto_cancel is False
        assert request.channel_id == SERVICE_CHANNEL_ID
        assert renderer.cancelled == [notification_id]

    async def test_create_channel_registers_and_forwards(self, renderer):
        dispatcher = DeliveryDispatcher(renderer)
        spec = ChannelSpec(id="promo", name="Promotions", importance=Importance.SILENT)

        effective = await dispatcher.create_channel(spec)
        await dispatcher.show("T", "M", channel_id="promo")

        assert effective.importance is Importance.LOW
        assert effective.sound is False
        created = renderer.channels[0]
        assert created.id == "promo"
        assert created.importance is Importance.LOW
        assert created.enable_sound is False
        assert renderer.rendered[0].channel_id == "promo"
