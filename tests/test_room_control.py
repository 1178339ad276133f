import asyncio

from roomcontrol.domain.models import StatusKey
from roomcontrol.domain.status import StatusCache
from roomcontrol.drivers.factory import DriverFactory
from roomcontrol.services.context import RoomContext
from roomcontrol.services.room_control import TASKS, RoomControl

from conftest import build_room


def make_control(publisher, tasks=TASKS, cache=None):
    ctx = RoomContext(room=build_room(), cache=cache or StatusCache(), publisher=publisher)
    return RoomControl(ctx, tasks, factory=DriverFactory("sim"), fan_interval=3600, settle_seconds=0.01)


def test_only_configured_tasks_get_drivers(publisher):
    control = make_control(publisher, tasks=["lights"])
    assert set(control.lights) == {"ceiling", "mirror"}
    assert control.shutters == {} and control.fans == {}
    assert control.fan_service is None
    assert not control.has_fan("fan")


def test_fan_task_creates_fan_service(publisher):
    control = make_control(publisher, tasks=["fans"])
    assert control.fan_service is not None
    assert control.has_fan("fan")


def test_start_publishes_initial_driver_status(publisher):
    async def run():
        control = make_control(publisher, tasks=["windows", "dht22"])
        await control.start()
        assert ("room/bath/window/w1/status", {"value": "closed"}, True) in publisher.messages
        assert ("room/bath/temperature/dht/status", {"value": 21.0}, True) in publisher.messages
        assert ("room/bath/humidity/dht/status", {"value": 50.0}, True) in publisher.messages
        await control.stop()

    asyncio.run(run())


def test_driver_change_is_published(publisher):
    async def run():
        control = make_control(publisher, tasks=["lights"])
        await control.start()
        publisher.messages.clear()

        await control.lights["ceiling"].set("on")

        assert publisher.messages == [("room/bath/light/ceiling/status", {"value": "on"}, True)]
        await control.stop()

    asyncio.run(run())


def test_button_press_publishes_event_status_and_action(publisher):
    async def run():
        control = make_control(publisher, tasks=["buttons"])
        await control.start()

        await control.buttons["b1"].press()

        assert publisher.messages == [
            ("room/bath/button/b1/close", None, False),
            ("room/bath/button/b1/status", {"value": "closed"}, True),
            ("room/bath/shutter/s1/toggle", None, False),
        ]
        await control.stop()

    asyncio.run(run())


def test_button_release_without_action(publisher):
    async def run():
        control = make_control(publisher, tasks=["buttons"])
        await control.start()

        await control.buttons["b1"].release()

        assert publisher.topics() == ["room/bath/button/b1/open", "room/bath/button/b1/status"]
        await control.stop()

    asyncio.run(run())


def test_inactive_button_is_not_started(publisher):
    async def run():
        cache = StatusCache()
        cache.merge(StatusKey("bath", "button", "b1", "active"), False)
        control = make_control(publisher, tasks=["buttons"], cache=cache)
        await control.start()

        assert control.buttons["b1"].active is False
        await control.buttons["b1"].press()
        assert publisher.messages == []

        assert await control.button("active", "b1", True) is True
        assert control.buttons["b1"].active is True
        await control.stop()

    asyncio.run(run())


def test_shutter_starts_at_cached_position(publisher):
    cache = StatusCache()
    cache.merge(StatusKey("bath", "shutter", "s1"), 40)
    control = make_control(publisher, tasks=["shutters"], cache=cache)
    assert control.shutters["s1"].position == 40.0


def test_shutter_actions(publisher):
    async def run():
        control = make_control(publisher, tasks=["shutters"])
        shutter = control.shutters["s1"]

        assert await control.shutter("down", "s1") is True
        assert shutter.position == 100.0
        assert await control.shutter("toggle", "s1") is True
        assert shutter.position == 0.0
        assert await control.shutter("max", "s1", 60) is True
        assert await control.shutter("down", "s1") is True
        assert shutter.position == 60.0
        assert await control.shutter("stop", "s1") is True
        assert await control.shutter("fly", "s1") is False
        assert await control.shutter("up", "ghost") is False

    asyncio.run(run())


def test_publish_failure_is_contained(failing_publisher):
    async def run():
        control = make_control(failing_publisher, tasks=["lights"])
        await control.start()
        await control.lights["ceiling"].set("on")
        await control.stop()

    asyncio.run(run())


def test_no_publishes_after_stop(publisher):
    async def run():
        control = make_control(publisher, tasks=["lights"])
        await control.start()
        await control.stop()
        publisher.messages.clear()

        await control.lights["ceiling"].set("on")

        assert publisher.messages == []

    asyncio.run(run())


def test_fan_evaluates_on_demand(publisher):
    async def run():
        control = make_control(publisher, tasks=["fans"])
        await control.fan("fan")
        assert control.fans["fan"].calls == ["off"]

    asyncio.run(run())


def test_start_applies_retained_fan_settings(publisher):
    async def run():
        cache = StatusCache()
        cache.merge(StatusKey("bath", "fan", "fan", "control"), "auto")
        cache.merge(StatusKey("bath", "humidity", "dht"), 80.0)
        control = make_control(publisher, tasks=["fans"], cache=cache)

        await control.start()
        assert control.fans["fan"].calls == []

        await asyncio.sleep(0.1)
        assert control.fans["fan"].calls == ["max"]
        assert ("room/bath/fan/fan/speed", {"value": "max"}, True) in publisher.messages
        await control.stop()

    asyncio.run(run())
