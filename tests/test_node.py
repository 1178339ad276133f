import asyncio

from roomcontrol.domain.models import StatusKey
from roomcontrol.drivers.factory import DriverFactory
from roomcontrol.services.node import Node, cleanup_lock_file, subscriptions
from roomcontrol.services.router import RouteResult

from conftest import build_room


class FakeTransport:
    def __init__(self):
        self.handler = None
        self.subscribed = []
        self.published = []
        self.disconnected = False

    async def connect(self, handler):
        self.handler = handler

    async def disconnect(self):
        self.disconnected = True

    async def subscribe(self, topic):
        self.subscribed.append(topic)

    async def publish(self, topic, payload=None, retain=False):
        self.published.append((topic, payload, retain))


def test_fan_subscriptions_include_inputs():
    topics = subscriptions(build_room(), ["fans"])
    assert "room/bath/humidity/dht/status" in topics
    assert "room/bath/light/ceiling/status" in topics
    assert "room/bath/light/mirror/status" in topics
    assert "room/bath/fan/fan/control" in topics
    assert "room/bath/fan/fan/minHumidityThreshold" in topics
    assert "room/bath/fan/fan/evaluate" in topics
    assert not any("/shutter/" in t for t in topics)


def test_subscriptions_per_task_have_no_duplicates():
    topics = subscriptions(build_room(), ["shutters", "buttons", "windows", "dht22", "lights", "fans"])
    assert len(topics) == len(set(topics))
    assert "room/bath/shutter/s1/toggle" in topics
    assert "room/bath/shutter/s1/status" in topics
    assert "room/bath/button/b1/active" in topics
    assert "room/bath/window/w1/status" in topics
    assert "room/bath/temperature/dht/status" in topics


def test_cleanup_lock_file(tmp_path):
    lock = tmp_path / "pigpio.pid"
    lock.write_text("123")
    assert cleanup_lock_file(str(lock)) is True
    assert not lock.exists()
    assert cleanup_lock_file(str(lock)) is False


def test_node_lifecycle():
    async def run():
        room = build_room()
        transport = FakeTransport()
        node = Node(
            {room.id: room, "hall": build_room()},
            {room.id: ["lights", "fans"]},
            transport,
            node_name="test-node",
            factory=DriverFactory("sim"),
            settle_seconds=0,
        )
        assert set(node.rooms) == {"bath"}

        await node.start()

        assert node.started
        assert transport.handler == node.router.handle
        assert transport.subscribed == subscriptions(room, ["lights", "fans"])
        assert ("automation/test-node/init", {"value": "done"}, True) in transport.published
        assert set(node.controls) == {"bath"}

        # Inbound messages land in the shared cache and reach the room's fan
        assert await transport.handler("room/bath/humidity/dht/status", b'{"value": 80}') == RouteResult.STATUS
        assert await transport.handler("room/bath/fan/fan/control", b'{"value": "auto"}') == RouteResult.FAN_SETTING
        assert node.cache.get(StatusKey("bath", "fan", "fan", "control")) == "auto"

        assert await transport.handler("room/bath/fan/fan/evaluate", b"") == RouteResult.FAN_EVALUATE
        assert ("room/bath/fan/fan/speed", {"value": "max"}, True) in transport.published

        await node.stop()
        assert transport.disconnected
        assert not node.started

    asyncio.run(run())


def test_retained_settings_before_controls_are_kept():
    async def run():
        room = build_room()
        transport = FakeTransport()
        node = Node({room.id: room}, {room.id: ["buttons"]}, transport, factory=DriverFactory("sim"), settle_seconds=0)

        await node.router.handle("room/bath/button/b1/active", b'{"value": false}')
        await node.start()

        assert node.controls["bath"].buttons["b1"].active is False
        await node.stop()

    asyncio.run(run())
