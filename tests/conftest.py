"""
Shared fixtures for the room control test suite.

Provides:
- A fixed reference time (`t0`) for time-dependent fan decisions
- A recording publisher standing in for the MQTT transport
- A bathroom-like room with every device kind and one fan
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone

import pytest

from roomcontrol.core.errors import TransportError
from roomcontrol.domain.models import (
    ButtonAction,
    ButtonConfig,
    Dht22Config,
    FanConfig,
    LightConfig,
    Room,
    ShutterConfig,
    WindowConfig,
)

# ---------------------------------------------------------------------------
# Logging: keep test output clean
# ---------------------------------------------------------------------------
logging.getLogger("roomcontrol").setLevel(logging.WARNING)


T0 = datetime(2026, 1, 1, 12, 0, 0, tzinfo=timezone.utc)


class FakePublisher:
    """Records publishes; optionally fails every one of them."""

    def __init__(self, fail: bool = False):
        self.fail = fail
        self.messages: list[tuple[str, object, bool]] = []

    async def publish(self, topic, payload=None, retain=False):
        if self.fail:
            raise TransportError("broker down")
        self.messages.append((topic, payload, retain))

    def topics(self) -> list[str]:
        return [m[0] for m in self.messages]


class FakeRepo:
    def __init__(self):
        self.actions = []

    async def init(self):
        return None

    async def insert_action(self, action):
        self.actions.append(action)

    async def query_actions(self, start_ts, end_ts, limit):
        return list(self.actions)[:limit]


def build_fan(**overrides) -> FanConfig:
    params = dict(
        id="fan",
        label="Fan",
        min_humidity_threshold=50.0,
        max_humidity_threshold=70.0,
        min_run_time=0.0,
        light_timeout=300.0,
        trailing_time=600.0,
        trigger_lights=("ceiling", "mirror"),
    )
    params.update(overrides)
    return FanConfig(**params)


def build_room(fans=None) -> Room:
    return Room(
        id="bath",
        label="Bath",
        main_humidity="dht",
        shutters=(ShutterConfig(id="s1", label="Shutter"),),
        windows=(WindowConfig(id="w1", label="Window"),),
        buttons=(
            ButtonConfig(
                id="b1",
                label="Button",
                on_close=ButtonAction(topic="room/bath/shutter/s1/toggle"),
            ),
        ),
        dht22=(Dht22Config(id="dht", label="Climate"),),
        lights=(LightConfig(id="ceiling", label="Ceiling"), LightConfig(id="mirror", label="Mirror")),
        fans=tuple(fans) if fans is not None else (build_fan(),),
    )


@pytest.fixture()
def t0():
    return T0


@pytest.fixture()
def publisher():
    return FakePublisher()


@pytest.fixture()
def failing_publisher():
    return FakePublisher(fail=True)


@pytest.fixture()
def fake_repo():
    return FakeRepo()


@pytest.fixture()
def room():
    return build_room()
