"""Topic addressing and payload codec for the room message bus.

Topics look like ``room/<roomId>/<kind>/<deviceId>[/<subAction>]``; a missing
sub-action means ``status``. Payloads are JSON objects ``{"value": ...}``.
"""
from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any, Optional

ROOM = "room"
STATUS = "status"

SHUTTER = "shutter"
BUTTON = "button"
WINDOW = "window"
TEMPERATURE = "temperature"
HUMIDITY = "humidity"
LIGHT = "light"
FAN = "fan"

KINDS = frozenset({SHUTTER, BUTTON, WINDOW, TEMPERATURE, HUMIDITY, LIGHT, FAN})

SHUTTER_ACTIONS = ("up", "down", "stop", "toggle", "max")
BUTTON_ACTIONS = ("active",)
FAN_ATTRIBUTES = (
    "control",
    "speed",
    "trailingTime",
    "minRunTime",
    "lightTimeout",
    "minHumidityThreshold",
    "maxHumidityThreshold",
)
FAN_EVALUATE = "evaluate"

# Published by drivers but never acted upon when they come back in
EVENT_ACTIONS = frozenset({"close", "open", "movement"})


@dataclass(frozen=True)
class Address:
    room_id: str
    kind: str
    device_id: str
    sub_action: str = STATUS

    @property
    def topic(self) -> str:
        return device_topic(self.room_id, self.kind, self.device_id, self.sub_action)


def device_topic(room_id: str, kind: str, device_id: str, sub_action: str = STATUS) -> str:
    return f"{ROOM}/{room_id}/{kind}/{device_id}/{sub_action}"


def parse_topic(topic: str) -> Optional[Address]:
    """Return the address of a room topic, or None when it is not one."""
    if not isinstance(topic, str):
        return None
    parts = topic.split("/")
    if len(parts) not in (4, 5) or any(not p for p in parts):
        return None
    if parts[0] != ROOM:
        return None
    sub_action = parts[4] if len(parts) == 5 else STATUS
    return Address(room_id=parts[1], kind=parts[2], device_id=parts[3], sub_action=sub_action)


# --- Builders used for subscriptions and outbound publishes ---

def shutter_status(room_id: str, shutter_id: str) -> str:
    return device_topic(room_id, SHUTTER, shutter_id, STATUS)


def shutter_movement(room_id: str, shutter_id: str) -> str:
    return device_topic(room_id, SHUTTER, shutter_id, "movement")


def shutter_action(room_id: str, shutter_id: str, action: str) -> str:
    return device_topic(room_id, SHUTTER, shutter_id, action)


def window_status(room_id: str, window_id: str) -> str:
    return device_topic(room_id, WINDOW, window_id, STATUS)


def button_status(room_id: str, button_id: str) -> str:
    return device_topic(room_id, BUTTON, button_id, STATUS)


def button_active(room_id: str, button_id: str) -> str:
    return device_topic(room_id, BUTTON, button_id, "active")


def temperature_status(room_id: str, sensor_id: str) -> str:
    return device_topic(room_id, TEMPERATURE, sensor_id, STATUS)


def humidity_status(room_id: str, sensor_id: str) -> str:
    return device_topic(room_id, HUMIDITY, sensor_id, STATUS)


def light_status(room_id: str, light_id: str) -> str:
    return device_topic(room_id, LIGHT, light_id, STATUS)


def fan_attribute(room_id: str, fan_id: str, attribute: str) -> str:
    return device_topic(room_id, FAN, fan_id, attribute)


def fan_speed(room_id: str, fan_id: str) -> str:
    return fan_attribute(room_id, fan_id, "speed")


def automation_init(node_name: str) -> str:
    return f"automation/{node_name}/init"


# --- Payload codec ---

def encode_payload(payload: Optional[dict] = None) -> str:
    return json.dumps(payload or {})


def value_payload(value: Any) -> dict:
    return {"value": value}


def decode_payload(raw: Any) -> dict:
    """Decode an inbound payload into a dict carrying an optional "value".

    Raises ValueError for payloads that are not a JSON object.
    """
    if isinstance(raw, dict):
        return raw
    if isinstance(raw, (bytes, bytearray)):
        raw = raw.decode("utf-8")
    if raw is None or (isinstance(raw, str) and not raw.strip()):
        return {}
    data = json.loads(raw)
    if not isinstance(data, dict):
        raise ValueError(f"Payload is not an object: {raw!r}")
    return data
