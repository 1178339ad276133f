"""Room configuration file and node task list."""
from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator
from pydantic.alias_generators import to_camel

from .errors import ConfigError
from ..domain.models import (
    ButtonAction,
    ButtonConfig,
    Dht22Config,
    FanConfig,
    LightConfig,
    Room,
    ShutterConfig,
    WindowConfig,
)

logger = logging.getLogger(__name__)

KNOWN_TASKS = frozenset({"shutters", "windows", "buttons", "dht22", "lights", "fans"})


class _In(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")


class _DeviceIn(_In):
    id: str
    label: str = ""
    driver: Optional[str] = None


class ShutterIn(_DeviceIn):
    gpio_up: Optional[int] = None
    gpio_down: Optional[int] = None
    travel_seconds: float = Field(default=30.0, gt=0)
    max: int = Field(default=100, ge=0, le=100)


class WindowIn(_DeviceIn):
    gpio: Optional[int] = None
    interval: float = Field(default=1.0, gt=0)


class ButtonActionIn(_In):
    topic: str
    value: Any = None


class ButtonIn(_DeviceIn):
    gpio: Optional[int] = None
    interval: float = Field(default=0.05, gt=0)
    on_close: Optional[ButtonActionIn] = None
    on_open: Optional[ButtonActionIn] = None


class Dht22In(_DeviceIn):
    gpio: Optional[int] = None
    interval: float = Field(default=30.0, gt=0)


class LightIn(_DeviceIn):
    gpio: Optional[int] = None
    interval: float = Field(default=1.0, gt=0)


class FanIn(_DeviceIn):
    gpio_min: Optional[int] = None
    gpio_max: Optional[int] = None
    sonoff_ip: Optional[str] = None
    sonoff_port: int = 8081
    sonoff_device_id: Optional[str] = None
    min_humidity_threshold: float = 60.0
    max_humidity_threshold: float = 75.0
    min_run_time: float = Field(default=300.0, ge=0)
    light_timeout: float = Field(default=120.0, ge=0)
    trailing_time: float = Field(default=300.0, ge=0)
    trigger_lights: List[str] = Field(default_factory=list)


class RoomIn(_In):
    id: str
    label: str = ""
    main_humidity: Optional[str] = None
    shutters: List[ShutterIn] = Field(default_factory=list)
    windows: List[WindowIn] = Field(default_factory=list)
    buttons: List[ButtonIn] = Field(default_factory=list)
    dht22: List[Dht22In] = Field(default_factory=list)
    lights: List[LightIn] = Field(default_factory=list)
    fans: List[FanIn] = Field(default_factory=list)

    @field_validator("main_humidity", mode="before")
    @classmethod
    def _sensor_ref(cls, v: Union[str, dict, None]):
        # Either "bad-dht22" or {"id": "bad-dht22"}
        if isinstance(v, dict):
            return v.get("id")
        return v


class RoomsFile(_In):
    rooms: List[RoomIn]


def _action(a: Optional[ButtonActionIn]) -> Optional[ButtonAction]:
    return None if a is None else ButtonAction(topic=a.topic, value=a.value)


def to_room(r: RoomIn) -> Room:
    return Room(
        id=r.id,
        label=r.label or r.id,
        main_humidity=r.main_humidity,
        shutters=tuple(ShutterConfig(**s.model_dump()) for s in r.shutters),
        windows=tuple(WindowConfig(**w.model_dump()) for w in r.windows),
        buttons=tuple(
            ButtonConfig(
                id=b.id,
                label=b.label,
                driver=b.driver,
                gpio=b.gpio,
                interval=b.interval,
                on_close=_action(b.on_close),
                on_open=_action(b.on_open),
            )
            for b in r.buttons
        ),
        dht22=tuple(Dht22Config(**d.model_dump()) for d in r.dht22),
        lights=tuple(LightConfig(**lt.model_dump()) for lt in r.lights),
        fans=tuple(
            FanConfig(**{**f.model_dump(), "trigger_lights": tuple(f.trigger_lights)})
            for f in r.fans
        ),
    )


def parse_rooms(data: Any) -> dict[str, Room]:
    try:
        parsed = RoomsFile.model_validate(data)
    except ValidationError as e:
        raise ConfigError(f"Invalid room configuration: {e}") from e

    rooms: dict[str, Room] = {}
    for r in parsed.rooms:
        if r.id in rooms:
            raise ConfigError(f"Duplicate room id: {r.id}")
        rooms[r.id] = to_room(r)
    return rooms


def load_rooms(path: Union[str, Path]) -> dict[str, Room]:
    p = Path(path)
    try:
        data = json.loads(p.read_text())
    except (OSError, ValueError) as e:
        raise ConfigError(f"Cannot read room configuration {p}: {e}") from e
    rooms = parse_rooms(data)
    logger.info("Loaded %d room(s) from %s", len(rooms), p)
    return rooms


def parse_tasks(tasks: str) -> dict[str, list[str]]:
    """Parse "room:task,room:task" into {room: [task, ...]}."""
    out: dict[str, list[str]] = {}
    for item in tasks.split(","):
        room, _, task = item.partition(":")
        room, task = room.strip(), task.strip()
        if not room or not task:
            continue
        if task not in KNOWN_TASKS:
            logger.warning("Ignoring unknown task %r for room %s", task, room)
            continue
        bucket = out.setdefault(room, [])
        if task not in bucket:
            bucket.append(task)
    return out


def resolve_tasks(rooms: dict[str, Room], tasks: dict[str, list[str]]) -> dict[str, list[str]]:
    missing = sorted(set(tasks) - set(rooms))
    if missing:
        raise ConfigError(f"Tasks reference unknown room(s): {', '.join(missing)}")
    return tasks
