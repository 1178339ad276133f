from __future__ import annotations
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Literal, Optional


Speed = Literal["off", "min", "max"]
ControlMode = Literal["manual", "auto"]

SPEEDS: tuple[str, ...] = ("off", "min", "max")
CONTROL_MODES: tuple[str, ...] = ("manual", "auto")


@dataclass(frozen=True)
class ShutterConfig:
    id: str
    label: str = ""
    driver: Optional[str] = None
    gpio_up: Optional[int] = None
    gpio_down: Optional[int] = None
    travel_seconds: float = 30.0
    max: int = 100


@dataclass(frozen=True)
class WindowConfig:
    id: str
    label: str = ""
    driver: Optional[str] = None
    gpio: Optional[int] = None
    interval: float = 1.0


@dataclass(frozen=True)
class ButtonAction:
    topic: str
    value: Any = None


@dataclass(frozen=True)
class ButtonConfig:
    id: str
    label: str = ""
    driver: Optional[str] = None
    gpio: Optional[int] = None
    interval: float = 0.05
    on_close: Optional[ButtonAction] = None
    on_open: Optional[ButtonAction] = None


@dataclass(frozen=True)
class Dht22Config:
    id: str
    label: str = ""
    driver: Optional[str] = None
    gpio: Optional[int] = None
    interval: float = 30.0


@dataclass(frozen=True)
class LightConfig:
    id: str
    label: str = ""
    driver: Optional[str] = None
    gpio: Optional[int] = None
    interval: float = 1.0


@dataclass(frozen=True)
class FanConfig:
    id: str
    label: str = ""
    driver: Optional[str] = None
    gpio_min: Optional[int] = None
    gpio_max: Optional[int] = None
    sonoff_ip: Optional[str] = None
    sonoff_port: int = 8081
    sonoff_device_id: Optional[str] = None
    min_humidity_threshold: float = 60.0
    max_humidity_threshold: float = 75.0
    min_run_time: float = 300.0
    light_timeout: float = 120.0
    trailing_time: float = 300.0
    trigger_lights: tuple[str, ...] = ()


@dataclass(frozen=True)
class Room:
    id: str
    label: str = ""
    main_humidity: Optional[str] = None
    shutters: tuple[ShutterConfig, ...] = ()
    windows: tuple[WindowConfig, ...] = ()
    buttons: tuple[ButtonConfig, ...] = ()
    dht22: tuple[Dht22Config, ...] = ()
    lights: tuple[LightConfig, ...] = ()
    fans: tuple[FanConfig, ...] = ()

    def fan(self, fan_id: str) -> Optional[FanConfig]:
        for f in self.fans:
            if f.id == fan_id:
                return f
        return None


@dataclass(frozen=True)
class StatusKey:
    room: str
    kind: str
    device: str
    attribute: str = "status"


@dataclass(frozen=True)
class StatusEntry:
    value: Any
    since: datetime


@dataclass(frozen=True)
class LightReading:
    light_id: str
    value: Any
    since: datetime

    @property
    def on(self) -> bool:
        return self.value == "on"


@dataclass(frozen=True)
class FanInputs:
    humidity: Optional[float]
    min_humidity_threshold: float
    max_humidity_threshold: float
    min_run_time: float
    light_timeout: float
    trailing_time: float
    control: ControlMode
    speed: str
    speed_since: datetime
    lights: tuple[LightReading, ...] = ()


@dataclass(frozen=True)
class FanDecision:
    action: str  # "MANUAL" | "HOLD" | "AUTO" | "INVALID"
    speed: Optional[Speed]
    previous: str
    reason: str
    trailing: bool
    humidity: Optional[float] = None

    @property
    def changed(self) -> bool:
        return self.speed is not None and self.speed != self.previous


@dataclass
class FanRuntimeState:
    trailing: bool = False
    last_decision: Optional[FanDecision] = None
    last_evaluated_utc: Optional[datetime] = None


@dataclass(frozen=True)
class FanAction:
    ts_utc: datetime
    room_id: str
    fan_id: str
    speed: Speed
    previous: str
    reason: str
    humidity: Optional[float]
    trailing: bool


@dataclass(frozen=True)
class DeviceChange:
    kind: str
    device_id: str
    attribute: str
    value: Any = None
    retain: bool = True
