from __future__ import annotations
from typing import Optional, Protocol, runtime_checkable
from .events import ChangeListener
from .models import FanAction


@runtime_checkable
class Device(Protocol):
    device_id: str

    def add_listener(self, listener: ChangeListener) -> None:
        ...

    async def start(self) -> None:
        ...

    async def stop(self) -> None:
        ...


@runtime_checkable
class Shutter(Device, Protocol):
    async def up(self) -> None:
        ...

    async def down(self) -> None:
        ...

    async def stop_movement(self) -> None:
        ...

    async def toggle(self) -> None:
        ...

    async def set_max(self, value: float) -> None:
        ...


@runtime_checkable
class Button(Device, Protocol):
    @property
    def active(self) -> bool:
        ...


@runtime_checkable
class Circuit(Device, Protocol):
    """Two-state input: window contact or light sense."""

    value: Optional[str]


@runtime_checkable
class Dht22(Device, Protocol):
    temperature: Optional[float]
    humidity: Optional[float]


@runtime_checkable
class Fan(Device, Protocol):
    async def off(self) -> None:
        ...

    async def min(self) -> None:
        ...

    async def max(self) -> None:
        ...


@runtime_checkable
class Publisher(Protocol):
    async def publish(self, topic: str, payload: Optional[dict] = None, retain: bool = False) -> None:
        ...


@runtime_checkable
class Repository(Protocol):
    async def init(self) -> None:
        ...

    async def insert_action(self, action: FanAction) -> None:
        ...

    async def query_actions(self, start_ts: str, end_ts: str, limit: int) -> list[FanAction]:
        ...
