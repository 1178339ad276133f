from __future__ import annotations
import logging
from typing import Optional

from ..domain import topics
from ..domain.events import ChangeNotifier

logger = logging.getLogger(__name__)


class SimulatedFan(ChangeNotifier):
    kind = topics.FAN

    def __init__(self, device_id: str) -> None:
        super().__init__(device_id)
        self.speed = "off"
        self.calls: list[str] = []

    async def start(self) -> None:
        pass

    async def stop(self) -> None:
        pass

    async def _set(self, speed: str) -> None:
        self.calls.append(speed)
        if speed != self.speed:
            logger.info("FAN %s speed=%s", self.device_id, speed)
        self.speed = speed

    async def off(self) -> None:
        await self._set("off")

    async def min(self) -> None:
        await self._set("min")

    async def max(self) -> None:
        await self._set("max")


class SimulatedShutter(ChangeNotifier):
    """Shutter that reaches its target position at once."""

    kind = topics.SHUTTER

    def __init__(self, device_id: str, position: float = 0, max_position: float = 100) -> None:
        super().__init__(device_id)
        self.position = float(position)
        self.max_position = float(max_position)
        self.movement = "stopped"
        self._last_direction = "up"

    async def start(self) -> None:
        pass

    async def stop(self) -> None:
        pass

    async def _move(self, direction: str, target: float) -> None:
        self._last_direction = direction
        await self._emit("movement", direction)
        self.position = target
        self.movement = "stopped"
        await self._emit("movement", "stopped")
        await self._emit(topics.STATUS, self.position)

    async def up(self) -> None:
        await self._move("up", 0.0)

    async def down(self) -> None:
        await self._move("down", self.max_position)

    async def stop_movement(self) -> None:
        self.movement = "stopped"
        await self._emit("movement", "stopped")

    async def toggle(self) -> None:
        if self._last_direction == "up":
            await self.down()
        else:
            await self.up()

    async def set_max(self, value: float) -> None:
        self.max_position = max(0.0, min(100.0, float(value)))
        if self.position > self.max_position:
            self.position = self.max_position
            await self._emit(topics.STATUS, self.position)


class SimulatedButton(ChangeNotifier):
    kind = topics.BUTTON

    def __init__(self, device_id: str) -> None:
        super().__init__(device_id)
        self._active = False

    @property
    def active(self) -> bool:
        return self._active

    async def start(self) -> None:
        self._active = True

    async def stop(self) -> None:
        self._active = False

    async def press(self) -> None:
        if not self._active:
            logger.debug("Button %s inactive, ignoring press", self.device_id)
            return
        await self._emit("close", retain=False)
        await self._emit(topics.STATUS, "closed")

    async def release(self) -> None:
        if not self._active:
            return
        await self._emit("open", retain=False)
        await self._emit(topics.STATUS, "open")


class SimulatedCircuit(ChangeNotifier):
    """Two-state input (window contact, light sense) set from the outside."""

    def __init__(self, device_id: str, kind: str, default: str, values: tuple[str, str]) -> None:
        super().__init__(device_id)
        self.kind = kind
        self.value = default
        self._values = values

    async def start(self) -> None:
        await self._emit(topics.STATUS, self.value)

    async def stop(self) -> None:
        pass

    async def set(self, value: str) -> None:
        if value not in self._values:
            raise ValueError(f"{self.kind} {self.device_id}: unknown value {value!r}")
        if value != self.value:
            self.value = value
            await self._emit(topics.STATUS, value)


def simulated_window(device_id: str) -> SimulatedCircuit:
    return SimulatedCircuit(device_id, topics.WINDOW, "closed", ("open", "closed"))


def simulated_light(device_id: str) -> SimulatedCircuit:
    return SimulatedCircuit(device_id, topics.LIGHT, "off", ("on", "off"))


class SimulatedDht22(ChangeNotifier):
    def __init__(self, device_id: str, temperature: Optional[float] = 21.0, humidity: Optional[float] = 50.0) -> None:
        super().__init__(device_id)
        self.temperature = temperature
        self.humidity = humidity

    async def start(self) -> None:
        if self.temperature is not None:
            await self._emit(topics.STATUS, self.temperature, kind=topics.TEMPERATURE)
        if self.humidity is not None:
            await self._emit(topics.STATUS, self.humidity, kind=topics.HUMIDITY)

    async def stop(self) -> None:
        pass

    async def set(self, temperature: Optional[float] = None, humidity: Optional[float] = None) -> None:
        if temperature is not None and temperature != self.temperature:
            self.temperature = temperature
            await self._emit(topics.STATUS, temperature, kind=topics.TEMPERATURE)
        if humidity is not None and humidity != self.humidity:
            self.humidity = humidity
            await self._emit(topics.STATUS, humidity, kind=topics.HUMIDITY)
