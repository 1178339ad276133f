"""Raspberry Pi GPIO drivers built on gpiozero.

Inputs are polled on an interval (like a classic interval circuit) so change
notifications are emitted from the event loop rather than gpiozero's callback
thread.
"""
from __future__ import annotations

import logging
from typing import Optional

from gpiozero import Button as GpioButtonDevice
from gpiozero import DigitalInputDevice, OutputDevice

from ..core.tasks import DelayedCall, PeriodicTask
from ..domain import topics
from ..domain.events import ChangeNotifier

logger = logging.getLogger(__name__)


class GpioFan(ChangeNotifier):
    """Two-speed fan on two relays: one for min, one for max."""

    kind = topics.FAN

    def __init__(self, device_id: str, pin_min: int, pin_max: int) -> None:
        super().__init__(device_id)
        self._min = OutputDevice(pin_min, initial_value=False)
        self._max = OutputDevice(pin_max, initial_value=False)
        self.speed = "off"

    async def start(self) -> None:
        pass

    async def stop(self) -> None:
        self._min.off()
        self._max.off()

    def close(self) -> None:
        self._min.close()
        self._max.close()

    async def off(self) -> None:
        self._min.off()
        self._max.off()
        self.speed = "off"

    async def min(self) -> None:
        # Never energize both windings
        self._max.off()
        self._min.on()
        self.speed = "min"

    async def max(self) -> None:
        self._min.off()
        self._max.on()
        self.speed = "max"


class GpioCircuit(ChangeNotifier):
    """Polled two-state input: window contact or light sense."""

    def __init__(
        self,
        device_id: str,
        kind: str,
        pin: int,
        interval: float,
        active_value: str,
        inactive_value: str,
    ) -> None:
        super().__init__(device_id)
        self.kind = kind
        self._device = DigitalInputDevice(pin, pull_up=True)
        self._active_value = active_value
        self._inactive_value = inactive_value
        self.value: Optional[str] = None
        self._ticker = PeriodicTask(f"{kind}_{device_id}_poll", interval, self._poll, run_immediately=True)

    async def _poll(self) -> None:
        value = self._active_value if self._device.is_active else self._inactive_value
        if value != self.value:
            self.value = value
            await self._emit(topics.STATUS, value)

    async def start(self) -> None:
        self._ticker.start()

    async def stop(self) -> None:
        await self._ticker.stop()

    def close(self) -> None:
        self._device.close()


class GpioButton(ChangeNotifier):
    """Push button / reed contact; emits close/open while started."""

    kind = topics.BUTTON

    def __init__(self, device_id: str, pin: int, interval: float) -> None:
        super().__init__(device_id)
        self._device = GpioButtonDevice(pin, pull_up=True)
        self._closed: Optional[bool] = None
        self._ticker = PeriodicTask(f"button_{device_id}_poll", interval, self._poll, run_immediately=True)

    @property
    def active(self) -> bool:
        return self._ticker.running

    async def _poll(self) -> None:
        closed = bool(self._device.is_pressed)
        if closed == self._closed:
            return
        first = self._closed is None
        self._closed = closed
        if first:
            # Only report the initial state, no edge event
            await self._emit(topics.STATUS, "closed" if closed else "open")
            return
        if closed:
            await self._emit("close", retain=False)
            await self._emit(topics.STATUS, "closed")
        else:
            await self._emit("open", retain=False)
            await self._emit(topics.STATUS, "open")

    async def start(self) -> None:
        self._closed = None
        self._ticker.start()

    async def stop(self) -> None:
        await self._ticker.stop()

    def close(self) -> None:
        self._device.close()


class GpioShutter(ChangeNotifier):
    """Shutter motor on an up relay and a down relay.

    The relay is held for the full travel time; only end positions (and the
    configured ceiling when moving down) are reported.
    """

    kind = topics.SHUTTER

    def __init__(
        self,
        device_id: str,
        pin_up: int,
        pin_down: int,
        travel_seconds: float,
        max_position: float = 100,
        position: float = 0,
    ) -> None:
        super().__init__(device_id)
        self._up = OutputDevice(pin_up, initial_value=False)
        self._down = OutputDevice(pin_down, initial_value=False)
        self.travel_seconds = travel_seconds
        self.max_position = float(max_position)
        self.position = float(position)
        self.movement = "stopped"
        self._target = self.position
        self._last_direction = "up"
        self._arrival: Optional[DelayedCall] = None

    async def start(self) -> None:
        await self._emit(topics.STATUS, self.position)

    async def stop(self) -> None:
        await self.stop_movement()

    def close(self) -> None:
        self._up.close()
        self._down.close()

    async def _arrive(self) -> None:
        self._up.off()
        self._down.off()
        self.position = self._target
        self.movement = "stopped"
        await self._emit("movement", "stopped")
        await self._emit(topics.STATUS, self.position)

    async def _move(self, direction: str, target: float) -> None:
        await self.stop_movement()
        if target == self.position:
            return
        seconds = self.travel_seconds * abs(target - self.position) / 100.0
        self._target = target
        self._last_direction = direction
        self.movement = direction
        (self._up if direction == "up" else self._down).on()
        await self._emit("movement", direction)
        self._arrival = DelayedCall(f"shutter_{self.device_id}_travel", seconds, self._arrive)
        self._arrival.schedule()

    async def up(self) -> None:
        await self._move("up", 0.0)

    async def down(self) -> None:
        await self._move("down", self.max_position)

    async def stop_movement(self) -> None:
        if self._arrival is not None:
            await self._arrival.cancel()
            self._arrival = None
        self._up.off()
        self._down.off()
        if self.movement != "stopped":
            self.movement = "stopped"
            await self._emit("movement", "stopped")

    async def toggle(self) -> None:
        if self.movement != "stopped":
            await self.stop_movement()
        elif self._last_direction == "up":
            await self.down()
        else:
            await self.up()

    async def set_max(self, value: float) -> None:
        self.max_position = max(0.0, min(100.0, float(value)))
        logger.info("Shutter %s max=%s", self.device_id, self.max_position)
